"""
Application settings for the knowledge base core.

Loads settings from environment variables or uses defaults.
Provides centralized configuration management.
"""

import os
from pathlib import Path
from typing import Optional
from dataclasses import dataclass, field

from .constants import (
    APP_VERSION,
    DEFAULT_LOOKBACK_MONTHS,
    DEFAULT_FORECAST_PERIODS,
    DEFAULT_REQUIRED_APPROVERS,
    DEFAULT_TENANT_ID,
    MAX_COMMENT_DEPTH,
)
from .paths import get_database_path, get_media_root


@dataclass
class Settings:
    """
    Application settings.

    Can be loaded from environment variables or initialized with defaults.
    """

    app_version: str = APP_VERSION

    # Database settings
    database_type: str = "sqlite"
    database_path: Path = field(default_factory=get_database_path)

    # Media storage root (one sub-directory per tenant)
    media_root: Path = field(default_factory=get_media_root)

    # Tenant used by the CLI when --tenant is not given
    default_tenant_id: str = DEFAULT_TENANT_ID

    # Workflow
    required_approvers: int = DEFAULT_REQUIRED_APPROVERS
    max_comment_depth: int = MAX_COMMENT_DEPTH

    # Forecasting
    forecast_periods: int = DEFAULT_FORECAST_PERIODS
    lookback_months: int = DEFAULT_LOOKBACK_MONTHS

    # Debug settings
    debug_mode: bool = False
    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR

    def __post_init__(self):
        if self.required_approvers < 1:
            raise ValueError("required_approvers must be at least 1")
        if self.max_comment_depth < 0:
            raise ValueError("max_comment_depth cannot be negative")

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Load settings from environment variables.

        Environment variables:
        - KB_DATABASE_PATH: Path to SQLite database
        - KB_MEDIA_ROOT: Media storage directory
        - KB_DEFAULT_TENANT: Tenant used when none is given
        - KB_REQUIRED_APPROVERS: Distinct approvals needed to publish
        - KB_MAX_COMMENT_DEPTH: Deepest allowed reply level
        - KB_FORECAST_PERIODS / KB_LOOKBACK_MONTHS: Forecast defaults
        - KB_DEBUG: Enable debug mode (true/false)
        - KB_LOG_LEVEL: Logging level (DEBUG/INFO/WARNING/ERROR)

        Returns:
            Settings instance with values from environment or defaults
        """
        database_path = os.getenv("KB_DATABASE_PATH")
        media_root = os.getenv("KB_MEDIA_ROOT")

        return cls(
            database_path=Path(database_path) if database_path else get_database_path(),
            media_root=Path(media_root) if media_root else get_media_root(),
            default_tenant_id=os.getenv("KB_DEFAULT_TENANT", DEFAULT_TENANT_ID),
            required_approvers=int(os.getenv("KB_REQUIRED_APPROVERS", DEFAULT_REQUIRED_APPROVERS)),
            max_comment_depth=int(os.getenv("KB_MAX_COMMENT_DEPTH", MAX_COMMENT_DEPTH)),
            forecast_periods=int(os.getenv("KB_FORECAST_PERIODS", DEFAULT_FORECAST_PERIODS)),
            lookback_months=int(os.getenv("KB_LOOKBACK_MONTHS", DEFAULT_LOOKBACK_MONTHS)),
            debug_mode=os.getenv("KB_DEBUG", "false").lower() == "true",
            log_level=os.getenv("KB_LOG_LEVEL", "INFO"),
        )

    def to_dict(self) -> dict:
        """Convert settings to dictionary for serialization."""
        return {
            "app_version": self.app_version,
            "database_type": self.database_type,
            "database_path": str(self.database_path),
            "media_root": str(self.media_root),
            "default_tenant_id": self.default_tenant_id,
            "required_approvers": self.required_approvers,
            "max_comment_depth": self.max_comment_depth,
            "forecast_periods": self.forecast_periods,
            "lookback_months": self.lookback_months,
            "debug_mode": self.debug_mode,
            "log_level": self.log_level,
        }


# Global settings instance (lazy-loaded)
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get global settings instance.

    Lazy-loaded on first call. Loads from environment variables.
    """
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def reset_settings():
    """
    Reset global settings instance.

    Useful for testing - forces reload from environment on next get_settings() call.
    """
    global _settings
    _settings = None
