"""
Application context for the knowledge base core.

Explicit tenant/user scope and dependency injection. Operations take
the context instead of reading ambient globals.
"""

from dataclasses import dataclass, field, replace
from typing import Optional
from pathlib import Path

from data.interface import DatabaseInterface
from .constants import ERROR_MESSAGES
from .settings import Settings, get_settings


@dataclass(frozen=True)
class AppContext:
    """
    Centralized application context.

    Contains all call-wide state and dependencies. Passed to operations
    that need to know who is acting and for which tenant.

    Key principles:
    - Immutable (use with_* methods for changes)
    - All dependencies explicit (database, settings)
    - Tenant is a hard boundary: every operation reads it from here

    Example:
        >>> from data import create_database
        >>> db = create_database("sqlite", path=":memory:")
        >>> ctx = AppContext(database=db).with_tenant("acme").with_user("u1")
        >>> create_article(ctx.database, ctx.require_tenant(), ctx.require_user(), {...})
    """

    # Core dependencies (required)
    database: DatabaseInterface
    settings: Settings = field(default_factory=get_settings)

    # Call scope
    tenant_id: Optional[str] = None
    user_id: Optional[str] = None

    @property
    def media_root(self) -> Path:
        """Get media root directory from settings."""
        return self.settings.media_root

    def with_tenant(self, tenant_id: str) -> "AppContext":
        """
        Create new context scoped to a tenant.

        Switching tenant clears the user, users belong to one tenant.
        """
        return replace(self, tenant_id=tenant_id, user_id=None)

    def with_user(self, user_id: str) -> "AppContext":
        """Create new context acting as a user within the current tenant."""
        return replace(self, user_id=user_id)

    def has_tenant(self) -> bool:
        return bool(self.tenant_id)

    def require_tenant(self) -> str:
        """
        Get current tenant id or raise error.

        Raises:
            ValueError: If no tenant is selected
        """
        if not self.has_tenant():
            raise ValueError(ERROR_MESSAGES["no_tenant"])
        return self.tenant_id

    def require_user(self) -> str:
        """
        Get current user id or raise error.

        Raises:
            ValueError: If no user is selected
        """
        if not self.user_id:
            raise ValueError(ERROR_MESSAGES["no_user"])
        return self.user_id


def create_app_context(
    database: DatabaseInterface,
    settings: Optional[Settings] = None,
    tenant_id: Optional[str] = None,
    user_id: Optional[str] = None,
) -> AppContext:
    """
    Factory function to create AppContext.

    Args:
        database: Database instance (required)
        settings: Settings instance (defaults to global settings)
        tenant_id: Tenant id (defaults to settings.default_tenant_id)
        user_id: Acting user, if any

    Returns:
        AppContext instance
    """
    if settings is None:
        settings = get_settings()

    if tenant_id is None:
        tenant_id = settings.default_tenant_id

    return AppContext(
        database=database,
        settings=settings,
        tenant_id=tenant_id,
        user_id=user_id,
    )
