"""
Path configuration for the knowledge base core.

Centralized path management for the database and media storage.
"""

from pathlib import Path
import logging
import re
import sys

from domain.exceptions import ValidationError
from .constants import DEFAULT_DATABASE_NAME, DEFAULT_MEDIA_DIR_NAME

logger = logging.getLogger(__name__)


def get_app_root() -> Path:
    """
    Get application root directory.

    Returns:
        - Frozen build: directory holding the executable
        - Development (script): project root
    """
    if getattr(sys, 'frozen', False):
        app_root = Path(sys.executable).parent
        logger.debug(f"Running frozen, app root: {app_root}")
    else:
        # __file__ = <root>/config/paths.py
        app_root = Path(__file__).parent.parent
        logger.debug(f"Running as script, app root: {app_root}")

    return app_root


TENANT_DIR_PATTERN = re.compile(r"[a-z0-9][a-z0-9_.-]{0,127}")


def tenant_dir_name(tenant_id: str) -> str:
    """
    Directory name for a tenant's files.

    Tenant ids are used as-is, so only ids that are already a single
    lower-case path segment are accepted (no separators, no leading dot).

    Raises:
        ValidationError: Id is not usable as a directory name
    """
    if not tenant_id or not TENANT_DIR_PATTERN.fullmatch(tenant_id):
        raise ValidationError(
            f"Tenant id cannot be used as a storage directory: {tenant_id!r}",
            details={"tenant_id": tenant_id},
        )
    return tenant_id


def get_storage_base_path() -> Path:
    """
    Get base path for all persisted files.

    Structure:
        {app_root}/
        └── storage/
            ├── knowledge_base.db
            └── media/
                └── {tenant_id}/

    Returns:
        Path to 'storage' directory (creates if doesn't exist)
    """
    storage_path = get_app_root() / "storage"
    storage_path.mkdir(parents=True, exist_ok=True)
    return storage_path


def get_database_path() -> Path:
    """Get default database file path."""
    db_path = get_storage_base_path() / DEFAULT_DATABASE_NAME
    logger.debug(f"Database path: {db_path}")
    return db_path


def get_media_root() -> Path:
    """Get default media root directory (creates if doesn't exist)."""
    media_path = get_storage_base_path() / DEFAULT_MEDIA_DIR_NAME
    media_path.mkdir(parents=True, exist_ok=True)
    return media_path


def get_tenant_media_path(media_root: Path, tenant_id: str) -> Path:
    """
    Get media directory for one tenant.

    Args:
        media_root: Root media directory
        tenant_id: Tenant id

    Returns:
        Path to tenant media directory (creates if doesn't exist)
    """
    tenant_path = Path(media_root) / tenant_dir_name(tenant_id)
    tenant_path.mkdir(parents=True, exist_ok=True)
    logger.debug(f"Tenant media path: {tenant_path}")
    return tenant_path
