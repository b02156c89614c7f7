"""
Media storage for article attachments.

MediaStorage is the port; LocalMediaStorage keeps files on the local
filesystem under one directory per tenant and article:

    base_dir/{tenant_id}/{article_id}/{filename}

Storage keys are relative to base_dir and start with the tenant
directory; reads and deletes only resolve keys below the caller's own
tenant directory.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from config.constants import ALLOWED_MEDIA_EXTENSIONS, MAX_MEDIA_FILE_SIZE_MB
from config.paths import get_tenant_media_path, tenant_dir_name
from domain.exceptions import NotFoundError, ValidationError
from domain.validators import sanitize_filename

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredMedia:
    """Where an uploaded file ended up."""

    storage_key: str
    filename: str
    size_bytes: int


class MediaStorage(ABC):
    """Port for storing attachment bytes."""

    @abstractmethod
    def save(self, tenant_id: str, article_id: str, filename: str, content: bytes) -> StoredMedia:
        """
        Store a file.

        Raises:
            ValidationError: If the file is rejected
        """
        pass

    @abstractmethod
    def read(self, tenant_id: str, storage_key: str) -> bytes:
        """
        Raises:
            NotFoundError: No such file for this tenant
            ValidationError: Key outside the tenant's storage
        """
        pass

    @abstractmethod
    def delete(self, tenant_id: str, storage_key: str) -> bool:
        pass


class LocalMediaStorage(MediaStorage):
    """
    Filesystem media storage.

    Handles:
    - File validation (extension, size)
    - Safe file names and duplicate names
    - Reads and deletion restricted to the tenant's directory
    """

    def __init__(
        self,
        base_dir: Path,
        allowed_extensions: Optional[List[str]] = None,
        max_size_mb: float = MAX_MEDIA_FILE_SIZE_MB,
    ):
        """
        Initialize media storage.

        Args:
            base_dir: Base directory for file storage
            allowed_extensions: Accepted extensions (default ALLOWED_MEDIA_EXTENSIONS)
            max_size_mb: Maximum file size in MB
        """
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.allowed_extensions = allowed_extensions or ALLOWED_MEDIA_EXTENSIONS
        self.max_size_mb = max_size_mb

    def validate_upload(self, filename: str, content: bytes) -> None:
        """
        Validate an upload before writing it.

        Raises:
            ValidationError: If extension or size is not allowed
        """
        suffix = Path(filename).suffix.lower()
        if suffix not in [ext.lower() for ext in self.allowed_extensions]:
            raise ValidationError(
                f"Invalid file type: {suffix or '(none)'}. Allowed: {', '.join(self.allowed_extensions)}",
                details={"filename": filename, "allowed": self.allowed_extensions},
            )

        size_mb = len(content) / (1024 * 1024)
        if size_mb > self.max_size_mb:
            raise ValidationError(
                f"File is too large: {size_mb:.1f} MB (max {self.max_size_mb} MB)",
                details={"filename": filename, "size_mb": size_mb},
            )

    def save(self, tenant_id: str, article_id: str, filename: str, content: bytes) -> StoredMedia:
        """Write a file below the tenant/article directory."""
        self.validate_upload(filename, content)

        safe_name = sanitize_filename(filename)
        if not safe_name:
            raise ValidationError("Filename is empty after sanitizing", details={"filename": filename})

        article_segment = sanitize_filename(str(article_id))
        if not article_segment:
            raise ValidationError("Article id cannot be used as a directory", details={"article_id": article_id})

        article_dir = get_tenant_media_path(self.base_dir, tenant_id) / article_segment
        article_dir.mkdir(parents=True, exist_ok=True)

        dest_path = article_dir / safe_name

        # Handle duplicate filenames
        if dest_path.exists():
            counter = 1
            stem = dest_path.stem
            suffix = dest_path.suffix
            while dest_path.exists():
                dest_path = article_dir / f"{stem}_{counter}{suffix}"
                counter += 1

        dest_path.write_bytes(content)
        storage_key = dest_path.relative_to(self.base_dir).as_posix()
        logger.info(f"Stored media: {storage_key} ({len(content)} bytes)")

        return StoredMedia(storage_key=storage_key, filename=dest_path.name, size_bytes=len(content))

    def _resolve(self, tenant_id: str, storage_key: str) -> Path:
        """Map a storage key to a path, refusing keys outside the tenant's directory."""
        tenant_root = (self.base_dir / tenant_dir_name(tenant_id)).resolve()
        path = (self.base_dir / storage_key).resolve()
        if tenant_root not in path.parents:
            logger.warning(f"Tenant {tenant_id} refused storage key {storage_key}")
            raise ValidationError(
                f"Storage key outside tenant media directory: {storage_key}",
                details={"storage_key": storage_key, "tenant_id": tenant_id},
            )
        return path

    def read(self, tenant_id: str, storage_key: str) -> bytes:
        path = self._resolve(tenant_id, storage_key)
        if not path.is_file():
            raise NotFoundError(
                f"Media not found: {storage_key}",
                details={"storage_key": storage_key},
            )
        return path.read_bytes()

    def delete(self, tenant_id: str, storage_key: str) -> bool:
        """
        Delete a stored file.

        Returns:
            True if deleted, False if it did not exist
        """
        path = self._resolve(tenant_id, storage_key)
        if not path.is_file():
            logger.warning(f"Media does not exist: {storage_key}")
            return False

        path.unlink()
        logger.info(f"Deleted media: {storage_key}")
        return True
