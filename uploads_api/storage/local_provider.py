# uploads_api/storage/local_provider.py
"""
Local filesystem storage provider.

Stores uploads under LOCAL_STORAGE_PATH/<site>/ and serves them back by
streaming from disk. URLs are application-relative
(/uploads/<site>/original/1X/<sha1>.<ext>).
"""

import logging
import shutil
from pathlib import Path

from uploads_api.config import Settings
from uploads_api.errors import StoreError
from uploads_api.logging_config import log_storage_operation
from uploads_api.storage.base import (
    StorageProvider,
    StoreLocator,
    StoredUpload,
)

logger = logging.getLogger(__name__)


class LocalStorageProvider(StorageProvider):
    """
    Local filesystem storage provider.

    Configuration:
    - LOCAL_STORAGE_PATH: Root directory (default: ./public/uploads)
    - LOCAL_UPLOADS_URL_PREFIX: URL prefix for served files (default: /uploads)
    - SITE_NAME: Per-site subdirectory
    """

    def __init__(self, settings: Settings, base_path: str | None = None):
        """
        Initialize local storage.

        Args:
            settings: Application settings
            base_path: Root directory override (defaults to LOCAL_STORAGE_PATH)
        """
        self._base_path = Path(base_path or settings.LOCAL_STORAGE_PATH)
        self._base_path.mkdir(parents=True, exist_ok=True)
        self._site = settings.SITE_NAME
        self._url_prefix = "/" + settings.LOCAL_UPLOADS_URL_PREFIX.strip("/")

        logger.info(f"Local storage initialized: {self._base_path}")

    @property
    def name(self) -> str:
        return "local"

    @property
    def is_internal(self) -> bool:
        return True

    @property
    def base_path(self) -> Path:
        return self._base_path

    def _get_path(self, key: str) -> Path:
        """Get filesystem path for a site-relative key, with path traversal protection."""
        site_root = (self._base_path / self._site).resolve()
        resolved = (site_root / key).resolve()
        if not resolved.is_relative_to(site_root):
            raise ValueError("Path traversal detected")
        return resolved

    def _key_from_url(self, url: str) -> str | None:
        """Map '/uploads/<site>/<key>' back to '<key>'; None for foreign URLs."""
        site_prefix = f"{self._url_prefix}/{self._site}/"
        if not url or not url.startswith(site_prefix):
            return None
        return url[len(site_prefix):]

    def _url_for_key(self, key: str) -> str:
        return f"{self._url_prefix}/{self._site}/{key}"

    def store(
        self,
        source: Path,
        key: str,
        content_type: str | None = None,
        secure: bool = False,
    ) -> StoreLocator:
        """Copy the staged file into place."""
        file_path = self._get_path(key)

        try:
            with log_storage_operation(self.name, "store", key) as metrics:
                file_path.parent.mkdir(parents=True, exist_ok=True)
                shutil.copyfile(source, file_path)
                metrics["size_bytes"] = file_path.stat().st_size
        except OSError as e:
            raise StoreError(f"Local store failed for {key}: {e}") from e

        return StoreLocator(url=self._url_for_key(key))

    def has_been_stored(self, url: str) -> bool:
        key = self._key_from_url(url)
        if key is None:
            return False
        try:
            return self._get_path(key).is_file()
        except ValueError:
            return False

    def path_for(self, upload: StoredUpload) -> Path | None:
        key = self._key_from_url(upload.url)
        if key is None:
            return None
        return self._get_path(key)

    def url_for(self, upload: StoredUpload, force_download: bool = False) -> str:
        return upload.url

    def signed_url_for_path(
        self,
        path: str,
        expires_in: int | None = None,
        force_download: bool = False,
    ) -> str:
        """Local files are not access-controlled by URL; return the plain URL."""
        return self._url_for_key(path.lstrip("/"))

    def cdn_url(self, url: str) -> str:
        return url

    def read(self, key: str) -> bytes | None:
        file_path = self._get_path(key)
        if not file_path.is_file():
            return None
        return file_path.read_bytes()
