# uploads_api/storage/base.py
"""
Backing store interface for upload bytes.

Design principles:
- Upload bytes live in a backing store (local disk or S3); the database keeps
  only the SHA-1, the store URL and access metadata
- One blob per SHA-1 per store: keys are derived from the content hash
- Callers branch on `is_internal` before asking for a local path; remote
  stores have no local path and are served through redirects
- Secure uploads on remote stores are private objects reachable only via
  presigned, time-limited URLs
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol


@dataclass(frozen=True)
class StoreLocator:
    """Where a committed blob can be found again."""
    url: str  # What the Upload record stores in `url`


@dataclass(frozen=True)
class PresignedPut:
    """A presigned PUT a client can send its bytes to directly."""
    url: str
    key: str  # Temporary object key the client writes to


class StoredUpload(Protocol):
    """The parts of an Upload record the stores need."""
    url: str
    sha1: str
    extension: str | None
    original_filename: str
    secure: bool


class StorageProvider(ABC):
    """
    Abstract interface for upload storage.

    Implementations must handle:
    - Storing a staged file under a content-derived key
    - Reporting whether a record URL points at a blob they hold
    - Public, CDN and presigned URL generation
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name (e.g., 's3', 'local')."""
        pass

    @property
    @abstractmethod
    def is_internal(self) -> bool:
        """True when bytes are on a filesystem the serving process can read."""
        pass

    @abstractmethod
    def store(
        self,
        source: Path,
        key: str,
        content_type: str | None = None,
        secure: bool = False,
    ) -> StoreLocator:
        """
        Copy a staged file into the store.

        Args:
            source: Local file holding the bytes
            key: Store-relative key (see get_path_for_upload)
            content_type: MIME type to record with the object
            secure: Store as a private object where the store supports it

        Returns:
            StoreLocator of the committed blob

        Raises:
            StoreError: The store could not commit the bytes
        """
        pass

    @abstractmethod
    def has_been_stored(self, url: str) -> bool:
        """True if `url` belongs to this store and the blob exists."""
        pass

    @abstractmethod
    def path_for(self, upload: StoredUpload) -> Path | None:
        """Filesystem path for direct streaming, or None for remote stores."""
        pass

    @abstractmethod
    def url_for(self, upload: StoredUpload, force_download: bool = False) -> str:
        """URL a client should be sent to for this upload."""
        pass

    @abstractmethod
    def signed_url_for_path(
        self,
        path: str,
        expires_in: int | None = None,
        force_download: bool = False,
    ) -> str:
        """Time-limited URL for a store-relative path."""
        pass

    @abstractmethod
    def cdn_url(self, url: str) -> str:
        """Rewrite a record URL to its public (CDN) form."""
        pass

    @abstractmethod
    def read(self, key: str) -> bytes | None:
        """Read a blob back, or None if it does not exist."""
        pass

    def get_path_for_upload(self, sha1: str, extension: str | None) -> str:
        """
        Generate the store-relative key for an upload.

        Format: original/1X/{sha1}.{extension}
        """
        filename = f"{sha1}.{extension}" if extension else sha1
        return f"original/1X/{filename}"

    def presigned_put(self, file_name: str, expires_in: int | None = None) -> PresignedPut:
        """
        Presigned PUT URL for a direct-to-store upload under a temporary key.

        Only remote stores support this.
        """
        raise NotImplementedError(f"{self.name} storage does not support direct uploads")
