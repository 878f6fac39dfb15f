# uploads_api/services/upload_creator.py
"""
Turns a staged file into a stored upload.

Pipeline:
1. Check the extension against AUTHORIZED_EXTENSIONS
2. Hash the staged bytes (SHA-1)
3. Reuse the existing record for the same hash (dedup); re-store the blob
   only if the store lost it
4. Read image dimensions
5. Commit bytes to the backing store
6. Insert the record, strictly after the store commit succeeded
"""

import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from PIL import Image, UnidentifiedImageError

from uploads_api.config import Settings
from uploads_api.models import Upload
from uploads_api.repositories.upload_repository import UploadRepository
from uploads_api.services.content_addresser import digest
from uploads_api.services.upload_validator import (
    UploadValidator,
    ValidationResult,
    extension_of,
    is_supported_image,
)
from uploads_api.storage.base import StorageProvider

logger = logging.getLogger(__name__)


@dataclass
class CreateOptions:
    """Per-upload flags from the create request."""
    upload_type: str
    for_private_message: bool = False
    for_site_setting: bool = False
    pasted: bool = False
    origin: Optional[str] = None


def image_dimensions(path: Path) -> tuple[Optional[int], Optional[int]]:
    """Width/height from the image header; (None, None) if unreadable."""
    try:
        with Image.open(path) as image:
            width, height = image.size
            return width, height
    except (UnidentifiedImageError, OSError, Image.DecompressionBombError) as e:
        logger.info(f"[CREATOR] Could not read image dimensions from {path.name}: {e}")
        return None, None


class UploadCreator:
    """Stores a staged file and records it."""

    def __init__(
        self,
        settings: Settings,
        store: StorageProvider,
        repository: UploadRepository,
        validator: Optional[UploadValidator] = None,
    ):
        self.settings = settings
        self.store = store
        self.repository = repository
        self.validator = validator or UploadValidator(settings)

    def create_for(
        self,
        user_id: Optional[int],
        staged: Path,
        filename: str,
        opts: CreateOptions,
    ) -> Upload | ValidationResult:
        result = self.validator.check_extension(filename)
        if not result.ok:
            return result

        with open(staged, "rb") as f:
            sha1 = digest(f)

        # Only remote stores can gate access to a blob
        secure = self.settings.SECURE_UPLOADS and opts.for_private_message and not self.store.is_internal

        existing = self.repository.find_by_sha1(sha1)
        if existing is not None:
            return self._reuse(existing, staged, secure)

        extension = extension_of(filename) or None
        width, height = (None, None)
        if is_supported_image(filename):
            width, height = image_dimensions(staged)

        key = self.store.get_path_for_upload(sha1, extension)
        locator = self.store.store(
            staged,
            key,
            content_type=mimetypes.guess_type(filename)[0],
            secure=secure,
        )

        upload = self.repository.create(
            user_id=user_id,
            original_filename=filename,
            filesize=staged.stat().st_size,
            width=width,
            height=height,
            sha1=sha1,
            url=locator.url,
            extension=extension,
            origin=opts.origin,
            upload_type=opts.upload_type,
            secure=secure,
        )

        logger.info(
            f"[CREATOR] Stored upload {upload.id} ({upload.filesize} bytes) at {upload.url}",
            extra={"event": "upload_created", "upload_id": upload.id, "sha1": sha1, "size_bytes": upload.filesize},
        )
        return upload

    def _reuse(self, existing: Upload, staged: Path, secure: bool) -> Upload:
        """Dedup: same bytes, same record. Put the blob back if the store lost it."""
        if not self.store.has_been_stored(existing.url):
            key = self.store.get_path_for_upload(existing.sha1, existing.extension)
            locator = self.store.store(
                staged,
                key,
                content_type=mimetypes.guess_type(existing.original_filename)[0],
                secure=existing.secure or secure,
            )
            existing.url = locator.url
            existing = self.repository.save(existing)
            logger.warning(
                f"[CREATOR] Re-stored missing blob for upload {existing.id}",
                extra={"event": "upload_restored", "upload_id": existing.id, "sha1": existing.sha1},
            )
        else:
            logger.info(
                f"[CREATOR] Reusing upload {existing.id} for identical content",
                extra={"event": "upload_dedup", "upload_id": existing.id, "sha1": existing.sha1},
            )
        return existing
