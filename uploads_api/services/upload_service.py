# uploads_api/services/upload_service.py
"""
Upload ingestion orchestration.

create_upload() drives one upload end to end:
1. Resolve bytes (direct payload, or remote URL for API callers)
2. Missing bytes -> file_missing
3. Validation gate
4. Hash + dedup, store commit, record insert (UploadCreator)
5. Retention hint for admins
The staged temporary file is removed on every exit path.
"""

import logging
import re
import shutil
import unicodedata
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Optional

from uploads_api.access import Actor, can_set_retain_hours, can_upload_avatar
from uploads_api.config import Settings
from uploads_api.errors import InvalidParameters, NotFound
from uploads_api.logging_config import upload_log_context
from uploads_api.models import Upload
from uploads_api.repositories.upload_repository import UploadRepository
from uploads_api.services.remote_fetcher import (
    RemoteFetcher,
    RemoteFetchError,
    filename_from_url,
    staging_file,
)
from uploads_api.services.upload_creator import CreateOptions, UploadCreator
from uploads_api.services.upload_validator import UploadValidator, ValidationResult
from uploads_api.storage.base import PresignedPut, StorageProvider

logger = logging.getLogger(__name__)

MAX_UPLOAD_TYPE_LENGTH = 50


@dataclass
class UploadPayload:
    """A file sent directly in the request."""
    filename: str
    stream: BinaryIO


def normalize_upload_type(type_: Optional[str], upload_type: Optional[str]) -> str:
    """
    Pick `upload_type` over `type`, slugify with '_' and cap at 50 chars.

    Raises:
        InvalidParameters: neither value is present
    """
    raw = (upload_type or "").strip() or (type_ or "").strip()
    if not raw:
        raise InvalidParameters("type or upload_type is required")

    ascii_only = unicodedata.normalize("NFKD", raw).encode("ascii", "ignore").decode("ascii")
    slug = re.sub(r"[^a-z0-9\-_]+", "_", ascii_only.lower())
    slug = re.sub(r"_{2,}", "_", slug).strip("_")
    if not slug:
        raise InvalidParameters("type or upload_type is required")
    return slug[:MAX_UPLOAD_TYPE_LENGTH]


class UploadService:
    """Ingestion orchestrator for direct and remote-URL uploads."""

    def __init__(
        self,
        settings: Settings,
        store: StorageProvider,
        repository: UploadRepository,
        fetcher: Optional[RemoteFetcher] = None,
        validator: Optional[UploadValidator] = None,
    ):
        self.settings = settings
        self.store = store
        self.repository = repository
        self.fetcher = fetcher or RemoteFetcher(settings)
        self.validator = validator or UploadValidator(settings)
        self.creator = UploadCreator(settings, store, repository, self.validator)

    def can_upload_type(self, actor: Optional[Actor], upload_type: str) -> bool:
        """Avatar uploads are gated by ALLOW_UPLOADED_AVATARS; everything else passes."""
        if upload_type == "avatar":
            return can_upload_avatar(actor, self.settings)
        return True

    def create_upload(
        self,
        current_user: Actor,
        file: Optional[UploadPayload],
        url: Optional[str],
        upload_type: str,
        *,
        for_private_message: bool = False,
        for_site_setting: bool = False,
        pasted: bool = False,
        is_api: bool = False,
        retain_hours: int = 0,
    ) -> Upload | ValidationResult:
        """
        Create (or reuse) an upload.

        Returns:
            The Upload on success, or a ValidationResult describing why not

        Raises:
            StoreError: the backing store failed to commit the bytes
        """
        opts = CreateOptions(
            upload_type=upload_type,
            for_private_message=for_private_message,
            for_site_setting=for_site_setting,
            pasted=pasted,
        )

        with upload_log_context(current_user.id, upload_type), staging_file(f"uploads-{upload_type}") as staged:
            filename = self._resolve_bytes(file, url, is_api, staged, opts)
            if filename is None:
                return ValidationResult.file_missing()

            size = staged.stat().st_size
            result = self.validator.validate(filename, size, upload_type)
            if not result.ok:
                return result

            upload = self.creator.create_for(current_user.id, staged, filename, opts)
            if isinstance(upload, ValidationResult):
                return upload

            if can_set_retain_hours(current_user) and retain_hours > 0:
                upload = self.repository.update_retain_hours(upload, retain_hours)

            return upload

    def generate_presigned_put(
        self,
        current_user: Actor,
        file_name: str,
        file_size: int,
        upload_type: str,
    ) -> PresignedPut | ValidationResult:
        """
        Presign a direct-to-store upload after the size and extension checks.

        The client PUTs its bytes to the returned temporary key. No upload
        record is created here.

        Raises:
            NotFound: the active store is internal
            StoreError: the store could not presign the request
        """
        if self.store.is_internal:
            raise NotFound("direct uploads need a remote store")

        result = self.validator.validate(file_name, file_size, upload_type)
        if result.ok:
            result = self.validator.check_extension(file_name)
        if not result.ok:
            return result

        with upload_log_context(current_user.id, upload_type):
            return self.store.presigned_put(file_name)

    def _resolve_bytes(
        self,
        file: Optional[UploadPayload],
        url: Optional[str],
        is_api: bool,
        staged: Path,
        opts: CreateOptions,
    ) -> Optional[str]:
        """Fill `staged` with the upload bytes; returns the filename or None."""
        if file is not None:
            with open(staged, "wb") as out:
                shutil.copyfileobj(file.stream, out)
            return file.filename

        if not url or not is_api:
            return None

        try:
            self.fetcher.download(url, staged, self.settings.max_remote_fetch_bytes)
        except RemoteFetchError as e:
            logger.warning(
                f"[UPLOADS] Remote fetch failed, treating as missing file: {e}",
                extra={"event": "remote_fetch_failed", "url": url},
            )
            return None

        opts.origin = url
        return filename_from_url(url)
