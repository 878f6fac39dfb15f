# uploads_api/services/retrieval_gate.py
"""
Secure retrieval gate.

Decides, for one request at a time, whether the requester gets the upload
bytes and how: a (possibly presigned) redirect, or a direct stream from the
local store. Denials are raised as InvalidParameters (XHR), NotFound and
InvalidAccess; the router maps them to 400/404/403.

Request forms:
- show:        /uploads/<site>/<path>          (sha1 in path, or id + exact path)
- show_short:  /uploads/short-url/<base62>.<ext>
- show_secure: /secure-uploads/<path>.<ext>     (remote stores only)
"""

import logging
import mimetypes
import re
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Optional, Union

from uploads_api.access import Actor, PostVisibility
from uploads_api.config import Settings
from uploads_api.errors import InvalidAccess, InvalidParameters, NotFound
from uploads_api.models import Upload
from uploads_api.repositories.upload_repository import UploadRepository
from uploads_api.services.content_addresser import sha1_from_base62_encoded
from uploads_api.services.upload_validator import is_inline_image
from uploads_api.storage.base import StorageProvider
from uploads_api.storage.local_provider import LocalStorageProvider

logger = logging.getLogger(__name__)

# Presigned URLs must outlive the client's cached redirect
SECURE_REDIRECT_GRACE_SECONDS = 5

SHA1_PATTERN = re.compile(r"^[a-f0-9]{40}$")


@dataclass(frozen=True)
class Redirect:
    url: str
    cache_seconds: Optional[int] = None


@dataclass(frozen=True)
class Stream:
    path: Path
    filename: str
    content_type: Optional[str]
    disposition: str


Decision = Union[Redirect, Stream]


@dataclass(frozen=True)
class ShortUrlLookup:
    short_url: str
    url: str
    short_path: str


class RetrievalGate:
    """Access decisions for serving upload bytes."""

    def __init__(
        self,
        settings: Settings,
        store: StorageProvider,
        repository: UploadRepository,
        post_visibility: PostVisibility,
        local_store: Optional[LocalStorageProvider] = None,
    ):
        self.settings = settings
        self.store = store
        self.repository = repository
        self.post_visibility = post_visibility
        self.local_store = local_store

    # -------------------------------------------------------------------------
    # Request entry points
    # -------------------------------------------------------------------------

    def show(
        self,
        actor: Optional[Actor],
        site: str,
        path: str,
        request_path: str,
        *,
        xhr: bool = False,
        force_download: bool = False,
        inline: bool = False,
    ) -> Decision:
        self._deny_xhr(xhr)
        inline = inline and not force_download

        if site != self.settings.SITE_NAME:
            raise NotFound(f"Unknown site: {site}")
        self._deny_anonymous_downloads(actor)

        upload = self._find_for_show(path, request_path)
        if upload is None:
            raise NotFound(request_path)

        if self.store.is_internal:
            return self._stream(upload, self.store, inline)

        # Remote store: only legacy files still on local disk are served here
        local_store = self.local_store
        if local_store is None or not local_store.has_been_stored(upload.url):
            raise NotFound(request_path)
        return self._stream(upload, local_store, inline)

    def show_short(
        self,
        actor: Optional[Actor],
        base62: str,
        *,
        xhr: bool = False,
        force_download: bool = False,
        inline: bool = False,
    ) -> Decision:
        self._deny_xhr(xhr)
        self._deny_anonymous_downloads(actor)

        upload = self.repository.find_by_sha1(sha1_from_base62_encoded(base62.split(".", 1)[0]))
        if upload is None:
            raise NotFound(base62)

        if upload.secure and self.settings.SECURE_UPLOADS:
            return self._secure_redirect(actor, upload, force_download=force_download)

        if self.store.is_internal:
            return self._stream(upload, self.store, inline and not force_download)
        return Redirect(self.store.url_for(upload, force_download=force_download))

    def show_secure(
        self,
        actor: Optional[Actor],
        path_with_ext: str,
        *,
        xhr: bool = False,
        force_download: bool = False,
    ) -> Decision:
        self._deny_xhr(xhr)

        if self.store.is_internal:
            raise NotFound("Secure uploads require a remote store")

        path_with_ext = path_with_ext.lstrip("/")
        sha1 = PurePosixPath(path_with_ext).stem
        # Optimized images are named <sha1>_<variant>
        sha1 = sha1.partition("_")[0]

        upload = self.repository.find_by_sha1(sha1)
        if upload is None:
            raise NotFound(path_with_ext)

        self._deny_anonymous_downloads(actor)

        if self.settings.SECURE_UPLOADS:
            return self._secure_redirect(actor, upload, path_with_ext, force_download=force_download)

        # Secure uploads were switched off after this upload was made secure.
        # Posts keep pointing here until rebaked, so keep serving: a still
        # secure upload is still private in the bucket and needs a signed URL,
        # anything else is public and goes to the CDN.
        if upload.secure:
            return Redirect(self.store.signed_url_for_path(path_with_ext))
        return Redirect(self.store.cdn_url(upload.url))

    # -------------------------------------------------------------------------
    # URL lookups
    # -------------------------------------------------------------------------

    def lookup_urls(self, short_urls: list[str]) -> list[ShortUrlLookup]:
        """Resolve upload:// short URLs to the URL a post should render."""
        found = []
        for short_url in short_urls:
            upload = self.repository.find_by_url(short_url)
            if upload is None:
                continue
            found.append(ShortUrlLookup(short_url=short_url, url=self.public_url(upload), short_path=upload.short_path))
        return found

    def public_url(self, upload: Upload) -> str:
        if upload.secure and self.settings.SECURE_UPLOADS:
            return self.secure_proxy_url(upload)
        return self.store.cdn_url(upload.url)

    def secure_proxy_url(self, upload: Upload) -> str:
        return f"/secure-uploads/{self.store.get_path_for_upload(upload.sha1, upload.extension)}"

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _deny_xhr(self, xhr: bool) -> None:
        # Serving uploads to XHR callers opens an XSS vector
        if xhr:
            raise InvalidParameters("XHR not allowed")

    def _deny_anonymous_downloads(self, actor: Optional[Actor]) -> None:
        if self.settings.PREVENT_ANONS_FROM_DOWNLOADING_FILES and actor is None:
            raise NotFound("Anonymous downloads are disabled")

    def _find_for_show(self, path: str, request_path: str) -> Optional[Upload]:
        parts = PurePosixPath(path.lstrip("/"))
        stem = parts.stem
        if SHA1_PATTERN.match(stem):
            upload = self.repository.find_by_sha1(stem)
            if upload is not None:
                return upload

        first = parts.parts[0] if parts.parts else ""
        if first.isdigit():
            return self.repository.find_by_id_and_url(int(first), request_path)
        return None

    def _secure_redirect(
        self,
        actor: Optional[Actor],
        upload: Upload,
        path_with_ext: Optional[str] = None,
        *,
        force_download: bool = False,
    ) -> Redirect:
        if upload.access_control_post_id is not None:
            if not self.post_visibility.can_see_post(actor, upload.access_control_post_id):
                raise InvalidAccess(f"Cannot see post {upload.access_control_post_id}")
        elif actor is None:
            raise NotFound("Secure upload requires a user")

        expiry = self.settings.S3_PRESIGNED_GET_URL_EXPIRES_AFTER_SECONDS
        cache_seconds = expiry - SECURE_REDIRECT_GRACE_SECONDS

        if not path_with_ext:
            return Redirect(self.store.url_for(upload, force_download=force_download), cache_seconds)

        url = self.store.signed_url_for_path(path_with_ext, expires_in=expiry, force_download=force_download)
        return Redirect(url, cache_seconds)

    def _stream(self, upload: Upload, store: StorageProvider, inline: bool) -> Stream:
        file_path = store.path_for(upload)
        if file_path is None or not file_path.is_file():
            raise NotFound(upload.url)

        if is_inline_image(upload.original_filename) and inline:
            disposition = "inline"
        else:
            disposition = "attachment"

        return Stream(
            path=file_path,
            filename=upload.original_filename,
            content_type=mimetypes.guess_type(upload.original_filename)[0],
            disposition=disposition,
        )
