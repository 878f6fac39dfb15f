# uploads_api/repositories/upload_repository.py
"""
Upload record repository.

Maps content hashes and logical identities to stored uploads. Lookups are
read-only with respect to the blob and never touch the backing store.
"""

import logging
import re
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from uploads_api.models import Upload
from uploads_api.services.content_addresser import sha1_from_base62_encoded

logger = logging.getLogger(__name__)

SHA1_IN_PATH = re.compile(r"([a-f0-9]{40})")
SHORT_URL_PATTERN = re.compile(r"^upload://([a-zA-Z0-9]+)(?:\.[a-zA-Z0-9]+)?$")


class UploadRepository:
    """Data access for Upload records."""

    def __init__(self, db: Session):
        self.db = db

    def find_by_sha1(self, sha1: Optional[str]) -> Optional[Upload]:
        if not sha1:
            return None
        return self.db.query(Upload).filter(Upload.sha1 == sha1).first()

    def find_by_id(self, upload_id: int) -> Optional[Upload]:
        return self.db.get(Upload, upload_id)

    def find_by_id_and_url(self, upload_id: int, url: str) -> Optional[Upload]:
        return (
            self.db.query(Upload)
            .filter(Upload.id == upload_id, Upload.url == url)
            .first()
        )

    def find_by_short_url_code(self, code: str) -> Optional[Upload]:
        """Resolve the base62 part of a short URL (extension stripped)."""
        code = code.split(".", 1)[0]
        return self.find_by_sha1(sha1_from_base62_encoded(code))

    def find_by_url(self, url: Optional[str]) -> Optional[Upload]:
        """
        Resolve any URL form an upload can be referenced by.

        Accepts upload:// short URLs, short paths, store URLs (absolute or
        relative) and secure-upload paths.
        """
        if not url:
            return None

        match = SHORT_URL_PATTERN.match(url)
        if match:
            return self.find_by_short_url_code(match.group(1))

        if "/uploads/short-url/" in url:
            return self.find_by_short_url_code(url.rsplit("/", 1)[-1])

        match = SHA1_IN_PATH.search(url)
        if match:
            upload = self.find_by_sha1(match.group(1))
            if upload is not None:
                return upload

        return self.db.query(Upload).filter(Upload.url == url).first()

    def create(self, **attrs) -> Upload:
        """
        Insert a new upload.

        Two concurrent uploads of the same bytes race on the sha1 unique
        index; the loser gets the winner's row back.
        """
        upload = Upload(**attrs)
        self.db.add(upload)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            existing = self.find_by_sha1(attrs.get("sha1"))
            if existing is None:
                raise
            logger.info(
                f"[UPLOADS] Concurrent create for sha1={attrs.get('sha1')}, using upload {existing.id}",
                extra={"event": "upload_create_race", "sha1": attrs.get("sha1"), "upload_id": existing.id},
            )
            return existing

        self.db.refresh(upload)
        return upload

    def save(self, upload: Upload) -> Upload:
        self.db.add(upload)
        self.db.commit()
        self.db.refresh(upload)
        return upload

    def update_retain_hours(self, upload: Upload, hours: int) -> Upload:
        """Set the retention hint. Callers check the admin privilege first."""
        upload.retain_hours = hours
        return self.save(upload)

    def set_access_control_post(self, upload: Upload, post_id: Optional[int]) -> Upload:
        upload.access_control_post_id = post_id
        return self.save(upload)
