# uploads_api/models.py
"""
Upload database models.

Tables:
- Upload: one stored file, keyed by the SHA-1 of its bytes
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    Text,
)

from uploads_api.database import Base
from uploads_api.services.content_addresser import short_url_basename
from uploads_api.services.upload_validator import number_to_human_size


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Upload(Base):
    """
    A stored upload.

    The bytes live in the backing store; this row keeps the content hash,
    the store URL and the access metadata. One row per SHA-1: identical
    content uploaded twice resolves to the same row and the same blob.
    """
    __tablename__ = "uploads"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=True)

    original_filename = Column(String(255), nullable=False)
    filesize = Column(Integer, nullable=False)
    width = Column(Integer, nullable=True)
    height = Column(Integer, nullable=True)

    sha1 = Column(String(40), nullable=False)
    url = Column(String(512), nullable=False)
    extension = Column(String(10), nullable=True)
    origin = Column(Text, nullable=True)  # Source URL for remote fetches
    upload_type = Column(String(50), nullable=True)

    # Access control
    secure = Column(Boolean, default=False, nullable=False)
    access_control_post_id = Column(Integer, nullable=True)

    retain_hours = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)

    __table_args__ = (
        Index("ix_uploads_sha1", "sha1", unique=True),
        Index("ix_uploads_id_url", "id", "url"),
        Index("ix_uploads_access_control_post_id", "access_control_post_id"),
    )

    @property
    def short_url(self) -> str:
        return f"upload://{short_url_basename(self.sha1, self.extension)}"

    @property
    def short_path(self) -> str:
        return f"/uploads/short-url/{short_url_basename(self.sha1, self.extension)}"

    @property
    def human_filesize(self) -> str:
        return number_to_human_size(self.filesize)

    def __repr__(self) -> str:
        return f"<Upload id={self.id} sha1={self.sha1} url={self.url}>"
