# uploads_api/schemas/uploads.py
"""
Schemas for upload endpoints.
"""

from pydantic import BaseModel, Field

# -----------------------------------------------------------------------------
# Create
# -----------------------------------------------------------------------------


class UploadResponse(BaseModel):
    """A stored upload as returned to clients."""

    id: int
    sha1: str
    url: str
    original_filename: str
    filesize: int
    human_filesize: str
    width: int | None = None
    height: int | None = None
    extension: str | None = None
    short_url: str
    short_path: str
    retain_hours: int | None = None


class UploadErrorResponse(BaseModel):
    """Validation failure: flattened human-readable messages."""

    errors: list[str] = Field(default_factory=list)


class UploadFailedResponse(BaseModel):
    """Generic failure (policy denial or unexpected error)."""

    failed: str = "FAILED"
    message: str | None = None


# -----------------------------------------------------------------------------
# Lookups
# -----------------------------------------------------------------------------


class LookupUrlsRequest(BaseModel):
    short_urls: list[str] = Field(default_factory=list, description="upload:// short URLs to resolve")


class LookupUrlItem(BaseModel):
    short_url: str
    url: str
    short_path: str


class LookupMetadataRequest(BaseModel):
    url: str | None = Field(None, description="Any URL form of an upload")


class UploadMetadataResponse(BaseModel):
    original_filename: str
    width: int | None = None
    height: int | None = None
    human_filesize: str


# -----------------------------------------------------------------------------
# Direct uploads
# -----------------------------------------------------------------------------


class PresignedPutRequest(BaseModel):
    file_name: str = Field(..., min_length=1)
    file_size: int = Field(..., ge=0)
    type: str | None = None
    upload_type: str | None = None


class PresignedPutResponse(BaseModel):
    """Where the client should PUT its bytes."""

    url: str
    key: str
