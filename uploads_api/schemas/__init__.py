"""
Pydantic schemas for API request/response validation.
"""

from uploads_api.schemas.uploads import (
    LookupMetadataRequest,
    LookupUrlItem,
    LookupUrlsRequest,
    UploadErrorResponse,
    UploadFailedResponse,
    UploadMetadataResponse,
    UploadResponse,
)

__all__ = [
    "UploadResponse",
    "UploadErrorResponse",
    "UploadFailedResponse",
    "LookupUrlsRequest",
    "LookupUrlItem",
    "LookupMetadataRequest",
    "UploadMetadataResponse",
]
