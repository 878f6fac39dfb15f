# uploads_api/storage/__init__.py
"""
Backing store abstraction for upload bytes.

Bytes live on local disk or in S3-compatible object storage; the database
stores only hashes, URLs and access metadata.
"""

from uploads_api.storage.base import (
    PresignedPut,
    StorageProvider,
    StoredUpload,
    StoreLocator,
)
from uploads_api.storage.factory import (
    get_local_storage_provider,
    get_storage_provider,
    reset_storage_provider,
    set_storage_provider,
)
from uploads_api.storage.local_provider import LocalStorageProvider
from uploads_api.storage.s3_provider import S3StorageProvider

__all__ = [
    "PresignedPut",
    "StorageProvider",
    "StoredUpload",
    "StoreLocator",
    "S3StorageProvider",
    "LocalStorageProvider",
    "get_storage_provider",
    "get_local_storage_provider",
    "set_storage_provider",
    "reset_storage_provider",
]
