# uploads_api/storage/factory.py
"""
Factory functions for creating storage providers.
"""

import logging
from typing import Optional

from uploads_api.config import Settings
from uploads_api.storage.base import StorageProvider
from uploads_api.storage.local_provider import LocalStorageProvider

logger = logging.getLogger(__name__)

# Global singleton instances
_storage_provider: Optional[StorageProvider] = None
_local_storage_provider: Optional[LocalStorageProvider] = None


def get_storage_provider(settings: Settings) -> StorageProvider:
    """
    Get or create the active storage provider.

    Args:
        settings: Application settings; STORAGE_PROVIDER picks 's3' or 'local'

    Returns:
        StorageProvider instance (singleton)
    """
    global _storage_provider

    if _storage_provider is not None:
        return _storage_provider

    if settings.STORAGE_PROVIDER == "s3":
        from uploads_api.storage.s3_provider import S3StorageProvider
        _storage_provider = S3StorageProvider(settings)
    else:
        _storage_provider = get_local_storage_provider(settings)

    logger.info(f"Storage provider initialized: {_storage_provider.name}")
    return _storage_provider


def get_local_storage_provider(settings: Settings) -> LocalStorageProvider:
    """
    Get the local store, even when the active provider is remote.

    Legacy /uploads/<site>/... URLs may still point at files on local disk
    after a site moved to S3.
    """
    global _local_storage_provider

    if _local_storage_provider is None:
        _local_storage_provider = LocalStorageProvider(settings)
    return _local_storage_provider


def set_storage_provider(provider: StorageProvider) -> None:
    """
    Set a custom storage provider (useful for testing).
    """
    global _storage_provider, _local_storage_provider
    _storage_provider = provider
    if isinstance(provider, LocalStorageProvider):
        _local_storage_provider = provider


def reset_storage_provider() -> None:
    """
    Reset the storage provider singletons (for testing).
    """
    global _storage_provider, _local_storage_provider
    _storage_provider = None
    _local_storage_provider = None
