# uploads_api/dependencies.py
"""FastAPI wiring for the upload pipeline components."""

from fastapi import Depends
from sqlalchemy.orm import Session

from uploads_api.access import AuthenticatedPostVisibility, PostVisibility
from uploads_api.config import Settings, get_settings
from uploads_api.database import get_db
from uploads_api.repositories.upload_repository import UploadRepository
from uploads_api.services.retrieval_gate import RetrievalGate
from uploads_api.services.upload_service import UploadService
from uploads_api.storage.base import StorageProvider
from uploads_api.storage.factory import get_local_storage_provider, get_storage_provider


def get_store(settings: Settings = Depends(get_settings)) -> StorageProvider:
    return get_storage_provider(settings)


def get_upload_repository(db: Session = Depends(get_db)) -> UploadRepository:
    return UploadRepository(db)


def get_post_visibility() -> PostVisibility:
    return AuthenticatedPostVisibility()


def get_upload_service(
    settings: Settings = Depends(get_settings),
    store: StorageProvider = Depends(get_store),
    repository: UploadRepository = Depends(get_upload_repository),
) -> UploadService:
    return UploadService(settings, store, repository)


def get_retrieval_gate(
    settings: Settings = Depends(get_settings),
    store: StorageProvider = Depends(get_store),
    repository: UploadRepository = Depends(get_upload_repository),
    post_visibility: PostVisibility = Depends(get_post_visibility),
) -> RetrievalGate:
    local_store = None if store.is_internal else get_local_storage_provider(settings)
    return RetrievalGate(settings, store, repository, post_visibility, local_store=local_store)
