# tests/conftest.py
"""
Pytest configuration and fixtures.
"""

import io
import os

import pytest

# Set test environment before the app modules build their engine
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("LOG_JSON", "false")

from PIL import Image  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from uploads_api.config import Settings  # noqa: E402
from uploads_api.database import build_engine, init_db  # noqa: E402
from uploads_api.repositories.upload_repository import UploadRepository  # noqa: E402
from uploads_api.storage.factory import reset_storage_provider  # noqa: E402
from uploads_api.storage.local_provider import LocalStorageProvider  # noqa: E402


@pytest.fixture
def make_settings(tmp_path):
    """Build Settings without reading the environment file."""

    def _make(**overrides) -> Settings:
        values = {
            "DATABASE_URL": "sqlite:///:memory:",
            "LOCAL_STORAGE_PATH": str(tmp_path / "public" / "uploads"),
            "AUTHORIZED_EXTENSIONS": "*",
            "LOG_JSON": False,
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make


@pytest.fixture
def settings(make_settings):
    return make_settings()


@pytest.fixture
def db_session():
    """Fresh in-memory database per test."""
    engine = build_engine("sqlite:///:memory:")
    init_db(bind=engine)
    session = sessionmaker(bind=engine, autoflush=False, future=True)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def repository(db_session):
    return UploadRepository(db_session)


@pytest.fixture
def local_store(settings):
    return LocalStorageProvider(settings)


@pytest.fixture(autouse=True)
def _reset_store_singletons():
    reset_storage_provider()
    yield
    reset_storage_provider()


@pytest.fixture
def png_bytes():
    """A real 3x2 PNG."""
    buf = io.BytesIO()
    Image.new("RGB", (3, 2), color=(200, 10, 10)).save(buf, format="PNG")
    return buf.getvalue()
