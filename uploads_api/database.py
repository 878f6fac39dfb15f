# uploads_api/database.py
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from uploads_api.config import get_settings

Base = declarative_base()


def build_engine(database_url: str) -> Engine:
    """
    Create an engine for the given URL.

    In-memory SQLite gets a single shared connection so every session sees
    the same database (tests rely on this).
    """
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url == "sqlite://":
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, future=True, **kwargs)

    return create_engine(database_url, future=True, pool_pre_ping=True)


engine = build_engine(get_settings().DATABASE_URL)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    future=True,
)


def init_db(bind: Engine | None = None) -> None:
    """
    Create the uploads table if it is missing (tests, local dev, `init-db`).
    Deployed databases are migrated with the Alembic revisions instead.
    """
    from uploads_api import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)


def get_db():
    """
    FastAPI dependency that gives you a DB session and cleans it up after.
    """
    db: Session = SessionLocal()
    try:
        yield db
    finally:
        db.close()
