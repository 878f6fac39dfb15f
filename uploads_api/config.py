# uploads_api/config.py
"""
Centralized configuration with validation.

Uses pydantic-settings to load and validate all environment variables at startup.
Components receive a Settings instance at construction; nothing reads the
environment behind their back.
"""

from functools import lru_cache
from typing import ClassVar

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Database
    DATABASE_URL: str = Field(
        default="sqlite:///./uploads.db",
        description="SQLAlchemy connection URL",
    )

    # Site
    SITE_NAME: str = Field(
        default="default",
        description="Site (database) name used in local upload paths",
    )
    API_KEY: str | None = Field(
        default=None,
        description="API key that marks a request as coming from an API client",
    )

    # Storage
    STORAGE_PROVIDER: str = Field(
        default="local",
        description="Storage provider: local, s3",
    )
    LOCAL_STORAGE_PATH: str = Field(
        default="./public/uploads",
        description="Root directory for the local storage provider",
    )
    LOCAL_UPLOADS_URL_PREFIX: str = Field(
        default="/uploads",
        description="URL prefix under which local uploads are served",
    )
    S3_BUCKET: str | None = None
    S3_REGION: str = "us-east-1"
    S3_ENDPOINT_URL: str | None = None
    S3_CDN_URL: str | None = Field(
        default=None,
        description="CDN base URL in front of the bucket (public uploads only)",
    )
    S3_FOLDER_PREFIX: str = Field(
        default="",
        description="Key prefix inside the bucket",
    )

    # Upload limits
    MAX_ATTACHMENT_SIZE_KB: int = Field(
        default=4096,
        ge=0,
        description="Maximum size of a non-image attachment",
    )
    MAX_IMAGE_SIZE_KB: int = Field(
        default=4096,
        ge=0,
        description="Maximum size of an image upload",
    )
    AUTHORIZED_EXTENSIONS: str = Field(
        default="jpg|jpeg|png|gif|heic|heif|webp|avif|svg|ico|pdf|txt|zip",
        description="Pipe-separated list of allowed extensions, '*' allows all",
    )

    # Secure uploads
    SECURE_UPLOADS: bool = Field(
        default=False,
        description="Serve secure uploads through signed, time-limited URLs",
    )
    PREVENT_ANONS_FROM_DOWNLOADING_FILES: bool = False
    S3_PRESIGNED_GET_URL_EXPIRES_AFTER_SECONDS: int = Field(
        default=300,
        ge=10,
        description="Lifetime of presigned GET URLs",
    )

    # Avatars
    ALLOW_UPLOADED_AVATARS: str = Field(
        default="0",
        description="disabled, staff, admin, or the minimum trust level 0-4",
    )
    DISCOURSE_CONNECT_OVERRIDES_AVATAR: bool = False

    # Accepted for compatibility with existing site settings; not used here
    MODERATORS_CHANGE_POST_OWNERSHIP: bool = False

    # Remote fetch
    REMOTE_FETCH_TIMEOUT_SECONDS: float = 10.0
    REMOTE_FETCH_MAX_REDIRECTS: int = 5

    # Logging
    LOG_JSON: bool = True
    LOG_LEVEL: str = "INFO"

    AVATAR_SETTING_VALUES: ClassVar[set[str]] = {"disabled", "staff", "admin", "0", "1", "2", "3", "4"}

    @field_validator("STORAGE_PROVIDER")
    @classmethod
    def normalize_provider(cls, v: str) -> str:
        v = v.lower().strip()
        if v not in ("local", "s3"):
            raise ValueError(f"Unknown storage provider: {v}. Available: s3, local")
        return v

    @field_validator("ALLOW_UPLOADED_AVATARS")
    @classmethod
    def check_avatar_setting(cls, v: str) -> str:
        v = v.lower().strip()
        if v not in cls.AVATAR_SETTING_VALUES:
            raise ValueError(f"ALLOW_UPLOADED_AVATARS must be one of {sorted(cls.AVATAR_SETTING_VALUES)}")
        return v

    @field_validator("DATABASE_URL")
    @classmethod
    def fix_database_url(cls, v: str) -> str:
        """Hosted Postgres hands out postgresql:// but SQLAlchemy needs postgresql+psycopg2://"""
        if v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+psycopg2://", 1)
        return v

    @model_validator(mode="after")
    def check_secure_uploads_store(self) -> "Settings":
        """Local files are served to anyone who knows the path."""
        if self.SECURE_UPLOADS and self.STORAGE_PROVIDER != "s3":
            raise ValueError("SECURE_UPLOADS requires STORAGE_PROVIDER=s3")
        return self

    @property
    def max_attachment_size_bytes(self) -> int:
        return self.MAX_ATTACHMENT_SIZE_KB * 1024

    @property
    def max_image_size_bytes(self) -> int:
        return self.MAX_IMAGE_SIZE_KB * 1024

    @property
    def max_remote_fetch_bytes(self) -> int:
        return max(self.max_image_size_bytes, self.max_attachment_size_bytes)

    @property
    def authorized_extensions(self) -> set[str]:
        return {
            ext.strip().lstrip(".").lower()
            for ext in self.AUTHORIZED_EXTENSIONS.split("|")
            if ext.strip()
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached application settings. Call at startup to validate config."""
    return Settings()
