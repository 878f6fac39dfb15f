# uploads_api/storage/s3_provider.py
"""
S3 storage provider implementation using boto3.

Supports:
- AWS S3
- S3-compatible services (MinIO, DigitalOcean Spaces, etc.)

Public uploads are stored with a public-read ACL and served from the CDN (or
the bucket URL); secure uploads are private and only reachable through
presigned GET URLs.
"""

import logging
from pathlib import Path, PurePosixPath
from typing import Any, Optional
from uuid import uuid4

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from uploads_api.config import Settings
from uploads_api.errors import StoreError
from uploads_api.logging_config import log_storage_operation
from uploads_api.storage.base import (
    PresignedPut,
    StorageProvider,
    StoreLocator,
    StoredUpload,
)

logger = logging.getLogger(__name__)


class S3StorageProvider(StorageProvider):
    """
    S3/S3-compatible storage provider.

    Configuration:
    - S3_BUCKET: Bucket name (required)
    - S3_ENDPOINT_URL: Custom endpoint for S3-compatible services
    - S3_REGION: AWS region (default: us-east-1)
    - S3_CDN_URL: CDN in front of the bucket, used for public uploads
    - S3_FOLDER_PREFIX: Key prefix inside the bucket
    - S3_PRESIGNED_GET_URL_EXPIRES_AFTER_SECONDS: Presigned URL lifetime
    - AWS_ACCESS_KEY_ID / AWS_SECRET_ACCESS_KEY: read by boto3
    """

    def __init__(self, settings: Settings, client: Optional[Any] = None):
        """
        Initialize S3 provider.

        Args:
            settings: Application settings
            client: Pre-built boto3 S3 client (tests pass a stub)
        """
        self._bucket = settings.S3_BUCKET
        if not self._bucket:
            raise ValueError("S3 bucket required. Set S3_BUCKET env var.")

        self._endpoint_url = settings.S3_ENDPOINT_URL
        self._region = settings.S3_REGION
        self._cdn_url = settings.S3_CDN_URL.rstrip("/") if settings.S3_CDN_URL else None
        self._prefix = settings.S3_FOLDER_PREFIX.strip("/")
        self._presign_expiry = settings.S3_PRESIGNED_GET_URL_EXPIRES_AFTER_SECONDS

        if client is None:
            # Retries and timeouts live here; callers never retry store calls
            config = Config(
                retries={"max_attempts": 3, "mode": "adaptive"},
                connect_timeout=5,
                read_timeout=30,
                signature_version="s3v4",
            )
            client = boto3.client(
                "s3",
                endpoint_url=self._endpoint_url,
                region_name=self._region,
                config=config,
            )
        self._client = client

        logger.info(f"S3 storage initialized: bucket={self._bucket}")

    @property
    def name(self) -> str:
        return "s3"

    @property
    def is_internal(self) -> bool:
        return False

    @property
    def absolute_base_url(self) -> str:
        if self._endpoint_url:
            return f"{self._endpoint_url.rstrip('/')}/{self._bucket}"
        return f"https://{self._bucket}.s3.{self._region}.amazonaws.com"

    def _object_key(self, path: str) -> str:
        path = path.lstrip("/")
        if self._prefix and not path.startswith(f"{self._prefix}/"):
            return f"{self._prefix}/{path}"
        return path

    def _key_from_url(self, url: str) -> str | None:
        for base in filter(None, (self.absolute_base_url, self._cdn_url)):
            if url.startswith(f"{base}/"):
                return url[len(base) + 1:]
        return None

    def store(
        self,
        source: Path,
        key: str,
        content_type: str | None = None,
        secure: bool = False,
    ) -> StoreLocator:
        """Upload the staged file with a private or public-read ACL."""
        object_key = self._object_key(key)
        extra_args = {
            "ACL": "private" if secure else "public-read",
            "ContentType": content_type or "application/octet-stream",
        }

        try:
            with log_storage_operation(self.name, "store", object_key) as metrics:
                with open(source, "rb") as body:
                    self._client.put_object(
                        Bucket=self._bucket,
                        Key=object_key,
                        Body=body,
                        **extra_args,
                    )
                metrics["size_bytes"] = source.stat().st_size
        except (ClientError, BotoCoreError, OSError) as e:
            raise StoreError(f"S3 store failed for {object_key}: {e}") from e

        return StoreLocator(url=f"{self.absolute_base_url}/{object_key}")

    def has_been_stored(self, url: str) -> bool:
        key = self._key_from_url(url)
        if key is None:
            return False
        try:
            self._client.head_object(Bucket=self._bucket, Key=key)
            return True
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "")
            if error_code in ("404", "NoSuchKey", "NotFound"):
                return False
            raise StoreError(f"S3 head failed for {key}: {e}") from e

    def path_for(self, upload: StoredUpload) -> Path | None:
        return None

    def url_for(self, upload: StoredUpload, force_download: bool = False) -> str:
        """
        Presigned URL for secure uploads or forced downloads, CDN URL otherwise.
        """
        if upload.secure or force_download:
            key = self._key_from_url(upload.url)
            if key is not None:
                return self._presigned_url(
                    key,
                    expires_in=self._presign_expiry,
                    force_download=force_download,
                    filename=upload.original_filename,
                )
        return self.cdn_url(upload.url)

    def signed_url_for_path(
        self,
        path: str,
        expires_in: int | None = None,
        force_download: bool = False,
    ) -> str:
        key = self._object_key(path)
        return self._presigned_url(
            key,
            expires_in=expires_in or self._presign_expiry,
            force_download=force_download,
            filename=PurePosixPath(key).name,
        )

    def cdn_url(self, url: str) -> str:
        if self._cdn_url and url.startswith(f"{self.absolute_base_url}/"):
            return f"{self._cdn_url}/{url[len(self.absolute_base_url) + 1:]}"
        return url

    def read(self, key: str) -> bytes | None:
        object_key = self._object_key(key)
        try:
            with log_storage_operation(self.name, "read", object_key) as metrics:
                response = self._client.get_object(Bucket=self._bucket, Key=object_key)
                content = response["Body"].read()
                metrics["size_bytes"] = len(content)
                return content
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "")
            if error_code in ("NoSuchKey", "404"):
                logger.debug(f"S3 object not found: {object_key}")
                return None
            raise StoreError(f"S3 read failed for {object_key}: {e}") from e

    def _presigned_url(
        self,
        key: str,
        expires_in: int,
        force_download: bool,
        filename: str,
    ) -> str:
        params = {"Bucket": self._bucket, "Key": key}
        if force_download:
            params["ResponseContentDisposition"] = f'attachment; filename="{filename}"'

        try:
            return self._client.generate_presigned_url(
                "get_object",
                Params=params,
                ExpiresIn=expires_in,
            )
        except (ClientError, BotoCoreError) as e:
            raise StoreError(f"S3 presign failed for {key}: {e}") from e

    def presigned_put(self, file_name: str, expires_in: int | None = None) -> PresignedPut:
        """
        Presign a PUT under temp/<random>/<file_name> for a direct client upload.

        The object lands outside original/1X/; it is not an upload until the
        bytes are hashed and stored under their content key.
        """
        key = self._object_key(f"temp/{uuid4().hex}/{PurePosixPath(file_name).name}")
        try:
            url = self._client.generate_presigned_url(
                "put_object",
                Params={"Bucket": self._bucket, "Key": key},
                ExpiresIn=expires_in or self._presign_expiry,
            )
        except (ClientError, BotoCoreError) as e:
            raise StoreError(f"S3 presign failed for {key}: {e}") from e

        logger.info(f"Presigned direct upload: {key}", extra={"event": "presigned_put", "key": key})
        return PresignedPut(url=url, key=key)
