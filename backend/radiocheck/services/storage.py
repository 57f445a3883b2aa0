"""Object storage for audio assets, backed by MinIO/S3."""

from __future__ import annotations

import io
from typing import Iterable, List
from urllib.parse import urlparse

import structlog
from minio import Minio
from minio.deleteobjects import DeleteObject
from minio.error import MinioException
from urllib3.exceptions import HTTPError as Urllib3HTTPError

from radiocheck.core.config import get_settings
from radiocheck.services.errors import StorageError

logger = structlog.get_logger()

# S3 error responses and transport failures (endpoint down, retries exhausted)
STORAGE_ERRORS = (MinioException, Urllib3HTTPError)


class StorageConfigurationError(StorageError):
    """Raised when storage configuration is invalid."""


def audio_object_key(radio_id: int | str, filename: str) -> str:
    """Audio paths are namespaced per radio: ``{radioId}/{filename}``."""

    return f"{radio_id}/{filename}"


class MinioStorageService:
    """Lightweight wrapper around MinIO for the audio bucket."""

    def __init__(self, *, client: Minio, bucket: str) -> None:
        self._client = client
        self._bucket = bucket
        self._ensure_bucket()

    @property
    def bucket(self) -> str:
        return self._bucket

    def _ensure_bucket(self) -> None:
        try:
            if not self._client.bucket_exists(self._bucket):
                self._client.make_bucket(self._bucket)
        except STORAGE_ERRORS as exc:
            raise StorageConfigurationError(
                f"Unable to ensure bucket '{self._bucket}': {exc}"
            ) from exc

    def upload_bytes(
        self,
        object_key: str,
        data: bytes,
        *,
        content_type: str = "application/octet-stream",
    ) -> str:
        """Upload (or overwrite) an object and return its key."""

        try:
            self._client.put_object(
                self._bucket,
                object_key,
                io.BytesIO(data),
                length=len(data),
                content_type=content_type,
            )
        except STORAGE_ERRORS as exc:
            raise StorageError(f"Upload failed for {object_key}: {exc}") from exc
        logger.info("storage.uploaded", key=object_key, size=len(data))
        return object_key

    def download_bytes(self, object_key: str) -> bytes:
        try:
            response = self._client.get_object(self._bucket, object_key)
        except STORAGE_ERRORS as exc:
            raise StorageError(f"Error descargando audio de Storage: {exc}") from exc
        try:
            return response.read()
        except STORAGE_ERRORS as exc:
            raise StorageError(f"Error descargando audio de Storage: {exc}") from exc
        finally:
            response.close()
            response.release_conn()

    def list_objects(self, prefix: str) -> List[str]:
        try:
            return [
                obj.object_name
                for obj in self._client.list_objects(self._bucket, prefix=prefix, recursive=True)
            ]
        except STORAGE_ERRORS as exc:
            raise StorageError(f"Listing {prefix} failed: {exc}") from exc

    def delete_objects(self, object_keys: Iterable[str]) -> int:
        """Delete keys in one request; returns how many were requested."""

        targets = [DeleteObject(key) for key in object_keys]
        if not targets:
            return 0
        try:
            errors = list(self._client.remove_objects(self._bucket, targets))
        except STORAGE_ERRORS as exc:
            raise StorageError(f"Delete failed: {exc}") from exc
        if errors:
            raise StorageError(f"Failed to delete {len(errors)} of {len(targets)} objects")
        return len(targets)


def build_storage_service() -> MinioStorageService:
    """Instantiate a storage service from application settings."""

    settings = get_settings()
    if not all(
        [
            settings.s3_endpoint_url,
            settings.s3_bucket,
            settings.s3_access_key,
            settings.s3_secret_key,
        ]
    ):
        raise StorageConfigurationError("S3/MinIO environment variables are not fully set")

    parsed = urlparse(str(settings.s3_endpoint_url))
    secure = (
        settings.s3_secure
        if settings.s3_secure is not None
        else parsed.scheme == "https"
    )
    client = Minio(
        parsed.netloc,
        access_key=settings.s3_access_key,
        secret_key=settings.s3_secret_key,
        secure=secure,
        region=settings.s3_region,
    )
    return MinioStorageService(client=client, bucket=settings.s3_bucket)
