"""Object storage backends for published artifacts."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Protocol

import boto3
from botocore.exceptions import BotoCoreError, ClientError

if TYPE_CHECKING:
    from imgshare.config import Settings

logger = logging.getLogger(__name__)


class ObjectStoreError(Exception):
    """Transport or storage failure reported by a backend."""


class ObjectStore(Protocol):
    """Protocol for durable, publicly addressable object storage."""

    name: str

    def put(self, key: str, data: bytes, content_type: str) -> str:
        """Store ``data`` under ``key`` and return its public address."""
        ...

    def delete(self, key: str) -> None:
        """Remove ``key``. Deleting a missing key is not an error."""
        ...


class InMemoryObjectStore:
    """Process-local store for development and tests."""

    name = "memory"

    def __init__(self, base_url: str = "memory://imgshare") -> None:
        self._base_url = base_url.rstrip("/")
        self._lock = threading.Lock()
        self._objects: dict[str, tuple[bytes, str]] = {}

    def put(self, key: str, data: bytes, content_type: str) -> str:
        with self._lock:
            self._objects[key] = (data, content_type)
        return f"{self._base_url}/{key}"

    def delete(self, key: str) -> None:
        with self._lock:
            self._objects.pop(key, None)

    def get(self, key: str) -> tuple[bytes, str] | None:
        with self._lock:
            return self._objects.get(key)

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._objects.keys())


class S3ObjectStore:
    """S3-compatible bucket (AWS S3, Cloudflare R2, MinIO)."""

    name = "s3"

    def __init__(self, settings: Settings) -> None:
        self._bucket = settings.s3_bucket
        self._endpoint_url = settings.s3_endpoint_url
        self._region = settings.s3_region
        self._public_base_url = settings.public_base_url
        self._client = boto3.client(
            "s3",
            endpoint_url=settings.s3_endpoint_url,
            region_name=settings.s3_region,
            aws_access_key_id=settings.s3_access_key_id,
            aws_secret_access_key=settings.s3_secret_access_key,
        )

    def put(self, key: str, data: bytes, content_type: str) -> str:
        try:
            self._client.put_object(Bucket=self._bucket, Key=key, Body=data, ContentType=content_type)
        except (BotoCoreError, ClientError) as exc:
            raise ObjectStoreError(f"Failed to upload {key} to bucket {self._bucket}: {exc}") from exc
        logger.debug("Uploaded %s (%d bytes) to bucket %s", key, len(data), self._bucket)
        return self.public_url(key)

    def delete(self, key: str) -> None:
        try:
            self._client.delete_object(Bucket=self._bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            raise ObjectStoreError(f"Failed to delete {key} from bucket {self._bucket}: {exc}") from exc

    def public_url(self, key: str) -> str:
        if self._public_base_url:
            return f"{self._public_base_url.rstrip('/')}/{key}"
        if self._endpoint_url:
            return f"{self._endpoint_url.rstrip('/')}/{self._bucket}/{key}"
        if self._region:
            return f"https://{self._bucket}.s3.{self._region}.amazonaws.com/{key}"
        return f"https://{self._bucket}.s3.amazonaws.com/{key}"


def build_object_store(settings: Settings) -> ObjectStore:
    """Create the backend selected by ``settings.storage_backend``."""
    if settings.storage_backend == "s3":
        return S3ObjectStore(settings)
    base_url = settings.public_base_url or "memory://imgshare"
    return InMemoryObjectStore(base_url)
