"""
Blob Storage Clients
File bytes for uploaded documents and signed download URLs
"""

import asyncio
import hashlib
import hmac
import io
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Dict, List, Optional, TypeVar
from urllib.parse import quote, urlencode

from minio import Minio
from minio.error import MinioException

from docshare.core.config import Settings
from docshare.core.exceptions import BackingStoreException
from docshare.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class BlobStore(ABC):
    """Interface every blob backend implements"""

    bucket: str

    @abstractmethod
    async def ensure_bucket(self) -> None:
        """Create the bucket if it does not exist"""

    @abstractmethod
    async def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        """Store bytes under key and return the key"""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove the object stored under key"""

    @abstractmethod
    async def signed_url(self, key: str, expires_in: int) -> str:
        """Time-limited URL that grants read access to key without further checks"""


class MinioBlobStore(BlobStore):
    """MinIO / S3-compatible backend"""

    def __init__(self, client: Minio, bucket: str):
        self._client = client
        self.bucket = bucket

    @classmethod
    def from_settings(cls, settings: Settings) -> "MinioBlobStore":
        endpoint = settings.MINIO_ENDPOINT
        if "://" in endpoint:
            endpoint = endpoint.split("://")[1]

        logger.info(f"Connecting to MinIO at {endpoint}")
        client = Minio(
            endpoint,
            access_key=settings.MINIO_ACCESS_KEY,
            secret_key=settings.MINIO_SECRET_KEY,
            secure=settings.MINIO_USE_SSL,
        )
        return cls(client, settings.MINIO_BUCKET)

    async def _run(self, operation: str, key: Optional[str], fn: Callable[[], T]) -> T:
        # The minio SDK is blocking; keep it off the event loop
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, fn)
        except MinioException as e:
            logger.error(f"MinIO {operation} failed for {self.bucket}/{key}: {e}")
            raise BackingStoreException(
                message=f"Failed to {operation}: {e}",
                store="blob",
                details={"bucket": self.bucket, "object_name": key},
            ) from e

    async def ensure_bucket(self) -> None:
        def _ensure() -> None:
            if not self._client.bucket_exists(self.bucket):
                self._client.make_bucket(self.bucket)
                logger.info(f"Created bucket: {self.bucket}")
            else:
                logger.debug(f"Bucket exists: {self.bucket}")

        await self._run("create bucket", None, _ensure)

    async def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        def _put() -> None:
            self._client.put_object(
                self.bucket,
                key,
                io.BytesIO(data),
                length=len(data),
                content_type=content_type,
            )

        await self._run("upload file", key, _put)
        logger.debug(f"Uploaded file: {self.bucket}/{key}")
        return key

    async def delete(self, key: str) -> None:
        await self._run("delete file", key, lambda: self._client.remove_object(self.bucket, key))
        logger.debug(f"Deleted file: {self.bucket}/{key}")

    async def signed_url(self, key: str, expires_in: int) -> str:
        return await self._run(
            "generate download URL",
            key,
            lambda: self._client.presigned_get_object(
                self.bucket,
                key,
                expires=timedelta(seconds=expires_in),
            ),
        )


@dataclass
class _StoredObject:
    data: bytes
    content_type: str
    created_at: float


class MemoryBlobStore(BlobStore):
    """In-process backend for development and tests"""

    def __init__(self, bucket: str = "documents", signing_key: str = "memory-signing-key"):
        self.bucket = bucket
        self._signing_key = signing_key.encode()
        self._objects: Dict[str, _StoredObject] = {}

    async def ensure_bucket(self) -> None:
        return None

    async def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        self._objects[key] = _StoredObject(data=bytes(data), content_type=content_type, created_at=time.time())
        return key

    async def delete(self, key: str) -> None:
        if self._objects.pop(key, None) is None:
            raise BackingStoreException(
                message=f"Object not found: {key}",
                store="blob",
                details={"bucket": self.bucket, "object_name": key},
            )

    async def signed_url(self, key: str, expires_in: int) -> str:
        if key not in self._objects:
            raise BackingStoreException(
                message=f"Object not found: {key}",
                store="blob",
                details={"bucket": self.bucket, "object_name": key},
            )
        expires_at = int(time.time()) + expires_in
        signature = self._sign(key, expires_at)
        query = urlencode({"expires": expires_at, "signature": signature})
        return f"memory://{self.bucket}/{quote(key)}?{query}"

    def _sign(self, key: str, expires_at: int) -> str:
        message = f"{self.bucket}/{key}:{expires_at}".encode()
        return hmac.new(self._signing_key, message, hashlib.sha256).hexdigest()

    # Inspection helpers for development tooling and tests

    def keys(self) -> List[str]:
        return list(self._objects)

    def read(self, key: str) -> Optional[bytes]:
        stored = self._objects.get(key)
        return stored.data if stored else None


def create_blob_store(settings: Settings) -> BlobStore:
    """Build the blob backend selected by STORAGE_BACKEND"""
    if settings.STORAGE_BACKEND == "memory":
        logger.warning("Using in-memory blob store; uploaded files are not persisted")
        return MemoryBlobStore(bucket=settings.MINIO_BUCKET, signing_key=settings.SECRET_KEY)
    return MinioBlobStore.from_settings(settings)
