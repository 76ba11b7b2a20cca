"""
Object Store Clients

Async interface to the bucket holding gallery images, plus two backends:
- S3ObjectStoreClient: AWS S3 or any S3-compatible service, through boto3
- InMemoryObjectStore: dict-backed store for development and tests

Clients raise ObjectStoreError (or ObjectNotFoundError) on failure and never
retry; retry policy belongs to the caller.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections import Counter, deque
from typing import Deque, Dict, List, Optional, Tuple
from urllib.parse import quote

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionError as BotoConnectionError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from .config import ImageGallerySettings
from .exceptions import ObjectNotFoundError, ObjectStoreError

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"

# NoSuchBucket also comes back as a 404 but is a configuration fault
NOT_FOUND_CODES = {"NoSuchKey", "NotFound", "404"}

TRANSIENT_CODES = {
    "Throttling",
    "ThrottlingException",
    "SlowDown",
    "RequestTimeout",
    "RequestTimeoutException",
    "ServiceUnavailable",
    "InternalError",
}

TRANSIENT_BOTO_ERRORS = (
    BotoConnectionError,
    EndpointConnectionError,
    ConnectTimeoutError,
    ReadTimeoutError,
)


class ObjectStoreClient(ABC):
    """Abstract async client for the image bucket."""

    @abstractmethod
    async def put(self, key: str, data: bytes, content_type: str) -> str:
        """Store an object and return its URL."""

    @abstractmethod
    async def get(self, key: str) -> Tuple[bytes, str]:
        """Fetch an object as (data, content_type)."""

    @abstractmethod
    async def list(self) -> List[str]:
        """URLs of every object in the bucket."""

    @abstractmethod
    def url_for(self, key: str) -> str:
        """Public URL of an object key."""

    async def close(self) -> None:
        """Release client resources."""


# ============================================
# S3
# ============================================

def _translate_client_error(error: ClientError, key: Optional[str]) -> ObjectStoreError:
    """Map a botocore ClientError onto the store error types."""
    code = str(error.response.get("Error", {}).get("Code", ""))
    status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode") or 0

    if key is not None and code in NOT_FOUND_CODES:
        return ObjectNotFoundError(key, original_error=error)

    transient = code in TRANSIENT_CODES or status >= 500
    return ObjectStoreError(
        f"S3 request failed ({code or status}): {error}",
        key=key,
        transient=transient,
        original_error=error,
    )


class S3ObjectStoreClient(ObjectStoreClient):
    """
    Object store backed by an S3 bucket.

    boto3 is blocking, so each request runs in a worker thread via
    asyncio.to_thread and the event loop stays free while it is in flight.
    """

    def __init__(
        self,
        bucket_name: str,
        region: str = "us-east-1",
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        client=None,
    ):
        self.bucket_name = bucket_name
        self.region = region
        self.endpoint_url = endpoint_url.rstrip("/") if endpoint_url else None

        if client is None:
            kwargs = {
                "region_name": region,
                "config": BotoConfig(connect_timeout=30, read_timeout=30),
            }
            if self.endpoint_url:
                kwargs["endpoint_url"] = self.endpoint_url
            if access_key_id and secret_access_key:
                kwargs["aws_access_key_id"] = access_key_id
                kwargs["aws_secret_access_key"] = secret_access_key
            client = boto3.client("s3", **kwargs)

        self._client = client
        logger.info(f"[ObjectStore] S3 bucket: {bucket_name} ({region})")

    @classmethod
    def from_settings(cls, settings: ImageGallerySettings) -> "S3ObjectStoreClient":
        return cls(
            bucket_name=settings.bucket_name,
            region=settings.aws_region,
            access_key_id=settings.aws_access_key_id,
            secret_access_key=settings.aws_secret_access_key,
            endpoint_url=settings.s3_endpoint_url,
        )

    def url_for(self, key: str) -> str:
        quoted = quote(key, safe="/")
        if self.endpoint_url:
            return f"{self.endpoint_url}/{self.bucket_name}/{quoted}"
        return f"https://{self.bucket_name}.s3.{self.region}.amazonaws.com/{quoted}"

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        try:
            await asyncio.to_thread(
                self._client.put_object,
                Bucket=self.bucket_name,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except ClientError as e:
            raise _translate_client_error(e, None)
        except TRANSIENT_BOTO_ERRORS as e:
            raise ObjectStoreError(f"S3 unreachable: {e}", key=key, transient=True, original_error=e)
        except BotoCoreError as e:
            raise ObjectStoreError(f"S3 client error: {e}", key=key, original_error=e)

        logger.info(f"[ObjectStore] Stored: {key} ({len(data)} bytes)")
        return self.url_for(key)

    def _get_blocking(self, key: str) -> Tuple[bytes, str]:
        response = self._client.get_object(Bucket=self.bucket_name, Key=key)
        body = response["Body"]
        try:
            data = body.read()
        finally:
            body.close()
        return data, response.get("ContentType") or DEFAULT_CONTENT_TYPE

    async def get(self, key: str) -> Tuple[bytes, str]:
        try:
            data, content_type = await asyncio.to_thread(self._get_blocking, key)
        except ClientError as e:
            raise _translate_client_error(e, key)
        except TRANSIENT_BOTO_ERRORS as e:
            raise ObjectStoreError(f"S3 unreachable: {e}", key=key, transient=True, original_error=e)
        except BotoCoreError as e:
            raise ObjectStoreError(f"S3 client error: {e}", key=key, original_error=e)

        logger.debug(f"[ObjectStore] Fetched: {key} ({len(data)} bytes)")
        return data, content_type

    def _list_blocking(self) -> List[str]:
        paginator = self._client.get_paginator("list_objects_v2")
        urls = []
        for page in paginator.paginate(Bucket=self.bucket_name):
            for obj in page.get("Contents", []):
                urls.append(self.url_for(obj["Key"]))
        return urls

    async def list(self) -> List[str]:
        try:
            return await asyncio.to_thread(self._list_blocking)
        except ClientError as e:
            raise _translate_client_error(e, None)
        except TRANSIENT_BOTO_ERRORS as e:
            raise ObjectStoreError(f"S3 unreachable: {e}", transient=True, original_error=e)
        except BotoCoreError as e:
            raise ObjectStoreError(f"S3 client error: {e}", original_error=e)

    async def close(self) -> None:
        await asyncio.to_thread(self._client.close)


# ============================================
# In-memory
# ============================================

class InMemoryObjectStore(ObjectStoreClient):
    """
    In-memory object store simulating S3 behavior.

    Counts calls per operation and can be told to fail the next call of an
    operation, which is what the cache tests rely on.
    """

    def __init__(self, bucket_name: str = "image-gallery", region: str = "us-east-1", delay: float = 0.0):
        self.bucket_name = bucket_name
        self.region = region
        self.delay = delay
        self.objects: Dict[str, Tuple[bytes, str]] = {}
        self.calls: Counter = Counter()
        self._failures: Dict[str, Deque[Exception]] = {}

    def fail_next(self, operation: str, error: Exception) -> None:
        """Make the next call of `operation` ('put', 'get', 'list') raise `error`."""
        self._failures.setdefault(operation, deque()).append(error)

    async def _enter(self, operation: str) -> None:
        self.calls[operation] += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        pending = self._failures.get(operation)
        if pending:
            raise pending.popleft()

    def url_for(self, key: str) -> str:
        return f"https://{self.bucket_name}.s3.{self.region}.amazonaws.com/{quote(key, safe='/')}"

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        await self._enter("put")
        self.objects[key] = (bytes(data), content_type)
        logger.info(f"[ObjectStore] Memory: stored {key}")
        return self.url_for(key)

    async def get(self, key: str) -> Tuple[bytes, str]:
        await self._enter("get")
        if key not in self.objects:
            raise ObjectNotFoundError(key)
        return self.objects[key]

    async def list(self) -> List[str]:
        await self._enter("list")
        return [self.url_for(key) for key in sorted(self.objects)]


def create_object_store(settings: ImageGallerySettings) -> ObjectStoreClient:
    """
    Build the object store client named by settings.storage_backend.

    Unknown backends fall back to the in-memory store.
    """
    backend = settings.storage_backend.lower()

    if backend == "s3":
        logger.info(f"[ObjectStore] Using S3ObjectStoreClient: {settings.bucket_name}")
        return S3ObjectStoreClient.from_settings(settings)

    if backend != "memory":
        logger.warning(f"[ObjectStore] Unknown storage backend: {backend}, defaulting to memory")

    return InMemoryObjectStore(
        bucket_name=settings.bucket_name or "image-gallery",
        region=settings.aws_region,
    )
