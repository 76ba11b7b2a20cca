"""
Image Service

Read-through cache in front of the object store:

    get_image:    cache hit -> return
                  miss/expired -> fetch from store -> cache -> return
    upload_image: straight to the store, cache untouched
    list_images:  straight to the store, filtered to image extensions
    clear_cache:  empties the cache

Uploads do not invalidate the cache. A read shortly after overwriting a key
can return the previous bytes until that entry's TTL runs out.
"""

import logging
import mimetypes
from typing import List, Optional, Tuple
from urllib.parse import urlparse

from .cache_manager import ImageCacheManager
from .config import ImageGallerySettings
from .exceptions import ObjectStoreError, RetrievalError, UploadError
from .object_store import DEFAULT_CONTENT_TYPE, ObjectStoreClient, create_object_store

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp")


def is_image_url(url: str) -> bool:
    """
    True if the URL path ends with a recognized image extension.

    Values without a scheme are bare object keys and are checked as-is,
    since keys may contain "#" or "?".
    """
    parsed = urlparse(url)
    path = parsed.path if parsed.scheme else url
    return path.lower().endswith(IMAGE_EXTENSIONS)


def guess_content_type(key: str) -> str:
    content_type, _ = mimetypes.guess_type(key)
    return content_type or DEFAULT_CONTENT_TYPE


class ImageService:
    """
    Public surface for uploading, fetching and listing gallery images.

    Each instance owns its cache; two services never share cached entries.

    Usage:
        service = ImageService(InMemoryObjectStore())
        url = await service.upload_image(data, "cat.png")
        data, content_type = await service.get_image("cat.png")
    """

    def __init__(
        self,
        object_store: ObjectStoreClient,
        cache: Optional[ImageCacheManager] = None,
    ):
        self.object_store = object_store
        self.cache = cache if cache is not None else ImageCacheManager()

    @classmethod
    def from_settings(cls, settings: ImageGallerySettings) -> "ImageService":
        """Validate settings and build the store and cache they describe."""
        settings.validate()
        cache = ImageCacheManager(
            max_entries=settings.max_cache_entries,
            cache_ttl_seconds=settings.cache_ttl_seconds,
        )
        return cls(create_object_store(settings), cache=cache)

    async def get_image(self, key: str) -> Tuple[bytes, str]:
        """
        Get an image by key, serving fresh cached copies without a remote call.

        Returns:
            Tuple of (image_data, content_type).

        Raises:
            ValueError: if key is empty.
            RetrievalError: if the object store fetch fails on a miss.
        """
        if not key:
            raise ValueError("Image key must be a non-empty string")

        cached = self.cache.lookup(key)
        if cached is not None:
            return cached

        try:
            logger.info(f"[ImageService] Fetching: {key}")
            data, content_type = await self.object_store.get(key)
        except ObjectStoreError as e:
            logger.error(f"[ImageService] Error retrieving {key}: {e}")
            raise RetrievalError(key, original_error=e)
        except Exception as e:
            logger.exception(f"[ImageService] Unexpected error retrieving {key}")
            raise RetrievalError(key, original_error=e)

        # Best effort: insert() logs and returns False on failure
        self.cache.insert(key, data, content_type)
        return data, content_type

    async def upload_image(
        self,
        data: bytes,
        key: str,
        content_type: Optional[str] = None,
    ) -> str:
        """
        Upload an image to the object store.

        The cache is not touched, so a cached copy of `key` stays in place
        until it expires.

        Returns:
            URL of the stored object.

        Raises:
            ValueError: if key or data is empty.
            UploadError: if the store rejects the upload.
        """
        if not key:
            raise ValueError("Image key must be a non-empty string")
        if not data:
            raise ValueError("Image data must not be empty")

        content_type = content_type or guess_content_type(key)

        try:
            url = await self.object_store.put(key, data, content_type)
        except Exception as e:
            logger.error(f"[ImageService] Error uploading {key}: {e}")
            raise UploadError(key, original_error=e)

        logger.info(f"[ImageService] Uploaded: {key} ({len(data)} bytes, {content_type})")
        return url

    async def list_images(self) -> List[str]:
        """
        List image URLs in the bucket.

        Always goes to the object store. Errors are logged and an empty list
        is returned so a gallery view can show its empty state.
        """
        try:
            urls = await self.object_store.list()
        except Exception as e:
            logger.error(f"[ImageService] Error listing images: {e}")
            return []

        return [url for url in urls if is_image_url(url)]

    def clear_cache(self) -> int:
        """
        Empty the cache.

        Returns:
            Number of entries removed.

        Raises:
            CacheClearError: if the cache could not be cleared.
        """
        return self.cache.clear()

    def get_stats(self) -> dict:
        return self.cache.get_stats()

    async def close(self) -> None:
        await self.object_store.close()
