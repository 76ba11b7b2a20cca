"""
Image Gallery Module

Upload, browse and fetch images kept in object storage (S3).

Features:
- In-memory read-through cache with LRU eviction and TTL expiry
- S3 and in-memory object store backends
- FastAPI routes for upload, fetch, listing and cache management
"""

from .cache_manager import CacheEntry, ImageCacheManager
from .config import ImageGallerySettings
from .exceptions import (
    CacheClearError,
    ConfigurationError,
    ImageGalleryError,
    ObjectNotFoundError,
    ObjectStoreError,
    RetrievalError,
    UploadError,
)
from .object_store import (
    InMemoryObjectStore,
    ObjectStoreClient,
    S3ObjectStoreClient,
    create_object_store,
)
from .routes_fastapi import router
from .service import ImageService

__all__ = [
    "router",
    "ImageService",
    "ImageCacheManager",
    "CacheEntry",
    "ImageGallerySettings",
    "ObjectStoreClient",
    "S3ObjectStoreClient",
    "InMemoryObjectStore",
    "create_object_store",
    "ImageGalleryError",
    "ConfigurationError",
    "ObjectStoreError",
    "ObjectNotFoundError",
    "UploadError",
    "RetrievalError",
    "CacheClearError",
]
