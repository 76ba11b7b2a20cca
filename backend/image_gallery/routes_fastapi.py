"""
Image Gallery API Routes

Provides endpoints for:
- Listing images in the bucket
- Uploading an image under a key
- Fetching an image through the read-through cache
- Cache statistics and management (cleanup, clear)
"""

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import Response
from pydantic import BaseModel

from .exceptions import CacheClearError, RetrievalError, UploadError
from .service import ImageService

router = APIRouter(prefix="/api/images", tags=["Images"])


# ============================================
# Request/Response Models
# ============================================

class ImageListResponse(BaseModel):
    """Response model for list endpoint"""
    success: bool
    count: int
    images: List[str]


class UploadResponse(BaseModel):
    """Response model for upload endpoint"""
    success: bool
    key: str
    url: str


class CacheStatsResponse(BaseModel):
    """Response model for stats endpoint"""
    total_entries: int
    max_entries: int
    usage_percent: float
    total_size_bytes: int
    total_size_mb: float
    cache_ttl_seconds: float
    hits: int
    misses: int
    evictions: int
    expirations: int


class CacheClearResponse(BaseModel):
    """Response model for cleanup and clear endpoints"""
    success: bool
    removed_entries: int
    message: str


# ============================================
# Dependencies
# ============================================

def get_image_service(request: Request) -> ImageService:
    """The ImageService owned by the running app."""
    service = getattr(request.app.state, "image_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Image service not initialized")
    return service


# ============================================
# Endpoints
# ============================================

@router.get("", response_model=ImageListResponse)
@router.get("/", response_model=ImageListResponse, include_in_schema=False)
async def list_images(service: ImageService = Depends(get_image_service)):
    """
    List image URLs stored in the bucket.

    Always reads the bucket live. Storage errors yield an empty list.
    """
    images = await service.list_images()
    return ImageListResponse(success=True, count=len(images), images=images)


@router.put("/objects/{key:path}", response_model=UploadResponse)
async def upload_image(
    key: str,
    request: Request,
    service: ImageService = Depends(get_image_service),
):
    """
    Upload the raw request body as an image.

    Example:
        PUT /api/images/objects/cat.png   (Content-Type: image/png)
    """
    data = await request.body()
    content_type = request.headers.get("content-type", "").split(";")[0].strip() or None

    try:
        url = await service.upload_image(data, key, content_type)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except UploadError as e:
        raise HTTPException(status_code=502, detail=e.message)

    return UploadResponse(success=True, key=key, url=url)


@router.get("/objects/{key:path}")
async def get_image(key: str, service: ImageService = Depends(get_image_service)):
    """
    Fetch an image, served from cache when a fresh copy exists.

    Example:
        GET /api/images/objects/cat.png
    """
    try:
        data, content_type = await service.get_image(key)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RetrievalError as e:
        if e.not_found:
            raise HTTPException(status_code=404, detail=f"Image '{key}' not found")
        raise HTTPException(status_code=502, detail=e.message)

    return Response(content=data, media_type=content_type)


@router.get("/cache/stats", response_model=CacheStatsResponse)
async def get_cache_stats(service: ImageService = Depends(get_image_service)):
    """Get cache statistics."""
    return CacheStatsResponse(**service.get_stats())


@router.post("/cache/cleanup", response_model=CacheClearResponse)
async def cleanup_cache(service: ImageService = Depends(get_image_service)):
    """
    Remove expired cache entries.

    Expiry is also checked on every read, so this only frees memory early.
    """
    removed = service.cache.cleanup_expired()
    return CacheClearResponse(
        success=True,
        removed_entries=removed,
        message=f"Removed {removed} expired entries",
    )


@router.delete("/cache", response_model=CacheClearResponse)
async def clear_cache(service: ImageService = Depends(get_image_service)):
    """Clear all cached images."""
    try:
        removed = service.clear_cache()
    except CacheClearError as e:
        raise HTTPException(status_code=500, detail=e.message)

    return CacheClearResponse(
        success=True,
        removed_entries=removed,
        message="Cache cleared successfully",
    )


@router.get("/health")
async def health_check(service: ImageService = Depends(get_image_service)) -> Dict[str, Any]:
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "image-gallery",
        "cache_stats": service.get_stats(),
    }
