"""
Image Gallery Exceptions

Error taxonomy for the gallery backend:
- Configuration problems (missing credentials, bad bucket name)
- Object store transport failures (transient or permanent)
- Per-operation errors raised by ImageService (upload, retrieval, cache clear)

Cache bookkeeping faults never show up here: the cache fails open and only logs.
"""

from typing import Any, Dict, Optional


class ImageGalleryError(Exception):
    """Base exception for the image gallery backend."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[BaseException] = None,
    ):
        self.message = message
        self.error_code = error_code or "IMAGE_GALLERY_ERROR"
        self.details = details or {}
        self.original_error = original_error
        if original_error is not None:
            self.details.setdefault("original_error", str(original_error))
            self.details.setdefault("original_error_type", type(original_error).__name__)
        super().__init__(self.message)
        if original_error is not None:
            self.__cause__ = original_error


class ConfigurationError(ImageGalleryError):
    """Raised when settings are missing or invalid."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="CONFIGURATION_ERROR", details=details)


# ============================================
# Object store
# ============================================

class ObjectStoreError(ImageGalleryError):
    """
    Transport-level failure of the object store client.

    `transient` marks failures a caller could reasonably retry
    (network errors, throttling, 5xx responses).
    """

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        transient: bool = False,
        original_error: Optional[BaseException] = None,
        error_code: str = "OBJECT_STORE_ERROR",
    ):
        details: Dict[str, Any] = {"transient": transient}
        if key is not None:
            details["key"] = key
        super().__init__(
            message,
            error_code=error_code,
            details=details,
            original_error=original_error,
        )
        self.key = key
        self.transient = transient


class ObjectNotFoundError(ObjectStoreError):
    """The requested key does not exist in the bucket."""

    def __init__(self, key: str, original_error: Optional[BaseException] = None):
        super().__init__(
            f"Object not found: {key}",
            key=key,
            transient=False,
            original_error=original_error,
            error_code="OBJECT_NOT_FOUND",
        )


# ============================================
# Facade operations
# ============================================

class UploadError(ImageGalleryError):
    """Raised when an upload to the object store fails."""

    def __init__(self, key: str, original_error: Optional[BaseException] = None):
        reason = str(original_error) if original_error else "unknown error"
        super().__init__(
            f"Failed to upload image - {reason}",
            error_code="UPLOAD_ERROR",
            details={"key": key},
            original_error=original_error,
        )
        self.key = key


class RetrievalError(ImageGalleryError):
    """Raised when an image cannot be fetched from the object store."""

    def __init__(self, key: str, original_error: Optional[BaseException] = None):
        reason = str(original_error) if original_error else "unknown error"
        super().__init__(
            f"Failed to retrieve image - {reason}",
            error_code="RETRIEVAL_ERROR",
            details={"key": key},
            original_error=original_error,
        )
        self.key = key

    @property
    def not_found(self) -> bool:
        return isinstance(self.original_error, ObjectNotFoundError)


class CacheClearError(ImageGalleryError):
    """Raised when clearing the in-memory cache fails."""

    def __init__(self, original_error: Optional[BaseException] = None):
        super().__init__(
            "Failed to clear image cache",
            error_code="CACHE_CLEAR_ERROR",
            original_error=original_error,
        )
