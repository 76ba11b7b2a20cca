"""
Image Gallery Configuration

Settings are read from environment variables with sensible defaults:

    IMAGE_STORAGE_BACKEND    's3' (default) or 'memory'
    AWS_REGION               default 'us-east-1'
    AWS_ACCESS_KEY_ID        required for s3
    AWS_SECRET_ACCESS_KEY    required for s3
    S3_BUCKET_NAME           required for s3
    S3_ENDPOINT_URL          optional, for S3-compatible services (MinIO, ...)
    IMAGE_CACHE_TTL_SECONDS  default 300 (5 minutes)
    IMAGE_CACHE_MAX_ENTRIES  default 100
    IMAGE_GALLERY_LOG_LEVEL  default 'INFO'
"""

import logging
import os
import re
from dataclasses import dataclass
from typing import List, Optional

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL_SECONDS = 5 * 60
DEFAULT_MAX_CACHE_ENTRIES = 100

_BUCKET_NAME_RE = re.compile(r"^[a-z0-9][a-z0-9.-]*[a-z0-9]$")
_IP_ADDRESS_RE = re.compile(r"^\d{1,3}(\.\d{1,3}){3}$")


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(
            f"Environment variable {name} must be an integer, got {raw!r}",
            details={"variable": name},
        )


def validate_bucket_name(bucket_name: str) -> None:
    """
    Check a bucket name against the S3 naming rules.

    Raises:
        ConfigurationError: with a message naming the first rule broken.
    """
    if not bucket_name:
        raise ConfigurationError("Bucket name cannot be empty")
    if len(bucket_name) < 3 or len(bucket_name) > 63:
        raise ConfigurationError("Bucket name must be between 3 and 63 characters long")
    if ".." in bucket_name:
        raise ConfigurationError("Bucket name cannot contain consecutive periods")
    if _IP_ADDRESS_RE.match(bucket_name):
        raise ConfigurationError("Bucket name cannot be formatted as an IP address")
    if not _BUCKET_NAME_RE.match(bucket_name):
        raise ConfigurationError("Invalid bucket name format")


@dataclass
class ImageGallerySettings:
    """Runtime settings for the gallery backend."""

    storage_backend: str = "s3"

    # S3 credentials and location
    aws_region: str = "us-east-1"
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    bucket_name: Optional[str] = None
    s3_endpoint_url: Optional[str] = None

    # In-memory read-through cache
    cache_ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS
    max_cache_entries: int = DEFAULT_MAX_CACHE_ENTRIES

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "ImageGallerySettings":
        """Build settings from the current environment."""
        return cls(
            storage_backend=os.getenv("IMAGE_STORAGE_BACKEND", "s3").lower(),
            aws_region=os.getenv("AWS_REGION") or "us-east-1",
            aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
            aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
            bucket_name=os.getenv("S3_BUCKET_NAME"),
            s3_endpoint_url=os.getenv("S3_ENDPOINT_URL") or None,
            cache_ttl_seconds=_int_env("IMAGE_CACHE_TTL_SECONDS", DEFAULT_CACHE_TTL_SECONDS),
            max_cache_entries=_int_env("IMAGE_CACHE_MAX_ENTRIES", DEFAULT_MAX_CACHE_ENTRIES),
            log_level=os.getenv("IMAGE_GALLERY_LOG_LEVEL", "INFO").upper(),
        )

    def missing_credentials(self) -> List[str]:
        """Names of the required S3 environment variables that are not set."""
        required = {
            "AWS_REGION": self.aws_region,
            "AWS_ACCESS_KEY_ID": self.aws_access_key_id,
            "AWS_SECRET_ACCESS_KEY": self.aws_secret_access_key,
            "S3_BUCKET_NAME": self.bucket_name,
        }
        return [name for name, value in required.items() if not value]

    def validate(self) -> None:
        """
        Validate settings before building clients.

        The S3 backend needs all credentials and a well-formed bucket name.
        Cache bounds must be positive for every backend.
        """
        if self.cache_ttl_seconds <= 0:
            raise ConfigurationError("Cache TTL must be a positive number of seconds")
        if self.max_cache_entries < 1:
            raise ConfigurationError("Cache must hold at least one entry")

        if self.storage_backend != "s3":
            return

        missing = self.missing_credentials()
        if missing:
            raise ConfigurationError(
                f"Missing required AWS credentials: {', '.join(missing)}. "
                "Please check your environment.",
                details={"missing": missing},
            )
        validate_bucket_name(self.bucket_name)


def configure_logging(level: str = "INFO") -> None:
    """Basic console logging for running the service standalone."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.debug(f"[Config] Logging configured at {level.upper()}")
