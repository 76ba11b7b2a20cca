"""
Image Cache Manager

In-memory read-through cache for object store reads with:
- LRU (Least Recently Used) eviction once max_entries is reached
- TTL (Time To Live) checked lazily on lookup
- Fail-open bookkeeping: a cache fault is logged and treated as a miss

Entries live in a single OrderedDict, oldest first. The dict order is the
recency queue: a hit moves the key to the end, an insert appends it.
"""

import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from .exceptions import CacheClearError, ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    """A cached object payload."""
    key: str
    data: bytes
    content_type: str
    created_at: float

    @property
    def size_bytes(self) -> int:
        return len(self.data)

    def age(self, now: float) -> float:
        return now - self.created_at

    def is_expired(self, ttl_seconds: float, now: float) -> bool:
        """Fresh while age <= ttl."""
        return self.age(now) > ttl_seconds


class ImageCacheManager:
    """
    Bounded, time-expiring cache of image payloads keyed by object key.

    Not thread-safe. Every operation runs synchronously to completion, so
    coroutines on one event loop never see a half-updated cache.
    """

    def __init__(
        self,
        max_entries: int = 100,
        cache_ttl_seconds: float = 5 * 60,
        clock: Callable[[], float] = time.time,
    ):
        if max_entries < 1:
            raise ConfigurationError("max_entries must be at least 1")
        if cache_ttl_seconds <= 0:
            raise ConfigurationError("cache_ttl_seconds must be positive")

        self.max_entries = max_entries
        self.cache_ttl_seconds = cache_ttl_seconds
        self._clock = clock

        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()

        self.hits = 0
        self.misses = 0
        self.evictions = 0
        self.expirations = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def keys(self) -> List[str]:
        """Cached keys, least recently used first."""
        return list(self._entries.keys())

    def lookup(self, key: str) -> Optional[Tuple[bytes, str]]:
        """
        Get a cached payload by key.

        Returns:
            Tuple of (data, content_type) if cached and fresh, None otherwise.
        """
        try:
            entry = self._entries.get(key)

            if entry is None:
                self.misses += 1
                logger.debug(f"[ImageCache] Miss: {key}")
                return None

            if entry.is_expired(self.cache_ttl_seconds, self._clock()):
                del self._entries[key]
                self.expirations += 1
                self.misses += 1
                logger.debug(f"[ImageCache] Expired: {key}")
                return None

            self._entries.move_to_end(key)
            self.hits += 1
            logger.debug(f"[ImageCache] Hit: {key}")
            return entry.data, entry.content_type

        except Exception as e:
            logger.error(f"[ImageCache] Lookup failed for {key}, treating as miss: {e}")
            return None

    def insert(self, key: str, data: bytes, content_type: str) -> bool:
        """
        Cache a payload, evicting least recently used entries if full.

        Returns:
            True if cached, False if bookkeeping failed (the error is logged).
        """
        try:
            payload = bytes(data)

            # Re-insertion: drop the old slot so the key appears once, at the end
            self._entries.pop(key, None)

            while len(self._entries) >= self.max_entries:
                evicted_key, _ = self._entries.popitem(last=False)
                self.evictions += 1
                logger.info(f"[ImageCache] LRU evicted: {evicted_key}")

            self._entries[key] = CacheEntry(
                key=key,
                data=payload,
                content_type=content_type,
                created_at=self._clock(),
            )
            logger.debug(f"[ImageCache] Cached: {key} ({len(payload)} bytes)")
            return True

        except Exception as e:
            logger.error(f"[ImageCache] Failed to cache {key}: {e}")
            return False

    def cleanup_expired(self) -> int:
        """
        Remove all expired entries.

        Returns:
            Number of entries removed.
        """
        now = self._clock()
        expired = [
            key for key, entry in self._entries.items()
            if entry.is_expired(self.cache_ttl_seconds, now)
        ]
        for key in expired:
            del self._entries[key]

        if expired:
            self.expirations += len(expired)
            logger.info(f"[ImageCache] Cleaned up {len(expired)} expired entries")

        return len(expired)

    def clear(self) -> int:
        """
        Clear all cached entries.

        Returns:
            Number of entries removed.

        Raises:
            CacheClearError: if the underlying store could not be emptied.
        """
        count = len(self._entries)
        try:
            self._entries.clear()
        except Exception as e:
            logger.error(f"[ImageCache] Failed to clear cache: {e}")
            raise CacheClearError(original_error=e)

        logger.info(f"[ImageCache] Cleared all {count} entries")
        return count

    def get_total_size(self) -> int:
        """Total bytes held by cached payloads."""
        return sum(entry.size_bytes for entry in self._entries.values())

    def get_stats(self) -> dict:
        """Get cache statistics."""
        total_size = self.get_total_size()
        return {
            "total_entries": len(self._entries),
            "max_entries": self.max_entries,
            "usage_percent": round(len(self._entries) / self.max_entries * 100, 1),
            "total_size_bytes": total_size,
            "total_size_mb": round(total_size / (1024 * 1024), 2),
            "cache_ttl_seconds": self.cache_ttl_seconds,
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "expirations": self.expirations,
        }
