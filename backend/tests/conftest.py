"""
Image Gallery test configuration.

Fixtures:
- clock: controllable time source for the cache
- store: InMemoryObjectStore that counts calls and can inject failures
- cache: ImageCacheManager wired to the fake clock (max 100 entries, 300s TTL)
- service: ImageService built from store + cache
"""

import sys
from collections import OrderedDict
from pathlib import Path

import pytest

# Make the backend packages importable without installing
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from image_gallery import ImageCacheManager, ImageService, InMemoryObjectStore


TEST_TTL_SECONDS = 300
TEST_MAX_ENTRIES = 100


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ExplodingEntries(OrderedDict):
    """Entry map whose writes fail, to exercise the cache's fail-open path."""

    def __setitem__(self, key, value):
        raise RuntimeError("simulated cache write failure")


class UnreadableEntries(OrderedDict):
    """Entry map whose reads fail."""

    def get(self, key, default=None):
        raise RuntimeError("simulated cache read failure")


class UnclearableEntries(OrderedDict):
    """Entry map that refuses to be cleared."""

    def clear(self):
        raise RuntimeError("simulated clear failure")


# ============================================
# Fixtures
# ============================================

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryObjectStore(bucket_name="test-image-upload-bucket")


@pytest.fixture
def cache(clock):
    return ImageCacheManager(
        max_entries=TEST_MAX_ENTRIES,
        cache_ttl_seconds=TEST_TTL_SECONDS,
        clock=clock,
    )


@pytest.fixture
def service(store, cache):
    return ImageService(store, cache=cache)


# ============================================
# Helper Functions
# ============================================

def png_bytes(tag: str) -> bytes:
    """Small fake PNG payload, distinct per tag."""
    return b"\x89PNG\r\n\x1a\n" + tag.encode()


def assert_cache_consistent(cache: ImageCacheManager):
    """
    Assert the cache invariants hold.

    - size never exceeds max_entries
    - every key appears exactly once in recency order
    """
    keys = cache.keys()
    assert len(cache) <= cache.max_entries, \
        f"Cache holds {len(cache)} entries, max is {cache.max_entries}"
    assert len(keys) == len(set(keys)), f"Duplicate keys in recency order: {keys}"
    assert len(keys) == len(cache)
