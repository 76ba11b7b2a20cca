"""
ImageCacheManager tests

Covers lookup/insert/clear, TTL expiry, LRU eviction and the fail-open
behavior on bookkeeping faults.

Run:
    cd backend
    pytest tests/test_cache_manager.py -v
"""

import pytest

from image_gallery import CacheClearError, ConfigurationError, ImageCacheManager
from conftest import (
    TEST_TTL_SECONDS,
    ExplodingEntries,
    UnclearableEntries,
    UnreadableEntries,
    assert_cache_consistent,
    png_bytes,
)


# ============================================
# lookup / insert
# ============================================

class TestLookupInsert:

    def test_lookup_miss_returns_none(self, cache):
        assert cache.lookup("missing.png") is None
        assert len(cache) == 0
        assert cache.misses == 1

    def test_insert_then_lookup_returns_payload(self, cache):
        assert cache.insert("cat.png", png_bytes("cat"), "image/png") is True

        assert cache.lookup("cat.png") == (png_bytes("cat"), "image/png")
        assert cache.hits == 1

    def test_insert_copies_mutable_payload(self, cache):
        """Mutating the caller's buffer must not change the cached bytes."""
        buffer = bytearray(b"original")
        cache.insert("buf.png", buffer, "image/png")
        buffer[:] = b"mutated!"

        data, _ = cache.lookup("buf.png")
        assert data == b"original"
        assert isinstance(data, bytes)

    def test_reinsert_keeps_single_slot_at_recent_end(self, cache):
        cache.insert("a.png", b"a1", "image/png")
        cache.insert("b.png", b"b", "image/png")
        cache.insert("a.png", b"a2", "image/png")

        assert cache.keys() == ["b.png", "a.png"]
        assert cache.lookup("a.png") == (b"a2", "image/png")
        assert_cache_consistent(cache)

    def test_reinsert_resets_insertion_time(self, cache, clock):
        cache.insert("a.png", b"a1", "image/png")
        clock.advance(TEST_TTL_SECONDS - 10)
        cache.insert("a.png", b"a2", "image/png")
        clock.advance(20)

        assert cache.lookup("a.png") == (b"a2", "image/png")

    def test_contains_does_not_touch_recency(self, cache):
        cache.insert("a.png", b"a", "image/png")
        cache.insert("b.png", b"b", "image/png")

        assert "a.png" in cache
        assert cache.keys() == ["a.png", "b.png"]


# ============================================
# TTL
# ============================================

class TestExpiry:

    def test_entry_fresh_at_exact_ttl(self, cache, clock):
        cache.insert("cat.png", b"cat", "image/png")
        clock.advance(TEST_TTL_SECONDS)

        assert cache.lookup("cat.png") == (b"cat", "image/png")

    def test_entry_expires_after_ttl(self, cache, clock):
        cache.insert("cat.png", b"cat", "image/png")
        clock.advance(TEST_TTL_SECONDS + 0.001)

        assert cache.lookup("cat.png") is None
        assert "cat.png" not in cache
        assert cache.keys() == []
        assert cache.expirations == 1

    def test_hit_does_not_extend_ttl(self, cache, clock):
        cache.insert("cat.png", b"cat", "image/png")
        clock.advance(TEST_TTL_SECONDS - 1)
        assert cache.lookup("cat.png") is not None

        clock.advance(2)
        assert cache.lookup("cat.png") is None

    def test_cleanup_expired_removes_only_stale(self, cache, clock):
        cache.insert("old.png", b"old", "image/png")
        clock.advance(TEST_TTL_SECONDS - 5)
        cache.insert("new.png", b"new", "image/png")
        clock.advance(10)

        assert cache.cleanup_expired() == 1
        assert cache.keys() == ["new.png"]
        assert cache.cleanup_expired() == 0


# ============================================
# Capacity / LRU
# ============================================

class TestEviction:

    def test_capacity_bound_evicts_oldest(self, clock):
        cache = ImageCacheManager(max_entries=3, cache_ttl_seconds=60, clock=clock)
        for name in ("k0", "k1", "k2", "k3"):
            cache.insert(name, name.encode(), "image/png")

        assert len(cache) == 3
        assert "k0" not in cache
        assert cache.keys() == ["k1", "k2", "k3"]
        assert cache.evictions == 1

    def test_full_sized_cache_keeps_max_entries(self, cache):
        for i in range(cache.max_entries + 1):
            cache.insert(f"key-{i}", png_bytes(str(i)), "image/png")
            assert_cache_consistent(cache)

        assert len(cache) == cache.max_entries
        assert "key-0" not in cache
        assert f"key-{cache.max_entries}" in cache

    def test_hit_moves_key_to_recent_end(self, clock):
        """A then B inserted, A read, next overflow evicts B."""
        cache = ImageCacheManager(max_entries=3, cache_ttl_seconds=60, clock=clock)
        cache.insert("A", b"a", "image/png")
        cache.insert("B", b"b", "image/png")
        cache.insert("C", b"c", "image/png")

        assert cache.lookup("A") is not None
        cache.insert("D", b"d", "image/png")

        assert "A" in cache
        assert "B" not in cache
        assert cache.keys() == ["C", "A", "D"]

    def test_reinsert_at_capacity_does_not_evict(self, clock):
        cache = ImageCacheManager(max_entries=2, cache_ttl_seconds=60, clock=clock)
        cache.insert("A", b"a", "image/png")
        cache.insert("B", b"b", "image/png")
        cache.insert("A", b"a2", "image/png")

        assert cache.keys() == ["B", "A"]
        assert cache.evictions == 0

    def test_single_entry_cache(self, clock):
        cache = ImageCacheManager(max_entries=1, cache_ttl_seconds=60, clock=clock)
        cache.insert("A", b"a", "image/png")
        cache.insert("B", b"b", "image/png")

        assert cache.keys() == ["B"]


# ============================================
# Fail-open
# ============================================

class TestFailOpen:

    def test_insert_fault_returns_false(self, cache, caplog):
        cache._entries = ExplodingEntries()

        assert cache.insert("cat.png", b"cat", "image/png") is False
        assert "Failed to cache cat.png" in caplog.text

    def test_lookup_fault_is_a_miss(self, cache, caplog):
        cache._entries = UnreadableEntries()

        assert cache.lookup("cat.png") is None
        assert "treating as miss" in caplog.text


# ============================================
# clear
# ============================================

class TestClear:

    def test_clear_returns_count_and_empties(self, cache):
        cache.insert("a.png", b"a", "image/png")
        cache.insert("b.png", b"b", "image/png")

        assert cache.clear() == 2
        assert len(cache) == 0
        assert cache.keys() == []

    def test_clear_is_idempotent(self, cache):
        cache.insert("a.png", b"a", "image/png")

        assert cache.clear() == 1
        assert cache.clear() == 0
        assert len(cache) == 0

    def test_clear_failure_is_surfaced(self, cache):
        cache._entries = UnclearableEntries()

        with pytest.raises(CacheClearError) as exc_info:
            cache.clear()

        assert isinstance(exc_info.value.__cause__, RuntimeError)


# ============================================
# Construction / stats
# ============================================

@pytest.mark.parametrize("kwargs", [
    {"max_entries": 0},
    {"cache_ttl_seconds": 0},
    {"cache_ttl_seconds": -1},
])
def test_invalid_bounds_rejected(kwargs):
    with pytest.raises(ConfigurationError):
        ImageCacheManager(**kwargs)


def test_stats(cache, clock):
    cache.insert("a.png", b"12345", "image/png")
    cache.lookup("a.png")
    cache.lookup("b.png")

    stats = cache.get_stats()

    assert stats["total_entries"] == 1
    assert stats["max_entries"] == 100
    assert stats["total_size_bytes"] == 5
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["usage_percent"] == 1.0
    assert stats["cache_ttl_seconds"] == TEST_TTL_SECONDS
