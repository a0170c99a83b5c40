"""
Unit Tests for ResilienceCache

Tests TTL expiry, LRU eviction, last-known values and cache key derivation.
"""

import pytest

from evassist.core.resilience.cache import CacheEntry, ResilienceCache, make_cache_key


@pytest.mark.unit
class TestCacheKey:
    def test_key_is_prefixed_with_operation(self):
        key = make_cache_key("get_station_status", {"station_id": "35"})
        assert key.startswith("upstream:get_station_status:")

    def test_key_ignores_argument_order_and_none_values(self):
        a = make_cache_key("get_session_history", {"user_id": "u1", "limit": 5})
        b = make_cache_key("get_session_history", {"limit": 5, "user_id": "u1", "cursor": None})
        assert a == b

    def test_different_arguments_give_different_keys(self):
        a = make_cache_key("get_station_status", {"station_id": "35"})
        b = make_cache_key("get_station_status", {"station_id": "36"})
        assert a != b

    def test_different_operations_give_different_keys(self):
        assert make_cache_key("get_tariff", {"station_id": "35"}) != make_cache_key(
            "get_station_status", {"station_id": "35"}
        )


@pytest.mark.unit
class TestCacheExpiry:
    def test_entry_is_fresh_before_ttl(self, clock):
        # Arrange
        cache = ResilienceCache(clock=clock)
        cache.set("k", {"status": "Available"}, ttl=60)

        # Act
        clock.advance(59.9)

        # Assert
        assert cache.get("k") == {"status": "Available"}

    def test_entry_expires_at_ttl(self, clock):
        # Arrange
        cache = ResilienceCache(clock=clock)
        cache.set("k", "v", ttl=60)

        # Act
        clock.advance(60)

        # Assert
        assert cache.get("k") is None
        assert len(cache) == 0
        assert cache.evictions == 1

    def test_non_positive_ttl_is_rejected(self):
        cache = ResilienceCache()
        with pytest.raises(ValueError):
            cache.set("k", "v", ttl=0)

    def test_cache_entry_expiry_boundary(self):
        entry = CacheEntry(key="k", value=1, expires_at=100.0)
        assert not entry.is_expired(99.99)
        assert entry.is_expired(100.0)


@pytest.mark.unit
class TestCacheEviction:
    def test_least_recently_used_entry_is_evicted(self, clock):
        # Arrange
        cache = ResilienceCache(max_entries=2, clock=clock)
        cache.set("a", 1, ttl=60)
        cache.set("b", 2, ttl=60)
        cache.get("a")  # "b" is now least recently used

        # Act
        cache.set("c", 3, ttl=60)

        # Assert
        assert cache.get("a") == 1
        assert cache.get("b") is None
        assert cache.get("c") == 3

    def test_max_entries_must_be_positive(self):
        with pytest.raises(ValueError):
            ResilienceCache(max_entries=0)


@pytest.mark.unit
class TestLastKnown:
    def test_last_known_survives_expiry(self, clock):
        cache = ResilienceCache(clock=clock)
        cache.set("k", "old", ttl=30)
        clock.advance(3600)

        assert cache.get("k") is None
        assert cache.last_known("k") == "old"

    def test_last_known_tracks_latest_value(self, clock):
        cache = ResilienceCache(clock=clock)
        cache.set("k", "first", ttl=30)
        cache.set("k", "second", ttl=30)
        assert cache.last_known("k") == "second"

    def test_delete_forgets_last_known(self):
        cache = ResilienceCache()
        cache.set("k", "v", ttl=30)
        assert cache.delete("k") is True
        assert cache.last_known("k") is None


@pytest.mark.unit
class TestCacheStats:
    def test_hits_and_misses_are_counted(self, clock):
        cache = ResilienceCache(clock=clock)
        cache.get("missing")
        cache.set("k", "v", ttl=30)
        cache.get("k")
        cache.get("k")

        stats = cache.stats()
        assert stats["hits"] == 2
        assert stats["misses"] == 1
        assert stats["size"] == 1
        assert stats["hit_rate"] == pytest.approx(2 / 3)
