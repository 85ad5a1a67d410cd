"""
Tests for the fingerprint cache.

Run with: python -m pytest tests/test_cache_manager.py -v
"""

import logging

import pytest

from solar_irradiance.cache_manager import FingerprintCache, NullCache, build_cache_key

logger = logging.getLogger(__name__)


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return FingerprintCache(clock=clock)


class TestBuildCacheKey:

    def test_joins_parts(self):
        key = build_cache_key("pvgis:series", "30.27,120.15", "2020-2020")
        assert key == "pvgis:series:30.27,120.15:2020-2020"

    def test_bool_and_none_parts(self):
        assert build_cache_key("cams", True, False, None) == "cams:1:0:-"

    def test_distinct_parameters_distinct_keys(self):
        a = build_cache_key("cams:series", "1,2", "2020-01-01", "2020-01-02", "1h", "cams_radiation", False)
        b = build_cache_key("cams:series", "1,2", "2020-01-01", "2020-01-02", "1h", "cams_radiation", True)
        assert a != b


class TestFingerprintCache:

    def test_miss_then_hit(self, cache):
        assert cache.get("k") is None
        cache.set("k", {"v": 1}, ttl_ms=1000)
        assert cache.get("k") == {"v": 1}
        logger.info(f"[TEST] hits={cache.hits} misses={cache.misses}")
        assert cache.hits == 1
        assert cache.misses == 1

    def test_visible_until_expiry(self, cache, clock):
        cache.set("k", "value", ttl_ms=5000)
        clock.advance(5.0)
        assert cache.get("k") == "value"

    def test_expired_read_is_miss_and_evicts(self, cache, clock):
        cache.set("k", "value", ttl_ms=5000)
        clock.advance(5.001)
        assert "k" not in cache
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_set_replaces_entry(self, cache, clock):
        cache.set("k", "old", ttl_ms=1000)
        clock.advance(0.9)
        cache.set("k", "new", ttl_ms=1000)
        clock.advance(0.5)
        assert cache.get("k") == "new"

    def test_clear(self, cache):
        cache.set("a", 1, ttl_ms=1000)
        cache.set("b", 2, ttl_ms=1000)
        assert len(cache) == 2
        cache.clear()
        assert len(cache) == 0


class TestNullCache:

    def test_never_stores(self):
        cache = NullCache()
        cache.set("k", "v", ttl_ms=60_000)
        assert cache.get("k") is None
        assert len(cache) == 0
