"""
Tests for the provider payload TTL cache.

Run with: python -m pytest tests/test_cache.py -v
"""

import logging

import pytest

from home_weather.cache import DEFAULT_TTL_SECONDS, TTLCache, make_key

logger = logging.getLogger(__name__)


class ManualClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def manual_clock():
    return ManualClock()


class TestTTLCache:

    def test_default_timeout_is_ten_minutes(self):
        assert DEFAULT_TTL_SECONDS == 600
        assert TTLCache().ttl_seconds == 600

    def test_hit_just_inside_timeout(self, manual_clock):
        cache = TTLCache(600, clock=manual_clock)
        key = make_key("weatherapi", "London", "current")
        cache.set(key, {"temp": 18})

        manual_clock.now += 600 - 0.001
        logger.info(f"[TEST] Reading at age {600 - 0.001}s")
        assert cache.get(key) == {"temp": 18}

    def test_miss_just_past_timeout(self, manual_clock):
        cache = TTLCache(600, clock=manual_clock)
        key = make_key("weatherapi", "London", "current")
        cache.set(key, {"temp": 18})

        manual_clock.now += 600.001
        assert cache.get(key) is None
        assert len(cache) == 0

    def test_miss_exactly_at_timeout(self, manual_clock):
        cache = TTLCache(600, clock=manual_clock)
        cache.set("k", 1)
        manual_clock.now += 600
        assert cache.get("k") is None

    def test_overwrite_restarts_timeout(self, manual_clock):
        cache = TTLCache(600, clock=manual_clock)
        cache.set("k", 1)
        manual_clock.now += 500
        cache.set("k", 2)
        manual_clock.now += 500
        assert cache.get("k") == 2

    def test_key_ignores_location_case_and_whitespace(self):
        assert make_key("weatherapi", " London ", "current") == make_key("weatherapi", "london", "current")
        assert make_key("weatherapi", "London", "current") != make_key("openweathermap", "London", "current")
        assert make_key("weatherapi", "London", "forecast:3") != make_key("weatherapi", "London", "forecast:1")

    def test_clear(self, manual_clock):
        cache = TTLCache(600, clock=manual_clock)
        cache.set("a", 1)
        cache.set("b", 2)
        assert len(cache) == 2
        cache.clear()
        assert cache.get("a") is None
        assert len(cache) == 0
