"""Tests for the TTL cache."""
from tutor_relay.utils.cache import TTLCache


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestTTLCache:
    """Tests for TTLCache."""

    def test_set_and_get(self):
        cache = TTLCache(ttl_seconds=10)
        cache.set("k", [1])
        assert cache.get("k") == [1]
        assert cache.get("missing") is None

    def test_expiry(self):
        clock = FakeClock()
        cache = TTLCache(ttl_seconds=10, clock=clock)
        cache.set("k", "v")
        clock.now = 10
        assert cache.get("k") is None
        assert cache.size == 0

    def test_disabled(self):
        cache = TTLCache(ttl_seconds=0)
        cache.set("k", "v")
        assert cache.enabled is False
        assert cache.get("k") is None

    def test_evicts_oldest_when_full(self):
        clock = FakeClock()
        cache = TTLCache(ttl_seconds=100, max_size=2, clock=clock)
        cache.set("a", 1)
        clock.now = 1
        cache.set("b", 2)
        clock.now = 2
        cache.set("c", 3)
        assert cache.get("a") is None
        assert cache.get("b") == 2
        assert cache.get("c") == 3

    def test_make_key(self):
        assert TTLCache.make_key("search", query="q", limit=3) == "search:limit=3&query=q"
        assert TTLCache.make_key("search") == "search"
        assert TTLCache.make_key("search", query=None) == "search"

    def test_clear(self):
        cache = TTLCache(ttl_seconds=10)
        cache.set("k", "v")
        cache.clear()
        assert cache.size == 0
