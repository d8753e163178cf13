"""Tests for the TTL caches."""

from __future__ import annotations

from contextkit.cache import CacheService, TTLCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestTTLCache:
    def test_set_and_get(self):
        cache = TTLCache("test", default_ttl=10)
        cache.set("k", [1, 2])
        assert cache.get("k") == [1, 2]
        assert "k" in cache
        assert len(cache) == 1

    def test_missing_key(self):
        assert TTLCache("test").get("nope") is None

    def test_expiry(self):
        clock = FakeClock()
        cache = TTLCache("test", default_ttl=5, clock=clock)
        cache.set("k", "v")
        clock.now += 5
        assert cache.get("k") == "v"
        clock.now += 0.1
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_per_entry_ttl(self):
        clock = FakeClock()
        cache = TTLCache("test", default_ttl=100, clock=clock)
        cache.set("short", 1, ttl=1)
        cache.set("long", 2)
        clock.now += 2
        assert cache.get("short") is None
        assert cache.get("long") == 2

    def test_clear_scope(self):
        cache = TTLCache("test")
        cache.set("a", 1, scope="/ws1")
        cache.set("b", 2, scope="/ws1")
        cache.set("c", 3, scope="/ws2")
        assert cache.clear("/ws1") == 2
        assert cache.get("c") == 3
        assert cache.get("a") is None

    def test_clear_all(self):
        cache = TTLCache("test")
        cache.set("a", 1)
        cache.set("b", 2)
        assert cache.clear() == 2
        assert len(cache) == 0

    def test_invalidate(self):
        cache = TTLCache("test")
        cache.set("a", 1)
        assert cache.invalidate("a") is True
        assert cache.invalidate("a") is False

    def test_stats(self):
        clock = FakeClock()
        cache = TTLCache("test", clock=clock)
        cache.set("a", 1)
        clock.now += 1.5
        stats = cache.stats()
        assert stats.size == 1
        assert stats.entries[0].key == "a"
        assert stats.entries[0].age_ms == 1500.0
        assert stats.to_dict() == {"size": 1, "entries": [{"key": "a", "age_ms": 1500.0}]}


class TestCacheService:
    def test_invalidate_workspace(self):
        service = CacheService()
        service.scan.set("/ws", ["a"], scope="/ws")
        service.selection.set("key1", ["a"], scope="/ws")
        service.selection.set("key2", ["b"], scope="/other")
        service.invalidate_workspace("/ws")
        assert service.scan.get("/ws") is None
        assert service.selection.get("key1") is None
        assert service.selection.get("key2") == ["b"]

    def test_stats_and_close(self):
        service = CacheService()
        service.scan.set("/ws", [])
        stats = service.stats()
        assert stats["scan"].size == 1
        assert stats["selection"].size == 0
        service.close()
        assert service.closed
        assert len(service.scan) == 0
