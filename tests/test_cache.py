"""
Tests for cache strategies, the cache factory and the cache facade.
"""
import asyncio

from conftest import FakeClock, FakeRedis

from stylist_app.cache import factory as cache_factory
from stylist_app.cache.factory import CacheBackend, CacheFactory
from stylist_app.cache.service import CacheService, analysis_cache_key, generation_cache_key
from stylist_app.cache.strategies import InMemoryCache, NullCache, RedisCache
from stylist_app.config import settings


class TestInMemoryCache:
    """Test TTL handling of the in-memory cache"""

    def test_set_and_get(self):
        cache = InMemoryCache()

        asyncio.run(cache.set("k", {"a": 1}, ttl=60))

        assert asyncio.run(cache.get("k")) == {"a": 1}
        assert asyncio.run(cache.exists("k")) is True

    def test_entry_expires_after_ttl(self):
        clock = FakeClock()
        cache = InMemoryCache(clock=clock)
        asyncio.run(cache.set("k", "v", ttl=10))

        clock.advance(9)
        assert asyncio.run(cache.get("k")) == "v"

        clock.advance(1)
        assert asyncio.run(cache.get("k")) is None
        assert cache.size() == 0

    def test_cleanup_removes_only_expired(self):
        clock = FakeClock()
        cache = InMemoryCache(clock=clock)
        asyncio.run(cache.set("short", 1, ttl=5))
        asyncio.run(cache.set("long", 2, ttl=500))

        clock.advance(10)
        removed = cache.cleanup()

        assert removed == 1
        assert cache.size() == 1
        assert asyncio.run(cache.get("long")) == 2

    def test_set_sweeps_expired_entries_periodically(self):
        clock = FakeClock()
        cache = InMemoryCache(cleanup_interval=60, clock=clock)
        asyncio.run(cache.set("old", 1, ttl=5))

        clock.advance(61)
        asyncio.run(cache.set("new", 2, ttl=5))

        assert cache.size() == 1

    def test_delete_and_clear(self):
        cache = InMemoryCache()
        asyncio.run(cache.set("a", 1))
        asyncio.run(cache.set("b", 2))

        assert asyncio.run(cache.delete("a")) is True
        assert asyncio.run(cache.delete("a")) is False

        asyncio.run(cache.clear())
        assert cache.size() == 0


class TestNullCache:
    """Null cache never stores anything"""

    def test_always_misses(self):
        cache = NullCache()
        asyncio.run(cache.set("k", "v"))

        assert asyncio.run(cache.get("k")) is None
        assert asyncio.run(cache.exists("k")) is False


class TestRedisCache:
    """Test the Redis strategy against a fake client"""

    def test_values_are_json_encoded_with_ttl(self):
        redis = FakeRedis()
        cache = RedisCache(redis)

        asyncio.run(cache.set("analysis:x", {"faceOk": True}, ttl=120))

        assert redis.store["analysis:x"] == b'{"faceOk": true}'
        assert redis.expirations["analysis:x"] == 120
        assert asyncio.run(cache.get("analysis:x")) == {"faceOk": True}

    def test_failing_redis_reads_as_miss(self):
        cache = RedisCache(FakeRedis(fail=True))

        assert asyncio.run(cache.get("k")) is None
        assert asyncio.run(cache.set("k", 1)) is False
        assert asyncio.run(cache.delete("k")) is False


class TestCacheFactory:
    """Test backend selection and the Redis fallback"""

    def test_memory_backend(self):
        cache = CacheFactory.create(CacheBackend.MEMORY)

        assert isinstance(cache, InMemoryCache)
        assert CacheFactory.create(CacheBackend.NULL) is cache  # singleton

    def test_redis_unreachable_falls_back_to_memory(self, monkeypatch):
        def broken():
            raise ConnectionError("connection refused")

        monkeypatch.setattr(cache_factory, "connect_redis", broken)

        cache = CacheFactory.create(CacheBackend.REDIS)

        assert isinstance(cache, InMemoryCache)

    def test_redis_backend(self, monkeypatch):
        monkeypatch.setattr(cache_factory, "connect_redis", lambda: FakeRedis())

        cache = CacheFactory.create(CacheBackend.REDIS)

        assert isinstance(cache, RedisCache)


class TestCacheService:
    """Test the cache facade"""

    def test_keys(self):
        assert analysis_cache_key("abc", "es") == "analysis:abc:es"
        assert generation_cache_key("abc", "más corto") != generation_cache_key("abc", "más largo")
        assert generation_cache_key("abc", "x").startswith("generation:abc:")

    def test_round_trip_with_default_ttl(self, monkeypatch):
        monkeypatch.setattr(settings, "cache_ttl", 77)
        redis = FakeRedis()
        service = CacheService(RedisCache(redis))

        asyncio.run(service.set_cached("k", {"v": 1}))

        assert redis.expirations["k"] == 77
        assert asyncio.run(service.get_cached("k")) == {"v": 1}

    def test_disabled_cache_is_bypassed(self, monkeypatch):
        cache = InMemoryCache()
        service = CacheService(cache)
        monkeypatch.setattr(settings, "cache_enabled", False)

        asyncio.run(service.set_cached("k", 1))

        assert cache.size() == 0
        assert asyncio.run(service.get_cached("k")) is None

    def test_delete_and_clear(self):
        cache = InMemoryCache()
        service = CacheService(cache)
        asyncio.run(service.set_cached("a", 1))
        asyncio.run(service.set_cached("b", 2))

        asyncio.run(service.delete_cached("a"))
        assert asyncio.run(service.get_cached("a")) is None

        asyncio.run(service.clear_cache())
        assert cache.size() == 0

    def test_stats(self):
        memory = CacheService(InMemoryCache())
        asyncio.run(memory.set_cached("k", 1))

        assert memory.stats() == {"type": "in-memory", "size": 1}
        assert CacheService(RedisCache(FakeRedis())).stats() == {"type": "redis"}
