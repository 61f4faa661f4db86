"""
Factory for creating cache instances.
Simple, clean factory with singleton caching.
"""

from enum import Enum
from .strategies import CacheStrategy, RedisCache, InMemoryCache, NullCache
from stylist_app.config import settings


class CacheBackend(Enum):
    """Available cache backends"""
    REDIS = "redis"
    MEMORY = "memory"
    NULL = "null"


def connect_redis():
    """
    Open a Redis client from settings and check it answers.

    Shared by the cache, rate limiter and credit ledger factories.
    Raises whatever redis raises when the server is unreachable.
    """
    import redis

    client = redis.from_url(
        settings.redis_url,
        decode_responses=False,
        socket_connect_timeout=2,
        socket_timeout=2,
    )
    client.ping()
    return client


class CacheFactory:
    """
    Simple factory for creating cache instances.

    Uses Singleton Pattern - creates instance once, reuses it.
    Gets configuration from settings (not passed as parameters).
    """

    _instance: CacheStrategy = None  # Single cached instance

    @classmethod
    def create(cls, backend: CacheBackend) -> CacheStrategy:
        """
        Create or return cached cache instance.

        Args:
            backend: Type of cache backend (from enum)

        Returns:
            Singleton cache instance
        """
        if cls._instance is not None:
            return cls._instance

        if backend == CacheBackend.REDIS:
            try:
                cls._instance = RedisCache(connect_redis())
                print("✅ Redis cache initialized")
            except Exception as e:
                print(f"⚠️  Redis connection failed: {e}")
                print("⚠️  Falling back to in-memory cache")
                cls._instance = InMemoryCache()
                print("✅ In-memory cache initialized (fallback)")

        elif backend == CacheBackend.MEMORY:
            cls._instance = InMemoryCache()
            print("✅ In-memory cache initialized")

        elif backend == CacheBackend.NULL:
            cls._instance = NullCache()
            print("✅ Null cache initialized")

        else:
            raise ValueError(f"Unknown cache backend: {backend}")

        return cls._instance

    @classmethod
    def clear_instance(cls):
        """Clear cached instance (for testing)"""
        cls._instance = None
