"""
Factory for creating rate limiter instances.
"""

from enum import Enum
from .strategies import RateLimiterStrategy, InMemoryRateLimiter, RedisRateLimiter
from stylist_app.cache.factory import connect_redis
from stylist_app.config import settings


class RateLimitBackend(Enum):
    """Available rate limiter backends"""
    REDIS = "redis"
    MEMORY = "memory"


class RateLimiterFactory:
    """
    Simple factory for creating rate limiter instances.

    Gets configuration from settings (not passed as parameters).
    """

    _instance: RateLimiterStrategy = None  # Single cached instance

    @classmethod
    def create(cls, backend: RateLimitBackend) -> RateLimiterStrategy:
        """
        Create or return cached rate limiter instance.

        Args:
            backend: Type of limiter backend (from enum)

        Returns:
            Singleton rate limiter instance
        """
        if cls._instance is not None:
            return cls._instance

        limit = settings.rate_limit_per_minute
        window = settings.rate_limit_window_seconds

        if backend == RateLimitBackend.REDIS:
            try:
                cls._instance = RedisRateLimiter(connect_redis(), limit, window)
                print("✅ Redis rate limiter initialized")
            except Exception as e:
                print(f"⚠️  Redis connection failed: {e}")
                print("⚠️  Falling back to in-memory rate limiter")
                cls._instance = InMemoryRateLimiter(limit, window)

        elif backend == RateLimitBackend.MEMORY:
            cls._instance = InMemoryRateLimiter(limit, window)
            print("✅ In-memory rate limiter initialized")

        else:
            raise ValueError(f"Unknown rate limit backend: {backend}")

        return cls._instance

    @classmethod
    def clear_instance(cls):
        """Clear cached instance (for testing)"""
        cls._instance = None
