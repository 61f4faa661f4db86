"""
Cache strategies using Strategy Pattern.
Allows switching between different cache backends (Redis, In-Memory, Null).

Values are JSON-serialisable objects (analysis dicts, iterate results).
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple
import json
import time

from stylist_app.observability.logger import append_log, short_key


class CacheStrategy(ABC):
    """
    Abstract base class for cache strategies.

    All methods are async because cache operations involve I/O (network for Redis).
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """
        Get value from cache.

        Args:
            key: Cache key

        Returns:
            Cached value or None if not found / expired
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int = 3600) -> bool:
        """
        Set value in cache with TTL (Time To Live).

        Args:
            key: Cache key
            value: JSON-serialisable value
            ttl: Time to live in seconds (default: 1 hour)

        Returns:
            True if successful, False otherwise
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete key from cache"""
        pass

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check if key exists (and is not expired)"""
        pass

    @abstractmethod
    async def clear(self) -> bool:
        """Clear all cache entries"""
        pass


class RedisCache(CacheStrategy):
    """
    Redis cache implementation.

    Values are stored JSON-encoded with SETEX so Redis enforces the TTL.
    A failing Redis never breaks a request: errors are logged and
    reported as a miss (get) or a failed write (set/delete).
    """

    def __init__(self, redis_client):
        """
        Initialize Redis cache.

        Args:
            redis_client: Redis client instance (redis.Redis)
        """
        self.redis = redis_client

    async def get(self, key: str) -> Optional[Any]:
        try:
            raw = self.redis.get(key)
            if raw is None:
                return None
            if isinstance(raw, bytes):
                raw = raw.decode("utf-8")
            return json.loads(raw)
        except Exception as e:
            await append_log("cache.redis_get_error", key=short_key(key), error=str(e))
            return None

    async def set(self, key: str, value: Any, ttl: int = 3600) -> bool:
        try:
            return bool(self.redis.setex(key, ttl, json.dumps(value)))
        except Exception as e:
            await append_log("cache.redis_set_error", key=short_key(key), error=str(e))
            return False

    async def delete(self, key: str) -> bool:
        try:
            return bool(self.redis.delete(key))
        except Exception as e:
            await append_log("cache.redis_delete_error", key=short_key(key), error=str(e))
            return False

    async def exists(self, key: str) -> bool:
        try:
            return bool(self.redis.exists(key))
        except Exception as e:
            await append_log("cache.redis_exists_error", key=short_key(key), error=str(e))
            return False

    async def clear(self) -> bool:
        # The Redis database may be shared with the limiter and credit ledger
        await append_log("cache.redis_clear_not_implemented")
        return False


class InMemoryCache(CacheStrategy):
    """
    In-memory cache with TTL enforcement.

    Entries carry an absolute expiry; expired entries are dropped when read
    and swept by cleanup(), which set() runs at most once per interval.

    Used in development/testing environments and as the Redis fallback.
    """

    def __init__(self, cleanup_interval: int = 60, clock=time.monotonic):
        """
        Args:
            cleanup_interval: Minimum seconds between expiry sweeps
            clock: Monotonic time source (injectable for tests)
        """
        self._cache: Dict[str, Tuple[Any, float]] = {}
        self._clock = clock
        self._cleanup_interval = cleanup_interval
        self._last_cleanup = clock()

    def _expired(self, expires_at: float) -> bool:
        return expires_at <= self._clock()

    def cleanup(self) -> int:
        """Remove expired entries. Returns number of entries removed."""
        now = self._clock()
        expired = [k for k, (_, expires_at) in self._cache.items() if expires_at <= now]
        for key in expired:
            del self._cache[key]
        self._last_cleanup = now
        return len(expired)

    def size(self) -> int:
        return len(self._cache)

    async def get(self, key: str) -> Optional[Any]:
        entry = self._cache.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._expired(expires_at):
            del self._cache[key]
            return None
        return value

    async def set(self, key: str, value: Any, ttl: int = 3600) -> bool:
        if self._clock() - self._last_cleanup >= self._cleanup_interval:
            self.cleanup()
        self._cache[key] = (value, self._clock() + ttl)
        return True

    async def delete(self, key: str) -> bool:
        if key in self._cache:
            del self._cache[key]
            return True
        return False

    async def exists(self, key: str) -> bool:
        return await self.get(key) is not None

    async def clear(self) -> bool:
        self._cache.clear()
        return True


class NullCache(CacheStrategy):
    """
    Null Object Pattern - cache that does nothing.

    Used when caching is disabled or in tests that must always hit the AI.
    """

    async def get(self, key: str) -> Optional[Any]:
        return None

    async def set(self, key: str, value: Any, ttl: int = 3600) -> bool:
        return True

    async def delete(self, key: str) -> bool:
        return True

    async def exists(self, key: str) -> bool:
        return False

    async def clear(self) -> bool:
        return True
