"""
Cache facade used by the routes: honours the cache_enabled switch,
applies default TTLs and logs hits and misses.
"""

import hashlib
import time
from typing import Any, Dict, Optional

from stylist_app.cache.strategies import CacheStrategy, InMemoryCache
from stylist_app.config import settings
from stylist_app.observability.logger import append_log, short_key


def analysis_cache_key(image_hash: str, locale: str) -> str:
    """Cache key for an image analysis"""
    return f"analysis:{image_hash}:{locale}"


def generation_cache_key(image_hash: str, instruction: str) -> str:
    """Cache key for an edit of an image with a given instruction"""
    instruction_hash = hashlib.md5(instruction.encode("utf-8")).hexdigest()[:8]
    return f"generation:{image_hash}:{instruction_hash}"


class CacheService:
    """
    Cache-Aside helper around a CacheStrategy.

    Every method is a no-op (get returns None) when caching is disabled.
    """

    def __init__(self, cache: CacheStrategy):
        self.cache = cache

    async def get_cached(self, key: str) -> Optional[Any]:
        if not settings.cache_enabled:
            return None

        started = time.monotonic()
        value = await self.cache.get(key)
        await append_log(
            "cache.hit" if value is not None else "cache.miss",
            key=short_key(key),
            durationMs=int((time.monotonic() - started) * 1000),
        )
        return value

    async def set_cached(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        if not settings.cache_enabled:
            return

        ttl = ttl or settings.cache_ttl
        await self.cache.set(key, value, ttl=ttl)
        await append_log("cache.set", key=short_key(key), ttl=ttl)

    async def delete_cached(self, key: str) -> None:
        if not settings.cache_enabled:
            return

        await self.cache.delete(key)
        await append_log("cache.delete", key=short_key(key))

    async def clear_cache(self) -> None:
        await self.cache.clear()
        await append_log("cache.cleared")

    def stats(self) -> Dict[str, Any]:
        if isinstance(self.cache, InMemoryCache):
            return {"type": "in-memory", "size": self.cache.size()}
        return {"type": self.cache.__class__.__name__.replace("Cache", "").lower() or "unknown"}
