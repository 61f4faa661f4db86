"""
Cache module for the stylist service.
Implements Strategy Pattern for flexible cache backends.
"""

from .strategies import CacheStrategy, RedisCache, InMemoryCache, NullCache
from .factory import CacheFactory, CacheBackend
from .service import CacheService, analysis_cache_key, generation_cache_key

__all__ = [
    "CacheStrategy",
    "RedisCache",
    "InMemoryCache",
    "NullCache",
    "CacheFactory",
    "CacheBackend",
    "CacheService",
    "analysis_cache_key",
    "generation_cache_key",
]
