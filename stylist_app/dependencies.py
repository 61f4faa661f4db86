"""
FastAPI dependencies for dependency injection.

This module provides singleton instances of the cache, rate limiter,
credit ledger, image storage, registry and vendor clients that are
injected into the services and routes.

Pattern: Dependency Injection
- Loose coupling between components
- Easy to test (override with in-memory strategies / fake clients)
- Flexible (swap implementations via config)
"""

from functools import lru_cache

from fastapi import Depends

from stylist_app.cache.factory import CacheFactory, CacheBackend
from stylist_app.cache.service import CacheService
from stylist_app.cache.strategies import CacheStrategy
from stylist_app.config import settings
from stylist_app.credits.factory import CreditStoreFactory, CreditBackend
from stylist_app.credits.service import CreditService
from stylist_app.credits.strategies import CreditStoreStrategy
from stylist_app.ratelimit.factory import RateLimiterFactory, RateLimitBackend
from stylist_app.ratelimit.strategies import RateLimiterStrategy
from stylist_app.services.gemini import VisionAnalyzer
from stylist_app.services.nanobanana import ImageEditorClient
from stylist_app.storage.factory import StorageFactory
from stylist_app.storage.registry import GeneratedImageRegistry
from stylist_app.storage.strategies import ImageStorageStrategy


@lru_cache()
def get_cache() -> CacheStrategy:
    """
    Get cache instance (singleton).

    Factory gets config from settings internally.
    @lru_cache ensures this is called only once.
    """
    backend = CacheBackend(settings.cache_backend)
    return CacheFactory.create(backend)


@lru_cache()
def get_rate_limiter() -> RateLimiterStrategy:
    """Get rate limiter instance (singleton)"""
    backend = RateLimitBackend(settings.rate_limit_backend)
    return RateLimiterFactory.create(backend)


@lru_cache()
def get_credit_store() -> CreditStoreStrategy:
    """Get credit store instance (singleton)"""
    backend = CreditBackend(settings.credits_backend)
    return CreditStoreFactory.create(backend)


@lru_cache()
def get_storage() -> ImageStorageStrategy:
    """Get image storage instance (singleton): Cloudinary when configured, else local"""
    return StorageFactory.create()


@lru_cache()
def get_registry() -> GeneratedImageRegistry:
    return GeneratedImageRegistry(settings.registry_path)


@lru_cache()
def get_analyzer() -> VisionAnalyzer:
    return VisionAnalyzer()


def get_cache_service(cache: CacheStrategy = Depends(get_cache)) -> CacheService:
    return CacheService(cache)


def get_credit_service(store: CreditStoreStrategy = Depends(get_credit_store)) -> CreditService:
    return CreditService(store)


def get_editor(storage: ImageStorageStrategy = Depends(get_storage)) -> ImageEditorClient:
    return ImageEditorClient(storage)


def get_stylist_service(
    storage: ImageStorageStrategy = Depends(get_storage),
    cache: CacheService = Depends(get_cache_service),
    limiter: RateLimiterStrategy = Depends(get_rate_limiter),
    credits: CreditService = Depends(get_credit_service),
    registry: GeneratedImageRegistry = Depends(get_registry),
    analyzer: VisionAnalyzer = Depends(get_analyzer),
    editor: ImageEditorClient = Depends(get_editor),
):
    """
    Get StylistService with all dependencies injected.

    Controllers depend on the service; the service depends on
    infrastructure (storage, cache, limiter, ledger) and vendor clients.
    """
    from stylist_app.services.stylist_service import StylistService
    return StylistService(
        storage=storage,
        cache=cache,
        limiter=limiter,
        credits=credits,
        registry=registry,
        analyzer=analyzer,
        editor=editor,
    )
