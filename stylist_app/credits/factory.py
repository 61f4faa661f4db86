"""
Factory for creating credit store instances.
"""

from enum import Enum
from .strategies import CreditStoreStrategy, InMemoryCreditStore, RedisCreditStore
from stylist_app.cache.factory import connect_redis


class CreditBackend(Enum):
    """Available credit ledger backends"""
    REDIS = "redis"
    MEMORY = "memory"


class CreditStoreFactory:
    """Singleton factory for the credit ledger store"""

    _instance: CreditStoreStrategy = None  # Single cached instance

    @classmethod
    def create(cls, backend: CreditBackend) -> CreditStoreStrategy:
        if cls._instance is not None:
            return cls._instance

        if backend == CreditBackend.REDIS:
            try:
                cls._instance = RedisCreditStore(connect_redis())
                print("✅ Redis credit store initialized")
            except Exception as e:
                print(f"⚠️  Redis connection failed: {e}")
                print("⚠️  Falling back to in-memory credit store")
                cls._instance = InMemoryCreditStore()

        elif backend == CreditBackend.MEMORY:
            cls._instance = InMemoryCreditStore()
            print("✅ In-memory credit store initialized")

        else:
            raise ValueError(f"Unknown credit backend: {backend}")

        return cls._instance

    @classmethod
    def clear_instance(cls):
        """Clear cached instance (for testing)"""
        cls._instance = None
