"""
Toy credit ledger for AI operations.
"""

from .strategies import CreditStoreStrategy, InMemoryCreditStore, RedisCreditStore
from .factory import CreditStoreFactory, CreditBackend
from .service import CreditService, ConsumeResult, UNENFORCED_BALANCE

__all__ = [
    "CreditStoreStrategy",
    "InMemoryCreditStore",
    "RedisCreditStore",
    "CreditStoreFactory",
    "CreditBackend",
    "CreditService",
    "ConsumeResult",
    "UNENFORCED_BALANCE",
]
