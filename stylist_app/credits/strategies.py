"""
Credit ledger stores using Strategy Pattern.

A store only keeps balances; the debit rules live in CreditService.
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional


class CreditStoreStrategy(ABC):
    """Abstract balance store keyed by session id"""

    @abstractmethod
    async def get_balance(self, session_id: str) -> Optional[int]:
        """Return the balance, or None for a session never seen"""
        pass

    @abstractmethod
    async def set_balance(self, session_id: str, balance: int) -> None:
        pass


class InMemoryCreditStore(CreditStoreStrategy):
    """
    Per-process balances (standalone testing mode).

    Lost on restart; every worker has its own ledger.
    """

    def __init__(self):
        self._balances: Dict[str, int] = {}

    async def get_balance(self, session_id: str) -> Optional[int]:
        return self._balances.get(session_id)

    async def set_balance(self, session_id: str, balance: int) -> None:
        self._balances[session_id] = balance


class RedisCreditStore(CreditStoreStrategy):
    """Balances stored as integers under credits:<session_id>"""

    def __init__(self, redis_client, ttl: Optional[int] = None):
        """
        Args:
            redis_client: Redis client instance
            ttl: Optional expiry of idle sessions in seconds
        """
        self.redis = redis_client
        self.ttl = ttl

    def _key(self, session_id: str) -> str:
        return f"credits:{session_id}"

    async def get_balance(self, session_id: str) -> Optional[int]:
        raw = self.redis.get(self._key(session_id))
        if raw is None:
            return None
        return int(raw)

    async def set_balance(self, session_id: str, balance: int) -> None:
        if self.ttl:
            self.redis.setex(self._key(session_id), self.ttl, balance)
        else:
            self.redis.set(self._key(session_id), balance)
