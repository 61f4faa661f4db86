"""
Credit system.

Free testing mode by default (costs 0, ENFORCE_CREDITS false). In
production set CREDIT_COST_GENERATION=1 and ENFORCE_CREDITS=true.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from stylist_app.config import settings
from stylist_app.credits.strategies import CreditStoreStrategy
from stylist_app.errors import CreditError
from stylist_app.observability.logger import append_log

# Balance reported while credits are not enforced
UNENFORCED_BALANCE = 999


@dataclass
class ConsumeResult:
    ok: bool
    remaining: Optional[int] = None


class CreditService:
    """Session credit ledger with check / enforce / consume semantics"""

    def __init__(self, store: CreditStoreStrategy):
        self.store = store

    async def check_credits(self, session_id: str) -> int:
        """
        Return the balance of a session, opening new sessions with
        the configured starting credits.
        """
        balance = await self.store.get_balance(session_id)
        if balance is None:
            balance = settings.starting_credits
            await self.store.set_balance(session_id, balance)
        return balance

    async def consume_credits(
        self,
        session_id: str,
        cost: int = 1,
        operation: str = "unknown",
    ) -> ConsumeResult:
        """
        Debit `cost` credits from a session.

        Returns:
            ConsumeResult with ok False (and the untouched balance) when
            the session cannot afford the operation
        """
        if not settings.enforce_credits:
            await append_log(
                "credits.skipped",
                sessionId=session_id,
                cost=cost,
                operation=operation,
                reason="Credits not enforced (testing mode)",
            )
            return ConsumeResult(ok=True, remaining=UNENFORCED_BALANCE)

        current = await self.check_credits(session_id)
        if current < cost:
            await append_log(
                "credits.insufficient",
                sessionId=session_id,
                cost=cost,
                available=current,
                operation=operation,
            )
            return ConsumeResult(ok=False, remaining=current)

        remaining = current - cost
        await self.store.set_balance(session_id, remaining)
        await append_log(
            "credits.consumed",
            sessionId=session_id,
            cost=cost,
            remaining=remaining,
            operation=operation,
        )
        return ConsumeResult(ok=True, remaining=remaining)

    @staticmethod
    def get_action_cost(action: str) -> int:
        """Cost of an action; edits are billed like generations"""
        if action == "analyze":
            return settings.credit_cost_analysis
        if action in ("generate", "edit"):
            return settings.credit_cost_generation
        return 0

    async def enforce_credits(self, session_id: str, action: str) -> None:
        """
        Raise CreditError when the session cannot afford `action`.

        Checks only; the debit happens after the operation succeeds.
        """
        cost = self.get_action_cost(action)
        if cost == 0 or not settings.enforce_credits:
            return

        available = await self.check_credits(session_id)
        if available < cost:
            raise CreditError(
                f"Insufficient credits. Required: {cost}, Available: {available}",
                required=cost,
                available=available,
            )

    async def add_credits(self, session_id: str, amount: int) -> Tuple[bool, int]:
        """Top up a session (testing or rewards)"""
        current = await self.check_credits(session_id)
        new_balance = current + amount
        await self.store.set_balance(session_id, new_balance)
        await append_log("credits.added", sessionId=session_id, amount=amount, newBalance=new_balance)
        return True, new_balance
