from __future__ import annotations

import asyncio
from typing import Protocol, runtime_checkable

from pto_bot.exceptions import UserNotFoundError
from pto_bot.schemas.balance import Balance, BalanceIncrement


@runtime_checkable
class BalanceStore(Protocol):
    """Row store of per-user allowance and days taken."""

    async def get_balance(self, user_id: str) -> Balance:
        """Return the user's balance. Unknown users get a zero balance."""
        ...

    async def increment_taken(self, user_id: str, days: int) -> BalanceIncrement:
        """Add ``days`` to the user's taken count. Raises UserNotFoundError for unknown users."""
        ...

    async def ping(self) -> None:
        """Raise if the backing store is unreachable."""
        ...


class InMemoryBalanceStore:
    """In-memory implementation for development and tests."""

    def __init__(self) -> None:
        self._balances: dict[str, Balance] = {}
        self._lock = asyncio.Lock()

    def seed(self, user_id: str, allowance: int, taken: int = 0) -> None:
        """Seed a balance row for testing."""
        self._balances[user_id] = Balance(allowance=allowance, taken=taken)

    async def get_balance(self, user_id: str) -> Balance:
        balance = self._balances.get(user_id)
        return balance.model_copy() if balance is not None else Balance()

    async def increment_taken(self, user_id: str, days: int) -> BalanceIncrement:
        async with self._lock:
            balance = self._balances.get(user_id)
            if balance is None:
                raise UserNotFoundError(user_id)
            updated = Balance(allowance=balance.allowance, taken=balance.taken + days)
            self._balances[user_id] = updated
            return BalanceIncrement(previous=balance.taken, new=updated.taken)

    async def ping(self) -> None:
        return None
