# ruff: noqa: TC003
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, computed_field


class Balance(BaseModel):
    """A user's PTO allowance and days taken."""

    allowance: int = 0
    taken: int = 0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def remaining(self) -> int:
        return self.allowance - self.taken


class BalanceCheck(BaseModel):
    """Advisory result of comparing requested days with the remaining balance."""

    allowed: bool
    remaining: int
    requested: int


class BalanceIncrement(BaseModel):
    """Days-taken value before and after an approval."""

    previous: int
    new: int


class PTOHistory(BaseModel):
    """Aggregate statistics over a user's approved requests."""

    total_requests: int
    last_request_date: datetime | None
    total_days_used: int
    avg_requests_per_month: float
    days_remaining: int
