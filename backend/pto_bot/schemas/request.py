# ruff: noqa: TC001, TC003
from __future__ import annotations

from datetime import date, datetime
from typing import Self

from pydantic import BaseModel, Field, model_validator

from pto_bot.models.enums import Decision, RequestStatus
from pto_bot.schemas.balance import BalanceIncrement

# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------


class ExtractedDates(BaseModel):
    """Raw extractor output. Dates are validated by the lifecycle, not here."""

    start: str
    end: str
    reason: str | None = None


# ---------------------------------------------------------------------------
# Draft and persisted request
# ---------------------------------------------------------------------------


class DraftRequest(BaseModel):
    """A parsed, unconfirmed PTO request. Never persisted."""

    user_id: str
    user_name: str = ""
    start: date
    end: date
    business_days: int = Field(gt=0)
    reason: str

    @model_validator(mode="after")
    def _validate_dates(self) -> Self:
        if self.end < self.start:
            msg = "end must not be before start"
            raise ValueError(msg)
        return self


class PTORequest(BaseModel):
    """A persisted PTO request row."""

    request_id: str
    timestamp: datetime
    user_id: str
    user_name: str = ""
    start: date
    end: date
    business_days: int
    reason: str = ""
    status: RequestStatus = RequestStatus.PENDING
    manager_id: str
    manager_name: str = ""
    decision_ts: datetime | None = None
    approver_id: str | None = None

    @classmethod
    def from_draft(
        cls,
        draft: DraftRequest,
        *,
        request_id: str,
        timestamp: datetime,
        manager_id: str,
        manager_name: str = "",
    ) -> PTORequest:
        return cls(
            request_id=request_id,
            timestamp=timestamp,
            user_id=draft.user_id,
            user_name=draft.user_name,
            start=draft.start,
            end=draft.end,
            business_days=draft.business_days,
            reason=draft.reason,
            status=RequestStatus.PENDING,
            manager_id=manager_id,
            manager_name=manager_name,
        )


# ---------------------------------------------------------------------------
# Lifecycle results
# ---------------------------------------------------------------------------


class SubmitResult(BaseModel):
    """Outcome of submitting a draft. ``created`` is False on a replayed submit."""

    request_id: str
    request: PTORequest
    created: bool


class DecisionResult(BaseModel):
    """Outcome of a manager decision.

    ``changed`` is False when the request already carried this decision and
    nothing was written. ``balance_error`` is set when the approval stands but
    the balance increment failed.
    """

    request: PTORequest
    decision: Decision
    changed: bool
    balance: BalanceIncrement | None = None
    balance_error: str | None = None
