from __future__ import annotations

from datetime import UTC, date, datetime
from typing import TYPE_CHECKING

from pto_bot.models.enums import RequestStatus
from pto_bot.schemas.balance import PTOHistory

if TYPE_CHECKING:
    from collections.abc import Iterable

    from pto_bot.schemas.request import PTORequest

_MONTHS_PER_YEAR = 12


def _one_year_before(today: date) -> datetime:
    try:
        anchor = today.replace(year=today.year - 1)
    except ValueError:
        # Feb 29 has no counterpart in the previous year.
        anchor = today.replace(year=today.year - 1, day=28)
    return datetime(anchor.year, anchor.month, anchor.day, tzinfo=UTC)


def summarize_history(rows: Iterable[PTORequest], remaining: int, today: date) -> PTOHistory:
    """Aggregate a user's approved requests.

    Days used count approved requests created in today's calendar year (UTC).
    The monthly average covers approvals created in the trailing 12 months.
    """
    approved = [r for r in rows if r.status == RequestStatus.APPROVED]

    total_days_used = sum(r.business_days for r in approved if r.timestamp.astimezone(UTC).year == today.year)

    window_start = _one_year_before(today)
    recent = [r for r in approved if r.timestamp > window_start]
    avg_per_month = round(len(recent) / _MONTHS_PER_YEAR, 1)

    last_request = max((r.timestamp for r in approved), default=None)

    return PTOHistory(
        total_requests=len(approved),
        last_request_date=last_request,
        total_days_used=total_days_used,
        avg_requests_per_month=avg_per_month,
        days_remaining=max(0, remaining),
    )
