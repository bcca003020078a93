from __future__ import annotations

import re
from datetime import UTC, date, datetime, timedelta

from pto_bot.exceptions import ParseError, SpanTooLongError, ValidationError

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# Monday=0 .. Friday=4
_LAST_WEEKDAY = 4


def today_utc() -> date:
    """Return the current UTC calendar date."""
    return datetime.now(UTC).date()


def parse_iso_date(value: str) -> date:
    """Parse a strict ``YYYY-MM-DD`` string. Raises ParseError otherwise."""
    if not isinstance(value, str) or not _ISO_DATE_RE.match(value.strip()):
        raise ParseError(f"Invalid date format from parser: {value!r}")
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        raise ParseError(f"Invalid calendar date from parser: {value!r}") from None


def span_days(start: date, end: date) -> int:
    """Number of calendar days in the inclusive range."""
    return (end - start).days + 1


def calculate_business_days(start: date, end: date) -> int:
    """Count Monday-Friday dates in the inclusive range [start, end].

    Plain calendar dates carry no timezone, so the count is identical for any
    caller. Holidays are not excluded.
    """
    if end < start:
        raise ValidationError("End date is before start date")

    total = span_days(start, end)
    full_weeks, extra = divmod(total, 7)
    count = full_weeks * 5

    current = start + timedelta(days=full_weeks * 7)
    for _ in range(extra):
        if current.weekday() <= _LAST_WEEKDAY:
            count += 1
        current += timedelta(days=1)
    return count


def validate_range(start: date, end: date, max_span_days: int) -> int:
    """Validate a requested range and return its business-day count.

    1. end must not precede start
    2. inclusive span must not exceed max_span_days
    3. range must contain at least one business day
    """
    if end < start:
        raise ValidationError("End date is before start date")

    span = span_days(start, end)
    if span > max_span_days:
        raise SpanTooLongError(span, max_span_days)

    business_days = calculate_business_days(start, end)
    if business_days <= 0:
        raise ValidationError("Requested range covers no business days")
    return business_days
