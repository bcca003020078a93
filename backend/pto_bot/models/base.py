from __future__ import annotations

import uuid
from datetime import UTC, datetime


def new_request_id() -> str:
    """Generate a new 128-bit request identifier."""
    return uuid.uuid4().hex


def now_utc() -> datetime:
    """Return the current UTC time."""
    return datetime.now(UTC)
