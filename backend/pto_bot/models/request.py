# ruff: noqa: TC003
from __future__ import annotations

from datetime import date, datetime

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from pto_bot.models.base import now_utc
from pto_bot.models.enums import RequestStatus


class PTORequestRecord(SQLModel, table=True):
    """Persisted PTO request row keyed by its request id."""

    __tablename__ = "pto_request"
    __table_args__ = (sa.Index("ix_pto_request_user_status", "user_id", "status"),)

    request_id: str = Field(primary_key=True, max_length=64)
    timestamp: datetime = Field(
        default_factory=now_utc,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
    )
    user_id: str = Field(index=True, max_length=64)
    user_name: str = Field(default="", max_length=255)
    start: date
    end: date
    business_days: int
    reason: str = ""
    status: str = Field(default=RequestStatus.PENDING, max_length=20, sa_column_kwargs={"server_default": "pending"})
    manager_id: str = Field(max_length=64)
    manager_name: str = Field(default="", max_length=255)
    decision_ts: datetime | None = Field(
        default=None,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
    )
    approver_id: str | None = Field(default=None, max_length=64)
