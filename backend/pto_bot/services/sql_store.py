"""SQLModel-backed request and balance stores.

The request table's primary key makes inserts idempotent, and decisions are
applied with a conditional ``UPDATE ... WHERE status = 'pending'`` so two
concurrent decisions on the same row cannot both win.
"""

# ruff: noqa: TC003
from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import select, text, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import col

from pto_bot.exceptions import UpstreamError, UserNotFoundError
from pto_bot.models.balance import PTOBalanceRecord
from pto_bot.models.enums import RequestStatus
from pto_bot.models.request import PTORequestRecord
from pto_bot.schemas.balance import Balance, BalanceIncrement
from pto_bot.schemas.request import PTORequest

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes returned by drivers that drop the offset."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


def _to_record(request: PTORequest) -> PTORequestRecord:
    return PTORequestRecord(
        request_id=request.request_id,
        timestamp=request.timestamp,
        user_id=request.user_id,
        user_name=request.user_name,
        start=request.start,
        end=request.end,
        business_days=request.business_days,
        reason=request.reason,
        status=request.status.value,
        manager_id=request.manager_id,
        manager_name=request.manager_name,
        decision_ts=request.decision_ts,
        approver_id=request.approver_id,
    )


def _from_record(record: PTORequestRecord) -> PTORequest:
    """Map a request row to its named-field record."""
    return PTORequest(
        request_id=record.request_id,
        timestamp=_as_utc(record.timestamp),
        user_id=record.user_id,
        user_name=record.user_name,
        start=record.start,
        end=record.end,
        business_days=record.business_days,
        reason=record.reason,
        status=RequestStatus(record.status),
        manager_id=record.manager_id,
        manager_name=record.manager_name,
        decision_ts=_as_utc(record.decision_ts),
        approver_id=record.approver_id,
    )


# ---------------------------------------------------------------------------
# Request store
# ---------------------------------------------------------------------------


class SqlRequestStore:
    """Request rows in the ``pto_request`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def ensure_row(self, request: PTORequest) -> tuple[PTORequest, bool]:
        try:
            async with self._session_factory() as session:
                existing = await session.get(PTORequestRecord, request.request_id)
                if existing is not None:
                    logger.info("Request %s already exists, skipping insert", request.request_id)
                    return _from_record(existing), False

                session.add(_to_record(request))
                try:
                    await session.commit()
                except IntegrityError:
                    # A concurrent delivery inserted the same id first.
                    await session.rollback()
                    existing = await session.get(PTORequestRecord, request.request_id)
                    if existing is None:
                        raise
                    logger.info("Request %s inserted concurrently, returning existing row", request.request_id)
                    return _from_record(existing), False
                return request, True
        except SQLAlchemyError as exc:
            logger.exception("Failed to insert request %s", request.request_id)
            raise UpstreamError("Request store unavailable") from exc

    async def get_by_id(self, request_id: str) -> PTORequest | None:
        try:
            async with self._session_factory() as session:
                record = await session.get(PTORequestRecord, request_id)
        except SQLAlchemyError as exc:
            logger.exception("Failed to load request %s", request_id)
            raise UpstreamError("Request store unavailable") from exc
        return _from_record(record) if record is not None else None

    async def update_status(
        self,
        request_id: str,
        status: RequestStatus,
        approver_id: str,
        decision_ts: datetime,
    ) -> bool:
        stmt = (
            update(PTORequestRecord)
            .where(
                col(PTORequestRecord.request_id) == request_id,
                col(PTORequestRecord.status) == RequestStatus.PENDING.value,
            )
            .values(status=status.value, approver_id=approver_id, decision_ts=decision_ts)
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                await session.commit()
        except SQLAlchemyError as exc:
            logger.exception("Failed to update request %s", request_id)
            raise UpstreamError("Request store unavailable") from exc
        return result.rowcount == 1  # type: ignore[attr-defined]

    async def history_for_user(self, user_id: str, window_start: datetime | None = None) -> list[PTORequest]:
        query = select(PTORequestRecord).where(col(PTORequestRecord.user_id) == user_id)
        if window_start is not None:
            query = query.where(col(PTORequestRecord.timestamp) >= window_start)
        query = query.order_by(col(PTORequestRecord.timestamp))
        try:
            async with self._session_factory() as session:
                result = await session.execute(query)
                records = list(result.scalars().all())
        except SQLAlchemyError as exc:
            logger.exception("Failed to load history for user %s", user_id)
            raise UpstreamError("Request store unavailable") from exc
        return [_from_record(r) for r in records]

    async def ping(self) -> None:
        async with self._session_factory() as session:
            await session.execute(text("SELECT 1"))


# ---------------------------------------------------------------------------
# Balance store
# ---------------------------------------------------------------------------


class SqlBalanceStore:
    """Balance rows in the ``pto_balance`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def seed(self, user_id: str, allowance: int, taken: int = 0, *, overwrite: bool = True) -> bool:
        """Insert a user's balance row. Returns False if a row existed and was left alone."""
        async with self._session_factory() as session:
            record = await session.get(PTOBalanceRecord, user_id)
            if record is None:
                session.add(PTOBalanceRecord(user_id=user_id, allowance=allowance, taken=taken))
            elif overwrite:
                record.allowance = allowance
                record.taken = taken
                record.version += 1
            else:
                return False
            await session.commit()
        return True

    async def get_balance(self, user_id: str) -> Balance:
        try:
            async with self._session_factory() as session:
                record = await session.get(PTOBalanceRecord, user_id)
        except SQLAlchemyError as exc:
            logger.exception("Failed to load balance for user %s", user_id)
            raise UpstreamError("Balance store unavailable") from exc
        if record is None:
            logger.warning("No balance row for user %s, treating as zero", user_id)
            return Balance()
        return Balance(allowance=record.allowance, taken=record.taken)

    async def increment_taken(self, user_id: str, days: int) -> BalanceIncrement:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(PTOBalanceRecord).where(col(PTOBalanceRecord.user_id) == user_id).with_for_update()
                )
                record = result.scalar_one_or_none()
                if record is None:
                    raise UserNotFoundError(user_id)
                previous = record.taken
                record.taken = previous + days
                record.version += 1
                await session.commit()
                return BalanceIncrement(previous=previous, new=previous + days)
        except SQLAlchemyError as exc:
            logger.exception("Failed to increment balance for user %s", user_id)
            raise UpstreamError("Balance store unavailable") from exc

    async def ping(self) -> None:
        async with self._session_factory() as session:
            await session.execute(text("SELECT 1"))
