# ruff: noqa: TC003
from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Protocol, runtime_checkable

from pto_bot.models.enums import RequestStatus
from pto_bot.schemas.request import PTORequest

logger = logging.getLogger(__name__)


@runtime_checkable
class RequestStore(Protocol):
    """Row store for PTO requests keyed by request id."""

    async def ensure_row(self, request: PTORequest) -> tuple[PTORequest, bool]:
        """Insert the row unless one with the same id exists.

        Returns the stored row and whether this call created it. An existing
        row is returned unchanged.
        """
        ...

    async def get_by_id(self, request_id: str) -> PTORequest | None:
        """Fetch a row by request id. Returns None if not found."""
        ...

    async def update_status(
        self,
        request_id: str,
        status: RequestStatus,
        approver_id: str,
        decision_ts: datetime,
    ) -> bool:
        """Move a pending row to ``status``.

        Returns False when the row does not exist or is no longer pending.
        """
        ...

    async def history_for_user(self, user_id: str, window_start: datetime | None = None) -> list[PTORequest]:
        """All rows for a user, optionally only those created at or after window_start."""
        ...

    async def ping(self) -> None:
        """Raise if the backing store is unreachable."""
        ...


class InMemoryRequestStore:
    """In-memory implementation for development and tests."""

    def __init__(self) -> None:
        self._rows: dict[str, PTORequest] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._rows)

    async def ensure_row(self, request: PTORequest) -> tuple[PTORequest, bool]:
        async with self._lock:
            existing = self._rows.get(request.request_id)
            if existing is not None:
                logger.info("Request %s already exists, skipping insert", request.request_id)
                return existing.model_copy(), False
            self._rows[request.request_id] = request.model_copy()
            return request.model_copy(), True

    async def get_by_id(self, request_id: str) -> PTORequest | None:
        row = self._rows.get(request_id)
        return row.model_copy() if row is not None else None

    async def update_status(
        self,
        request_id: str,
        status: RequestStatus,
        approver_id: str,
        decision_ts: datetime,
    ) -> bool:
        async with self._lock:
            row = self._rows.get(request_id)
            if row is None or row.status != RequestStatus.PENDING:
                return False
            self._rows[request_id] = row.model_copy(
                update={"status": status, "approver_id": approver_id, "decision_ts": decision_ts}
            )
            return True

    async def history_for_user(self, user_id: str, window_start: datetime | None = None) -> list[PTORequest]:
        return [
            row.model_copy()
            for row in self._rows.values()
            if row.user_id == user_id and (window_start is None or row.timestamp >= window_start)
        ]

    async def ping(self) -> None:
        return None
