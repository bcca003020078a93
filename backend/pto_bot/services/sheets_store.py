"""Google Sheets-backed request and balance stores.

Requests tab columns::

    A timestamp | B user_id | C user_name | D start | E end | F business_days
    G reason    | H status  | I manager_id| J manager_name | K request_id
    L decision_ts | M approver_id

Balances tab columns::

    A user_id | B allowance | C taken

Row 1 of each tab is a header. gspread is blocking, so every call runs in a
worker thread.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import UTC, date, datetime
from typing import TYPE_CHECKING, Any

import gspread
from google.auth.exceptions import GoogleAuthError
from google.oauth2.service_account import Credentials
from gspread.exceptions import APIError

from pto_bot.exceptions import UpstreamError, UserNotFoundError
from pto_bot.models.enums import RequestStatus
from pto_bot.schemas.balance import Balance, BalanceIncrement
from pto_bot.schemas.request import PTORequest

if TYPE_CHECKING:
    from collections.abc import Callable

    from gspread.worksheet import Worksheet

    from pto_bot.config import Settings

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

_REQUEST_RANGE = "A2:M"
_REQUEST_WIDTH = 13
_BALANCE_RANGE = "A2:C"
_BALANCE_WIDTH = 3
_FIRST_DATA_ROW = 2

# RAW keeps ISO strings as text so reads round-trip.
_VALUE_INPUT = "RAW"


def open_worksheets(settings: Settings) -> tuple[Worksheet, Worksheet]:
    """Authorize with the service account and return (requests, balances) tabs."""
    info = json.loads(settings.gcp_service_account_json)
    creds = Credentials.from_service_account_info(info, scopes=SCOPES)
    client = gspread.authorize(creds)
    spreadsheet = client.open_by_key(settings.spreadsheet_id)
    return spreadsheet.worksheet(settings.requests_worksheet), spreadsheet.worksheet(settings.balances_worksheet)


async def _call(fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Run a blocking gspread call off the event loop, mapping failures to UpstreamError."""
    try:
        return await asyncio.to_thread(fn, *args, **kwargs)
    except (APIError, GoogleAuthError, OSError) as exc:
        logger.exception("Google Sheets call %s failed", getattr(fn, "__name__", fn))
        raise UpstreamError("Spreadsheet unavailable") from exc


def _pad(row: list[Any], width: int) -> list[str]:
    cells = [str(c) if c is not None else "" for c in row[:width]]
    return cells + [""] * (width - len(cells))


def _parse_ts(value: str) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)


def _to_int(value: str) -> int:
    return int(float(value)) if value else 0


# ---------------------------------------------------------------------------
# Row mapping
# ---------------------------------------------------------------------------


def request_to_row(request: PTORequest) -> list[str | int]:
    return [
        request.timestamp.isoformat(),
        request.user_id,
        request.user_name,
        request.start.isoformat(),
        request.end.isoformat(),
        request.business_days,
        request.reason,
        request.status.value,
        request.manager_id,
        request.manager_name,
        request.request_id,
        request.decision_ts.isoformat() if request.decision_ts else "",
        request.approver_id or "",
    ]


def row_to_request(row: list[Any]) -> PTORequest:
    """Map a positional row to a request. Raises ValueError on malformed cells."""
    r = _pad(row, _REQUEST_WIDTH)
    timestamp = _parse_ts(r[0])
    if timestamp is None:
        msg = "missing timestamp"
        raise ValueError(msg)
    return PTORequest(
        timestamp=timestamp,
        user_id=r[1],
        user_name=r[2],
        start=date.fromisoformat(r[3]),
        end=date.fromisoformat(r[4]),
        business_days=_to_int(r[5]),
        reason=r[6],
        status=RequestStatus(r[7] or RequestStatus.PENDING.value),
        manager_id=r[8],
        manager_name=r[9],
        request_id=r[10],
        decision_ts=_parse_ts(r[11]),
        approver_id=r[12] or None,
    )


# ---------------------------------------------------------------------------
# Request store
# ---------------------------------------------------------------------------


class SheetsRequestStore:
    """Request rows in the requests tab.

    Sheets has no conditional writes, so mutations take a process-local lock
    and re-read the row before writing. Decisions write the audit columns
    first and the status column last.
    """

    def __init__(self, worksheet: Worksheet) -> None:
        self._ws = worksheet
        self._write_lock = asyncio.Lock()

    async def _find(self, request_id: str) -> tuple[int, PTORequest] | None:
        """Return (sheet row number, request) for the id, or None."""
        if not request_id:
            return None
        rows = await _call(self._ws.get_values, _REQUEST_RANGE)
        for offset, row in enumerate(rows):
            cells = _pad(row, _REQUEST_WIDTH)
            if cells[10] != request_id:
                continue
            try:
                return offset + _FIRST_DATA_ROW, row_to_request(row)
            except ValueError:
                logger.exception("Malformed sheet row %d for request %s", offset + _FIRST_DATA_ROW, request_id)
                raise UpstreamError("Request row is malformed") from None
        return None

    async def ensure_row(self, request: PTORequest) -> tuple[PTORequest, bool]:
        async with self._write_lock:
            found = await self._find(request.request_id)
            if found is not None:
                logger.info("Request %s already exists, skipping append", request.request_id)
                return found[1], False
            await _call(self._ws.append_row, request_to_row(request), value_input_option=_VALUE_INPUT)
        return request, True

    async def get_by_id(self, request_id: str) -> PTORequest | None:
        found = await self._find(request_id)
        return found[1] if found is not None else None

    async def update_status(
        self,
        request_id: str,
        status: RequestStatus,
        approver_id: str,
        decision_ts: datetime,
    ) -> bool:
        async with self._write_lock:
            found = await self._find(request_id)
            if found is None:
                return False
            row_number, current = found
            if current.status != RequestStatus.PENDING:
                return False

            await _call(
                self._ws.batch_update,
                [{"range": f"L{row_number}:M{row_number}", "values": [[decision_ts.isoformat(), approver_id]]}],
                value_input_option=_VALUE_INPUT,
            )
            await _call(
                self._ws.batch_update,
                [{"range": f"H{row_number}", "values": [[status.value]]}],
                value_input_option=_VALUE_INPUT,
            )
        return True

    async def history_for_user(self, user_id: str, window_start: datetime | None = None) -> list[PTORequest]:
        rows = await _call(self._ws.get_values, _REQUEST_RANGE)
        history: list[PTORequest] = []
        for offset, row in enumerate(rows):
            if _pad(row, _REQUEST_WIDTH)[1] != user_id:
                continue
            try:
                request = row_to_request(row)
            except ValueError:
                logger.warning("Skipping malformed sheet row %d for user %s", offset + _FIRST_DATA_ROW, user_id)
                continue
            if window_start is None or request.timestamp >= window_start:
                history.append(request)
        return history

    async def ping(self) -> None:
        await _call(self._ws.get_values, "A1")


# ---------------------------------------------------------------------------
# Balance store
# ---------------------------------------------------------------------------


class SheetsBalanceStore:
    """Balance rows in the balances tab."""

    def __init__(self, worksheet: Worksheet) -> None:
        self._ws = worksheet
        self._write_lock = asyncio.Lock()

    async def _find(self, user_id: str) -> tuple[int, Balance] | None:
        rows = await _call(self._ws.get_values, _BALANCE_RANGE)
        for offset, row in enumerate(rows):
            cells = _pad(row, _BALANCE_WIDTH)
            if cells[0] != user_id:
                continue
            try:
                return offset + _FIRST_DATA_ROW, Balance(allowance=_to_int(cells[1]), taken=_to_int(cells[2]))
            except ValueError:
                logger.exception("Malformed balance row %d for user %s", offset + _FIRST_DATA_ROW, user_id)
                raise UpstreamError("Balance row is malformed") from None
        return None

    async def get_balance(self, user_id: str) -> Balance:
        found = await self._find(user_id)
        if found is None:
            logger.warning("No balance row for user %s, treating as zero", user_id)
            return Balance()
        return found[1]

    async def increment_taken(self, user_id: str, days: int) -> BalanceIncrement:
        async with self._write_lock:
            found = await self._find(user_id)
            if found is None:
                raise UserNotFoundError(user_id)
            row_number, balance = found
            new_taken = balance.taken + days
            await _call(
                self._ws.batch_update,
                [{"range": f"C{row_number}", "values": [[new_taken]]}],
                value_input_option=_VALUE_INPUT,
            )
        return BalanceIncrement(previous=balance.taken, new=new_taken)

    async def ping(self) -> None:
        await _call(self._ws.get_values, "A1")
