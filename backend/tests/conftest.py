from __future__ import annotations

import time
from datetime import UTC, date, datetime, timedelta
from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient
from slack_sdk.signature import SignatureVerifier

from pto_bot.api.deps import get_services
from pto_bot.config import Settings, get_settings
from pto_bot.main import app
from pto_bot.schemas.balance import BalanceIncrement
from pto_bot.schemas.request import ExtractedDates
from pto_bot.services.balance_store import InMemoryBalanceStore
from pto_bot.services.dedup import DeliveryDeduplicator
from pto_bot.services.lifecycle import RequestLifecycle
from pto_bot.services.notifications import InMemoryNotificationGateway
from pto_bot.services.request_store import InMemoryRequestStore
from pto_bot.services.slack_workflow import SlackWorkflow
from pto_bot.services.wiring import AppServices

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Iterator

SIGNING_SECRET = "test-signing-secret"
EMPLOYEE_ID = "UEMPLOYEE1"
EMPLOYEE_NAME = "Jane Doe"
MANAGER_ID = "UMANAGER1"
MANAGER_NAME = "Max Manager"
OTHER_USER_ID = "UOTHER001"
OPERATOR_CHANNEL = "COPERATORS"

# 2024-06-10 is a Monday.
TODAY = date(2024, 6, 10)
NOW = datetime(2024, 6, 10, 15, 30, tzinfo=UTC)


class StaticDateExtractor:
    """DateExtractor fake returning a fixed answer, or computing one from the reference date."""

    def __init__(
        self,
        result: ExtractedDates | Exception | Callable[[str, date], ExtractedDates] | None = None,
    ) -> None:
        self.result = result or ExtractedDates(start="2024-06-11", end="2024-06-11", reason="Dentist")
        self.calls: list[tuple[str, date]] = []

    async def extract(self, text: str, reference_date: date) -> ExtractedDates:
        self.calls.append((text, reference_date))
        if isinstance(self.result, Exception):
            raise self.result
        if callable(self.result):
            return self.result(text, reference_date)
        return self.result


def relative_extractor(days_ahead: int, length: int = 1, reason: str = "Vacation") -> StaticDateExtractor:
    """Extractor resolving a range starting ``days_ahead`` after the reference date."""

    def _resolve(_text: str, reference_date: date) -> ExtractedDates:
        start = reference_date + timedelta(days=days_ahead)
        end = start + timedelta(days=length - 1)
        return ExtractedDates(start=start.isoformat(), end=end.isoformat(), reason=reason)

    return StaticDateExtractor(_resolve)


class RecordingBalanceStore(InMemoryBalanceStore):
    """In-memory balance store that records every applied increment."""

    def __init__(self) -> None:
        super().__init__()
        self.increments: list[tuple[str, int]] = []

    async def increment_taken(self, user_id: str, days: int) -> BalanceIncrement:
        increment = await super().increment_taken(user_id, days)
        self.increments.append((user_id, days))
        return increment


def slack_headers(body: bytes | str, secret: str = SIGNING_SECRET, timestamp: int | None = None) -> dict[str, str]:
    """Signed headers for a Slack request body."""
    ts = str(timestamp if timestamp is not None else int(time.time()))
    signature = SignatureVerifier(secret).generate_signature(timestamp=ts, body=body)
    return {"X-Slack-Request-Timestamp": ts, "X-Slack-Signature": signature or ""}


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


@pytest.fixture
def request_store() -> InMemoryRequestStore:
    return InMemoryRequestStore()


@pytest.fixture
def balance_store() -> RecordingBalanceStore:
    store = RecordingBalanceStore()
    store.seed(EMPLOYEE_ID, allowance=25, taken=10)
    return store


@pytest.fixture
def notifier() -> InMemoryNotificationGateway:
    gateway = InMemoryNotificationGateway()
    gateway.seed_user(EMPLOYEE_ID, EMPLOYEE_NAME)
    gateway.seed_user(MANAGER_ID, MANAGER_NAME)
    return gateway


@pytest.fixture
def extractor() -> StaticDateExtractor:
    return StaticDateExtractor()


@pytest.fixture
def lifecycle(
    request_store: InMemoryRequestStore,
    balance_store: RecordingBalanceStore,
    extractor: StaticDateExtractor,
    notifier: InMemoryNotificationGateway,
) -> RequestLifecycle:
    return RequestLifecycle(
        request_store,
        balance_store,
        extractor,
        notifier,
        operator_channel_id=OPERATOR_CHANNEL,
        clock=lambda: NOW,
    )


@pytest.fixture
def workflow(lifecycle: RequestLifecycle, notifier: InMemoryNotificationGateway) -> SlackWorkflow:
    return SlackWorkflow(lifecycle, notifier, default_manager_id=MANAGER_ID, today=lambda: TODAY)


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------


@pytest.fixture
def services(
    workflow: SlackWorkflow,
    request_store: InMemoryRequestStore,
    balance_store: RecordingBalanceStore,
) -> AppServices:
    return AppServices(
        workflow=workflow,
        deduplicator=DeliveryDeduplicator(),
        requests=request_store,
        balances=balance_store,
    )


@pytest.fixture
def test_settings() -> Settings:
    return Settings(slack_signing_secret=SIGNING_SECRET, default_manager_id=MANAGER_ID)


@pytest.fixture
def _override_dependencies(services: AppServices, test_settings: Settings) -> Iterator[None]:
    app.dependency_overrides[get_services] = lambda: services
    app.dependency_overrides[get_settings] = lambda: test_settings
    yield
    app.dependency_overrides.clear()


@pytest.fixture
async def async_client(_override_dependencies: None) -> AsyncIterator[AsyncClient]:
    """Async HTTP client with the service graph replaced by in-memory fakes.

    ASGITransport awaits the whole ASGI call, so background tasks have run
    by the time a response is returned.
    """
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
