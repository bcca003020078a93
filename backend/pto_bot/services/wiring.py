"""Builds the collaborator graph for the running application."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from pto_bot.db import create_tables, dispose_engine, get_engine, get_session_factory
from pto_bot.services.balance_store import InMemoryBalanceStore
from pto_bot.services.date_extractor import OpenRouterDateExtractor
from pto_bot.services.dedup import DeliveryDeduplicator
from pto_bot.services.lifecycle import RequestLifecycle
from pto_bot.services.notifications import SlackNotificationGateway
from pto_bot.services.request_store import InMemoryRequestStore
from pto_bot.services.slack_workflow import SlackWorkflow
from pto_bot.services.sql_store import SqlBalanceStore, SqlRequestStore

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from pto_bot.config import Settings
    from pto_bot.services.balance_store import BalanceStore
    from pto_bot.services.date_extractor import DateExtractor
    from pto_bot.services.notifications import NotificationGateway
    from pto_bot.services.request_store import RequestStore

logger = logging.getLogger(__name__)


@dataclass
class AppServices:
    """Everything the HTTP layer needs, constructed once per process."""

    workflow: SlackWorkflow
    deduplicator: DeliveryDeduplicator
    requests: RequestStore
    balances: BalanceStore
    closers: list[Callable[[], Awaitable[None]]] = field(default_factory=list)

    async def aclose(self) -> None:
        for close in self.closers:
            await close()


async def build_stores(settings: Settings) -> tuple[RequestStore, BalanceStore, list[Callable[[], Awaitable[None]]]]:
    """Create the request and balance stores for the configured backend."""
    if settings.store_backend == "database":
        await create_tables(get_engine())
        factory = get_session_factory()
        return SqlRequestStore(factory), SqlBalanceStore(factory), [dispose_engine]

    if settings.store_backend == "sheets":
        from pto_bot.services.sheets_store import SheetsBalanceStore, SheetsRequestStore, open_worksheets

        requests_ws, balances_ws = open_worksheets(settings)
        return SheetsRequestStore(requests_ws), SheetsBalanceStore(balances_ws), []

    logger.warning("Using in-memory stores; data is lost on restart")
    return InMemoryRequestStore(), InMemoryBalanceStore(), []


def build_workflow(
    settings: Settings,
    requests: RequestStore,
    balances: BalanceStore,
    extractor: DateExtractor,
    notifier: NotificationGateway,
) -> SlackWorkflow:
    lifecycle = RequestLifecycle(
        requests,
        balances,
        extractor,
        notifier,
        max_span_days=settings.max_pto_span_days,
        enforce_balance_on_submit=settings.enforce_balance_on_submit,
        operator_channel_id=settings.operator_channel_id,
    )
    return SlackWorkflow(lifecycle, notifier, default_manager_id=settings.default_manager_id)


async def build_services(settings: Settings) -> AppServices:
    requests, balances, closers = await build_stores(settings)
    extractor = OpenRouterDateExtractor.from_settings(settings)
    notifier = SlackNotificationGateway.from_token(settings.slack_bot_token)
    workflow = build_workflow(settings, requests, balances, extractor, notifier)
    logger.info("Services ready (store backend: %s)", settings.store_backend)
    return AppServices(
        workflow=workflow,
        deduplicator=DeliveryDeduplicator(ttl_seconds=settings.event_dedup_ttl_seconds),
        requests=requests,
        balances=balances,
        closers=[extractor.aclose, *closers],
    )
