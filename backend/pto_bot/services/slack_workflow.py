"""Slack-facing orchestration of the request lifecycle.

Handlers run after Slack has been acknowledged, so they never raise for
expected failures: each outcome is turned into a reply to the acting user.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import ValidationError as PydanticValidationError

from pto_bot.exceptions import (
    AppError,
    ConflictError,
    InsufficientBalanceError,
    NotFoundError,
    ParseError,
    UnauthorizedError,
    ValidationError,
)
from pto_bot.models.base import new_request_id
from pto_bot.models.enums import Decision
from pto_bot.schemas.slack import ConfirmValue, DecisionValue
from pto_bot.services import messages
from pto_bot.services.duration import today_utc

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import date

    from pto_bot.services.lifecycle import RequestLifecycle
    from pto_bot.services.notifications import NotificationGateway

logger = logging.getLogger(__name__)


class SlackWorkflow:
    """Maps Slack commands, messages and button clicks onto lifecycle operations."""

    def __init__(
        self,
        lifecycle: RequestLifecycle,
        notifier: NotificationGateway,
        *,
        default_manager_id: str = "",
        today: Callable[[], date] = today_utc,
    ) -> None:
        self.lifecycle = lifecycle
        self.notifier = notifier
        self.default_manager_id = default_manager_id
        self._today = today

    def resolve_manager(self, user_id: str) -> str:
        """Approver for a user's requests. Every user shares the configured approver."""
        return self.default_manager_id

    # -----------------------------------------------------------------------
    # Employee: free-text request
    # -----------------------------------------------------------------------

    async def handle_leave_request(self, user_id: str, text: str, channel_id: str) -> None:
        """Draft a request from free text and ask the user to confirm it.

        The confirm button carries a freshly minted request id, so repeated
        clicks on the same prompt resolve to the same stored row.
        """
        if not text.strip():
            await self.notifier.notify(channel_id, messages.parse_failure())
            return

        try:
            user_name = await self.notifier.user_name(user_id)
            draft = await self.lifecycle.draft(user_id, text, today=self._today(), user_name=user_name)
            check = await self.lifecycle.check_balance(user_id, draft.business_days)
        except ValidationError as exc:
            logger.info("Rejected draft from user %s: %s", user_id, exc.message)
            await self.notifier.notify(channel_id, messages.validation_failure(exc.message))
            return
        except ParseError as exc:
            logger.info("Could not parse request from user %s: %s", user_id, exc.message)
            await self.notifier.notify(channel_id, messages.parse_failure())
            return
        except AppError as exc:
            logger.error("Drafting request for user %s failed: %s", user_id, exc.message)
            await self.notifier.notify(channel_id, messages.generic_failure())
            return

        if not check.allowed:
            await self.notifier.notify(channel_id, messages.insufficient_balance(check.requested, check.remaining))
            return

        await self.notifier.notify(channel_id, messages.confirm_prompt(draft, new_request_id(), check.remaining))

    # -----------------------------------------------------------------------
    # Employee: confirm / cancel buttons
    # -----------------------------------------------------------------------

    async def handle_confirm(self, actor_id: str, channel_id: str, message_ts: str, raw_value: str) -> None:
        """Persist the confirmed draft and notify the manager once."""
        try:
            value = ConfirmValue.model_validate_json(raw_value)
        except PydanticValidationError:
            logger.warning("Malformed confirm payload from %s", actor_id)
            await self.notifier.notify_ephemeral(channel_id, actor_id, messages.generic_failure())
            return

        if value.draft.user_id != actor_id:
            logger.warning("User %s tried to confirm a request drafted by %s", actor_id, value.draft.user_id)
            await self.notifier.notify_ephemeral(channel_id, actor_id, messages.not_authorized())
            return

        manager_id = self.resolve_manager(actor_id)
        today = self._today()
        try:
            manager_name = await self.notifier.user_name(manager_id) if manager_id else ""
            history = await self.lifecycle.history(actor_id, today)
            result = await self.lifecycle.submit(
                value.draft, manager_id, manager_name=manager_name, request_id=value.request_id
            )
        except InsufficientBalanceError as exc:
            await self.notifier.update_message(
                channel_id, message_ts, messages.insufficient_balance(exc.requested, exc.remaining)
            )
            return
        except AppError as exc:
            logger.error("Submitting request %s for user %s failed: %s", value.request_id, actor_id, exc.message)
            await self.notifier.notify_ephemeral(channel_id, actor_id, messages.generic_failure())
            return

        if result.created:
            await self.notifier.notify(manager_id, messages.manager_request(result.request, history, today))
        await self.notifier.update_message(channel_id, message_ts, messages.submitted())

    async def handle_cancel(self, channel_id: str, message_ts: str) -> None:
        await self.notifier.update_message(channel_id, message_ts, messages.cancelled())

    # -----------------------------------------------------------------------
    # Manager: approve / deny buttons
    # -----------------------------------------------------------------------

    async def handle_decision(
        self,
        actor_id: str,
        channel_id: str,
        message_ts: str,
        raw_value: str,
        decision: Decision,
    ) -> None:
        """Record the manager's decision and tell the employee on a real transition."""
        try:
            value = DecisionValue.model_validate_json(raw_value)
        except PydanticValidationError:
            logger.warning("Malformed %s payload from %s", decision.value, actor_id)
            await self.notifier.notify_ephemeral(channel_id, actor_id, messages.request_unavailable())
            return

        try:
            result = await self.lifecycle.decide(value.request_id, actor_id, decision)
        except UnauthorizedError:
            await self.notifier.notify_ephemeral(channel_id, actor_id, messages.not_authorized())
            return
        except NotFoundError:
            await self.notifier.notify_ephemeral(channel_id, actor_id, messages.request_unavailable())
            return
        except ConflictError as exc:
            await self.notifier.notify_ephemeral(channel_id, actor_id, messages.already_decided(exc.current_status))
            return
        except AppError as exc:
            logger.error("Deciding request %s by %s failed: %s", value.request_id, actor_id, exc.message)
            await self.notifier.notify_ephemeral(channel_id, actor_id, messages.generic_failure())
            return

        if result.changed:
            await self.notifier.notify(result.request.user_id, messages.decision_to_employee(result.request, decision))
        await self.notifier.update_message(channel_id, message_ts, messages.manager_decided(result.request, decision))
