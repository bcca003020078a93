"""Tests for the Slack workflow handlers: the conversation an employee and a
manager have with the bot, driven through the in-memory gateway.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pto_bot.exceptions import ParseError, UpstreamError
from pto_bot.models.enums import Decision, RequestStatus, SlackAction
from pto_bot.schemas.request import ExtractedDates
from pto_bot.schemas.slack import ConfirmValue, DecisionValue
from pto_bot.services.slack_workflow import SlackWorkflow

from conftest import EMPLOYEE_ID, MANAGER_ID, OTHER_USER_ID, RecordingBalanceStore, StaticDateExtractor

if TYPE_CHECKING:
    from pto_bot.services.lifecycle import RequestLifecycle
    from pto_bot.services.notifications import InMemoryNotificationGateway, SentMessage
    from pto_bot.services.request_store import InMemoryRequestStore

DM_CHANNEL = "DEMPLOYEE"
MANAGER_DM = "DMANAGER"


def _button_value(message: SentMessage, action: SlackAction) -> str:
    for block in message.content.blocks:
        for element in block.get("elements", []):
            if element.get("action_id") == action.value:
                return str(element["value"])
    msg = f"no {action} button in message"
    raise AssertionError(msg)


async def _prompt(workflow: SlackWorkflow, notifier: InMemoryNotificationGateway) -> str:
    """Run a leave request and return the confirm button value."""
    await workflow.handle_leave_request(EMPLOYEE_ID, "tomorrow for a dentist appointment", DM_CHANNEL)
    return _button_value(notifier.to(DM_CHANNEL, "post")[-1], SlackAction.CONFIRM)


async def _submitted(workflow: SlackWorkflow, notifier: InMemoryNotificationGateway) -> str:
    """Confirm a request and return the approve button value the manager received."""
    value = await _prompt(workflow, notifier)
    await workflow.handle_confirm(EMPLOYEE_ID, DM_CHANNEL, "1.000100", value)
    return _button_value(notifier.to(MANAGER_ID, "post")[-1], SlackAction.APPROVE)


# ---------------------------------------------------------------------------
# Leave request
# ---------------------------------------------------------------------------


async def test_leave_request_sends_confirm_prompt(
    workflow: SlackWorkflow, notifier: InMemoryNotificationGateway, request_store: InMemoryRequestStore
) -> None:
    value = ConfirmValue.model_validate_json(await _prompt(workflow, notifier))

    assert value.request_id
    assert value.draft.user_id == EMPLOYEE_ID
    assert value.draft.user_name == "Jane Doe"
    assert value.draft.start.isoformat() == "2024-06-11"
    assert value.draft.business_days == 1
    assert value.draft.reason == "Dentist"
    prompt = notifier.to(DM_CHANNEL, "post")[0].content.blocks[0]["text"]["text"]
    assert "Balance after approval:* 14" in prompt
    assert len(request_store) == 0


async def test_each_prompt_gets_its_own_request_id(
    workflow: SlackWorkflow, notifier: InMemoryNotificationGateway
) -> None:
    first = ConfirmValue.model_validate_json(await _prompt(workflow, notifier))
    second = ConfirmValue.model_validate_json(await _prompt(workflow, notifier))
    assert first.request_id != second.request_id


async def test_blank_text_asks_for_clearer_request(
    workflow: SlackWorkflow, notifier: InMemoryNotificationGateway, extractor: StaticDateExtractor
) -> None:
    await workflow.handle_leave_request(EMPLOYEE_ID, "   ", DM_CHANNEL)

    assert "couldn't understand" in notifier.to(DM_CHANNEL)[0].content.text
    assert extractor.calls == []


async def test_parse_error_asks_for_clearer_request(
    workflow: SlackWorkflow, notifier: InMemoryNotificationGateway
) -> None:
    workflow.lifecycle.extractor = StaticDateExtractor(ParseError())
    await workflow.handle_leave_request(EMPLOYEE_ID, "soonish", DM_CHANNEL)
    assert "couldn't understand" in notifier.to(DM_CHANNEL)[0].content.text


async def test_invalid_range_explains_problem(
    workflow: SlackWorkflow, notifier: InMemoryNotificationGateway
) -> None:
    workflow.lifecycle.extractor = StaticDateExtractor(ExtractedDates(start="2024-06-15", end="2024-06-16"))
    await workflow.handle_leave_request(EMPLOYEE_ID, "this weekend", DM_CHANNEL)
    assert "no business days" in notifier.to(DM_CHANNEL)[0].content.text


async def test_span_too_long_asks_for_shorter_range(
    workflow: SlackWorkflow, notifier: InMemoryNotificationGateway
) -> None:
    workflow.lifecycle.extractor = StaticDateExtractor(ExtractedDates(start="2024-06-10", end="2024-08-30"))
    await workflow.handle_leave_request(EMPLOYEE_ID, "all summer", DM_CHANNEL)
    assert "shorter range" in notifier.to(DM_CHANNEL)[0].content.text


async def test_extractor_outage_sends_generic_failure(
    workflow: SlackWorkflow, notifier: InMemoryNotificationGateway
) -> None:
    workflow.lifecycle.extractor = StaticDateExtractor(UpstreamError("Date extraction service unavailable"))
    await workflow.handle_leave_request(EMPLOYEE_ID, "tomorrow", DM_CHANNEL)
    assert "Something went wrong" in notifier.to(DM_CHANNEL)[0].content.text


async def test_insufficient_balance_stops_before_prompt(
    workflow: SlackWorkflow, notifier: InMemoryNotificationGateway, balance_store: RecordingBalanceStore
) -> None:
    balance_store.seed(EMPLOYEE_ID, allowance=25, taken=25)
    await workflow.handle_leave_request(EMPLOYEE_ID, "tomorrow", DM_CHANNEL)

    sent = notifier.to(DM_CHANNEL)
    assert len(sent) == 1
    assert "only have 0 remaining" in sent[0].content.text
    assert sent[0].content.blocks == []


# ---------------------------------------------------------------------------
# Confirm / cancel
# ---------------------------------------------------------------------------


async def test_confirm_persists_and_notifies_manager(
    workflow: SlackWorkflow, notifier: InMemoryNotificationGateway, request_store: InMemoryRequestStore
) -> None:
    value = await _prompt(workflow, notifier)
    request_id = ConfirmValue.model_validate_json(value).request_id

    await workflow.handle_confirm(EMPLOYEE_ID, DM_CHANNEL, "1.000100", value)

    stored = await request_store.get_by_id(request_id)
    assert stored is not None
    assert stored.status == RequestStatus.PENDING
    assert stored.manager_id == MANAGER_ID
    assert stored.manager_name == "Max Manager"

    manager_messages = notifier.to(MANAGER_ID, "post")
    assert len(manager_messages) == 1
    text = manager_messages[0].content.blocks[0]["text"]["text"]
    assert "Jane Doe" in text
    assert "Current balance: 15" in text
    assert "Days since last request: N/A" in text
    approve = DecisionValue.model_validate_json(_button_value(manager_messages[0], SlackAction.APPROVE))
    assert approve.request_id == request_id

    update = notifier.to(DM_CHANNEL, "update")[-1]
    assert update.message_id == "1.000100"
    assert "submitted for approval" in update.content.text


async def test_double_confirm_creates_one_request(
    workflow: SlackWorkflow, notifier: InMemoryNotificationGateway, request_store: InMemoryRequestStore
) -> None:
    value = await _prompt(workflow, notifier)

    await workflow.handle_confirm(EMPLOYEE_ID, DM_CHANNEL, "1.000100", value)
    await workflow.handle_confirm(EMPLOYEE_ID, DM_CHANNEL, "1.000100", value)

    assert len(request_store) == 1
    assert len(notifier.to(MANAGER_ID, "post")) == 1
    assert len(notifier.to(DM_CHANNEL, "update")) == 2


async def test_confirm_by_someone_else_is_rejected(
    workflow: SlackWorkflow, notifier: InMemoryNotificationGateway, request_store: InMemoryRequestStore
) -> None:
    value = await _prompt(workflow, notifier)

    await workflow.handle_confirm(OTHER_USER_ID, DM_CHANNEL, "1.000100", value)

    assert len(request_store) == 0
    ephemeral = notifier.to(DM_CHANNEL, "ephemeral")
    assert ephemeral[0].user_id == OTHER_USER_ID
    assert "not authorized" in ephemeral[0].content.text


async def test_confirm_with_malformed_value(
    workflow: SlackWorkflow, notifier: InMemoryNotificationGateway, request_store: InMemoryRequestStore
) -> None:
    await workflow.handle_confirm(EMPLOYEE_ID, DM_CHANNEL, "1.000100", "not json")
    assert len(request_store) == 0
    assert "Something went wrong" in notifier.to(DM_CHANNEL, "ephemeral")[0].content.text


async def test_confirm_after_balance_spent_updates_prompt(
    workflow: SlackWorkflow,
    notifier: InMemoryNotificationGateway,
    request_store: InMemoryRequestStore,
    balance_store: RecordingBalanceStore,
) -> None:
    value = await _prompt(workflow, notifier)
    balance_store.seed(EMPLOYEE_ID, allowance=25, taken=25)

    await workflow.handle_confirm(EMPLOYEE_ID, DM_CHANNEL, "1.000100", value)

    assert len(request_store) == 0
    assert notifier.to(MANAGER_ID) == []
    assert "only have 0 remaining" in notifier.to(DM_CHANNEL, "update")[0].content.text


async def test_confirm_without_configured_manager(
    lifecycle: RequestLifecycle, notifier: InMemoryNotificationGateway, request_store: InMemoryRequestStore
) -> None:
    workflow = SlackWorkflow(lifecycle, notifier, default_manager_id="")
    value = await _prompt(workflow, notifier)

    await workflow.handle_confirm(EMPLOYEE_ID, DM_CHANNEL, "1.000100", value)

    assert len(request_store) == 0
    assert "Something went wrong" in notifier.to(DM_CHANNEL, "ephemeral")[0].content.text


async def test_cancel_updates_prompt(workflow: SlackWorkflow, notifier: InMemoryNotificationGateway) -> None:
    await workflow.handle_cancel(DM_CHANNEL, "1.000100")
    update = notifier.to(DM_CHANNEL, "update")[0]
    assert update.message_id == "1.000100"
    assert update.content.text == "PTO request cancelled."


# ---------------------------------------------------------------------------
# Decisions
# ---------------------------------------------------------------------------


async def test_approval_notifies_employee_and_updates_manager_message(
    workflow: SlackWorkflow, notifier: InMemoryNotificationGateway, balance_store: RecordingBalanceStore
) -> None:
    value = await _submitted(workflow, notifier)

    await workflow.handle_decision(MANAGER_ID, MANAGER_DM, "2.000100", value, Decision.APPROVED)

    employee_posts = notifier.to(EMPLOYEE_ID, "post")
    assert len(employee_posts) == 1
    assert "approved" in employee_posts[0].content.text
    assert f"<@{MANAGER_ID}>" in employee_posts[0].content.text
    assert "has been approved" in notifier.to(MANAGER_DM, "update")[0].content.text
    assert (await balance_store.get_balance(EMPLOYEE_ID)).taken == 11


async def test_denial_notifies_employee(
    workflow: SlackWorkflow, notifier: InMemoryNotificationGateway, balance_store: RecordingBalanceStore
) -> None:
    value = await _submitted(workflow, notifier)

    await workflow.handle_decision(MANAGER_ID, MANAGER_DM, "2.000100", value, Decision.DENIED)

    assert "denied" in notifier.to(EMPLOYEE_ID, "post")[0].content.text
    assert balance_store.increments == []


async def test_repeated_approval_notifies_employee_once(
    workflow: SlackWorkflow, notifier: InMemoryNotificationGateway, balance_store: RecordingBalanceStore
) -> None:
    value = await _submitted(workflow, notifier)

    await workflow.handle_decision(MANAGER_ID, MANAGER_DM, "2.000100", value, Decision.APPROVED)
    await workflow.handle_decision(MANAGER_ID, MANAGER_DM, "2.000100", value, Decision.APPROVED)

    assert len(notifier.to(EMPLOYEE_ID, "post")) == 1
    assert len(notifier.to(MANAGER_DM, "update")) == 2
    assert balance_store.increments == [(EMPLOYEE_ID, 1)]


async def test_opposite_decision_reports_conflict(
    workflow: SlackWorkflow, notifier: InMemoryNotificationGateway
) -> None:
    value = await _submitted(workflow, notifier)
    await workflow.handle_decision(MANAGER_ID, MANAGER_DM, "2.000100", value, Decision.APPROVED)

    await workflow.handle_decision(MANAGER_ID, MANAGER_DM, "2.000100", value, Decision.DENIED)

    ephemeral = notifier.to(MANAGER_DM, "ephemeral")
    assert ephemeral[0].content.text == "This request was already approved by someone else."
    assert len(notifier.to(EMPLOYEE_ID, "post")) == 1


async def test_decision_by_non_manager_is_rejected(
    workflow: SlackWorkflow, notifier: InMemoryNotificationGateway, request_store: InMemoryRequestStore
) -> None:
    value = await _submitted(workflow, notifier)

    await workflow.handle_decision(OTHER_USER_ID, MANAGER_DM, "2.000100", value, Decision.APPROVED)

    assert "not authorized" in notifier.to(MANAGER_DM, "ephemeral")[0].content.text
    request_id = DecisionValue.model_validate_json(value).request_id
    stored = await request_store.get_by_id(request_id)
    assert stored is not None
    assert stored.status == RequestStatus.PENDING
    assert notifier.to(EMPLOYEE_ID) == []


async def test_decision_on_unknown_request(workflow: SlackWorkflow, notifier: InMemoryNotificationGateway) -> None:
    value = DecisionValue(request_id="missing").model_dump_json()
    await workflow.handle_decision(MANAGER_ID, MANAGER_DM, "2.000100", value, Decision.APPROVED)
    assert "could not be found" in notifier.to(MANAGER_DM, "ephemeral")[0].content.text


async def test_decision_with_malformed_value(
    workflow: SlackWorkflow, notifier: InMemoryNotificationGateway
) -> None:
    await workflow.handle_decision(MANAGER_ID, MANAGER_DM, "2.000100", "{}", Decision.DENIED)
    assert "could not be found" in notifier.to(MANAGER_DM, "ephemeral")[0].content.text


def test_every_user_shares_the_configured_manager(workflow: SlackWorkflow) -> None:
    assert workflow.resolve_manager(EMPLOYEE_ID) == MANAGER_ID
    assert workflow.resolve_manager(OTHER_USER_ID) == MANAGER_ID
