"""Chat message builders for the PTO workflow."""

from __future__ import annotations

from datetime import UTC, date
from typing import TYPE_CHECKING, Any

from pto_bot.models.enums import Decision, SlackAction
from pto_bot.schemas.slack import ConfirmValue, DecisionValue, MessageContent

if TYPE_CHECKING:
    from pto_bot.schemas.balance import PTOHistory
    from pto_bot.schemas.request import DraftRequest, PTORequest


def _section(text: str) -> dict[str, Any]:
    return {"type": "section", "text": {"type": "mrkdwn", "text": text}}


def _button(action: SlackAction, label: str, value: str, style: str) -> dict[str, Any]:
    return {
        "type": "button",
        "action_id": action.value,
        "style": style,
        "text": {"type": "plain_text", "text": label},
        "value": value,
    }


# ---------------------------------------------------------------------------
# Employee-facing
# ---------------------------------------------------------------------------


def confirm_prompt(draft: DraftRequest, request_id: str, remaining: int) -> MessageContent:
    value = ConfirmValue(request_id=request_id, draft=draft).model_dump_json()
    text = (
        "*Please confirm your PTO request:*\n"
        f"*Dates:* {draft.start.isoformat()} → {draft.end.isoformat()}\n"
        f"*Business days:* {draft.business_days}\n"
        f"*Reason:* {draft.reason}\n"
        f"*Balance after approval:* {remaining - draft.business_days}"
    )
    return MessageContent(
        text="Please confirm your PTO request",
        blocks=[
            _section(text),
            {
                "type": "actions",
                "elements": [
                    _button(SlackAction.CONFIRM, "Confirm Request", value, "primary"),
                    _button(SlackAction.CANCEL, "Cancel", "{}", "danger"),
                ],
            },
        ],
    )


def parse_failure() -> MessageContent:
    return MessageContent(
        text=(
            "I couldn't understand your request.\n"
            'Try: "I need next Monday to Friday off for vacation" or "tomorrow for a doctor appointment".'
        )
    )


def validation_failure(reason: str) -> MessageContent:
    return MessageContent(text=f"That request can't be submitted: {reason}.")


def insufficient_balance(requested: int, remaining: int) -> MessageContent:
    return MessageContent(
        text=f"You're requesting {requested} days but only have {remaining} remaining this year."
    )


def generic_failure() -> MessageContent:
    return MessageContent(text="Something went wrong while handling your request. Please try again in a moment.")


def submitted() -> MessageContent:
    return MessageContent(
        text="Your PTO request has been submitted for approval. You'll be notified once your manager reviews it."
    )


def cancelled() -> MessageContent:
    return MessageContent(text="PTO request cancelled.")


def decision_to_employee(request: PTORequest, decision: Decision) -> MessageContent:
    if decision is Decision.APPROVED:
        return MessageContent(
            text=(
                "Your PTO was approved!\n"
                f"*Dates:* {request.start.isoformat()} → {request.end.isoformat()}\n"
                f"*Business days:* {request.business_days}\n"
                f"*Approved by:* <@{request.approver_id}>"
            )
        )
    return MessageContent(
        text=(
            "Your PTO request was denied.\n"
            f"*Dates:* {request.start.isoformat()} → {request.end.isoformat()}\n"
            f"*Denied by:* <@{request.approver_id}>\n"
            "Please speak with your manager if you have questions."
        )
    )


# ---------------------------------------------------------------------------
# Manager-facing
# ---------------------------------------------------------------------------


def manager_request(request: PTORequest, history: PTOHistory, today: date) -> MessageContent:
    if history.last_request_date is not None:
        days_since_last = str((today - history.last_request_date.astimezone(UTC).date()).days)
    else:
        days_since_last = "N/A"
    value = DecisionValue(request_id=request.request_id).model_dump_json()
    text = (
        "*New PTO Request*\n"
        f"*Employee:* {request.user_name} (<@{request.user_id}>)\n"
        f"*Dates:* {request.start.isoformat()} → {request.end.isoformat()}\n"
        f"*Business days:* {request.business_days}\n"
        f"*Reason:* {request.reason}\n\n"
        "*Context*\n"
        f"• Current balance: {history.days_remaining}\n"
        f"• After approval: {history.days_remaining - request.business_days}\n"
        f"• Days since last request: {days_since_last}\n"
        f"• Avg requests/month: {history.avg_requests_per_month}\n"
        f"• Total days used this year: {history.total_days_used}"
    )
    return MessageContent(
        text=f"New PTO request from {request.user_name}",
        blocks=[
            _section(text),
            {
                "type": "actions",
                "elements": [
                    _button(SlackAction.APPROVE, "Approve", value, "primary"),
                    _button(SlackAction.DENY, "Deny", value, "danger"),
                ],
            },
        ],
    )


def manager_decided(request: PTORequest, decision: Decision) -> MessageContent:
    return MessageContent(text=f"PTO request for {request.user_name} has been {decision.value}.")


def not_authorized() -> MessageContent:
    return MessageContent(text="You are not authorized to decide this request.")


def already_decided(current_status: str) -> MessageContent:
    return MessageContent(text=f"This request was already {current_status} by someone else.")


def request_unavailable() -> MessageContent:
    return MessageContent(text="This request could not be found. It may have been removed.")


def balance_failure_alert(request: PTORequest, error: str) -> MessageContent:
    return MessageContent(
        text=(
            f"Request {request.request_id} for <@{request.user_id}> was approved "
            f"({request.business_days} days) but the balance sheet could not be updated: {error}. "
            "Please adjust the balance manually."
        )
    )
