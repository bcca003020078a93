"""Inbound Slack endpoints.

Each handler verifies and parses the delivery, schedules the work as a
background task and acknowledges immediately; Slack redelivers anything not
acknowledged within about three seconds.
"""

from __future__ import annotations

import logging
from urllib.parse import parse_qs

from fastapi import APIRouter, BackgroundTasks, Response, status
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError as PydanticValidationError

from pto_bot.api.deps import ServicesDep, SlackBodyDep
from pto_bot.exceptions import AppError
from pto_bot.models.enums import Decision, SlackAction
from pto_bot.schemas.slack import EventEnvelope, InteractionPayload, SlashCommand

logger = logging.getLogger(__name__)

slack_router = APIRouter(prefix="/slack", tags=["slack"])


def _parse_form(body: bytes) -> dict[str, str]:
    return {key: values[0] for key, values in parse_qs(body.decode("utf-8"), keep_blank_values=True).items()}


@slack_router.post("/commands")
async def slash_command(
    body: SlackBodyDep,
    services: ServicesDep,
    background_tasks: BackgroundTasks,
) -> dict[str, str]:
    """Handle ``/pto <free text>``. Replies land in the user's DM."""
    try:
        command = SlashCommand.model_validate(_parse_form(body))
    except PydanticValidationError:
        raise AppError("Malformed slash command", status_code=status.HTTP_400_BAD_REQUEST) from None

    logger.info("Slash command %s from user %s", command.command, command.user_id)
    background_tasks.add_task(
        services.workflow.handle_leave_request, command.user_id, command.text, command.user_id
    )
    return {"response_type": "ephemeral", "text": "Working on your PTO request..."}


@slack_router.post("/events", response_model=None)
async def events(
    body: SlackBodyDep,
    services: ServicesDep,
    background_tasks: BackgroundTasks,
) -> Response:
    """Events API: URL verification and direct messages to the bot."""
    try:
        envelope = EventEnvelope.model_validate_json(body)
    except PydanticValidationError:
        raise AppError("Malformed event payload", status_code=status.HTTP_400_BAD_REQUEST) from None

    if envelope.type == "url_verification":
        return PlainTextResponse(envelope.challenge or "")

    event = envelope.event
    if envelope.type != "event_callback" or event is None:
        return Response(status_code=status.HTTP_200_OK)

    if envelope.event_id and not services.deduplicator.first_delivery(envelope.event_id):
        logger.info("Dropping redelivered event %s", envelope.event_id)
        return Response(status_code=status.HTTP_200_OK)

    if event.is_direct_message and event.user is not None:
        logger.info("DM received from user %s", event.user)
        background_tasks.add_task(
            services.workflow.handle_leave_request, event.user, event.text, event.channel or event.user
        )
    return Response(status_code=status.HTTP_200_OK)


@slack_router.post("/interactions", response_model=None)
async def interactions(
    body: SlackBodyDep,
    services: ServicesDep,
    background_tasks: BackgroundTasks,
) -> Response:
    """Block actions from the confirm / cancel / approve / deny buttons."""
    raw_payload = _parse_form(body).get("payload", "")
    try:
        payload = InteractionPayload.model_validate_json(raw_payload)
    except PydanticValidationError:
        raise AppError("Malformed interaction payload", status_code=status.HTTP_400_BAD_REQUEST) from None

    if payload.type != "block_actions" or not payload.actions:
        return Response(status_code=status.HTTP_200_OK)

    action = payload.actions[0]
    actor_id = payload.user.id
    channel_id = payload.channel.id if payload.channel else actor_id
    message_ts = payload.message.ts if payload.message else ""
    workflow = services.workflow

    if action.action_id == SlackAction.CONFIRM:
        background_tasks.add_task(workflow.handle_confirm, actor_id, channel_id, message_ts, action.value)
    elif action.action_id == SlackAction.CANCEL:
        background_tasks.add_task(workflow.handle_cancel, channel_id, message_ts)
    elif action.action_id == SlackAction.APPROVE:
        background_tasks.add_task(
            workflow.handle_decision, actor_id, channel_id, message_ts, action.value, Decision.APPROVED
        )
    elif action.action_id == SlackAction.DENY:
        background_tasks.add_task(
            workflow.handle_decision, actor_id, channel_id, message_ts, action.value, Decision.DENIED
        )
    else:
        logger.info("Ignoring unknown action %s from %s", action.action_id, actor_id)

    return Response(status_code=status.HTTP_200_OK)
