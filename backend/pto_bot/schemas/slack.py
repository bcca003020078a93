from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from pto_bot.schemas.request import DraftRequest

# ---------------------------------------------------------------------------
# Slash commands
# ---------------------------------------------------------------------------


class SlashCommand(BaseModel):
    """Form fields Slack posts for a slash command."""

    command: str = ""
    text: str = ""
    user_id: str
    user_name: str = ""
    channel_id: str = ""
    response_url: str = ""


# ---------------------------------------------------------------------------
# Events API
# ---------------------------------------------------------------------------


class MessageEvent(BaseModel):
    """The subset of a ``message`` event the bot reads."""

    type: str
    user: str | None = None
    text: str = ""
    channel: str | None = None
    channel_type: str | None = None
    bot_id: str | None = None
    subtype: str | None = None

    @property
    def is_direct_message(self) -> bool:
        return (
            self.type == "message"
            and self.channel_type == "im"
            and self.user is not None
            and self.bot_id is None
            and self.subtype is None
        )


class EventEnvelope(BaseModel):
    """Outer Events API body (``url_verification`` or ``event_callback``)."""

    type: str
    challenge: str | None = None
    event_id: str | None = None
    event: MessageEvent | None = None


# ---------------------------------------------------------------------------
# Interactivity
# ---------------------------------------------------------------------------


class SlackUser(BaseModel):
    id: str
    name: str | None = None


class SlackChannel(BaseModel):
    id: str


class SlackMessage(BaseModel):
    ts: str


class BlockAction(BaseModel):
    action_id: str
    value: str = ""


class InteractionPayload(BaseModel):
    """Decoded ``payload`` form field of a ``block_actions`` interaction."""

    type: str
    user: SlackUser
    channel: SlackChannel | None = None
    message: SlackMessage | None = None
    actions: list[BlockAction] = Field(default_factory=list)


class ConfirmValue(BaseModel):
    """Value of the confirm button: the pre-minted request id and the draft."""

    request_id: str
    draft: DraftRequest


class DecisionValue(BaseModel):
    """Value of the approve/deny buttons."""

    request_id: str


# ---------------------------------------------------------------------------
# Outbound messages
# ---------------------------------------------------------------------------


class MessageContent(BaseModel):
    """Text plus optional Block Kit blocks for a chat message."""

    text: str
    blocks: list[dict[str, Any]] = Field(default_factory=list)
