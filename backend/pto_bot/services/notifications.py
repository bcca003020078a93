from __future__ import annotations

import itertools
import logging
from typing import Protocol, runtime_checkable

import aiohttp
from pydantic import BaseModel
from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient

from pto_bot.schemas.slack import MessageContent

logger = logging.getLogger(__name__)

UNKNOWN_USER_NAME = "Unknown"


def _error_code(exc: Exception) -> str:
    """Slack's error code for API errors, the exception text otherwise."""
    if isinstance(exc, SlackApiError):
        return str(exc.response.get("error"))
    return str(exc)


@runtime_checkable
class NotificationGateway(Protocol):
    """Outbound chat messages. Delivery failures are logged, never raised."""

    async def notify(self, target_id: str, content: MessageContent) -> str | None:
        """Post a message to a user or channel. Returns the message id, or None on failure."""
        ...

    async def update_message(self, channel_id: str, message_id: str, content: MessageContent) -> None:
        """Replace the content of a previously posted message."""
        ...

    async def notify_ephemeral(self, channel_id: str, user_id: str, content: MessageContent) -> None:
        """Post a message visible only to ``user_id``."""
        ...

    async def user_name(self, user_id: str) -> str:
        """Display name for a user, or ``"Unknown"``."""
        ...


class SlackNotificationGateway:
    """NotificationGateway over the Slack Web API."""

    def __init__(self, client: AsyncWebClient) -> None:
        self._client = client

    @classmethod
    def from_token(cls, token: str) -> SlackNotificationGateway:
        return cls(AsyncWebClient(token=token))

    async def notify(self, target_id: str, content: MessageContent) -> str | None:
        try:
            response = await self._client.chat_postMessage(
                channel=target_id, text=content.text, blocks=content.blocks or None
            )
        except (SlackApiError, aiohttp.ClientError) as exc:
            logger.error("Failed to post message to %s: %s", target_id, _error_code(exc))
            return None
        ts: str | None = response.get("ts")
        return ts

    async def update_message(self, channel_id: str, message_id: str, content: MessageContent) -> None:
        try:
            await self._client.chat_update(
                channel=channel_id, ts=message_id, text=content.text, blocks=content.blocks or None
            )
        except (SlackApiError, aiohttp.ClientError) as exc:
            logger.error("Failed to update message %s in %s: %s", message_id, channel_id, _error_code(exc))

    async def notify_ephemeral(self, channel_id: str, user_id: str, content: MessageContent) -> None:
        try:
            await self._client.chat_postEphemeral(
                channel=channel_id, user=user_id, text=content.text, blocks=content.blocks or None
            )
        except (SlackApiError, aiohttp.ClientError) as exc:
            logger.error("Failed to post ephemeral message to %s: %s", user_id, _error_code(exc))

    async def user_name(self, user_id: str) -> str:
        try:
            response = await self._client.users_info(user=user_id)
        except (SlackApiError, aiohttp.ClientError) as exc:
            logger.error("Failed to get Slack user %s: %s", user_id, _error_code(exc))
            return UNKNOWN_USER_NAME
        user = response.get("user") or {}
        return user.get("real_name") or user.get("name") or UNKNOWN_USER_NAME


class SentMessage(BaseModel):
    """A message recorded by the in-memory gateway."""

    kind: str  # "post", "update" or "ephemeral"
    channel_id: str
    content: MessageContent
    message_id: str | None = None
    user_id: str | None = None


class InMemoryNotificationGateway:
    """In-memory gateway for development and tests."""

    def __init__(self) -> None:
        self.sent: list[SentMessage] = []
        self._names: dict[str, str] = {}
        self._ts = itertools.count(1)

    def seed_user(self, user_id: str, name: str) -> None:
        """Seed a display name for testing."""
        self._names[user_id] = name

    def to(self, channel_id: str, kind: str | None = None) -> list[SentMessage]:
        """Messages sent to a channel, optionally filtered by kind."""
        return [m for m in self.sent if m.channel_id == channel_id and (kind is None or m.kind == kind)]

    async def notify(self, target_id: str, content: MessageContent) -> str | None:
        ts = f"{next(self._ts)}.000100"
        self.sent.append(SentMessage(kind="post", channel_id=target_id, content=content, message_id=ts))
        return ts

    async def update_message(self, channel_id: str, message_id: str, content: MessageContent) -> None:
        self.sent.append(SentMessage(kind="update", channel_id=channel_id, content=content, message_id=message_id))

    async def notify_ephemeral(self, channel_id: str, user_id: str, content: MessageContent) -> None:
        self.sent.append(SentMessage(kind="ephemeral", channel_id=channel_id, content=content, user_id=user_id))

    async def user_name(self, user_id: str) -> str:
        return self._names.get(user_id, UNKNOWN_USER_NAME)
