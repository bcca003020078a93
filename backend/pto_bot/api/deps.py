from __future__ import annotations

import logging
from typing import Annotated

from fastapi import Depends, Request
from slack_sdk.signature import SignatureVerifier

from pto_bot.config import Settings, get_settings
from pto_bot.exceptions import SignatureError
from pto_bot.services.wiring import AppServices

logger = logging.getLogger(__name__)

SettingsDep = Annotated[Settings, Depends(get_settings)]


def get_services(request: Request) -> AppServices:
    """Services built in the application lifespan."""
    services: AppServices = request.app.state.services
    return services


ServicesDep = Annotated[AppServices, Depends(get_services)]


async def verify_slack_signature(request: Request, settings: SettingsDep) -> bytes:
    """Return the raw body after checking Slack's request signature."""
    body = await request.body()
    timestamp = request.headers.get("X-Slack-Request-Timestamp", "")
    signature = request.headers.get("X-Slack-Signature", "")

    if not settings.slack_signing_secret or not timestamp or not signature:
        logger.warning("Rejected Slack request to %s: missing signature headers or secret", request.url.path)
        raise SignatureError

    verifier = SignatureVerifier(settings.slack_signing_secret)
    try:
        valid = verifier.is_valid(body=body, timestamp=timestamp, signature=signature)
    except ValueError:
        valid = False
    if not valid:
        logger.warning("Rejected Slack request to %s: invalid signature", request.url.path)
        raise SignatureError
    return body


SlackBodyDep = Annotated[bytes, Depends(verify_slack_signature)]
