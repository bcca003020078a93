from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from fastapi import FastAPI, Request, Response

logger = logging.getLogger(__name__)


def setup_middleware(app: FastAPI) -> None:
    """Configure application middleware."""

    @app.middleware("http")
    async def log_slack_redelivery(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        retry_num = request.headers.get("X-Slack-Retry-Num")
        if retry_num is not None:
            logger.info(
                "Slack redelivery #%s to %s (reason: %s)",
                retry_num,
                request.url.path,
                request.headers.get("X-Slack-Retry-Reason", "unknown"),
            )
        return await call_next(request)
