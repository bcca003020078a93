import logging
from typing import Literal

from fastapi import APIRouter
from pydantic import BaseModel

from pto_bot.api.deps import ServicesDep, SettingsDep

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: Literal["ok", "degraded", "error"]
    version: str
    environment: str
    store_backend: str


@router.get("/health", response_model=HealthResponse)
async def health(services: ServicesDep, settings: SettingsDep) -> HealthResponse:
    """Return the health status of the service and its stores."""
    status: Literal["ok", "degraded", "error"] = "ok"

    try:
        await services.requests.ping()
        await services.balances.ping()
    except Exception:
        logger.exception("Health check: store connectivity failed")
        status = "degraded"

    return HealthResponse(
        status=status,
        version=settings.app_version,
        environment=settings.environment,
        store_backend=settings.store_backend,
    )
