from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Protocol, runtime_checkable

import httpx
from pydantic import ValidationError as PydanticValidationError

from pto_bot.exceptions import ParseError, UpstreamError
from pto_bot.schemas.request import ExtractedDates

if TYPE_CHECKING:
    from datetime import date

    from pto_bot.config import Settings

logger = logging.getLogger(__name__)

_PROMPT = """Extract PTO (paid time off) details from: "{text}"

Return a STRICT JSON object with keys:
- start: date in YYYY-MM-DD
- end: date in YYYY-MM-DD
- reason: short string

Rules:
- If only one date is present, set start=end.
- Use today's date ({today}) to resolve relative phrases like "tomorrow" or "next Monday".
- Do NOT include any extra keys or text; only valid JSON."""


@runtime_checkable
class DateExtractor(Protocol):
    """Turns free text into a start/end/reason triple."""

    async def extract(self, text: str, reference_date: date) -> ExtractedDates:
        """Extract dates relative to ``reference_date``. Raises ParseError on unusable output."""
        ...


def parse_completion(content: str | None) -> ExtractedDates:
    """Validate the model's JSON answer."""
    if not content or not content.strip():
        raise ParseError("Parser returned empty result")
    cleaned = content.strip()
    # Some models wrap JSON in a markdown fence.
    if cleaned.startswith("```"):
        cleaned = cleaned.strip("`").removeprefix("json").strip()
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        raise ParseError("Parser returned invalid JSON") from None
    if not isinstance(data, dict):
        raise ParseError("Parser returned a non-object")
    try:
        return ExtractedDates.model_validate(data)
    except PydanticValidationError:
        raise ParseError("Parser output is missing start or end") from None


class OpenRouterDateExtractor:
    """Date extraction through an OpenAI-compatible chat completions endpoint."""

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str = "https://openrouter.ai/api/v1",
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @classmethod
    def from_settings(cls, settings: Settings) -> OpenRouterDateExtractor:
        return cls(
            api_key=settings.openrouter_api_key,
            model=settings.openrouter_model,
            base_url=settings.openrouter_base_url,
            timeout=settings.extractor_timeout_seconds,
        )

    async def extract(self, text: str, reference_date: date) -> ExtractedDates:
        payload = {
            "model": self._model,
            "temperature": 0,
            "messages": [{"role": "user", "content": _PROMPT.format(text=text, today=reference_date.isoformat())}],
        }
        try:
            response = await self._client.post(
                f"{self._base_url}/chat/completions",
                json=payload,
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Date extractor request failed: %s", exc)
            raise UpstreamError("Date extraction service unavailable") from exc

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError):
            raise ParseError("Parser returned an unexpected response") from None
        return parse_completion(content)

    async def aclose(self) -> None:
        await self._client.aclose()
