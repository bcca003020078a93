"""Tests for the OpenRouter date extractor and completion parsing."""

from __future__ import annotations

import json
from datetime import date

import httpx
import pytest

from pto_bot.exceptions import ParseError, UpstreamError
from pto_bot.services.date_extractor import DateExtractor, OpenRouterDateExtractor, parse_completion

TODAY = date(2024, 6, 10)


def _completion(content: str | None) -> dict[str, object]:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def _extractor(handler: httpx.MockTransport) -> OpenRouterDateExtractor:
    return OpenRouterDateExtractor(
        api_key="or-key",
        model="openai/gpt-3.5-turbo",
        base_url="https://openrouter.test/api/v1/",
        client=httpx.AsyncClient(transport=handler),
    )


# ---------------------------------------------------------------------------
# parse_completion
# ---------------------------------------------------------------------------


def test_parse_plain_json() -> None:
    extracted = parse_completion('{"start": "2024-06-11", "end": "2024-06-11", "reason": "Dentist"}')
    assert (extracted.start, extracted.end, extracted.reason) == ("2024-06-11", "2024-06-11", "Dentist")


def test_parse_fenced_json() -> None:
    content = '```json\n{"start": "2024-06-17", "end": "2024-06-21", "reason": "Vacation"}\n```'
    extracted = parse_completion(content)
    assert extracted.start == "2024-06-17"
    assert extracted.end == "2024-06-21"


def test_parse_without_reason() -> None:
    assert parse_completion('{"start": "2024-06-11", "end": "2024-06-12"}').reason is None


@pytest.mark.parametrize(
    "content",
    [
        None,
        "",
        "   ",
        "Sure! Here are your dates.",
        '["2024-06-11", "2024-06-12"]',
        '{"start": "2024-06-11"}',
    ],
)
def test_parse_rejects_unusable_content(content: str | None) -> None:
    with pytest.raises(ParseError):
        parse_completion(content)


# ---------------------------------------------------------------------------
# OpenRouterDateExtractor
# ---------------------------------------------------------------------------


async def test_extract_posts_prompt_and_parses_answer() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200, json=_completion('{"start": "2024-06-11", "end": "2024-06-11", "reason": "Dentist appointment"}')
        )

    extractor = _extractor(httpx.MockTransport(handler))
    extracted = await extractor.extract("tomorrow for a dentist appointment", TODAY)
    await extractor.aclose()

    assert extracted.start == "2024-06-11"
    assert extracted.reason == "Dentist appointment"

    request = seen[0]
    assert str(request.url) == "https://openrouter.test/api/v1/chat/completions"
    assert request.headers["Authorization"] == "Bearer or-key"
    body = json.loads(request.content)
    assert body["model"] == "openai/gpt-3.5-turbo"
    assert body["temperature"] == 0
    prompt = body["messages"][0]["content"]
    assert "tomorrow for a dentist appointment" in prompt
    assert "2024-06-10" in prompt


async def test_extract_http_error_is_upstream_error() -> None:
    extractor = _extractor(httpx.MockTransport(lambda _request: httpx.Response(502, text="bad gateway")))
    with pytest.raises(UpstreamError):
        await extractor.extract("tomorrow", TODAY)


async def test_extract_transport_error_is_upstream_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    extractor = _extractor(httpx.MockTransport(handler))
    with pytest.raises(UpstreamError):
        await extractor.extract("tomorrow", TODAY)


async def test_extract_unexpected_body_is_parse_error() -> None:
    extractor = _extractor(httpx.MockTransport(lambda _request: httpx.Response(200, json={"choices": []})))
    with pytest.raises(ParseError):
        await extractor.extract("tomorrow", TODAY)


async def test_extract_non_json_answer_is_parse_error() -> None:
    extractor = _extractor(httpx.MockTransport(lambda _request: httpx.Response(200, json=_completion("no idea"))))
    with pytest.raises(ParseError):
        await extractor.extract("whenever", TODAY)


def test_extractor_satisfies_protocol() -> None:
    extractor = _extractor(httpx.MockTransport(lambda _request: httpx.Response(200)))
    assert isinstance(extractor, DateExtractor)
