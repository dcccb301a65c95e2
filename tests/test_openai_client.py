from __future__ import annotations

import asyncio
import json
import logging
from types import SimpleNamespace
from typing import Any

import httpx
import pytest

from policy_weather.exceptions import LLMRequestError, LLMResponseError
from policy_weather.llm_json import extract_json_object, message_content, strip_code_fences
from policy_weather.openai_client import OpenAIChatClient


def _make_settings(**overrides: Any) -> Any:
    defaults = {
        "openai_api_key": "sk-testkey1234567890",
        "openai_base_url": "https://api.openai.test/v1/",
        "openai_timeout_seconds": 5.0,
        "openai_model": "gpt-4o",
    }
    defaults.update(overrides)
    return SimpleNamespace(**defaults)


def _completion(content: str) -> dict[str, Any]:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def _make_client(handler: Any) -> OpenAIChatClient:
    return OpenAIChatClient(
        _make_settings(),
        logger=logging.getLogger("test_openai_client"),
        retry_delay_seconds=0.0,
        transport=httpx.MockTransport(handler),
    )


def test_strip_code_fences_keeps_content() -> None:
    assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fences('{"a": 1}') == '{"a": 1}'


def test_extract_json_object_ignores_surrounding_prose() -> None:
    text = 'Here is the data:\n```json\n{"coverageA": "$300,000"}\n```\nLet me know!'
    assert extract_json_object(text) == {"coverageA": "$300,000"}


@pytest.mark.parametrize("text", ["no json here", "{not json}", "[1, 2]", "} backwards {"])
def test_extract_json_object_rejects_unusable_text(text: str) -> None:
    with pytest.raises(LLMResponseError):
        extract_json_object(text)


def test_message_content_reads_first_choice() -> None:
    assert message_content(_completion("hello")) == "hello"


@pytest.mark.parametrize(
    "payload",
    [{}, {"choices": []}, {"choices": [{"message": {}}]}, {"choices": [{"message": {"content": "  "}}]}],
)
def test_message_content_requires_text(payload: dict[str, Any]) -> None:
    with pytest.raises(LLMResponseError):
        message_content(payload)


def test_client_requires_api_key() -> None:
    with pytest.raises(LLMRequestError, match="OPENAI_API_KEY"):
        OpenAIChatClient(_make_settings(openai_api_key=None))


def test_complete_posts_model_messages_and_auth() -> None:
    seen: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_completion('{"events": []}'))

    client = _make_client(_handler)

    async def _run() -> dict[str, Any]:
        async with client:
            return await client.complete(
                [{"role": "user", "content": "hi"}],
                temperature=0.7,
                max_tokens=1000,
                response_format={"type": "json_object"},
            )

    payload = asyncio.run(_run())

    assert message_content(payload) == '{"events": []}'
    request = seen[0]
    assert str(request.url) == "https://api.openai.test/v1/chat/completions"
    assert request.headers["Authorization"] == "Bearer sk-testkey1234567890"
    body = json.loads(request.content)
    assert body["model"] == "gpt-4o"
    assert body["temperature"] == 0.7
    assert body["max_tokens"] == 1000
    assert body["response_format"] == {"type": "json_object"}


def test_server_error_is_retried_once() -> None:
    attempts: list[int] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        attempts.append(1)
        if len(attempts) == 1:
            return httpx.Response(500, text="overloaded")
        return httpx.Response(200, json=_completion("ok"))

    client = _make_client(_handler)
    payload = asyncio.run(client.complete([], temperature=0.1, max_tokens=10))

    assert len(attempts) == 2
    assert message_content(payload) == "ok"


def test_client_error_fails_immediately_with_status() -> None:
    attempts: list[int] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        attempts.append(1)
        return httpx.Response(400, text="bad request")

    client = _make_client(_handler)
    with pytest.raises(LLMRequestError) as excinfo:
        asyncio.run(client.complete([], temperature=0.1, max_tokens=10))

    assert len(attempts) == 1
    assert excinfo.value.status_code == 400


def test_rate_limit_is_retried_then_reported() -> None:
    attempts: list[int] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        attempts.append(1)
        return httpx.Response(429, text="slow down")

    client = _make_client(_handler)
    with pytest.raises(LLMRequestError) as excinfo:
        asyncio.run(client.complete([], temperature=0.1, max_tokens=10))

    assert len(attempts) == 2
    assert excinfo.value.status_code == 429


def test_transport_errors_are_retried_then_wrapped() -> None:
    attempts: list[int] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        attempts.append(1)
        raise httpx.ConnectError("connection refused", request=request)

    client = _make_client(_handler)
    with pytest.raises(LLMRequestError, match="request failed"):
        asyncio.run(client.complete([], temperature=0.1, max_tokens=10))
    assert len(attempts) == 2


def test_non_json_response_is_rejected() -> None:
    client = _make_client(lambda request: httpx.Response(200, text="<html>oops</html>"))
    with pytest.raises(LLMRequestError, match="non-JSON"):
        asyncio.run(client.complete([], temperature=0.1, max_tokens=10))


def test_error_bodies_are_redacted() -> None:
    client = _make_client(
        lambda request: httpx.Response(401, text="Incorrect API key provided: sk-abcdefghijklmnop1234")
    )
    with pytest.raises(LLMRequestError) as excinfo:
        asyncio.run(client.complete([], temperature=0.1, max_tokens=10))
    assert "sk-abcdefghijklmnop1234" not in str(excinfo.value)
