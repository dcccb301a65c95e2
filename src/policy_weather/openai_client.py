"""Async Chat Completions client shared by the coverage extractor and event search."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from .config import Settings
from .exceptions import LLMRequestError
from .redaction import sanitize_text


class OpenAIChatClient:
    """Posts chat-completion requests with bearer auth and bounded retries."""

    def __init__(
        self,
        settings: Settings,
        logger: logging.Logger | None = None,
        max_retries: int = 1,
        retry_delay_seconds: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not settings.openai_api_key:
            raise LLMRequestError("OPENAI_API_KEY is not configured.")
        self.settings = settings
        self.logger = logger or logging.getLogger("policy_weather.openai_client")
        self._max_retries = max_retries
        self._retry_delay = retry_delay_seconds
        self._url = f"{str(settings.openai_base_url).rstrip('/')}/chat/completions"
        self._client = httpx.AsyncClient(
            timeout=settings.openai_timeout_seconds,
            transport=transport,
            headers={
                "Authorization": f"Bearer {settings.openai_api_key}",
                "Content-Type": "application/json",
            },
        )

    async def __aenter__(self) -> OpenAIChatClient:
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, exc_tb: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def complete(
        self,
        messages: list[dict[str, Any]],
        *,
        temperature: float,
        max_tokens: int,
        response_format: dict[str, Any] | None = None,
        context: str = "chat completion",
    ) -> dict[str, Any]:
        """Send one chat-completion request and return the decoded JSON payload."""
        body: dict[str, Any] = {
            "model": self.settings.openai_model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if response_format is not None:
            body["response_format"] = response_format
        return await self._post_json(body, context=context)

    async def _post_json(self, body: dict[str, Any], context: str) -> dict[str, Any]:
        last_error: Exception | None = None
        for attempt in range(self._max_retries + 1):
            try:
                response = await self._client.post(self._url, json=body)
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                # Don't retry 4xx client errors except 429 rate-limit.
                if 400 <= status < 500 and status != 429:
                    raise LLMRequestError(
                        f"OpenAI {context} failed with status {status}: "
                        f"{sanitize_text(exc.response.text[:300])}",
                        status_code=status,
                    ) from exc
                last_error = exc
                if attempt < self._max_retries:
                    self.logger.warning(
                        "OpenAI %s failed (HTTP %d); retrying",
                        context, status,
                    )
                    await asyncio.sleep(self._retry_delay)
                    continue
                raise LLMRequestError(
                    f"OpenAI {context} failed with status {status}: "
                    f"{sanitize_text(exc.response.text[:300])}",
                    status_code=status,
                ) from exc
            except httpx.HTTPError as exc:
                last_error = exc
                if attempt < self._max_retries:
                    self.logger.warning(
                        "OpenAI %s request failed (%s); retrying",
                        context, type(exc).__name__,
                    )
                    await asyncio.sleep(self._retry_delay)
                    continue
                raise LLMRequestError(
                    f"OpenAI {context} request failed: {sanitize_text(str(exc))}"
                ) from exc

            try:
                payload = response.json()
            except ValueError as exc:
                raise LLMRequestError(f"OpenAI {context} returned non-JSON response.") from exc
            if not isinstance(payload, dict):
                raise LLMRequestError(
                    f"OpenAI {context} returned unexpected payload type "
                    f"{type(payload).__name__}."
                )
            return payload

        raise LLMRequestError(f"OpenAI {context} failed after retries: {last_error}")
