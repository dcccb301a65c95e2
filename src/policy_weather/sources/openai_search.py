"""Free-text generative search for hail/wind events via OpenAI chat completions."""

from __future__ import annotations

import json
import logging
from typing import Any

from ..config import Settings
from ..exceptions import EventSourceError, LLMRequestError, LLMResponseError
from ..llm_json import message_content, strip_code_fences
from ..openai_client import OpenAIChatClient
from .base import EventSource

SYSTEM_PROMPT = """You are a weather research assistant specializing in finding historical \
hail and windstorm events.
Your task is to search for and report any hail or severe wind events that occurred at or \
near the specified location during the given time period.
Focus specifically on:
1. Hail events of any size
2. Windstorms, including severe gusts and sustained high winds
3. Any property damage caused by these events
4. Specific locations and precise dates

For each event found:
- Include the specific date in YYYY-MM-DD format
- For hail events, include hail sizes when available
- For wind events, include wind speeds when available
- Include any reported damage
- Type must be either 'hail' or 'wind'
- Include source URLs when available
You must respond with properly formatted JSON only."""

USER_PROMPT_TEMPLATE = """Search for any hail or severe wind events that occurred at or near \
{location} between {start_date} and {end_date}.
Return the results in this exact JSON format:
{{
  "events": [
    {{
      "date": "YYYY-MM-DD",
      "type": "hail",
      "details": "Detailed description including sizes and damage",
      "source": "Source name",
      "sourceUrl": "https://example.com/event"
    }}
  ]
}}
The type field must be either "hail" or "wind". The date must be in YYYY-MM-DD format.
If no events are found, return an empty events array."""


def build_search_messages(location: str, start_date: str, end_date: str) -> list[dict[str, Any]]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {
            "role": "user",
            "content": USER_PROMPT_TEMPLATE.format(
                location=location,
                start_date=start_date,
                end_date=end_date,
            ),
        },
    ]


def parse_search_response(content: str) -> list[Any]:
    """Extract the raw ``events`` list from model output.

    Elements are returned unvalidated; the reconciliation normalizer decides
    which of them become canonical events.
    """
    cleaned = strip_code_fences(content)
    try:
        parsed = json.loads(cleaned)
    except ValueError as exc:
        raise EventSourceError(
            f"OpenAI search response is not valid JSON: {exc}",
            source=OpenAISearchEventSource.name,
        ) from exc
    events = parsed.get("events") if isinstance(parsed, dict) else None
    if not isinstance(events, list):
        raise EventSourceError(
            "OpenAI search response has no 'events' list.",
            source=OpenAISearchEventSource.name,
        )
    return events


class OpenAISearchEventSource(EventSource):
    """Lower-trust, higher-recall event candidates from a language model."""

    name = "openai"

    def __init__(
        self,
        settings: Settings,
        logger: logging.Logger | None = None,
        client: OpenAIChatClient | None = None,
    ) -> None:
        self.settings = settings
        self.logger = logger or logging.getLogger("policy_weather.sources.openai_search")
        self._client = client
        self._owns_client = client is None
        self.last_raw_response: dict[str, Any] | None = None

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def search(
        self,
        location: str,
        start_date: str,
        end_date: str,
    ) -> list[dict[str, Any]]:
        client = self._get_client()
        self.logger.info(
            "Starting OpenAI event search for %s between %s and %s",
            location, start_date, end_date,
        )
        try:
            payload = await client.complete(
                build_search_messages(location, start_date, end_date),
                temperature=self.settings.openai_search_temperature,
                max_tokens=self.settings.openai_search_max_tokens,
                response_format={"type": "json_object"},
                context="event search",
            )
        except LLMRequestError as exc:
            raise EventSourceError(str(exc), source=self.name) from exc
        self.last_raw_response = payload

        try:
            content = message_content(payload)
        except LLMResponseError as exc:
            raise EventSourceError(str(exc), source=self.name) from exc
        events = parse_search_response(content)
        self.logger.info("OpenAI search returned %d candidates.", len(events))
        return events

    def _get_client(self) -> OpenAIChatClient:
        if self._client is None:
            if not self.settings.openai_api_key:
                raise EventSourceError("OPENAI_API_KEY is not configured.", source=self.name)
            self._client = OpenAIChatClient(self.settings, logger=self.logger)
        return self._client
