"""Helpers for pulling JSON out of free-form chat-completion output."""

from __future__ import annotations

import json
import re
from typing import Any

from .exceptions import LLMResponseError

_CODE_FENCE_RE = re.compile(r"```(?:json)?\s*\n?|\n?```", re.IGNORECASE)


def strip_code_fences(text: str) -> str:
    """Remove markdown code-fence markers, keeping the fenced content."""
    return _CODE_FENCE_RE.sub("", text).strip()


def extract_json_object(text: str) -> dict[str, Any]:
    """Return the outermost JSON object embedded in ``text``.

    Model output often wraps JSON in markdown fences or adds a sentence before
    or after it, so everything outside the first ``{`` and the last ``}`` is
    discarded before parsing.
    """
    if not isinstance(text, str):
        raise LLMResponseError(f"Expected text content, got {type(text).__name__}.")
    cleaned = strip_code_fences(text)
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end == -1 or end < start:
        raise LLMResponseError("No JSON object found in model response.")
    try:
        parsed = json.loads(cleaned[start : end + 1])
    except ValueError as exc:
        raise LLMResponseError(f"Invalid JSON structure in model response: {exc}") from exc
    if not isinstance(parsed, dict):
        raise LLMResponseError("Model response JSON is not an object.")
    return parsed


def message_content(payload: dict[str, Any]) -> str:
    """Return ``choices[0].message.content`` from a chat-completion payload."""
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        raise LLMResponseError("Chat completion payload has no choices.")
    first = choices[0]
    message = first.get("message") if isinstance(first, dict) else None
    content = message.get("content") if isinstance(message, dict) else None
    if not isinstance(content, str) or not content.strip():
        raise LLMResponseError("Chat completion payload has no message content.")
    return content
