"""Redaction of credentials and page images before anything is logged or journaled."""

from __future__ import annotations

import re
from collections.abc import Callable
from typing import Any

REDACTED = "[REDACTED]"
OMITTED_IMAGE = "data:image/<omitted>"

_SECRET_NAMES = r"authorization|token|secret|api[_-]?key|apikey|bearer"
_SENSITIVE_KEY_RE = re.compile(_SECRET_NAMES, re.IGNORECASE)

# Applied in order; bearer tokens go first so "Authorization: Bearer x" keeps its shape.
_TEXT_RULES: tuple[tuple[re.Pattern[str], str | Callable[[re.Match[str]], str]], ...] = (
    (re.compile(r"(?i)\b(bearer)\s+[A-Za-z0-9\-._~+/]+=*"), r"\1 " + REDACTED),
    (re.compile(r"\bsk-[A-Za-z0-9_\-]{8,}"), REDACTED),
    (
        re.compile(rf"(?i)\b({_SECRET_NAMES})\s*[:=]\s*([^\s,;&]+)"),
        lambda match: f"{match.group(1)}={REDACTED}",
    ),
    # Inline base64 page images are large and carry document contents.
    (re.compile(r"data:image/[a-zA-Z0-9.+-]+;base64,[A-Za-z0-9+/=]{32,}"), OMITTED_IMAGE),
)


def sanitize_text(text: str) -> str:
    for pattern, replacement in _TEXT_RULES:
        text = pattern.sub(replacement, text)
    return text


def sanitize_for_logging(value: Any) -> Any:
    """Recursively redact values under sensitive keys and inside strings."""
    if isinstance(value, str):
        return sanitize_text(value)
    if isinstance(value, dict):
        return {
            key: REDACTED if _SENSITIVE_KEY_RE.search(str(key)) else sanitize_for_logging(child)
            for key, child in value.items()
        }
    if isinstance(value, (list, tuple)):
        return type(value)(sanitize_for_logging(item) for item in value)
    return value
