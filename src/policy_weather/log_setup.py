"""JSON console logging for the policy and events CLIs."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Any

from .redaction import sanitize_for_logging, sanitize_text

# Attributes present on every LogRecord; anything else came from ``extra=``.
_STANDARD_RECORD_ATTRS = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", None, None).__dict__
) | {"message", "asctime", "taskName"}


class SessionFilter(logging.Filter):
    """Stamp each record with the CLI session id so logs line up with the journal."""

    def __init__(self, session_id: str) -> None:
        super().__init__()
        self.session_id = session_id

    def filter(self, record: logging.LogRecord) -> bool:
        record.session_id = self.session_id
        return True


class JsonConsoleFormatter(logging.Formatter):
    """One redacted JSON object per log line."""

    def format(self, record: logging.LogRecord) -> str:
        line: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": sanitize_text(record.getMessage()),
        }
        extra = {
            key: value
            for key, value in vars(record).items()
            if key not in _STANDARD_RECORD_ATTRS
        }
        session_id = extra.pop("session_id", None)
        if session_id is not None:
            line["session_id"] = session_id
        if extra:
            line["extra"] = sanitize_for_logging(extra)
        if record.exc_info:
            line["exception"] = sanitize_text(self.formatException(record.exc_info))
        return json.dumps(line, default=str)


def setup_logger(
    name: str = "policy_weather",
    level: int = logging.INFO,
    *,
    session_id: str | None = None,
) -> logging.Logger:
    """Configure the package logger once per process; later calls only refresh the session."""
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(JsonConsoleFormatter())
        logger.addHandler(handler)
    # Handler filters also see records propagated up from child loggers.
    for attached in logger.handlers:
        for existing in [f for f in attached.filters if isinstance(f, SessionFilter)]:
            attached.removeFilter(existing)
        if session_id is not None:
            attached.addFilter(SessionFilter(session_id))
    return logger
