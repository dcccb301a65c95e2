"""JSONL run journal plus raw model-response snapshots."""

from __future__ import annotations

import json
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from .events.models import WeatherEvent
from .exceptions import JournalError
from .redaction import sanitize_for_logging, sanitize_text

WEATHER_EVENT_PERSISTED = "weather_event_persisted"
MODEL_RESPONSE_SNAPSHOT = "model_response_snapshot"


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        aware = value if value.tzinfo else value.replace(tzinfo=UTC)
        return aware.astimezone(UTC).isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True, exclude_none=True)
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, BaseException):
        return f"{type(value).__name__}: {sanitize_text(str(value))}"
    raise TypeError(f"Cannot journal value of type {type(value).__name__}")


def _safe_file_token(name: str) -> str:
    return "".join(ch if ch.isalnum() or ch in {"-", "_"} else "_" for ch in name)


class JournalWriter:
    """Per-session journal: one JSONL file per UTC day, one JSON file per snapshot.

    Every record and snapshot is passed through ``sanitize_for_logging`` so
    credentials and inline page images never reach disk.
    """

    def __init__(self, journal_dir: Path, raw_payload_dir: Path, session_id: str) -> None:
        self.journal_dir = journal_dir
        self.raw_payload_dir = raw_payload_dir
        self.session_id = session_id
        for directory in (journal_dir, raw_payload_dir):
            directory.mkdir(parents=True, exist_ok=True)
        self.events_path = journal_dir / f"{datetime.now(UTC):%Y%m%d}.jsonl"

    def write_event(
        self,
        event_type: str,
        payload: dict[str, Any],
        metadata: dict[str, Any] | None = None,
    ) -> None:
        record = {
            "ts": datetime.now(UTC).isoformat(),
            "event_type": event_type,
            "session_id": self.session_id,
            "payload": sanitize_for_logging(payload),
            "metadata": sanitize_for_logging(metadata or {}),
        }
        try:
            line = json.dumps(record, default=_json_default)
            with self.events_path.open("a", encoding="utf-8") as fh:
                fh.write(line + "\n")
        except (OSError, TypeError, ValueError) as exc:
            raise JournalError(f"Failed writing {event_type} to journal: {exc}") from exc

    def persist_weather_event(self, event: WeatherEvent) -> None:
        """Record one reconciled event; used as the reconciler's persistence hook."""
        self.write_event(
            WEATHER_EVENT_PERSISTED,
            payload=event.to_payload(),
            metadata={"dedupe_key": f"{event.date.isoformat()}/{event.type}"},
        )

    def write_raw_snapshot(self, name: str, payload: Any) -> Path:
        """Write one sanitized JSON snapshot and return its path."""
        stamp = datetime.now(UTC).strftime("%Y%m%dT%H%M%SZ")
        output_path = self.raw_payload_dir / f"{stamp}_{self.session_id}_{_safe_file_token(name)}.json"
        try:
            text = json.dumps(
                sanitize_for_logging(payload),
                ensure_ascii=False,
                indent=2,
                default=_json_default,
            )
            output_path.write_text(text + "\n", encoding="utf-8")
        except (OSError, TypeError, ValueError) as exc:
            raise JournalError(f"Failed writing snapshot {name!r}: {exc}") from exc
        return output_path

    def snapshot_model_response(self, kind: str, payload: dict[str, Any]) -> Path:
        """Snapshot a raw chat-completion response and journal where it went."""
        path = self.write_raw_snapshot(f"openai_{kind}", payload)
        self.write_event(
            MODEL_RESPONSE_SNAPSHOT,
            payload={"kind": kind, "path": path},
        )
        return path
