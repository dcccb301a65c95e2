"""Validate and coerce raw event candidates into canonical weather events."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from datetime import date
from typing import Any

from .models import EVENT_TYPES, WeatherEvent

_ISO_DATE_RE = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")

_DEFAULT_LOGGER = logging.getLogger("policy_weather.events.normalizer")


def parse_event_date(value: Any) -> date | None:
    """Parse a strict ``YYYY-MM-DD`` string into a real calendar date."""
    if not isinstance(value, str) or not _ISO_DATE_RE.fullmatch(value):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def _optional_text(value: Any) -> str | None:
    if isinstance(value, str) and value:
        return value
    return None


def normalize_event(
    raw: Any,
    *,
    source_name: str | None = None,
    logger: logging.Logger | None = None,
) -> WeatherEvent | None:
    """Promote one raw candidate to a WeatherEvent, or return None if malformed.

    Rules are checked in order (date, type, details) and the first failure
    is reported to ``logger``. Malformed input never raises.
    """
    log = logger or _DEFAULT_LOGGER
    origin = source_name or "unknown"

    if not isinstance(raw, Mapping):
        log.warning(
            "Dropped %s event candidate: not a record (got %s).",
            origin,
            type(raw).__name__,
        )
        return None

    event_date = parse_event_date(raw.get("date"))
    if event_date is None:
        log.warning(
            "Dropped %s event candidate: invalid date %r.",
            origin,
            raw.get("date"),
        )
        return None

    raw_type = raw.get("type")
    event_type = raw_type.lower() if isinstance(raw_type, str) else None
    if event_type not in EVENT_TYPES:
        log.warning(
            "Dropped %s event candidate: unsupported type %r.",
            origin,
            raw_type,
        )
        return None

    raw_details = raw.get("details")
    details = raw_details.strip() if isinstance(raw_details, str) else ""
    if not details:
        log.warning("Dropped %s event candidate dated %s: empty details.", origin, event_date)
        return None

    return WeatherEvent(
        date=event_date,
        type=event_type,
        details=details,
        source=_optional_text(raw.get("source")),
        source_url=_optional_text(raw.get("sourceUrl")),
    )


def normalize_events(
    raws: Iterable[Any],
    *,
    source_name: str | None = None,
    logger: logging.Logger | None = None,
) -> list[WeatherEvent]:
    """Normalize a batch, keeping survivors in input order."""
    events: list[WeatherEvent] = []
    for raw in raws:
        event = normalize_event(raw, source_name=source_name, logger=logger)
        if event is not None:
            events.append(event)
    return events
