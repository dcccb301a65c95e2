"""Priority-ordered deduplication of normalized weather events."""

from __future__ import annotations

from collections.abc import Iterable

from .models import WeatherEvent


def deduplicate_events(*event_lists: Iterable[WeatherEvent]) -> list[WeatherEvent]:
    """Merge lists in priority order, keeping the first event per (date, type).

    Earlier lists win ties. Later duplicates are discarded whole; fields are
    never combined across events.
    """
    seen: set[tuple[object, str]] = set()
    merged: list[WeatherEvent] = []
    for events in event_lists:
        for event in events:
            key = event.dedupe_key
            if key in seen:
                continue
            seen.add(key)
            merged.append(event)
    return merged
