"""Presentation ordering for reconciled weather events."""

from __future__ import annotations

from collections.abc import Iterable

from .models import WeatherEvent


def sort_events(events: Iterable[WeatherEvent]) -> list[WeatherEvent]:
    """Order events most recent first; same-day events keep their input order."""
    # sorted() stays stable with reverse=True.
    return sorted(events, key=lambda event: event.date, reverse=True)
