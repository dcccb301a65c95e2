"""Reconcile historical and search event-source outcomes into one event list."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any

from .dedup import deduplicate_events
from .models import ReconciliationResult, WeatherEvent
from .normalizer import normalize_events
from .sorter import sort_events

# A source outcome is the raw candidate list it returned, or the exception it failed with.
SourceOutcome = Sequence[Any] | BaseException
EventPersister = Callable[[WeatherEvent], None]


class ReconcilerInputError(TypeError):
    """Raised internally when an outcome is neither a candidate list nor a failure."""


class EventReconciler:
    """Normalize, deduplicate and sort events from the two upstream sources.

    The historical source is authoritative: when both sources report the same
    (date, type), the historical event is kept. Source failures degrade that
    source's contribution to an empty list and never fail the reconciliation.
    """

    def __init__(
        self,
        logger: logging.Logger | None = None,
        *,
        persist: EventPersister | None = None,
    ) -> None:
        self.logger = logger or logging.getLogger("policy_weather.events.reconciler")
        self._persist = persist

    def reconcile(
        self,
        historical: SourceOutcome,
        search: SourceOutcome,
    ) -> ReconciliationResult:
        """Return the final event list; ``success`` is False only for unusable inputs."""
        try:
            historical_events = self._source_events("historical", historical)
            search_events = self._source_events("search", search)
        except ReconcilerInputError as exc:
            self.logger.error("Reconciliation could not run: %s", exc)
            return ReconciliationResult(success=False, events=[], error=str(exc))

        merged = deduplicate_events(historical_events, search_events)
        events = sort_events(merged)
        self.logger.info(
            "Reconciled %d events (historical=%d search=%d duplicates_dropped=%d).",
            len(events),
            len(historical_events),
            len(search_events),
            len(historical_events) + len(search_events) - len(merged),
        )
        self._persist_events(events)
        return ReconciliationResult(success=True, events=events)

    def _source_events(self, source_name: str, outcome: Any) -> list[WeatherEvent]:
        if isinstance(outcome, BaseException):
            self.logger.warning(
                "Event source %s failed; contributing no events: %s: %s",
                source_name,
                type(outcome).__name__,
                outcome,
            )
            return []
        if not isinstance(outcome, (list, tuple)):
            raise ReconcilerInputError(
                f"{source_name} outcome must be a candidate list or an exception, "
                f"got {type(outcome).__name__}."
            )
        events = normalize_events(outcome, source_name=source_name, logger=self.logger)
        dropped = len(outcome) - len(events)
        if dropped:
            self.logger.info(
                "Event source %s: kept %d of %d candidates.",
                source_name,
                len(events),
                len(outcome),
            )
        return events

    def _persist_events(self, events: list[WeatherEvent]) -> None:
        if self._persist is None:
            return
        for event in events:
            try:
                self._persist(event)
            except Exception as exc:
                self.logger.warning(
                    "Failed to persist event %s/%s: %s",
                    event.date.isoformat(),
                    event.type,
                    exc,
                )


def reconcile(
    historical: SourceOutcome,
    search: SourceOutcome,
    *,
    logger: logging.Logger | None = None,
) -> ReconciliationResult:
    """Reconcile two source outcomes without a persistence side channel."""
    return EventReconciler(logger=logger).reconcile(historical, search)
