"""Weather event reconciliation pipeline."""

from .dedup import deduplicate_events
from .models import EVENT_TYPES, EventType, ReconciliationResult, WeatherEvent
from .normalizer import normalize_event, normalize_events, parse_event_date
from .reconciler import EventReconciler, SourceOutcome, reconcile
from .sorter import sort_events

__all__ = [
    "EVENT_TYPES",
    "EventReconciler",
    "EventType",
    "ReconciliationResult",
    "SourceOutcome",
    "WeatherEvent",
    "deduplicate_events",
    "normalize_event",
    "normalize_events",
    "parse_event_date",
    "reconcile",
    "sort_events",
]
