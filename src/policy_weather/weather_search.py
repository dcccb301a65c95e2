"""Concurrent event-source search feeding the reconciliation pipeline."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from .events.models import ReconciliationResult
from .events.reconciler import EventReconciler, SourceOutcome
from .sources.base import EventSource

_LOGGER = logging.getLogger("policy_weather.weather_search")


async def _run_source(
    source: EventSource,
    location: str,
    start_date: str,
    end_date: str,
    timeout_seconds: float,
) -> list[dict[str, Any]]:
    return await asyncio.wait_for(
        source.search(location, start_date, end_date),
        timeout=timeout_seconds,
    )


async def collect_source_outcomes(
    location: str,
    start_date: str,
    end_date: str,
    *,
    historical: EventSource | None,
    search: EventSource | None,
    timeout_seconds: float,
    logger: logging.Logger | None = None,
) -> tuple[SourceOutcome, SourceOutcome]:
    """Run both sources concurrently and capture each result or failure.

    A failing or timed-out source does not cancel the other. Outcomes are
    returned as ``(historical, search)`` regardless of completion order. A
    source passed as ``None`` is skipped and contributes an empty list.
    """
    log = logger or _LOGGER

    async def _skipped() -> list[dict[str, Any]]:
        return []

    tasks = [
        _run_source(source, location, start_date, end_date, timeout_seconds)
        if source is not None
        else _skipped()
        for source in (historical, search)
    ]
    historical_outcome, search_outcome = await asyncio.gather(*tasks, return_exceptions=True)

    for label, source, outcome in (
        ("historical", historical, historical_outcome),
        ("search", search, search_outcome),
    ):
        source_name = source.name if source is not None else "disabled"
        if isinstance(outcome, BaseException):
            log.warning(
                "%s source %s failed: %s: %s",
                label, source_name, type(outcome).__name__, outcome,
            )
        elif isinstance(outcome, (list, tuple)):
            log.info("%s source %s returned %d candidates", label, source_name, len(outcome))
        else:
            log.warning(
                "%s source %s returned unexpected %s", label, source_name, type(outcome).__name__
            )
    return historical_outcome, search_outcome


async def search_weather_events(
    location: str | None,
    effective_date: str | None,
    expiration_date: str | None,
    *,
    historical: EventSource | None,
    search: EventSource | None,
    reconciler: EventReconciler | None = None,
    timeout_seconds: float = 45.0,
    logger: logging.Logger | None = None,
) -> ReconciliationResult:
    """Search both sources for the policy period and reconcile the results."""
    log = logger or _LOGGER
    missing = [
        name
        for name, value in (
            ("location", location),
            ("effective_date", effective_date),
            ("expiration_date", expiration_date),
        )
        if not isinstance(value, str) or not value.strip()
    ]
    if missing:
        log.error("Missing required parameters: %s", ", ".join(missing))
        return ReconciliationResult(
            success=False,
            events=[],
            error=f"Missing required parameters: {', '.join(missing)}",
        )

    historical_outcome, search_outcome = await collect_source_outcomes(
        location,
        effective_date,
        expiration_date,
        historical=historical,
        search=search,
        timeout_seconds=timeout_seconds,
        logger=log,
    )
    active_reconciler = reconciler or EventReconciler(logger=log)
    return active_reconciler.reconcile(historical_outcome, search_outcome)
