"""Events CLI: search NOAA and OpenAI for hail/wind events and reconcile them."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import uuid

from rich.console import Console
from rich.table import Table

from .config import Settings, load_settings
from .events.models import ReconciliationResult
from .events.reconciler import EventReconciler
from .exceptions import ConfigError, JournalError
from .journal import JournalWriter
from .log_setup import setup_logger
from .sources.noaa import NOAAEventSource
from .sources.openai_search import OpenAISearchEventSource
from .weather_search import search_weather_events


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse weather events CLI arguments."""
    parser = argparse.ArgumentParser(
        description="Search historical hail/wind events for a policy location and period."
    )
    parser.add_argument("--location", required=True, help="Full property address.")
    parser.add_argument("--start", required=True, help="Policy effective date.")
    parser.add_argument("--end", required=True, help="Policy expiration date.")
    parser.add_argument(
        "--max-print",
        type=int,
        default=None,
        help="Number of events to print.",
    )
    parser.add_argument(
        "--no-historical",
        action="store_true",
        help="Skip the NOAA historical records source.",
    )
    parser.add_argument(
        "--no-search",
        action="store_true",
        help="Skip the OpenAI free-text search source.",
    )
    return parser.parse_args(argv)


def build_reconciler(
    settings: Settings,
    journal: JournalWriter,
    logger: logging.Logger,
) -> EventReconciler:
    """Reconciler that journals each final event when PERSIST_EVENTS is on."""
    persist = journal.persist_weather_event if settings.persist_events else None
    return EventReconciler(logger=logger, persist=persist)


async def run_event_search(
    settings: Settings,
    journal: JournalWriter,
    logger: logging.Logger,
    *,
    location: str | None,
    start_date: str | None,
    end_date: str | None,
    use_historical: bool = True,
    use_search: bool = True,
) -> ReconciliationResult:
    """Open the enabled sources, search concurrently and reconcile."""
    historical = NOAAEventSource(settings, logger=logger) if use_historical else None
    search = OpenAISearchEventSource(settings, logger=logger) if use_search else None
    try:
        result = await search_weather_events(
            location,
            start_date,
            end_date,
            historical=historical,
            search=search,
            reconciler=build_reconciler(settings, journal, logger),
            timeout_seconds=settings.event_source_timeout_seconds,
            logger=logger,
        )
    finally:
        for source in (historical, search):
            if source is not None:
                await source.aclose()

    if settings.journal_raw_payloads and search is not None and search.last_raw_response:
        journal.snapshot_model_response("event_search", search.last_raw_response)
    return result


def print_events(console: Console, result: ReconciliationResult, max_print: int) -> None:
    if not result.success:
        console.print(f"Weather event search failed: {result.error or 'unknown error'}")
        return

    console.print(f"Reconciled events: {len(result.events)}")
    if not result.events:
        console.print("No hail or wind events found for this location and period.")
        return

    table = Table(title="Hail / Wind Events")
    table.add_column("Date")
    table.add_column("Type")
    table.add_column("Details", overflow="fold")
    table.add_column("Source", overflow="fold")
    for event in result.events[:max_print]:
        source = event.source or "-"
        if event.source_url:
            source = f"{source} ({event.source_url})"
        table.add_row(event.date.isoformat(), event.type, event.details, source)
    console.print(table)


def main(argv: list[str] | None = None) -> int:
    """Run the weather event search flow."""
    args = parse_args(argv)
    session_id = uuid.uuid4().hex[:12]
    logger = setup_logger(session_id=session_id)
    console = Console()
    journal: JournalWriter | None = None

    if args.max_print is not None and args.max_print <= 0:
        logger.error("--max-print must be > 0 when provided.")
        return 2

    try:
        settings = load_settings()
    except ConfigError as exc:
        logger.error("Configuration failure: %s", exc)
        return 2

    try:
        journal = JournalWriter(
            journal_dir=settings.journal_dir,
            raw_payload_dir=settings.raw_payload_dir,
            session_id=session_id,
        )
        journal.write_event(
            event_type="events_startup",
            payload=settings.safe_summary(),
            metadata={"session_id": session_id},
        )
    except JournalError as exc:
        logger.error("Failed to initialize journal: %s", exc)
        return 3

    exit_code = 0
    try:
        journal.write_event(
            "events_request_start",
            payload={
                "location": args.location,
                "start": args.start,
                "end": args.end,
                "historical_enabled": not args.no_historical,
                "search_enabled": not args.no_search,
            },
            metadata={"session_id": session_id},
        )
        result = asyncio.run(
            run_event_search(
                settings,
                journal,
                logger,
                location=args.location,
                start_date=args.start,
                end_date=args.end,
                use_historical=not args.no_historical,
                use_search=not args.no_search,
            )
        )
        journal.write_event(
            "events_reconciled",
            payload=result.to_payload(),
            metadata={"session_id": session_id},
        )
        if not result.success:
            exit_code = 4
        print_events(console, result, max_print=args.max_print or settings.events_max_print)
    except JournalError as exc:
        exit_code = 4
        logger.error("Weather event search failure: %s", exc)
    except Exception as exc:  # pragma: no cover
        exit_code = 99
        logger.exception("Unexpected events CLI failure: %s", exc)
        try:
            journal.write_event(
                "events_failure_unhandled",
                payload={"error": str(exc), "type": type(exc).__name__},
                metadata={"session_id": session_id},
            )
        except JournalError:
            logger.error("Failed to write events_failure_unhandled event.")
    finally:
        if journal is not None:
            try:
                journal.write_event(
                    "events_shutdown",
                    payload={"exit_code": exit_code},
                    metadata={"session_id": session_id},
                )
            except JournalError:
                logger.error("Failed to write events_shutdown event.")

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
