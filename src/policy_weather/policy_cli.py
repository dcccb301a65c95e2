"""Policy CLI: analyze declaration-page images, then search the policy period for events."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import uuid
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.table import Table

from .config import Settings, load_settings
from .events_cli import print_events, run_event_search
from .exceptions import ConfigError, CoverageExtractionError, JournalError
from .journal import JournalWriter
from .log_setup import setup_logger
from .policy.analyzer import PolicyAnalyzer
from .policy.models import PolicyDetails

_FIELD_LABELS = (
    ("coverage_a", "Coverage A (Dwelling)"),
    ("coverage_b", "Coverage B (Other Structures)"),
    ("coverage_c", "Coverage C (Personal Property)"),
    ("coverage_d", "Coverage D (Loss of Use)"),
    ("deductible", "AOP Deductible"),
    ("windstorm_deductible", "Wind/Hail Deductible"),
    ("effective_date", "Effective Date"),
    ("expiration_date", "Expiration Date"),
    ("location", "Location"),
)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse policy analysis CLI arguments."""
    parser = argparse.ArgumentParser(
        description="Extract coverage data from declaration pages and look up hail/wind events."
    )
    parser.add_argument(
        "images",
        nargs="+",
        type=Path,
        help="Declaration page images; page 1 coverages, page 2 deductibles.",
    )
    parser.add_argument(
        "--skip-weather",
        action="store_true",
        help="Only extract policy details; do not search for weather events.",
    )
    parser.add_argument(
        "--max-print",
        type=int,
        default=None,
        help="Number of events to print.",
    )
    return parser.parse_args(argv)


def _read_images(paths: list[Path]) -> list[bytes]:
    images: list[bytes] = []
    for path in paths:
        try:
            images.append(path.read_bytes())
        except OSError as exc:
            raise CoverageExtractionError(f"Failed reading image {path}: {exc}") from exc
    return images


def _print_policy(console: Console, details: PolicyDetails) -> None:
    table = Table(title="Policy Details")
    table.add_column("Field")
    table.add_column("Value", overflow="fold")
    for attr, label in _FIELD_LABELS:
        table.add_row(label, getattr(details, attr) or "-")
    console.print(table)


async def _analyze(
    settings: Settings,
    images: list[bytes],
    logger: logging.Logger,
) -> tuple[PolicyDetails, dict[str, dict[str, Any]]]:
    async with PolicyAnalyzer(settings, logger=logger) as analyzer:
        details = await analyzer.analyze(images)
        return details, dict(analyzer.raw_responses)


def main(argv: list[str] | None = None) -> int:
    """Run the policy analysis flow."""
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
            event_type="policy_startup",
            payload=settings.safe_summary(),
            metadata={"session_id": session_id},
        )
    except JournalError as exc:
        logger.error("Failed to initialize journal: %s", exc)
        return 3

    exit_code = 0
    try:
        images = _read_images(args.images)
        details, raw_responses = asyncio.run(_analyze(settings, images, logger))
        if settings.journal_raw_payloads:
            for kind, payload in raw_responses.items():
                journal.snapshot_model_response(kind, payload)
        journal.write_event(
            "policy_analyzed",
            payload=details.to_payload(),
            metadata={"session_id": session_id, "image_count": len(images)},
        )
        _print_policy(console, details)

        if args.skip_weather:
            logger.info("Weather event search skipped by request.")
        elif not details.has_search_inputs:
            console.print(
                "Location or policy dates were not found; skipping weather event search."
            )
        else:
            result = asyncio.run(
                run_event_search(
                    settings,
                    journal,
                    logger,
                    location=details.location,
                    start_date=details.effective_date,
                    end_date=details.expiration_date,
                )
            )
            journal.write_event(
                "events_reconciled",
                payload=result.to_payload(),
                metadata={"session_id": session_id},
            )
            print_events(console, result, max_print=args.max_print or settings.events_max_print)
            if not result.success:
                exit_code = 5
    except (CoverageExtractionError, JournalError) as exc:
        exit_code = 4
        logger.error("Policy analysis failure: %s", exc)
        try:
            journal.write_event(
                "policy_failure",
                payload={"error": str(exc)},
                metadata={"session_id": session_id},
            )
        except JournalError:
            logger.error("Failed to write policy_failure event.")
    except Exception as exc:  # pragma: no cover
        exit_code = 99
        logger.exception("Unexpected policy CLI failure: %s", exc)
        try:
            journal.write_event(
                "policy_failure_unhandled",
                payload={"error": str(exc), "type": type(exc).__name__},
                metadata={"session_id": session_id},
            )
        except JournalError:
            logger.error("Failed to write policy_failure_unhandled event.")
    finally:
        if journal is not None:
            try:
                journal.write_event(
                    "policy_shutdown",
                    payload={"exit_code": exit_code},
                    metadata={"session_id": session_id},
                )
            except JournalError:
                logger.error("Failed to write policy_shutdown event.")

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
