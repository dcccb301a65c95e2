"""NOAA historical records event source (Storm Events, with CDO Web API fallback)."""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import httpx

from ..config import Settings
from ..exceptions import EventSourceError
from ..redaction import sanitize_text
from .base import EventSource

_STATE_RE = re.compile(r"\b([A-Z]{2})\b")

STORM_EVENTS_SOURCE = "NOAA Storm Events Database"
STORM_EVENTS_SOURCE_URL = "https://www.ncdc.noaa.gov/stormevents/"
CDO_SOURCE = "NOAA National Weather Service"
CDO_SOURCE_URL = "https://www.ncdc.noaa.gov/cdo-web/"

# CDO thresholds: precipitation in inches, average wind speed in mph.
HAIL_PRECIP_THRESHOLD = 0.5
WIND_SPEED_THRESHOLD = 20.0


@dataclass(frozen=True)
class ParsedLocation:
    street: str
    city: str
    state: str


def parse_location(location: str) -> ParsedLocation:
    """Split a free-text US address into street, city and two-letter state.

    The state is the first standalone two-letter upper-case token. With at
    least two comma-separated parts, the first part is the street and the
    second-to-last part is the city.
    """
    street = ""
    city = ""
    state = ""

    state_match = _STATE_RE.search(location)
    if state_match:
        state = state_match.group(1)

    parts = [part.strip() for part in location.split(",")]
    if len(parts) >= 2:
        if not state:
            last_match = _STATE_RE.search(parts[-1])
            if last_match:
                state = last_match.group(1)
        city = parts[-2]
        street = parts[0]

    return ParsedLocation(street=street, city=city, state=state)


def coerce_iso_date(value: str) -> str | None:
    """Convert ``YYYY-MM-DD``, ``MM/DD/YYYY`` or an ISO timestamp to ``YYYY-MM-DD``."""
    candidate = value.strip()
    if not candidate:
        return None
    for fmt in ("%Y-%m-%d", "%m/%d/%Y", "%m/%d/%y"):
        try:
            return datetime.strptime(candidate, fmt).date().isoformat()
        except ValueError:
            continue
    if candidate.endswith("Z"):
        candidate = candidate[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(candidate).date().isoformat()
    except ValueError:
        return None


class NOAAEventSource(EventSource):
    """Historical hail/wind records for a city/state from NOAA."""

    name = "noaa"

    def __init__(
        self,
        settings: Settings,
        logger: logging.Logger | None = None,
        max_retries: int = 1,
        retry_delay_seconds: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self.logger = logger or logging.getLogger("policy_weather.sources.noaa")
        self._max_retries = max_retries
        self._retry_delay = retry_delay_seconds
        self._client = httpx.AsyncClient(
            timeout=settings.noaa_timeout_seconds,
            transport=transport,
            headers={
                "User-Agent": settings.noaa_user_agent,
                "token": settings.noaa_api_key or "",
            },
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def search(
        self,
        location: str,
        start_date: str,
        end_date: str,
    ) -> list[dict[str, Any]]:
        """Query Storm Events first and fall back to CDO daily summaries."""
        begin = self._require_date(start_date, "start")
        end = self._require_date(end_date, "end")
        parsed = parse_location(location)
        if not parsed.city or not parsed.state:
            raise EventSourceError(
                f"Could not parse city and state from location {location!r}.",
                source=self.name,
            )

        storm_params = {
            "beginDate": begin.replace("-", ""),
            "endDate": end.replace("-", ""),
            "state": parsed.state,
            "eventType": "ALL",
            "county": parsed.city,
        }
        try:
            csv_text = await self._request_text(
                self.settings.noaa_storm_events_url,
                params=storm_params,
                context="storm events lookup",
            )
        except EventSourceError as exc:
            self.logger.warning("NOAA Storm Events failed (%s); trying CDO Web API", exc)
        else:
            events = self.parse_storm_events(csv_text, city=parsed.city, state=parsed.state)
            self.logger.info("NOAA Storm Events returned %d candidates.", len(events))
            return events

        cdo_params = {
            "datasetid": "GHCND",
            "locationid": f"CITY:US{parsed.state}",
            "startdate": begin,
            "enddate": end,
            "datatypeid": "AWND,PRCP,WT03,WT04",
            "limit": "1000",
        }
        try:
            payload = await self._request_json(
                self.settings.noaa_cdo_url,
                params=cdo_params,
                context="CDO data lookup",
            )
        except EventSourceError as exc:
            raise EventSourceError(
                f"Both NOAA endpoints failed; last error: {exc}",
                source=self.name,
            ) from exc
        events = self.parse_cdo_results(payload, city=parsed.city, state=parsed.state)
        self.logger.info("NOAA CDO returned %d candidates.", len(events))
        return events

    @staticmethod
    def parse_storm_events(csv_text: str, *, city: str, state: str) -> list[dict[str, Any]]:
        """Turn Storm Events CSV rows into raw hail/wind candidates."""
        events: list[dict[str, Any]] = []
        for line in csv_text.splitlines()[1:]:
            if not line.strip() or ("HAIL" not in line and "WIND" not in line):
                continue
            columns = line.split(",")
            columns += [""] * (3 - len(columns))
            raw_date, event_type, magnitude = columns[:3]
            rest = columns[3:]
            event_type = event_type.strip()
            magnitude = magnitude.strip()
            details = f"{event_type} event in {city}, {state}. "
            if magnitude:
                details += f"Magnitude: {magnitude}. "
            details += " ".join(part.strip() for part in rest if part.strip())
            events.append(
                {
                    "date": coerce_iso_date(raw_date) or raw_date.strip(),
                    "type": "hail" if "HAIL" in event_type.upper() else "wind",
                    "details": details.strip(),
                    "source": STORM_EVENTS_SOURCE,
                    "sourceUrl": STORM_EVENTS_SOURCE_URL,
                }
            )
        return events

    @staticmethod
    def parse_cdo_results(
        payload: dict[str, Any], *, city: str, state: str
    ) -> list[dict[str, Any]]:
        """Classify CDO daily observations into raw hail/wind candidates."""
        results = payload.get("results")
        if not isinstance(results, list):
            return []

        events: list[dict[str, Any]] = []
        for record in results:
            if not isinstance(record, dict):
                continue
            datatype = record.get("datatype")
            raw_date = record.get("date")
            if not datatype or not isinstance(raw_date, str):
                continue
            value = record.get("value")
            numeric = float(value) if isinstance(value, (int, float)) else 0.0

            is_hail = datatype == "WT04" or (datatype == "PRCP" and numeric > HAIL_PRECIP_THRESHOLD)
            is_wind = datatype == "AWND" and numeric > WIND_SPEED_THRESHOLD
            if not is_hail and not is_wind:
                continue

            if is_hail:
                details = f"Hail recorded at {city}, {state}. Precipitation: {value} inches"
            else:
                details = f"High winds recorded at {city}, {state}. Wind speed: {value} mph"
            events.append(
                {
                    "date": raw_date.split("T")[0],
                    "type": "hail" if is_hail else "wind",
                    "details": details,
                    "source": CDO_SOURCE,
                    "sourceUrl": CDO_SOURCE_URL,
                }
            )
        return events

    def _require_date(self, value: str, label: str) -> str:
        iso = coerce_iso_date(value) if isinstance(value, str) else None
        if iso is None:
            raise EventSourceError(
                f"Invalid {label} date {value!r}; expected YYYY-MM-DD or MM/DD/YYYY.",
                source=self.name,
            )
        return iso

    async def _request_text(self, url: str, params: dict[str, str], context: str) -> str:
        response = await self._request(url, params=params, context=context)
        return response.text

    async def _request_json(
        self, url: str, params: dict[str, str], context: str
    ) -> dict[str, Any]:
        response = await self._request(url, params=params, context=context)
        try:
            payload = response.json()
        except ValueError as exc:
            raise EventSourceError(
                f"NOAA {context} returned non-JSON response at {url}.",
                source=self.name,
            ) from exc
        if not isinstance(payload, dict):
            raise EventSourceError(
                f"NOAA {context} returned unexpected payload type {type(payload).__name__}.",
                source=self.name,
            )
        return payload

    async def _request(
        self, url: str, params: dict[str, str], context: str
    ) -> httpx.Response:
        last_error: Exception | None = None
        for attempt in range(self._max_retries + 1):
            try:
                response = await self._client.get(url, params=params)
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                # Don't retry 4xx client errors except 429 rate-limit.
                if 400 <= status < 500 and status != 429:
                    raise EventSourceError(
                        f"NOAA {context} failed with status {status} "
                        f"at {url}: {sanitize_text(exc.response.text[:300])}",
                        source=self.name,
                    ) from exc
                last_error = exc
                if attempt < self._max_retries:
                    self.logger.warning("NOAA %s failed (HTTP %d); retrying", context, status)
                    await asyncio.sleep(self._retry_delay)
                    continue
                raise EventSourceError(
                    f"NOAA {context} failed with status {status} at {url}.",
                    source=self.name,
                ) from exc
            except httpx.HTTPError as exc:
                last_error = exc
                if attempt < self._max_retries:
                    self.logger.warning(
                        "NOAA %s request failed (%s); retrying",
                        context, type(exc).__name__,
                    )
                    await asyncio.sleep(self._retry_delay)
                    continue
                raise EventSourceError(
                    f"NOAA {context} request failed at {url}: {sanitize_text(str(exc))}",
                    source=self.name,
                ) from exc
            return response

        raise EventSourceError(
            f"NOAA {context} failed after retries: {last_error}",
            source=self.name,
        )
