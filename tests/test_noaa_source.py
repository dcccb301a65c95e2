"""Tests for the NOAA historical event source."""

from __future__ import annotations

import asyncio
import logging
from types import SimpleNamespace
from typing import Any

import httpx
import pytest

from policy_weather.exceptions import EventSourceError
from policy_weather.sources.noaa import NOAAEventSource, coerce_iso_date, parse_location

STORM_URL = "https://www.ncdc.noaa.gov/stormevents/listevents.jsp"
CDO_URL = "https://www.ncdc.noaa.gov/cdo-web/api/v2/data"


def _make_settings(**overrides: Any) -> Any:
    defaults = {
        "noaa_api_key": "noaa-test-token",
        "noaa_storm_events_url": STORM_URL,
        "noaa_cdo_url": CDO_URL,
        "noaa_timeout_seconds": 5.0,
        "noaa_user_agent": "policy-weather-tests/0.1 (contact: test@example.com)",
    }
    defaults.update(overrides)
    return SimpleNamespace(**defaults)


def _make_source(transport: httpx.AsyncBaseTransport | None = None) -> NOAAEventSource:
    return NOAAEventSource(
        settings=_make_settings(),
        logger=logging.getLogger("test_noaa_source"),
        retry_delay_seconds=0.0,
        transport=transport,
    )


STORM_CSV = "\n".join(
    [
        "BEGIN_DATE,EVENT_TYPE,MAGNITUDE,DETAILS",
        "04/09/2024,HAIL,1.00,Quarter size hail,roof damage",
        "05/01/2024,THUNDERSTORM WIND,60,Trees down",
        "06/15/2024,FLASH FLOOD,,Streets flooded",
        "",
    ]
)


def test_parse_location_street_city_state() -> None:
    parsed = parse_location("123 Main St, Springfield, IL 62704")
    assert parsed.street == "123 Main St"
    assert parsed.city == "Springfield"
    assert parsed.state == "IL"


def test_parse_location_without_commas_has_no_city() -> None:
    parsed = parse_location("123 Main St Springfield IL")
    assert parsed.state == "IL"
    assert parsed.city == ""
    assert parsed.street == ""


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("2024-04-09", "2024-04-09"),
        ("04/09/2024", "2024-04-09"),
        ("2024-04-09T18:00:00Z", "2024-04-09"),
        ("not a date", None),
        ("", None),
    ],
)
def test_coerce_iso_date(value: str, expected: str | None) -> None:
    assert coerce_iso_date(value) == expected


def test_storm_events_rows_become_hail_and_wind_candidates() -> None:
    events = NOAAEventSource.parse_storm_events(STORM_CSV, city="Dallas", state="TX")
    assert events == [
        {
            "date": "2024-04-09",
            "type": "hail",
            "details": "HAIL event in Dallas, TX. Magnitude: 1.00. Quarter size hail roof damage",
            "source": "NOAA Storm Events Database",
            "sourceUrl": "https://www.ncdc.noaa.gov/stormevents/",
        },
        {
            "date": "2024-05-01",
            "type": "wind",
            "details": "THUNDERSTORM WIND event in Dallas, TX. Magnitude: 60. Trees down",
            "source": "NOAA Storm Events Database",
            "sourceUrl": "https://www.ncdc.noaa.gov/stormevents/",
        },
    ]


def test_cdo_results_are_classified_by_datatype_and_threshold() -> None:
    payload = {
        "results": [
            {"date": "2024-04-09T00:00:00", "datatype": "WT04", "value": 1},
            {"date": "2024-04-10T00:00:00", "datatype": "PRCP", "value": 0.8},
            {"date": "2024-04-11T00:00:00", "datatype": "PRCP", "value": 0.2},
            {"date": "2024-04-12T00:00:00", "datatype": "AWND", "value": 25.5},
            {"date": "2024-04-13T00:00:00", "datatype": "AWND", "value": 10},
            {"date": "2024-04-14T00:00:00", "datatype": "WT03", "value": 1},
            {"datatype": "WT04", "value": 1},
            "garbage",
        ]
    }
    events = NOAAEventSource.parse_cdo_results(payload, city="Dallas", state="TX")
    assert [(event["date"], event["type"]) for event in events] == [
        ("2024-04-09", "hail"),
        ("2024-04-10", "hail"),
        ("2024-04-12", "wind"),
    ]
    assert events[2]["details"] == "High winds recorded at Dallas, TX. Wind speed: 25.5 mph"
    assert all(event["source"] == "NOAA National Weather Service" for event in events)


def test_cdo_payload_without_results_is_empty() -> None:
    assert NOAAEventSource.parse_cdo_results({}, city="Dallas", state="TX") == []


def test_search_uses_storm_events_with_formatted_params() -> None:
    source = _make_source()
    seen: list[tuple[str, dict[str, str], str]] = []

    async def _fake_text(url: str, params: dict[str, str], context: str) -> str:
        seen.append((url, params, context))
        return STORM_CSV

    source._request_text = _fake_text  # type: ignore[assignment]

    events = asyncio.run(source.search("1 Elm St, Dallas, TX 75201", "01/01/2024", "12/31/2024"))

    assert len(events) == 2
    url, params, context = seen[0]
    assert url == STORM_URL
    assert context == "storm events lookup"
    assert params == {
        "beginDate": "20240101",
        "endDate": "20241231",
        "state": "TX",
        "eventType": "ALL",
        "county": "Dallas",
    }


def test_search_falls_back_to_cdo_when_storm_events_fails() -> None:
    source = _make_source()

    async def _failing_text(url: str, params: dict[str, str], context: str) -> str:
        raise EventSourceError("storm events unavailable", source="noaa")

    cdo_params: list[dict[str, str]] = []

    async def _fake_json(url: str, params: dict[str, str], context: str) -> dict[str, Any]:
        assert url == CDO_URL
        cdo_params.append(params)
        return {"results": [{"date": "2024-04-09T00:00:00", "datatype": "WT04", "value": 1}]}

    source._request_text = _failing_text  # type: ignore[assignment]
    source._request_json = _fake_json  # type: ignore[assignment]

    events = asyncio.run(source.search("1 Elm St, Dallas, TX", "2024-01-01", "2024-12-31"))

    assert [event["type"] for event in events] == ["hail"]
    assert cdo_params[0]["locationid"] == "CITY:USTX"
    assert cdo_params[0]["startdate"] == "2024-01-01"
    assert cdo_params[0]["datatypeid"] == "AWND,PRCP,WT03,WT04"


def test_search_raises_when_both_endpoints_fail() -> None:
    source = _make_source()

    async def _failing(url: str, params: dict[str, str], context: str) -> Any:
        raise EventSourceError(f"{context} failed", source="noaa")

    source._request_text = _failing  # type: ignore[assignment]
    source._request_json = _failing  # type: ignore[assignment]

    with pytest.raises(EventSourceError, match="Both NOAA endpoints failed"):
        asyncio.run(source.search("1 Elm St, Dallas, TX", "2024-01-01", "2024-12-31"))


def test_unparseable_location_raises() -> None:
    source = _make_source()
    with pytest.raises(EventSourceError, match="city and state"):
        asyncio.run(source.search("somewhere", "2024-01-01", "2024-12-31"))


def test_invalid_policy_date_raises() -> None:
    source = _make_source()
    with pytest.raises(EventSourceError, match="Invalid start date"):
        asyncio.run(source.search("1 Elm St, Dallas, TX", "Error processing request", "2024-12-31"))


def test_server_errors_retry_then_fall_back_over_http() -> None:
    calls: list[str] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        assert request.headers["token"] == "noaa-test-token"
        if request.url.path.endswith("listevents.jsp"):
            return httpx.Response(503, text="unavailable")
        return httpx.Response(
            200,
            json={"results": [{"date": "2024-05-02T00:00:00", "datatype": "AWND", "value": 30}]},
        )

    source = _make_source(transport=httpx.MockTransport(_handler))

    async def _run() -> list[dict[str, Any]]:
        async with source:
            return await source.search("1 Elm St, Dallas, TX", "2024-01-01", "2024-12-31")

    events = asyncio.run(_run())

    assert calls == [
        "/stormevents/listevents.jsp",
        "/stormevents/listevents.jsp",
        "/cdo-web/api/v2/data",
    ]
    assert [(event["date"], event["type"]) for event in events] == [("2024-05-02", "wind")]


def test_client_errors_are_not_retried() -> None:
    calls: list[str] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        return httpx.Response(401, text="bad token")

    source = _make_source(transport=httpx.MockTransport(_handler))
    with pytest.raises(EventSourceError):
        asyncio.run(source.search("1 Elm St, Dallas, TX", "2024-01-01", "2024-12-31"))
    # One attempt per endpoint.
    assert calls == ["/stormevents/listevents.jsp", "/cdo-web/api/v2/data"]
