"""Typed models for canonical weather events and reconciliation output."""

from __future__ import annotations

import datetime as dt
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

EventType = Literal["hail", "wind"]
EVENT_TYPES: frozenset[str] = frozenset({"hail", "wind"})


class WeatherEvent(BaseModel):
    """Canonical hail/wind event that passed normalization."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    date: dt.date
    type: EventType
    details: str = Field(min_length=1)
    source: str | None = None
    source_url: str | None = Field(default=None, alias="sourceUrl")

    @property
    def dedupe_key(self) -> tuple[dt.date, str]:
        return (self.date, self.type)

    def to_payload(self) -> dict[str, Any]:
        """Serialize to the wire shape; absent optional fields are omitted."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ReconciliationResult(BaseModel):
    """Final event list plus the aggregate success flag."""

    success: bool
    events: list[WeatherEvent] = Field(default_factory=list)
    error: str | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "success": self.success,
            "events": [event.to_payload() for event in self.events],
        }
        if self.error is not None:
            payload["error"] = self.error
        return payload
