"""Provider-agnostic weather event source interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class EventSource(ABC):
    """Base contract for sources that report candidate hail/wind events.

    Implementations return raw, unvalidated candidate records and raise
    ``EventSourceError`` when the source cannot produce a result at all.
    """

    name: str = "unknown"

    @abstractmethod
    async def search(
        self,
        location: str,
        start_date: str,
        end_date: str,
    ) -> list[dict[str, Any]]:
        """Return raw event candidates for a location and date range."""

    @abstractmethod
    async def aclose(self) -> None:
        """Release source resources."""

    async def __aenter__(self) -> EventSource:
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, exc_tb: Any) -> None:
        await self.aclose()
