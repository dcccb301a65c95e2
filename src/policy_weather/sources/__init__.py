"""Upstream weather event sources."""

from .base import EventSource
from .noaa import NOAAEventSource, ParsedLocation, coerce_iso_date, parse_location
from .openai_search import OpenAISearchEventSource, parse_search_response

__all__ = [
    "EventSource",
    "NOAAEventSource",
    "OpenAISearchEventSource",
    "ParsedLocation",
    "coerce_iso_date",
    "parse_location",
    "parse_search_response",
]
