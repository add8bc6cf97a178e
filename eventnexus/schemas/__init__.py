"""Pydantic schemas shared across the ingestion core."""

from eventnexus.schemas.event import (
    CanonicalEvent,
    EventFilters,
    EventLocation,
    LocationFilter,
)

__all__ = [
    "CanonicalEvent",
    "EventFilters",
    "EventLocation",
    "LocationFilter",
]
