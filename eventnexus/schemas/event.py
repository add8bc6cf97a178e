"""
Canonical event schema.

Pydantic models for the normalized event record handed to the persistence
sink, plus the filter set an ingestion cycle runs against.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# =============================================================================
# LOCATION
# =============================================================================


class EventLocation(BaseModel):
    """Structured location of an event."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Venue name or virtual location label")
    is_virtual: bool = Field(default=False)
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)


# =============================================================================
# CANONICAL EVENT
# =============================================================================


class CanonicalEvent(BaseModel):
    """
    Normalized, source-agnostic event record.

    Instances are immutable. An update to an event is a full replacement
    keyed by ``external_id``.
    """

    model_config = ConfigDict(frozen=True)

    external_id: str = Field(..., min_length=1)
    source: str = Field(..., min_length=1, description="Source plugin key")
    title: str = Field(..., min_length=1)
    url: str = Field(default="")
    start_time: datetime | None = None
    end_time: datetime | None = None
    location: EventLocation
    category: str | None = None
    tags: tuple[str, ...] = Field(default_factory=tuple)
    description: str | None = None
    image_url: str | None = None

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        """Reject titles that are blank after trimming."""
        v = v.strip()
        if not v:
            raise ValueError("title must not be blank")
        return v

    @field_validator("image_url", "description", "category", mode="before")
    @classmethod
    def empty_to_none(cls, v: Any) -> Any:
        """Represent absent optional text as None, never as an empty string."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("tags", mode="before")
    @classmethod
    def dedupe_tags(cls, v: Any) -> Any:
        """Keep first occurrence order while dropping repeats and blanks."""
        if v is None:
            return ()
        seen: list[str] = []
        for tag in v:
            if tag and tag not in seen:
                seen.append(tag)
        return tuple(seen)


# =============================================================================
# FILTERS
# =============================================================================


class LocationFilter(BaseModel):
    """Geographic search area."""

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    radius_km: float = Field(default=50.0, gt=0)


class EventFilters(BaseModel):
    """Filter set an ingestion cycle is run against."""

    city: str | None = None
    location: LocationFilter | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    categories: list[str] = Field(default_factory=list)
    query: str | None = None
    virtual_only: bool = False
    limit: int | None = Field(default=None, gt=0)

    @model_validator(mode="after")
    def _window_ordered(self) -> EventFilters:
        start, end = self.start_date, self.end_date
        if start and end and end < _align(start, end):
            raise ValueError("end_date must not be before start_date")
        return self

    def in_window(self, start: datetime | None) -> bool:
        """
        True when ``start`` lies within ``start_date``..``end_date`` (inclusive).

        Events without a start time always pass. A naive bound compared with
        an aware start is read in the start's zone, and the other way round.
        """
        if start is None:
            return True
        if self.start_date is not None and start < _align(self.start_date, start):
            return False
        if self.end_date is not None and start > _align(self.end_date, start):
            return False
        return True


def _align(bound: datetime, value: datetime) -> datetime:
    if (bound.tzinfo is None) == (value.tzinfo is None):
        return bound
    if bound.tzinfo is None:
        return bound.replace(tzinfo=value.tzinfo)
    return bound.replace(tzinfo=None)
