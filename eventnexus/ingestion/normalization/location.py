"""Location string classification (physical venue vs. virtual)."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from eventnexus.ingestion.normalization.text import strip_or_none
from eventnexus.schemas.event import EventLocation

if TYPE_CHECKING:
    from eventnexus.schemas.event import EventFilters

VIRTUAL_TOKENS: tuple[str, ...] = (
    "online",
    "virtual",
    "webinar",
    "zoom",
    "teams",
    "google meet",
    "livestream",
    "live stream",
)

_VIRTUAL_RE = re.compile(
    r"\b(?:" + "|".join(re.escape(t) for t in VIRTUAL_TOKENS) + r")\b",
    re.IGNORECASE,
)

UNKNOWN_LOCATION = "TBA"


def is_virtual_location(text: str | None) -> bool:
    return bool(text) and bool(_VIRTUAL_RE.search(text))


def classify_location(
    text: str | None,
    *,
    fallback_name: str | None = None,
    filters: EventFilters | None = None,
) -> EventLocation:
    """
    Turn free location text into an ``EventLocation``.

    Virtual-indicator tokens mark the event virtual. Any other non-empty
    string is taken verbatim as the venue name. Physical venues inherit the
    search coordinates from ``filters`` since listing cards rarely carry
    their own.
    """
    name = strip_or_none(text)

    if name and is_virtual_location(name):
        return EventLocation(name=name, is_virtual=True)

    if not name:
        name = strip_or_none(fallback_name) or (
            filters.city if filters is not None and filters.city else UNKNOWN_LOCATION
        )

    latitude = longitude = None
    if filters is not None and filters.location is not None:
        latitude = filters.location.lat
        longitude = filters.location.lng

    return EventLocation(
        name=name,
        is_virtual=False,
        latitude=latitude,
        longitude=longitude,
    )
