"""
eventnexus.ingestion.normalization.normalizer

RawCandidate -> CanonicalEvent.

``normalize`` is pure: the same candidate, source key and context always
yield the same event, and in particular the same ``external_id``. That is
what lets the persistence sink upsert idempotently.
"""

from __future__ import annotations

import hashlib
from datetime import datetime
from typing import Callable, Iterable

from eventnexus.ingestion.extraction.candidate import RawCandidate
from eventnexus.ingestion.normalization.dates import parse_date_range
from eventnexus.ingestion.normalization.location import classify_location
from eventnexus.ingestion.normalization.tags import build_tags
from eventnexus.ingestion.normalization.text import normalize_ws, strip_or_none
from eventnexus.ingestion.normalization.urls import absolutize, canonicalize_url
from eventnexus.schemas.event import CanonicalEvent, EventFilters

NativeIdFn = Callable[[str], "str | None"]

_DIGEST_LEN = 16


def _digest(value: str) -> str:
    return hashlib.sha1(value.encode("utf-8")).hexdigest()[:_DIGEST_LEN]


def compute_external_id(
    source_key: str,
    *,
    canonical_url: str | None,
    title: str,
    start: datetime | None,
    start_text: str | None = None,
    native_id: NativeIdFn | None = None,
) -> str:
    """
    Deterministic id: ``"<source_key>:<token>"``.

    The token is the source-native id when one can be read from the URL,
    else a digest of the canonical URL, else a digest of the normalized
    title plus the start date (raw date text when it did not parse).
    """
    if canonical_url:
        if native_id is not None:
            token = native_id(canonical_url)
            if token:
                return f"{source_key}:{token}"
        return f"{source_key}:{_digest(canonical_url)}"

    when = start.isoformat() if start is not None else normalize_ws(start_text or "").lower()
    return f"{source_key}:{_digest(normalize_ws(title).lower() + '|' + when)}"


def normalize(
    raw: RawCandidate,
    source_key: str,
    *,
    default_tags: Iterable[str] = (),
    filters: EventFilters | None = None,
    page_url: str | None = None,
    tz: str | None = None,
    native_id: NativeIdFn | None = None,
    reference: datetime | None = None,
) -> CanonicalEvent:
    """
    Build a canonical event from one raw candidate.

    Raises
    ------
    ValueError
        If the candidate has no title. Callers drop such candidates first.
    """
    title = strip_or_none(raw.title)
    if not title:
        raise ValueError("Cannot normalize a candidate without a title")

    url = canonicalize_url(absolutize(raw.url, page_url))
    page = canonicalize_url(page_url or "")
    # a link back to the listing page identifies nothing
    identity_url = url if url and url != page else None

    dates = parse_date_range(raw.start_text, reference=reference, tz=tz)
    start, end = dates.start, dates.end
    if raw.end_text:
        end_range = parse_date_range(
            raw.end_text,
            reference=start or reference,
            anchor=start.date() if start else None,
            tz=tz,
        )
        if end_range.start is not None:
            end = end_range.start

    category = strip_or_none(raw.category)
    description = strip_or_none(raw.description)
    image = absolutize(strip_or_none(raw.image_url), page_url) or None

    return CanonicalEvent(
        external_id=compute_external_id(
            source_key,
            canonical_url=identity_url,
            title=title,
            start=start,
            start_text=raw.start_text,
            native_id=native_id,
        ),
        source=source_key,
        title=title,
        url=url or page,
        start_time=start,
        end_time=end,
        location=classify_location(raw.location_text, filters=filters),
        category=category,
        tags=build_tags(
            default_tags,
            category=category,
            extracted=raw.tags,
            text=f"{title} {description or ''}",
        ),
        description=description,
        image_url=image,
    )
