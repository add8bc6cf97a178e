"""Pure helpers turning raw source text into canonical event fields."""

from eventnexus.ingestion.normalization.dates import DateRange, parse_date_range
from eventnexus.ingestion.normalization.location import classify_location, is_virtual_location
from eventnexus.ingestion.normalization.normalizer import compute_external_id, normalize
from eventnexus.ingestion.normalization.urls import canonicalize_url

__all__ = [
    "DateRange",
    "canonicalize_url",
    "classify_location",
    "compute_external_id",
    "is_virtual_location",
    "normalize",
    "parse_date_range",
]
