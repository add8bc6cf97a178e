"""
eventnexus.ingestion.normalization.categories

Category inference. Every helper returns None when it finds no signal;
callers chain them and never substitute a guessed default.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Mapping, Sequence

from eventnexus.ingestion.normalization.text import strip_or_none

if TYPE_CHECKING:
    from eventnexus.ingestion.extraction.markup import Node

# Ordered: first matching category wins
KEYWORD_CATEGORIES: dict[str, tuple[str, ...]] = {
    "Tech": ("tech", "ai", "coding", "programming", "software", "developer", "workshop", "hackathon"),
    "Business": ("business", "networking", "startup", "entrepreneur", "pitch", "investment"),
    "Finance": ("crypto", "blockchain", "trading", "finance", "defi"),
    "Social": ("party", "social", "gathering", "meetup", "community"),
    "Sports": ("sports", "fitness", "yoga", "run", "marathon", "watch party"),
    "Arts": ("art", "exhibition", "gallery", "music", "concert", "show"),
    "Education": ("education", "course", "class", "learning", "seminar", "lecture"),
}

MAX_BADGE_LEN = 30


def _keyword_pattern(keywords: Sequence[str]) -> re.Pattern[str]:
    return re.compile(r"\b(?:" + "|".join(re.escape(k) for k in keywords) + r")\b", re.IGNORECASE)


_KEYWORD_PATTERNS = {cat: _keyword_pattern(kws) for cat, kws in KEYWORD_CATEGORIES.items()}


def category_from_keywords(
    text: str | None,
    mapping: Mapping[str, Sequence[str]] | None = None,
) -> str | None:
    """First category whose keywords occur in ``text``."""
    if not text:
        return None
    patterns = (
        _KEYWORD_PATTERNS
        if mapping is None
        else {cat: _keyword_pattern(kws) for cat, kws in mapping.items()}
    )
    for category, pattern in patterns.items():
        if pattern.search(text):
            return category
    return None


def category_from_badge(text: str | None, *, max_len: int = MAX_BADGE_LEN) -> str | None:
    """Badge/tag text is only trusted when it is short."""
    text = strip_or_none(text)
    if not text or len(text) >= max_len:
        return None
    return text


def category_from_url(url: str | None, pattern: str | re.Pattern[str]) -> str | None:
    """
    Derive a category from a URL path segment.

    ``pattern`` must have one capture group, e.g. ``r"/([^/]+)--events/"``.
    Dashes in the captured slug become spaces.
    """
    if not url:
        return None
    m = re.search(pattern, url)
    if not m:
        return None
    slug = m.group(1).replace("-", " ").strip()
    return slug.title() if slug else None


def category_from_labels(
    text: str | None,
    labels: Mapping[str, str],
) -> str | None:
    """Map free text to a category when it contains one of ``labels`` (phrase -> category)."""
    if not text:
        return None
    for phrase, category in labels.items():
        if re.search(r"\b" + re.escape(phrase) + r"\b", text, re.IGNORECASE):
            return category
    return None


def category_from_section(
    node: Node,
    labels: Mapping[str, str],
    *,
    section_selector: str = "section",
    heading_selector: str = "h1, h2, h3",
) -> str | None:
    """
    Infer a category from the heading of the listing section holding ``node``.

    Only headings inside the same section count. Returns None when the node
    is not inside a section or its headings match none of ``labels``.
    """
    section = node.closest(section_selector)
    if section is None:
        return None
    for heading in section.query(heading_selector):
        category = category_from_labels(heading.text, labels)
        if category:
            return category
    return None
