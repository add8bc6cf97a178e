"""Tag assignment."""

from __future__ import annotations

import re
from typing import Iterable

# label -> keywords; at most one group tag is added per event
KEYWORD_TAG_GROUPS: dict[str, tuple[str, ...]] = {
    "networking": ("networking", "b2b", "business"),
    "tech": ("tech", "technology", "ai", "startup"),
    "music": ("music", "concert", "dj"),
    "workshop": ("workshop", "seminar", "course"),
    "wellness": ("yoga", "fitness", "wellness"),
    "dubai": ("dubai", "uae"),
}

_GROUP_PATTERNS = {
    label: re.compile(r"\b(?:" + "|".join(re.escape(k) for k in kws) + r")\b", re.IGNORECASE)
    for label, kws in KEYWORD_TAG_GROUPS.items()
}


def normalize_tag(tag: str | None) -> str:
    return " ".join((tag or "").lower().split())


def keyword_group_tag(text: str | None) -> str | None:
    if not text:
        return None
    for label, pattern in _GROUP_PATTERNS.items():
        if pattern.search(text):
            return label
    return None


def build_tags(
    default_tags: Iterable[str],
    *,
    category: str | None = None,
    extracted: Iterable[str] = (),
    text: str | None = None,
) -> tuple[str, ...]:
    """
    Ordered, de-duplicated tag set.

    Source defaults always come first so every record stays filterable by
    source, followed by the category, extracted tags and one keyword group
    matched against ``text``.
    """
    out: list[str] = []

    def add(tag: str | None) -> None:
        t = normalize_tag(tag)
        if t and t not in out:
            out.append(t)

    for t in default_tags:
        add(t)
    add(category)
    for t in extracted:
        add(t)
    add(keyword_group_tag(text))
    return tuple(out)
