"""
Fractional Dubai events page plugin.

The site publishes one events page grouped into sections ("Fractional
Leaders", "SME", "Fractional Social"). Event blocks are anchored on their
cover images; when the images are missing the page is read heading by
heading instead.
"""

from __future__ import annotations

import re

from eventnexus.ingestion.extraction.candidate import RawCandidate
from eventnexus.ingestion.extraction.markup import MarkupDocument, Node
from eventnexus.ingestion.normalization.categories import category_from_section
from eventnexus.ingestion.normalization.text import within
from eventnexus.ingestion.normalization.urls import absolutize
from eventnexus.ingestion.plugins.base import SourcePlugin, extract_json_ld, extract_with_fallback
from eventnexus.schemas.event import EventFilters

DEFAULT_EVENTS_PATH = "/events"

SECTION_LABELS: dict[str, str] = {
    "Fractional Leaders": "Fractional Leaders",
    "SME": "SME",
    "Fractional Social": "Fractional Social",
}

CONTAINER = "section, div, article"
HEADING = "h1, h2, h3, h4, h5, h6"

IMAGE_EXT = re.compile(r"\.(jpg|jpeg|png|gif|webp)", re.IGNORECASE)
IMAGE_KEYWORDS = ("event", "networking", "executive", "dinner", "breakfast")

DATE_LINE = re.compile(r"(\w+)\s+(\d+),\s+(\d{4})")
LOCATION_LINES = (
    re.compile(r"^at\s+", re.IGNORECASE),
    re.compile(r"\s+Hotel$", re.IGNORECASE),
    re.compile(r"\s+Tower$", re.IGNORECASE),
    re.compile(r"\s+Marina$", re.IGNORECASE),
    re.compile(r"^Garden\s+", re.IGNORECASE),
)
NOT_DESCRIPTION = re.compile(r"^(at|Located|Address)", re.IGNORECASE)

SCHEDULE = re.compile(r"(\w+)\s+(\d+),\s+(\d{4}),?\s*(\d+):(\d+)\s*(AM|PM)", re.IGNORECASE)
VENUE_PATTERNS = (
    re.compile(r"\bat\s+([A-Z][^,\n]+)"),
    re.compile(r"([A-Z][^,\n]*Hotel[^,\n]*)"),
)
SKIP_HEADINGS = ("Events", "Sign Up")


def is_event_image(src: str) -> bool:
    if "fractional-dubai" not in src:
        return False
    return bool(IMAGE_EXT.search(src)) or any(k in src for k in IMAGE_KEYWORDS)


def classify_paragraphs(texts: list[str]) -> tuple[str | None, str | None, str | None]:
    """
    Split a block's paragraphs into (schedule, venue, description).

    The first dated line is the schedule and the first venue-shaped line the
    venue. A description only counts when it precedes both.
    """
    when = venue = description = None
    for text in texts:
        if not text:
            continue
        if when is None and DATE_LINE.search(text):
            when = text
            continue
        if venue is None and any(p.search(text) for p in LOCATION_LINES):
            venue = text
            continue
        if (
            description is None
            and when is None
            and venue is None
            and within(text, 21, 499)
            and not NOT_DESCRIPTION.match(text)
        ):
            description = text
    return when, venue, description


class FractionalDubaiPlugin(SourcePlugin):
    name = "Fractional Dubai"
    source_key = "fractional-dubai"
    version = "1.0.0"
    default_base_url = "https://www.fractional-dubai.com"
    default_tags = ("fractional", "dubai")
    default_timezone = "Asia/Dubai"

    def build_url(self, filters: EventFilters) -> str:
        # Single listing page; filters are applied after normalization
        return f"{self.base_url}{self.config.settings.get('events_path', DEFAULT_EVENTS_PATH)}"

    def parse_events(self, markup: MarkupDocument, filters: EventFilters) -> list[RawCandidate]:
        return extract_with_fallback(
            markup,
            filters,
            [self._parse_image_blocks, self._parse_headings, extract_json_ld],
            source_key=self.source_key,
        )

    def _category(self, node: Node) -> str | None:
        return category_from_section(node, SECTION_LABELS)

    def _title_heading(self, container: Node) -> Node | None:
        for heading in container.query(HEADING):
            text = heading.text
            if within(text, 6, 99) and text not in SECTION_LABELS:
                return heading
        return None

    def _parse_image_blocks(self, markup: MarkupDocument, filters: EventFilters) -> list[RawCandidate]:
        candidates: list[RawCandidate] = []
        seen_titles: set[str] = set()

        for img in markup.query("img"):
            src = img.attr("src") or ""
            if not is_event_image(src):
                continue
            container = img.closest(CONTAINER)
            if container is None:
                continue
            heading = self._title_heading(container)
            if heading is None or heading.text in seen_titles:
                continue
            title = heading.text
            seen_titles.add(title)

            link = heading.first("a")
            when, venue, description = classify_paragraphs([p.text for p in container.query("p")])
            category = self._category(container)

            candidates.append(
                RawCandidate(
                    title=title,
                    url=absolutize(link.attr("href"), self.base_url) if link else None,
                    image_url=src,
                    start_text=when,
                    location_text=venue,
                    description=description,
                    category=category,
                    tags=[category, "networking", "business"] if category else [],
                )
            )
        return candidates

    def _parse_headings(self, markup: MarkupDocument, filters: EventFilters) -> list[RawCandidate]:
        candidates: list[RawCandidate] = []

        for heading in markup.query("h3"):
            title = heading.text
            if not within(title, 11, 99) or any(s in title for s in SKIP_HEADINGS):
                continue

            content = "\n".join(n.text for n in heading.next_until(HEADING))
            m = SCHEDULE.search(content)
            venue = None
            for pattern in VENUE_PATTERNS:
                vm = pattern.search(content)
                if vm:
                    venue = vm.group(1).strip()
                    break

            parent = heading.parent
            image = parent.first("img") if parent else None

            candidates.append(
                RawCandidate(
                    title=title,
                    image_url=image.attr("src") if image else None,
                    start_text=m.group(0) if m else None,
                    location_text=venue,
                    category=self._category(heading),
                    tags=["networking", "business"],
                )
            )
        return candidates
