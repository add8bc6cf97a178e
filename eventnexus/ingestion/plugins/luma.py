"""
Luma city discovery page plugin.

Luma renders its listings client side. When ``reader_url`` is set in the
plugin settings, the page is requested through a web-reader service that
returns the rendered page as markdown, which is parsed line by line.
Without it the raw HTML is parsed with selector heuristics.
"""

from __future__ import annotations

import json
import re
from urllib.parse import quote, urlencode

from eventnexus.ingestion.errors import ParseError
from eventnexus.ingestion.extraction.candidate import RawCandidate
from eventnexus.ingestion.extraction.markup import MarkupDocument, Node
from eventnexus.ingestion.normalization.categories import category_from_badge, category_from_keywords
from eventnexus.ingestion.normalization.dates import looks_like_schedule
from eventnexus.ingestion.normalization.text import within
from eventnexus.ingestion.normalization.urls import absolutize
from eventnexus.ingestion.plugins.base import SourcePlugin, extract_with_fallback
from eventnexus.schemas.event import EventFilters

DEFAULT_CITY_SLUG = "dubai"

CITY_SLUGS: dict[str, str] = {
    "dubai": "dubai",
    "abu dhabi": "abu-dhabi",
    "london": "london",
    "new york": "nyc",
    "san francisco": "san-francisco",
    "los angeles": "los-angeles",
    "singapore": "singapore",
    "tokyo": "tokyo",
    "paris": "paris",
    "berlin": "berlin",
    "mumbai": "mumbai",
    "delhi": "delhi",
    "bangalore": "bangalore",
    "sydney": "sydney",
    "toronto": "toronto",
    "amsterdam": "amsterdam",
    "barcelona": "barcelona",
}

EVENT_HREF = re.compile(r"^(?:https?://(?:www\.)?lu\.ma)?/e/([a-zA-Z0-9-]+)/?$")
EVENT_ID = re.compile(r"/e/([a-zA-Z0-9-]+)")

EVENT_LINK = "a[href*='/e/']"
CARD = "div, article, section"
HEADING = "h1, h2, h3, h4, h5, h6"
HOST = "span[class*='host'], div[class*='host'], p[class*='host']"
LOCATION = "span[class*='location'], div[class*='location'], span[class*='venue']"
TIME = "time, span[class*='time'], div[class*='time'], span[class*='date']"
DESCRIPTION = "p, div[class*='description']"
BADGE = "span[class*='badge'], span[class*='tag'], span[class*='category']"

COVER_IMAGE = "img[src*='lumacdn.com']"
COVER_PATHS = ("/event-covers/", "/gallery-images/")
ALT_CARD = "div, article, section, a"

VENUE_PATTERNS = (
    re.compile(r"at\s+([A-Z][^,\n]+?(?:Hotel|Tower|Marina|Center|Mall))"),
    re.compile(r"([A-Z][^,\n]*?(?:Hotel|Tower|Marina|Center|Mall))"),
)

_MD_IMAGE = re.compile(r"^!\[.*?\]\((https://[^)]+)\)")
_MD_TITLE = re.compile(r"^###\s+(.+)$")


def city_slug(city: str) -> str:
    key = " ".join(city.lower().split())
    return CITY_SLUGS.get(key, key.replace(" ", "-"))


def reader_content(body: str) -> str:
    """Markdown text from a web-reader JSON response."""
    try:
        data = json.loads(body)
    except ValueError as e:
        raise ParseError(f"Web reader returned invalid JSON: {e}", source_key="luma") from e
    if isinstance(data, list) and data:
        text = data[0].get("text") if isinstance(data[0], dict) else None
        if isinstance(text, dict):
            return text.get("content") or ""
        return ""
    if isinstance(data, dict):
        return data.get("content") or ""
    return ""


def parse_markdown_events(markdown: str) -> list[RawCandidate]:
    """
    Events from the "## Events" section of a reader markdown dump.

    An image line opens a new event, ``### Title`` names it, a "By ..." line
    names the host and the first short plain line is the schedule or venue.
    """
    candidates: list[RawCandidate] = []
    current: RawCandidate | None = None
    in_events = False

    def flush() -> None:
        if current is not None and current.has_title:
            current.category = category_from_keywords(current.title)
            candidates.append(current)

    for raw_line in markdown.splitlines():
        line = raw_line.strip()
        if line == "## Events":
            in_events = True
            continue
        if not in_events:
            continue
        if line.startswith("## "):
            break

        m = _MD_IMAGE.match(line)
        if m:
            flush()
            current = RawCandidate(title=None, image_url=m.group(1), tags=["luma"])
            continue
        if current is None or not line:
            continue

        m = _MD_TITLE.match(line)
        if m:
            current.title = m.group(1).strip()
            continue

        if line.startswith("By "):
            if not current.description:
                current.description = f"Hosted by {line[3:].strip()}"
            current.tags.append("hosted")
            continue

        if line.startswith(("#", "!")) or "http" in line or not within(line, 6, 99):
            continue
        if current.start_text is None and looks_like_schedule(line):
            current.start_text = line
        elif current.location_text is None:
            current.location_text = line

    flush()
    return candidates


class LumaPlugin(SourcePlugin):
    name = "Luma (Web)"
    source_key = "luma"
    version = "1.0.0"
    default_base_url = "https://lu.ma"
    default_tags = ("luma",)
    default_timezone = "Asia/Dubai"

    @property
    def reader_url(self) -> str | None:
        return self.config.settings.get("reader_url") or None

    def build_url(self, filters: EventFilters) -> str:
        slug = city_slug(filters.city) if filters.city else self.config.settings.get(
            "default_city_slug", DEFAULT_CITY_SLUG
        )
        url = f"{self.base_url}/{slug}"
        if filters.query:
            url += f"?q={quote(filters.query)}"
        return url

    def request_url(self, url: str) -> str:
        if not self.reader_url:
            return url
        return f"{self.reader_url}?{urlencode({'url': url, 'return_format': 'markdown'})}"

    def native_id(self, url: str) -> str | None:
        m = EVENT_ID.search(url)
        return m.group(1) if m else None

    def parse_response(self, body: str, filters: EventFilters) -> list[RawCandidate]:
        if self.reader_url:
            content = reader_content(body)
            if not content:
                self.logger.warning("No content received from web reader")
                return []
            return parse_markdown_events(content)
        return super().parse_response(body, filters)

    def parse_events(self, markup: MarkupDocument, filters: EventFilters) -> list[RawCandidate]:
        return extract_with_fallback(
            markup,
            filters,
            [self._parse_event_links, self._parse_cover_images],
            source_key=self.source_key,
        )

    def _location(self, card: Node) -> str | None:
        node = card.first(LOCATION)
        if node is not None and node.text:
            return node.text
        text = card.text
        for pattern in VENUE_PATTERNS:
            m = pattern.search(text)
            if m:
                return m.group(1).strip()
        return None

    def _description(self, card: Node) -> str | None:
        for node in card.query(DESCRIPTION):
            if within(node.text, 21, 499):
                return node.text
        host = card.first(HOST)
        if host is not None and host.text:
            host_name = re.sub(r"^By\s+", "", host.text)
            return f"Hosted by {host_name}"
        return None

    def _category(self, title: str, card: Node) -> str | None:
        category = category_from_keywords(title)
        if category:
            return category
        badge = card.first(BADGE)
        return category_from_badge(badge.text if badge else None)

    def _parse_event_links(self, markup: MarkupDocument, filters: EventFilters) -> list[RawCandidate]:
        candidates: list[RawCandidate] = []
        seen: set[str] = set()

        for link in markup.query(EVENT_LINK):
            href = link.attr("href") or ""
            if not EVENT_HREF.match(href) or href in seen:
                continue
            seen.add(href)

            card = link.closest(CARD) or link
            title = card.first_text(HEADING, min_len=6, max_len=199) or link.text
            if not title or len(title) > 200:
                continue

            image = card.first("img")
            when = card.first(TIME)

            candidates.append(
                RawCandidate(
                    title=title,
                    url=absolutize(href, self.base_url),
                    image_url=image.attr("src") if image else None,
                    start_text=(when.attr("datetime") or when.text) if when else None,
                    location_text=self._location(card),
                    description=self._description(card),
                    category=self._category(title, card),
                )
            )
        return candidates

    def _parse_cover_images(self, markup: MarkupDocument, filters: EventFilters) -> list[RawCandidate]:
        candidates: list[RawCandidate] = []
        seen: set[str] = set()

        for img in markup.query(COVER_IMAGE):
            src = img.attr("src") or ""
            if not any(p in src for p in COVER_PATHS):
                continue

            card = img.closest(ALT_CARD)
            if card is None:
                continue
            link = card if card.matches(EVENT_LINK) else card.first(EVENT_LINK)
            href = link.attr("href") if link else None
            if not href or href in seen:
                continue
            seen.add(href)

            title = card.first_text(HEADING)
            if not title:
                continue

            candidates.append(
                RawCandidate(
                    title=title,
                    url=absolutize(href, self.base_url),
                    image_url=src,
                    category=self._category(title, card),
                    tags=["luma", "dubai"],
                )
            )
        return candidates
