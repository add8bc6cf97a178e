"""
Eventbrite listing-page plugin.

Eventbrite retired its public search API, so events are read from the
public location listing pages.
"""

from __future__ import annotations

import re

from eventnexus.ingestion.extraction.candidate import RawCandidate
from eventnexus.ingestion.extraction.markup import MarkupDocument, Node
from eventnexus.ingestion.normalization.categories import category_from_badge, category_from_url
from eventnexus.ingestion.normalization.urls import absolutize
from eventnexus.ingestion.plugins.base import SourcePlugin, extract_json_ld, extract_with_fallback
from eventnexus.schemas.event import EventFilters

DEFAULT_LISTING_PATH = "/d/united-arab-emirates--dubai/events/"

CATEGORY_PATHS: dict[str, str] = {
    "music": "/d/united-arab-emirates--dubai/music--events/",
    "business": "/d/united-arab-emirates--dubai/business--events/",
    "science and tech": "/d/united-arab-emirates--dubai/science-and-tech--events/",
    "food": "/d/united-arab-emirates--dubai/food--events/",
}

# Primary card structure
CARD = "div[data-spec='event-card-spec']"
CARD_TITLE = "div[data-spec='event-card-spec--title'] a, h3 a, a[aria-label*='event']"
CARD_LINK = "a[href*='/e/']"
CARD_IMAGE = "img[src*='evbuc'], img[data-spec='event-card-spec--image']"
CARD_DATE = "div[data-spec='event-card-spec--date'], div[data-spec='event-time-spec--start-date']"
CARD_VENUE = "div[data-spec='event-card-spec--venue'], div[data-spec='event-location-spec--venue']"
CARD_BADGE = "span[class*='badge'], span[class*='tag'], span[class*='category']"

# Looser structure keyed on event links
ALT_CARD = "div[class*='event'], article[class*='event'], section[class*='event']"
ALT_HEADING = "h1, h2, h3, h4"
ALT_DATE = "div[class*='date'], span[class*='date'], time"
ALT_VENUE = "div[class*='location'], div[class*='venue'], span[class*='place']"

CATEGORY_URL_PATTERN = r"/([^/]+)--events/?"
MAX_LINK_TITLE_LEN = 100

_NATIVE_ID = re.compile(r"/e/[^/?#]*?-(\d{6,})(?:[/?#]|$)")


class EventbritePlugin(SourcePlugin):
    name = "Eventbrite (Web)"
    source_key = "eventbrite"
    version = "1.0.0"
    default_base_url = "https://www.eventbrite.com"
    default_tags = ("eventbrite",)
    default_timezone = "Asia/Dubai"

    @property
    def category_paths(self) -> dict[str, str]:
        return {**CATEGORY_PATHS, **self.config.settings.get("category_paths", {})}

    def build_url(self, filters: EventFilters) -> str:
        path = self.config.settings.get("listing_path", DEFAULT_LISTING_PATH)
        if filters.categories:
            path = self.category_paths.get(filters.categories[0].strip().lower(), path)
        return f"{self.base_url}{path}"

    def native_id(self, url: str) -> str | None:
        m = _NATIVE_ID.search(url)
        return m.group(1) if m else None

    def parse_events(self, markup: MarkupDocument, filters: EventFilters) -> list[RawCandidate]:
        return extract_with_fallback(
            markup,
            filters,
            [self._parse_cards, self._parse_event_links, extract_json_ld],
            source_key=self.source_key,
        )

    def _category(self, card: Node, url: str, listing_url: str) -> str | None:
        badge = card.first(CARD_BADGE)
        return (
            category_from_badge(badge.text if badge else None)
            or category_from_url(url, CATEGORY_URL_PATTERN)
            or category_from_url(listing_url, CATEGORY_URL_PATTERN)
        )

    def _parse_cards(self, markup: MarkupDocument, filters: EventFilters) -> list[RawCandidate]:
        listing_url = self.build_url(filters)
        candidates: list[RawCandidate] = []
        for card in markup.query(CARD):
            title = card.first_text(CARD_TITLE)
            if not title:
                continue

            link = card.first(CARD_LINK)
            url = absolutize(link.attr("href") if link else None, self.base_url)
            image = card.first(CARD_IMAGE)
            date = card.first(CARD_DATE)
            venue = card.first(CARD_VENUE)

            candidates.append(
                RawCandidate(
                    title=title,
                    url=url or None,
                    image_url=image.attr("src") if image else None,
                    start_text=date.text if date else None,
                    location_text=venue.text if venue else None,
                    category=self._category(card, url, listing_url),
                )
            )
        return candidates

    def _parse_event_links(self, markup: MarkupDocument, filters: EventFilters) -> list[RawCandidate]:
        candidates: list[RawCandidate] = []
        seen: set[str] = set()
        for link in markup.query(CARD_LINK):
            href = link.attr("href")
            if not href or href in seen:
                continue
            card = link.closest(ALT_CARD)

            title = link.text
            if (not title or len(title) > MAX_LINK_TITLE_LEN) and card is not None:
                title = card.first_text(ALT_HEADING) or ""
            if not title:
                continue
            seen.add(href)

            image = card.first("img") if card else None
            date = card.first(ALT_DATE) if card else None
            venue = card.first(ALT_VENUE) if card else None

            candidates.append(
                RawCandidate(
                    title=title,
                    url=absolutize(href, self.base_url),
                    image_url=image.attr("src") if image else None,
                    start_text=date.text if date else None,
                    location_text=venue.text if venue else None,
                )
            )
        return candidates
