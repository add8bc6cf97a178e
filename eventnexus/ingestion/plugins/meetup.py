"""Meetup find-events page plugin."""

from __future__ import annotations

import re
from urllib.parse import urlencode

from eventnexus.ingestion.extraction.candidate import RawCandidate
from eventnexus.ingestion.extraction.markup import MarkupDocument, Node
from eventnexus.ingestion.normalization.categories import category_from_badge
from eventnexus.ingestion.normalization.text import within
from eventnexus.ingestion.normalization.urls import absolutize
from eventnexus.ingestion.plugins.base import SourcePlugin, extract_json_ld, extract_with_fallback
from eventnexus.schemas.event import EventFilters

DEFAULT_LOCATION = "Dubai"
DEFAULT_RADIUS_KM = 50

EVENT_HREF = re.compile(r"/events/(\d+)")

EVENT_LINK = "a[href*='/events/']"
CARD = ".event-listing, .eventCard, article, div[class*='event'], div"
HEADING = "h1, h2, h3, h4, h5, h6"
TIME = "time, [datetime], span[class*='time'], div[class*='time']"
VENUE = ".eventCard--venue, span[class*='venue'], div[class*='venue']"
DESCRIPTION = ".eventCard--description, p.description, p"
BADGE = "span[class*='badge'], span[class*='tag']"

ALT_CARD = "div, article, section"
ALT_TIME = "time, [datetime]"

# URL fragments hinting at a category
URL_CATEGORY_HINTS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("/tech-", "-tech-"), "Tech"),
    (("/business-",), "Business"),
    (("/social-",), "Social"),
)


class MeetupPlugin(SourcePlugin):
    name = "Meetup (Web)"
    source_key = "meetup"
    version = "1.0.0"
    default_base_url = "https://www.meetup.com"
    default_tags = ("meetup",)
    default_timezone = "Asia/Dubai"

    def build_url(self, filters: EventFilters) -> str:
        if filters.location is not None:
            params = {
                "location": f"{filters.location.lat},{filters.location.lng}",
                "radius": f"{filters.location.radius_km:g}",
            }
        elif filters.city:
            params = {"location": filters.city}
        else:
            params = {
                "location": self.config.settings.get("default_location", DEFAULT_LOCATION),
                "radius": str(DEFAULT_RADIUS_KM),
            }
        return f"{self.base_url}/find/events/?{urlencode(params)}"

    def native_id(self, url: str) -> str | None:
        m = EVENT_HREF.search(url)
        return m.group(1) if m else None

    def parse_events(self, markup: MarkupDocument, filters: EventFilters) -> list[RawCandidate]:
        return extract_with_fallback(
            markup,
            filters,
            [self._parse_event_cards, self._parse_event_anchors, extract_json_ld],
            source_key=self.source_key,
        )

    def _event_links(self, markup: MarkupDocument) -> list[Node]:
        return [
            link
            for link in markup.query(EVENT_LINK)
            if EVENT_HREF.search(link.attr("href") or "")
        ]

    def _category(self, card: Node) -> str | None:
        badge = card.first(BADGE)
        category = category_from_badge(badge.text if badge else None)
        if category:
            return category
        href = ""
        link = card.first("a")
        if link is not None:
            href = link.attr("href") or ""
        for needles, label in URL_CATEGORY_HINTS:
            if any(n in href for n in needles):
                return label
        return None

    def _title(self, link: Node, card: Node) -> str | None:
        heading = link.first(HEADING)
        title = heading.text if heading else ""
        if not title:
            title = card.first_text(HEADING, min_len=6, max_len=199) or ""
        if not title:
            title = link.text
        if not title or len(title) > 200:
            return None
        return title

    def _parse_event_cards(self, markup: MarkupDocument, filters: EventFilters) -> list[RawCandidate]:
        candidates: list[RawCandidate] = []
        seen: set[str] = set()

        for link in self._event_links(markup):
            href = link.attr("href")
            if not href or href in seen:
                continue
            seen.add(href)

            card = link.closest(CARD) or link
            title = self._title(link, card)
            if not title:
                continue

            image = card.first("img")
            when = card.first(TIME)
            venue = card.first(VENUE)
            description = next(
                (p.text for p in card.query(DESCRIPTION) if within(p.text, 21, 499)),
                None,
            )

            candidates.append(
                RawCandidate(
                    title=title,
                    url=absolutize(href, self.base_url),
                    image_url=image.attr("src") if image else None,
                    start_text=(when.attr("datetime") or when.text) if when else None,
                    location_text=venue.text if venue else None,
                    description=description,
                    category=self._category(card),
                )
            )
        return candidates

    def _parse_event_anchors(self, markup: MarkupDocument, filters: EventFilters) -> list[RawCandidate]:
        candidates: list[RawCandidate] = []
        seen: set[str] = set()

        for link in markup.query("a"):
            href = link.attr("href") or ""
            title = link.text
            if not EVENT_HREF.search(href) or not within(title, 6, 99):
                continue
            if href in seen:
                continue
            seen.add(href)

            card = link.closest(ALT_CARD)
            image = card.first("img") if card else None
            when = card.first(ALT_TIME) if card else None
            venue = card.first(VENUE) if card else None

            candidates.append(
                RawCandidate(
                    title=title,
                    url=absolutize(href, self.base_url),
                    image_url=image.attr("src") if image else None,
                    start_text=(when.attr("datetime") or when.text) if when else None,
                    location_text=venue.text if venue else None,
                    category=self._category(card) if card else None,
                    tags=["meetup", "networking"],
                )
            )
        return candidates
