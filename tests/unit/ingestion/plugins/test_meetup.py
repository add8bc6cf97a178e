"""
Unit tests for the Meetup plugin.
"""

from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from eventnexus.ingestion.errors import HttpStatusError, TransportError
from eventnexus.ingestion.plugins.meetup import MeetupPlugin
from eventnexus.schemas.event import EventFilters, LocationFilter

# =============================================================================
# FIXTURES
# =============================================================================

LISTINGS = """
<div class="event-listing">
  <a href="/tech-dubai/events/123456789/" class="eventCard--link">
    <div class="eventCard--title"><h3>Tech &amp; Business Networking Dubai</h3></div>
    <time> Tue, Mar 4, 2025, 6:00 PM GST</time>
    <div class="eventCard--venue">
      <span>Jabbour Lebanese Restaurant</span>
      <span>Dubai, AE</span>
    </div>
    <img src="https://secure.meetupstatic.com/photos/event/3/8/4/a/clean_519914410.webp" alt="Event" />
  </a>
</div>
<div class="event-listing">
  <a href="/dubai-tech/events/987654321/" class="eventCard--link">
    <div class="eventCard--title"><h3>AI Workshop Dubai</h3></div>
    <time>Wed, Mar 12, 2025, 7:00 PM GST</time>
    <div class="eventCard--venue"><span>Dubai Internet City</span></div>
    <img src="https://secure.meetupstatic.com/photos/event/1/2/3/clean_123456.webp" alt="Event" />
  </a>
</div>
"""


def query_of(url: str) -> dict:
    return parse_qs(urlparse(url).query)


# =============================================================================
# TEST CLASSES
# =============================================================================


class TestMeetupUrls:
    """Tests for URL building and ids."""

    def test_metadata(self, make_plugin):
        """Should identify itself and need no API key."""
        plugin = make_plugin(MeetupPlugin)
        assert plugin.name == "Meetup (Web)"
        assert plugin.source_key == "meetup"
        assert plugin.requires_api_key() is False

    def test_default_url(self, make_plugin):
        """Should default to Dubai."""
        url = make_plugin(MeetupPlugin).build_url(EventFilters())
        assert "meetup.com" in url
        assert query_of(url)["location"] == ["Dubai"]

    def test_coordinates(self, make_plugin):
        """Should pass coordinates and radius."""
        filters = EventFilters(location=LocationFilter(lat=25.2048, lng=55.2708, radius_km=100))
        url = make_plugin(MeetupPlugin).build_url(filters)
        assert query_of(url) == {"location": ["25.2048,55.2708"], "radius": ["100"]}

    def test_city(self, make_plugin):
        """Should search by city name."""
        url = make_plugin(MeetupPlugin).build_url(EventFilters(city="Abu Dhabi"))
        assert query_of(url)["location"] == ["Abu Dhabi"]

    def test_native_id(self, make_plugin):
        """Should read the numeric event id."""
        plugin = make_plugin(MeetupPlugin)
        assert plugin.native_id("https://www.meetup.com/tech-dubai/events/123456/") == "123456"
        assert plugin.native_id("https://www.meetup.com/dubai-tech/events/999999") == "999999"
        assert plugin.native_id("https://www.meetup.com/find/") is None


class TestMeetupParsing:
    """Tests for event card parsing."""

    def test_parses_cards(self, make_plugin, fetch_events, page):
        """Should read one event per card."""
        events = fetch_events(make_plugin(MeetupPlugin, page(LISTINGS)))

        assert len(events) == 2
        assert events[0].title == "Tech & Business Networking Dubai"
        assert events[0].url == "https://www.meetup.com/tech-dubai/events/123456789"
        assert events[0].external_id == "meetup:123456789"
        assert "Jabbour" in events[0].location.name
        assert events[0].start_time.day == 4
        assert events[0].start_time.hour == 18
        assert events[0].category == "Tech"
        assert events[1].image_url.endswith("clean_123456.webp")

    def test_description(self, make_plugin, fetch_events, page):
        """Should take the card description."""
        html = page(
            """
            <div class="event-listing">
              <a href="/tech-dubai/events/123/" class="eventCard--link">
                <div class="eventCard--title"><h3>AI Workshop</h3></div>
                <div class="eventCard--description">
                  <p>Join us for an intensive AI workshop covering machine learning basics.</p>
                </div>
                <time>Sat, Mar 15, 2025, 2:00 PM GST</time>
              </a>
            </div>
            """
        )
        events = fetch_events(make_plugin(MeetupPlugin, html))
        assert "AI workshop" in events[0].description

    def test_events_without_images(self, make_plugin, fetch_events, page):
        """Should keep image-less events with image_url None."""
        html = page(
            """
            <div class="event-listing">
              <a href="/tech-dubai/events/456/" class="eventCard--link">
                <div class="eventCard--title"><h3>Text Only Event</h3></div>
                <time>Fri, Mar 20, 2026, 5:00 PM GST</time>
              </a>
            </div>
            """
        )
        events = fetch_events(make_plugin(MeetupPlugin, html))

        assert len(events) == 1
        assert events[0].image_url is None

    def test_time_datetime_attribute_preferred(self, make_plugin, fetch_events, page):
        """Should prefer a machine-readable datetime attribute."""
        html = page(
            """
            <article>
              <a href="/grp/events/777/"><h3>Founders Circle</h3></a>
              <time datetime="2026-04-02T19:00:00+04:00">Thursday evening</time>
            </article>
            """
        )
        events = fetch_events(make_plugin(MeetupPlugin, html))
        assert events[0].start_time.isoformat() == "2026-04-02T19:00:00+04:00"

    def test_empty_page(self, make_plugin, fetch_events, page):
        """Should return no events for a page without listings."""
        assert fetch_events(make_plugin(MeetupPlugin, page("<p>No upcoming events</p>"))) == []

    def test_network_error(self, make_plugin, fetch_events):
        """Should raise TransportError carrying the cause."""

        def handler(request):
            raise httpx.ConnectError("Network error", request=request)

        with pytest.raises(TransportError, match="Network error"):
            fetch_events(make_plugin(MeetupPlugin, handler))

    def test_http_error(self, make_plugin, fetch_events):
        """Should raise HttpStatusError carrying the status text."""
        with pytest.raises(HttpStatusError, match="Not Found"):
            fetch_events(make_plugin(MeetupPlugin, "", status_code=404))
