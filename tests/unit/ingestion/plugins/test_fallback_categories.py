"""
Unit tests for category handling on every plugin's fallback strategies.

Fallback extractors only report a category backed by something on the page
(badge, URL, section heading, title keywords); otherwise it stays None.
"""

import pytest

from eventnexus.ingestion.extraction.markup import MarkupDocument
from eventnexus.ingestion.plugins.base import extract_json_ld
from eventnexus.ingestion.plugins.eventbrite import EventbritePlugin
from eventnexus.ingestion.plugins.fractional_dubai import FractionalDubaiPlugin
from eventnexus.ingestion.plugins.luma import LumaPlugin
from eventnexus.ingestion.plugins.meetup import MeetupPlugin
from eventnexus.schemas.event import EventFilters

# =============================================================================
# FIXTURES
# =============================================================================

JSON_LD_EVENT = """
<script type="application/ld+json">
{"@context": "https://schema.org", "@type": "Event", "name": "Quiet Evening Gathering",
 "url": "https://example.com/e/quiet-evening", "startDate": "2026-03-05T19:00:00+04:00"}
</script>
"""

NO_SIGNAL_PAGES = [
    pytest.param(
        MeetupPlugin,
        "_parse_event_anchors",
        '<div><a href="/g/events/123456789/">Evening Session</a></div>',
        id="meetup-anchors",
    ),
    pytest.param(MeetupPlugin, extract_json_ld, JSON_LD_EVENT, id="meetup-json-ld"),
    pytest.param(
        LumaPlugin,
        "_parse_cover_images",
        """
        <section>
          <img src="https://images.lumacdn.com/event-covers/x/cover.png" />
          <h2>Rooftop Product Mixer</h2>
          <a href="https://lu.ma/e/rooftop-mixer?tk=abc">Register</a>
        </section>
        """,
        id="luma-cover-images",
    ),
    pytest.param(
        EventbritePlugin,
        "_parse_event_links",
        """
        <div class="event-card">
          <h3>Quiet Evening</h3>
          <a href="/e/quiet-evening-123456789"></a>
        </div>
        """,
        id="eventbrite-links",
    ),
    pytest.param(EventbritePlugin, extract_json_ld, JSON_LD_EVENT, id="eventbrite-json-ld"),
    pytest.param(
        FractionalDubaiPlugin,
        "_parse_headings",
        "<div><h3>Quarterly Founders Evening</h3><p>March 5, 2026, 7:00 PM</p></div>",
        id="fractional-headings",
    ),
    pytest.param(FractionalDubaiPlugin, extract_json_ld, JSON_LD_EVENT, id="fractional-json-ld"),
]


def run_strategy(plugin_cls, strategy, html):
    """``strategy`` is a plugin method name or a shared strategy function."""
    if isinstance(strategy, str):
        strategy = getattr(plugin_cls(), strategy)
    return strategy(MarkupDocument(f"<html><body>{html}</body></html>"), EventFilters())


# =============================================================================
# TEST CLASSES
# =============================================================================


class TestFallbackCategories:
    """Tests for categories produced by fallback strategies."""

    @pytest.mark.parametrize("plugin_cls,strategy,html", NO_SIGNAL_PAGES)
    def test_no_signal_leaves_category_unset(self, plugin_cls, strategy, html):
        """Should leave category None when the page carries no category signal."""
        candidates = run_strategy(plugin_cls, strategy, html)

        assert candidates
        assert [c.category for c in candidates] == [None] * len(candidates)

    def test_meetup_anchor_badge_is_used(self):
        """Should take a category from a badge next to the link."""
        candidates = run_strategy(
            MeetupPlugin,
            "_parse_event_anchors",
            '<div><span class="badge">Tech</span>'
            '<a href="/g/events/123456789/">Evening Session</a></div>',
        )
        assert [c.category for c in candidates] == ["Tech"]

    def test_luma_cover_title_keywords_are_used(self):
        """Should infer the category from title keywords."""
        candidates = run_strategy(
            LumaPlugin,
            "_parse_cover_images",
            """
            <section>
              <img src="https://images.lumacdn.com/event-covers/x/cover.png" />
              <h2>Startup Pitch Night</h2>
              <a href="https://lu.ma/e/pitch-night?tk=abc">Register</a>
            </section>
            """,
        )
        assert [c.category for c in candidates] == ["Business"]

    def test_fractional_heading_in_labelled_section(self):
        """Should take the category from the enclosing section heading."""
        candidates = run_strategy(
            FractionalDubaiPlugin,
            "_parse_headings",
            "<section><h2>SME</h2><h3>Quarterly Founders Evening</h3>"
            "<p>March 5, 2026, 7:00 PM</p></section>",
        )
        assert [c.category for c in candidates] == ["SME"]
