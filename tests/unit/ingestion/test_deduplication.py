"""
Unit tests for the deduplication module.

Tests for all deduplication strategies:
- ExternalIdDeduplicator
- ExactMatchDeduplicator
- FuzzyMatchDeduplicator
- CompositeDeduplicator
- get_deduplicator factory function
"""

from datetime import datetime

import pytest

from eventnexus.ingestion.deduplication import (
    CompositeDeduplicator,
    DeduplicationStrategy,
    ExactMatchDeduplicator,
    ExternalIdDeduplicator,
    FuzzyMatchDeduplicator,
    get_deduplicator,
)

# =============================================================================
# TEST CLASSES
# =============================================================================


class TestExternalIdDeduplicator:
    """Tests for ExternalIdDeduplicator."""

    def test_keeps_first_occurrence(self, create_event):
        """Should keep the first event per external id, in order."""
        a = create_event(title="A", external_id="luma:1")
        b = create_event(title="B", external_id="luma:2")
        a_again = create_event(title="A updated", external_id="luma:1")

        result = ExternalIdDeduplicator().deduplicate([a, b, a_again])
        assert result == [a, b]

    def test_same_title_different_ids_kept(self, create_event):
        """Should not merge events that only share a title."""
        a = create_event(title="Same", external_id="luma:1")
        b = create_event(title="Same", external_id="meetup:1")
        assert len(ExternalIdDeduplicator().deduplicate([a, b])) == 2

    def test_empty(self):
        """Should handle an empty list."""
        assert ExternalIdDeduplicator().deduplicate([]) == []


class TestExactMatchDeduplicator:
    """Tests for ExactMatchDeduplicator."""

    def test_removes_exact_duplicates(self, create_event):
        """Should merge events with the same title, venue and start."""
        a = create_event(title="Jazz Night", venue_name="Club A", external_id="luma:1")
        b = create_event(title="jazz night", venue_name="club a", external_id="meetup:9")
        assert ExactMatchDeduplicator().deduplicate([a, b]) == [a]

    def test_different_start_kept(self, create_event):
        """Should keep events starting at different times."""
        a = create_event(title="Jazz Night", start_time=datetime(2026, 3, 5, 19, 0))
        b = create_event(title="Jazz Night", start_time=datetime(2026, 3, 6, 19, 0), external_id="x:2")
        assert len(ExactMatchDeduplicator().deduplicate([a, b])) == 2


class TestFuzzyMatchDeduplicator:
    """Tests for FuzzyMatchDeduplicator."""

    def test_similar_titles_same_day(self, create_event):
        """Should merge near-identical titles on the same day."""
        a = create_event(title="Dubai Tech Meetup 2026", external_id="luma:1")
        b = create_event(title="Dubai Tech Meetup 2026!", external_id="meetup:1")
        assert FuzzyMatchDeduplicator().deduplicate([a, b]) == [a]

    def test_similar_titles_different_days(self, create_event):
        """Should keep similar titles on different days."""
        a = create_event(title="Weekly Run Club", start_time=datetime(2026, 3, 5, 7, 0))
        b = create_event(
            title="Weekly Run Club", start_time=datetime(2026, 3, 12, 7, 0), external_id="x:2"
        )
        assert len(FuzzyMatchDeduplicator().deduplicate([a, b])) == 2

    def test_events_without_start_never_merged(self, create_event):
        """Should not merge fuzzily without a start time."""
        a = create_event(title="Open Mic", external_id="x:1").model_copy(update={"start_time": None})
        b = create_event(title="Open Mic", external_id="x:2").model_copy(update={"start_time": None})
        assert len(FuzzyMatchDeduplicator().deduplicate([a, b])) == 2

    @pytest.mark.parametrize("threshold", [0.0, -0.5, 1.5])
    def test_invalid_threshold(self, threshold):
        """Should reject thresholds outside (0, 1]."""
        with pytest.raises(ValueError):
            FuzzyMatchDeduplicator(threshold=threshold)


class TestCompositeDeduplicator:
    """Tests for CompositeDeduplicator."""

    def test_default_chain(self, create_event):
        """Should apply external id then exact matching."""
        a = create_event(title="Talk", external_id="luma:1")
        a_dup = create_event(title="Talk v2", external_id="luma:1")
        a_cross = create_event(title="Talk", external_id="meetup:5")

        assert CompositeDeduplicator().deduplicate([a, a_dup, a_cross]) == [a]

    def test_custom_chain(self, create_event):
        """Should run the given strategies in order."""
        a = create_event(title="Talk", external_id="luma:1")
        b = create_event(title="Talk", external_id="meetup:5")
        composite = CompositeDeduplicator([ExternalIdDeduplicator()])
        assert len(composite.deduplicate([a, b])) == 2


class TestGetDeduplicator:
    """Tests for the get_deduplicator factory."""

    @pytest.mark.parametrize(
        "strategy,expected",
        [
            (DeduplicationStrategy.EXTERNAL_ID, ExternalIdDeduplicator),
            ("exact", ExactMatchDeduplicator),
            ("fuzzy", FuzzyMatchDeduplicator),
            ("composite", CompositeDeduplicator),
        ],
    )
    def test_strategies(self, strategy, expected):
        """Should build the requested strategy."""
        assert isinstance(get_deduplicator(strategy), expected)

    def test_default(self):
        """Should default to external id matching."""
        assert isinstance(get_deduplicator(), ExternalIdDeduplicator)

    def test_unknown(self):
        """Should reject unknown strategy names."""
        with pytest.raises(ValueError):
            get_deduplicator("nope")
