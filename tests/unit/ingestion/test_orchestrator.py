"""
Unit tests for the ingestion orchestrator.

Plugins are MagicMock stubs so cycles run without I/O. Deadline tests use
short real timeouts.
"""

import asyncio
from unittest.mock import MagicMock

import pytest

from eventnexus.ingestion.deduplication import ExactMatchDeduplicator
from eventnexus.ingestion.errors import HttpStatusError, IngestionCycleError, TransportError
from eventnexus.ingestion.orchestrator import (
    CycleStatus,
    EventSink,
    FilterSource,
    IngestionOrchestrator,
)
from eventnexus.ingestion.registry import PluginRegistry
from eventnexus.schemas.event import EventFilters

# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def events(create_event):
    return {
        "luma": [
            create_event(title="AI Night", external_id="luma:1", source="luma"),
            create_event(title="Demo Day", external_id="luma:2", source="luma"),
        ],
        "meetup": [create_event(title="Python Dubai", external_id="meetup:1", source="meetup")],
    }


def run(orchestrator, *args, **kwargs):
    return asyncio.run(orchestrator.arun_ingestion_cycle(*args, **kwargs))


# =============================================================================
# TEST CLASSES
# =============================================================================


class TestCycleOutcome:
    """Tests for cycle status, aggregation and failure isolation."""

    def test_all_succeed(self, make_stub_plugin, events):
        """Should aggregate every source's events and report success."""
        registry = PluginRegistry(
            [
                make_stub_plugin("luma", events=events["luma"]),
                make_stub_plugin("meetup", events=events["meetup"]),
            ]
        )
        result = run(IngestionOrchestrator(registry))

        assert result.status == CycleStatus.SUCCESS
        assert [e.external_id for e in result.events] == ["luma:1", "luma:2", "meetup:1"]
        assert result.events_per_source == {"luma": 2, "meetup": 1}
        assert result.failures == []

    def test_one_failure_is_partial_success(self, make_stub_plugin, events):
        """Should keep other sources' events when one source fails."""
        registry = PluginRegistry(
            [
                make_stub_plugin("luma", events=events["luma"]),
                make_stub_plugin(
                    "meetup",
                    error=HttpStatusError(
                        "Failed to fetch: 503 Service Unavailable",
                        status_code=503,
                        status_text="Service Unavailable",
                    ),
                ),
            ]
        )
        result = run(IngestionOrchestrator(registry))

        assert result.status == CycleStatus.PARTIAL_SUCCESS
        assert len(result.events) == 2
        assert result.failed_sources == ["meetup"]
        assert result.failures[0].error_type == "http_status"
        assert "Service Unavailable" in result.failures[0].reason

    def test_all_fail(self, make_stub_plugin):
        """Should report FAILED when every source fails."""
        registry = PluginRegistry(
            [
                make_stub_plugin("luma", error=TransportError("Connection failed")),
                make_stub_plugin("meetup", error=RuntimeError("bug")),
            ]
        )
        result = run(IngestionOrchestrator(registry))

        assert result.status == CycleStatus.FAILED
        assert result.events == []
        assert {f.error_type for f in result.failures} == {"transport", "RuntimeError"}

    def test_zero_events_is_not_failure(self, make_stub_plugin):
        """Should treat a source returning nothing as a success."""
        registry = PluginRegistry([make_stub_plugin("luma", events=[])])
        result = run(IngestionOrchestrator(registry))

        assert result.status == CycleStatus.SUCCESS
        assert result.events_per_source == {"luma": 0}

    def test_no_plugins(self):
        """Should report a cycle with no enabled plugins as failed."""
        result = run(IngestionOrchestrator(PluginRegistry()))
        assert result.status == CycleStatus.FAILED
        assert result.events == []
        assert result.failures == []

    def test_disabled_and_unselected_plugins_skipped(self, make_stub_plugin, events):
        """Should only run enabled plugins among the requested sources."""
        luma = make_stub_plugin("luma", events=events["luma"])
        meetup = make_stub_plugin("meetup", events=events["meetup"])
        eventbrite = make_stub_plugin("eventbrite", enabled=False)
        registry = PluginRegistry([luma, meetup, eventbrite])

        result = run(IngestionOrchestrator(registry), sources=["meetup", "eventbrite"])

        assert [e.external_id for e in result.events] == ["meetup:1"]
        luma.perform_fetch.assert_not_awaited()
        eventbrite.perform_fetch.assert_not_awaited()

    def test_stats_recorded(self, make_stub_plugin, events):
        """Should record per-source success and failure on the registry."""
        registry = PluginRegistry(
            [
                make_stub_plugin("luma", events=events["luma"]),
                make_stub_plugin("meetup", error=TransportError("down")),
            ]
        )
        run(IngestionOrchestrator(registry))

        assert registry.stats("luma")[0].events_fetched == 2
        assert registry.stats("meetup")[0].failures == 1


class TestDeadline:
    """Tests for the cycle deadline."""

    def test_slow_plugin_cancelled(self, make_stub_plugin, events):
        """Should cancel sources still running at the deadline."""
        registry = PluginRegistry(
            [
                make_stub_plugin("luma", events=events["luma"]),
                make_stub_plugin("meetup", events=events["meetup"], delay=5.0),
            ]
        )
        result = run(IngestionOrchestrator(registry, cycle_timeout_s=0.2))

        assert result.status == CycleStatus.PARTIAL_SUCCESS
        assert len(result.events) == 2
        assert result.failures[0].source_key == "meetup"
        assert result.failures[0].error_type == "deadline"
        assert "deadline" in result.failures[0].reason
        assert result.duration_seconds < 5.0
        assert registry.stats("meetup")[0].errors[-1] == "deadline exceeded"

    def test_invalid_timeout(self):
        """Should reject a non-positive cycle timeout."""
        with pytest.raises(ValueError):
            IngestionOrchestrator(PluginRegistry(), cycle_timeout_s=0)


class TestCollaborators:
    """Tests for deduplication, sink and filter source."""

    def test_duplicates_removed(self, make_stub_plugin, create_event):
        """Should drop repeated external ids across sources."""
        a = create_event(title="Shared", external_id="luma:1")
        registry = PluginRegistry(
            [make_stub_plugin("luma", events=[a]), make_stub_plugin("other", events=[a])]
        )
        result = run(IngestionOrchestrator(registry))

        assert len(result.events) == 1
        assert result.duplicates_removed == 1

    def test_custom_deduplicator(self, make_stub_plugin, create_event):
        """Should use the injected strategy."""
        a = create_event(title="Jazz", external_id="luma:1")
        b = create_event(title="Jazz", external_id="meetup:1")
        registry = PluginRegistry([make_stub_plugin("luma", events=[a, b])])
        result = run(IngestionOrchestrator(registry, deduplicator=ExactMatchDeduplicator()))
        assert len(result.events) == 1

    def test_sink_receives_events(self, make_stub_plugin, events):
        """Should hand the de-duplicated events to the sink."""
        sink = MagicMock(spec=EventSink)
        registry = PluginRegistry([make_stub_plugin("luma", events=events["luma"])])
        run(IngestionOrchestrator(registry, sink=sink))

        sink.upsert.assert_called_once_with(events["luma"])

    def test_sink_failure_raises(self, make_stub_plugin, events):
        """Should raise IngestionCycleError when the sink fails."""
        sink = MagicMock(spec=EventSink)
        sink.upsert.side_effect = ConnectionError("db down")
        registry = PluginRegistry([make_stub_plugin("luma", events=events["luma"])])

        with pytest.raises(IngestionCycleError, match="db down"):
            run(IngestionOrchestrator(registry, sink=sink))

    def test_filter_source_used_without_explicit_filters(self, make_stub_plugin):
        """Should ask the filter source for the current filters."""
        filters = EventFilters(city="Dubai")
        filter_source = MagicMock(spec=FilterSource)
        filter_source.current_filters.return_value = filters
        luma = make_stub_plugin("luma")

        run(IngestionOrchestrator(PluginRegistry([luma]), filter_source=filter_source))
        luma.perform_fetch.assert_awaited_once_with(filters)

    def test_explicit_filters_win(self, make_stub_plugin):
        """Should prefer filters passed to the cycle."""
        filter_source = MagicMock(spec=FilterSource)
        luma = make_stub_plugin("luma")
        filters = EventFilters(query="ai")

        run(IngestionOrchestrator(PluginRegistry([luma]), filter_source=filter_source), filters)
        luma.perform_fetch.assert_awaited_once_with(filters)
        filter_source.current_filters.assert_not_called()


class TestSyncEntryPointAndHistory:
    """Tests for run_ingestion_cycle and history."""

    def test_run_ingestion_cycle_closes_plugins(self, make_stub_plugin, events):
        """Should run the cycle and close plugin resources."""
        luma = make_stub_plugin("luma", events=events["luma"])
        result = IngestionOrchestrator(PluginRegistry([luma])).run_ingestion_cycle()

        assert result.status == CycleStatus.SUCCESS
        luma.aclose.assert_awaited_once()

    def test_history(self, make_stub_plugin):
        """Should keep results of past cycles, newest last."""
        orchestrator = IngestionOrchestrator(PluginRegistry([make_stub_plugin("luma")]))
        first = run(orchestrator)
        second = run(orchestrator)

        assert orchestrator.get_execution_history() == [first, second]
        assert orchestrator.get_execution_history(limit=1) == [second]
        assert first.cycle_id != second.cycle_id

    def test_to_dict(self, make_stub_plugin, events):
        """Should serialize to plain JSON-compatible types."""
        registry = PluginRegistry(
            [
                make_stub_plugin("luma", events=events["luma"]),
                make_stub_plugin("meetup", error=TransportError("down")),
            ]
        )
        data = run(IngestionOrchestrator(registry)).to_dict()

        assert data["status"] == "partial_success"
        assert data["events"][0]["external_id"] == "luma:1"
        assert data["failures"] == [{"source_key": "meetup", "reason": "down", "error_type": "transport"}]
        assert set(data) >= {"cycle_id", "started_at", "ended_at", "duration_seconds"}
