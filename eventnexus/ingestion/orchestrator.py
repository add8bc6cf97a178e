"""
Ingestion orchestrator.

Runs every enabled source plugin concurrently for one ingestion cycle,
isolates their failures, aggregates and de-duplicates the canonical events
and hands them to an optional persistence sink.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Protocol, runtime_checkable

from eventnexus.ingestion.deduplication import EventDeduplicator, ExternalIdDeduplicator
from eventnexus.ingestion.errors import IngestionCycleError, SourceError
from eventnexus.ingestion.plugins.base import SourcePlugin
from eventnexus.ingestion.registry import PluginRegistry
from eventnexus.monitoring.logging import with_context
from eventnexus.schemas.event import CanonicalEvent, EventFilters

logger = logging.getLogger(__name__)

DEFAULT_CYCLE_TIMEOUT_S = 120.0
MAX_HISTORY = 50

# ============================================================================
# COLLABORATORS
# ============================================================================


@runtime_checkable
class EventSink(Protocol):
    """Persists canonical events, replacing existing rows by external id."""

    def upsert(self, events: list[CanonicalEvent]) -> Any: ...


@runtime_checkable
class FilterSource(Protocol):
    """Supplies the filter set for a cycle started without explicit filters."""

    def current_filters(self) -> EventFilters: ...


# ============================================================================
# RESULTS
# ============================================================================


class CycleStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL_SUCCESS = "partial_success"
    FAILED = "failed"


@dataclass
class SourceFailure:
    source_key: str
    reason: str
    error_type: str = "source_error"

    def to_dict(self) -> dict[str, str]:
        return {"source_key": self.source_key, "reason": self.reason, "error_type": self.error_type}


@dataclass
class IngestionCycleResult:
    """
    Outcome of one ingestion cycle.
    """

    cycle_id: str
    status: CycleStatus
    started_at: datetime
    ended_at: datetime
    events: list[CanonicalEvent] = field(default_factory=list)
    failures: list[SourceFailure] = field(default_factory=list)
    events_per_source: dict[str, int] = field(default_factory=dict)
    duplicates_removed: int = 0

    @property
    def duration_seconds(self) -> float:
        return (self.ended_at - self.started_at).total_seconds()

    @property
    def failed_sources(self) -> list[str]:
        return [f.source_key for f in self.failures]

    def to_dict(self) -> dict[str, Any]:
        return {
            "cycle_id": self.cycle_id,
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat(),
            "duration_seconds": self.duration_seconds,
            "events": [e.model_dump(mode="json") for e in self.events],
            "failures": [f.to_dict() for f in self.failures],
            "events_per_source": dict(self.events_per_source),
            "duplicates_removed": self.duplicates_removed,
        }


def _new_cycle_id() -> str:
    return f"{datetime.now(timezone.utc):%Y%m%dT%H%M%S}-{uuid.uuid4().hex[:8]}"


def _failure_from(source_key: str, error: BaseException) -> SourceFailure:
    error_type = error.kind if isinstance(error, SourceError) else type(error).__name__
    return SourceFailure(source_key=source_key, reason=str(error) or repr(error), error_type=error_type)


# ============================================================================
# ORCHESTRATOR
# ============================================================================


class IngestionOrchestrator:
    """
    Coordinates one ingestion cycle across all enabled plugins.

    Responsibilities:
    - Run one task per enabled plugin, bounded by the cycle deadline
    - Keep one plugin's failure or slowness from affecting the others
    - De-duplicate the aggregated events and pass them to the sink
    - Track per-source stats (on the registry) and cycle history
    """

    def __init__(
        self,
        registry: PluginRegistry,
        *,
        cycle_timeout_s: float = DEFAULT_CYCLE_TIMEOUT_S,
        deduplicator: EventDeduplicator | None = None,
        sink: EventSink | None = None,
        filter_source: FilterSource | None = None,
    ) -> None:
        if cycle_timeout_s <= 0:
            raise ValueError("cycle_timeout_s must be positive")
        self.registry = registry
        self.cycle_timeout_s = cycle_timeout_s
        self.deduplicator = deduplicator or ExternalIdDeduplicator()
        self.sink = sink
        self.filter_source = filter_source
        self.execution_history: list[IngestionCycleResult] = []

    def _resolve_filters(self, filters: EventFilters | None) -> EventFilters:
        if filters is not None:
            return filters
        if self.filter_source is not None:
            return self.filter_source.current_filters()
        return EventFilters()

    async def _run_plugin(self, plugin: SourcePlugin, filters: EventFilters) -> list[CanonicalEvent]:
        started = time.monotonic()
        try:
            events = await plugin.perform_fetch(filters)
        except asyncio.CancelledError:
            self.registry.record_failure(
                plugin.source_key, "deadline exceeded", time.monotonic() - started
            )
            raise
        except Exception as e:
            self.registry.record_failure(plugin.source_key, str(e), time.monotonic() - started)
            raise
        self.registry.record_success(plugin.source_key, len(events), time.monotonic() - started)
        return events

    async def arun_ingestion_cycle(
        self,
        filters: EventFilters | None = None,
        *,
        sources: Iterable[str] | None = None,
    ) -> IngestionCycleResult:
        """
        Run all enabled plugins (optionally only ``sources``) concurrently.

        Returns:
            IngestionCycleResult with the de-duplicated events and one
            failure entry per source that did not complete

        Raises:
            IngestionCycleError: If the sink rejects the aggregated events
        """
        cycle_id = _new_cycle_id()
        log = with_context(logger, run_id=cycle_id, stage="cycle")
        started_at = datetime.now(timezone.utc)
        filters = self._resolve_filters(filters)

        plugins = self.registry.enabled(sources)
        if not plugins:
            log.warning("No enabled plugins; nothing to ingest")

        tasks: dict[asyncio.Task, SourcePlugin] = {
            asyncio.create_task(self._run_plugin(p, filters), name=f"ingest:{p.source_key}"): p
            for p in plugins
        }

        done: set[asyncio.Task] = set()
        pending: set[asyncio.Task] = set()
        if tasks:
            done, pending = await asyncio.wait(tasks, timeout=self.cycle_timeout_s)

        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        per_source: dict[str, list[CanonicalEvent]] = {}
        failures: list[SourceFailure] = []
        for task, plugin in tasks.items():
            key = plugin.source_key
            if task in pending:
                failures.append(
                    SourceFailure(
                        source_key=key,
                        reason=f"deadline exceeded after {self.cycle_timeout_s:g}s",
                        error_type="deadline",
                    )
                )
                log.bind(source_key=key).error("Cancelled at cycle deadline")
                continue
            error = task.exception()
            if error is not None:
                failures.append(_failure_from(key, error))
                log.bind(source_key=key).error("Source failed: %s", error)
                continue
            per_source[key] = task.result()

        aggregated = [e for events in per_source.values() for e in events]
        events = self.deduplicator.deduplicate(aggregated)

        if self.sink is not None and events:
            try:
                self.sink.upsert(events)
            except Exception as e:
                raise IngestionCycleError(f"Sink rejected {len(events)} events: {e}") from e

        # zero sources succeeded, including a cycle with nothing to run
        if len(failures) == len(plugins):
            status = CycleStatus.FAILED
        elif failures:
            status = CycleStatus.PARTIAL_SUCCESS
        else:
            status = CycleStatus.SUCCESS

        result = IngestionCycleResult(
            cycle_id=cycle_id,
            status=status,
            started_at=started_at,
            ended_at=datetime.now(timezone.utc),
            events=events,
            failures=failures,
            events_per_source={k: len(v) for k, v in per_source.items()},
            duplicates_removed=len(aggregated) - len(events),
        )
        self.execution_history.append(result)
        del self.execution_history[:-MAX_HISTORY]

        log.info(
            "Cycle %s: %d events from %d sources, %d failed (%.2fs)",
            status.value,
            len(events),
            len(per_source),
            len(failures),
            result.duration_seconds,
        )
        return result

    async def _run_and_close(
        self, filters: EventFilters | None, sources: Iterable[str] | None
    ) -> IngestionCycleResult:
        try:
            return await self.arun_ingestion_cycle(filters, sources=sources)
        finally:
            # HTTP clients are bound to the loop asyncio.run is about to close
            await self.registry.aclose()

    def run_ingestion_cycle(
        self,
        filters: EventFilters | None = None,
        *,
        sources: Iterable[str] | None = None,
    ) -> IngestionCycleResult:
        """Synchronous entry point for schedulers and scripts."""
        return asyncio.run(self._run_and_close(filters, sources))

    def get_execution_history(self, limit: int = 10) -> list[IngestionCycleResult]:
        return self.execution_history[-limit:]
