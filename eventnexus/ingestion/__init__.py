"""Event ingestion core: source plugins, fetch runtime, normalization and orchestration."""

from eventnexus.ingestion.orchestrator import (
    CycleStatus,
    EventSink,
    FilterSource,
    IngestionCycleResult,
    IngestionOrchestrator,
    SourceFailure,
)
from eventnexus.ingestion.registry import PluginRegistry

__all__ = [
    "CycleStatus",
    "EventSink",
    "FilterSource",
    "IngestionCycleResult",
    "IngestionOrchestrator",
    "PluginRegistry",
    "SourceFailure",
]
