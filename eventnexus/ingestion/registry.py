"""
Plugin registry.

An explicit object holding the configured source plugins and their
per-source ingestion statistics. The orchestrator receives one at
construction; nothing in the core reaches for a global instance.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable

from eventnexus.ingestion.plugins.base import SourcePlugin
from eventnexus.ingestion.plugins.runtime import PluginHealthStatus

logger = logging.getLogger(__name__)

MAX_RECENT_ERRORS = 10


@dataclass
class IngestionStats:
    """Cumulative counters for one source."""

    source_key: str
    runs: int = 0
    successes: int = 0
    failures: int = 0
    events_fetched: int = 0
    last_run_at: datetime | None = None
    last_duration_s: float | None = None
    errors: deque[str] = field(default_factory=lambda: deque(maxlen=MAX_RECENT_ERRORS))

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_key": self.source_key,
            "runs": self.runs,
            "successes": self.successes,
            "failures": self.failures,
            "events_fetched": self.events_fetched,
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
            "last_duration_s": self.last_duration_s,
            "errors": list(self.errors),
        }


class PluginRegistry:
    """Manages source plugins keyed by ``source_key``."""

    def __init__(self, plugins: Iterable[SourcePlugin] = ()) -> None:
        self._plugins: dict[str, SourcePlugin] = {}
        self._stats: dict[str, IngestionStats] = {}
        for plugin in plugins:
            self.register(plugin)

    def __len__(self) -> int:
        return len(self._plugins)

    def __contains__(self, source_key: object) -> bool:
        return source_key in self._plugins

    # ========================================================================
    # PLUGIN MANAGEMENT
    # ========================================================================

    def register(self, plugin: SourcePlugin) -> None:
        """
        Raises:
            ValueError: If a plugin with the same source_key is registered
        """
        key = plugin.source_key
        if key in self._plugins:
            raise ValueError(f"Plugin for {key} is already registered")
        self._plugins[key] = plugin
        logger.info("Registered plugin: %s (%s)", plugin.name, key)

    def unregister(self, source_key: str) -> SourcePlugin | None:
        plugin = self._plugins.pop(source_key, None)
        if plugin is not None:
            logger.info("Unregistered plugin: %s", source_key)
        return plugin

    def get(self, source_key: str) -> SourcePlugin | None:
        return self._plugins.get(source_key)

    def all(self) -> list[SourcePlugin]:
        return list(self._plugins.values())

    def enabled(self, only: Iterable[str] | None = None) -> list[SourcePlugin]:
        """Enabled plugins, optionally restricted to the given source keys."""
        wanted = set(only) if only is not None else None
        return [
            p
            for p in self._plugins.values()
            if p.enabled and (wanted is None or p.source_key in wanted)
        ]

    # ========================================================================
    # STATS
    # ========================================================================

    def _stats_for(self, source_key: str) -> IngestionStats:
        stats = self._stats.get(source_key)
        if stats is None:
            stats = self._stats[source_key] = IngestionStats(source_key=source_key)
        return stats

    def record_success(self, source_key: str, events: int, duration_s: float) -> None:
        stats = self._stats_for(source_key)
        stats.runs += 1
        stats.successes += 1
        stats.events_fetched += events
        stats.last_run_at = datetime.now(timezone.utc)
        stats.last_duration_s = duration_s

    def record_failure(self, source_key: str, error: str, duration_s: float) -> None:
        stats = self._stats_for(source_key)
        stats.runs += 1
        stats.failures += 1
        stats.errors.append(error)
        stats.last_run_at = datetime.now(timezone.utc)
        stats.last_duration_s = duration_s

    def stats(self, source_key: str | None = None) -> list[IngestionStats]:
        if source_key is not None:
            found = self._stats.get(source_key)
            return [found] if found else []
        return list(self._stats.values())

    def clear_stats(self) -> None:
        self._stats.clear()

    # ========================================================================
    # HEALTH & LIFECYCLE
    # ========================================================================

    async def health_status(self) -> dict[str, PluginHealthStatus]:
        """Run each plugin's health check in turn."""
        health: dict[str, PluginHealthStatus] = {}
        for plugin in self.all():
            try:
                health[plugin.source_key] = await plugin.health_check()
            except Exception as e:
                logger.error("Health check for %s crashed: %s", plugin.source_key, e)
                health[plugin.source_key] = PluginHealthStatus(
                    source_key=plugin.source_key,
                    healthy=False,
                    checked_at=datetime.now(timezone.utc),
                    error=str(e),
                )
        return health

    async def aclose(self) -> None:
        for plugin in self.all():
            await plugin.aclose()
