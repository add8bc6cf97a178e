"""
Module for event deduplication strategies.

Provides deduplication strategies using the Strategy pattern:
- ExternalIdDeduplicator: Match by external id (the cycle default)
- ExactMatchDeduplicator: Match by title + venue + start time (exact)
- FuzzyMatchDeduplicator: Fuzzy title match on the same day via difflib
- CompositeDeduplicator: Chain multiple strategies

Every strategy keeps the first occurrence and preserves input order.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from difflib import SequenceMatcher
from enum import Enum

from eventnexus.schemas.event import CanonicalEvent


class DeduplicationStrategy(str, Enum):
    """Available deduplication strategies."""

    EXTERNAL_ID = "external_id"
    EXACT = "exact"
    FUZZY = "fuzzy"
    COMPOSITE = "composite"


class EventDeduplicator(ABC):
    """Abstract base for deduplication strategies."""

    @abstractmethod
    def deduplicate(self, events: list[CanonicalEvent]) -> list[CanonicalEvent]:
        """Deduplicate events and return unique set."""


class ExternalIdDeduplicator(EventDeduplicator):
    """Match by ``external_id``; the key sinks upsert on."""

    def deduplicate(self, events: list[CanonicalEvent]) -> list[CanonicalEvent]:
        seen: set[str] = set()
        unique_events = []
        for event in events:
            if event.external_id not in seen:
                seen.add(event.external_id)
                unique_events.append(event)
        return unique_events


class ExactMatchDeduplicator(EventDeduplicator):
    """Match by title + venue + start time (exact)."""

    def deduplicate(self, events: list[CanonicalEvent]) -> list[CanonicalEvent]:
        """
        Deduplicate events using exact matching on title, venue, and start.

        Returns:
            List of unique events (first occurrence kept)
        """
        seen = set()
        unique_events = []

        for event in events:
            key = (
                event.title.lower(),
                event.location.name.lower(),
                event.start_time.isoformat() if event.start_time else "",
            )
            if key not in seen:
                seen.add(key)
                unique_events.append(event)

        return unique_events


class FuzzyMatchDeduplicator(EventDeduplicator):
    """
    Fuzzy title match for the same event listed by several sources.

    Two events are duplicates when they start on the same day and their
    titles have a similarity ratio >= threshold. Events without a start
    time are never merged fuzzily.
    """

    def __init__(self, threshold: float = 0.85):
        if not 0.0 < threshold <= 1.0:
            raise ValueError("threshold must be in (0, 1]")
        self.threshold = threshold

    def deduplicate(self, events: list[CanonicalEvent]) -> list[CanonicalEvent]:
        unique_events: list[CanonicalEvent] = []

        for event in events:
            if event.start_time is None:
                unique_events.append(event)
                continue

            event_date = event.start_time.date()
            event_title = event.title.lower()
            is_duplicate = False
            for kept in unique_events:
                if kept.start_time is None or kept.start_time.date() != event_date:
                    continue
                ratio = SequenceMatcher(None, event_title, kept.title.lower()).ratio()
                if ratio >= self.threshold:
                    is_duplicate = True
                    break

            if not is_duplicate:
                unique_events.append(event)

        return unique_events


class CompositeDeduplicator(EventDeduplicator):
    """Chain multiple deduplication strategies."""

    def __init__(self, strategies: list[EventDeduplicator] | None = None):
        """
        Args:
            strategies: Deduplicators applied in sequence; defaults to
                external id followed by exact match
        """
        self.strategies = strategies or [ExternalIdDeduplicator(), ExactMatchDeduplicator()]

    def deduplicate(self, events: list[CanonicalEvent]) -> list[CanonicalEvent]:
        result = events
        for strategy in self.strategies:
            result = strategy.deduplicate(result)
        return result


def get_deduplicator(
    strategy: DeduplicationStrategy | str = DeduplicationStrategy.EXTERNAL_ID,
) -> EventDeduplicator:
    """
    Create a deduplicator instance for the given strategy.

    Raises:
        ValueError: If the strategy name is unknown
    """
    strategy = DeduplicationStrategy(strategy)
    if strategy == DeduplicationStrategy.EXACT:
        return ExactMatchDeduplicator()
    if strategy == DeduplicationStrategy.FUZZY:
        return FuzzyMatchDeduplicator()
    if strategy == DeduplicationStrategy.COMPOSITE:
        return CompositeDeduplicator()
    return ExternalIdDeduplicator()
