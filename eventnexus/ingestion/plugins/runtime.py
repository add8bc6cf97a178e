"""
Shared fetch flow composed into every source plugin.

Per invocation:
    Idle -> RateLimitWait -> Fetching -> (Parsing -> Normalizing -> Done)
                                      | (Retrying -> Fetching | Failed)

Fetch failures leave as typed ``SourceError`` subclasses so the orchestrator
can tell "source unreachable" apart from "source returned zero events".
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from eventnexus.ingestion.errors import (
    HttpStatusError,
    ParseError,
    RateLimitExceededError,
    SourceError,
    TransportError,
)
from eventnexus.ingestion.extraction.candidate import RawCandidate
from eventnexus.ingestion.normalization.normalizer import normalize
from eventnexus.ingestion.runtime.http import HttpFetcher
from eventnexus.ingestion.runtime.rate_limiter import RateLimiter
from eventnexus.ingestion.runtime.results import FailureKind, FetchOutcome, RetryResult
from eventnexus.ingestion.runtime.retry import RetryController
from eventnexus.monitoring.logging import with_context
from eventnexus.schemas.event import CanonicalEvent, EventFilters

if TYPE_CHECKING:
    from eventnexus.ingestion.plugins.base import SourcePlugin

logger = logging.getLogger(__name__)


@dataclass
class PluginHealthStatus:
    source_key: str
    healthy: bool
    checked_at: datetime
    response_time_s: float | None = None
    events_found: int = 0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_key": self.source_key,
            "healthy": self.healthy,
            "checked_at": self.checked_at.isoformat(),
            "response_time_s": self.response_time_s,
            "events_found": self.events_found,
            "error": self.error,
        }


class PluginRuntime:
    """Rate-limited, retried fetch followed by parsing and normalization."""

    def __init__(
        self,
        plugin: SourcePlugin,
        *,
        limiter: RateLimiter | None = None,
        fetcher: HttpFetcher | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.plugin = plugin
        self.limiter = limiter or RateLimiter()
        self.fetcher = fetcher or HttpFetcher(default_timeout_s=plugin.config.timeout_s)
        self._sleep = sleep
        self.limiter.configure(plugin.source_key, plugin.rate_limit_policy())

    async def fetch_body(self, url: str) -> RetryResult:
        plugin = self.plugin
        key = plugin.source_key
        cfg = plugin.config
        log = with_context(logger, source_key=key)

        async def attempt(number: int) -> FetchOutcome:
            log.bind(stage="rate_limit_wait", attempt=number).debug("Waiting for budget")
            allowed = await self.limiter.allow(key, max_wait_s=cfg.max_rate_limit_wait_s)
            if not allowed:
                raise RateLimitExceededError(
                    f"Rate limit for {key} exhausted beyond {cfg.max_rate_limit_wait_s}s",
                    source_key=key,
                    attempts=number - 1,
                )
            log.bind(stage="fetching", attempt=number).debug("GET %s", url)
            return await self.fetcher.fetch(url, timeout_s=cfg.timeout_s)

        controller = RetryController(
            plugin.retry_policy(),
            sleep=self._sleep,
            log=log.bind(stage="retrying"),
        )
        return await controller.run(attempt)

    def _failure_to_error(self, url: str, result: RetryResult) -> SourceError:
        failure = result.outcome
        key = self.plugin.source_key
        if failure.kind == FailureKind.HTTP_STATUS:
            text = f"{failure.status_code} {failure.status_text}".strip()
            return HttpStatusError(
                f"Failed to fetch {url}: {text} after {result.attempt_count} attempt(s)",
                status_code=failure.status_code,
                status_text=failure.status_text,
                source_key=key,
                attempts=result.attempt_count,
            )
        return TransportError(
            f"Failed to fetch {url}: {failure.message} after {result.attempt_count} attempt(s)",
            source_key=key,
            attempts=result.attempt_count,
        )

    def normalize_all(
        self,
        candidates: list[RawCandidate],
        filters: EventFilters,
        page_url: str,
    ) -> list[CanonicalEvent]:
        plugin = self.plugin
        log = with_context(logger, source_key=plugin.source_key, stage="normalizing")
        reference = datetime.now()

        events: list[CanonicalEvent] = []
        seen: set[str] = set()
        dropped = 0

        for raw in candidates:
            if not raw.has_title:
                dropped += 1
                continue
            try:
                event = normalize(
                    raw,
                    plugin.source_key,
                    default_tags=plugin.default_tags,
                    filters=filters,
                    page_url=page_url,
                    tz=plugin.timezone,
                    native_id=plugin.native_id,
                    reference=reference,
                )
            except ValueError as e:
                dropped += 1
                log.warning("Skipping candidate %r: %s", raw.title, e)
                continue

            if event.external_id in seen:
                continue
            if filters.virtual_only and not event.location.is_virtual:
                continue
            if not filters.in_window(event.start_time):
                continue
            seen.add(event.external_id)
            events.append(event)

        if dropped:
            log.info("Dropped %d of %d candidates", dropped, len(candidates))
        if filters.limit is not None:
            events = events[: filters.limit]
        return events

    async def perform_fetch(self, filters: EventFilters) -> list[CanonicalEvent]:
        plugin = self.plugin
        key = plugin.source_key
        log = with_context(logger, source_key=key)

        plugin.validate_config()
        url = plugin.build_url(filters)
        request_url = plugin.request_url(url)

        result = await self.fetch_body(request_url)
        if not result.ok:
            error = self._failure_to_error(request_url, result)
            log.bind(stage="failed").error("%s", error)
            raise error

        body = result.outcome.text
        try:
            candidates = plugin.parse_response(body, filters)
        except SourceError:
            raise
        except Exception as e:
            log.bind(stage="failed").error("Parsing %s failed: %s", url, e, exc_info=True)
            raise ParseError(f"Failed to parse {url}: {e}", source_key=key) from e

        log.bind(stage="parsing").debug("Extracted %d candidates", len(candidates))
        # a proxied request keeps links relative to the listing page itself
        page_url = url if request_url != url else (result.outcome.final_url or url)
        events = self.normalize_all(candidates, filters, page_url=page_url)
        log.bind(stage="done").info("Fetched %d events from %s", len(events), url)
        return events

    async def health_check(self) -> PluginHealthStatus:
        """Probe the source with a minimal fetch."""
        key = self.plugin.source_key
        started = time.monotonic()
        checked_at = datetime.now(timezone.utc)
        try:
            events = await self.perform_fetch(EventFilters(limit=1))
        except SourceError as e:
            return PluginHealthStatus(
                source_key=key,
                healthy=False,
                checked_at=checked_at,
                response_time_s=time.monotonic() - started,
                error=str(e),
            )
        return PluginHealthStatus(
            source_key=key,
            healthy=True,
            checked_at=checked_at,
            response_time_s=time.monotonic() - started,
            events_found=len(events),
        )

    async def aclose(self) -> None:
        await self.fetcher.aclose()
