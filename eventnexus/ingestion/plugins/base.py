"""
Source plugin contract.

One concrete ``SourcePlugin`` subclass per external event source. Subclasses
supply the source specifics (``build_url``, ``parse_events`` and capability
overrides). The shared fetch/parse/normalize flow lives in ``PluginRuntime``,
which every plugin owns and delegates to.
"""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Sequence

from eventnexus.ingestion.errors import ConfigurationError
from eventnexus.ingestion.extraction.candidate import RawCandidate
from eventnexus.ingestion.extraction.markup import MarkupDocument
from eventnexus.ingestion.plugins.runtime import PluginHealthStatus, PluginRuntime
from eventnexus.ingestion.runtime.http import HttpFetcher
from eventnexus.ingestion.runtime.rate_limiter import (
    RateLimiter,
    RateLimitPolicy,
    RateLimitStatus,
)
from eventnexus.ingestion.runtime.retry import BACKOFF_MODES, DEFINITIVE_STATUS, RetryPolicy
from eventnexus.schemas.event import CanonicalEvent, EventFilters

logger = logging.getLogger(__name__)

# Scraped sources publish no quota
SCRAPER_RATE_LIMIT = RateLimitPolicy(limit=60, window_s=3600.0)


@dataclass
class PluginConfig:
    """
    Per-plugin configuration, injected at construction.

    Loaded by surrounding code (see ``eventnexus.configs.loader``); plugins
    never read the environment themselves.
    """

    enabled: bool = True
    timeout_s: float = 30.0
    max_retries: int = 3
    retry_delay_s: float = 2.0
    backoff_mode: str = "linear"  # linear | exp | fixed | none
    max_retry_delay_s: float = 60.0
    definitive_status: tuple[int, ...] | None = None
    api_key: str | None = None
    base_url: str | None = None
    rate_limit: RateLimitPolicy | None = None
    max_rate_limit_wait_s: float | None = None
    timezone: str | None = None
    settings: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.timeout_s <= 0:
            raise ValueError("timeout_s must be positive")
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.retry_delay_s < 0:
            raise ValueError("retry_delay_s must be >= 0")
        if self.backoff_mode not in BACKOFF_MODES:
            raise ValueError(f"Unknown backoff_mode {self.backoff_mode!r}")

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_retries=self.max_retries,
            backoff_mode=self.backoff_mode,
            base_delay_s=self.retry_delay_s,
            max_delay_s=self.max_retry_delay_s,
            definitive_status=(
                frozenset(self.definitive_status)
                if self.definitive_status is not None
                else DEFINITIVE_STATUS
            ),
        )


ExtractionStrategy = Callable[[MarkupDocument, EventFilters], "list[RawCandidate]"]


def extract_with_fallback(
    markup: MarkupDocument,
    filters: EventFilters,
    strategies: Sequence[ExtractionStrategy],
    *,
    source_key: str = "",
) -> list[RawCandidate]:
    """
    Run extraction strategies in order until one yields candidates.

    The first strategy holds the primary selectors; the rest are looser
    heuristics tried only when everything before them found nothing.
    """
    for i, strategy in enumerate(strategies):
        found = strategy(markup, filters)
        if found:
            if i > 0:
                logger.info(
                    "%s: primary selectors found nothing; %s matched %d items",
                    source_key,
                    getattr(strategy, "__name__", "fallback"),
                    len(found),
                )
            return found
    logger.warning("%s: no candidates found by %d strategies", source_key, len(strategies))
    return []


_JSON_LD = "script[type='application/ld+json']"
_EVENT_TYPES = {"Event", "BusinessEvent", "EducationEvent", "MusicEvent", "SocialEvent"}


def _iter_json_ld(payload: Any):
    if isinstance(payload, list):
        for item in payload:
            yield from _iter_json_ld(item)
    elif isinstance(payload, dict):
        if "@graph" in payload:
            yield from _iter_json_ld(payload["@graph"])
        elif payload.get("@type") == "ItemList":
            for element in payload.get("itemListElement") or []:
                if isinstance(element, dict):
                    element = element.get("item", element)
                yield from _iter_json_ld(element)
        else:
            yield payload


def _ld_text(value: Any) -> str | None:
    if isinstance(value, list):
        value = value[0] if value else None
    if isinstance(value, dict):
        value = value.get("url") or value.get("name")
    return str(value).strip() if value else None


def extract_json_ld(markup: MarkupDocument, filters: EventFilters) -> list[RawCandidate]:
    """
    Read schema.org ``Event`` objects embedded as JSON-LD.

    Shared fallback strategy: listing sites often keep structured data
    stable while their visual markup changes.
    """
    candidates: list[RawCandidate] = []
    for script in markup.query(_JSON_LD):
        try:
            payload = json.loads(script.raw_text)
        except ValueError:
            continue
        for item in _iter_json_ld(payload):
            types = item.get("@type")
            types = set(types) if isinstance(types, list) else {types}
            if not types & _EVENT_TYPES:
                continue
            location = item.get("location")
            if isinstance(location, list):
                location = location[0] if location else None
            if isinstance(location, dict):
                location_text = (
                    "Online" if location.get("@type") == "VirtualLocation" else location.get("name")
                )
            else:
                location_text = _ld_text(location)
            candidates.append(
                RawCandidate(
                    title=_ld_text(item.get("name")),
                    url=_ld_text(item.get("url")),
                    start_text=_ld_text(item.get("startDate")),
                    end_text=_ld_text(item.get("endDate")),
                    location_text=location_text,
                    image_url=_ld_text(item.get("image")),
                    description=_ld_text(item.get("description")),
                )
            )
    return candidates


class SourcePlugin(ABC):
    """
    Abstract base class for event source plugins.

    Subclasses must set ``name``/``source_key`` and implement:
        - build_url(): map a filter set to the request URL
        - parse_events(): extract raw candidates from fetched markup
    """

    name: str = ""
    source_key: str = ""
    version: str = "1.0.0"
    default_base_url: str = ""
    default_tags: tuple[str, ...] = ()
    default_timezone: str | None = None

    def __init__(
        self,
        config: PluginConfig | None = None,
        *,
        limiter: RateLimiter | None = None,
        fetcher: HttpFetcher | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if not self.source_key:
            raise ValueError(f"{type(self).__name__} must define source_key")
        self.config = config or PluginConfig()
        self.logger = logging.getLogger(f"eventnexus.plugins.{self.source_key}")
        self.runtime = PluginRuntime(self, limiter=limiter, fetcher=fetcher, sleep=sleep)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(source_key={self.source_key!r}, version={self.version!r})"

    # -----------------------------------------------------------------
    # Capabilities
    # -----------------------------------------------------------------

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    @property
    def base_url(self) -> str:
        return (self.config.base_url or self.default_base_url).rstrip("/")

    @property
    def timezone(self) -> str | None:
        return self.config.timezone or self.default_timezone

    def requires_api_key(self) -> bool:
        return False

    def rate_limit_policy(self) -> RateLimitPolicy:
        return self.config.rate_limit or SCRAPER_RATE_LIMIT

    def retry_policy(self) -> RetryPolicy:
        return self.config.retry_policy()

    def native_id(self, url: str) -> str | None:
        """Source-native event id read from a canonical URL, if the source has one."""
        return None

    def validate_config(self) -> None:
        """
        Raises:
            ConfigurationError: If a required credential is missing
        """
        if self.requires_api_key() and not self.config.api_key:
            raise ConfigurationError(
                f"{self.name or self.source_key} requires an API key",
                source_key=self.source_key,
            )

    # -----------------------------------------------------------------
    # Source specifics
    # -----------------------------------------------------------------

    @abstractmethod
    def build_url(self, filters: EventFilters) -> str:
        """
        Map a filter set to the request URL.

        Unsupported filter values fall back to the default listing URL.
        """

    @abstractmethod
    def parse_events(self, markup: MarkupDocument, filters: EventFilters) -> list[RawCandidate]:
        """
        Extract raw candidates from fetched markup.

        Items without a title are skipped; missing optional fields stay None.
        Must try an alternative strategy before returning an empty list.
        """

    def request_url(self, url: str) -> str:
        """URL actually requested for a listing page. Override to route through a proxy."""
        return url

    def parse_response(self, body: str, filters: EventFilters) -> list[RawCandidate]:
        """Turn a fetched response body into candidates. Override for non-HTML payloads."""
        return self.parse_events(MarkupDocument(body), filters)

    # -----------------------------------------------------------------
    # Delegated flow
    # -----------------------------------------------------------------

    async def perform_fetch(self, filters: EventFilters | None = None) -> list[CanonicalEvent]:
        return await self.runtime.perform_fetch(filters or EventFilters())

    async def health_check(self) -> PluginHealthStatus:
        return await self.runtime.health_check()

    def rate_limit_status(self) -> RateLimitStatus:
        return self.runtime.limiter.status(self.source_key)

    async def aclose(self) -> None:
        await self.runtime.aclose()
