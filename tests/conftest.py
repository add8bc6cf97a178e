"""
Shared pytest fixtures for the EventNexus test suite.

Provides factories for raw candidates, canonical events, network-free HTTP
fetchers and stub plugins for registry/orchestrator tests.
"""

import asyncio
from datetime import datetime
from typing import Callable, Optional
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from eventnexus.ingestion.extraction.candidate import RawCandidate
from eventnexus.ingestion.plugins.base import PluginConfig, SourcePlugin
from eventnexus.ingestion.runtime.http import HttpFetcher
from eventnexus.ingestion.runtime.rate_limiter import RateLimiter
from eventnexus.schemas.event import CanonicalEvent, EventFilters, EventLocation


@pytest.fixture
def make_candidate():
    """
    Return a function that creates RawCandidate objects with sensible defaults.

    Example:
        raw = make_candidate(title="My Event", start_text="March 5, 2026, 7:00 PM")
    """

    def _make_candidate(title: Optional[str] = "Test Event", **kwargs) -> RawCandidate:
        return RawCandidate(title=title, **kwargs)

    return _make_candidate


@pytest.fixture
def create_event():
    """
    Return a function that creates CanonicalEvent objects with sensible defaults.

    All defaults can be overridden via keyword arguments.

    Example:
        event = create_event(title="My Event", venue_name="Club XYZ")
    """

    def _create_event(
        title: str = "Test Event",
        venue_name: str = "Test Venue",
        start_time: Optional[datetime] = None,
        external_id: Optional[str] = None,
        source: str = "test",
        **kwargs,
    ) -> CanonicalEvent:
        if start_time is None:
            start_time = datetime(2026, 3, 5, 19, 0)

        defaults = {
            "external_id": external_id or f"{source}:{title.lower().replace(' ', '-')}",
            "source": source,
            "title": title,
            "url": "https://example.com/events",
            "start_time": start_time,
            "location": EventLocation(name=venue_name),
            "tags": (source,),
        }
        defaults.update(kwargs)
        return CanonicalEvent(**defaults)

    return _create_event


@pytest.fixture
def no_sleep():
    """AsyncMock standing in for asyncio.sleep so retries never wait."""
    return AsyncMock()


@pytest.fixture
def make_fetcher():
    """
    Return a function building an HttpFetcher over ``httpx.MockTransport``.

    ``responder`` is either a request handler or an HTML string served
    with status 200. Every request seen is appended to ``fetcher.requests``.
    """

    def _make_fetcher(responder, status_code: int = 200) -> HttpFetcher:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            if callable(responder):
                return responder(request)
            return httpx.Response(status_code, text=responder)

        fetcher = HttpFetcher(transport=httpx.MockTransport(handler))
        fetcher.requests = requests
        return fetcher

    return _make_fetcher


@pytest.fixture
def make_plugin(make_fetcher, no_sleep):
    """
    Return a function instantiating a plugin class wired to a mock transport.

    Example:
        plugin = make_plugin(MeetupPlugin, "<html>...</html>")
    """

    def _make_plugin(
        plugin_cls: type,
        responder="<html><body></body></html>",
        config: Optional[PluginConfig] = None,
        status_code: int = 200,
        limiter: Optional[RateLimiter] = None,
    ) -> SourcePlugin:
        return plugin_cls(
            config,
            limiter=limiter,
            fetcher=make_fetcher(responder, status_code=status_code),
            sleep=no_sleep,
        )

    return _make_plugin


@pytest.fixture
def fetch_events():
    """Run ``plugin.perform_fetch`` in a fresh event loop and close its client."""

    def _fetch_events(plugin: SourcePlugin, filters: Optional[EventFilters] = None):
        async def run():
            try:
                return await plugin.perform_fetch(filters or EventFilters())
            finally:
                await plugin.aclose()

        return asyncio.run(run())

    return _fetch_events


@pytest.fixture
def make_stub_plugin():
    """
    Return a function creating a MagicMock plugin for registry/orchestrator tests.

    ``events`` are returned by ``perform_fetch``; ``error`` is raised instead
    when given; ``delay`` suspends the fetch for that many seconds first.
    """

    def _make_stub_plugin(
        source_key: str,
        events: Optional[list] = None,
        error: Optional[BaseException] = None,
        delay: float = 0.0,
        enabled: bool = True,
    ) -> MagicMock:
        plugin = MagicMock(spec=SourcePlugin)
        plugin.source_key = source_key
        plugin.name = source_key.title()
        plugin.enabled = enabled

        async def perform_fetch(filters=None):
            if delay:
                await asyncio.sleep(delay)
            if error is not None:
                raise error
            return list(events or [])

        plugin.perform_fetch = AsyncMock(side_effect=perform_fetch)
        plugin.aclose = AsyncMock()
        plugin.health_check = AsyncMock()
        return plugin

    return _make_stub_plugin


def html_page(body: str) -> str:
    return f"<html><body>{body}</body></html>"


@pytest.fixture
def page() -> Callable[[str], str]:
    """Wrap a body fragment in a minimal HTML page."""
    return html_page
