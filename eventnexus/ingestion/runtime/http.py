"""
eventnexus.ingestion.runtime.http

Async HTTP fetch adapter.

Every call returns a value instead of raising:
- ``FetchSuccess`` for a 2xx response
- ``FetchFailure(TRANSPORT)`` when no response arrived (DNS, connect, timeout)
- ``FetchFailure(HTTP_STATUS)`` for any other status, carrying its reason phrase
"""

from __future__ import annotations

import logging
import time
from http import HTTPStatus

import httpx

from eventnexus.ingestion.runtime.results import (
    FailureKind,
    FetchFailure,
    FetchOutcome,
    FetchSuccess,
)

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; EventNexusBot/1.0; +https://eventnexus.app/bot)"

DEFAULT_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
}


def _status_text(response: httpx.Response) -> str:
    if response.reason_phrase:
        return response.reason_phrase
    try:
        return HTTPStatus(response.status_code).phrase
    except ValueError:
        return ""


class HttpFetcher:
    """Shared ``httpx.AsyncClient`` wrapper used by every source plugin."""

    def __init__(
        self,
        *,
        user_agent: str | None = None,
        headers: dict[str, str] | None = None,
        default_timeout_s: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.user_agent = user_agent or DEFAULT_USER_AGENT
        self.default_timeout_s = default_timeout_s
        self._headers = {"User-Agent": self.user_agent, **DEFAULT_HEADERS, **(headers or {})}
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                headers=self._headers,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def fetch(
        self,
        url: str,
        *,
        timeout_s: float | None = None,
        headers: dict[str, str] | None = None,
    ) -> FetchOutcome:
        """Issue one GET with a bounded timeout."""
        client = self._get_client()
        timeout = httpx.Timeout(timeout_s or self.default_timeout_s)

        t0 = time.monotonic()
        try:
            response = await client.get(url, timeout=timeout, headers=headers)
        except httpx.TransportError as e:
            elapsed = time.monotonic() - t0
            logger.debug("Transport failure for %s: %r", url, e)
            return FetchFailure(
                kind=FailureKind.TRANSPORT,
                url=url,
                message=str(e) or type(e).__name__,
                elapsed_s=elapsed,
            )
        elapsed = time.monotonic() - t0

        if not response.is_success:
            status_text = _status_text(response)
            return FetchFailure(
                kind=FailureKind.HTTP_STATUS,
                url=url,
                message=f"Failed to fetch {url}: {response.status_code} {status_text}".rstrip(),
                status_code=response.status_code,
                status_text=status_text,
                elapsed_s=elapsed,
            )

        return FetchSuccess(
            url=url,
            final_url=str(response.url),
            status_code=response.status_code,
            text=response.text,
            elapsed_s=elapsed,
        )

    async def aclose(self) -> None:
        """Close the underlying client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "HttpFetcher":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()
