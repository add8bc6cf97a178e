"""
Typed errors surfaced by source plugins and the orchestrator.

Retry decisions are made on ``FetchFailure`` values inside the runtime;
these exceptions only appear once a plugin gives up on a fetch.
"""

from __future__ import annotations


class SourceError(Exception):
    """Base error for a failed source plugin invocation."""

    def __init__(self, message: str, *, source_key: str | None = None, attempts: int = 0):
        super().__init__(message)
        self.source_key = source_key
        self.attempts = attempts

    @property
    def kind(self) -> str:
        """Short machine-readable failure class."""
        return "source_error"


class TransportError(SourceError):
    """No response reached the plugin (DNS, connect, timeout)."""

    @property
    def kind(self) -> str:
        return "transport"


class HttpStatusError(SourceError):
    """A response arrived outside the success range."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        status_text: str = "",
        source_key: str | None = None,
        attempts: int = 0,
    ):
        super().__init__(message, source_key=source_key, attempts=attempts)
        self.status_code = status_code
        self.status_text = status_text

    @property
    def kind(self) -> str:
        return "http_status"


class ParseError(SourceError):
    """Markup was fetched but could not be processed."""

    @property
    def kind(self) -> str:
        return "parse"


class ConfigurationError(SourceError):
    """Plugin is misconfigured; never retried."""

    @property
    def kind(self) -> str:
        return "configuration"


class RateLimitExceededError(SourceError):
    """Request budget cannot be recovered within the allowed wait."""

    @property
    def kind(self) -> str:
        return "rate_limit"


class IngestionCycleError(Exception):
    """Unrecoverable fault outside plugin execution."""
