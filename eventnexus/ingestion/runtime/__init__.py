"""Fetch runtime: rate limiting, retries and the HTTP adapter."""

from eventnexus.ingestion.runtime.http import HttpFetcher
from eventnexus.ingestion.runtime.rate_limiter import (
    RateLimiter,
    RateLimitPolicy,
    RateLimitState,
    RateLimitStatus,
)
from eventnexus.ingestion.runtime.results import (
    FailureKind,
    FetchAttempt,
    FetchFailure,
    FetchOutcome,
    FetchSuccess,
    RetryResult,
)
from eventnexus.ingestion.runtime.retry import RetryController, RetryPolicy

__all__ = [
    "FailureKind",
    "FetchAttempt",
    "FetchFailure",
    "FetchOutcome",
    "FetchSuccess",
    "HttpFetcher",
    "RateLimitPolicy",
    "RateLimitState",
    "RateLimitStatus",
    "RateLimiter",
    "RetryController",
    "RetryPolicy",
    "RetryResult",
]
