"""
eventnexus.ingestion.runtime.retry

Bounded retries with configurable delay escalation.

The controller never inspects exceptions: each attempt returns a
``FetchOutcome`` and the policy decides from its ``FailureKind`` and status
whether to try again or surface the failure.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable

from eventnexus.ingestion.runtime.results import (
    FailureKind,
    FetchAttempt,
    FetchFailure,
    FetchOutcome,
    RetryResult,
)

logger = logging.getLogger(__name__)

BACKOFF_MODES = ("linear", "exp", "fixed", "none")

# Client errors that will not change on a retry
DEFINITIVE_STATUS: frozenset[int] = frozenset({400, 401, 403, 404, 410})


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    backoff_mode: str = "linear"  # linear | exp | fixed | none
    base_delay_s: float = 2.0
    max_delay_s: float = 60.0
    jitter: float = 0.0
    retry_transport: bool = True
    definitive_status: frozenset[int] = DEFINITIVE_STATUS
    # When set, only these statuses are retried
    retry_on_status: tuple[int, ...] | None = None

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.backoff_mode not in BACKOFF_MODES:
            raise ValueError(f"Unknown backoff_mode {self.backoff_mode!r}")

    def compute_backoff_s(self, retry: int) -> float:
        """
        retry: 1..N, the number of the retry about to run
        """
        if self.backoff_mode == "none":
            return 0.0
        if self.backoff_mode == "fixed":
            delay = self.base_delay_s
        elif self.backoff_mode == "exp":
            delay = self.base_delay_s * (2 ** max(0, retry - 1))
        else:
            delay = self.base_delay_s * max(1, retry)

        delay = min(delay, self.max_delay_s)
        if self.jitter > 0:
            delay = delay * (1.0 + (random.random() * 2 - 1) * self.jitter)  # +- jitter
        return max(0.0, delay)

    def is_retryable(self, failure: FetchFailure) -> bool:
        if failure.kind == FailureKind.TRANSPORT:
            return self.retry_transport
        status = failure.status_code
        if status in self.definitive_status:
            return False
        if self.retry_on_status is not None:
            return status in self.retry_on_status
        return True


AttemptFn = Callable[[int], Awaitable[FetchOutcome]]


class RetryController:
    """Run an attempt function until it succeeds or the policy gives up."""

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        log: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        self.policy = policy or RetryPolicy()
        self._sleep = sleep
        self._log = log or logger

    async def run(self, attempt_fn: AttemptFn) -> RetryResult:
        attempts: list[FetchAttempt] = []
        outcome: FetchOutcome | None = None

        for number in range(1, self.policy.max_retries + 2):
            outcome = await attempt_fn(number)
            attempts.append(FetchAttempt.from_outcome(number, outcome))

            if outcome.ok:
                return RetryResult(outcome=outcome, attempts=attempts)

            if not self.policy.is_retryable(outcome):
                self._log.warning(
                    "Attempt %d failed definitively: %s", number, outcome.short_error()
                )
                break

            if number > self.policy.max_retries:
                self._log.warning(
                    "Attempt %d failed, retries exhausted: %s", number, outcome.short_error()
                )
                break

            delay = self.policy.compute_backoff_s(number)
            self._log.info(
                "Attempt %d failed (%s); retrying in %.1fs",
                number,
                outcome.short_error(),
                delay,
            )
            if delay > 0:
                await self._sleep(delay)

        return RetryResult(outcome=outcome, attempts=attempts)
