"""
eventnexus.ingestion.runtime.rate_limiter

Per-source fixed-window request budgets.

Exhausting a window suspends the caller until rollover instead of rejecting
the request. Each source has its own counter and lock, so one source running
out of budget never delays another.
"""

from __future__ import annotations

import asyncio
import logging
import time
import weakref
from dataclasses import dataclass
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitPolicy:
    limit: int = 60
    window_s: float = 3600.0

    def __post_init__(self) -> None:
        if self.limit < 1:
            raise ValueError("limit must be at least 1")
        if self.window_s <= 0:
            raise ValueError("window_s must be positive")


@dataclass
class RateLimitState:
    limit: int
    window_s: float
    consumed: int = 0
    window_started_at: float | None = None

    def remaining(self) -> int:
        return max(0, self.limit - self.consumed)


@dataclass(frozen=True)
class RateLimitStatus:
    """Snapshot of a source's budget."""

    source_key: str
    limit: int
    remaining: int
    reset_in_s: float


class RateLimiter:
    """
    Process-local fixed-window limiter keyed by source.

    ``clock`` and ``sleep`` are injectable so tests can drive window
    rollover without real waiting.
    """

    def __init__(
        self,
        *,
        default_policy: RateLimitPolicy | None = None,
        max_wait_s: float | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.default_policy = default_policy or RateLimitPolicy()
        self.max_wait_s = max_wait_s
        self._clock = clock
        self._sleep = sleep
        self._policies: dict[str, RateLimitPolicy] = {}
        self._states: dict[str, RateLimitState] = {}
        # asyncio locks are bound to the loop they first wait on
        self._locks: weakref.WeakKeyDictionary[
            asyncio.AbstractEventLoop, dict[str, asyncio.Lock]
        ] = weakref.WeakKeyDictionary()

    def configure(self, source_key: str, policy: RateLimitPolicy) -> None:
        """Set the policy for a source. Resets its counters if the policy changed."""
        if self._policies.get(source_key) == policy:
            return
        self._policies[source_key] = policy
        self._states.pop(source_key, None)

    def policy_for(self, source_key: str) -> RateLimitPolicy:
        return self._policies.get(source_key, self.default_policy)

    def _state_for(self, source_key: str) -> RateLimitState:
        state = self._states.get(source_key)
        if state is None:
            policy = self.policy_for(source_key)
            state = RateLimitState(limit=policy.limit, window_s=policy.window_s)
            self._states[source_key] = state
        return state

    def _lock_for(self, source_key: str) -> asyncio.Lock:
        loop = asyncio.get_running_loop()
        locks = self._locks.setdefault(loop, {})
        lock = locks.get(source_key)
        if lock is None:
            lock = asyncio.Lock()
            locks[source_key] = lock
        return lock

    def _roll_window(self, state: RateLimitState, now: float) -> None:
        if state.window_started_at is None or now - state.window_started_at >= state.window_s:
            state.window_started_at = now
            state.consumed = 0

    async def allow(self, source_key: str, *, max_wait_s: float | None = None) -> bool:
        """
        Consume one unit of budget for ``source_key``.

        Waits for the next window when the current one is exhausted. Returns
        False, without consuming, only when the wait would exceed
        ``max_wait_s`` (falling back to the limiter-wide bound).
        """
        bound = max_wait_s if max_wait_s is not None else self.max_wait_s
        async with self._lock_for(source_key):
            while True:
                state = self._state_for(source_key)
                now = self._clock()
                self._roll_window(state, now)

                if state.consumed < state.limit:
                    state.consumed += 1
                    return True

                wait_s = max(0.0, state.window_started_at + state.window_s - now)
                if bound is not None and wait_s > bound:
                    logger.warning(
                        "Rate limit for %s exhausted; rollover in %.1fs exceeds %.1fs",
                        source_key,
                        wait_s,
                        bound,
                    )
                    return False

                logger.info("Rate limit for %s exhausted; waiting %.1fs", source_key, wait_s)
                await self._sleep(wait_s)

    def status(self, source_key: str) -> RateLimitStatus:
        state = self._state_for(source_key)
        now = self._clock()
        if state.window_started_at is None or now - state.window_started_at >= state.window_s:
            return RateLimitStatus(source_key, state.limit, state.limit, 0.0)
        return RateLimitStatus(
            source_key=source_key,
            limit=state.limit,
            remaining=state.remaining(),
            reset_in_s=state.window_started_at + state.window_s - now,
        )

    def reset(self, source_key: str | None = None) -> None:
        if source_key is None:
            self._states.clear()
        else:
            self._states.pop(source_key, None)
