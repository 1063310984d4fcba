"""Async token-bucket rate limiter for the remote embedding API."""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable

import structlog

logger = structlog.get_logger(__name__)

# Float slack when comparing refilled tokens against one whole token.
_EPSILON = 1e-9


class TokenBucket:
    """Continuous-refill token bucket.

    Starts full with ``per_minute`` tokens and refills at ``per_minute / 60``
    tokens per second up to that capacity. :meth:`acquire` waits for a token
    rather than failing; waiters are served one at a time in arrival order.

    Args:
        per_minute: Capacity and refill rate, in requests per minute.
        clock:      Monotonic clock in seconds (injectable for tests).
        sleep:      Coroutine used to wait (injectable for tests).
    """

    def __init__(
        self,
        per_minute: int,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if per_minute <= 0:
            raise ValueError("per_minute must be positive.")
        self._capacity = float(per_minute)
        self._rate = per_minute / 60.0
        self._clock = clock
        self._sleep = sleep
        self._tokens = self._capacity
        self._last_refill = clock()
        self._lock = asyncio.Lock()

    @property
    def capacity(self) -> float:
        return self._capacity

    @property
    def tokens(self) -> float:
        """Tokens currently available (after refilling)."""
        self._refill()
        return self._tokens

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._last_refill)
        self._tokens = min(self._capacity, self._tokens + elapsed * self._rate)
        self._last_refill = now

    async def _acquire(self) -> None:
        async with self._lock:
            self._refill()
            while self._tokens < 1 - _EPSILON:
                wait = (1 - self._tokens) / self._rate
                logger.debug("rate_limiter.waiting", wait_seconds=round(wait, 3))
                await self._sleep(wait)
                self._refill()
            self._tokens -= 1

    async def acquire(self, timeout: float | None = None) -> None:
        """Take one token, waiting for a refill if the bucket is empty.

        Args:
            timeout: Optional upper bound on the wait, in seconds.

        Raises:
            asyncio.TimeoutError: If *timeout* elapses first.
        """
        if timeout is None:
            await self._acquire()
            return
        await asyncio.wait_for(self._acquire(), timeout)
