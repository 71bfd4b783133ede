"""Global request throttle shared by every worker.

One RateLimiter instance gates all outbound requests of a run, so the
aggregate request rate is bounded regardless of how many workers are live.
Grants are spaced at least `interval_seconds` apart; waiters are released in
the order they queued on the internal lock.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable

from loguru import logger


class RateLimiter:
    """Fixed-interval gate with an explicit acquire/close lifecycle."""

    def __init__(
        self,
        interval_seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.interval_seconds = interval_seconds
        self._clock = clock
        self._lock = asyncio.Lock()
        self._next_slot: float | None = None
        self._closed = False
        self.grants = 0

    @property
    def closed(self) -> bool:
        return self._closed

    async def acquire(self) -> None:
        """Block until the next slot opens, then claim it.

        Cancellation while waiting releases the lock without claiming a slot.
        """
        if self._closed:
            raise RuntimeError("rate limiter is closed")

        async with self._lock:
            if self._closed:
                raise RuntimeError("rate limiter is closed")

            now = self._clock()
            if self._next_slot is not None and self._next_slot > now:
                wait_seconds = self._next_slot - now
                logger.trace(f"Rate limit: waiting {wait_seconds:.3f}s")
                await asyncio.sleep(wait_seconds)
                now = self._clock()

            self._next_slot = max(now, self._next_slot or now) + self.interval_seconds
            self.grants += 1

    def close(self) -> None:
        """Release the limiter. Must be called exactly once, after all workers stop."""
        if self._closed:
            raise RuntimeError("rate limiter already closed")
        self._closed = True
        logger.debug(f"Rate limiter closed after {self.grants} grants")

    async def __aenter__(self) -> RateLimiter:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if not self._closed:
            self.close()
