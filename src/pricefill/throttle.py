"""Rate limiter guarding outbound provider calls.

One RateLimiter instance is created by the wiring code and injected into
everything that calls out. It combines mutual exclusion (an asyncio.Lock)
with a minimum spacing between granted acquisitions, so concurrent price
queries cannot race on the last-call timestamp and trip provider-side
throttling.

acquire() is deliberately single-shot. Retrying with backoff is the
caller's policy and lives in acquire_with_backoff().
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Sequence
from enum import Enum

from pricefill.exceptions import RateLimitBusyError
from pricefill.logging import get_logger

logger = get_logger(__name__)


class LockStatus(str, Enum):
    """Outcome of a single acquisition attempt."""

    GRANTED = "granted"
    TIMED_OUT = "timed_out"


class RateLimiter:
    """Process-wide mutex plus minimum-interval enforcement.

    Args:
        min_interval_seconds: Minimum spacing between granted acquisitions.
        clock: Wall-clock source in epoch seconds (injectable for tests).
        sleep: Coroutine used to wait out the spacing delta.
    """

    def __init__(
        self,
        min_interval_seconds: float = 1.0,
        *,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._min_interval = min_interval_seconds
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._last_call: float = 0.0

    @property
    def locked(self) -> bool:
        return self._lock.locked()

    @property
    def last_call(self) -> float:
        """Epoch seconds of the most recent granted acquisition."""
        return self._last_call

    async def acquire(self, max_wait_seconds: float) -> LockStatus:
        """Attempt to take the lock once, waiting at most max_wait_seconds.

        On success the minimum spacing since the previous grant is enforced
        before returning, and the last-call timestamp is stamped.
        """
        try:
            await asyncio.wait_for(self._lock.acquire(), timeout=max_wait_seconds)
        except asyncio.TimeoutError:
            logger.debug("rate_limit_lock_timeout", max_wait=max_wait_seconds)
            return LockStatus.TIMED_OUT

        try:
            await self._enforce_spacing()
        except BaseException:
            self._lock.release()
            raise
        return LockStatus.GRANTED

    def release(self) -> None:
        """Release the lock. No-op if it is not held."""
        if self._lock.locked():
            self._lock.release()

    async def _enforce_spacing(self) -> None:
        elapsed = self._clock() - self._last_call
        remaining = self._min_interval - elapsed
        if remaining > 0:
            logger.debug("rate_limit_spacing_wait", delay=round(remaining, 3))
            await self._sleep(remaining)
        self._last_call = self._clock()


async def acquire_with_backoff(
    limiter: RateLimiter,
    max_wait_seconds: float,
    backoff_seconds: Sequence[float],
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> None:
    """Acquire the limiter, retrying with exponential backoff.

    Makes one attempt per entry in backoff_seconds, sleeping that long after
    each failed attempt except the last. The caller owns the lock on return
    and must call limiter.release().

    Raises:
        RateLimitBusyError: every attempt timed out.
    """
    attempts = max(len(backoff_seconds), 1)
    for attempt in range(attempts):
        status = await limiter.acquire(max_wait_seconds)
        if status is LockStatus.GRANTED:
            return
        if attempt == attempts - 1:
            break
        delay = backoff_seconds[attempt]
        logger.warning(
            "rate_limit_busy_retry",
            attempt=attempt + 1,
            max_attempts=attempts,
            delay=delay,
        )
        await sleep(delay)

    logger.error("rate_limit_busy_exhausted", attempts=attempts)
    raise RateLimitBusyError(f"Rate limiter still busy after {attempts} attempts")
