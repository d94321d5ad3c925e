"""
Token-bucket pacing shared by every connection attempt of a run.

The bucket is refilled lazily: instead of a background task adding one
permit per interval, waiters queue on a lock and the head of the queue
sleeps until the next slot. The following slot is computed from the clock
at the moment a permit is handed out, so a stalled event loop grants one
permit when it catches up rather than replaying every missed slot at once.
The bucket never holds more than one token.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Hands out at most ``tokens_per_sec`` permits per second.

    The counter starts empty: the first permit becomes available one
    interval after construction. ``tokens_per_sec <= 0`` disables pacing.

    Attributes:
        tokens_per_sec (int): Configured permit rate
        interval (float): Seconds between two permits
        granted (int): Permits handed out so far
    """

    MIN_INTERVAL = 0.001

    def __init__(
        self,
        tokens_per_sec: int,
        clock: Optional[Callable[[], float]] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.tokens_per_sec = tokens_per_sec
        self.unlimited = tokens_per_sec <= 0
        self.interval = (
            0.0 if self.unlimited else max(self.MIN_INTERVAL, 1.0 / tokens_per_sec)
        )
        self._clock = clock or time.monotonic
        self._sleep = sleep or asyncio.sleep
        self._next_slot = self._clock() + self.interval
        self._lock = asyncio.Lock()
        self.granted = 0

    @classmethod
    def create(cls, tokens_per_sec: Optional[int]) -> Optional["RateLimiter"]:
        """Return a limiter, or None when pacing is disabled."""
        if not tokens_per_sec or tokens_per_sec <= 0:
            return None
        return cls(tokens_per_sec)

    async def acquire(self) -> None:
        """Suspend the calling task until a permit is available, then consume it."""
        if self.unlimited:
            self.granted += 1
            return

        async with self._lock:
            while True:
                delay = self._next_slot - self._clock()
                if delay <= 0:
                    break
                await self._sleep(delay)
            # an idle or late bucket does not accumulate permits
            self._next_slot = max(self._next_slot, self._clock()) + self.interval
            self.granted += 1

    def __repr__(self):
        return f"RateLimiter(tokens_per_sec={self.tokens_per_sec})"
