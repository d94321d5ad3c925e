"""
Counting permit pools that bound in-flight connection attempts.
"""

import asyncio
import logging
from contextlib import asynccontextmanager

from reconbox.core.errors import ConfigurationError

logger = logging.getLogger(__name__)


class ConcurrencyBudget:
    """
    Semaphore with in-flight bookkeeping.

    A run creates one global budget shared by all hosts, and every
    HostScanner owns one per-host budget. ``peak`` records the highest
    number of permits held at the same time.

    Attributes:
        name (str): Label used in log messages
        limit (int): Maximum permits held at once
        in_flight (int): Permits currently held
        peak (int): High-water mark of ``in_flight``
    """

    def __init__(self, limit: int, name: str = "budget"):
        if limit < 1:
            raise ConfigurationError(f"{name} limit must be >= 1, got {limit}")
        self.name = name
        self.limit = limit
        self.in_flight = 0
        self.peak = 0
        self._semaphore = asyncio.Semaphore(limit)

    async def acquire(self) -> None:
        await self._semaphore.acquire()
        self.in_flight += 1
        if self.in_flight > self.peak:
            self.peak = self.in_flight

    def release(self) -> None:
        self.in_flight -= 1
        self._semaphore.release()

    @asynccontextmanager
    async def permit(self):
        """Hold one permit for the duration of the block; always released."""
        await self.acquire()
        try:
            yield self
        finally:
            self.release()

    async def __aenter__(self):
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.release()
        return False

    def __repr__(self):
        return (
            f"ConcurrencyBudget(name={self.name!r}, limit={self.limit}, "
            f"in_flight={self.in_flight}, peak={self.peak})"
        )
