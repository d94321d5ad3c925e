"""
Single-port connect attempts with retry and exponential backoff.

Every try goes through the same gate: per-host permit, then the global
permit, then a rate-limiter permit, then one connect bounded by the policy
timeout. Both permits are released as soon as the connect finishes, so a
port sitting in backoff does not hold budget. The timeout itself never
grows between retries; only the pause before the next try does.
"""

import asyncio
import logging
import random
from contextlib import AsyncExitStack
from enum import Enum
from typing import Awaitable, Callable, Optional

from reconbox.core.budget import ConcurrencyBudget
from reconbox.core.models import ScanPolicy
from reconbox.core.ratelimiter import RateLimiter

logger = logging.getLogger(__name__)

Connector = Callable[[str, int], Awaitable[object]]

MAX_BACKOFF_EXPONENT = 6


class AttemptState(Enum):
    PENDING = "pending"
    CONNECTING = "connecting"
    BACKOFF = "backoff"
    SUCCESS = "success"
    FAILED = "failed"
    CLOSED_OR_FILTERED = "closed_or_filtered"


def backoff_delay(attempt: int, base: float, rng: Optional[random.Random] = None) -> float:
    """
    Delay before retry number ``attempt`` (1-indexed).

    ``base * 2**min(attempt, 6)`` plus jitter drawn from ``[0, that / 4)``.

    Args:
        attempt: Retry number, starting at 1
        base: Base delay in seconds
        rng: Random source, defaults to the module-level generator

    Returns:
        float: Seconds to sleep
    """
    exp = base * (2 ** min(attempt, MAX_BACKOFF_EXPONENT))
    jitter = (rng or random).random() * (exp / 4)
    return exp + jitter


async def tcp_connect(host: str, port: int) -> None:
    """Open a TCP connection and close it straight away."""
    _, writer = await asyncio.open_connection(host, port)
    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        pass


class ScanAttempt:
    """
    Retry state machine for one port on one host.

    Attributes:
        host (str): Address to connect to
        port (int): TCP port
        state (AttemptState): Current state
        attempt (int): Retry counter, 0..policy.retries
        attempts_made (int): Connects actually performed
        next_delay (float): Backoff chosen before the latest retry
    """

    def __init__(
        self,
        host: str,
        port: int,
        policy: ScanPolicy,
        host_budget: ConcurrencyBudget,
        global_budget: Optional[ConcurrencyBudget] = None,
        rate_limiter: Optional[RateLimiter] = None,
        connector: Optional[Connector] = None,
        rng: Optional[random.Random] = None,
    ):
        self.host = host
        self.port = port
        self.policy = policy
        self.host_budget = host_budget
        self.global_budget = global_budget
        self.rate_limiter = rate_limiter
        self.connector = connector or tcp_connect
        self.rng = rng
        self.state = AttemptState.PENDING
        self.attempt = 0
        self.attempts_made = 0
        self.next_delay = 0.0

    async def _connect_once(self) -> bool:
        async with AsyncExitStack() as stack:
            await stack.enter_async_context(self.host_budget.permit())
            if self.global_budget is not None:
                await stack.enter_async_context(self.global_budget.permit())
            if self.rate_limiter is not None:
                await self.rate_limiter.acquire()

            self.attempts_made += 1
            try:
                await asyncio.wait_for(
                    self.connector(self.host, self.port), self.policy.timeout
                )
                return True
            except (OSError, asyncio.TimeoutError):
                return False

    async def run(self) -> bool:
        """
        Drive the attempt to a terminal state.

        Returns:
            bool: True if the port accepted a connection on any try
        """
        self.state = AttemptState.CONNECTING
        while True:
            if await self._connect_once():
                self.state = AttemptState.SUCCESS
                return True

            self.state = AttemptState.FAILED
            if self.attempt >= self.policy.retries:
                self.state = AttemptState.CLOSED_OR_FILTERED
                return False

            self.attempt += 1
            self.state = AttemptState.BACKOFF
            self.next_delay = backoff_delay(
                self.attempt, self.policy.retry_delay, self.rng
            )
            logger.debug(
                f"{self.host}:{self.port} retry {self.attempt}/{self.policy.retries} "
                f"in {self.next_delay:.3f}s"
            )
            await asyncio.sleep(self.next_delay)
            self.state = AttemptState.CONNECTING
