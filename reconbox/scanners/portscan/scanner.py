"""
TCP connect scanner for a single host.

The host is resolved once, then every port gets its own ScanAttempt. Port
tasks are fed in through a bounded pending set so that a 65535-port scan
does not create every task up front; the per-host budget inside each
attempt is what actually caps in-flight connects.
"""

import asyncio
import logging
import random
import time
from typing import Iterable, List, Optional

from reconbox.core.budget import ConcurrencyBudget
from reconbox.core.models import ScanPolicy, ScanResult, now_rfc3339
from reconbox.core.ratelimiter import RateLimiter
from reconbox.scanners.portscan.attempt import Connector, ScanAttempt
from reconbox.scanners.portscan.resolver import Resolver

logger = logging.getLogger(__name__)


class HostScanner:
    """
    Scans one host's port set under a per-host concurrency budget.

    The rate limiter and global budget are shared handles owned by the
    caller; the per-host budget is created fresh for every scan.

    Attributes:
        policy (ScanPolicy): Timeouts, retries and budgets for the run
        rate_limiter (RateLimiter): Shared pacing, None when unlimited
        global_budget (ConcurrencyBudget): Shared cap across hosts, optional
        resolver (Resolver): Best-effort hostname resolver
    """

    def __init__(
        self,
        policy: ScanPolicy,
        rate_limiter: Optional[RateLimiter] = None,
        global_budget: Optional[ConcurrencyBudget] = None,
        connector: Optional[Connector] = None,
        resolver: Optional[Resolver] = None,
        rng: Optional[random.Random] = None,
    ):
        self.policy = policy
        self.rate_limiter = rate_limiter
        self.global_budget = global_budget
        self.connector = connector
        self.resolver = resolver or Resolver()
        self.rng = rng

    def _max_pending(self) -> int:
        return max(self.policy.concurrency * 4, 64)

    async def scan(self, target: str, ports: Iterable[int]) -> ScanResult:
        """
        Scan ``ports`` on ``target``.

        Args:
            target: Hostname or IP address
            ports: Ports to probe

        Returns:
            ScanResult: Open ports sorted ascending, plus timing metadata
        """
        ports = list(ports)
        start = time.perf_counter()
        started_at = now_rfc3339()

        address = await self.resolver.resolve_best_effort(
            target, self.policy.dns_retries, self.policy.dns_retry_delay
        )
        host_budget = ConcurrencyBudget(self.policy.concurrency, name=f"host:{target}")

        open_ports = set()
        attempts_made = 0
        port_iter = iter(ports)
        pending = {}

        def submit_next() -> bool:
            try:
                port = next(port_iter)
            except StopIteration:
                return False
            attempt = ScanAttempt(
                address,
                port,
                self.policy,
                host_budget,
                global_budget=self.global_budget,
                rate_limiter=self.rate_limiter,
                connector=self.connector,
                rng=self.rng,
            )
            pending[asyncio.ensure_future(attempt.run())] = attempt
            return True

        max_pending = self._max_pending()
        while len(pending) < max_pending and submit_next():
            pass

        try:
            while pending:
                done, _ = await asyncio.wait(
                    list(pending), return_when=asyncio.FIRST_COMPLETED
                )
                for task in done:
                    attempt = pending.pop(task)
                    attempts_made += attempt.attempts_made
                    if task.exception() is not None:
                        logger.error(
                            f"Unexpected error scanning {target}:{attempt.port}: "
                            f"{task.exception()!r}"
                        )
                        continue
                    if task.result():
                        open_ports.add(attempt.port)
                        logger.debug(
                            f"Discovered open port {attempt.port}/tcp on {address}"
                        )

                while len(pending) < max_pending and submit_next():
                    pass
        finally:
            # only non-empty when the scan itself was cancelled
            for task in pending:
                task.cancel()

        duration_ms = int((time.perf_counter() - start) * 1000)
        return ScanResult(
            target=target,
            open_ports=sorted(open_ports),
            scanned=len(ports),
            attempts=attempts_made,
            started_at=started_at,
            ended_at=now_rfc3339(),
            duration_ms=duration_ms,
            address=address,
        )


async def scan_connect_with_limits(
    target: str,
    ports: Iterable[int],
    timeout: float,
    per_host_concurrency: int,
    dns_retries: int = 0,
    dns_retry_delay: float = 0.0,
    rate_limiter: Optional[RateLimiter] = None,
    retries: int = 0,
    retry_delay: float = 0.0,
    global_budget: Optional[ConcurrencyBudget] = None,
    connector: Optional[Connector] = None,
    resolver: Optional[Resolver] = None,
) -> List[int]:
    """
    Scan a target and return its open ports in ascending order.

    Durations are in seconds. ``per_host_concurrency`` below 1 is treated
    as 1.
    """
    policy = ScanPolicy(
        timeout=timeout,
        retries=retries,
        retry_delay=retry_delay,
        dns_retries=dns_retries,
        dns_retry_delay=dns_retry_delay,
        concurrency=max(1, per_host_concurrency),
    )
    scanner = HostScanner(
        policy,
        rate_limiter=rate_limiter,
        global_budget=global_budget,
        connector=connector,
        resolver=resolver,
    )
    result = await scanner.scan(target, ports)
    return result.open_ports


async def scan_connect(
    target: str, ports: Iterable[int], timeout: float, concurrency: int
) -> List[int]:
    """Scan with only a per-host budget: no pacing, retries or DNS retries."""
    return await scan_connect_with_limits(target, ports, timeout, concurrency)
