"""
Multi-target port scanning under shared budgets.

Hosts are admitted through a host-concurrency budget. All admitted hosts
share one global connection budget and one rate limiter, so the total
number of in-flight connects stays bounded however long the target list
is. Results are handed to the sink as each host finishes: output order is
completion order, not input order.
"""

import asyncio
import dataclasses
import logging
import time
from typing import Iterable, List, Optional

from colorama import Fore, Style
from tqdm import tqdm

from reconbox.core.budget import ConcurrencyBudget
from reconbox.core.errors import ConfigurationError
from reconbox.core.models import ScanPolicy, ScanResult, now_rfc3339
from reconbox.core.ratelimiter import RateLimiter
from reconbox.output.sinks import ResultSink
from reconbox.scanners.portscan.attempt import Connector
from reconbox.scanners.portscan.resolver import Resolver
from reconbox.scanners.portscan.scanner import HostScanner

logger = logging.getLogger(__name__)


class MultiTargetOrchestrator:
    """
    Runs a HostScanner per target with host admission and a global budget.

    The sink, when given, must already be started; the orchestrator only
    puts records on it.

    Attributes:
        policy (ScanPolicy): Settings for the whole run
        sink (ResultSink): Destination for finished host records, optional
        rate_limiter (RateLimiter): Shared pacing, None when qps is 0
        global_budget (ConcurrencyBudget): Cap on in-flight connects across hosts
        host_admission (ConcurrencyBudget): Cap on hosts scanned at once
        results (List[ScanResult]): Finished hosts in completion order
    """

    def __init__(
        self,
        policy: ScanPolicy,
        sink: Optional[ResultSink] = None,
        connector: Optional[Connector] = None,
        resolver: Optional[Resolver] = None,
        progress: bool = False,
    ):
        self.policy = policy
        self.sink = sink
        self.connector = connector
        self.resolver = resolver or Resolver()
        self.progress = progress
        self.rate_limiter = RateLimiter.create(policy.qps)
        self.global_budget = ConcurrencyBudget(policy.global_limit, name="global")
        self.host_admission = ConcurrencyBudget(policy.host_concurrency, name="hosts")
        self.results: List[ScanResult] = []

    def _run_metadata(self) -> dict:
        return {
            "timeout_ms": int(self.policy.timeout * 1000),
            "concurrency": self.policy.concurrency,
        }

    async def _scan_host(self, target: str, ports: List[int], pbar) -> None:
        start = time.perf_counter()
        started_at = now_rfc3339()
        try:
            scanner = HostScanner(
                self.policy,
                rate_limiter=self.rate_limiter,
                global_budget=self.global_budget,
                connector=self.connector,
                resolver=self.resolver,
            )
            result = await scanner.scan(target, ports)
        except Exception as e:
            logger.error(f"Error scanning {target}: {str(e)}")
            result = ScanResult(
                target=target,
                open_ports=[],
                scanned=len(ports),
                started_at=started_at,
                ended_at=now_rfc3339(),
                duration_ms=int((time.perf_counter() - start) * 1000),
                error=f"{e.__class__.__name__}: {e}",
            )
        finally:
            self.host_admission.release()

        result = dataclasses.replace(result, extra=self._run_metadata())
        self.results.append(result)
        if self.sink is not None:
            await self.sink.put(result)
        pbar.update(1)

    async def run(self, targets: Iterable[str], ports: Iterable[int]) -> List[ScanResult]:
        """
        Scan every target on ``ports``.

        Args:
            targets: Hostnames or IP addresses
            ports: Port set shared by all targets

        Returns:
            List[ScanResult]: One result per target, in completion order
        """
        targets = list(targets)
        ports = list(ports)
        if not ports:
            raise ConfigurationError("no ports to scan")
        self.results = []

        logger.info(
            f"{Fore.CYAN}Scanning {len(targets)} target(s) x {len(ports)} port(s) "
            f"(hosts={self.policy.host_concurrency}, per-host={self.policy.concurrency}, "
            f"global={self.global_budget.limit}, qps={self.policy.qps or 'unlimited'})"
            f"{Style.RESET_ALL}"
        )

        tasks = []
        with tqdm(
            total=len(targets),
            desc="Hosts",
            unit="host",
            disable=not self.progress,
            bar_format="{l_bar}%s{bar}%s{r_bar}" % (Fore.GREEN, Style.RESET_ALL),
        ) as pbar:
            try:
                for target in targets:
                    await self.host_admission.acquire()
                    tasks.append(
                        asyncio.ensure_future(self._scan_host(target, ports, pbar))
                    )
                await asyncio.gather(*tasks)
            finally:
                for task in tasks:
                    if not task.done():
                        task.cancel()

        logger.debug(
            f"Run finished: peak global in-flight {self.global_budget.peak}/"
            f"{self.global_budget.limit}, peak hosts {self.host_admission.peak}/"
            f"{self.host_admission.limit}"
        )
        return list(self.results)


async def scan_targets(
    targets: Iterable[str],
    ports: Iterable[int],
    policy: ScanPolicy,
    sink: Optional[ResultSink] = None,
    connector: Optional[Connector] = None,
    progress: bool = False,
) -> List[ScanResult]:
    """Convenience wrapper running one MultiTargetOrchestrator."""
    orchestrator = MultiTargetOrchestrator(
        policy, sink=sink, connector=connector, progress=progress
    )
    return await orchestrator.run(targets, ports)
