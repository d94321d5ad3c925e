"""
Host discovery via TCP connect sweep.

A host is live when any one of the probe ports accepts a connection within
the timeout. Ports are tried in order with a single attempt each and the
first success ends the check; there is no retry here, unlike the port
scanner.

CIDR expansion convention:
    IPv4 /0-/30: network and broadcast addresses are skipped
    IPv4 /31, /32: every address is used
    IPv6 /0-/126: the Subnet-Router anycast (network) address is skipped
    IPv6 /127, /128: every address is used
"""

import asyncio
import logging
import time
from typing import Iterable, List, Optional

import netaddr
from colorama import Fore, Style

from reconbox.core.errors import ConfigurationError, InvalidCIDR
from reconbox.core.ratelimiter import RateLimiter
from reconbox.core.utils import is_ip_literal
from reconbox.scanners.portscan.attempt import Connector, tcp_connect
from reconbox.scanners.portscan.resolver import Resolver

logger = logging.getLogger(__name__)

DEFAULT_DISCOVERY_PORTS = [80, 443, 22]

MAX_CIDR_HOSTS = 65536


def expand_cidr(cidr: str, max_hosts: int = MAX_CIDR_HOSTS) -> List[str]:
    """
    Expand a CIDR block into its usable host addresses.

    Args:
        cidr: Network in CIDR notation, e.g. 192.168.1.0/24
        max_hosts: Refuse to expand networks with more addresses than this

    Returns:
        List[str]: Host addresses in ascending order

    Raises:
        InvalidCIDR: The block is malformed or too large
    """
    try:
        net = netaddr.IPNetwork(cidr.strip())
    except (netaddr.AddrFormatError, ValueError, TypeError) as e:
        raise InvalidCIDR(cidr) from e

    if net.size > max_hosts:
        raise InvalidCIDR(cidr, f"network has {net.size} addresses, limit is {max_hosts}")

    first, last = net.first, net.last
    if net.version == 4 and net.prefixlen <= 30:
        first, last = first + 1, last - 1
    elif net.version == 6 and net.prefixlen <= 126:
        first += 1

    return [str(netaddr.IPAddress(value, net.version)) for value in range(first, last + 1)]


async def expand_targets(target: str, resolver: Optional[Resolver] = None) -> List[str]:
    """
    Turn a discovery target into candidate IP addresses.

    A target containing "/" is expanded as CIDR. Anything else is resolved
    best-effort to a single address; a name that stays unresolved is a
    configuration error, since discovery only probes IP literals.
    """
    target = target.strip()
    if not target:
        raise ConfigurationError("empty discovery target")
    if "/" in target:
        return expand_cidr(target)

    address = await (resolver or Resolver()).resolve_best_effort(target)
    if not is_ip_literal(address):
        raise ConfigurationError(f"failed to resolve target: {target}")
    return [address]


async def is_host_live(
    ip: str,
    ports: Iterable[int],
    timeout: float,
    connector: Optional[Connector] = None,
) -> bool:
    """
    Return True as soon as one port accepts a connection within ``timeout``.
    """
    connector = connector or tcp_connect
    for port in ports:
        try:
            await asyncio.wait_for(connector(ip, port), timeout)
            return True
        except (OSError, asyncio.TimeoutError):
            continue
    return False


async def discover_hosts(
    addresses: Iterable[str],
    ports: Iterable[int],
    timeout: float,
    concurrency: int,
    qps: Optional[int] = None,
    connector: Optional[Connector] = None,
) -> List[str]:
    """
    Sweep ``addresses`` and return the live ones in completion order.

    Args:
        addresses: Candidate IP addresses
        ports: Probe ports, tried in order
        timeout: Per-connect timeout in seconds
        concurrency: Liveness checks running at once (values below 1 mean 1)
        qps: Check launches per second, None or 0 for no pacing
        connector: Connect coroutine, defaults to a plain TCP connect

    Returns:
        List[str]: Live hosts
    """
    ports = list(ports)
    if not ports:
        raise ConfigurationError("no probe ports given for discovery")
    if timeout <= 0:
        raise ConfigurationError(f"timeout must be > 0, got {timeout}")

    semaphore = asyncio.Semaphore(max(1, concurrency))
    limiter = RateLimiter.create(qps)
    live: List[str] = []
    tasks = []

    async def check(ip: str) -> None:
        try:
            if await is_host_live(ip, ports, timeout, connector):
                logger.debug(f"{ip} is live")
                live.append(ip)
        except Exception as e:
            logger.error(f"Liveness check for {ip} failed: {str(e)}")
        finally:
            semaphore.release()

    started = time.perf_counter()
    try:
        for ip in addresses:
            if limiter is not None:
                await limiter.acquire()
            await semaphore.acquire()
            tasks.append(asyncio.ensure_future(check(ip)))
        await asyncio.gather(*tasks)
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()

    logger.info(
        f"{Fore.GREEN}[+] {len(live)} live host(s) out of {len(tasks)} "
        f"in {int((time.perf_counter() - started) * 1000)} ms{Style.RESET_ALL}"
    )
    return live
