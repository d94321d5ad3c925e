"""
Best-effort hostname resolution.

Resolution never fails a scan: when every attempt comes back empty the
caller gets its input string back and the connect step is left to fail on
its own.
"""

import asyncio
import logging
import socket
from typing import Awaitable, Callable, List, Optional

import dns.asyncresolver
import dns.exception

from reconbox.core.utils import is_ip_literal

logger = logging.getLogger(__name__)

Lookup = Callable[[str], Awaitable[List[str]]]


class Resolver:
    """
    Resolves hostnames with bounded retries.

    One attempt asks DNS for A records, then AAAA records, and finally falls
    back to the system resolver so names from the hosts file still resolve.

    Attributes:
        timeout (float): Per-query DNS timeout in seconds
        lookup (Lookup): Coroutine performing a single resolution attempt
        attempts (int): Lookups performed over the resolver's lifetime
    """

    def __init__(
        self,
        timeout: float = 5.0,
        lookup: Optional[Lookup] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.timeout = timeout
        self.lookup = lookup or self._lookup
        self.sleep = sleep or asyncio.sleep
        self.attempts = 0

    async def _query_dns(self, host: str) -> List[str]:
        resolver = dns.asyncresolver.Resolver()
        resolver.timeout = self.timeout
        resolver.lifetime = self.timeout

        ips: List[str] = []
        for rdtype in ("A", "AAAA"):
            try:
                answers = await resolver.resolve(host, rdtype)
                ips.extend(str(rdata) for rdata in answers)
            except dns.exception.DNSException as e:
                logger.debug(f"No {rdtype} records for {host}: {str(e)}")
            if ips:
                break
        return ips

    async def _query_system(self, host: str) -> List[str]:
        loop = asyncio.get_running_loop()
        infos = await loop.getaddrinfo(host, None, type=socket.SOCK_STREAM)
        return [info[4][0] for info in infos]

    async def _lookup(self, host: str) -> List[str]:
        try:
            ips = await self._query_dns(host)
        except dns.exception.DNSException as e:
            # raised when no resolv.conf is available
            logger.debug(f"DNS resolver unavailable for {host}: {str(e)}")
            ips = []
        if ips:
            return ips
        try:
            return await self._query_system(host)
        except (OSError, UnicodeError) as e:
            logger.debug(f"System resolver failed for {host}: {str(e)}")
            return []

    async def resolve_best_effort(
        self, host: str, retries: int = 0, delay: float = 0.0
    ) -> str:
        """
        Resolve ``host`` to a single address, falling back to ``host`` itself.

        Makes up to ``retries + 1`` attempts and sleeps ``delay`` seconds
        between failed attempts, never after the last one. The first address
        of the first successful attempt wins.

        Args:
            host: Hostname or IP literal
            retries: Extra attempts after the first failure
            delay: Seconds to wait between attempts

        Returns:
            str: Resolved address, or the unchanged input
        """
        if is_ip_literal(host):
            return host

        total = max(0, retries) + 1
        for attempt in range(total):
            self.attempts += 1
            try:
                ips = await self.lookup(host)
            except Exception as e:
                logger.debug(f"Resolution attempt {attempt + 1} for {host} raised: {e}")
                ips = []
            if ips:
                logger.debug(f"Resolved {host} -> {ips[0]} (attempt {attempt + 1}/{total})")
                return ips[0]
            logger.debug(f"Resolution attempt {attempt + 1}/{total} for {host} failed")
            if attempt + 1 < total and delay > 0:
                await self.sleep(delay)

        logger.warning(f"Could not resolve {host}, using it unresolved")
        return host


async def resolve_best_effort(host: str, retries: int = 0, delay: float = 0.0) -> str:
    """Module-level shortcut using a default Resolver."""
    return await Resolver().resolve_best_effort(host, retries, delay)
