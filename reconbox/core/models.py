"""
Data model shared by the scanning engine and its output sinks.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from reconbox.core.errors import ConfigurationError


def now_rfc3339() -> str:
    """Current UTC time as an RFC 3339 string."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class ScanPolicy:
    """
    Immutable settings for one scan run.

    Attributes:
        timeout (float): Per-attempt connect timeout in seconds
        retries (int): Extra attempts per port after the first failure
        retry_delay (float): Base backoff delay in seconds
        dns_retries (int): Extra resolution attempts per host
        dns_retry_delay (float): Sleep between resolution attempts in seconds
        qps (int): Connection attempts per second across the run, 0 = unlimited
        concurrency (int): In-flight attempts allowed per host
        host_concurrency (int): Hosts scanned at the same time
        max_connections (int): In-flight attempts allowed across all hosts,
            defaults to concurrency * host_concurrency
        ordering (str): Output ordering mode; hosts are emitted as they complete
    """

    timeout: float = 0.5
    retries: int = 0
    retry_delay: float = 0.05
    dns_retries: int = 0
    dns_retry_delay: float = 0.2
    qps: int = 0
    concurrency: int = 256
    host_concurrency: int = 1
    max_connections: Optional[int] = None
    ordering: str = "completion"

    def __post_init__(self):
        if self.timeout <= 0:
            raise ConfigurationError(f"timeout must be > 0, got {self.timeout}")
        if self.concurrency < 1:
            raise ConfigurationError(
                f"concurrency must be >= 1, got {self.concurrency}"
            )
        if self.host_concurrency < 1:
            raise ConfigurationError(
                f"host_concurrency must be >= 1, got {self.host_concurrency}"
            )
        if self.max_connections is not None and self.max_connections < 1:
            raise ConfigurationError(
                f"max_connections must be >= 1, got {self.max_connections}"
            )
        for name in ("retries", "dns_retries", "qps"):
            if getattr(self, name) < 0:
                raise ConfigurationError(f"{name} must be >= 0")
        for name in ("retry_delay", "dns_retry_delay"):
            if getattr(self, name) < 0:
                raise ConfigurationError(f"{name} must be >= 0")
        if self.ordering != "completion":
            raise ConfigurationError(f"unsupported ordering mode: {self.ordering}")

    @property
    def global_limit(self) -> int:
        if self.max_connections is not None:
            return self.max_connections
        return self.concurrency * self.host_concurrency

    @classmethod
    def from_millis(
        cls,
        timeout_ms: int = 500,
        retry_delay_ms: int = 50,
        dns_retry_delay_ms: int = 200,
        **kwargs,
    ) -> "ScanPolicy":
        """Build a policy from the millisecond values used on the command line."""
        return cls(
            timeout=timeout_ms / 1000.0,
            retry_delay=retry_delay_ms / 1000.0,
            dns_retry_delay=dns_retry_delay_ms / 1000.0,
            **kwargs,
        )


@dataclass(frozen=True)
class ScanResult:
    """
    Outcome of scanning one target.

    Attributes:
        target (str): Target as given by the caller
        open_ports (List[int]): Ports that accepted a connection, ascending
        scanned (int): Number of ports probed
        attempts (int): Connect attempts made, retries included
        started_at (str): RFC 3339 start time
        ended_at (str): RFC 3339 end time
        duration_ms (int): Wall-clock duration
        address (str): Address actually connected to
        error (str): Set only when the host scan failed unexpectedly
        extra (Dict): Run settings echoed into the output record
    """

    target: str
    open_ports: List[int]
    scanned: int
    attempts: int = 0
    started_at: str = ""
    ended_at: str = ""
    duration_ms: int = 0
    address: Optional[str] = None
    error: Optional[str] = None
    extra: Dict[str, object] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, object]:
        record = {
            "target": self.target,
            "address": self.address,
            "scanned": self.scanned,
            "open": list(self.open_ports),
            "attempts": self.attempts,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "duration_ms": self.duration_ms,
        }
        if self.error is not None:
            record["error"] = self.error
        record.update(self.extra)
        return record

