"""
Port scanning functionality for reconbox.

Provides the TCP connect scanning engine: port parsing, best-effort
resolution, retried connect attempts and multi-target orchestration.
"""

from reconbox.scanners.portscan.attempt import ScanAttempt, backoff_delay
from reconbox.scanners.portscan.orchestrator import MultiTargetOrchestrator, scan_targets
from reconbox.scanners.portscan.ports import default_top_ports, parse_ports, top_ports
from reconbox.scanners.portscan.resolver import Resolver, resolve_best_effort
from reconbox.scanners.portscan.scanner import (
    HostScanner,
    scan_connect,
    scan_connect_with_limits,
)

__all__ = [
    "HostScanner",
    "MultiTargetOrchestrator",
    "Resolver",
    "ScanAttempt",
    "backoff_delay",
    "default_top_ports",
    "parse_ports",
    "resolve_best_effort",
    "scan_connect",
    "scan_connect_with_limits",
    "scan_targets",
    "top_ports",
]
