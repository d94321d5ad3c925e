"""
Host discovery for reconbox.

Expands CIDR blocks and sweeps them with TCP connects to find live hosts.
"""

from reconbox.scanners.discovery.sweep import (
    DEFAULT_DISCOVERY_PORTS,
    discover_hosts,
    expand_cidr,
    expand_targets,
    is_host_live,
)

__all__ = [
    "DEFAULT_DISCOVERY_PORTS",
    "discover_hosts",
    "expand_cidr",
    "expand_targets",
    "is_host_live",
]
