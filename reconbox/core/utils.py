"""
General utility functions for reconbox.

Target list loading, target categorisation and output directory handling.
"""

import ipaddress
import logging
import os
import re
from typing import Dict, List

from colorama import Fore, Style

from reconbox.core.errors import ConfigurationError

logger = logging.getLogger(__name__)


def load_targets_file(path: str) -> List[str]:
    """
    Read newline-delimited targets, skipping blank lines and # comments.

    Raises:
        ConfigurationError: The file cannot be read
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            lines = f.readlines()
    except OSError as e:
        raise ConfigurationError(f"cannot read targets file {path}: {e}") from e

    targets = []
    for line in lines:
        target = line.strip()
        if not target or target.startswith("#"):
            continue
        targets.append(target)
    return targets


def ensure_directory_exists(path: str) -> None:
    os.makedirs(path, exist_ok=True)


def prepare_output_directory(base_dir: str, scan_type: str = None) -> str:
    """
    Prepare and create an output directory for scan results.

    Args:
        base_dir: Root directory for results
        scan_type: Optional sub-directory (e.g. 'portscan')

    Returns:
        str: Path to the created output directory
    """
    ensure_directory_exists(base_dir)

    if scan_type:
        output_dir = os.path.join(base_dir, scan_type)
        ensure_directory_exists(output_dir)
        return output_dir

    return base_dir


def categorize_targets(targets: List[str]) -> Dict[str, List[str]]:
    """
    Categorize each target using proper validation.

    Returns:
        Dict mapping category names to lists of targets
    """
    categories: Dict[str, List[str]] = {
        "CIDRs": [],
        "IPv4": [],
        "IPv6": [],
        "Domains": [],
    }

    domain_pattern = re.compile(
        r"^([a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z]{2,}$", re.IGNORECASE
    )

    for target in targets:
        if "/" in target and is_valid_cidr(target):
            categories["CIDRs"].append(target)
        elif ":" in target and is_valid_ipv6(target):
            categories["IPv6"].append(target)
        elif is_valid_ipv4(target):
            categories["IPv4"].append(target)
        elif domain_pattern.match(target):
            categories["Domains"].append(target)
        else:
            # single-label names such as "localhost" or "webapp"
            categories["Domains"].append(target)

    return categories


def is_valid_ipv4(ip: str) -> bool:
    """Check if string is a valid IPv4 address."""
    try:
        ipaddress.IPv4Address(ip)
        return True
    except ValueError:
        return False


def is_valid_ipv6(ip: str) -> bool:
    """Check if string is a valid IPv6 address."""
    try:
        ipaddress.IPv6Address(ip)
        return True
    except ValueError:
        return False


def is_valid_cidr(cidr: str) -> bool:
    """Check if string is a valid CIDR notation."""
    try:
        ipaddress.ip_network(cidr, strict=False)
        return True
    except ValueError:
        return False


def log_target_summary(categories: Dict[str, List[str]]) -> None:
    """Log a summary of categorized targets."""

    for category, targets in categories.items():
        if targets:
            # Only show first 5 targets if there are many
            display_targets = (
                ", ".join(targets)
                if len(targets) <= 5
                else ", ".join(targets[:5] + ["..."])
            )
            logger.info(
                f"{Fore.MAGENTA}{category}: {Fore.CYAN}{len(targets)} target(s): {display_targets}{Style.RESET_ALL}"
            )


def is_ip_literal(value: str) -> bool:
    """Check if string is an IPv4 or IPv6 address."""
    return is_valid_ipv4(value) or is_valid_ipv6(value)
