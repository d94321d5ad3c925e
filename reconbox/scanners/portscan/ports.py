"""
Port specification parsing and the curated top-ports list.
"""

from typing import List

from reconbox.core.errors import (
    InvalidToken,
    RangeOrderInverted,
    ZeroPort,
)

MAX_PORT = 65535

# Curated list of commonly probed TCP ports. The order matters: top_ports(n)
# takes a prefix of this list, so reordering changes what small --top values
# scan. Classic services come first, then remote administration, databases,
# message brokers and web/devops consoles.
CURATED_PORTS = (
    21, 22, 23, 25, 53, 80, 110, 123, 135, 139, 143, 389, 443, 445, 465, 500,
    587, 636, 993, 995, 1080, 1194, 1352, 1433, 1521, 1723, 2049, 2375, 2376,
    3000, 3128, 3268, 3306, 3389, 4444, 4500, 5000, 5060, 5432, 5601, 5671,
    5672, 5900, 5985, 5986, 6379, 7001, 7002, 8000, 8080, 8081, 8200, 8443,
    8500, 8530, 8888, 9000, 9092, 9200, 9300, 9418, 9999, 10000, 11211, 15672,
    27017,
)

DEFAULT_TOP = 64


def _parse_port(raw: str, token: str) -> int:
    raw = raw.strip()
    if not (raw.isascii() and raw.isdigit()):
        raise InvalidToken(token)
    value = int(raw)
    if value == 0:
        raise ZeroPort(token)
    if value > MAX_PORT:
        raise InvalidToken(token)
    return value


def parse_ports(spec: str) -> List[int]:
    """
    Parse a port specification into a sorted, de-duplicated list.

    Supports:
    - Single ports: "80"
    - Ranges: "1-1024"
    - Comma-separated: "22,80,443"
    - Mixed: "1-1024,8080,9000-9005"

    Args:
        spec: The port specification

    Returns:
        List[int]: Ports in ascending order without duplicates

    Raises:
        InvalidToken: A token is not a number or is above 65535
        ZeroPort: A token is or contains port 0
        RangeOrderInverted: A range has start > end
    """
    if spec is None or not spec.strip():
        raise InvalidToken(spec or "")

    ports = set()
    for part in spec.split(","):
        part = part.strip()
        if not part:
            continue
        if "-" in part:
            start_s, end_s = part.split("-", 1)
            start = _parse_port(start_s, part)
            end = _parse_port(end_s, part)
            if start > end:
                raise RangeOrderInverted(part)
            ports.update(range(start, end + 1))
        else:
            ports.add(_parse_port(part, part))

    if not ports:
        raise InvalidToken(spec)

    return sorted(ports)


def top_ports(n: int) -> List[int]:
    """
    Return the first ``n`` ports of the curated list.

    ``n`` larger than the list is capped to its length; ``n <= 0`` gives an
    empty list.
    """
    return list(CURATED_PORTS[: max(0, min(n, len(CURATED_PORTS)))])


def default_top_ports() -> List[int]:
    return top_ports(DEFAULT_TOP)
