"""
Exception types for reconbox.

Only configuration problems are raised to callers. Network failures during
a scan are never surfaced as exceptions; they collapse into "not open".
"""


class ReconboxError(Exception):
    """Base class for every error raised by reconbox."""


class ConfigurationError(ReconboxError, ValueError):
    """Invalid input detected before any network I/O takes place."""


class PortSpecError(ConfigurationError):
    """A port specification could not be parsed."""

    def __init__(self, token: str, reason: str):
        self.token = token
        self.reason = reason
        super().__init__(f"{reason}: {token!r}")


class InvalidToken(PortSpecError):
    def __init__(self, token: str):
        super().__init__(token, "invalid port token")


class ZeroPort(PortSpecError):
    def __init__(self, token: str):
        super().__init__(token, "port 0 is not allowed")


class RangeOrderInverted(PortSpecError):
    def __init__(self, token: str):
        super().__init__(token, "port range start is greater than end")


class InvalidCIDR(ConfigurationError):
    """A CIDR block could not be parsed or is too large to expand."""

    def __init__(self, cidr: str, reason: str = "invalid CIDR"):
        self.cidr = cidr
        super().__init__(f"{reason}: {cidr!r}")
