"""
Configuration settings for reconbox.

Values come from three places, highest precedence first:
- explicit command-line flags
- a YAML config file (``--config``, ``RECONBOX_CONFIG`` or ./reconbox.yaml)
- built-in defaults

Environment variables are read after the env file has been loaded with
python-dotenv:
- RECONBOX_CONFIG: default config file path
- RECONBOX_LOG_LEVEL: default log level
"""

import logging
import os
from dataclasses import dataclass, fields
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from reconbox.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "reconbox.yaml"


@dataclass
class ScanConfig:
    ports: Optional[str] = None
    top: Optional[int] = None
    timeout_ms: Optional[int] = None
    concurrency: Optional[int] = None
    host_concurrency: Optional[int] = None
    max_connections: Optional[int] = None
    qps: Optional[int] = None
    retries: Optional[int] = None
    retry_delay_ms: Optional[int] = None
    dns_retries: Optional[int] = None
    dns_retry_delay_ms: Optional[int] = None
    format: Optional[str] = None


@dataclass
class DiscoverConfig:
    ports: Optional[str] = None
    timeout_ms: Optional[int] = None
    concurrency: Optional[int] = None
    qps: Optional[int] = None
    format: Optional[str] = None


@dataclass
class Config:
    scan: ScanConfig
    discover: DiscoverConfig
    source: Optional[str] = None


def load_env(envfile: str = ".env") -> bool:
    """Load an env file if it exists. Returns True when something was loaded."""
    loaded = load_dotenv(envfile)
    logger.debug(f"[CONFIG] env file {envfile}: {'OK' if loaded else 'MISSING'}")
    return loaded


def _build_section(cls, raw: Any, section: str):
    if raw is None:
        return cls()
    if not isinstance(raw, dict):
        raise ConfigurationError(f"config section '{section}' must be a mapping")

    known = {f.name: f for f in fields(cls)}
    values: Dict[str, Any] = {}
    for key, value in raw.items():
        name = str(key).replace("-", "_")
        if name not in known:
            logger.warning(f"[CONFIG] ignoring unknown key '{section}.{key}'")
            continue
        if value is None:
            continue
        if name in ("ports", "format"):
            value = str(value)
        else:
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigurationError(
                    f"config key '{section}.{key}' must be an integer, got {value!r}"
                )
        values[name] = value
    return cls(**values)


def parse_config(text: str, source: Optional[str] = None) -> Config:
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"invalid YAML in {source or 'config'}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"{source or 'config'} must contain a mapping")

    for key in data:
        if key not in ("scan", "discover"):
            logger.warning(f"[CONFIG] ignoring unknown section '{key}'")

    return Config(
        scan=_build_section(ScanConfig, data.get("scan"), "scan"),
        discover=_build_section(DiscoverConfig, data.get("discover"), "discover"),
        source=source,
    )


def load_config(path: Optional[str] = None) -> Optional[Config]:
    """
    Load the YAML config file.

    An explicitly named file (argument or RECONBOX_CONFIG) must exist. The
    implicit ./reconbox.yaml is optional.

    Returns:
        Config or None when no file applies
    """
    explicit = path or os.getenv("RECONBOX_CONFIG")
    if explicit:
        if not os.path.exists(explicit):
            raise ConfigurationError(f"config file not found: {explicit}")
        candidate = explicit
    elif os.path.exists(DEFAULT_CONFIG_FILE):
        candidate = DEFAULT_CONFIG_FILE
    else:
        return None

    with open(candidate, "r", encoding="utf-8") as f:
        config = parse_config(f.read(), source=candidate)
    logger.info(f"[CONFIG] loaded {candidate}")
    return config


def pick(cli_value, config_value, default):
    """First value that is not None: CLI flag, then config file, then default."""
    if cli_value is not None:
        return cli_value
    if config_value is not None:
        return config_value
    return default
