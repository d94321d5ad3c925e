"""
reconbox - Paced Network Reconnaissance

This is the main entry point for reconbox. It handles command line
arguments, configuration loading, target parsing, and runs the port
scanner or the host discovery sweep.

Commands:
    scan: TCP connect scan of one target or a targets file
    discover: liveness sweep over a CIDR block or a single host
    version: print the version

Usage:
    reconbox scan 10.0.0.5 --top 20
    reconbox scan --targets hosts.txt --host-concurrency 8 --format jsonl --out scan.jsonl
    reconbox discover 192.168.1.0/24 --ports 22,80,443

License:
    GNU General Public License v3.0
"""

#  *
#  * This file is part of reconbox.
#  *
#  * reconbox is free software: you can redistribute it and/or modify
#  * it under the terms of the GNU General Public License as published by
#  * the Free Software Foundation, either version 3 of the License, or
#  * (at your option) any later version.
#  *
#  * reconbox is distributed in the hope that it will be useful,
#  * but WITHOUT ANY WARRANTY; without even the implied warranty of
#  * MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
#  * GNU General Public License for more details.
#  *
#  * You should have received a copy of the GNU General Public License
#  * along with reconbox. If not, see <https://www.gnu.org/licenses/>.
#  *

import argparse
import asyncio
import logging
import time
from typing import List

from colorama import Fore, Style, init

from reconbox import __version__
from reconbox.common.config import (
    Config,
    DiscoverConfig,
    ScanConfig,
    load_config,
    load_env,
    pick,
)
from reconbox.common.logger import setup_logger
from reconbox.core.errors import ConfigurationError
from reconbox.core.models import ScanPolicy
from reconbox.core.utils import (
    categorize_targets,
    load_targets_file,
    log_target_summary,
    prepare_output_directory,
)
from reconbox.output import (
    FORMATS,
    ResultSink,
    log_summary,
    process_scan_results,
    save_results,
    write_discovery,
)
from reconbox.scanners.discovery import (
    DEFAULT_DISCOVERY_PORTS,
    discover_hosts,
    expand_cidr,
    expand_targets,
)
from reconbox.scanners.portscan import (
    MultiTargetOrchestrator,
    default_top_ports,
    parse_ports,
    top_ports,
)

logger = logging.getLogger("reconbox")

init(autoreset=True)

EXIT_OK = 0
EXIT_CONFIG_ERROR = 2


def setup_env_from_args(args=None):
    # ? First, create a minimal argument parser just to grab the --envfile parameter.
    env_parser = argparse.ArgumentParser(add_help=False)
    env_parser.add_argument(
        "-env",
        "--envfile",
        help="envfile location, default .env",
        default=".env",
        required=False,
    )

    # Only parse sys.argv if args is not provided (for testing)
    if args is None:
        env_args, _ = env_parser.parse_known_args()
    else:
        env_args, _ = env_parser.parse_known_args(args)

    # ? Load the env file early so RECONBOX_* variables are visible.
    load_env(env_args.envfile)

    return env_args


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reconbox",
        description="Paced TCP port scanning and host discovery",
    )
    parser.add_argument(
        "--config",
        help="YAML config file (default: $RECONBOX_CONFIG or ./reconbox.yaml if present)",
    )
    parser.add_argument(
        "-env",
        "--envfile",
        help="envfile location, default .env",
        default=".env",
    )
    parser.add_argument(
        "--log-level",
        help="DEBUG, INFO, WARNING or ERROR (default: $RECONBOX_LOG_LEVEL or INFO)",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("version", help="Print version information")

    scan = sub.add_parser("scan", help="TCP connect port scan")
    scan.add_argument("target", nargs="?", help="Target host, IP or CIDR")
    scan.add_argument(
        "--targets",
        metavar="FILE",
        help="File with newline-delimited targets (# comments and blanks ignored)",
    )
    ports = scan.add_mutually_exclusive_group()
    ports.add_argument("--ports", help="Ports: 22,80,443 or 1-1024,8080. Default: common ports")
    ports.add_argument("--top", type=int, help="Scan the top N common ports")
    scan.add_argument("--timeout-ms", type=int, help="Timeout per connect attempt (default: 500)")
    scan.add_argument("--concurrency", type=int, help="In-flight connects per host (default: 256)")
    scan.add_argument("--host-concurrency", type=int, help="Hosts scanned at once (default: 1)")
    scan.add_argument(
        "--max-connections",
        type=int,
        help="In-flight connects across all hosts (default: concurrency * host-concurrency)",
    )
    scan.add_argument("--qps", type=int, help="Connect attempts per second, 0 disables pacing (default: 0)")
    scan.add_argument("--retries", type=int, help="Retries per port on failure (default: 0)")
    scan.add_argument("--retry-delay-ms", type=int, help="Base retry backoff (default: 50)")
    scan.add_argument("--dns-retries", type=int, help="DNS resolution retries (default: 0)")
    scan.add_argument("--dns-retry-delay-ms", type=int, help="Delay between DNS retries (default: 200)")
    scan.add_argument("--format", choices=FORMATS, help="Output format (default: text)")
    scan.add_argument("--out", metavar="FILE", help="Write results to FILE instead of stdout")
    scan.add_argument("--save-dir", metavar="DIR", help="Also save per-target JSON files under DIR")
    scan.add_argument("--progress", action="store_true", help="Show a progress bar over hosts")

    discover = sub.add_parser("discover", help="Discover live hosts via TCP connect sweep")
    discover.add_argument("target", help="CIDR (e.g. 192.168.1.0/24) or hostname")
    discover.add_argument("--ports", help="Ports to probe for liveness (default: 80,443,22)")
    discover.add_argument("--timeout-ms", type=int, help="Timeout per attempt (default: 300)")
    discover.add_argument("--concurrency", type=int, help="Liveness checks at once (default: 256)")
    discover.add_argument("--qps", type=int, help="Check launches per second, 0 disables pacing (default: 0)")
    discover.add_argument("--format", choices=("text", "json", "jsonl"), help="Output format (default: text)")
    discover.add_argument("--out", metavar="FILE", help="Write results to FILE instead of stdout")

    return parser


def checked_top_ports(n: int) -> List[int]:
    if n < 1:
        raise ConfigurationError(f"--top must be > 0, got {n}")
    return top_ports(n)


def resolve_scan_ports(args, cfg: ScanConfig) -> List[int]:
    if args.ports is not None:
        return parse_ports(args.ports)
    if args.top is not None:
        return checked_top_ports(args.top)
    if cfg.ports is not None:
        return parse_ports(cfg.ports)
    if cfg.top is not None:
        return checked_top_ports(cfg.top)
    return default_top_ports()


def collect_scan_targets(args) -> List[str]:
    if args.target and args.targets:
        raise ConfigurationError("give either a target or --targets, not both")
    if args.target:
        raw = [args.target]
    elif args.targets:
        raw = load_targets_file(args.targets)
    else:
        raise ConfigurationError("provide a target or --targets <file>")
    if not raw:
        raise ConfigurationError(f"no targets found in {args.targets}")

    categories = categorize_targets(raw)
    log_target_summary(categories)

    targets: List[str] = []
    for target in raw:
        if target in categories["CIDRs"]:
            targets.extend(expand_cidr(target))
        else:
            targets.append(target)
    return targets


def build_scan_policy(args, cfg: ScanConfig) -> ScanPolicy:
    return ScanPolicy.from_millis(
        timeout_ms=pick(args.timeout_ms, cfg.timeout_ms, 500),
        retry_delay_ms=pick(args.retry_delay_ms, cfg.retry_delay_ms, 50),
        dns_retry_delay_ms=pick(args.dns_retry_delay_ms, cfg.dns_retry_delay_ms, 200),
        retries=pick(args.retries, cfg.retries, 0),
        dns_retries=pick(args.dns_retries, cfg.dns_retries, 0),
        qps=pick(args.qps, cfg.qps, 0),
        concurrency=pick(args.concurrency, cfg.concurrency, 256),
        host_concurrency=pick(args.host_concurrency, cfg.host_concurrency, 1),
        max_connections=pick(args.max_connections, cfg.max_connections, None),
    )


async def run_scan(args, config: Config) -> int:
    cfg = config.scan
    ports = resolve_scan_ports(args, cfg)
    targets = collect_scan_targets(args)
    policy = build_scan_policy(args, cfg)
    fmt = pick(args.format, cfg.format, "text")

    async with ResultSink(fmt, path=args.out) as sink:
        orchestrator = MultiTargetOrchestrator(policy, sink=sink, progress=args.progress)
        results = await orchestrator.run(targets, ports)

    process_scan_results(results)
    log_summary(results)

    if args.save_dir:
        output_dir = prepare_output_directory(args.save_dir, "portscan")
        await save_results(results, output_dir, all_in_one=len(results) > 1)

    return EXIT_OK


async def run_discover(args, config: Config) -> int:
    cfg: DiscoverConfig = config.discover
    spec = pick(args.ports, cfg.ports, None)
    ports = parse_ports(spec) if spec is not None else list(DEFAULT_DISCOVERY_PORTS)
    timeout_ms = pick(args.timeout_ms, cfg.timeout_ms, 300)
    concurrency = pick(args.concurrency, cfg.concurrency, 256)
    qps = pick(args.qps, cfg.qps, 0)
    fmt = pick(args.format, cfg.format, "text")

    if timeout_ms <= 0:
        raise ConfigurationError(f"timeout must be > 0, got {timeout_ms}")
    if concurrency < 1:
        raise ConfigurationError(f"concurrency must be >= 1, got {concurrency}")

    started = time.perf_counter()
    addresses = await expand_targets(args.target)
    logger.info(
        f"{Fore.CYAN}Sweeping {len(addresses)} address(es) on ports "
        f"{','.join(str(p) for p in ports)}{Style.RESET_ALL}"
    )
    live = await discover_hosts(
        addresses, ports, timeout_ms / 1000.0, concurrency, qps=qps or None
    )
    duration_ms = int((time.perf_counter() - started) * 1000)

    write_discovery(args.target, live, ports, duration_ms, fmt=fmt, path=args.out)
    return EXIT_OK


def main(args=None) -> int:
    """
    Parse arguments, load configuration and run the selected command.

    Args:
        args: Command line arguments (for testing)

    Returns:
        int: Process exit code
    """
    # Initialize environment variables
    setup_env_from_args(args)

    parser = build_parser()
    args = parser.parse_args(args)

    setup_logger(args.log_level)

    if args.command == "version":
        print(f"reconbox {__version__}")
        return EXIT_OK

    try:
        config = load_config(args.config) or Config(scan=ScanConfig(), discover=DiscoverConfig())

        logger.info(f"{Fore.BLUE}{'=' * 60}")
        logger.info(f"{Fore.CYAN}RECONBOX {args.command.upper()} | Target(s): {Fore.YELLOW}{args.target or getattr(args, 'targets', None)}")
        logger.info(f"{Fore.BLUE}{'=' * 60}{Style.RESET_ALL}")

        if args.command == "scan":
            return asyncio.run(run_scan(args, config))
        return asyncio.run(run_discover(args, config))
    except ConfigurationError as e:
        logger.error(f"{Fore.RED}[-] {e}{Style.RESET_ALL}")
        return EXIT_CONFIG_ERROR


def cli():
    raise SystemExit(main())


if __name__ == "__main__":
    cli()
