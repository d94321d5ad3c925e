"""
Post-run helpers: JSON result files and tabular summaries.
"""

import json
import logging
import os
from datetime import datetime
from typing import Dict, List

import pandas as pd
from colorama import Fore, Style

from reconbox.core.models import ScanResult

logger = logging.getLogger(__name__)

SUMMARY_COLUMNS = ["target", "address", "open", "open_count", "scanned", "attempts", "duration_ms"]


def safe_name(target: str) -> str:
    return target.replace("/", "_").replace(":", "_").replace(".", "-")


async def save_results(
    results: List[ScanResult], output_dir: str = None, all_in_one: bool = False
) -> Dict[str, str]:
    """
    Save scan results to JSON file(s).

    Args:
        results: List of scan results
        output_dir: Directory to save results (defaults to scan_results)
        all_in_one: If True, save all results to a single file

    Returns:
        Dict: Mapping of targets (or "all") to their result files
    """
    created_files = {}
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")

    if not output_dir:
        output_dir = "scan_results"
    os.makedirs(output_dir, exist_ok=True)

    if all_in_one:
        output_file = os.path.join(output_dir, f"portscan_all_targets_{timestamp}.json")
        data = {
            "metadata": {
                "timestamp": datetime.now().isoformat(),
                "filename": output_file,
            },
            "results": [r.to_dict() for r in results],
        }

        with open(output_file, "w") as f:
            json.dump(data, f, indent=2)

        logger.info(f"Combined results saved to {output_file}")
        created_files["all"] = output_file
        return created_files

    for result in results:
        target_file = os.path.join(
            output_dir, f"portscan_{safe_name(result.target)}_{timestamp}.json"
        )
        target_data = {
            "metadata": {
                "timestamp": datetime.now().isoformat(),
                "filename": target_file,
                "target": result.target,
            },
            "results": [result.to_dict()],
        }

        with open(target_file, "w") as f:
            json.dump(target_data, f, indent=2)

        logger.info(f"Results for {result.target} saved to {target_file}")
        created_files[result.target] = target_file

    return created_files


def results_to_dataframe(results: List[ScanResult]) -> pd.DataFrame:
    """One row per target with its open ports and counters."""
    rows = [
        {
            "target": r.target,
            "address": r.address,
            "open": ",".join(str(p) for p in r.open_ports),
            "open_count": len(r.open_ports),
            "scanned": r.scanned,
            "attempts": r.attempts,
            "duration_ms": r.duration_ms,
        }
        for r in results
    ]
    return pd.DataFrame(rows, columns=SUMMARY_COLUMNS)


def process_scan_results(results: List[ScanResult]) -> Dict[str, List[int]]:
    """
    Log open ports per host and return them.

    Returns:
        Dict: Mapping of target to open ports, hosts without open ports omitted
    """
    ports_by_host = {}
    for result in results:
        if result.error is not None:
            logger.error(f"{Fore.RED}Scan of {result.target} failed: {result.error}{Style.RESET_ALL}")
            continue
        if result.open_ports:
            ports_by_host[result.target] = list(result.open_ports)
            logger.info(
                f"{Fore.GREEN}Found open ports on {Fore.YELLOW}{result.target}{Fore.GREEN}: "
                f"{Fore.CYAN}{', '.join(str(p) for p in result.open_ports)}{Style.RESET_ALL}"
            )

    if not ports_by_host:
        logger.warning("[!] No open ports were found during the scan.")

    return ports_by_host


def log_summary(results: List[ScanResult]) -> None:
    df = results_to_dataframe(results)
    if df.empty:
        return
    logger.info(
        f"Scanned {len(df)} target(s), {int(df['open_count'].sum())} open port(s), "
        f"{int(df['attempts'].sum())} connect attempt(s)"
    )
    logger.debug("\n" + df.to_string(index=False))
