"""
Output sinks and exports for reconbox results.
"""

from reconbox.output.export import (
    log_summary,
    process_scan_results,
    results_to_dataframe,
    save_results,
)
from reconbox.output.sinks import FORMATS, ResultSink, write_discovery

__all__ = [
    "FORMATS",
    "ResultSink",
    "write_discovery",
    "save_results",
    "results_to_dataframe",
    "process_scan_results",
    "log_summary",
]
