"""
Serialized output for scan results.

Many hosts finish concurrently, but only the sink's consumer task ever
writes, one complete record at a time, so lines never interleave.
"""

import asyncio
import csv
import io
import json
import logging
import sys
from typing import IO, Iterable, List, Optional

from reconbox.core.errors import ConfigurationError
from reconbox.core.models import ScanResult

logger = logging.getLogger(__name__)

FORMATS = ("text", "json", "jsonl", "csv")

CSV_HEADER = ["target", "port", "started_at", "ended_at", "duration_ms"]


def format_text(result: ScanResult) -> str:
    if result.error is not None:
        return f"{result.target}: scan failed ({result.error})"
    if not result.open_ports:
        return f"{result.target}: no open ports found ({result.scanned} scanned)"
    ports = ",".join(str(p) for p in result.open_ports)
    return (
        f"{result.target}: open ports [{ports}] "
        f"({result.scanned} scanned, {result.duration_ms} ms)"
    )


def format_json(result: ScanResult) -> str:
    return json.dumps(result.to_dict())


def format_csv_rows(result: ScanResult) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    for port in result.open_ports:
        writer.writerow(
            [
                result.target,
                port,
                result.started_at,
                result.ended_at,
                result.duration_ms,
            ]
        )
    return buf.getvalue().rstrip("\n")


class ResultSink:
    """
    Single-consumer writer for ScanResult records.

    Writes to ``path`` when given (truncating it), otherwise to ``stream``
    (stdout by default). Use ``async with`` or call ``start``/``close``.

    Attributes:
        fmt (str): One of text, json, jsonl, csv
        written (int): Records written so far
    """

    def __init__(
        self,
        fmt: str = "text",
        stream: Optional[IO[str]] = None,
        path: Optional[str] = None,
    ):
        if fmt not in FORMATS:
            raise ConfigurationError(
                f"unknown output format {fmt!r}, expected one of {', '.join(FORMATS)}"
            )
        self.fmt = fmt
        self.path = path
        self._stream = stream
        self._owns_stream = False
        self._queue: Optional[asyncio.Queue] = None
        self._consumer: Optional[asyncio.Task] = None
        self._header_written = False
        self.written = 0

    def _open(self) -> IO[str]:
        if self.path:
            self._owns_stream = True
            return open(self.path, "w", encoding="utf-8", newline="")
        return self._stream or sys.stdout

    def render(self, result: ScanResult) -> str:
        if self.fmt == "text":
            return format_text(result)
        if self.fmt == "csv":
            rows = format_csv_rows(result)
            if not self._header_written:
                self._header_written = True
                header = ",".join(CSV_HEADER)
                return f"{header}\n{rows}" if rows else header
            return rows
        return format_json(result)

    def write(self, result: ScanResult) -> None:
        """Write one record synchronously. Only the consumer task calls this."""
        line = self.render(result)
        if line:
            self._stream.write(line + "\n")
            self._stream.flush()
        self.written += 1

    async def _consume(self) -> None:
        while True:
            result = await self._queue.get()
            try:
                if result is None:
                    return
                self.write(result)
            finally:
                self._queue.task_done()

    async def start(self) -> "ResultSink":
        self._stream = self._open()
        self._queue = asyncio.Queue()
        self._consumer = asyncio.ensure_future(self._consume())
        return self

    async def put(self, result: ScanResult) -> None:
        await self._queue.put(result)

    async def close(self) -> None:
        try:
            if self._consumer is not None:
                consumer, self._consumer = self._consumer, None
                await self._queue.put(None)
                # re-raises a write error from the consumer
                await consumer
            if self.fmt == "csv" and not self._header_written and self._stream:
                self._stream.write(",".join(CSV_HEADER) + "\n")
                self._header_written = True
        finally:
            if self._owns_stream and self._stream:
                self._stream.close()
                self._owns_stream = False
                logger.info(f"Results written to {self.path}")

    async def __aenter__(self):
        return await self.start()

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
        return False


def write_discovery(
    target: str,
    live: List[str],
    ports: Iterable[int],
    duration_ms: int,
    fmt: str = "text",
    stream: Optional[IO[str]] = None,
    path: Optional[str] = None,
) -> None:
    """
    Write the outcome of a host discovery sweep.

    text prints a header, one host per line and a footer; json writes one
    object; jsonl writes ``{"host": ip}`` per live host.
    """
    if fmt not in ("text", "json", "jsonl"):
        raise ConfigurationError(f"unsupported discovery output format {fmt!r}")

    ports = list(ports)
    lines: List[str] = []
    if fmt == "text":
        lines.append(f"live hosts ({len(live)}):")
        lines.extend(live)
        lines.append(
            f"(probed on ports {','.join(str(p) for p in ports)}, took {duration_ms} ms)"
        )
    elif fmt == "json":
        lines.append(
            json.dumps(
                {
                    "target": target,
                    "live": live,
                    "ports": ports,
                    "duration_ms": duration_ms,
                }
            )
        )
    else:
        lines.extend(json.dumps({"host": ip}) for ip in live)

    text = "".join(line + "\n" for line in lines)
    if path:
        with open(path, "w", encoding="utf-8") as f:
            f.write(text)
        logger.info(f"Discovery results written to {path}")
    else:
        out = stream or sys.stdout
        out.write(text)
        out.flush()
