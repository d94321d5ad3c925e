import io
import json
import os
import socket
import tempfile
import unittest
from contextlib import redirect_stdout
from unittest.mock import patch

from reconbox import __version__
from reconbox.common.config import ScanConfig
from reconbox.core.errors import ConfigurationError
from reconbox.main import (
    EXIT_CONFIG_ERROR,
    EXIT_OK,
    build_parser,
    build_scan_policy,
    collect_scan_targets,
    main,
    resolve_scan_ports,
)
from reconbox.scanners.portscan.ports import default_top_ports


class TestParserHelpers(unittest.TestCase):
    """Test option resolution between flags, config and defaults."""

    def setUp(self):
        self.parser = build_parser()

    def test_default_ports(self):
        args = self.parser.parse_args(["scan", "10.0.0.1"])
        self.assertEqual(resolve_scan_ports(args, ScanConfig()), default_top_ports())

    def test_flag_beats_config(self):
        args = self.parser.parse_args(["scan", "10.0.0.1", "--ports", "22"])
        self.assertEqual(resolve_scan_ports(args, ScanConfig(ports="80,443")), [22])

    def test_config_ports_and_top(self):
        args = self.parser.parse_args(["scan", "10.0.0.1"])
        self.assertEqual(resolve_scan_ports(args, ScanConfig(ports="80,443")), [80, 443])
        self.assertEqual(resolve_scan_ports(args, ScanConfig(top=3)), [21, 22, 23])

    def test_top_zero_rejected(self):
        """--top 0 (flag or config file) is a configuration error."""
        args = self.parser.parse_args(["scan", "10.0.0.1", "--top", "0"])
        with self.assertRaises(ConfigurationError):
            resolve_scan_ports(args, ScanConfig())
        args = self.parser.parse_args(["scan", "10.0.0.1"])
        with self.assertRaises(ConfigurationError):
            resolve_scan_ports(args, ScanConfig(top=0))

    def test_ports_and_top_exclusive(self):
        with redirect_stdout(io.StringIO()), patch("sys.stderr", io.StringIO()):
            with self.assertRaises(SystemExit):
                self.parser.parse_args(["scan", "x", "--ports", "22", "--top", "5"])

    def test_policy_from_flags_and_config(self):
        args = self.parser.parse_args(
            ["scan", "10.0.0.1", "--timeout-ms", "250", "--retries", "2"]
        )
        policy = build_scan_policy(
            args, ScanConfig(timeout_ms=900, qps=50, host_concurrency=3)
        )
        self.assertEqual(policy.timeout, 0.25)
        self.assertEqual(policy.retries, 2)
        self.assertEqual(policy.qps, 50)
        self.assertEqual(policy.host_concurrency, 3)
        self.assertEqual(policy.concurrency, 256)
        self.assertEqual(policy.retry_delay, 0.05)
        self.assertEqual(policy.global_limit, 768)

    def test_invalid_policy_values(self):
        args = self.parser.parse_args(["scan", "10.0.0.1", "--timeout-ms", "0"])
        with self.assertRaises(ConfigurationError):
            build_scan_policy(args, ScanConfig())

    def test_targets_file_with_cidr(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "targets.txt")
            with open(path, "w") as f:
                f.write("# lab hosts\n10.0.0.5\n\nweb.example\n10.0.1.0/30\n")
            args = self.parser.parse_args(["scan", "--targets", path])
            self.assertEqual(
                collect_scan_targets(args),
                ["10.0.0.5", "web.example", "10.0.1.1", "10.0.1.2"],
            )

    def test_target_required(self):
        args = self.parser.parse_args(["scan"])
        with self.assertRaises(ConfigurationError):
            collect_scan_targets(args)


@patch.dict(os.environ, {}, clear=True)
class TestMain(unittest.TestCase):
    """Test the command line entry point."""

    def test_version(self):
        out = io.StringIO()
        with redirect_stdout(out):
            self.assertEqual(main(["version"]), EXIT_OK)
        self.assertEqual(out.getvalue().strip(), f"reconbox {__version__}")

    def test_bad_ports_exit_code(self):
        for spec in ("0", "10-5", "http"):
            with self.subTest(spec=spec):
                self.assertEqual(
                    main(["scan", "127.0.0.1", "--ports", spec]), EXIT_CONFIG_ERROR
                )

    def test_top_zero_exit_code(self):
        self.assertEqual(main(["scan", "127.0.0.1", "--top", "0"]), EXIT_CONFIG_ERROR)

    def test_missing_targets_file(self):
        self.assertEqual(
            main(["scan", "--targets", "/nonexistent/targets.txt"]), EXIT_CONFIG_ERROR
        )

    def test_bad_cidr_exit_code(self):
        self.assertEqual(main(["discover", "10.0.0.0/33"]), EXIT_CONFIG_ERROR)

    def test_missing_config_file(self):
        self.assertEqual(
            main(["--config", "/nonexistent/reconbox.yaml", "scan", "127.0.0.1"]),
            EXIT_CONFIG_ERROR,
        )

    def test_scan_loopback_jsonl(self):
        listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        listener.bind(("127.0.0.1", 0))
        listener.listen(16)
        port = listener.getsockname()[1]
        try:
            with tempfile.TemporaryDirectory() as tmp:
                out = os.path.join(tmp, "scan.jsonl")
                code = main(
                    ["scan", "127.0.0.1", "--ports", str(port), "--format", "jsonl",
                     "--out", out, "--timeout-ms", "500"]
                )
                self.assertEqual(code, EXIT_OK)
                with open(out) as f:
                    record = json.loads(f.read())
        finally:
            listener.close()

        self.assertEqual(record["target"], "127.0.0.1")
        self.assertEqual(record["open"], [port])
        self.assertEqual(record["scanned"], 1)

    def test_discover_loopback_json(self):
        listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        listener.bind(("127.0.0.1", 0))
        listener.listen(16)
        port = listener.getsockname()[1]
        try:
            with tempfile.TemporaryDirectory() as tmp:
                out = os.path.join(tmp, "live.json")
                code = main(
                    ["discover", "127.0.0.1/32", "--ports", str(port), "--format", "json",
                     "--out", out]
                )
                self.assertEqual(code, EXIT_OK)
                with open(out) as f:
                    record = json.load(f)
        finally:
            listener.close()

        self.assertEqual(record["live"], ["127.0.0.1"])
        self.assertEqual(record["ports"], [port])


if __name__ == "__main__":
    unittest.main()
