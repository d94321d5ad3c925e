import random
import unittest

from reconbox.core.errors import (
    ConfigurationError,
    InvalidToken,
    PortSpecError,
    RangeOrderInverted,
    ZeroPort,
)
from reconbox.scanners.portscan.ports import (
    CURATED_PORTS,
    default_top_ports,
    parse_ports,
    top_ports,
)


class TestParsePorts(unittest.TestCase):
    """Test port specification parsing."""

    def test_simple_list(self):
        """A plain comma-separated list keeps its values."""
        self.assertEqual(parse_ports("22,80,443"), [22, 80, 443])

    def test_ranges_and_list(self):
        """Ranges are expanded and overlaps de-duplicated."""
        self.assertEqual(parse_ports("1-3,5,3"), [1, 2, 3, 5])

    def test_unsorted_input_is_sorted(self):
        self.assertEqual(parse_ports("443, 22 ,80"), [22, 80, 443])

    def test_empty_tokens_are_skipped(self):
        self.assertEqual(parse_ports("22,,80,"), [22, 80])

    def test_full_range_bounds(self):
        ports = parse_ports("65530-65535,1")
        self.assertEqual(ports, [1, 65530, 65531, 65532, 65533, 65534, 65535])

    def test_zero_port_rejected(self):
        """Port 0 raises ZeroPort naming the token."""
        with self.assertRaises(ZeroPort) as ctx:
            parse_ports("0")
        self.assertEqual(ctx.exception.token, "0")
        with self.assertRaises(ZeroPort):
            parse_ports("0-10")

    def test_inverted_range_rejected(self):
        """start > end raises RangeOrderInverted naming the token."""
        with self.assertRaises(RangeOrderInverted) as ctx:
            parse_ports("22,10-5")
        self.assertEqual(ctx.exception.token, "10-5")

    def test_invalid_tokens_rejected(self):
        for spec in ("abc", "80,http", "65536", "1-70000", "-5", "5-", "1.5", ""):
            with self.subTest(spec=spec):
                with self.assertRaises(InvalidToken):
                    parse_ports(spec)

    def test_errors_are_configuration_errors(self):
        """Parse errors are distinguishable from scan outcomes."""
        for spec in ("0", "10-5", "x"):
            with self.subTest(spec=spec):
                with self.assertRaises(PortSpecError):
                    parse_ports(spec)
                with self.assertRaises(ConfigurationError):
                    parse_ports(spec)

    def test_output_strictly_ascending(self):
        """Random valid specs always yield strictly ascending unique ports."""
        rng = random.Random(1337)
        for _ in range(200):
            tokens = []
            for _ in range(rng.randint(1, 8)):
                if rng.random() < 0.5:
                    tokens.append(str(rng.randint(1, 65535)))
                else:
                    start = rng.randint(1, 65535)
                    end = min(65535, start + rng.randint(0, 50))
                    tokens.append(f"{start}-{end}")
            rng.shuffle(tokens)
            ports = parse_ports(",".join(tokens))
            self.assertTrue(all(a < b for a, b in zip(ports, ports[1:])))
            self.assertTrue(all(1 <= p <= 65535 for p in ports))


class TestTopPorts(unittest.TestCase):
    """Test the curated top-ports list."""

    def test_prefix_order(self):
        """top_ports(n) is a prefix of the curated order."""
        self.assertEqual(top_ports(5), [21, 22, 23, 25, 53])
        self.assertEqual(top_ports(1), [21])

    def test_capped_to_list_length(self):
        self.assertEqual(top_ports(10000), list(CURATED_PORTS))

    def test_default_is_top_64(self):
        self.assertEqual(default_top_ports(), list(CURATED_PORTS[:64]))
        self.assertEqual(len(default_top_ports()), 64)

    def test_curated_list_has_no_duplicates(self):
        self.assertEqual(len(set(CURATED_PORTS)), len(CURATED_PORTS))

    def test_zero_and_negative_give_empty_list(self):
        self.assertEqual(top_ports(0), [])
        self.assertEqual(top_ports(-3), [])


if __name__ == "__main__":
    unittest.main()
