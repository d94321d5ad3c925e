import asyncio
import time
import unittest

from reconbox.core.ratelimiter import RateLimiter


class FakeClock:
    """Clock whose sleep advances time instead of waiting."""

    def __init__(self, now=100.0):
        self.now = now
        self.sleeps = []

    def __call__(self):
        return self.now

    async def sleep(self, delay):
        self.sleeps.append(delay)
        self.now += delay
        await asyncio.sleep(0)


def max_in_window(times, window):
    times = sorted(times)
    best = 0
    for i, start in enumerate(times):
        count = 0
        for t in times[i:]:
            if t - start >= window:
                break
            count += 1
        best = max(best, count)
    return best


class TestRateLimiterSchedule(unittest.IsolatedAsyncioTestCase):
    """Test permit scheduling with a controlled clock."""

    async def test_interval(self):
        self.assertAlmostEqual(RateLimiter(10).interval, 0.1)
        self.assertAlmostEqual(RateLimiter(1).interval, 1.0)
        self.assertEqual(RateLimiter(1_000_000).interval, RateLimiter.MIN_INTERVAL)

    async def test_starts_empty(self):
        """The first permit is one interval away, not immediate."""
        clock = FakeClock()
        limiter = RateLimiter(4, clock=clock, sleep=clock.sleep)

        await limiter.acquire()
        self.assertAlmostEqual(clock.now, 100.25)
        self.assertEqual(limiter.granted, 1)

    async def test_back_to_back_permits_are_spaced(self):
        clock = FakeClock()
        limiter = RateLimiter(10, clock=clock, sleep=clock.sleep)
        grants = []

        async def worker():
            await limiter.acquire()
            grants.append(clock.now)

        await asyncio.gather(*(worker() for _ in range(5)))
        for i, granted_at in enumerate(sorted(grants)):
            self.assertAlmostEqual(granted_at, 100.0 + 0.1 * (i + 1))

    async def test_idle_time_does_not_accumulate_permits(self):
        """Missed intervals are skipped, not replayed as a burst."""
        clock = FakeClock()
        limiter = RateLimiter(10, clock=clock, sleep=clock.sleep)
        clock.now += 60.0

        await limiter.acquire()
        self.assertEqual(clock.sleeps, [])
        await limiter.acquire()
        await limiter.acquire()
        self.assertAlmostEqual(clock.now, 160.2)

    async def test_window_bound(self):
        """Over any window of T >= 1s, grants <= R*T + 1."""
        rate = 7
        clock = FakeClock(0.0)
        limiter = RateLimiter(rate, clock=clock, sleep=clock.sleep)
        grants = []

        async def worker():
            await limiter.acquire()
            grants.append(clock.now)

        # callers arrive in irregular bursts with idle gaps in between
        for step in range(120):
            clock.now += 0.37 if step % 9 else 2.5
            await asyncio.gather(*(worker() for _ in range(step % 4)))

        for window in (1.0, 1.5, 3.0):
            self.assertLessEqual(max_in_window(grants, window), rate * window + 1)

    async def test_unlimited(self):
        limiter = RateLimiter(0)
        self.assertTrue(limiter.unlimited)
        self.assertIsNone(RateLimiter.create(0))
        self.assertIsNone(RateLimiter.create(None))
        self.assertIsInstance(RateLimiter.create(5), RateLimiter)


class TestRateLimiterAsync(unittest.IsolatedAsyncioTestCase):
    """Test acquire() against the real event loop clock."""

    async def test_concurrent_acquires_are_paced(self):
        limiter = RateLimiter(50)
        start = time.monotonic()
        await asyncio.gather(*(limiter.acquire() for _ in range(20)))
        elapsed = time.monotonic() - start
        # 20th permit is due 20 intervals (0.4s) after construction
        self.assertGreaterEqual(elapsed, 0.35)
        self.assertEqual(limiter.granted, 20)

    async def test_stalled_loop_does_not_release_a_burst(self):
        """Waiters queued across a blocked loop still respect the window bound."""
        rate = 20
        limiter = RateLimiter(rate)
        granted_at = []

        async def worker():
            await limiter.acquire()
            granted_at.append(time.monotonic())

        tasks = [asyncio.ensure_future(worker()) for _ in range(25)]
        await asyncio.sleep(0)
        # block the event loop while every worker is waiting
        time.sleep(1.0)
        await asyncio.gather(*tasks)

        self.assertEqual(len(granted_at), 25)
        self.assertLessEqual(max_in_window(granted_at, 1.0), rate + 1)

    async def test_acquire_does_not_block_other_tasks(self):
        """A caller waiting for a permit leaves the loop free for others."""
        limiter = RateLimiter(2)
        ticks = 0

        async def ticker():
            nonlocal ticks
            for _ in range(5):
                await asyncio.sleep(0.01)
                ticks += 1

        await asyncio.gather(limiter.acquire(), ticker())
        self.assertEqual(ticks, 5)

    async def test_unlimited_acquire_is_immediate(self):
        limiter = RateLimiter(0)
        start = time.monotonic()
        for _ in range(1000):
            await limiter.acquire()
        self.assertLess(time.monotonic() - start, 0.5)
        self.assertEqual(limiter.granted, 1000)


if __name__ == "__main__":
    unittest.main()
