import threading
import time
import unittest

from urbanpulse.cache import TTLCache


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestTTLCache(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock()

    def test_get_within_ttl_returns_value(self):
        cache = TTLCache(60, clock=self.clock)
        cache.set("a", 1)
        self.clock.advance(59.9)
        self.assertEqual(cache.get("a"), 1)

    def test_expired_entry_is_absent_but_still_stored(self):
        cache = TTLCache(60, clock=self.clock)
        cache.set("a", 1)
        self.clock.advance(60)
        self.assertIsNone(cache.get("a"))
        self.assertEqual(cache.get("a", "missing"), "missing")
        # stale entries linger until overwritten or pruned
        self.assertIn("a", cache)
        self.assertEqual(len(cache), 1)

    def test_set_overwrites_and_restamps(self):
        cache = TTLCache(60, clock=self.clock)
        cache.set("a", 1)
        self.clock.advance(50)
        cache.set("a", 2)
        self.clock.advance(50)
        self.assertEqual(cache.get("a"), 2)

    def test_evict_and_clear(self):
        cache = TTLCache(60, clock=self.clock)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.evict("a")
        cache.evict("missing")
        self.assertNotIn("a", cache)
        self.assertEqual(cache.get("b"), 2)
        cache.clear()
        self.assertEqual(len(cache), 0)

    def test_max_entries_prunes_stale_before_evicting_oldest(self):
        cache = TTLCache(60, max_entries=2, clock=self.clock)
        cache.set("old", 1)
        self.clock.advance(61)
        cache.set("fresh", 2)
        cache.set("new", 3)
        self.assertNotIn("old", cache)
        self.assertEqual(cache.get("fresh"), 2)
        self.assertEqual(cache.get("new"), 3)

    def test_max_entries_evicts_oldest_fresh_entry(self):
        cache = TTLCache(60, max_entries=2, clock=self.clock)
        cache.set("a", 1)
        self.clock.advance(1)
        cache.set("b", 2)
        self.clock.advance(1)
        cache.set("c", 3)
        self.assertEqual(len(cache), 2)
        self.assertNotIn("a", cache)
        self.assertIn("b", cache)
        self.assertIn("c", cache)

    def test_invalid_arguments(self):
        with self.assertRaises(ValueError):
            TTLCache(0)
        with self.assertRaises(ValueError):
            TTLCache(10, max_entries=0)

    def test_get_or_fetch_caches_result(self):
        cache = TTLCache(60, clock=self.clock)
        calls = []

        def fetch():
            calls.append(1)
            return "value"

        self.assertEqual(cache.get_or_fetch("k", fetch), "value")
        self.assertEqual(cache.get_or_fetch("k", fetch), "value")
        self.assertEqual(len(calls), 1)

        self.clock.advance(60)
        self.assertEqual(cache.get_or_fetch("k", fetch), "value")
        self.assertEqual(len(calls), 2)

    def test_get_or_fetch_does_not_cache_errors(self):
        cache = TTLCache(60, clock=self.clock)

        def boom():
            raise RuntimeError("upstream down")

        with self.assertRaises(RuntimeError):
            cache.get_or_fetch("k", boom)
        self.assertNotIn("k", cache)
        self.assertEqual(cache.get_or_fetch("k", lambda: 5), 5)

    def test_concurrent_misses_share_one_fetch(self):
        cache = TTLCache(60)
        calls = []
        started = threading.Event()
        release = threading.Event()

        def slow_fetch():
            calls.append(1)
            started.set()
            release.wait(timeout=5)
            return "shared"

        results = []

        def worker():
            results.append(cache.get_or_fetch("k", slow_fetch))

        owner = threading.Thread(target=worker)
        owner.start()
        self.assertTrue(started.wait(timeout=5))
        waiters = [threading.Thread(target=worker) for _ in range(4)]
        for t in waiters:
            t.start()
        time.sleep(0.05)
        release.set()
        for t in [owner, *waiters]:
            t.join(timeout=5)

        self.assertEqual(len(calls), 1)
        self.assertEqual(results, ["shared"] * 5)

    def test_waiters_see_owner_exception(self):
        cache = TTLCache(60)
        started = threading.Event()
        release = threading.Event()
        errors = []

        def failing_fetch():
            started.set()
            release.wait(timeout=5)
            raise ValueError("bad payload")

        def worker():
            try:
                cache.get_or_fetch("k", failing_fetch)
            except ValueError as exc:
                errors.append(str(exc))

        owner = threading.Thread(target=worker)
        owner.start()
        self.assertTrue(started.wait(timeout=5))
        waiter = threading.Thread(target=worker)
        waiter.start()
        time.sleep(0.05)
        release.set()
        owner.join(timeout=5)
        waiter.join(timeout=5)

        self.assertEqual(errors, ["bad payload", "bad payload"])
        self.assertNotIn("k", cache)


if __name__ == "__main__":
    unittest.main()
