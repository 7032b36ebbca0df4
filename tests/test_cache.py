"""Tests for the bounded-time, single-flight seed address cache."""

import threading
import time

import pytest

from ecs_seed_discovery.discovery.cache import SeedAddressCache
from ecs_seed_discovery.discovery.models import SeedAddress
from ecs_seed_discovery.exceptions import EcsApiError

SEEDS = [SeedAddress("10.0.0.1", 9300), SeedAddress("10.0.0.2", 9300)]


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


class CountingFetch:
    def __init__(self, *results):
        self.results = list(results)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        result = self.results[min(self.calls, len(self.results)) - 1]
        if isinstance(result, Exception):
            raise result
        return list(result)


class TestSeedAddressCache:
    def test_first_call_fetches(self):
        fetch = CountingFetch(SEEDS)
        cache = SeedAddressCache(fetch, 10.0, clock=FakeClock())
        assert cache.get_or_refresh() == SEEDS
        assert fetch.calls == 1

    def test_second_call_within_interval_is_cached(self):
        clock = FakeClock()
        fetch = CountingFetch(SEEDS)
        cache = SeedAddressCache(fetch, 10.0, clock=clock)
        cache.get_or_refresh()
        clock.now += 9.9
        assert cache.get_or_refresh() == SEEDS
        assert fetch.calls == 1

    def test_refresh_after_interval(self):
        clock = FakeClock()
        fetch = CountingFetch(SEEDS, SEEDS[:1])
        cache = SeedAddressCache(fetch, 10.0, clock=clock)
        cache.get_or_refresh()
        clock.now += 10.0
        assert cache.get_or_refresh() == SEEDS[:1]
        assert fetch.calls == 2

    def test_empty_result_does_not_suppress_next_fetch(self):
        clock = FakeClock()
        fetch = CountingFetch([], SEEDS)
        cache = SeedAddressCache(fetch, 10.0, clock=clock)
        assert cache.get_or_refresh() == []
        clock.now += 1.0
        assert cache.get_or_refresh() == SEEDS
        assert fetch.calls == 2

    def test_empty_result_is_still_stored(self):
        cache = SeedAddressCache(CountingFetch([]), 10.0, clock=FakeClock())
        cache.get_or_refresh()
        assert cache.cached is not None
        assert cache.cached.addresses == ()

    def test_stored_result_records_fetch_time(self):
        clock = FakeClock(now=42.0)
        cache = SeedAddressCache(CountingFetch(SEEDS), 10.0, clock=clock)
        cache.get_or_refresh()
        assert cache.cached.fetched_at == 42.0
        assert cache.cached.addresses == tuple(SEEDS)

    def test_zero_interval_always_fetches(self):
        fetch = CountingFetch(SEEDS)
        cache = SeedAddressCache(fetch, 0.0, clock=FakeClock())
        cache.get_or_refresh()
        cache.get_or_refresh()
        assert fetch.calls == 2

    def test_failed_fetch_propagates_and_keeps_previous_result(self):
        clock = FakeClock()
        fetch = CountingFetch(SEEDS, EcsApiError("boom"), SEEDS[:1])
        cache = SeedAddressCache(fetch, 10.0, clock=clock)
        cache.get_or_refresh()
        clock.now += 10.0
        with pytest.raises(EcsApiError):
            cache.get_or_refresh()
        assert cache.cached.addresses == tuple(SEEDS)
        assert cache.get_or_refresh() == SEEDS[:1]
        assert fetch.calls == 3

    def test_returned_list_is_a_copy(self):
        cache = SeedAddressCache(CountingFetch(SEEDS), 10.0, clock=FakeClock())
        cache.get_or_refresh().clear()
        assert cache.get_or_refresh() == SEEDS


class TestSingleFlight:
    def _run_concurrently(self, result, callers=5):
        started = threading.Event()
        release = threading.Event()
        calls = []

        def fetch():
            calls.append(1)
            started.set()
            assert release.wait(5)
            return list(result)

        cache = SeedAddressCache(fetch, 10.0)
        results = []
        results_lock = threading.Lock()

        def caller():
            value = cache.get_or_refresh()
            with results_lock:
                results.append(value)

        first = threading.Thread(target=caller)
        first.start()
        assert started.wait(5)

        others = [threading.Thread(target=caller) for _ in range(callers - 1)]
        for t in others:
            t.start()
        # Give the waiting callers time to block on the in-flight refresh
        time.sleep(0.2)
        release.set()

        for t in [first, *others]:
            t.join(5)
        return calls, results

    def test_concurrent_callers_share_one_fetch(self):
        calls, results = self._run_concurrently(SEEDS)
        assert len(calls) == 1
        assert results == [SEEDS] * 5

    def test_concurrent_callers_share_empty_result(self):
        calls, results = self._run_concurrently([])
        assert len(calls) == 1
        assert results == [[]] * 5
