"""Tests for fieldguard/limiter/sliding_window.py — SlidingWindowLimiter."""

from unittest.mock import MagicMock

import pytest

from fieldguard.errors import ConfigurationError, StoreUnavailableError
from fieldguard.limiter.sliding_window import SlidingWindowLimiter, WindowKey
from fieldguard.store.memory import BucketedWindowStore, InMemoryWindowStore


@pytest.fixture
def limiter(store, clock):
    return SlidingWindowLimiter("99.99.99.99", store, clock=clock)


class TestWindowKey:

    def test_render_default_prefix(self):
        key = WindowKey(identity="99.99.99.99", operation="graphql-query-expensiveField")
        assert key.render() == "ratelimit:99.99.99.99:graphql-query-expensiveField"

    def test_render_custom_prefix(self):
        assert WindowKey("1.2.3.4", "op").render("rl") == "rl:1.2.3.4:op"

    def test_limiter_builds_key_for_its_identity(self, limiter):
        assert limiter.window_key("op") == WindowKey("99.99.99.99", "op")
        assert limiter.store_key("op") == "ratelimit:99.99.99.99:op"


class TestAddAndExceeded:

    def test_add_records_at_clock_time(self, limiter, store, clock):
        limiter.add("op")
        assert store.count_within("ratelimit:99.99.99.99:op", 1, now=clock.now) == 1

    def test_threshold_boundary(self, limiter):
        for _ in range(5):
            limiter.add("op")
        # count == threshold is still allowed
        assert limiter.exceeded("op", threshold=5, interval=15) is False

        limiter.add("op")
        assert limiter.exceeded("op", threshold=5, interval=15) is True

    def test_count(self, limiter):
        for _ in range(3):
            limiter.add("op")
        assert limiter.count("op", interval=15) == 3

    def test_window_elapses(self, limiter, clock):
        for _ in range(6):
            limiter.add("op")
        assert limiter.exceeded("op", threshold=5, interval=15) is True

        clock.advance(15)
        assert limiter.exceeded("op", threshold=5, interval=15) is False
        assert limiter.count("op", interval=15) == 0

    def test_operations_independent(self, limiter):
        for _ in range(6):
            limiter.add("a")
        assert limiter.exceeded("b", threshold=5, interval=15) is False

    def test_identities_independent(self, store, clock):
        a = SlidingWindowLimiter("10.0.0.1", store, clock=clock)
        b = SlidingWindowLimiter("10.0.0.2", store, clock=clock)
        for _ in range(6):
            a.add("op")
        assert a.exceeded("op", threshold=5, interval=15) is True
        assert b.exceeded("op", threshold=5, interval=15) is False

    def test_instances_for_same_identity_share_counters(self, store, clock):
        first = SlidingWindowLimiter("10.0.0.1", store, clock=clock)
        second = SlidingWindowLimiter("10.0.0.1", store, clock=clock)
        for _ in range(6):
            first.add("op")
        assert second.exceeded("op", threshold=5, interval=15) is True

    def test_interval_longer_than_ttl_rejected(self, clock):
        limiter = SlidingWindowLimiter("ip", InMemoryWindowStore(ttl_seconds=60), clock=clock)
        with pytest.raises(ConfigurationError):
            limiter.exceeded("op", threshold=1, interval=61)

    def test_store_failure_propagates(self, clock):
        store = MagicMock()
        store.ttl_seconds = 600
        store.count_within.side_effect = StoreUnavailableError("down")
        limiter = SlidingWindowLimiter("ip", store, clock=clock)

        with pytest.raises(StoreUnavailableError):
            limiter.exceeded("op", threshold=1, interval=15)


@pytest.mark.parametrize(
    "store_factory",
    [InMemoryWindowStore, lambda: BucketedWindowStore(bucket_seconds=5)],
    ids=["sliding-log", "bucketed"],
)
class TestClockStepBack:

    def test_event_counted_after_clock_steps_back(self, clock, store_factory):
        limiter = SlidingWindowLimiter("ip", store_factory(), clock=clock)
        limiter.add("op")

        clock.now -= 0.5

        assert limiter.count("op", interval=15) == 1

    def test_threshold_still_enforced_after_clock_steps_back(self, clock, store_factory):
        limiter = SlidingWindowLimiter("ip", store_factory(), clock=clock)
        for _ in range(6):
            limiter.add("op")

        clock.now -= 2

        assert limiter.exceeded("op", threshold=5, interval=15) is True
