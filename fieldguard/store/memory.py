"""In-memory window counter stores.

Per-process only: running several workers gives each one its own counters.
Use the Redis store when limits must hold across processes.
"""

import threading
from collections import defaultdict, deque

from fieldguard.errors import ConfigurationError
from fieldguard.store.base import DEFAULT_TTL_SECONDS, WindowCounterStore


class InMemoryWindowStore(WindowCounterStore):
    """Exact sliding log: one deque of event timestamps per key.

    Entries older than the TTL are pruned from the left on each record.
    Counting scans the deque, so late out-of-order timestamps are still
    counted correctly.
    """

    def __init__(self, ttl_seconds: int = DEFAULT_TTL_SECONDS):
        super().__init__(ttl_seconds)
        self._lock = threading.Lock()
        self._events: dict[str, deque[float]] = defaultdict(deque)

    def record(self, key: str, timestamp: float) -> None:
        with self._lock:
            events = self._events[key]
            events.append(timestamp)

            expired_before = timestamp - self._ttl_seconds
            while events and events[0] <= expired_before:
                events.popleft()

    def count_within(self, key: str, window_seconds: float, now: float) -> int:
        window_start = now - window_seconds
        with self._lock:
            events = self._events.get(key)
            if not events:
                return 0
            # No upper bound: a clock stepping back must not hide fresh events
            return sum(1 for ts in events if ts > window_start)

    def reset(self, key: str) -> None:
        with self._lock:
            self._events.pop(key, None)

    def keys(self) -> list[str]:
        """Keys currently holding at least one event."""
        with self._lock:
            return [key for key, events in self._events.items() if events]


class BucketedWindowStore(WindowCounterStore):
    """Approximate sliding window built from fixed-width count buckets.

    Memory per key is bounded by ttl / bucket_seconds counters instead of one
    entry per event. Every bucket overlapping the window is counted whole,
    so the count may include up to one bucket of events that already left
    the window. It never under-counts.
    """

    def __init__(self, ttl_seconds: int = DEFAULT_TTL_SECONDS, bucket_seconds: int = 5):
        super().__init__(ttl_seconds)
        if bucket_seconds < 1:
            raise ConfigurationError("bucket_seconds must be >= 1")
        if bucket_seconds > ttl_seconds:
            raise ConfigurationError("bucket_seconds must not exceed ttl_seconds")
        self._bucket_seconds = bucket_seconds
        self._lock = threading.Lock()
        self._buckets: dict[str, dict[int, int]] = defaultdict(dict)

    @property
    def bucket_seconds(self) -> int:
        return self._bucket_seconds

    def _bucket_for(self, timestamp: float) -> int:
        return int(timestamp // self._bucket_seconds)

    def record(self, key: str, timestamp: float) -> None:
        bucket = self._bucket_for(timestamp)
        # Buckets whose end lies at or before this point are past the TTL
        expired_before = timestamp - self._ttl_seconds

        with self._lock:
            buckets = self._buckets[key]
            buckets[bucket] = buckets.get(bucket, 0) + 1

            stale = [
                b for b in buckets
                if (b + 1) * self._bucket_seconds <= expired_before
            ]
            for b in stale:
                del buckets[b]

    def count_within(self, key: str, window_seconds: float, now: float) -> int:
        window_start = now - window_seconds
        with self._lock:
            buckets = self._buckets.get(key)
            if not buckets:
                return 0
            return sum(
                count for b, count in buckets.items()
                if (b + 1) * self._bucket_seconds > window_start
            )

    def reset(self, key: str) -> None:
        with self._lock:
            self._buckets.pop(key, None)
