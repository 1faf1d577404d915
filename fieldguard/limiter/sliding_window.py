"""Sliding window limiter bound to one client identity.

Translates "record an event" and "has this key exceeded N events in the
last T seconds" into window counter store calls. Counters are partitioned
by WindowKey, so limiters for the same identity share counters even when
they are different instances.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass

from fieldguard.errors import ConfigurationError
from fieldguard.store.base import WindowCounterStore

DEFAULT_KEY_PREFIX = "ratelimit"


@dataclass(frozen=True)
class WindowKey:
    identity: str
    operation: str

    def render(self, prefix: str = DEFAULT_KEY_PREFIX) -> str:
        return f"{prefix}:{self.identity}:{self.operation}"


class SlidingWindowLimiter:

    def __init__(
        self,
        identity: str,
        store: WindowCounterStore,
        *,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        clock: Callable[[], float] = time.time,
    ):
        self.identity = identity
        self._store = store
        self._key_prefix = key_prefix
        self._clock = clock

    @property
    def store(self) -> WindowCounterStore:
        return self._store

    def window_key(self, operation_key: str) -> WindowKey:
        return WindowKey(identity=self.identity, operation=operation_key)

    def store_key(self, operation_key: str) -> str:
        return self.window_key(operation_key).render(self._key_prefix)

    def add(self, operation_key: str) -> None:
        """Record one event for operation_key at the current time."""
        self._store.record(self.store_key(operation_key), self._clock())

    def count(self, operation_key: str, *, interval: int) -> int:
        """Events recorded for operation_key within the trailing interval."""
        if interval > self._store.ttl_seconds:
            raise ConfigurationError(
                f"interval {interval}s exceeds the store TTL of {self._store.ttl_seconds}s"
            )
        return self._store.count_within(self.store_key(operation_key), interval, self._clock())

    def exceeded(self, operation_key: str, *, threshold: int, interval: int) -> bool:
        """True once more than threshold events fall inside the window.

        Exactly ``threshold`` events is still allowed.
        """
        return self.count(operation_key, interval=interval) > threshold
