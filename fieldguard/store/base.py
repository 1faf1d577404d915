"""Window counter store abstraction."""

from abc import ABC, abstractmethod

from fieldguard.errors import ConfigurationError

DEFAULT_TTL_SECONDS = 600  # 10 minutes


class WindowCounterStore(ABC):
    """Expiring multiset of timestamped events, partitioned by key.

    Events live for ``ttl_seconds``; no window longer than that can be
    counted. Implementations raise StoreUnavailableError when the backend
    fails and must be safe to call from many threads at once.
    """

    def __init__(self, ttl_seconds: int = DEFAULT_TTL_SECONDS):
        if ttl_seconds < 1:
            raise ConfigurationError("ttl_seconds must be >= 1")
        self._ttl_seconds = ttl_seconds

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    @abstractmethod
    def record(self, key: str, timestamp: float) -> None:
        """Add one event under key."""
        ...

    @abstractmethod
    def count_within(self, key: str, window_seconds: float, now: float) -> int:
        """Count events for key with timestamp after now - window_seconds.

        Events stamped later than now still count, so a clock that steps
        back between record and count never hides them.
        """
        ...

    @abstractmethod
    def reset(self, key: str) -> None:
        """Drop every event under key."""
        ...
