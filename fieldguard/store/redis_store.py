"""Redis-backed window counter store using sorted sets."""

import threading
import uuid

import redis

from fieldguard.errors import StoreUnavailableError
from fieldguard.store.base import DEFAULT_TTL_SECONDS, WindowCounterStore


class RedisWindowStore(WindowCounterStore):
    """Sliding log kept in one sorted set per key, scored by event timestamp.

    Writes go through a MULTI/EXEC pipeline so the insert, the trim of
    entries past the TTL and the key expiry land atomically even with many
    concurrent writers on the same key.
    """

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        client: redis.Redis | None = None,
    ):
        super().__init__(ttl_seconds)
        self._url = url
        self._client = client
        self._client_lock = threading.Lock()

    def _get_client(self) -> redis.Redis:
        """Lazy-init the Redis client so construction never touches the network."""
        client = self._client
        if client is None:
            with self._client_lock:
                if self._client is None:
                    self._client = redis.Redis.from_url(self._url)
                client = self._client
        return client

    def record(self, key: str, timestamp: float) -> None:
        # Members must be unique or simultaneous events would collapse into one
        member = f"{timestamp:.6f}:{uuid.uuid4().hex}"
        try:
            pipe = self._get_client().pipeline(transaction=True)
            pipe.zadd(key, {member: timestamp})
            pipe.zremrangebyscore(key, "-inf", timestamp - self._ttl_seconds)
            pipe.expire(key, self._ttl_seconds)
            pipe.execute()
        except redis.RedisError as exc:
            raise StoreUnavailableError(f"Failed to record event for {key}: {exc}", key=key) from exc

    def count_within(self, key: str, window_seconds: float, now: float) -> int:
        # "(" makes the lower bound exclusive; "+inf" keeps events stamped
        # after a backward clock step
        try:
            count = self._get_client().zcount(key, f"({now - window_seconds}", "+inf")
        except redis.RedisError as exc:
            raise StoreUnavailableError(f"Failed to count events for {key}: {exc}", key=key) from exc
        return int(count or 0)

    def reset(self, key: str) -> None:
        try:
            self._get_client().delete(key)
        except redis.RedisError as exc:
            raise StoreUnavailableError(f"Failed to reset {key}: {exc}", key=key) from exc

    def close(self) -> None:
        with self._client_lock:
            if self._client is not None:
                self._client.close()
                self._client = None
