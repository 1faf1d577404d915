"""Factory for window counter store backends."""

import threading

from fieldguard.config.settings import get_settings
from fieldguard.errors import ConfigurationError
from fieldguard.store.base import WindowCounterStore
from fieldguard.store.memory import BucketedWindowStore, InMemoryWindowStore

_store: WindowCounterStore | None = None
_store_lock = threading.Lock()


def _build_store() -> WindowCounterStore:
    settings = get_settings()
    backend = settings.store_backend.strip().lower()

    if backend == "redis":
        # Lazy import to avoid the redis dependency for in-memory setups
        from fieldguard.store.redis_store import RedisWindowStore
        return RedisWindowStore(
            url=settings.redis_url,
            ttl_seconds=settings.store_ttl_seconds,
        )
    if backend == "memory":
        return InMemoryWindowStore(ttl_seconds=settings.store_ttl_seconds)
    if backend == "bucketed":
        return BucketedWindowStore(
            ttl_seconds=settings.store_ttl_seconds,
            bucket_seconds=settings.bucket_seconds,
        )
    raise ConfigurationError(f"Unknown store backend: {settings.store_backend}")


def get_window_store() -> WindowCounterStore:
    """Get the shared store singleton selected by STORE_BACKEND.

    Safe to call from worker threads; the first caller builds the store and
    every other caller gets that same instance.
    """
    global _store
    store = _store
    if store is not None:
        return store

    with _store_lock:
        if _store is None:
            _store = _build_store()
        return _store


def close_window_store() -> None:
    """Release the shared store's connections on shutdown."""
    global _store
    with _store_lock:
        if _store is not None and hasattr(_store, "close"):
            _store.close()
        _store = None
