"""Shared fixtures for the fieldguard test suite."""

import json
import os

# Keep tests off any real Redis unless a test opts in
os.environ.setdefault("STORE_BACKEND", "memory")

import pytest
from graphql import build_schema

import fieldguard.store.factory as factory_mod
from fieldguard.analysis.analyzer import RateLimitAnalyzer
from fieldguard.analysis.registry import RateLimitRegistry, rate_limit
from fieldguard.config.settings import get_settings
from fieldguard.query.execution import execute_query
from fieldguard.store.memory import InMemoryWindowStore

CLIENT_IP = "99.99.99.99"
OTHER_IP = "203.0.113.43"

SDL = """
type Query {
  inexpensiveField: String
  expensiveField: String
  expensiveField2: String
  viewer: Viewer
}

type Viewer {
  expensiveField: String
}
"""

ROOT_VALUE = {
    "inexpensiveField": "result",
    "expensiveField": "result",
    "expensiveField2": "result",
    "viewer": {"expensiveField": "result"},
}


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def reset_store_singleton(monkeypatch):
    """Reset the store factory singleton between tests."""
    monkeypatch.setattr(factory_mod, "_store", None)
    yield
    monkeypatch.setattr(factory_mod, "_store", None)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def schema():
    """Query schema with expensiveField (5 per 15s) and expensiveField2 (10 per 15s)."""
    s = build_schema(SDL)
    fields = s.query_type.fields
    rate_limit(fields["expensiveField"], threshold=5, interval=15)
    rate_limit(fields["expensiveField2"], threshold=10, interval=15)
    # Same limit on a nested field, which must never be counted
    rate_limit(s.get_type("Viewer").fields["expensiveField"], threshold=1, interval=15)
    return s


@pytest.fixture
def registry(schema) -> RateLimitRegistry:
    return RateLimitRegistry.from_schema(schema)


@pytest.fixture
def store() -> InMemoryWindowStore:
    return InMemoryWindowStore()


@pytest.fixture
def analyzer(registry, store, clock) -> RateLimitAnalyzer:
    return RateLimitAnalyzer(registry, store=store, clock=clock)


@pytest.fixture
def run_query(schema, analyzer):
    """Execute a query the way a host would, from the given client IP."""
    def _run(query: str, ip: str = CLIENT_IP, analyzers=None) -> dict:
        return execute_query(
            schema,
            query,
            context={"ip": ip},
            analyzers=[analyzer] if analyzers is None else analyzers,
            root_value=ROOT_VALUE,
        )

    return _run


@pytest.fixture
def rate_limits_json_file(tmp_path):
    """Create a temp rate limit config file and return its path."""
    data = {
        "rate_limits": [
            {"type": "Query", "field": "inexpensiveField", "threshold": 2, "interval": 30},
            {"field": "expensiveField", "threshold": 3, "interval": 60},
        ]
    }
    path = tmp_path / "rate_limits.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


@pytest.fixture
def override_settings(monkeypatch):
    """Factory fixture: set env vars and clear settings cache.

    Usage:
        override_settings(STORE_BACKEND="bucketed", BUCKET_SECONDS="1")
    """
    def _override(**kwargs):
        for key, value in kwargs.items():
            monkeypatch.setenv(key.upper(), str(value))
        # Clear lru_cache so Settings re-reads env
        get_settings.cache_clear()

    yield _override

    get_settings.cache_clear()
