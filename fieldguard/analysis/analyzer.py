"""Query analyzer limiting calls to expensive root fields per client.

Driven by a traversal through three callbacks:

    analyzer = RateLimitAnalyzer(RateLimitRegistry.from_schema(schema))
    memo = analyzer.initial_value({"ip": "203.0.113.7"})
    memo = analyzer.call(memo, VisitPhase.ENTER, node)   # for every node
    error = analyzer.final_value(memo)                   # None or QueryRateLimitError

Each rate limited root field visited is counted as soon as it is entered.
Once the traversal is done every counted field is checked, and all fields
over their limit are reported together in one error.
"""

import logging
import time
from collections.abc import Callable, Mapping

from fieldguard.analysis.models import CheckRecord, FieldVisit, RequestMemo, VisitPhase
from fieldguard.analysis.registry import DEFAULT_OWNER_TYPE, RateLimitRegistry
from fieldguard.config.settings import get_settings
from fieldguard.errors import ConfigurationError, QueryRateLimitError
from fieldguard.limiter.sliding_window import SlidingWindowLimiter
from fieldguard.logging.audit import audit
from fieldguard.store.base import WindowCounterStore
from fieldguard.store.factory import get_window_store

FIELD_KIND = "field"


class RateLimitAnalyzer:

    def __init__(
        self,
        registry: RateLimitRegistry,
        store: WindowCounterStore | None = None,
        *,
        query_type_name: str = DEFAULT_OWNER_TYPE,
        identity_key: str = "ip",
        key_prefix: str | None = None,
        operation_key_prefix: str | None = None,
        clock: Callable[[], float] = time.time,
    ):
        settings = get_settings()
        self._registry = registry
        self._store = store
        self._query_type_name = query_type_name
        self._identity_key = identity_key
        self._key_prefix = key_prefix if key_prefix is not None else settings.key_prefix
        self._operation_key_prefix = (
            operation_key_prefix if operation_key_prefix is not None
            else settings.operation_key_prefix
        )
        self._clock = clock
        self._checked_store: WindowCounterStore | None = None
        if store is not None:
            self.check_limits(store)

    @property
    def store(self) -> WindowCounterStore:
        # Resolved per call so a store swapped in by the factory is picked up
        return self._store if self._store is not None else get_window_store()

    def operation_key(self, field_name: str) -> str:
        return f"{self._operation_key_prefix}{field_name}"

    def check_limits(self, store: WindowCounterStore) -> None:
        """Reject limits whose interval outlives the events the store keeps.

        Raises ConfigurationError before anything is counted, since such a
        limit could never be evaluated.
        """
        too_long = [
            f"{owner}.{field} (interval {spec.interval}s)"
            for (owner, field), spec in self._registry.items()
            if spec.interval > store.ttl_seconds
        ]
        if too_long:
            raise ConfigurationError(
                f"Rate limit intervals exceed the store TTL of {store.ttl_seconds}s: "
                + ", ".join(too_long)
            )
        self._checked_store = store

    def initial_value(self, context: Mapping) -> RequestMemo:
        identity = context.get(self._identity_key) if context is not None else None
        if not identity:
            raise ConfigurationError(
                f"Request context has no client identity under {self._identity_key!r}"
            )
        identity = str(identity)
        store = self.store
        if store is not self._checked_store:
            self.check_limits(store)
        limiter = SlidingWindowLimiter(
            identity,
            store,
            key_prefix=self._key_prefix,
            clock=self._clock,
        )
        return RequestMemo(identity=identity, limiter=limiter)

    def call(self, memo: RequestMemo, phase: VisitPhase, node: FieldVisit) -> RequestMemo:
        if phase is not VisitPhase.ENTER or not self._is_query_field(node):
            return memo

        spec = self._registry.lookup(node.owner_type_name, node.declared_name)
        if spec is None:
            return memo

        operation_key = self.operation_key(node.declared_name)
        memo.checks.append(CheckRecord(
            operation_name=node.declared_name,
            window_key=memo.limiter.window_key(operation_key),
            spec=spec,
        ))
        memo.limiter.add(operation_key)

        return memo

    def final_value(self, memo: RequestMemo) -> QueryRateLimitError | None:
        exceeded = [
            check.operation_name
            for check in memo.checks
            if memo.limiter.exceeded(
                check.window_key.operation,
                threshold=check.spec.threshold,
                interval=check.spec.interval,
            )
        ]
        if not exceeded:
            return None

        audit(
            "Query rate limit exceeded",
            logging.WARNING,
            client_ip=memo.identity,
            fields=exceeded,
        )
        return QueryRateLimitError(exceeded)

    def _is_query_field(self, node: FieldVisit) -> bool:
        return node.owner_type_name == self._query_type_name and node.ast_kind == FIELD_KIND
