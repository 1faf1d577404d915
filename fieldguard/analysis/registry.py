"""Explicit map from schema field to its rate limit.

Built once at setup, from schema field extensions, a JSON file, or code,
then handed to the analyzer. Lookups are by declared type and field name.
"""

import json
from collections.abc import Mapping

from graphql import GraphQLField, GraphQLObjectType, GraphQLSchema

from fieldguard.analysis.models import RateLimitSpec
from fieldguard.errors import ConfigurationError

EXTENSION_KEY = "rate_limit"
DEFAULT_OWNER_TYPE = "Query"


def rate_limit(field: GraphQLField, *, threshold: int, interval: int) -> GraphQLField:
    """Annotate a schema field with a rate limit.

        schema.query_type.fields["expensiveField"] = rate_limit(
            schema.query_type.fields["expensiveField"], threshold=15, interval=60,
        )
    """
    spec = RateLimitSpec(threshold=threshold, interval=interval)
    field.extensions = {**(field.extensions or {}), EXTENSION_KEY: spec}
    return field


def _coerce_spec(value) -> RateLimitSpec:
    if isinstance(value, RateLimitSpec):
        return value
    if isinstance(value, Mapping):
        try:
            return RateLimitSpec(threshold=value["threshold"], interval=value["interval"])
        except KeyError as exc:
            raise ConfigurationError(f"rate limit is missing {exc.args[0]!r}") from exc
    raise ConfigurationError(f"Unsupported rate limit value: {value!r}")


class RateLimitRegistry:

    def __init__(self, limits: Mapping[tuple[str, str], RateLimitSpec] | None = None):
        self._limits: dict[tuple[str, str], RateLimitSpec] = {}
        for (owner, name), spec in (limits or {}).items():
            self.register(owner, name, spec)

    def register(self, owner_type_name: str, field_name: str, spec) -> None:
        self._limits[(owner_type_name, field_name)] = _coerce_spec(spec)

    def lookup(self, owner_type_name: str | None, field_name: str) -> RateLimitSpec | None:
        if owner_type_name is None:
            return None
        return self._limits.get((owner_type_name, field_name))

    def merge(self, other: "RateLimitRegistry") -> "RateLimitRegistry":
        """Copy other's limits over this registry's. Returns self."""
        self._limits.update(other._limits)
        return self

    def items(self) -> list[tuple[tuple[str, str], RateLimitSpec]]:
        return list(self._limits.items())

    def __len__(self) -> int:
        return len(self._limits)

    def __contains__(self, key: tuple[str, str]) -> bool:
        return key in self._limits

    @classmethod
    def from_schema(cls, schema: GraphQLSchema) -> "RateLimitRegistry":
        """Collect limits attached to object type fields via ``rate_limit``."""
        registry = cls()
        for type_name, named_type in schema.type_map.items():
            if type_name.startswith("__") or not isinstance(named_type, GraphQLObjectType):
                continue
            for field_name, field in named_type.fields.items():
                spec = (field.extensions or {}).get(EXTENSION_KEY)
                if spec is not None:
                    registry.register(type_name, field_name, spec)
        return registry

    @classmethod
    def from_json(cls, path: str) -> "RateLimitRegistry":
        """Load limits from a file shaped like::

            {"rate_limits": [{"type": "Query", "field": "expensiveField",
                              "threshold": 5, "interval": 15}]}

        ``type`` defaults to Query.
        """
        with open(path, encoding="utf-8") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as exc:
                raise ConfigurationError(f"Invalid rate limit file {path}: {exc}") from exc

        registry = cls()
        for entry in data.get("rate_limits", []):
            if "field" not in entry:
                raise ConfigurationError(f"rate limit entry without field: {entry!r}")
            registry.register(entry.get("type", DEFAULT_OWNER_TYPE), entry["field"], entry)
        return registry
