"""Data model for per-request rate limit analysis."""

from dataclasses import dataclass, field
from enum import Enum

from fieldguard.errors import ConfigurationError
from fieldguard.limiter.sliding_window import SlidingWindowLimiter, WindowKey


class VisitPhase(str, Enum):
    ENTER = "enter"
    EXIT = "exit"


@dataclass(frozen=True)
class RateLimitSpec:
    threshold: int  # Max calls allowed inside the window
    interval: int  # Window length in seconds

    def __post_init__(self):
        for name in ("threshold", "interval"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")


@dataclass(frozen=True)
class FieldVisit:
    """What the traversal reports about the node being visited."""

    owner_type_name: str | None
    ast_kind: str
    declared_name: str


@dataclass(frozen=True)
class CheckRecord:
    operation_name: str
    window_key: WindowKey
    spec: RateLimitSpec


@dataclass
class RequestMemo:
    """Per-request accumulator. Created by initial_value, never shared."""

    identity: str
    limiter: SlidingWindowLimiter
    checks: list[CheckRecord] = field(default_factory=list)
