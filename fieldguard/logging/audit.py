"""JSON audit trail of rate limit decisions.

Every entry is one JSON line on stdout, plus AUDIT_LOG_FILE when set.
Decision fields (client_ip, fields, error, ...) become top-level keys and
every entry carries the id of the request it belongs to:

    with request_context() as rid:
        audit("Query rate limit exceeded", logging.WARNING, client_ip=ip, fields=names)
"""

import json
import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone

from fieldguard.config.settings import get_settings

AUDIT_LOGGER_NAME = "fieldguard.audit"

# Keys every entry carries; decision fields may not shadow them
ENVELOPE_KEYS = ("timestamp", "level", "logger", "event", "request_id")

request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class JSONFormatter(logging.Formatter):
    """One audit entry per line: the envelope, then the decision fields."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "event": record.getMessage(),
            "request_id": request_id_var.get(""),
        }
        for key, value in getattr(record, "audit_data", {}).items():
            if key not in ENVELOPE_KEYS:
                entry[key] = value
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _handlers(audit_log_file: str) -> list[logging.Handler]:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if audit_log_file:
        handlers.append(logging.FileHandler(audit_log_file))
    return handlers


def setup_logging() -> None:
    """Point the audit logger at stdout (and AUDIT_LOG_FILE) as JSON lines."""
    settings = get_settings()

    logger = get_audit_logger()
    logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()

    formatter = JSONFormatter()
    for handler in _handlers(settings.audit_log_file):
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    # Entries are already complete JSON; the root logger would print them twice
    logger.propagate = False


def get_audit_logger() -> logging.Logger:
    return logging.getLogger(AUDIT_LOGGER_NAME)


def generate_request_id() -> str:
    return uuid.uuid4().hex[:12]


@contextmanager
def request_context(request_id: str | None = None) -> Iterator[str]:
    """Tag every audit entry inside the block with one request id."""
    rid = request_id or generate_request_id()
    token = request_id_var.set(rid)
    try:
        yield rid
    finally:
        request_id_var.reset(token)


def audit(event: str, level: int = logging.INFO, **fields) -> None:
    """Log one rate limit decision with its fields as top-level JSON keys."""
    get_audit_logger().log(level, event, extra={"audit_data": fields})
