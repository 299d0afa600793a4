"""
Structured JSON logging for the fulfillment kernel.

Every record is one JSON object per line: timestamp, level, logger, the
event name as ``message``, the current LogContext fields and whatever was
passed in ``extra=``.  Event names are snake_case (``order_auto_assigned``).
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from contextvars import ContextVar
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

# ---------------------------------------------------------------------------
# Context propagation
# ---------------------------------------------------------------------------

_CONTEXT_FIELDS = (
    "correlation_id",
    "actor_id",
    "order_number",
    "officer_id",
    "task_name",
)

_context_vars: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"log_{name}", default=None) for name in _CONTEXT_FIELDS
}


class LogContext:
    """Request-scoped log fields, safe across threads and copied contexts."""

    FIELD_NAMES = _CONTEXT_FIELDS

    @classmethod
    def set(cls, **fields: str | None) -> None:
        """Set context fields.  None values are skipped."""
        for name, value in fields.items():
            if name not in _context_vars:
                raise TypeError(f"unknown log context field: {name}")
            if value is not None:
                _context_vars[name].set(value)

    @classmethod
    def get_all(cls) -> dict[str, str]:
        """Non-None context fields as a dict."""
        values = {name: var.get() for name, var in _context_vars.items()}
        return {name: value for name, value in values.items() if value is not None}

    @classmethod
    def clear(cls) -> None:
        for var in _context_vars.values():
            var.set(None)

    @classmethod
    def bind(cls, **fields: str | None) -> "_BoundContext":
        """
        Set fields for the duration of a ``with`` block.

        None values and names that are not context fields are ignored, so
        callers can pass optional identifiers straight through.
        """
        return _BoundContext(fields)


class _BoundContext:
    def __init__(self, fields: dict[str, str | None]):
        self._fields = fields
        self._tokens: list[tuple[ContextVar, Any]] = []

    def __enter__(self) -> type[LogContext]:
        for name, value in self._fields.items():
            var = _context_vars.get(name)
            if var is not None and value is not None:
                self._tokens.append((var, var.set(value)))
        return LogContext

    def __exit__(self, *exc: Any) -> None:
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()


# ---------------------------------------------------------------------------
# JSON Formatter
# ---------------------------------------------------------------------------

_RESERVED_RECORD_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "taskName"}


class _JSONEncoder(json.JSONEncoder):
    """Money as strings, enums as values, timestamps as ISO 8601."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, Enum):
            return obj.value
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, (Decimal, UUID)):
            return str(obj)
        return str(obj)


class StructuredFormatter(logging.Formatter):
    """Formats each log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(LogContext.get_all())

        for key, value in vars(record).items():
            if key not in _RESERVED_RECORD_KEYS and key not in payload:
                payload[key] = value

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(self._exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, cls=_JSONEncoder)

    @staticmethod
    def _exception_fields(exc: BaseException) -> dict[str, Any]:
        fields: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
        }
        code = getattr(exc, "code", None)
        if code is not None:
            fields["exc_code"] = code
        # FulfillmentError subclasses keep their context as attributes
        for key, value in vars(exc).items():
            if not key.startswith("_") and key not in ("args", "code"):
                fields[f"exc_{key}"] = value
        return fields


# ---------------------------------------------------------------------------
# Logger factory and setup
# ---------------------------------------------------------------------------

_ROOT_LOGGER = "fulfillment_kernel"

_configured = False
_lock = threading.Lock()


def get_logger(name: str) -> logging.Logger:
    """Logger under the fulfillment_kernel namespace, e.g. ``services.assignment``."""
    return logging.getLogger(f"{_ROOT_LOGGER}.{name}")


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach a JSON handler to the fulfillment_kernel logger.

    Only the first call has an effect until reset_logging().  Records do
    not propagate to the root logger.
    """
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    root = logging.getLogger(_ROOT_LOGGER)
    root.setLevel(level)
    root.propagate = False

    target = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
    target.setFormatter(StructuredFormatter())
    root.addHandler(target)


def reset_logging() -> None:
    """Undo configure_logging().  Tests only."""
    global _configured
    with _lock:
        _configured = False
    root = logging.getLogger(_ROOT_LOGGER)
    root.handlers.clear()
    root.setLevel(logging.WARNING)
