"""
Structured JSON logging for the stock kernel.

Every record under the ``stock_kernel`` logger namespace is rendered as one
JSON object per line.  Messages are snake_case event names
(``stock_adjusted``, ``stock_lock_timeout``); the data travels in ``extra``
and in the request-scoped fields held by ``LogContext``.

Context fields:
    correlation_id  one per public service call
    actor_id        user performing a manual operation
    item_id         menu item being changed
    operation       service operation name
    order_id        order driving an ORDER_DEDUCT / ORDER_CANCELLED change
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
from enum import Enum
from typing import Any
from uuid import UUID

CONTEXT_FIELDS: tuple[str, ...] = (
    "correlation_id",
    "actor_id",
    "item_id",
    "operation",
    "order_id",
)

_context: ContextVar[dict[str, str]] = ContextVar("stock_log_context", default={})


class LogContext:
    """Request-scoped log fields, safe across threads and tasks.

    The whole context is one immutable-by-convention dict in a ContextVar;
    every change installs a new dict so ``bind()`` can restore the old one.
    """

    @staticmethod
    def _clean(fields: dict[str, Any]) -> dict[str, str]:
        unknown = set(fields) - set(CONTEXT_FIELDS)
        if unknown:
            raise TypeError(f"Unknown log context fields: {sorted(unknown)}")
        return {k: str(v) for k, v in fields.items() if v is not None}

    @classmethod
    def set(cls, **fields: Any) -> None:
        """Set context fields.  None values leave the field unchanged."""
        _context.set({**_context.get(), **cls._clean(fields)})

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return dict(_context.get())

    @classmethod
    def clear(cls) -> None:
        _context.set({})

    @classmethod
    def bind(cls, **fields: Any) -> "_BoundContext":
        """Context manager: set fields on entry, restore the previous context on exit."""
        return _BoundContext(cls._clean(fields))


class _BoundContext:

    def __init__(self, fields: dict[str, str]):
        self._fields = fields
        self._token = None

    def __enter__(self) -> type[LogContext]:
        self._token = _context.set({**_context.get(), **self._fields})
        return LogContext

    def __exit__(self, *exc: Any) -> None:
        _context.reset(self._token)


# ---------------------------------------------------------------------------
# JSON Formatter
# ---------------------------------------------------------------------------

_RESERVED_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _to_json(obj: Any) -> Any:
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (UUID, datetime)):
        return obj.isoformat() if isinstance(obj, datetime) else str(obj)
    return str(obj)


class StructuredFormatter(logging.Formatter):
    """One JSON object per record: envelope, context, extra, exception."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }

        for key, val in vars(record).items():
            if key not in _RESERVED_ATTRS and key not in payload:
                payload[key] = val

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(self._exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_to_json)

    @staticmethod
    def _exception_fields(exc: BaseException) -> dict[str, Any]:
        # Typed kernel errors carry their data as public attributes
        fields: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
        }
        code = getattr(exc, "code", None)
        if code is not None:
            fields["exc_code"] = code
        for name, value in vars(exc).items():
            if not name.startswith("_") and name not in ("args", "code"):
                fields[f"exc_{name}"] = value
        return fields


# ---------------------------------------------------------------------------
# Logger factory and setup
# ---------------------------------------------------------------------------

ROOT_LOGGER = "stock_kernel"

_configured = False
_lock = threading.Lock()


def get_logger(name: str) -> logging.Logger:
    """Logger under the stock_kernel namespace."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach a JSON handler to the stock_kernel logger.  Later calls are no-ops."""
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(level)
    root.propagate = False

    target = handler or logging.StreamHandler(stream or sys.stderr)
    target.setFormatter(StructuredFormatter())
    root.addHandler(target)


def reset_logging() -> None:
    """Drop handlers and the configured flag. FOR TESTING ONLY."""
    global _configured
    with _lock:
        _configured = False
    root = logging.getLogger(ROOT_LOGGER)
    root.handlers.clear()
    root.setLevel(logging.WARNING)
