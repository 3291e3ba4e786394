"""
Structured JSON logging for ticketflow.

Every record is one JSON object per line::

    {"ts": "...", "level": "INFO", "logger": "ticketflow.services.workflow_executor",
     "message": "workflow_transition", "ticket_id": "...", "workflow_id": "...", ...}

``message`` is a short snake_case event name; details travel as ``extra=``
fields.  Request-scoped ids (``LogContext``) are merged into every record
so a single ticket's history can be pulled out of the log stream.
Effect and other dataclass values in ``extra`` are written as objects.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import dataclasses
import json
import logging
import sys
import threading
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Iterator
from uuid import UUID

_NAMESPACE = "ticketflow"


# ---------------------------------------------------------------------------
# Request-scoped context
# ---------------------------------------------------------------------------

_context: ContextVar[dict[str, str]] = ContextVar("ticketflow_log_context", default={})


class LogContext:
    """Ids attached to every record logged in the current thread or task.

    Backed by one ``ContextVar`` holding an immutable snapshot, so nested
    ``bind`` blocks restore exactly what was there before.
    """

    FIELDS = ("correlation_id", "ticket_id", "actor_id", "workflow_id", "trace_id")

    @classmethod
    def set(cls, **fields: str | None) -> None:
        """Set fields for the rest of the current context.  ``None`` leaves a field alone."""
        unknown = set(fields) - set(cls.FIELDS)
        if unknown:
            raise TypeError(f"Unknown log context field(s): {', '.join(sorted(unknown))}")
        _context.set(cls._merged(fields))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return dict(_context.get())

    @classmethod
    def clear(cls) -> None:
        _context.set({})

    @classmethod
    def bind(cls, **fields: str | None) -> "_Binding":
        """Set fields inside a ``with`` block.  Unknown names are ignored."""
        return _Binding({k: v for k, v in fields.items() if k in cls.FIELDS})

    @classmethod
    def _merged(cls, fields: dict[str, str | None]) -> dict[str, str]:
        merged = dict(_context.get())
        merged.update({k: str(v) for k, v in fields.items() if v is not None})
        return merged


class _Binding:
    def __init__(self, fields: dict[str, str | None]):
        self._fields = fields
        self._token = None

    def __enter__(self) -> type[LogContext]:
        self._token = _context.set(LogContext._merged(self._fields))
        return LogContext

    def __exit__(self, *exc: Any) -> None:
        _context.reset(self._token)


# ---------------------------------------------------------------------------
# Formatter
# ---------------------------------------------------------------------------

# Attributes every LogRecord has; anything else came in through ``extra``.
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "taskName",
}


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        payload = {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}
        kind = getattr(value, "kind", None)
        if kind is not None:
            payload = {"kind": kind, **payload}
        return payload
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    return str(value)


def _exception_fields(exc: BaseException) -> Iterator[tuple[str, Any]]:
    yield "exc_type", type(exc).__name__
    yield "exc_message", str(exc)
    code = getattr(exc, "code", None)
    if code is not None:
        yield "exc_code", code
    # Public attributes of TicketflowError subclasses (entity_id, errors, ...)
    for name, value in vars(exc).items():
        if not name.startswith("_") and name != "code":
            yield f"exc_{name}", value


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for name, value in vars(record).items():
            if name not in _RECORD_ATTRS:
                payload.setdefault(name, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_jsonable)


def get_logger(name: str) -> logging.Logger:
    """Logger ``ticketflow.<name>``."""
    return logging.getLogger(f"{_NAMESPACE}.{name}")


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------

_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach one JSON handler to the ``ticketflow`` logger.

    Only the first call has an effect until ``reset_logging``.  ``level``
    may be a name in any case (``"debug"``), as read from settings.
    """
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    if isinstance(level, str):
        level = level.upper()
    namespace = logging.getLogger(_NAMESPACE)
    namespace.setLevel(level)
    namespace.propagate = False

    target = handler or logging.StreamHandler(stream or sys.stderr)
    target.setFormatter(StructuredFormatter())
    namespace.addHandler(target)


def reset_logging() -> None:
    """Detach and close the handlers.  Used by tests."""
    global _configured
    with _lock:
        _configured = False
    namespace = logging.getLogger(_NAMESPACE)
    for handler in list(namespace.handlers):
        namespace.removeHandler(handler)
        handler.close()
    namespace.setLevel(logging.WARNING)
