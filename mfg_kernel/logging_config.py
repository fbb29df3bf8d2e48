"""
Structured JSON logging for the manufacturing kernel and modules.

Every record under the ``mfg`` logger becomes one JSON object per line: the
envelope (``ts``, ``level``, ``logger``, ``message``), the command context
bound through ``LogContext``, then the record's ``extra=`` fields.

Quantities and money are ``Decimal`` and are written as strings, so a figure
is never rounded on its way into the log.  Value objects such as a
``Shortage`` are written through their ``to_dict()``.  An exception passed
with ``exc_info`` is written under ``error``: its type, and for a
``ManufacturingError`` the same ``code``/``message``/``details`` body the
error renders for callers.
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
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from functools import singledispatch
from typing import Any, Iterator

LOGGER_NAMESPACE = "mfg"

# Fields a command can bind onto every record it emits.
CONTEXT_FIELDS = ("correlation_id", "actor_id", "command", "entity_id")

# Replaced, never mutated.
_context: ContextVar[dict[str, str]] = ContextVar("mfg_log_context", default={})


def _known_fields(fields: dict[str, Any]) -> dict[str, str]:
    return {
        name: str(value)
        for name, value in fields.items()
        if name in CONTEXT_FIELDS and value is not None
    }


class LogContext:
    """
    Command-scoped log fields.

    Backed by a ``ContextVar``, so each thread and each asyncio task sees
    its own fields.  Values are stored as text (UUIDs included).
    """

    @staticmethod
    def set(**fields: Any) -> None:
        """Merge ``fields`` into the current context; None values are skipped."""
        unknown = sorted(set(fields) - set(CONTEXT_FIELDS))
        if unknown:
            raise TypeError(f"Unknown log context field(s): {', '.join(unknown)}")
        _context.set({**_context.get(), **_known_fields(fields)})

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_context.get())

    @staticmethod
    def clear() -> None:
        _context.set({})

    @staticmethod
    @contextmanager
    def bind(**fields: Any) -> Iterator[type["LogContext"]]:
        """
        Add ``fields`` for the duration of a ``with`` block.

        Names outside ``CONTEXT_FIELDS`` are ignored.  The previous context
        is restored on exit, whether or not the block raised.
        """
        token = _context.set({**_context.get(), **_known_fields(fields)})
        try:
            yield LogContext
        finally:
            _context.reset(token)


@singledispatch
def _to_json(value: Any) -> Any:
    # Decimal and UUID fall through to text
    if callable(getattr(value, "to_dict", None)):
        return value.to_dict()
    return str(value)


@_to_json.register
def _(value: date) -> str:
    return value.isoformat()


_RECORD_ATTRIBUTES = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}


def _describe_error(exc: BaseException) -> dict[str, Any]:
    error: dict[str, Any] = {"type": type(exc).__name__}
    if callable(getattr(exc, "to_dict", None)):
        error.update(exc.to_dict())
        if getattr(exc, "retryable", False):
            error["retryable"] = True
    else:
        error["message"] = str(exc)
    return error


class StructuredFormatter(logging.Formatter):
    """Formats each log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRIBUTES and key not in entry:
                entry[key] = value

        if record.exc_info and record.exc_info[1] is not None:
            entry["error"] = _describe_error(record.exc_info[1])
            entry["traceback"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=_to_json)


def get_logger(name: str) -> logging.Logger:
    """Logger ``mfg.<name>``; a name already under ``mfg`` is used as is."""
    if name == LOGGER_NAMESPACE or name.startswith(f"{LOGGER_NAMESPACE}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")


_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Send the ``mfg`` hierarchy to one JSON handler.

    Only the first call has an effect; the engine calls this on
    initialization, so an application that wants another level or handler
    configures logging before initializing the engine.  ``level`` accepts a
    name (``"debug"``, ``"INFO"``) as read from the configuration file.
    """
    global _configured
    with _lock:
        if _configured:
            return
        if handler is None:
            handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(StructuredFormatter())

        namespace = logging.getLogger(LOGGER_NAMESPACE)
        namespace.setLevel(level.upper() if isinstance(level, str) else level)
        namespace.propagate = False
        namespace.addHandler(handler)
        _configured = True


def reset_logging() -> None:
    """Detach every handler and undo configure_logging(). For tests."""
    global _configured
    with _lock:
        namespace = logging.getLogger(LOGGER_NAMESPACE)
        for handler in list(namespace.handlers):
            namespace.removeHandler(handler)
        namespace.setLevel(logging.NOTSET)
        namespace.propagate = True
        _configured = False
