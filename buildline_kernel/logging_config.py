"""
Structured JSON logging for the Buildline kernel.

Kernel modules log through ``get_logger(name)`` under the ``buildline``
namespace.  Each record is written as one JSON line holding:

    envelope   ts, level, logger, message
    extra      the ``extra=`` fields of the call
    context    request fields bound by the facade (LogContext.bind)
    exception  exc_type, exc_message, exc_code and the structured
               attributes of the raised error, plus the traceback

A bound context field replaces an ``extra`` field of the same name.
"""

__all__ = [
    "CONTEXT_FIELDS",
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
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterator, Mapping

CONTEXT_FIELDS = ("request_id", "actor_id", "actor_role", "barcode")

_EMPTY: Mapping[str, str] = MappingProxyType({})

_context: ContextVar[Mapping[str, str]] = ContextVar("buildline_log_context", default=_EMPTY)


class LogContext:
    """Request-scoped log fields, isolated per thread and per task."""

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_context.get())

    @staticmethod
    def clear() -> None:
        _context.set(_EMPTY)

    @staticmethod
    @contextmanager
    def bind(**fields: str | None) -> Iterator[None]:
        """
        Overlay ``fields`` on the current context for the block.

        None values and names outside CONTEXT_FIELDS are ignored; the
        previous context is restored on exit.
        """
        merged = dict(_context.get())
        merged.update(
            (name, value)
            for name, value in fields.items()
            if name in CONTEXT_FIELDS and value is not None
        )
        token = _context.set(MappingProxyType(merged))
        try:
            yield
        finally:
            _context.reset(token)


# LogRecord attributes never copied into the payload as extras
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "taskName",
}


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, (set, frozenset)):
        return sorted(obj, key=str)
    # UUIDs and anything else unknown
    return str(obj)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    for name, value in vars(exc).items():
        if not name.startswith("_"):
            fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name, value in vars(record).items():
            if name not in _RECORD_ATTRS and name not in payload:
                payload[name] = value
        payload.update(_context.get())

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


_LOGGER_PREFIX = "buildline"

_lock = threading.Lock()
_handler: logging.Handler | None = None


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


def configure_logging(
    *,
    level: int = logging.INFO,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach a single JSON handler (stderr unless ``handler`` is given) to
    the ``buildline`` logger.  Only the first call has an effect until
    ``reset_logging``.
    """
    global _handler
    with _lock:
        if _handler is not None:
            return
        _handler = handler or logging.StreamHandler(sys.stderr)
        _handler.setFormatter(StructuredFormatter())
        root = logging.getLogger(_LOGGER_PREFIX)
        root.setLevel(level)
        root.propagate = False
        root.addHandler(_handler)


def reset_logging() -> None:
    """Detach all handlers so tests can configure again."""
    global _handler
    with _lock:
        root = logging.getLogger(_LOGGER_PREFIX)
        root.handlers.clear()
        root.setLevel(logging.WARNING)
        _handler = None
