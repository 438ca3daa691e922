"""
Structured JSON logging for the retail kernel.

Every record is one JSON line: ``ts``, ``level``, ``logger`` and
``message`` (a snake_case event name), then the fields bound with
``LogContext.bind`` for the running workflow, then the ``extra`` fields
of the call.  Decimals are written as strings so quantities and costs
survive the round trip exactly.

Loggers live under the ``retail_kernel`` namespace; module services use
``get_logger("modules.sales.service")`` and so on.
"""

from __future__ import annotations

__all__ = [
    "LogContext",
    "StructuredFormatter",
    "configure_logging",
    "get_logger",
    "reset_logging",
]

import json
import logging
import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, TextIO
from uuid import UUID

_LOGGER_PREFIX = "retail_kernel"


class LogContext:
    """
    Fields attached to every record emitted while a workflow runs.

    Held in a single ContextVar, so each thread and each task sees its own
    values.  Only the names in ``FIELDS`` may be bound.
    """

    FIELDS = frozenset({"correlation_id", "actor_id", "document", "location_id"})

    _fields: ContextVar[dict[str, str]] = ContextVar("retail_log_context", default={})

    @classmethod
    def current(cls) -> dict[str, str]:
        return dict(cls._fields.get())

    @classmethod
    def clear(cls) -> None:
        cls._fields.set({})

    @classmethod
    @contextmanager
    def bind(cls, **fields: Any) -> Iterator[None]:
        """Add fields for the duration of the block; None values are skipped."""
        unknown = set(fields) - cls.FIELDS
        if unknown:
            raise ValueError(f"Unknown log context fields: {sorted(unknown)}")
        merged = cls.current()
        merged.update({k: str(v) for k, v in fields.items() if v is not None})
        token = cls._fields.set(merged)
        try:
            yield
        finally:
            cls._fields.reset(token)


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Decimal | UUID):
        return str(obj)
    if isinstance(obj, datetime | date):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    return str(obj)


# Attributes every LogRecord carries; anything else came in through ``extra``.
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.current(),
        }
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS:
                payload.setdefault(key, value)
        if record.exc_info and record.exc_info[1] is not None:
            payload.update(self._exception_fields(record))
        return json.dumps(payload, default=_json_default)

    def _exception_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        exc = record.exc_info[1]
        fields: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
        }
        # RetailKernelError subclasses carry a code and their own attributes
        # (stock key, available, requested, ...).
        code = getattr(exc, "code", None)
        if code is not None:
            fields["exc_code"] = code
        for name, value in vars(exc).items():
            if not name.startswith("_"):
                fields[f"exc_{name}"] = value
        fields["traceback"] = self.formatException(record.exc_info)
        return fields


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: TextIO | None = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Install the JSON handler on the ``retail_kernel`` logger.

    Only the first call has an effect; ``reset_logging`` undoes it.
    """
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    if handler is None:
        handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredFormatter())

    root = logging.getLogger(_LOGGER_PREFIX)
    root.setLevel(level)
    root.propagate = False
    root.addHandler(handler)


def reset_logging() -> None:
    """Drop handlers and forget ``configure_logging`` was called (tests)."""
    global _configured
    with _lock:
        _configured = False
    root = logging.getLogger(_LOGGER_PREFIX)
    root.handlers.clear()
    root.setLevel(logging.WARNING)
    root.propagate = True
