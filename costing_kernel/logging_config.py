"""
Structured JSON logging for the costing kernel.

Every kernel module logs through ``get_logger(<dotted name>)`` so that all
records sit under the ``costing_kernel`` logger. Records are rendered as
one JSON object per line. Operation-scoped fields (correlation id,
operation name, entity id, production reference) travel in a context
variable and are stamped onto every record emitted while they are bound.

Usage:
    configure_logging()
    logger = get_logger("services.production")
    with LogContext.bind(operation="register_production"):
        logger.info("production_registered", extra={"units": "100"})
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
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

LOGGER_ROOT = "costing_kernel"

_CONTEXT_FIELDS = ("correlation_id", "operation", "entity_id", "production_ref")

_bound: ContextVar[dict[str, str]] = ContextVar("costing_log_context", default={})


class LogContext:
    """Operation-scoped log fields, isolated per thread and per task."""

    @staticmethod
    def _checked(fields: dict[str, str | None]) -> dict[str, str]:
        unknown = set(fields) - set(_CONTEXT_FIELDS)
        if unknown:
            raise TypeError(f"Unknown log context field(s): {sorted(unknown)}")
        return {k: str(v) for k, v in fields.items() if v is not None}

    @classmethod
    def set(cls, **fields: str | None) -> None:
        """Overlay the given fields on the current context. None is skipped."""
        _bound.set({**_bound.get(), **cls._checked(fields)})

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return dict(_bound.get())

    @classmethod
    def clear(cls) -> None:
        _bound.set({})

    @classmethod
    @contextmanager
    def bind(cls, **fields: str | None) -> Iterator[type["LogContext"]]:
        """Bind fields for the duration of a ``with`` block."""
        token = _bound.set({**_bound.get(), **cls._checked(fields)})
        try:
            yield cls
        finally:
            _bound.reset(token)


# Attributes every LogRecord carries; anything else came in through ``extra``.
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _jsonable(value: Any) -> Any:
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return str(value)


def _error_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    # Kernel errors keep their details as public instance attributes
    for name, value in vars(exc).items():
        if not name.startswith("_") and name != "code":
            fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """Render a record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_bound.get(),
        }
        payload.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and key not in payload
        )
        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_error_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=_jsonable)


def get_logger(name: str) -> logging.Logger:
    """Return ``costing_kernel.<name>``."""
    return logging.getLogger(f"{LOGGER_ROOT}.{name}")


_state_lock = threading.Lock()
_configured = False


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach a JSON handler to the kernel logger. Later calls are no-ops."""
    global _configured
    with _state_lock:
        if _configured:
            return
        _configured = True

    target = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
    target.setFormatter(StructuredFormatter())

    root = logging.getLogger(LOGGER_ROOT)
    root.setLevel(level)
    root.propagate = False
    root.addHandler(target)


def reset_logging() -> None:
    """Undo ``configure_logging``. Used by tests."""
    global _configured
    with _state_lock:
        _configured = False
    root = logging.getLogger(LOGGER_ROOT)
    root.handlers.clear()
    root.setLevel(logging.WARNING)
    root.propagate = True
