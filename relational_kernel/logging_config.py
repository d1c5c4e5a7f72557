"""
Structured JSON logging for the relational kernel.

Every record is one JSON object per line.  Unit-of-work fields bound
through ``LogContext`` are merged into each record, as are the ``extra=``
fields of the call.  Domain values render as follows:

    entity type (a class)  -> class name, e.g. "Customer"
    Enum (ActionKind, ...) -> its value, e.g. "batch_delete"
    DbAction               -> {"kind": ..., <fields>}, nested actions included
    PropertyPath           -> dotted form, e.g. "orders.line_items"
    UUID / datetime        -> str / ISO 8601

The kernel logger level is owned by ``configure_logging`` at startup and
may be changed later through ``set_log_level``.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "set_log_level",
    "reset_logging",
]

import json
import logging
import threading
from contextvars import ContextVar
from dataclasses import fields, is_dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID

# ---------------------------------------------------------------------------
# Context propagation
# ---------------------------------------------------------------------------


class LogContext:
    """Thread-safe / async-safe context holder for unit-of-work log fields."""

    _correlation_id: ContextVar[str | None] = ContextVar(
        "log_correlation_id", default=None
    )
    _entity_type: ContextVar[str | None] = ContextVar(
        "log_entity_type", default=None
    )
    _unit_of_work_id: ContextVar[str | None] = ContextVar(
        "log_unit_of_work_id", default=None
    )

    _FIELD_NAMES = (
        "correlation_id",
        "entity_type",
        "unit_of_work_id",
    )

    @classmethod
    def set(
        cls,
        *,
        correlation_id: str | None = None,
        entity_type: str | None = None,
        unit_of_work_id: str | None = None,
    ) -> None:
        """Set context fields. Only non-None values are updated."""
        if correlation_id is not None:
            cls._correlation_id.set(correlation_id)
        if entity_type is not None:
            cls._entity_type.set(entity_type)
        if unit_of_work_id is not None:
            cls._unit_of_work_id.set(unit_of_work_id)

    @classmethod
    def get_all(cls) -> dict[str, str]:
        """Return all non-None context fields as a dict."""
        ctx: dict[str, str] = {}
        for name in cls._FIELD_NAMES:
            val = getattr(cls, f"_{name}").get()
            if val is not None:
                ctx[name] = val
        return ctx

    @classmethod
    def clear(cls) -> None:
        """Reset all context fields to None."""
        for name in cls._FIELD_NAMES:
            getattr(cls, f"_{name}").set(None)

    @classmethod
    def bind(cls, **kwargs: str | None) -> "_LogContextManager":
        """Context manager that sets fields on entry and restores on exit."""
        return _LogContextManager(**kwargs)


class _LogContextManager:
    """Context manager for LogContext.bind()."""

    def __init__(self, **kwargs: str | None):
        self._kwargs = kwargs
        self._tokens: dict[str, Any] = {}

    def __enter__(self) -> type[LogContext]:
        for key, val in self._kwargs.items():
            if val is not None:
                var = getattr(LogContext, f"_{key}", None)
                if var is not None:
                    self._tokens[key] = var.set(val)
        return LogContext

    def __exit__(self, *exc: Any) -> None:
        for key, token in self._tokens.items():
            var = getattr(LogContext, f"_{key}", None)
            if var is not None:
                var.reset(token)


# ---------------------------------------------------------------------------
# JSON Formatter
# ---------------------------------------------------------------------------

_STDLIB_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "taskName"}


def _is_action(obj: Any) -> bool:
    return is_dataclass(obj) and isinstance(getattr(type(obj), "kind", None), Enum)


class _JSONEncoder(json.JSONEncoder):
    """Render entity types, actions and other domain values in log payloads."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, type):
            return obj.__name__
        if isinstance(obj, Enum):
            return obj.value
        if _is_action(obj):
            rendered: dict[str, Any] = {"kind": type(obj).kind}
            for f in fields(obj):
                rendered[f.name] = getattr(obj, f.name)
            return rendered
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, UUID):
            return str(obj)
        # PropertyPath, ids and anything else: their str() form
        return str(obj)


class StructuredFormatter(logging.Formatter):
    """Formats each log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(
                record.created, tz=UTC
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        payload.update(LogContext.get_all())

        # Structured extra data, skipping stdlib internal keys
        for key, val in vars(record).items():
            if key not in _STDLIB_KEYS and key not in payload:
                payload[key] = val

        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            payload["exc_type"] = type(exc).__name__
            payload["exc_message"] = str(exc)
            if hasattr(exc, "code"):
                payload["exc_code"] = exc.code
            # Structured fields from RelationalKernelError subclasses
            for k, v in vars(exc).items():
                if not k.startswith("_") and k not in ("args", "code"):
                    payload[f"exc_{k}"] = v
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, cls=_JSONEncoder)


# ---------------------------------------------------------------------------
# Logger factory
# ---------------------------------------------------------------------------

_LOGGER_PREFIX = "relational_kernel"


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the relational_kernel namespace."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


# ---------------------------------------------------------------------------
# Initialization
# ---------------------------------------------------------------------------

_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Configure the relational_kernel logger hierarchy (idempotent)."""
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    root_logger = logging.getLogger(_LOGGER_PREFIX)
    root_logger.setLevel(level)
    root_logger.propagate = False

    if handler is not None:
        h = handler
    else:
        import sys

        h = logging.StreamHandler(stream or sys.stderr)

    h.setFormatter(StructuredFormatter())
    root_logger.addHandler(h)


def set_log_level(level: int | str) -> None:
    """Change the relational_kernel logger level, configured or not."""
    logging.getLogger(_LOGGER_PREFIX).setLevel(level)


def reset_logging() -> None:
    """Reset logging configuration. FOR TESTING ONLY."""
    global _configured
    with _lock:
        _configured = False
    logger = logging.getLogger(_LOGGER_PREFIX)
    logger.handlers.clear()
    logger.setLevel(logging.WARNING)
