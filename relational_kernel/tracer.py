"""
relational_kernel.tracer -- Operation tracer emitting RELATIONAL_OPERATION_TRACE.

Responsibility:
    Provide a lightweight decorator (``@traced_operation``) that wraps
    service entry points with a structured trace record.  The trace
    captures operation_name, operation_version, input_fingerprint
    (SHA-256 prefix of selected arguments, bound by name whether passed
    positionally or by keyword) and duration_ms.

Failure modes:
    - Missing fingerprint fields are recorded as "null".
    - Exceptions from the wrapped call propagate; no trace is emitted
      for a failed invocation.

Usage:
    from relational_kernel.tracer import traced_operation

    @traced_operation("aggregate_delete", "1.0", fingerprint_fields=("entity_type",))
    def delete_by_id(self, entity_type, root_id):
        ...
"""

from __future__ import annotations

import functools
import hashlib
import inspect
import time
from collections.abc import Callable
from typing import Any

from relational_kernel.logging_config import get_logger

_logger = get_logger("tracer")


def _canonicalize(value: Any) -> str:
    """Produce a stable string representation of a value for fingerprinting."""
    if value is None:
        return "null"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return value
    if isinstance(value, type):
        return value.__qualname__
    if isinstance(value, dict):
        items = sorted(value.items(), key=lambda kv: str(kv[0]))
        return "{" + ",".join(f"{k}:{_canonicalize(v)}" for k, v in items) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_canonicalize(v) for v in value) + "]"
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    arguments: dict[str, Any],
) -> str:
    """Compute a deterministic 16-char SHA-256 prefix of selected arguments."""
    parts: list[str] = []
    for field in fingerprint_fields:
        val = arguments.get(field)
        parts.append(f"{field}={_canonicalize(val)}")
    canonical = "|".join(parts)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_operation(
    operation_name: str,
    operation_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """Decorator that emits RELATIONAL_OPERATION_TRACE after each call.

    Args:
        operation_name: Operation identifier (e.g., "aggregate_delete").
        operation_version: Operation version (e.g., "1.0").
        fingerprint_fields: Parameter names to include in
            the input fingerprint hash.
    """

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fp = ""
            if fingerprint_fields:
                bound = signature.bind_partial(*args, **kwargs)
                fp = compute_input_fingerprint(fingerprint_fields, bound.arguments)

            t0 = time.monotonic()
            result = func(*args, **kwargs)
            duration_ms = round((time.monotonic() - t0) * 1000, 2)

            _logger.info(
                "RELATIONAL_OPERATION_TRACE",
                extra={
                    "trace_type": "RELATIONAL_OPERATION_TRACE",
                    "operation_name": operation_name,
                    "operation_version": operation_version,
                    "input_fingerprint": fp,
                    "duration_ms": duration_ms,
                    "function": func.__qualname__,
                },
            )
            return result

        return wrapper

    return decorator
