"""
costing_engines.tracer -- ``@traced_engine`` and the COSTING_ENGINE_TRACE record.

Each decorated calculation logs one debug record per call carrying the
engine name and version, a short fingerprint of its inputs and the time it
took. Engines stay free of I/O; the only side effect is the log record.

Arguments are bound against the function signature before fingerprinting,
so ``rollup_recipe(lines, yield_, costs)`` and the keyword form of the same
call produce the same fingerprint.
"""

from __future__ import annotations

import dataclasses
import functools
import hashlib
import inspect
import logging
import time
from collections.abc import Callable, Mapping
from decimal import Decimal
from enum import Enum
from typing import Any

_logger = logging.getLogger("costing_kernel.engines.tracer")

TRACE_MESSAGE = "COSTING_ENGINE_TRACE"


def _canonical(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, Decimal):
        # 1.50 and 1.5 are the same input
        return format(value.normalize(), "f")
    if isinstance(value, Enum):
        return str(value.value)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return _canonical(
            {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}
        )
    if isinstance(value, Mapping):
        pairs = sorted((str(k), _canonical(v)) for k, v in value.items())
        return "{" + ",".join(f"{k}:{v}" for k, v in pairs) + "}"
    if isinstance(value, (list, tuple, set, frozenset)):
        items = [_canonical(v) for v in value]
        if isinstance(value, (set, frozenset)):
            items.sort()
        return "[" + ",".join(items) + "]"
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    kwargs: Mapping[str, Any],
) -> str:
    """First 16 hex chars of a SHA-256 over the named inputs.

    Absent inputs hash as ``null``.
    """
    canonical = "|".join(
        f"{name}={_canonical(kwargs.get(name))}" for name in fingerprint_fields
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """Emit COSTING_ENGINE_TRACE around a pure engine function.

    Args:
        engine_name: Engine identifier, e.g. ``"rollup"``.
        engine_version: Version of the calculation rules.
        fingerprint_fields: Parameters to hash. Empty means every parameter.
    """

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)
        fields = fingerprint_fields or tuple(signature.parameters)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            bound = signature.bind_partial(*args, **kwargs)
            bound.apply_defaults()

            started = time.perf_counter()
            result = func(*args, **kwargs)
            elapsed = time.perf_counter() - started

            if _logger.isEnabledFor(logging.DEBUG):
                _logger.debug(
                    TRACE_MESSAGE,
                    extra={
                        "trace_type": TRACE_MESSAGE,
                        "engine_name": engine_name,
                        "engine_version": engine_version,
                        "input_fingerprint": compute_input_fingerprint(
                            fields, bound.arguments
                        ),
                        "duration_ms": round(elapsed * 1000, 2),
                        "function": func.__qualname__,
                    },
                )
            return result

        return wrapper

    return decorator
