"""
ledger_engines.tracer -- LEDGER_ENGINE_TRACE records for engine calls.

Responsibility:
    ``@traced_engine`` wraps a pure engine function and, after a successful
    call, logs one LEDGER_ENGINE_TRACE record with the engine name and
    version, a fingerprint of the selected inputs, the size of the result
    and the duration.  A call that raises logs LEDGER_ENGINE_FAILED instead
    and re-raises unchanged.

Architecture position:
    Engines -- support for the pure calculation layer.  Emits log records
    only; arguments are read, never modified.

Invariants enforced:
    - Fingerprints are deterministic: parameter defaults are applied before
      hashing, so ``f(x)`` and ``f(x, default)`` fingerprint the same; dict
      keys are sorted; dataclasses hash by field values.

Usage:
    from ledger_engines.tracer import traced_engine

    @traced_engine("series", "1.0", fingerprint_fields=("spec",))
    def generate_series(spec):
        ...
"""

from __future__ import annotations

import dataclasses
import functools
import hashlib
import inspect
import time
from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any

from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.tracer")

FINGERPRINT_LENGTH = 16


def _canonical(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, Mapping):
        items = sorted(value.items(), key=lambda kv: str(kv[0]))
        return "{" + ",".join(f"{k}:{_canonical(v)}" for k, v in items) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_canonical(v) for v in value) + "]"
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return type(value).__name__ + _canonical(
            {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}
        )
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    arguments: Mapping[str, Any],
) -> str:
    """SHA-256 of the named arguments, truncated; absent names hash as null."""
    canonical = "|".join(
        f"{name}={_canonical(arguments.get(name))}" for name in fingerprint_fields
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]


def _result_size(result: Any) -> int | None:
    try:
        return len(result)
    except TypeError:
        return None


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """
    Args:
        engine_name: Engine identifier, e.g. "series".
        engine_version: Bumped when the engine's output for a given input
            changes.
        fingerprint_fields: Parameter names hashed into the fingerprint.
    """

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fingerprint = ""
            if fingerprint_fields:
                bound = signature.bind(*args, **kwargs)
                bound.apply_defaults()
                fingerprint = compute_input_fingerprint(fingerprint_fields, bound.arguments)

            trace = {
                "engine_name": engine_name,
                "engine_version": engine_version,
                "input_fingerprint": fingerprint,
                "function": func.__qualname__,
            }
            t0 = time.monotonic()
            try:
                result = func(*args, **kwargs)
            except Exception as exc:
                logger.warning("LEDGER_ENGINE_FAILED", extra={
                    **trace,
                    "error_type": type(exc).__name__,
                    "error_code": getattr(exc, "code", None),
                })
                raise

            logger.info("LEDGER_ENGINE_TRACE", extra={
                **trace,
                "trace_type": "LEDGER_ENGINE_TRACE",
                "result_size": _result_size(result),
                "duration_ms": round((time.monotonic() - t0) * 1000, 2),
            })
            return result

        return wrapper

    return decorator
