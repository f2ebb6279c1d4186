"""
sitemap_engines.tracer -- one structured log record per engine call.

``@traced_engine`` wraps a pure planning function and, after it returns,
logs ``SITEMAP_ENGINE_TRACE`` with:

    engine_name / engine_version
    input_fingerprint  16 hex chars of SHA-256 over the named keyword
                       arguments; sequences contribute only their length,
                       so a 50,000-record set is never serialized
    duration_ms
    whatever ``describe_result(result)`` returns (file counts, index flag)

Two calls with the same fingerprint and the same engine version must plan
the same output; the trace makes a mismatch visible.  Exceptions propagate
untraced.
"""

from __future__ import annotations

import functools
import hashlib
import time
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from sitemap_kernel.logging_config import get_logger

_logger = get_logger("engines.tracer")


def _fingerprint_part(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, str):
        return value
    if isinstance(value, Mapping):
        return "{" + ",".join(f"{k}:{_fingerprint_part(v)}" for k, v in sorted(value.items())) + "}"
    if isinstance(value, Sequence):
        return f"len={len(value)}"
    return str(value)


def compute_input_fingerprint(fields: tuple[str, ...], kwargs: dict[str, Any]) -> str:
    """Missing keyword arguments read as ``null``."""
    text = "|".join(f"{name}={_fingerprint_part(kwargs.get(name))}" for name in fields)
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
    describe_result: Callable[[Any], dict[str, Any]] | None = None,
) -> Callable:
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            started = time.monotonic()
            result = func(*args, **kwargs)
            extra = {
                "trace_type": "SITEMAP_ENGINE_TRACE",
                "engine_name": engine_name,
                "engine_version": engine_version,
                "input_fingerprint": compute_input_fingerprint(fingerprint_fields, kwargs),
                "duration_ms": round((time.monotonic() - started) * 1000, 2),
            }
            if describe_result is not None:
                extra.update(describe_result(result))
            _logger.info("SITEMAP_ENGINE_TRACE", extra=extra)
            return result

        return wrapper

    return decorator
