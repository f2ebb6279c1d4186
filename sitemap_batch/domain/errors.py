"""
Task-boundary error classification.

Every exception escaping a task attempt is turned into a ``TaskFailure``.
A failure is retryable iff its category is ``storage`` or ``timeout``, or
its message carries one of the known transient phrases; ``validation``
failures are never retried.
"""

from __future__ import annotations

from concurrent.futures import TimeoutError as FutureTimeoutError

from sitemap_batch.domain.types import TaskFailure
from sitemap_kernel.exceptions import (
    CATEGORY_PROCESSING,
    CATEGORY_STORAGE,
    CATEGORY_TIMEOUT,
    CATEGORY_VALIDATION,
    SitemapKernelError,
)

RETRYABLE_CATEGORIES = frozenset({CATEGORY_STORAGE, CATEGORY_TIMEOUT})

TRANSIENT_PHRASES = (
    "network error",
    "temporary failure",
    "timeout",
)


def is_transient_message(message: str) -> bool:
    lowered = (message or "").lower()
    return any(phrase in lowered for phrase in TRANSIENT_PHRASES)


def is_retryable(category: str, message: str) -> bool:
    if category == CATEGORY_VALIDATION:
        return False
    return category in RETRYABLE_CATEGORIES or is_transient_message(message)


def classify_exception(exc: BaseException) -> TaskFailure:
    """Map any exception to a classified TaskFailure."""
    code = None
    if isinstance(exc, SitemapKernelError):
        category = exc.category
        code = exc.code
    elif isinstance(exc, (TimeoutError, FutureTimeoutError)):
        category = CATEGORY_TIMEOUT
    elif isinstance(exc, OSError):
        category = CATEGORY_STORAGE
    else:
        category = CATEGORY_PROCESSING

    message = str(exc) or type(exc).__name__
    return TaskFailure(
        category=category,
        message=message,
        retryable=is_retryable(category, message),
        code=code,
    )
