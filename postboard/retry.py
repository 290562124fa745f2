"""Retrying database operations that fail for transient reasons."""

from __future__ import annotations

import time
from typing import Callable, Optional, TypeVar

from postboard.models import StorageError

T = TypeVar("T")

MAX_RETRIES = 5
RETRY_DELAY = 2.0

_FINAL_MARKERS = (
    "timeout",
    "post not found",
    "deadlock detected",
    "canceling statement due to conflict",
    "could not serialize access",
)


class RetryError(StorageError):
    """An operation kept failing after every allowed attempt."""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        super().__init__(f"operation failed after {attempts} retries: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


def may_retry(error: Optional[BaseException]) -> bool:
    """Tell whether an operation that raised ``error`` is worth another attempt."""
    if error is None:
        return True
    message = str(error)
    return not any(marker in message for marker in _FINAL_MARKERS)


def retry_call(
    run: Callable[[Callable[..., T]], T],
    operation: Callable[..., T],
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``run(operation)`` until it succeeds or fails for good.

    Errors that ``may_retry`` rejects propagate at once. Other errors are
    retried, sleeping a growing delay after each failed attempt, and after
    ``MAX_RETRIES`` attempts a ``RetryError`` is raised.
    """
    last_error: Optional[Exception] = None
    for attempt in range(1, MAX_RETRIES + 1):
        try:
            return run(operation)
        except Exception as exc:
            if not may_retry(exc):
                raise
            last_error = exc
        sleep(attempt * RETRY_DELAY)
    assert last_error is not None
    raise RetryError(MAX_RETRIES, last_error) from last_error