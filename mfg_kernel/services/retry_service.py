"""
Retry helper for lock-contention failures.

Responsibility:
    Re-run a whole command when it failed with a *retryable* error
    (``ConcurrencyError`` subclasses: lock timeout, deadlock, "database is
    locked").  Every other error propagates on the first attempt; validation
    and shortage failures need new input, not another try.

Architecture position:
    Kernel > Services.  Wraps module-service calls; each attempt must run in
    its own transaction (module services roll back before re-raising, so the
    session is clean for the next attempt).

Usage:
    result = retry_on_conflict(
        lambda: production.start_batch(batch_id, actor_id),
        operation="production.start_batch",
    )
"""

from __future__ import annotations

import time
from typing import Callable, TypeVar

from mfg_kernel.exceptions import ConcurrencyError
from mfg_kernel.logging_config import get_logger

logger = get_logger("services.retry")

T = TypeVar("T")

# Safety limit regardless of configuration
MAX_ATTEMPTS_CEILING = 10


def backoff_delay(attempt: int, base_delay: float, max_delay: float = 2.0) -> float:
    """Delay before retry number ``attempt`` (1-based): base * 2**(attempt-1)."""
    return min(base_delay * (2 ** (attempt - 1)), max_delay)


def retry_on_conflict(
    fn: Callable[[], T],
    *,
    operation: str,
    max_attempts: int = 3,
    base_delay: float = 0.05,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call ``fn`` until it succeeds or a non-retryable error occurs.

    Module callers pass the ``retry`` section of the active configuration
    (see ``mfg_modules.retry_command``).

    Raises:
        The last ConcurrencyError once attempts are exhausted, or any
        non-retryable error immediately.
    """
    attempts = max(1, min(max_attempts, MAX_ATTEMPTS_CEILING))
    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except ConcurrencyError as exc:
            if attempt >= attempts:
                logger.warning(
                    "retry_exhausted",
                    extra={"operation": operation, "attempts": attempt},
                )
                raise
            delay = backoff_delay(attempt, base_delay)
            logger.info(
                "retry_scheduled",
                extra={
                    "operation": operation,
                    "attempt": attempt,
                    "delay_seconds": delay,
                    "reason": str(exc),
                },
            )
            sleep(delay)
    raise AssertionError("unreachable")
