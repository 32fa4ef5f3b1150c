"""
erp_services.retry -- Re-run a whole unit of work on optimistic-lock conflicts.

Only ConcurrentModificationError is retried: every other error, and the
last conflict once attempts are exhausted, propagates unchanged.  The
operation must load fresh state on every call.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TypeVar

from erp_kernel.exceptions import ConcurrentModificationError
from erp_kernel.logging_config import get_logger

logger = get_logger("services.retry")

T = TypeVar("T")


def retry_on_conflict(operation: Callable[[], T], attempts: int = 3) -> T:
    """
    Call ``operation`` until it returns, retrying on ConcurrentModificationError.

    Args:
        operation: Zero-argument callable performing one complete unit of work.
        attempts: Total number of calls allowed (>= 1).

    Returns:
        Whatever ``operation`` returns.
    """
    if attempts < 1:
        raise ValueError(f"attempts must be >= 1, got {attempts}")

    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except ConcurrentModificationError as exc:
            if attempt == attempts:
                logger.warning("conflict_retries_exhausted", extra={
                    "attempts": attempts,
                    "entity_type": exc.entity_type,
                    "entity_id": exc.entity_id,
                })
                raise
            logger.info("conflict_retrying", extra={
                "attempt": attempt,
                "max_attempts": attempts,
                "entity_type": exc.entity_type,
                "entity_id": exc.entity_id,
            })
    raise AssertionError("unreachable")
