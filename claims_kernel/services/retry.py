"""
Optimistic-conflict retry (``claims_kernel.services.retry``).

Runs a whole read-modify-write attempt again when the record store reports
a version conflict.  The attempt callable must re-read its record on every
call; it never sees partial state from a lost race because ``put`` writes
nothing on conflict.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TypeVar

from claims_kernel.exceptions import ConflictError
from claims_kernel.logging_config import get_logger

logger = get_logger("services.retry")

T = TypeVar("T")


def run_with_conflict_retry(
    attempt: Callable[[], T],
    *,
    max_attempts: int,
    operation: str,
) -> T:
    """Call ``attempt`` until it succeeds or ``max_attempts`` conflicts occur.

    Raises:
        ConflictError: the last attempt still lost the race.
        ValueError: ``max_attempts`` is below 1.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    for attempt_no in range(1, max_attempts + 1):
        try:
            return attempt()
        except ConflictError as exc:
            if attempt_no == max_attempts:
                logger.error(
                    "conflict_retries_exhausted",
                    extra={
                        "operation": operation,
                        "attempts": attempt_no,
                        "entity_id": exc.entity_id,
                    },
                )
                raise
            logger.info(
                "conflict_retry",
                extra={
                    "operation": operation,
                    "attempt": attempt_no,
                    "entity_id": exc.entity_id,
                },
            )
    raise AssertionError("unreachable")
