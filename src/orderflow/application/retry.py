"""Retry helper for idempotent, read-only queries."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TypeVar

from orderflow.domain.exceptions import DatabaseError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def retry(
    fn: Callable[[], T],
    attempts: int = 3,
    delay_seconds: float = 0.0,
    retry_on: tuple[type[BaseException], ...] = (DatabaseError,),
) -> T:
    """Call ``fn`` until it succeeds or ``attempts`` calls have failed.

    Only exceptions in ``retry_on`` are retried; the last one is re-raised.
    Never wrap a write in this: a failed attempt may already be visible.
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1")
    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except retry_on as exc:
            if attempt == attempts:
                raise
            logger.warning(
                "Retrying read after failure",
                extra={"attempt": attempt, "attempts": attempts, "error": str(exc)},
            )
            if delay_seconds:
                time.sleep(delay_seconds * attempt)
    raise AssertionError("unreachable")
