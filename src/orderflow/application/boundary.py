"""Service boundary: how errors leave an application handler.

Validation and not-found errors reach the caller verbatim so they can show a
precise message.  Anything else is logged with its context and replaced by a
generic ``ServiceError``; the original exception stays chained for logs.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from orderflow.domain.exceptions import NotFoundError, ServiceError, ValidationError

logger = logging.getLogger(__name__)


@contextmanager
def service_boundary(message: str, stage: str, **ids: Any) -> Iterator[None]:
    try:
        yield
    except (ValidationError, NotFoundError) as exc:
        logger.warning(
            "%s: %s",
            message,
            exc,
            extra={"stage": stage, "ids": ids, "details": exc.context},
        )
        raise
    except Exception as exc:
        logger.exception(message, extra={"stage": stage, "ids": ids})
        raise ServiceError(message, context={"stage": stage, **ids}) from exc
