"""Translation of driver errors into the domain's ``DatabaseError``."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from orderflow.domain.exceptions import DatabaseError


@contextmanager
def database_errors(stage: str, **ids: Any) -> Iterator[None]:
    """Re-raise any SQLAlchemy error as DatabaseError carrying ``stage`` and ``ids``."""
    try:
        yield
    except SQLAlchemyError as exc:
        raise DatabaseError(
            f"Database error while trying to {stage.replace('_', ' ')}",
            context={"stage": stage, **ids},
        ) from exc
