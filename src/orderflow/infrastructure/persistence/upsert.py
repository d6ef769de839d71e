"""Render a ``MergePolicy`` as a dialect-specific ``INSERT ... ON CONFLICT``."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import Table, case, func, literal, or_
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from orderflow.domain.exceptions import DatabaseError
from orderflow.domain.service.merge_policy import MergePolicy, MergeStrategy, note_stamp

_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _dialect_insert(session: Session):
    name = session.get_bind().dialect.name
    insert = _INSERTS.get(name)
    if insert is None:
        raise DatabaseError(
            f"Upserts are not supported on the '{name}' database backend",
            context={"dialect": name},
        )
    return insert


def _blank(column):
    return or_(column.is_(None), column == "")


def upsert_statement(
    session: Session,
    table: Table,
    rows: list[dict[str, Any]],
    policy: MergePolicy,
    now: datetime,
):
    """Insert ``rows``; on a conflict key collision reconcile columns by ``policy``."""
    stmt = _dialect_insert(session)(table).values(rows)
    excluded = stmt.excluded

    updates = {}
    for column, strategy in policy.columns.items():
        current = table.c[column]
        incoming = excluded[column]
        if strategy is MergeStrategy.ADD:
            updates[column] = func.coalesce(current, 0) + func.coalesce(incoming, 0)
        elif strategy is MergeStrategy.OVERWRITE:
            updates[column] = incoming
        elif strategy is MergeStrategy.COALESCE:
            updates[column] = func.coalesce(current, incoming)
        elif strategy is MergeStrategy.MERGE_TEXT:
            updates[column] = case(
                (_blank(incoming), current),
                (_blank(current), incoming),
                else_=current + literal(f"\n{note_stamp(now)} ") + incoming,
            )

    return stmt.on_conflict_do_update(
        index_elements=[table.c[key] for key in policy.conflict_keys],
        set_=updates,
    )


def insert_ignore_statement(session: Session, table: Table, rows: list[dict[str, Any]]):
    """Insert ``rows``, silently skipping any that already exist."""
    return _dialect_insert(session)(table).values(rows).on_conflict_do_nothing()
