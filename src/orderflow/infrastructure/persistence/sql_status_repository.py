"""SQL-backed status vocabulary, plus seeding from the status enums."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from orderflow.domain.model.status import VOCABULARIES, StatusEntity
from orderflow.domain.repository.status_repository import StatusRecord, StatusRepository
from orderflow.infrastructure.persistence.database import session_scope
from orderflow.infrastructure.persistence.errors import database_errors
from orderflow.infrastructure.persistence.tables import StatusRow

logger = logging.getLogger(__name__)

# Order items share the order rows.
STORED_ENTITIES = tuple(e for e in StatusEntity if e is not StatusEntity.ORDER_ITEM)


def _record(row: StatusRow) -> StatusRecord:
    return StatusRecord(id=row.id, entity=StatusEntity(row.entity), code=row.code)


class SqlStatusRepository(StatusRepository):
    """Reads the vocabulary in short sessions of its own; the resolver outlives any unit of work."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def load_all(self) -> list[StatusRecord]:
        with database_errors("load_statuses"), session_scope(self._session_factory) as session:
            return [_record(row) for row in session.scalars(select(StatusRow))]

    def find(self, entity: StatusEntity, code: str) -> StatusRecord | None:
        with database_errors("find_status", entity=entity.value, code=code), session_scope(
            self._session_factory
        ) as session:
            row = session.scalars(
                select(StatusRow).where(StatusRow.entity == entity.value, StatusRow.code == code)
            ).first()
            return _record(row) if row else None


def seed_statuses(session: Session) -> int:
    """Insert every enum code missing from the status table; returns the count added."""
    with database_errors("seed_statuses"):
        existing = {
            (entity, code)
            for entity, code in session.execute(select(StatusRow.entity, StatusRow.code))
        }
        added = 0
        for entity in STORED_ENTITIES:
            for status in VOCABULARIES[entity]:
                if (entity.value, status.value) in existing:
                    continue
                session.add(
                    StatusRow(
                        entity=entity.value,
                        code=status.value,
                        name=status.name.replace("_", " ").title(),
                    )
                )
                added += 1
        session.flush()
    logger.info("Status vocabulary seeded", extra={"added": added})
    return added
