"""Domain service: Status Resolver.

Maps status codes to the opaque ids stored on rows and back.  The whole
vocabulary is loaded once at startup; codes missing from the cache are looked
up on demand and cached.  ``refresh()`` reloads everything, e.g. after the
vocabulary tables were reseeded.

Order items share the order vocabulary, so both resolve against the same
rows.
"""

from __future__ import annotations

import logging

from orderflow.domain.exceptions import NotFoundError
from orderflow.domain.model.status import StatusCode, StatusEntity, parse_status
from orderflow.domain.repository.status_repository import StatusRepository

logger = logging.getLogger(__name__)


def _storage_entity(entity: StatusEntity) -> StatusEntity:
    return StatusEntity.ORDER if entity is StatusEntity.ORDER_ITEM else entity


class StatusResolver:

    def __init__(self, status_repo: StatusRepository) -> None:
        self._status_repo = status_repo
        self._ids: dict[tuple[StatusEntity, str], str] = {}
        self._codes: dict[tuple[StatusEntity, str], str] = {}
        self._loaded = False

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    def load(self) -> None:
        """Preload the vocabulary unless already loaded."""
        if not self._loaded:
            self.refresh()

    def refresh(self) -> None:
        self._ids.clear()
        self._codes.clear()
        records = self._status_repo.load_all()
        for record in records:
            self._remember(record.entity, record.code, record.id)
        self._loaded = True
        logger.info("Status vocabulary loaded", extra={"status_count": len(records)})

    def resolve(self, entity: StatusEntity, code: str | StatusCode) -> str:
        """Return the status id for ``code``; NotFoundError if it has no row."""
        status = parse_status(entity, code)
        storage = _storage_entity(entity)
        cached = self._ids.get((storage, status.value))
        if cached is not None:
            return cached
        record = self._status_repo.find(storage, status.value)
        if record is None:
            raise NotFoundError(
                f"Status code '{status.value}' is not configured for {entity.value}",
                context={"entity": entity.value, "code": status.value},
            )
        self._remember(storage, record.code, record.id)
        return record.id

    def code_for(self, entity: StatusEntity, status_id: str) -> StatusCode:
        """Reverse lookup of a status id into the entity's enum member."""
        storage = _storage_entity(entity)
        code = self._codes.get((storage, status_id))
        if code is None:
            raise NotFoundError(
                f"Unknown {entity.value} status id '{status_id}'",
                context={"entity": entity.value, "status_id": status_id},
            )
        return parse_status(entity, code)

    def _remember(self, entity: StatusEntity, code: str, status_id: str) -> None:
        self._ids[(entity, code)] = status_id
        self._codes[(entity, status_id)] = code
