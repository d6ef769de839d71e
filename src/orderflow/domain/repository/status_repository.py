"""Abstract repository for the read-only status vocabulary tables."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from orderflow.domain.model.status import StatusEntity


@dataclass(frozen=True)
class StatusRecord:
    id: str
    entity: StatusEntity
    code: str


class StatusRepository(ABC):

    @abstractmethod
    def load_all(self) -> list[StatusRecord]:
        """Return every status row of every vocabulary."""

    @abstractmethod
    def find(self, entity: StatusEntity, code: str) -> StatusRecord | None:
        """Return one status row by entity and code, or None."""
