"""Abstract repository for the append-only inventory activity log."""

from __future__ import annotations

from abc import ABC, abstractmethod

from orderflow.domain.model.activity_log import ActivityLogEntry


class ActivityLogRepository(ABC):

    @abstractmethod
    def append_many(self, entries: list[ActivityLogEntry]) -> list[str]:
        """Insert entries; returns their ids.  Entries are never updated."""
