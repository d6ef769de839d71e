"""Abstract repository for the Order aggregate."""

from __future__ import annotations

from abc import ABC, abstractmethod

from orderflow.domain.model.order import Order


class OrderRepository(ABC):

    @abstractmethod
    def get_by_id(self, order_id: str) -> Order | None:
        """Return the order with its items, or None if not found."""

    @abstractmethod
    def update_status(self, order_id: str, status_id: str, user_id: str) -> None:
        """Set the order's status."""

    @abstractmethod
    def update_item_statuses(
        self, item_ids: list[str], status_id: str, user_id: str
    ) -> int:
        """Set the status of the given items; returns the number updated."""
