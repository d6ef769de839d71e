"""Abstract repository for order fulfillment lines."""

from __future__ import annotations

from abc import ABC, abstractmethod

from orderflow.domain.model.fulfillment import FulfillmentDraft, OrderFulfillment
from orderflow.domain.service.merge_policy import MergePolicy


class FulfillmentRepository(ABC):

    @abstractmethod
    def upsert_many(
        self, drafts: list[FulfillmentDraft], policy: MergePolicy
    ) -> list[OrderFulfillment]:
        """Insert lines, merging conflicts by ``policy``; returns the stored rows."""

    @abstractmethod
    def list_for_order(self, order_id: str) -> list[OrderFulfillment]:
        """Return every fulfillment line of the order."""

    @abstractmethod
    def list_for_shipment(self, shipment_id: str) -> list[OrderFulfillment]:
        """Return every fulfillment line of the shipment."""

    @abstractmethod
    def update_status(
        self, fulfillment_ids: list[str], status_id: str, user_id: str
    ) -> int:
        """Set the status of the given lines; returns the number updated."""
