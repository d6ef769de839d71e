"""Abstract repository for outbound shipments and their batch links."""

from __future__ import annotations

from abc import ABC, abstractmethod

from orderflow.domain.model.listing import PageRequest, ShipmentFilters, ShipmentRow
from orderflow.domain.model.shipment import NewShipment, OutboundShipment, ShipmentBatch


class ShipmentRepository(ABC):

    @abstractmethod
    def add(self, shipment: NewShipment) -> str:
        """Insert a shipment; returns its id."""

    @abstractmethod
    def get_by_id(self, shipment_id: str) -> OutboundShipment | None:
        """Return a shipment with its delivery method code, or None."""

    @abstractmethod
    def update_status(self, shipment_ids: list[str], status_id: str, user_id: str) -> int:
        """Set the status of the given shipments; returns the number updated."""

    @abstractmethod
    def add_batches(self, batches: list[ShipmentBatch]) -> int:
        """Insert shipment batch links; returns the number inserted."""

    @abstractmethod
    def list_batches(self, shipment_id: str) -> list[ShipmentBatch]:
        """Return the batch links of a shipment."""

    @abstractmethod
    def search(
        self, filters: ShipmentFilters, page: PageRequest
    ) -> tuple[list[ShipmentRow], int]:
        """Return one page of shipment rows and the total match count."""
