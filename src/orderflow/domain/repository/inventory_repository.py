"""Abstract repository for warehouse inventory rows."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from orderflow.domain.model.inventory import (
    BatchCandidate,
    WarehouseBatchKey,
    WarehouseInventory,
)


@dataclass(frozen=True)
class InventoryUpdate:
    """New quantities and stock flag for one warehouse inventory row."""

    warehouse_inventory_id: str
    warehouse_quantity: int
    reserved_quantity: int
    status_id: str


class WarehouseInventoryRepository(ABC):

    @abstractmethod
    def find_candidates(
        self, product_keys: set[str], warehouse_id: str | None = None
    ) -> list[BatchCandidate]:
        """Return in-stock batches for the products, optionally in one warehouse."""

    @abstractmethod
    def get_by_keys(self, keys: list[WarehouseBatchKey]) -> list[WarehouseInventory]:
        """Return the rows for the given (warehouse, batch) keys that exist."""

    @abstractmethod
    def apply_updates(self, updates: list[InventoryUpdate], user_id: str) -> list[str]:
        """Write quantities; returns the ids of the rows actually updated."""
