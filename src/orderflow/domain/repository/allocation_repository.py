"""Abstract repository for inventory allocations."""

from __future__ import annotations

from abc import ABC, abstractmethod

from orderflow.domain.model.allocation import InventoryAllocation, NewAllocation
from orderflow.domain.model.inventory import WarehouseBatchKey
from orderflow.domain.model.listing import AllocationFilters, AllocationRow, PageRequest


class AllocationRepository(ABC):

    @abstractmethod
    def add_many(self, allocations: list[NewAllocation]) -> list[str]:
        """Insert allocation rows; returns their ids in input order."""

    @abstractmethod
    def list_for_order(
        self, order_id: str, allocation_ids: list[str] | None = None
    ) -> list[InventoryAllocation]:
        """Return the order's allocations, optionally restricted to some ids."""

    @abstractmethod
    def reserving_totals(self, keys: list[WarehouseBatchKey]) -> dict[WarehouseBatchKey, int]:
        """Sum of quantities still holding a reservation, per batch, across all orders."""

    @abstractmethod
    def update_status(
        self, allocation_ids: list[str], status_id: str, user_id: str
    ) -> int:
        """Set the status of the given allocations; returns the number updated."""

    @abstractmethod
    def search(
        self, filters: AllocationFilters, page: PageRequest
    ) -> tuple[list[AllocationRow], int]:
        """Return one page of allocation rows and the total match count."""
