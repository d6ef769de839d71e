"""Abstract unit of work: one transaction and the repositories bound to it."""

from __future__ import annotations

from abc import ABC, abstractmethod

from orderflow.domain.repository.activity_log_repository import ActivityLogRepository
from orderflow.domain.repository.allocation_repository import AllocationRepository
from orderflow.domain.repository.fulfillment_repository import FulfillmentRepository
from orderflow.domain.repository.inventory_repository import (
    WarehouseInventoryRepository,
)
from orderflow.domain.repository.locking import RowLocker
from orderflow.domain.repository.order_repository import OrderRepository
from orderflow.domain.repository.shipment_repository import ShipmentRepository


class UnitOfWork(ABC):
    """Use as a context manager; anything not committed is rolled back on exit."""

    orders: OrderRepository
    inventory: WarehouseInventoryRepository
    allocations: AllocationRepository
    shipments: ShipmentRepository
    fulfillments: FulfillmentRepository
    activity_logs: ActivityLogRepository
    locks: RowLocker

    def __enter__(self) -> UnitOfWork:
        return self

    def __exit__(self, *args) -> None:
        self.rollback()
        self.locks.reset()

    @abstractmethod
    def commit(self) -> None:
        """Make every change of this unit of work durable."""

    @abstractmethod
    def rollback(self) -> None:
        """Discard uncommitted changes."""
