"""InventoryAllocation — a reservation of one warehouse batch for one order item."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from orderflow.domain.model.inventory import WarehouseBatchKey
from orderflow.domain.model.status import AllocationStatus


@dataclass
class InventoryAllocation:
    """Allocation rows are never deleted; only their status moves."""

    id: str
    order_id: str
    order_item_id: str
    warehouse_id: str
    batch_id: str
    allocated_quantity: int
    status: AllocationStatus
    created_by: str | None = None
    created_at: datetime | None = None

    @property
    def key(self) -> WarehouseBatchKey:
        return (self.warehouse_id, self.batch_id)

    @property
    def is_active(self) -> bool:
        return self.status.is_active

    @property
    def holds_reservation(self) -> bool:
        return self.status.holds_reservation

    def advance_to(self, target: AllocationStatus) -> None:
        self.status.ensure_transition(target, f"allocation {self.id}")
        self.status = target


@dataclass(frozen=True)
class NewAllocation:
    """Input for inserting an allocation row."""

    order_id: str
    order_item_id: str
    warehouse_id: str
    batch_id: str
    allocated_quantity: int
    status_id: str
    created_by: str
