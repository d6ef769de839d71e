"""WarehouseInventory aggregate — on-hand and reserved stock per warehouse batch.

Each (warehouse, batch) pair has one row that knows how much is physically
on hand and how much of it is promised to active allocations.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from orderflow.domain.exceptions import ValidationError
from orderflow.domain.model.status import InventoryStatus

WarehouseBatchKey = tuple[str, str]  # (warehouse_id, batch_id)


@dataclass
class WarehouseInventory:
    """Aggregate root for per-batch stock.

    Invariants:
    - ``0 <= reserved_quantity <= warehouse_quantity``
    - ``status`` is OUT_OF_STOCK whenever nothing is left to promise
    """

    id: str
    warehouse_id: str
    batch_id: str
    warehouse_quantity: int
    reserved_quantity: int = 0
    status: InventoryStatus = InventoryStatus.IN_STOCK

    @property
    def key(self) -> WarehouseBatchKey:
        return (self.warehouse_id, self.batch_id)

    @property
    def available_quantity(self) -> int:
        return max(0, self.warehouse_quantity - self.reserved_quantity)

    def set_reserved(self, quantity: int) -> None:
        """Replace the reserved quantity with a recomputed total.

        The stock flag follows the unreserved remainder.
        """
        if quantity < 0:
            raise ValidationError(
                f"Reserved quantity cannot be negative for batch {self.batch_id}",
                context={"warehouse_inventory_id": self.id, "reserved": quantity},
            )
        if quantity > self.warehouse_quantity:
            raise ValidationError(
                f"Cannot reserve {quantity} of batch {self.batch_id} in warehouse "
                f"{self.warehouse_id} — only {self.warehouse_quantity} on hand",
                context={"warehouse_inventory_id": self.id, "reserved": quantity},
            )
        self.reserved_quantity = quantity
        self.status = (
            InventoryStatus.IN_STOCK
            if self.available_quantity > 0
            else InventoryStatus.OUT_OF_STOCK
        )

    def deduct_shipped(self, quantity: int) -> None:
        """Remove shipped stock from both on-hand and reserved.

        Both quantities floor at zero; the flag follows on-hand stock.
        """
        if quantity <= 0:
            raise ValidationError("Shipped quantity must be positive")
        self.warehouse_quantity = max(0, self.warehouse_quantity - quantity)
        self.reserved_quantity = max(0, self.reserved_quantity - quantity)
        self.status = (
            InventoryStatus.IN_STOCK
            if self.warehouse_quantity > 0
            else InventoryStatus.OUT_OF_STOCK
        )


@dataclass(frozen=True)
class BatchCandidate:
    """A batch that could satisfy demand, as seen at allocation time."""

    warehouse_inventory_id: str
    warehouse_id: str
    batch_id: str
    product_key: str
    available_quantity: int
    expiry_date: date | None = None
    inbound_date: date | None = None

    @property
    def key(self) -> WarehouseBatchKey:
        return (self.warehouse_id, self.batch_id)
