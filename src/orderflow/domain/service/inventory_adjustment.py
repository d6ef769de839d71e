"""Domain service: inventory quantity changes and their audit entries.

Two kinds of change touch warehouse stock:

  reservation — after allocations are confirmed, each touched batch's
                reserved quantity becomes the sum of allocations still
                holding a reservation on it;
  deduction   — when a shipment is confirmed, every allocation's quantity
                leaves both on-hand and reserved stock.

Each change is captured as a ``StockMovement`` so the handler can write the
rows and the activity log from the same numbers.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from orderflow.domain.exceptions import NotFoundError
from orderflow.domain.model.activity_log import (
    ActivityLogEntry,
    InventoryAction,
    LogSource,
)
from orderflow.domain.model.allocation import InventoryAllocation
from orderflow.domain.model.inventory import WarehouseBatchKey, WarehouseInventory
from orderflow.domain.model.status import InventoryStatus
from orderflow.domain.repository.inventory_repository import InventoryUpdate


@dataclass(frozen=True)
class StockMovement:
    warehouse_inventory_id: str
    warehouse_id: str
    batch_id: str
    quantity: int
    warehouse_before: int
    warehouse_after: int
    reserved_before: int
    reserved_after: int
    status: InventoryStatus
    allocation_id: str | None = None
    order_item_id: str | None = None


def index_inventory(
    rows: list[WarehouseInventory],
) -> dict[WarehouseBatchKey, WarehouseInventory]:
    return {row.key: row for row in rows}


def assert_inventory_coverage(
    keys: list[WarehouseBatchKey],
    rows_by_key: Mapping[WarehouseBatchKey, WarehouseInventory],
) -> None:
    """Every allocated batch must still have its inventory row."""
    missing = sorted(set(keys) - set(rows_by_key))
    if missing:
        labels = ", ".join(f"{w}/{b}" for w, b in missing)
        raise NotFoundError(
            f"Warehouse inventory not found for batches: {labels}",
            context={"missing": [list(k) for k in missing]},
        )


def recompute_reservations(
    rows: list[WarehouseInventory],
    reserving_totals: Mapping[WarehouseBatchKey, int],
) -> list[StockMovement]:
    movements: list[StockMovement] = []
    for row in rows:
        before = row.reserved_quantity
        row.set_reserved(reserving_totals.get(row.key, 0))
        movements.append(
            StockMovement(
                warehouse_inventory_id=row.id,
                warehouse_id=row.warehouse_id,
                batch_id=row.batch_id,
                quantity=row.reserved_quantity - before,
                warehouse_before=row.warehouse_quantity,
                warehouse_after=row.warehouse_quantity,
                reserved_before=before,
                reserved_after=row.reserved_quantity,
                status=row.status,
            )
        )
    return movements


def deduct_allocations(
    allocations: list[InventoryAllocation],
    rows_by_key: Mapping[WarehouseBatchKey, WarehouseInventory],
) -> list[StockMovement]:
    """Deduct each allocation from its batch, in allocation id order.

    Allocations sharing a batch are applied one after another so every
    movement records the quantities it actually saw.
    """
    assert_inventory_coverage([a.key for a in allocations], rows_by_key)
    movements: list[StockMovement] = []
    for allocation in sorted(allocations, key=lambda a: a.id):
        row = rows_by_key[allocation.key]
        warehouse_before = row.warehouse_quantity
        reserved_before = row.reserved_quantity
        row.deduct_shipped(allocation.allocated_quantity)
        movements.append(
            StockMovement(
                warehouse_inventory_id=row.id,
                warehouse_id=row.warehouse_id,
                batch_id=row.batch_id,
                quantity=allocation.allocated_quantity,
                warehouse_before=warehouse_before,
                warehouse_after=row.warehouse_quantity,
                reserved_before=reserved_before,
                reserved_after=row.reserved_quantity,
                status=row.status,
                allocation_id=allocation.id,
                order_item_id=allocation.order_item_id,
            )
        )
    return movements


def to_updates(
    rows: list[WarehouseInventory],
    status_ids: Mapping[InventoryStatus, str],
) -> list[InventoryUpdate]:
    return [
        InventoryUpdate(
            warehouse_inventory_id=row.id,
            warehouse_quantity=row.warehouse_quantity,
            reserved_quantity=row.reserved_quantity,
            status_id=status_ids[row.status],
        )
        for row in rows
    ]


def reservation_log_entries(
    movements: list[StockMovement],
    *,
    order_id: str,
    order_number: str,
    allocation_ids: Mapping[WarehouseBatchKey, list[str]],
    status_ids: Mapping[InventoryStatus, str],
    user_id: str,
) -> list[ActivityLogEntry]:
    """One "reserve" entry per batch touched by an allocation confirmation."""
    return [
        ActivityLogEntry.create(
            warehouse_inventory_id=m.warehouse_inventory_id,
            action=InventoryAction.RESERVE,
            order_id=order_id,
            status_id=status_ids[m.status],
            previous_quantity=m.reserved_before,
            quantity_change=m.reserved_after - m.reserved_before,
            new_quantity=m.reserved_after,
            performed_by=user_id,
            comments=f"[System] Inventory reserved for order {order_number}",
            source_type=LogSource.ALLOCATION,
            source_ref_id=order_id,
            metadata={
                "batch_id": m.batch_id,
                "warehouse_id": m.warehouse_id,
                "allocation_ids": sorted(allocation_ids.get((m.warehouse_id, m.batch_id), [])),
                "warehouse_quantity_snapshot": m.warehouse_before,
            },
        )
        for m in movements
    ]


def fulfillment_log_entries(
    movements: list[StockMovement],
    *,
    order_id: str,
    order_number: str,
    shipment_id: str,
    fulfillment_ids: Mapping[str, str],
    status_ids: Mapping[InventoryStatus, str],
    user_id: str,
) -> list[ActivityLogEntry]:
    """One "fulfilled" entry per allocation deducted.

    ``fulfillment_ids`` maps order item id to its fulfillment line.
    """
    entries: list[ActivityLogEntry] = []
    for m in movements:
        fulfillment_id = fulfillment_ids.get(m.order_item_id or "")
        entries.append(
            ActivityLogEntry.create(
                warehouse_inventory_id=m.warehouse_inventory_id,
                action=InventoryAction.FULFILLED,
                order_id=order_id,
                status_id=status_ids[m.status],
                previous_quantity=m.warehouse_before,
                quantity_change=-m.quantity,
                new_quantity=m.warehouse_after,
                performed_by=user_id,
                comments=f"[System] Inventory adjusted during fulfillment for order {order_number}",
                source_type=LogSource.FULFILLMENT,
                source_ref_id=fulfillment_id,
                metadata={
                    "batch_id": m.batch_id,
                    "allocation_id": m.allocation_id,
                    "shipment_id": shipment_id,
                    "fulfillment_id": fulfillment_id,
                    "reserved_quantity_before": m.reserved_before,
                    "reserved_quantity_after": m.reserved_after,
                    "warehouse_quantity_snapshot": m.warehouse_before,
                },
            )
        )
    return entries
