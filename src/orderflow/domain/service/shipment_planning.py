"""Domain service: turning confirmed allocations into a shipment plan.

Checks the allocations picked for a shipment, then derives the fulfillment
lines (one per order item) and the shipment batch links (one per order item
and batch) from them.
"""

from __future__ import annotations

from collections import defaultdict

from orderflow.domain.exceptions import NotFoundError, ValidationError
from orderflow.domain.model.allocation import InventoryAllocation
from orderflow.domain.model.fulfillment import FulfillmentDraft
from orderflow.domain.model.shipment import ShipmentBatch


def assert_allocations_valid(
    allocations: list[InventoryAllocation], requested_ids: list[str]
) -> None:
    """Every requested allocation must belong to the order and be well formed."""
    if not allocations:
        raise NotFoundError("No allocations found for this order.")

    found = {a.id for a in allocations}
    missing = sorted(set(requested_ids) - found)
    if missing:
        raise ValidationError(
            f"Allocations do not belong to this order: {', '.join(missing)}",
            context={"allocation_ids": missing},
        )

    for allocation in allocations:
        if not allocation.warehouse_id or not allocation.batch_id:
            raise ValidationError(
                f"Allocation {allocation.id} is missing its warehouse or batch",
                context={"allocation_id": allocation.id},
            )
        if allocation.allocated_quantity <= 0:
            raise ValidationError(
                f"Allocation {allocation.id} has no quantity to fulfill",
                context={"allocation_id": allocation.id},
            )


def assert_single_warehouse(allocations: list[InventoryAllocation]) -> str:
    """Return the one warehouse all allocations draw from."""
    warehouses = sorted({a.warehouse_id for a in allocations})
    if len(warehouses) != 1:
        raise ValidationError(
            "All allocations in one shipment must come from the same warehouse "
            f"(found {', '.join(warehouses)})",
            context={"warehouse_ids": warehouses},
        )
    return warehouses[0]


def build_fulfillment_drafts(
    allocations: list[InventoryAllocation],
    *,
    shipment_id: str,
    status_id: str,
    user_id: str,
    notes: str | None = None,
) -> list[FulfillmentDraft]:
    quantities: dict[str, int] = defaultdict(int)
    allocation_ids: dict[str, list[str]] = defaultdict(list)
    for allocation in allocations:
        quantities[allocation.order_item_id] += allocation.allocated_quantity
        allocation_ids[allocation.order_item_id].append(allocation.id)

    return [
        FulfillmentDraft(
            order_item_id=item_id,
            shipment_id=shipment_id,
            quantity_fulfilled=quantity,
            status_id=status_id,
            allocation_ids=tuple(allocation_ids[item_id]),
            fulfillment_notes=notes,
            fulfilled_by=user_id,
            updated_by=user_id,
        )
        for item_id, quantity in quantities.items()
    ]


def build_shipment_batches(
    allocations: list[InventoryAllocation],
    *,
    shipment_id: str,
    fulfillment_ids: dict[str, str],
    user_id: str,
    notes: str | None = None,
) -> list[ShipmentBatch]:
    """Link each (order item, batch) consumed to its fulfillment line.

    ``fulfillment_ids`` maps order item id to the fulfillment line id.
    """
    quantities: dict[tuple[str, str, str], int] = defaultdict(int)
    for allocation in allocations:
        quantities[
            (allocation.order_item_id, allocation.warehouse_id, allocation.batch_id)
        ] += allocation.allocated_quantity

    batches: list[ShipmentBatch] = []
    for (item_id, warehouse_id, batch_id), quantity in quantities.items():
        fulfillment_id = fulfillment_ids.get(item_id)
        if fulfillment_id is None:
            raise ValidationError(
                f"No fulfillment line was recorded for order item {item_id}",
                context={"order_item_id": item_id, "shipment_id": shipment_id},
            )
        batches.append(
            ShipmentBatch(
                shipment_id=shipment_id,
                fulfillment_id=fulfillment_id,
                warehouse_id=warehouse_id,
                batch_id=batch_id,
                quantity_shipped=quantity,
                notes=notes,
                created_by=user_id,
            )
        )
    return batches
