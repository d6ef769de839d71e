"""Domain service: allocation coverage per order item.

Compares what is allocated against what was ordered.  An item is matched
when its active allocations cover the ordered quantity, partial when they
cover some of it, and unmatched (backordered) when nothing is allocated.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from enum import Enum

from orderflow.domain.model.allocation import InventoryAllocation
from orderflow.domain.model.order import OrderItem
from orderflow.domain.model.status import AllocationStatus, OrderStatus


class CoverageOutcome(Enum):
    MATCHED = "matched"
    PARTIAL = "partial"
    UNMATCHED = "unmatched"

    @property
    def item_status(self) -> OrderStatus:
        return _ITEM_STATUS[self]

    @property
    def allocation_status(self) -> AllocationStatus:
        if self is CoverageOutcome.MATCHED:
            return AllocationStatus.CONFIRMED
        return AllocationStatus.PARTIAL


_ITEM_STATUS = {
    CoverageOutcome.MATCHED: OrderStatus.ALLOCATED,
    CoverageOutcome.PARTIAL: OrderStatus.PARTIALLY_ALLOCATED,
    CoverageOutcome.UNMATCHED: OrderStatus.BACKORDERED,
}


@dataclass(frozen=True)
class ItemCoverage:
    order_item_id: str
    quantity_ordered: int
    allocated_quantity: int
    outcome: CoverageOutcome

    @property
    def is_matched(self) -> bool:
        return self.outcome is CoverageOutcome.MATCHED


def allocated_by_item(allocations: list[InventoryAllocation]) -> dict[str, int]:
    totals: dict[str, int] = defaultdict(int)
    for allocation in allocations:
        if allocation.is_active:
            totals[allocation.order_item_id] += allocation.allocated_quantity
    return dict(totals)


def classify(quantity_ordered: int, allocated: int) -> CoverageOutcome:
    if allocated >= quantity_ordered:
        return CoverageOutcome.MATCHED
    if allocated > 0:
        return CoverageOutcome.PARTIAL
    return CoverageOutcome.UNMATCHED


def assess_coverage(
    items: list[OrderItem], allocations: list[InventoryAllocation]
) -> list[ItemCoverage]:
    totals = allocated_by_item(allocations)
    return [
        ItemCoverage(
            order_item_id=item.id,
            quantity_ordered=item.quantity_ordered,
            allocated_quantity=totals.get(item.id, 0),
            outcome=classify(item.quantity_ordered, totals.get(item.id, 0)),
        )
        for item in items
    ]


def is_fully_allocated(
    items: list[OrderItem], allocations: list[InventoryAllocation]
) -> bool:
    return all(c.is_matched for c in assess_coverage(items, allocations))
