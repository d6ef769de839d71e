"""Domain service: Batch Allocation Strategy.

Pure computation, no I/O.  Given what each order item still needs and the
batches that could supply it, decide which batches feed which items.

Batches are consumed greedily in strategy order:
  FEFO — soonest expiry first
  FIFO — earliest receipt first
Batches without the relevant date go last; ties fall back to the batch id so
the result is deterministic.  A batch shared by several items is drawn down
in memory as the item loop consumes it, so one call never promises the same
unit twice.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum

from orderflow.domain.exceptions import ValidationError
from orderflow.domain.model.inventory import BatchCandidate, WarehouseBatchKey


class AllocationStrategy(Enum):
    FEFO = "fefo"
    FIFO = "fifo"

    @staticmethod
    def parse(value: str | AllocationStrategy) -> AllocationStrategy:
        if isinstance(value, AllocationStrategy):
            return value
        try:
            return AllocationStrategy(str(value).strip().lower())
        except ValueError:
            raise ValidationError(
                f"Unknown allocation strategy '{value}' (expected fefo or fifo)"
            ) from None


@dataclass(frozen=True)
class ItemDemand:
    """Quantity an order item still needs, keyed by its product."""

    order_item_id: str
    product_key: str
    quantity: int


@dataclass(frozen=True)
class BatchAssignment:
    order_item_id: str
    warehouse_inventory_id: str
    warehouse_id: str
    batch_id: str
    quantity: int


@dataclass
class ItemAllocationPlan:
    order_item_id: str
    requested: int
    assignments: list[BatchAssignment] = field(default_factory=list)

    @property
    def allocated_total(self) -> int:
        return sum(a.quantity for a in self.assignments)

    @property
    def remaining(self) -> int:
        return max(0, self.requested - self.allocated_total)

    @property
    def fulfilled(self) -> bool:
        return self.remaining == 0


def sort_batches(
    batches: list[BatchCandidate], strategy: AllocationStrategy
) -> list[BatchCandidate]:
    """Return batches in the order the strategy consumes them."""

    def sort_key(batch: BatchCandidate) -> tuple[bool, date, str]:
        when = batch.expiry_date if strategy is AllocationStrategy.FEFO else batch.inbound_date
        return (when is None, when or date.min, batch.batch_id)

    return sorted(batches, key=sort_key)


def allocate_batches(
    demands: list[ItemDemand],
    batches: list[BatchCandidate],
    strategy: AllocationStrategy,
    *,
    exclude_expired: bool = False,
    today: date | None = None,
) -> list[ItemAllocationPlan]:
    """Assign batches to every demand; one plan per demand, in input order."""
    if exclude_expired:
        cutoff = today or date.today()
        batches = [
            b for b in batches if b.expiry_date is None or b.expiry_date >= cutoff
        ]

    remaining: dict[WarehouseBatchKey, int] = {}
    by_product: dict[str, list[BatchCandidate]] = {}
    for batch in sort_batches(batches, strategy):
        if batch.available_quantity <= 0 or batch.key in remaining:
            continue
        remaining[batch.key] = batch.available_quantity
        by_product.setdefault(batch.product_key, []).append(batch)

    plans: list[ItemAllocationPlan] = []
    for demand in demands:
        if demand.quantity < 0:
            raise ValidationError(
                f"Demand for order item {demand.order_item_id} cannot be negative"
            )
        plan = ItemAllocationPlan(order_item_id=demand.order_item_id, requested=demand.quantity)
        for batch in by_product.get(demand.product_key, []):
            needed = plan.remaining
            if needed == 0:
                break
            take = min(remaining[batch.key], needed)
            if take <= 0:
                continue
            remaining[batch.key] -= take
            plan.assignments.append(
                BatchAssignment(
                    order_item_id=demand.order_item_id,
                    warehouse_inventory_id=batch.warehouse_inventory_id,
                    warehouse_id=batch.warehouse_id,
                    batch_id=batch.batch_id,
                    quantity=take,
                )
            )
        plans.append(plan)
    return plans
