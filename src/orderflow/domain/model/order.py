"""Order aggregate as seen by the allocation and fulfillment engine.

Orders are created elsewhere; this engine only reads them and advances their
status.  Order items share the order status vocabulary.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from orderflow.domain.exceptions import ValidationError
from orderflow.domain.model.status import OrderStatus


class OrderCategory(Enum):
    SALES = "sales"
    PURCHASE = "purchase"
    TRANSFER = "transfer"
    MANUFACTURING = "manufacturing"
    OTHER = "other"


# Items may be allocated once confirmed and again while short of stock;
# allocated items simply have no demand left.
ALLOCATABLE_ITEM_STATUSES = frozenset(
    {
        OrderStatus.CONFIRMED,
        OrderStatus.ALLOCATING,
        OrderStatus.PARTIALLY_ALLOCATED,
        OrderStatus.ALLOCATED,
        OrderStatus.BACKORDERED,
    }
)


@dataclass
class OrderItem:
    """A line of an order, demanding either a SKU or a packaging material."""

    id: str
    order_id: str
    quantity_ordered: int
    status: OrderStatus
    sku_id: str | None = None
    packaging_material_id: str | None = None

    @property
    def product_key(self) -> str:
        """Key used to match the item against candidate batches."""
        if self.sku_id:
            return f"sku:{self.sku_id}"
        if self.packaging_material_id:
            return f"material:{self.packaging_material_id}"
        raise ValidationError(
            f"Order item {self.id} references neither a SKU nor a packaging material",
            context={"order_item_id": self.id},
        )

    @property
    def is_allocatable(self) -> bool:
        return self.status in ALLOCATABLE_ITEM_STATUSES


@dataclass
class Order:
    """Order header with its items.

    ``items`` is populated by repositories that load the full aggregate; the
    header alone is enough for status transitions.
    """

    id: str
    order_number: str
    category: OrderCategory
    status: OrderStatus
    note: str | None = None
    delivery_method_id: str | None = None  # sales orders only
    items: list[OrderItem] = field(default_factory=list)

    def advance_to(self, target: OrderStatus) -> None:
        self.status.ensure_transition(target, f"order {self.order_number}")
        self.status = target

    def ineligible_items(self) -> list[OrderItem]:
        return [item for item in self.items if not item.is_allocatable]

    def shipping_delivery_method_id(self) -> str | None:
        """Sales orders carry a delivery method; other categories ship without one."""
        if self.category is OrderCategory.SALES:
            return self.delivery_method_id
        return None


def items_to_advance(items: list[OrderItem], target: OrderStatus) -> list[OrderItem]:
    """Items that must move to ``target``; items already there are skipped.

    Raises ConflictError if any remaining item cannot make the move.
    """
    pending = [item for item in items if item.status is not target]
    for item in pending:
        item.status.ensure_transition(target, f"order item {item.id}")
    return pending
