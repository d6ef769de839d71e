"""Status vocabularies for every entity the engine moves through its lifecycle.

Each vocabulary is a closed ``Enum`` whose legal transitions are precomputed
into a table, so checking a move is a single lookup.  The persisted rows carry
opaque status ids; translating between the two is the job of
``StatusResolver``.
"""

from __future__ import annotations

from enum import Enum

from orderflow.domain.exceptions import ConflictError, NotFoundError


class StatusEntity(Enum):
    ORDER = "order"
    ORDER_ITEM = "order_item"
    ALLOCATION = "allocation"
    SHIPMENT = "shipment"
    FULFILLMENT = "fulfillment"
    INVENTORY = "inventory"


class StatusCode(Enum):
    """Base for status vocabularies.  Subclasses register a transition table."""

    @property
    def is_final(self) -> bool:
        return not _TRANSITIONS[type(self)][self]

    def can_transition_to(self, target: StatusCode) -> bool:
        return target in _TRANSITIONS[type(self)][self]

    def ensure_transition(self, target: StatusCode, label: str) -> None:
        """Raise ConflictError unless ``self -> target`` is legal."""
        if not self.can_transition_to(target):
            raise ConflictError(
                f"Cannot change {label} status from {self.value} to {target.value}",
                context={"current": self.value, "target": target.value},
            )


# --- Orders (shared by order items) ------------------------------------------


class OrderStatusCategory(Enum):
    DRAFT = "draft"
    CONFIRMATION = "confirmation"
    PROCESSING = "processing"
    COMPLETION = "completion"
    RETURN = "return"


class OrderStatus(StatusCode):
    PENDING = "ORDER_PENDING"
    EDITED = "ORDER_EDITED"
    AWAITING_REVIEW = "ORDER_AWAITING_REVIEW"
    CONFIRMED = "ORDER_CONFIRMED"
    ALLOCATING = "ORDER_ALLOCATING"
    PARTIALLY_ALLOCATED = "ORDER_PARTIALLY_ALLOCATED"
    ALLOCATED = "ORDER_ALLOCATED"
    BACKORDERED = "ORDER_BACKORDERED"
    PROCESSING = "ORDER_PROCESSING"
    PARTIALLY_FULFILLED = "ORDER_PARTIALLY_FULFILLED"
    SHIPPED = "ORDER_SHIPPED"
    OUT_FOR_DELIVERY = "ORDER_OUT_FOR_DELIVERY"
    FULFILLED = "ORDER_FULFILLED"
    DELIVERED = "ORDER_DELIVERED"
    CANCELED = "ORDER_CANCELED"
    RETURN_REQUESTED = "RETURN_REQUESTED"
    RETURN_COMPLETED = "RETURN_COMPLETED"

    @property
    def category(self) -> OrderStatusCategory:
        return _ORDER_CATEGORY[self]


# Sequence inside each category defines "forward".
_ORDER_SEQUENCES: dict[OrderStatusCategory, tuple[OrderStatus, ...]] = {
    OrderStatusCategory.DRAFT: (OrderStatus.PENDING, OrderStatus.EDITED),
    OrderStatusCategory.CONFIRMATION: (
        OrderStatus.AWAITING_REVIEW,
        OrderStatus.CONFIRMED,
    ),
    OrderStatusCategory.PROCESSING: (
        OrderStatus.ALLOCATING,
        OrderStatus.PARTIALLY_ALLOCATED,
        OrderStatus.ALLOCATED,
        OrderStatus.BACKORDERED,
        OrderStatus.PROCESSING,
        OrderStatus.PARTIALLY_FULFILLED,
        OrderStatus.SHIPPED,
        OrderStatus.OUT_FOR_DELIVERY,
    ),
    OrderStatusCategory.COMPLETION: (
        OrderStatus.FULFILLED,
        OrderStatus.DELIVERED,
        OrderStatus.CANCELED,
    ),
    OrderStatusCategory.RETURN: (
        OrderStatus.RETURN_REQUESTED,
        OrderStatus.RETURN_COMPLETED,
    ),
}

_ORDER_CATEGORY: dict[OrderStatus, OrderStatusCategory] = {
    status: category
    for category, sequence in _ORDER_SEQUENCES.items()
    for status in sequence
}

ORDER_FINAL_STATUSES = frozenset(
    {OrderStatus.DELIVERED, OrderStatus.CANCELED, OrderStatus.RETURN_COMPLETED}
)

# Short orders and items return to ALLOCATING when stock is allocated again.
ORDER_REALLOCATABLE_STATUSES = frozenset(
    {OrderStatus.PARTIALLY_ALLOCATED, OrderStatus.BACKORDERED}
)


def _build_order_transitions() -> dict[OrderStatus, frozenset[OrderStatus]]:
    categories = list(OrderStatusCategory)
    table: dict[OrderStatus, frozenset[OrderStatus]] = {}
    for status in OrderStatus:
        if status in ORDER_FINAL_STATUSES:
            table[status] = frozenset()
            continue
        category = status.category
        sequence = _ORDER_SEQUENCES[category]
        allowed = set(sequence[sequence.index(status) + 1:])
        for later in categories[categories.index(category) + 1:]:
            allowed.update(_ORDER_SEQUENCES[later])
        if category is not OrderStatusCategory.RETURN:
            allowed.add(OrderStatus.CANCELED)
        else:
            allowed.discard(OrderStatus.CANCELED)
        if status in ORDER_REALLOCATABLE_STATUSES:
            allowed.add(OrderStatus.ALLOCATING)
        table[status] = frozenset(allowed)
    return table


# --- Allocations -------------------------------------------------------------


class AllocationStatus(StatusCode):
    PENDING = "ALLOC_PENDING"
    CONFIRMED = "ALLOC_CONFIRMED"
    PARTIAL = "ALLOC_PARTIAL"
    FULFILLING = "ALLOC_FULFILLING"
    COMPLETED = "ALLOC_COMPLETED"
    CANCELED = "ALLOC_CANCELED"

    @property
    def is_active(self) -> bool:
        """Anything not canceled counts against the item's ordered quantity."""
        return self is not AllocationStatus.CANCELED

    @property
    def holds_reservation(self) -> bool:
        """Reserved stock is released once shipped or canceled."""
        return self.is_active and self is not AllocationStatus.COMPLETED


_ALLOCATION_TRANSITIONS: dict[AllocationStatus, frozenset[AllocationStatus]] = {
    AllocationStatus.PENDING: frozenset(
        {AllocationStatus.CONFIRMED, AllocationStatus.PARTIAL, AllocationStatus.CANCELED}
    ),
    AllocationStatus.PARTIAL: frozenset(
        {AllocationStatus.CONFIRMED, AllocationStatus.PARTIAL, AllocationStatus.CANCELED}
    ),
    AllocationStatus.CONFIRMED: frozenset(
        {AllocationStatus.FULFILLING, AllocationStatus.CANCELED}
    ),
    AllocationStatus.FULFILLING: frozenset(
        {AllocationStatus.COMPLETED, AllocationStatus.CANCELED}
    ),
    AllocationStatus.COMPLETED: frozenset(),
    AllocationStatus.CANCELED: frozenset(),
}


# --- Shipments and fulfillments ----------------------------------------------


class ShipmentStatus(StatusCode):
    PENDING = "SHIPMENT_PENDING"
    READY = "SHIPMENT_READY"
    SHIPPED = "SHIPMENT_SHIPPED"
    IN_TRANSIT = "SHIPMENT_IN_TRANSIT"
    DELIVERED = "SHIPMENT_DELIVERED"
    CANCELED = "SHIPMENT_CANCELED"


class FulfillmentStatus(StatusCode):
    PENDING = "FULFILLMENT_PENDING"
    PICKING = "FULFILLMENT_PICKING"
    PACKED = "FULFILLMENT_PACKED"
    SHIPPED = "FULFILLMENT_SHIPPED"
    DELIVERED = "FULFILLMENT_DELIVERED"
    CANCELED = "FULFILLMENT_CANCELED"


def _forward_only(
    sequence: tuple[StatusCode, ...], canceled: StatusCode
) -> dict[StatusCode, frozenset[StatusCode]]:
    """Forward moves (skipping allowed) plus cancellation; the last step is final."""
    table: dict[StatusCode, frozenset[StatusCode]] = {}
    for index, status in enumerate(sequence[:-1]):
        table[status] = frozenset(sequence[index + 1:]) | {canceled}
    table[sequence[-1]] = frozenset()
    table[canceled] = frozenset()
    return table


# --- Warehouse inventory flag ------------------------------------------------


class InventoryStatus(StatusCode):
    IN_STOCK = "INVENTORY_IN_STOCK"
    OUT_OF_STOCK = "INVENTORY_OUT_OF_STOCK"


_TRANSITIONS: dict[type[StatusCode], dict] = {
    OrderStatus: _build_order_transitions(),
    AllocationStatus: _ALLOCATION_TRANSITIONS,
    ShipmentStatus: _forward_only(
        (
            ShipmentStatus.PENDING,
            ShipmentStatus.READY,
            ShipmentStatus.SHIPPED,
            ShipmentStatus.IN_TRANSIT,
            ShipmentStatus.DELIVERED,
        ),
        ShipmentStatus.CANCELED,
    ),
    FulfillmentStatus: _forward_only(
        (
            FulfillmentStatus.PENDING,
            FulfillmentStatus.PICKING,
            FulfillmentStatus.PACKED,
            FulfillmentStatus.SHIPPED,
            FulfillmentStatus.DELIVERED,
        ),
        FulfillmentStatus.CANCELED,
    ),
    InventoryStatus: {
        InventoryStatus.IN_STOCK: frozenset({InventoryStatus.OUT_OF_STOCK}),
        InventoryStatus.OUT_OF_STOCK: frozenset({InventoryStatus.IN_STOCK}),
    },
}

VOCABULARIES: dict[StatusEntity, type[StatusCode]] = {
    StatusEntity.ORDER: OrderStatus,
    StatusEntity.ORDER_ITEM: OrderStatus,
    StatusEntity.ALLOCATION: AllocationStatus,
    StatusEntity.SHIPMENT: ShipmentStatus,
    StatusEntity.FULFILLMENT: FulfillmentStatus,
    StatusEntity.INVENTORY: InventoryStatus,
}


def parse_status(entity: StatusEntity, code: str | StatusCode) -> StatusCode:
    """Turn a status code string into the entity's enum member."""
    vocabulary = VOCABULARIES[entity]
    if isinstance(code, vocabulary):
        return code
    try:
        return vocabulary(code)
    except ValueError:
        raise NotFoundError(
            f"Unknown {entity.value} status code '{code}'",
            context={"entity": entity.value, "code": str(code)},
        ) from None
