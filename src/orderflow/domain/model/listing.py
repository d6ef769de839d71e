"""Read models and query parameters for paginated listings."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class SortOrder(Enum):
    ASC = "ASC"
    DESC = "DESC"


ALLOCATION_SORT_COLUMNS = frozenset(
    {"created_at", "allocated_quantity", "order_number", "status", "warehouse_id"}
)
SHIPMENT_SORT_COLUMNS = frozenset(
    {"created_at", "order_number", "status", "warehouse_id", "delivery_method"}
)


@dataclass(frozen=True)
class PageRequest:
    page: int = 1
    limit: int = 10
    sort_by: str = "created_at"
    sort_order: SortOrder = SortOrder.DESC

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass(frozen=True)
class AllocationFilters:
    status_codes: tuple[str, ...] = ()
    warehouse_ids: tuple[str, ...] = ()
    order_id: str | None = None
    order_number: str | None = None
    keyword: str | None = None  # matches order number or batch id
    created_by: str | None = None
    updated_by: str | None = None
    created_after: datetime | None = None
    created_before: datetime | None = None


@dataclass(frozen=True)
class ShipmentFilters:
    status_codes: tuple[str, ...] = ()
    warehouse_ids: tuple[str, ...] = ()
    delivery_method_ids: tuple[str, ...] = ()
    order_id: str | None = None
    order_number: str | None = None
    keyword: str | None = None  # matches order number or notes
    created_by: str | None = None
    updated_by: str | None = None
    created_after: datetime | None = None
    created_before: datetime | None = None


@dataclass(frozen=True)
class AllocationRow:
    allocation_id: str
    order_id: str
    order_number: str
    order_item_id: str
    warehouse_id: str
    batch_id: str
    allocated_quantity: int
    status: str
    created_by: str | None
    created_at: datetime | None


@dataclass(frozen=True)
class ShipmentRow:
    shipment_id: str
    order_id: str
    order_number: str
    warehouse_id: str
    delivery_method_id: str | None
    delivery_method: str | None
    status: str
    notes: str | None
    created_by: str | None
    created_at: datetime | None
