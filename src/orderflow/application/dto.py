"""Data Transfer Objects — plain containers that cross layer boundaries.

Requests carry caller input into handlers; results are JSON-compatible via
``dataclasses.asdict`` and never expose domain objects.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# --- Requests ----------------------------------------------------------------


@dataclass(frozen=True)
class FulfillmentRequest:
    """Input: ship the given allocations of an order."""

    order_id: str
    allocation_ids: list[str]
    shipment_notes: str | None = None
    fulfillment_notes: str | None = None
    shipment_batch_note: str | None = None


@dataclass(frozen=True)
class FulfillmentConfirmationRequest:
    """Input: target status codes for finalizing an order's shipment."""

    order_id: str
    order_status: str
    allocation_status: str
    shipment_status: str
    fulfillment_status: str


@dataclass(frozen=True)
class ManualCompletionRequest:
    """Input: target status codes for a pickup or hand-delivered shipment."""

    shipment_id: str
    order_status: str
    shipment_status: str
    fulfillment_status: str


# --- Allocation results ------------------------------------------------------


@dataclass(frozen=True)
class AllocationResult:
    order_id: str
    allocation_ids: list[str]


@dataclass(frozen=True)
class ItemCoverageDTO:
    order_item_id: str
    quantity_ordered: int
    allocated_quantity: int
    outcome: str  # matched / partial / unmatched
    status: str


@dataclass(frozen=True)
class WarehouseUpdateDTO:
    warehouse_inventory_id: str
    warehouse_id: str
    batch_id: str
    warehouse_quantity: int
    reserved_quantity: int
    status: str


@dataclass(frozen=True)
class AllocationConfirmationResult:
    order_id: str
    order_status: str
    order_advanced: bool
    items: list[ItemCoverageDTO]
    confirmed_allocation_ids: list[str]
    partial_allocation_ids: list[str]
    warehouse_updates: list[WarehouseUpdateDTO]
    log_ids: list[str]


@dataclass(frozen=True)
class ReviewHeader:
    order_id: str
    order_number: str
    category: str
    status: str
    note: str | None


@dataclass(frozen=True)
class ReviewItem:
    order_item_id: str
    sku_id: str | None
    packaging_material_id: str | None
    quantity_ordered: int
    item_status: str
    allocation_id: str
    warehouse_id: str
    batch_id: str
    allocated_quantity: int
    allocation_status: str


@dataclass(frozen=True)
class AllocationReview:
    header: ReviewHeader
    items: list[ReviewItem]


# --- Fulfillment results -----------------------------------------------------


@dataclass(frozen=True)
class FulfillmentLineDTO:
    fulfillment_id: str
    order_item_id: str
    quantity_fulfilled: int
    status: str
    allocation_ids: list[str]


@dataclass(frozen=True)
class ShipmentBatchDTO:
    fulfillment_id: str
    warehouse_id: str
    batch_id: str
    quantity_shipped: int


@dataclass(frozen=True)
class FulfillmentResult:
    order_id: str
    shipment_id: str
    warehouse_id: str
    delivery_method_id: str | None
    order_status: str
    allocation_ids: list[str]
    allocation_status: str
    fulfillments: list[FulfillmentLineDTO]
    shipment_batches: list[ShipmentBatchDTO]


@dataclass(frozen=True)
class FulfillmentConfirmationResult:
    order_id: str
    order_number: str
    shipment_id: str
    order_status: str
    allocation_status: str
    shipment_status: str
    fulfillment_status: str
    order_item_ids: list[str]
    allocation_ids: list[str]
    fulfillment_ids: list[str]
    warehouse_updates: list[WarehouseUpdateDTO]
    log_ids: list[str]


@dataclass(frozen=True)
class ManualCompletionResult:
    order_id: str
    shipment_id: str
    delivery_method: str
    order_status: str
    allocation_status: str
    shipment_status: str
    fulfillment_status: str
    order_item_ids: list[str]
    allocation_ids: list[str]
    fulfillment_ids: list[str]


# --- Listings ----------------------------------------------------------------


@dataclass(frozen=True)
class Pagination:
    page: int
    limit: int
    total_records: int
    total_pages: int


@dataclass(frozen=True)
class PageResult:
    data: list[dict[str, Any]] = field(default_factory=list)
    pagination: Pagination = field(default_factory=lambda: Pagination(1, 10, 0, 0))
