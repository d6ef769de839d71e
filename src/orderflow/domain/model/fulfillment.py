"""OrderFulfillment — quantity of an order item handed to a shipment.

There is exactly one row per (order item, shipment).  Repeated fulfillment
events against the same pair are merged, not duplicated; see
``orderflow.domain.service.merge_policy``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from orderflow.domain.model.status import FulfillmentStatus


@dataclass
class OrderFulfillment:
    id: str
    order_id: str
    order_item_id: str
    shipment_id: str
    quantity_fulfilled: int
    status: FulfillmentStatus
    allocation_ids: list[str] = field(default_factory=list)
    fulfillment_notes: str | None = None
    fulfilled_by: str | None = None
    updated_by: str | None = None
    updated_at: datetime | None = None

    def advance_to(self, target: FulfillmentStatus) -> None:
        self.status.ensure_transition(target, f"fulfillment {self.id}")
        self.status = target


@dataclass(frozen=True)
class FulfillmentDraft:
    """Incoming fulfillment line; merged into an existing row on conflict."""

    order_item_id: str
    shipment_id: str
    quantity_fulfilled: int
    status_id: str
    allocation_ids: tuple[str, ...]
    fulfillment_notes: str | None
    fulfilled_by: str
    updated_by: str

    def as_row(self) -> dict:
        """Column values subject to the merge policy; allocation links are stored apart."""
        return {
            "order_item_id": self.order_item_id,
            "shipment_id": self.shipment_id,
            "quantity_fulfilled": self.quantity_fulfilled,
            "status_id": self.status_id,
            "fulfillment_notes": self.fulfillment_notes,
            "fulfilled_by": self.fulfilled_by,
            "updated_by": self.updated_by,
        }
