"""Outbound shipments and the batch sources they consume."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from orderflow.domain.model.status import ShipmentStatus


@dataclass
class OutboundShipment:
    id: str
    order_id: str
    warehouse_id: str
    status: ShipmentStatus
    delivery_method_id: str | None = None
    delivery_method_code: str | None = None
    notes: str | None = None
    created_by: str | None = None
    created_at: datetime | None = None

    def advance_to(self, target: ShipmentStatus) -> None:
        self.status.ensure_transition(target, f"shipment {self.id}")
        self.status = target


@dataclass(frozen=True)
class NewShipment:
    """Input for inserting a shipment row."""

    order_id: str
    warehouse_id: str
    delivery_method_id: str | None
    status_id: str
    notes: str | None
    created_by: str


@dataclass(frozen=True)
class ShipmentBatch:
    """Traceability link: which batch fed which fulfillment line of a shipment."""

    shipment_id: str
    fulfillment_id: str
    warehouse_id: str
    batch_id: str
    quantity_shipped: int
    notes: str | None = None
    created_by: str | None = None
