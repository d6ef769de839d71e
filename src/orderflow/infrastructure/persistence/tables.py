"""ORM tables.

Orders, items, batches, warehouse stock and delivery methods are owned by
other parts of the system; this engine reads them and writes statuses and
quantities.  Allocations, shipments, fulfillments and the activity log are
written here.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from orderflow.infrastructure.persistence.database import Base


def new_id() -> str:
    return str(uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# --- Reference data ----------------------------------------------------------


class StatusRow(Base):
    """One row per (entity, code) of every status vocabulary."""

    __tablename__ = "statuses"
    __table_args__ = (UniqueConstraint("entity", "code", name="uq_statuses_entity_code"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    entity: Mapped[str] = mapped_column(String(32), nullable=False)
    code: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str | None] = mapped_column(String(128))


class DeliveryMethodRow(Base):
    __tablename__ = "delivery_methods"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    code: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    name: Mapped[str | None] = mapped_column(String(128))


class BatchRow(Base):
    """A lot of either a SKU or a packaging material."""

    __tablename__ = "batches"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    lot_number: Mapped[str | None] = mapped_column(String(64))
    sku_id: Mapped[str | None] = mapped_column(String(36), index=True)
    packaging_material_id: Mapped[str | None] = mapped_column(String(36), index=True)
    expiry_date: Mapped[date | None] = mapped_column(Date)


# --- Orders ------------------------------------------------------------------


class OrderRow(Base):
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    order_number: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    status_id: Mapped[str] = mapped_column(ForeignKey("statuses.id"), nullable=False)
    note: Mapped[str | None] = mapped_column(Text)
    delivery_method_id: Mapped[str | None] = mapped_column(ForeignKey("delivery_methods.id"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    updated_by: Mapped[str | None] = mapped_column(String(64))


class OrderItemRow(Base):
    __tablename__ = "order_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    order_id: Mapped[str] = mapped_column(ForeignKey("orders.id"), nullable=False, index=True)
    sku_id: Mapped[str | None] = mapped_column(String(36))
    packaging_material_id: Mapped[str | None] = mapped_column(String(36))
    quantity_ordered: Mapped[int] = mapped_column(Integer, nullable=False)
    status_id: Mapped[str] = mapped_column(ForeignKey("statuses.id"), nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    updated_by: Mapped[str | None] = mapped_column(String(64))


# --- Stock -------------------------------------------------------------------


class WarehouseInventoryRow(Base):
    __tablename__ = "warehouse_inventory"
    __table_args__ = (
        UniqueConstraint("warehouse_id", "batch_id", name="uq_warehouse_inventory_batch"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    warehouse_id: Mapped[str] = mapped_column(String(36), nullable=False)
    batch_id: Mapped[str] = mapped_column(ForeignKey("batches.id"), nullable=False)
    warehouse_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reserved_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status_id: Mapped[str] = mapped_column(ForeignKey("statuses.id"), nullable=False)
    inbound_date: Mapped[date | None] = mapped_column(Date)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    updated_by: Mapped[str | None] = mapped_column(String(64))


class InventoryAllocationRow(Base):
    __tablename__ = "inventory_allocations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    order_id: Mapped[str] = mapped_column(ForeignKey("orders.id"), nullable=False, index=True)
    order_item_id: Mapped[str] = mapped_column(ForeignKey("order_items.id"), nullable=False)
    warehouse_id: Mapped[str] = mapped_column(String(36), nullable=False)
    batch_id: Mapped[str] = mapped_column(ForeignKey("batches.id"), nullable=False)
    allocated_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    status_id: Mapped[str] = mapped_column(ForeignKey("statuses.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    created_by: Mapped[str | None] = mapped_column(String(64))
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    updated_by: Mapped[str | None] = mapped_column(String(64))


# --- Shipping ----------------------------------------------------------------


class OutboundShipmentRow(Base):
    __tablename__ = "outbound_shipments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    order_id: Mapped[str] = mapped_column(ForeignKey("orders.id"), nullable=False, index=True)
    warehouse_id: Mapped[str] = mapped_column(String(36), nullable=False)
    delivery_method_id: Mapped[str | None] = mapped_column(ForeignKey("delivery_methods.id"))
    status_id: Mapped[str] = mapped_column(ForeignKey("statuses.id"), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    created_by: Mapped[str | None] = mapped_column(String(64))
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    updated_by: Mapped[str | None] = mapped_column(String(64))


class OrderFulfillmentRow(Base):
    __tablename__ = "order_fulfillments"
    __table_args__ = (
        UniqueConstraint("order_item_id", "shipment_id", name="uq_order_fulfillments_item_shipment"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    order_item_id: Mapped[str] = mapped_column(ForeignKey("order_items.id"), nullable=False)
    shipment_id: Mapped[str] = mapped_column(ForeignKey("outbound_shipments.id"), nullable=False)
    quantity_fulfilled: Mapped[int] = mapped_column(Integer, nullable=False)
    status_id: Mapped[str] = mapped_column(ForeignKey("statuses.id"), nullable=False)
    fulfillment_notes: Mapped[str | None] = mapped_column(Text)
    fulfilled_by: Mapped[str | None] = mapped_column(String(64))
    fulfilled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    updated_by: Mapped[str | None] = mapped_column(String(64))


class FulfillmentAllocationRow(Base):
    """Which allocations fed a fulfillment line; accumulates as a set."""

    __tablename__ = "fulfillment_allocations"

    fulfillment_id: Mapped[str] = mapped_column(
        ForeignKey("order_fulfillments.id"), primary_key=True
    )
    allocation_id: Mapped[str] = mapped_column(
        ForeignKey("inventory_allocations.id"), primary_key=True
    )


class ShipmentBatchRow(Base):
    __tablename__ = "shipment_batches"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    shipment_id: Mapped[str] = mapped_column(
        ForeignKey("outbound_shipments.id"), nullable=False, index=True
    )
    fulfillment_id: Mapped[str] = mapped_column(ForeignKey("order_fulfillments.id"), nullable=False)
    warehouse_id: Mapped[str] = mapped_column(String(36), nullable=False)
    batch_id: Mapped[str] = mapped_column(ForeignKey("batches.id"), nullable=False)
    quantity_shipped: Mapped[int] = mapped_column(Integer, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    created_by: Mapped[str | None] = mapped_column(String(64))


# --- Audit -------------------------------------------------------------------


class InventoryActivityLogRow(Base):
    """Append-only; rows are never updated or deleted."""

    __tablename__ = "inventory_activity_log"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    warehouse_inventory_id: Mapped[str] = mapped_column(
        ForeignKey("warehouse_inventory.id"), nullable=False, index=True
    )
    inventory_action: Mapped[str] = mapped_column(String(32), nullable=False)
    order_id: Mapped[str] = mapped_column(ForeignKey("orders.id"), nullable=False)
    status_id: Mapped[str] = mapped_column(ForeignKey("statuses.id"), nullable=False)
    previous_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity_change: Mapped[int] = mapped_column(Integer, nullable=False)
    new_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    performed_by: Mapped[str] = mapped_column(String(64), nullable=False)
    comments: Mapped[str | None] = mapped_column(Text)
    source_type: Mapped[str] = mapped_column(String(32), nullable=False)
    source_ref_id: Mapped[str | None] = mapped_column(String(36))
    metadata_json: Mapped[dict] = mapped_column("metadata", JSON, nullable=False, default=dict)
    checksum: Mapped[str] = mapped_column(String(64), nullable=False)
    status_effective_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
