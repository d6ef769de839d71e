"""Helpers for tests that run against an in-memory SQLite database.

Orders, batches and stock are owned by other services in production; these
helpers insert them directly so the SQL repositories have something to read.
"""

from __future__ import annotations

from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from orderflow.domain.model.status import StatusEntity
from orderflow.domain.service.status_resolver import StatusResolver
from orderflow.infrastructure.persistence.database import (
    create_db_engine,
    create_schema,
    create_session_factory,
    session_scope,
)
from orderflow.infrastructure.persistence.sql_status_repository import (
    SqlStatusRepository,
    seed_statuses,
)
from orderflow.infrastructure.persistence.tables import (
    BatchRow,
    DeliveryMethodRow,
    OrderItemRow,
    OrderRow,
    StatusRow,
    WarehouseInventoryRow,
)


def create_test_database(database_url: str = "sqlite://") -> sessionmaker[Session]:
    """Fresh schema with every status code seeded; in-memory unless a URL is given."""
    factory = create_session_factory(create_db_engine(database_url))
    create_schema(factory.kw["bind"])
    with session_scope(factory) as session:
        seed_statuses(session)
    return factory


def sql_resolver(factory: sessionmaker[Session]) -> StatusResolver:
    resolver = StatusResolver(SqlStatusRepository(factory))
    resolver.load()
    return resolver


def status_id(session: Session, entity: StatusEntity, code: str) -> str:
    return session.scalars(
        select(StatusRow.id).where(StatusRow.entity == entity.value, StatusRow.code == code)
    ).one()


def add_delivery_method(session: Session, method_id: str, code: str) -> None:
    session.add(DeliveryMethodRow(id=method_id, code=code, name=code.title()))
    session.flush()


def add_order(
    session: Session,
    order_id: str,
    items: list[tuple[str, int, str]],
    *,
    status: str = "ORDER_CONFIRMED",
    category: str = "sales",
    delivery_method_id: str | None = None,
) -> None:
    """``items`` is a list of (item_id, quantity, sku_id)."""
    order_status = status_id(session, StatusEntity.ORDER, status)
    session.add(
        OrderRow(
            id=order_id,
            order_number=f"SO-{order_id.upper()}",
            category=category,
            status_id=order_status,
            delivery_method_id=delivery_method_id,
        )
    )
    session.flush()
    for item_id, quantity, sku_id in items:
        session.add(
            OrderItemRow(
                id=item_id,
                order_id=order_id,
                sku_id=sku_id,
                quantity_ordered=quantity,
                status_id=order_status,
            )
        )
    session.flush()


def add_batch(
    session: Session,
    warehouse_id: str,
    batch_id: str,
    sku_id: str,
    quantity: int,
    *,
    reserved: int = 0,
    expiry_date: date | None = None,
    inbound_date: date | None = None,
) -> str:
    """Insert a batch and its stock row; returns the warehouse inventory id."""
    if session.get(BatchRow, batch_id) is None:
        session.add(BatchRow(id=batch_id, lot_number=f"LOT-{batch_id}", sku_id=sku_id, expiry_date=expiry_date))
        session.flush()
    code = "INVENTORY_IN_STOCK" if quantity > reserved else "INVENTORY_OUT_OF_STOCK"
    row = WarehouseInventoryRow(
        id=f"wi-{warehouse_id}-{batch_id}",
        warehouse_id=warehouse_id,
        batch_id=batch_id,
        warehouse_quantity=quantity,
        reserved_quantity=reserved,
        status_id=status_id(session, StatusEntity.INVENTORY, code),
        inbound_date=inbound_date,
    )
    session.add(row)
    session.flush()
    return row.id
