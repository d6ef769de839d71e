"""Small query-building helpers shared by the SQL repositories."""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import Select, and_, false, func, or_, select
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from orderflow.domain.model.inventory import WarehouseBatchKey
from orderflow.domain.model.listing import PageRequest, SortOrder
from orderflow.infrastructure.persistence.tables import WarehouseInventoryRow


def batch_key_filter(
    keys: Iterable[WarehouseBatchKey], warehouse_id=None, batch_id=None
) -> ColumnElement[bool]:
    """``(warehouse_id, batch_id)`` membership, rendered as OR of ANDs."""
    warehouse_col = warehouse_id if warehouse_id is not None else WarehouseInventoryRow.warehouse_id
    batch_col = batch_id if batch_id is not None else WarehouseInventoryRow.batch_id
    clauses = [and_(warehouse_col == w, batch_col == b) for w, b in keys]
    if not clauses:
        return false()
    return or_(*clauses)


def paginate(
    session: Session,
    stmt: Select,
    sort_column: ColumnElement,
    tiebreaker: ColumnElement,
    page: PageRequest,
) -> tuple[list, int]:
    """Run one page of ``stmt`` and count every match."""
    total = session.scalar(select(func.count()).select_from(stmt.order_by(None).subquery()))
    if page.sort_order is SortOrder.ASC:
        ordering = (sort_column.asc(), tiebreaker.asc())
    else:
        ordering = (sort_column.desc(), tiebreaker.desc())
    rows = session.execute(
        stmt.order_by(*ordering).offset(page.offset).limit(page.limit)
    ).all()
    return rows, total or 0
