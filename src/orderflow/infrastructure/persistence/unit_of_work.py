"""SQLAlchemy unit of work: one session per ``with`` block."""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session, sessionmaker

from orderflow.domain.repository.unit_of_work import UnitOfWork
from orderflow.infrastructure.persistence.errors import database_errors
from orderflow.infrastructure.persistence.locking import SqlRowLocker
from orderflow.infrastructure.persistence.sql_activity_log_repository import (
    SqlActivityLogRepository,
)
from orderflow.infrastructure.persistence.sql_allocation_repository import (
    SqlAllocationRepository,
)
from orderflow.infrastructure.persistence.sql_fulfillment_repository import (
    SqlFulfillmentRepository,
)
from orderflow.infrastructure.persistence.sql_inventory_repository import (
    SqlWarehouseInventoryRepository,
)
from orderflow.infrastructure.persistence.sql_order_repository import SqlOrderRepository
from orderflow.infrastructure.persistence.sql_shipment_repository import (
    SqlShipmentRepository,
)

logger = logging.getLogger(__name__)


class SqlAlchemyUnitOfWork(UnitOfWork):
    """Opens a fresh session on ``__enter__`` and closes it on ``__exit__``.

    The same instance may be entered again afterwards, which is what the
    read retry relies on.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory
        self._session: Session | None = None

    def __enter__(self) -> SqlAlchemyUnitOfWork:
        session = self._session_factory()
        self._session = session
        self.orders = SqlOrderRepository(session)
        self.inventory = SqlWarehouseInventoryRepository(session)
        self.allocations = SqlAllocationRepository(session)
        self.shipments = SqlShipmentRepository(session)
        self.fulfillments = SqlFulfillmentRepository(session)
        self.activity_logs = SqlActivityLogRepository(session)
        self.locks = SqlRowLocker(session)
        return self

    def __exit__(self, *args) -> None:
        try:
            super().__exit__(*args)
        finally:
            if self._session is not None:
                self._session.close()
                self._session = None

    def commit(self) -> None:
        with database_errors("commit"):
            self._session.commit()
        logger.debug("Transaction committed")

    def rollback(self) -> None:
        if self._session is not None:
            self._session.rollback()
