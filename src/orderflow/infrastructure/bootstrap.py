"""Composition root — builds the engine, the status cache and every handler.

The CLI asks this module for handlers; nothing below the infrastructure
layer imports SQLAlchemy or the settings.
"""

from __future__ import annotations

from functools import lru_cache

from sqlalchemy.orm import Session, sessionmaker

from orderflow.application.allocate_inventory import AllocateInventoryHandler
from orderflow.application.complete_manual_fulfillment import (
    CompleteManualFulfillmentHandler,
)
from orderflow.application.confirm_allocation import ConfirmAllocationHandler
from orderflow.application.confirm_fulfillment import ConfirmFulfillmentHandler
from orderflow.application.fulfill_outbound import FulfillOutboundHandler
from orderflow.application.list_allocations import ListAllocationsHandler
from orderflow.application.list_outbound_shipments import ListOutboundShipmentsHandler
from orderflow.application.review_allocation import ReviewAllocationHandler
from orderflow.domain.service.status_resolver import StatusResolver
from orderflow.infrastructure.config import Settings, get_settings
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
from orderflow.infrastructure.persistence.unit_of_work import SqlAlchemyUnitOfWork


@lru_cache
def session_factory() -> sessionmaker[Session]:
    settings = get_settings()
    return create_session_factory(
        create_db_engine(settings.database_url, echo=settings.sql_echo)
    )


@lru_cache
def status_resolver() -> StatusResolver:
    # Loaded once per process; handlers share it.
    resolver = StatusResolver(SqlStatusRepository(session_factory()))
    resolver.load()
    return resolver


def init_database() -> int:
    """Create missing tables and seed the status vocabularies; returns codes added."""
    factory = session_factory()
    create_schema(factory.kw["bind"])
    with session_scope(factory) as session:
        added = seed_statuses(session)
    status_resolver.cache_clear()
    return added


def unit_of_work() -> SqlAlchemyUnitOfWork:
    return SqlAlchemyUnitOfWork(session_factory())


def allocate_inventory_handler(settings: Settings | None = None) -> AllocateInventoryHandler:
    settings = settings or get_settings()
    return AllocateInventoryHandler(
        unit_of_work(),
        status_resolver(),
        exclude_expired=settings.exclude_expired_batches,
    )


def confirm_allocation_handler() -> ConfirmAllocationHandler:
    return ConfirmAllocationHandler(unit_of_work(), status_resolver())


def review_allocation_handler(settings: Settings | None = None) -> ReviewAllocationHandler:
    settings = settings or get_settings()
    return ReviewAllocationHandler(
        unit_of_work(),
        retry_attempts=settings.read_retry_attempts,
        retry_delay_seconds=settings.read_retry_delay_seconds,
    )


def list_allocations_handler(settings: Settings | None = None) -> ListAllocationsHandler:
    settings = settings or get_settings()
    return ListAllocationsHandler(
        unit_of_work(),
        retry_attempts=settings.read_retry_attempts,
        retry_delay_seconds=settings.read_retry_delay_seconds,
        page_size_limit=settings.page_size_limit,
    )


def fulfill_outbound_handler() -> FulfillOutboundHandler:
    return FulfillOutboundHandler(unit_of_work(), status_resolver())


def confirm_fulfillment_handler() -> ConfirmFulfillmentHandler:
    return ConfirmFulfillmentHandler(unit_of_work(), status_resolver())


def complete_manual_fulfillment_handler(
    settings: Settings | None = None,
) -> CompleteManualFulfillmentHandler:
    settings = settings or get_settings()
    return CompleteManualFulfillmentHandler(
        unit_of_work(),
        status_resolver(),
        manual_delivery_methods=settings.manual_delivery_methods,
    )


def list_outbound_shipments_handler(
    settings: Settings | None = None,
) -> ListOutboundShipmentsHandler:
    settings = settings or get_settings()
    return ListOutboundShipmentsHandler(
        unit_of_work(),
        retry_attempts=settings.read_retry_attempts,
        retry_delay_seconds=settings.read_retry_delay_seconds,
        page_size_limit=settings.page_size_limit,
    )
