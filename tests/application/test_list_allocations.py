"""Integration tests for the ListAllocations and ListOutboundShipments queries."""

from datetime import datetime, timedelta, timezone

import pytest

from orderflow.application.list_allocations import ListAllocationsHandler
from orderflow.application.list_outbound_shipments import ListOutboundShipmentsHandler
from orderflow.domain.exceptions import DatabaseError, ServiceError, ValidationError
from orderflow.domain.model.allocation import InventoryAllocation
from orderflow.domain.model.listing import AllocationFilters, ShipmentFilters
from orderflow.domain.model.shipment import OutboundShipment
from orderflow.domain.model.status import AllocationStatus, ShipmentStatus
from tests.fakes import FakeStore, FakeUnitOfWork

T0 = datetime(2024, 5, 1, tzinfo=timezone.utc)


def _setup(count=12, **handler_options):
    store = FakeStore()
    store.add_order("o1", [("i1", 100, "A")])
    store.add_order("o2", [("i2", 100, "B")])
    for n in range(count):
        order_id = "o1" if n % 2 == 0 else "o2"
        store.allocations[f"a{n:02d}"] = InventoryAllocation(
            id=f"a{n:02d}",
            order_id=order_id,
            order_item_id="i1" if order_id == "o1" else "i2",
            warehouse_id="W1" if n < 6 else "W2",
            batch_id=f"LOT-{n:02d}",
            allocated_quantity=n + 1,
            status=AllocationStatus.CONFIRMED if n % 3 else AllocationStatus.PENDING,
            created_by="u1",
            created_at=T0 + timedelta(hours=n),
        )
    uow = FakeUnitOfWork(store)
    return store, uow, ListAllocationsHandler(uow, **handler_options)


def _ids(result, key="allocation_id"):
    return [row[key] for row in result.data]


class TestListAllocationsPaging:

    def test_defaults_newest_first(self):
        _, _, handler = _setup()

        result = handler.handle()

        assert _ids(result)[:2] == ["a11", "a10"]
        assert len(result.data) == 10
        assert result.pagination.page == 1
        assert result.pagination.limit == 10
        assert result.pagination.total_records == 12
        assert result.pagination.total_pages == 2

    def test_second_page(self):
        _, _, handler = _setup()

        result = handler.handle(page=2, limit=5, sort_order="asc")

        assert _ids(result) == ["a05", "a06", "a07", "a08", "a09"]
        assert result.pagination.total_pages == 3

    def test_limit_capped(self):
        _, _, handler = _setup(page_size_limit=4)

        result = handler.handle(limit=500)

        assert result.pagination.limit == 4
        assert len(result.data) == 4

    def test_sort_by_known_column(self):
        _, _, handler = _setup()

        result = handler.handle(sort_by="allocated_quantity", sort_order="DESC", limit=1)

        assert result.data[0]["allocated_quantity"] == 12

    def test_unknown_sort_column_falls_back_to_created_at(self):
        _, _, handler = _setup()

        result = handler.handle(sort_by="password; DROP TABLE", limit=1)

        assert _ids(result) == ["a11"]

    def test_invalid_sort_order_rejected(self):
        _, _, handler = _setup()
        with pytest.raises(ValidationError, match="Must be ASC or DESC"):
            handler.handle(sort_order="sideways")

    def test_page_below_one_rejected(self):
        _, _, handler = _setup()
        with pytest.raises(ValidationError, match="page must be at least 1"):
            handler.handle(page=0)

    def test_empty_result(self):
        _, _, handler = _setup(count=0)

        result = handler.handle()

        assert result.data == []
        assert result.pagination.total_pages == 0

    def test_rows_are_plain_dicts(self):
        _, _, handler = _setup()

        row = handler.handle(limit=1).data[0]

        assert row["order_number"] == "SO-O2"
        assert row["status"] == "ALLOC_CONFIRMED"


class TestListAllocationsFilters:

    def test_filter_by_status(self):
        _, _, handler = _setup()

        result = handler.handle(AllocationFilters(status_codes=("ALLOC_PENDING",)))

        assert sorted(_ids(result)) == ["a00", "a03", "a06", "a09"]

    def test_filter_by_warehouse_and_order(self):
        _, _, handler = _setup()

        result = handler.handle(AllocationFilters(warehouse_ids=("W2",), order_id="o1"))

        assert sorted(_ids(result)) == ["a06", "a08", "a10"]

    def test_keyword_matches_batch(self):
        _, _, handler = _setup()

        result = handler.handle(AllocationFilters(keyword="lot-07"))

        assert _ids(result) == ["a07"]

    def test_created_window(self):
        _, _, handler = _setup()

        result = handler.handle(
            AllocationFilters(
                created_after=T0 + timedelta(hours=3),
                created_before=T0 + timedelta(hours=4),
            )
        )

        assert sorted(_ids(result)) == ["a03", "a04"]


class TestListAllocationsRetry:

    def test_transient_failure_retried(self, monkeypatch):
        _, uow, handler = _setup()
        real = uow.allocations.search
        calls = []

        def flaky(filters, page):
            calls.append(page)
            if len(calls) < 3:
                raise DatabaseError("Database error while trying to search allocations")
            return real(filters, page)

        monkeypatch.setattr(uow.allocations, "search", flaky)

        result = handler.handle()

        assert len(calls) == 3
        assert result.pagination.total_records == 12

    def test_exhausted_retries_become_service_error(self, monkeypatch):
        _, uow, handler = _setup(retry_attempts=1)

        def broken(filters, page):
            raise DatabaseError("Database error while trying to search allocations")

        monkeypatch.setattr(uow.allocations, "search", broken)

        with pytest.raises(ServiceError, match="Unable to fetch inventory allocations"):
            handler.handle()


def _shipments_setup():
    store = FakeStore()
    store.add_order("o1", [("i1", 1, "A")])
    store.add_order("o2", [("i2", 1, "B")])
    store.add_delivery_method("dm-pickup", "IN_STORE_PICKUP")
    rows = [
        ("s1", "o1", "W1", ShipmentStatus.PENDING, None, "leave at door"),
        ("s2", "o2", "W1", ShipmentStatus.SHIPPED, "dm-pickup", None),
        ("s3", "o1", "W2", ShipmentStatus.DELIVERED, "dm-pickup", "fragile"),
    ]
    for n, (shipment_id, order_id, warehouse, status, method, notes) in enumerate(rows):
        store.shipments[shipment_id] = OutboundShipment(
            id=shipment_id,
            order_id=order_id,
            warehouse_id=warehouse,
            status=status,
            delivery_method_id=method,
            delivery_method_code=store.delivery_methods.get(method or ""),
            notes=notes,
            created_by="u1",
            created_at=T0 + timedelta(hours=n),
        )
    uow = FakeUnitOfWork(store)
    return store, ListOutboundShipmentsHandler(uow)


class TestListOutboundShipments:

    def test_defaults_newest_first(self):
        _, handler = _shipments_setup()

        result = handler.handle()

        assert _ids(result, "shipment_id") == ["s3", "s2", "s1"]
        assert result.pagination.total_records == 3
        assert result.pagination.total_pages == 1

    def test_delivery_method_code_included(self):
        _, handler = _shipments_setup()

        row = handler.handle(ShipmentFilters(order_id="o2")).data[0]

        assert row["delivery_method"] == "IN_STORE_PICKUP"
        assert row["order_number"] == "SO-O2"

    def test_filter_by_status_and_method(self):
        _, handler = _shipments_setup()

        result = handler.handle(
            ShipmentFilters(
                status_codes=("SHIPMENT_SHIPPED", "SHIPMENT_DELIVERED"),
                delivery_method_ids=("dm-pickup",),
                warehouse_ids=("W2",),
            )
        )

        assert _ids(result, "shipment_id") == ["s3"]

    def test_keyword_matches_notes(self):
        _, handler = _shipments_setup()

        result = handler.handle(ShipmentFilters(keyword="FRAGILE"))

        assert _ids(result, "shipment_id") == ["s3"]

    def test_unknown_sort_column_falls_back(self):
        _, handler = _shipments_setup()

        result = handler.handle(sort_by="allocated_quantity", sort_order="ASC")

        assert _ids(result, "shipment_id") == ["s1", "s2", "s3"]

    def test_limit_below_one_rejected(self):
        _, handler = _shipments_setup()
        with pytest.raises(ValidationError, match="limit must be at least 1"):
            handler.handle(limit=0)
