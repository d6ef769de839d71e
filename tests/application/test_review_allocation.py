"""Integration tests for the ReviewAllocation query."""

from datetime import date

import pytest

from orderflow.application.allocate_inventory import AllocateInventoryHandler
from orderflow.application.review_allocation import ReviewAllocationHandler
from orderflow.domain.exceptions import DatabaseError, NotFoundError, ServiceError
from tests.fakes import FakeStore, FakeUnitOfWork, loaded_resolver


def _setup(**handler_options):
    store = FakeStore()
    store.add_order("o1", [("i1", 6, "A"), ("i2", 4, "B")], note="rush")
    store.add_batch("W1", "B1", "A", 4, expiry_date=date(2025, 1, 1))
    store.add_batch("W2", "B3", "A", 4, expiry_date=date(2025, 2, 1))
    store.add_batch("W2", "B2", "B", 4)
    uow = FakeUnitOfWork(store)
    AllocateInventoryHandler(uow, loaded_resolver()).handle("u1", "o1")
    return store, uow, ReviewAllocationHandler(uow, **handler_options)


class TestReviewAllocation:

    def test_header_and_rows(self):
        store, _, handler = _setup()

        review = handler.handle("o1")

        assert review.header.order_number == "SO-O1"
        assert review.header.status == "ORDER_ALLOCATING"
        assert review.header.category == "sales"
        assert review.header.note == "rush"
        assert [(r.order_item_id, r.batch_id, r.allocated_quantity) for r in review.items] == [
            ("i1", "B1", 4),
            ("i1", "B3", 2),
            ("i2", "B2", 4),
        ]
        assert {r.allocation_status for r in review.items} == {"ALLOC_PENDING"}
        assert review.items[0].sku_id == "A"
        assert review.items[0].quantity_ordered == 6

    def test_filter_by_warehouse(self):
        _, _, handler = _setup()

        review = handler.handle("o1", warehouse_ids=["W2"])

        assert {r.warehouse_id for r in review.items} == {"W2"}
        assert len(review.items) == 2

    def test_filter_by_allocation_ids(self):
        store, _, handler = _setup()
        wanted = sorted(store.allocations)[:1]

        review = handler.handle("o1", allocation_ids=wanted)

        assert [r.allocation_id for r in review.items] == wanted

    def test_no_matching_allocations_returns_none(self):
        _, _, handler = _setup()
        assert handler.handle("o1", warehouse_ids=["W9"]) is None

    def test_unknown_order_rejected(self):
        _, _, handler = _setup()
        with pytest.raises(NotFoundError, match="Order o9 not found"):
            handler.handle("o9")

    def test_read_does_not_commit(self):
        _, uow, handler = _setup()
        commits = uow.commits
        handler.handle("o1")
        assert uow.commits == commits


class TestReviewRetry:

    def test_transient_failure_retried(self, monkeypatch):
        _, uow, handler = _setup()
        real = uow.allocations.list_for_order
        calls = []

        def flaky(*args):
            calls.append(args)
            if len(calls) == 1:
                raise DatabaseError("Database error while trying to list allocations")
            return real(*args)

        monkeypatch.setattr(uow.allocations, "list_for_order", flaky)

        review = handler.handle("o1")

        assert len(calls) == 2
        assert len(review.items) == 3

    def test_persistent_failure_becomes_service_error(self, monkeypatch):
        _, uow, handler = _setup(retry_attempts=2)
        calls = []

        def broken(*args):
            calls.append(args)
            raise DatabaseError("Database error while trying to list allocations")

        monkeypatch.setattr(uow.allocations, "list_for_order", broken)

        with pytest.raises(ServiceError, match="Unable to review inventory allocations"):
            handler.handle("o1")
        assert len(calls) == 2

    def test_not_found_is_not_retried(self, monkeypatch):
        _, uow, handler = _setup()
        calls = []
        real = uow.orders.get_by_id

        def counting(order_id):
            calls.append(order_id)
            return real(order_id)

        monkeypatch.setattr(uow.orders, "get_by_id", counting)

        with pytest.raises(NotFoundError):
            handler.handle("o9")
        assert calls == ["o9"]
