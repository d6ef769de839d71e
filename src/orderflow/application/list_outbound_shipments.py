"""Application service: List Outbound Shipments query."""

from __future__ import annotations

import logging

from orderflow.application.boundary import service_boundary
from orderflow.application.dto import PageResult
from orderflow.application.paging import MAX_LIMIT, normalize_page_request, page_result
from orderflow.application.retry import retry
from orderflow.domain.model.listing import (
    SHIPMENT_SORT_COLUMNS,
    PageRequest,
    ShipmentFilters,
    ShipmentRow,
)
from orderflow.domain.repository.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


class ListOutboundShipmentsHandler:

    def __init__(
        self,
        uow: UnitOfWork,
        *,
        retry_attempts: int = 3,
        retry_delay_seconds: float = 0.0,
        page_size_limit: int = MAX_LIMIT,
    ) -> None:
        self._uow = uow
        self._retry_attempts = retry_attempts
        self._retry_delay_seconds = retry_delay_seconds
        self._page_size_limit = page_size_limit

    def handle(
        self,
        filters: ShipmentFilters | None = None,
        page: int | None = None,
        limit: int | None = None,
        sort_by: str | None = None,
        sort_order: str | None = None,
    ) -> PageResult:
        filters = filters or ShipmentFilters()
        with service_boundary("Unable to fetch outbound shipments.", "list_outbound_shipments"):
            request = normalize_page_request(
                page=page,
                limit=limit,
                sort_by=sort_by,
                sort_order=sort_order,
                sort_columns=SHIPMENT_SORT_COLUMNS,
                max_limit=self._page_size_limit,
            )
            rows, total = retry(
                lambda: self._search(filters, request),
                attempts=self._retry_attempts,
                delay_seconds=self._retry_delay_seconds,
            )

        logger.info(
            "Fetched outbound shipments",
            extra={"page": request.page, "limit": request.limit, "total": total},
        )
        return page_result(rows, total, request)

    def _search(
        self, filters: ShipmentFilters, request: PageRequest
    ) -> tuple[list[ShipmentRow], int]:
        with self._uow as uow:
            return uow.shipments.search(filters, request)
