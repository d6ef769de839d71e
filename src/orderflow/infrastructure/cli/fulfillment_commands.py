"""CLI commands for outbound fulfillment."""

from __future__ import annotations

from datetime import datetime

import click

from orderflow.application.dto import (
    FulfillmentConfirmationRequest,
    FulfillmentRequest,
    ManualCompletionRequest,
)
from orderflow.domain.exceptions import DomainException
from orderflow.domain.model.listing import ShipmentFilters
from orderflow.infrastructure.bootstrap import (
    complete_manual_fulfillment_handler,
    confirm_fulfillment_handler,
    fulfill_outbound_handler,
    list_outbound_shipments_handler,
)
from orderflow.infrastructure.cli.output import echo_json, split_ids

_USER = click.option(
    "--user", "user_id", required=True, envvar="ORDERFLOW_USER", help="Acting user id."
)


@click.command("ship")
@click.option("--order", "order_id", required=True, help="Order id to ship.")
@click.option("--allocations", required=True, help="Comma-separated allocation ids.")
@click.option("--shipment-notes", default=None)
@click.option("--fulfillment-notes", default=None)
@click.option("--batch-note", default=None, help="Note stored on each shipment batch.")
@_USER
def fulfillment_ship(
    order_id: str,
    allocations: str,
    shipment_notes: str | None,
    fulfillment_notes: str | None,
    batch_note: str | None,
    user_id: str,
) -> None:
    """Create an outbound shipment from confirmed allocations."""
    request = FulfillmentRequest(
        order_id=order_id,
        allocation_ids=split_ids(allocations),
        shipment_notes=shipment_notes,
        fulfillment_notes=fulfillment_notes,
        shipment_batch_note=batch_note,
    )
    try:
        handler = fulfill_outbound_handler()
        result = handler.handle(request, user_id)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    echo_json(result)


@click.command("confirm")
@click.option("--order", "order_id", required=True, help="Order id.")
@click.option("--order-status", default="ORDER_SHIPPED", show_default=True)
@click.option("--allocation-status", default="ALLOC_COMPLETED", show_default=True)
@click.option("--shipment-status", default="SHIPMENT_SHIPPED", show_default=True)
@click.option("--fulfillment-status", default="FULFILLMENT_SHIPPED", show_default=True)
@_USER
def fulfillment_confirm(
    order_id: str,
    order_status: str,
    allocation_status: str,
    shipment_status: str,
    fulfillment_status: str,
    user_id: str,
) -> None:
    """Confirm a shipment and deduct the shipped stock."""
    request = FulfillmentConfirmationRequest(
        order_id=order_id,
        order_status=order_status,
        allocation_status=allocation_status,
        shipment_status=shipment_status,
        fulfillment_status=fulfillment_status,
    )
    try:
        handler = confirm_fulfillment_handler()
        result = handler.handle(request, user_id)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    echo_json(result)


@click.command("complete")
@click.option("--shipment", "shipment_id", required=True, help="Shipment id.")
@click.option("--order-status", default="ORDER_DELIVERED", show_default=True)
@click.option("--shipment-status", default="SHIPMENT_DELIVERED", show_default=True)
@click.option("--fulfillment-status", default="FULFILLMENT_DELIVERED", show_default=True)
@_USER
def fulfillment_complete(
    shipment_id: str,
    order_status: str,
    shipment_status: str,
    fulfillment_status: str,
    user_id: str,
) -> None:
    """Complete a pickup or personally delivered shipment."""
    request = ManualCompletionRequest(
        shipment_id=shipment_id,
        order_status=order_status,
        shipment_status=shipment_status,
        fulfillment_status=fulfillment_status,
    )
    try:
        handler = complete_manual_fulfillment_handler()
        result = handler.handle(request, user_id)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    echo_json(result)


@click.command("list")
@click.option("--status", "statuses", default=None, help="Comma-separated status codes.")
@click.option("--warehouses", default=None, help="Comma-separated warehouse ids.")
@click.option("--delivery-methods", default=None, help="Comma-separated delivery method ids.")
@click.option("--order", "order_id", default=None, help="Order id.")
@click.option("--order-number", default=None, help="Exact order number.")
@click.option("--keyword", default=None, help="Matches order number or notes.")
@click.option("--created-by", default=None)
@click.option("--updated-by", default=None)
@click.option("--created-after", type=click.DateTime(), default=None)
@click.option("--created-before", type=click.DateTime(), default=None)
@click.option("--page", type=int, default=None)
@click.option("--limit", type=int, default=None)
@click.option("--sort-by", default=None)
@click.option("--sort-order", default=None, help="ASC or DESC.")
def fulfillment_list(
    statuses: str | None,
    warehouses: str | None,
    delivery_methods: str | None,
    order_id: str | None,
    order_number: str | None,
    keyword: str | None,
    created_by: str | None,
    updated_by: str | None,
    created_after: datetime | None,
    created_before: datetime | None,
    page: int | None,
    limit: int | None,
    sort_by: str | None,
    sort_order: str | None,
) -> None:
    """List outbound shipments."""
    filters = ShipmentFilters(
        status_codes=tuple(split_ids(statuses)),
        warehouse_ids=tuple(split_ids(warehouses)),
        delivery_method_ids=tuple(split_ids(delivery_methods)),
        order_id=order_id,
        order_number=order_number,
        keyword=keyword,
        created_by=created_by,
        updated_by=updated_by,
        created_after=created_after,
        created_before=created_before,
    )
    try:
        handler = list_outbound_shipments_handler()
        result = handler.handle(filters, page, limit, sort_by, sort_order)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    echo_json(result)
