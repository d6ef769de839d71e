"""CLI commands for inventory allocation."""

from __future__ import annotations

from datetime import datetime

import click

from orderflow.domain.exceptions import DomainException
from orderflow.domain.model.listing import AllocationFilters
from orderflow.domain.service.batch_allocation import AllocationStrategy
from orderflow.infrastructure.bootstrap import (
    allocate_inventory_handler,
    confirm_allocation_handler,
    list_allocations_handler,
    review_allocation_handler,
)
from orderflow.infrastructure.cli.output import echo_json, split_ids

_USER = click.option(
    "--user", "user_id", required=True, envvar="ORDERFLOW_USER", help="Acting user id."
)


@click.command("allocate")
@click.option("--order", "order_id", required=True, help="Order id to allocate.")
@click.option(
    "--strategy",
    type=click.Choice([s.value for s in AllocationStrategy], case_sensitive=False),
    default=AllocationStrategy.FEFO.value,
    show_default=True,
    help="Batch selection strategy.",
)
@click.option("--warehouse", "warehouse_id", default=None, help="Restrict to one warehouse.")
@_USER
def allocation_allocate(order_id: str, strategy: str, warehouse_id: str | None, user_id: str) -> None:
    """Allocate warehouse batches to a confirmed order."""
    try:
        handler = allocate_inventory_handler()
        result = handler.handle(user_id, order_id, strategy, warehouse_id)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    echo_json(result)


@click.command("review")
@click.option("--order", "order_id", required=True, help="Order id to review.")
@click.option("--warehouses", default=None, help="Comma-separated warehouse ids.")
@click.option("--allocations", default=None, help="Comma-separated allocation ids.")
def allocation_review(order_id: str, warehouses: str | None, allocations: str | None) -> None:
    """Show an order's allocations."""
    try:
        handler = review_allocation_handler()
        review = handler.handle(order_id, split_ids(warehouses), split_ids(allocations))
    except DomainException as exc:
        raise click.ClickException(str(exc))

    if review is None:
        click.echo(f"No allocations found for order {order_id}.")
        return
    echo_json(review)


@click.command("confirm")
@click.option("--order", "order_id", required=True, help="Order id to confirm.")
@_USER
def allocation_confirm(order_id: str, user_id: str) -> None:
    """Confirm allocations and reserve warehouse stock."""
    try:
        handler = confirm_allocation_handler()
        result = handler.handle(user_id, order_id)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    echo_json(result)


@click.command("list")
@click.option("--status", "statuses", default=None, help="Comma-separated status codes.")
@click.option("--warehouses", default=None, help="Comma-separated warehouse ids.")
@click.option("--order", "order_id", default=None, help="Order id.")
@click.option("--order-number", default=None, help="Exact order number.")
@click.option("--keyword", default=None, help="Matches order number or batch id.")
@click.option("--created-by", default=None)
@click.option("--updated-by", default=None)
@click.option("--created-after", type=click.DateTime(), default=None)
@click.option("--created-before", type=click.DateTime(), default=None)
@click.option("--page", type=int, default=None)
@click.option("--limit", type=int, default=None)
@click.option("--sort-by", default=None)
@click.option("--sort-order", default=None, help="ASC or DESC.")
def allocation_list(
    statuses: str | None,
    warehouses: str | None,
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
    """List inventory allocations."""
    filters = AllocationFilters(
        status_codes=tuple(split_ids(statuses)),
        warehouse_ids=tuple(split_ids(warehouses)),
        order_id=order_id,
        order_number=order_number,
        keyword=keyword,
        created_by=created_by,
        updated_by=updated_by,
        created_after=created_after,
        created_before=created_before,
    )
    try:
        handler = list_allocations_handler()
        result = handler.handle(filters, page, limit, sort_by, sort_order)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    echo_json(result)
