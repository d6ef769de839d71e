import click

from orderflow.infrastructure.cli.allocation_commands import (
    allocation_allocate,
    allocation_confirm,
    allocation_list,
    allocation_review,
)
from orderflow.infrastructure.cli.db_commands import db_init
from orderflow.infrastructure.cli.fulfillment_commands import (
    fulfillment_complete,
    fulfillment_confirm,
    fulfillment_list,
    fulfillment_ship,
)
from orderflow.infrastructure.config import get_settings
from orderflow.infrastructure.logging import setup_logging


@click.group()
def cli() -> None:
    """Orderflow — inventory allocation and outbound fulfillment"""
    settings = get_settings()
    setup_logging(settings.log_level, json=settings.log_json)


@cli.group()
def allocation() -> None:
    """Allocate and reserve inventory for orders."""


@cli.group()
def fulfillment() -> None:
    """Ship, confirm and complete outbound fulfillments."""


@cli.group()
def db() -> None:
    """Manage the database."""


# Register subcommands
allocation.add_command(allocation_allocate)
allocation.add_command(allocation_confirm)
allocation.add_command(allocation_list)
allocation.add_command(allocation_review)
fulfillment.add_command(fulfillment_complete)
fulfillment.add_command(fulfillment_confirm)
fulfillment.add_command(fulfillment_list)
fulfillment.add_command(fulfillment_ship)
db.add_command(db_init)
