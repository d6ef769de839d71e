"""CLI commands for database setup."""

from __future__ import annotations

import click

from orderflow.domain.exceptions import DomainException
from orderflow.infrastructure.bootstrap import init_database


@click.command("init")
def db_init() -> None:
    """Create tables and seed the status vocabularies."""
    try:
        added = init_database()
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Database ready ({added} status codes added).")
