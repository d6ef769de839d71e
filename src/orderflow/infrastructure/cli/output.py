"""Shared output helpers for the CLI commands."""

from __future__ import annotations

import json
from dataclasses import asdict, is_dataclass
from typing import Any

import click


def echo_json(result: Any) -> None:
    """Print a result DTO (or ``None``) as indented JSON."""
    payload = asdict(result) if is_dataclass(result) else result
    click.echo(json.dumps(payload, indent=2, default=str))


def split_ids(raw: str | None) -> list[str]:
    """Parse 'a,b,c' into ['a', 'b', 'c']; blanks are dropped."""
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]
