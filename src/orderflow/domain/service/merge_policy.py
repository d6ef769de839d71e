"""Domain service: per-column reconciliation policy for conflicting upserts.

When an incoming row collides with an existing one on the policy's conflict
keys, every column is reconciled by its declared strategy.  The same policy
drives the in-memory stores (through ``merge``) and the SQL store (which
renders it as ``INSERT ... ON CONFLICT DO UPDATE``).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class MergeStrategy(Enum):
    ADD = "add"
    OVERWRITE = "overwrite"
    COALESCE = "coalesce"  # keep the first non-null value
    MERGE_TEXT = "merge_text"  # append with a timestamp prefix
    KEEP = "keep"


def note_stamp(now: datetime) -> str:
    return f"[{now:%Y-%m-%d %H:%M:%S}]"


def merge_text(existing: str | None, incoming: str | None, now: datetime) -> str | None:
    if incoming is None or incoming == "":
        return existing
    if existing is None or existing == "":
        return incoming
    return f"{existing}\n{note_stamp(now)} {incoming}"


@dataclass(frozen=True)
class MergePolicy:
    conflict_keys: tuple[str, ...]
    columns: Mapping[str, MergeStrategy] = field(default_factory=dict)

    def strategy_for(self, column: str) -> MergeStrategy:
        return self.columns.get(column, MergeStrategy.KEEP)

    def key_of(self, row: Mapping[str, Any]) -> tuple:
        return tuple(row[k] for k in self.conflict_keys)

    def merge(
        self, existing: Mapping[str, Any], incoming: Mapping[str, Any], now: datetime
    ) -> dict[str, Any]:
        """Reconcile ``incoming`` into ``existing``; returns a new row."""
        merged = dict(existing)
        for column, value in incoming.items():
            if column in self.conflict_keys:
                continue
            strategy = self.strategy_for(column)
            current = existing.get(column)
            if strategy is MergeStrategy.ADD:
                merged[column] = (current or 0) + (value or 0)
            elif strategy is MergeStrategy.OVERWRITE:
                merged[column] = value
            elif strategy is MergeStrategy.COALESCE:
                merged[column] = current if current is not None else value
            elif strategy is MergeStrategy.MERGE_TEXT:
                merged[column] = merge_text(current, value, now)
            elif column not in merged:
                merged[column] = value
        return merged

    def collapse(
        self, rows: list[Mapping[str, Any]], now: datetime
    ) -> list[dict[str, Any]]:
        """Merge rows that share conflict keys within one batch, keeping order."""
        collapsed: dict[tuple, dict[str, Any]] = {}
        for row in rows:
            key = self.key_of(row)
            if key in collapsed:
                collapsed[key] = self.merge(collapsed[key], row, now)
            else:
                collapsed[key] = dict(row)
        return list(collapsed.values())


FULFILLMENT_MERGE_POLICY = MergePolicy(
    conflict_keys=("order_item_id", "shipment_id"),
    columns={
        "quantity_fulfilled": MergeStrategy.ADD,
        "status_id": MergeStrategy.OVERWRITE,
        "updated_at": MergeStrategy.OVERWRITE,
        "fulfillment_notes": MergeStrategy.MERGE_TEXT,
        "fulfilled_by": MergeStrategy.COALESCE,
        "updated_by": MergeStrategy.OVERWRITE,
    },
)
