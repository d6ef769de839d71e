"""Append-only inventory activity log entries.

Entries are immutable once built.  Each carries a SHA-256 checksum over its
canonical payload so later tampering is detectable.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class InventoryAction(Enum):
    RESERVE = "reserve"
    FULFILLED = "fulfilled"


class LogSource(Enum):
    ALLOCATION = "allocation"
    FULFILLMENT = "fulfillment"


def _drop_empty(values: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


def compute_checksum(payload: dict[str, Any]) -> str:
    """SHA-256 of the payload serialized with sorted keys, nulls removed."""
    canonical = json.dumps(_drop_empty(payload), sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class ActivityLogEntry:
    warehouse_inventory_id: str
    action: InventoryAction
    order_id: str
    status_id: str
    previous_quantity: int
    quantity_change: int
    new_quantity: int
    performed_by: str
    comments: str
    source_type: LogSource
    source_ref_id: str | None
    checksum: str
    metadata: dict[str, Any] = field(default_factory=dict)
    status_effective_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @staticmethod
    def create(
        *,
        warehouse_inventory_id: str,
        action: InventoryAction,
        order_id: str,
        status_id: str,
        previous_quantity: int,
        quantity_change: int,
        new_quantity: int,
        performed_by: str,
        comments: str,
        source_type: LogSource,
        source_ref_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> ActivityLogEntry:
        """Build an entry and stamp its checksum."""
        clean_metadata = _drop_empty(metadata or {})
        checksum = compute_checksum(
            {
                "warehouse_inventory_id": warehouse_inventory_id,
                "inventory_action": action.value,
                "order_id": order_id,
                "status_id": status_id,
                "quantity_change": quantity_change,
                "new_quantity": new_quantity,
                "comments": comments,
                "performed_by": performed_by,
                "source_type": source_type.value,
                "source_ref_id": source_ref_id,
                **clean_metadata,
            }
        )
        return ActivityLogEntry(
            warehouse_inventory_id=warehouse_inventory_id,
            action=action,
            order_id=order_id,
            status_id=status_id,
            previous_quantity=previous_quantity,
            quantity_change=quantity_change,
            new_quantity=new_quantity,
            performed_by=performed_by,
            comments=comments,
            source_type=source_type,
            source_ref_id=source_ref_id,
            checksum=checksum,
            metadata=clean_metadata,
        )
