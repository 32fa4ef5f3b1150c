"""Reorder alert and stock position value objects."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal


@dataclass(frozen=True)
class StockPosition:
    """Stock on hand for one (item, warehouse) pair plus its reorder policy."""

    item_id: str
    warehouse_id: str
    on_hand: Decimal
    reorder_level: Decimal
    reorder_quantity: Decimal = Decimal("0")
    committed: Decimal = Decimal("0")
    preferred_vendor_id: str | None = None
    unit_cost: Decimal = Decimal("0")

    @property
    def available(self) -> Decimal:
        """Stock not already committed to open sales orders."""
        return self.on_hand - self.committed

    @property
    def subject(self) -> tuple[str, str]:
        return (self.item_id, self.warehouse_id)


@dataclass(frozen=True)
class ReorderAlert:
    """
    Low-stock alert for one (item, warehouse) subject.

    At most one open (PENDING or ACKNOWLEDGED) alert exists per subject
    within an organization.
    """

    alert_id: str
    organization_id: str
    item_id: str
    warehouse_id: str
    status: str
    current_stock: Decimal
    reorder_level: Decimal
    suggested_quantity: Decimal
    preferred_vendor_id: str | None = None
    unit_cost: Decimal = Decimal("0")
    purchase_order_id: str | None = None
    created_at: datetime | None = None
    acknowledged_at: datetime | None = None
    resolved_at: datetime | None = None

    @property
    def subject(self) -> tuple[str, str]:
        return (self.item_id, self.warehouse_id)

    @property
    def subject_key(self) -> str:
        return f"{self.organization_id}:{self.item_id}:{self.warehouse_id}"
