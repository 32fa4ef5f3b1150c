"""
Module: erp_kernel.models.alert
Responsibility: ORM persistence for reorder alerts.
Architecture position: Kernel > Models.

Invariants enforced:
    - At most one open alert per (organization, item, warehouse):
      ``open_subject`` holds "organization:item:warehouse" while the alert
      is PENDING or ACKNOWLEDGED and NULL afterwards.  The unique constraint ignores NULLs, so closed alerts
      never collide and concurrent scans cannot insert a duplicate.
    - ``version`` is the optimistic concurrency token.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from erp_kernel.db.base import Base
from erp_kernel.domain.alerts import ReorderAlert
from erp_kernel.domain.statuses import OPEN_ALERT_STATUSES


class ReorderAlertModel(Base):
    __tablename__ = "reorder_alerts"

    __table_args__ = (
        UniqueConstraint("open_subject", name="uq_reorder_alert_open_subject"),
        Index("idx_reorder_alert_org_status", "organization_id", "status"),
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    organization_id: Mapped[str] = mapped_column(nullable=False)
    item_id: Mapped[str] = mapped_column(nullable=False)
    warehouse_id: Mapped[str] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    open_subject: Mapped[str | None] = mapped_column(String(255), nullable=True)
    current_stock: Mapped[Decimal] = mapped_column(nullable=False)
    reorder_level: Mapped[Decimal] = mapped_column(nullable=False)
    suggested_quantity: Mapped[Decimal] = mapped_column(nullable=False)
    preferred_vendor_id: Mapped[str | None] = mapped_column(nullable=True)
    unit_cost: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    purchase_order_id: Mapped[str | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(nullable=True)
    acknowledged_at: Mapped[datetime | None] = mapped_column(nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(nullable=True)

    @staticmethod
    def open_subject_for(alert: ReorderAlert) -> str | None:
        return alert.subject_key if alert.status in OPEN_ALERT_STATUSES else None

    def apply(self, alert: ReorderAlert) -> None:
        self.organization_id = alert.organization_id
        self.item_id = alert.item_id
        self.warehouse_id = alert.warehouse_id
        self.status = alert.status
        self.open_subject = self.open_subject_for(alert)
        self.current_stock = alert.current_stock
        self.reorder_level = alert.reorder_level
        self.suggested_quantity = alert.suggested_quantity
        self.preferred_vendor_id = alert.preferred_vendor_id
        self.unit_cost = alert.unit_cost
        self.purchase_order_id = alert.purchase_order_id
        self.created_at = alert.created_at
        self.acknowledged_at = alert.acknowledged_at
        self.resolved_at = alert.resolved_at

    @classmethod
    def from_domain(cls, alert: ReorderAlert, version: int = 1) -> "ReorderAlertModel":
        row = cls(id=alert.alert_id, version=version)
        row.apply(alert)
        return row

    def to_domain(self) -> ReorderAlert:
        return ReorderAlert(
            alert_id=self.id,
            organization_id=self.organization_id,
            item_id=self.item_id,
            warehouse_id=self.warehouse_id,
            status=self.status,
            current_stock=self.current_stock,
            reorder_level=self.reorder_level,
            suggested_quantity=self.suggested_quantity,
            preferred_vendor_id=self.preferred_vendor_id,
            unit_cost=self.unit_cost,
            purchase_order_id=self.purchase_order_id,
            created_at=self.created_at,
            acknowledged_at=self.acknowledged_at,
            resolved_at=self.resolved_at,
        )
