"""
Module: erp_engines.alerts
Responsibility:
    Reorder-point scanning: compare each (item, warehouse) stock position
    against its reorder level and propose a PENDING alert for every
    position that is low and has no open alert yet.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The caller supplies the
    current open alerts and persists whatever this module proposes.

Invariants enforced:
    - A position is low when reorder_level > 0 and available stock
      (on hand minus committed) <= reorder_level.
    - At most one open alert per subject: subjects that already have a
      PENDING or ACKNOWLEDGED alert are skipped, and a subject listed twice
      in one scan yields one alert.
    - suggested_quantity = max(base, reorder_level - available) where base
      is the reorder quantity, or twice the reorder level when no reorder
      quantity is configured.

Usage:
    from erp_engines.alerts import ReorderScanner

    result = ReorderScanner().scan(positions, open_alerts, organization_id="org-1", now=clock.now())
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from erp_engines.tracer import traced_engine
from erp_kernel.domain.alerts import ReorderAlert, StockPosition
from erp_kernel.domain.documents import new_id
from erp_kernel.domain.statuses import OPEN_ALERT_STATUSES, ReorderAlertStatus
from erp_kernel.logging_config import get_logger

logger = get_logger("engines.alerts")


@dataclass(frozen=True)
class ReorderScanResult:
    checked: int
    below_threshold: int
    created: tuple[ReorderAlert, ...]
    skipped_open: tuple[tuple[str, str], ...]


def is_below_reorder_point(position: StockPosition) -> bool:
    return position.reorder_level > 0 and position.available <= position.reorder_level


def suggested_quantity(position: StockPosition) -> Decimal:
    base = (
        position.reorder_quantity
        if position.reorder_quantity > 0
        else position.reorder_level * 2
    )
    gap = position.reorder_level - position.available
    return max(base, gap)


class ReorderScanner:
    """Propose reorder alerts for low stock positions."""

    def __init__(self, id_factory: Callable[[], str] = new_id) -> None:
        self._new_id = id_factory

    @traced_engine("reorder_scan", "1.0")
    def scan(
        self,
        positions: Sequence[StockPosition],
        open_alerts: Iterable[ReorderAlert],
        organization_id: str,
        now: datetime | None = None,
    ) -> ReorderScanResult:
        open_subjects = {
            a.subject for a in open_alerts if a.status in OPEN_ALERT_STATUSES
        }
        created: list[ReorderAlert] = []
        skipped: list[tuple[str, str]] = []
        below = 0

        for position in positions:
            if not is_below_reorder_point(position):
                continue
            below += 1
            if position.subject in open_subjects:
                skipped.append(position.subject)
                continue
            alert = ReorderAlert(
                alert_id=self._new_id(),
                organization_id=organization_id,
                item_id=position.item_id,
                warehouse_id=position.warehouse_id,
                status=ReorderAlertStatus.PENDING.value,
                current_stock=position.on_hand,
                reorder_level=position.reorder_level,
                suggested_quantity=suggested_quantity(position),
                preferred_vendor_id=position.preferred_vendor_id,
                unit_cost=position.unit_cost,
                created_at=now,
            )
            open_subjects.add(position.subject)
            created.append(alert)

        logger.info("reorder_scan_evaluated", extra={
            "organization_id": organization_id,
            "checked": len(positions),
            "below_threshold": below,
            "alerts_created": len(created),
            "skipped_open": len(skipped),
        })
        return ReorderScanResult(
            checked=len(positions),
            below_threshold=below,
            created=tuple(created),
            skipped_open=tuple(skipped),
        )
