"""
erp_services.reorder_service -- Reorder-point scans and alert lifecycle.

Responsibility:
    Run the pure reorder scanner against the currently open alerts and
    persist what it proposes; acknowledge and resolve alerts through the
    generic state machine; list overdue core returns.

Invariants enforced:
    - Idempotent scans: a subject with an open alert never gets a second
      one.  Two scans racing for the same subject conflict at commit
      (ConcurrentModificationError); the loser's retry sees the winner's
      alert and skips it.
    - PO_CREATED is reachable only through the conversion pipeline.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace
from datetime import date

from erp_config import EngineSettings, get_active_settings
from erp_engines.alerts import ReorderScanner, ReorderScanResult
from erp_engines.projection import OverdueCoreReturn, overdue_core_returns
from erp_engines.state_machine import DocumentStateMachine, GuardContext
from erp_kernel.domain.alerts import ReorderAlert, StockPosition
from erp_kernel.domain.clock import Clock, SystemClock
from erp_kernel.domain.deadline import Deadline
from erp_kernel.domain.documents import DocumentKind
from erp_kernel.domain.events import DocumentEvent
from erp_kernel.domain.statuses import CoreReturnStatus
from erp_kernel.logging_config import LogContext, get_logger
from erp_modules.registry import WORKFLOWS
from erp_services.document_service import TransitionResult, check_expected_version
from erp_services.retry import retry_on_conflict
from erp_services.store import DocumentStore

logger = get_logger("services.reorder")


class ReorderService:
    """Low-stock alerts and core-return follow-up."""

    def __init__(
        self,
        store: DocumentStore,
        settings: EngineSettings | None = None,
        clock: Clock | None = None,
        state_machine: DocumentStateMachine | None = None,
        scanner: ReorderScanner | None = None,
    ) -> None:
        self._store = store
        self._settings = settings or get_active_settings()
        self._clock = clock or SystemClock()
        self._machine = state_machine or DocumentStateMachine(WORKFLOWS)
        self._scanner = scanner or ReorderScanner()

    def _scan_once(
        self,
        organization_id: str,
        positions: Sequence[StockPosition],
        deadline: Deadline | None,
    ) -> ReorderScanResult:
        with self._store.unit_of_work() as uow:
            result = self._scanner.scan(
                positions,
                uow.open_alerts(organization_id),
                organization_id=organization_id,
                now=self._clock.now(),
            )
            for alert in result.created:
                uow.save_alert(alert, None)
            if deadline is not None:
                deadline.check("check_reorder_points")
        return result

    def check_reorder_points(
        self,
        organization_id: str,
        positions: Sequence[StockPosition],
        *,
        deadline: Deadline | None = None,
    ) -> ReorderScanResult:
        """
        Create a PENDING alert for every low position without an open alert.

        A commit conflict with a concurrent scan is retried up to
        ``retry.max_attempts`` times.
        """
        with LogContext.bind(organization_id=organization_id):
            result = retry_on_conflict(
                lambda: self._scan_once(organization_id, positions, deadline),
                attempts=self._settings.retry.max_attempts,
            )
            logger.info("reorder_scan_completed", extra={
                "checked": result.checked,
                "below_threshold": result.below_threshold,
                "alerts_created": len(result.created),
                "skipped_open": len(result.skipped_open),
            })
        return result

    def _apply(
        self,
        alert_id: str,
        event: DocumentEvent,
        expected_version: int | None,
        deadline: Deadline | None,
    ) -> TransitionResult:
        now = self._clock.now()
        with self._store.unit_of_work() as uow:
            alert, version = uow.load_alert(alert_id)
            check_expected_version("reorder_alert", alert_id, expected_version, version)
            outcome = self._machine.transition(
                alert, event.value, GuardContext(document=alert, as_of=now.date())
            )
            updated = outcome.document
            if event == DocumentEvent.ACKNOWLEDGE:
                updated = replace(updated, acknowledged_at=now)
            elif event == DocumentEvent.RESOLVE:
                updated = replace(updated, resolved_at=now)
            new_version = uow.save_alert(updated, version)
            if deadline is not None:
                deadline.check(f"alert:{event.value}")

        logger.info("reorder_alert_transitioned", extra={
            "alert_id": alert_id,
            "subject": alert.subject_key,
            "from_state": outcome.from_state,
            "to_state": outcome.to_state,
        })
        return TransitionResult(
            document=updated,
            version=new_version,
            from_state=outcome.from_state,
            to_state=outcome.to_state,
            event=outcome.event,
        )

    def acknowledge_alert(
        self,
        alert_id: str,
        *,
        expected_version: int | None = None,
        deadline: Deadline | None = None,
    ) -> TransitionResult:
        return self._apply(alert_id, DocumentEvent.ACKNOWLEDGE, expected_version, deadline)

    def resolve_alert(
        self,
        alert_id: str,
        *,
        expected_version: int | None = None,
        deadline: Deadline | None = None,
    ) -> TransitionResult:
        """Close an open alert without a purchase order (e.g. stock arrived another way)."""
        return self._apply(alert_id, DocumentEvent.RESOLVE, expected_version, deadline)

    def list_open_alerts(self, organization_id: str) -> list[ReorderAlert]:
        with self._store.unit_of_work() as uow:
            alerts = uow.open_alerts(organization_id)
        return sorted(alerts, key=lambda a: (a.item_id, a.warehouse_id))

    def overdue_core_returns(
        self,
        organization_id: str,
        as_of: date | None = None,
    ) -> list[OverdueCoreReturn]:
        """Pending core returns past their due date, most overdue first."""
        with self._store.unit_of_work() as uow:
            pending = uow.find_documents(
                organization_id,
                kind=DocumentKind.CORE_RETURN,
                statuses={CoreReturnStatus.PENDING.value},
            )
        return overdue_core_returns(pending, as_of or self._clock.today())
