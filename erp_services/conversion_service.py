"""
erp_services.conversion_service -- Create downstream documents from upstream ones.

Responsibility:
    Quote -> sales order, sales order -> invoice, purchase order -> bill,
    invoice -> sales return, reorder alert -> purchase order, and bulk
    alert -> purchase order with a per-item result list.

Architecture position:
    Services layer.  Builds documents through DocumentService, routes the
    source's own lifecycle through the state machine, persists both sides
    in one unit of work.

Invariants enforced:
    - All-or-nothing: the child document, the source's state change and
      its child link commit together.  A failure leaves the source exactly
      as it was (no CONVERTED or PO_CREATED marker without a child).
    - Partial conversions never exceed the remaining quantity per source
      line, counting only non-void children.  The source is saved with its
      expected version, so two concurrent conversions of the same lines
      cannot both commit.
"""

from __future__ import annotations

import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from erp_config import EngineSettings, get_active_settings
from erp_engines.projection import (
    active_children,
    converted_quantities,
    effective_status,
    remaining_quantities,
)
from erp_engines.state_machine import REORDER_ALERT_KIND, DocumentStateMachine, GuardContext
from erp_kernel.domain.alerts import ReorderAlert
from erp_kernel.domain.clock import Clock, SystemClock
from erp_kernel.domain.deadline import Deadline
from erp_kernel.domain.documents import (
    DocumentKind,
    FinancialDocument,
    LineItem,
    new_id,
)
from erp_kernel.domain.events import DocumentEvent
from erp_kernel.domain.statuses import (
    InvoiceStatus,
    PurchaseOrderStatus,
    QuoteStatus,
    SalesOrderStatus,
)
from erp_kernel.exceptions import (
    ConversionNotAllowedError,
    ErpCoreError,
    InvalidDocumentError,
    NothingToConvertError,
    QuantityExceedsRemainingError,
)
from erp_kernel.logging_config import LogContext, get_logger
from erp_modules.registry import WORKFLOWS
from erp_services.document_service import DocumentService, check_expected_version, guard_context
from erp_services.store import DocumentStore, UnitOfWork

logger = get_logger("services.conversion")

QUOTE_CONVERTIBLE = frozenset({
    QuoteStatus.DRAFT.value,
    QuoteStatus.SENT.value,
    QuoteStatus.ACCEPTED.value,
})

ORDER_INVOICEABLE = frozenset({
    SalesOrderStatus.CONFIRMED.value,
    SalesOrderStatus.SHIPPED.value,
    SalesOrderStatus.DELIVERED.value,
})

PO_BILLABLE = frozenset({
    PurchaseOrderStatus.ISSUED.value,
    PurchaseOrderStatus.PARTIALLY_RECEIVED.value,
    PurchaseOrderStatus.RECEIVED.value,
})

INVOICE_RETURNABLE = frozenset({
    InvoiceStatus.SENT.value,
    InvoiceStatus.PARTIALLY_PAID.value,
    InvoiceStatus.PAID.value,
    InvoiceStatus.OVERDUE.value,
})


@dataclass(frozen=True)
class ConversionResult:
    """Committed source (with its new state and child link) and the new child."""

    source: FinancialDocument | ReorderAlert
    source_version: int
    target: FinancialDocument


# =============================================================================
# Batch results
# =============================================================================


class BatchItemStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


class BatchRunStatus(str, Enum):
    COMPLETED = "completed"
    PARTIALLY_COMPLETED = "partially_completed"
    FAILED = "failed"


@dataclass(frozen=True)
class BatchItemResult:
    """Result of converting one item of a bulk request."""

    item_index: int
    item_key: str
    status: BatchItemStatus
    error_code: str | None = None
    error_message: str | None = None
    result_data: dict[str, Any] | None = None
    duration_ms: int = 0


@dataclass(frozen=True)
class BatchRunResult:
    status: BatchRunStatus
    total_items: int
    succeeded: int
    failed: int
    skipped: int
    item_results: tuple[BatchItemResult, ...] = ()
    started_at: datetime | None = None
    completed_at: datetime | None = None


def _run_status(succeeded: int, total: int) -> BatchRunStatus:
    if succeeded == total:
        return BatchRunStatus.COMPLETED
    if succeeded == 0:
        return BatchRunStatus.FAILED
    return BatchRunStatus.PARTIALLY_COMPLETED


# =============================================================================
# Service
# =============================================================================


class ConversionService:
    """
    Conversion pipeline between trading documents.

    Usage:
        result = conversions.convert_order_to_invoice(order_id, {line_id: Decimal("4")})
        result.target.status  # "DRAFT"
    """

    def __init__(
        self,
        store: DocumentStore,
        settings: EngineSettings | None = None,
        clock: Clock | None = None,
        state_machine: DocumentStateMachine | None = None,
        documents: DocumentService | None = None,
    ) -> None:
        self._store = store
        self._settings = settings or get_active_settings()
        self._clock = clock or SystemClock()
        self._machine = state_machine or DocumentStateMachine(WORKFLOWS)
        self._documents = documents or DocumentService(
            store, self._settings, self._clock, self._machine
        )

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _load_source(
        self,
        uow: UnitOfWork,
        source_id: str,
        kind: DocumentKind,
        allowed: frozenset[str],
        target_kind: DocumentKind,
        expected_version: int | None,
    ) -> tuple[FinancialDocument, int]:
        source, version = uow.load_document(source_id)
        check_expected_version("document", source_id, expected_version, version)
        status = effective_status(source, self._clock.today())
        if source.kind != kind or status not in allowed:
            raise ConversionNotAllowedError(source_id, source.kind.value, status, target_kind.value)
        return source, version

    def _select_lines(
        self,
        source: FinancialDocument,
        remaining: Mapping[str, Decimal],
        quantities: Mapping[str, Decimal] | None,
        target_kind: DocumentKind,
    ) -> list[LineItem]:
        """Child lines for the requested (or all remaining) quantities."""
        if quantities is None:
            wanted = {line_id: qty for line_id, qty in remaining.items() if qty > 0}
        else:
            wanted = {}
            for line_id, qty in quantities.items():
                if line_id not in remaining:
                    raise InvalidDocumentError(
                        "line_id", f"{line_id} is not a line of {source.document_id}"
                    )
                if qty <= 0:
                    raise InvalidDocumentError("quantity", f"must be positive for line {line_id}")
                if qty > remaining[line_id]:
                    raise QuantityExceedsRemainingError(
                        source.document_id, line_id, qty, remaining[line_id]
                    )
                wanted[line_id] = qty
        if not wanted:
            raise NothingToConvertError(source.document_id, target_kind.value)

        return [
            replace(line, line_id=new_id(), source_line_id=line.line_id, quantity=wanted[line.line_id])
            for line in source.lines
            if line.line_id in wanted
        ]

    def _child(
        self,
        source: FinancialDocument,
        kind: DocumentKind,
        lines: Sequence[LineItem],
        **fields,
    ) -> FinancialDocument:
        return self._documents.build_document(
            kind,
            source.organization_id,
            lines,
            party_id=source.party_id,
            currency=source.currency,
            pricing_mode=source.pricing_mode,
            source_document_id=source.document_id,
            **fields,
        )

    def _link(self, source: FinancialDocument, child: FinancialDocument) -> FinancialDocument:
        return replace(source, child_ids=source.child_ids + (child.document_id,))

    def _commit_log(self, source_kind: str, target: FinancialDocument, t0: float) -> None:
        logger.info("conversion_committed", extra={
            "source_kind": source_kind,
            "target_kind": target.kind.value,
            "target_id": target.document_id,
            "line_count": len(target.lines),
            "grand_total": str(target.grand_total),
            "duration_ms": round((time.monotonic() - t0) * 1000, 3),
        })

    # -------------------------------------------------------------------------
    # Conversions
    # -------------------------------------------------------------------------

    def convert_quote_to_order(
        self,
        quote_id: str,
        *,
        expected_version: int | None = None,
        deadline: Deadline | None = None,
    ) -> ConversionResult:
        """Copy every quote line onto a new DRAFT sales order; the quote becomes CONVERTED."""
        t0 = time.monotonic()
        with LogContext.bind(document_id=quote_id):
            with self._store.unit_of_work() as uow:
                quote, version = self._load_source(
                    uow, quote_id, DocumentKind.QUOTE, QUOTE_CONVERTIBLE,
                    DocumentKind.SALES_ORDER, expected_version,
                )
                lines = self._select_lines(
                    quote, {line.line_id: line.quantity for line in quote.lines}, None,
                    DocumentKind.SALES_ORDER,
                )
                order = self._child(
                    quote, DocumentKind.SALES_ORDER, lines,
                    document_discount=quote.document_discount,
                    shipping=quote.shipping,
                    reference=quote.reference,
                )
                outcome = self._machine.transition(
                    quote, DocumentEvent.CONVERT.value,
                    guard_context(uow, quote, self._clock.today()),
                )
                converted = self._link(outcome.document, order)
                uow.save_document(order, None)
                new_version = uow.save_document(converted, version)
                if deadline is not None:
                    deadline.check("convert_quote_to_order")
            self._commit_log(DocumentKind.QUOTE.value, order, t0)
        return ConversionResult(source=converted, source_version=new_version, target=order)

    def convert_order_to_invoice(
        self,
        order_id: str,
        quantities: Mapping[str, Decimal] | None = None,
        *,
        expected_version: int | None = None,
        deadline: Deadline | None = None,
    ) -> ConversionResult:
        """
        Invoice the given quantities (default: everything not yet invoiced).

        The order's own state is unchanged; its invoicing status is projected
        from the non-void invoices on read.
        """
        return self._convert_remaining(
            order_id, DocumentKind.SALES_ORDER, ORDER_INVOICEABLE, DocumentKind.INVOICE,
            quantities, expected_version, deadline, "convert_order_to_invoice",
        )

    def convert_po_to_bill(
        self,
        purchase_order_id: str,
        quantities: Mapping[str, Decimal] | None = None,
        *,
        expected_version: int | None = None,
        deadline: Deadline | None = None,
    ) -> ConversionResult:
        """Bill the given quantities (default: everything not yet billed)."""
        return self._convert_remaining(
            purchase_order_id, DocumentKind.PURCHASE_ORDER, PO_BILLABLE, DocumentKind.BILL,
            quantities, expected_version, deadline, "convert_po_to_bill",
        )

    def convert_invoice_to_return(
        self,
        invoice_id: str,
        quantities: Mapping[str, Decimal] | None = None,
        *,
        expected_version: int | None = None,
        deadline: Deadline | None = None,
    ) -> ConversionResult:
        """Open a PENDING sales return for goods on an issued invoice."""
        return self._convert_remaining(
            invoice_id, DocumentKind.INVOICE, INVOICE_RETURNABLE, DocumentKind.SALES_RETURN,
            quantities, expected_version, deadline, "convert_invoice_to_return",
        )

    def _convert_remaining(
        self,
        source_id: str,
        source_kind: DocumentKind,
        allowed: frozenset[str],
        target_kind: DocumentKind,
        quantities: Mapping[str, Decimal] | None,
        expected_version: int | None,
        deadline: Deadline | None,
        operation: str,
    ) -> ConversionResult:
        t0 = time.monotonic()
        with LogContext.bind(document_id=source_id):
            with self._store.unit_of_work() as uow:
                source, version = self._load_source(
                    uow, source_id, source_kind, allowed, target_kind, expected_version
                )
                children = active_children(source, uow.children_of(source_id), target_kind)
                remaining = remaining_quantities(source, converted_quantities(children))
                lines = self._select_lines(source, remaining, quantities, target_kind)
                target = self._child(source, target_kind, lines)
                linked = self._link(source, target)
                uow.save_document(target, None)
                new_version = uow.save_document(linked, version)
                if deadline is not None:
                    deadline.check(operation)
            self._commit_log(source_kind.value, target, t0)
        return ConversionResult(source=linked, source_version=new_version, target=target)

    def convert_alert_to_po(
        self,
        alert_id: str,
        *,
        vendor_id: str | None = None,
        quantity: Decimal | None = None,
        unit_cost: Decimal | None = None,
        expected_version: int | None = None,
        deadline: Deadline | None = None,
    ) -> ConversionResult:
        """
        Raise a DRAFT purchase order for an open reorder alert and mark the
        alert PO_CREATED in the same unit of work.

        Raises:
            InvalidDocumentError: no vendor given and the alert has no preferred vendor.
            IllegalTransitionError: the alert is already closed.
        """
        t0 = time.monotonic()
        with LogContext.bind(trace_id=alert_id):
            with self._store.unit_of_work() as uow:
                alert, version = uow.load_alert(alert_id)
                check_expected_version("reorder_alert", alert_id, expected_version, version)
                outcome = self._machine.transition(
                    alert, DocumentEvent.CREATE_PO.value,
                    GuardContext(document=alert, as_of=self._clock.today()),
                )
                vendor = vendor_id or alert.preferred_vendor_id
                if vendor is None:
                    raise InvalidDocumentError("party_id", "no vendor given and no preferred vendor")

                line = LineItem(
                    item_id=alert.item_id,
                    quantity=quantity if quantity is not None else alert.suggested_quantity,
                    unit_price=unit_cost if unit_cost is not None else alert.unit_cost,
                    description=f"Reorder for {alert.item_id} at {alert.warehouse_id}",
                )
                po = self._documents.build_document(
                    DocumentKind.PURCHASE_ORDER,
                    alert.organization_id,
                    [line],
                    party_id=vendor,
                    reference=f"reorder-alert:{alert_id}",
                )
                converted = replace(
                    outcome.document,
                    purchase_order_id=po.document_id,
                    resolved_at=self._clock.now(),
                )
                uow.save_document(po, None)
                new_version = uow.save_alert(converted, version)
                if deadline is not None:
                    deadline.check("convert_alert_to_po")
            self._commit_log(REORDER_ALERT_KIND, po, t0)
        return ConversionResult(source=converted, source_version=new_version, target=po)

    def bulk_convert_alerts(
        self,
        alert_ids: Sequence[str],
        *,
        vendor_id: str | None = None,
        continue_on_error: bool | None = None,
    ) -> BatchRunResult:
        """
        Convert each alert in its own unit of work and report per-item results.

        With ``continue_on_error`` (default from settings) a failed item does
        not stop the batch; otherwise the first failure stops it and the
        remaining items are reported SKIPPED.  Items already converted stay
        committed either way.
        """
        keep_going = (
            self._settings.batches.continue_on_error
            if continue_on_error is None else continue_on_error
        )
        started = self._clock.now()
        results: list[BatchItemResult] = []
        stopped = False

        for index, alert_id in enumerate(alert_ids):
            if stopped:
                results.append(BatchItemResult(index, alert_id, BatchItemStatus.SKIPPED))
                continue
            t0 = time.monotonic()
            try:
                conversion = self.convert_alert_to_po(alert_id, vendor_id=vendor_id)
            except ErpCoreError as exc:
                logger.warning("bulk_conversion_item_failed", extra={
                    "item_index": index,
                    "alert_id": alert_id,
                    "error_code": exc.code,
                })
                results.append(BatchItemResult(
                    item_index=index,
                    item_key=alert_id,
                    status=BatchItemStatus.FAILED,
                    error_code=exc.code,
                    error_message=str(exc),
                    duration_ms=int((time.monotonic() - t0) * 1000),
                ))
                stopped = not keep_going
                continue
            results.append(BatchItemResult(
                item_index=index,
                item_key=alert_id,
                status=BatchItemStatus.SUCCEEDED,
                result_data={"purchase_order_id": conversion.target.document_id},
                duration_ms=int((time.monotonic() - t0) * 1000),
            ))

        succeeded = sum(1 for r in results if r.status == BatchItemStatus.SUCCEEDED)
        failed = sum(1 for r in results if r.status == BatchItemStatus.FAILED)
        skipped = sum(1 for r in results if r.status == BatchItemStatus.SKIPPED)
        run = BatchRunResult(
            status=_run_status(succeeded, len(results)),
            total_items=len(results),
            succeeded=succeeded,
            failed=failed,
            skipped=skipped,
            item_results=tuple(results),
            started_at=started,
            completed_at=self._clock.now(),
        )
        logger.info("bulk_conversion_completed", extra={
            "status": run.status.value,
            "total_items": run.total_items,
            "succeeded": succeeded,
            "failed": failed,
            "skipped": skipped,
            "continue_on_error": keep_going,
        })
        return run
