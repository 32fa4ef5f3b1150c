"""
Module: erp_engines.projection
Responsibility:
    Derive read-side statuses from authoritative child documents: an
    order's invoicing and payment status, a purchase order's receiving and
    billing status, and date-driven states (OVERDUE, EXPIRED) evaluated
    against an explicit ``as_of`` date.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Projections are computed on read and never written back to the
      source documents, so a voided invoice immediately stops counting
      toward its order's invoicing status.
    - VOID invoices/bills, REJECTED sales returns and cancelled receipts
      are ignored.
    - Engines never read the clock; ``as_of`` is always passed in.

Failure modes:
    - None beyond TypeError on malformed inputs; missing children simply
      project as NOT_* statuses.

Usage:
    from erp_engines.projection import project_invoice_status

    status = project_invoice_status(order, invoices)
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from erp_kernel.domain.documents import DocumentKind, FinancialDocument, Receipt
from erp_kernel.domain.statuses import (
    BillingStatus,
    BillStatus,
    CoreReturnStatus,
    InvoiceStatus,
    InvoicingStatus,
    PaymentStatus,
    QuoteStatus,
    ReceivingStatus,
    SalesReturnStatus,
)

_ZERO = Decimal("0")

# States in which an unpaid invoice or bill can be past due
_DUE_STATES = frozenset({
    InvoiceStatus.SENT.value,
    InvoiceStatus.PARTIALLY_PAID.value,
    InvoiceStatus.OVERDUE.value,
    BillStatus.RECEIVED.value,
})

# Child states that no longer hold any of the parent's quantity
_INACTIVE_CHILD_STATES: dict[DocumentKind, frozenset[str]] = {
    DocumentKind.INVOICE: frozenset({InvoiceStatus.VOID.value}),
    DocumentKind.BILL: frozenset({BillStatus.VOID.value}),
    DocumentKind.SALES_RETURN: frozenset({SalesReturnStatus.REJECTED.value}),
}


def active_children(
    parent: FinancialDocument,
    children: Iterable[FinancialDocument],
    kind: DocumentKind,
) -> list[FinancialDocument]:
    """
    Children of ``kind`` converted from ``parent`` that still count
    against its quantities (not VOID, or for returns not REJECTED).
    """
    inactive = _INACTIVE_CHILD_STATES.get(kind, frozenset())
    return [
        c for c in children
        if c.kind == kind
        and c.source_document_id == parent.document_id
        and c.status not in inactive
    ]


def converted_quantities(children: Iterable[FinancialDocument]) -> dict[str, Decimal]:
    """Quantity already converted per source line id."""
    totals: dict[str, Decimal] = {}
    for child in children:
        for line in child.lines:
            if line.source_line_id is None:
                continue
            totals[line.source_line_id] = totals.get(line.source_line_id, _ZERO) + line.quantity
    return totals


def received_quantities(
    purchase_order: FinancialDocument,
    receipts: Iterable[Receipt],
) -> dict[str, Decimal]:
    """Quantity received per purchase order line id, ignoring cancelled receipts."""
    totals: dict[str, Decimal] = {}
    for receipt in receipts:
        if receipt.cancelled or receipt.purchase_order_id != purchase_order.document_id:
            continue
        for line in receipt.lines:
            totals[line.source_line_id] = totals.get(line.source_line_id, _ZERO) + line.quantity
    return totals


def remaining_quantities(
    source: FinancialDocument,
    converted: dict[str, Decimal],
) -> dict[str, Decimal]:
    """Quantity still open per source line id (never negative)."""
    return {
        line.line_id: max(line.quantity - converted.get(line.line_id, _ZERO), _ZERO)
        for line in source.lines
    }


def _coverage(source: FinancialDocument, done: dict[str, Decimal]) -> tuple[bool, bool]:
    """(anything_done, everything_done) for the source's lines."""
    anything = any(q > 0 for q in done.values())
    everything = bool(source.lines) and all(
        done.get(line.line_id, _ZERO) >= line.quantity for line in source.lines
    )
    return anything, everything


def project_invoice_status(
    order: FinancialDocument,
    invoices: Sequence[FinancialDocument],
) -> InvoicingStatus:
    """Compare non-void invoiced quantities against the order's lines."""
    done = converted_quantities(active_children(order, invoices, DocumentKind.INVOICE))
    anything, everything = _coverage(order, done)
    if everything:
        return InvoicingStatus.INVOICED
    if anything:
        return InvoicingStatus.PARTIALLY_INVOICED
    return InvoicingStatus.NOT_INVOICED


def project_bill_status(
    purchase_order: FinancialDocument,
    bills: Sequence[FinancialDocument],
) -> BillingStatus:
    """Compare non-void billed quantities against the purchase order's lines."""
    done = converted_quantities(active_children(purchase_order, bills, DocumentKind.BILL))
    anything, everything = _coverage(purchase_order, done)
    if everything:
        return BillingStatus.BILLED
    if anything:
        return BillingStatus.PARTIALLY_BILLED
    return BillingStatus.NOT_BILLED


def project_receive_status(
    purchase_order: FinancialDocument,
    receipts: Sequence[Receipt],
) -> ReceivingStatus:
    """Compare received quantities against the purchase order's lines."""
    anything, everything = _coverage(
        purchase_order, received_quantities(purchase_order, receipts)
    )
    if everything:
        return ReceivingStatus.RECEIVED
    if anything:
        return ReceivingStatus.PARTIALLY_RECEIVED
    return ReceivingStatus.NOT_RECEIVED


def project_payment_status(
    order: FinancialDocument,
    invoices: Sequence[FinancialDocument],
) -> PaymentStatus:
    """
    Payment status of an order from its non-void invoices.

    PAID only once the order is fully invoiced and every invoice is settled.
    """
    active = active_children(order, invoices, DocumentKind.INVOICE)
    paid = sum((inv.amount_paid for inv in active), _ZERO)
    if paid <= 0:
        return PaymentStatus.UNPAID
    settled = all(inv.balance <= 0 for inv in active)
    if settled and project_invoice_status(order, invoices) == InvoicingStatus.INVOICED:
        return PaymentStatus.PAID
    return PaymentStatus.PARTIALLY_PAID


def is_past_due(document: FinancialDocument, as_of: date) -> bool:
    """Invoice or bill with an outstanding balance whose due date has passed."""
    return (
        document.kind.is_payable
        and document.status in _DUE_STATES
        and document.due_date is not None
        and document.due_date < as_of
        and document.balance > 0
    )


def is_quote_expired(document: FinancialDocument, as_of: date) -> bool:
    return (
        document.kind == DocumentKind.QUOTE
        and document.status == QuoteStatus.SENT.value
        and document.valid_until is not None
        and document.valid_until < as_of
    )


def is_core_return_overdue(document: FinancialDocument, as_of: date) -> bool:
    """Pending core return whose due date has passed."""
    return (
        document.kind == DocumentKind.CORE_RETURN
        and document.status == CoreReturnStatus.PENDING.value
        and document.due_date is not None
        and document.due_date < as_of
    )


def effective_status(document: FinancialDocument, as_of: date) -> str:
    """
    Stored status adjusted for the passage of time.

    OVERDUE and EXPIRED are decided here, at read time, for every caller.
    """
    if is_past_due(document, as_of):
        return InvoiceStatus.OVERDUE.value
    if is_quote_expired(document, as_of):
        return QuoteStatus.EXPIRED.value
    return document.status


@dataclass(frozen=True)
class OverdueCoreReturn:
    document: FinancialDocument
    days_overdue: int


def overdue_core_returns(
    returns: Iterable[FinancialDocument],
    as_of: date,
) -> list[OverdueCoreReturn]:
    """Overdue core returns, most overdue first."""
    overdue = [
        OverdueCoreReturn(document=r, days_overdue=(as_of - r.due_date).days)
        for r in returns
        if is_core_return_overdue(r, as_of)
    ]
    overdue.sort(key=lambda o: (-o.days_overdue, o.document.document_id))
    return overdue
