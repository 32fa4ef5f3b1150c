"""
Tests for read-side status projection.

Projected statuses are derived from child documents and receipts on every
read; voiding a child immediately changes what its parent projects.
"""

from dataclasses import replace
from datetime import date
from decimal import Decimal

from erp_engines.projection import (
    converted_quantities,
    effective_status,
    is_core_return_overdue,
    is_past_due,
    overdue_core_returns,
    project_bill_status,
    project_invoice_status,
    project_payment_status,
    project_receive_status,
    remaining_quantities,
)
from erp_kernel.domain.documents import (
    DocumentKind,
    DocumentTotals,
    FinancialDocument,
    LineItem,
    Receipt,
    ReceiptLine,
)
from erp_kernel.domain.statuses import (
    BillingStatus,
    InvoicingStatus,
    PaymentStatus,
    ReceivingStatus,
)

AS_OF = date(2024, 3, 1)


def _line(line_id: str, quantity: str, source_line_id: str | None = None) -> LineItem:
    return LineItem(
        item_id="SKU-1",
        quantity=Decimal(quantity),
        unit_price=Decimal("10.00"),
        line_id=line_id,
        source_line_id=source_line_id,
    )


def _totals(grand_total: str) -> DocumentTotals:
    total = Decimal(grand_total)
    zero = Decimal("0")
    return DocumentTotals(total, zero, zero, zero, zero, zero, total)


ORDER = FinancialDocument(
    document_id="so-1",
    kind=DocumentKind.SALES_ORDER,
    status="CONFIRMED",
    organization_id="org-1",
    lines=(_line("a", "10"), _line("b", "5")),
)

PURCHASE_ORDER = replace(ORDER, document_id="po-1", kind=DocumentKind.PURCHASE_ORDER, status="ISSUED")


def _invoice(doc_id: str, lines, status="SENT", paid="0", total="100.00", parent=ORDER):
    return FinancialDocument(
        document_id=doc_id,
        kind=DocumentKind.INVOICE if parent.kind == DocumentKind.SALES_ORDER else DocumentKind.BILL,
        status=status,
        organization_id="org-1",
        lines=tuple(lines),
        source_document_id=parent.document_id,
        totals=_totals(total),
        amount_paid=Decimal(paid),
    )


class TestInvoicingProjection:
    def test_no_invoices(self):
        assert project_invoice_status(ORDER, []) == InvoicingStatus.NOT_INVOICED

    def test_partial(self):
        inv = _invoice("inv-1", [_line("x", "4", "a")])
        assert project_invoice_status(ORDER, [inv]) == InvoicingStatus.PARTIALLY_INVOICED

    def test_fully_invoiced_across_invoices(self):
        invoices = [
            _invoice("inv-1", [_line("x", "4", "a")]),
            _invoice("inv-2", [_line("y", "6", "a"), _line("z", "5", "b")]),
        ]
        assert project_invoice_status(ORDER, invoices) == InvoicingStatus.INVOICED

    def test_voided_invoice_stops_counting(self):
        invoices = [
            _invoice("inv-1", [_line("x", "10", "a"), _line("y", "5", "b")], status="VOID"),
        ]
        assert project_invoice_status(ORDER, invoices) == InvoicingStatus.NOT_INVOICED

    def test_other_orders_invoices_ignored(self):
        other = replace(ORDER, document_id="so-2")
        inv = _invoice("inv-1", [_line("x", "10", "a")], parent=other)
        assert project_invoice_status(ORDER, [inv]) == InvoicingStatus.NOT_INVOICED


class TestBillingProjection:
    def test_partial_then_full(self):
        bill = _invoice("bill-1", [_line("x", "10", "a")], parent=PURCHASE_ORDER)
        assert project_bill_status(PURCHASE_ORDER, [bill]) == BillingStatus.PARTIALLY_BILLED
        rest = _invoice("bill-2", [_line("y", "5", "b")], parent=PURCHASE_ORDER)
        assert project_bill_status(PURCHASE_ORDER, [bill, rest]) == BillingStatus.BILLED

    def test_none(self):
        assert project_bill_status(PURCHASE_ORDER, []) == BillingStatus.NOT_BILLED


class TestReceivingProjection:
    def test_statuses(self):
        partial = Receipt("r-1", "po-1", (ReceiptLine("a", Decimal("10")),))
        rest = Receipt("r-2", "po-1", (ReceiptLine("b", Decimal("5")),))
        assert project_receive_status(PURCHASE_ORDER, []) == ReceivingStatus.NOT_RECEIVED
        assert project_receive_status(PURCHASE_ORDER, [partial]) == ReceivingStatus.PARTIALLY_RECEIVED
        assert project_receive_status(PURCHASE_ORDER, [partial, rest]) == ReceivingStatus.RECEIVED

    def test_cancelled_receipt_ignored(self):
        cancelled = Receipt(
            "r-1", "po-1",
            (ReceiptLine("a", Decimal("10")), ReceiptLine("b", Decimal("5"))),
            cancelled=True,
        )
        assert project_receive_status(PURCHASE_ORDER, [cancelled]) == ReceivingStatus.NOT_RECEIVED


class TestPaymentProjection:
    def test_unpaid(self):
        inv = _invoice("inv-1", [_line("x", "10", "a"), _line("y", "5", "b")])
        assert project_payment_status(ORDER, [inv]) == PaymentStatus.UNPAID

    def test_partially_paid(self):
        inv = _invoice("inv-1", [_line("x", "10", "a"), _line("y", "5", "b")], paid="40.00")
        assert project_payment_status(ORDER, [inv]) == PaymentStatus.PARTIALLY_PAID

    def test_paid_requires_full_invoicing(self):
        inv = _invoice("inv-1", [_line("x", "10", "a")], status="PAID", paid="100.00")
        assert project_payment_status(ORDER, [inv]) == PaymentStatus.PARTIALLY_PAID

    def test_paid(self):
        inv = _invoice(
            "inv-1", [_line("x", "10", "a"), _line("y", "5", "b")], status="PAID", paid="100.00"
        )
        assert project_payment_status(ORDER, [inv]) == PaymentStatus.PAID


class TestQuantities:
    def test_remaining_never_negative(self):
        converted = converted_quantities([_invoice("inv-1", [_line("x", "12", "a")])])
        remaining = remaining_quantities(ORDER, converted)
        assert remaining == {"a": Decimal("0"), "b": Decimal("5")}

    def test_lines_without_source_ignored(self):
        assert converted_quantities([_invoice("inv-1", [_line("x", "3")])]) == {}


class TestDateDrivenStatus:
    def _invoice(self, status="SENT", due=date(2024, 2, 15), paid="0"):
        return replace(
            _invoice("inv-1", [_line("x", "1", "a")], status=status, paid=paid),
            due_date=due,
        )

    def test_past_due_invoice_reads_overdue(self):
        invoice = self._invoice()
        assert is_past_due(invoice, AS_OF)
        assert effective_status(invoice, AS_OF) == "OVERDUE"
        assert invoice.status == "SENT"

    def test_due_today_not_overdue(self):
        assert effective_status(self._invoice(due=AS_OF), AS_OF) == "SENT"

    def test_settled_invoice_never_overdue(self):
        invoice = self._invoice(status="PAID", paid="100.00")
        assert effective_status(invoice, AS_OF) == "PAID"

    def test_draft_invoice_never_overdue(self):
        assert effective_status(self._invoice(status="DRAFT"), AS_OF) == "DRAFT"

    def test_partially_paid_overdue(self):
        invoice = self._invoice(status="PARTIALLY_PAID", paid="30.00")
        assert effective_status(invoice, AS_OF) == "OVERDUE"

    def test_quote_expires(self):
        quote = FinancialDocument(
            document_id="q-1",
            kind=DocumentKind.QUOTE,
            status="SENT",
            organization_id="org-1",
            valid_until=date(2024, 2, 29),
        )
        assert effective_status(quote, AS_OF) == "EXPIRED"
        assert effective_status(quote, date(2024, 2, 29)) == "SENT"
        assert effective_status(replace(quote, status="ACCEPTED"), AS_OF) == "ACCEPTED"

    def test_sales_order_unaffected(self):
        assert effective_status(replace(ORDER, due_date=date(2020, 1, 1)), AS_OF) == "CONFIRMED"


class TestOverdueCoreReturns:
    def _core(self, doc_id, due, status="PENDING"):
        return FinancialDocument(
            document_id=doc_id,
            kind=DocumentKind.CORE_RETURN,
            status=status,
            organization_id="org-1",
            due_date=due,
        )

    def test_most_overdue_first(self):
        returns = [
            self._core("core-1", date(2024, 2, 25)),
            self._core("core-2", date(2024, 1, 31)),
            self._core("core-3", date(2024, 3, 10)),
            self._core("core-4", date(2024, 1, 1), status="CREDITED"),
        ]
        overdue = overdue_core_returns(returns, AS_OF)
        assert [(o.document.document_id, o.days_overdue) for o in overdue] == [
            ("core-2", 30),
            ("core-1", 5),
        ]

    def test_none_overdue(self):
        assert overdue_core_returns([self._core("core-1", AS_OF)], AS_OF) == []

    def test_overdue_only_while_pending(self):
        core = self._core("core-1", date(2024, 2, 29))
        assert is_core_return_overdue(core, AS_OF)
        assert not is_core_return_overdue(core, date(2024, 2, 29))
        assert not is_core_return_overdue(replace(core, status="RECEIVED"), AS_OF)
        assert not is_core_return_overdue(replace(core, due_date=None), AS_OF)
