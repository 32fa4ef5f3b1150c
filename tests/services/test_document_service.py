"""
Tests for DocumentService.

Covers document creation with computed totals, draft edits, lifecycle
transitions through the generic state machine, goods receipts, the
overdue sweep and read-side status projection.  Every failing operation
must leave the stored document exactly as it was.
"""

from datetime import date
from decimal import Decimal

import pytest

from erp_kernel.domain.deadline import Deadline
from erp_kernel.domain.documents import DocumentDiscount, DocumentKind
from erp_kernel.domain.events import DocumentEvent
from erp_kernel.domain.statuses import (
    BillingStatus,
    InvoicingStatus,
    PaymentStatus,
    ReceivingStatus,
)
from erp_kernel.exceptions import (
    ConcurrentModificationError,
    DeadlineExceededError,
    DocumentLockedError,
    DocumentNotFoundError,
    GuardViolationError,
    IllegalTransitionError,
    InvalidDocumentError,
    InvalidLineError,
    QuantityExceedsRemainingError,
)
from tests.conftest import CUSTOMER_ID, ORG_ID, VENDOR_ID, make_line


class TestCreateDocument:
    def test_created_in_initial_state_with_totals(self, documents):
        invoice = documents.create_document(
            DocumentKind.INVOICE,
            ORG_ID,
            [make_line(quantity="10", unit_price="25.00", tax_rate_percent="6",
                       discount_percent=Decimal("10"))],
            party_id=CUSTOMER_ID,
        )
        assert invoice.status == "DRAFT"
        assert invoice.grand_total == Decimal("238.50")
        assert invoice.balance == Decimal("238.50")

        stored, version = documents.get_document(invoice.document_id)
        assert version == 1
        assert stored == invoice

    def test_default_dates_from_settings(self, documents, clock):
        invoice = documents.create_document(DocumentKind.INVOICE, ORG_ID, [make_line()])
        quote = documents.create_document(DocumentKind.QUOTE, ORG_ID, [make_line()])
        core = documents.create_document(DocumentKind.CORE_RETURN, ORG_ID, [make_line()])

        assert invoice.issue_date == date(2024, 3, 1)
        assert invoice.due_date == date(2024, 3, 31)
        assert quote.valid_until == date(2024, 3, 31)
        assert quote.due_date is None
        assert core.due_date == date(2024, 3, 31)
        assert invoice.created_at == clock.now()

    def test_explicit_due_date_kept(self, documents):
        invoice = documents.create_document(
            DocumentKind.INVOICE, ORG_ID, [make_line()], due_date=date(2024, 4, 15)
        )
        assert invoice.due_date == date(2024, 4, 15)

    def test_initial_state_of_returns(self, documents):
        ret = documents.create_document(DocumentKind.SALES_RETURN, ORG_ID, [make_line()])
        assert ret.status == "PENDING"

    def test_document_discount_and_shipping(self, documents):
        order = documents.create_document(
            DocumentKind.SALES_ORDER,
            ORG_ID,
            [make_line(unit_price="200.00")],
            document_discount=DocumentDiscount.percentage("5"),
            shipping=Decimal("12.00"),
        )
        assert order.totals.document_discount == Decimal("10.00")
        assert order.grand_total == Decimal("202.00")

    def test_missing_organization(self, documents):
        with pytest.raises(InvalidDocumentError):
            documents.create_document(DocumentKind.INVOICE, "", [make_line()])

    def test_unknown_currency(self, documents):
        with pytest.raises(InvalidDocumentError) as exc_info:
            documents.create_document(DocumentKind.INVOICE, ORG_ID, [make_line()], currency="XYZ")
        assert exc_info.value.field == "currency"

    def test_invalid_line_saves_nothing(self, documents, store):
        with pytest.raises(InvalidLineError):
            documents.create_document(DocumentKind.INVOICE, ORG_ID, [make_line(quantity="0")])
        assert store._documents == {}

    def test_expired_deadline_saves_nothing(self, documents, store, clock):
        with pytest.raises(DeadlineExceededError):
            documents.create_document(
                DocumentKind.INVOICE, ORG_ID, [make_line()],
                deadline=Deadline.after(clock, 0),
            )
        assert store._documents == {}

    def test_get_missing_document(self, documents):
        with pytest.raises(DocumentNotFoundError):
            documents.get_document("does-not-exist")


class TestDraftEdits:
    def test_update_lines_recomputes_totals(self, documents):
        quote = documents.create_document(DocumentKind.QUOTE, ORG_ID, [make_line()])
        updated, version = documents.update_draft_lines(
            quote.document_id,
            [make_line(quantity="3", unit_price="10.00", tax_rate_percent="10")],
            expected_version=1,
        )
        assert version == 2
        assert updated.grand_total == Decimal("33.00")
        assert documents.get_document(quote.document_id)[0].grand_total == Decimal("33.00")

    def test_locked_after_send(self, documents, sent_invoice):
        invoice_id = sent_invoice()
        with pytest.raises(DocumentLockedError):
            documents.update_draft_lines(invoice_id, [make_line(unit_price="1.00")])
        stored, version = documents.get_document(invoice_id)
        assert stored.grand_total == Decimal("500.00")
        assert version == 2

    def test_stale_version_rejected(self, documents):
        quote = documents.create_document(DocumentKind.QUOTE, ORG_ID, [make_line()])
        documents.update_draft_lines(quote.document_id, [make_line(unit_price="5.00")])
        with pytest.raises(ConcurrentModificationError) as exc_info:
            documents.update_draft_lines(
                quote.document_id, [make_line(unit_price="6.00")], expected_version=1
            )
        assert exc_info.value.actual_version == 2
        assert documents.get_document(quote.document_id)[0].grand_total == Decimal("5.00")


class TestTransitions:
    def test_send_invoice(self, documents):
        invoice = documents.create_document(DocumentKind.INVOICE, ORG_ID, [make_line()])
        result = documents.transition(invoice.document_id, DocumentEvent.SEND, expected_version=1)

        assert result.from_state == "DRAFT"
        assert result.to_state == "SENT"
        assert result.version == 2
        assert [e.kind for e in result.side_effects] == ["SUBMIT_EINVOICE"]
        assert result.submission is None
        assert documents.get_document(invoice.document_id)[0].status == "SENT"

    def test_event_given_as_string(self, documents):
        order = documents.create_document(DocumentKind.SALES_ORDER, ORG_ID, [make_line()])
        assert documents.transition(order.document_id, "CONFIRM").to_state == "CONFIRMED"

    def test_illegal_transition_leaves_document(self, documents, sent_invoice):
        invoice_id = sent_invoice()
        with pytest.raises(IllegalTransitionError):
            documents.transition(invoice_id, DocumentEvent.SEND)
        stored, version = documents.get_document(invoice_id)
        assert stored.status == "SENT"
        assert version == 2

    def test_expired_deadline_leaves_document(self, documents, clock):
        invoice = documents.create_document(DocumentKind.INVOICE, ORG_ID, [make_line()])
        with pytest.raises(DeadlineExceededError):
            documents.transition(
                invoice.document_id, DocumentEvent.SEND, deadline=Deadline.after(clock, 0)
            )
        stored, version = documents.get_document(invoice.document_id)
        assert stored.status == "DRAFT"
        assert version == 1

    def test_live_deadline_commits(self, documents, clock):
        invoice = documents.create_document(DocumentKind.INVOICE, ORG_ID, [make_line()])
        result = documents.transition(
            invoice.document_id, DocumentEvent.SEND, deadline=Deadline.after(clock, 30)
        )
        assert result.to_state == "SENT"

    def test_stale_expected_version(self, documents, sent_invoice):
        invoice_id = sent_invoice()
        with pytest.raises(ConcurrentModificationError):
            documents.transition(invoice_id, DocumentEvent.VOID, expected_version=1)

    def test_draft_po_with_bill_cannot_cancel(self, documents):
        """A DRAFT purchase order with a linked non-cancelled bill cannot be cancelled."""
        po = documents.create_document(
            DocumentKind.PURCHASE_ORDER, ORG_ID, [make_line()], party_id=VENDOR_ID
        )
        documents.create_document(
            DocumentKind.BILL, ORG_ID, [make_line()],
            party_id=VENDOR_ID, source_document_id=po.document_id,
        )

        with pytest.raises(GuardViolationError) as exc_info:
            documents.transition(po.document_id, DocumentEvent.CANCEL)

        assert exc_info.value.reason == "order has active bills"
        assert documents.get_document(po.document_id)[0].status == "DRAFT"

    def test_voiding_bill_unblocks_cancel(self, documents):
        po = documents.create_document(DocumentKind.PURCHASE_ORDER, ORG_ID, [make_line()])
        bill = documents.create_document(
            DocumentKind.BILL, ORG_ID, [make_line()], source_document_id=po.document_id
        )
        documents.transition(bill.document_id, DocumentEvent.VOID)
        assert documents.transition(po.document_id, DocumentEvent.CANCEL).to_state == "CANCELLED"

    def test_transition_logs_carry_document_id(self, documents, captured_logs):
        invoice = documents.create_document(DocumentKind.INVOICE, ORG_ID, [make_line()])
        documents.transition(invoice.document_id, DocumentEvent.SEND)
        committed = [r for r in captured_logs() if r["message"] == "document_transition_committed"]
        assert committed[-1]["document_id"] == invoice.document_id
        assert committed[-1]["to_state"] == "SENT"


class TestReceiveGoods:
    def test_partial_then_full(self, documents, issued_po):
        po_id = issued_po()
        line_id = documents.get_document(po_id)[0].lines[0].line_id

        first = documents.receive_goods(po_id, {line_id: Decimal("4")})
        assert first.to_state == "PARTIALLY_RECEIVED"
        assert [e.kind for e in first.side_effects] == ["RECEIVE_STOCK"]
        assert documents.project_status(po_id).receiving == ReceivingStatus.PARTIALLY_RECEIVED

        second = documents.receive_goods(po_id, {line_id: Decimal("6")})
        assert second.to_state == "RECEIVED"
        assert documents.project_status(po_id).receiving == ReceivingStatus.RECEIVED

    def test_over_receipt_rejected(self, documents, issued_po):
        po_id = issued_po()
        line_id = documents.get_document(po_id)[0].lines[0].line_id
        documents.receive_goods(po_id, {line_id: Decimal("8")})

        with pytest.raises(QuantityExceedsRemainingError) as exc_info:
            documents.receive_goods(po_id, {line_id: Decimal("3")})

        assert exc_info.value.remaining == Decimal("2")
        assert documents.get_document(po_id)[0].status == "PARTIALLY_RECEIVED"

    def test_unknown_line(self, documents, issued_po):
        with pytest.raises(InvalidDocumentError):
            documents.receive_goods(issued_po(), {"no-such-line": Decimal("1")})

    def test_draft_po_cannot_receive(self, documents):
        po = documents.create_document(DocumentKind.PURCHASE_ORDER, ORG_ID, [make_line()])
        with pytest.raises(IllegalTransitionError):
            documents.receive_goods(po.document_id, {po.lines[0].line_id: Decimal("1")})
        assert documents.project_status(po.document_id).receiving == ReceivingStatus.NOT_RECEIVED

    def test_invoice_cannot_receive(self, documents, sent_invoice):
        invoice_id = sent_invoice()
        line_id = documents.get_document(invoice_id)[0].lines[0].line_id
        with pytest.raises(InvalidDocumentError):
            documents.receive_goods(invoice_id, {line_id: Decimal("1")})


class TestOverdue:
    def test_effective_status_without_write(self, documents, sent_invoice, clock):
        invoice_id = sent_invoice()
        clock.advance_days(31)

        assert documents.effective_status(invoice_id) == "OVERDUE"
        stored, version = documents.get_document(invoice_id)
        assert stored.status == "SENT"
        assert version == 2

    def test_sweep_persists_overdue(self, documents, sent_invoice, clock):
        overdue_id = sent_invoice()
        current_id = sent_invoice(due_date=date(2024, 6, 1))
        clock.advance_days(31)

        marked = documents.mark_overdue(ORG_ID)

        assert marked == [overdue_id]
        assert documents.get_document(overdue_id)[0].status == "OVERDUE"
        assert documents.get_document(current_id)[0].status == "SENT"
        assert documents.mark_overdue(ORG_ID) == []

    def test_sweep_as_of_later_date(self, documents, sent_invoice):
        invoice_id = sent_invoice()

        marked = documents.mark_overdue(ORG_ID, as_of=date(2024, 4, 5))

        assert marked == [invoice_id]
        assert documents.get_document(invoice_id)[0].status == "OVERDUE"

    def test_transition_guard_uses_as_of(self, documents, sent_invoice):
        invoice_id = sent_invoice()
        with pytest.raises(GuardViolationError):
            documents.transition(invoice_id, DocumentEvent.MARK_OVERDUE)
        result = documents.transition(
            invoice_id, DocumentEvent.MARK_OVERDUE, as_of=date(2024, 4, 1)
        )
        assert result.to_state == "OVERDUE"

    def test_not_overdue_on_due_date(self, documents, sent_invoice):
        invoice_id = sent_invoice()
        assert documents.effective_status(invoice_id, as_of=date(2024, 3, 31)) == "SENT"


class TestProjection:
    def test_order_projection(self, documents, conversions):
        order = documents.create_document(
            DocumentKind.SALES_ORDER, ORG_ID,
            [make_line(quantity="10"), make_line(item_id="SKU-2", quantity="5")],
            party_id=CUSTOMER_ID,
        )
        documents.transition(order.document_id, DocumentEvent.CONFIRM)
        projection = documents.project_status(order.document_id)
        assert projection.invoicing == InvoicingStatus.NOT_INVOICED
        assert projection.payment == PaymentStatus.UNPAID
        assert projection.receiving is None

        conversions.convert_order_to_invoice(order.document_id, {order.lines[0].line_id: Decimal("4")})
        assert documents.project_status(order.document_id).invoicing == (
            InvoicingStatus.PARTIALLY_INVOICED
        )

    def test_purchase_order_projection(self, documents, issued_po, conversions):
        po_id = issued_po()
        projection = documents.project_status(po_id)
        assert projection.receiving == ReceivingStatus.NOT_RECEIVED
        assert projection.billing == BillingStatus.NOT_BILLED
        assert projection.invoicing is None

        conversions.convert_po_to_bill(po_id)
        assert documents.project_status(po_id).billing == BillingStatus.BILLED

    def test_stored_order_unchanged_by_projection(self, documents):
        order = documents.create_document(DocumentKind.SALES_ORDER, ORG_ID, [make_line()])
        documents.project_status(order.document_id)
        assert documents.get_document(order.document_id)[1] == 1
