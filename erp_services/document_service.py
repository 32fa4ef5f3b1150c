"""
erp_services.document_service -- Document creation, draft edits and transitions.

Responsibility:
    Imperative shell around the pure engines: load the aggregate and the
    facts its guards need, ask the state machine for the outcome, save
    everything in one unit of work, then run post-commit advisory work
    (e-invoice submission).

Architecture position:
    Services layer.  May import erp_engines, erp_kernel, erp_modules and
    erp_config.

Invariants enforced:
    - A transition's state change, total recomputation and persistence
      commit together or not at all.
    - A caller-supplied Deadline is checked after all computation and
      before commit, so an expired deadline never leaves partial writes.
    - Derived statuses (invoicing, receiving, billing, payment, overdue,
      expired) are computed on read and never stored.

Failure modes:
    - DocumentNotFoundError, IllegalTransitionError, GuardViolationError,
      DocumentLockedError, ConcurrentModificationError,
      DeadlineExceededError, InvalidLineError and friends from the
      calculator.  All propagate after rollback.
"""

from __future__ import annotations

import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, replace
from datetime import date, timedelta
from decimal import Decimal

from erp_config import EngineSettings, get_active_settings
from erp_engines.calculator import DocumentCalculator
from erp_engines.projection import (
    effective_status,
    project_bill_status,
    project_invoice_status,
    project_payment_status,
    project_receive_status,
    received_quantities,
    remaining_quantities,
)
from erp_engines.state_machine import (
    DocumentStateMachine,
    GuardContext,
    SideEffect,
)
from erp_kernel.domain.alerts import ReorderAlert
from erp_kernel.domain.clock import Clock, SystemClock
from erp_kernel.domain.currency import CurrencyRegistry
from erp_kernel.domain.deadline import Deadline
from erp_kernel.domain.documents import (
    DocumentDiscount,
    DocumentKind,
    FinancialDocument,
    LineItem,
    PricingMode,
    Receipt,
    ReceiptLine,
    new_id,
)
from erp_kernel.domain.events import DocumentEvent, SideEffectKind
from erp_kernel.domain.statuses import (
    BillingStatus,
    InvoiceStatus,
    InvoicingStatus,
    PaymentStatus,
    ReceivingStatus,
)
from erp_kernel.exceptions import (
    ConcurrentModificationError,
    InvalidDocumentError,
    QuantityExceedsRemainingError,
)
from erp_kernel.logging_config import LogContext, get_logger
from erp_modules.registry import WORKFLOWS
from erp_services.einvoice import EInvoiceSubmitter, SubmissionResult, submit_after_commit
from erp_services.store import DocumentStore, UnitOfWork

logger = get_logger("services.document")

_ZERO = Decimal("0")


@dataclass(frozen=True)
class TransitionResult:
    """Committed outcome of one lifecycle event."""

    document: FinancialDocument | ReorderAlert
    version: int
    from_state: str
    to_state: str
    event: str
    side_effects: tuple[SideEffect, ...] = ()
    submission: SubmissionResult | None = None


@dataclass(frozen=True)
class StatusProjection:
    """Stored status plus every read-time derived status of one document."""

    document_id: str
    kind: DocumentKind
    status: str
    effective_status: str
    invoicing: InvoicingStatus | None = None
    payment: PaymentStatus | None = None
    receiving: ReceivingStatus | None = None
    billing: BillingStatus | None = None


def check_expected_version(
    entity_type: str,
    entity_id: str,
    expected_version: int | None,
    actual_version: int,
) -> None:
    """Fail fast when the caller's version is already stale."""
    if expected_version is not None and expected_version != actual_version:
        raise ConcurrentModificationError(entity_type, entity_id, expected_version, actual_version)


def guard_context(
    uow: UnitOfWork,
    entity: FinancialDocument | ReorderAlert,
    as_of: date,
) -> GuardContext:
    """Load the children and receipts the entity's guards inspect."""
    if isinstance(entity, ReorderAlert):
        return GuardContext(document=entity, as_of=as_of)
    children = tuple(uow.children_of(entity.document_id))
    receipts: tuple[Receipt, ...] = ()
    if entity.kind == DocumentKind.PURCHASE_ORDER:
        receipts = tuple(uow.receipts_for(entity.document_id))
    return GuardContext(document=entity, children=children, receipts=receipts, as_of=as_of)


class DocumentService:
    """
    Entry point for document CRUD and lifecycle events.

    Usage:
        service = DocumentService(InMemoryDocumentStore())
        invoice = service.create_document(DocumentKind.INVOICE, "org-1", lines)
        service.transition(invoice.document_id, DocumentEvent.SEND)
    """

    def __init__(
        self,
        store: DocumentStore,
        settings: EngineSettings | None = None,
        clock: Clock | None = None,
        state_machine: DocumentStateMachine | None = None,
        calculator: DocumentCalculator | None = None,
        einvoice: EInvoiceSubmitter | None = None,
    ) -> None:
        self._store = store
        self._settings = settings or get_active_settings()
        self._clock = clock or SystemClock()
        self._calculator = calculator or DocumentCalculator()
        self._machine = state_machine or DocumentStateMachine(WORKFLOWS, calculator=self._calculator)
        self._einvoice = einvoice

    @property
    def state_machine(self) -> DocumentStateMachine:
        return self._machine

    # -------------------------------------------------------------------------
    # Creation and draft edits
    # -------------------------------------------------------------------------

    def default_dates(
        self,
        kind: DocumentKind,
        issue_date: date,
    ) -> tuple[date | None, date | None]:
        """(due_date, valid_until) implied by the settings for a new document."""
        defaults = self._settings.defaults
        if kind == DocumentKind.INVOICE:
            return issue_date + timedelta(days=defaults.invoice_payment_terms_days), None
        if kind == DocumentKind.BILL:
            return issue_date + timedelta(days=defaults.bill_payment_terms_days), None
        if kind == DocumentKind.CORE_RETURN:
            return issue_date + timedelta(days=defaults.core_return_due_days), None
        if kind == DocumentKind.QUOTE:
            return None, issue_date + timedelta(days=defaults.quote_validity_days)
        return None, None

    def build_document(
        self,
        kind: DocumentKind,
        organization_id: str,
        lines: Sequence[LineItem] = (),
        *,
        party_id: str | None = None,
        document_discount: DocumentDiscount | None = None,
        shipping: Decimal = _ZERO,
        currency: str | None = None,
        pricing_mode: PricingMode | None = None,
        issue_date: date | None = None,
        due_date: date | None = None,
        valid_until: date | None = None,
        source_document_id: str | None = None,
        reference: str | None = None,
        document_id: str | None = None,
    ) -> FinancialDocument:
        """New document in its kind's initial state with computed totals; not saved."""
        if not organization_id:
            raise InvalidDocumentError("organization_id", "is required")
        try:
            code = CurrencyRegistry.validate(currency or self._settings.currency)
        except ValueError as exc:
            raise InvalidDocumentError("currency", str(exc)) from exc
        mode = pricing_mode or self._settings.pricing_mode
        issued = issue_date or self._clock.today()
        default_due, default_valid = self.default_dates(kind, issued)

        totals = self._calculator.compute_document(lines, document_discount, shipping, code, mode)
        return FinancialDocument(
            document_id=document_id or new_id(),
            kind=kind,
            status=self._machine.initial_state(kind),
            organization_id=organization_id,
            party_id=party_id,
            currency=code,
            pricing_mode=mode,
            lines=tuple(lines),
            document_discount=document_discount,
            shipping=shipping,
            totals=totals,
            issue_date=issued,
            due_date=due_date or default_due,
            valid_until=valid_until or default_valid,
            source_document_id=source_document_id,
            reference=reference,
            created_at=self._clock.now(),
        )

    def create_document(
        self,
        kind: DocumentKind,
        organization_id: str,
        lines: Sequence[LineItem] = (),
        *,
        deadline: Deadline | None = None,
        **fields,
    ) -> FinancialDocument:
        """
        Create and persist a document in its initial state.

        Keyword fields are those of ``build_document``.
        """
        document = self.build_document(kind, organization_id, lines, **fields)
        with LogContext.bind(document_id=document.document_id, organization_id=organization_id):
            with self._store.unit_of_work() as uow:
                uow.save_document(document, None)
                if deadline is not None:
                    deadline.check("create_document")
            logger.info("document_created", extra={
                "kind": kind.value,
                "status": document.status,
                "line_count": len(document.lines),
                "grand_total": str(document.grand_total),
                "currency": document.currency,
            })
        return document

    def get_document(self, document_id: str) -> tuple[FinancialDocument, int]:
        return self._store.load_document(document_id)

    def update_draft_lines(
        self,
        document_id: str,
        lines: Sequence[LineItem],
        *,
        expected_version: int | None = None,
        document_discount: DocumentDiscount | None = ...,
        shipping: Decimal | None = None,
        deadline: Deadline | None = None,
    ) -> tuple[FinancialDocument, int]:
        """
        Replace a draft's lines and recompute its totals.

        Raises:
            DocumentLockedError: the document has left its initial state.
        """
        with LogContext.bind(document_id=document_id):
            with self._store.unit_of_work() as uow:
                document, version = uow.load_document(document_id)
                check_expected_version("document", document_id, expected_version, version)
                updated = self._machine.edit_lines(
                    document, lines, document_discount=document_discount, shipping=shipping
                )
                new_version = uow.save_document(updated, version)
                if deadline is not None:
                    deadline.check("update_draft_lines")
            logger.info("draft_lines_updated", extra={
                "line_count": len(updated.lines),
                "grand_total": str(updated.grand_total),
                "version": new_version,
            })
        return updated, new_version

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def transition(
        self,
        document_id: str,
        event: DocumentEvent | str,
        *,
        expected_version: int | None = None,
        deadline: Deadline | None = None,
        as_of: date | None = None,
    ) -> TransitionResult:
        """
        Apply ``event`` to the document and commit the outcome.

        Date guards (past due, quote validity) are evaluated against
        ``as_of``, defaulting to the clock's today.
        """
        event_name = getattr(event, "value", event)
        t0 = time.monotonic()
        with LogContext.bind(document_id=document_id):
            with self._store.unit_of_work() as uow:
                document, version = uow.load_document(document_id)
                check_expected_version("document", document_id, expected_version, version)
                ctx = guard_context(uow, document, as_of or self._clock.today())
                outcome = self._machine.transition(document, event_name, ctx)
                new_version = uow.save_document(outcome.document, version)
                if deadline is not None:
                    deadline.check(f"transition:{event_name}")

            submission = self._after_commit(outcome.document, outcome.side_effects)
            logger.info("document_transition_committed", extra={
                "kind": document.kind.value,
                "from_state": outcome.from_state,
                "to_state": outcome.to_state,
                "event": event_name,
                "version": new_version,
                "duration_ms": round((time.monotonic() - t0) * 1000, 3),
            })
        return TransitionResult(
            document=outcome.document,
            version=new_version,
            from_state=outcome.from_state,
            to_state=outcome.to_state,
            event=event_name,
            side_effects=outcome.side_effects,
            submission=submission,
        )

    def _after_commit(
        self,
        document: FinancialDocument,
        side_effects: Sequence[SideEffect],
    ) -> SubmissionResult | None:
        wants_einvoice = any(e.kind == SideEffectKind.SUBMIT_EINVOICE.value for e in side_effects)
        if not wants_einvoice or self._einvoice is None:
            return None
        return submit_after_commit(self._einvoice, document)

    def receive_goods(
        self,
        purchase_order_id: str,
        quantities: Mapping[str, Decimal],
        *,
        expected_version: int | None = None,
        deadline: Deadline | None = None,
    ) -> TransitionResult:
        """
        Record a goods receipt against a purchase order and move it to
        PARTIALLY_RECEIVED or RECEIVED in the same unit of work.

        ``quantities`` maps purchase order line ids to the quantity received.
        """
        with LogContext.bind(document_id=purchase_order_id):
            with self._store.unit_of_work() as uow:
                po, version = uow.load_document(purchase_order_id)
                check_expected_version("document", purchase_order_id, expected_version, version)
                if po.kind != DocumentKind.PURCHASE_ORDER:
                    raise InvalidDocumentError("kind", f"{po.kind.value} cannot receive goods")

                remaining = remaining_quantities(
                    po, received_quantities(po, uow.receipts_for(purchase_order_id))
                )
                receipt_lines = []
                for line_id, qty in quantities.items():
                    if line_id not in remaining:
                        raise InvalidDocumentError("line_id", f"{line_id} is not a line of {purchase_order_id}")
                    if qty <= 0:
                        raise InvalidDocumentError("quantity", f"must be positive for line {line_id}")
                    if qty > remaining[line_id]:
                        raise QuantityExceedsRemainingError(
                            purchase_order_id, line_id, qty, remaining[line_id]
                        )
                    receipt_lines.append(ReceiptLine(source_line_id=line_id, quantity=qty))
                if not receipt_lines:
                    raise InvalidDocumentError("quantities", "at least one line must be received")

                receipt = Receipt(
                    receipt_id=new_id(),
                    purchase_order_id=purchase_order_id,
                    lines=tuple(receipt_lines),
                    received_at=self._clock.now(),
                )
                uow.save_receipt(receipt)
                ctx = guard_context(uow, po, self._clock.today())
                outcome = self._machine.transition(po, DocumentEvent.RECEIVE.value, ctx)
                new_version = uow.save_document(outcome.document, version)
                if deadline is not None:
                    deadline.check("receive_goods")

            logger.info("goods_received", extra={
                "receipt_id": receipt.receipt_id,
                "line_count": len(receipt_lines),
                "to_state": outcome.to_state,
            })
        return TransitionResult(
            document=outcome.document,
            version=new_version,
            from_state=outcome.from_state,
            to_state=outcome.to_state,
            event=outcome.event,
            side_effects=outcome.side_effects,
        )

    def mark_overdue(
        self,
        organization_id: str,
        as_of: date | None = None,
    ) -> list[str]:
        """
        Persist OVERDUE on every past-due invoice and bill of the organisation.

        Read paths already report OVERDUE through ``effective_status``; this
        sweep only makes the stored status catch up.  Each document commits
        on its own; a document changed concurrently is skipped.
        """
        today = as_of or self._clock.today()
        with self._store.unit_of_work() as uow:
            candidates = [
                d for kind in (DocumentKind.INVOICE, DocumentKind.BILL)
                for d in uow.find_documents(organization_id, kind=kind)
                if d.status != InvoiceStatus.OVERDUE.value
                and effective_status(d, today) == InvoiceStatus.OVERDUE.value
            ]

        marked: list[str] = []
        for document in candidates:
            try:
                self.transition(document.document_id, DocumentEvent.MARK_OVERDUE, as_of=today)
            except ConcurrentModificationError:
                logger.info("overdue_sweep_skipped", extra={"document_id": document.document_id})
                continue
            marked.append(document.document_id)
        logger.info("overdue_sweep_completed", extra={
            "organization_id": organization_id,
            "candidates": len(candidates),
            "marked": len(marked),
        })
        return marked

    # -------------------------------------------------------------------------
    # Read-side projections
    # -------------------------------------------------------------------------

    def effective_status(self, document_id: str, as_of: date | None = None) -> str:
        document, _ = self._store.load_document(document_id)
        return effective_status(document, as_of or self._clock.today())

    def project_status(self, document_id: str, as_of: date | None = None) -> StatusProjection:
        """Derived statuses of a document, computed from its current children."""
        today = as_of or self._clock.today()
        with self._store.unit_of_work() as uow:
            document, _ = uow.load_document(document_id)
            children = uow.children_of(document_id)
            receipts = (
                uow.receipts_for(document_id)
                if document.kind == DocumentKind.PURCHASE_ORDER else []
            )

        projection = StatusProjection(
            document_id=document_id,
            kind=document.kind,
            status=document.status,
            effective_status=effective_status(document, today),
        )
        if document.kind == DocumentKind.SALES_ORDER:
            projection = replace(
                projection,
                invoicing=project_invoice_status(document, children),
                payment=project_payment_status(document, children),
            )
        elif document.kind == DocumentKind.PURCHASE_ORDER:
            projection = replace(
                projection,
                receiving=project_receive_status(document, receipts),
                billing=project_bill_status(document, children),
            )
        logger.debug("status_projected", extra={
            "document_id": document_id,
            "kind": document.kind.value,
            "effective_status": projection.effective_status,
        })
        return projection
