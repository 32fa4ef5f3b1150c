"""
erp_services.payment_service -- Apply a payment across open invoices or bills.

Responsibility:
    Read the targets' balances and versions, let the pure allocation engine
    decide what lands where, then update every target balance (and route
    its status through APPLY_PAYMENT) and persist the payment in one unit
    of work.

Architecture position:
    Services layer.

Invariants enforced:
    - All-or-nothing: either every target balance and the payment commit,
      or nothing does.  A concurrent change to any target fails the whole
      allocation with ConcurrentModificationError.
    - Sum of applied amounts per target <= its balance as read.
    - RECEIVED payments settle invoices; MADE payments settle bills.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, replace
from decimal import Decimal

from erp_config import EngineSettings, get_active_settings
from erp_engines.allocation import (
    AllocationRequest,
    AllocationResult,
    AllocationTarget,
    PaymentAllocationEngine,
)
from erp_engines.state_machine import DocumentStateMachine, GuardContext
from erp_kernel.domain.clock import Clock, SystemClock
from erp_kernel.domain.deadline import Deadline
from erp_kernel.domain.documents import (
    DocumentKind,
    FinancialDocument,
    Payment,
    PaymentAllocation,
    PaymentDirection,
    new_id,
)
from erp_kernel.domain.events import DocumentEvent
from erp_kernel.domain.statuses import BillStatus, InvoiceStatus
from erp_kernel.domain.values import Money
from erp_kernel.exceptions import DocumentNotFoundError, InvalidAllocationError
from erp_kernel.logging_config import LogContext, get_logger
from erp_modules.registry import WORKFLOWS
from erp_services.document_service import TransitionResult
from erp_services.store import DocumentStore, UnitOfWork

logger = get_logger("services.payment")

OPEN_INVOICE_STATES = frozenset({
    InvoiceStatus.SENT.value,
    InvoiceStatus.PARTIALLY_PAID.value,
    InvoiceStatus.OVERDUE.value,
})

OPEN_BILL_STATES = frozenset({
    BillStatus.RECEIVED.value,
    BillStatus.PARTIALLY_PAID.value,
    BillStatus.OVERDUE.value,
})


@dataclass(frozen=True)
class PaymentResult:
    """Committed payment, the allocation decision and the target transitions."""

    payment: Payment
    allocation: AllocationResult
    transitions: tuple[TransitionResult, ...] = ()

    @property
    def unallocated(self) -> Decimal:
        return self.payment.unallocated


def _target_kind(direction: PaymentDirection) -> tuple[DocumentKind, frozenset[str]]:
    if direction == PaymentDirection.RECEIVED:
        return DocumentKind.INVOICE, OPEN_INVOICE_STATES
    return DocumentKind.BILL, OPEN_BILL_STATES


class PaymentService:
    """
    Allocate payments to invoices and bills.

    Usage:
        result = service.allocate_payment(
            "org-1", PaymentDirection.RECEIVED, Decimal("300.00"),
            allocations=[(invoice_id, Decimal("300.00"))],
        )
    """

    def __init__(
        self,
        store: DocumentStore,
        settings: EngineSettings | None = None,
        clock: Clock | None = None,
        state_machine: DocumentStateMachine | None = None,
        engine: PaymentAllocationEngine | None = None,
    ) -> None:
        self._store = store
        self._settings = settings or get_active_settings()
        self._clock = clock or SystemClock()
        self._machine = state_machine or DocumentStateMachine(WORKFLOWS)
        self._engine = engine or PaymentAllocationEngine()

    def _load_target(
        self,
        uow: UnitOfWork,
        document_id: str,
        organization_id: str,
        kind: DocumentKind,
        open_states: frozenset[str],
    ) -> tuple[FinancialDocument, int]:
        try:
            document, version = uow.load_document(document_id)
        except DocumentNotFoundError as exc:
            raise InvalidAllocationError(document_id, "document not found") from exc
        if document.organization_id != organization_id:
            raise InvalidAllocationError(document_id, "document belongs to another organization")
        if document.kind != kind:
            raise InvalidAllocationError(
                document_id, f"{document.kind.value} cannot receive this payment"
            )
        if document.status not in open_states:
            raise InvalidAllocationError(
                document_id, f"document is not open for payment (status {document.status})"
            )
        return document, version

    def allocate_payment(
        self,
        organization_id: str,
        direction: PaymentDirection,
        amount: Decimal,
        *,
        allocations: Sequence[tuple[str, Decimal]] | None = None,
        party_id: str | None = None,
        currency: str | None = None,
        payment_id: str | None = None,
        reference: str | None = None,
        deadline: Deadline | None = None,
    ) -> PaymentResult:
        """
        Record a payment and apply it.

        Args:
            allocations: (document_id, amount) pairs in application order.
                When None and ``auto_apply_payments`` is enabled, the party's
                open documents are settled oldest-due-first.
            party_id: Customer or vendor; required for automatic application.

        Raises:
            OverAllocationError: requested amounts exceed the payment.
            AdvanceNotPermittedError: a remainder is left and advances are disabled.
            InvalidAllocationError: a target is unknown, closed or of the wrong kind.
            ConcurrentModificationError: a target changed since it was read.
        """
        pid = payment_id or new_id()
        code = currency or self._settings.currency
        allow_advances = self._settings.payments.allow_advances
        kind, open_states = _target_kind(direction)
        today = self._clock.today()

        with LogContext.bind(payment_id=pid, organization_id=organization_id):
            logger.info("payment_allocation_started", extra={
                "direction": direction.value,
                "amount": str(amount),
                "currency": code,
                "request_count": len(allocations) if allocations is not None else None,
            })
            with self._store.unit_of_work() as uow:
                loaded: dict[str, tuple[FinancialDocument, int]] = {}
                if allocations is not None:
                    for document_id, _ in allocations:
                        if document_id not in loaded:
                            loaded[document_id] = self._load_target(
                                uow, document_id, organization_id, kind, open_states
                            )
                elif self._settings.payments.auto_apply_payments and party_id is not None:
                    for document in uow.find_documents(
                        organization_id, kind=kind, statuses=open_states, party_id=party_id
                    ):
                        loaded[document.document_id] = uow.load_document(document.document_id)

                targets = [
                    AllocationTarget(
                        target_id=document_id,
                        balance=Money.of(document.balance, document.currency),
                        due_date=document.due_date,
                    )
                    for document_id, (document, _) in loaded.items()
                ]
                payment_amount = Money.of(amount, code)
                if allocations is not None:
                    requests = [
                        AllocationRequest(document_id, Money.of(value, code))
                        for document_id, value in allocations
                    ]
                    result = self._engine.allocate(
                        payment_amount, targets, requests, allow_advances=allow_advances
                    )
                else:
                    result = self._engine.allocate_oldest_first(
                        payment_amount, targets, allow_advances=allow_advances
                    )

                transitions: list[TransitionResult] = []
                for document_id, applied in result.applied_by_target().items():
                    document, version = loaded[document_id]
                    paid = replace(document, amount_paid=document.amount_paid + applied.amount)
                    outcome = self._machine.transition(
                        paid,
                        DocumentEvent.APPLY_PAYMENT.value,
                        GuardContext(document=paid, as_of=today),
                    )
                    new_version = uow.save_document(outcome.document, version)
                    transitions.append(TransitionResult(
                        document=outcome.document,
                        version=new_version,
                        from_state=outcome.from_state,
                        to_state=outcome.to_state,
                        event=outcome.event,
                        side_effects=outcome.side_effects,
                    ))

                payment = Payment(
                    payment_id=pid,
                    organization_id=organization_id,
                    direction=direction,
                    amount=payment_amount.amount,
                    currency=code,
                    party_id=party_id,
                    allocations=tuple(
                        PaymentAllocation(
                            payment_id=pid,
                            document_id=line.target_id,
                            amount=line.allocated.amount,
                        )
                        for line in result.applied
                    ),
                    unallocated=result.unallocated.amount,
                    received_at=self._clock.now(),
                    reference=reference,
                )
                uow.save_payment(payment)
                if deadline is not None:
                    deadline.check("allocate_payment")

            logger.info("payment_allocation_committed", extra={
                "targets_settled": len(transitions),
                "total_allocated": str(result.total_allocated.amount),
                "unallocated": str(result.unallocated.amount),
                "is_advance": payment.is_advance,
            })
        return PaymentResult(payment=payment, allocation=result, transitions=tuple(transitions))
