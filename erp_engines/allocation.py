"""
Module: erp_engines.allocation
Responsibility:
    Split one customer receipt or vendor payment across open invoices or
    bills.  Caller-requested amounts are honoured in caller order, each
    clipped to the target's remaining balance; whatever is left over is an
    advance.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import erp_kernel domain values.

Invariants enforced:
    - Sum of applied amounts per target <= that target's balance as read.
    - Sum of applied amounts overall <= payment amount.
    - unallocated == payment amount - sum of applied amounts, and >= 0.
    - Sum of requested amounts > payment amount fails before anything is
      produced (OverAllocationError).
    - Application order is the request order and is preserved in the
      result for audit.

Failure modes:
    - OverAllocationError when requests exceed the payment.
    - AdvanceNotPermittedError when ``allow_advances`` is False and a
      remainder would be left unallocated.
    - InvalidAllocationError for a non-positive payment or request, or an
      unknown target.
    - CurrencyMismatchError when targets or requests use another currency.

Usage:
    from erp_engines.allocation import (
        AllocationRequest, AllocationTarget, PaymentAllocationEngine,
    )
    from erp_kernel.domain.values import Money

    engine = PaymentAllocationEngine()
    result = engine.allocate(
        payment_amount=Money.of("300.00", "MYR"),
        targets=[AllocationTarget("inv-1", Money.of("500.00", "MYR"))],
        requested=[AllocationRequest("inv-1", Money.of("300.00", "MYR"))],
    )
    result.unallocated  # Money('0.00', 'MYR')
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from erp_engines.tracer import traced_engine
from erp_kernel.domain.values import Money
from erp_kernel.exceptions import (
    AdvanceNotPermittedError,
    CurrencyMismatchError,
    InvalidAllocationError,
    OverAllocationError,
)
from erp_kernel.logging_config import get_logger

logger = get_logger("engines.allocation")


@dataclass(frozen=True)
class AllocationTarget:
    """An open invoice or bill with its balance as read by the caller."""

    target_id: str
    balance: Money
    due_date: date | None = None


@dataclass(frozen=True)
class AllocationRequest:
    """Caller's request to apply ``amount`` to ``target_id``."""

    target_id: str
    amount: Money


@dataclass(frozen=True)
class AllocationLine:
    """
    Outcome for one request.

    ``allocated`` may be less than ``requested`` when the target's balance
    is smaller; ``remaining`` is the target's balance after this line.
    """

    target_id: str
    requested: Money
    allocated: Money
    remaining: Money

    @property
    def is_clipped(self) -> bool:
        return self.allocated < self.requested

    @property
    def is_fully_allocated(self) -> bool:
        """True when the target is settled after this line."""
        return self.remaining.is_zero


@dataclass(frozen=True)
class AllocationResult:
    """
    Complete allocation result.

    Guarantees:
        - ``total_allocated + unallocated == payment_amount``.
    Non-goals:
        - Does not persist anything; the caller applies the lines atomically.
    """

    payment_amount: Money
    lines: tuple[AllocationLine, ...]
    total_allocated: Money
    unallocated: Money

    @property
    def is_fully_allocated(self) -> bool:
        return self.unallocated.is_zero

    @property
    def is_advance(self) -> bool:
        return self.unallocated.is_positive

    @property
    def applied(self) -> tuple[AllocationLine, ...]:
        """Lines that actually moved money, in request order."""
        return tuple(line for line in self.lines if line.allocated.is_positive)

    def applied_by_target(self) -> dict[str, Money]:
        """Total applied per target id (a target may be requested twice)."""
        totals: dict[str, Money] = {}
        for line in self.applied:
            prior = totals.get(line.target_id)
            totals[line.target_id] = line.allocated if prior is None else prior + line.allocated
        return totals


class PaymentAllocationEngine:
    """
    Allocate a payment across open documents.

    Contract:
        Pure functions; no I/O, no clock access.
    Guarantees:
        - Requests are processed strictly in the given order.
        - Each allocation is independently clipped, so order never changes
          totals, only which targets are settled first.
    """

    def _check_currency(self, expected: Money, other: Money) -> None:
        if other.currency != expected.currency:
            raise CurrencyMismatchError(expected.currency.code, other.currency.code)

    @traced_engine(
        "payment_allocation", "1.0",
        fingerprint_fields=("payment_amount", "targets", "requested"),
    )
    def allocate(
        self,
        payment_amount: Money,
        targets: Sequence[AllocationTarget],
        requested: Sequence[AllocationRequest],
        allow_advances: bool = True,
    ) -> AllocationResult:
        """
        Apply ``requested`` amounts to ``targets`` in order.

        Args:
            payment_amount: Total amount of the payment.
            targets: Open documents with their balances as read.
            requested: Amounts the caller wants applied, in application order.
            allow_advances: When False, an unallocated remainder is an error.

        Returns:
            AllocationResult with one line per request.
        """
        logger.info("allocation_started", extra={
            "payment_amount": str(payment_amount.amount),
            "currency": payment_amount.currency.code,
            "target_count": len(targets),
            "request_count": len(requested),
        })

        if not payment_amount.is_positive:
            raise InvalidAllocationError(None, f"payment amount must be positive, got {payment_amount}")

        balances: dict[str, Money] = {}
        for target in targets:
            self._check_currency(payment_amount, target.balance)
            balances[target.target_id] = (
                target.balance if target.balance.is_positive
                else Money.zero(payment_amount.currency)
            )

        requested_total = Money.zero(payment_amount.currency)
        for request in requested:
            self._check_currency(payment_amount, request.amount)
            if request.target_id not in balances:
                raise InvalidAllocationError(request.target_id, "target is not an open document")
            if not request.amount.is_positive:
                raise InvalidAllocationError(
                    request.target_id, f"amount must be positive, got {request.amount}"
                )
            requested_total = requested_total + request.amount

        if requested_total > payment_amount:
            logger.warning("allocation_over_requested", extra={
                "payment_amount": str(payment_amount.amount),
                "requested_total": str(requested_total.amount),
            })
            raise OverAllocationError(payment_amount.amount, requested_total.amount)

        lines: list[AllocationLine] = []
        total_allocated = Money.zero(payment_amount.currency)
        for request in requested:
            available = balances[request.target_id]
            allocated = request.amount if request.amount <= available else available
            balances[request.target_id] = available - allocated
            total_allocated = total_allocated + allocated
            lines.append(
                AllocationLine(
                    target_id=request.target_id,
                    requested=request.amount,
                    allocated=allocated,
                    remaining=balances[request.target_id],
                )
            )

        unallocated = payment_amount - total_allocated
        if unallocated.is_positive and not allow_advances:
            raise AdvanceNotPermittedError(unallocated.amount)

        result = AllocationResult(
            payment_amount=payment_amount,
            lines=tuple(lines),
            total_allocated=total_allocated,
            unallocated=unallocated,
        )
        logger.info("allocation_completed", extra={
            "payment_amount": str(payment_amount.amount),
            "total_allocated": str(total_allocated.amount),
            "unallocated": str(unallocated.amount),
            "clipped_lines": sum(1 for line in lines if line.is_clipped),
        })
        return result

    def oldest_first_requests(
        self,
        payment_amount: Money,
        targets: Sequence[AllocationTarget],
    ) -> list[AllocationRequest]:
        """
        Build requests that settle targets oldest-due-first until the
        payment is exhausted.  Targets without a due date go last, ties
        keep their given order.
        """
        ordered = sorted(
            enumerate(targets),
            key=lambda it: (it[1].due_date is None, it[1].due_date or date.max, it[0]),
        )
        remaining = payment_amount.amount
        requests: list[AllocationRequest] = []
        for _, target in ordered:
            if remaining <= Decimal("0"):
                break
            eligible = target.balance.amount
            if eligible <= Decimal("0"):
                continue
            to_allocate = min(remaining, eligible)
            remaining -= to_allocate
            requests.append(AllocationRequest(target.target_id, Money.of(to_allocate, payment_amount.currency)))
        return requests

    def allocate_oldest_first(
        self,
        payment_amount: Money,
        targets: Sequence[AllocationTarget],
        allow_advances: bool = True,
    ) -> AllocationResult:
        """Convenience method: oldest-due-first requests, then ``allocate``."""
        return self.allocate(
            payment_amount,
            targets,
            self.oldest_first_requests(payment_amount, targets),
            allow_advances=allow_advances,
        )
