"""
Module: erp_engines.state_machine
Responsibility:
    One generic transition engine for every document kind.  Given a
    document, an event and the facts its guards need, resolve the single
    applicable edge of the kind's workflow table and produce the new
    document plus the side effects the caller must perform.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Workflow tables are
    injected (see ``erp_modules.registry``); this module never imports
    the modules layer.

Invariants enforced:
    - An event with no edge from the current state raises
      IllegalTransitionError; nothing is produced.
    - Edges sharing (state, event) are tried in declaration order and the
      first whose guards all pass is taken.  If none pass,
      GuardViolationError names the unmet precondition.
    - A transition of a financial document recomputes its totals from its
      lines, so state and totals always change together.
    - Lines are editable only in the workflow's initial state.

Failure modes:
    - IllegalTransitionError, GuardViolationError, DocumentLockedError.
    - KeyError when no workflow is registered for a kind.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from typing import Any

from erp_engines.calculator import DocumentCalculator
from erp_engines.projection import active_children, is_past_due, received_quantities
from erp_engines.tracer import traced_engine
from erp_kernel.domain.alerts import ReorderAlert
from erp_kernel.domain.documents import DocumentKind, FinancialDocument, Receipt
from erp_kernel.domain.workflow import Guard, Transition, Workflow
from erp_kernel.exceptions import (
    DocumentLockedError,
    GuardViolationError,
    IllegalTransitionError,
)
from erp_kernel.logging_config import get_logger

logger = get_logger("engines.state_machine")

REORDER_ALERT_KIND = "REORDER_ALERT"

Entity = FinancialDocument | ReorderAlert


@dataclass(frozen=True)
class GuardContext:
    """Facts a guard may inspect besides the document itself."""

    document: Entity
    children: tuple[FinancialDocument, ...] = ()
    receipts: tuple[Receipt, ...] = ()
    as_of: date | None = None


@dataclass(frozen=True)
class SideEffect:
    """Post-commit work declared by the transition that was taken."""

    kind: str
    document_id: str


@dataclass(frozen=True)
class TransitionOutcome:
    document: Entity
    from_state: str
    to_state: str
    event: str
    side_effects: tuple[SideEffect, ...] = ()


def kind_of(entity: Entity) -> str:
    if isinstance(entity, ReorderAlert):
        return REORDER_ALERT_KIND
    return entity.kind.value


def entity_id(entity: Entity) -> str:
    if isinstance(entity, ReorderAlert):
        return entity.alert_id
    return entity.document_id


# ---------------------------------------------------------------------------
# Guard evaluation
# ---------------------------------------------------------------------------


def _no_active_invoices(ctx: GuardContext) -> bool:
    return not active_children(ctx.document, ctx.children, DocumentKind.INVOICE)


def _no_active_bills(ctx: GuardContext) -> bool:
    return not active_children(ctx.document, ctx.children, DocumentKind.BILL)


def _nothing_received(ctx: GuardContext) -> bool:
    received = received_quantities(ctx.document, ctx.receipts)
    return all(q <= 0 for q in received.values())


def _fully_received(ctx: GuardContext) -> bool:
    received = received_quantities(ctx.document, ctx.receipts)
    lines = ctx.document.lines
    return bool(lines) and all(
        received.get(line.line_id, Decimal("0")) >= line.quantity for line in lines
    )


def _partially_received(ctx: GuardContext) -> bool:
    received = received_quantities(ctx.document, ctx.receipts)
    return any(q > 0 for q in received.values()) and not _fully_received(ctx)


def _balance_zero(ctx: GuardContext) -> bool:
    return ctx.document.balance <= 0


def _balance_outstanding(ctx: GuardContext) -> bool:
    doc = ctx.document
    return doc.amount_paid > 0 and doc.balance > 0


def _no_payments_applied(ctx: GuardContext) -> bool:
    return ctx.document.amount_paid <= 0


def _past_due(ctx: GuardContext) -> bool:
    return ctx.as_of is not None and is_past_due(ctx.document, ctx.as_of)


def _quote_valid(ctx: GuardContext) -> bool:
    valid_until = ctx.document.valid_until
    return valid_until is None or ctx.as_of is None or ctx.as_of <= valid_until


def _has_lines(ctx: GuardContext) -> bool:
    return bool(ctx.document.lines)


class GuardExecutor:
    """Evaluates workflow guards against a GuardContext.

    Guards are declared on transitions (name + description).  This executor
    holds the evaluation logic per guard name.  A guard without a registered
    evaluator fails closed.
    """

    def __init__(self) -> None:
        self._evaluators: dict[str, Callable[[GuardContext], bool]] = {}

    def register(self, guard_name: str, evaluator: Callable[[GuardContext], bool]) -> None:
        """Register an evaluator for a guard by name."""
        self._evaluators[guard_name] = evaluator

    def evaluate(self, guard: Guard, context: GuardContext) -> bool:
        """Returns True if the guard passes."""
        fn = self._evaluators.get(guard.name)
        if fn is None:
            logger.warning("guard_no_evaluator", extra={"guard_name": guard.name})
            return False
        return bool(fn(context))


def default_guard_executor() -> GuardExecutor:
    """Return a GuardExecutor with the built-in evaluators registered."""
    ex = GuardExecutor()
    ex.register("has_lines", _has_lines)
    ex.register("quote_valid", _quote_valid)
    ex.register("no_active_invoices", _no_active_invoices)
    ex.register("no_active_bills", _no_active_bills)
    ex.register("nothing_received", _nothing_received)
    ex.register("fully_received", _fully_received)
    ex.register("partially_received", _partially_received)
    ex.register("balance_zero", _balance_zero)
    ex.register("balance_outstanding", _balance_outstanding)
    ex.register("no_payments_applied", _no_payments_applied)
    ex.register("past_due", _past_due)
    return ex


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class DocumentStateMachine:
    """
    Generic lifecycle engine parameterised by per-kind workflow tables.

    Contract:
        ``transition`` is pure: it returns a new document and never mutates
        the input.  Persisting the outcome is the caller's unit of work.
    """

    def __init__(
        self,
        workflows: Mapping[str, Workflow],
        guard_executor: GuardExecutor | None = None,
        calculator: DocumentCalculator | None = None,
    ) -> None:
        self._workflows = dict(workflows)
        self._guards = guard_executor or default_guard_executor()
        self._calculator = calculator or DocumentCalculator()

    def workflow_for(self, kind: str | DocumentKind) -> Workflow:
        key = kind.value if isinstance(kind, DocumentKind) else kind
        return self._workflows[key]

    def initial_state(self, kind: str | DocumentKind) -> str:
        return self.workflow_for(kind).initial_state

    def resolve(
        self,
        entity: Entity,
        event: str,
        context: GuardContext | None = None,
    ) -> Transition:
        """Pick the edge ``event`` takes from the entity's current state."""
        kind = kind_of(entity)
        workflow = self.workflow_for(kind)
        event = getattr(event, "value", event)
        candidates = workflow.candidates(entity.status, event)
        if not candidates:
            raise IllegalTransitionError(kind, entity.status, event)

        ctx = context or GuardContext(document=entity)
        failed: Guard | None = None
        for candidate in candidates:
            failed = next(
                (g for g in candidate.guards if not self._guards.evaluate(g, ctx)),
                None,
            )
            if failed is None:
                return candidate

        raise GuardViolationError(kind, entity.status, event, failed.name, failed.description)

    @traced_engine("state_machine", "1.0", fingerprint_fields=("event",))
    def transition(
        self,
        entity: Entity,
        event: str,
        context: GuardContext | None = None,
    ) -> TransitionOutcome:
        """Apply ``event`` to ``entity`` and return the new entity and side effects."""
        t0 = time.monotonic()
        kind = kind_of(entity)
        event = getattr(event, "value", event)
        try:
            edge = self.resolve(entity, event, context)
        except (IllegalTransitionError, GuardViolationError) as exc:
            logger.info("transition_rejected", extra={
                "kind": kind,
                "entity_id": entity_id(entity),
                "from_state": entity.status,
                "event": event,
                "reason_code": exc.code,
            })
            raise

        if isinstance(entity, FinancialDocument):
            updated = replace(
                entity,
                status=edge.to_state,
                totals=self._calculator.compute_document(
                    entity.lines,
                    entity.document_discount,
                    entity.shipping,
                    entity.currency,
                    entity.pricing_mode,
                ),
            )
        else:
            updated = replace(entity, status=edge.to_state)

        effects = tuple(SideEffect(kind=e, document_id=entity_id(entity)) for e in edge.effects)
        logger.info("transition_applied", extra={
            "kind": kind,
            "entity_id": entity_id(entity),
            "from_state": edge.from_state,
            "to_state": edge.to_state,
            "event": event,
            "side_effects": [e.kind for e in effects],
            "duration_ms": round((time.monotonic() - t0) * 1000, 3),
        })
        return TransitionOutcome(
            document=updated,
            from_state=edge.from_state,
            to_state=edge.to_state,
            event=event,
            side_effects=effects,
        )

    def available_events(
        self,
        entity: Entity,
        context: GuardContext | None = None,
    ) -> tuple[str, ...]:
        """Events that would currently succeed, guards included."""
        workflow = self.workflow_for(kind_of(entity))
        ctx = context or GuardContext(document=entity)
        available = []
        for action in workflow.actions_from(entity.status):
            if any(
                all(self._guards.evaluate(g, ctx) for g in t.guards)
                for t in workflow.candidates(entity.status, action)
            ):
                available.append(action)
        return tuple(available)

    def is_editable(self, document: FinancialDocument) -> bool:
        return document.status == self.initial_state(document.kind)

    def assert_editable(self, document: FinancialDocument) -> None:
        """Raise DocumentLockedError unless the document is in its initial state."""
        if not self.is_editable(document):
            raise DocumentLockedError(document.document_id, document.status)

    def edit_lines(
        self,
        document: FinancialDocument,
        lines: Sequence[Any],
        document_discount: Any = ...,
        shipping: Decimal | None = None,
    ) -> FinancialDocument:
        """Replace a draft's lines (and optionally discount/shipping), recomputing totals."""
        self.assert_editable(document)
        discount = document.document_discount if document_discount is ... else document_discount
        ship = document.shipping if shipping is None else shipping
        totals = self._calculator.compute_document(
            lines, discount, ship, document.currency, document.pricing_mode
        )
        return replace(
            document,
            lines=tuple(lines),
            document_discount=discount,
            shipping=ship,
            totals=totals,
        )
