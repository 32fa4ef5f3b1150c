"""
Sales Workflows.

State machines for quotes, sales orders, invoices, sales returns and
core (deposit) returns.
"""

from erp_kernel.domain.events import SideEffectKind as FX
from erp_kernel.domain.workflow import Guard, Transition, Workflow
from erp_kernel.logging_config import get_logger
from erp_modules.guards import (
    BALANCE_OUTSTANDING,
    BALANCE_ZERO,
    HAS_LINES,
    NO_PAYMENTS_APPLIED,
    PAST_DUE,
)

logger = get_logger("modules.sales.workflows")


def _log_registered(workflow: Workflow) -> None:
    logger.info(
        "sales_workflow_registered",
        extra={
            "workflow_name": workflow.name,
            "state_count": len(workflow.states),
            "transition_count": len(workflow.transitions),
            "initial_state": workflow.initial_state,
        },
    )


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

QUOTE_VALID = Guard(
    name="quote_valid",
    description="quote is past its validity date",
)

NO_ACTIVE_INVOICES = Guard(
    name="no_active_invoices",
    description="order has unvoided invoices",
)


# -----------------------------------------------------------------------------
# Quote Workflow
# -----------------------------------------------------------------------------

QUOTE_WORKFLOW = Workflow(
    name="quote",
    description="Customer quotation lifecycle",
    initial_state="DRAFT",
    states=("DRAFT", "SENT", "ACCEPTED", "REJECTED", "EXPIRED", "CONVERTED"),
    transitions=(
        Transition("DRAFT", "SENT", action="SEND", guards=(HAS_LINES,)),
        Transition("DRAFT", "CONVERTED", action="CONVERT", guards=(HAS_LINES,)),
        Transition("DRAFT", "REJECTED", action="REJECT"),
        Transition("SENT", "ACCEPTED", action="ACCEPT", guards=(QUOTE_VALID,)),
        Transition("SENT", "EXPIRED", action="EXPIRE"),
        Transition("SENT", "REJECTED", action="REJECT"),
        Transition("SENT", "CONVERTED", action="CONVERT"),
        Transition("ACCEPTED", "CONVERTED", action="CONVERT"),
    ),
    terminal_states=("CONVERTED", "REJECTED", "EXPIRED"),
)
_log_registered(QUOTE_WORKFLOW)


# -----------------------------------------------------------------------------
# Sales Order Workflow
# -----------------------------------------------------------------------------

SALES_ORDER_WORKFLOW = Workflow(
    name="sales_order",
    description="Sales order fulfilment lifecycle",
    initial_state="DRAFT",
    states=("DRAFT", "CONFIRMED", "SHIPPED", "DELIVERED", "CLOSED", "CANCELLED"),
    transitions=(
        Transition("DRAFT", "CONFIRMED", action="CONFIRM", guards=(HAS_LINES,),
                   effects=(FX.RESERVE_STOCK.value,)),
        Transition("DRAFT", "CANCELLED", action="CANCEL"),
        Transition("CONFIRMED", "SHIPPED", action="SHIP", effects=(FX.ISSUE_STOCK.value,)),
        Transition("CONFIRMED", "CANCELLED", action="CANCEL", guards=(NO_ACTIVE_INVOICES,),
                   effects=(FX.RELEASE_STOCK.value,)),
        Transition("SHIPPED", "DELIVERED", action="DELIVER"),
        Transition("DELIVERED", "CLOSED", action="CLOSE"),
    ),
    terminal_states=("CLOSED", "CANCELLED"),
)
_log_registered(SALES_ORDER_WORKFLOW)


# -----------------------------------------------------------------------------
# Invoice Workflow
# -----------------------------------------------------------------------------

INVOICE_WORKFLOW = Workflow(
    name="invoice",
    description="Customer invoice lifecycle",
    initial_state="DRAFT",
    states=("DRAFT", "SENT", "PARTIALLY_PAID", "PAID", "OVERDUE", "VOID"),
    transitions=(
        Transition("DRAFT", "SENT", action="SEND", guards=(HAS_LINES,),
                   effects=(FX.SUBMIT_EINVOICE.value,)),
        Transition("DRAFT", "VOID", action="VOID", guards=(NO_PAYMENTS_APPLIED,)),
        Transition("SENT", "PAID", action="APPLY_PAYMENT", guards=(BALANCE_ZERO,)),
        Transition("SENT", "PARTIALLY_PAID", action="APPLY_PAYMENT", guards=(BALANCE_OUTSTANDING,)),
        Transition("SENT", "OVERDUE", action="MARK_OVERDUE", guards=(PAST_DUE,)),
        Transition("SENT", "VOID", action="VOID", guards=(NO_PAYMENTS_APPLIED,)),
        Transition("PARTIALLY_PAID", "PAID", action="APPLY_PAYMENT", guards=(BALANCE_ZERO,)),
        Transition("PARTIALLY_PAID", "PARTIALLY_PAID", action="APPLY_PAYMENT",
                   guards=(BALANCE_OUTSTANDING,)),
        Transition("PARTIALLY_PAID", "OVERDUE", action="MARK_OVERDUE", guards=(PAST_DUE,)),
        Transition("PARTIALLY_PAID", "VOID", action="VOID", guards=(NO_PAYMENTS_APPLIED,)),
        Transition("OVERDUE", "PAID", action="APPLY_PAYMENT", guards=(BALANCE_ZERO,)),
        Transition("OVERDUE", "PARTIALLY_PAID", action="APPLY_PAYMENT",
                   guards=(BALANCE_OUTSTANDING,)),
        Transition("OVERDUE", "VOID", action="VOID", guards=(NO_PAYMENTS_APPLIED,)),
    ),
    terminal_states=("PAID", "VOID"),
)
_log_registered(INVOICE_WORKFLOW)


# -----------------------------------------------------------------------------
# Sales Return Workflow
# -----------------------------------------------------------------------------

SALES_RETURN_WORKFLOW = Workflow(
    name="sales_return",
    description="Customer return: approval, goods receipt, credit note",
    initial_state="PENDING",
    states=("PENDING", "APPROVED", "RECEIVED", "PROCESSED", "REJECTED"),
    transitions=(
        Transition("PENDING", "APPROVED", action="APPROVE", guards=(HAS_LINES,)),
        Transition("PENDING", "REJECTED", action="REJECT"),
        Transition("APPROVED", "RECEIVED", action="RECEIVE", effects=(FX.RESTOCK_RETURN.value,)),
        Transition("APPROVED", "REJECTED", action="REJECT"),
        Transition("RECEIVED", "PROCESSED", action="PROCESS",
                   effects=(FX.ISSUE_CREDIT_NOTE.value,)),
        Transition("RECEIVED", "REJECTED", action="REJECT"),
    ),
    terminal_states=("PROCESSED", "REJECTED"),
)
_log_registered(SALES_RETURN_WORKFLOW)


# -----------------------------------------------------------------------------
# Core Return Workflow
# -----------------------------------------------------------------------------

CORE_RETURN_WORKFLOW = Workflow(
    name="core_return",
    description="Core deposit return: receive the old core, then credit the deposit",
    initial_state="PENDING",
    states=("PENDING", "RECEIVED", "CREDITED", "REJECTED"),
    transitions=(
        Transition("PENDING", "RECEIVED", action="RECEIVE"),
        Transition("PENDING", "REJECTED", action="REJECT"),
        Transition("RECEIVED", "CREDITED", action="CREDIT", effects=(FX.ISSUE_CORE_CREDIT.value,)),
        Transition("RECEIVED", "REJECTED", action="REJECT"),
    ),
    terminal_states=("CREDITED", "REJECTED"),
)
_log_registered(CORE_RETURN_WORKFLOW)
