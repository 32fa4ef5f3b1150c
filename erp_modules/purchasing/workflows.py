"""
Purchasing Workflows.

State machines for purchase orders and vendor bills.
"""

from erp_kernel.domain.events import SideEffectKind as FX
from erp_kernel.domain.workflow import Guard, Transition, Workflow
from erp_kernel.logging_config import get_logger
from erp_modules.guards import (
    BALANCE_OUTSTANDING,
    BALANCE_ZERO,
    HAS_LINES,
    PAST_DUE,
)

logger = get_logger("modules.purchasing.workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

NO_ACTIVE_BILLS = Guard(
    name="no_active_bills",
    description="order has active bills",
)

NOTHING_RECEIVED = Guard(
    name="nothing_received",
    description="order has received goods",
)

FULLY_RECEIVED = Guard(
    name="fully_received",
    description="not every line has been received in full",
)

PARTIALLY_RECEIVED = Guard(
    name="partially_received",
    description="no goods have been received",
)

BILL_NOT_PAID = Guard(
    name="no_payments_applied",
    description="bill has applied payments",
)

logger.info(
    "purchasing_workflow_guards_defined",
    extra={
        "guards": [
            NO_ACTIVE_BILLS.name,
            NOTHING_RECEIVED.name,
            FULLY_RECEIVED.name,
            PARTIALLY_RECEIVED.name,
        ],
    },
)


# -----------------------------------------------------------------------------
# Purchase Order Workflow
# -----------------------------------------------------------------------------

PURCHASE_ORDER_WORKFLOW = Workflow(
    name="purchase_order",
    description="Purchase order issue and receiving lifecycle",
    initial_state="DRAFT",
    states=("DRAFT", "ISSUED", "PARTIALLY_RECEIVED", "RECEIVED", "CLOSED", "CANCELLED"),
    transitions=(
        Transition("DRAFT", "ISSUED", action="ISSUE", guards=(HAS_LINES,)),
        Transition("DRAFT", "CANCELLED", action="CANCEL", guards=(NO_ACTIVE_BILLS,)),
        Transition("ISSUED", "RECEIVED", action="RECEIVE", guards=(FULLY_RECEIVED,),
                   effects=(FX.RECEIVE_STOCK.value,)),
        Transition("ISSUED", "PARTIALLY_RECEIVED", action="RECEIVE", guards=(PARTIALLY_RECEIVED,),
                   effects=(FX.RECEIVE_STOCK.value,)),
        Transition("ISSUED", "CANCELLED", action="CANCEL",
                   guards=(NO_ACTIVE_BILLS, NOTHING_RECEIVED)),
        Transition("PARTIALLY_RECEIVED", "RECEIVED", action="RECEIVE", guards=(FULLY_RECEIVED,),
                   effects=(FX.RECEIVE_STOCK.value,)),
        Transition("PARTIALLY_RECEIVED", "PARTIALLY_RECEIVED", action="RECEIVE",
                   guards=(PARTIALLY_RECEIVED,), effects=(FX.RECEIVE_STOCK.value,)),
        Transition("RECEIVED", "CLOSED", action="CLOSE"),
    ),
    terminal_states=("CLOSED", "CANCELLED"),
)

logger.info(
    "purchase_order_workflow_registered",
    extra={
        "workflow_name": PURCHASE_ORDER_WORKFLOW.name,
        "state_count": len(PURCHASE_ORDER_WORKFLOW.states),
        "transition_count": len(PURCHASE_ORDER_WORKFLOW.transitions),
        "initial_state": PURCHASE_ORDER_WORKFLOW.initial_state,
    },
)


# -----------------------------------------------------------------------------
# Bill Workflow
# -----------------------------------------------------------------------------

BILL_WORKFLOW = Workflow(
    name="bill",
    description="Vendor bill lifecycle",
    initial_state="DRAFT",
    states=("DRAFT", "RECEIVED", "PARTIALLY_PAID", "PAID", "OVERDUE", "VOID"),
    transitions=(
        Transition("DRAFT", "RECEIVED", action="APPROVE", guards=(HAS_LINES,)),
        Transition("DRAFT", "VOID", action="VOID", guards=(BILL_NOT_PAID,)),
        Transition("RECEIVED", "PAID", action="APPLY_PAYMENT", guards=(BALANCE_ZERO,)),
        Transition("RECEIVED", "PARTIALLY_PAID", action="APPLY_PAYMENT",
                   guards=(BALANCE_OUTSTANDING,)),
        Transition("RECEIVED", "OVERDUE", action="MARK_OVERDUE", guards=(PAST_DUE,)),
        Transition("RECEIVED", "VOID", action="VOID", guards=(BILL_NOT_PAID,)),
        Transition("PARTIALLY_PAID", "PAID", action="APPLY_PAYMENT", guards=(BALANCE_ZERO,)),
        Transition("PARTIALLY_PAID", "PARTIALLY_PAID", action="APPLY_PAYMENT",
                   guards=(BALANCE_OUTSTANDING,)),
        Transition("PARTIALLY_PAID", "OVERDUE", action="MARK_OVERDUE", guards=(PAST_DUE,)),
        Transition("PARTIALLY_PAID", "VOID", action="VOID", guards=(BILL_NOT_PAID,)),
        Transition("OVERDUE", "PAID", action="APPLY_PAYMENT", guards=(BALANCE_ZERO,)),
        Transition("OVERDUE", "PARTIALLY_PAID", action="APPLY_PAYMENT",
                   guards=(BALANCE_OUTSTANDING,)),
        Transition("OVERDUE", "VOID", action="VOID", guards=(BILL_NOT_PAID,)),
    ),
    terminal_states=("PAID", "VOID"),
)

logger.info(
    "bill_workflow_registered",
    extra={
        "workflow_name": BILL_WORKFLOW.name,
        "state_count": len(BILL_WORKFLOW.states),
        "transition_count": len(BILL_WORKFLOW.transitions),
        "initial_state": BILL_WORKFLOW.initial_state,
    },
)
