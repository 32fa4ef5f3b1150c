"""
Inventory Workflows.

State machine for reorder alerts raised by the reorder-point scan.
"""

from erp_kernel.domain.workflow import Transition, Workflow
from erp_kernel.logging_config import get_logger

logger = get_logger("modules.inventory.workflows")


# -----------------------------------------------------------------------------
# Reorder Alert Workflow
# -----------------------------------------------------------------------------

# CREATE_PO is only fired by the conversion pipeline, in the same unit of
# work that persists the purchase order.
REORDER_ALERT_WORKFLOW = Workflow(
    name="reorder_alert",
    description="Low-stock alert acknowledgement and closure",
    initial_state="PENDING",
    states=("PENDING", "ACKNOWLEDGED", "PO_CREATED", "RESOLVED"),
    transitions=(
        Transition("PENDING", "ACKNOWLEDGED", action="ACKNOWLEDGE"),
        Transition("PENDING", "PO_CREATED", action="CREATE_PO"),
        Transition("PENDING", "RESOLVED", action="RESOLVE"),
        Transition("ACKNOWLEDGED", "PO_CREATED", action="CREATE_PO"),
        Transition("ACKNOWLEDGED", "RESOLVED", action="RESOLVE"),
    ),
    terminal_states=("PO_CREATED", "RESOLVED"),
)

logger.info(
    "inventory_reorder_alert_workflow_registered",
    extra={
        "workflow_name": REORDER_ALERT_WORKFLOW.name,
        "state_count": len(REORDER_ALERT_WORKFLOW.states),
        "transition_count": len(REORDER_ALERT_WORKFLOW.transitions),
        "initial_state": REORDER_ALERT_WORKFLOW.initial_state,
    },
)
