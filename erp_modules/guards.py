"""
Guards shared by more than one document kind.

Evaluators live in ``erp_engines.state_machine.default_guard_executor``;
the descriptions below are the messages reported when a guard blocks a
transition.
"""

from erp_kernel.domain.workflow import Guard
from erp_kernel.logging_config import get_logger

logger = get_logger("modules.guards")

HAS_LINES = Guard(
    name="has_lines",
    description="document has no lines",
)

BALANCE_ZERO = Guard(
    name="balance_zero",
    description="balance is still outstanding",
)

BALANCE_OUTSTANDING = Guard(
    name="balance_outstanding",
    description="no payment has been applied",
)

NO_PAYMENTS_APPLIED = Guard(
    name="no_payments_applied",
    description="invoice has applied payments",
)

PAST_DUE = Guard(
    name="past_due",
    description="document is not past its due date",
)

logger.info(
    "shared_guards_defined",
    extra={
        "guards": [
            HAS_LINES.name,
            BALANCE_ZERO.name,
            BALANCE_OUTSTANDING.name,
            NO_PAYMENTS_APPLIED.name,
            PAST_DUE.name,
        ],
    },
)
