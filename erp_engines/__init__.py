"""
Module: erp_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  Canonical import surface for erp_services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import erp_kernel (and sibling engine modules).
    MUST NOT import erp_services or erp_modules.

Invariants enforced:
    - Purity: engines NEVER read the clock.  ``as_of`` dates and ``now``
      timestamps are explicit parameters supplied by services.
    - Decimal-only arithmetic; money is computed in integer minor units.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Engine entry points are wrapped with ``@traced_engine`` (see
    ``erp_engines.tracer``), emitting ERP_ENGINE_TRACE records with the
    engine name, version, input fingerprint and duration.

Usage:
    from erp_engines.calculator import DocumentCalculator
    from erp_engines.state_machine import DocumentStateMachine
    from erp_engines.projection import project_invoice_status
    from erp_engines.allocation import PaymentAllocationEngine
    from erp_engines.alerts import ReorderScanner
"""

from erp_kernel.logging_config import get_logger

logger = get_logger("engines")

from erp_engines.alerts import (
    ReorderScanner,
    ReorderScanResult,
    is_below_reorder_point,
    suggested_quantity,
)
from erp_engines.allocation import (
    AllocationLine,
    AllocationRequest,
    AllocationResult,
    AllocationTarget,
    PaymentAllocationEngine,
)
from erp_engines.calculator import DocumentCalculator, compute_document, compute_line
from erp_engines.projection import (
    OverdueCoreReturn,
    effective_status,
    is_core_return_overdue,
    is_past_due,
    is_quote_expired,
    overdue_core_returns,
    project_bill_status,
    project_invoice_status,
    project_payment_status,
    project_receive_status,
)
from erp_engines.state_machine import (
    REORDER_ALERT_KIND,
    DocumentStateMachine,
    GuardContext,
    GuardExecutor,
    SideEffect,
    TransitionOutcome,
    default_guard_executor,
)
from erp_engines.tracer import traced_engine

__all__ = [
    # Alerts
    "ReorderScanner",
    "ReorderScanResult",
    "is_below_reorder_point",
    "suggested_quantity",
    # Allocation
    "AllocationLine",
    "AllocationRequest",
    "AllocationResult",
    "AllocationTarget",
    "PaymentAllocationEngine",
    # Calculator
    "DocumentCalculator",
    "compute_document",
    "compute_line",
    # Projection
    "OverdueCoreReturn",
    "effective_status",
    "is_core_return_overdue",
    "is_past_due",
    "is_quote_expired",
    "overdue_core_returns",
    "project_bill_status",
    "project_invoice_status",
    "project_payment_status",
    "project_receive_status",
    # State machine
    "REORDER_ALERT_KIND",
    "DocumentStateMachine",
    "GuardContext",
    "GuardExecutor",
    "SideEffect",
    "TransitionOutcome",
    "default_guard_executor",
    # Tracing
    "traced_engine",
]
