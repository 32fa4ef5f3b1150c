"""
Lifecycle and projected status enums.

Stored statuses (one enum per document kind) are the states of the
workflow tables in ``erp_modules``.  Projected statuses are computed on
read by ``erp_engines.projection`` and never persisted.
"""

from enum import Enum


# =============================================================================
# Stored lifecycle states
# =============================================================================


class QuoteStatus(str, Enum):
    DRAFT = "DRAFT"
    SENT = "SENT"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"
    CONVERTED = "CONVERTED"


class SalesOrderStatus(str, Enum):
    DRAFT = "DRAFT"
    CONFIRMED = "CONFIRMED"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CLOSED = "CLOSED"
    CANCELLED = "CANCELLED"


class InvoiceStatus(str, Enum):
    DRAFT = "DRAFT"
    SENT = "SENT"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    VOID = "VOID"


class PurchaseOrderStatus(str, Enum):
    DRAFT = "DRAFT"
    ISSUED = "ISSUED"
    PARTIALLY_RECEIVED = "PARTIALLY_RECEIVED"
    RECEIVED = "RECEIVED"
    CLOSED = "CLOSED"
    CANCELLED = "CANCELLED"


class BillStatus(str, Enum):
    DRAFT = "DRAFT"
    RECEIVED = "RECEIVED"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    VOID = "VOID"


class SalesReturnStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    RECEIVED = "RECEIVED"
    PROCESSED = "PROCESSED"
    REJECTED = "REJECTED"


class CoreReturnStatus(str, Enum):
    PENDING = "PENDING"
    RECEIVED = "RECEIVED"
    CREDITED = "CREDITED"
    REJECTED = "REJECTED"


class ReorderAlertStatus(str, Enum):
    PENDING = "PENDING"
    ACKNOWLEDGED = "ACKNOWLEDGED"
    PO_CREATED = "PO_CREATED"
    RESOLVED = "RESOLVED"

    @property
    def is_open(self) -> bool:
        return self in (ReorderAlertStatus.PENDING, ReorderAlertStatus.ACKNOWLEDGED)


OPEN_ALERT_STATUSES = frozenset(
    {ReorderAlertStatus.PENDING.value, ReorderAlertStatus.ACKNOWLEDGED.value}
)


# =============================================================================
# Projected (read-side) statuses
# =============================================================================


class InvoicingStatus(str, Enum):
    NOT_INVOICED = "NOT_INVOICED"
    PARTIALLY_INVOICED = "PARTIALLY_INVOICED"
    INVOICED = "INVOICED"


class ReceivingStatus(str, Enum):
    NOT_RECEIVED = "NOT_RECEIVED"
    PARTIALLY_RECEIVED = "PARTIALLY_RECEIVED"
    RECEIVED = "RECEIVED"


class BillingStatus(str, Enum):
    NOT_BILLED = "NOT_BILLED"
    PARTIALLY_BILLED = "PARTIALLY_BILLED"
    BILLED = "BILLED"


class PaymentStatus(str, Enum):
    UNPAID = "UNPAID"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"
