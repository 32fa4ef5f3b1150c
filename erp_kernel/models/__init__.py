"""ORM models for documents, receipts, payments and reorder alerts."""

from erp_kernel.models.alert import ReorderAlertModel
from erp_kernel.models.document import DocumentLineModel, DocumentModel
from erp_kernel.models.payment import PaymentAllocationModel, PaymentModel
from erp_kernel.models.receipt import ReceiptLineModel, ReceiptModel

__all__ = [
    "DocumentModel",
    "DocumentLineModel",
    "ReceiptModel",
    "ReceiptLineModel",
    "PaymentModel",
    "PaymentAllocationModel",
    "ReorderAlertModel",
]
