"""
Module: erp_services
Responsibility:
    Imperative shell of the document core.  Services load aggregates from a
    DocumentStore, hand them to the pure engines, and commit the outcome in
    one unit of work.

Architecture position:
    Services -- may import erp_engines, erp_modules, erp_kernel and
    erp_config.  Nothing below this layer imports it.

Usage:
    from erp_services import DocumentService, InMemoryDocumentStore

    store = InMemoryDocumentStore()
    documents = DocumentService(store)
"""

from erp_services.conversion_service import (
    BatchItemResult,
    BatchItemStatus,
    BatchRunResult,
    BatchRunStatus,
    ConversionResult,
    ConversionService,
)
from erp_services.document_service import (
    DocumentService,
    StatusProjection,
    TransitionResult,
)
from erp_services.einvoice import (
    EInvoiceSubmitter,
    SubmissionResult,
    SubmissionStatus,
    submit_after_commit,
)
from erp_services.payment_service import PaymentResult, PaymentService
from erp_services.reorder_service import ReorderService
from erp_services.retry import retry_on_conflict
from erp_services.sql_store import SqlDocumentStore, SqlUnitOfWork
from erp_services.store import (
    DocumentStore,
    InMemoryDocumentStore,
    InMemoryUnitOfWork,
    UnitOfWork,
)

__all__ = [
    "BatchItemResult",
    "BatchItemStatus",
    "BatchRunResult",
    "BatchRunStatus",
    "ConversionResult",
    "ConversionService",
    "DocumentService",
    "DocumentStore",
    "EInvoiceSubmitter",
    "InMemoryDocumentStore",
    "InMemoryUnitOfWork",
    "PaymentResult",
    "PaymentService",
    "ReorderService",
    "SqlDocumentStore",
    "SqlUnitOfWork",
    "StatusProjection",
    "SubmissionResult",
    "SubmissionStatus",
    "TransitionResult",
    "UnitOfWork",
    "retry_on_conflict",
    "submit_after_commit",
]
