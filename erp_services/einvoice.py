"""
erp_services.einvoice -- Advisory e-invoice submission after commit.

Responsibility:
    Hand a committed invoice to the tax authority collaborator.  The
    collaborator's wire protocol is out of scope; it is anything that
    implements ``EInvoiceSubmitter``.

Invariants enforced:
    - Submission happens only after the invoice transition has committed
      and never affects it: a failure is logged and reported as a FAILED
      result, never raised, never retried here.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable

from erp_kernel.domain.documents import FinancialDocument
from erp_kernel.logging_config import get_logger

logger = get_logger("services.einvoice")


class SubmissionStatus(str, Enum):
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    FAILED = "FAILED"


@dataclass(frozen=True)
class SubmissionResult:
    status: SubmissionStatus
    reference_id: str | None = None
    message: str | None = None

    @property
    def accepted(self) -> bool:
        return self.status == SubmissionStatus.ACCEPTED


@runtime_checkable
class EInvoiceSubmitter(Protocol):
    def submit(self, invoice: FinancialDocument) -> SubmissionResult: ...


def submit_after_commit(
    submitter: EInvoiceSubmitter,
    invoice: FinancialDocument,
) -> SubmissionResult:
    """Submit ``invoice``; any exception becomes a FAILED result."""
    try:
        result = submitter.submit(invoice)
    except Exception as exc:
        logger.error("einvoice_submission_failed", extra={
            "document_id": invoice.document_id,
            "error_type": type(exc).__name__,
            "error": str(exc),
        }, exc_info=True)
        return SubmissionResult(status=SubmissionStatus.FAILED, message=str(exc))

    log = logger.info if result.accepted else logger.warning
    log("einvoice_submitted", extra={
        "document_id": invoice.document_id,
        "status": result.status.value,
        "reference_id": result.reference_id,
    })
    return result
