"""
erp_services.store -- Unit-of-work persistence contract and in-memory store.

Responsibility:
    Defines the persistence contract every service writes through and
    provides a thread-safe in-memory implementation.  A unit of work
    stages writes; nothing is visible to other units until ``commit``,
    and ``commit`` applies every staged write or none of them.

Architecture position:
    Services layer.  May import erp_kernel and erp_engines.

Invariants enforced:
    - Optimistic concurrency: every load returns a version, every save
      states the version it expects.  A mismatch at commit raises
      ConcurrentModificationError (retryable) and nothing is written.
    - Read-your-writes: reads inside a unit of work see its own staged
      writes, with the version the staged write will commit as.
    - At most one open reorder alert per (organization, item, warehouse)
      subject across all committed units of work.
    - Receipts and payments are insert-only; reusing an id conflicts.

Failure modes:
    - DocumentNotFoundError / AlertNotFoundError on missing aggregates.
    - ConcurrentModificationError on version, open-subject or
      duplicate-id conflicts.
    - Backend exceptions propagate unchanged after rollback.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections.abc import Collection, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import Generic, TypeVar

from erp_kernel.domain.alerts import ReorderAlert
from erp_kernel.domain.documents import DocumentKind, FinancialDocument, Payment, Receipt
from erp_kernel.domain.statuses import OPEN_ALERT_STATUSES
from erp_kernel.exceptions import (
    AlertNotFoundError,
    ConcurrentModificationError,
    DocumentNotFoundError,
    NotFoundError,
)
from erp_kernel.logging_config import get_logger

logger = get_logger("services.store")

T = TypeVar("T")


@dataclass(frozen=True)
class Staged(Generic[T]):
    """A pending write: the entity, the version it replaces, the version it commits as."""

    entity: T
    base_version: int | None
    version: int


def _matches(
    document: FinancialDocument,
    organization_id: str | None,
    kind: DocumentKind | None,
    statuses: Collection[str] | None,
    party_id: str | None,
    source_document_id: str | None,
) -> bool:
    return (
        (organization_id is None or document.organization_id == organization_id)
        and (kind is None or document.kind == kind)
        and (statuses is None or document.status in statuses)
        and (party_id is None or document.party_id == party_id)
        and (source_document_id is None or document.source_document_id == source_document_id)
    )


class UnitOfWork(ABC):
    """
    One transactional unit of reads and staged writes.

    Backends implement the ``_fetch_*``/``_query_*`` readers and
    ``_write``; staging, overlay and version bookkeeping live here.
    """

    def __init__(self) -> None:
        self._documents: dict[str, Staged[FinancialDocument]] = {}
        self._alerts: dict[str, Staged[ReorderAlert]] = {}
        self._receipts: dict[str, Receipt] = {}
        self._payments: dict[str, Payment] = {}

    # -- backend hooks -----------------------------------------------------

    @abstractmethod
    def _fetch_document(self, document_id: str) -> tuple[FinancialDocument, int] | None: ...

    @abstractmethod
    def _query_documents(
        self,
        organization_id: str | None,
        kind: DocumentKind | None,
        source_document_id: str | None,
    ) -> list[tuple[FinancialDocument, int]]:
        """Committed candidates; the caller applies the remaining filters."""

    @abstractmethod
    def _fetch_receipts(self, purchase_order_id: str) -> list[Receipt]: ...

    @abstractmethod
    def _fetch_payment(self, payment_id: str) -> Payment | None: ...

    @abstractmethod
    def _fetch_alert(self, alert_id: str) -> tuple[ReorderAlert, int] | None: ...

    @abstractmethod
    def _query_open_alerts(self, organization_id: str) -> list[tuple[ReorderAlert, int]]: ...

    @abstractmethod
    def _write(self) -> None:
        """Apply every staged write atomically, checking versions."""

    def _discard(self) -> None:
        """Release backend resources after rollback."""

    # -- documents ---------------------------------------------------------

    def load_document(self, document_id: str) -> tuple[FinancialDocument, int]:
        staged = self._documents.get(document_id)
        if staged is not None:
            return staged.entity, staged.version
        found = self._fetch_document(document_id)
        if found is None:
            raise DocumentNotFoundError(document_id)
        return found

    def save_document(self, document: FinancialDocument, expected_version: int | None) -> int:
        """
        Stage ``document``; ``expected_version`` is None for a new document.

        Returns the version the document will have once committed.
        """
        staged = self._documents.get(document.document_id)
        if staged is not None:
            if expected_version != staged.version:
                raise ConcurrentModificationError(
                    "document", document.document_id, expected_version, staged.version
                )
            self._documents[document.document_id] = replace(staged, entity=document)
            return staged.version
        version = (expected_version or 0) + 1
        self._documents[document.document_id] = Staged(document, expected_version, version)
        return version

    def find_documents(
        self,
        organization_id: str | None = None,
        kind: DocumentKind | None = None,
        statuses: Collection[str] | None = None,
        party_id: str | None = None,
        source_document_id: str | None = None,
    ) -> list[FinancialDocument]:
        """Documents matching every given filter, staged writes included."""
        merged: dict[str, FinancialDocument] = {
            doc.document_id: doc
            for doc, _ in self._query_documents(organization_id, kind, source_document_id)
        }
        for document_id, staged in self._documents.items():
            merged[document_id] = staged.entity
        return [
            doc for doc in merged.values()
            if _matches(doc, organization_id, kind, statuses, party_id, source_document_id)
        ]

    def children_of(self, parent_id: str) -> list[FinancialDocument]:
        """Documents converted from ``parent_id``."""
        return self.find_documents(source_document_id=parent_id)

    # -- receipts and payments --------------------------------------------

    def receipts_for(self, purchase_order_id: str) -> list[Receipt]:
        receipts = self._fetch_receipts(purchase_order_id)
        receipts.extend(
            r for r in self._receipts.values() if r.purchase_order_id == purchase_order_id
        )
        return receipts

    def save_receipt(self, receipt: Receipt) -> None:
        self._receipts[receipt.receipt_id] = receipt

    def load_payment(self, payment_id: str) -> Payment:
        payment = self._payments.get(payment_id) or self._fetch_payment(payment_id)
        if payment is None:
            raise NotFoundError(f"Payment not found: {payment_id}")
        return payment

    def save_payment(self, payment: Payment) -> None:
        self._payments[payment.payment_id] = payment

    # -- alerts ------------------------------------------------------------

    def load_alert(self, alert_id: str) -> tuple[ReorderAlert, int]:
        staged = self._alerts.get(alert_id)
        if staged is not None:
            return staged.entity, staged.version
        found = self._fetch_alert(alert_id)
        if found is None:
            raise AlertNotFoundError(alert_id)
        return found

    def save_alert(self, alert: ReorderAlert, expected_version: int | None) -> int:
        staged = self._alerts.get(alert.alert_id)
        if staged is not None:
            if expected_version != staged.version:
                raise ConcurrentModificationError(
                    "reorder_alert", alert.alert_id, expected_version, staged.version
                )
            self._alerts[alert.alert_id] = replace(staged, entity=alert)
            return staged.version
        version = (expected_version or 0) + 1
        self._alerts[alert.alert_id] = Staged(alert, expected_version, version)
        return version

    def open_alerts(self, organization_id: str) -> list[ReorderAlert]:
        merged = {a.alert_id: a for a, _ in self._query_open_alerts(organization_id)}
        for alert_id, staged in self._alerts.items():
            merged[alert_id] = staged.entity
        return [
            a for a in merged.values()
            if a.organization_id == organization_id and a.status in OPEN_ALERT_STATUSES
        ]

    # -- lifecycle ---------------------------------------------------------

    @property
    def pending_writes(self) -> int:
        return (
            len(self._documents) + len(self._alerts)
            + len(self._receipts) + len(self._payments)
        )

    def commit(self) -> None:
        pending = self.pending_writes
        self._write()
        logger.debug("unit_of_work_committed", extra={
            "documents": len(self._documents),
            "alerts": len(self._alerts),
            "receipts": len(self._receipts),
            "payments": len(self._payments),
            "writes": pending,
        })
        self._clear()

    def rollback(self) -> None:
        pending = self.pending_writes
        self._clear()
        self._discard()
        if pending:
            logger.debug("unit_of_work_rolled_back", extra={"discarded_writes": pending})

    def _clear(self) -> None:
        self._documents.clear()
        self._alerts.clear()
        self._receipts.clear()
        self._payments.clear()


class DocumentStore(ABC):
    """Factory for units of work over one persistence backend."""

    @abstractmethod
    def _begin(self) -> UnitOfWork: ...

    @contextmanager
    def unit_of_work(self) -> Iterator[UnitOfWork]:
        """
        Transactional scope: commits on normal exit, rolls back and
        re-raises on any exception.
        """
        uow = self._begin()
        try:
            yield uow
            uow.commit()
        except Exception:
            uow.rollback()
            raise

    def load_document(self, document_id: str) -> tuple[FinancialDocument, int]:
        with self.unit_of_work() as uow:
            return uow.load_document(document_id)

    def load_alert(self, alert_id: str) -> tuple[ReorderAlert, int]:
        with self.unit_of_work() as uow:
            return uow.load_alert(alert_id)


# =============================================================================
# In-memory implementation
# =============================================================================


class InMemoryUnitOfWork(UnitOfWork):
    def __init__(self, store: InMemoryDocumentStore) -> None:
        super().__init__()
        self._store = store

    def _fetch_document(self, document_id: str) -> tuple[FinancialDocument, int] | None:
        with self._store._lock:
            return self._store._documents.get(document_id)

    def _query_documents(
        self,
        organization_id: str | None,
        kind: DocumentKind | None,
        source_document_id: str | None,
    ) -> list[tuple[FinancialDocument, int]]:
        with self._store._lock:
            return list(self._store._documents.values())

    def _fetch_receipts(self, purchase_order_id: str) -> list[Receipt]:
        with self._store._lock:
            return [
                r for r in self._store._receipts.values()
                if r.purchase_order_id == purchase_order_id
            ]

    def _fetch_payment(self, payment_id: str) -> Payment | None:
        with self._store._lock:
            return self._store._payments.get(payment_id)

    def _fetch_alert(self, alert_id: str) -> tuple[ReorderAlert, int] | None:
        with self._store._lock:
            return self._store._alerts.get(alert_id)

    def _query_open_alerts(self, organization_id: str) -> list[tuple[ReorderAlert, int]]:
        with self._store._lock:
            return [
                (a, v) for a, v in self._store._alerts.values()
                if a.organization_id == organization_id and a.status in OPEN_ALERT_STATUSES
            ]

    def _check_version(
        self,
        entity_type: str,
        entity_id: str,
        staged: Staged,
        committed: tuple[object, int] | None,
    ) -> None:
        actual = committed[1] if committed is not None else None
        if actual != staged.base_version:
            logger.warning("optimistic_lock_conflict", extra={
                "entity_type": entity_type,
                "entity_id": entity_id,
                "expected_version": staged.base_version,
                "actual_version": actual,
            })
            raise ConcurrentModificationError(entity_type, entity_id, staged.base_version, actual)

    def _check_new(
        self,
        entity_type: str,
        staged: Mapping[str, object],
        committed: Mapping[str, object],
    ) -> None:
        """Receipts and payments are insert-only; an existing id is a conflict."""
        for entity_id in staged:
            if entity_id in committed:
                logger.warning("insert_conflict", extra={
                    "entity_type": entity_type,
                    "entity_id": entity_id,
                })
                raise ConcurrentModificationError(entity_type, entity_id, None, None)

    def _check_open_subjects(self) -> None:
        """Reject a commit that would leave two open alerts for one subject."""
        final: dict[str, ReorderAlert] = {
            alert_id: alert for alert_id, (alert, _) in self._store._alerts.items()
        }
        for alert_id, staged in self._alerts.items():
            final[alert_id] = staged.entity
        seen: dict[str, str] = {}
        for alert_id, alert in final.items():
            if alert.status not in OPEN_ALERT_STATUSES:
                continue
            other = seen.get(alert.subject_key)
            if other is not None:
                offender = alert_id if alert_id in self._alerts else other
                logger.warning("open_alert_conflict", extra={
                    "subject": alert.subject_key,
                    "alert_id": offender,
                })
                raise ConcurrentModificationError("reorder_alert", alert.subject_key, None, None)
            seen[alert.subject_key] = alert_id

    def _write(self) -> None:
        store = self._store
        with store._lock:
            for document_id, staged in self._documents.items():
                self._check_version(
                    "document", document_id, staged, store._documents.get(document_id)
                )
            for alert_id, staged in self._alerts.items():
                self._check_version("reorder_alert", alert_id, staged, store._alerts.get(alert_id))
            if self._alerts:
                self._check_open_subjects()
            self._check_new("receipt", self._receipts, store._receipts)
            self._check_new("payment", self._payments, store._payments)

            for document_id, staged in self._documents.items():
                store._documents[document_id] = (staged.entity, staged.version)
            for alert_id, staged in self._alerts.items():
                store._alerts[alert_id] = (staged.entity, staged.version)
            store._receipts.update(self._receipts)
            store._payments.update(self._payments)


class InMemoryDocumentStore(DocumentStore):
    """
    Thread-safe in-memory store.

    All committed state sits behind one lock; a commit validates and
    applies its whole write set while holding it.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._documents: dict[str, tuple[FinancialDocument, int]] = {}
        self._alerts: dict[str, tuple[ReorderAlert, int]] = {}
        self._receipts: dict[str, Receipt] = {}
        self._payments: dict[str, Payment] = {}

    def _begin(self) -> UnitOfWork:
        return InMemoryUnitOfWork(self)
