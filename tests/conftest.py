"""
Pytest fixtures for the ERP document core test suite.

Provides:
- Structured logging configuration and log capture
- A deterministic clock and default settings
- In-memory and SQLite-backed document stores
- Services wired to those stores
- Builders for common documents (lines, invoices, purchase orders)

Environment Variables:
- ERP_TEST_DATABASE_URL: database URL for the SQL store tests.
  Defaults to an in-memory SQLite database.
"""

import json
import logging
import os
from datetime import datetime, timezone
from decimal import Decimal
from io import StringIO

import pytest

from erp_config import EngineSettings
from erp_engines.state_machine import DocumentStateMachine
from erp_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from erp_kernel.domain.clock import DeterministicClock
from erp_kernel.domain.documents import DocumentKind, LineItem
from erp_kernel.domain.events import DocumentEvent
from erp_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from erp_modules.registry import WORKFLOWS
from erp_services.conversion_service import ConversionService
from erp_services.document_service import DocumentService
from erp_services.payment_service import PaymentService
from erp_services.reorder_service import ReorderService
from erp_services.sql_store import SqlDocumentStore
from erp_services.store import InMemoryDocumentStore

ORG_ID = "org-1"
CUSTOMER_ID = "cust-1"
VENDOR_ID = "vendor-1"

DEFAULT_SQL_URL = "sqlite://"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture erp_core logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, documents):
            documents.transition(invoice_id, DocumentEvent.SEND)
            logs = captured_logs()
            assert any(r["message"] == "transition_applied" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("erp_core")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Time and settings
# =============================================================================


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock(datetime(2024, 3, 1, 9, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def settings() -> EngineSettings:
    return EngineSettings()


@pytest.fixture
def state_machine() -> DocumentStateMachine:
    return DocumentStateMachine(WORKFLOWS)


# =============================================================================
# Stores
# =============================================================================


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


def get_database_url() -> str:
    return os.environ.get("ERP_TEST_DATABASE_URL", DEFAULT_SQL_URL)


@pytest.fixture
def sql_store():
    """SqlDocumentStore over a fresh schema, dropped after the test."""
    init_engine_from_url(get_database_url())
    create_tables()
    yield SqlDocumentStore(get_session_factory())
    drop_tables()
    reset_engine()


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def documents(store, settings, clock, state_machine) -> DocumentService:
    return DocumentService(store, settings, clock, state_machine)


@pytest.fixture
def payments(store, settings, clock, state_machine) -> PaymentService:
    return PaymentService(store, settings, clock, state_machine)


@pytest.fixture
def reorders(store, settings, clock, state_machine) -> ReorderService:
    return ReorderService(store, settings, clock, state_machine)


@pytest.fixture
def conversions(store, settings, clock, state_machine, documents) -> ConversionService:
    return ConversionService(store, settings, clock, state_machine, documents)


# =============================================================================
# Builders
# =============================================================================


def make_line(
    item_id: str = "SKU-1",
    quantity: str = "1",
    unit_price: str = "100.00",
    tax_rate_percent: str = "0",
    **kwargs,
) -> LineItem:
    return LineItem(
        item_id=item_id,
        quantity=Decimal(quantity),
        unit_price=Decimal(unit_price),
        tax_rate_percent=Decimal(tax_rate_percent),
        **kwargs,
    )


@pytest.fixture
def sent_invoice(documents):
    """
    Factory: create an invoice with one line for ``amount`` and SEND it.

    Returns the committed document id.
    """

    def _create(amount: str = "500.00", party_id: str = CUSTOMER_ID, **fields) -> str:
        invoice = documents.create_document(
            DocumentKind.INVOICE,
            ORG_ID,
            [make_line(unit_price=amount)],
            party_id=party_id,
            **fields,
        )
        documents.transition(invoice.document_id, DocumentEvent.SEND)
        return invoice.document_id

    return _create


@pytest.fixture
def issued_po(documents):
    """Factory: create a purchase order with the given lines and ISSUE it."""

    def _create(*lines: LineItem) -> str:
        po = documents.create_document(
            DocumentKind.PURCHASE_ORDER,
            ORG_ID,
            list(lines) or [make_line(quantity="10", unit_price="20.00")],
            party_id=VENDOR_ID,
        )
        documents.transition(po.document_id, DocumentEvent.ISSUE)
        return po.document_id

    return _create
