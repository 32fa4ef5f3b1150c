"""
Trading document value objects (``erp_kernel.domain.documents``).

Responsibility
--------------
Frozen dataclasses for the nouns of the document lifecycle: line items,
computed line and document totals, the financial document aggregate,
goods receipts, payments and their allocations.

Architecture position
---------------------
**Kernel domain layer** -- pure data definitions with ZERO I/O.  Engines
compute over these types; services persist them through a store.

Invariants enforced
-------------------
* All models are ``frozen=True``; a state change produces a new instance
  via ``dataclasses.replace``.
* All monetary and quantity fields use ``Decimal``, never ``float``.
* ``FinancialDocument.totals`` is always derived from ``lines``,
  ``document_discount`` and ``shipping`` by the calculator; nothing
  stores a total independently of its inputs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import uuid4


def new_id() -> str:
    return str(uuid4())


class DocumentKind(str, Enum):
    """The seven trading document kinds."""

    QUOTE = "QUOTE"
    SALES_ORDER = "SALES_ORDER"
    INVOICE = "INVOICE"
    PURCHASE_ORDER = "PURCHASE_ORDER"
    BILL = "BILL"
    SALES_RETURN = "SALES_RETURN"
    CORE_RETURN = "CORE_RETURN"

    @property
    def is_payable(self) -> bool:
        """Invoices and bills carry amount_paid and a balance."""
        return self in (DocumentKind.INVOICE, DocumentKind.BILL)


class PricingMode(str, Enum):
    """Whether unit prices already include tax."""

    EXCLUSIVE = "EXCLUSIVE"
    INCLUSIVE = "INCLUSIVE"


class DiscountType(str, Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED = "FIXED"


class PaymentDirection(str, Enum):
    """RECEIVED settles invoices; MADE settles bills."""

    RECEIVED = "RECEIVED"
    MADE = "MADE"


@dataclass(frozen=True)
class LineItem:
    """Caller-supplied line inputs. Derived amounts live on LineResult."""

    item_id: str
    quantity: Decimal
    unit_price: Decimal
    discount_percent: Decimal | None = None
    discount_amount: Decimal | None = None
    tax_rate_id: str | None = None
    tax_rate_percent: Decimal = Decimal("0")
    description: str = ""
    line_id: str = field(default_factory=new_id)
    source_line_id: str | None = None


@dataclass(frozen=True)
class LineResult:
    """Materialised amounts for one line, rounded to the currency's minor unit."""

    line: LineItem
    subtotal: Decimal
    discount: Decimal
    taxable: Decimal
    tax: Decimal
    amount: Decimal


@dataclass(frozen=True)
class DocumentDiscount:
    """Document-level discount applied after line discounts."""

    type: DiscountType
    value: Decimal

    @classmethod
    def percentage(cls, value: Decimal | str | int) -> DocumentDiscount:
        return cls(DiscountType.PERCENTAGE, Decimal(str(value)))

    @classmethod
    def fixed(cls, value: Decimal | str | int) -> DocumentDiscount:
        return cls(DiscountType.FIXED, Decimal(str(value)))


@dataclass(frozen=True)
class TaxBreakdownLine:
    """Taxable base and tax charged at one tax rate."""

    tax_rate_id: str | None
    rate_percent: Decimal
    taxable: Decimal
    tax: Decimal


@dataclass(frozen=True)
class DocumentTotals:
    """
    Document-level totals.

    ``discount_total`` is the sum of line discounts plus the document
    discount; ``grand_total = subtotal - discount_total + shipping + tax_total``.
    """

    subtotal: Decimal
    line_discount_total: Decimal
    document_discount: Decimal
    discount_total: Decimal
    shipping: Decimal
    tax_total: Decimal
    grand_total: Decimal
    lines: tuple[LineResult, ...] = ()
    tax_breakdown: tuple[TaxBreakdownLine, ...] = ()

    @classmethod
    def empty(cls) -> DocumentTotals:
        zero = Decimal("0.00")
        return cls(zero, zero, zero, zero, zero, zero, zero)


@dataclass(frozen=True)
class FinancialDocument:
    """
    One trading document aggregate: header, lines and derived totals.

    ``child_ids`` holds ids of documents converted from this one (the
    invoices of an order, the bills of a PO).  Derived statuses such as
    an order's invoice status are projected from those children on read
    and never stored here.
    """

    document_id: str
    kind: DocumentKind
    status: str
    organization_id: str
    party_id: str | None = None
    currency: str = "MYR"
    pricing_mode: PricingMode = PricingMode.EXCLUSIVE
    lines: tuple[LineItem, ...] = ()
    document_discount: DocumentDiscount | None = None
    shipping: Decimal = Decimal("0")
    totals: DocumentTotals = field(default_factory=DocumentTotals.empty)
    amount_paid: Decimal = Decimal("0")
    issue_date: date | None = None
    due_date: date | None = None
    valid_until: date | None = None
    source_document_id: str | None = None
    child_ids: tuple[str, ...] = ()
    reference: str | None = None
    created_at: datetime | None = None

    @property
    def grand_total(self) -> Decimal:
        return self.totals.grand_total

    @property
    def balance(self) -> Decimal:
        """grand_total - amount_paid; meaningful for invoices and bills."""
        return self.totals.grand_total - self.amount_paid

    def line(self, line_id: str) -> LineItem:
        for line in self.lines:
            if line.line_id == line_id:
                return line
        raise KeyError(line_id)


@dataclass(frozen=True)
class ReceiptLine:
    source_line_id: str
    quantity: Decimal


@dataclass(frozen=True)
class Receipt:
    """Goods received against a purchase order."""

    receipt_id: str
    purchase_order_id: str
    lines: tuple[ReceiptLine, ...]
    cancelled: bool = False
    received_at: datetime | None = None


@dataclass(frozen=True)
class PaymentAllocation:
    """Portion of a payment applied to one invoice or bill."""

    payment_id: str
    document_id: str
    amount: Decimal


@dataclass(frozen=True)
class Payment:
    """
    A customer receipt or vendor payment.

    ``unallocated`` is the advance portion: paid but not applied to any
    document.  A non-zero advance is a valid outcome.
    """

    payment_id: str
    organization_id: str
    direction: PaymentDirection
    amount: Decimal
    currency: str = "MYR"
    party_id: str | None = None
    allocations: tuple[PaymentAllocation, ...] = ()
    unallocated: Decimal = Decimal("0")
    received_at: datetime | None = None
    reference: str | None = None

    @property
    def is_advance(self) -> bool:
        return self.unallocated > 0

    @property
    def allocated_total(self) -> Decimal:
        return sum((a.amount for a in self.allocations), Decimal("0"))
