"""
Module: erp_kernel.models.document
Responsibility: ORM persistence for trading documents and their lines.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ value types only.

Invariants enforced:
    - ``version`` is the optimistic concurrency token.  Stores update a
      document with ``WHERE version = :expected`` and bump it by one;
      a zero-row update is a concurrent modification.
    - Lines are owned by their document (delete-orphan cascade) and kept
      in caller order by ``position``.
    - Stored total columns are a denormalised copy for reporting; the
      domain object recomputes totals from the lines on load.
"""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import JSON, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from erp_kernel.db.base import Base
from erp_kernel.domain.documents import (
    DiscountType,
    DocumentDiscount,
    DocumentKind,
    FinancialDocument,
    LineItem,
    PricingMode,
)


class DocumentModel(Base):
    """Header row of one trading document."""

    __tablename__ = "documents"

    __table_args__ = (
        Index("idx_document_org_kind_status", "organization_id", "kind", "status"),
        Index("idx_document_source", "source_document_id"),
        Index("idx_document_party", "party_id"),
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(30), nullable=False)
    organization_id: Mapped[str] = mapped_column(nullable=False)
    party_id: Mapped[str | None] = mapped_column(nullable=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    pricing_mode: Mapped[str] = mapped_column(String(10), nullable=False)

    discount_type: Mapped[str | None] = mapped_column(String(10), nullable=True)
    discount_value: Mapped[Decimal | None] = mapped_column(nullable=True)
    shipping: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    subtotal: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    discount_total: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    tax_total: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    grand_total: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    amount_paid: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    issue_date: Mapped[date | None] = mapped_column(nullable=True)
    due_date: Mapped[date | None] = mapped_column(nullable=True)
    valid_until: Mapped[date | None] = mapped_column(nullable=True)

    source_document_id: Mapped[str | None] = mapped_column(nullable=True)
    child_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(nullable=True)

    lines: Mapped[list["DocumentLineModel"]] = relationship(
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="DocumentLineModel.position",
    )

    def apply(self, document: FinancialDocument) -> None:
        """Copy every header field of ``document`` onto this row."""
        self.kind = document.kind.value
        self.status = document.status
        self.organization_id = document.organization_id
        self.party_id = document.party_id
        self.currency = document.currency
        self.pricing_mode = document.pricing_mode.value
        discount = document.document_discount
        self.discount_type = discount.type.value if discount else None
        self.discount_value = discount.value if discount else None
        self.shipping = document.shipping
        self.subtotal = document.totals.subtotal
        self.discount_total = document.totals.discount_total
        self.tax_total = document.totals.tax_total
        self.grand_total = document.totals.grand_total
        self.amount_paid = document.amount_paid
        self.issue_date = document.issue_date
        self.due_date = document.due_date
        self.valid_until = document.valid_until
        self.source_document_id = document.source_document_id
        self.child_ids = list(document.child_ids)
        self.reference = document.reference
        self.created_at = document.created_at
        self.lines = [
            DocumentLineModel.from_domain(line, position)
            for position, line in enumerate(document.lines)
        ]

    @classmethod
    def from_domain(cls, document: FinancialDocument, version: int = 1) -> "DocumentModel":
        row = cls(id=document.document_id, version=version)
        row.apply(document)
        return row

    def to_domain(self) -> FinancialDocument:
        """Domain document with empty totals; callers recompute from lines."""
        discount = None
        if self.discount_type is not None:
            discount = DocumentDiscount(DiscountType(self.discount_type), self.discount_value)
        return FinancialDocument(
            document_id=self.id,
            kind=DocumentKind(self.kind),
            status=self.status,
            organization_id=self.organization_id,
            party_id=self.party_id,
            currency=self.currency,
            pricing_mode=PricingMode(self.pricing_mode),
            lines=tuple(line.to_domain() for line in self.lines),
            document_discount=discount,
            shipping=self.shipping,
            amount_paid=self.amount_paid,
            issue_date=self.issue_date,
            due_date=self.due_date,
            valid_until=self.valid_until,
            source_document_id=self.source_document_id,
            child_ids=tuple(self.child_ids or ()),
            reference=self.reference,
            created_at=self.created_at,
        )

    def __repr__(self) -> str:
        return f"<Document {self.kind} {self.id}: {self.status} v{self.version}>"


class DocumentLineModel(Base):
    """One line of a trading document."""

    __tablename__ = "document_lines"

    __table_args__ = (
        Index("idx_document_line_document", "document_id"),
        Index("idx_document_line_source", "source_line_id"),
    )

    document_id: Mapped[str] = mapped_column(
        ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    line_id: Mapped[str] = mapped_column(nullable=False)
    item_id: Mapped[str] = mapped_column(nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    discount_percent: Mapped[Decimal | None] = mapped_column(nullable=True)
    discount_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    tax_rate_id: Mapped[str | None] = mapped_column(nullable=True)
    tax_rate_percent: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    source_line_id: Mapped[str | None] = mapped_column(nullable=True)

    document: Mapped[DocumentModel] = relationship(back_populates="lines")

    @classmethod
    def from_domain(cls, line: LineItem, position: int) -> "DocumentLineModel":
        return cls(
            position=position,
            line_id=line.line_id,
            item_id=line.item_id,
            description=line.description,
            quantity=line.quantity,
            unit_price=line.unit_price,
            discount_percent=line.discount_percent,
            discount_amount=line.discount_amount,
            tax_rate_id=line.tax_rate_id,
            tax_rate_percent=line.tax_rate_percent,
            source_line_id=line.source_line_id,
        )

    def to_domain(self) -> LineItem:
        return LineItem(
            item_id=self.item_id,
            quantity=self.quantity,
            unit_price=self.unit_price,
            discount_percent=self.discount_percent,
            discount_amount=self.discount_amount,
            tax_rate_id=self.tax_rate_id,
            tax_rate_percent=self.tax_rate_percent,
            description=self.description,
            line_id=self.line_id,
            source_line_id=self.source_line_id,
        )
