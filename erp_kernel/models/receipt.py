"""
Module: erp_kernel.models.receipt
Responsibility: ORM persistence for goods receipts against purchase orders.
Architecture position: Kernel > Models.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, ForeignKey, Index, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship

from erp_kernel.db.base import Base
from erp_kernel.domain.documents import Receipt, ReceiptLine


class ReceiptModel(Base):
    __tablename__ = "receipts"

    __table_args__ = (
        Index("idx_receipt_purchase_order", "purchase_order_id"),
    )

    purchase_order_id: Mapped[str] = mapped_column(nullable=False)
    cancelled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    received_at: Mapped[datetime | None] = mapped_column(nullable=True)

    lines: Mapped[list["ReceiptLineModel"]] = relationship(
        back_populates="receipt",
        cascade="all, delete-orphan",
        order_by="ReceiptLineModel.position",
    )

    @classmethod
    def from_domain(cls, receipt: Receipt) -> "ReceiptModel":
        return cls(
            id=receipt.receipt_id,
            purchase_order_id=receipt.purchase_order_id,
            cancelled=receipt.cancelled,
            received_at=receipt.received_at,
            lines=[
                ReceiptLineModel(position=i, source_line_id=line.source_line_id, quantity=line.quantity)
                for i, line in enumerate(receipt.lines)
            ],
        )

    def to_domain(self) -> Receipt:
        return Receipt(
            receipt_id=self.id,
            purchase_order_id=self.purchase_order_id,
            lines=tuple(
                ReceiptLine(source_line_id=line.source_line_id, quantity=line.quantity)
                for line in self.lines
            ),
            cancelled=self.cancelled,
            received_at=self.received_at,
        )


class ReceiptLineModel(Base):
    __tablename__ = "receipt_lines"

    receipt_id: Mapped[str] = mapped_column(
        ForeignKey("receipts.id", ondelete="CASCADE"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    source_line_id: Mapped[str] = mapped_column(nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)

    receipt: Mapped[ReceiptModel] = relationship(back_populates="lines")
