"""
Module: erp_kernel.models.payment
Responsibility: ORM persistence for payments and their allocations.
Architecture position: Kernel > Models.

Invariants enforced:
    - Payments are written once by the allocation unit of work, in the same
      transaction as the invoice/bill balance updates they cause.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from erp_kernel.db.base import Base
from erp_kernel.domain.documents import Payment, PaymentAllocation, PaymentDirection


class PaymentModel(Base):
    __tablename__ = "payments"

    __table_args__ = (
        Index("idx_payment_org_party", "organization_id", "party_id"),
    )

    organization_id: Mapped[str] = mapped_column(nullable=False)
    direction: Mapped[str] = mapped_column(String(10), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    party_id: Mapped[str | None] = mapped_column(nullable=True)
    unallocated: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    received_at: Mapped[datetime | None] = mapped_column(nullable=True)
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)

    allocations: Mapped[list["PaymentAllocationModel"]] = relationship(
        back_populates="payment",
        cascade="all, delete-orphan",
        order_by="PaymentAllocationModel.position",
    )

    @classmethod
    def from_domain(cls, payment: Payment) -> "PaymentModel":
        return cls(
            id=payment.payment_id,
            organization_id=payment.organization_id,
            direction=payment.direction.value,
            amount=payment.amount,
            currency=payment.currency,
            party_id=payment.party_id,
            unallocated=payment.unallocated,
            received_at=payment.received_at,
            reference=payment.reference,
            allocations=[
                PaymentAllocationModel(position=i, document_id=a.document_id, amount=a.amount)
                for i, a in enumerate(payment.allocations)
            ],
        )

    def to_domain(self) -> Payment:
        return Payment(
            payment_id=self.id,
            organization_id=self.organization_id,
            direction=PaymentDirection(self.direction),
            amount=self.amount,
            currency=self.currency,
            party_id=self.party_id,
            allocations=tuple(
                PaymentAllocation(payment_id=self.id, document_id=a.document_id, amount=a.amount)
                for a in self.allocations
            ),
            unallocated=self.unallocated,
            received_at=self.received_at,
            reference=self.reference,
        )


class PaymentAllocationModel(Base):
    __tablename__ = "payment_allocations"

    __table_args__ = (
        Index("idx_allocation_document", "document_id"),
    )

    payment_id: Mapped[str] = mapped_column(
        ForeignKey("payments.id", ondelete="CASCADE"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    document_id: Mapped[str] = mapped_column(nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)

    payment: Mapped[PaymentModel] = relationship(back_populates="allocations")
