"""
Module: fulfillment_kernel.models.payment
Responsibility: ORM persistence for confirmed payments.  Each row doubles as
    the idempotency record for one gateway transaction.
Architecture position: Kernel > Models.

Invariants enforced:
    - transaction_id is UNIQUE (uq_payment_transaction).  A concurrent
      duplicate delivery fails its INSERT with IntegrityError, which
      PaymentEventService turns into DuplicatePaymentError.

Failure modes:
    - IntegrityError on duplicate transaction_id.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fulfillment_kernel.db.base import TrackedBase, UUIDString
from fulfillment_kernel.db.types import StrEnumType, UTCDateTime
from fulfillment_kernel.domain.statuses import PaymentMethod, PaymentStatus


class PaymentRecord(TrackedBase):
    __tablename__ = "payment_records"

    __table_args__ = (
        UniqueConstraint("transaction_id", name="uq_payment_transaction"),
        Index("idx_payment_order", "order_id"),
    )

    order_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("orders.id"),
        nullable=False,
    )

    # Gateway transaction reference (idempotency key)
    transaction_id: Mapped[str] = mapped_column(String(100), nullable=False)

    payment_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    method: Mapped[PaymentMethod] = mapped_column(
        StrEnumType(PaymentMethod),
        nullable=False,
    )

    status: Mapped[PaymentStatus] = mapped_column(
        StrEnumType(PaymentStatus),
        nullable=False,
        default=PaymentStatus.COMPLETED,
    )

    paid_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    order: Mapped["Order"] = relationship(back_populates="payments")  # noqa: F821

    def __repr__(self) -> str:
        return f"<PaymentRecord {self.transaction_id} {self.status.value}>"
