"""Payment and PaymentAllocation models."""

from datetime import datetime, timezone
from decimal import Decimal
from enum import StrEnum

from sqlalchemy import (
    BigInteger,
    DateTime,
    ForeignKey,
    JSON,
    Numeric,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.core.database.base import Base, BigIntPK


class PaymentMethod(StrEnum):
    """Known payment methods. Settlement accepts any non-empty upper-case token."""

    CASH = "CASH"
    QPAY = "QPAY"
    POS = "POS"
    TRANSFER = "TRANSFER"
    INSURANCE = "INSURANCE"
    VOUCHER = "VOUCHER"
    BARTER = "BARTER"
    APPLICATION = "APPLICATION"
    EMPLOYEE_BENEFIT = "EMPLOYEE_BENEFIT"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Payment(Base):
    """
    Payment applied to an invoice. Never updated or deleted.

    qpay_txn_id is the QPay transaction id of an externally confirmed payment;
    (invoice_id, qpay_txn_id) is unique so a replayed confirmation cannot be
    applied twice.
    """

    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)

    invoice_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("invoices.id"), nullable=False, index=True
    )

    amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    method: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    meta: Mapped[dict | None] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"), nullable=True
    )
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    qpay_txn_id: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("invoice_id", "qpay_txn_id", name="uq_payments_invoice_qpay_txn"),
    )

    # Relationships
    invoice: Mapped["Invoice"] = relationship("Invoice", back_populates="payments")


class PaymentAllocation(Base):
    """
    Line-level split of a payment, written by the batch (split) settlement
    pathway. Presence of any row for an invoice's items means the invoice is
    settled through that pathway only.
    """

    __tablename__ = "payment_allocations"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    invoice_item_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("invoice_items.id"), nullable=False, index=True
    )
    payment_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("payments.id"), nullable=True, index=True
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


# Import for type hints
from src.modules.invoices.models import Invoice
