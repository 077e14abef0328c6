"""Invoice, InvoiceItem and FiscalReceipt models."""

from datetime import datetime
from decimal import Decimal
from enum import StrEnum

from sqlalchemy import (
    BigInteger,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.core.database.base import Base, BigIntPK


class InvoiceStatus(StrEnum):
    """Legacy invoice payment status, driven only by paid total vs base amount."""

    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"


class BuyerType(StrEnum):
    B2C = "B2C"
    B2B = "B2B"


class InvoiceItemType(StrEnum):
    SERVICE = "SERVICE"
    PRODUCT = "PRODUCT"


class Invoice(Base):
    """Invoice for one encounter. Built upstream; settlement only changes status_legacy."""

    __tablename__ = "invoices"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)

    # Relations
    branch_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True, index=True)
    encounter_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("encounters.id"), nullable=True, unique=True, index=True
    )
    patient_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True, index=True)

    # Buyer (fiscal receipt addressee)
    buyer_type: Mapped[str] = mapped_column(
        String(3), nullable=False, default=BuyerType.B2C.value
    )
    buyer_tin: Mapped[str | None] = mapped_column(String(14), nullable=True)

    # Amounts
    total_before_discount: Mapped[Decimal] = mapped_column(
        Numeric(15, 2), nullable=False, default=Decimal("0.00")
    )
    discount_percent: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    collection_discount_amount: Mapped[Decimal] = mapped_column(
        Numeric(15, 2), nullable=False, default=Decimal("0.00")
    )
    final_amount: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)
    total_amount: Mapped[Decimal | None] = mapped_column(
        Numeric(15, 2), nullable=True
    )  # legacy, used when final_amount is not set

    status_legacy: Mapped[str] = mapped_column(
        String(20), nullable=False, default=InvoiceStatus.UNPAID.value, index=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    # Relationships
    encounter: Mapped["Encounter | None"] = relationship("Encounter")
    items: Mapped[list["InvoiceItem"]] = relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.id",
    )
    payments: Mapped[list["Payment"]] = relationship(
        "Payment", back_populates="invoice", order_by="Payment.id"
    )
    fiscal_receipt: Mapped["FiscalReceipt | None"] = relationship(
        "FiscalReceipt", back_populates="invoice", uselist=False
    )

    @property
    def base_amount(self) -> Decimal:
        """Amount payments are measured against: final amount if set, else legacy total."""
        if self.final_amount is not None:
            return Decimal(str(self.final_amount))
        return Decimal(str(self.total_amount or 0))

    @property
    def is_b2b(self) -> bool:
        return self.buyer_type == BuyerType.B2B.value

    @property
    def product_items(self) -> list["InvoiceItem"]:
        """PRODUCT lines that move stock (product set and quantity > 0).

        Note: items must be loaded.
        """
        return [item for item in self.items if item.moves_stock]


class InvoiceItem(Base):
    """Line item in an invoice."""

    __tablename__ = "invoice_items"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    invoice_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True
    )

    item_type: Mapped[str] = mapped_column(String(10), nullable=False)
    service_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    product_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True, index=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    unit_price: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    line_total: Mapped[Decimal] = mapped_column(
        Numeric(15, 2), nullable=False
    )  # quantity * unit_price

    # Relationships
    invoice: Mapped["Invoice"] = relationship("Invoice", back_populates="items")

    @property
    def moves_stock(self) -> bool:
        return (
            self.item_type == InvoiceItemType.PRODUCT.value
            and self.product_id is not None
            and (self.quantity or 0) > 0
        )


class FiscalReceipt(Base):
    """e-Barimt receipt; at most one per invoice."""

    __tablename__ = "fiscal_receipts"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    invoice_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("invoices.id"), nullable=False, unique=True, index=True
    )
    receipt_number: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    invoice: Mapped["Invoice"] = relationship("Invoice", back_populates="fiscal_receipt")


# Import at the end to avoid circular imports
from src.modules.encounters.models import Encounter
from src.modules.payments.models import Payment
