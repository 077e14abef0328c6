"""Product stock ledger."""

from datetime import datetime
from enum import StrEnum

from sqlalchemy import (
    BigInteger,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, BigIntPK


class MovementType(StrEnum):
    """Stock movement type enumeration."""

    RECEIPT = "RECEIPT"  # Incoming stock (purchase, return)
    SALE = "SALE"  # Sold on a fully paid invoice
    ADJUSTMENT = "ADJUSTMENT"  # Correction, write-off


class StockMovement(Base):
    """
    Signed quantity change of one product at one branch.

    Stock on hand is the sum of quantity_delta. SALE rows carry the invoice
    and invoice item they came from; (invoice_item_id, movement_type) is
    unique so an invoice is never sold out of stock twice.
    """

    __tablename__ = "stock_movements"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    branch_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    product_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    movement_type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    quantity_delta: Mapped[int] = mapped_column(
        Integer, nullable=False
    )  # Positive for in, negative for out

    invoice_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("invoices.id"), nullable=True, index=True
    )
    invoice_item_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("invoice_items.id"), nullable=True
    )
    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )

    __table_args__ = (
        UniqueConstraint(
            "invoice_item_id", "movement_type", name="uq_stock_movements_invoice_item_type"
        ),
    )
