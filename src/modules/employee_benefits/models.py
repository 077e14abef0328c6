"""EmployeeBenefit ledger and its usage records."""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.core.database.base import Base, BigIntPK


class EmployeeBenefit(Base):
    """
    Spending balance granted to an employee, redeemed with the
    EMPLOYEE_BENEFIT payment method by quoting `code`.

    remaining_amount only goes down through settlement; top-ups are done by
    the admin screens.
    """

    __tablename__ = "employee_benefits"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    employee_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True, index=True)

    initial_amount: Mapped[Decimal] = mapped_column(
        Numeric(15, 2), nullable=False, default=Decimal("0.00")
    )
    remaining_amount: Mapped[Decimal] = mapped_column(
        Numeric(15, 2), nullable=False, default=Decimal("0.00")
    )

    from_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    to_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "remaining_amount >= 0", name="ck_employee_benefits_remaining_non_negative"
        ),
    )

    # Relationships
    usages: Mapped[list["EmployeeBenefitUsage"]] = relationship(
        "EmployeeBenefitUsage", back_populates="benefit", order_by="EmployeeBenefitUsage.id"
    )

    @property
    def used_amount(self) -> Decimal:
        return max(Decimal("0.00"), (self.initial_amount or 0) - (self.remaining_amount or 0))

    def is_valid_on(self, day: date) -> bool:
        if not self.is_active:
            return False
        if self.from_date is not None and self.from_date > day:
            return False
        if self.to_date is not None and self.to_date < day:
            return False
        return True


class EmployeeBenefitUsage(Base):
    """One row per EMPLOYEE_BENEFIT payment; written together with the balance debit."""

    __tablename__ = "employee_benefit_usages"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    employee_benefit_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("employee_benefits.id"), nullable=False, index=True
    )
    invoice_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("invoices.id"), nullable=False, index=True
    )
    encounter_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("encounters.id"), nullable=True, index=True
    )
    payment_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("payments.id"), nullable=True, unique=True
    )
    patient_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    patient_book_number: Mapped[str | None] = mapped_column(String(50), nullable=True)

    amount_used: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # Relationships
    benefit: Mapped["EmployeeBenefit"] = relationship("EmployeeBenefit", back_populates="usages")
