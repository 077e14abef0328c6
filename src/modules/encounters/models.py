"""Appointment, PatientBook and Encounter models.

These records are owned by the scheduling and patient registry parts of the
back office. Settlement only reads them, except for Appointment.status which
it advances as the invoice gets paid.
"""

from datetime import datetime
from enum import StrEnum

from sqlalchemy import BigInteger, DateTime, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.core.database.base import Base, BigIntPK


class AppointmentStatus(StrEnum):
    """Appointment status values as stored in the database."""

    BOOKED = "booked"
    CONFIRMED = "confirmed"
    ONLINE = "online"
    ONGOING = "ongoing"
    IMAGING = "imaging"
    READY_TO_PAY = "ready_to_pay"
    PARTIAL_PAID = "partial_paid"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"
    OTHER = "other"


class PatientBook(Base):
    """Patient's clinic card; book_number is the number printed on it."""

    __tablename__ = "patient_books"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    patient_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    book_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True, index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class Appointment(Base):
    __tablename__ = "appointments"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    branch_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True, index=True)
    patient_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True, index=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=AppointmentStatus.BOOKED.value, index=True
    )
    scheduled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


class Encounter(Base):
    """One visit: links the appointment, the patient book and the invoice."""

    __tablename__ = "encounters"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    patient_book_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("patient_books.id"), nullable=False, index=True
    )
    appointment_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("appointments.id"), nullable=True, index=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # Relationships
    patient_book: Mapped["PatientBook"] = relationship("PatientBook")
    appointment: Mapped["Appointment | None"] = relationship("Appointment")
