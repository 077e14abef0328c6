"""Sterilization mismatch records (shortfalls found when an encounter is closed)."""

from datetime import datetime
from enum import StrEnum

from sqlalchemy import BigInteger, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, BigIntPK


class MismatchStatus(StrEnum):
    UNRESOLVED = "UNRESOLVED"
    RESOLVED = "RESOLVED"


class SterilizationMismatch(Base):
    __tablename__ = "sterilization_mismatches"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    encounter_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("encounters.id"), nullable=False, index=True
    )
    tool_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    cycle_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    requested_qty: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    available_qty: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=MismatchStatus.UNRESOLVED.value, index=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
