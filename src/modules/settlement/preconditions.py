"""Checks a settlement request must pass before anything is written."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import (
    AllocationRequiredError,
    AmountExceedsUnpaidError,
    B2BBuyerTinRequiredError,
    InvalidInvoiceAmountError,
    InvoiceAlreadyPaidError,
    SettlementNotAllowedError,
    UnresolvedSterilizationMismatchError,
    ValidationError,
)
from src.modules.invoices.models import Invoice, InvoiceItem
from src.modules.payments.models import PaymentAllocation, PaymentMethod
from src.modules.settlement.state import is_settleable
from src.modules.sterilization.service import SterilizationGate
from src.shared.utils.money import parse_money


@dataclass(frozen=True)
class SettlementInput:
    """Validated, normalized settlement request."""

    amount: Decimal
    method: str
    meta: dict[str, Any]
    employee_code: str | None = None
    qpay_txn_id: str | None = None


def validate_settlement_input(
    amount: Any, method: Any, meta: dict | None, qpay_txn_id: str | None = None
) -> SettlementInput:
    """Reject malformed requests without touching the database."""
    parsed = parse_money(amount)
    if parsed is None or parsed <= 0:
        raise ValidationError(
            "Payment amount must be a number greater than zero.",
            field="amount",
            code="INVALID_AMOUNT",
        )

    normalized_method = str(method or "").strip().upper()
    if not normalized_method:
        raise ValidationError("Payment method is required.", field="method", code="METHOD_REQUIRED")

    meta = dict(meta or {})
    employee_code = None
    if normalized_method == PaymentMethod.EMPLOYEE_BENEFIT:
        raw_code = meta.get("employeeCode")
        employee_code = raw_code.strip() if isinstance(raw_code, str) else ""
        if not employee_code:
            raise ValidationError(
                "meta.employeeCode is required for EMPLOYEE_BENEFIT payments.",
                field="meta.employeeCode",
                code="EMPLOYEE_CODE_REQUIRED",
            )

    # Only QPay confirmations carry a provider transaction id
    qpay_txn_id = (qpay_txn_id or "").strip() or None
    if qpay_txn_id and normalized_method != PaymentMethod.QPAY:
        raise ValidationError(
            "qpay_txn_id is only accepted for QPAY payments.",
            field="qpay_txn_id",
            code="QPAY_TXN_ID_NOT_ALLOWED",
        )

    return SettlementInput(
        amount=parsed,
        method=normalized_method,
        meta=meta,
        employee_code=employee_code,
        qpay_txn_id=qpay_txn_id,
    )


class SettlementPreconditions:
    """Gating checks evaluated against the locked invoice, in a fixed order."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.sterilization = SterilizationGate(db)

    async def has_allocations(self, invoice_id: int) -> bool:
        result = await self.db.execute(
            select(PaymentAllocation.id)
            .join(InvoiceItem, InvoiceItem.id == PaymentAllocation.invoice_item_id)
            .where(InvoiceItem.invoice_id == invoice_id)
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def check(self, invoice: Invoice, amount: Decimal, paid_total: Decimal) -> None:
        """
        Raise the first failing gate for settling amount on invoice.

        invoice must be loaded with encounter -> appointment.
        """
        encounter = invoice.encounter
        appointment = encounter.appointment if encounter is not None else None
        if appointment is not None and not is_settleable(appointment.status):
            raise SettlementNotAllowedError(appointment.status)

        if invoice.encounter_id is not None and await self.sterilization.has_unresolved_mismatch(
            invoice.encounter_id
        ):
            raise UnresolvedSterilizationMismatchError(invoice.encounter_id)

        base_amount = invoice.base_amount
        if base_amount <= 0:
            raise InvalidInvoiceAmountError(invoice.id)

        if invoice.is_b2b and not (invoice.buyer_tin or "").strip():
            raise B2BBuyerTinRequiredError()

        if paid_total >= base_amount:
            raise InvoiceAlreadyPaidError(invoice.id)

        unpaid = base_amount - paid_total
        if amount > unpaid:
            raise AmountExceedsUnpaidError(amount, unpaid)

        if await self.has_allocations(invoice.id):
            raise AllocationRequiredError(invoice.id)
