"""Schemas for Settlement module."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from src.modules.invoices.models import Invoice
from src.modules.payments.models import Payment
from src.modules.settlement.calculator import compute_paid_total, compute_unpaid


class SettlementRequest(BaseModel):
    """Body of POST /invoices/{id}/settlement.

    Amount and method are checked by the settlement service itself so the
    caller gets the same error codes whether it goes through HTTP or not.
    """

    amount: Any
    method: str
    meta: dict[str, Any] | None = None
    issue_fiscal_receipt: bool = False
    qpay_txn_id: str | None = Field(None, max_length=100)


# --- Views ---


class InvoiceItemView(BaseModel):
    id: int
    item_type: str
    service_id: int | None
    product_id: int | None
    name: str
    unit_price: float
    quantity: int
    line_total: float

    model_config = {"from_attributes": True}


class PaymentView(BaseModel):
    id: int
    amount: float
    method: str
    timestamp: datetime
    qpay_txn_id: str | None
    meta: dict[str, Any] | None = None

    model_config = {"from_attributes": True}


class InvoiceSettlementView(BaseModel):
    """Invoice as seen by the cash desk after (or instead of) a settlement."""

    id: int
    branch_id: int | None
    encounter_id: int | None
    patient_id: int | None
    status: str
    buyer_type: str
    buyer_tin: str | None
    total_before_discount: float
    discount_percent: int
    collection_discount_amount: float
    final_amount: float | None
    total_amount_legacy: float | None
    base_amount: float
    paid_total: float
    unpaid_amount: float
    has_fiscal_receipt: bool
    fiscal_receipt_number: str | None = None
    items: list[InvoiceItemView] = Field(default_factory=list)
    payments: list[PaymentView] = Field(default_factory=list)

    @classmethod
    def from_invoice(cls, invoice: Invoice) -> "InvoiceSettlementView":
        """Build from an invoice with items, payments and fiscal_receipt loaded."""
        paid_total = compute_paid_total(p.amount for p in invoice.payments)
        receipt = invoice.fiscal_receipt
        return cls(
            id=invoice.id,
            branch_id=invoice.branch_id,
            encounter_id=invoice.encounter_id,
            patient_id=invoice.patient_id,
            status=invoice.status_legacy,
            buyer_type=invoice.buyer_type,
            buyer_tin=invoice.buyer_tin,
            total_before_discount=invoice.total_before_discount,
            discount_percent=invoice.discount_percent,
            collection_discount_amount=invoice.collection_discount_amount,
            final_amount=invoice.final_amount,
            total_amount_legacy=invoice.total_amount,
            base_amount=invoice.base_amount,
            paid_total=paid_total,
            unpaid_amount=compute_unpaid(invoice.base_amount, paid_total),
            has_fiscal_receipt=receipt is not None,
            fiscal_receipt_number=receipt.receipt_number if receipt else None,
            items=[InvoiceItemView.model_validate(item) for item in invoice.items],
            payments=[PaymentView.model_validate(p) for p in invoice.payments],
        )


class SettlementResponse(BaseModel):
    invoice: InvoiceSettlementView
    payment: PaymentView | None
    paid_total: float
    unpaid_amount: float
    replayed: bool = False


@dataclass
class SettlementResult:
    """Outcome of SettlementService.settle().

    payment is the payment created by this call, or the previously applied
    one when replayed is True.
    """

    invoice: Invoice
    payment: Payment | None
    paid_total: Decimal
    unpaid_amount: Decimal
    replayed: bool = False

    def to_response(self) -> SettlementResponse:
        return SettlementResponse(
            invoice=InvoiceSettlementView.from_invoice(self.invoice),
            payment=PaymentView.model_validate(self.payment) if self.payment else None,
            paid_total=self.paid_total,
            unpaid_amount=self.unpaid_amount,
            replayed=self.replayed,
        )
