"""Schemas for Invoices module."""

from pydantic import BaseModel, Field

from src.modules.invoices.models import BuyerType


class BuyerUpdate(BaseModel):
    """Who the fiscal receipt is made out to."""

    buyer_type: BuyerType
    buyer_tin: str | None = Field(None, max_length=32)


class InvoiceResponse(BaseModel):
    id: int
    branch_id: int | None
    encounter_id: int | None
    patient_id: int | None
    buyer_type: str
    buyer_tin: str | None
    status_legacy: str
    total_before_discount: float
    discount_percent: int
    final_amount: float | None
    total_amount: float | None
    base_amount: float

    model_config = {"from_attributes": True}
