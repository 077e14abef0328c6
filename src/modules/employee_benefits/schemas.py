"""Schemas for Employee benefits module."""

from pydantic import BaseModel, Field


class BenefitVerifyRequest(BaseModel):
    """Body of POST /employee-benefits/verify."""

    code: str = Field(..., min_length=1, max_length=50)


class BenefitVerifyResponse(BaseModel):
    employee_id: int
    code: str
    remaining_amount: float

    model_config = {"from_attributes": True}
