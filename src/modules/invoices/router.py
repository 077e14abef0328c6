"""API endpoints for Invoices module."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.database.session import get_db
from src.modules.invoices.schemas import BuyerUpdate, InvoiceResponse
from src.modules.invoices.service import InvoiceService
from src.shared.schemas.base import ApiResponse

router = APIRouter(prefix="/invoices", tags=["Invoices"])


@router.get("/{invoice_id}", response_model=ApiResponse[InvoiceResponse])
async def get_invoice(
    invoice_id: int,
    db: AsyncSession = Depends(get_db),
):
    service = InvoiceService(db)
    invoice = await service.get_invoice(invoice_id)
    return ApiResponse(data=InvoiceResponse.model_validate(invoice))


@router.patch("/{invoice_id}/buyer", response_model=ApiResponse[InvoiceResponse])
async def update_invoice_buyer(
    invoice_id: int,
    data: BuyerUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Set buyer type and TIN before the fiscal receipt is issued."""
    service = InvoiceService(db)
    invoice = await service.update_buyer(invoice_id, data)
    return ApiResponse(
        data=InvoiceResponse.model_validate(invoice),
        message="Invoice buyer updated",
    )
