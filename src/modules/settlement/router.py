"""API endpoints for Settlement module."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.database.session import get_db
from src.modules.settlement.schemas import (
    InvoiceSettlementView,
    SettlementRequest,
    SettlementResponse,
)
from src.modules.settlement.service import SettlementService
from src.shared.schemas.base import ApiResponse

router = APIRouter(prefix="/invoices", tags=["Settlement"])


@router.post("/{invoice_id}/settlement", response_model=ApiResponse[SettlementResponse])
async def settle_invoice(
    invoice_id: int,
    data: SettlementRequest,
    db: AsyncSession = Depends(get_db),
):
    """Apply one payment to an invoice.

    A repeated QPay confirmation (same qpay_txn_id) returns the state it
    produced the first time with replayed=true.
    """
    service = SettlementService(db)
    result = await service.settle(invoice_id, data)
    return ApiResponse(
        data=result.to_response(),
        message="Payment already applied" if result.replayed else "Payment applied",
    )


@router.get("/{invoice_id}/settlement", response_model=ApiResponse[InvoiceSettlementView])
async def get_settlement(
    invoice_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Current settlement state of an invoice: totals, items and payment history."""
    service = SettlementService(db)
    invoice = await service.get_settlement_view(invoice_id)
    return ApiResponse(data=InvoiceSettlementView.from_invoice(invoice))
