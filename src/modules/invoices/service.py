"""Service for Invoices module."""

import logging
import re

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.core.audit.service import AuditAction, AuditService
from src.core.config import settings
from src.core.exceptions import (
    B2BBuyerTinRequiredError,
    FiscalReceiptAlreadyIssuedError,
    NotFoundError,
    ValidationError,
)
from src.modules.invoices.models import BuyerType, Invoice
from src.modules.invoices.schemas import BuyerUpdate

logger = logging.getLogger(__name__)

# Company registers use 11 digits, citizens 14
BUYER_TIN_PATTERN = re.compile(r"^(\d{11}|\d{14})$")


class InvoiceService:
    """Service for reading invoices and editing their buyer."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)

    async def get_invoice(self, invoice_id: int) -> Invoice:
        result = await self.db.execute(
            select(Invoice)
            .where(Invoice.id == invoice_id)
            .options(selectinload(Invoice.fiscal_receipt))
            .execution_options(populate_existing=True)
        )
        invoice = result.scalar_one_or_none()
        if not invoice:
            raise NotFoundError("Invoice", invoice_id)
        return invoice

    async def update_buyer(self, invoice_id: int, data: BuyerUpdate) -> Invoice:
        """Switch between B2C and B2B. Not allowed once a fiscal receipt exists."""
        invoice = await self.get_invoice(invoice_id)
        if invoice.fiscal_receipt is not None:
            raise FiscalReceiptAlreadyIssuedError(invoice.id)

        buyer_tin = None
        if data.buyer_type == BuyerType.B2B:
            buyer_tin = (data.buyer_tin or "").strip()
            if not buyer_tin:
                raise B2BBuyerTinRequiredError()
            if not BUYER_TIN_PATTERN.match(buyer_tin):
                raise ValidationError(
                    "buyerTin must be 11 or 14 digits.",
                    field="buyer_tin",
                    code="INVALID_BUYER_TIN",
                )

        old_values = {"buyer_type": invoice.buyer_type, "buyer_tin": invoice.buyer_tin}
        invoice.buyer_type = data.buyer_type.value
        invoice.buyer_tin = buyer_tin

        await self.audit.log(
            action=AuditAction.INVOICE_BUYER_UPDATE,
            entity_type="Invoice",
            entity_id=invoice.id,
            user_id=settings.settlement_system_user_id,
            old_values=old_values,
            new_values={"buyer_type": invoice.buyer_type, "buyer_tin": buyer_tin},
        )
        await self.db.commit()
        logger.info("Invoice %s buyer set to %s", invoice.id, invoice.buyer_type)
        return invoice
