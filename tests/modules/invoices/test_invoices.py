"""Tests for Invoices module."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import (
    B2BBuyerTinRequiredError,
    FiscalReceiptAlreadyIssuedError,
    NotFoundError,
    ValidationError,
)
from src.modules.invoices.models import BuyerType, FiscalReceipt
from src.modules.invoices.schemas import BuyerUpdate
from src.modules.invoices.service import InvoiceService


class TestInvoiceService:
    """Tests for InvoiceService."""

    async def test_get_invoice_not_found(self, db_session: AsyncSession):
        service = InvoiceService(db_session)
        with pytest.raises(NotFoundError):
            await service.get_invoice(404)

    @pytest.mark.parametrize("tin", ["12345678901", "12345678901234"])
    async def test_set_b2b_buyer(self, db_session: AsyncSession, invoice_factory, tin):
        data = await invoice_factory()
        service = InvoiceService(db_session)

        invoice = await service.update_buyer(
            data["invoice_id"], BuyerUpdate(buyer_type=BuyerType.B2B, buyer_tin=f" {tin} ")
        )

        assert invoice.buyer_type == "B2B"
        assert invoice.buyer_tin == tin

    @pytest.mark.parametrize("tin", ["123", "1234567890a", "123456789012"])
    async def test_invalid_tin(self, db_session: AsyncSession, invoice_factory, tin):
        data = await invoice_factory()
        service = InvoiceService(db_session)

        with pytest.raises(ValidationError) as exc_info:
            await service.update_buyer(
                data["invoice_id"], BuyerUpdate(buyer_type=BuyerType.B2B, buyer_tin=tin)
            )
        assert exc_info.value.code == "INVALID_BUYER_TIN"

    async def test_b2b_requires_tin(self, db_session: AsyncSession, invoice_factory):
        data = await invoice_factory()
        service = InvoiceService(db_session)

        with pytest.raises(B2BBuyerTinRequiredError):
            await service.update_buyer(data["invoice_id"], BuyerUpdate(buyer_type=BuyerType.B2B))

    async def test_b2c_clears_tin(self, db_session: AsyncSession, invoice_factory):
        data = await invoice_factory(buyer_type="B2B", buyer_tin="12345678901")
        service = InvoiceService(db_session)

        invoice = await service.update_buyer(
            data["invoice_id"], BuyerUpdate(buyer_type=BuyerType.B2C, buyer_tin="12345678901")
        )

        assert invoice.buyer_type == "B2C"
        assert invoice.buyer_tin is None

    async def test_locked_after_fiscal_receipt(self, db_session: AsyncSession, invoice_factory):
        data = await invoice_factory()
        db_session.add(
            FiscalReceipt(invoice_id=data["invoice_id"], receipt_number="MDENT-1-000001")
        )
        await db_session.commit()
        service = InvoiceService(db_session)

        with pytest.raises(FiscalReceiptAlreadyIssuedError):
            await service.update_buyer(
                data["invoice_id"],
                BuyerUpdate(buyer_type=BuyerType.B2B, buyer_tin="12345678901"),
            )
