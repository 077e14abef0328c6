"""Tests for SALE stock movements issued on full payment."""

from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.core.exceptions import BranchRequiredError, SettlementRejectedError
from src.modules.encounters.models import Encounter
from src.modules.inventory.models import MovementType, StockMovement
from src.modules.inventory.service import StockMovementIssuer
from src.modules.invoices.models import Invoice
from src.modules.settlement.schemas import SettlementRequest
from src.modules.settlement.service import SettlementService


class TestStockMovementIssuer:
    """Tests for StockMovementIssuer."""

    async def _load_invoice(self, db_session: AsyncSession, invoice_id: int) -> Invoice:
        result = await db_session.execute(
            select(Invoice)
            .where(Invoice.id == invoice_id)
            .options(
                selectinload(Invoice.items),
                selectinload(Invoice.encounter).selectinload(Encounter.appointment),
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def test_issues_once(self, db_session: AsyncSession, invoice_factory):
        data = await invoice_factory(products=[(501, 2), (502, 3)])
        invoice = await self._load_invoice(db_session, data["invoice_id"])
        issuer = StockMovementIssuer(db_session)

        first = await issuer.ensure_sale_movements_once(invoice, "CASH")
        second = await issuer.ensure_sale_movements_once(invoice, "POS")

        assert len(first) == 2
        assert second == []
        assert await issuer.get_stock_on_hand(1, 501) == -2
        assert await issuer.get_stock_on_hand(1, 502) == -3

    async def test_service_and_zero_quantity_lines_skipped(
        self, db_session: AsyncSession, invoice_factory
    ):
        data = await invoice_factory(products=[(501, 0)])
        invoice = await self._load_invoice(db_session, data["invoice_id"])
        issuer = StockMovementIssuer(db_session)

        assert await issuer.ensure_sale_movements_once(invoice, "CASH") == []
        assert await issuer.has_sale_movements(invoice.id) is False

    async def test_no_products_needs_no_branch(self, db_session: AsyncSession, invoice_factory):
        data = await invoice_factory(products=[], branch_id=None)
        invoice = await self._load_invoice(db_session, data["invoice_id"])
        issuer = StockMovementIssuer(db_session)

        assert await issuer.ensure_sale_movements_once(invoice, "CASH") == []

    async def test_branch_required_for_products(self, db_session: AsyncSession, invoice_factory):
        data = await invoice_factory(branch_id=None)
        invoice = await self._load_invoice(db_session, data["invoice_id"])
        issuer = StockMovementIssuer(db_session)

        with pytest.raises(BranchRequiredError) as exc_info:
            await issuer.ensure_sale_movements_once(invoice, "CASH")
        assert exc_info.value.code == "BRANCH_REQUIRED"
        assert exc_info.value.status_code == 500
        assert not isinstance(exc_info.value, SettlementRejectedError)

    async def test_duplicate_sale_rejected_by_constraint(
        self, db_session: AsyncSession, invoice_factory
    ):
        data = await invoice_factory()
        item_id = data["product_item_ids"][0]
        for _ in range(2):
            db_session.add(
                StockMovement(
                    branch_id=1,
                    product_id=501,
                    movement_type=MovementType.SALE.value,
                    quantity_delta=-2,
                    invoice_id=data["invoice_id"],
                    invoice_item_id=item_id,
                )
            )
        with pytest.raises(IntegrityError):
            await db_session.flush()
        await db_session.rollback()

    async def test_settling_paid_invoice_again_adds_no_movements(
        self, db_session: AsyncSession, invoice_factory
    ):
        """Retried settlement paths never produce a second SALE set."""
        data = await invoice_factory()
        service = SettlementService(db_session)
        await service.settle(
            data["invoice_id"], SettlementRequest(amount=Decimal("100000"), method="CASH")
        )

        invoice = await self._load_invoice(db_session, data["invoice_id"])
        created = await StockMovementIssuer(db_session).ensure_sale_movements_once(invoice, "CASH")

        assert created == []
        result = await db_session.execute(
            select(StockMovement).where(StockMovement.invoice_id == data["invoice_id"])
        )
        assert len(result.scalars().all()) == 1
