"""Service for Inventory module."""

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import BranchRequiredError
from src.modules.inventory.models import MovementType, StockMovement
from src.modules.invoices.models import Invoice

logger = logging.getLogger(__name__)


class StockMovementIssuer:
    """Writes SALE stock movements for a fully paid invoice, exactly once."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def has_sale_movements(self, invoice_id: int) -> bool:
        result = await self.db.execute(
            select(StockMovement.id)
            .where(
                StockMovement.invoice_id == invoice_id,
                StockMovement.movement_type == MovementType.SALE.value,
            )
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def ensure_sale_movements_once(
        self, invoice: Invoice, method: str
    ) -> list[StockMovement]:
        """
        Create one SALE movement per stock-moving product line of invoice.

        No-op when the invoice already has SALE movements. Invoice items must
        be loaded. Returns the movements created by this call.
        """
        if await self.has_sale_movements(invoice.id):
            logger.debug("Invoice %s already has SALE movements", invoice.id)
            return []

        lines = invoice.product_items
        if not lines:
            return []

        branch_id = invoice.branch_id
        if branch_id is None and invoice.encounter is not None and invoice.encounter.appointment:
            branch_id = invoice.encounter.appointment.branch_id
        if branch_id is None:
            raise BranchRequiredError(invoice.id)

        movements = []
        for item in lines:
            movement = StockMovement(
                branch_id=branch_id,
                product_id=item.product_id,
                movement_type=MovementType.SALE.value,
                quantity_delta=-abs(int(item.quantity)),
                invoice_id=invoice.id,
                invoice_item_id=item.id,
                note=f"Auto SALE on invoice paid (method={method})",
            )
            self.db.add(movement)
            movements.append(movement)
        await self.db.flush()

        logger.info(
            "Created %d SALE movement(s) for invoice %s at branch %s",
            len(movements),
            invoice.id,
            branch_id,
        )
        return movements

    async def get_stock_on_hand(self, branch_id: int, product_id: int) -> int:
        """Sum of quantity deltas for a product at a branch."""
        result = await self.db.execute(
            select(func.coalesce(func.sum(StockMovement.quantity_delta), 0)).where(
                StockMovement.branch_id == branch_id,
                StockMovement.product_id == product_id,
            )
        )
        return int(result.scalar_one())
