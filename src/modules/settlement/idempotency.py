from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.modules.payments.models import Payment


class QPayIdempotencyGuard:
    """Finds a QPay confirmation that was already applied to an invoice."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_applied(self, invoice_id: int, qpay_txn_id: str | None) -> Payment | None:
        if not qpay_txn_id:
            return None
        result = await self.db.execute(
            select(Payment).where(
                Payment.invoice_id == invoice_id,
                Payment.qpay_txn_id == qpay_txn_id,
            )
        )
        return result.scalar_one_or_none()
