"""Read-only compliance checks used as billing gates."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.modules.sterilization.models import MismatchStatus, SterilizationMismatch


class SterilizationGate:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def has_unresolved_mismatch(self, encounter_id: int) -> bool:
        result = await self.db.execute(
            select(SterilizationMismatch.id)
            .where(
                SterilizationMismatch.encounter_id == encounter_id,
                SterilizationMismatch.status == MismatchStatus.UNRESOLVED.value,
            )
            .limit(1)
        )
        return result.scalar_one_or_none() is not None
