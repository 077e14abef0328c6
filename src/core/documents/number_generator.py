from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.documents.models import ReceiptSequence


class ReceiptNumberGenerator:
    """
    Generates fiscal receipt numbers in format: PREFIX-<invoice id>-NNNNNN

    The trailing counter is sequential per prefix and year, so numbers stay
    unique even when one invoice id shows up in several years' books.

    Examples:
        MDENT-42-000001
        MDENT-57-000002
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def next_sequence(self, prefix: str, year: int | None = None) -> int:
        """
        Increment and return the counter for prefix/year.

        Uses SELECT FOR UPDATE so two settlements never draw the same number.
        """
        if year is None:
            year = datetime.now().year

        stmt = (
            select(ReceiptSequence)
            .where(ReceiptSequence.prefix == prefix, ReceiptSequence.year == year)
            .with_for_update()
        )
        result = await self.session.execute(stmt)
        sequence = result.scalar_one_or_none()

        if sequence is None:
            sequence = ReceiptSequence(prefix=prefix, year=year, last_number=0)
            self.session.add(sequence)
            await self.session.flush()

            # Re-fetch with lock
            result = await self.session.execute(stmt)
            sequence = result.scalar_one()

        sequence.last_number += 1
        await self.session.flush()
        return sequence.last_number

    async def generate(self, prefix: str, invoice_id: int, year: int | None = None) -> str:
        number = await self.next_sequence(prefix, year)
        return f"{prefix}-{invoice_id}-{number:06d}"


async def get_receipt_number(
    session: AsyncSession, prefix: str, invoice_id: int, year: int | None = None
) -> str:
    """Convenience function to generate a fiscal receipt number."""
    generator = ReceiptNumberGenerator(session)
    return await generator.generate(prefix, invoice_id, year)
