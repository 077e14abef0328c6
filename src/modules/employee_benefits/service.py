"""Service for the employee benefit ledger."""

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.audit.service import AuditAction, AuditService
from src.core.exceptions import InsufficientBenefitBalanceError, InvalidBenefitCodeError
from src.modules.employee_benefits.models import EmployeeBenefit, EmployeeBenefitUsage
from src.modules.invoices.models import Invoice
from src.shared.utils.money import round_money

logger = logging.getLogger(__name__)


class BenefitLedgerService:
    """Debits employee benefit balances.

    Never commits: the debit and its usage row belong to the caller's
    settlement transaction and disappear with it on rollback.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)

    async def _get_valid_benefit(
        self, code: str, lock: bool = False, on_date: date | None = None
    ) -> EmployeeBenefit:
        code = (code or "").strip()
        if not code:
            raise InvalidBenefitCodeError(code)

        stmt = select(EmployeeBenefit).where(EmployeeBenefit.code == code)
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        benefit = result.scalar_one_or_none()

        if benefit is None or not benefit.is_valid_on(on_date or date.today()):
            raise InvalidBenefitCodeError(code)
        return benefit

    async def verify_code(self, code: str, on_date: date | None = None) -> EmployeeBenefit:
        """Return the active benefit for code; raises InvalidBenefitCodeError otherwise."""
        return await self._get_valid_benefit(code, on_date=on_date)

    async def debit(
        self,
        code: str,
        amount: Decimal,
        invoice: Invoice,
        user_id: int | None = None,
    ) -> EmployeeBenefitUsage:
        """
        Take amount off the benefit identified by code and record the usage.

        The row is locked first and the decrement is a guarded UPDATE, so two
        settlements racing on one code can never drive the balance negative.
        Link the returned usage to its payment with attach_payment().
        """
        amount = round_money(amount)
        benefit = await self._get_valid_benefit(code, lock=True)

        remaining = round_money(benefit.remaining_amount)
        if remaining < amount:
            raise InsufficientBenefitBalanceError(amount, remaining)

        result = await self.db.execute(
            update(EmployeeBenefit)
            .where(
                EmployeeBenefit.id == benefit.id,
                EmployeeBenefit.remaining_amount >= amount,
            )
            .values(remaining_amount=EmployeeBenefit.remaining_amount - amount)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            # Balance moved under us between the read and the update
            await self.db.refresh(benefit)
            raise InsufficientBenefitBalanceError(amount, round_money(benefit.remaining_amount))
        await self.db.refresh(benefit)

        encounter = invoice.encounter
        usage = EmployeeBenefitUsage(
            employee_benefit_id=benefit.id,
            invoice_id=invoice.id,
            encounter_id=invoice.encounter_id,
            patient_id=invoice.patient_id,
            patient_book_number=(
                encounter.patient_book.book_number
                if encounter is not None and encounter.patient_book is not None
                else None
            ),
            amount_used=amount,
        )
        self.db.add(usage)
        await self.db.flush()

        await self.audit.log(
            action=AuditAction.BENEFIT_DEBIT,
            entity_type="EmployeeBenefit",
            entity_id=benefit.id,
            entity_identifier=benefit.code,
            user_id=user_id,
            old_values={"remaining_amount": str(remaining)},
            new_values={
                "remaining_amount": str(round_money(benefit.remaining_amount)),
                "invoice_id": invoice.id,
                "amount_used": str(amount),
            },
        )

        logger.info(
            "Debited employee benefit %s by %s for invoice %s (remaining %s)",
            benefit.id,
            amount,
            invoice.id,
            benefit.remaining_amount,
        )
        return usage

    async def attach_payment(self, usage: EmployeeBenefitUsage, payment_id: int) -> None:
        usage.payment_id = payment_id
        await self.db.flush()
