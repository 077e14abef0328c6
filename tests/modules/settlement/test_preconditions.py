"""Tests for settlement input validation and gating checks."""

from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import (
    AllocationRequiredError,
    AmountExceedsUnpaidError,
    B2BBuyerTinRequiredError,
    BranchRequiredError,
    InvalidInvoiceAmountError,
    NotFoundError,
    SettlementNotAllowedError,
    UnresolvedSterilizationMismatchError,
    ValidationError,
)
from src.modules.payments.models import Payment, PaymentAllocation
from src.modules.settlement.preconditions import validate_settlement_input
from src.modules.settlement.schemas import SettlementRequest
from src.modules.settlement.service import SettlementService
from src.modules.sterilization.models import MismatchStatus, SterilizationMismatch


async def _payment_count(db: AsyncSession, invoice_id: int) -> int:
    result = await db.execute(
        select(func.count(Payment.id)).where(Payment.invoice_id == invoice_id)
    )
    return result.scalar_one()


class TestValidateSettlementInput:
    @pytest.mark.parametrize("amount", [0, -5, "abc", None, float("nan"), float("inf")])
    def test_bad_amount(self, amount):
        with pytest.raises(ValidationError) as exc_info:
            validate_settlement_input(amount, "CASH", None)
        assert exc_info.value.code == "INVALID_AMOUNT"
        assert exc_info.value.details["field"] == "amount"

    @pytest.mark.parametrize("method", ["", "   ", None])
    def test_missing_method(self, method):
        with pytest.raises(ValidationError) as exc_info:
            validate_settlement_input(100, method, None)
        assert exc_info.value.code == "METHOD_REQUIRED"

    def test_method_normalized(self):
        result = validate_settlement_input("40000", " cash ", None)
        assert result.method == "CASH"
        assert result.amount == Decimal("40000.00")
        assert result.meta == {}

    def test_employee_benefit_needs_code(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_settlement_input(100, "EMPLOYEE_BENEFIT", {"employeeCode": "  "})
        assert exc_info.value.code == "EMPLOYEE_CODE_REQUIRED"

    def test_employee_code_extracted(self):
        result = validate_settlement_input(100, "employee_benefit", {"employeeCode": " EMP-1 "})
        assert result.employee_code == "EMP-1"

    @pytest.mark.parametrize("method", ["CASH", "pos", "EMPLOYEE_BENEFIT"])
    def test_qpay_txn_id_rejected_for_other_methods(self, method):
        with pytest.raises(ValidationError) as exc_info:
            validate_settlement_input(100, method, {"employeeCode": "EMP-1"}, "QP-1")
        assert exc_info.value.code == "QPAY_TXN_ID_NOT_ALLOWED"
        assert exc_info.value.details["field"] == "qpay_txn_id"

    def test_qpay_txn_id_kept_for_qpay(self):
        result = validate_settlement_input(100, "qpay", None, "  QP-1 ")
        assert result.method == "QPAY"
        assert result.qpay_txn_id == "QP-1"

    def test_blank_qpay_txn_id_ignored(self):
        result = validate_settlement_input(100, "CASH", None, "   ")
        assert result.qpay_txn_id is None


class TestSettlementGates:
    async def test_invoice_not_found(self, db_session: AsyncSession):
        service = SettlementService(db_session)
        with pytest.raises(NotFoundError):
            await service.settle(999, SettlementRequest(amount=Decimal("10"), method="CASH"))

    async def test_appointment_status_must_be_payable(
        self, db_session: AsyncSession, invoice_factory
    ):
        data = await invoice_factory(appointment_status="ongoing")
        service = SettlementService(db_session)

        with pytest.raises(SettlementNotAllowedError) as exc_info:
            await service.settle(
                data["invoice_id"], SettlementRequest(amount=Decimal("1000"), method="CASH")
            )
        assert exc_info.value.code == "SETTLEMENT_NOT_ALLOWED"
        assert exc_info.value.details["appointment_status"] == "ongoing"
        assert await _payment_count(db_session, data["invoice_id"]) == 0

    async def test_encounter_without_appointment_is_settleable(
        self, db_session: AsyncSession, invoice_factory
    ):
        data = await invoice_factory(appointment_status=None)
        service = SettlementService(db_session)

        result = await service.settle(
            data["invoice_id"], SettlementRequest(amount=Decimal("1000"), method="CASH")
        )
        assert result.invoice.status_legacy == "partial"

    async def test_appointment_checked_before_sterilization(
        self, db_session: AsyncSession, invoice_factory
    ):
        data = await invoice_factory(appointment_status="booked")
        db_session.add(
            SterilizationMismatch(encounter_id=data["encounter_id"], tool_name="Scaler")
        )
        await db_session.commit()

        service = SettlementService(db_session)
        with pytest.raises(SettlementNotAllowedError):
            await service.settle(
                data["invoice_id"], SettlementRequest(amount=Decimal("1000"), method="CASH")
            )

    async def test_resolved_mismatch_does_not_block(
        self, db_session: AsyncSession, invoice_factory
    ):
        data = await invoice_factory()
        db_session.add(
            SterilizationMismatch(
                encounter_id=data["encounter_id"],
                tool_name="Mirror",
                status=MismatchStatus.RESOLVED.value,
            )
        )
        await db_session.commit()

        service = SettlementService(db_session)
        result = await service.settle(
            data["invoice_id"], SettlementRequest(amount=Decimal("1000"), method="CASH")
        )
        assert result.paid_total == Decimal("1000.00")

    async def test_unresolved_mismatch_blocks(self, db_session: AsyncSession, invoice_factory):
        data = await invoice_factory()
        db_session.add(
            SterilizationMismatch(encounter_id=data["encounter_id"], tool_name="Forceps")
        )
        await db_session.commit()

        service = SettlementService(db_session)
        with pytest.raises(UnresolvedSterilizationMismatchError):
            await service.settle(
                data["invoice_id"], SettlementRequest(amount=Decimal("1000"), method="CASH")
            )

    async def test_invoice_without_positive_amount(
        self, db_session: AsyncSession, invoice_factory
    ):
        data = await invoice_factory(final_amount=Decimal("0"))
        service = SettlementService(db_session)

        with pytest.raises(InvalidInvoiceAmountError):
            await service.settle(
                data["invoice_id"], SettlementRequest(amount=Decimal("1000"), method="CASH")
            )

    async def test_legacy_total_used_when_final_missing(
        self, db_session: AsyncSession, invoice_factory
    ):
        data = await invoice_factory(total_amount=Decimal("20000.00"))
        service = SettlementService(db_session)

        result = await service.settle(
            data["invoice_id"], SettlementRequest(amount=Decimal("20000"), method="CASH")
        )
        assert result.invoice.status_legacy == "paid"
        assert result.unpaid_amount == Decimal("0.00")

    async def test_b2b_with_tin_is_settleable(self, db_session: AsyncSession, invoice_factory):
        data = await invoice_factory(buyer_type="B2B", buyer_tin="12345678901")
        service = SettlementService(db_session)

        result = await service.settle(
            data["invoice_id"], SettlementRequest(amount=Decimal("5000"), method="POS")
        )
        assert result.payment.method == "POS"

    async def test_b2b_blank_tin_rejected(self, db_session: AsyncSession, invoice_factory):
        data = await invoice_factory(buyer_type="B2B", buyer_tin="   ")
        service = SettlementService(db_session)

        with pytest.raises(B2BBuyerTinRequiredError):
            await service.settle(
                data["invoice_id"], SettlementRequest(amount=Decimal("5000"), method="POS")
            )

    async def test_amount_over_unpaid_rejected(self, db_session: AsyncSession, invoice_factory):
        data = await invoice_factory()
        service = SettlementService(db_session)

        with pytest.raises(AmountExceedsUnpaidError) as exc_info:
            await service.settle(
                data["invoice_id"], SettlementRequest(amount=Decimal("100000.01"), method="CASH")
            )
        assert exc_info.value.details["unpaid"] == "100000.00"
        assert await _payment_count(db_session, data["invoice_id"]) == 0

    async def test_allocations_require_split_pathway(
        self, db_session: AsyncSession, invoice_factory
    ):
        data = await invoice_factory()
        db_session.add(
            PaymentAllocation(invoice_item_id=data["item_ids"][0], amount=Decimal("1000"))
        )
        await db_session.commit()

        service = SettlementService(db_session)
        with pytest.raises(AllocationRequiredError):
            await service.settle(
                data["invoice_id"], SettlementRequest(amount=Decimal("1000"), method="CASH")
            )
        assert await _payment_count(db_session, data["invoice_id"]) == 0

    async def test_missing_branch_rolls_back_payment(
        self, db_session: AsyncSession, invoice_factory
    ):
        data = await invoice_factory(branch_id=None, appointment_branch_id=None)
        service = SettlementService(db_session)

        with pytest.raises(BranchRequiredError):
            await service.settle(
                data["invoice_id"], SettlementRequest(amount=Decimal("100000"), method="CASH")
            )
        assert await _payment_count(db_session, data["invoice_id"]) == 0

    async def test_branch_falls_back_to_appointment(
        self, db_session: AsyncSession, invoice_factory
    ):
        data = await invoice_factory(branch_id=None, appointment_branch_id=3)
        service = SettlementService(db_session)

        result = await service.settle(
            data["invoice_id"], SettlementRequest(amount=Decimal("100000"), method="CASH")
        )
        assert result.invoice.status_legacy == "paid"
