"""Service for Settlement module: applying a payment to a clinic invoice."""

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.core.audit.service import AuditAction, AuditService
from src.core.config import settings
from src.core.documents.number_generator import get_receipt_number
from src.core.exceptions import AppException, NotFoundError, SettlementConflictError
from src.modules.employee_benefits.service import BenefitLedgerService
from src.modules.encounters.models import Encounter
from src.modules.inventory.service import StockMovementIssuer
from src.modules.invoices.models import FiscalReceipt, Invoice, InvoiceStatus
from src.modules.payments.models import Payment, PaymentMethod
from src.modules.settlement.calculator import (
    compute_paid_ratio,
    compute_paid_total,
    compute_unpaid,
)
from src.modules.settlement.idempotency import QPayIdempotencyGuard
from src.modules.settlement.preconditions import (
    SettlementInput,
    SettlementPreconditions,
    validate_settlement_input,
)
from src.modules.settlement.schemas import SettlementRequest, SettlementResult
from src.modules.settlement.state import next_appointment_status, next_invoice_status

logger = logging.getLogger(__name__)


class SettlementService:
    """
    Applies a single payment to an invoice and propagates its consequences:
    invoice status, appointment status, SALE stock movements, the fiscal
    receipt and, for EMPLOYEE_BENEFIT, the benefit ledger.

    One settle() call is one transaction. The invoice row is locked before
    any check runs, and on any failure the session is rolled back so the
    invoice is left exactly as it was.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)
        self.guard = QPayIdempotencyGuard(db)
        self.preconditions = SettlementPreconditions(db)
        self.benefits = BenefitLedgerService(db)
        self.stock = StockMovementIssuer(db)

    async def _get_invoice(self, invoice_id: int, lock: bool = False) -> Invoice:
        """Load invoice with everything settlement reads, fresh from the database."""
        stmt = (
            select(Invoice)
            .where(Invoice.id == invoice_id)
            .options(
                selectinload(Invoice.items),
                selectinload(Invoice.payments),
                selectinload(Invoice.fiscal_receipt),
                selectinload(Invoice.encounter).selectinload(Encounter.appointment),
                selectinload(Invoice.encounter).selectinload(Encounter.patient_book),
            )
            .execution_options(populate_existing=True)
        )
        if lock:
            stmt = stmt.with_for_update(of=Invoice)
        result = await self.db.execute(stmt)
        invoice = result.scalar_one_or_none()
        if not invoice:
            raise NotFoundError("Invoice", invoice_id)
        return invoice

    async def _paid_total(self, invoice_id: int):
        result = await self.db.execute(
            select(Payment.amount).where(Payment.invoice_id == invoice_id)
        )
        return compute_paid_total(result.scalars().all())

    async def get_settlement_view(self, invoice_id: int) -> Invoice:
        """Invoice with items, payments and fiscal receipt loaded; read-only."""
        return await self._get_invoice(invoice_id)

    async def settle(self, invoice_id: int, data: SettlementRequest) -> SettlementResult:
        """Apply data.amount to the invoice. Raises AppException subclasses on rejection."""
        request = validate_settlement_input(data.amount, data.method, data.meta, data.qpay_txn_id)
        qpay_txn_id = request.qpay_txn_id

        try:
            result = await self._apply(invoice_id, request, data.issue_fiscal_receipt)
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            # Lost a race with an identical QPay confirmation: answer as a replay
            if qpay_txn_id:
                existing = await self.guard.find_applied(invoice_id, qpay_txn_id)
                if existing is not None:
                    logger.info(
                        "QPay txn %s on invoice %s applied concurrently; replaying",
                        qpay_txn_id,
                        invoice_id,
                    )
                    return await self._replay(invoice_id, existing)
            logger.warning("Settlement of invoice %s hit a concurrent write", invoice_id)
            raise SettlementConflictError(invoice_id)
        except AppException as exc:
            await self.db.rollback()
            logger.warning(
                "Settlement of invoice %s rejected: %s (%s)", invoice_id, exc.code, exc.message
            )
            raise
        except Exception:
            await self.db.rollback()
            logger.exception("Settlement of invoice %s failed", invoice_id)
            raise

        if result.replayed:
            return result

        invoice = await self._get_invoice(invoice_id)
        paid_total = compute_paid_total(p.amount for p in invoice.payments)
        return SettlementResult(
            invoice=invoice,
            payment=result.payment,
            paid_total=paid_total,
            unpaid_amount=compute_unpaid(invoice.base_amount, paid_total),
        )

    async def _replay(self, invoice_id: int, payment: Payment) -> SettlementResult:
        invoice = await self._get_invoice(invoice_id)
        paid_total = compute_paid_total(p.amount for p in invoice.payments)
        return SettlementResult(
            invoice=invoice,
            payment=payment,
            paid_total=paid_total,
            unpaid_amount=compute_unpaid(invoice.base_amount, paid_total),
            replayed=True,
        )

    async def _apply(
        self,
        invoice_id: int,
        request: SettlementInput,
        issue_fiscal_receipt: bool,
    ) -> SettlementResult:
        invoice = await self._get_invoice(invoice_id, lock=True)
        qpay_txn_id = request.qpay_txn_id

        existing = await self.guard.find_applied(invoice.id, qpay_txn_id)
        if existing is not None:
            logger.info("QPay txn %s already applied to invoice %s", qpay_txn_id, invoice.id)
            paid_total = compute_paid_total(p.amount for p in invoice.payments)
            return SettlementResult(
                invoice=invoice,
                payment=existing,
                paid_total=paid_total,
                unpaid_amount=compute_unpaid(invoice.base_amount, paid_total),
                replayed=True,
            )

        paid_before = await self._paid_total(invoice.id)
        await self.preconditions.check(invoice, request.amount, paid_before)

        user_id = settings.settlement_system_user_id

        usage = None
        if request.method == PaymentMethod.EMPLOYEE_BENEFIT:
            usage = await self.benefits.debit(
                request.employee_code, request.amount, invoice, user_id=user_id
            )

        payment = Payment(
            invoice_id=invoice.id,
            amount=request.amount,
            method=request.method,
            meta=request.meta or None,
            qpay_txn_id=qpay_txn_id,
        )
        self.db.add(payment)
        await self.db.flush()

        if usage is not None:
            await self.benefits.attach_payment(usage, payment.id)

        paid_total = await self._paid_total(invoice.id)
        ratio = compute_paid_ratio(paid_total, invoice.base_amount)
        old_status = invoice.status_legacy
        new_status = next_invoice_status(old_status, ratio)

        receipt_number = None
        if new_status == InvoiceStatus.PAID:
            await self.stock.ensure_sale_movements_once(invoice, request.method)
            wants_receipt = issue_fiscal_receipt or settings.fiscal_receipt_auto_issue
            if wants_receipt and invoice.fiscal_receipt is None:
                receipt_number = await get_receipt_number(
                    self.db, settings.fiscal_receipt_prefix, invoice.id
                )
                self.db.add(FiscalReceipt(invoice_id=invoice.id, receipt_number=receipt_number))

        invoice.status_legacy = new_status.value

        appointment = invoice.encounter.appointment if invoice.encounter else None
        old_appointment_status = None
        if appointment is not None:
            old_appointment_status = appointment.status
            appointment.status = next_appointment_status(ratio).value

        await self.db.flush()

        await self.audit.log(
            action=AuditAction.SETTLEMENT_APPLY,
            entity_type="Invoice",
            entity_id=invoice.id,
            user_id=user_id,
            old_values={
                "status": old_status,
                "paid_total": str(paid_before),
                "appointment_status": old_appointment_status,
            },
            new_values={
                "payment_id": payment.id,
                "amount": str(request.amount),
                "method": request.method,
                "qpay_txn_id": qpay_txn_id,
                "status": new_status.value,
                "paid_total": str(paid_total),
                "appointment_status": appointment.status if appointment else None,
                "fiscal_receipt_number": receipt_number,
            },
        )

        logger.info(
            "Applied %s payment %s of %s to invoice %s: %s -> %s (paid %s of %s)",
            request.method,
            payment.id,
            request.amount,
            invoice.id,
            old_status,
            new_status.value,
            paid_total,
            invoice.base_amount,
        )

        return SettlementResult(
            invoice=invoice,
            payment=payment,
            paid_total=paid_total,
            unpaid_amount=compute_unpaid(invoice.base_amount, paid_total),
        )
