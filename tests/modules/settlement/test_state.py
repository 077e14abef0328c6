"""Tests for invoice/appointment status transitions."""

from decimal import Decimal

import pytest

from src.modules.encounters.models import AppointmentStatus
from src.modules.invoices.models import InvoiceStatus
from src.modules.settlement.calculator import compute_paid_ratio, compute_unpaid
from src.modules.settlement.state import (
    is_settleable,
    next_appointment_status,
    next_invoice_status,
)


class TestNextInvoiceStatus:
    @pytest.mark.parametrize(
        "ratio,expected",
        [
            (Decimal("0"), InvoiceStatus.UNPAID),
            (Decimal("0.4"), InvoiceStatus.PARTIAL),
            (Decimal("0.9999"), InvoiceStatus.PARTIAL),
            (Decimal("1"), InvoiceStatus.PAID),
            (Decimal("1.2"), InvoiceStatus.PAID),
        ],
    )
    def test_from_unpaid(self, ratio, expected):
        assert next_invoice_status(InvoiceStatus.UNPAID, ratio) == expected

    def test_never_regresses(self):
        assert next_invoice_status(InvoiceStatus.PAID, Decimal("0.5")) == InvoiceStatus.PAID
        assert next_invoice_status(InvoiceStatus.PAID, Decimal("0")) == InvoiceStatus.PAID
        assert next_invoice_status(InvoiceStatus.PARTIAL, Decimal("0")) == InvoiceStatus.PARTIAL

    def test_accepts_stored_string(self):
        assert next_invoice_status("partial", Decimal("1")) == InvoiceStatus.PAID

    def test_unknown_status_rejected(self):
        with pytest.raises(ValueError):
            next_invoice_status("refunded", Decimal("1"))


class TestNextAppointmentStatus:
    def test_transitions(self):
        assert next_appointment_status(Decimal("1")) == AppointmentStatus.COMPLETED
        assert next_appointment_status(Decimal("0.4")) == AppointmentStatus.PARTIAL_PAID
        assert next_appointment_status(Decimal("0")) == AppointmentStatus.READY_TO_PAY

    def test_settleable_statuses(self):
        assert is_settleable("ready_to_pay")
        assert is_settleable(AppointmentStatus.PARTIAL_PAID)
        assert not is_settleable("booked")
        assert not is_settleable("completed")


class TestCalculator:
    def test_paid_ratio(self):
        assert compute_paid_ratio(Decimal("40000"), Decimal("100000")) == Decimal("0.4")
        assert compute_paid_ratio(Decimal("10"), Decimal("0")) == Decimal("0")

    def test_unpaid_never_negative(self):
        assert compute_unpaid(Decimal("100000"), Decimal("40000")) == Decimal("60000.00")
        assert compute_unpaid(Decimal("100000"), Decimal("120000")) == Decimal("0.00")
