"""
Invoice and appointment status transitions driven by payments.

Both functions are pure: they look only at the current status and at how
much of the invoice is paid.
"""

from decimal import Decimal

from src.modules.encounters.models import AppointmentStatus
from src.modules.invoices.models import InvoiceStatus

_INVOICE_STATUS_RANK = {
    InvoiceStatus.UNPAID: 0,
    InvoiceStatus.PARTIAL: 1,
    InvoiceStatus.PAID: 2,
}

# Appointment statuses from which an invoice may be settled
SETTLEABLE_APPOINTMENT_STATUSES = frozenset(
    {AppointmentStatus.READY_TO_PAY, AppointmentStatus.PARTIAL_PAID}
)


def _status_for_ratio(paid_ratio: Decimal) -> InvoiceStatus:
    if paid_ratio >= 1:
        return InvoiceStatus.PAID
    if paid_ratio > 0:
        return InvoiceStatus.PARTIAL
    return InvoiceStatus.UNPAID


def next_invoice_status(current: InvoiceStatus | str, paid_ratio: Decimal) -> InvoiceStatus:
    """
    Status after a payment brings the paid ratio to paid_ratio.

    Never moves backwards: an invoice that is paid stays paid even if the
    ratio handed in is lower.
    """
    current = InvoiceStatus(current)
    candidate = _status_for_ratio(paid_ratio)
    if _INVOICE_STATUS_RANK[candidate] < _INVOICE_STATUS_RANK[current]:
        return current
    return candidate


def next_appointment_status(paid_ratio: Decimal) -> AppointmentStatus:
    if paid_ratio >= 1:
        return AppointmentStatus.COMPLETED
    if paid_ratio > 0:
        return AppointmentStatus.PARTIAL_PAID
    return AppointmentStatus.READY_TO_PAY


def is_settleable(appointment_status: AppointmentStatus | str) -> bool:
    return appointment_status in SETTLEABLE_APPOINTMENT_STATUSES
