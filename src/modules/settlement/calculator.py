"""Paid total arithmetic for invoices."""

from collections.abc import Iterable
from decimal import Decimal

from src.shared.utils.money import ZERO, money_sum, round_money


def compute_paid_total(amounts: Iterable[Decimal]) -> Decimal:
    """Sum of payment amounts."""
    return money_sum(amounts)


def compute_unpaid(base_amount: Decimal, paid_total: Decimal) -> Decimal:
    """What is still owed; never negative."""
    return max(round_money(base_amount) - round_money(paid_total), ZERO)


def compute_paid_ratio(paid_total: Decimal, base_amount: Decimal) -> Decimal:
    """paid_total / base_amount; 0 for a non-positive base."""
    base = Decimal(str(base_amount or 0))
    if base <= 0:
        return Decimal("0")
    return Decimal(str(paid_total or 0)) / base
