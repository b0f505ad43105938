"""Financial rules shared by the store, the builder and the renderer.

Amounts are integers in the smallest currency unit. Every derived field on an
invoice (line totals, grand total, paid and remaining amounts, payment status)
is computed here so that the rules live in exactly one place.
"""
from __future__ import annotations

from enum import Enum
from typing import Iterable, Protocol, Tuple


class PaymentStatus(str, Enum):
    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"


class HasTotal(Protocol):
    total: int


def line_total(quantity: int, unit_price: int) -> int:
    return quantity * unit_price


def grand_total(items: Iterable[HasTotal]) -> int:
    return sum(item.total for item in items)


def clamp_paid(paid: int, total: int) -> int:
    """Paid amount as stored: never negative, never above the grand total."""
    return max(0, min(paid, total))


def remaining_amount(total: int, paid: int) -> int:
    return max(total - paid, 0)


def payment_status(paid: int, total: int) -> PaymentStatus:
    if paid <= 0:
        return PaymentStatus.UNPAID
    if total > 0 and paid >= total:
        return PaymentStatus.PAID
    return PaymentStatus.PARTIAL


def settle(total: int, paid: int) -> Tuple[int, int, PaymentStatus]:
    """Return ``(paid_amount, remaining_amount, payment_status)`` for a raw paid sum."""
    applied = clamp_paid(paid, total)
    return applied, remaining_amount(total, applied), payment_status(applied, total)
