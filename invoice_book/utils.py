"""Utility functions shared across the invoicing service."""
from __future__ import annotations

import random
from datetime import date, datetime, timezone
from typing import Optional

from dateutil import parser

CURRENCY_PREFIX = "Rp"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_date(value: str) -> Optional[date]:
    """Parse a date string into a date object; returns None on failure."""
    if not value:
        return None
    try:
        return parser.parse(value, dayfirst=False, yearfirst=True).date()
    except (ValueError, TypeError, OverflowError):
        try:
            return parser.parse(value, dayfirst=True, yearfirst=True).date()
        except (ValueError, TypeError, OverflowError):
            return None


def format_currency(amount: int) -> str:
    """Format an amount the way the shop prints it, e.g. ``Rp 171.000``."""
    sign = "-" if amount < 0 else ""
    grouped = f"{abs(int(amount)):,}".replace(",", ".")
    return f"{sign}{CURRENCY_PREFIX} {grouped}"


def generate_invoice_number(now: Optional[datetime] = None, rng: Optional[random.Random] = None) -> str:
    """Return a number like ``INV-202501-0042`` (year, month, random suffix)."""
    now = now or utcnow()
    rng = rng or random.Random()
    return f"INV-{now:%Y%m}-{rng.randrange(10000):04d}"
