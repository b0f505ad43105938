"""Client-side invoice composition.

The builder mirrors the entry form: it collects customer fields and line
items priced from the catalog, shows running totals, and hands a finished
draft to the store. Nothing is persisted until :meth:`InvoiceBuilder.submit`.
"""
from __future__ import annotations

import random
from datetime import datetime
from typing import Callable, List, Optional

from . import accounting
from .catalog import DEFAULT_CATALOG, Catalog
from .errors import ValidationError
from .schemas import Invoice, InvoiceDraft, LineItem
from .store import InvoiceStore
from .utils import generate_invoice_number, utcnow


class InvoiceBuilder:
    def __init__(
        self,
        catalog: Catalog = DEFAULT_CATALOG,
        clock: Optional[Callable[[], datetime]] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.catalog = catalog
        self.clock = clock or utcnow
        self.rng = rng or random.Random()
        self.reset()

    def reset(self) -> None:
        """Start a fresh invoice for the next customer."""
        now = self.clock()
        self.invoice_number = generate_invoice_number(now, self.rng)
        self.date = now.date().isoformat()
        self.customer = ""
        self.address = ""
        self.phone = ""
        self.note = ""
        self.dp_amount = 0
        self.items: List[LineItem] = []

    def set_customer(self, name: str, address: str = "", phone: str = "") -> None:
        self.customer = name
        self.address = address
        self.phone = phone

    def add_item(
        self,
        product: str,
        color: str,
        size: str,
        quantity: int = 1,
        unit_price: Optional[int] = None,
    ) -> LineItem:
        missing = [name for name, value in (("product", product), ("color", color), ("size", size)) if not value]
        if missing or quantity <= 0:
            errors = [f"missing_field: {name}" for name in missing]
            if quantity <= 0:
                errors.append("invalid_field: quantity")
            raise ValidationError(errors, "Please complete every item field")
        if unit_price is None:
            unit_price = self.catalog.price(product, color, size)
        item = LineItem(product=product, color=color, size=size, quantity=quantity, unit_price=unit_price)
        self.items.append(item)
        return item

    def remove_item(self, index: int) -> LineItem:
        if not 0 <= index < len(self.items):
            raise ValidationError(["invalid_field: index"], f"No item at position {index}")
        return self.items.pop(index)

    @property
    def grand_total(self) -> int:
        return accounting.grand_total(self.items)

    @property
    def remaining_balance(self) -> int:
        return accounting.remaining_amount(self.grand_total, self.dp_amount)

    @property
    def is_paid_in_full(self) -> bool:
        return self.grand_total > 0 and self.dp_amount >= self.grand_total

    def to_draft(self) -> InvoiceDraft:
        return InvoiceDraft(
            invoice_number=self.invoice_number,
            date=self.date,
            customer=self.customer,
            address=self.address,
            phone=self.phone,
            items=list(self.items),
            note=self.note,
            dp_amount=self.dp_amount,
        )

    def submit(self, store: InvoiceStore) -> Invoice:
        """Save the draft; on success the builder is reset for the next customer."""
        invoice = store.create(self.to_draft())
        self.reset()
        return invoice
