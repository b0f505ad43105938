"""Data models used across the store, builder, renderer, CLI, and API.

Wire payloads use camelCase (``invoiceNumber``, ``dpAmount``); snake_case
field names are accepted as well and are what the store writes to disk.
"""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from . import accounting
from .accounting import PaymentStatus

SCHEMA_VERSION = 1


class CamelModel(BaseModel):
    model_config = ConfigDict(extra="ignore", alias_generator=to_camel, populate_by_name=True)


class LineItem(CamelModel):
    model_config = ConfigDict(extra="ignore", alias_generator=to_camel, populate_by_name=True, frozen=True)

    product: str = Field(min_length=1)
    color: str = ""
    size: str = ""
    quantity: int = Field(gt=0)
    unit_price: int = Field(ge=0)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total(self) -> int:
        return accounting.line_total(self.quantity, self.unit_price)


class PaymentEntry(CamelModel):
    model_config = ConfigDict(extra="ignore", alias_generator=to_camel, populate_by_name=True, frozen=True)

    timestamp: datetime
    amount: int = Field(gt=0)
    # Portion of ``amount`` actually credited once the balance was clamped.
    applied_amount: Optional[int] = Field(default=None, ge=0)
    method: str = "Transfer"
    note: str = ""


class InvoiceDraft(CamelModel):
    """Unsaved invoice as submitted by the builder or an API client."""

    invoice_number: str = ""
    date: Optional[str] = None
    customer: str = ""
    address: str = ""
    phone: str = ""
    items: List[LineItem] = Field(default_factory=list)
    note: str = ""
    dp_amount: int = Field(default=0, ge=0)

    @field_validator("invoice_number", "customer", "address", "phone", "note", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return "" if value is None else value

    @field_validator("dp_amount", mode="before")
    @classmethod
    def _none_to_zero(cls, value):
        return 0 if value is None else value


class Invoice(CamelModel):
    """Current state of one invoice; derived financial fields must reconcile."""

    invoice_number: str = Field(min_length=1)
    date: str
    customer: str = Field(min_length=1)
    address: str = ""
    phone: str = ""
    items: List[LineItem] = Field(min_length=1)
    note: str = ""
    grand_total: int
    paid_amount: int = 0
    remaining_amount: int
    payment_status: PaymentStatus = PaymentStatus.UNPAID
    payments: List[PaymentEntry] = Field(default_factory=list)
    created_at: datetime
    updated_at: Optional[datetime] = None
    # Highest version issued in the log for this number; 0 until saved.
    version: int = Field(default=0, ge=0)
    schema_version: int = SCHEMA_VERSION

    @model_validator(mode="after")
    def _check_financials(self) -> "Invoice":
        if self.grand_total != accounting.grand_total(self.items):
            raise ValueError("grand_total does not match the sum of line items")
        if not 0 <= self.paid_amount <= self.grand_total:
            raise ValueError("paid_amount must be between 0 and grand_total")
        if self.remaining_amount != accounting.remaining_amount(self.grand_total, self.paid_amount):
            raise ValueError("remaining_amount does not match grand_total - paid_amount")
        if self.payment_status != accounting.payment_status(self.paid_amount, self.grand_total):
            raise ValueError("payment_status is inconsistent with paid_amount")
        return self

    @property
    def last_activity(self) -> datetime:
        return self.updated_at or self.created_at


class VersionedLogEntry(Invoice):
    """Point-in-time snapshot of an invoice in the shared version log."""

    version: int = Field(ge=1)
    is_active: bool = True
    update_type: str = "create"
    # Physical append position in the log.
    sequence: int = 0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def item_count(self) -> int:
        return len(self.items)


class ApiResponse(CamelModel):
    success: bool = True
    message: str = ""


class ErrorResponse(ApiResponse):
    success: bool = False
    errors: List[str] = Field(default_factory=list)
    detail: Optional[str] = None


class CreateInvoiceResponse(ApiResponse):
    invoice_number: str
    grand_total: int
    payment_status: PaymentStatus
    remaining_amount: int


class InvoiceResponse(ApiResponse):
    invoice: Invoice


class InvoiceListResponse(ApiResponse):
    invoices: List[VersionedLogEntry]
    total_records: int
    active_records: Optional[int] = None


class HistoryResponse(ApiResponse):
    invoice_number: str
    versions: List[VersionedLogEntry]


class PaymentUpdateRequest(CamelModel):
    invoice_number: str = Field(min_length=1)
    payment_amount: int = Field(gt=0)
    payment_method: str = "Transfer"
    payment_note: str = ""


class PaymentUpdateResponse(ApiResponse):
    invoice_number: str
    payment_status: PaymentStatus
    paid_amount: int
    remaining_amount: int
