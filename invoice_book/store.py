"""Invoice persistence and version history.

The store keeps two record spaces in a :class:`~invoice_book.storage.Storage`:

* ``invoices/<number>``: the current state of each invoice, overwritten on
  every change;
* ``log/<sequence>``: an append-only log of :class:`VersionedLogEntry`
  snapshots shared by all invoices. Physical order is the zero padded
  sequence number. For each invoice number exactly one entry is active.

The primary record is authoritative. The log is a secondary index: if it
cannot be written the operation still succeeds and the failure is logged.
"""
from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError as SchemaError

from . import accounting
from .errors import NotFoundError, PersistenceFailure, StorageCorruption, ValidationError
from .schemas import Invoice, InvoiceDraft, PaymentEntry, VersionedLogEntry
from .storage import Storage
from .utils import parse_date, utcnow

logger = logging.getLogger(__name__)

INVOICE_NAMESPACE = "invoices"
LOG_NAMESPACE = "log"
SEQUENCE_WIDTH = 8

DP_METHOD = "DP"
DEFAULT_PAYMENT_METHOD = "Transfer"
CREATE_UPDATE = "create"
PAYMENT_UPDATE = "payment"

FINANCIAL_FIELDS = ("grand_total", "paid_amount", "remaining_amount", "payment_status", "payments", "updated_at")

DraftLike = Union[InvoiceDraft, Mapping[str, Any]]


def _schema_errors(exc: SchemaError) -> List[str]:
    return [f"invalid_field: {'.'.join(str(part) for part in err['loc'])}" for err in exc.errors()]


def _activity_order(entry: VersionedLogEntry) -> Tuple[datetime, int]:
    return entry.last_activity, entry.sequence


def _matches(entry: VersionedLogEntry, search: Optional[str]) -> bool:
    if not search or not search.strip():
        return True
    needle = search.strip().casefold()
    return needle in entry.invoice_number.casefold() or needle in entry.customer.casefold()


class InvoiceStore:
    def __init__(self, storage: Storage, clock: Optional[Callable[[], datetime]] = None) -> None:
        self.storage = storage
        self.clock = clock or utcnow
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self._log_lock = threading.RLock()

    # Public API
    def create(self, draft: DraftLike) -> Invoice:
        """Validate ``draft``, save it as the invoice's current state and log a new version."""
        invoice = self.preview(draft)
        with self._lock_for(invoice.invoice_number):
            previous = self._read_invoice(invoice.invoice_number)
            invoice = invoice.model_copy(update={"version": self._next_version(invoice.invoice_number, previous)})
            self._write_invoice(invoice)
            logger.info(
                "Saved invoice %s (total=%d, paid=%d, status=%s)",
                invoice.invoice_number, invoice.grand_total, invoice.paid_amount, invoice.payment_status.value,
            )
            self._append_version(invoice, CREATE_UPDATE)
        return invoice

    def preview(self, draft: DraftLike) -> Invoice:
        """Build the enriched invoice for ``draft`` without persisting anything."""
        draft = self._coerce_draft(draft)
        self._validate_draft(draft)
        return self._build_invoice(draft, self.clock())

    def get_by_number(self, invoice_number: str) -> Invoice:
        invoice = self._read_invoice(invoice_number)
        if invoice is None:
            raise NotFoundError(invoice_number)
        return invoice

    def list_active(self, search: Optional[str] = None) -> List[VersionedLogEntry]:
        """The active log entry of every invoice, most recent activity first.

        ``search`` keeps entries whose number or customer contains it, ignoring case.
        """
        latest: Dict[str, VersionedLogEntry] = {}
        for _, entry in self._read_log():
            if not entry.is_active or not _matches(entry, search):
                continue
            current = latest.get(entry.invoice_number)
            if current is None or entry.version > current.version:
                latest[entry.invoice_number] = entry
        return sorted(latest.values(), key=_activity_order, reverse=True)

    def list_all_versions(self, search: Optional[str] = None) -> List[VersionedLogEntry]:
        """Every log entry ever appended, most recent activity first."""
        entries = (entry for _, entry in self._read_log() if _matches(entry, search))
        return sorted(entries, key=_activity_order, reverse=True)

    def history(self, invoice_number: str) -> List[VersionedLogEntry]:
        """All logged versions of one invoice, oldest first."""
        versions = [entry for _, entry in self._read_log() if entry.invoice_number == invoice_number]
        if not versions and self._read_invoice(invoice_number) is None:
            raise NotFoundError(invoice_number)
        return sorted(versions, key=lambda entry: (entry.version, entry.sequence))

    def apply_payment(
        self,
        invoice_number: str,
        amount: int,
        method: str = DEFAULT_PAYMENT_METHOD,
        note: str = "",
    ) -> Invoice:
        """Record a payment against an existing invoice.

        The balance is clamped at the grand total but the payment entry keeps
        the requested ``amount`` verbatim; ``applied_amount`` holds what was
        actually credited. Calling twice applies the payment twice.
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValidationError(["invalid_field: amount"], "Payment amount must be a positive whole number")
        with self._lock_for(invoice_number):
            current = self.get_by_number(invoice_number)
            now = self.clock()
            paid, remaining, status = accounting.settle(current.grand_total, current.paid_amount + amount)
            entry = PaymentEntry(
                timestamp=now,
                amount=amount,
                applied_amount=paid - current.paid_amount,
                method=method or DEFAULT_PAYMENT_METHOD,
                note=note or "",
            )
            updated = current.model_copy(
                update={
                    "paid_amount": paid,
                    "remaining_amount": remaining,
                    "payment_status": status,
                    "payments": [*current.payments, entry],
                    "updated_at": now,
                    "version": self._next_version(invoice_number, current),
                }
            )
            self._write_invoice(updated)
            logger.info(
                "Applied payment of %d (%s) to %s: paid=%d remaining=%d status=%s",
                amount, entry.method, invoice_number, paid, remaining, status.value,
            )
            if amount > entry.applied_amount:
                logger.warning(
                    "Payment of %d on %s exceeds the balance; only %d was credited",
                    amount, invoice_number, entry.applied_amount,
                )
            self._append_version(updated, PAYMENT_UPDATE)
        return updated

    # Internals
    def _lock_for(self, invoice_number: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(invoice_number, threading.Lock())

    def _coerce_draft(self, draft: DraftLike) -> InvoiceDraft:
        if isinstance(draft, InvoiceDraft):
            return draft
        try:
            return InvoiceDraft.model_validate(draft)
        except SchemaError as exc:
            raise ValidationError(_schema_errors(exc)) from exc

    def _validate_draft(self, draft: InvoiceDraft) -> None:
        errors: List[str] = []
        if not draft.invoice_number.strip():
            errors.append("missing_field: invoice_number")
        if not draft.customer.strip():
            errors.append("missing_field: customer")
        if not draft.items:
            errors.append("empty_items")
        if draft.date and parse_date(draft.date) is None:
            errors.append("format: date_unparseable")
        if errors:
            raise ValidationError(errors)

    def _build_invoice(self, draft: InvoiceDraft, now: datetime) -> Invoice:
        total = accounting.grand_total(draft.items)
        payments: List[PaymentEntry] = []
        if draft.dp_amount > 0:
            payments.append(
                PaymentEntry(
                    timestamp=now,
                    amount=draft.dp_amount,
                    applied_amount=accounting.clamp_paid(draft.dp_amount, total),
                    method=DP_METHOD,
                    note="Down payment",
                )
            )
        paid, remaining, status = accounting.settle(total, draft.dp_amount)
        issue_date = parse_date(draft.date) if draft.date else now.date()
        return Invoice(
            invoice_number=draft.invoice_number.strip(),
            date=issue_date.isoformat(),
            customer=draft.customer.strip(),
            address=draft.address.strip(),
            phone=draft.phone.strip(),
            items=list(draft.items),
            note=draft.note,
            grand_total=total,
            paid_amount=paid,
            remaining_amount=remaining,
            payment_status=status,
            payments=payments,
            created_at=now,
            updated_at=now,
        )

    def _invoice_key(self, invoice_number: str) -> str:
        return f"{INVOICE_NAMESPACE}/{invoice_number}"

    def _write_invoice(self, invoice: Invoice) -> None:
        self.storage.put(self._invoice_key(invoice.invoice_number), invoice.model_dump(mode="json"))

    def _read_invoice(self, invoice_number: str) -> Optional[Invoice]:
        key = self._invoice_key(invoice_number)
        try:
            raw = self.storage.get(key)
        except StorageCorruption as exc:
            logger.warning("Ignoring unreadable invoice record %s: %s", key, exc.message)
            return None
        if raw is None:
            return None
        try:
            return Invoice.model_validate(raw)
        except SchemaError as exc:
            logger.warning("Ignoring invalid invoice record %s: %s", key, exc)
            return None

    def _read_log(self, strict: bool = False) -> List[Tuple[str, VersionedLogEntry]]:
        """Log entries in append order; corrupt entries are skipped.

        With ``strict`` a failure to list or read the log propagates. Otherwise
        an unlistable log is treated as empty and unreadable entries are skipped.
        """
        try:
            keys = self.storage.keys(LOG_NAMESPACE)
        except PersistenceFailure:
            if strict:
                raise
            logger.exception("Version log is unreadable; treating it as empty")
            return []
        entries: List[Tuple[str, VersionedLogEntry]] = []
        for key in keys:
            try:
                raw = self.storage.get(key)
                if raw is None:
                    continue
                entries.append((key, VersionedLogEntry.model_validate(raw)))
            except StorageCorruption as exc:
                logger.warning("Skipping unreadable log entry %s: %s", key, exc.message)
            except SchemaError as exc:
                logger.warning("Skipping invalid log entry %s: %s", key, exc)
            except PersistenceFailure as exc:
                if strict:
                    raise
                logger.warning("Skipping log entry %s: %s", key, exc.message)
        return entries

    def _next_version(self, invoice_number: str, previous: Optional[Invoice]) -> int:
        """One past the highest version seen in the record or the readable log."""
        logged = (entry.version for _, entry in self._read_log() if entry.invoice_number == invoice_number)
        return max(previous.version if previous else 0, max(logged, default=0)) + 1

    def _next_sequence(self) -> int:
        names = (key.split("/", 1)[1] for key in self.storage.keys(LOG_NAMESPACE))
        return max((int(name) for name in names if name.isdigit()), default=0) + 1

    def _append_version(self, invoice: Invoice, update_type: str) -> Optional[VersionedLogEntry]:
        """Append a snapshot of ``invoice`` and deactivate its previous active entry.

        Best effort: storage and schema failures are logged, not raised.
        """
        try:
            with self._log_lock:
                entries = self._read_log(strict=True)
                same_number = [(key, entry) for key, entry in entries if entry.invoice_number == invoice.invoice_number]
                version = invoice.version
                active = [(key, entry) for key, entry in same_number if entry.is_active]
                prior = active[-1][1] if active else None

                snapshot = invoice.model_dump()
                if update_type == PAYMENT_UPDATE and prior is not None and prior.grand_total == invoice.grand_total:
                    snapshot = prior.model_dump(include=set(Invoice.model_fields))
                    snapshot.update({name: getattr(invoice, name) for name in FINANCIAL_FIELDS})
                sequence = self._next_sequence()
                entry = VersionedLogEntry.model_validate(
                    {
                        **snapshot,
                        "version": version,
                        "is_active": True,
                        "update_type": update_type,
                        "sequence": sequence,
                    }
                )

                for key, old in active:
                    self.storage.put(key, old.model_copy(update={"is_active": False}).model_dump(mode="json"))
                self.storage.put(f"{LOG_NAMESPACE}/{sequence:0{SEQUENCE_WIDTH}d}", entry.model_dump(mode="json"))
        except (PersistenceFailure, SchemaError):
            logger.exception(
                "Could not update version log for %s; the invoice record itself was saved",
                invoice.invoice_number,
            )
            return None
        logger.debug("Logged %s version %d of %s", update_type, version, invoice.invoice_number)
        return entry
