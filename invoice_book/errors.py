"""Error taxonomy surfaced by the store, the API and the CLI."""
from __future__ import annotations

import errno
from typing import Iterable, List, Optional


class InvoiceError(Exception):
    """Base class; ``message`` is safe to show to users."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(InvoiceError):
    """Caller supplied incomplete or invalid data. Never retried."""

    status_code = 400

    def __init__(self, errors: Iterable[str], message: Optional[str] = None) -> None:
        self.errors: List[str] = list(errors)
        super().__init__(message or "Invalid invoice data: " + ", ".join(self.errors))


class NotFoundError(InvoiceError):
    status_code = 404

    def __init__(self, invoice_number: str) -> None:
        self.invoice_number = invoice_number
        super().__init__(f"Invoice {invoice_number} not found")


_OS_ERROR_MESSAGES = {
    errno.EACCES: "permission denied",
    errno.EPERM: "permission denied",
    errno.ENOSPC: "storage is out of space",
    errno.EROFS: "storage is read-only",
    errno.ENOENT: "storage location does not exist",
    errno.ENOTDIR: "storage location does not exist",
}


def describe_cause(cause: Optional[BaseException]) -> str:
    """Translate a low level storage error into a short user-facing reason."""
    if isinstance(cause, OSError) and cause.errno in _OS_ERROR_MESSAGES:
        return _OS_ERROR_MESSAGES[cause.errno]
    if isinstance(cause, OSError):
        return "storage unavailable"
    if isinstance(cause, ValueError):
        return "stored data is corrupt"
    return "unexpected storage error"


class PersistenceFailure(InvoiceError):
    """Reading or writing the underlying storage failed."""

    status_code = 500

    def __init__(self, operation: str, key: str, cause: Optional[BaseException] = None) -> None:
        self.operation = operation
        self.key = key
        self.cause = cause
        super().__init__(f"Failed to {operation} {key}: {describe_cause(cause)}")


class StorageCorruption(PersistenceFailure):
    """Stored data exists but cannot be parsed or fails schema validation."""

    def __init__(self, key: str, cause: Optional[BaseException] = None) -> None:
        super().__init__("read", key, cause if cause is not None else ValueError(key))
