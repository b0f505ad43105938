from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from invoice_book.storage import FileStorage, MemoryStorage
from invoice_book.store import InvoiceStore


class TickingClock:
    """Deterministic clock that advances one minute per reading."""

    def __init__(self, start: datetime = datetime(2025, 1, 15, 9, 0, tzinfo=timezone.utc)) -> None:
        self.now = start
        self.step = timedelta(minutes=1)

    def __call__(self) -> datetime:
        current = self.now
        self.now += self.step
        return current


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture
def store(clock) -> InvoiceStore:
    return InvoiceStore(MemoryStorage(), clock=clock)


@pytest.fixture
def data_dir(tmp_path):
    return tmp_path / "data"


@pytest.fixture
def file_store(data_dir, clock) -> InvoiceStore:
    return InvoiceStore(FileStorage(data_dir, sleep=lambda _: None), clock=clock)


@pytest.fixture
def draft() -> dict:
    return {
        "invoiceNumber": "INV-202501-0001",
        "date": "2025-01-15",
        "customer": "Budi Santoso",
        "address": "Jl. Merdeka 10, Bandung",
        "phone": "081234567890",
        "items": [
            {"product": "Lengan Pendek Combed 24S", "color": "Putih", "size": "S", "quantity": 2, "unitPrice": 42000},
            {"product": "Polo", "color": "Semua Warna", "size": "M", "quantity": 1, "unitPrice": 87000},
        ],
        "note": "Sablon depan belakang",
        "dpAmount": 50000,
    }


@pytest.fixture
def small_draft() -> dict:
    return {
        "invoiceNumber": "INV-SMALL",
        "customer": "Sari",
        "items": [{"product": "Desain", "color": "Layanan", "size": "Per Desain", "quantity": 1, "unitPrice": 100}],
    }
