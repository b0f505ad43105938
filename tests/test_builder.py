from __future__ import annotations

import random
import re

import pytest

from invoice_book.accounting import PaymentStatus
from invoice_book.builder import InvoiceBuilder
from invoice_book.catalog import DEFAULT_CATALOG, Catalog
from invoice_book.errors import ValidationError


@pytest.fixture
def builder(clock) -> InvoiceBuilder:
    return InvoiceBuilder(clock=clock, rng=random.Random(7))


def test_new_builder_gets_number_and_date(builder):
    assert re.fullmatch(r"INV-202501-\d{4}", builder.invoice_number)
    assert builder.date == "2025-01-15"
    assert builder.items == []


def test_items_are_priced_from_the_catalog(builder):
    item = builder.add_item("Lengan Pendek Combed 24S", "Putih", "S", quantity=2)
    builder.add_item("Polo", "Semua Warna", "3XL")

    assert item.unit_price == 42000
    assert item.total == 84000
    assert builder.grand_total == 184000


def test_explicit_price_overrides_catalog(builder):
    item = builder.add_item("Custom", "Merah", "L", quantity=3, unit_price=5000)

    assert item.total == 15000


def test_remaining_balance_and_paid_in_full(builder):
    builder.add_item("Desain", "Layanan", "Per Desain", quantity=2)
    builder.dp_amount = 5000
    assert builder.remaining_balance == 15000
    assert not builder.is_paid_in_full

    builder.dp_amount = 30000
    assert builder.remaining_balance == 0
    assert builder.is_paid_in_full


@pytest.mark.parametrize(
    "args, error",
    [
        (("Polo", "", "M", 1), "missing_field: color"),
        (("", "Putih", "S", 1), "missing_field: product"),
        (("Polo", "Semua Warna", "M", 0), "invalid_field: quantity"),
    ],
)
def test_incomplete_items_are_rejected(builder, args, error):
    with pytest.raises(ValidationError) as excinfo:
        builder.add_item(*args)

    assert error in excinfo.value.errors
    assert builder.items == []


def test_remove_item(builder):
    builder.add_item("Polo", "Semua Warna", "M")
    builder.add_item("Desain", "Layanan", "Per Desain")

    removed = builder.remove_item(0)

    assert removed.product == "Polo"
    assert [item.product for item in builder.items] == ["Desain"]


def test_remove_item_rejects_bad_index(builder):
    builder.add_item("Polo", "Semua Warna", "M")

    with pytest.raises(ValidationError) as excinfo:
        builder.remove_item(3)

    assert excinfo.value.errors == ["invalid_field: index"]
    assert len(builder.items) == 1


def test_submit_saves_and_resets(builder, store):
    builder.set_customer("Budi Santoso", "Bandung", "0812")
    builder.add_item("Polo", "Semua Warna", "M", quantity=2)
    builder.dp_amount = 174000
    number = builder.invoice_number

    invoice = builder.submit(store)

    assert invoice.invoice_number == number
    assert invoice.payment_status is PaymentStatus.PAID
    assert store.get_by_number(number).customer == "Budi Santoso"
    assert builder.items == []
    assert builder.customer == ""
    assert builder.dp_amount == 0


def test_submit_without_customer_keeps_draft(builder, store):
    builder.add_item("Polo", "Semua Warna", "M")

    with pytest.raises(ValidationError):
        builder.submit(store)

    assert len(builder.items) == 1
    assert store.list_active() == []


def test_catalog_lookups():
    assert "Polo" in DEFAULT_CATALOG.products()
    assert DEFAULT_CATALOG.colors("Polo") == ["Semua Warna"]
    assert DEFAULT_CATALOG.sizes("Sablon/Bordir", "Layanan") == ["Per Item"]
    assert DEFAULT_CATALOG.price("Lengan Panjang Combed 30S", "Hitam", "M") == 48600


def test_catalog_rejects_unknown_keys():
    with pytest.raises(ValidationError) as excinfo:
        DEFAULT_CATALOG.price("Polo", "Merah", "M")

    assert excinfo.value.errors == ["unknown_color: Merah"]


def test_custom_catalog():
    catalog = Catalog({"Mug": {"Putih": {"Std": 25000}}})

    assert catalog.as_dict() == {"Mug": {"Putih": {"Std": 25000}}}
    assert InvoiceBuilder(catalog=catalog).add_item("Mug", "Putih", "Std").unit_price == 25000
