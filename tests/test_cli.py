from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from invoice_book.cli import app

NUMBER = "INV-202501-0001"

runner = CliRunner()


@pytest.fixture
def draft_file(tmp_path, draft):
    path = tmp_path / "draft.json"
    path.write_text(json.dumps(draft), encoding="utf-8")
    return path


def _invoke(data_dir, *args):
    return runner.invoke(app, ["--data-dir", str(data_dir), *args])


def test_create_show_pay_list(data_dir, draft_file):
    result = _invoke(data_dir, "create", str(draft_file))
    assert result.exit_code == 0, result.output
    assert "Saved" in result.output
    assert "Rp 171.000" in result.output

    result = _invoke(data_dir, "show", NUMBER)
    assert result.exit_code == 0, result.output
    assert "Customer: Budi Santoso" in result.output
    assert "Status: partial" in result.output

    result = _invoke(data_dir, "pay", NUMBER, "121000", "--method", "Cash", "--note", "final")
    assert result.exit_code == 0, result.output
    assert "Payment recorded" in result.output

    result = _invoke(data_dir, "show", NUMBER)
    assert "Status: paid" in result.output

    listing = _invoke(data_dir, "list").output
    assert "Total records: 2" in listing
    assert "Active: 1" in listing
    assert "Total records: 2" in _invoke(data_dir, "list", "--history").output


def test_show_unknown_invoice_fails(data_dir):
    result = _invoke(data_dir, "show", "INV-9999")

    assert result.exit_code == 1
    assert "not found" in result.output


def test_create_invalid_draft_fails(tmp_path, data_dir, draft):
    draft["items"] = []
    path = tmp_path / "empty.json"
    path.write_text(json.dumps(draft), encoding="utf-8")

    result = _invoke(data_dir, "create", str(path))

    assert result.exit_code == 1
    assert "empty_items" in result.output


def test_pay_rejects_zero_amount(data_dir, draft_file):
    _invoke(data_dir, "create", str(draft_file))

    result = _invoke(data_dir, "pay", NUMBER, "0")

    assert result.exit_code == 1


def test_pdf_export(tmp_path, data_dir, draft_file):
    _invoke(data_dir, "create", str(draft_file))
    output = tmp_path / "out" / "invoice.pdf"

    result = _invoke(data_dir, "pdf", NUMBER, "--output", str(output), "--no-watermark")

    assert result.exit_code == 0, result.output
    assert output.read_bytes().startswith(b"%PDF")


def test_catalog_lists_products(data_dir):
    result = _invoke(data_dir, "catalog")

    assert result.exit_code == 0
    assert "Polo" in result.output


def test_list_search(tmp_path, data_dir, draft_file, small_draft):
    small_file = tmp_path / "small.json"
    small_file.write_text(json.dumps(small_draft), encoding="utf-8")
    _invoke(data_dir, "create", str(draft_file))
    _invoke(data_dir, "create", str(small_file))

    result = _invoke(data_dir, "list", "--search", "budi")

    assert result.exit_code == 0, result.output
    assert "Active: 1" in result.output
    assert "INV-SMALL" not in result.output
