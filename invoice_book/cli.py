"""Command-line entrypoints for creating, paying and printing invoices."""
from __future__ import annotations

import json
from pathlib import Path
from typing import NoReturn, Optional

import typer
from rich import print
from rich.table import Table

from .catalog import DEFAULT_CATALOG
from .config import configure_logging, get_settings
from .errors import InvoiceError
from .render import render_invoice_pdf
from .schemas import Invoice
from .storage import FileStorage, build_storage
from .store import DEFAULT_PAYMENT_METHOD, InvoiceStore
from .utils import format_currency

app = typer.Typer(add_completion=False, help="Invoice Book CLI")


def _store(ctx: typer.Context) -> InvoiceStore:
    settings = get_settings()
    data_dir: Optional[Path] = ctx.obj.get("data_dir") if ctx.obj else None
    if data_dir is not None:
        storage = FileStorage(data_dir, retries=settings.storage_retries, backoff=settings.storage_backoff)
    else:
        storage = build_storage(settings)
    return InvoiceStore(storage)


def _fail(exc: InvoiceError) -> NoReturn:
    print(f"[red]Error:[/red] {exc.message}")
    raise typer.Exit(code=1)


def _print_invoice(invoice: Invoice) -> None:
    print(f"[bold]Invoice {invoice.invoice_number}[/bold] ({invoice.date})")
    print(f"Customer: {invoice.customer}")
    if invoice.address:
        print(f"Address: {invoice.address}")
    if invoice.phone:
        print(f"Phone: {invoice.phone}")
    table = Table("Product", "Color - Size", "Qty", "Price", "Total")
    for item in invoice.items:
        table.add_row(item.product, f"{item.color} - {item.size}", str(item.quantity),
                      format_currency(item.unit_price), format_currency(item.total))
    print(table)
    print(f"Grand total: {format_currency(invoice.grand_total)}")
    print(f"Paid: {format_currency(invoice.paid_amount)}  Remaining: {format_currency(invoice.remaining_amount)}")
    print(f"Status: {invoice.payment_status.value}")
    for payment in invoice.payments:
        print(f"- {payment.timestamp:%Y-%m-%d %H:%M} {payment.method} {format_currency(payment.amount)} {payment.note}")


@app.callback()
def main_options(
    ctx: typer.Context,
    data_dir: Optional[Path] = typer.Option(None, "--data-dir", file_okay=False, help="Directory for file storage (overrides settings)"),
) -> None:
    configure_logging(get_settings().log_level)
    ctx.obj = {"data_dir": data_dir}


@app.command()
def create(ctx: typer.Context, draft: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON file with the invoice draft")) -> None:
    """Save an invoice from a JSON draft."""
    data = json.loads(draft.read_text(encoding="utf-8"))
    try:
        invoice = _store(ctx).create(data)
    except InvoiceError as exc:
        _fail(exc)
    print(f"[green]Saved[/green] {invoice.invoice_number}: total {format_currency(invoice.grand_total)}, "
          f"remaining {format_currency(invoice.remaining_amount)} ({invoice.payment_status.value})")


@app.command()
def show(ctx: typer.Context, invoice_number: str) -> None:
    """Show the current state of an invoice."""
    try:
        invoice = _store(ctx).get_by_number(invoice_number)
    except InvoiceError as exc:
        _fail(exc)
    _print_invoice(invoice)


@app.command("list")
def list_invoices(
    ctx: typer.Context,
    history: bool = typer.Option(False, "--history", help="Include every logged version"),
    search: Optional[str] = typer.Option(None, "--search", "-s", help="Filter by invoice number or customer"),
) -> None:
    """List saved invoices, newest activity first."""
    store = _store(ctx)
    versions = store.list_all_versions(search)
    entries = versions if history else store.list_active(search)
    table = Table("Invoice", "Version", "Customer", "Items", "Total", "Status", "Active")
    for entry in entries:
        table.add_row(entry.invoice_number, str(entry.version), entry.customer, str(entry.item_count),
                      format_currency(entry.grand_total), entry.payment_status.value, "yes" if entry.is_active else "no")
    print(table)
    print(f"Total records: {len(versions)}")
    if not history:
        print(f"Active: {len(entries)}")


@app.command()
def pay(
    ctx: typer.Context,
    invoice_number: str,
    amount: int,
    method: str = typer.Option(DEFAULT_PAYMENT_METHOD, help="Payment method tag, e.g. Transfer or Cash"),
    note: str = typer.Option("", help="Free-text note"),
) -> None:
    """Record a payment against an invoice."""
    try:
        invoice = _store(ctx).apply_payment(invoice_number, amount, method=method, note=note)
    except InvoiceError as exc:
        _fail(exc)
    print(f"[green]Payment recorded[/green] {invoice.invoice_number}: paid {format_currency(invoice.paid_amount)}, "
          f"remaining {format_currency(invoice.remaining_amount)} ({invoice.payment_status.value})")


@app.command()
def pdf(
    ctx: typer.Context,
    invoice_number: str,
    output: Path = typer.Option(..., help="Path to write the PDF"),
    watermark: Optional[bool] = typer.Option(None, "--watermark/--no-watermark", help="Override the watermark setting"),
) -> None:
    """Regenerate a printable PDF from stored data."""
    settings = get_settings()
    try:
        invoice = _store(ctx).get_by_number(invoice_number)
    except InvoiceError as exc:
        _fail(exc)
    content = render_invoice_pdf(
        invoice,
        business_name=settings.business_name,
        watermark=settings.watermark if watermark is None else watermark,
        watermark_opacity=settings.watermark_opacity,
        payment_accounts=settings.payment_accounts,
    )
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(content)
    print(f"PDF written to {output}")


@app.command()
def catalog() -> None:
    """Print the price list."""
    table = Table("Product", "Color", "Size", "Price")
    for product in DEFAULT_CATALOG.products():
        for color in DEFAULT_CATALOG.colors(product):
            for size in DEFAULT_CATALOG.sizes(product, color):
                table.add_row(product, color, size, format_currency(DEFAULT_CATALOG.price(product, color, size)))
    print(table)


@app.command()
def serve(host: str = typer.Option("127.0.0.1"), port: int = typer.Option(8000)) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    uvicorn.run("invoice_book.api:app", host=host, port=port)


def main():
    app()


if __name__ == "__main__":
    main()
