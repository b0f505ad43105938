"""Printable PDF rendering of invoices with reportlab."""
from __future__ import annotations

from io import BytesIO
from typing import Iterable, List, Sequence
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from .accounting import PaymentStatus
from .schemas import Invoice
from .utils import format_currency, parse_date

BRAND = colors.HexColor("#f97316")
PAID_GREEN = colors.HexColor("#10b981")
MIN_OPACITY = 0.05
MAX_OPACITY = 0.3

STATUS_LABELS = {
    PaymentStatus.UNPAID: "BELUM DIBAYAR",
    PaymentStatus.PARTIAL: "DIBAYAR SEBAGIAN",
    PaymentStatus.PAID: "LUNAS",
}


def _styles():
    styles = getSampleStyleSheet()
    styles.add(ParagraphStyle(name="Brand", parent=styles["Title"], textColor=BRAND))
    styles.add(ParagraphStyle(name="Cell", parent=styles["Normal"], fontSize=9, leading=11))
    styles.add(ParagraphStyle(name="CellRight", parent=styles["Normal"], fontSize=9, leading=11, alignment=2))
    return styles


def _text(value: str, placeholder: str = "-") -> str:
    return escape(value) if value else placeholder


def _items_table(invoice: Invoice, styles) -> Table:
    cell, right = styles["Cell"], styles["CellRight"]
    data: List[list] = [[
        Paragraph("<b>Produk</b>", cell),
        Paragraph("<b>Warna - Ukuran</b>", cell),
        Paragraph("<b>Qty</b>", right),
        Paragraph("<b>Harga</b>", right),
        Paragraph("<b>Total</b>", right),
    ]]
    for item in invoice.items:
        data.append([
            Paragraph(_text(item.product), cell),
            Paragraph(f"{_text(item.color)} - {_text(item.size)}", cell),
            Paragraph(str(item.quantity), right),
            Paragraph(format_currency(item.unit_price), right),
            Paragraph(format_currency(item.total), right),
        ])
    table = Table(data, colWidths=[150, 120, 40, 90, 100], repeatRows=1)
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.whitesmoke),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("BOTTOMPADDING", (0, 0), (-1, 0), 8),
    ]))
    return table


def _totals_table(invoice: Invoice, styles) -> Table:
    right = styles["CellRight"]
    rows = [("Subtotal:", invoice.grand_total)]
    if invoice.paid_amount > 0:
        rows.append(("Dibayar:", invoice.paid_amount))
        rows.append(("Sisa Bayar:", invoice.remaining_amount))
    else:
        rows.append(("Total Bayar:", invoice.grand_total))
    data = [[Paragraph(label, right), Paragraph(f"<b>{format_currency(amount)}</b>", right)] for label, amount in rows]
    data.append([Paragraph("Status:", right), Paragraph(f"<b>{STATUS_LABELS[invoice.payment_status]}</b>", right)])
    table = Table(data, colWidths=[380, 120])
    table.setStyle(TableStyle([("LINEABOVE", (0, -1), (-1, -1), 0.5, BRAND)]))
    return table


def _payments_table(invoice: Invoice, styles) -> Table:
    cell, right = styles["Cell"], styles["CellRight"]
    data: List[list] = [[
        Paragraph("<b>Tanggal</b>", cell),
        Paragraph("<b>Metode</b>", cell),
        Paragraph("<b>Catatan</b>", cell),
        Paragraph("<b>Jumlah</b>", right),
    ]]
    for payment in invoice.payments:
        data.append([
            Paragraph(payment.timestamp.strftime("%Y-%m-%d %H:%M"), cell),
            Paragraph(_text(payment.method), cell),
            Paragraph(_text(payment.note, ""), cell),
            Paragraph(format_currency(payment.amount), right),
        ])
    table = Table(data, colWidths=[110, 90, 200, 100])
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.whitesmoke),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
    ]))
    return table


def _payment_info(invoice: Invoice, accounts: Sequence[str], styles) -> Iterable:
    normal = styles["Normal"]
    if invoice.paid_amount > 0 and invoice.remaining_amount > 0:
        yield Paragraph(
            f"DP sebesar {format_currency(invoice.paid_amount)} telah dibayar. "
            f"Sisa pembayaran: {format_currency(invoice.remaining_amount)}",
            normal,
        )
        heading = "Sisa pembayaran dapat ditransfer ke:"
    else:
        heading = "Info pembayaran dapat ditransfer ke:"
    if accounts:
        yield Paragraph(heading, normal)
        for account in accounts:
            yield Paragraph(f"&bull; {escape(account)}", normal)
    yield Paragraph("Setelah melakukan transfer dapat mengirimkan bukti transfer.", normal)


def _decorate_page(business_name: str, watermark: bool, opacity: float, paid: bool):
    def draw(canvas, doc) -> None:
        width, height = doc.pagesize
        if watermark:
            canvas.saveState()
            canvas.setFillColor(BRAND)
            canvas.setFillAlpha(opacity)
            canvas.setFont("Helvetica-Bold", 72)
            canvas.translate(width / 2, height / 2)
            canvas.rotate(45)
            canvas.drawCentredString(0, 0, business_name)
            canvas.restoreState()
        if paid:
            canvas.saveState()
            canvas.translate(width / 2, height / 2)
            canvas.rotate(-15)
            canvas.setFillColor(PAID_GREEN)
            canvas.setFillAlpha(0.85)
            canvas.roundRect(-150, -40, 300, 80, 20, stroke=0, fill=1)
            canvas.setFillColor(colors.white)
            canvas.setFont("Helvetica-Bold", 48)
            canvas.drawCentredString(0, -16, "LUNAS")
            canvas.restoreState()

    return draw


def render_invoice_pdf(
    invoice: Invoice,
    *,
    business_name: str = "ADINA KAOS",
    watermark: bool = True,
    watermark_opacity: float = 0.1,
    payment_accounts: Sequence[str] = (),
) -> bytes:
    """Render ``invoice`` (saved or previewed) to an A4 PDF and return the bytes."""
    styles = _styles()
    buf = BytesIO()
    doc = SimpleDocTemplate(
        buf, pagesize=A4,
        leftMargin=40, rightMargin=40, topMargin=40, bottomMargin=40,
        title=f"Invoice {invoice.invoice_number}",
    )
    issued = parse_date(invoice.date)
    elems: list = [
        Paragraph(escape(business_name), styles["Brand"]),
        Paragraph(f"INVOICE {escape(invoice.invoice_number)}", styles["Heading2"]),
        Paragraph(f"Tanggal: {issued.strftime('%d/%m/%Y') if issued else escape(invoice.date)}", styles["Normal"]),
        Spacer(1, 12),
        Paragraph("<b>Kepada:</b>", styles["Normal"]),
        Paragraph(_text(invoice.customer, "Nama Pelanggan"), styles["Normal"]),
        Paragraph(_text(invoice.address, "Alamat Pelanggan"), styles["Normal"]),
        Paragraph(_text(invoice.phone, "No. Handphone"), styles["Normal"]),
        Spacer(1, 12),
        _items_table(invoice, styles),
        Spacer(1, 8),
        _totals_table(invoice, styles),
    ]
    if invoice.payments:
        elems += [Spacer(1, 12), Paragraph("Riwayat Pembayaran", styles["Heading4"]), _payments_table(invoice, styles)]
    if invoice.note:
        elems += [Spacer(1, 12), Paragraph("<b>Catatan:</b>", styles["Normal"]), Paragraph(escape(invoice.note), styles["Normal"])]
    elems.append(Spacer(1, 12))
    elems.extend(_payment_info(invoice, payment_accounts, styles))
    elems += [Spacer(1, 18), Paragraph("<b>TERIMA KASIH</b>", styles["Heading3"])]

    opacity = min(max(watermark_opacity, MIN_OPACITY), MAX_OPACITY)
    decorate = _decorate_page(business_name, watermark, opacity, invoice.payment_status is PaymentStatus.PAID)
    doc.build(elems, onFirstPage=decorate, onLaterPages=decorate)
    return buf.getvalue()
