"""FastAPI application exposing the invoicing endpoints."""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional
from urllib.parse import quote

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from .catalog import DEFAULT_CATALOG
from .config import configure_logging, get_settings
from .errors import InvoiceError, PersistenceFailure
from .render import render_invoice_pdf
from .schemas import (
    CreateInvoiceResponse,
    ErrorResponse,
    HistoryResponse,
    Invoice,
    InvoiceDraft,
    InvoiceListResponse,
    InvoiceResponse,
    PaymentUpdateRequest,
    PaymentUpdateResponse,
)
from .storage import build_storage
from .store import InvoiceStore

logger = logging.getLogger(__name__)

configure_logging(get_settings().log_level)

app = FastAPI(title="Invoice Book", version="0.1.0")

# Add CORS middleware to allow browser requests
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Allow all origins for development
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@lru_cache
def get_store() -> InvoiceStore:
    return InvoiceStore(build_storage(get_settings()))


def _error_response(status_code: int, body: ErrorResponse) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json", by_alias=True))


@app.exception_handler(InvoiceError)
async def invoice_error_handler(request: Request, exc: InvoiceError) -> JSONResponse:
    body = ErrorResponse(message=exc.message, errors=getattr(exc, "errors", []))
    if isinstance(exc, PersistenceFailure):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        if not get_settings().is_production and exc.cause is not None:
            body.detail = repr(exc.cause)
    return _error_response(exc.status_code, body)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        "invalid_field: " + (".".join(str(part) for part in err["loc"] if part != "body") or "body")
        for err in exc.errors()
    ]
    return _error_response(400, ErrorResponse(message="Invalid request data: " + ", ".join(errors), errors=errors))


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    body = ErrorResponse(message="Failed to process request")
    if not get_settings().is_production:
        body.detail = repr(exc)
    return _error_response(500, body)


def _pdf_response(invoice: Invoice, inline: bool = False) -> Response:
    settings = get_settings()
    pdf = render_invoice_pdf(
        invoice,
        business_name=settings.business_name,
        watermark=settings.watermark,
        watermark_opacity=settings.watermark_opacity,
        payment_accounts=settings.payment_accounts,
    )
    filename = f"Invoice-{invoice.invoice_number.replace('/', '-')}.pdf"
    fallback = filename.encode("ascii", "replace").decode("ascii").replace('"', "")
    disposition = "inline" if inline else "attachment"
    headers = {"Content-Disposition": f"{disposition}; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"}
    return Response(content=pdf, media_type="application/pdf", headers=headers)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/catalog")
def catalog() -> dict:
    return DEFAULT_CATALOG.as_dict()


@app.post("/invoices", response_model=CreateInvoiceResponse)
def create_invoice(draft: InvoiceDraft, store: InvoiceStore = Depends(get_store)):
    invoice = store.create(draft)
    return CreateInvoiceResponse(
        message=f"Invoice {invoice.invoice_number} saved successfully",
        invoice_number=invoice.invoice_number,
        grand_total=invoice.grand_total,
        payment_status=invoice.payment_status,
        remaining_amount=invoice.remaining_amount,
    )


@app.post("/invoices/preview.pdf")
def preview_invoice_pdf(draft: InvoiceDraft, store: InvoiceStore = Depends(get_store)):
    return _pdf_response(store.preview(draft), inline=True)


@app.get("/invoices", response_model=InvoiceListResponse)
def list_invoices(
    include_history: bool = Query(False, alias="includeHistory"),
    search: Optional[str] = Query(None, description="Case-insensitive match on invoice number or customer"),
    store: InvoiceStore = Depends(get_store),
):
    if include_history:
        entries = store.list_all_versions(search)
        return InvoiceListResponse(message=f"{len(entries)} versions", invoices=entries, total_records=len(entries))
    entries = store.list_active(search)
    total = len(store.list_all_versions(search))
    return InvoiceListResponse(
        message=f"{len(entries)} invoices",
        invoices=entries,
        total_records=total,
        active_records=len(entries),
    )


@app.put("/invoices/payment", response_model=PaymentUpdateResponse)
def update_payment(request: PaymentUpdateRequest, store: InvoiceStore = Depends(get_store)):
    invoice = store.apply_payment(
        request.invoice_number,
        request.payment_amount,
        method=request.payment_method,
        note=request.payment_note,
    )
    return PaymentUpdateResponse(
        message=f"Payment recorded for {invoice.invoice_number}",
        invoice_number=invoice.invoice_number,
        payment_status=invoice.payment_status,
        paid_amount=invoice.paid_amount,
        remaining_amount=invoice.remaining_amount,
    )


@app.get("/invoices/{invoice_number:path}/history", response_model=HistoryResponse)
def invoice_history(invoice_number: str, store: InvoiceStore = Depends(get_store)):
    versions = store.history(invoice_number)
    return HistoryResponse(message=f"{len(versions)} versions", invoice_number=invoice_number, versions=versions)


@app.get("/invoices/{invoice_number:path}/pdf")
def invoice_pdf(invoice_number: str, store: InvoiceStore = Depends(get_store)):
    return _pdf_response(store.get_by_number(invoice_number))


# Registered last: invoice numbers may contain "/", so this route would
# otherwise swallow the /history and /pdf suffixes.
@app.get("/invoices/{invoice_number:path}", response_model=InvoiceResponse)
def get_invoice(invoice_number: str, store: InvoiceStore = Depends(get_store)):
    return InvoiceResponse(message="Invoice found", invoice=store.get_by_number(invoice_number))
