import uuid
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from sqlalchemy.orm import Session
import structlog

from ..config import settings
from ..db import get_db
from ..auth.security import require_permissions
from ..models.models import Quote, QuoteItem, Invoice, InvoiceItem, Customer, Job
from ..schemas.billing import (
    QuoteCreate,
    QuoteUpdate,
    QuoteResponse,
    InvoiceCreate,
    InvoiceUpdate,
    InvoiceResponse,
    PaymentCreate,
    NextNumberResponse,
    QuickBooksExportRequest,
)
from ..services.numbering import get_company_settings, next_quote_number, next_invoice_number, peek_number
from ..services.quickbooks import build_iif, export_filename, query_records


router = APIRouter(prefix="/billing", tags=["billing"])
log = structlog.get_logger()


def _money(value: float) -> float:
    return round(float(value or 0), 2)


def _tax_rate(db: Session, requested: Optional[float]) -> float:
    if requested is not None:
        return requested
    company = get_company_settings(db)
    if company.tax_rate is not None:
        return company.tax_rate
    return settings.default_tax_rate


def _apply_items(doc, item_model, items: list, tax_rate: float) -> None:
    """Replace the document's line items and recompute subtotal, tax and total"""
    doc.items = []
    subtotal = 0.0
    for it in items:
        line_total = _money(it["quantity"] * it["unit_price"])
        subtotal += line_total
        doc.items.append(item_model(
            product_id=it.get("product_id"),
            product_name=it["product_name"],
            description=it.get("description"),
            quantity=it["quantity"],
            unit_price=it["unit_price"],
            line_total=line_total,
        ))
    doc.tax_rate = tax_rate
    doc.subtotal = _money(subtotal)
    doc.tax_amount = _money(doc.subtotal * tax_rate)
    doc.total_amount = _money(doc.subtotal + doc.tax_amount)


def _current_rate(db: Session, doc) -> float:
    # Rows saved before the rate was stored fall back to the company rate
    if doc.tax_rate is not None:
        return doc.tax_rate
    return _tax_rate(db, None)


def _require_customer(db: Session, customer_id: uuid.UUID) -> None:
    if not db.query(Customer).filter(Customer.id == customer_id).first():
        raise HTTPException(status_code=404, detail="Customer not found")


@router.get("/next-number", response_model=NextNumberResponse)
def next_number(kind: str = "quote", db: Session = Depends(get_db), _=Depends(require_permissions("billing:read"))):
    if kind not in ("quote", "invoice"):
        raise HTTPException(status_code=400, detail="kind must be 'quote' or 'invoice'")
    number = peek_number(db, kind)
    db.commit()
    return {"number": number}


# ---------- QUOTES ----------
def _get_quote(db: Session, quote_id: uuid.UUID) -> Quote:
    row = db.query(Quote).filter(Quote.id == quote_id).first()
    if not row:
        raise HTTPException(status_code=404, detail="Quote not found")
    return row


@router.get("/quotes", response_model=List[QuoteResponse])
def list_quotes(
    customer_id: Optional[uuid.UUID] = None,
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    _=Depends(require_permissions("billing:read")),
):
    q = db.query(Quote)
    if customer_id:
        q = q.filter(Quote.customer_id == customer_id)
    if status:
        q = q.filter(Quote.status == status)
    return q.order_by(Quote.created_at.desc()).all()


@router.post("/quotes", response_model=QuoteResponse, status_code=201)
def create_quote(payload: QuoteCreate, db: Session = Depends(get_db), _=Depends(require_permissions("billing:write"))):
    _require_customer(db, payload.customer_id)
    row = Quote(
        quote_number=next_quote_number(db),
        customer_id=payload.customer_id,
        status=payload.status,
        expiration_date=payload.expiration_date,
        notes=payload.notes,
    )
    _apply_items(row, QuoteItem, [i.dict() for i in payload.items], _tax_rate(db, payload.tax_rate))
    db.add(row)
    db.commit()
    db.refresh(row)
    log.info("quote_created", quote_id=str(row.id), quote_number=row.quote_number, total=row.total_amount)
    return row


@router.get("/quotes/{quote_id}", response_model=QuoteResponse)
def get_quote(quote_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permissions("billing:read"))):
    return _get_quote(db, quote_id)


@router.patch("/quotes/{quote_id}", response_model=QuoteResponse)
def update_quote(quote_id: uuid.UUID, payload: QuoteUpdate, db: Session = Depends(get_db), _=Depends(require_permissions("billing:write"))):
    row = _get_quote(db, quote_id)
    data = payload.dict(exclude_unset=True)
    items = data.pop("items", None)
    tax_rate = data.pop("tax_rate", None)
    for k, v in data.items():
        setattr(row, k, v)
    if items is not None or tax_rate is not None:
        if items is None:
            items = [
                {"product_id": i.product_id, "product_name": i.product_name, "description": i.description,
                 "quantity": i.quantity, "unit_price": i.unit_price}
                for i in row.items
            ]
        _apply_items(row, QuoteItem, items, tax_rate if tax_rate is not None else _current_rate(db, row))
    row.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(row)
    return row


@router.delete("/quotes/{quote_id}")
def delete_quote(quote_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permissions("billing:write"))):
    row = db.query(Quote).filter(Quote.id == quote_id).first()
    if row:
        db.query(Invoice).filter(Invoice.quote_id == row.id).update({Invoice.quote_id: None}, synchronize_session=False)
        db.delete(row)
        db.commit()
    return {"status": "ok"}


@router.post("/quotes/{quote_id}/invoice", response_model=InvoiceResponse, status_code=201)
def invoice_from_quote(quote_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permissions("billing:write"))):
    """Create an invoice carrying the quote's customer, notes and line items; the quote becomes accepted"""
    quote = _get_quote(db, quote_id)
    company = get_company_settings(db)
    terms = company.payment_terms_days if company.payment_terms_days is not None else settings.payment_terms_days
    invoice = Invoice(
        invoice_number=next_invoice_number(db),
        customer_id=quote.customer_id,
        quote_id=quote.id,
        status="draft",
        due_date=date.today() + timedelta(days=terms),
        notes=quote.notes,
        amount_paid=0,
    )
    for it in quote.items:
        invoice.items.append(InvoiceItem(
            product_id=it.product_id,
            product_name=it.product_name,
            description=it.description,
            quantity=it.quantity,
            unit_price=it.unit_price,
            line_total=it.line_total,
        ))
    invoice.subtotal = quote.subtotal
    invoice.tax_rate = quote.tax_rate
    invoice.tax_amount = quote.tax_amount
    invoice.total_amount = quote.total_amount
    quote.status = "accepted"
    quote.updated_at = datetime.now(timezone.utc)
    db.add(invoice)
    db.commit()
    db.refresh(invoice)
    log.info("invoice_from_quote", quote_id=str(quote.id), invoice_number=invoice.invoice_number)
    return invoice


# ---------- INVOICES ----------
def _get_invoice(db: Session, invoice_id: uuid.UUID) -> Invoice:
    row = db.query(Invoice).filter(Invoice.id == invoice_id).first()
    if not row:
        raise HTTPException(status_code=404, detail="Invoice not found")
    return row


@router.get("/invoices", response_model=List[InvoiceResponse])
def list_invoices(
    customer_id: Optional[uuid.UUID] = None,
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    _=Depends(require_permissions("billing:read")),
):
    q = db.query(Invoice)
    if customer_id:
        q = q.filter(Invoice.customer_id == customer_id)
    if status:
        q = q.filter(Invoice.status == status)
    return q.order_by(Invoice.created_at.desc()).all()


@router.post("/invoices", response_model=InvoiceResponse, status_code=201)
def create_invoice(payload: InvoiceCreate, db: Session = Depends(get_db), _=Depends(require_permissions("billing:write"))):
    _require_customer(db, payload.customer_id)
    if payload.job_id and not db.query(Job).filter(Job.id == payload.job_id).first():
        raise HTTPException(status_code=404, detail="Job not found")
    due_date = payload.due_date
    if due_date is None:
        company = get_company_settings(db)
        terms = company.payment_terms_days if company.payment_terms_days is not None else settings.payment_terms_days
        due_date = date.today() + timedelta(days=terms)
    row = Invoice(
        invoice_number=next_invoice_number(db),
        customer_id=payload.customer_id,
        job_id=payload.job_id,
        status=payload.status,
        due_date=due_date,
        notes=payload.notes,
        amount_paid=0,
    )
    _apply_items(row, InvoiceItem, [i.dict() for i in payload.items], _tax_rate(db, payload.tax_rate))
    db.add(row)
    db.commit()
    db.refresh(row)
    log.info("invoice_created", invoice_id=str(row.id), invoice_number=row.invoice_number, total=row.total_amount)
    return row


@router.get("/invoices/{invoice_id}", response_model=InvoiceResponse)
def get_invoice(invoice_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permissions("billing:read"))):
    return _get_invoice(db, invoice_id)


@router.patch("/invoices/{invoice_id}", response_model=InvoiceResponse)
def update_invoice(invoice_id: uuid.UUID, payload: InvoiceUpdate, db: Session = Depends(get_db), _=Depends(require_permissions("billing:write"))):
    row = _get_invoice(db, invoice_id)
    data = payload.dict(exclude_unset=True)
    items = data.pop("items", None)
    tax_rate = data.pop("tax_rate", None)
    for k, v in data.items():
        setattr(row, k, v)
    if items is not None or tax_rate is not None:
        if items is None:
            items = [
                {"product_id": i.product_id, "product_name": i.product_name, "description": i.description,
                 "quantity": i.quantity, "unit_price": i.unit_price}
                for i in row.items
            ]
        _apply_items(row, InvoiceItem, items, tax_rate if tax_rate is not None else _current_rate(db, row))
    row.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(row)
    return row


@router.delete("/invoices/{invoice_id}")
def delete_invoice(invoice_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permissions("billing:write"))):
    row = db.query(Invoice).filter(Invoice.id == invoice_id).first()
    if row:
        db.delete(row)
        db.commit()
    return {"status": "ok"}


@router.post("/invoices/{invoice_id}/payments", response_model=InvoiceResponse)
def record_payment(invoice_id: uuid.UUID, payload: PaymentCreate, db: Session = Depends(get_db), _=Depends(require_permissions("billing:write"))):
    row = _get_invoice(db, invoice_id)
    if row.status == "cancelled":
        raise HTTPException(status_code=400, detail="Cannot record a payment on a cancelled invoice")
    row.amount_paid = _money((row.amount_paid or 0) + payload.amount)
    if row.amount_paid >= (row.total_amount or 0):
        row.status = "paid"
    row.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(row)
    log.info("payment_recorded", invoice_id=str(row.id), amount=payload.amount, status=row.status)
    return row


# ---------- EXPORT ----------
@router.post("/export/quickbooks")
def export_quickbooks(payload: QuickBooksExportRequest, db: Session = Depends(get_db), _=Depends(require_permissions("billing:read"))):
    """Download quotes or invoices as a QuickBooks IIF file"""
    if payload.date_from and payload.date_to and payload.date_to < payload.date_from:
        raise HTTPException(status_code=400, detail="date_to must be on or after date_from")
    export_type = payload.export_type
    records = query_records(db, export_type, payload.date_from, payload.date_to, payload.status)
    content = build_iif(
        records,
        export_type,
        include_line_items=payload.include_line_items,
        include_customer_info=payload.include_customer_info,
    )
    filename = export_filename(export_type)
    log.info("quickbooks_export", export_type=export_type, records=len(records))
    return Response(
        content=content,
        media_type="text/plain",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
