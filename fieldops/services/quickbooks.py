"""
QuickBooks IIF export for quotes and invoices.

Output layout:
    !HDR / HDR                 file header
    !CUST / CUST ...           optional customer list (unique by name)
    !TRNS / !SPL / !ENDTRNS    column definitions
    TRNS, SPL..., ENDTRNS      one block per record
"""
from datetime import date, datetime
from typing import Any, Iterable, List, Optional

from sqlalchemy.orm import Session

from ..models.models import Quote, Invoice


HDR_COLUMNS = ["PROD", "VER", "REL", "IIFVER", "DATE", "TIME", "ACCNTNT", "ACCNTNTR"]
CUST_COLUMNS = ["NAME", "BADDR1", "PHONE1", "EMAIL", "CONT1", "CTYPE", "TAXABLE"]
TRNS_COLUMNS = ["TRNSID", "TRNSTYPE", "DATE", "ACCNT", "NAME", "AMOUNT", "DOCNUM", "MEMO", "CLEAR", "TOPRINT", "NAMEISTAXABLE", "DUEDATE"]
SPL_COLUMNS = ["SPLID", "TRNSTYPE", "DATE", "ACCNT", "NAME", "AMOUNT", "DOCNUM", "MEMO", "CLEAR", "QNTY", "PRICE", "INVITEM", "TAXABLE"]

RECEIVABLE_ACCOUNT = "Accounts Receivable"
ESTIMATE_ACCOUNT = "Estimates"
INCOME_ACCOUNT = "Income"


def clean(value: Any) -> str:
    """IIF is tab separated and line oriented: tabs/newlines inside a value become spaces."""
    if value is None:
        return ""
    text = str(value)
    for ch in ("\r\n", "\n", "\r", "\t"):
        text = text.replace(ch, " ")
    return text


def fmt_date(value: Optional[Any]) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        value = value.date()
    return value.strftime("%m/%d/%Y")


def fmt_amount(value: Optional[float]) -> str:
    return f"{float(value or 0):.2f}"


def _row(tag: str, values: Iterable[Any]) -> str:
    return "\t".join([tag] + [clean(v) for v in values])


def _header(tag: str, columns: List[str]) -> str:
    return "\t".join([f"!{tag}"] + columns)


def _record_number(record: Any, export_type: str) -> str:
    if export_type == "quotes":
        return getattr(record, "quote_number", "") or ""
    return getattr(record, "invoice_number", "") or ""


def _customer_block(records: List[Any]) -> List[str]:
    lines = [_header("CUST", CUST_COLUMNS)]
    seen = set()
    for record in records:
        customer = getattr(record, "customer", None)
        if customer is None or not customer.name or customer.name in seen:
            continue
        seen.add(customer.name)
        lines.append(_row("CUST", [
            customer.name,
            getattr(customer, "address", None) or "",
            customer.phone or "",
            customer.email or "",
            customer.name,
            "CUSTOMER",
            "Y",
        ]))
    return lines


def _transaction_block(record: Any, export_type: str, include_line_items: bool) -> List[str]:
    is_quote = export_type == "quotes"
    trns_type = "ESTIMATE" if is_quote else "INVOICE"
    account = ESTIMATE_ACCOUNT if is_quote else RECEIVABLE_ACCOUNT
    txn_date = fmt_date(record.created_at)
    docnum = _record_number(record, export_type)
    customer = getattr(record, "customer", None)
    customer_name = customer.name if customer is not None else ""
    due = record.expiration_date if is_quote else getattr(record, "due_date", None)
    total = float(record.total_amount or 0)

    lines = [_row("TRNS", [
        "",
        trns_type,
        txn_date,
        account,
        customer_name,
        fmt_amount(total),
        docnum,
        record.notes or "",
        "N",
        "N",
        "Y",
        fmt_date(due),
    ])]

    items = list(getattr(record, "items", None) or [])
    if include_line_items and items:
        for idx, item in enumerate(items, start=1):
            lines.append(_row("SPL", [
                idx,
                trns_type,
                txn_date,
                INCOME_ACCOUNT,
                customer_name,
                fmt_amount(-(item.line_total or 0)),
                docnum,
                item.description or item.product_name,
                "N",
                -(item.quantity or 1),
                fmt_amount(item.unit_price),
                item.product_name,
                "Y",
            ]))
    else:
        lines.append(_row("SPL", [
            1,
            trns_type,
            txn_date,
            INCOME_ACCOUNT,
            customer_name,
            fmt_amount(-total),
            docnum,
            "Services",
            "N",
            -1,
            fmt_amount(total),
            "Services",
            "Y",
        ]))
    lines.append("ENDTRNS")
    return lines


def build_iif(
    records: List[Any],
    export_type: str,
    include_line_items: bool = True,
    include_customer_info: bool = True,
    generated_at: Optional[datetime] = None,
) -> str:
    """
    Render quotes or invoices as an IIF document.

    Args:
        records: Quote or Invoice rows (with customer and items loaded)
        export_type: "quotes" or "invoices"
        include_line_items: One SPL per line item; otherwise a single summary SPL
        include_customer_info: Emit the CUST list before the transactions
        generated_at: Timestamp written in the header row

    Returns:
        The IIF text; empty string when there are no records
    """
    if not records:
        return ""
    generated_at = generated_at or datetime.utcnow()

    lines = [
        _header("HDR", HDR_COLUMNS),
        _row("HDR", ["QuickBooks Pro", "Version 33.0", "Release R1", "1", fmt_date(generated_at), int(generated_at.timestamp()), "N", "0"]),
    ]
    if include_customer_info:
        lines.extend(_customer_block(records))
    lines.append(_header("TRNS", TRNS_COLUMNS))
    lines.append(_header("SPL", SPL_COLUMNS))
    lines.append("!ENDTRNS")
    for record in records:
        lines.extend(_transaction_block(record, export_type, include_line_items))
    return "\r\n".join(lines) + "\r\n"


def export_filename(export_type: str, today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"{export_type}_quickbooks_export_{today.strftime('%Y-%m-%d')}.iif"


def query_records(
    db: Session,
    export_type: str,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    status: str = "all",
) -> List[Any]:
    model = Quote if export_type == "quotes" else Invoice
    query = db.query(model)
    if date_from:
        query = query.filter(model.created_at >= datetime.combine(date_from, datetime.min.time()))
    if date_to:
        query = query.filter(model.created_at <= datetime.combine(date_to, datetime.max.time()))
    if status and status != "all":
        query = query.filter(model.status == status)
    return query.order_by(model.created_at.asc()).all()
