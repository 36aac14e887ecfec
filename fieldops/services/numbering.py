"""
Document numbering backed by the company settings row.
"""
from sqlalchemy.orm import Session

from ..models.models import CompanySettings


# job_type -> (prefix column, counter column)
JOB_SEQUENCES = {
    "delivery": ("delivery_prefix", "next_delivery_number"),
    "pickup": ("pickup_prefix", "next_pickup_number"),
    "partial-pickup": ("pickup_prefix", "next_pickup_number"),
    "service": ("service_prefix", "next_service_number"),
    "on-site-survey": ("survey_prefix", "next_survey_number"),
}
DEFAULT_JOB_SEQUENCE = ("job_prefix", "next_job_number")


def get_company_settings(db: Session) -> CompanySettings:
    row = db.query(CompanySettings).first()
    if not row:
        row = CompanySettings(
            delivery_prefix="DEL", next_delivery_number=1,
            pickup_prefix="PKP", next_pickup_number=1,
            service_prefix="SVC", next_service_number=1,
            survey_prefix="SURVEY", next_survey_number=1,
            job_prefix="JOB", next_job_number=1,
            quote_prefix="Q", next_quote_number=1,
            invoice_prefix="INV", next_invoice_number=1,
        )
        db.add(row)
        db.flush()
    return row


def _take(row: CompanySettings, prefix_attr: str, counter_attr: str, width: int) -> str:
    prefix = getattr(row, prefix_attr)
    n = getattr(row, counter_attr) or 1
    setattr(row, counter_attr, n + 1)
    return f"{prefix}-{str(n).zfill(width)}"


def next_job_number(db: Session, job_type: str) -> str:
    """Reserve the next number for a job type (partial pickups share the pickup sequence)."""
    row = get_company_settings(db)
    prefix_attr, counter_attr = JOB_SEQUENCES.get(job_type, DEFAULT_JOB_SEQUENCE)
    return _take(row, prefix_attr, counter_attr, 3)


def next_quote_number(db: Session) -> str:
    return _take(get_company_settings(db), "quote_prefix", "next_quote_number", 4)


def next_invoice_number(db: Session) -> str:
    return _take(get_company_settings(db), "invoice_prefix", "next_invoice_number", 4)


def peek_number(db: Session, kind: str) -> str:
    """Next quote/invoice number without advancing the sequence."""
    row = get_company_settings(db)
    if kind == "quote":
        return f"{row.quote_prefix}-{str(row.next_quote_number or 1).zfill(4)}"
    return f"{row.invoice_prefix}-{str(row.next_invoice_number or 1).zfill(4)}"
