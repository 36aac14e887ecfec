import uuid
from datetime import date, datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import structlog

from ..db import get_db
from ..auth.security import get_current_user, ensure_customer_scope, require_permissions
from ..models.models import (
    Customer,
    Job,
    EquipmentAssignment,
    MaintenanceReport,
    Quote,
    Invoice,
    ServiceRequest,
    User,
)
from ..schemas.billing import QuoteResponse, InvoiceResponse
from ..schemas.portal import (
    PortalUnit,
    PortalJob,
    PortalDashboard,
    ServiceHistoryEntry,
    ServiceRequestCreate,
    ServiceRequestUpdate,
    ServiceRequestResponse,
)


router = APIRouter(prefix="/portal", tags=["portal"])
log = structlog.get_logger()

CLOSED_JOB_STATUSES = ("completed", "cancelled")
OFF_SITE_ASSIGNMENT_STATUSES = ("returned", "cancelled")
OPEN_QUOTE_STATUSES = ("draft", "sent")
SETTLED_INVOICE_STATUSES = ("paid", "cancelled")


def _scoped_customer(db: Session, user: User, customer_id: uuid.UUID) -> Customer:
    ensure_customer_scope(user, customer_id)
    customer = db.query(Customer).filter(Customer.id == customer_id).first()
    if not customer:
        raise HTTPException(status_code=404, detail="Customer not found")
    return customer


def _active_assignments(db: Session, customer_id: uuid.UUID) -> List[EquipmentAssignment]:
    return (
        db.query(EquipmentAssignment)
        .join(Job, Job.id == EquipmentAssignment.job_id)
        .filter(
            Job.customer_id == customer_id,
            Job.status.notin_(CLOSED_JOB_STATUSES),
            EquipmentAssignment.status.notin_(OFF_SITE_ASSIGNMENT_STATUSES),
        )
        .order_by(EquipmentAssignment.assigned_date.asc())
        .all()
    )


def _unit(a: EquipmentAssignment) -> PortalUnit:
    product = a.product or (a.product_item.product if a.product_item else None)
    return PortalUnit(
        assignment_id=a.id,
        job_id=a.job_id,
        job_number=a.job.job_number,
        product_name=product.name if product else None,
        item_code=a.product_item.item_code if a.product_item else None,
        quantity=a.quantity or 1,
        assigned_date=a.assigned_date,
        return_date=a.return_date,
        status=a.status,
    )


@router.get("/customers/{customer_id}/dashboard", response_model=PortalDashboard)
def dashboard(customer_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    customer = _scoped_customer(db, user, customer_id)
    active_units = sum(a.quantity or 1 for a in _active_assignments(db, customer_id))
    upcoming = (
        db.query(Job)
        .filter(
            Job.customer_id == customer_id,
            Job.scheduled_date >= date.today(),
            Job.status.notin_(CLOSED_JOB_STATUSES),
        )
        .order_by(Job.scheduled_date.asc())
        .limit(10)
        .all()
    )
    open_quotes = (
        db.query(Quote)
        .filter(Quote.customer_id == customer_id, Quote.status.in_(OPEN_QUOTE_STATUSES))
        .count()
    )
    unpaid = (
        db.query(Invoice)
        .filter(Invoice.customer_id == customer_id, Invoice.status.notin_(SETTLED_INVOICE_STATUSES))
        .all()
    )
    return PortalDashboard(
        customer_id=customer.id,
        customer_name=customer.name,
        active_units=active_units,
        upcoming_jobs=[
            PortalJob(id=j.id, job_number=j.job_number, job_type=j.job_type, status=j.status, scheduled_date=j.scheduled_date)
            for j in upcoming
        ],
        open_quotes=open_quotes,
        outstanding_balance=round(sum(inv.balance_due for inv in unpaid), 2),
    )


@router.get("/customers/{customer_id}/units", response_model=List[PortalUnit])
def units(customer_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    _scoped_customer(db, user, customer_id)
    return [_unit(a) for a in _active_assignments(db, customer_id)]


@router.get("/customers/{customer_id}/history", response_model=List[ServiceHistoryEntry])
def service_history(customer_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    """Completed jobs, newest first, each with its maintenance reports"""
    _scoped_customer(db, user, customer_id)
    jobs = (
        db.query(Job)
        .filter(Job.customer_id == customer_id, Job.status == "completed")
        .order_by(Job.scheduled_date.desc())
        .all()
    )
    reports_by_job = {}
    if jobs:
        reports = (
            db.query(MaintenanceReport)
            .filter(MaintenanceReport.job_id.in_([j.id for j in jobs]))
            .order_by(MaintenanceReport.created_at.asc())
            .all()
        )
        for r in reports:
            reports_by_job.setdefault(r.job_id, []).append({
                "id": r.id,
                "report_number": r.report_number,
                "status": r.status,
                "completed_at": r.completed_at,
                "report_data": r.report_data,
            })
    return [
        ServiceHistoryEntry(
            id=j.id,
            job_number=j.job_number,
            job_type=j.job_type,
            status=j.status,
            scheduled_date=j.scheduled_date,
            completed_at=j.completed_at,
            reports=reports_by_job.get(j.id, []),
        )
        for j in jobs
    ]


@router.get("/customers/{customer_id}/quotes", response_model=List[QuoteResponse])
def customer_quotes(customer_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    _scoped_customer(db, user, customer_id)
    return db.query(Quote).filter(Quote.customer_id == customer_id).order_by(Quote.created_at.desc()).all()


@router.get("/customers/{customer_id}/invoices", response_model=List[InvoiceResponse])
def customer_invoices(customer_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    _scoped_customer(db, user, customer_id)
    return db.query(Invoice).filter(Invoice.customer_id == customer_id).order_by(Invoice.created_at.desc()).all()


# ---------- SERVICE REQUESTS ----------
@router.post("/customers/{customer_id}/service-requests", response_model=ServiceRequestResponse, status_code=201)
def submit_service_request(
    customer_id: uuid.UUID,
    payload: ServiceRequestCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    _scoped_customer(db, user, customer_id)
    row = ServiceRequest(
        customer_id=customer_id,
        request_type=payload.request_type,
        message=payload.message,
        preferred_date=payload.preferred_date,
        status="open",
        submitted_by=user.id,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    log.info("service_request_submitted", request_id=str(row.id), customer_id=str(customer_id), request_type=row.request_type)
    return row


@router.get("/customers/{customer_id}/service-requests", response_model=List[ServiceRequestResponse])
def customer_service_requests(customer_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    _scoped_customer(db, user, customer_id)
    return (
        db.query(ServiceRequest)
        .filter(ServiceRequest.customer_id == customer_id)
        .order_by(ServiceRequest.created_at.desc())
        .all()
    )


@router.get("/service-requests", response_model=List[ServiceRequestResponse])
def list_service_requests(
    status: Optional[str] = None,
    customer_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
    _=Depends(require_permissions("customers:read")),
):
    q = db.query(ServiceRequest)
    if status:
        q = q.filter(ServiceRequest.status == status)
    if customer_id:
        q = q.filter(ServiceRequest.customer_id == customer_id)
    return q.order_by(ServiceRequest.created_at.desc()).all()


@router.patch("/service-requests/{request_id}", response_model=ServiceRequestResponse)
def update_service_request(
    request_id: uuid.UUID,
    payload: ServiceRequestUpdate,
    db: Session = Depends(get_db),
    _=Depends(require_permissions("customers:write")),
):
    row = db.query(ServiceRequest).filter(ServiceRequest.id == request_id).first()
    if not row:
        raise HTTPException(status_code=404, detail="Service request not found")
    row.status = payload.status
    row.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(row)
    return row
