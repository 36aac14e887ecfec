import uuid
from datetime import datetime, date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
import structlog

from ..db import get_db
from ..auth.security import require_permissions
from ..models.models import Job, Customer, User, Vehicle, JobConsumable
from ..schemas.jobs import (
    JobCreate,
    JobUpdate,
    JobResponse,
    JobMove,
    AutoAssignRequest,
    AutoAssignResponse,
    SchedulerBoard,
    JobConsumablesRequest,
    JobConsumableResponse,
)
from ..services.numbering import next_job_number
from ..services.scheduling import build_board, move_job, auto_assign_drivers
from ..services.stock import record_job_consumables, StockError


router = APIRouter(prefix="/jobs", tags=["jobs"])
log = structlog.get_logger()


def _get_job(db: Session, job_id: uuid.UUID) -> Job:
    job = db.query(Job).filter(Job.id == job_id).first()
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


def _check_refs(db: Session, data: dict) -> None:
    if data.get("customer_id") and not db.query(Customer).filter(Customer.id == data["customer_id"]).first():
        raise HTTPException(status_code=404, detail="Customer not found")
    if data.get("driver_id"):
        driver = db.query(User).filter(User.id == data["driver_id"]).first()
        if not driver or not driver.is_driver:
            raise HTTPException(status_code=400, detail="Driver not found")
    if data.get("vehicle_id") and not db.query(Vehicle).filter(Vehicle.id == data["vehicle_id"]).first():
        raise HTTPException(status_code=404, detail="Vehicle not found")


@router.get("", response_model=List[JobResponse])
def list_jobs(
    day: Optional[date] = Query(None, alias="date"),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    status: Optional[str] = None,
    driver_id: Optional[uuid.UUID] = None,
    job_type: Optional[str] = None,
    customer_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
    _=Depends(require_permissions("jobs:read")),
):
    q = db.query(Job)
    if day:
        q = q.filter(Job.scheduled_date == day)
    if start_date:
        q = q.filter(Job.scheduled_date >= start_date)
    if end_date:
        q = q.filter(Job.scheduled_date <= end_date)
    if status:
        q = q.filter(Job.status == status)
    if driver_id:
        q = q.filter(Job.driver_id == driver_id)
    if job_type:
        q = q.filter(Job.job_type == job_type)
    if customer_id:
        q = q.filter(Job.customer_id == customer_id)
    return q.order_by(Job.scheduled_date.asc(), Job.scheduled_time.asc(), Job.job_number.asc()).all()


@router.post("", response_model=JobResponse, status_code=201)
def create_job(payload: JobCreate, db: Session = Depends(get_db), _=Depends(require_permissions("jobs:write"))):
    data = payload.dict(exclude_unset=True)
    _check_refs(db, data)
    if not data.get("status"):
        data["status"] = "assigned" if data.get("driver_id") else "unassigned"
    job = Job(job_number=next_job_number(db, data["job_type"]), **data)
    db.add(job)
    db.commit()
    db.refresh(job)
    log.info("job_created", job_id=str(job.id), job_number=job.job_number)
    return job


@router.get("/board", response_model=SchedulerBoard)
def scheduler_board(
    day: Optional[date] = Query(None, alias="date"),
    db: Session = Depends(get_db),
    _=Depends(require_permissions("jobs:read")),
):
    """Week board (Sunday..Saturday) with an Unassigned lane followed by one lane per driver"""
    return build_board(db, day or date.today())


@router.post("/auto-assign", response_model=AutoAssignResponse)
def auto_assign(payload: AutoAssignRequest, db: Session = Depends(get_db), _=Depends(require_permissions("jobs:write"))):
    if payload.start_date and payload.end_date and payload.end_date < payload.start_date:
        raise HTTPException(status_code=400, detail="End date must be on or after start date")
    assigned = auto_assign_drivers(db, payload.start_date, payload.end_date)
    db.commit()
    return {"assigned": assigned}


@router.get("/{job_id}", response_model=JobResponse)
def get_job(job_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permissions("jobs:read"))):
    return _get_job(db, job_id)


@router.patch("/{job_id}", response_model=JobResponse)
def update_job(job_id: uuid.UUID, payload: JobUpdate, db: Session = Depends(get_db), _=Depends(require_permissions("jobs:write"))):
    job = _get_job(db, job_id)
    data = payload.dict(exclude_unset=True)
    _check_refs(db, data)
    if "job_type" in data and data["job_type"] is None:
        raise HTTPException(status_code=400, detail="Job type is required")
    if "scheduled_date" in data and data["scheduled_date"] is None:
        raise HTTPException(status_code=400, detail="Scheduled date is required")
    for k, v in data.items():
        setattr(job, k, v)
    if data.get("status") == "completed" and not job.completed_at:
        job.completed_at = datetime.utcnow()
    elif "status" in data and data["status"] != "completed":
        job.completed_at = None
    job.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(job)
    return job


@router.delete("/{job_id}")
def delete_job(job_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permissions("jobs:write"))):
    job = db.query(Job).filter(Job.id == job_id).first()
    if job:
        db.delete(job)
        db.commit()
    return {"status": "ok"}


@router.patch("/{job_id}/move", response_model=JobResponse)
def move(job_id: uuid.UUID, payload: JobMove, db: Session = Depends(get_db), _=Depends(require_permissions("jobs:write"))):
    """Drag and drop on the scheduler board: only the date and driver change"""
    job = _get_job(db, job_id)
    try:
        move_job(db, job, payload.scheduled_date, payload.driver_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    db.commit()
    db.refresh(job)
    return job


# ----- Consumables used on a job -----
@router.get("/{job_id}/consumables", response_model=List[JobConsumableResponse])
def list_job_consumables(job_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permissions("jobs:read"))):
    _get_job(db, job_id)
    return db.query(JobConsumable).filter(JobConsumable.job_id == job_id).order_by(JobConsumable.created_at.asc()).all()


@router.post("/{job_id}/consumables", response_model=List[JobConsumableResponse], status_code=201)
def add_job_consumables(
    job_id: uuid.UUID,
    payload: JobConsumablesRequest,
    db: Session = Depends(get_db),
    user=Depends(require_permissions("jobs:write")),
):
    job = _get_job(db, job_id)
    try:
        lines = record_job_consumables(
            db,
            job,
            payload.billing_method,
            items=[i.dict() for i in payload.items],
            bundle_id=payload.bundle_id,
            user_id=user.id,
        )
    except StockError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))
    db.commit()
    for line in lines:
        db.refresh(line)
    return lines
