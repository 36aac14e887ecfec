"""
Scheduler board and driver assignment.
"""
from collections import Counter
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple
import uuid

import structlog
from sqlalchemy.orm import Session

from ..models.models import Job, User


log = structlog.get_logger()

OPEN_STATUSES = ("unassigned", "assigned")
UNASSIGNED_LANE = "Unassigned"


def week_bounds(anchor: date) -> Tuple[date, date]:
    """Sunday..Saturday week containing anchor."""
    # weekday(): Monday=0 .. Sunday=6
    start = anchor - timedelta(days=(anchor.weekday() + 1) % 7)
    return start, start + timedelta(days=6)


def active_drivers(db: Session) -> List[User]:
    drivers = db.query(User).filter(User.is_driver == True, User.is_active == True).all()
    return sorted(drivers, key=lambda u: (u.display_name or "").lower())


def build_board(db: Session, anchor: date) -> Dict[str, Any]:
    start, end = week_bounds(anchor)
    jobs = (
        db.query(Job)
        .filter(Job.scheduled_date >= start, Job.scheduled_date <= end, Job.status != "cancelled")
        .order_by(Job.scheduled_date.asc(), Job.scheduled_time.asc(), Job.job_number.asc())
        .all()
    )
    drivers = active_drivers(db)
    driver_names = {d.id: d.display_name for d in drivers}
    # Include drivers that still own jobs even if they were deactivated since
    for j in jobs:
        if j.driver_id and j.driver_id not in driver_names and j.driver is not None:
            driver_names[j.driver_id] = j.driver.display_name

    days = []
    current = start
    while current <= end:
        todays = [j for j in jobs if j.scheduled_date == current]
        lanes = [{"driver_id": None, "driver_name": UNASSIGNED_LANE, "jobs": []}]
        lane_index: Dict[Optional[uuid.UUID], int] = {None: 0}
        for driver_id, name in driver_names.items():
            lane_index[driver_id] = len(lanes)
            lanes.append({"driver_id": driver_id, "driver_name": name, "jobs": []})
        for j in todays:
            lanes[lane_index.get(j.driver_id, 0)]["jobs"].append({
                "id": j.id,
                "job_number": j.job_number,
                "job_type": j.job_type,
                "status": j.status,
                "customer_id": j.customer_id,
                "customer_name": j.customer.name if j.customer else None,
                "scheduled_time": j.scheduled_time,
            })
        days.append({"date": current, "lanes": lanes})
        current += timedelta(days=1)
    return {"week_start": start, "week_end": end, "days": days}


def move_job(db: Session, job: Job, scheduled_date: date, driver_id: Optional[uuid.UUID]) -> Job:
    """Drop a job on a board cell; only the date and driver change."""
    if driver_id is not None:
        driver = db.query(User).filter(User.id == driver_id).first()
        if not driver or not driver.is_driver:
            raise ValueError("Driver not found")
    job.scheduled_date = scheduled_date
    job.driver_id = driver_id
    job.updated_at = datetime.utcnow()
    db.flush()
    return job


def auto_assign_drivers(db: Session, start: Optional[date] = None, end: Optional[date] = None) -> int:
    """
    Give every open job without a driver the active driver with the fewest
    jobs that day; ties go to the alphabetically first name.
    """
    drivers = active_drivers(db)
    if not drivers:
        return 0

    query = db.query(Job).filter(Job.driver_id == None, Job.status.in_(OPEN_STATUSES))
    if start:
        query = query.filter(Job.scheduled_date >= start)
    if end:
        query = query.filter(Job.scheduled_date <= end)
    pending = query.order_by(Job.scheduled_date.asc(), Job.scheduled_time.asc(), Job.job_number.asc()).all()
    if not pending:
        return 0

    dates = {j.scheduled_date for j in pending}
    load: Dict[date, Counter] = {d: Counter() for d in dates}
    existing = (
        db.query(Job.scheduled_date, Job.driver_id)
        .filter(Job.scheduled_date.in_(list(dates)), Job.driver_id != None, Job.status != "cancelled")
        .all()
    )
    for d, driver_id in existing:
        load[d][driver_id] += 1

    assigned = 0
    for job in pending:
        counts = load[job.scheduled_date]
        chosen = min(drivers, key=lambda u: (counts[u.id], (u.display_name or "").lower()))
        job.driver_id = chosen.id
        job.status = "assigned"
        job.updated_at = datetime.utcnow()
        counts[chosen.id] += 1
        assigned += 1
    db.flush()
    log.info("jobs_auto_assigned", assigned=assigned)
    return assigned
