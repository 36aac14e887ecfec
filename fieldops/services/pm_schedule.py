"""
Preventive maintenance due checks.

A PM template carries default triggers ({miles, hours, days, job_count,
pump_hours}). Each trigger is measured from the vehicle's last completed
service on that template; a template is due as soon as one measured trigger
reaches its interval.
"""
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..models.models import Job, PMTemplate, Vehicle, VehicleMaintenanceRecord


TRIGGER_KEYS = ("miles", "hours", "days", "job_count", "pump_hours")
# no meter readings are kept for these yet
UNMETERED_TRIGGERS = {"hours", "pump_hours"}


def parse_triggers(raw: Optional[Dict[str, Any]]) -> Dict[str, float]:
    """Positive numeric intervals only; the template builder saves blanks and strings."""
    out: Dict[str, float] = {}
    for key in TRIGGER_KEYS:
        value = (raw or {}).get(key)
        if value is None or value == "":
            continue
        try:
            interval = float(value)
        except (TypeError, ValueError):
            continue
        if interval > 0:
            out[key] = interval
    return out


def last_completed(db: Session, vehicle_id, template_id) -> Optional[VehicleMaintenanceRecord]:
    return (
        db.query(VehicleMaintenanceRecord)
        .filter(
            VehicleMaintenanceRecord.vehicle_id == vehicle_id,
            VehicleMaintenanceRecord.pm_template_id == template_id,
            VehicleMaintenanceRecord.status == "completed",
        )
        .order_by(VehicleMaintenanceRecord.completed_date.desc(), VehicleMaintenanceRecord.created_at.desc())
        .first()
    )


def _completed_jobs_since(db: Session, vehicle_id, since: Optional[date]) -> int:
    q = db.query(Job).filter(Job.vehicle_id == vehicle_id, Job.status == "completed")
    if since is not None:
        q = q.filter(Job.scheduled_date > since)
    return q.count()


def evaluate_template(
    db: Session,
    vehicle: Vehicle,
    template: PMTemplate,
    as_of: Optional[date] = None,
) -> Dict[str, Any]:
    as_of = as_of or date.today()
    last = last_completed(db, vehicle.id, template.id)
    last_date = last.completed_date if last else None
    last_odometer = last.odometer if last else None

    checks: List[Dict[str, Any]] = []
    next_due_date = None
    next_due_odometer = None
    for key, interval in parse_triggers(template.default_triggers).items():
        check = {"trigger": key, "interval": interval, "since_service": None, "tracked": True, "due": False}
        if key in UNMETERED_TRIGGERS:
            check["tracked"] = False
        elif key == "miles":
            if vehicle.odometer is None:
                check["tracked"] = False
            else:
                baseline = last_odometer or 0
                next_due_odometer = int(baseline + interval)
                check["since_service"] = vehicle.odometer - baseline
                check["due"] = vehicle.odometer >= next_due_odometer
        elif key == "days":
            if last_date is None:
                # never serviced on this template
                check["due"] = True
            else:
                next_due_date = last_date + timedelta(days=int(interval))
                check["since_service"] = (as_of - last_date).days
                check["due"] = as_of >= next_due_date
        elif key == "job_count":
            done = _completed_jobs_since(db, vehicle.id, last_date)
            check["since_service"] = done
            check["due"] = done >= interval
        checks.append(check)

    return {
        "vehicle_id": vehicle.id,
        "license_plate": vehicle.license_plate,
        "pm_template_id": template.id,
        "template_name": template.name,
        "last_service_date": last_date,
        "last_service_odometer": last_odometer,
        "next_due_date": next_due_date,
        "next_due_odometer": next_due_odometer,
        "triggers": checks,
        "due": any(c["due"] for c in checks),
    }


def templates_for_vehicle(db: Session, vehicle: Vehicle) -> List[PMTemplate]:
    """Templates of the vehicle's type plus any template already used on its records."""
    used_ids = {
        r.pm_template_id
        for r in db.query(VehicleMaintenanceRecord.pm_template_id)
        .filter(VehicleMaintenanceRecord.vehicle_id == vehicle.id, VehicleMaintenanceRecord.pm_template_id != None)
        .all()
    }
    q = db.query(PMTemplate)
    if used_ids:
        q = q.filter((PMTemplate.category == vehicle.vehicle_type) | (PMTemplate.id.in_(list(used_ids))))
    else:
        q = q.filter(PMTemplate.category == vehicle.vehicle_type)
    return q.order_by(PMTemplate.name.asc()).all()


def vehicle_pm_status(db: Session, vehicle: Vehicle, as_of: Optional[date] = None) -> List[Dict[str, Any]]:
    return [evaluate_template(db, vehicle, t, as_of) for t in templates_for_vehicle(db, vehicle)]


def fleet_pm_due(db: Session, as_of: Optional[date] = None) -> List[Dict[str, Any]]:
    vehicles = (
        db.query(Vehicle)
        .filter(Vehicle.status != "retired")
        .order_by(Vehicle.license_plate.asc())
        .all()
    )
    out = []
    for vehicle in vehicles:
        out.extend(row for row in vehicle_pm_status(db, vehicle, as_of) if row["due"])
    return out
