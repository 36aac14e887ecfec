import uuid
from datetime import datetime, timezone, date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..auth.security import require_permissions
from ..models.models import (
    Vehicle,
    VehicleLoadCapacity,
    VehicleCapacityConfiguration,
    VehicleMaintenanceRecord,
    PMTemplate,
    Product,
)
from ..schemas.fleet import (
    VehicleCreate,
    VehicleUpdate,
    VehicleResponse,
    LoadCapacityCreate,
    LoadCapacityUpdate,
    LoadCapacityResponse,
    CapacityConfigurationCreate,
    CapacityConfigurationUpdate,
    CapacityConfigurationResponse,
    VehicleDailyLoad,
    MaintenanceRecordCreate,
    MaintenanceRecordUpdate,
    MaintenanceRecordResponse,
    PMStatus,
)
from ..services.availability import month_window
from ..services.pm_schedule import fleet_pm_due, vehicle_pm_status
from ..services.vehicle_loads import daily_loads

router = APIRouter(prefix="/fleet", tags=["fleet"])


def _get_vehicle(db: Session, vehicle_id: uuid.UUID) -> Vehicle:
    vehicle = db.query(Vehicle).filter(Vehicle.id == vehicle_id).first()
    if not vehicle:
        raise HTTPException(status_code=404, detail="Vehicle not found")
    return vehicle


# ---------- VEHICLES ----------
@router.get("/vehicles", response_model=List[VehicleResponse])
def list_vehicles(
    status: Optional[str] = None,
    vehicle_type: Optional[str] = None,
    search: Optional[str] = None,
    include_retired: bool = False,
    db: Session = Depends(get_db),
    _=Depends(require_permissions("fleet:read"))
):
    """List vehicles with optional filters"""
    query = db.query(Vehicle)
    if status:
        query = query.filter(Vehicle.status == status)
    elif not include_retired:
        query = query.filter(Vehicle.status != "retired")
    if vehicle_type:
        query = query.filter(Vehicle.vehicle_type == vehicle_type)
    if search:
        like = f"%{search}%"
        query = query.filter(
            Vehicle.license_plate.ilike(like) | Vehicle.make.ilike(like) | Vehicle.model.ilike(like)
        )
    return query.order_by(Vehicle.license_plate.asc()).all()


@router.post("/vehicles", response_model=VehicleResponse, status_code=201)
def create_vehicle(
    vehicle: VehicleCreate,
    db: Session = Depends(get_db),
    _=Depends(require_permissions("fleet:write"))
):
    """Create a new vehicle"""
    if not vehicle.license_plate.strip():
        raise HTTPException(status_code=400, detail="License plate is required")
    row = Vehicle(**vehicle.dict())
    row.license_plate = vehicle.license_plate.strip()
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


@router.get("/vehicles/{vehicle_id}", response_model=VehicleResponse)
def get_vehicle(
    vehicle_id: uuid.UUID,
    db: Session = Depends(get_db),
    _=Depends(require_permissions("fleet:read"))
):
    """Get a vehicle by id"""
    return _get_vehicle(db, vehicle_id)


@router.put("/vehicles/{vehicle_id}", response_model=VehicleResponse)
def update_vehicle(
    vehicle_id: uuid.UUID,
    vehicle_update: VehicleUpdate,
    db: Session = Depends(get_db),
    _=Depends(require_permissions("fleet:write"))
):
    """Update a vehicle"""
    vehicle = _get_vehicle(db, vehicle_id)
    update_data = vehicle_update.dict(exclude_unset=True)
    for key, value in update_data.items():
        setattr(vehicle, key, value)
    vehicle.updated_at = datetime.now(timezone.utc)

    db.commit()
    db.refresh(vehicle)
    return vehicle


@router.delete("/vehicles/{vehicle_id}")
def delete_vehicle(
    vehicle_id: uuid.UUID,
    db: Session = Depends(get_db),
    _=Depends(require_permissions("fleet:write"))
):
    """Delete a vehicle (soft delete by setting status to retired)"""
    vehicle = _get_vehicle(db, vehicle_id)
    vehicle.status = "retired"
    vehicle.updated_at = datetime.now(timezone.utc)
    db.commit()
    return {"message": "Vehicle retired successfully"}


# ---------- LOAD CAPACITIES ----------
@router.get("/vehicles/{vehicle_id}/load-capacities", response_model=List[LoadCapacityResponse])
def list_load_capacities(
    vehicle_id: uuid.UUID,
    db: Session = Depends(get_db),
    _=Depends(require_permissions("fleet:read"))
):
    _get_vehicle(db, vehicle_id)
    return db.query(VehicleLoadCapacity).filter(VehicleLoadCapacity.vehicle_id == vehicle_id).all()


@router.post("/vehicles/{vehicle_id}/load-capacities", response_model=LoadCapacityResponse, status_code=201)
def create_load_capacity(
    vehicle_id: uuid.UUID,
    payload: LoadCapacityCreate,
    db: Session = Depends(get_db),
    _=Depends(require_permissions("fleet:write"))
):
    """Set how many units of a product the vehicle can carry"""
    _get_vehicle(db, vehicle_id)
    if not db.query(Product).filter(Product.id == payload.product_id).first():
        raise HTTPException(status_code=404, detail="Product not found")
    existing = db.query(VehicleLoadCapacity).filter(
        VehicleLoadCapacity.vehicle_id == vehicle_id,
        VehicleLoadCapacity.product_id == payload.product_id,
    ).first()
    if existing:
        raise HTTPException(status_code=400, detail="Load capacity already set for this product")
    row = VehicleLoadCapacity(vehicle_id=vehicle_id, product_id=payload.product_id, max_capacity=payload.max_capacity)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


@router.put("/vehicles/{vehicle_id}/load-capacities/{capacity_id}", response_model=LoadCapacityResponse)
def update_load_capacity(
    vehicle_id: uuid.UUID,
    capacity_id: uuid.UUID,
    payload: LoadCapacityUpdate,
    db: Session = Depends(get_db),
    _=Depends(require_permissions("fleet:write"))
):
    row = db.query(VehicleLoadCapacity).filter(
        VehicleLoadCapacity.id == capacity_id,
        VehicleLoadCapacity.vehicle_id == vehicle_id,
    ).first()
    if not row:
        raise HTTPException(status_code=404, detail="Load capacity not found")
    row.max_capacity = payload.max_capacity
    db.commit()
    db.refresh(row)
    return row


@router.delete("/vehicles/{vehicle_id}/load-capacities/{capacity_id}")
def delete_load_capacity(
    vehicle_id: uuid.UUID,
    capacity_id: uuid.UUID,
    db: Session = Depends(get_db),
    _=Depends(require_permissions("fleet:write"))
):
    row = db.query(VehicleLoadCapacity).filter(
        VehicleLoadCapacity.id == capacity_id,
        VehicleLoadCapacity.vehicle_id == vehicle_id,
    ).first()
    if row:
        db.delete(row)
        db.commit()
    return {"status": "ok"}


# ---------- CAPACITY CONFIGURATIONS ----------
def _deactivate_other_configurations(db: Session, row: VehicleCapacityConfiguration) -> None:
    db.query(VehicleCapacityConfiguration).filter(
        VehicleCapacityConfiguration.vehicle_id == row.vehicle_id,
        VehicleCapacityConfiguration.id != row.id,
    ).update({VehicleCapacityConfiguration.is_active: False}, synchronize_session=False)


@router.get("/vehicles/{vehicle_id}/configurations", response_model=List[CapacityConfigurationResponse])
def list_configurations(
    vehicle_id: uuid.UUID,
    db: Session = Depends(get_db),
    _=Depends(require_permissions("fleet:read"))
):
    _get_vehicle(db, vehicle_id)
    return (
        db.query(VehicleCapacityConfiguration)
        .filter(VehicleCapacityConfiguration.vehicle_id == vehicle_id)
        .order_by(VehicleCapacityConfiguration.created_at.asc())
        .all()
    )


@router.post("/vehicles/{vehicle_id}/configurations", response_model=CapacityConfigurationResponse, status_code=201)
def create_configuration(
    vehicle_id: uuid.UUID,
    payload: CapacityConfigurationCreate,
    db: Session = Depends(get_db),
    _=Depends(require_permissions("fleet:write"))
):
    """Create a capacity configuration; an active one replaces the current active configuration"""
    _get_vehicle(db, vehicle_id)
    row = VehicleCapacityConfiguration(vehicle_id=vehicle_id, **payload.dict())
    db.add(row)
    db.flush()
    if row.is_active:
        _deactivate_other_configurations(db, row)
    db.commit()
    db.refresh(row)
    return row


@router.put("/vehicles/{vehicle_id}/configurations/{configuration_id}", response_model=CapacityConfigurationResponse)
def update_configuration(
    vehicle_id: uuid.UUID,
    configuration_id: uuid.UUID,
    payload: CapacityConfigurationUpdate,
    db: Session = Depends(get_db),
    _=Depends(require_permissions("fleet:write"))
):
    row = db.query(VehicleCapacityConfiguration).filter(
        VehicleCapacityConfiguration.id == configuration_id,
        VehicleCapacityConfiguration.vehicle_id == vehicle_id,
    ).first()
    if not row:
        raise HTTPException(status_code=404, detail="Configuration not found")
    for key, value in payload.dict(exclude_unset=True).items():
        setattr(row, key, value)
    if row.is_active:
        _deactivate_other_configurations(db, row)
    db.commit()
    db.refresh(row)
    return row


@router.delete("/vehicles/{vehicle_id}/configurations/{configuration_id}")
def delete_configuration(
    vehicle_id: uuid.UUID,
    configuration_id: uuid.UUID,
    db: Session = Depends(get_db),
    _=Depends(require_permissions("fleet:write"))
):
    row = db.query(VehicleCapacityConfiguration).filter(
        VehicleCapacityConfiguration.id == configuration_id,
        VehicleCapacityConfiguration.vehicle_id == vehicle_id,
    ).first()
    if row:
        db.delete(row)
        db.commit()
    return {"status": "ok"}


# ---------- DAILY LOADS ----------
@router.get("/loads", response_model=List[VehicleDailyLoad])
def get_daily_loads(
    day: date = Query(..., alias="date"),
    db: Session = Depends(get_db),
    _=Depends(require_permissions("fleet:read"))
):
    """Equipment on each vehicle's jobs for a day compared with its load capacities"""
    return daily_loads(db, day)


# ---------- MAINTENANCE RECORDS ----------
def _get_record(db: Session, record_id: uuid.UUID) -> VehicleMaintenanceRecord:
    row = db.query(VehicleMaintenanceRecord).filter(VehicleMaintenanceRecord.id == record_id).first()
    if not row:
        raise HTTPException(status_code=404, detail="Maintenance record not found")
    return row


def _check_template(db: Session, template_id: Optional[uuid.UUID]) -> None:
    if template_id and not db.query(PMTemplate).filter(PMTemplate.id == template_id).first():
        raise HTTPException(status_code=404, detail="PM template not found")


def _apply_completion(row: VehicleMaintenanceRecord, vehicle: Vehicle) -> None:
    if row.status != "completed":
        return
    if row.completed_date is None:
        row.completed_date = date.today()
    # odometer only moves forward
    if row.odometer is not None and (vehicle.odometer is None or row.odometer > vehicle.odometer):
        vehicle.odometer = row.odometer
        vehicle.updated_at = datetime.now(timezone.utc)


@router.get("/vehicles/{vehicle_id}/maintenance-records", response_model=List[MaintenanceRecordResponse])
def list_maintenance_records(
    vehicle_id: uuid.UUID,
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    _=Depends(require_permissions("fleet:read"))
):
    _get_vehicle(db, vehicle_id)
    q = db.query(VehicleMaintenanceRecord).filter(VehicleMaintenanceRecord.vehicle_id == vehicle_id)
    if status:
        q = q.filter(VehicleMaintenanceRecord.status == status)
    return q.order_by(VehicleMaintenanceRecord.scheduled_date.desc(), VehicleMaintenanceRecord.created_at.desc()).all()


@router.post("/vehicles/{vehicle_id}/maintenance-records", response_model=MaintenanceRecordResponse, status_code=201)
def create_maintenance_record(
    vehicle_id: uuid.UUID,
    payload: MaintenanceRecordCreate,
    db: Session = Depends(get_db),
    _=Depends(require_permissions("fleet:write"))
):
    """Schedule service on a vehicle, or log service already done (status completed)"""
    vehicle = _get_vehicle(db, vehicle_id)
    if not payload.maintenance_type.strip():
        raise HTTPException(status_code=400, detail="Maintenance type is required")
    _check_template(db, payload.pm_template_id)
    row = VehicleMaintenanceRecord(vehicle_id=vehicle_id, **payload.dict())
    row.maintenance_type = payload.maintenance_type.strip()
    _apply_completion(row, vehicle)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


@router.put("/maintenance-records/{record_id}", response_model=MaintenanceRecordResponse)
def update_maintenance_record(
    record_id: uuid.UUID,
    payload: MaintenanceRecordUpdate,
    db: Session = Depends(get_db),
    _=Depends(require_permissions("fleet:write"))
):
    row = _get_record(db, record_id)
    data = payload.dict(exclude_unset=True)
    if "pm_template_id" in data:
        _check_template(db, data["pm_template_id"])
    for key, value in data.items():
        setattr(row, key, value)
    _apply_completion(row, _get_vehicle(db, row.vehicle_id))
    row.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(row)
    return row


@router.delete("/maintenance-records/{record_id}")
def delete_maintenance_record(
    record_id: uuid.UUID,
    db: Session = Depends(get_db),
    _=Depends(require_permissions("fleet:write"))
):
    row = db.query(VehicleMaintenanceRecord).filter(VehicleMaintenanceRecord.id == record_id).first()
    if row:
        db.delete(row)
        db.commit()
    return {"status": "ok"}


@router.get("/maintenance-calendar", response_model=List[MaintenanceRecordResponse])
def maintenance_calendar(
    month: Optional[date] = None,
    vehicle_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
    _=Depends(require_permissions("fleet:read"))
):
    """Records scheduled in the calendar month containing `month` (defaults to today)"""
    start, end = month_window(month or date.today())
    q = db.query(VehicleMaintenanceRecord).filter(
        VehicleMaintenanceRecord.scheduled_date >= start,
        VehicleMaintenanceRecord.scheduled_date <= end,
    )
    if vehicle_id:
        q = q.filter(VehicleMaintenanceRecord.vehicle_id == vehicle_id)
    return q.order_by(VehicleMaintenanceRecord.scheduled_date.asc()).all()


# ---------- PREVENTIVE MAINTENANCE ----------
@router.get("/vehicles/{vehicle_id}/pm-status", response_model=List[PMStatus])
def get_vehicle_pm_status(
    vehicle_id: uuid.UUID,
    as_of: Optional[date] = None,
    db: Session = Depends(get_db),
    _=Depends(require_permissions("fleet:read"))
):
    """Every applicable PM template measured against the vehicle's last service"""
    return vehicle_pm_status(db, _get_vehicle(db, vehicle_id), as_of)


@router.get("/pm-due", response_model=List[PMStatus])
def get_pm_due(
    as_of: Optional[date] = None,
    db: Session = Depends(get_db),
    _=Depends(require_permissions("fleet:read"))
):
    """PM templates that are due across all vehicles still in service"""
    return fleet_pm_due(db, as_of)
