import uuid
from datetime import datetime, date
from typing import List, Optional, Dict, Any
from enum import Enum

from pydantic import BaseModel, Field, field_validator


# Enums
class VehicleType(str, Enum):
    pump_truck = "pump_truck"
    flatbed = "flatbed"
    trailer = "trailer"
    pickup = "pickup"
    box_truck = "box_truck"
    other = "other"


class VehicleStatus(str, Enum):
    active = "active"
    inactive = "inactive"
    maintenance = "maintenance"
    retired = "retired"


# Vehicle Schemas
class VehicleBase(BaseModel):
    license_plate: str
    vehicle_type: Optional[VehicleType] = None
    make: Optional[str] = None
    model: Optional[str] = None
    year: Optional[int] = None
    vin: Optional[str] = None
    status: VehicleStatus = VehicleStatus.active
    odometer: Optional[int] = None
    notes: Optional[str] = None

    class Config:
        use_enum_values = True

    @field_validator("make", "model", "vin", "notes", mode="before")
    @classmethod
    def empty_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None


class VehicleCreate(VehicleBase):
    pass


class VehicleUpdate(BaseModel):
    license_plate: Optional[str] = None
    vehicle_type: Optional[VehicleType] = None
    make: Optional[str] = None
    model: Optional[str] = None
    year: Optional[int] = None
    vin: Optional[str] = None
    status: Optional[VehicleStatus] = None
    odometer: Optional[int] = None
    notes: Optional[str] = None

    class Config:
        use_enum_values = True


class VehicleResponse(VehicleBase):
    id: uuid.UUID
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# Load capacity Schemas
class LoadCapacityBase(BaseModel):
    product_id: uuid.UUID
    max_capacity: int = Field(ge=0)


class LoadCapacityCreate(LoadCapacityBase):
    pass


class LoadCapacityUpdate(BaseModel):
    max_capacity: int = Field(ge=0)


class LoadCapacityResponse(LoadCapacityBase):
    id: uuid.UUID
    vehicle_id: uuid.UUID

    class Config:
        from_attributes = True


# Capacity configuration Schemas
class CapacityConfigurationBase(BaseModel):
    configuration_name: str
    total_weight_capacity: Optional[float] = Field(default=None, ge=0)
    total_volume_capacity: Optional[float] = Field(default=None, ge=0)
    compartment_config: Optional[List[Dict[str, Any]]] = None
    is_active: bool = False


class CapacityConfigurationCreate(CapacityConfigurationBase):
    pass


class CapacityConfigurationUpdate(BaseModel):
    configuration_name: Optional[str] = None
    total_weight_capacity: Optional[float] = Field(default=None, ge=0)
    total_volume_capacity: Optional[float] = Field(default=None, ge=0)
    compartment_config: Optional[List[Dict[str, Any]]] = None
    is_active: Optional[bool] = None


class CapacityConfigurationResponse(CapacityConfigurationBase):
    id: uuid.UUID
    vehicle_id: uuid.UUID
    created_at: datetime

    class Config:
        from_attributes = True


# Daily loads
class VehicleLoadLine(BaseModel):
    product_id: uuid.UUID
    product_name: str
    assigned_quantity: int
    max_capacity: Optional[int] = None
    utilization_percent: Optional[float] = None
    over_capacity: bool = False


class VehicleDailyLoad(BaseModel):
    vehicle_id: uuid.UUID
    license_plate: str
    date: date
    job_count: int
    lines: List[VehicleLoadLine] = []
    over_capacity: bool = False


# Maintenance records
class MaintenanceStatus(str, Enum):
    scheduled = "scheduled"
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"


class MaintenancePriority(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"


class MaintenanceRecordBase(BaseModel):
    pm_template_id: Optional[uuid.UUID] = None
    maintenance_type: str
    description: Optional[str] = None
    priority: MaintenancePriority = MaintenancePriority.medium
    status: MaintenanceStatus = MaintenanceStatus.scheduled
    scheduled_date: Optional[date] = None
    completed_date: Optional[date] = None
    odometer: Optional[int] = Field(default=None, ge=0)
    cost: Optional[float] = Field(default=None, ge=0)
    vendor_name: Optional[str] = None
    notes: Optional[str] = None

    class Config:
        use_enum_values = True


class MaintenanceRecordCreate(MaintenanceRecordBase):
    pass


class MaintenanceRecordUpdate(BaseModel):
    pm_template_id: Optional[uuid.UUID] = None
    maintenance_type: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[MaintenancePriority] = None
    status: Optional[MaintenanceStatus] = None
    scheduled_date: Optional[date] = None
    completed_date: Optional[date] = None
    odometer: Optional[int] = Field(default=None, ge=0)
    cost: Optional[float] = Field(default=None, ge=0)
    vendor_name: Optional[str] = None
    notes: Optional[str] = None

    class Config:
        use_enum_values = True


class MaintenanceRecordResponse(MaintenanceRecordBase):
    id: uuid.UUID
    vehicle_id: uuid.UUID
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PMTriggerCheck(BaseModel):
    trigger: str
    interval: float
    since_service: Optional[float] = None
    tracked: bool = True
    due: bool = False


class PMStatus(BaseModel):
    vehicle_id: uuid.UUID
    license_plate: str
    pm_template_id: uuid.UUID
    template_name: str
    last_service_date: Optional[date] = None
    last_service_odometer: Optional[int] = None
    next_due_date: Optional[date] = None
    next_due_odometer: Optional[int] = None
    triggers: List[PMTriggerCheck] = []
    due: bool = False
