import uuid
from datetime import datetime, date, time
from typing import List, Optional
from enum import Enum

import pytz
from pydantic import BaseModel, Field, field_validator


class JobType(str, Enum):
    delivery = "delivery"
    pickup = "pickup"
    partial_pickup = "partial-pickup"
    service = "service"
    on_site_survey = "on-site-survey"


class JobStatus(str, Enum):
    unassigned = "unassigned"
    assigned = "assigned"
    in_progress = "in-progress"
    completed = "completed"
    cancelled = "cancelled"


class BillingMethod(str, Enum):
    per_use = "per-use"
    bundle = "bundle"
    subscription = "subscription"


def _check_timezone(v: Optional[str]) -> Optional[str]:
    if v is None or v == "":
        return None
    if v not in pytz.all_timezones_set:
        raise ValueError(f"Unknown timezone: {v}")
    return v


class JobBase(BaseModel):
    customer_id: uuid.UUID
    service_location_id: Optional[uuid.UUID] = None
    job_type: JobType
    status: Optional[JobStatus] = None
    scheduled_date: date
    scheduled_time: Optional[time] = None
    timezone: Optional[str] = None
    driver_id: Optional[uuid.UUID] = None
    vehicle_id: Optional[uuid.UUID] = None
    notes: Optional[str] = None
    special_instructions: Optional[str] = None
    billing_method: Optional[BillingMethod] = None

    class Config:
        use_enum_values = True

    @field_validator("timezone")
    @classmethod
    def known_timezone(cls, v):
        return _check_timezone(v)


class JobCreate(JobBase):
    pass


class JobUpdate(BaseModel):
    service_location_id: Optional[uuid.UUID] = None
    job_type: Optional[JobType] = None
    status: Optional[JobStatus] = None
    scheduled_date: Optional[date] = None
    scheduled_time: Optional[time] = None
    timezone: Optional[str] = None
    driver_id: Optional[uuid.UUID] = None
    vehicle_id: Optional[uuid.UUID] = None
    notes: Optional[str] = None
    special_instructions: Optional[str] = None
    billing_method: Optional[BillingMethod] = None

    class Config:
        use_enum_values = True

    @field_validator("timezone")
    @classmethod
    def known_timezone(cls, v):
        return _check_timezone(v)


class JobResponse(JobBase):
    id: uuid.UUID
    job_number: str
    status: JobStatus
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class JobMove(BaseModel):
    """Drag-and-drop target on the scheduler board; driver_id null = unassigned lane"""
    scheduled_date: date
    driver_id: Optional[uuid.UUID] = None


class AutoAssignRequest(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class AutoAssignResponse(BaseModel):
    assigned: int


class BoardJob(BaseModel):
    id: uuid.UUID
    job_number: str
    job_type: str
    status: str
    customer_id: uuid.UUID
    customer_name: Optional[str] = None
    scheduled_time: Optional[time] = None


class BoardLane(BaseModel):
    driver_id: Optional[uuid.UUID] = None
    driver_name: str
    jobs: List[BoardJob] = []


class BoardDay(BaseModel):
    date: date
    lanes: List[BoardLane] = []


class SchedulerBoard(BaseModel):
    week_start: date
    week_end: date
    days: List[BoardDay] = []


class JobConsumableLine(BaseModel):
    consumable_id: uuid.UUID
    quantity: int = Field(gt=0)


class JobConsumablesRequest(BaseModel):
    billing_method: BillingMethod
    items: List[JobConsumableLine] = []
    bundle_id: Optional[uuid.UUID] = None

    class Config:
        use_enum_values = True


class JobConsumableResponse(BaseModel):
    id: uuid.UUID
    job_id: uuid.UUID
    consumable_id: uuid.UUID
    quantity: int
    unit_price: float
    line_total: float

    class Config:
        from_attributes = True
