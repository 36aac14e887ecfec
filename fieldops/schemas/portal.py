import uuid
from datetime import datetime, date
from typing import List, Optional, Dict, Any
from enum import Enum

from pydantic import BaseModel


class ServiceRequestType(str, Enum):
    service = "service"
    pickup = "pickup"
    delivery = "delivery"
    support = "support"


class ServiceRequestStatus(str, Enum):
    open = "open"
    scheduled = "scheduled"
    closed = "closed"


class PortalUnit(BaseModel):
    assignment_id: uuid.UUID
    job_id: uuid.UUID
    job_number: str
    product_name: Optional[str] = None
    item_code: Optional[str] = None
    quantity: int
    assigned_date: date
    return_date: Optional[date] = None
    status: str


class PortalJob(BaseModel):
    id: uuid.UUID
    job_number: str
    job_type: str
    status: str
    scheduled_date: date


class PortalReport(BaseModel):
    id: uuid.UUID
    report_number: Optional[str] = None
    status: str
    completed_at: Optional[datetime] = None
    report_data: Optional[Dict[str, Any]] = None


class ServiceHistoryEntry(PortalJob):
    completed_at: Optional[datetime] = None
    reports: List[PortalReport] = []


class PortalDashboard(BaseModel):
    customer_id: uuid.UUID
    customer_name: str
    active_units: int
    upcoming_jobs: List[PortalJob] = []
    open_quotes: int
    outstanding_balance: float


class ServiceRequestCreate(BaseModel):
    request_type: ServiceRequestType
    message: Optional[str] = None
    preferred_date: Optional[date] = None

    class Config:
        use_enum_values = True


class ServiceRequestUpdate(BaseModel):
    status: ServiceRequestStatus

    class Config:
        use_enum_values = True


class ServiceRequestResponse(BaseModel):
    id: uuid.UUID
    customer_id: uuid.UUID
    request_type: ServiceRequestType
    message: Optional[str] = None
    preferred_date: Optional[date] = None
    status: ServiceRequestStatus
    created_at: datetime

    class Config:
        from_attributes = True
