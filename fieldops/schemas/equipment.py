import uuid
from datetime import datetime, date
from typing import List, Optional, Dict, Any
from enum import Enum

from pydantic import BaseModel, Field


class ItemStatus(str, Enum):
    available = "available"
    assigned = "assigned"
    maintenance = "maintenance"
    out_of_service = "out_of_service"
    retired = "retired"
    lost = "lost"


class AssignmentStatus(str, Enum):
    reserved = "reserved"
    assigned = "assigned"
    delivered = "delivered"
    in_service = "in_service"
    returned = "returned"
    cancelled = "cancelled"


class VerificationStatus(str, Enum):
    auto_detected = "auto_detected"
    needs_review = "needs_review"
    verified = "verified"


# Products
class ProductBase(BaseModel):
    name: str
    description: Optional[str] = None
    stock_total: int = Field(default=0, ge=0)
    default_price_per_day: Optional[float] = Field(default=None, ge=0)
    image_url: Optional[str] = None
    track_inventory: bool = True


class ProductCreate(ProductBase):
    pass


class ProductUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    stock_total: Optional[int] = Field(default=None, ge=0)
    default_price_per_day: Optional[float] = Field(default=None, ge=0)
    image_url: Optional[str] = None
    track_inventory: Optional[bool] = None


class ProductResponse(ProductBase):
    id: uuid.UUID
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# Tracked units
class ProductItemBase(BaseModel):
    item_code: str
    status: ItemStatus = ItemStatus.available
    attributes: Optional[Dict[str, Any]] = None
    current_storage_location_id: Optional[uuid.UUID] = None
    tool_number: Optional[str] = None
    vendor_id: Optional[str] = None
    notes: Optional[str] = None

    class Config:
        use_enum_values = True


class ProductItemCreate(ProductItemBase):
    pass


class ProductItemUpdate(BaseModel):
    item_code: Optional[str] = None
    status: Optional[ItemStatus] = None
    attributes: Optional[Dict[str, Any]] = None
    current_storage_location_id: Optional[uuid.UUID] = None
    tool_number: Optional[str] = None
    vendor_id: Optional[str] = None
    notes: Optional[str] = None

    class Config:
        use_enum_values = True


class ProductItemResponse(ProductItemBase):
    id: uuid.UUID
    product_id: uuid.UUID
    ocr_confidence_score: Optional[float] = None
    verification_status: Optional[VerificationStatus] = None
    tracking_photo_url: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class OcrResult(BaseModel):
    tool_number: Optional[str] = None
    vendor_id: Optional[str] = None
    confidence: float = Field(ge=0, le=1)
    tracking_photo_url: Optional[str] = None


# Assignments
class BulkReservationRequest(BaseModel):
    product_id: uuid.UUID
    quantity: int = Field(gt=0)
    assigned_date: date
    return_date: Optional[date] = None


class UnitReservationRequest(BaseModel):
    product_item_id: uuid.UUID
    assigned_date: date
    return_date: Optional[date] = None


class AutoAssignEquipmentRequest(BaseModel):
    job_id: uuid.UUID
    product_id: uuid.UUID
    quantity: int = Field(gt=0)
    assigned_date: date
    return_date: Optional[date] = None


class AssignmentResponse(BaseModel):
    id: uuid.UUID
    job_id: uuid.UUID
    product_id: Optional[uuid.UUID] = None
    product_item_id: Optional[uuid.UUID] = None
    quantity: int
    assigned_date: date
    return_date: Optional[date] = None
    status: AssignmentStatus

    class Config:
        from_attributes = True


class AssignmentStatusUpdate(BaseModel):
    status: AssignmentStatus
    return_date: Optional[date] = None

    class Config:
        use_enum_values = True


# Availability
class Conflict(BaseModel):
    assignment_id: str
    job_id: Optional[str] = None
    job_number: Optional[str] = None
    customer_name: Optional[str] = None
    item_id: Optional[str] = None
    item_code: Optional[str] = None
    quantity: int = 1
    status: Optional[str] = None


class DailyAvailability(BaseModel):
    date: date
    total_available: int
    bulk_available: int
    tracked_available: int
    bulk_assigned: int
    tracked_assigned: int
    conflicts: List[Conflict] = []
    status: Optional[str] = None


class IndividualItem(BaseModel):
    item_id: str
    item_code: str
    status: str
    attributes: Optional[Dict[str, Any]] = None
    available_for_window: bool


class AvailabilitySummary(BaseModel):
    min_available: int
    max_available: int
    avg_available: float
    total_stock: int


class AvailabilityResponse(BaseModel):
    product_id: uuid.UUID
    available: int
    method: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    requested_quantity: Optional[int] = None
    overall_status: Optional[str] = None
    message: Optional[str] = None
    daily_breakdown: List[DailyAvailability] = []
    summary: Optional[AvailabilitySummary] = None
    individual_items: List[IndividualItem] = []


class NextAvailableResponse(BaseModel):
    product_id: uuid.UUID
    requested_quantity: int
    next_available_date: Optional[date] = None
