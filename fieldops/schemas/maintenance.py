import uuid
from datetime import datetime
from typing import List, Optional, Dict, Any
from enum import Enum

from pydantic import BaseModel, Field


class BlockType(str, Enum):
    per_unit_loop = "per_unit_loop"
    delivery_setup = "delivery_setup"
    pickup_removal = "pickup_removal"
    event_service = "event_service"
    custom = "custom"


class ReportStatus(str, Enum):
    draft = "draft"
    completed = "completed"


# PM templates
class ChecklistItem(BaseModel):
    item: str
    category: Optional[str] = None
    severity: Optional[str] = None  # low|medium|high|critical


class PartLine(BaseModel):
    part_name: str
    qty: float = Field(default=1, ge=0)
    unit_cost: float = Field(default=0, ge=0)


class PMTemplateBase(BaseModel):
    name: str
    category: str = "pump_truck"
    instructions: Optional[str] = None
    estimated_labor_hours: Optional[float] = Field(default=None, ge=0)
    default_triggers: Optional[Dict[str, Any]] = None  # {miles, hours, days, job_count, pump_hours}
    checklist: List[ChecklistItem] = []
    parts_list: List[PartLine] = []


class PMTemplateCreate(PMTemplateBase):
    pass


class PMTemplateUpdate(BaseModel):
    name: Optional[str] = None
    category: Optional[str] = None
    instructions: Optional[str] = None
    estimated_labor_hours: Optional[float] = Field(default=None, ge=0)
    default_triggers: Optional[Dict[str, Any]] = None
    checklist: Optional[List[ChecklistItem]] = None
    parts_list: Optional[List[PartLine]] = None


class PMTemplateResponse(PMTemplateBase):
    id: uuid.UUID
    estimated_parts_cost: float = 0
    created_at: datetime


# Service report templates
class TemplateField(BaseModel):
    id: str
    type: str
    label: str
    required: bool = False
    options: Optional[List[str]] = None


class TemplateSection(BaseModel):
    id: str
    type: str
    title: str
    fields: List[TemplateField] = []
    repeat_for_each: Optional[str] = None


class ServiceTemplateBase(BaseModel):
    name: str
    description: Optional[str] = None
    template_type: str = "service"
    version: str = "1.0"
    is_default_for_type: bool = False
    sections: List[TemplateSection] = []
    logic_rules: Optional[Dict[str, Any]] = None
    output_config: Optional[Dict[str, Any]] = None
    is_active: bool = False


class ServiceTemplateCreate(ServiceTemplateBase):
    pass


class ServiceTemplateUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    template_type: Optional[str] = None
    version: Optional[str] = None
    is_default_for_type: Optional[bool] = None
    sections: Optional[List[TemplateSection]] = None
    logic_rules: Optional[Dict[str, Any]] = None
    output_config: Optional[Dict[str, Any]] = None
    is_active: Optional[bool] = None


class ServiceTemplateResponse(ServiceTemplateBase):
    id: uuid.UUID
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AddSectionRequest(BaseModel):
    block_type: BlockType
    features: List[str] = []
    title: Optional[str] = None

    class Config:
        use_enum_values = True


class ReorderSectionsRequest(BaseModel):
    section_ids: List[str]


class PublishValidation(BaseModel):
    valid: bool
    errors: List[str] = []


# Maintenance reports
class ReportBase(BaseModel):
    template_id: Optional[uuid.UUID] = None
    job_id: Optional[uuid.UUID] = None
    customer_id: Optional[uuid.UUID] = None
    vehicle_id: Optional[uuid.UUID] = None
    report_data: Dict[str, Any] = {}


class ReportCreate(ReportBase):
    pass


class ReportUpdate(BaseModel):
    template_id: Optional[uuid.UUID] = None
    job_id: Optional[uuid.UUID] = None
    customer_id: Optional[uuid.UUID] = None
    vehicle_id: Optional[uuid.UUID] = None
    report_data: Optional[Dict[str, Any]] = None


class ReportResponse(ReportBase):
    id: uuid.UUID
    report_number: Optional[str] = None
    status: ReportStatus
    completed_at: Optional[datetime] = None
    pdf_file_id: Optional[uuid.UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True
