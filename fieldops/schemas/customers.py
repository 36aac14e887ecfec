import uuid
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field, field_validator


def _empty_to_none(v):
    if v is None:
        return None
    v = str(v).strip()
    return v or None


class CustomerBase(BaseModel):
    name: str
    customer_type: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    # Billing address
    billing_street: Optional[str] = None
    billing_city: Optional[str] = None
    billing_state: Optional[str] = None
    billing_zip: Optional[str] = None

    # Service address
    service_street: Optional[str] = None
    service_city: Optional[str] = None
    service_state: Optional[str] = None
    service_zip: Optional[str] = None

    notes: Optional[str] = None

    @field_validator('customer_type','email','phone','billing_street','billing_city','billing_state','billing_zip','service_street','service_city','service_state','service_zip','notes', mode='before')
    @classmethod
    def empty_to_none(cls, v):
        return _empty_to_none(v)

    @field_validator('name')
    @classmethod
    def name_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("Customer name is required")
        return v


class CustomerCreate(CustomerBase):
    pass


class CustomerUpdate(BaseModel):
    name: Optional[str] = None
    customer_type: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    billing_street: Optional[str] = None
    billing_city: Optional[str] = None
    billing_state: Optional[str] = None
    billing_zip: Optional[str] = None
    service_street: Optional[str] = None
    service_city: Optional[str] = None
    service_state: Optional[str] = None
    service_zip: Optional[str] = None
    notes: Optional[str] = None


class CustomerResponse(CustomerBase):
    id: uuid.UUID
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CustomerContactBase(BaseModel):
    first_name: str
    last_name: Optional[str] = None
    title: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    is_primary: Optional[bool] = False
    notes: Optional[str] = None

    @field_validator('last_name','title','email','phone','notes', mode='before')
    @classmethod
    def empty_to_none(cls, v):
        return _empty_to_none(v)


class CustomerContactCreate(CustomerContactBase):
    pass


class CustomerContactResponse(CustomerContactBase):
    id: uuid.UUID
    customer_id: uuid.UUID

    class Config:
        from_attributes = True


class ServiceLocationBase(BaseModel):
    location_name: str
    street: Optional[str] = None
    street2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    is_default: Optional[bool] = False
    access_instructions: Optional[str] = None

    @field_validator('street','street2','city','state','zip','access_instructions', mode='before')
    @classmethod
    def empty_to_none(cls, v):
        return _empty_to_none(v)


class ServiceLocationCreate(ServiceLocationBase):
    pass


class ServiceLocationUpdate(BaseModel):
    location_name: Optional[str] = None
    street: Optional[str] = None
    street2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    is_default: Optional[bool] = None
    access_instructions: Optional[str] = None


class ServiceLocationResponse(ServiceLocationBase):
    id: uuid.UUID
    customer_id: uuid.UUID
    full_address: Optional[str] = None

    class Config:
        from_attributes = True


class DropPinBase(BaseModel):
    label: str
    category: Optional[str] = None
    service_location_id: Optional[uuid.UUID] = None
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    notes: Optional[str] = None


class DropPinCreate(DropPinBase):
    pass


class DropPinUpdate(BaseModel):
    label: Optional[str] = None
    category: Optional[str] = None
    service_location_id: Optional[uuid.UUID] = None
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    notes: Optional[str] = None


class DropPinResponse(DropPinBase):
    id: uuid.UUID
    customer_id: uuid.UUID
    distance_m: Optional[float] = None
    far_from_location: bool = False


class CustomerImportResult(BaseModel):
    created: int = 0
    skipped: int = 0
    errors: int = 0
    dry_run: bool = False
    messages: List[str] = []
