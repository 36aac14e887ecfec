import uuid
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .jobs import _check_timezone


class CompanySettingsBase(BaseModel):
    company_name: Optional[str] = None
    default_timezone: Optional[str] = None
    delivery_prefix: str = "DEL"
    pickup_prefix: str = "PKP"
    service_prefix: str = "SVC"
    survey_prefix: str = "SURVEY"
    job_prefix: str = "JOB"
    quote_prefix: str = "Q"
    invoice_prefix: str = "INV"
    payment_terms_days: Optional[int] = Field(default=None, ge=0)
    tax_rate: Optional[float] = Field(default=None, ge=0)


class CompanySettingsResponse(CompanySettingsBase):
    id: uuid.UUID
    next_delivery_number: int
    next_pickup_number: int
    next_service_number: int
    next_survey_number: int
    next_job_number: int
    next_quote_number: int
    next_invoice_number: int

    class Config:
        from_attributes = True


class CompanySettingsUpdate(BaseModel):
    company_name: Optional[str] = None
    default_timezone: Optional[str] = None
    delivery_prefix: Optional[str] = None
    pickup_prefix: Optional[str] = None
    service_prefix: Optional[str] = None
    survey_prefix: Optional[str] = None
    job_prefix: Optional[str] = None
    quote_prefix: Optional[str] = None
    invoice_prefix: Optional[str] = None
    next_delivery_number: Optional[int] = Field(default=None, ge=1)
    next_pickup_number: Optional[int] = Field(default=None, ge=1)
    next_service_number: Optional[int] = Field(default=None, ge=1)
    next_survey_number: Optional[int] = Field(default=None, ge=1)
    next_job_number: Optional[int] = Field(default=None, ge=1)
    next_quote_number: Optional[int] = Field(default=None, ge=1)
    next_invoice_number: Optional[int] = Field(default=None, ge=1)
    payment_terms_days: Optional[int] = Field(default=None, ge=0)
    tax_rate: Optional[float] = Field(default=None, ge=0)

    @field_validator("default_timezone")
    @classmethod
    def known_timezone(cls, v):
        return _check_timezone(v)


class GeocodeRequest(BaseModel):
    address: str
    limit: int = Field(default=5, ge=1, le=10)
    country: Optional[str] = None
