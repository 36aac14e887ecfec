import uuid
from datetime import datetime, date
from typing import List, Optional
from enum import Enum

from pydantic import BaseModel, Field


class QuoteStatus(str, Enum):
    draft = "draft"
    sent = "sent"
    accepted = "accepted"
    declined = "declined"
    expired = "expired"


class InvoiceStatus(str, Enum):
    draft = "draft"
    sent = "sent"
    paid = "paid"
    overdue = "overdue"
    cancelled = "cancelled"


class LineItemBase(BaseModel):
    product_id: Optional[uuid.UUID] = None
    product_name: str
    description: Optional[str] = None
    quantity: float = Field(default=1, ge=0)
    unit_price: float = Field(default=0, ge=0)


class LineItemResponse(LineItemBase):
    id: uuid.UUID
    line_total: float

    class Config:
        from_attributes = True


class QuoteCreate(BaseModel):
    customer_id: uuid.UUID
    status: QuoteStatus = QuoteStatus.draft
    expiration_date: Optional[date] = None
    notes: Optional[str] = None
    tax_rate: Optional[float] = Field(default=None, ge=0)
    items: List[LineItemBase] = []

    class Config:
        use_enum_values = True


class QuoteUpdate(BaseModel):
    status: Optional[QuoteStatus] = None
    expiration_date: Optional[date] = None
    notes: Optional[str] = None
    tax_rate: Optional[float] = Field(default=None, ge=0)
    items: Optional[List[LineItemBase]] = None

    class Config:
        use_enum_values = True


class QuoteResponse(BaseModel):
    id: uuid.UUID
    quote_number: str
    customer_id: uuid.UUID
    status: QuoteStatus
    expiration_date: Optional[date] = None
    notes: Optional[str] = None
    subtotal: float
    tax_rate: Optional[float] = None
    tax_amount: float
    total_amount: float
    created_at: datetime
    items: List[LineItemResponse] = []

    class Config:
        from_attributes = True


class InvoiceCreate(BaseModel):
    customer_id: uuid.UUID
    job_id: Optional[uuid.UUID] = None
    status: InvoiceStatus = InvoiceStatus.draft
    due_date: Optional[date] = None
    notes: Optional[str] = None
    tax_rate: Optional[float] = Field(default=None, ge=0)
    items: List[LineItemBase] = []

    class Config:
        use_enum_values = True


class InvoiceUpdate(BaseModel):
    status: Optional[InvoiceStatus] = None
    due_date: Optional[date] = None
    notes: Optional[str] = None
    tax_rate: Optional[float] = Field(default=None, ge=0)
    items: Optional[List[LineItemBase]] = None

    class Config:
        use_enum_values = True


class InvoiceResponse(BaseModel):
    id: uuid.UUID
    invoice_number: str
    customer_id: uuid.UUID
    quote_id: Optional[uuid.UUID] = None
    job_id: Optional[uuid.UUID] = None
    status: InvoiceStatus
    due_date: Optional[date] = None
    notes: Optional[str] = None
    subtotal: float
    tax_rate: Optional[float] = None
    tax_amount: float
    total_amount: float
    amount_paid: float
    balance_due: float
    created_at: datetime
    items: List[LineItemResponse] = []

    class Config:
        from_attributes = True


class PaymentCreate(BaseModel):
    amount: float = Field(gt=0)


class NextNumberResponse(BaseModel):
    number: str


class ExportType(str, Enum):
    quotes = "quotes"
    invoices = "invoices"


class QuickBooksExportRequest(BaseModel):
    export_type: ExportType
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    status: str = "all"
    include_line_items: bool = True
    include_customer_info: bool = True

    class Config:
        use_enum_values = True
