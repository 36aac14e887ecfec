import uuid
from datetime import datetime, date
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator
import enum


class LocationType(str, enum.Enum):
    warehouse = "warehouse"
    vehicle = "vehicle"
    facility = "facility"


class TriggerType(str, enum.Enum):
    quantity = "quantity"
    time = "time"
    hybrid = "hybrid"


class PurchaseOrderStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    received = "received"
    cancelled = "cancelled"


# Consumables
class ConsumableBase(BaseModel):
    name: str
    sku: Optional[str] = None
    category: Optional[str] = None
    unit_price: float = Field(default=0, ge=0)
    unit_cost: Optional[float] = Field(default=None, ge=0)
    on_hand_qty: int = Field(default=0, ge=0)
    reorder_threshold: int = Field(default=0, ge=0)
    is_active: bool = True

    @field_validator("sku", "category", mode="before")
    @classmethod
    def empty_str_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None


class ConsumableCreate(ConsumableBase):
    pass


class ConsumableUpdate(BaseModel):
    name: Optional[str] = None
    sku: Optional[str] = None
    category: Optional[str] = None
    unit_price: Optional[float] = Field(default=None, ge=0)
    unit_cost: Optional[float] = Field(default=None, ge=0)
    on_hand_qty: Optional[int] = Field(default=None, ge=0)
    reorder_threshold: Optional[int] = Field(default=None, ge=0)
    is_active: Optional[bool] = None


class ConsumableResponse(ConsumableBase):
    id: uuid.UUID

    class Config:
        from_attributes = True


class BundleItemBase(BaseModel):
    consumable_id: uuid.UUID
    quantity: int = Field(gt=0)


class BundleCreate(BaseModel):
    name: str
    description: Optional[str] = None
    items: List[BundleItemBase] = []


class BundleItemResponse(BundleItemBase):
    id: uuid.UUID

    class Config:
        from_attributes = True


class BundleResponse(BaseModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    items: List[BundleItemResponse] = []

    class Config:
        from_attributes = True


# Storage locations
class StorageLocationBase(BaseModel):
    name: str
    location_type: LocationType = LocationType.warehouse
    address: Optional[str] = None
    vehicle_id: Optional[uuid.UUID] = None
    is_default: bool = False
    is_active: bool = True

    class Config:
        use_enum_values = True


class StorageLocationCreate(StorageLocationBase):
    pass


class StorageLocationUpdate(BaseModel):
    name: Optional[str] = None
    location_type: Optional[LocationType] = None
    address: Optional[str] = None
    vehicle_id: Optional[uuid.UUID] = None
    is_default: Optional[bool] = None
    is_active: Optional[bool] = None

    class Config:
        use_enum_values = True


class StorageLocationResponse(StorageLocationBase):
    id: uuid.UUID

    class Config:
        from_attributes = True


class LocationStockResponse(BaseModel):
    id: uuid.UUID
    consumable_id: uuid.UUID
    storage_location_id: uuid.UUID
    quantity: int
    consumable_name: Optional[str] = None


class LocationStockSet(BaseModel):
    consumable_id: uuid.UUID
    quantity: Optional[int] = Field(default=None, ge=0)
    delta: Optional[int] = None


class StockTransferCreate(BaseModel):
    consumable_id: uuid.UUID
    from_location_id: uuid.UUID
    to_location_id: uuid.UUID
    quantity: int
    transfer_reason: Optional[str] = None
    notes: Optional[str] = None


class StockTransferResponse(BaseModel):
    id: uuid.UUID
    consumable_id: uuid.UUID
    from_location_id: Optional[uuid.UUID] = None
    to_location_id: uuid.UUID
    quantity: int
    transfer_reason: Optional[str] = None
    transferred_by: Optional[uuid.UUID] = None
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


# Suppliers
class SupplierBase(BaseModel):
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    address: Optional[str] = None
    payment_terms: Optional[str] = None
    lead_time_days: Optional[int] = None
    notes: Optional[str] = None
    is_active: Optional[bool] = True

    @field_validator("email", "phone", "website", "address", "payment_terms", "notes", mode="before")
    @classmethod
    def empty_str_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None


class SupplierCreate(SupplierBase):
    pass


class SupplierResponse(SupplierBase):
    id: uuid.UUID

    class Config:
        from_attributes = True


# Reorder rules
class ReorderRuleBase(BaseModel):
    consumable_id: uuid.UUID
    supplier_id: Optional[uuid.UUID] = None
    trigger_type: TriggerType = TriggerType.quantity
    min_quantity: int = Field(default=0, ge=0)
    reorder_quantity: int = Field(default=0, ge=0)
    reorder_interval_days: int = Field(default=30, ge=1)
    max_stock_level: int = Field(default=0, ge=0)
    lead_time_days: int = Field(default=7, ge=0)
    safety_stock: int = Field(default=0, ge=0)
    is_active: bool = True
    auto_approve: bool = False

    class Config:
        use_enum_values = True


class ReorderRuleCreate(ReorderRuleBase):
    pass


class ReorderRuleUpdate(BaseModel):
    supplier_id: Optional[uuid.UUID] = None
    trigger_type: Optional[TriggerType] = None
    min_quantity: Optional[int] = Field(default=None, ge=0)
    reorder_quantity: Optional[int] = Field(default=None, ge=0)
    reorder_interval_days: Optional[int] = Field(default=None, ge=1)
    max_stock_level: Optional[int] = Field(default=None, ge=0)
    lead_time_days: Optional[int] = Field(default=None, ge=0)
    safety_stock: Optional[int] = Field(default=None, ge=0)
    is_active: Optional[bool] = None
    auto_approve: Optional[bool] = None

    class Config:
        use_enum_values = True


class ReorderRuleResponse(ReorderRuleBase):
    id: uuid.UUID
    last_triggered: Optional[datetime] = None

    class Config:
        from_attributes = True


class FiredRule(BaseModel):
    rule_id: uuid.UUID
    consumable_id: uuid.UUID
    consumable_name: Optional[str] = None
    trigger_reason: str
    on_hand: int
    order_quantity: int
    expected_delivery: date
    purchase_order_id: Optional[uuid.UUID] = None
    purchase_order_status: Optional[str] = None


class ReorderRunResponse(BaseModel):
    dry_run: bool
    fired: List[FiredRule] = []


class ReorderAnalyticsRow(BaseModel):
    consumable_id: uuid.UUID
    consumable_name: str
    on_hand: int
    reorder_threshold: int
    below_threshold: bool
    purchase_orders: int


# Purchase orders
class PurchaseOrderItemResponse(BaseModel):
    id: uuid.UUID
    consumable_id: uuid.UUID
    quantity: int

    class Config:
        from_attributes = True


class PurchaseOrderResponse(BaseModel):
    id: uuid.UUID
    order_code: str
    supplier_id: Optional[uuid.UUID] = None
    reorder_rule_id: Optional[uuid.UUID] = None
    status: PurchaseOrderStatus
    order_date: datetime
    expected_date: Optional[date] = None
    received_date: Optional[datetime] = None
    items: List[PurchaseOrderItemResponse]

    class Config:
        from_attributes = True


class PurchaseOrderStatusUpdate(BaseModel):
    status: PurchaseOrderStatus

    class Config:
        use_enum_values = True
