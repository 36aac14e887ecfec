import uuid
from datetime import datetime, date, time
from typing import Optional

from sqlalchemy import (
    Column,
    String,
    DateTime,
    Date,
    Time,
    Boolean,
    ForeignKey,
    Table,
    Integer,
    Float,
    JSON,
    UniqueConstraint,
    BigInteger,
    Text,
    Index,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship, Mapped, mapped_column

from ..db import Base


def uuid_pk() -> Mapped[uuid.UUID]:
    return mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)


# Association table for many-to-many User<->Role
user_roles = Table(
    "user_roles",
    Base.metadata,
    Column("user_id", UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("role_id", UUID(as_uuid=True), ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    UniqueConstraint("user_id", "role_id", name="uq_user_role"),
)


class Role(Base):
    __tablename__ = "roles"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(255))
    permissions: Mapped[Optional[dict]] = mapped_column(JSON, default=dict)

    users = relationship("User", secondary=user_roles, back_populates="roles")


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = uuid_pk()
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    first_name: Mapped[Optional[str]] = mapped_column(String(100))
    last_name: Mapped[Optional[str]] = mapped_column(String(100))
    phone: Mapped[Optional[str]] = mapped_column(String(50))
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    is_driver: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    # Portal users are bound to exactly one customer
    customer_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("customers.id", ondelete="SET NULL"))
    permissions_override: Mapped[Optional[dict]] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    roles = relationship("Role", secondary=user_roles, back_populates="users")

    @property
    def display_name(self) -> str:
        full = " ".join(p for p in [self.first_name, self.last_name] if p)
        return full or self.username


class FileObject(Base):
    __tablename__ = "file_objects"

    id: Mapped[uuid.UUID] = uuid_pk()
    provider: Mapped[str] = mapped_column(String(50), nullable=False)  # blob|local
    container: Mapped[str] = mapped_column(String(255), nullable=False)
    key: Mapped[str] = mapped_column(String(1024), nullable=False, index=True)
    thumbnail_key: Mapped[Optional[str]] = mapped_column(String(1024))
    original_name: Mapped[Optional[str]] = mapped_column(String(255))
    size_bytes: Mapped[Optional[int]] = mapped_column(BigInteger)
    content_type: Mapped[Optional[str]] = mapped_column(String(255))
    checksum_sha256: Mapped[Optional[str]] = mapped_column(String(128))

    # What the file is attached to (customer document, vehicle photo, report pdf, ...)
    entity_type: Mapped[Optional[str]] = mapped_column(String(50), index=True)
    entity_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), index=True)
    category: Mapped[Optional[str]] = mapped_column(String(100))

    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)


class CompanySettings(Base):
    """Single-row table holding document numbering and billing defaults"""
    __tablename__ = "company_settings"

    id: Mapped[uuid.UUID] = uuid_pk()
    company_name: Mapped[Optional[str]] = mapped_column(String(255))
    default_timezone: Mapped[Optional[str]] = mapped_column(String(64))
    delivery_prefix: Mapped[str] = mapped_column(String(20), default="DEL")
    next_delivery_number: Mapped[int] = mapped_column(Integer, default=1)
    pickup_prefix: Mapped[str] = mapped_column(String(20), default="PKP")
    next_pickup_number: Mapped[int] = mapped_column(Integer, default=1)
    service_prefix: Mapped[str] = mapped_column(String(20), default="SVC")
    next_service_number: Mapped[int] = mapped_column(Integer, default=1)
    survey_prefix: Mapped[str] = mapped_column(String(20), default="SURVEY")
    next_survey_number: Mapped[int] = mapped_column(Integer, default=1)
    job_prefix: Mapped[str] = mapped_column(String(20), default="JOB")
    next_job_number: Mapped[int] = mapped_column(Integer, default=1)
    quote_prefix: Mapped[str] = mapped_column(String(20), default="Q")
    next_quote_number: Mapped[int] = mapped_column(Integer, default=1)
    invoice_prefix: Mapped[str] = mapped_column(String(20), default="INV")
    next_invoice_number: Mapped[int] = mapped_column(Integer, default=1)
    payment_terms_days: Mapped[Optional[int]] = mapped_column(Integer)
    tax_rate: Mapped[Optional[float]] = mapped_column(Float)


# =====================
# Customers
# =====================

class Customer(Base):
    __tablename__ = "customers"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    customer_type: Mapped[Optional[str]] = mapped_column(String(50))  # commercial|residential|events|government|...
    email: Mapped[Optional[str]] = mapped_column(String(255))
    phone: Mapped[Optional[str]] = mapped_column(String(100))

    billing_street: Mapped[Optional[str]] = mapped_column(String(255))
    billing_city: Mapped[Optional[str]] = mapped_column(String(100))
    billing_state: Mapped[Optional[str]] = mapped_column(String(100))
    billing_zip: Mapped[Optional[str]] = mapped_column(String(20))

    service_street: Mapped[Optional[str]] = mapped_column(String(255))
    service_city: Mapped[Optional[str]] = mapped_column(String(100))
    service_state: Mapped[Optional[str]] = mapped_column(String(100))
    service_zip: Mapped[Optional[str]] = mapped_column(String(20))

    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    contacts = relationship("CustomerContact", back_populates="customer", cascade="all, delete-orphan")
    service_locations = relationship("CustomerServiceLocation", back_populates="customer", cascade="all, delete-orphan")
    drop_pins = relationship("GpsDropPin", back_populates="customer", cascade="all, delete-orphan")

    @property
    def address(self) -> Optional[str]:
        parts = [self.billing_street, self.billing_city, self.billing_state, self.billing_zip]
        joined = ", ".join(p for p in parts if p)
        return joined or None


class CustomerContact(Base):
    __tablename__ = "customer_contacts"

    id: Mapped[uuid.UUID] = uuid_pk()
    customer_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[Optional[str]] = mapped_column(String(100))
    title: Mapped[Optional[str]] = mapped_column(String(100))
    email: Mapped[Optional[str]] = mapped_column(String(255))
    phone: Mapped[Optional[str]] = mapped_column(String(100))
    is_primary: Mapped[bool] = mapped_column(Boolean, default=False)
    notes: Mapped[Optional[str]] = mapped_column(String(1000))

    customer = relationship("Customer", back_populates="contacts")


class CustomerServiceLocation(Base):
    __tablename__ = "customer_service_locations"

    id: Mapped[uuid.UUID] = uuid_pk()
    customer_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True)
    location_name: Mapped[str] = mapped_column(String(255), nullable=False)
    street: Mapped[Optional[str]] = mapped_column(String(255))
    street2: Mapped[Optional[str]] = mapped_column(String(255))
    city: Mapped[Optional[str]] = mapped_column(String(100))
    state: Mapped[Optional[str]] = mapped_column(String(100))
    zip: Mapped[Optional[str]] = mapped_column(String(20))
    latitude: Mapped[Optional[float]] = mapped_column(Float)
    longitude: Mapped[Optional[float]] = mapped_column(Float)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False)
    access_instructions: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    customer = relationship("Customer", back_populates="service_locations")

    @property
    def full_address(self) -> str:
        return ", ".join(p for p in [self.street, self.street2, self.city, self.state, self.zip] if p)


class GpsDropPin(Base):
    """Free-placed map pins marking unit placement on a customer site"""
    __tablename__ = "customer_drop_pins"

    id: Mapped[uuid.UUID] = uuid_pk()
    customer_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True)
    service_location_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("customer_service_locations.id", ondelete="SET NULL"))
    label: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(100))
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    customer = relationship("Customer", back_populates="drop_pins")
    service_location = relationship("CustomerServiceLocation")


class ServiceRequest(Base):
    """Requests submitted from the customer portal"""
    __tablename__ = "service_requests"

    id: Mapped[uuid.UUID] = uuid_pk()
    customer_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True)
    request_type: Mapped[str] = mapped_column(String(50), nullable=False)  # service|pickup|delivery|support
    message: Mapped[Optional[str]] = mapped_column(Text)
    preferred_date: Mapped[Optional[date]] = mapped_column(Date)
    status: Mapped[str] = mapped_column(String(50), default="open", index=True)  # open|scheduled|closed
    submitted_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


# =====================
# Fleet
# =====================

class Vehicle(Base):
    __tablename__ = "vehicles"

    id: Mapped[uuid.UUID] = uuid_pk()
    license_plate: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    vehicle_type: Mapped[Optional[str]] = mapped_column(String(50))  # pump_truck|flatbed|trailer|pickup|...
    make: Mapped[Optional[str]] = mapped_column(String(100))
    model: Mapped[Optional[str]] = mapped_column(String(100))
    year: Mapped[Optional[int]] = mapped_column(Integer)
    vin: Mapped[Optional[str]] = mapped_column(String(100))
    status: Mapped[str] = mapped_column(String(50), default="active", index=True)  # active|inactive|maintenance|retired
    odometer: Mapped[Optional[int]] = mapped_column(Integer)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


class VehicleLoadCapacity(Base):
    __tablename__ = "vehicle_load_capacities"

    id: Mapped[uuid.UUID] = uuid_pk()
    vehicle_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("vehicles.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    max_capacity: Mapped[int] = mapped_column(Integer, nullable=False)

    vehicle = relationship("Vehicle")
    product = relationship("Product")

    __table_args__ = (
        UniqueConstraint("vehicle_id", "product_id", name="uq_vehicle_product_capacity"),
    )


class VehicleCapacityConfiguration(Base):
    __tablename__ = "vehicle_capacity_configurations"

    id: Mapped[uuid.UUID] = uuid_pk()
    vehicle_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("vehicles.id", ondelete="CASCADE"), nullable=False, index=True)
    configuration_name: Mapped[str] = mapped_column(String(255), nullable=False)
    total_weight_capacity: Mapped[Optional[float]] = mapped_column(Float)
    total_volume_capacity: Mapped[Optional[float]] = mapped_column(Float)
    compartment_config: Mapped[Optional[list]] = mapped_column(JSON)
    is_active: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    vehicle = relationship("Vehicle")


class VehicleMaintenanceRecord(Base):
    """Scheduled or completed service on a vehicle, optionally following a PM template"""
    __tablename__ = "vehicle_maintenance_records"

    id: Mapped[uuid.UUID] = uuid_pk()
    vehicle_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("vehicles.id", ondelete="CASCADE"), nullable=False, index=True)
    pm_template_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("pm_templates.id", ondelete="SET NULL"), index=True)
    maintenance_type: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    priority: Mapped[str] = mapped_column(String(20), default="medium")  # low|medium|high|critical
    status: Mapped[str] = mapped_column(String(50), default="scheduled", index=True)  # scheduled|in_progress|completed|cancelled
    scheduled_date: Mapped[Optional[date]] = mapped_column(Date, index=True)
    completed_date: Mapped[Optional[date]] = mapped_column(Date)
    odometer: Mapped[Optional[int]] = mapped_column(Integer)
    cost: Mapped[Optional[float]] = mapped_column(Float)
    vendor_name: Mapped[Optional[str]] = mapped_column(String(255))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    vehicle = relationship("Vehicle")
    pm_template = relationship("PMTemplate")


# =====================
# Jobs
# =====================

class Job(Base):
    __tablename__ = "jobs"

    id: Mapped[uuid.UUID] = uuid_pk()
    job_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True, index=True)
    customer_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("customers.id", ondelete="RESTRICT"), nullable=False, index=True)
    service_location_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("customer_service_locations.id", ondelete="SET NULL"))
    job_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)  # delivery|pickup|partial-pickup|service|on-site-survey
    status: Mapped[str] = mapped_column(String(50), default="assigned", index=True)  # unassigned|assigned|in-progress|completed|cancelled
    scheduled_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    scheduled_time: Mapped[Optional[time]] = mapped_column(Time)
    timezone: Mapped[Optional[str]] = mapped_column(String(64))
    driver_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), index=True)
    vehicle_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("vehicles.id", ondelete="SET NULL"), index=True)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    special_instructions: Mapped[Optional[str]] = mapped_column(Text)
    billing_method: Mapped[Optional[str]] = mapped_column(String(50))  # per-use|bundle|subscription
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    customer = relationship("Customer")
    driver = relationship("User")
    vehicle = relationship("Vehicle")
    assignments = relationship("EquipmentAssignment", back_populates="job", cascade="all, delete-orphan")
    consumables = relationship("JobConsumable", back_populates="job", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_jobs_date_driver", "scheduled_date", "driver_id"),
    )


class JobConsumable(Base):
    __tablename__ = "job_consumables"

    id: Mapped[uuid.UUID] = uuid_pk()
    job_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True)
    consumable_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("consumables.id", ondelete="RESTRICT"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[float] = mapped_column(Float, default=0)
    line_total: Mapped[float] = mapped_column(Float, default=0)
    used_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    job = relationship("Job", back_populates="consumables")
    consumable = relationship("Consumable")


# =====================
# Equipment: products, tracked units, assignments
# =====================

class Product(Base):
    __tablename__ = "products"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text)
    stock_total: Mapped[int] = mapped_column(Integer, default=0)
    default_price_per_day: Mapped[Optional[float]] = mapped_column(Float)
    image_url: Mapped[Optional[str]] = mapped_column(String(1024))
    track_inventory: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    items = relationship("ProductItem", back_populates="product", cascade="all, delete-orphan", order_by="ProductItem.item_code")


class ProductItem(Base):
    """Individually tracked (serialized) unit of a product"""
    __tablename__ = "product_items"

    id: Mapped[uuid.UUID] = uuid_pk()
    product_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    item_code: Mapped[str] = mapped_column(String(100), nullable=False, unique=True, index=True)
    status: Mapped[str] = mapped_column(String(50), default="available", index=True)  # available|assigned|maintenance|out_of_service|retired|lost
    attributes: Mapped[Optional[dict]] = mapped_column(JSON)  # color, size, winterized, ...
    current_storage_location_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("storage_locations.id", ondelete="SET NULL"))
    # Tool tracking
    tool_number: Mapped[Optional[str]] = mapped_column(String(100))
    vendor_id: Mapped[Optional[str]] = mapped_column(String(100))
    ocr_confidence_score: Mapped[Optional[float]] = mapped_column(Float)
    verification_status: Mapped[Optional[str]] = mapped_column(String(50))  # auto_detected|needs_review|verified
    tracking_photo_url: Mapped[Optional[str]] = mapped_column(String(1024))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    product = relationship("Product", back_populates="items")


class EquipmentAssignment(Base):
    """Links a job to bulk product stock (product_id + quantity) or to one tracked unit (product_item_id)"""
    __tablename__ = "equipment_assignments"

    id: Mapped[uuid.UUID] = uuid_pk()
    job_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("products.id", ondelete="CASCADE"), index=True)
    product_item_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("product_items.id", ondelete="CASCADE"), index=True)
    quantity: Mapped[int] = mapped_column(Integer, default=1)
    assigned_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    return_date: Mapped[Optional[date]] = mapped_column(Date)
    status: Mapped[str] = mapped_column(String(50), default="reserved", index=True)  # reserved|assigned|delivered|in_service|returned|cancelled
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    job = relationship("Job", back_populates="assignments")
    product = relationship("Product")
    product_item = relationship("ProductItem")


# =====================
# Inventory: consumables, storage locations, transfers, reordering
# =====================

class StorageLocation(Base):
    __tablename__ = "storage_locations"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    location_type: Mapped[str] = mapped_column(String(50), default="warehouse")  # warehouse|vehicle|facility
    address: Mapped[Optional[str]] = mapped_column(String(500))
    vehicle_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("vehicles.id", ondelete="SET NULL"))
    is_default: Mapped[bool] = mapped_column(Boolean, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)


class Consumable(Base):
    __tablename__ = "consumables"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    sku: Mapped[Optional[str]] = mapped_column(String(100), index=True)
    category: Mapped[Optional[str]] = mapped_column(String(100))
    unit_price: Mapped[float] = mapped_column(Float, default=0)
    unit_cost: Mapped[Optional[float]] = mapped_column(Float)
    on_hand_qty: Mapped[int] = mapped_column(Integer, default=0)
    reorder_threshold: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


class ConsumableBundle(Base):
    __tablename__ = "consumable_bundles"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)

    items = relationship("ConsumableBundleItem", back_populates="bundle", cascade="all, delete-orphan")


class ConsumableBundleItem(Base):
    __tablename__ = "consumable_bundle_items"

    id: Mapped[uuid.UUID] = uuid_pk()
    bundle_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("consumable_bundles.id", ondelete="CASCADE"), nullable=False, index=True)
    consumable_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("consumables.id", ondelete="CASCADE"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    bundle = relationship("ConsumableBundle", back_populates="items")
    consumable = relationship("Consumable")


class LocationStock(Base):
    __tablename__ = "consumable_location_stock"

    id: Mapped[uuid.UUID] = uuid_pk()
    consumable_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("consumables.id", ondelete="CASCADE"), nullable=False, index=True)
    storage_location_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("storage_locations.id", ondelete="CASCADE"), nullable=False, index=True)
    quantity: Mapped[int] = mapped_column(Integer, default=0)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    consumable = relationship("Consumable")
    storage_location = relationship("StorageLocation")

    __table_args__ = (
        UniqueConstraint("consumable_id", "storage_location_id", name="uq_consumable_location"),
    )


class StockTransfer(Base):
    __tablename__ = "stock_transfers"

    id: Mapped[uuid.UUID] = uuid_pk()
    consumable_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("consumables.id", ondelete="CASCADE"), nullable=False, index=True)
    from_location_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("storage_locations.id", ondelete="SET NULL"))
    to_location_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("storage_locations.id", ondelete="CASCADE"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    transfer_reason: Mapped[Optional[str]] = mapped_column(String(255))
    transferred_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)


class Supplier(Base):
    __tablename__ = "suppliers"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255))
    phone: Mapped[Optional[str]] = mapped_column(String(100))
    website: Mapped[Optional[str]] = mapped_column(String(255))
    address: Mapped[Optional[str]] = mapped_column(String(500))
    payment_terms: Mapped[Optional[str]] = mapped_column(String(100))  # e.g., Net 30
    lead_time_days: Mapped[Optional[int]] = mapped_column(Integer)
    notes: Mapped[Optional[str]] = mapped_column(String(2000))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)


class ReorderRule(Base):
    __tablename__ = "reorder_rules"

    id: Mapped[uuid.UUID] = uuid_pk()
    consumable_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("consumables.id", ondelete="CASCADE"), nullable=False, index=True)
    supplier_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("suppliers.id", ondelete="SET NULL"))
    trigger_type: Mapped[str] = mapped_column(String(20), default="quantity")  # quantity|time|hybrid
    min_quantity: Mapped[int] = mapped_column(Integer, default=0)
    reorder_quantity: Mapped[int] = mapped_column(Integer, default=0)
    reorder_interval_days: Mapped[int] = mapped_column(Integer, default=30)
    max_stock_level: Mapped[int] = mapped_column(Integer, default=0)
    lead_time_days: Mapped[int] = mapped_column(Integer, default=7)
    safety_stock: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    auto_approve: Mapped[bool] = mapped_column(Boolean, default=False)
    last_triggered: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    consumable = relationship("Consumable")
    supplier = relationship("Supplier")


class PurchaseOrder(Base):
    __tablename__ = "purchase_orders"

    id: Mapped[uuid.UUID] = uuid_pk()
    supplier_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("suppliers.id", ondelete="SET NULL"))
    reorder_rule_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("reorder_rules.id", ondelete="SET NULL"))
    status: Mapped[str] = mapped_column(String(50), default="pending")  # pending|approved|received|cancelled
    order_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    expected_date: Mapped[Optional[date]] = mapped_column(Date)
    received_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    items = relationship("PurchaseOrderItem", back_populates="order", cascade="all, delete-orphan")

    @property
    def order_code(self) -> str:
        # Human-friendly code derived from UUID prefix
        return f"PO{str(self.id).split('-')[0].upper()}"


class PurchaseOrderItem(Base):
    __tablename__ = "purchase_order_items"

    id: Mapped[uuid.UUID] = uuid_pk()
    order_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("purchase_orders.id", ondelete="CASCADE"), nullable=False)
    consumable_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("consumables.id", ondelete="RESTRICT"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    order = relationship("PurchaseOrder", back_populates="items")


# =====================
# Maintenance
# =====================

class PMTemplate(Base):
    """Preventive maintenance template for vehicles"""
    __tablename__ = "pm_templates"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(50), default="pump_truck")
    instructions: Mapped[Optional[str]] = mapped_column(Text)
    estimated_labor_hours: Mapped[Optional[float]] = mapped_column(Float)
    default_triggers: Mapped[Optional[dict]] = mapped_column(JSON)  # {miles, hours, days, job_count, pump_hours}
    checklist: Mapped[Optional[list]] = mapped_column(JSON)  # [{item, category, severity}]
    parts_list: Mapped[Optional[list]] = mapped_column(JSON)  # [{part_name, qty, unit_cost}]
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


class ServiceReportTemplate(Base):
    __tablename__ = "service_report_templates"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    template_type: Mapped[str] = mapped_column(String(50), default="service", index=True)
    version: Mapped[str] = mapped_column(String(20), default="1.0")
    is_default_for_type: Mapped[bool] = mapped_column(Boolean, default=False)
    sections: Mapped[Optional[list]] = mapped_column(JSON, default=list)
    logic_rules: Mapped[Optional[dict]] = mapped_column(JSON)
    output_config: Mapped[Optional[dict]] = mapped_column(JSON)
    is_active: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


class MaintenanceReport(Base):
    __tablename__ = "maintenance_reports"

    id: Mapped[uuid.UUID] = uuid_pk()
    report_number: Mapped[Optional[str]] = mapped_column(String(50), index=True)
    template_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("service_report_templates.id", ondelete="SET NULL"))
    job_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("jobs.id", ondelete="SET NULL"), index=True)
    customer_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("customers.id", ondelete="SET NULL"), index=True)
    vehicle_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("vehicles.id", ondelete="SET NULL"))
    report_data: Mapped[Optional[dict]] = mapped_column(JSON)
    status: Mapped[str] = mapped_column(String(50), default="draft", index=True)  # draft|completed
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    completed_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))
    pdf_file_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("file_objects.id", ondelete="SET NULL"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    template = relationship("ServiceReportTemplate")
    job = relationship("Job")
    customer = relationship("Customer")


# =====================
# Billing
# =====================

class Quote(Base):
    __tablename__ = "quotes"

    id: Mapped[uuid.UUID] = uuid_pk()
    quote_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True, index=True)
    customer_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("customers.id", ondelete="RESTRICT"), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(50), default="draft", index=True)  # draft|sent|accepted|declined|expired
    expiration_date: Mapped[Optional[date]] = mapped_column(Date)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    subtotal: Mapped[float] = mapped_column(Float, default=0)
    tax_amount: Mapped[float] = mapped_column(Float, default=0)
    tax_rate: Mapped[Optional[float]] = mapped_column(Float)  # fraction, e.g. 0.08
    total_amount: Mapped[float] = mapped_column(Float, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, index=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    customer = relationship("Customer")
    items = relationship("QuoteItem", back_populates="quote", cascade="all, delete-orphan")


class QuoteItem(Base):
    __tablename__ = "quote_items"

    id: Mapped[uuid.UUID] = uuid_pk()
    quote_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("quotes.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("products.id", ondelete="SET NULL"))
    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(1000))
    quantity: Mapped[float] = mapped_column(Float, default=1)
    unit_price: Mapped[float] = mapped_column(Float, default=0)
    line_total: Mapped[float] = mapped_column(Float, default=0)

    quote = relationship("Quote", back_populates="items")


class Invoice(Base):
    __tablename__ = "invoices"

    id: Mapped[uuid.UUID] = uuid_pk()
    invoice_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True, index=True)
    customer_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("customers.id", ondelete="RESTRICT"), nullable=False, index=True)
    quote_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("quotes.id", ondelete="SET NULL"))
    job_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("jobs.id", ondelete="SET NULL"))
    status: Mapped[str] = mapped_column(String(50), default="draft", index=True)  # draft|sent|paid|overdue|cancelled
    due_date: Mapped[Optional[date]] = mapped_column(Date)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    subtotal: Mapped[float] = mapped_column(Float, default=0)
    tax_amount: Mapped[float] = mapped_column(Float, default=0)
    tax_rate: Mapped[Optional[float]] = mapped_column(Float)  # fraction, e.g. 0.08
    total_amount: Mapped[float] = mapped_column(Float, default=0)
    amount_paid: Mapped[float] = mapped_column(Float, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, index=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    customer = relationship("Customer")
    items = relationship("InvoiceItem", back_populates="invoice", cascade="all, delete-orphan")

    @property
    def balance_due(self) -> float:
        return round(max(0.0, (self.total_amount or 0) - (self.amount_paid or 0)), 2)


class InvoiceItem(Base):
    __tablename__ = "invoice_items"

    id: Mapped[uuid.UUID] = uuid_pk()
    invoice_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("products.id", ondelete="SET NULL"))
    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(1000))
    quantity: Mapped[float] = mapped_column(Float, default=1)
    unit_price: Mapped[float] = mapped_column(Float, default=0)
    line_total: Mapped[float] = mapped_column(Float, default=0)

    invoice = relationship("Invoice", back_populates="items")
