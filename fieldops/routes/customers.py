from fastapi import APIRouter, Depends, HTTPException, UploadFile, File
import io
import uuid
from datetime import datetime
from sqlalchemy.orm import Session
from typing import Optional, List

from ..db import get_db
from ..models.models import (
    Customer,
    CustomerContact,
    CustomerServiceLocation,
    GpsDropPin,
    Job,
    Quote,
    Invoice,
)
from ..schemas.customers import (
    CustomerCreate, CustomerUpdate, CustomerResponse,
    CustomerContactCreate, CustomerContactResponse,
    ServiceLocationCreate, ServiceLocationUpdate, ServiceLocationResponse,
    DropPinCreate, DropPinUpdate, DropPinResponse,
    CustomerImportResult,
)
from ..auth.security import require_permissions
from ..services.geocoding import geocode_first, join_address
from ..services.geofence import pin_distance
from ..services.customer_import import import_customers_csv


router = APIRouter(prefix="/customers", tags=["customers"])


def _get_customer(db: Session, customer_id: uuid.UUID) -> Customer:
    c = db.query(Customer).filter(Customer.id == customer_id).first()
    if not c:
        raise HTTPException(status_code=404, detail="Customer not found")
    return c


@router.post("", response_model=CustomerResponse, status_code=201)
def create_customer(payload: CustomerCreate, db: Session = Depends(get_db), _=Depends(require_permissions("customers:write"))):
    c = Customer(**payload.dict(exclude_unset=True))
    db.add(c)
    db.commit()
    db.refresh(c)
    return c


@router.get("")
def list_customers(
    q: Optional[str] = None,
    customer_type: Optional[str] = None,
    page: int = 1,
    limit: int = 25,
    db: Session = Depends(get_db),
    _=Depends(require_permissions("customers:read")),
):
    # Validate pagination parameters
    page = max(1, page)
    limit = max(1, min(100, limit))
    offset = (page - 1) * limit

    base_query = db.query(Customer)
    if customer_type:
        base_query = base_query.filter(Customer.customer_type == customer_type)
    if q:
        like = f"%{q}%"
        base_query = base_query.filter(
            Customer.name.ilike(like) | Customer.email.ilike(like) | Customer.phone.ilike(like)
        )

    total = base_query.count()
    rows = base_query.order_by(Customer.name.asc()).offset(offset).limit(limit).all()
    return {
        "items": [CustomerResponse.model_validate(c) for c in rows],
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": (total + limit - 1) // limit if total else 0,
    }


@router.post("/import", response_model=CustomerImportResult)
async def import_customers(
    file: UploadFile = File(...),
    dry_run: bool = False,
    db: Session = Depends(get_db),
    _=Depends(require_permissions("customers:write")),
):
    raw = await file.read()
    try:
        text = raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="CSV must be UTF-8 encoded")
    return import_customers_csv(db, io.StringIO(text), dry_run=dry_run)


@router.get("/{customer_id}", response_model=CustomerResponse)
def get_customer(customer_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permissions("customers:read"))):
    return _get_customer(db, customer_id)


@router.patch("/{customer_id}", response_model=CustomerResponse)
def update_customer(customer_id: uuid.UUID, payload: CustomerUpdate, db: Session = Depends(get_db), _=Depends(require_permissions("customers:write"))):
    c = _get_customer(db, customer_id)
    data = payload.dict(exclude_unset=True)
    if "name" in data and not (data["name"] or "").strip():
        raise HTTPException(status_code=400, detail="Customer name is required")
    for k, v in data.items():
        setattr(c, k, v)
    c.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(c)
    return c


@router.delete("/{customer_id}")
def delete_customer(customer_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permissions("customers:write"))):
    c = db.query(Customer).filter(Customer.id == customer_id).first()
    if not c:
        return {"status": "ok"}
    # Jobs and billing documents are NOT cascade deleted
    jobs_count = db.query(Job).filter(Job.customer_id == customer_id).count()
    docs_count = (
        db.query(Quote).filter(Quote.customer_id == customer_id).count()
        + db.query(Invoice).filter(Invoice.customer_id == customer_id).count()
    )
    if jobs_count or docs_count:
        raise HTTPException(
            status_code=400,
            detail=f"Cannot delete customer: {jobs_count} job(s) and {docs_count} quote(s)/invoice(s) still exist.",
        )
    db.delete(c)
    db.commit()
    return {"status": "ok"}


# ----- Contacts -----
@router.post("/{customer_id}/contacts", response_model=CustomerContactResponse, status_code=201)
def create_contact(customer_id: uuid.UUID, payload: CustomerContactCreate, db: Session = Depends(get_db), _=Depends(require_permissions("customers:write"))):
    _get_customer(db, customer_id)
    if payload.is_primary:
        db.query(CustomerContact).filter(CustomerContact.customer_id == customer_id).update({CustomerContact.is_primary: False})
    row = CustomerContact(customer_id=customer_id, **payload.dict(exclude_unset=True))
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


@router.get("/{customer_id}/contacts", response_model=List[CustomerContactResponse])
def list_contacts(customer_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permissions("customers:read"))):
    return (
        db.query(CustomerContact)
        .filter(CustomerContact.customer_id == customer_id)
        .order_by(CustomerContact.is_primary.desc(), CustomerContact.first_name.asc())
        .all()
    )


@router.patch("/{customer_id}/contacts/{contact_id}", response_model=CustomerContactResponse)
def update_contact(customer_id: uuid.UUID, contact_id: uuid.UUID, payload: dict, db: Session = Depends(get_db), _=Depends(require_permissions("customers:write"))):
    row = db.query(CustomerContact).filter(CustomerContact.id == contact_id, CustomerContact.customer_id == customer_id).first()
    if not row:
        raise HTTPException(status_code=404, detail="Contact not found")
    if payload.get("is_primary"):
        db.query(CustomerContact).filter(CustomerContact.customer_id == customer_id, CustomerContact.id != contact_id).update({CustomerContact.is_primary: False})
    for k, v in payload.items():
        if k in {"first_name", "last_name", "title", "email", "phone", "is_primary", "notes"}:
            setattr(row, k, v)
    db.commit()
    db.refresh(row)
    return row


@router.delete("/{customer_id}/contacts/{contact_id}")
def delete_contact(customer_id: uuid.UUID, contact_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permissions("customers:write"))):
    row = db.query(CustomerContact).filter(CustomerContact.id == contact_id, CustomerContact.customer_id == customer_id).first()
    if row:
        db.delete(row)
        db.commit()
    return {"status": "ok"}


# ----- Service locations -----
def _geocode_location(row: CustomerServiceLocation) -> None:
    if row.latitude is not None and row.longitude is not None:
        return
    address = join_address(row.street, row.street2, row.city, row.state, row.zip)
    hit = geocode_first(address)
    if hit:
        row.latitude = hit["latitude"]
        row.longitude = hit["longitude"]


def _set_default_location(db: Session, row: CustomerServiceLocation) -> None:
    db.query(CustomerServiceLocation).filter(
        CustomerServiceLocation.customer_id == row.customer_id,
        CustomerServiceLocation.id != row.id,
    ).update({CustomerServiceLocation.is_default: False})


@router.get("/{customer_id}/locations", response_model=List[ServiceLocationResponse])
def list_locations(customer_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permissions("customers:read"))):
    return (
        db.query(CustomerServiceLocation)
        .filter(CustomerServiceLocation.customer_id == customer_id)
        .order_by(CustomerServiceLocation.is_default.desc(), CustomerServiceLocation.location_name.asc())
        .all()
    )


@router.post("/{customer_id}/locations", response_model=ServiceLocationResponse, status_code=201)
def create_location(customer_id: uuid.UUID, payload: ServiceLocationCreate, db: Session = Depends(get_db), _=Depends(require_permissions("customers:write"))):
    _get_customer(db, customer_id)
    row = CustomerServiceLocation(customer_id=customer_id, **payload.dict(exclude_unset=True))
    # First location of a customer becomes the default
    if not db.query(CustomerServiceLocation).filter(CustomerServiceLocation.customer_id == customer_id).first():
        row.is_default = True
    _geocode_location(row)
    db.add(row)
    db.flush()
    if row.is_default:
        _set_default_location(db, row)
    db.commit()
    db.refresh(row)
    return row


@router.patch("/{customer_id}/locations/{location_id}", response_model=ServiceLocationResponse)
def update_location(customer_id: uuid.UUID, location_id: uuid.UUID, payload: ServiceLocationUpdate, db: Session = Depends(get_db), _=Depends(require_permissions("customers:write"))):
    row = db.query(CustomerServiceLocation).filter(CustomerServiceLocation.id == location_id, CustomerServiceLocation.customer_id == customer_id).first()
    if not row:
        raise HTTPException(status_code=404, detail="Location not found")
    data = payload.dict(exclude_unset=True)
    address_changed = any(k in data for k in ("street", "street2", "city", "state", "zip"))
    successor = None
    if row.is_default and data.get("is_default") is False:
        # oldest other location takes over as the default
        successor = (
            db.query(CustomerServiceLocation)
            .filter(CustomerServiceLocation.customer_id == customer_id, CustomerServiceLocation.id != row.id)
            .order_by(CustomerServiceLocation.created_at.asc())
            .first()
        )
        if successor is None:
            raise HTTPException(status_code=400, detail="The only service location must remain the default")
    for k, v in data.items():
        setattr(row, k, v)
    # A new address without explicit coordinates invalidates the old ones
    if address_changed and "latitude" not in data and "longitude" not in data:
        row.latitude = None
        row.longitude = None
    _geocode_location(row)
    if data.get("is_default"):
        _set_default_location(db, row)
    elif successor is not None:
        successor.is_default = True
    db.commit()
    db.refresh(row)
    return row


@router.delete("/{customer_id}/locations/{location_id}")
def delete_location(customer_id: uuid.UUID, location_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permissions("customers:write"))):
    row = db.query(CustomerServiceLocation).filter(CustomerServiceLocation.id == location_id, CustomerServiceLocation.customer_id == customer_id).first()
    if not row:
        return {"status": "ok"}
    was_default = row.is_default
    db.delete(row)
    db.flush()
    if was_default:
        nxt = (
            db.query(CustomerServiceLocation)
            .filter(CustomerServiceLocation.customer_id == customer_id)
            .order_by(CustomerServiceLocation.created_at.asc())
            .first()
        )
        if nxt:
            nxt.is_default = True
    db.commit()
    return {"status": "ok"}


# ----- GPS drop pins -----
def _pin_response(db: Session, pin: GpsDropPin) -> DropPinResponse:
    distance, far = None, False
    if pin.service_location_id:
        loc = db.query(CustomerServiceLocation).filter(CustomerServiceLocation.id == pin.service_location_id).first()
        if loc:
            distance, far = pin_distance(pin.latitude, pin.longitude, loc.latitude, loc.longitude)
    return DropPinResponse(
        id=pin.id,
        customer_id=pin.customer_id,
        label=pin.label,
        category=pin.category,
        service_location_id=pin.service_location_id,
        latitude=pin.latitude,
        longitude=pin.longitude,
        notes=pin.notes,
        distance_m=distance,
        far_from_location=far,
    )


def _check_pin_location(db: Session, customer_id: uuid.UUID, location_id: Optional[uuid.UUID]) -> None:
    if location_id is None:
        return
    loc = db.query(CustomerServiceLocation).filter(
        CustomerServiceLocation.id == location_id,
        CustomerServiceLocation.customer_id == customer_id,
    ).first()
    if not loc:
        raise HTTPException(status_code=400, detail="Service location does not belong to this customer")


@router.get("/{customer_id}/pins", response_model=List[DropPinResponse])
def list_pins(customer_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permissions("customers:read"))):
    pins = db.query(GpsDropPin).filter(GpsDropPin.customer_id == customer_id).order_by(GpsDropPin.created_at.asc()).all()
    return [_pin_response(db, p) for p in pins]


@router.post("/{customer_id}/pins", response_model=DropPinResponse, status_code=201)
def create_pin(customer_id: uuid.UUID, payload: DropPinCreate, db: Session = Depends(get_db), _=Depends(require_permissions("customers:write"))):
    _get_customer(db, customer_id)
    _check_pin_location(db, customer_id, payload.service_location_id)
    pin = GpsDropPin(customer_id=customer_id, **payload.dict(exclude_unset=True))
    db.add(pin)
    db.commit()
    db.refresh(pin)
    return _pin_response(db, pin)


@router.patch("/{customer_id}/pins/{pin_id}", response_model=DropPinResponse)
def update_pin(customer_id: uuid.UUID, pin_id: uuid.UUID, payload: DropPinUpdate, db: Session = Depends(get_db), _=Depends(require_permissions("customers:write"))):
    pin = db.query(GpsDropPin).filter(GpsDropPin.id == pin_id, GpsDropPin.customer_id == customer_id).first()
    if not pin:
        raise HTTPException(status_code=404, detail="Pin not found")
    data = payload.dict(exclude_unset=True)
    if "service_location_id" in data:
        _check_pin_location(db, customer_id, data["service_location_id"])
    for k, v in data.items():
        setattr(pin, k, v)
    db.commit()
    db.refresh(pin)
    return _pin_response(db, pin)


@router.delete("/{customer_id}/pins/{pin_id}")
def delete_pin(customer_id: uuid.UUID, pin_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permissions("customers:write"))):
    pin = db.query(GpsDropPin).filter(GpsDropPin.id == pin_id, GpsDropPin.customer_id == customer_id).first()
    if pin:
        db.delete(pin)
        db.commit()
    return {"status": "ok"}
