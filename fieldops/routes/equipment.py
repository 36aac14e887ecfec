import uuid
from datetime import datetime, date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..auth.security import require_permissions
from ..models.models import Product, ProductItem, EquipmentAssignment, Job
from ..schemas.equipment import (
    ProductCreate,
    ProductUpdate,
    ProductResponse,
    ProductItemCreate,
    ProductItemUpdate,
    ProductItemResponse,
    OcrResult,
    BulkReservationRequest,
    UnitReservationRequest,
    AutoAssignEquipmentRequest,
    AssignmentResponse,
    AssignmentStatusUpdate,
    AvailabilityResponse,
    NextAvailableResponse,
)
from ..services.availability import (
    AvailabilityError,
    get_product_availability,
    next_available_date,
    month_window,
)
from ..services.equipment import (
    ReservationConflict,
    reserve_bulk,
    reserve_unit,
    auto_assign,
    record_ocr,
    verify_item,
)


router = APIRouter(prefix="/equipment", tags=["equipment"])


def _get_product(db: Session, product_id: uuid.UUID) -> Product:
    p = db.query(Product).filter(Product.id == product_id).first()
    if not p:
        raise HTTPException(status_code=404, detail="Product not found")
    return p


def _get_item(db: Session, item_id: uuid.UUID) -> ProductItem:
    it = db.query(ProductItem).filter(ProductItem.id == item_id).first()
    if not it:
        raise HTTPException(status_code=404, detail="Unit not found")
    return it


def _get_job(db: Session, job_id: uuid.UUID) -> Job:
    job = db.query(Job).filter(Job.id == job_id).first()
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


def _reservation_error(e: ValueError) -> HTTPException:
    if isinstance(e, ReservationConflict):
        return HTTPException(status_code=409, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


# ---------- PRODUCTS ----------
@router.get("/products", response_model=List[ProductResponse])
def list_products(q: Optional[str] = None, db: Session = Depends(get_db), _=Depends(require_permissions("equipment:read"))):
    query = db.query(Product)
    if q:
        query = query.filter(Product.name.ilike(f"%{q}%"))
    return query.order_by(Product.name.asc()).all()


@router.post("/products", response_model=ProductResponse, status_code=201)
def create_product(payload: ProductCreate, db: Session = Depends(get_db), _=Depends(require_permissions("equipment:write"))):
    if not payload.name.strip():
        raise HTTPException(status_code=400, detail="Product name is required")
    p = Product(**payload.dict())
    db.add(p)
    db.commit()
    db.refresh(p)
    return p


@router.get("/products/{product_id}", response_model=ProductResponse)
def get_product(product_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permissions("equipment:read"))):
    return _get_product(db, product_id)


@router.patch("/products/{product_id}", response_model=ProductResponse)
def update_product(product_id: uuid.UUID, payload: ProductUpdate, db: Session = Depends(get_db), _=Depends(require_permissions("equipment:write"))):
    p = _get_product(db, product_id)
    for k, v in payload.dict(exclude_unset=True).items():
        setattr(p, k, v)
    p.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(p)
    return p


@router.delete("/products/{product_id}")
def delete_product(product_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permissions("equipment:write"))):
    p = db.query(Product).filter(Product.id == product_id).first()
    if not p:
        return {"status": "ok"}
    in_use = (
        db.query(EquipmentAssignment)
        .filter(EquipmentAssignment.product_id == product_id, EquipmentAssignment.status.notin_(["returned", "cancelled"]))
        .count()
    )
    if in_use:
        raise HTTPException(status_code=400, detail=f"Cannot delete product: {in_use} active assignment(s) still exist.")
    db.delete(p)
    db.commit()
    return {"status": "ok"}


# ---------- AVAILABILITY ----------
@router.get("/products/{product_id}/availability", response_model=AvailabilityResponse)
def product_availability(
    product_id: uuid.UUID,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    requested_quantity: Optional[int] = Query(None, ge=1),
    include_unavailable_units: bool = False,
    db: Session = Depends(get_db),
    _=Depends(require_permissions("equipment:read")),
):
    """Day-by-day availability of a product; without dates returns the total stock"""
    if end_date and not start_date:
        raise HTTPException(status_code=400, detail="start_date is required when end_date is given")
    try:
        result = get_product_availability(
            db, product_id, start_date, end_date,
            requested_quantity=requested_quantity,
            include_unavailable_units=include_unavailable_units,
        )
    except AvailabilityError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if result is None:
        raise HTTPException(status_code=404, detail="Product not found")
    return result


@router.get("/products/{product_id}/next-available", response_model=NextAvailableResponse)
def product_next_available(
    product_id: uuid.UUID,
    from_date: Optional[date] = None,
    quantity: int = Query(1, ge=1),
    db: Session = Depends(get_db),
    _=Depends(require_permissions("equipment:read")),
):
    _get_product(db, product_id)
    found = next_available_date(db, product_id, from_date or date.today(), quantity)
    return {"product_id": product_id, "requested_quantity": quantity, "next_available_date": found}


@router.get("/products/{product_id}/calendar", response_model=AvailabilityResponse)
def product_calendar(
    product_id: uuid.UUID,
    month: Optional[date] = None,
    include_unavailable_units: bool = True,
    db: Session = Depends(get_db),
    _=Depends(require_permissions("equipment:read")),
):
    """Availability feed for the calendar month containing `month` (defaults to today)"""
    start, end = month_window(month or date.today())
    try:
        result = get_product_availability(db, product_id, start, end, include_unavailable_units=include_unavailable_units)
    except AvailabilityError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if result is None:
        raise HTTPException(status_code=404, detail="Product not found")
    return result


# ---------- TRACKED UNITS ----------
@router.get("/products/{product_id}/items", response_model=List[ProductItemResponse])
def list_items(
    product_id: uuid.UUID,
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    _=Depends(require_permissions("equipment:read")),
):
    _get_product(db, product_id)
    q = db.query(ProductItem).filter(ProductItem.product_id == product_id)
    if status:
        q = q.filter(ProductItem.status == status)
    return q.order_by(ProductItem.item_code.asc()).all()


@router.post("/products/{product_id}/items", response_model=ProductItemResponse, status_code=201)
def create_item(
    product_id: uuid.UUID,
    payload: ProductItemCreate,
    db: Session = Depends(get_db),
    _=Depends(require_permissions("equipment:write")),
):
    _get_product(db, product_id)
    code = payload.item_code.strip()
    if not code:
        raise HTTPException(status_code=400, detail="Item code is required")
    if db.query(ProductItem).filter(ProductItem.item_code == code).first():
        raise HTTPException(status_code=400, detail="Item code already exists")
    data = payload.dict()
    data["item_code"] = code
    item = ProductItem(product_id=product_id, **data)
    db.add(item)
    db.commit()
    db.refresh(item)
    return item


@router.get("/items/{item_id}", response_model=ProductItemResponse)
def get_item(item_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permissions("equipment:read"))):
    return _get_item(db, item_id)


@router.patch("/items/{item_id}", response_model=ProductItemResponse)
def update_item(item_id: uuid.UUID, payload: ProductItemUpdate, db: Session = Depends(get_db), _=Depends(require_permissions("equipment:write"))):
    item = _get_item(db, item_id)
    data = payload.dict(exclude_unset=True)
    if "item_code" in data:
        code = (data["item_code"] or "").strip()
        if not code:
            raise HTTPException(status_code=400, detail="Item code is required")
        clash = db.query(ProductItem).filter(ProductItem.item_code == code, ProductItem.id != item_id).first()
        if clash:
            raise HTTPException(status_code=400, detail="Item code already exists")
        data["item_code"] = code
    for k, v in data.items():
        setattr(item, k, v)
    item.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(item)
    return item


@router.delete("/items/{item_id}")
def delete_item(item_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permissions("equipment:write"))):
    item = db.query(ProductItem).filter(ProductItem.id == item_id).first()
    if item:
        db.delete(item)
        db.commit()
    return {"status": "ok"}


@router.post("/items/{item_id}/ocr", response_model=ProductItemResponse)
def record_item_ocr(item_id: uuid.UUID, payload: OcrResult, db: Session = Depends(get_db), _=Depends(require_permissions("equipment:write"))):
    """Store an OCR reading; high confidence readings are auto-detected, the rest need review"""
    item = _get_item(db, item_id)
    try:
        record_ocr(item, payload.confidence, payload.tool_number, payload.vendor_id, payload.tracking_photo_url)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    db.commit()
    db.refresh(item)
    return item


@router.post("/items/{item_id}/verify", response_model=ProductItemResponse)
def verify(item_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permissions("equipment:write"))):
    item = _get_item(db, item_id)
    verify_item(item)
    db.commit()
    db.refresh(item)
    return item


# ---------- ASSIGNMENTS ----------
@router.get("/jobs/{job_id}/assignments", response_model=List[AssignmentResponse])
def list_job_assignments(job_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permissions("equipment:read"))):
    _get_job(db, job_id)
    return (
        db.query(EquipmentAssignment)
        .filter(EquipmentAssignment.job_id == job_id)
        .order_by(EquipmentAssignment.created_at.asc())
        .all()
    )


@router.post("/jobs/{job_id}/reservations/bulk", response_model=AssignmentResponse, status_code=201)
def create_bulk_reservation(
    job_id: uuid.UUID,
    payload: BulkReservationRequest,
    db: Session = Depends(get_db),
    _=Depends(require_permissions("equipment:write")),
):
    job = _get_job(db, job_id)
    try:
        row = reserve_bulk(db, job, payload.product_id, payload.quantity, payload.assigned_date, payload.return_date)
    except ValueError as e:
        db.rollback()
        raise _reservation_error(e)
    db.commit()
    db.refresh(row)
    return row


@router.post("/jobs/{job_id}/reservations/unit", response_model=AssignmentResponse, status_code=201)
def create_unit_reservation(
    job_id: uuid.UUID,
    payload: UnitReservationRequest,
    db: Session = Depends(get_db),
    _=Depends(require_permissions("equipment:write")),
):
    job = _get_job(db, job_id)
    try:
        row = reserve_unit(db, job, payload.product_item_id, payload.assigned_date, payload.return_date)
    except ValueError as e:
        db.rollback()
        raise _reservation_error(e)
    db.commit()
    db.refresh(row)
    return row


@router.post("/auto-assign", response_model=List[AssignmentResponse], status_code=201)
def auto_assign_equipment(
    payload: AutoAssignEquipmentRequest,
    db: Session = Depends(get_db),
    _=Depends(require_permissions("equipment:write")),
):
    """Tracked units first (item code order), remainder as one bulk reservation"""
    job = _get_job(db, payload.job_id)
    try:
        rows = auto_assign(db, job, payload.product_id, payload.quantity, payload.assigned_date, payload.return_date)
    except ValueError as e:
        db.rollback()
        raise _reservation_error(e)
    db.commit()
    for r in rows:
        db.refresh(r)
    return rows


@router.patch("/assignments/{assignment_id}", response_model=AssignmentResponse)
def update_assignment_status(
    assignment_id: uuid.UUID,
    payload: AssignmentStatusUpdate,
    db: Session = Depends(get_db),
    _=Depends(require_permissions("equipment:write")),
):
    row = db.query(EquipmentAssignment).filter(EquipmentAssignment.id == assignment_id).first()
    if not row:
        raise HTTPException(status_code=404, detail="Assignment not found")
    row.status = payload.status
    if payload.return_date is not None:
        if payload.return_date < row.assigned_date:
            raise HTTPException(status_code=400, detail="Return date must be on or after the assigned date")
        row.return_date = payload.return_date
    db.commit()
    db.refresh(row)
    return row


@router.delete("/assignments/{assignment_id}")
def remove_assignment(assignment_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permissions("equipment:write"))):
    row = db.query(EquipmentAssignment).filter(EquipmentAssignment.id == assignment_id).first()
    if row:
        db.delete(row)
        db.commit()
    return {"status": "ok"}
