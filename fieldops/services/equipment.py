"""
Equipment reservations on jobs and tool tracking verification.
"""
from datetime import date, datetime
from typing import List, Optional
import uuid

import structlog
from sqlalchemy.orm import Session

from ..config import settings
from ..models.models import Product, ProductItem, EquipmentAssignment, Job
from .availability import (
    AvailabilityError,
    INACTIVE_ASSIGNMENT_STATUSES,
    UNAVAILABLE_ITEM_STATUSES,
    get_product_availability,
    validate_window,
)


log = structlog.get_logger()


class ReservationConflict(ValueError):
    """Requested equipment is not available for the window (HTTP 409)."""


def _overlaps(a_start: date, a_end: Optional[date], b_start: date, b_end: Optional[date]) -> bool:
    # None end = open-ended
    if a_end is not None and a_end < b_start:
        return False
    if b_end is not None and b_end < a_start:
        return False
    return True


def unit_is_free(db: Session, item: ProductItem, start: date, end: Optional[date]) -> bool:
    if item.status in UNAVAILABLE_ITEM_STATUSES:
        return False
    active = (
        db.query(EquipmentAssignment)
        .filter(
            EquipmentAssignment.product_item_id == item.id,
            EquipmentAssignment.status.notin_(list(INACTIVE_ASSIGNMENT_STATUSES)),
        )
        .all()
    )
    return not any(_overlaps(start, end, a.assigned_date, a.return_date) for a in active)


def bulk_window_available(db: Session, product: Product, start: date, end: Optional[date]) -> int:
    """Minimum bulk (untracked) units free on any day of the window."""
    result = get_product_availability(db, product.id, start, end)
    return min(row["bulk_available"] for row in result["daily_breakdown"])


def reserve_bulk(
    db: Session,
    job: Job,
    product_id: uuid.UUID,
    quantity: int,
    assigned_date: date,
    return_date: Optional[date] = None,
) -> EquipmentAssignment:
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise AvailabilityError("Product not found")
    validate_window(assigned_date, return_date)
    # a bulk row only draws on the untracked pool; tracked units go through auto_assign
    result = get_product_availability(db, product.id, assigned_date, return_date)
    bulk_free = min(row["bulk_available"] for row in result["daily_breakdown"])
    if bulk_free < quantity:
        raise ReservationConflict(
            f"Only {bulk_free} bulk units of {product.name} available for the selected dates "
            f"({quantity} requested, {result['available']} including tracked units)"
        )
    assignment = EquipmentAssignment(
        job_id=job.id,
        product_id=product.id,
        quantity=quantity,
        assigned_date=assigned_date,
        return_date=return_date,
        status="reserved",
    )
    db.add(assignment)
    db.flush()
    log.info("equipment_reserved", job_id=str(job.id), product_id=str(product.id), quantity=quantity)
    return assignment


def reserve_unit(
    db: Session,
    job: Job,
    product_item_id: uuid.UUID,
    assigned_date: date,
    return_date: Optional[date] = None,
) -> EquipmentAssignment:
    item = db.query(ProductItem).filter(ProductItem.id == product_item_id).first()
    if not item or not item.product_id:
        raise AvailabilityError("Unit not found")
    validate_window(assigned_date, return_date)
    if item.status in UNAVAILABLE_ITEM_STATUSES:
        raise ReservationConflict(f"Unit {item.item_code} is {item.status.replace('_', ' ')}")
    if not unit_is_free(db, item, assigned_date, return_date):
        raise ReservationConflict(f"Unit {item.item_code} is already assigned for the selected dates")
    assignment = EquipmentAssignment(
        job_id=job.id,
        product_item_id=item.id,
        quantity=1,
        assigned_date=assigned_date,
        return_date=return_date,
        status="reserved",
    )
    db.add(assignment)
    db.flush()
    log.info("unit_reserved", job_id=str(job.id), product_item_id=str(item.id))
    return assignment


def auto_assign(
    db: Session,
    job: Job,
    product_id: uuid.UUID,
    quantity: int,
    assigned_date: date,
    return_date: Optional[date] = None,
) -> List[EquipmentAssignment]:
    """
    Reserve `quantity` units of a product for a job.

    Free tracked units are taken first in item code order; the remainder is
    covered by one bulk reservation. Nothing is written when the combined
    availability is short.
    """
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise AvailabilityError("Product not found")
    validate_window(assigned_date, return_date)

    items = (
        db.query(ProductItem)
        .filter(ProductItem.product_id == product.id)
        .order_by(ProductItem.item_code.asc())
        .all()
    )
    free_units = [i for i in items if unit_is_free(db, i, assigned_date, return_date)]
    take_units = free_units[:quantity]
    remainder = quantity - len(take_units)
    bulk_free = bulk_window_available(db, product, assigned_date, return_date) if remainder else 0
    if remainder > bulk_free:
        raise ReservationConflict(
            f"Only {len(take_units) + bulk_free} units of {product.name} available for the selected dates ({quantity} requested)"
        )

    created: List[EquipmentAssignment] = []
    for item in take_units:
        created.append(EquipmentAssignment(
            job_id=job.id,
            product_item_id=item.id,
            quantity=1,
            assigned_date=assigned_date,
            return_date=return_date,
            status="reserved",
        ))
    if remainder:
        created.append(EquipmentAssignment(
            job_id=job.id,
            product_id=product.id,
            quantity=remainder,
            assigned_date=assigned_date,
            return_date=return_date,
            status="reserved",
        ))
    db.add_all(created)
    db.flush()
    log.info(
        "equipment_auto_assigned",
        job_id=str(job.id),
        product_id=str(product.id),
        tracked=len(take_units),
        bulk=remainder,
    )
    return created


def verification_status_for(confidence: float, threshold: Optional[float] = None) -> str:
    if threshold is None:
        threshold = settings.ocr_auto_detect_threshold
    return "auto_detected" if confidence > threshold else "needs_review"


def record_ocr(
    item: ProductItem,
    confidence: float,
    tool_number: Optional[str] = None,
    vendor_id: Optional[str] = None,
    tracking_photo_url: Optional[str] = None,
) -> ProductItem:
    if confidence < 0 or confidence > 1:
        raise ValueError("Confidence score must be between 0 and 1")
    if tool_number is not None:
        item.tool_number = tool_number
    if vendor_id is not None:
        item.vendor_id = vendor_id
    if tracking_photo_url is not None:
        item.tracking_photo_url = tracking_photo_url
    item.ocr_confidence_score = confidence
    item.verification_status = verification_status_for(confidence)
    item.updated_at = datetime.utcnow()
    return item


def verify_item(item: ProductItem) -> ProductItem:
    item.verification_status = "verified"
    item.updated_at = datetime.utcnow()
    return item
