"""
Consumable stock movements: transfers between storage locations, location
stock adjustments and consumption on jobs.
"""
from datetime import datetime
from typing import List, Optional
import uuid

import structlog
from sqlalchemy.orm import Session

from ..models.models import (
    Consumable,
    ConsumableBundle,
    LocationStock,
    StockTransfer,
    StorageLocation,
    Job,
    JobConsumable,
)


log = structlog.get_logger()


class StockError(ValueError):
    pass


def _location_row(db: Session, consumable_id: uuid.UUID, location_id: uuid.UUID) -> Optional[LocationStock]:
    return (
        db.query(LocationStock)
        .filter(LocationStock.consumable_id == consumable_id, LocationStock.storage_location_id == location_id)
        .first()
    )


def transfer_stock(
    db: Session,
    consumable_id: uuid.UUID,
    from_location_id: uuid.UUID,
    to_location_id: uuid.UUID,
    quantity: int,
    transferred_by: Optional[uuid.UUID] = None,
    reason: Optional[str] = None,
    notes: Optional[str] = None,
) -> StockTransfer:
    """
    Move stock between two storage locations.

    All writes go through the given session and are committed once by the caller.
    Raises StockError with a user-facing message when the transfer is invalid.
    """
    if quantity is None or quantity <= 0:
        raise StockError("Quantity must be greater than 0")
    if from_location_id == to_location_id:
        raise StockError("Source and destination locations must be different")

    if not db.query(Consumable).filter(Consumable.id == consumable_id).first():
        raise StockError("Consumable not found")
    for loc_id in (from_location_id, to_location_id):
        if not db.query(StorageLocation).filter(StorageLocation.id == loc_id).first():
            raise StockError("Storage location not found")

    source = _location_row(db, consumable_id, from_location_id)
    available = source.quantity if source else 0
    if quantity > available:
        raise StockError(f"Insufficient stock at source location (available: {available})")

    transfer = StockTransfer(
        consumable_id=consumable_id,
        from_location_id=from_location_id,
        to_location_id=to_location_id,
        quantity=quantity,
        transfer_reason=reason,
        transferred_by=transferred_by,
        notes=notes,
    )
    db.add(transfer)

    now = datetime.utcnow()
    source.quantity = available - quantity
    source.updated_at = now

    dest = _location_row(db, consumable_id, to_location_id)
    if dest:
        dest.quantity = (dest.quantity or 0) + quantity
        dest.updated_at = now
    else:
        db.add(LocationStock(
            consumable_id=consumable_id,
            storage_location_id=to_location_id,
            quantity=quantity,
            updated_at=now,
        ))
    db.flush()
    log.info(
        "stock_transfer_completed",
        consumable_id=str(consumable_id),
        from_location_id=str(from_location_id),
        to_location_id=str(to_location_id),
        quantity=quantity,
    )
    return transfer


def set_location_stock(
    db: Session,
    consumable_id: uuid.UUID,
    location_id: uuid.UUID,
    quantity: Optional[int] = None,
    delta: Optional[int] = None,
) -> LocationStock:
    """Set an absolute quantity or apply a delta; the result never drops below zero."""
    if quantity is None and delta is None:
        raise StockError("Provide quantity or delta")
    row = _location_row(db, consumable_id, location_id)
    if not row:
        row = LocationStock(consumable_id=consumable_id, storage_location_id=location_id, quantity=0)
        db.add(row)
    if quantity is not None:
        row.quantity = quantity
    else:
        row.quantity = max(0, (row.quantity or 0) + delta)
    row.updated_at = datetime.utcnow()
    db.flush()
    return row


def _consume(db: Session, job: Job, consumable: Consumable, quantity: int, user_id: Optional[uuid.UUID]) -> JobConsumable:
    unit_price = float(consumable.unit_price or 0)
    line = JobConsumable(
        job_id=job.id,
        consumable_id=consumable.id,
        quantity=quantity,
        unit_price=unit_price,
        line_total=round(unit_price * quantity, 2),
        used_by=user_id,
    )
    db.add(line)
    consumable.on_hand_qty = max(0, (consumable.on_hand_qty or 0) - quantity)
    consumable.updated_at = datetime.utcnow()
    return line


def record_job_consumables(
    db: Session,
    job: Job,
    billing_method: str,
    items: Optional[List[dict]] = None,
    bundle_id: Optional[uuid.UUID] = None,
    user_id: Optional[uuid.UUID] = None,
) -> List[JobConsumable]:
    """
    Record consumables used on a job.

    per-use: every listed item is recorded and its stock decremented.
    bundle: every item of the bundle is recorded at the consumable's unit price.
    subscription: nothing is recorded and stock is untouched.
    """
    job.billing_method = billing_method
    if billing_method == "subscription":
        db.flush()
        return []

    lines: List[JobConsumable] = []
    if billing_method == "bundle":
        if not bundle_id:
            raise StockError("bundle_id is required for bundle billing")
        bundle = db.query(ConsumableBundle).filter(ConsumableBundle.id == bundle_id).first()
        if not bundle:
            raise StockError("Bundle not found")
        for bundle_item in bundle.items:
            lines.append(_consume(db, job, bundle_item.consumable, bundle_item.quantity, user_id))
    else:
        for entry in items or []:
            consumable = db.query(Consumable).filter(Consumable.id == entry["consumable_id"]).first()
            if not consumable:
                raise StockError("Consumable not found")
            lines.append(_consume(db, job, consumable, int(entry["quantity"]), user_id))
    db.flush()
    log.info("job_consumables_recorded", job_id=str(job.id), billing_method=billing_method, lines=len(lines))
    return lines
