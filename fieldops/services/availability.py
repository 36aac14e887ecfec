"""
Equipment availability engine.

Availability of a product on a day is the bulk pool (stock not covered by
tracked units) minus active bulk assignments, plus the tracked units that are
neither assigned nor out of service that day.
"""
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Optional
import uuid

from sqlalchemy.orm import Session

from ..config import settings
from ..models.models import Product, ProductItem, EquipmentAssignment, Job


INACTIVE_ASSIGNMENT_STATUSES = {"returned", "cancelled"}
UNAVAILABLE_ITEM_STATUSES = {"maintenance", "out_of_service", "retired", "lost"}


class AvailabilityError(ValueError):
    pass


def is_assignment_active(assignment: Any, day: date) -> bool:
    """An assignment occupies a day from assigned_date through return_date (open-ended when unset)."""
    if assignment.status in INACTIVE_ASSIGNMENT_STATUSES:
        return False
    if assignment.assigned_date is None or assignment.assigned_date > day:
        return False
    if assignment.return_date is not None and day > assignment.return_date:
        return False
    return True


def iter_days(start: date, end: date) -> Iterable[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def validate_window(start: date, end: Optional[date]) -> date:
    """Return the effective end date, raising when the window is invalid."""
    if end is None:
        end = start
    if end < start:
        raise AvailabilityError("End date must be on or after start date")
    days = (end - start).days + 1
    if days > settings.availability_max_days:
        raise AvailabilityError(f"Date range cannot exceed {settings.availability_max_days} days")
    return end


def classify(available: int, requested: int) -> str:
    if available >= requested:
        return "available"
    if available > 0:
        return "partial"
    return "unavailable"


def overall_message(min_available: int, requested: int) -> str:
    status = classify(min_available, requested)
    if status == "available":
        return f"{requested} units are available for the entire selected period"
    if status == "partial":
        return f"Only {min_available} units available ({requested} requested)"
    return "No units available for some days in the selected period"


def _conflict_entry(assignment: Any) -> Dict[str, Any]:
    job = getattr(assignment, "job", None)
    customer = getattr(job, "customer", None) if job is not None else None
    item = getattr(assignment, "product_item", None)
    return {
        "assignment_id": str(assignment.id),
        "job_id": str(assignment.job_id) if assignment.job_id else None,
        "job_number": getattr(job, "job_number", None),
        "customer_name": getattr(customer, "name", None),
        "item_id": str(assignment.product_item_id) if assignment.product_item_id else None,
        "item_code": getattr(item, "item_code", None),
        "quantity": assignment.quantity or 1,
        "status": assignment.status,
    }


def build_daily_breakdown(
    stock_total: int,
    items: List[Any],
    assignments: List[Any],
    start: date,
    end: date,
) -> List[Dict[str, Any]]:
    """
    Compute the per-day availability rows for a product.

    Args:
        stock_total: Product's total stock (bulk + tracked)
        items: Tracked units of the product
        assignments: Bulk and specific assignments touching the product
        start: First day of the window
        end: Last day of the window (inclusive)

    Returns:
        One dict per day with totals, bulk/tracked split and conflicts
    """
    tracked_count = len(items)
    bulk_pool = max(0, (stock_total or 0) - tracked_count)
    item_ids = {i.id for i in items}
    out_of_service_ids = {i.id for i in items if i.status in UNAVAILABLE_ITEM_STATUSES}

    rows: List[Dict[str, Any]] = []
    for day in iter_days(start, end):
        active = [a for a in assignments if is_assignment_active(a, day)]
        bulk_assigned = sum((a.quantity or 0) for a in active if a.product_item_id is None)
        busy_ids = {a.product_item_id for a in active if a.product_item_id in item_ids}
        tracked_assigned = len(busy_ids | out_of_service_ids)

        bulk_available = max(0, bulk_pool - bulk_assigned)
        tracked_available = tracked_count - tracked_assigned
        rows.append({
            "date": day,
            "total_available": bulk_available + tracked_available,
            "bulk_available": bulk_available,
            "tracked_available": tracked_available,
            "bulk_assigned": bulk_assigned,
            "tracked_assigned": tracked_assigned,
            "conflicts": [_conflict_entry(a) for a in active],
        })
    return rows


def individual_items(items: List[Any], assignments: List[Any], start: date, end: date) -> List[Dict[str, Any]]:
    out = []
    for item in items:
        busy = any(
            a.product_item_id == item.id and is_assignment_active(a, day)
            for a in assignments
            for day in iter_days(start, end)
        )
        out.append({
            "item_id": str(item.id),
            "item_code": item.item_code,
            "status": item.status,
            "attributes": item.attributes or {},
            "available_for_window": item.status == "available" and not busy,
        })
    return out


def summarize(rows: List[Dict[str, Any]], stock_total: int) -> Dict[str, Any]:
    totals = [r["total_available"] for r in rows]
    return {
        "min_available": min(totals),
        "max_available": max(totals),
        "avg_available": round(sum(totals) / len(totals), 2),
        "total_stock": stock_total or 0,
    }


def augment_conflicts(rows: List[Dict[str, Any]], units: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Pad each day's conflicts with units that are unavailable for reasons other
    than an assignment, so the number of listed conflicts can match tracked_assigned.
    """
    unavailable = [u for u in units if u.get("status") and u["status"] != "available"]
    out = []
    for row in rows:
        existing = list(row.get("conflicts") or [])
        existing_ids = {c.get("item_id") for c in existing if c.get("item_id")}
        candidates = [u for u in unavailable if u["item_id"] not in existing_ids]
        deficit = max(0, (row.get("tracked_assigned") or 0) - len(existing))
        extras = [
            {
                "assignment_id": f"unavailable:{u['item_id']}",
                "job_id": None,
                "job_number": "Unavailable",
                "customer_name": u["status"][:1].upper() + u["status"][1:],
                "item_id": u["item_id"],
                "item_code": u["item_code"],
                "quantity": 1,
                "status": u["status"],
            }
            for u in candidates[:deficit]
        ]
        out.append({**row, "conflicts": existing + extras})
    return out


def _load(db: Session, product_id: uuid.UUID):
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product:
        return None, [], []
    items = (
        db.query(ProductItem)
        .filter(ProductItem.product_id == product_id)
        .order_by(ProductItem.item_code.asc())
        .all()
    )
    item_ids = [i.id for i in items]
    query = db.query(EquipmentAssignment).join(Job, EquipmentAssignment.job_id == Job.id)
    if item_ids:
        query = query.filter(
            (EquipmentAssignment.product_id == product_id) | (EquipmentAssignment.product_item_id.in_(item_ids))
        )
    else:
        query = query.filter(EquipmentAssignment.product_id == product_id)
    assignments = query.filter(EquipmentAssignment.status.notin_(list(INACTIVE_ASSIGNMENT_STATUSES))).all()
    return product, items, assignments


def get_product_availability(
    db: Session,
    product_id: uuid.UUID,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    requested_quantity: Optional[int] = None,
    include_unavailable_units: bool = False,
) -> Optional[Dict[str, Any]]:
    """
    Availability feed for one product over a date window.

    Returns None when the product does not exist. Without a start date the
    answer is simply the product's total stock.
    """
    product, items, assignments = _load(db, product_id)
    if product is None:
        return None

    if start_date is None:
        return {
            "product_id": product.id,
            "available": product.stock_total or 0,
            "method": "stock_total",
            "daily_breakdown": [],
            "individual_items": [],
        }

    end_date = validate_window(start_date, end_date)
    rows = build_daily_breakdown(product.stock_total, items, assignments, start_date, end_date)
    units = individual_items(items, assignments, start_date, end_date)
    if include_unavailable_units:
        rows = augment_conflicts(rows, units)
    summary = summarize(rows, product.stock_total)

    result: Dict[str, Any] = {
        "product_id": product.id,
        "available": summary["min_available"],
        "method": "individual_tracking" if items else "availability_check",
        "start_date": start_date,
        "end_date": end_date,
        "daily_breakdown": rows,
        "summary": summary,
        "individual_items": units,
    }
    if requested_quantity is not None:
        for row in rows:
            row["status"] = classify(row["total_available"], requested_quantity)
        result["requested_quantity"] = requested_quantity
        result["overall_status"] = classify(summary["min_available"], requested_quantity)
        result["message"] = overall_message(summary["min_available"], requested_quantity)
    return result


def next_available_date(
    db: Session,
    product_id: uuid.UUID,
    from_date: date,
    requested_quantity: int = 1,
    horizon_days: Optional[int] = None,
) -> Optional[date]:
    """First day on or after from_date with enough units, searching within the horizon."""
    product, items, assignments = _load(db, product_id)
    if product is None:
        return None
    if horizon_days is None:
        horizon_days = settings.next_available_horizon_days
    end = from_date + timedelta(days=max(0, horizon_days - 1))
    for row in build_daily_breakdown(product.stock_total, items, assignments, from_date, end):
        if row["total_available"] >= requested_quantity:
            return row["date"]
    return None


def month_window(anchor: date):
    start = anchor.replace(day=1)
    if start.month == 12:
        next_month = start.replace(year=start.year + 1, month=1)
    else:
        next_month = start.replace(month=start.month + 1)
    return start, next_month - timedelta(days=1)
