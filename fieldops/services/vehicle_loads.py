"""
Daily vehicle load planning: equipment on a vehicle's jobs vs its capacity.
"""
from collections import defaultdict
from datetime import date
from typing import Any, Dict, List
import uuid

from sqlalchemy.orm import Session

from ..models.models import Job, Vehicle, VehicleLoadCapacity, EquipmentAssignment
from .availability import is_assignment_active


def daily_loads(db: Session, day: date) -> List[Dict[str, Any]]:
    jobs = (
        db.query(Job)
        .filter(Job.scheduled_date == day, Job.vehicle_id != None, Job.status != "cancelled")
        .all()
    )
    by_vehicle: Dict[uuid.UUID, List[Job]] = defaultdict(list)
    for job in jobs:
        by_vehicle[job.vehicle_id].append(job)

    out = []
    for vehicle_id, vehicle_jobs in by_vehicle.items():
        vehicle = db.query(Vehicle).filter(Vehicle.id == vehicle_id).first()
        if not vehicle:
            continue
        job_ids = [j.id for j in vehicle_jobs]
        assignments = db.query(EquipmentAssignment).filter(EquipmentAssignment.job_id.in_(job_ids)).all()

        quantities: Dict[uuid.UUID, int] = defaultdict(int)
        names: Dict[uuid.UUID, str] = {}
        for a in assignments:
            if not is_assignment_active(a, day):
                continue
            if a.product_item_id is not None and a.product_item is not None:
                product = a.product_item.product
            else:
                product = a.product
            if product is None:
                continue
            quantities[product.id] += a.quantity or 1
            names[product.id] = product.name

        capacities = {
            c.product_id: c.max_capacity
            for c in db.query(VehicleLoadCapacity).filter(VehicleLoadCapacity.vehicle_id == vehicle_id).all()
        }
        lines = []
        for product_id, qty in quantities.items():
            cap = capacities.get(product_id)
            util = round(qty / cap * 100, 1) if cap else None
            lines.append({
                "product_id": product_id,
                "product_name": names[product_id],
                "assigned_quantity": qty,
                "max_capacity": cap,
                "utilization_percent": util,
                "over_capacity": cap is not None and qty > cap,
            })
        lines.sort(key=lambda l: l["product_name"].lower())
        out.append({
            "vehicle_id": vehicle.id,
            "license_plate": vehicle.license_plate,
            "date": day,
            "job_count": len(vehicle_jobs),
            "lines": lines,
            "over_capacity": any(l["over_capacity"] for l in lines),
        })
    out.sort(key=lambda v: v["license_plate"])
    return out
