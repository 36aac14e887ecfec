"""
Automatic reorder rules for consumables.
"""
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

import structlog
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models.models import Consumable, ReorderRule, PurchaseOrder, PurchaseOrderItem


log = structlog.get_logger()


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def evaluate_trigger(rule: Any, on_hand: int, now: Optional[datetime] = None) -> Optional[str]:
    """
    Decide whether a rule fires.

    Returns the trigger reason ("quantity" or "time") or None.
    """
    now = _as_utc(now or datetime.now(timezone.utc))
    quantity_hit = on_hand <= (rule.min_quantity or 0) + (rule.safety_stock or 0)
    if rule.last_triggered is None:
        time_hit = True
    else:
        time_hit = now - _as_utc(rule.last_triggered) >= timedelta(days=rule.reorder_interval_days or 0)

    if rule.trigger_type == "quantity":
        return "quantity" if quantity_hit else None
    if rule.trigger_type == "time":
        return "time" if time_hit else None
    # hybrid
    if quantity_hit:
        return "quantity"
    if time_hit:
        return "time"
    return None


def order_quantity(rule: Any, on_hand: int) -> int:
    qty = rule.reorder_quantity or 0
    if (rule.max_stock_level or 0) > 0:
        qty = min(qty, rule.max_stock_level - on_hand)
    return max(0, qty)


def plan(rule: Any, on_hand: int, now: Optional[datetime] = None) -> Optional[Tuple[str, int]]:
    """Trigger reason and quantity for a rule, or None when it does not fire."""
    if not rule.is_active:
        return None
    reason = evaluate_trigger(rule, on_hand, now)
    if reason is None:
        return None
    qty = order_quantity(rule, on_hand)
    if qty <= 0:
        return None
    return reason, qty


def run_reorder_rules(db: Session, dry_run: bool = False, today: Optional[date] = None) -> List[Dict[str, Any]]:
    """
    Evaluate every active rule; unless dry_run, raise one purchase order per
    firing rule and stamp last_triggered.
    """
    today = today or date.today()
    now = datetime.now(timezone.utc)
    fired: List[Dict[str, Any]] = []

    rules = db.query(ReorderRule).filter(ReorderRule.is_active == True).all()
    for rule in rules:
        consumable = db.query(Consumable).filter(Consumable.id == rule.consumable_id).first()
        if not consumable:
            continue
        on_hand = consumable.on_hand_qty or 0
        decision = plan(rule, on_hand, now)
        if decision is None:
            continue
        reason, qty = decision
        expected = today + timedelta(days=rule.lead_time_days or 0)
        entry = {
            "rule_id": rule.id,
            "consumable_id": consumable.id,
            "consumable_name": consumable.name,
            "trigger_reason": reason,
            "on_hand": on_hand,
            "order_quantity": qty,
            "expected_delivery": expected,
            "purchase_order_id": None,
            "purchase_order_status": None,
        }
        if not dry_run:
            po = PurchaseOrder(
                supplier_id=rule.supplier_id,
                reorder_rule_id=rule.id,
                status="approved" if rule.auto_approve else "pending",
                expected_date=expected,
            )
            po.items.append(PurchaseOrderItem(consumable_id=consumable.id, quantity=qty))
            db.add(po)
            rule.last_triggered = now
            db.flush()
            entry["purchase_order_id"] = po.id
            entry["purchase_order_status"] = po.status
            log.info(
                "reorder_rule_triggered",
                rule_id=str(rule.id),
                consumable_id=str(consumable.id),
                reason=reason,
                quantity=qty,
            )
        fired.append(entry)
    return fired


def reorder_analytics(db: Session) -> List[Dict[str, Any]]:
    counts = dict(
        db.query(PurchaseOrderItem.consumable_id, func.count(func.distinct(PurchaseOrderItem.order_id)))
        .group_by(PurchaseOrderItem.consumable_id)
        .all()
    )
    rows = []
    for c in db.query(Consumable).filter(Consumable.is_active == True).order_by(Consumable.name.asc()).all():
        rows.append({
            "consumable_id": c.id,
            "consumable_name": c.name,
            "on_hand": c.on_hand_qty or 0,
            "reorder_threshold": c.reorder_threshold or 0,
            "below_threshold": (c.on_hand_qty or 0) <= (c.reorder_threshold or 0),
            "purchase_orders": counts.get(c.id, 0),
        })
    return rows
