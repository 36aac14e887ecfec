import uuid
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..db import get_db
from ..auth.security import require_permissions
from ..models.models import (
    Consumable,
    ConsumableBundle,
    ConsumableBundleItem,
    StorageLocation,
    LocationStock,
    StockTransfer,
    Supplier,
    ReorderRule,
    PurchaseOrder,
)
from ..schemas.inventory import (
    ConsumableCreate,
    ConsumableUpdate,
    ConsumableResponse,
    BundleCreate,
    BundleResponse,
    StorageLocationCreate,
    StorageLocationUpdate,
    StorageLocationResponse,
    LocationStockResponse,
    LocationStockSet,
    StockTransferCreate,
    StockTransferResponse,
    SupplierCreate,
    SupplierResponse,
    ReorderRuleCreate,
    ReorderRuleUpdate,
    ReorderRuleResponse,
    ReorderRunResponse,
    ReorderAnalyticsRow,
    PurchaseOrderResponse,
    PurchaseOrderStatusUpdate,
)
from ..services.stock import transfer_stock, set_location_stock, StockError
from ..services.reorder import run_reorder_rules, reorder_analytics


router = APIRouter(prefix="/inventory", tags=["inventory"])


def _get_consumable(db: Session, consumable_id: uuid.UUID) -> Consumable:
    row = db.query(Consumable).filter(Consumable.id == consumable_id).first()
    if not row:
        raise HTTPException(status_code=404, detail="Consumable not found")
    return row


def _get_location(db: Session, location_id: uuid.UUID) -> StorageLocation:
    row = db.query(StorageLocation).filter(StorageLocation.id == location_id).first()
    if not row:
        raise HTTPException(status_code=404, detail="Storage location not found")
    return row


# ---------- CONSUMABLES ----------
@router.get("/consumables", response_model=List[ConsumableResponse])
def list_consumables(
    q: Optional[str] = None,
    category: Optional[str] = None,
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    _=Depends(require_permissions("inventory:read")),
):
    query = db.query(Consumable)
    if not include_inactive:
        query = query.filter(Consumable.is_active == True)
    if category:
        query = query.filter(Consumable.category == category)
    if q:
        like = f"%{q}%"
        query = query.filter(Consumable.name.ilike(like) | Consumable.sku.ilike(like))
    return query.order_by(Consumable.name.asc()).all()


@router.post("/consumables", response_model=ConsumableResponse, status_code=201)
def create_consumable(payload: ConsumableCreate, db: Session = Depends(get_db), _=Depends(require_permissions("inventory:write"))):
    row = Consumable(**payload.dict())
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


@router.get("/consumables/low_stock", response_model=List[ConsumableResponse])
def low_stock_consumables(db: Session = Depends(get_db), _=Depends(require_permissions("inventory:read"))):
    return (
        db.query(Consumable)
        .filter(Consumable.is_active == True, Consumable.on_hand_qty <= Consumable.reorder_threshold)
        .order_by(Consumable.name.asc())
        .all()
    )


@router.get("/consumables/{consumable_id}", response_model=ConsumableResponse)
def get_consumable(consumable_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permissions("inventory:read"))):
    return _get_consumable(db, consumable_id)


@router.put("/consumables/{consumable_id}", response_model=ConsumableResponse)
def update_consumable(consumable_id: uuid.UUID, payload: ConsumableUpdate, db: Session = Depends(get_db), _=Depends(require_permissions("inventory:write"))):
    row = _get_consumable(db, consumable_id)
    for k, v in payload.dict(exclude_unset=True).items():
        setattr(row, k, v)
    row.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(row)
    return row


@router.delete("/consumables/{consumable_id}")
def delete_consumable(consumable_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permissions("inventory:write"))):
    """Consumables referenced by job usage are deactivated instead of deleted"""
    row = _get_consumable(db, consumable_id)
    row.is_active = False
    row.updated_at = datetime.now(timezone.utc)
    db.commit()
    return {"message": "Consumable deactivated"}


# ---------- BUNDLES ----------
@router.get("/bundles", response_model=List[BundleResponse])
def list_bundles(db: Session = Depends(get_db), _=Depends(require_permissions("inventory:read"))):
    return db.query(ConsumableBundle).order_by(ConsumableBundle.name.asc()).all()


@router.post("/bundles", response_model=BundleResponse, status_code=201)
def create_bundle(payload: BundleCreate, db: Session = Depends(get_db), _=Depends(require_permissions("inventory:write"))):
    bundle = ConsumableBundle(name=payload.name, description=payload.description)
    for item in payload.items:
        _get_consumable(db, item.consumable_id)
        bundle.items.append(ConsumableBundleItem(consumable_id=item.consumable_id, quantity=item.quantity))
    db.add(bundle)
    db.commit()
    db.refresh(bundle)
    return bundle


@router.delete("/bundles/{bundle_id}")
def delete_bundle(bundle_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permissions("inventory:write"))):
    row = db.query(ConsumableBundle).filter(ConsumableBundle.id == bundle_id).first()
    if not row:
        raise HTTPException(status_code=404, detail="Bundle not found")
    db.delete(row)
    db.commit()
    return {"message": "Bundle deleted successfully"}


# ---------- STORAGE LOCATIONS ----------
@router.get("/locations", response_model=List[StorageLocationResponse])
def list_locations(include_inactive: bool = False, db: Session = Depends(get_db), _=Depends(require_permissions("inventory:read"))):
    query = db.query(StorageLocation)
    if not include_inactive:
        query = query.filter(StorageLocation.is_active == True)
    return query.order_by(StorageLocation.is_default.desc(), StorageLocation.name.asc()).all()


@router.post("/locations", response_model=StorageLocationResponse, status_code=201)
def create_location(payload: StorageLocationCreate, db: Session = Depends(get_db), _=Depends(require_permissions("inventory:write"))):
    row = StorageLocation(**payload.dict())
    db.add(row)
    db.flush()
    if row.is_default:
        db.query(StorageLocation).filter(StorageLocation.id != row.id).update({StorageLocation.is_default: False}, synchronize_session=False)
    db.commit()
    db.refresh(row)
    return row


@router.put("/locations/{location_id}", response_model=StorageLocationResponse)
def update_location(location_id: uuid.UUID, payload: StorageLocationUpdate, db: Session = Depends(get_db), _=Depends(require_permissions("inventory:write"))):
    row = _get_location(db, location_id)
    data = payload.dict(exclude_unset=True)
    for k, v in data.items():
        setattr(row, k, v)
    if data.get("is_default"):
        db.query(StorageLocation).filter(StorageLocation.id != row.id).update({StorageLocation.is_default: False}, synchronize_session=False)
    db.commit()
    db.refresh(row)
    return row


@router.delete("/locations/{location_id}")
def delete_location(location_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permissions("inventory:write"))):
    """Delete a storage location (soft delete by deactivating it)"""
    row = _get_location(db, location_id)
    row.is_active = False
    db.commit()
    return {"message": "Storage location deactivated"}


@router.get("/locations/{location_id}/stock", response_model=List[LocationStockResponse])
def list_location_stock(location_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permissions("inventory:read"))):
    _get_location(db, location_id)
    rows = db.query(LocationStock).filter(LocationStock.storage_location_id == location_id).all()
    out = [
        {
            "id": r.id,
            "consumable_id": r.consumable_id,
            "storage_location_id": r.storage_location_id,
            "quantity": r.quantity or 0,
            "consumable_name": r.consumable.name if r.consumable else None,
        }
        for r in rows
    ]
    out.sort(key=lambda r: (r["consumable_name"] or "").lower())
    return out


@router.put("/locations/{location_id}/stock", response_model=LocationStockResponse)
def set_stock(location_id: uuid.UUID, payload: LocationStockSet, db: Session = Depends(get_db), _=Depends(require_permissions("inventory:write"))):
    """Set an absolute quantity or adjust by a delta"""
    _get_location(db, location_id)
    consumable = _get_consumable(db, payload.consumable_id)
    try:
        row = set_location_stock(db, consumable.id, location_id, quantity=payload.quantity, delta=payload.delta)
    except StockError as e:
        raise HTTPException(status_code=400, detail=str(e))
    db.commit()
    db.refresh(row)
    return {
        "id": row.id,
        "consumable_id": row.consumable_id,
        "storage_location_id": row.storage_location_id,
        "quantity": row.quantity,
        "consumable_name": consumable.name,
    }


# ---------- TRANSFERS ----------
@router.get("/transfers", response_model=List[StockTransferResponse])
def list_transfers(
    consumable_id: Optional[uuid.UUID] = None,
    location_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
    _=Depends(require_permissions("inventory:read")),
):
    query = db.query(StockTransfer)
    if consumable_id:
        query = query.filter(StockTransfer.consumable_id == consumable_id)
    if location_id:
        query = query.filter((StockTransfer.from_location_id == location_id) | (StockTransfer.to_location_id == location_id))
    return query.order_by(StockTransfer.created_at.desc()).limit(500).all()


@router.post("/transfers", response_model=StockTransferResponse, status_code=201)
def create_transfer(payload: StockTransferCreate, db: Session = Depends(get_db), user=Depends(require_permissions("inventory:write"))):
    try:
        transfer = transfer_stock(
            db,
            payload.consumable_id,
            payload.from_location_id,
            payload.to_location_id,
            payload.quantity,
            transferred_by=user.id,
            reason=payload.transfer_reason,
            notes=payload.notes,
        )
    except StockError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))
    db.commit()
    db.refresh(transfer)
    return transfer


# ---------- SUPPLIERS ----------
@router.get("/suppliers", response_model=List[SupplierResponse])
def list_suppliers(q: Optional[str] = None, db: Session = Depends(get_db), _=Depends(require_permissions("inventory:read"))):
    query = db.query(Supplier)
    if q:
        like = f"%{q}%"
        query = query.filter(Supplier.name.ilike(like) | Supplier.email.ilike(like))
    return query.order_by(Supplier.name.asc()).limit(500).all()


@router.post("/suppliers", response_model=SupplierResponse, status_code=201)
def create_supplier(payload: SupplierCreate, db: Session = Depends(get_db), _=Depends(require_permissions("inventory:write"))):
    if not payload.name.strip():
        raise HTTPException(status_code=400, detail="Name is required")
    data = payload.dict()
    data["name"] = payload.name.strip()
    row = Supplier(**data)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


@router.get("/suppliers/{supplier_id}", response_model=SupplierResponse)
def get_supplier(supplier_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permissions("inventory:read"))):
    row = db.query(Supplier).filter(Supplier.id == supplier_id).first()
    if not row:
        raise HTTPException(status_code=404, detail="Supplier not found")
    return row


@router.put("/suppliers/{supplier_id}", response_model=SupplierResponse)
def update_supplier(supplier_id: uuid.UUID, body: dict, db: Session = Depends(get_db), _=Depends(require_permissions("inventory:write"))):
    row = db.query(Supplier).filter(Supplier.id == supplier_id).first()
    if not row:
        raise HTTPException(status_code=404, detail="Supplier not found")

    # Update only provided fields (empty strings clear optional fields)
    for k, v in body.items():
        if k in ("id", "created_at") or not hasattr(row, k):
            continue
        if k == "name":
            if not (v or "").strip():
                raise HTTPException(status_code=400, detail="Name is required")
            row.name = v.strip()
        elif v == "":
            setattr(row, k, None)
        else:
            setattr(row, k, v)
    db.commit()
    db.refresh(row)
    return row


@router.delete("/suppliers/{supplier_id}")
def delete_supplier(supplier_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permissions("inventory:write"))):
    row = db.query(Supplier).filter(Supplier.id == supplier_id).first()
    if not row:
        raise HTTPException(status_code=404, detail="Supplier not found")
    db.delete(row)
    db.commit()
    return {"message": "Supplier deleted successfully"}


# ---------- REORDER RULES ----------
@router.get("/reorder-rules", response_model=List[ReorderRuleResponse])
def list_reorder_rules(consumable_id: Optional[uuid.UUID] = None, db: Session = Depends(get_db), _=Depends(require_permissions("inventory:read"))):
    query = db.query(ReorderRule)
    if consumable_id:
        query = query.filter(ReorderRule.consumable_id == consumable_id)
    return query.order_by(ReorderRule.created_at.asc()).all()


@router.post("/reorder-rules", response_model=ReorderRuleResponse, status_code=201)
def create_reorder_rule(payload: ReorderRuleCreate, db: Session = Depends(get_db), _=Depends(require_permissions("inventory:write"))):
    _get_consumable(db, payload.consumable_id)
    if payload.supplier_id and not db.query(Supplier).filter(Supplier.id == payload.supplier_id).first():
        raise HTTPException(status_code=404, detail="Supplier not found")
    row = ReorderRule(**payload.dict())
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


@router.put("/reorder-rules/{rule_id}", response_model=ReorderRuleResponse)
def update_reorder_rule(rule_id: uuid.UUID, payload: ReorderRuleUpdate, db: Session = Depends(get_db), _=Depends(require_permissions("inventory:write"))):
    row = db.query(ReorderRule).filter(ReorderRule.id == rule_id).first()
    if not row:
        raise HTTPException(status_code=404, detail="Reorder rule not found")
    for k, v in payload.dict(exclude_unset=True).items():
        setattr(row, k, v)
    db.commit()
    db.refresh(row)
    return row


@router.delete("/reorder-rules/{rule_id}")
def delete_reorder_rule(rule_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permissions("inventory:write"))):
    row = db.query(ReorderRule).filter(ReorderRule.id == rule_id).first()
    if row:
        db.delete(row)
        db.commit()
    return {"status": "ok"}


@router.post("/reorder-rules/run", response_model=ReorderRunResponse)
def run_rules(db: Session = Depends(get_db), _=Depends(require_permissions("inventory:write"))):
    """Evaluate active rules and raise a purchase order for every rule that fires"""
    fired = run_reorder_rules(db)
    db.commit()
    return {"dry_run": False, "fired": fired}


@router.get("/reorder-rules/preview", response_model=ReorderRunResponse)
def preview_rules(db: Session = Depends(get_db), _=Depends(require_permissions("inventory:read"))):
    return {"dry_run": True, "fired": run_reorder_rules(db, dry_run=True)}


@router.get("/reorder-analytics", response_model=List[ReorderAnalyticsRow])
def get_reorder_analytics(db: Session = Depends(get_db), _=Depends(require_permissions("inventory:read"))):
    return reorder_analytics(db)


# ---------- PURCHASE ORDERS ----------
@router.get("/purchase-orders", response_model=List[PurchaseOrderResponse])
def list_purchase_orders(status: Optional[str] = None, db: Session = Depends(get_db), _=Depends(require_permissions("inventory:read"))):
    query = db.query(PurchaseOrder)
    if status:
        query = query.filter(PurchaseOrder.status == status)
    return query.order_by(PurchaseOrder.order_date.desc()).all()


@router.put("/purchase-orders/{order_id}/status", response_model=PurchaseOrderResponse)
def update_purchase_order_status(
    order_id: uuid.UUID,
    payload: PurchaseOrderStatusUpdate,
    db: Session = Depends(get_db),
    _=Depends(require_permissions("inventory:write")),
):
    row = db.query(PurchaseOrder).filter(PurchaseOrder.id == order_id).first()
    if not row:
        raise HTTPException(status_code=404, detail="Purchase order not found")
    if row.status == "received":
        raise HTTPException(status_code=400, detail="Purchase order already received")

    row.status = payload.status
    if payload.status == "received":
        row.received_date = datetime.now(timezone.utc)
        for item in row.items:
            c = db.query(Consumable).filter(Consumable.id == item.consumable_id).first()
            if c:
                c.on_hand_qty = (c.on_hand_qty or 0) + item.quantity
                c.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(row)
    return row
