import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Body
from sqlalchemy.orm import Session

from ..db import get_db
from ..config import settings
from ..models.models import User, Role, Customer
from ..schemas.auth import (
    LoginRequest,
    RefreshRequest,
    TokenResponse,
    MeResponse,
    UserCreate,
)
from .security import (
    get_password_hash,
    verify_password,
    create_access_token,
    create_refresh_token,
    decode_token,
    get_current_user,
    get_user_permission_map,
    require_permissions,
)
from ..logging import structlog


router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=TokenResponse)
def login(req: LoginRequest, db: Session = Depends(get_db)):
    q = db.query(User).filter(
        (User.username == req.identifier)
        | (User.email == req.identifier)
    )
    user = q.first()
    if not user or not user.is_active or not verify_password(req.password, user.password_hash):
        structlog.get_logger().warning("login_failed", identifier=req.identifier)
        raise HTTPException(status_code=401, detail="Invalid credentials")
    access = create_access_token(str(user.id), roles=[r.name for r in user.roles])
    refresh = create_refresh_token(str(user.id))
    user.last_login_at = datetime.now(timezone.utc)
    db.commit()
    return TokenResponse(access_token=access, refresh_token=refresh)


@router.post("/refresh", response_model=TokenResponse)
def refresh(req: RefreshRequest, db: Session = Depends(get_db)):
    payload = decode_token(req.refresh_token)
    if payload.get("type") != "refresh":
        raise HTTPException(status_code=400, detail="Invalid refresh token")
    user_id = payload["sub"]
    user = db.query(User).filter(User.id == uuid.UUID(str(user_id))).first()
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="User not active")
    access = create_access_token(user_id, roles=[r.name for r in user.roles])
    refresh = create_refresh_token(user_id)
    return TokenResponse(access_token=access, refresh_token=refresh)


@router.get("/me", response_model=MeResponse)
def me(user: User = Depends(get_current_user)):
    # Keys with a truthy value are granted permissions
    perm_map = get_user_permission_map(user)
    granted = sorted([k for k, v in perm_map.items() if v])
    return MeResponse(
        id=str(user.id),
        username=user.username,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        is_driver=bool(user.is_driver),
        customer_id=str(user.customer_id) if user.customer_id else None,
        roles=[r.name for r in user.roles],
        permissions=granted,
    )


@router.get("/mapbox-token")
def mapbox_public_token(_: User = Depends(get_current_user)):
    if not settings.mapbox_public_token:
        raise HTTPException(status_code=503, detail="Map token not configured")
    return {"token": settings.mapbox_public_token}


# User administration
@router.post("/users", status_code=201)
def create_user(req: UserCreate, db: Session = Depends(get_db), _=Depends(require_permissions("users:write"))):
    if db.query(User).filter((User.username == req.username) | (User.email == req.email)).first():
        raise HTTPException(status_code=400, detail="Username or email already in use")
    customer_id = None
    if req.customer_id:
        customer_id = uuid.UUID(req.customer_id)
        if not db.query(Customer).filter(Customer.id == customer_id).first():
            raise HTTPException(status_code=404, detail="Customer not found")
    user = User(
        username=req.username,
        email=req.email,
        first_name=req.first_name,
        last_name=req.last_name,
        phone=req.phone,
        password_hash=get_password_hash(req.password),
        is_driver=req.is_driver,
        customer_id=customer_id,
    )
    if req.roles:
        user.roles = _resolve_roles(db, req.roles)
    db.add(user)
    db.commit()
    db.refresh(user)
    return {"id": str(user.id), "username": user.username}


@router.get("/users")
def list_users(drivers_only: bool = False, db: Session = Depends(get_db), _=Depends(require_permissions("users:read"))):
    q = db.query(User)
    if drivers_only:
        q = q.filter(User.is_driver == True)
    rows = q.order_by(User.username.asc()).all()
    return [
        {
            "id": str(u.id),
            "username": u.username,
            "name": u.display_name,
            "email": u.email,
            "is_driver": bool(u.is_driver),
            "is_active": bool(u.is_active),
            "customer_id": str(u.customer_id) if u.customer_id else None,
            "roles": [r.name for r in u.roles],
        }
        for u in rows
    ]


def _resolve_roles(db: Session, roles: list) -> list:
    # Load role records, create if missing
    role_rows = db.query(Role).filter(Role.name.in_(roles)).all()
    have = {r.name for r in role_rows}
    for name in [r for r in roles if r not in have]:
        r = Role(name=name, description=name.title())
        db.add(r)
        role_rows.append(r)
    return role_rows


@router.post("/users/{user_id}/roles")
def set_user_roles(user_id: uuid.UUID, roles: list[str] = Body(...), db: Session = Depends(get_db), _=Depends(require_permissions("users:write"))):
    u = db.query(User).filter(User.id == user_id).first()
    if not u:
        raise HTTPException(status_code=404, detail="Not found")
    u.roles = _resolve_roles(db, roles)
    db.commit()
    return {"status": "ok", "roles": [r.name for r in u.roles]}


@router.put("/users/{user_id}/permissions")
def update_user_permissions(user_id: uuid.UUID, permissions: dict = Body(...), db: Session = Depends(get_db), _=Depends(require_permissions("users:write"))):
    u = db.query(User).filter(User.id == user_id).first()
    if not u:
        raise HTTPException(status_code=404, detail="Not found")
    base = dict(u.permissions_override or {})
    base.update(permissions)
    u.permissions_override = base
    db.commit()
    return {"status": "ok", "permissions": u.permissions_override}
