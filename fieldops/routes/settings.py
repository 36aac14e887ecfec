from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import structlog

from ..db import get_db
from ..auth.security import require_permissions
from ..schemas.settings import CompanySettingsResponse, CompanySettingsUpdate
from ..services.numbering import get_company_settings


router = APIRouter(prefix="/settings", tags=["settings"])
log = structlog.get_logger()

PREFIX_FIELDS = (
    "delivery_prefix",
    "pickup_prefix",
    "service_prefix",
    "survey_prefix",
    "job_prefix",
    "quote_prefix",
    "invoice_prefix",
)


@router.get("/company", response_model=CompanySettingsResponse)
def get_company(db: Session = Depends(get_db), _=Depends(require_permissions("settings:read"))):
    row = get_company_settings(db)
    db.commit()
    db.refresh(row)
    return row


@router.patch("/company", response_model=CompanySettingsResponse)
def update_company(payload: CompanySettingsUpdate, db: Session = Depends(get_db), _=Depends(require_permissions("settings:write"))):
    """Update numbering prefixes/counters and billing defaults"""
    data = payload.dict(exclude_unset=True)
    for field in PREFIX_FIELDS:
        if field in data:
            value = (data[field] or "").strip()
            if not value:
                raise HTTPException(status_code=400, detail=f"{field} cannot be empty")
            data[field] = value
    row = get_company_settings(db)
    for k, v in data.items():
        setattr(row, k, v)
    db.commit()
    db.refresh(row)
    log.info("company_settings_updated", fields=sorted(data.keys()))
    return row
