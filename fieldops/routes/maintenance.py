import uuid
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from sqlalchemy.orm import Session
import structlog

from ..db import get_db
from ..auth.security import require_permissions
from ..models.models import (
    PMTemplate,
    ServiceReportTemplate,
    MaintenanceReport,
    Job,
    Customer,
)
from ..schemas.maintenance import (
    PMTemplateCreate,
    PMTemplateUpdate,
    PMTemplateResponse,
    ServiceTemplateCreate,
    ServiceTemplateUpdate,
    ServiceTemplateResponse,
    AddSectionRequest,
    ReorderSectionsRequest,
    PublishValidation,
    ReportCreate,
    ReportUpdate,
    ReportResponse,
)
from ..services.numbering import get_company_settings
from ..services.report_pdf import build_report_pdf
from ..services.templates import (
    TemplateError,
    build_section,
    remove_section,
    reorder_sections,
    validate_for_publish,
    missing_required_fields,
    estimated_parts_cost,
)
from ..storage.factory import get_storage
from ..storage.provider import StorageProvider
from .files import store_bytes


router = APIRouter(prefix="/maintenance", tags=["maintenance"])
log = structlog.get_logger()


# ---------- PM TEMPLATES ----------
def _pm_response(row: PMTemplate) -> PMTemplateResponse:
    return PMTemplateResponse(
        id=row.id,
        name=row.name,
        category=row.category,
        instructions=row.instructions,
        estimated_labor_hours=row.estimated_labor_hours,
        default_triggers=row.default_triggers,
        checklist=row.checklist or [],
        parts_list=row.parts_list or [],
        estimated_parts_cost=estimated_parts_cost(row.parts_list),
        created_at=row.created_at,
    )


def _get_pm_template(db: Session, template_id: uuid.UUID) -> PMTemplate:
    row = db.query(PMTemplate).filter(PMTemplate.id == template_id).first()
    if not row:
        raise HTTPException(status_code=404, detail="PM template not found")
    return row


@router.get("/pm-templates", response_model=List[PMTemplateResponse])
def list_pm_templates(category: Optional[str] = None, db: Session = Depends(get_db), _=Depends(require_permissions("maintenance:read"))):
    q = db.query(PMTemplate)
    if category:
        q = q.filter(PMTemplate.category == category)
    return [_pm_response(r) for r in q.order_by(PMTemplate.name.asc()).all()]


@router.post("/pm-templates", response_model=PMTemplateResponse, status_code=201)
def create_pm_template(payload: PMTemplateCreate, db: Session = Depends(get_db), _=Depends(require_permissions("maintenance:write"))):
    if not payload.name.strip():
        raise HTTPException(status_code=400, detail="Template name is required")
    row = PMTemplate(**payload.dict())
    db.add(row)
    db.commit()
    db.refresh(row)
    return _pm_response(row)


@router.get("/pm-templates/{template_id}", response_model=PMTemplateResponse)
def get_pm_template(template_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permissions("maintenance:read"))):
    return _pm_response(_get_pm_template(db, template_id))


@router.put("/pm-templates/{template_id}", response_model=PMTemplateResponse)
def update_pm_template(template_id: uuid.UUID, payload: PMTemplateUpdate, db: Session = Depends(get_db), _=Depends(require_permissions("maintenance:write"))):
    row = _get_pm_template(db, template_id)
    for k, v in payload.dict(exclude_unset=True).items():
        setattr(row, k, v)
    row.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(row)
    return _pm_response(row)


@router.delete("/pm-templates/{template_id}")
def delete_pm_template(template_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permissions("maintenance:write"))):
    row = db.query(PMTemplate).filter(PMTemplate.id == template_id).first()
    if row:
        db.delete(row)
        db.commit()
    return {"status": "ok"}


# ---------- SERVICE REPORT TEMPLATES ----------
def _get_template(db: Session, template_id: uuid.UUID) -> ServiceReportTemplate:
    row = db.query(ServiceReportTemplate).filter(ServiceReportTemplate.id == template_id).first()
    if not row:
        raise HTTPException(status_code=404, detail="Template not found")
    return row


def _clear_other_defaults(db: Session, row: ServiceReportTemplate) -> None:
    db.query(ServiceReportTemplate).filter(
        ServiceReportTemplate.template_type == row.template_type,
        ServiceReportTemplate.id != row.id,
    ).update({ServiceReportTemplate.is_default_for_type: False}, synchronize_session=False)


def _touch(row: ServiceReportTemplate, sections: list) -> None:
    # JSON columns are not mutation tracked; always assign a new list
    row.sections = list(sections)
    row.updated_at = datetime.now(timezone.utc)


@router.get("/templates", response_model=List[ServiceTemplateResponse])
def list_templates(
    template_type: Optional[str] = None,
    active_only: bool = False,
    db: Session = Depends(get_db),
    _=Depends(require_permissions("maintenance:read")),
):
    q = db.query(ServiceReportTemplate)
    if template_type:
        q = q.filter(ServiceReportTemplate.template_type == template_type)
    if active_only:
        q = q.filter(ServiceReportTemplate.is_active == True)
    return q.order_by(ServiceReportTemplate.name.asc()).all()


@router.post("/templates", response_model=ServiceTemplateResponse, status_code=201)
def create_template(payload: ServiceTemplateCreate, db: Session = Depends(get_db), _=Depends(require_permissions("maintenance:write"))):
    if not payload.name.strip():
        raise HTTPException(status_code=400, detail="Template name is required")
    row = ServiceReportTemplate(**payload.dict())
    db.add(row)
    db.flush()
    if row.is_default_for_type:
        _clear_other_defaults(db, row)
    db.commit()
    db.refresh(row)
    return row


@router.get("/templates/{template_id}", response_model=ServiceTemplateResponse)
def get_template(template_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permissions("maintenance:read"))):
    return _get_template(db, template_id)


@router.put("/templates/{template_id}", response_model=ServiceTemplateResponse)
def update_template(template_id: uuid.UUID, payload: ServiceTemplateUpdate, db: Session = Depends(get_db), _=Depends(require_permissions("maintenance:write"))):
    row = _get_template(db, template_id)
    data = payload.dict(exclude_unset=True)
    if "name" in data and not (data["name"] or "").strip():
        raise HTTPException(status_code=400, detail="Template name is required")
    for k, v in data.items():
        setattr(row, k, v)
    if row.is_default_for_type:
        _clear_other_defaults(db, row)
    row.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(row)
    return row


@router.delete("/templates/{template_id}")
def delete_template(template_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permissions("maintenance:write"))):
    row = db.query(ServiceReportTemplate).filter(ServiceReportTemplate.id == template_id).first()
    if row:
        db.delete(row)
        db.commit()
    return {"status": "ok"}


@router.post("/templates/{template_id}/sections", response_model=ServiceTemplateResponse)
def add_section(template_id: uuid.UUID, payload: AddSectionRequest, db: Session = Depends(get_db), _=Depends(require_permissions("maintenance:write"))):
    """Append a section generated from a block type and its selected features"""
    row = _get_template(db, template_id)
    try:
        section = build_section(payload.block_type, payload.features, payload.title)
    except TemplateError as e:
        raise HTTPException(status_code=400, detail=str(e))
    _touch(row, (row.sections or []) + [section])
    db.commit()
    db.refresh(row)
    return row


@router.delete("/templates/{template_id}/sections/{section_id}", response_model=ServiceTemplateResponse)
def delete_section(template_id: uuid.UUID, section_id: str, db: Session = Depends(get_db), _=Depends(require_permissions("maintenance:write"))):
    row = _get_template(db, template_id)
    try:
        sections = remove_section(row.sections or [], section_id)
    except TemplateError as e:
        raise HTTPException(status_code=404, detail=str(e))
    _touch(row, sections)
    db.commit()
    db.refresh(row)
    return row


@router.put("/templates/{template_id}/sections/order", response_model=ServiceTemplateResponse)
def order_sections(template_id: uuid.UUID, payload: ReorderSectionsRequest, db: Session = Depends(get_db), _=Depends(require_permissions("maintenance:write"))):
    row = _get_template(db, template_id)
    try:
        sections = reorder_sections(row.sections or [], payload.section_ids)
    except TemplateError as e:
        raise HTTPException(status_code=400, detail=str(e))
    _touch(row, sections)
    db.commit()
    db.refresh(row)
    return row


@router.get("/templates/{template_id}/validate", response_model=PublishValidation)
def validate_template(template_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permissions("maintenance:read"))):
    row = _get_template(db, template_id)
    errors = validate_for_publish(row.name, row.template_type, row.sections or [])
    return {"valid": not errors, "errors": errors}


@router.post("/templates/{template_id}/publish", response_model=ServiceTemplateResponse)
def publish_template(template_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permissions("maintenance:write"))):
    row = _get_template(db, template_id)
    errors = validate_for_publish(row.name, row.template_type, row.sections or [])
    if errors:
        raise HTTPException(status_code=400, detail="; ".join(errors))
    row.is_active = True
    row.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(row)
    log.info("template_published", template_id=str(row.id))
    return row


# ---------- REPORTS ----------
def _get_report(db: Session, report_id: uuid.UUID) -> MaintenanceReport:
    row = db.query(MaintenanceReport).filter(MaintenanceReport.id == report_id).first()
    if not row:
        raise HTTPException(status_code=404, detail="Report not found")
    return row


def _next_report_number(db: Session) -> str:
    count = db.query(MaintenanceReport).count()
    return f"RPT-{str(count + 1).zfill(5)}"


@router.get("/reports", response_model=List[ReportResponse])
def list_reports(
    job_id: Optional[uuid.UUID] = None,
    customer_id: Optional[uuid.UUID] = None,
    vehicle_id: Optional[uuid.UUID] = None,
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    _=Depends(require_permissions("maintenance:read")),
):
    q = db.query(MaintenanceReport)
    if job_id:
        q = q.filter(MaintenanceReport.job_id == job_id)
    if customer_id:
        q = q.filter(MaintenanceReport.customer_id == customer_id)
    if vehicle_id:
        q = q.filter(MaintenanceReport.vehicle_id == vehicle_id)
    if status:
        q = q.filter(MaintenanceReport.status == status)
    return q.order_by(MaintenanceReport.created_at.desc()).all()


@router.post("/reports", response_model=ReportResponse, status_code=201)
def create_report(payload: ReportCreate, db: Session = Depends(get_db), _=Depends(require_permissions("maintenance:write"))):
    data = payload.dict()
    job = None
    if data.get("job_id"):
        job = db.query(Job).filter(Job.id == data["job_id"]).first()
        if not job:
            raise HTTPException(status_code=404, detail="Job not found")
        if not data.get("customer_id"):
            data["customer_id"] = job.customer_id
        if not data.get("vehicle_id"):
            data["vehicle_id"] = job.vehicle_id
    if data.get("template_id"):
        _get_template(db, data["template_id"])
    elif job is not None:
        default = (
            db.query(ServiceReportTemplate)
            .filter(
                ServiceReportTemplate.template_type == job.job_type,
                ServiceReportTemplate.is_default_for_type == True,
                ServiceReportTemplate.is_active == True,
            )
            .first()
        )
        if default:
            data["template_id"] = default.id
    row = MaintenanceReport(report_number=_next_report_number(db), status="draft", **data)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


@router.get("/reports/{report_id}", response_model=ReportResponse)
def get_report(report_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permissions("maintenance:read"))):
    return _get_report(db, report_id)


@router.put("/reports/{report_id}", response_model=ReportResponse)
def update_report(report_id: uuid.UUID, payload: ReportUpdate, db: Session = Depends(get_db), _=Depends(require_permissions("maintenance:write"))):
    row = _get_report(db, report_id)
    if row.status == "completed":
        raise HTTPException(status_code=400, detail="Completed reports cannot be edited")
    data = payload.dict(exclude_unset=True)
    if data.get("template_id"):
        _get_template(db, data["template_id"])
    for k, v in data.items():
        setattr(row, k, v)
    row.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(row)
    return row


@router.delete("/reports/{report_id}")
def delete_report(report_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permissions("maintenance:write"))):
    row = db.query(MaintenanceReport).filter(MaintenanceReport.id == report_id).first()
    if row:
        db.delete(row)
        db.commit()
    return {"status": "ok"}


@router.post("/reports/{report_id}/complete", response_model=ReportResponse)
def complete_report(report_id: uuid.UUID, db: Session = Depends(get_db), user=Depends(require_permissions("maintenance:write"))):
    """Complete a report once every required template field has a value"""
    row = _get_report(db, report_id)
    if row.status == "completed":
        return row
    sections = row.template.sections if row.template else []
    missing = missing_required_fields(sections or [], row.report_data)
    if missing:
        raise HTTPException(status_code=400, detail=f"Missing required fields: {', '.join(missing)}")
    row.status = "completed"
    row.completed_at = datetime.now(timezone.utc)
    row.completed_by = user.id
    row.updated_at = row.completed_at
    db.commit()
    db.refresh(row)
    log.info("report_completed", report_id=str(row.id), report_number=row.report_number)
    return row


def _render(db: Session, row: MaintenanceReport) -> bytes:
    customer = row.customer or (db.query(Customer).filter(Customer.id == row.customer_id).first() if row.customer_id else None)
    return build_report_pdf(
        row,
        sections=row.template.sections if row.template else None,
        customer_name=customer.name if customer else None,
        job_number=row.job.job_number if row.job else None,
        company_name=get_company_settings(db).company_name,
    )


@router.get("/reports/{report_id}/pdf")
def report_pdf(report_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permissions("maintenance:read"))):
    row = _get_report(db, report_id)
    pdf = _render(db, row)
    filename = f"{row.report_number or 'report'}.pdf"
    return Response(content=pdf, media_type="application/pdf", headers={"Content-Disposition": f'inline; filename="{filename}"'})


@router.post("/reports/{report_id}/pdf", response_model=ReportResponse)
def store_report_pdf(
    report_id: uuid.UUID,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
    user=Depends(require_permissions("maintenance:write")),
):
    """Render the report and keep the PDF in object storage"""
    row = _get_report(db, report_id)
    pdf = _render(db, row)
    fo = store_bytes(
        db,
        storage,
        pdf,
        f"{row.report_number or 'report'}.pdf",
        "application/pdf",
        entity_type="report",
        entity_id=row.id,
        category="reports",
        created_by=user.id,
    )
    row.pdf_file_id = fo.id
    db.commit()
    db.refresh(row)
    return row
