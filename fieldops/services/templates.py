"""
Service report template building: block field generation, section ordering,
publish validation and report completion checks.
"""
import uuid
from typing import Any, Dict, List, Optional


def _f(id: str, type: str, label: str, required: bool = False, options: Optional[List[str]] = None) -> Dict[str, Any]:
    field = {"id": id, "type": type, "label": label, "required": required}
    if options is not None:
        field["options"] = options
    return field


# block type -> feature -> generated fields
BLOCK_FEATURES: Dict[str, Dict[str, List[Dict[str, Any]]]] = {
    "per_unit_loop": {
        "QR Scan": [_f("unit_qr", "qr_scanner", "Scan Unit QR Code", True)],
        "Status Quick-Tap": [_f("unit_status", "quick_tap", "Unit Status", True, ["Good", "Needs Service", "Damaged", "Missing"])],
        "Restock Tracking": [
            _f("supplies_added", "multi_select", "Supplies Added", False, ["TP", "Sanitizer", "Deodorant", "Paper Towels"]),
            _f("supply_quantity", "number", "Quantity"),
        ],
        "Auto Photos": [_f("unit_photos", "photo_capture", "Unit Photos", True)],
        "GPS Lock": [_f("gps_location", "gps", "GPS Location", True)],
    },
    "delivery_setup": {
        "Site Contact": [
            _f("contact_name", "text", "Contact Name", True),
            _f("contact_phone", "phone", "Contact Phone", True),
        ],
        "GPS Pin": [_f("delivery_gps", "gps", "Delivery Location", True)],
        "Unit Types": [
            _f("units_delivered", "multi_select", "Units Delivered", True, ["Standard", "ADA", "VIP", "Sink", "Urinal"]),
            _f("unit_count", "number", "Count", True),
        ],
        "Setup Checklist": [_f("setup_tasks", "checklist", "Setup Complete", True, ["Units leveled", "Anchored", "Stocked", "Site cleaned"])],
        "Customer Signature": [
            _f("customer_signature", "signature", "Customer Signature", True),
            _f("signature_timestamp", "timestamp", "Signed At"),
        ],
    },
    "pickup_removal": {
        "Count Tracking": [
            _f("units_retrieved", "number", "Units Retrieved", True),
            _f("expected_count", "number", "Expected Count", True),
        ],
        "Exceptions": [
            _f("missing_units", "number", "Missing Units"),
            _f("damaged_units", "number", "Damaged Units"),
            _f("exception_notes", "text_area", "Exception Notes"),
        ],
        "Site Cleanup": [_f("site_clean", "checklist", "Cleanup Checklist", True, ["Debris removed", "Area swept", "No damage"])],
        "Fee Tracking": [
            _f("additional_fees", "multi_select", "Additional Fees", False, ["Missing Unit", "Damage", "Extra Labor", "Disposal"]),
            _f("fee_amount", "number", "Fee Amount"),
        ],
    },
    "event_service": {
        "Event Details": [
            _f("event_name", "text", "Event Name", True),
            _f("event_date", "date", "Event Date", True),
        ],
        "Layout Zones": [_f("zones", "multi_select", "Service Zones", True, ["Main", "VIP", "Backstage", "Parking"])],
        "Count Reconciliation": [
            _f("units_deployed", "number", "Units Deployed", True),
            _f("units_serviced", "number", "Units Serviced", True),
        ],
        "Service Frequency": [_f("service_times", "text_area", "Service Times")],
    },
}

BLOCK_TITLES = {
    "per_unit_loop": "Per-Unit Service",
    "delivery_setup": "Delivery & Setup",
    "pickup_removal": "Pickup & Removal",
    "event_service": "Event Service",
    "custom": "Custom Section",
}


class TemplateError(ValueError):
    pass


def generate_fields(block_type: str, features: Optional[List[str]] = None) -> List[Dict[str, Any]]:
    """
    Fields for a block. With no features selected every feature's fields are
    generated; unknown features are ignored.
    """
    if block_type == "custom":
        return [_f("text_field", "text", "Text Input")]
    generators = BLOCK_FEATURES.get(block_type)
    if generators is None:
        raise TemplateError(f"Unknown block type: {block_type}")
    chosen = features or list(generators.keys())
    fields: List[Dict[str, Any]] = []
    for feature in chosen:
        for field in generators.get(feature, []):
            fields.append(dict(field))
    return fields


def build_section(block_type: str, features: Optional[List[str]] = None, title: Optional[str] = None) -> Dict[str, Any]:
    return {
        "id": f"section_{uuid.uuid4().hex[:8]}",
        "type": block_type,
        "title": title or BLOCK_TITLES.get(block_type, block_type),
        "fields": generate_fields(block_type, features),
        "repeat_for_each": "unit" if block_type == "per_unit_loop" else None,
    }


def remove_section(sections: List[Dict[str, Any]], section_id: str) -> List[Dict[str, Any]]:
    remaining = [s for s in sections if s.get("id") != section_id]
    if len(remaining) == len(sections):
        raise TemplateError("Section not found")
    return remaining


def reorder_sections(sections: List[Dict[str, Any]], section_ids: List[str]) -> List[Dict[str, Any]]:
    current = [s.get("id") for s in sections]
    if len(section_ids) != len(current) or sorted(section_ids) != sorted(current):
        raise TemplateError("Section ids must match the template's current sections")
    by_id = {s.get("id"): s for s in sections}
    return [by_id[sid] for sid in section_ids]


def validate_for_publish(name: Optional[str], template_type: Optional[str], sections: List[Dict[str, Any]]) -> List[str]:
    """Return a list of problems; an empty list means the template can be published."""
    errors: List[str] = []
    if not (name or "").strip():
        errors.append("Template name is required")
    if not (template_type or "").strip():
        errors.append("Template type is required")
    if not sections:
        errors.append("Template must have at least one section")
    for idx, section in enumerate(sections or [], start=1):
        title = section.get("title") or f"Section {idx}"
        seen = set()
        for field in section.get("fields") or []:
            if not field.get("id") or not field.get("type") or not field.get("label"):
                errors.append(f"{title}: every field needs an id, type and label")
                continue
            if field["id"] in seen:
                errors.append(f"{title}: duplicate field id '{field['id']}'")
            seen.add(field["id"])
    return errors


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict)):
        return len(value) == 0
    return False


def missing_required_fields(sections: List[Dict[str, Any]], report_data: Optional[Dict[str, Any]]) -> List[str]:
    """
    Labels of required fields with no value. Values are looked up flat by
    field id, or nested under the section id.
    """
    data = report_data or {}
    missing = []
    for section in sections or []:
        nested = data.get(section.get("id")) if isinstance(data.get(section.get("id")), dict) else {}
        for field in section.get("fields") or []:
            if not field.get("required"):
                continue
            fid = field.get("id")
            value = nested.get(fid) if fid in nested else data.get(fid)
            if _is_empty(value):
                missing.append(field.get("label") or fid)
    return missing


def estimated_parts_cost(parts_list: Optional[List[Dict[str, Any]]]) -> float:
    total = 0.0
    for part in parts_list or []:
        total += float(part.get("qty") or 0) * float(part.get("unit_cost") or 0)
    return round(total, 2)
