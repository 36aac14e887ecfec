"""Tests for service report templates and maintenance reports."""
import pytest

from fieldops.models.models import FileObject
from fieldops.services.templates import (
    TemplateError,
    build_section,
    estimated_parts_cost,
    generate_fields,
    missing_required_fields,
    reorder_sections,
    validate_for_publish,
)
from conftest import make_job


class TestFieldGeneration:
    """Block types and their selectable features."""

    def test_selected_features_only(self):
        fields = generate_fields("delivery_setup", ["GPS Pin", "Customer Signature"])
        assert [f["id"] for f in fields] == ["delivery_gps", "customer_signature", "signature_timestamp"]

    def test_no_features_means_all(self):
        ids = [f["id"] for f in generate_fields("per_unit_loop")]
        assert ids == ["unit_qr", "unit_status", "supplies_added", "supply_quantity", "unit_photos", "gps_location"]

    def test_unknown_feature_ignored(self):
        assert generate_fields("pickup_removal", ["Nope"]) == []

    def test_custom_block(self):
        assert generate_fields("custom") == [{"id": "text_field", "type": "text", "label": "Text Input", "required": False}]

    def test_unknown_block(self):
        with pytest.raises(TemplateError):
            generate_fields("teleport")

    def test_section_shape(self):
        section = build_section("per_unit_loop", ["QR Scan"])
        assert section["id"].startswith("section_")
        assert section["title"] == "Per-Unit Service"
        assert section["repeat_for_each"] == "unit"
        assert build_section("event_service", title="Gate A")["repeat_for_each"] is None


class TestSectionsAndValidation:
    """Ordering and publish checks."""

    def test_reorder_requires_same_ids(self):
        sections = [{"id": "a"}, {"id": "b"}, {"id": "c"}]
        assert [s["id"] for s in reorder_sections(sections, ["c", "a", "b"])] == ["c", "a", "b"]
        with pytest.raises(TemplateError):
            reorder_sections(sections, ["a", "b"])
        with pytest.raises(TemplateError):
            reorder_sections(sections, ["a", "b", "x"])

    def test_publish_errors(self):
        errors = validate_for_publish("", "service", [])
        assert "Template name is required" in errors
        assert "Template must have at least one section" in errors

        dupes = [{"title": "Site", "fields": [
            {"id": "x", "type": "text", "label": "X"},
            {"id": "x", "type": "text", "label": "Y"},
        ]}]
        assert validate_for_publish("T", "service", dupes) == ["Site: duplicate field id 'x'"]

    def test_missing_required_fields_flat_and_nested(self):
        sections = [{"id": "s1", "fields": [
            {"id": "contact_name", "label": "Contact Name", "required": True},
            {"id": "unit_count", "label": "Count", "required": True},
            {"id": "notes", "label": "Notes"},
        ]}]
        assert missing_required_fields(sections, {}) == ["Contact Name", "Count"]
        assert missing_required_fields(sections, {"contact_name": "  "}) == ["Contact Name", "Count"]
        assert missing_required_fields(sections, {"contact_name": "Sam", "s1": {"unit_count": 0}}) == []

    def test_parts_cost(self):
        assert estimated_parts_cost([{"qty": 2, "unit_cost": 12.5}, {"qty": 1}]) == 25.0
        assert estimated_parts_cost(None) == 0.0


def _template(client, headers, **kwargs):
    payload = {"name": "Delivery report", "template_type": "delivery"}
    payload.update(kwargs)
    resp = client.post("/maintenance/templates", json=payload, headers=headers)
    assert resp.status_code == 201
    return resp.json()


class TestTemplateEndpoints:
    """Building and publishing a template over HTTP."""

    def test_build_reorder_and_publish(self, client, admin_headers):
        tpl = _template(client, admin_headers)

        body = client.get(f"/maintenance/templates/{tpl['id']}/validate", headers=admin_headers).json()
        assert body["valid"] is False

        resp = client.post(f"/maintenance/templates/{tpl['id']}/publish", headers=admin_headers)
        assert resp.status_code == 400
        assert "at least one section" in resp.json()["detail"]

        first = client.post(
            f"/maintenance/templates/{tpl['id']}/sections",
            json={"block_type": "delivery_setup", "features": ["Site Contact"]},
            headers=admin_headers,
        ).json()["sections"][0]
        body = client.post(
            f"/maintenance/templates/{tpl['id']}/sections",
            json={"block_type": "custom", "title": "Notes"},
            headers=admin_headers,
        ).json()
        second = body["sections"][1]
        assert second["title"] == "Notes"

        body = client.put(
            f"/maintenance/templates/{tpl['id']}/sections/order",
            json={"section_ids": [second["id"], first["id"]]},
            headers=admin_headers,
        ).json()
        assert [s["id"] for s in body["sections"]] == [second["id"], first["id"]]

        body = client.post(f"/maintenance/templates/{tpl['id']}/publish", headers=admin_headers).json()
        assert body["is_active"] is True

    def test_delete_unknown_section(self, client, admin_headers):
        tpl = _template(client, admin_headers)
        resp = client.delete(f"/maintenance/templates/{tpl['id']}/sections/section_missing", headers=admin_headers)
        assert resp.status_code == 404

    def test_one_default_per_type(self, client, admin_headers):
        a = _template(client, admin_headers, name="A", is_default_for_type=True)
        _template(client, admin_headers, name="B", is_default_for_type=True)
        refreshed = client.get(f"/maintenance/templates/{a['id']}", headers=admin_headers).json()
        assert refreshed["is_default_for_type"] is False


class TestReports:
    """Maintenance reports filled in against a template."""

    SECTIONS = [{
        "id": "s1",
        "type": "delivery_setup",
        "title": "Delivery",
        "fields": [{"id": "contact_name", "type": "text", "label": "Contact Name", "required": True}],
    }]

    def test_default_template_and_completion(self, client, admin_headers, db, customer, vehicle):
        tpl = _template(client, admin_headers, is_default_for_type=True, is_active=True, sections=self.SECTIONS)
        job = make_job(db, customer, vehicle_id=vehicle.id)

        report = client.post("/maintenance/reports", json={"job_id": str(job.id)}, headers=admin_headers).json()
        assert report["report_number"] == "RPT-00001"
        assert report["template_id"] == tpl["id"]
        assert report["customer_id"] == str(customer.id)
        assert report["vehicle_id"] == str(vehicle.id)

        resp = client.post(f"/maintenance/reports/{report['id']}/complete", headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Missing required fields: Contact Name"

        client.put(f"/maintenance/reports/{report['id']}", json={"report_data": {"contact_name": "Sam"}}, headers=admin_headers)
        body = client.post(f"/maintenance/reports/{report['id']}/complete", headers=admin_headers).json()
        assert body["status"] == "completed"
        assert body["completed_at"] is not None

        resp = client.put(f"/maintenance/reports/{report['id']}", json={"report_data": {}}, headers=admin_headers)
        assert resp.status_code == 400

    def test_pdf_download_and_store(self, client, admin_headers, db, customer):
        tpl = _template(client, admin_headers, sections=self.SECTIONS)
        report = client.post(
            "/maintenance/reports",
            json={"template_id": tpl["id"], "customer_id": str(customer.id), "report_data": {"contact_name": "Sam"}},
            headers=admin_headers,
        ).json()

        resp = client.get(f"/maintenance/reports/{report['id']}/pdf", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.headers["content-type"] == "application/pdf"
        assert resp.content.startswith(b"%PDF")

        body = client.post(f"/maintenance/reports/{report['id']}/pdf", headers=admin_headers).json()
        assert body["pdf_file_id"] is not None
        fo = db.query(FileObject).one()
        assert fo.content_type == "application/pdf"
        assert fo.entity_type == "report"


class TestPMTemplates:
    """Preventive maintenance templates."""

    def test_parts_cost_in_response(self, client, admin_headers):
        resp = client.post(
            "/maintenance/pm-templates",
            json={
                "name": "Pump service",
                "checklist": [{"item": "Check hoses", "severity": "high"}],
                "parts_list": [{"part_name": "Filter", "qty": 2, "unit_cost": 18.25}],
            },
            headers=admin_headers,
        )
        assert resp.status_code == 201
        assert resp.json()["estimated_parts_cost"] == 36.5
