"""Tests for vehicles, capacities and daily vehicle loads."""
from datetime import date

from fieldops.models.models import EquipmentAssignment, PMTemplate, Product, VehicleMaintenanceRecord
from fieldops.services.pm_schedule import evaluate_template, parse_triggers
from conftest import make_job, make_units


class TestVehicles:
    """Vehicle CRUD."""

    def test_delete_retires(self, client, admin_headers, vehicle):
        client.delete(f"/fleet/vehicles/{vehicle.id}", headers=admin_headers)
        assert client.get("/fleet/vehicles", headers=admin_headers).json() == []
        rows = client.get("/fleet/vehicles", params={"include_retired": True}, headers=admin_headers).json()
        assert rows[0]["status"] == "retired"

    def test_blank_plate(self, client, admin_headers):
        resp = client.post("/fleet/vehicles", json={"license_plate": "  "}, headers=admin_headers)
        assert resp.status_code == 400

    def test_one_active_configuration(self, client, admin_headers, vehicle):
        url = f"/fleet/vehicles/{vehicle.id}/configurations"
        first = client.post(url, json={"configuration_name": "Summer", "is_active": True}, headers=admin_headers).json()
        client.post(url, json={"configuration_name": "Winter", "is_active": True}, headers=admin_headers)
        rows = {r["configuration_name"]: r["is_active"] for r in client.get(url, headers=admin_headers).json()}
        assert rows == {"Summer": False, "Winter": True}
        assert first["is_active"] is True

    def test_duplicate_load_capacity(self, client, admin_headers, vehicle, product):
        url = f"/fleet/vehicles/{vehicle.id}/load-capacities"
        assert client.post(url, json={"product_id": str(product.id), "max_capacity": 6}, headers=admin_headers).status_code == 201
        assert client.post(url, json={"product_id": str(product.id), "max_capacity": 8}, headers=admin_headers).status_code == 400


class TestDailyLoads:
    """Equipment on a vehicle's jobs compared with its capacity."""

    def test_over_capacity(self, client, admin_headers, db, vehicle, product, customer):
        sink = Product(name="Hand Wash Station", stock_total=5)
        db.add(sink)
        db.commit()
        unit = make_units(db, product, ["PT-001"])[0]
        day = date(2026, 3, 10)
        job_a = make_job(db, customer, scheduled_date=day, vehicle_id=vehicle.id)
        job_b = make_job(db, customer, scheduled_date=day, vehicle_id=vehicle.id)
        make_job(db, customer, scheduled_date=day, vehicle_id=vehicle.id, status="cancelled")
        db.add_all([
            EquipmentAssignment(job_id=job_a.id, product_id=product.id, quantity=4, assigned_date=day),
            EquipmentAssignment(job_id=job_b.id, product_item_id=unit.id, quantity=1, assigned_date=day),
            EquipmentAssignment(job_id=job_b.id, product_id=product.id, quantity=2, assigned_date=day, status="returned"),
            EquipmentAssignment(job_id=job_b.id, product_id=sink.id, quantity=1, assigned_date=day),
        ])
        db.commit()
        client.post(
            f"/fleet/vehicles/{vehicle.id}/load-capacities",
            json={"product_id": str(product.id), "max_capacity": 4},
            headers=admin_headers,
        )

        loads = client.get("/fleet/loads", params={"date": "2026-03-10"}, headers=admin_headers).json()
        assert len(loads) == 1
        load = loads[0]
        assert load["license_plate"] == "TRK-100"
        assert load["job_count"] == 2
        assert load["over_capacity"] is True

        lines = {l["product_name"]: l for l in load["lines"]}
        assert lines["Standard Unit"]["assigned_quantity"] == 5
        assert lines["Standard Unit"]["utilization_percent"] == 125.0
        assert lines["Hand Wash Station"]["max_capacity"] is None
        assert lines["Hand Wash Station"]["over_capacity"] is False

    def test_no_vehicle_jobs(self, client, admin_headers):
        assert client.get("/fleet/loads", params={"date": "2026-03-10"}, headers=admin_headers).json() == []


def _template(db, triggers, name="A-Service", category="pump_truck"):
    row = PMTemplate(name=name, category=category, default_triggers=triggers)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def _serviced(db, vehicle, template, on, odometer=None):
    db.add(VehicleMaintenanceRecord(
        vehicle_id=vehicle.id,
        pm_template_id=template.id,
        maintenance_type=template.name,
        status="completed",
        completed_date=on,
        odometer=odometer,
    ))
    db.commit()


class TestMaintenanceRecords:
    """Service history kept per vehicle."""

    def test_logging_completed_service_moves_odometer(self, client, admin_headers, db, vehicle):
        resp = client.post(
            f"/fleet/vehicles/{vehicle.id}/maintenance-records",
            json={"maintenance_type": "Oil change", "status": "completed", "odometer": 12000, "cost": 89.5},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        assert resp.json()["completed_date"] == date.today().isoformat()
        db.refresh(vehicle)
        assert vehicle.odometer == 12000

        client.post(
            f"/fleet/vehicles/{vehicle.id}/maintenance-records",
            json={"maintenance_type": "Late paperwork", "status": "completed", "odometer": 9000},
            headers=admin_headers,
        )
        db.refresh(vehicle)
        assert vehicle.odometer == 12000

    def test_complete_scheduled_record(self, client, admin_headers, vehicle):
        created = client.post(
            f"/fleet/vehicles/{vehicle.id}/maintenance-records",
            json={"maintenance_type": "Brake inspection", "scheduled_date": "2026-03-20", "priority": "high"},
            headers=admin_headers,
        ).json()
        assert created["status"] == "scheduled"
        assert created["completed_date"] is None

        body = client.put(
            f"/fleet/maintenance-records/{created['id']}",
            json={"status": "completed", "completed_date": "2026-03-21"},
            headers=admin_headers,
        ).json()
        assert body["status"] == "completed"
        assert body["completed_date"] == "2026-03-21"

        client.delete(f"/fleet/maintenance-records/{created['id']}", headers=admin_headers)
        assert client.get(f"/fleet/vehicles/{vehicle.id}/maintenance-records", headers=admin_headers).json() == []

    def test_unknown_template(self, client, admin_headers, vehicle):
        resp = client.post(
            f"/fleet/vehicles/{vehicle.id}/maintenance-records",
            json={"maintenance_type": "A-Service", "pm_template_id": "00000000-0000-0000-0000-000000000000"},
            headers=admin_headers,
        )
        assert resp.status_code == 404

    def test_calendar_month(self, client, admin_headers, vehicle):
        url = f"/fleet/vehicles/{vehicle.id}/maintenance-records"
        client.post(url, json={"maintenance_type": "Tires", "scheduled_date": "2026-03-05"}, headers=admin_headers)
        client.post(url, json={"maintenance_type": "Pump seals", "scheduled_date": "2026-04-02"}, headers=admin_headers)

        rows = client.get("/fleet/maintenance-calendar", params={"month": "2026-03-15"}, headers=admin_headers).json()
        assert [r["maintenance_type"] for r in rows] == ["Tires"]


class TestPMDue:
    """Template triggers measured from the last completed service."""

    def test_parse_triggers_skips_blanks(self):
        assert parse_triggers({"miles": "5000", "hours": "", "days": 0, "job_count": "x"}) == {"miles": 5000.0}
        assert parse_triggers(None) == {}

    def test_miles_and_days(self, db, vehicle):
        vehicle.odometer = 20000
        db.commit()
        template = _template(db, {"miles": "5000", "days": 90})
        _serviced(db, vehicle, template, date(2026, 1, 1), odometer=16000)

        status = evaluate_template(db, vehicle, template, as_of=date(2026, 3, 1))
        assert status["due"] is False
        assert status["next_due_odometer"] == 21000
        assert status["next_due_date"] == date(2026, 4, 1)
        checks = {c["trigger"]: c for c in status["triggers"]}
        assert checks["miles"]["since_service"] == 4000
        assert checks["days"]["since_service"] == 59

        assert evaluate_template(db, vehicle, template, as_of=date(2026, 4, 1))["due"] is True

        vehicle.odometer = 21500
        db.commit()
        assert evaluate_template(db, vehicle, template, as_of=date(2026, 3, 1))["due"] is True

    def test_never_serviced_is_due_on_days(self, db, vehicle):
        template = _template(db, {"days": 30})
        assert evaluate_template(db, vehicle, template, as_of=date(2026, 3, 1))["due"] is True

    def test_job_count(self, db, vehicle, customer):
        template = _template(db, {"job_count": 2})
        _serviced(db, vehicle, template, date(2026, 3, 1))
        make_job(db, customer, scheduled_date=date(2026, 2, 20), vehicle_id=vehicle.id, status="completed")
        make_job(db, customer, scheduled_date=date(2026, 3, 5), vehicle_id=vehicle.id, status="completed")
        assert evaluate_template(db, vehicle, template)["due"] is False

        make_job(db, customer, scheduled_date=date(2026, 3, 6), vehicle_id=vehicle.id, status="completed")
        assert evaluate_template(db, vehicle, template)["due"] is True

    def test_unmetered_trigger_never_fires(self, db, vehicle):
        template = _template(db, {"pump_hours": 250})
        status = evaluate_template(db, vehicle, template)
        assert status["due"] is False
        assert status["triggers"][0]["tracked"] is False

    def test_fleet_due_endpoint(self, client, admin_headers, db, vehicle):
        _template(db, {"days": 30}, name="Monthly walkaround")
        _template(db, {"days": 30}, name="Trailer check", category="trailer")

        rows = client.get("/fleet/pm-due", headers=admin_headers).json()
        assert [(r["license_plate"], r["template_name"]) for r in rows] == [("TRK-100", "Monthly walkaround")]

        status = client.get(f"/fleet/vehicles/{vehicle.id}/pm-status", headers=admin_headers).json()
        assert len(status) == 1

        client.delete(f"/fleet/vehicles/{vehicle.id}", headers=admin_headers)
        assert client.get("/fleet/pm-due", headers=admin_headers).json() == []
