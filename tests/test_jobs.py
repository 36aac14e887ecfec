"""Tests for jobs, the scheduler board and consumables on jobs."""
from datetime import date

from fieldops.models.models import Job, ConsumableBundle, ConsumableBundleItem
from fieldops.services.scheduling import week_bounds
from conftest import make_user, make_job, make_consumable


class TestJobNumbering:
    """Each job type draws from its own sequence."""

    def test_numbers_per_type(self, client, admin_headers, customer):
        def create(job_type):
            resp = client.post(
                "/jobs",
                json={"customer_id": str(customer.id), "job_type": job_type, "scheduled_date": "2026-03-10"},
                headers=admin_headers,
            )
            assert resp.status_code == 201
            return resp.json()

        assert create("delivery")["job_number"] == "DEL-001"
        assert create("delivery")["job_number"] == "DEL-002"
        assert create("pickup")["job_number"] == "PKP-001"
        assert create("partial-pickup")["job_number"] == "PKP-002"
        assert create("service")["job_number"] == "SVC-001"
        assert create("on-site-survey")["job_number"] == "SURVEY-001"

    def test_default_status_follows_driver(self, client, admin_headers, customer, driver):
        base = {"customer_id": str(customer.id), "job_type": "delivery", "scheduled_date": "2026-03-10"}
        assert client.post("/jobs", json=base, headers=admin_headers).json()["status"] == "unassigned"
        with_driver = client.post("/jobs", json={**base, "driver_id": str(driver.id)}, headers=admin_headers).json()
        assert with_driver["status"] == "assigned"

    def test_non_driver_rejected(self, client, admin_headers, customer, admin):
        resp = client.post(
            "/jobs",
            json={"customer_id": str(customer.id), "job_type": "delivery", "scheduled_date": "2026-03-10", "driver_id": str(admin.id)},
            headers=admin_headers,
        )
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Driver not found"

    def test_unknown_timezone_rejected(self, client, admin_headers, customer):
        resp = client.post(
            "/jobs",
            json={"customer_id": str(customer.id), "job_type": "delivery", "scheduled_date": "2026-03-10", "timezone": "Mars/Olympus"},
            headers=admin_headers,
        )
        assert resp.status_code == 422


class TestJobUpdates:
    """Status transitions and filters."""

    def test_completion_timestamp(self, client, admin_headers, db, customer):
        job = make_job(db, customer)
        body = client.patch(f"/jobs/{job.id}", json={"status": "completed"}, headers=admin_headers).json()
        assert body["completed_at"] is not None
        body = client.patch(f"/jobs/{job.id}", json={"status": "in-progress"}, headers=admin_headers).json()
        assert body["completed_at"] is None

    def test_required_fields_cannot_be_cleared(self, client, admin_headers, db, customer):
        job = make_job(db, customer)
        resp = client.patch(f"/jobs/{job.id}", json={"scheduled_date": None}, headers=admin_headers)
        assert resp.status_code == 400

    def test_filter_by_date(self, client, admin_headers, db, customer):
        make_job(db, customer, scheduled_date=date(2026, 3, 10))
        make_job(db, customer, scheduled_date=date(2026, 3, 11))
        rows = client.get("/jobs", params={"date": "2026-03-11"}, headers=admin_headers).json()
        assert len(rows) == 1
        assert rows[0]["scheduled_date"] == "2026-03-11"


class TestSchedulerBoard:
    """Week board lanes and driver assignment."""

    def test_week_starts_on_sunday(self):
        # 2026-03-11 is a Wednesday
        assert week_bounds(date(2026, 3, 11)) == (date(2026, 3, 8), date(2026, 3, 14))
        assert week_bounds(date(2026, 3, 8)) == (date(2026, 3, 8), date(2026, 3, 14))

    def test_board_lanes(self, client, admin_headers, db, customer, driver):
        make_job(db, customer, scheduled_date=date(2026, 3, 11))
        make_job(db, customer, scheduled_date=date(2026, 3, 11), driver_id=driver.id, status="assigned")

        board = client.get("/jobs/board", params={"date": "2026-03-11"}, headers=admin_headers).json()
        assert board["week_start"] == "2026-03-08"
        assert len(board["days"]) == 7
        wednesday = board["days"][3]
        assert wednesday["date"] == "2026-03-11"
        lanes = wednesday["lanes"]
        assert lanes[0]["driver_name"] == "Unassigned"
        assert len(lanes[0]["jobs"]) == 1
        assert lanes[1]["driver_name"] == "Alex"
        assert len(lanes[1]["jobs"]) == 1

    def test_move_job(self, client, admin_headers, db, customer, driver):
        job = make_job(db, customer, scheduled_date=date(2026, 3, 10))
        resp = client.patch(
            f"/jobs/{job.id}/move",
            json={"scheduled_date": "2026-03-12", "driver_id": str(driver.id)},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["scheduled_date"] == "2026-03-12"
        assert resp.json()["driver_id"] == str(driver.id)

    def test_auto_assign_balances_drivers(self, client, admin_headers, db, customer):
        first = make_user(db, "d-a", is_driver=True, first_name="Avery")
        second = make_user(db, "d-b", is_driver=True, first_name="Blake")
        make_job(db, customer, scheduled_date=date(2026, 3, 10), driver_id=first.id, status="assigned")
        for _ in range(3):
            make_job(db, customer, scheduled_date=date(2026, 3, 10))

        resp = client.post("/jobs/auto-assign", json={"start_date": "2026-03-10", "end_date": "2026-03-10"}, headers=admin_headers)
        assert resp.json()["assigned"] == 3

        counts = {first.id: 0, second.id: 0}
        for job in db.query(Job).all():
            counts[job.driver_id] += 1
            assert job.status == "assigned"
        assert counts == {first.id: 2, second.id: 2}

    def test_auto_assign_rejects_inverted_range(self, client, admin_headers):
        resp = client.post("/jobs/auto-assign", json={"start_date": "2026-03-10", "end_date": "2026-03-09"}, headers=admin_headers)
        assert resp.status_code == 400


class TestJobConsumables:
    """Billing methods for consumables used on a job."""

    def test_per_use_decrements_stock(self, client, admin_headers, db, customer):
        job = make_job(db, customer)
        paper = make_consumable(db, on_hand=10, unit_price=2.25)
        resp = client.post(
            f"/jobs/{job.id}/consumables",
            json={"billing_method": "per-use", "items": [{"consumable_id": str(paper.id), "quantity": 4}]},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        assert resp.json()[0]["line_total"] == 9.0
        db.refresh(paper)
        assert paper.on_hand_qty == 6

    def test_bundle_records_every_item(self, client, admin_headers, db, customer):
        job = make_job(db, customer)
        paper = make_consumable(db, name="Paper", on_hand=10)
        soap = make_consumable(db, name="Soap", on_hand=10)
        bundle = ConsumableBundle(name="Weekly service")
        bundle.items = [ConsumableBundleItem(consumable_id=paper.id, quantity=2), ConsumableBundleItem(consumable_id=soap.id, quantity=1)]
        db.add(bundle)
        db.commit()

        resp = client.post(
            f"/jobs/{job.id}/consumables",
            json={"billing_method": "bundle", "bundle_id": str(bundle.id)},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        assert len(resp.json()) == 2

    def test_subscription_records_nothing(self, client, admin_headers, db, customer):
        job = make_job(db, customer)
        paper = make_consumable(db, on_hand=10)
        resp = client.post(
            f"/jobs/{job.id}/consumables",
            json={"billing_method": "subscription", "items": [{"consumable_id": str(paper.id), "quantity": 4}]},
            headers=admin_headers,
        )
        assert resp.json() == []
        db.refresh(paper)
        assert paper.on_hand_qty == 10

    def test_bundle_requires_bundle_id(self, client, admin_headers, db, customer):
        job = make_job(db, customer)
        resp = client.post(f"/jobs/{job.id}/consumables", json={"billing_method": "bundle"}, headers=admin_headers)
        assert resp.status_code == 400
