"""Tests for the equipment availability engine."""
import uuid
from datetime import date
from types import SimpleNamespace

import pytest

from fieldops.services.availability import (
    AvailabilityError,
    augment_conflicts,
    build_daily_breakdown,
    classify,
    individual_items,
    is_assignment_active,
    month_window,
    next_available_date,
    overall_message,
    summarize,
    validate_window,
)
from fieldops.config import settings
from fieldops.models.models import EquipmentAssignment
from conftest import make_job, make_units


def _item(code, status="available"):
    return SimpleNamespace(id=uuid.uuid4(), item_code=code, status=status, attributes=None)


def _assignment(start, end=None, quantity=1, item=None, status="reserved"):
    return SimpleNamespace(
        id=uuid.uuid4(),
        job_id=uuid.uuid4(),
        job=None,
        product_item=item,
        product_item_id=item.id if item else None,
        quantity=quantity,
        assigned_date=start,
        return_date=end,
        status=status,
    )


class TestAssignmentWindow:
    """An assignment occupies its dates inclusively."""

    def test_inclusive_bounds(self):
        a = _assignment(date(2026, 3, 10), date(2026, 3, 12))
        assert is_assignment_active(a, date(2026, 3, 10))
        assert is_assignment_active(a, date(2026, 3, 12))
        assert not is_assignment_active(a, date(2026, 3, 9))
        assert not is_assignment_active(a, date(2026, 3, 13))

    def test_open_ended_assignment(self):
        a = _assignment(date(2026, 3, 10))
        assert is_assignment_active(a, date(2027, 1, 1))

    def test_returned_assignment_is_inactive(self):
        a = _assignment(date(2026, 3, 10), status="returned")
        assert not is_assignment_active(a, date(2026, 3, 10))


class TestDailyBreakdown:
    """Bulk pool and tracked units are counted separately per day."""

    def test_mixed_bulk_and_tracked(self):
        u1 = _item("PT-001")
        u2 = _item("PT-002", status="maintenance")
        assignments = [
            _assignment(date(2026, 3, 10), date(2026, 3, 11), quantity=3),
            _assignment(date(2026, 3, 11), item=u1),
        ]

        rows = build_daily_breakdown(10, [u1, u2], assignments, date(2026, 3, 10), date(2026, 3, 12))

        assert [r["total_available"] for r in rows] == [6, 5, 8]
        first = rows[0]
        assert first["bulk_available"] == 5
        assert first["bulk_assigned"] == 3
        assert first["tracked_available"] == 1
        assert first["tracked_assigned"] == 1
        assert len(rows[1]["conflicts"]) == 2

    def test_bulk_never_negative(self):
        rows = build_daily_breakdown(2, [], [_assignment(date(2026, 3, 10), quantity=5)], date(2026, 3, 10), date(2026, 3, 10))
        assert rows[0]["bulk_available"] == 0
        assert rows[0]["total_available"] == 0

    def test_individual_items_window(self):
        u1 = _item("PT-001")
        u2 = _item("PT-002")
        units = individual_items([u1, u2], [_assignment(date(2026, 3, 12), item=u2)], date(2026, 3, 10), date(2026, 3, 12))
        by_code = {u["item_code"]: u for u in units}
        assert by_code["PT-001"]["available_for_window"] is True
        assert by_code["PT-002"]["available_for_window"] is False


class TestConflictAugmentation:
    """Unavailable units fill the conflicts list up to tracked_assigned."""

    def test_pads_with_out_of_service_units(self):
        u1 = _item("PT-001", status="maintenance")
        rows = build_daily_breakdown(1, [u1], [], date(2026, 3, 10), date(2026, 3, 10))
        units = individual_items([u1], [], date(2026, 3, 10), date(2026, 3, 10))

        out = augment_conflicts(rows, units)

        conflicts = out[0]["conflicts"]
        assert len(conflicts) == 1
        assert conflicts[0]["job_number"] == "Unavailable"
        assert conflicts[0]["customer_name"] == "Maintenance"
        assert conflicts[0]["assignment_id"] == f"unavailable:{u1.id}"

    def test_no_padding_when_conflicts_already_match(self):
        u1 = _item("PT-001")
        rows = build_daily_breakdown(1, [u1], [_assignment(date(2026, 3, 10), item=u1)], date(2026, 3, 10), date(2026, 3, 10))
        units = individual_items([u1], [], date(2026, 3, 10), date(2026, 3, 10))
        out = augment_conflicts(rows, units)
        assert len(out[0]["conflicts"]) == 1


class TestClassification:
    """Status and message for a requested quantity."""

    def test_classify(self):
        assert classify(5, 3) == "available"
        assert classify(2, 3) == "partial"
        assert classify(0, 3) == "unavailable"

    def test_messages(self):
        assert overall_message(5, 3) == "3 units are available for the entire selected period"
        assert overall_message(2, 3) == "Only 2 units available (3 requested)"
        assert overall_message(0, 3) == "No units available for some days in the selected period"


class TestWindowValidation:
    """Date windows are inclusive and bounded."""

    def test_end_defaults_to_start(self):
        assert validate_window(date(2026, 3, 10), None) == date(2026, 3, 10)

    def test_end_before_start(self):
        with pytest.raises(AvailabilityError):
            validate_window(date(2026, 3, 10), date(2026, 3, 9))

    def test_window_too_long(self):
        with pytest.raises(AvailabilityError):
            validate_window(date(2026, 1, 1), date(2027, 6, 1))

    def test_month_window(self):
        assert month_window(date(2026, 2, 14)) == (date(2026, 2, 1), date(2026, 2, 28))
        assert month_window(date(2026, 12, 5)) == (date(2026, 12, 1), date(2026, 12, 31))


class TestAvailabilityEndpoint:
    """GET /equipment/products/{id}/availability."""

    def test_without_dates_returns_stock_total(self, client, admin_headers, product):
        resp = client.get(f"/equipment/products/{product.id}/availability", headers=admin_headers)
        assert resp.status_code == 200
        body = resp.json()
        assert body["available"] == 10
        assert body["method"] == "stock_total"
        assert body["daily_breakdown"] == []

    def test_end_without_start_is_rejected(self, client, admin_headers, product):
        resp = client.get(
            f"/equipment/products/{product.id}/availability",
            params={"end_date": "2026-03-12"},
            headers=admin_headers,
        )
        assert resp.status_code == 400

    def test_unknown_product(self, client, admin_headers):
        resp = client.get(
            f"/equipment/products/{uuid.uuid4()}/availability",
            params={"start_date": "2026-03-10"},
            headers=admin_headers,
        )
        assert resp.status_code == 404

    def test_partial_after_reservation(self, client, admin_headers, db, product, customer):
        job = make_job(db, customer)
        resp = client.post(
            f"/equipment/jobs/{job.id}/reservations/bulk",
            json={"product_id": str(product.id), "quantity": 8, "assigned_date": "2026-03-10", "return_date": "2026-03-12"},
            headers=admin_headers,
        )
        assert resp.status_code == 201

        resp = client.get(
            f"/equipment/products/{product.id}/availability",
            params={"start_date": "2026-03-09", "end_date": "2026-03-13", "requested_quantity": 3},
            headers=admin_headers,
        )
        body = resp.json()
        assert body["available"] == 2
        assert body["overall_status"] == "partial"
        assert [d["total_available"] for d in body["daily_breakdown"]] == [10, 2, 2, 2, 10]
        assert body["daily_breakdown"][0]["status"] == "available"
        assert body["summary"]["min_available"] == 2

    def test_tracked_units_switch_method(self, client, admin_headers, db, product):
        make_units(db, product, ["PT-001", "PT-002"])
        resp = client.get(
            f"/equipment/products/{product.id}/availability",
            params={"start_date": "2026-03-10"},
            headers=admin_headers,
        )
        body = resp.json()
        assert body["method"] == "individual_tracking"
        assert body["daily_breakdown"][0]["tracked_available"] == 2
        assert body["daily_breakdown"][0]["bulk_available"] == 8


def _reserve(db, job, product, quantity, start, end=None):
    db.add(EquipmentAssignment(
        job_id=job.id,
        product_id=product.id,
        quantity=quantity,
        assigned_date=start,
        return_date=end,
        status="reserved",
    ))
    db.commit()


class TestSummary:
    """Window summary over total_available."""

    def test_average_rounded_to_cents(self):
        summary = summarize([{"total_available": 10}, {"total_available": 2}, {"total_available": 2}], 10)
        assert summary == {"min_available": 2, "max_available": 10, "avg_available": 4.67, "total_stock": 10}

    def test_endpoint_summary(self, client, admin_headers, db, product, customer):
        _reserve(db, make_job(db, customer), product, 8, date(2026, 3, 10), date(2026, 3, 12))
        body = client.get(
            f"/equipment/products/{product.id}/availability",
            params={"start_date": "2026-03-09", "end_date": "2026-03-11"},
            headers=admin_headers,
        ).json()
        assert body["summary"]["max_available"] == 10
        assert body["summary"]["avg_available"] == 4.67
        assert body["summary"]["total_stock"] == 10


class TestNextAvailable:
    """First day with enough units inside the search horizon."""

    def test_first_qualifying_day(self, db, product, customer):
        _reserve(db, make_job(db, customer), product, 8, date(2026, 3, 10), date(2026, 3, 12))
        assert next_available_date(db, product.id, date(2026, 3, 10), 2) == date(2026, 3, 10)
        assert next_available_date(db, product.id, date(2026, 3, 10), 5) == date(2026, 3, 13)

    def test_horizon_cut_off(self, db, product, customer):
        _reserve(db, make_job(db, customer), product, 8, date(2026, 3, 10), date(2026, 3, 12))
        assert next_available_date(db, product.id, date(2026, 3, 10), 5, horizon_days=3) is None
        assert next_available_date(db, product.id, date(2026, 3, 10), 5, horizon_days=4) == date(2026, 3, 13)

    def test_never_enough_stock(self, db, product):
        assert next_available_date(db, product.id, date(2026, 3, 10), 11) is None

    def test_endpoint(self, client, admin_headers, db, product, customer):
        _reserve(db, make_job(db, customer), product, 8, date(2026, 3, 10), date(2026, 3, 12))
        body = client.get(
            f"/equipment/products/{product.id}/next-available",
            params={"from_date": "2026-03-10", "quantity": 5},
            headers=admin_headers,
        ).json()
        assert body["next_available_date"] == "2026-03-13"
        assert body["requested_quantity"] == 5

        body = client.get(
            f"/equipment/products/{product.id}/next-available",
            params={"from_date": "2026-03-10", "quantity": 50},
            headers=admin_headers,
        ).json()
        assert body["next_available_date"] is None


class TestCalendar:
    """Month feed for the availability calendar."""

    def test_whole_month(self, client, admin_headers, db, product, customer):
        make_units(db, product, ["PT-001"], status="maintenance")
        _reserve(db, make_job(db, customer), product, 4, date(2026, 3, 10), date(2026, 3, 12))

        resp = client.get(
            f"/equipment/products/{product.id}/calendar",
            params={"month": "2026-03-15"},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["start_date"] == "2026-03-01"
        assert body["end_date"] == "2026-03-31"
        assert len(body["daily_breakdown"]) == 31
        assert body["available"] == 5

        first = body["daily_breakdown"][0]
        assert first["total_available"] == 9
        assert [c["job_number"] for c in first["conflicts"]] == ["Unavailable"]

    def test_unknown_product(self, client, admin_headers):
        resp = client.get(f"/equipment/products/{uuid.uuid4()}/calendar", headers=admin_headers)
        assert resp.status_code == 404

    def test_month_longer_than_allowed_window(self, client, admin_headers, product, monkeypatch):
        monkeypatch.setattr(settings, "availability_max_days", 28)
        resp = client.get(
            f"/equipment/products/{product.id}/calendar",
            params={"month": "2026-03-15"},
            headers=admin_headers,
        )
        assert resp.status_code == 400
