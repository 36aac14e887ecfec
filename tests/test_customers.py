"""Tests for customers, service locations, drop pins and CSV import."""
import pytest

from fieldops.models.models import Customer
from fieldops.services.customer_import import clean_phone
from fieldops.services.geofence import haversine_distance, pin_distance
from conftest import auth_headers, make_job, make_user


class TestCustomers:
    """Customer CRUD and listing."""

    def test_create_strips_blank_fields(self, client, admin_headers):
        resp = client.post("/customers", json={"name": "  Beta Rentals ", "email": "  "}, headers=admin_headers)
        assert resp.status_code == 201
        body = resp.json()
        assert body["name"] == "Beta Rentals"
        assert body["email"] is None

    def test_blank_name_rejected(self, client, admin_headers):
        assert client.post("/customers", json={"name": "   "}, headers=admin_headers).status_code == 422

    def test_search_and_pagination(self, client, admin_headers, db):
        for name in ["Alpha", "Bravo", "Charlie"]:
            db.add(Customer(name=name))
        db.commit()

        body = client.get("/customers", params={"limit": 2}, headers=admin_headers).json()
        assert body["total"] == 3
        assert body["total_pages"] == 2
        assert [c["name"] for c in body["items"]] == ["Alpha", "Bravo"]

        body = client.get("/customers", params={"q": "rav"}, headers=admin_headers).json()
        assert [c["name"] for c in body["items"]] == ["Bravo"]

    def test_delete_blocked_by_jobs(self, client, admin_headers, db, customer):
        make_job(db, customer)
        resp = client.delete(f"/customers/{customer.id}", headers=admin_headers)
        assert resp.status_code == 400
        assert "1 job(s)" in resp.json()["detail"]

    def test_read_permission_does_not_allow_writes(self, client, db, customer):
        viewer = make_user(db, "viewer", permissions={"customers:read": True})
        headers = auth_headers(viewer)
        assert client.get(f"/customers/{customer.id}", headers=headers).status_code == 200
        assert client.patch(f"/customers/{customer.id}", json={"notes": "x"}, headers=headers).status_code == 403

    def test_area_access_denies_whole_area(self, client, db, customer):
        blocked = make_user(db, "blocked", permissions={"customers:access": False, "customers:read": True})
        assert client.get(f"/customers/{customer.id}", headers=auth_headers(blocked)).status_code == 403


class TestServiceLocations:
    """Default handling and coordinates."""

    def test_first_location_is_default(self, client, admin_headers, customer):
        url = f"/customers/{customer.id}/locations"
        first = client.post(url, json={"location_name": "Fairgrounds"}, headers=admin_headers).json()
        second = client.post(url, json={"location_name": "Arena"}, headers=admin_headers).json()
        assert first["is_default"] is True
        assert second["is_default"] is False

        client.patch(f"{url}/{second['id']}", json={"is_default": True}, headers=admin_headers)
        rows = {r["location_name"]: r["is_default"] for r in client.get(url, headers=admin_headers).json()}
        assert rows == {"Fairgrounds": False, "Arena": True}

    def test_deleting_default_promotes_next(self, client, admin_headers, customer):
        url = f"/customers/{customer.id}/locations"
        first = client.post(url, json={"location_name": "Fairgrounds"}, headers=admin_headers).json()
        client.post(url, json={"location_name": "Arena"}, headers=admin_headers)

        client.delete(f"{url}/{first['id']}", headers=admin_headers)
        rows = client.get(url, headers=admin_headers).json()
        assert len(rows) == 1
        assert rows[0]["is_default"] is True

    def test_clearing_default_promotes_oldest_other(self, client, admin_headers, customer):
        url = f"/customers/{customer.id}/locations"
        first = client.post(url, json={"location_name": "Fairgrounds"}, headers=admin_headers).json()
        client.post(url, json={"location_name": "Arena"}, headers=admin_headers)

        resp = client.patch(f"{url}/{first['id']}", json={"is_default": False}, headers=admin_headers)
        assert resp.status_code == 200
        rows = {r["location_name"]: r["is_default"] for r in client.get(url, headers=admin_headers).json()}
        assert rows == {"Fairgrounds": False, "Arena": True}

    def test_only_location_stays_default(self, client, admin_headers, customer):
        url = f"/customers/{customer.id}/locations"
        only = client.post(url, json={"location_name": "Fairgrounds"}, headers=admin_headers).json()
        resp = client.patch(f"{url}/{only['id']}", json={"is_default": False}, headers=admin_headers)
        assert resp.status_code == 400
        assert client.get(url, headers=admin_headers).json()[0]["is_default"] is True

    def test_address_change_clears_coordinates(self, client, admin_headers, customer):
        url = f"/customers/{customer.id}/locations"
        loc = client.post(
            url,
            json={"location_name": "Fairgrounds", "street": "1 Main St", "latitude": 43.65, "longitude": -79.38},
            headers=admin_headers,
        ).json()
        assert loc["latitude"] == 43.65

        body = client.patch(f"{url}/{loc['id']}", json={"street": "9 Side Rd"}, headers=admin_headers).json()
        assert body["latitude"] is None
        assert body["longitude"] is None

        body = client.patch(f"{url}/{loc['id']}", json={"city": "Springfield", "latitude": 40.0, "longitude": -80.0}, headers=admin_headers).json()
        assert body["latitude"] == 40.0


class TestDropPins:
    """Pins are measured against their service location."""

    def test_haversine(self):
        assert haversine_distance(43.0, -79.0, 43.0, -79.0) == 0
        # one hundredth of a degree of latitude is about 1.1 km
        assert 1100 < haversine_distance(43.0, -79.0, 43.01, -79.0) < 1125

    def test_pin_distance_without_coordinates(self):
        assert pin_distance(43.0, -79.0, None, None) == (None, False)

    def test_pin_distance_radius(self):
        distance, far = pin_distance(43.0, -79.0, 43.01, -79.0, radius_m=500)
        assert far is True
        distance, far = pin_distance(43.0, -79.0, 43.001, -79.0, radius_m=500)
        assert far is False
        assert distance == pytest.approx(111.2, abs=0.5)

    def test_pin_endpoint(self, client, admin_headers, customer):
        loc = client.post(
            f"/customers/{customer.id}/locations",
            json={"location_name": "Fairgrounds", "latitude": 43.0, "longitude": -79.0},
            headers=admin_headers,
        ).json()
        resp = client.post(
            f"/customers/{customer.id}/pins",
            json={"label": "Gate 3", "latitude": 43.01, "longitude": -79.0, "service_location_id": loc["id"]},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        assert resp.json()["far_from_location"] is True
        assert resp.json()["distance_m"] > 1000

    def test_pin_location_must_belong_to_customer(self, client, admin_headers, db, customer):
        other = Customer(name="Other Co")
        db.add(other)
        db.commit()
        loc = client.post(f"/customers/{other.id}/locations", json={"location_name": "Elsewhere"}, headers=admin_headers).json()
        resp = client.post(
            f"/customers/{customer.id}/pins",
            json={"label": "Gate", "latitude": 43.0, "longitude": -79.0, "service_location_id": loc["id"]},
            headers=admin_headers,
        )
        assert resp.status_code == 400


class TestImport:
    """CSV import of customers."""

    def test_clean_phone(self):
        assert clean_phone("555", "010-1234") == "(555) 010-1234"
        assert clean_phone("1 (555) 010 1234") == "(555) 010-1234"
        assert clean_phone("12345") == "12345"
        assert clean_phone(None) is None

    def test_import_file(self, client, admin_headers, db, customer):
        csv_text = (
            "Name,Email,Phone1 A,Phone1 #\n"
            "Acme Events,dupe@acme.test,555,0102000\n"
            "Beta Rentals,beta@rentals.test,555,0101234\n"
            ",nobody@test.test,555,0100000\n"
        )
        resp = client.post(
            "/customers/import",
            files={"file": ("customers.csv", csv_text.encode("utf-8"), "text/csv")},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["created"] == 1
        assert body["skipped"] == 2
        beta = db.query(Customer).filter(Customer.name == "Beta Rentals").one()
        assert beta.phone == "(555) 010-1234"

    def test_dry_run_writes_nothing(self, client, admin_headers, db):
        resp = client.post(
            "/customers/import",
            params={"dry_run": "true"},
            files={"file": ("customers.csv", b"NAME\nGamma Co\n", "text/csv")},
            headers=admin_headers,
        )
        assert resp.json()["created"] == 1
        assert resp.json()["dry_run"] is True
        assert db.query(Customer).count() == 0
