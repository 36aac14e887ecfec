"""Tests for company settings and third-party integrations."""
import pytest

from fieldops.services.geocoding import GeocodingError, GeocodingNotConfigured, MapboxGeocoder, join_address


MAPBOX_PAYLOAD = {
    "features": [
        {"place_name": "1 Main St, Springfield", "center": [-79.38, 43.65], "relevance": 0.98},
        {"place_name": "broken", "center": []},
    ]
}


class TestCompanySettings:
    """Numbering prefixes and billing defaults."""

    def test_defaults_created_on_first_read(self, client, admin_headers):
        body = client.get("/settings/company", headers=admin_headers).json()
        assert body["delivery_prefix"] == "DEL"
        assert body["next_delivery_number"] == 1
        assert body["quote_prefix"] == "Q"

    def test_custom_prefix_used_for_new_jobs(self, client, admin_headers, customer):
        resp = client.patch(
            "/settings/company",
            json={"delivery_prefix": " DLV ", "next_delivery_number": 40},
            headers=admin_headers,
        )
        assert resp.json()["delivery_prefix"] == "DLV"

        job = client.post(
            "/jobs",
            json={"customer_id": str(customer.id), "job_type": "delivery", "scheduled_date": "2026-03-10"},
            headers=admin_headers,
        ).json()
        assert job["job_number"] == "DLV-040"

    def test_blank_prefix_rejected(self, client, admin_headers):
        resp = client.patch("/settings/company", json={"invoice_prefix": "  "}, headers=admin_headers)
        assert resp.status_code == 400

    def test_unknown_timezone_rejected(self, client, admin_headers):
        resp = client.patch("/settings/company", json={"default_timezone": "Nowhere/Land"}, headers=admin_headers)
        assert resp.status_code == 422

        resp = client.patch("/settings/company", json={"default_timezone": "America/Toronto"}, headers=admin_headers)
        assert resp.json()["default_timezone"] == "America/Toronto"


class TestGeocoder:
    """Mapbox client parsing and configuration."""

    def test_requires_token(self):
        with pytest.raises(GeocodingNotConfigured):
            MapboxGeocoder()

    def test_parses_features(self, monkeypatch):
        geocoder = MapboxGeocoder(token="pk.test")
        monkeypatch.setattr(geocoder, "_request", lambda path, params: MAPBOX_PAYLOAD)
        results = geocoder.geocode("1 Main St")
        assert results == [{"place_name": "1 Main St, Springfield", "longitude": -79.38, "latitude": 43.65, "relevance": 0.98}]

    def test_join_address(self):
        assert join_address("1 Main St", None, " ", "Springfield", "ON") == "1 Main St, Springfield, ON"


class TestIntegrationEndpoints:
    """Status and geocoding over HTTP."""

    def test_status(self, client):
        body = client.get("/integrations/status").json()
        assert body["blob"] is False
        assert body["geocoding"] is False

    def test_geocode_not_configured(self, client, admin_headers):
        resp = client.post("/integrations/geocode", json={"address": "1 Main St"}, headers=admin_headers)
        assert resp.status_code == 503

    def test_geocode_blank_address(self, client, admin_headers):
        resp = client.post("/integrations/geocode", json={"address": "  "}, headers=admin_headers)
        assert resp.status_code == 400

    def test_geocode_suggestions(self, client, admin_headers, monkeypatch):
        from fieldops.config import settings

        monkeypatch.setattr(settings, "mapbox_geocoding_token", "pk.test")
        monkeypatch.setattr(MapboxGeocoder, "_request", lambda self, path, params: MAPBOX_PAYLOAD)
        resp = client.post("/integrations/geocode", json={"address": "1 Main St", "limit": 3}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json()["suggestions"][0]["latitude"] == 43.65

    def test_geocode_provider_error(self, client, admin_headers, monkeypatch):
        from fieldops.config import settings

        def fail(self, path, params):
            raise GeocodingError("Geocoding provider error: timeout")

        monkeypatch.setattr(settings, "mapbox_geocoding_token", "pk.test")
        monkeypatch.setattr(MapboxGeocoder, "_request", fail)
        resp = client.post("/integrations/geocode", json={"address": "1 Main St"}, headers=admin_headers)
        assert resp.status_code == 502
