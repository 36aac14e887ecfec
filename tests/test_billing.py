"""Tests for quotes, invoices and payments."""
from datetime import date, timedelta

from fieldops.services.numbering import get_company_settings


ITEMS = [
    {"product_name": "Standard Unit", "quantity": 3, "unit_price": 19.99},
    {"product_name": "Hand Wash Station", "quantity": 1, "unit_price": 45.5},
]


class TestQuotes:
    """Quote totals and numbering."""

    def test_totals_rounded_to_cents(self, client, admin_headers, customer):
        resp = client.post(
            "/billing/quotes",
            json={"customer_id": str(customer.id), "tax_rate": 0.13, "items": ITEMS},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        body = resp.json()
        assert body["quote_number"] == "Q-0001"
        assert [i["line_total"] for i in body["items"]] == [59.97, 45.5]
        assert body["subtotal"] == 105.47
        assert body["tax_amount"] == 13.71
        assert body["total_amount"] == 119.18

    def test_company_tax_rate_is_default(self, client, admin_headers, db, customer):
        get_company_settings(db).tax_rate = 0.05
        db.commit()
        body = client.post(
            "/billing/quotes",
            json={"customer_id": str(customer.id), "items": [{"product_name": "Unit", "quantity": 1, "unit_price": 100}]},
            headers=admin_headers,
        ).json()
        assert body["tax_amount"] == 5.0
        assert body["total_amount"] == 105.0

    def test_next_number_does_not_advance(self, client, admin_headers, customer):
        assert client.get("/billing/next-number", params={"kind": "quote"}, headers=admin_headers).json()["number"] == "Q-0001"
        assert client.get("/billing/next-number", params={"kind": "quote"}, headers=admin_headers).json()["number"] == "Q-0001"
        client.post("/billing/quotes", json={"customer_id": str(customer.id)}, headers=admin_headers)
        assert client.get("/billing/next-number", params={"kind": "quote"}, headers=admin_headers).json()["number"] == "Q-0002"
        assert client.get("/billing/next-number", params={"kind": "invoice"}, headers=admin_headers).json()["number"] == "INV-0001"

    def test_unknown_customer(self, client, admin_headers):
        resp = client.post(
            "/billing/quotes",
            json={"customer_id": "00000000-0000-0000-0000-000000000000"},
            headers=admin_headers,
        )
        assert resp.status_code == 404

    def test_replacing_items_recomputes_totals(self, client, admin_headers, customer):
        created = client.post(
            "/billing/quotes",
            json={"customer_id": str(customer.id), "tax_rate": 0.1, "items": ITEMS},
            headers=admin_headers,
        ).json()
        resp = client.patch(
            f"/billing/quotes/{created['id']}",
            json={"items": [{"product_name": "Unit", "quantity": 2, "unit_price": 10}]},
            headers=admin_headers,
        )
        body = resp.json()
        assert len(body["items"]) == 1
        assert body["subtotal"] == 20.0
        assert body["tax_amount"] == 2.0
        assert body["total_amount"] == 22.0

    def test_stored_rate_survives_rounded_totals(self, client, admin_headers, customer):
        created = client.post(
            "/billing/quotes",
            json={"customer_id": str(customer.id), "tax_rate": 0.08, "items": [{"product_name": "Tissue", "quantity": 1, "unit_price": 0.33}]},
            headers=admin_headers,
        ).json()
        assert created["tax_amount"] == 0.03
        assert created["tax_rate"] == 0.08

        body = client.patch(
            f"/billing/quotes/{created['id']}",
            json={"items": [{"product_name": "Unit", "quantity": 1, "unit_price": 1000}]},
            headers=admin_headers,
        ).json()
        assert body["tax_amount"] == 80.0
        assert body["total_amount"] == 1080.0

    def test_stored_rate_used_after_empty_quote(self, client, admin_headers, customer):
        created = client.post(
            "/billing/quotes",
            json={"customer_id": str(customer.id), "tax_rate": 0.08},
            headers=admin_headers,
        ).json()
        assert created["subtotal"] == 0

        body = client.patch(
            f"/billing/quotes/{created['id']}",
            json={"items": [{"product_name": "Unit", "quantity": 1, "unit_price": 100}]},
            headers=admin_headers,
        ).json()
        assert body["tax_amount"] == 8.0


class TestInvoices:
    """Invoices, quote conversion and payments."""

    def test_invoice_from_quote(self, client, admin_headers, db, customer):
        get_company_settings(db).payment_terms_days = 15
        db.commit()
        quote = client.post(
            "/billing/quotes",
            json={"customer_id": str(customer.id), "notes": "Festival", "tax_rate": 0.13, "items": ITEMS},
            headers=admin_headers,
        ).json()

        resp = client.post(f"/billing/quotes/{quote['id']}/invoice", headers=admin_headers)
        assert resp.status_code == 201
        invoice = resp.json()
        assert invoice["invoice_number"] == "INV-0001"
        assert invoice["quote_id"] == quote["id"]
        assert invoice["notes"] == "Festival"
        assert invoice["total_amount"] == quote["total_amount"]
        assert len(invoice["items"]) == 2
        assert invoice["due_date"] == (date.today() + timedelta(days=15)).isoformat()

        refreshed = client.get(f"/billing/quotes/{quote['id']}", headers=admin_headers).json()
        assert refreshed["status"] == "accepted"

    def test_payments_mark_invoice_paid(self, client, admin_headers, customer):
        invoice = client.post(
            "/billing/invoices",
            json={"customer_id": str(customer.id), "items": [{"product_name": "Unit", "quantity": 1, "unit_price": 100}]},
            headers=admin_headers,
        ).json()
        assert invoice["balance_due"] == 100.0

        resp = client.post(f"/billing/invoices/{invoice['id']}/payments", json={"amount": 40}, headers=admin_headers)
        body = resp.json()
        assert body["amount_paid"] == 40.0
        assert body["balance_due"] == 60.0
        assert body["status"] == "draft"

        body = client.post(f"/billing/invoices/{invoice['id']}/payments", json={"amount": 60}, headers=admin_headers).json()
        assert body["status"] == "paid"
        assert body["balance_due"] == 0.0

    def test_payment_must_be_positive(self, client, admin_headers, customer):
        invoice = client.post("/billing/invoices", json={"customer_id": str(customer.id)}, headers=admin_headers).json()
        resp = client.post(f"/billing/invoices/{invoice['id']}/payments", json={"amount": 0}, headers=admin_headers)
        assert resp.status_code == 422

    def test_default_due_date_uses_payment_terms(self, client, admin_headers, customer):
        invoice = client.post("/billing/invoices", json={"customer_id": str(customer.id)}, headers=admin_headers).json()
        assert invoice["due_date"] == (date.today() + timedelta(days=30)).isoformat()

    def test_invoice_keeps_quote_tax_rate(self, client, admin_headers, customer):
        quote = client.post(
            "/billing/quotes",
            json={"customer_id": str(customer.id), "tax_rate": 0.08, "items": [{"product_name": "Tissue", "quantity": 1, "unit_price": 0.33}]},
            headers=admin_headers,
        ).json()
        invoice = client.post(f"/billing/quotes/{quote['id']}/invoice", headers=admin_headers).json()
        assert invoice["tax_rate"] == 0.08

        body = client.patch(
            f"/billing/invoices/{invoice['id']}",
            json={"items": [{"product_name": "Unit", "quantity": 1, "unit_price": 1000}]},
            headers=admin_headers,
        ).json()
        assert body["tax_amount"] == 80.0
