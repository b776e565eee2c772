# Overview: Pytest coverage for the HTTP surface: envelopes, paging, reports and CLI.

"""
API Surface Tests

Every response, success or failure, uses the JSON envelope:
    {"success": true, "data": ..., "meta"?: {...}}
    {"success": false, "message": ..., "code"?: ..., "errors"?: {...}}
"""

from datetime import timedelta

import pytest

from retailbooks.models import Tenant, User
from retailbooks.services.sales_service import create_sale
from retailbooks.time_utils import utcnow

from conftest import add_product


class TestEnvelope:

    def test_unknown_route(self, client, db_session):
        resp = client.get("/api/does-not-exist")
        assert resp.status_code == 404
        assert resp.json == {"success": False, "message": "Resource not found", "code": "NOT_FOUND"}

    def test_wrong_method(self, client, db_session):
        resp = client.delete("/health")
        assert resp.status_code == 405
        assert resp.json["code"] == "METHOD_NOT_ALLOWED"

    def test_validation_error_shape(self, client, admin_headers):
        resp = client.post("/api/sales", json={"payment_method": "nakit", "items": []}, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json["success"] is False
        assert resp.json["message"]

    def test_health(self, client, plans):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json["data"]["status"] == "healthy"
        assert set(resp.json["data"]["checks"]) == {"database", "plans", "sessions"}

    def test_health_degraded_without_plans(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json["data"]["status"] == "degraded"

    def test_version(self, client, db_session):
        resp = client.get("/version")
        assert resp.status_code == 200
        assert resp.json["data"]["api_version"]


class TestPagination:

    def test_meta(self, client, admin_headers, tenant_a):
        for name in ("Su", "Tuz", "Un"):
            add_product(tenant_a, name=name)

        resp = client.get("/api/products?limit=2&sort_by=name&sort_order=asc", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["meta"] == {"page": 1, "limit": 2, "total": 3, "totalPages": 2}
        assert [p["name"] for p in resp.json["data"]] == ["Su", "Tuz"]

        resp = client.get("/api/products?limit=2&page=2&sort_by=name&sort_order=asc", headers=admin_headers)
        assert [p["name"] for p in resp.json["data"]] == ["Un"]

    def test_bad_params_fall_back(self, client, admin_headers, product_a):
        resp = client.get("/api/products?page=-3&limit=abc", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["meta"]["page"] == 1
        assert resp.json["meta"]["limit"] == 20

    def test_limit_is_capped(self, client, admin_headers, product_a):
        resp = client.get("/api/products?limit=5000", headers=admin_headers)
        assert resp.json["meta"]["limit"] == 100


class TestReports:

    def test_sales_summary(self, client, admin_headers, tenant_a, admin_a, product_a):
        create_sale(tenant_a.id, admin_a.id, {
            "payment_method": "nakit",
            "items": [{"product_id": product_a.id, "quantity": 2}],
        })

        resp = client.get("/api/reports/sales-summary", headers=admin_headers)
        assert resp.status_code == 200
        data = resp.json["data"]
        assert data["sale_count"] == 1
        assert data["grand_total_cents"] == 24000
        assert data["by_payment_method"] == [{"payment_method": "nakit", "sale_count": 1, "grand_total_cents": 24000}]

    def test_inverted_range_rejected(self, client, admin_headers):
        resp = client.get("/api/reports/sales-summary?start=2026-02-01&end=2026-01-01", headers=admin_headers)
        assert resp.status_code == 400

    def test_debts_lists_veresiye_customers(self, client, admin_headers, tenant_a, admin_a, product_a, customer_a):
        create_sale(tenant_a.id, admin_a.id, {
            "payment_method": "veresiye",
            "customer_id": customer_a.id,
            "items": [{"product_id": product_a.id, "quantity": 1}],
        })
        data = client.get("/api/reports/debts", headers=admin_headers).json["data"]
        assert data["customer_count"] == 1
        assert data["total_receivable_cents"] == 12000

    def test_stock_alerts(self, client, admin_headers, tenant_a):
        add_product(tenant_a, name="Zeytin", stock=1, min_stock_level=5)
        add_product(tenant_a, name="Peynir", stock=40, min_stock_level=5)
        data = client.get("/api/reports/stock-alerts", headers=admin_headers).json["data"]
        assert [row["name"] for row in data] == ["Zeytin"]


class TestQuoteRoutes:

    def test_create_send_convert(self, client, admin_headers, product_a, customer_a):
        resp = client.post("/api/quotes", json={
            "customer_id": customer_a.id,
            "valid_until": (utcnow().date() + timedelta(days=10)).isoformat(),
            "items": [{"product_id": product_a.id, "quantity": 1}],
        }, headers=admin_headers)
        assert resp.status_code == 201
        quote_id = resp.json["data"]["id"]

        assert client.post(f"/api/quotes/{quote_id}/send", headers=admin_headers).json["data"]["status"] == "sent"

        resp = client.post(f"/api/quotes/{quote_id}/convert", json={"payment_method": "nakit"}, headers=admin_headers)
        assert resp.status_code == 201
        assert resp.json["data"]["quote_id"] == quote_id
        assert resp.json["data"]["grand_total_cents"] == 12000

        again = client.post(f"/api/quotes/{quote_id}/convert", json={"payment_method": "nakit"}, headers=admin_headers)
        assert again.status_code == 409

    def test_unknown_action_is_404(self, client, admin_headers):
        assert client.post("/api/quotes/1/launch", headers=admin_headers).status_code == 404


class TestEDocumentRoutes:

    @pytest.fixture
    def sale(self, tenant_a, admin_a, product_a):
        return create_sale(tenant_a.id, admin_a.id, {
            "payment_method": "nakit",
            "items": [{"product_id": product_a.id, "quantity": 1}],
        })

    def test_lifecycle_over_http(self, client, admin_headers, sale):
        resp = client.post("/api/e-documents", json={
            "document_type": "e_arsiv",
            "reference_type": "sale",
            "reference_id": sale.id,
            "receiver_name": "Nihai Tuketici",
        }, headers=admin_headers)
        assert resp.status_code == 201
        document = resp.json["data"]
        assert document["document_number"].startswith("EAR")
        assert "xml_content" not in document

        doc_id = document["id"]
        assert client.post(f"/api/e-documents/{doc_id}/send", headers=admin_headers).json["data"]["status"] == "sent"
        resp = client.post(f"/api/e-documents/{doc_id}/check-status", headers=admin_headers)
        assert resp.json["data"]["status"] == "approved"

        logs = client.get(f"/api/e-documents/{doc_id}/logs", headers=admin_headers).json["data"]
        assert [entry["action"] for entry in logs] == ["created", "submitted", "sent", "status_checked"]

        detail = client.get(f"/api/e-documents/{doc_id}?include_xml=true", headers=admin_headers).json["data"]
        assert document["document_number"] in detail["xml_content"]

    def test_cancel_sent_document_conflicts(self, client, admin_headers, sale):
        doc_id = client.post("/api/e-documents", json={
            "document_type": "e_arsiv",
            "reference_type": "sale",
            "reference_id": sale.id,
        }, headers=admin_headers).json["data"]["id"]
        client.post(f"/api/e-documents/{doc_id}/send", headers=admin_headers)

        resp = client.post(f"/api/e-documents/{doc_id}/cancel", json={"reason": "typo"}, headers=admin_headers)
        assert resp.status_code == 409
        assert resp.json["success"] is False


class TestCli:

    def test_plans_seed(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["plans", "seed"])
        assert result.exit_code == 0
        assert "catalogue: basic, pro, plus" in result.output

    def test_system_init_is_idempotent(self, app, db_session):
        runner = app.test_cli_runner()

        first = runner.invoke(args=["system", "init", "--slug", "demo"])
        assert "PASS Created tenant: Demo Store" in first.output
        second = runner.invoke(args=["system", "init", "--slug", "demo"])
        assert "Using existing tenant" in second.output

        tenant = db_session.query(Tenant).filter_by(slug="demo").one()
        assert db_session.query(User).filter_by(tenant_id=tenant.id, role="tenant_admin").count() == 1

    def test_cleanup_sessions(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["maintenance", "cleanup-sessions"])
        assert "Deleted 0 expired sessions." in result.output
