# Overview: Pytest coverage for tenant isolation behavior.

"""
Multi-Tenant Isolation Tests

SECURITY TESTS: Prove that cross-tenant access is denied for core resources.

Two tenants each get data of their own, then:
1. Lists only ever show the caller's rows
2. Reading or writing another tenant's row by id answers 404 (never 403,
   which would reveal that the row exists)
3. Cross-tenant attempts are recorded as security events
"""

import pytest

from retailbooks.models import Product, SecurityEvent
from retailbooks.services.sales_service import create_sale
from retailbooks.services.tenant_service import TenantAccessError, get_owned_or_404, scoped_query

from conftest import add_product, auth_headers


class TestTenantServiceHelpers:
    """Scoped queries and ownership checks."""

    def test_scoped_query_filters_tenant(self, db_session, tenant_a, tenant_b, product_a, product_b):
        rows = scoped_query(Product, tenant_a.id).all()
        assert [p.id for p in rows] == [product_a.id]

    def test_get_owned_or_404_cross_tenant(self, db_session, tenant_a, product_b):
        with pytest.raises(TenantAccessError):
            get_owned_or_404(Product, product_b.id, tenant_a.id)

    def test_get_owned_or_404_nonexistent(self, db_session, tenant_a):
        with pytest.raises(TenantAccessError):
            get_owned_or_404(Product, 99999, tenant_a.id)


class TestCrossTenantApi:
    """Tenant A's token never reaches tenant B's rows."""

    def test_product_list_is_scoped(self, client, admin_headers, product_a, product_b):
        resp = client.get("/api/products", headers=admin_headers)
        assert resp.status_code == 200
        assert [p["id"] for p in resp.json["data"]] == [product_a.id]

    def test_read_foreign_product_is_404(self, client, admin_headers, product_b):
        resp = client.get(f"/api/products/{product_b.id}", headers=admin_headers)
        assert resp.status_code == 404
        assert resp.json["success"] is False
        assert resp.json["code"] == "NOT_FOUND"

    def test_update_foreign_product_is_404(self, client, db_session, admin_headers, product_b):
        resp = client.patch(f"/api/products/{product_b.id}", json={"name": "hijacked"}, headers=admin_headers)
        assert resp.status_code == 404
        db_session.refresh(product_b)
        assert product_b.name == "Ekmek"

    def test_sell_foreign_product_is_404(self, client, db_session, admin_headers, product_b):
        resp = client.post("/api/sales", json={
            "payment_method": "nakit",
            "items": [{"product_id": product_b.id, "quantity": 1}],
        }, headers=admin_headers)
        assert resp.status_code == 404
        db_session.refresh(product_b)
        assert product_b.stock_quantity == 50

    def test_read_foreign_sale_is_404(self, client, admin_headers, tenant_b, admin_b, product_b):
        sale = create_sale(tenant_b.id, admin_b.id, {
            "payment_method": "nakit",
            "items": [{"product_id": product_b.id, "quantity": 1}],
        })
        resp = client.get(f"/api/sales/{sale.id}", headers=admin_headers)
        assert resp.status_code == 404

    def test_foreign_customer_transactions_are_404(self, client, admin_headers, customer_b):
        resp = client.get(f"/api/customers/{customer_b.id}/transactions", headers=admin_headers)
        assert resp.status_code == 404

    def test_cross_tenant_attempt_is_logged(self, client, db_session, admin_headers, admin_a, product_b):
        client.get(f"/api/products/{product_b.id}", headers=admin_headers)

        events = db_session.query(SecurityEvent).filter_by(event_type="CROSS_TENANT_ACCESS_DENIED").all()
        assert len(events) == 1
        assert events[0].user_id == admin_a.id
        assert events[0].resource == f"/api/products/{product_b.id}"

    def test_same_barcode_allowed_in_two_tenants(self, db_session, tenant_a, tenant_b):
        add_product(tenant_a, name="Su", barcode="8690000000001")
        add_product(tenant_b, name="Su", barcode="8690000000001")
        assert db_session.query(Product).filter_by(barcode="8690000000001").count() == 2


class TestImpersonation:
    """Only super_admin may act inside a tenant through the header."""

    def test_super_admin_impersonates(self, client, db_session, super_admin, tenant_b, product_b):
        resp = client.get("/api/products", headers=auth_headers(super_admin, tenant_slug="beta"))
        assert resp.status_code == 200
        assert [p["id"] for p in resp.json["data"]] == [product_b.id]
        assert db_session.query(SecurityEvent).filter_by(event_type="IMPERSONATION_STARTED").count() == 1

    def test_super_admin_without_header_has_no_tenant(self, client, super_admin, tenant_b):
        resp = client.get("/api/products", headers=auth_headers(super_admin))
        assert resp.status_code == 400
        assert resp.json["code"] == "TENANT_REQUIRED"

    def test_header_ignored_for_tenant_users(self, client, db_session, admin_a, tenant_b, product_a, product_b):
        resp = client.get("/api/products", headers=auth_headers(admin_a, tenant_slug="beta"))
        assert resp.status_code == 200
        assert [p["id"] for p in resp.json["data"]] == [product_a.id]
        assert db_session.query(SecurityEvent).filter_by(event_type="IMPERSONATION_DENIED").count() == 1

    def test_unknown_tenant_is_404(self, client, super_admin):
        resp = client.get("/api/products", headers=auth_headers(super_admin, tenant_slug="nope"))
        assert resp.status_code == 404
