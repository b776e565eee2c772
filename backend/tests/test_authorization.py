# Overview: Pytest coverage for role permissions and plan gating.

"""
Authorization tests.

Verifies:
- Unauthenticated requests return 401
- The 'user' role is denied management operations (403 PERMISSION_DENIED)
- Plan features gate whole modules (403 FEATURE_NOT_AVAILABLE)
- Plan limits cap resource counts (409 PLAN_LIMIT_EXCEEDED)
- Platform administration is super_admin only
"""

import pytest

from retailbooks.models import SecurityEvent
from retailbooks.services import plan_service
from retailbooks.services.permission_service import evaluate
from retailbooks.services.session_service import SessionContext

from conftest import PASSWORD, auth_headers, make_user


# =============================================================================
# UNAUTHENTICATED ACCESS - 401
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/products"),
            ("POST", "/api/sales"),
            ("GET", "/api/customers"),
            ("GET", "/api/accounts"),
            ("GET", "/api/quotes"),
            ("GET", "/api/e-documents"),
            ("GET", "/api/reports/sales-summary"),
            ("GET", "/api/users"),
            ("GET", "/api/tenant"),
            ("GET", "/api/plans"),
            ("GET", "/api/admin/tenants"),
            ("GET", "/api/auth/me"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"
        assert resp.json["code"] == "UNAUTHORIZED"

    def test_garbage_token(self, client, db_session):
        resp = client.get("/api/products", headers={"Authorization": "Bearer not-a-token"})
        assert resp.status_code == 401


# =============================================================================
# ROLE PERMISSIONS - 403
# =============================================================================


class TestUserRoleDenied:
    """The 'user' role sells but does not manage."""

    def test_can_list_products(self, client, user_headers):
        assert client.get("/api/products", headers=user_headers).status_code == 200

    def test_cannot_create_product(self, client, db_session, user_headers):
        resp = client.post("/api/products", json={"name": "X", "sale_price_cents": 100}, headers=user_headers)
        assert resp.status_code == 403
        assert resp.json["code"] == "PERMISSION_DENIED"
        assert resp.json["errors"]["required_permission"] == "products.manage"
        assert db_session.query(SecurityEvent).filter_by(event_type="PERMISSION_DENIED").count() == 1

    def test_cannot_cancel_sale(self, client, user_headers):
        resp = client.post("/api/sales/1/cancel", json={}, headers=user_headers)
        assert resp.status_code == 403

    def test_cannot_manage_users(self, client, user_headers):
        assert client.get("/api/users", headers=user_headers).status_code == 403

    def test_cannot_view_accounts(self, client, user_headers):
        assert client.get("/api/accounts", headers=user_headers).status_code == 403

    def test_cannot_read_security_events(self, client, manager_headers):
        assert client.get("/api/tenant/security-events", headers=manager_headers).status_code == 403

    def test_manager_can_adjust_stock(self, client, manager_headers, product_a):
        resp = client.post(
            f"/api/products/{product_a.id}/stock",
            json={"movement_type": "adjustment", "quantity": -3, "notes": "count"},
            headers=manager_headers,
        )
        assert resp.status_code == 201
        assert resp.json["data"]["stock_after"] == 7


# =============================================================================
# PLAN GATING
# =============================================================================


class TestPlanFeatures:
    """Basic plan: sales and returns only."""

    @pytest.mark.parametrize(
        "path,feature",
        [
            ("/api/quotes", "quotes"),
            ("/api/e-documents", "eDocuments"),
            ("/api/warehouses", "warehouses"),
            ("/api/reports/vat", "advancedReports"),
        ],
    )
    def test_feature_not_available(self, client, db_session, basic_headers, path, feature):
        resp = client.get(path, headers=basic_headers)
        assert resp.status_code == 403
        assert resp.json["code"] == "FEATURE_NOT_AVAILABLE"
        assert resp.json["errors"]["feature"] == feature
        assert db_session.query(SecurityEvent).filter_by(event_type="FEATURE_NOT_AVAILABLE").count() == 1

    def test_basic_plan_can_sell(self, client, basic_headers, product_b):
        resp = client.post("/api/sales", json={
            "payment_method": "nakit",
            "items": [{"product_id": product_b.id, "quantity": 2}],
        }, headers=basic_headers)
        assert resp.status_code == 201
        assert resp.json["data"]["grand_total_cents"] == 2020

    def test_pro_plan_has_quotes(self, client, admin_headers):
        assert client.get("/api/quotes", headers=admin_headers).status_code == 200

    def test_evaluate_reports_feature(self, db_session, admin_b, tenant_b):
        context = SessionContext(user=admin_b, session=None, tenant=tenant_b)
        decision = evaluate(context, "quotes.view")
        assert not decision.allowed
        assert decision.reason == "feature"
        assert decision.feature == "quotes"

    def test_require_feature(self, db_session, tenant_a, tenant_b):
        plan_service.require_feature(tenant_a, "quotes")
        with pytest.raises(plan_service.FeatureNotAvailableError) as exc_info:
            plan_service.require_feature(tenant_b, "quotes")
        assert exc_info.value.details == {"feature": "quotes"}

    def test_check_limit(self, db_session, tenant_b):
        assert plan_service.check_limit(tenant_b, "maxUsers", 0) == {"allowed": True, "limit": 1, "current": 0}
        assert plan_service.check_limit(tenant_b, "maxUsers", 1)["allowed"] is False

    def test_unknown_permission_fails_closed(self, db_session, admin_a, tenant_a):
        context = SessionContext(user=admin_a, session=None, tenant=tenant_a)
        assert evaluate(context, "rockets.launch").allowed is False


class TestPlanLimits:

    def test_basic_plan_single_user(self, client, db_session, basic_headers):
        resp = client.post("/api/users", json={
            "email": "second@beta.test",
            "password": PASSWORD,
            "full_name": "Second User",
            "role": "user",
        }, headers=basic_headers)
        assert resp.status_code == 409
        assert resp.json["code"] == "PLAN_LIMIT_EXCEEDED"

    def test_pro_plan_allows_more_users(self, client, admin_headers):
        resp = client.post("/api/users", json={
            "email": "clerk@acme.test",
            "password": PASSWORD,
            "full_name": "Clerk",
            "role": "user",
        }, headers=admin_headers)
        assert resp.status_code == 201
        assert resp.json["data"]["role"] == "user"

    def test_usage_reports_limits(self, client, basic_headers, product_b):
        resp = client.get("/api/tenant/usage", headers=basic_headers)
        assert resp.status_code == 200
        data = resp.json["data"]
        assert data["plan_code"] == "basic"
        assert data["usage"]["maxUsers"] == {"allowed": False, "limit": 1, "current": 1}
        assert data["usage"]["maxProducts"]["current"] == 1

    def test_check_limit_unlimited(self, db_session, plans):
        plus = plans["plus"]
        assert plus.limits["maxProducts"] == plan_service.UNLIMITED


# =============================================================================
# PLATFORM ADMINISTRATION
# =============================================================================


class TestPlatformAdmin:

    def test_tenant_admin_cannot_list_tenants(self, client, admin_headers):
        assert client.get("/api/admin/tenants", headers=admin_headers).status_code == 403

    def test_super_admin_creates_tenant(self, client, db_session, super_admin):
        resp = client.post("/api/admin/tenants", json={
            "name": "Gamma Gida",
            "slug": "gamma",
            "plan_code": "plus",
            "admin_email": "boss@gamma.test",
            "admin_password": PASSWORD,
        }, headers=auth_headers(super_admin))
        assert resp.status_code == 201
        assert resp.json["data"]["tenant"]["plan_code"] == "plus"
        assert resp.json["data"]["admin"]["role"] == "tenant_admin"

    def test_duplicate_slug_conflicts(self, client, super_admin, tenant_a):
        resp = client.post("/api/admin/tenants", json={
            "name": "Another Acme",
            "slug": "acme",
            "admin_email": "x@acme2.test",
            "admin_password": PASSWORD,
        }, headers=auth_headers(super_admin))
        assert resp.status_code == 409

    def test_suspended_tenant_refused(self, client, db_session, super_admin, tenant_b, admin_b):
        headers = auth_headers(admin_b)
        resp = client.patch(f"/api/admin/tenants/{tenant_b.id}", json={"status": "suspended"},
                            headers=auth_headers(super_admin))
        assert resp.status_code == 200

        resp = client.get("/api/products", headers=headers)
        assert resp.status_code == 403
        assert resp.json["code"] == "TENANT_INACTIVE"

    def test_manager_role_is_not_user_admin(self, client, tenant_a):
        manager = make_user(tenant_a, "manager")
        resp = client.post("/api/users", json={
            "email": "new@acme.test", "password": PASSWORD, "full_name": "New", "role": "user",
        }, headers=auth_headers(manager))
        assert resp.status_code == 403


class TestRoleCatalogue:

    def test_roles_listing(self, client, admin_headers):
        resp = client.get("/api/users/roles", headers=admin_headers)
        assert resp.status_code == 200
        roles = {r["role"]: r for r in resp.json["data"]}
        assert list(roles) == ["tenant_admin", "manager", "user"]
        assert roles["tenant_admin"]["full_access"] is True
        assert "users.manage" not in roles["manager"]["permissions"]
        assert "sales.create" in roles["user"]["permissions"]
        assert "sales.cancel" not in roles["user"]["permissions"]

    def test_permission_catalogue_by_category(self, client, manager_headers):
        resp = client.get("/api/users/permissions?category=QUOTES", headers=manager_headers)
        assert resp.status_code == 200
        assert [p["code"] for p in resp.json["data"]] == ["quotes.view", "quotes.manage", "quotes.convert"]
        assert {p["feature"] for p in resp.json["data"]} == {"quotes"}
        assert "INVENTORY" in resp.json["meta"]["categories"]

    def test_unknown_category(self, client, admin_headers):
        resp = client.get("/api/users/permissions?category=ROCKETS", headers=admin_headers)
        assert resp.status_code == 400
