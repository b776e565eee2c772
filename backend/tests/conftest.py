"""
Pytest fixtures for RetailBooks backend tests.

Provides the test database, two tenants on different plans, users per role,
bearer-token headers and small factories for products, customers and accounts.
"""

import pytest

from retailbooks import create_app
from retailbooks.extensions import db
from retailbooks.models import Account, Customer, Product, User
from retailbooks.services import plan_service, session_service, tenant_admin_service
from retailbooks.services.auth_service import create_user

PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Fresh data (same schema) and a fresh request-global state per test."""
    with app.app_context():
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        db.session.rollback()


@pytest.fixture(scope='function')
def plans(db_session):
    """Seed the basic / pro / plus catalogue."""
    plan_service.seed_plans()
    return {p.code: p for p in plan_service.list_plans()}


def _provision(name: str, slug: str, plan_code: str):
    tenant, _admin = tenant_admin_service.create_tenant({
        "name": name,
        "slug": slug,
        "plan_code": plan_code,
        "admin_email": f"admin@{slug}.test",
        "admin_password": PASSWORD,
        "admin_full_name": f"{name} Admin",
    })
    return tenant


@pytest.fixture(scope='function')
def tenant_a(plans):
    """Tenant A on the pro plan (quotes, e-documents, warehouses)."""
    return _provision("Acme Market", "acme", "pro")


@pytest.fixture(scope='function')
def tenant_b(plans):
    """Tenant B on the basic plan (sales and returns only, one user)."""
    return _provision("Beta Bakkal", "beta", "basic")


def tenant_admin_of(tenant) -> User:
    return db.session.query(User).filter_by(tenant_id=tenant.id, role="tenant_admin").first()


def make_user(tenant, role: str, email: str | None = None) -> User:
    return create_user(
        email=email or f"{role}@{tenant.slug}.test",
        password=PASSWORD,
        full_name=f"{role.title()} {tenant.name}",
        role=role,
        tenant=tenant,
    )


def auth_headers(user, tenant_slug: str | None = None) -> dict:
    """Open a session for user and build its Authorization header."""
    _session, tokens = session_service.create_session(user)
    headers = {'Authorization': f'Bearer {tokens.access_token}'}
    if tenant_slug:
        headers['X-Impersonate-Tenant'] = tenant_slug
    return headers


@pytest.fixture(scope='function')
def admin_a(tenant_a):
    return tenant_admin_of(tenant_a)


@pytest.fixture(scope='function')
def admin_b(tenant_b):
    return tenant_admin_of(tenant_b)


@pytest.fixture(scope='function')
def super_admin(plans):
    return create_user(email="root@platform.test", password=PASSWORD, full_name="Platform Root", role="super_admin")


@pytest.fixture(scope='function')
def admin_headers(admin_a):
    return auth_headers(admin_a)


@pytest.fixture(scope='function')
def manager_headers(tenant_a):
    return auth_headers(make_user(tenant_a, "manager"))


@pytest.fixture(scope='function')
def user_headers(tenant_a):
    return auth_headers(make_user(tenant_a, "user"))


@pytest.fixture(scope='function')
def basic_headers(admin_b):
    return auth_headers(admin_b)


# =============================================================================
# Factories
# =============================================================================

def add_product(tenant, name="Cay 1kg", price=10000, vat=2000, stock=10, **extra) -> Product:
    product = Product(
        tenant_id=tenant.id,
        name=name,
        sale_price_cents=price,
        vat_rate_bps=vat,
        stock_quantity=stock,
        **extra,
    )
    db.session.add(product)
    db.session.commit()
    return product


def add_customer(tenant, name="Ahmet Yilmaz", **extra) -> Customer:
    customer = Customer(tenant_id=tenant.id, name=name, **extra)
    db.session.add(customer)
    db.session.commit()
    return customer


def cash_account(tenant) -> Account:
    """The 'Ana Kasa' account every tenant is provisioned with."""
    return db.session.query(Account).filter_by(tenant_id=tenant.id, account_type="kasa").order_by(Account.id).first()


def add_bank_account(tenant, name="Ziraat", opening=0) -> Account:
    account = Account(
        tenant_id=tenant.id,
        name=name,
        account_type="banka",
        opening_balance_cents=opening,
        current_balance_cents=opening,
    )
    db.session.add(account)
    db.session.commit()
    return account


@pytest.fixture(scope='function')
def product_a(tenant_a):
    """10 units at 100.00 with 20% VAT."""
    return add_product(tenant_a)


@pytest.fixture(scope='function')
def product_b(tenant_b):
    return add_product(tenant_b, name="Ekmek", price=1000, vat=100, stock=50)


@pytest.fixture(scope='function')
def customer_a(tenant_a):
    return add_customer(tenant_a)


@pytest.fixture(scope='function')
def customer_b(tenant_b):
    return add_customer(tenant_b, name="Mehmet Kaya")
