# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/retailbooks/cli.py
# Commands Legend (run from the backend directory, FLASK_APP=retailbooks):
#
# System bootstrap:
# - flask system init [--tenant-name "Demo Store"] [--slug demo]
#   Idempotent: seeds plans, creates a demo tenant with its admin user.
#
# Plans:
# - flask plans seed
#   Create or refresh the plan catalogue (basic, pro, plus).
#
# Tenants (MULTI-TENANT):
# - flask tenants list
# - flask tenants create --name "Acme" --slug acme --plan pro --admin-email a@acme.test
#
# Users:
# - flask users create --tenant acme --email clerk@acme.test --role user
# - flask users create --email root@platform.test --role super_admin
#
# Maintenance:
# - flask maintenance cleanup-sessions
# - flask quotes expire

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Tenant, User
from .services import plan_service, session_service, quote_service, tenant_admin_service
from .services.auth_service import create_user
from .services.tenant_service import find_tenant
from .models.auth import ROLES
from .validation import DomainError

DEFAULT_PASSWORD = "Password123!"


# =============================================================================
# SYSTEM BOOTSTRAP
# =============================================================================

@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@click.option('--tenant-name', default='Demo Store', help='Demo tenant name')
@click.option('--slug', default='demo', help='Demo tenant slug')
@click.option('--plan', 'plan_code', default='pro', help='Demo tenant plan')
@with_appcontext
def init_system(tenant_name, slug, plan_code):
    """
    Seed plans and create a demo tenant with its admin user.

    Default admin: admin@<slug>.local / Password123!
    SECURITY: Change the password immediately outside development.
    """
    click.echo("START Initializing system...")
    created = plan_service.seed_plans()
    click.echo(f"PASS Plans ready ({created} created)")

    tenant = db.session.query(Tenant).filter_by(slug=slug).first()
    if tenant:
        click.echo(f"PASS Using existing tenant: {tenant.name} (ID: {tenant.id})")
        return

    try:
        tenant, admin = tenant_admin_service.create_tenant({
            "name": tenant_name,
            "slug": slug,
            "plan_code": plan_code,
            "admin_email": f"admin@{slug}.local",
            "admin_password": DEFAULT_PASSWORD,
            "admin_full_name": "Administrator",
        })
    except DomainError as e:
        click.echo(f"FAIL Could not create demo tenant: {e}")
        return

    click.echo(f"PASS Created tenant: {tenant.name} (ID: {tenant.id}, slug: {tenant.slug}, plan: {plan_code})")
    click.echo(f"PASS Admin user: {admin.email} / {DEFAULT_PASSWORD}")
    click.echo("SECURITY Change the default password outside development!")


# =============================================================================
# PLANS
# =============================================================================

@click.group('plans')
def plans_group():
    """Subscription plan catalogue."""


@plans_group.command('seed')
@with_appcontext
def seed_plans_cli():
    """Create missing plans and refresh existing ones from the catalogue."""
    created = plan_service.seed_plans()
    plans = plan_service.list_plans()
    click.echo(f"PASS {created} plans created; catalogue: {', '.join(p.code for p in plans)}")


# =============================================================================
# TENANT MANAGEMENT COMMANDS (MULTI-TENANT)
# =============================================================================

@click.group('tenants')
def tenants_group():
    """Tenant management commands."""


@tenants_group.command('list')
@with_appcontext
def list_tenants_cli():
    """List all tenants."""
    tenants = db.session.query(Tenant).order_by(Tenant.id).all()
    if not tenants:
        click.echo("No tenants found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Name':<30} {'Slug':<20} {'Plan':<8} {'Status':<10} {'Users'}")
    click.echo("="*80)
    for tenant in tenants:
        user_count = db.session.query(User).filter_by(tenant_id=tenant.id).count()
        plan_code = tenant.plan.code if tenant.plan else '-'
        click.echo(f"{tenant.id:<5} {tenant.name:<30} {tenant.slug:<20} {plan_code:<8} {tenant.status:<10} {user_count}")
    click.echo("="*80 + "\n")


@tenants_group.command('create')
@click.option('--name', required=True, help='Tenant name')
@click.option('--slug', required=True, help='URL-safe unique slug')
@click.option('--plan', 'plan_code', default=None, help='Plan code (default: DEFAULT_PLAN_CODE)')
@click.option('--trial', is_flag=True, help='Start in trial status')
@click.option('--admin-email', required=True, help='First tenant_admin email')
@click.option('--admin-password', prompt=True, hide_input=True, confirmation_prompt=True, help='Admin password')
@with_appcontext
def create_tenant_cli(name, slug, plan_code, trial, admin_email, admin_password):
    """Create a tenant with its admin, default warehouse and cash account."""
    try:
        tenant, admin = tenant_admin_service.create_tenant({
            "name": name,
            "slug": slug,
            "plan_code": plan_code,
            "trial": trial,
            "admin_email": admin_email,
            "admin_password": admin_password,
        })
    except DomainError as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Created tenant: {tenant.name} (ID: {tenant.id}, status: {tenant.status})")
    click.echo(f"PASS Admin user: {admin.email}")


# =============================================================================
# USER MANAGEMENT COMMANDS
# =============================================================================

@click.group('users')
def users_group():
    """User bootstrap commands."""


@users_group.command('create')
@click.option('--tenant', 'tenant_ref', help='Tenant id or slug (omit for super_admin)')
@click.option('--email', prompt=True, help='Email address')
@click.option('--full-name', default=None, help='Display name (defaults to the email)')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(ROLES), prompt=True, help='Role')
@with_appcontext
def create_user_cli(tenant_ref, email, full_name, password, role):
    """
    Create a user.

    Password must meet strength requirements: 8+ characters with an
    uppercase letter, a lowercase letter, a digit and a special character.
    """
    tenant = None
    if tenant_ref:
        tenant = find_tenant(tenant_ref)
        if tenant is None:
            click.echo(f"FAIL Tenant '{tenant_ref}' not found")
            return
    try:
        user = create_user(
            email=email,
            password=password,
            full_name=full_name or email,
            role=role,
            tenant=tenant,
        )
    except DomainError as e:
        click.echo(f"FAIL {e}")
        return
    scope = f"tenant {tenant.slug}" if tenant else "platform"
    click.echo(f"PASS Created user: {user.email} with role '{role}' ({scope})")


# =============================================================================
# MAINTENANCE
# =============================================================================

@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-sessions')
@with_appcontext
def cleanup_sessions_cli():
    """Delete sessions whose refresh token has expired."""
    deleted = session_service.cleanup_expired_sessions()
    click.echo(f"Deleted {deleted} expired sessions.")


@click.group('quotes')
def quotes_group():
    """Quote housekeeping."""


@quotes_group.command('expire')
@click.option('--tenant', 'tenant_ref', default=None, help='Limit to one tenant (id or slug)')
@with_appcontext
def expire_quotes_cli(tenant_ref):
    """Mark draft/sent quotes past valid_until as expired."""
    tenant_id = None
    if tenant_ref:
        tenant = find_tenant(tenant_ref)
        if tenant is None:
            click.echo(f"FAIL Tenant '{tenant_ref}' not found")
            return
        tenant_id = tenant.id
    expired = quote_service.expire_overdue_quotes(tenant_id=tenant_id)
    click.echo(f"Expired {expired} quotes.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(plans_group)
    app.cli.add_command(tenants_group)
    app.cli.add_command(users_group)
    app.cli.add_command(maintenance_group)
    app.cli.add_command(quotes_group)
