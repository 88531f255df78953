# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/fieldops/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables and the default admin user.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list [--role merchandiser]
# - python -m flask users create --username ali --password "Password123!" --role merchandiser --manager-id 2
#
# Routes:
# - python -m flask routes window [--tz "+02:00"] [--days 7] [--now 2026-01-31T23:30:00Z]
#   Print the calendar window the schedule views use.
# - python -m flask routes project [--user-id 5]
#   Print the reconciled visit projection for the current window.
# - python -m flask routes generate-tasks --created-by 1 [--user-id 5]
#   Create route tasks for projected visits in the current window.
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .models.auth import ROLE_ADMIN, VALID_ROLES
from .services.auth_service import create_user, PasswordValidationError
from .services import calendar_service, reconciliation_service, session_service, task_service
from .time_utils import parse_iso_datetime, resolve_tz, utcnow


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-username', default='admin', show_default=True)
@click.option('--admin-password', default='Password123!', show_default=True)
@with_appcontext
def init_system(admin_username, admin_password):
    """
    Create tables and a default admin account.

    SECURITY: Change the admin password immediately in production!
    """
    click.echo("START Initializing field operations backend...")
    db.create_all()
    click.echo("PASS Tables created")

    existing = db.session.query(User).filter_by(username=admin_username).first()
    if existing:
        click.echo(f"WARN  User '{admin_username}' already exists, skipping...")
    else:
        try:
            create_user(username=admin_username, password=admin_password, role=ROLE_ADMIN, full_name="Administrator")
            click.echo(f"PASS Created admin user: {admin_username}")
        except (PasswordValidationError, ValueError) as e:
            click.echo(f"FAIL Failed to create admin user: {str(e)}")
            return

    click.echo(f"DONE Business timezone: {current_app.config.get('BUSINESS_TIMEZONE')}")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(VALID_ROLES), default='merchandiser', show_default=True)
@click.option('--full-name', default=None, help='Display name')
@click.option('--manager-id', type=int, default=None, help='Reporting manager user ID')
@with_appcontext
def create_user_cli(username, password, role, full_name, manager_id):
    """Create a user (prompts if options are omitted)."""
    try:
        user = create_user(
            username=username,
            password=password,
            role=role,
            full_name=full_name,
            manager_id=manager_id,
        )
        click.echo(f"PASS Created user: {username} (ID: {user.id}) with role '{role}'")
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
    except ValueError as e:
        click.echo(f"FAIL Failed to create user: {str(e)}")


@users_group.command('list')
@click.option('--role', type=click.Choice(VALID_ROLES), default=None, help='Filter by role')
@with_appcontext
def list_users(role):
    """List all users with their roles."""
    query = db.session.query(User)
    if role:
        query = query.filter_by(role=role)

    users = query.order_by(User.id).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Username':<20} {'Role':<20} {'Manager':<8} {'Active'}")
    click.echo("="*80)
    for user in users:
        manager = str(user.manager_id) if user.manager_id else "-"
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {user.role:<20} {manager:<8} {active_str}")
    click.echo("="*80 + "\n")


@click.group('routes')
def routes_group():
    """Route schedule inspection commands."""


@routes_group.command('window')
@click.option('--tz', 'tz_name', default=None, help='Business timezone (default: BUSINESS_TIMEZONE)')
@click.option('--days', type=int, default=None, help='Window length (default: VISIT_WINDOW_DAYS)')
@click.option('--now', 'now_str', default=None, help='Anchor instant, ISO-8601 (default: now)')
@with_appcontext
def window_cli(tz_name, days, now_str):
    """Print the calendar window the schedule views use."""
    try:
        tz = resolve_tz(tz_name if tz_name is not None else current_app.config.get("BUSINESS_TIMEZONE"))
        now = parse_iso_datetime(now_str) if now_str else utcnow()
        window = calendar_service.build_window(
            now,
            tz,
            days if days is not None else int(current_app.config.get("VISIT_WINDOW_DAYS", 7)),
        )
    except ValueError as e:
        raise click.BadParameter(str(e))

    for day in window:
        click.echo(f"{day.iso}  dow={day.day_of_week}")


@routes_group.command('project')
@click.option('--user-id', type=int, default=None, help='Limit to one user')
@with_appcontext
def project_cli(user_id):
    """Print the reconciled visit projection for the current window."""
    window = calendar_service.business_window()
    visits = reconciliation_service.project_visits(window, user_id=user_id)
    for v in visits:
        mark = "x" if v.is_completed else " "
        who = v.schedule.get("user_name") or v.schedule.get("username")
        click.echo(f"[{mark}] {v.visit_date.isoformat()}  {v.schedule.get('store_name'):<30} {who}")
    summary = reconciliation_service.projection_summary(visits)
    click.echo(f"\n{summary['completed']}/{summary['total']} completed, {summary['pending']} pending")


@routes_group.command('generate-tasks')
@click.option('--created-by', type=int, required=True, help='User ID recorded as task assigner')
@click.option('--user-id', type=int, default=None, help='Limit to one user')
@with_appcontext
def generate_tasks_cli(created_by, user_id):
    """Create route tasks for projected visits in the current window."""
    if not db.session.get(User, created_by):
        raise click.BadParameter(f"User {created_by} not found", param_hint="--created-by")
    result = task_service.generate_route_tasks(
        calendar_service.business_window(),
        created_by=created_by,
        user_id=user_id,
    )
    click.echo(f"PASS Created {result['created']} route task(s); {result['existing']} already existed.")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-sessions')
@with_appcontext
def cleanup_sessions_cli():
    """Delete expired or revoked sessions older than 30 days."""
    deleted = session_service.cleanup_expired_sessions()
    click.echo(f"Deleted {deleted} expired/revoked sessions.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(routes_group)
    app.cli.add_command(maintenance_group)
