#!/usr/bin/env python3
"""
Permits Admin CLI Utility

Operator tool for inspecting unit work queues, notifications and
application history in the permits database, and for computing fee
notices. Built on Click and Rich.
"""

import sys
from decimal import Decimal
from typing import Optional

import click
from rich import box
from rich.console import Console
from rich.table import Table
from sqlalchemy import select
from sqlalchemy.orm import Session

from permits.accounting.fees import calculate_fees, estimate_processing_days, FEE_CATEGORIES
from permits.applications.applications import Application, ApplicationType
from permits.core.identity import StaffUnit
from permits.logging_utils import setup_logging
from permits.notifications.models import Notification
from permits.queries import get_unit_queue
from permits.security.access import ROUTE_POLICIES


class Context:
    def __init__(self):
        self.database_url: Optional[str] = None
        self.verbose: bool = False
        self.console = Console()
        self.stderr_console = Console(stderr=True)
        self._session: Optional[Session] = None

    @property
    def session(self) -> Session:
        """Database session, opened on first use."""
        if self._session is None:
            try:
                from permits.session import create_permits_engine
                engine, _ = create_permits_engine(self.database_url)
                self._session = Session(engine)
            except Exception as e:
                self.stderr_console.print(f"Error connecting to database: {e}", style="bold red")
                sys.exit(1)
        return self._session

    def close(self):
        if self._session is not None:
            self._session.close()
            self._session = None


pass_context = click.make_pass_decorator(Context, ensure=True)


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Show detailed information')
@click.option('--database-url', envvar='PERMITS_DATABASE_URL', default=None,
              help='SQLAlchemy URL (default: from environment)')
@pass_context
def cli(ctx: Context, verbose: bool, database_url: Optional[str]):
    """Inspect the permits review database"""
    ctx.verbose = verbose
    ctx.database_url = database_url
    setup_logging(verbose=verbose)


@cli.result_callback()
@pass_context
def process_result(ctx: Context, result, **kwargs):
    """Close the session after command execution"""
    ctx.close()


# ========================================================================
# Helper Functions (Display Logic)
# ========================================================================

def _find_application(ctx: Context, key: str) -> Application:
    """Look up by id, then by reference."""
    application = ctx.session.get(Application, key) or Application.get_by_reference(ctx.session, key)
    if application is None:
        ctx.stderr_console.print(f"Application {key} not found", style="bold red")
        sys.exit(1)
    return application


def _yes_no(value) -> str:
    return "[green]Yes[/]" if value else "[dim]No[/]"


# ========================================================================
# Commands
# ========================================================================

@cli.command()
@click.argument('unit', type=click.Choice([u.value for u in StaffUnit]))
@click.option('--unassigned', is_flag=True, help='Only applications without a reviewer')
@click.option('--limit', type=int, default=None, help='Maximum rows')
@pass_context
def queue(ctx: Context, unit: str, unassigned: bool, limit: Optional[int]):
    """Show applications waiting on UNIT"""
    applications = get_unit_queue(ctx.session, unit, unassigned_only=unassigned, limit=limit)

    if not applications:
        ctx.console.print(f"No applications waiting on {unit}.", style="yellow")
        return

    table = Table(title=f"{unit.title()} queue", box=box.SIMPLE_HEAVY)
    table.add_column("Reference", style="cyan bold")
    table.add_column("Type")
    table.add_column("Status", style="magenta")
    table.add_column("Title")
    table.add_column("Reviewer", justify="right")
    table.add_column("Version", justify="right")
    if ctx.verbose:
        table.add_column("ID", style="dim")

    for app in applications:
        row = [app.reference, app.application_type, app.status, app.title,
               str(app.assigned_reviewer_id or '-'), str(app.version)]
        if ctx.verbose:
            row.append(app.id)
        table.add_row(*row)

    ctx.console.print(table)
    ctx.console.print(f"{len(applications)} application(s)", style="dim")


@cli.command()
@click.option('--unit', type=click.Choice([u.value for u in StaffUnit]), help='Unit-wide notifications')
@click.option('--user', 'user_id', type=int, help='User-specific notifications')
@click.option('--unread', is_flag=True, help='Only unread notifications')
@click.option('--limit', type=int, default=50, show_default=True)
@pass_context
def notifications(ctx: Context, unit: Optional[str], user_id: Optional[int], unread: bool, limit: int):
    """List notifications for a unit or a user"""
    if (unit is None) == (user_id is None):
        raise click.UsageError("Give exactly one of --unit or --user")

    stmt = select(Notification)
    stmt = stmt.where(Notification.target_unit == unit) if unit else \
        stmt.where(Notification.target_user_id == user_id)
    if unread:
        stmt = stmt.where(Notification.is_read.is_(False))
    rows = ctx.session.scalars(
        stmt.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit)
    ).all()

    scope = f"unit {unit}" if unit else f"user {user_id}"
    table = Table(title=f"Notifications for {scope}", box=box.SIMPLE_HEAVY)
    table.add_column("ID", justify="right", style="dim")
    table.add_column("Created")
    table.add_column("Priority")
    table.add_column("Title", style="bold")
    table.add_column("Action", justify="center")
    table.add_column("Read", justify="center")

    for n in rows:
        table.add_row(str(n.id), n.created_at.strftime('%Y-%m-%d %H:%M'), n.priority,
                      n.title, _yes_no(n.action_required), _yes_no(n.is_read))

    ctx.console.print(table)
    unread_total = sum(1 for n in rows if not n.is_read)
    ctx.console.print(f"{len(rows)} shown, {unread_total} unread", style="dim")


@cli.command()
@click.argument('application')
@pass_context
def history(ctx: Context, application: str):
    """Show transitions and review records for APPLICATION (id or reference)"""
    app = _find_application(ctx, application)

    ctx.console.print(f"[cyan bold]{app.reference}[/] {app.title}  "
                      f"status=[magenta]{app.status}[/] version={app.version}")

    table = Table(title="Transitions", box=box.SIMPLE_HEAVY)
    table.add_column("Version", justify="right")
    table.add_column("When")
    table.add_column("Action", style="bold")
    table.add_column("From")
    table.add_column("To", style="magenta")
    table.add_column("Actor", justify="right")
    for t in app.transitions:
        table.add_row(str(t.version), t.created_at.strftime('%Y-%m-%d %H:%M:%S'), t.action,
                      t.from_state, t.to_state, str(t.actor_id))
    ctx.console.print(table)

    if app.review_records:
        reviews = Table(title="Review records", box=box.SIMPLE_HEAVY)
        reviews.add_column("Unit", style="cyan")
        reviews.add_column("Status")
        reviews.add_column("Assessed by", justify="right")
        reviews.add_column("EIA", justify="center")
        reviews.add_column("Work plan", justify="center")
        reviews.add_column("Forwarded", justify="center")
        if ctx.verbose:
            reviews.add_column("Notes")
        for r in app.review_records:
            row = [r.unit, r.assessment_status, str(r.assessed_by), _yes_no(r.requires_eia),
                   _yes_no(r.requires_workplan), _yes_no(r.forwarded_to_next_unit)]
            if ctx.verbose:
                row.append(r.notes or '')
            reviews.add_row(*row)
        ctx.console.print(reviews)


@cli.command()
@click.argument('annual_fee', type=Decimal)
@click.argument('days', type=int, required=False)
@click.option('--type', 'application_type', type=click.Choice([t.value for t in ApplicationType]),
              default=ApplicationType.NEW.value, show_default=True)
@click.option('--category', type=click.Choice(list(FEE_CATEGORIES)), default='Green Category',
              show_default=True, help='Used to estimate DAYS when not given')
@click.option('--work-plan', type=Decimal, default=None, help='Technical fee (default 15500)')
@pass_context
def fees(ctx: Context, annual_fee: Decimal, days: Optional[int], application_type: str,
         category: str, work_plan: Optional[Decimal]):
    """Compute the fee notice for ANNUAL_FEE over DAYS processing days"""
    if days is None:
        days = estimate_processing_days(application_type, category)

    kwargs = {'work_plan_amount': work_plan} if work_plan is not None else {}
    try:
        breakdown = calculate_fees(annual_fee, days, application_type, **kwargs)
    except ValueError as e:
        raise click.BadParameter(str(e))

    grid = Table(show_header=False, box=None, padding=(0, 2))
    grid.add_column("Field", style="cyan bold")
    grid.add_column("Value", justify="right")
    grid.add_row("Processing days", str(days))
    grid.add_row("Administration fee", f"{breakdown.administration_fee:,.2f}")
    grid.add_row("Technical fee", f"{breakdown.technical_fee:,.2f}")
    grid.add_row("Total", f"[bold]{breakdown.total_fee:,.2f}[/]")
    grid.add_row("Forms", f"{breakdown.form_number}, {breakdown.additional_form}")
    ctx.console.print(grid)


@cli.command()
@pass_context
def policies(ctx: Context):
    """List named route policies"""
    table = Table(title="Route policies", box=box.SIMPLE_HEAVY)
    table.add_column("Name", style="cyan bold")
    table.add_column("Roles")
    table.add_column("Units")
    table.add_column("Positions")

    def fmt(values):
        return ', '.join(sorted(v.value for v in values)) if values else '[dim]any[/]'

    for name, policy in sorted(ROUTE_POLICIES.items()):
        table.add_row(name, fmt(policy.allowed_roles), fmt(policy.allowed_units), fmt(policy.allowed_positions))
    ctx.console.print(table)


def main():
    cli()


if __name__ == '__main__':
    main()
