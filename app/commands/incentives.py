"""
CLI Commands for Incentive Programs.

Nightly recalculation can also be run from cron:

# Recalculate automated standards (daily at 2 AM)
0 2 * * * cd /app && flask incentives calculate --program-id=1
"""
import click
from flask.cli import with_appcontext

from ..extensions import db
from ..models.incentive import IncentiveProgram
from ..models.organization import Organization
from ..services.incentive_calculator import incentive_calculator
from ..utils.exceptions import ChapterHubError


@click.group('incentives')
def incentives_cli():
    """Incentive program commands."""
    pass


@incentives_cli.command('calculate')
@click.option('--program-id', type=int, help='Program to calculate (or every active program)')
@click.option('--organization-id', type=int, help='Specific organization (or all active)')
@with_appcontext
def calculate(program_id, organization_id):
    """Recalculate automated standards and star progress."""
    if program_id:
        programs = [db.session.get(IncentiveProgram, program_id)]
        if not programs[0]:
            click.echo(f"Program {program_id} not found")
            return
    else:
        programs = IncentiveProgram.query.filter_by(is_active=True).all()

    if organization_id:
        organizations = [db.session.get(Organization, organization_id)]
        if not organizations[0]:
            click.echo(f"Organization {organization_id} not found")
            return
    else:
        organizations = Organization.query.filter_by(is_active=True).all()

    failures = 0
    for program in programs:
        click.echo(f"\nProgram: {program.code} ({program.year})")
        for organization in organizations:
            try:
                summary = incentive_calculator.calculate_all(organization.id, program.id)
            except ChapterHubError as e:
                failures += 1
                click.echo(f"  {organization.name}: failed - {e.message}")
                continue

            click.echo(
                f"  {organization.name}: {summary['processed']} processed, "
                f"{summary['skipped']} skipped, {len(summary['errors'])} errors"
            )
            for error in summary['errors']:
                click.echo(f"    standard {error['standard_id']}: {error['error']}")

    if failures:
        click.echo(f"\n{failures} organization(s) failed")


def init_app(app):
    """Register incentive commands with Flask app."""
    app.cli.add_command(incentives_cli)
