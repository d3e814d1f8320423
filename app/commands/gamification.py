"""
CLI Commands for awards and points rules.
"""
import click
from flask.cli import with_appcontext

from ..services.gamification_service import gamification_service
from ..services.points_rule_service import points_rule_service


@click.group('gamification')
def gamification_cli():
    """Award and achievement commands."""
    pass


@gamification_cli.command('seed-defaults')
@with_appcontext
def seed_awards():
    """Create the default award definitions (existing codes are left alone)."""
    result = gamification_service.seed_default_awards()
    click.echo(f"Awards created: {len(result['created'])}, skipped: {len(result['skipped'])}")


@gamification_cli.command('sweep')
@click.option('--organization-id', type=int, help='Limit the sweep to one organization')
@with_appcontext
def sweep(organization_id):
    """Recompute achievement progress for every active member."""
    result = gamification_service.sweep(organization_id=organization_id)
    click.echo(f"Members processed: {result['processed']}")
    click.echo(f"Awards granted: {result['awards_granted']}")
    if result['failed']:
        click.echo(f"Failed: {result['failed']}")


@click.group('points-rules')
def points_rules_cli():
    """Points rule commands."""
    pass


@points_rules_cli.command('seed-defaults')
@with_appcontext
def seed_rules():
    """Create the default points rules (existing codes are left alone)."""
    result = points_rule_service.seed_default_rules()
    click.echo(f"Rules created: {len(result['created'])}, skipped: {len(result['skipped'])}")


def init_app(app):
    """Register gamification commands with Flask app."""
    app.cli.add_command(gamification_cli)
    app.cli.add_command(points_rules_cli)
