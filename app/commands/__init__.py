"""
CLI Commands for ChapterHub.

Provides Flask CLI commands for batch recalculation and administration.

Usage:
    flask incentives calculate --program-id 1                   # All active organizations
    flask incentives calculate --program-id 1 --organization-id 3

    flask gamification seed-defaults    # Create default award definitions
    flask gamification sweep            # Recompute achievement progress for all members

    flask points-rules seed-defaults    # Create default points rules
"""
from .incentives import init_app as init_incentive_commands
from .gamification import init_app as init_gamification_commands


def init_app(app):
    """Register all CLI commands with the Flask app."""
    init_incentive_commands(app)
    init_gamification_commands(app)
