"""Initial schema (organizations, members, activity, points, awards, incentives).

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-17
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'a1b2c3d4e5f6'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    """Create every ChapterHub table."""
    # Organizations (local chapters)
    op.create_table(
        'organizations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('code', sa.String(50), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default='true'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code'),
    )

    op.create_table(
        'members',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('organization_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('role', sa.String(20), server_default='PROBATION'),
        sa.Column('status', sa.String(20), server_default='active'),
        sa.Column('points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('tier', sa.String(20), nullable=False, server_default='Bronze'),
        sa.Column('badges', sa.JSON(), nullable=True),
        sa.Column('join_date', sa.Date(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id']),
        sa.UniqueConstraint('organization_id', 'email', name='uq_member_org_email'),
    )
    op.create_index('ix_members_organization_id', 'members', ['organization_id'])

    # Chapter activity
    op.create_table(
        'events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('organization_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('status', sa.String(20), server_default='Upcoming'),
        sa.Column('date', sa.DateTime(), nullable=False),
        sa.Column('attendee_count', sa.Integer(), server_default='0'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id']),
    )
    op.create_index('ix_events_organization_id', 'events', ['organization_id'])

    op.create_table(
        'event_registrations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('organization_id', sa.Integer(), nullable=False),
        sa.Column('event_id', sa.Integer(), nullable=False),
        sa.Column('member_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(20), server_default='registered'),
        sa.Column('checked_in_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id']),
        sa.ForeignKeyConstraint(['event_id'], ['events.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['member_id'], ['members.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('event_id', 'member_id', name='uq_registration_event_member'),
    )
    op.create_index('ix_event_registrations_member_id', 'event_registrations', ['member_id'])

    op.create_table(
        'projects',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('organization_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('status', sa.String(20), server_default='Planning'),
        sa.Column('lead_id', sa.Integer(), nullable=True),
        sa.Column('team', sa.JSON(), nullable=True),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id']),
        sa.ForeignKeyConstraint(['lead_id'], ['members.id']),
    )

    op.create_table(
        'finance_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('organization_id', sa.Integer(), nullable=False),
        sa.Column('member_id', sa.Integer(), nullable=True),
        sa.Column('category', sa.String(50), nullable=False),
        sa.Column('purpose', sa.String(100), nullable=True),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('date', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id']),
        sa.ForeignKeyConstraint(['member_id'], ['members.id']),
    )

    # Points ledger
    op.create_table(
        'points_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('member_id', sa.Integer(), nullable=False),
        sa.Column('category', sa.String(50), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('description', sa.String(500), nullable=True),
        sa.Column('related_entity_id', sa.String(100), nullable=True),
        sa.Column('related_entity_type', sa.String(50), nullable=True),
        sa.Column('balance_after', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['member_id'], ['members.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_points_transactions_member_id', 'points_transactions', ['member_id'])

    # Points rules
    op.create_table(
        'points_rules',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(100), nullable=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.String(500), nullable=True),
        sa.Column('trigger', sa.String(50), nullable=False),
        sa.Column('conditions', sa.JSON(), nullable=False),
        sa.Column('point_value', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('multiplier', sa.Float(), nullable=False, server_default='1.0'),
        sa.Column('weight', sa.Float(), nullable=False, server_default='1.0'),
        sa.Column('enabled', sa.Boolean(), server_default='true'),
        sa.Column('created_by', sa.String(255), nullable=True),
        sa.Column('updated_by', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code'),
    )
    op.create_index('ix_points_rules_trigger', 'points_rules', ['trigger'])

    op.create_table(
        'points_rule_executions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('rule_id', sa.Integer(), nullable=False),
        sa.Column('member_id', sa.Integer(), nullable=False),
        sa.Column('trigger', sa.String(50), nullable=False),
        sa.Column('trigger_key', sa.String(200), nullable=True),
        sa.Column('trigger_data', sa.JSON(), nullable=True),
        sa.Column('points_awarded', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('calculation', sa.JSON(), nullable=True),
        sa.Column('points_transaction_id', sa.Integer(), nullable=True),
        sa.Column('executed_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['rule_id'], ['points_rules.id']),
        sa.ForeignKeyConstraint(['member_id'], ['members.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['points_transaction_id'], ['points_transactions.id']),
        sa.UniqueConstraint('rule_id', 'member_id', 'trigger_key', name='uq_rule_execution_trigger'),
    )
    op.create_index('ix_rule_executions_member', 'points_rule_executions', ['member_id'])

    # Awards
    op.create_table(
        'award_definitions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(100), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('description', sa.String(500), nullable=True),
        sa.Column('icon', sa.String(50), server_default='trophy'),
        sa.Column('category', sa.String(50), nullable=True),
        sa.Column('tier', sa.String(20), nullable=True),
        sa.Column('rarity', sa.String(20), server_default='common'),
        sa.Column('criteria', sa.JSON(), nullable=False),
        sa.Column('milestones', sa.JSON(), nullable=True),
        sa.Column('points_reward', sa.Integer(), server_default='0'),
        sa.Column('active', sa.Boolean(), server_default='true'),
        sa.Column('display_order', sa.Integer(), server_default='0'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code'),
    )

    op.create_table(
        'member_awards',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('member_id', sa.Integer(), nullable=False),
        sa.Column('award_id', sa.Integer(), nullable=False),
        sa.Column('earned_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('awarded_by', sa.String(255), nullable=True),
        sa.Column('reason', sa.String(500), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['member_id'], ['members.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['award_id'], ['award_definitions.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('member_id', 'award_id', name='unique_member_award'),
    )
    op.create_index('ix_member_awards_member_id', 'member_awards', ['member_id'])

    op.create_table(
        'member_award_progress',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('member_id', sa.Integer(), nullable=False),
        sa.Column('award_id', sa.Integer(), nullable=False),
        sa.Column('current_progress', sa.Float(), server_default='0'),
        sa.Column('progress_percent', sa.Integer(), server_default='0'),
        sa.Column('completed_milestones', sa.JSON(), nullable=True),
        sa.Column('last_updated', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['member_id'], ['members.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['award_id'], ['award_definitions.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('member_id', 'award_id', name='unique_member_award_progress'),
    )

    op.create_table(
        'member_milestone_rewards',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('member_id', sa.Integer(), nullable=False),
        sa.Column('award_id', sa.Integer(), nullable=False),
        sa.Column('level', sa.String(50), nullable=False),
        sa.Column('threshold', sa.Float(), nullable=True),
        sa.Column('points_awarded', sa.Integer(), server_default='0'),
        sa.Column('reward', sa.String(100), nullable=True),
        sa.Column('awarded_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['member_id'], ['members.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['award_id'], ['award_definitions.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('member_id', 'award_id', 'level', name='unique_member_milestone_reward'),
    )

    # Incentive programs
    op.create_table(
        'incentive_programs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(50), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('categories', sa.JSON(), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default='true'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code'),
    )

    op.create_table(
        'incentive_standards',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('program_id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(100), nullable=True),
        sa.Column('category', sa.String(50), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('display_order', sa.Integer(), server_default='0'),
        sa.Column('verification_type', sa.String(20), server_default='MANUAL_UPLOAD'),
        sa.Column('auto_logic_id', sa.String(100), nullable=True),
        sa.Column('logic_params', sa.JSON(), nullable=True),
        sa.Column('milestones', sa.JSON(), nullable=True),
        sa.Column('point_cap', sa.Integer(), nullable=True),
        sa.Column('is_tiered', sa.Boolean(), server_default='false'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['program_id'], ['incentive_programs.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('program_id', 'code', name='uq_standard_program_code'),
    )

    op.create_table(
        'incentive_submissions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('organization_id', sa.Integer(), nullable=False),
        sa.Column('standard_id', sa.Integer(), nullable=False),
        sa.Column('milestone_key', sa.String(100), nullable=False, server_default=''),
        sa.Column('quantity', sa.Float(), server_default='0'),
        sa.Column('score_awarded', sa.Integer(), server_default='0'),
        sa.Column('status', sa.String(20), server_default='PENDING'),
        sa.Column('source', sa.String(20), nullable=False, server_default='manual'),
        sa.Column('evidence_text', sa.Text(), nullable=True),
        sa.Column('evidence_files', sa.JSON(), nullable=True),
        sa.Column('submitted_by', sa.String(255), nullable=True),
        sa.Column('reviewed_by', sa.String(255), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(), nullable=True),
        sa.Column('rejection_reason', sa.String(500), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id']),
        sa.ForeignKeyConstraint(['standard_id'], ['incentive_standards.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('organization_id', 'standard_id', 'milestone_key', name='uq_submission_natural_key'),
    )
    op.create_index('ix_incentive_submissions_organization_id', 'incentive_submissions', ['organization_id'])

    op.create_table(
        'star_progress',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('organization_id', sa.Integer(), nullable=False),
        sa.Column('program_id', sa.Integer(), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('categories', sa.JSON(), nullable=True),
        sa.Column('total_points', sa.Integer(), server_default='0'),
        sa.Column('stars_unlocked', sa.Integer(), server_default='0'),
        sa.Column('last_updated', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id']),
        sa.ForeignKeyConstraint(['program_id'], ['incentive_programs.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('organization_id', 'program_id', name='uq_star_progress_org_program'),
    )

    # Notifications
    op.create_table(
        'notifications',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('member_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('message', sa.String(1000), nullable=True),
        sa.Column('notification_type', sa.String(50), server_default='info'),
        sa.Column('is_read', sa.Boolean(), server_default='false'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['member_id'], ['members.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_notifications_member_id', 'notifications', ['member_id'])


def downgrade():
    """Drop every ChapterHub table."""
    op.drop_index('ix_notifications_member_id', 'notifications')
    op.drop_table('notifications')
    op.drop_table('star_progress')
    op.drop_index('ix_incentive_submissions_organization_id', 'incentive_submissions')
    op.drop_table('incentive_submissions')
    op.drop_table('incentive_standards')
    op.drop_table('incentive_programs')
    op.drop_table('member_milestone_rewards')
    op.drop_table('member_award_progress')
    op.drop_index('ix_member_awards_member_id', 'member_awards')
    op.drop_table('member_awards')
    op.drop_table('award_definitions')
    op.drop_index('ix_rule_executions_member', 'points_rule_executions')
    op.drop_table('points_rule_executions')
    op.drop_index('ix_points_rules_trigger', 'points_rules')
    op.drop_table('points_rules')
    op.drop_index('ix_points_transactions_member_id', 'points_transactions')
    op.drop_table('points_transactions')
    op.drop_table('finance_transactions')
    op.drop_table('projects')
    op.drop_index('ix_event_registrations_member_id', 'event_registrations')
    op.drop_table('event_registrations')
    op.drop_index('ix_events_organization_id', 'events')
    op.drop_table('events')
    op.drop_index('ix_members_organization_id', 'members')
    op.drop_table('members')
    op.drop_table('organizations')
