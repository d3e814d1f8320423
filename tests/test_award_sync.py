"""
Tests for the award synchronizer.

Submission reconciliation outcomes, badge de-duplication, milestone payouts
and progress upserts.
"""
from unittest.mock import patch

import pytest

from app.extensions import db
from app.models import (
    AwardDefinition,
    IncentiveStandard,
    IncentiveSubmission,
    Member,
    MemberAward,
    MemberAwardProgress,
    MemberMilestoneReward,
)
from app.services.award_sync import (
    CREATED,
    PROTECTED,
    UNCHANGED,
    UPDATED,
    award_sync,
)
from app.services.points_service import points_service


@pytest.fixture
def standard(app, sample_program):
    standard = IncentiveStandard(
        program_id=sample_program.id,
        code='bod-meetings',
        category='efficient',
        title='Board meetings held',
        verification_type='AUTO_SYSTEM',
        auto_logic_id='efficient_bod_meetings',
        milestones=[{'id': 'ms1', 'label': '8 meetings', 'points': 30}],
    )
    db.session.add(standard)
    db.session.commit()
    return standard


@pytest.fixture
def award(app):
    award = AwardDefinition(
        code='event-enthusiast',
        name='Event Enthusiast',
        criteria={'type': 'event_count', 'value': 25},
        milestones=[
            {'level': 'Bronze', 'threshold': 5, 'point_value': 100},
            {'level': 'Silver', 'threshold': 10, 'point_value': 150},
        ],
    )
    db.session.add(award)
    db.session.commit()
    return award


def submission_for(organization, standard, key=''):
    return IncentiveSubmission.query.filter_by(
        organization_id=organization.id, standard_id=standard.id, milestone_key=key
    ).one()


class TestSyncSubmission:

    def test_created_as_approved_system_row(self, app, sample_organization, standard):
        outcome = award_sync.sync_submission(sample_organization.id, standard, 8, 30, 'ms1')

        assert outcome == CREATED
        submission = submission_for(sample_organization, standard, 'ms1')
        assert submission.status == 'APPROVED'
        assert submission.source == 'system'
        assert submission.quantity == 8
        assert submission.score_awarded == 30
        assert submission.evidence_text.startswith('Auto-calculated for milestone ms1')

    def test_unchanged_values(self, app, sample_organization, standard):
        award_sync.sync_submission(sample_organization.id, standard, 8, 30, 'ms1')

        assert award_sync.sync_submission(sample_organization.id, standard, 8, 30, 'ms1') == UNCHANGED
        assert IncentiveSubmission.query.count() == 1

    def test_system_row_is_overwritten(self, app, sample_organization, standard):
        award_sync.sync_submission(sample_organization.id, standard, 8, 30, 'ms1')

        assert award_sync.sync_submission(sample_organization.id, standard, 10, 30, 'ms1') == UPDATED
        assert submission_for(sample_organization, standard, 'ms1').quantity == 10

    def test_manual_row_is_protected(self, app, sample_organization, standard):
        manual = IncentiveSubmission(
            organization_id=sample_organization.id,
            standard_id=standard.id,
            milestone_key='ms1',
            quantity=5,
            score_awarded=12,
            status='APPROVED',
            source='manual',
        )
        db.session.add(manual)
        db.session.commit()

        assert award_sync.sync_submission(sample_organization.id, standard, 8, 30, 'ms1') == PROTECTED
        db.session.refresh(manual)
        assert manual.quantity == 5
        assert manual.score_awarded == 12

    def test_rejected_system_row_is_protected(self, app, sample_organization, standard):
        award_sync.sync_submission(sample_organization.id, standard, 8, 30, 'ms1')
        submission = submission_for(sample_organization, standard, 'ms1')
        submission.status = 'REJECTED'
        db.session.commit()

        assert award_sync.sync_submission(sample_organization.id, standard, 9, 30, 'ms1') == PROTECTED

    def test_no_milestone_uses_empty_key(self, app, sample_organization, standard):
        award_sync.sync_submission(sample_organization.id, standard, 1, 5)

        submission = submission_for(sample_organization, standard)
        assert submission.milestone_key == ''
        assert submission.to_dict()['milestone_id'] is None

    def test_score_is_rounded(self, app, sample_organization, standard):
        award_sync.sync_submission(sample_organization.id, standard, 3, 12.5)
        assert submission_for(sample_organization, standard).score_awarded == 13

    def test_concurrent_insert_counts_as_unchanged(self, app, sample_organization, standard):
        award_sync.sync_submission(sample_organization.id, standard, 8, 30, 'ms1')

        with patch.object(IncentiveSubmission, 'query') as query:
            query.filter_by.return_value.first.return_value = None
            outcome = award_sync.sync_submission(sample_organization.id, standard, 9, 40, 'ms1')

        assert outcome == UNCHANGED
        assert IncentiveSubmission.query.count() == 1
        assert submission_for(sample_organization, standard, 'ms1').score_awarded == 30


class TestGrantAward:

    def test_failed_payout_leaves_no_award(self, app, sample_member, award):
        award.points_reward = 50
        db.session.commit()

        with patch.object(points_service, 'award_points', side_effect=RuntimeError('ledger unavailable')):
            with pytest.raises(RuntimeError):
                award_sync.grant_award(sample_member.id, award)

        assert MemberAward.query.count() == 0

        assert award_sync.grant_award(sample_member.id, award) is not None
        assert db.session.get(Member, sample_member.id).points == 50


class TestBadges:

    def test_badge_appended_once(self, app, sample_member):
        badge = {'id': 'first-event', 'name': 'First Steps'}

        assert award_sync.append_badge(sample_member.id, badge) is True
        assert award_sync.append_badge(sample_member.id, badge) is False

        member = db.session.get(Member, sample_member.id)
        assert [b['id'] for b in member.badges] == ['first-event']

    def test_unknown_member(self, app):
        assert award_sync.append_badge(99999, {'id': 'x'}) is False


class TestMilestoneRewards:

    def test_each_level_paid_once(self, app, sample_member, award):
        first = award_sync.grant_milestone_rewards(sample_member.id, award, award.milestones)
        second = award_sync.grant_milestone_rewards(sample_member.id, award, award.milestones)

        assert [p.level for p in first] == ['Bronze', 'Silver']
        assert second == []
        assert MemberMilestoneReward.query.count() == 2
        assert db.session.get(Member, sample_member.id).points == 250

    def test_zero_point_milestone_writes_record_without_ledger(self, app, sample_member, award):
        payouts = award_sync.grant_milestone_rewards(
            sample_member.id, award, [{'level': 'Token', 'threshold': 1, 'point_value': 0}]
        )

        assert payouts[0].points_awarded == 0
        assert db.session.get(Member, sample_member.id).points == 0

    def test_failed_payout_is_paid_on_retry(self, app, sample_member, award):
        milestones = award.milestones

        with patch.object(points_service, 'award_points', side_effect=RuntimeError('ledger unavailable')):
            with pytest.raises(RuntimeError):
                award_sync.grant_milestone_rewards(sample_member.id, award, milestones)

        assert MemberMilestoneReward.query.count() == 0

        payouts = award_sync.grant_milestone_rewards(sample_member.id, award, milestones)

        assert [p.level for p in payouts] == ['Bronze', 'Silver']
        assert db.session.get(Member, sample_member.id).points == 250

    def test_concurrent_payout_is_skipped(self, app, sample_member, award):
        db.session.add(MemberMilestoneReward(
            member_id=sample_member.id, award_id=award.id, level='Bronze', threshold=5, points_awarded=100,
        ))
        db.session.commit()
        bronze = award.milestones[:1]

        with patch.object(MemberMilestoneReward, 'query') as query:
            query.filter_by.return_value.first.return_value = None
            payouts = award_sync.grant_milestone_rewards(sample_member.id, award, bronze)

        assert payouts == []
        assert MemberMilestoneReward.query.count() == 1
        assert db.session.get(Member, sample_member.id).points == 0


class TestProgressUpsert:

    def test_single_row_per_member_and_award(self, app, sample_member, award):
        award_sync.sync_progress(sample_member.id, award, 3, [], 60)
        award_sync.sync_progress(sample_member.id, award, 6, ['Bronze'], 20)

        rows = MemberAwardProgress.query.filter_by(member_id=sample_member.id, award_id=award.id).all()
        assert len(rows) == 1
        assert rows[0].current_progress == 6
        assert rows[0].completed_milestones == ['Bronze']
        assert rows[0].progress_percent == 20

    def test_concurrent_insert_updates_existing_row(self, app, sample_member, award):
        award_sync.sync_progress(sample_member.id, award, 3, [], 60)
        existing = MemberAwardProgress.query.filter_by(member_id=sample_member.id, award_id=award.id).one()

        with patch.object(MemberAwardProgress, 'query') as query:
            # the first lookup misses, the lookup after the rejected insert finds the row
            query.filter_by.return_value.first.side_effect = [None, existing]
            progress = award_sync.sync_progress(sample_member.id, award, 6, ['Bronze'], 20)

        assert progress.id == existing.id
        rows = MemberAwardProgress.query.filter_by(member_id=sample_member.id, award_id=award.id).all()
        assert len(rows) == 1
        assert rows[0].current_progress == 6
