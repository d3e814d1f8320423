"""
Tests for the incentive program batch runner.

This test module covers:
- Each calculation routine
- Tiered and per-milestone syncing
- Rerun idempotency and protection of human submissions
- Per-standard error isolation and unknown logic ids
"""
from datetime import datetime
from decimal import Decimal
from unittest.mock import Mock, patch

import pytest

from app.extensions import db
from app.models import (
    FinanceTransaction,
    IncentiveStandard,
    IncentiveSubmission,
    StarProgress,
)
from app.services.incentive_calculator import (
    incentive_calculator,
    milestone_threshold,
)
from app.utils.exceptions import ConfigurationError, NotFoundError


@pytest.fixture
def make_standard(app, sample_program):
    """Factory for automated standards of the sample program."""

    def _make(auto_logic_id, category='efficient', **kwargs):
        standard = IncentiveStandard(
            program_id=sample_program.id,
            category=category,
            title=kwargs.pop('title', auto_logic_id or 'Manual standard'),
            verification_type=kwargs.pop('verification_type', 'AUTO_SYSTEM'),
            auto_logic_id=auto_logic_id,
            **kwargs
        )
        db.session.add(standard)
        db.session.commit()
        return standard

    return _make


@pytest.fixture
def chapter_members(sample_member, make_member):
    """Three people: two full members and one on probation."""
    make_member(role='BOARD')
    make_member(role='PROBATION')
    return sample_member


def run(organization, program):
    return incentive_calculator.calculate_all(organization.id, program.id)


def submissions_for(standard):
    return IncentiveSubmission.query.filter_by(standard_id=standard.id).order_by(IncentiveSubmission.id).all()


class TestMilestoneThreshold:

    def test_logic_threshold_wins(self):
        assert milestone_threshold({'logic_threshold': 75, 'label': '60% conversion'}) == 75

    def test_number_in_label(self):
        assert milestone_threshold({'label': '60% conversion'}) == 60

    def test_nothing_numeric(self):
        assert milestone_threshold({'label': 'Full conversion'}) == 0


class TestMembershipConversion:

    def test_achieved_milestones_sync_individually(self, app, sample_organization, sample_program,
                                                   chapter_members, make_standard):
        standard = make_standard('efficient_membership_conversion', milestones=[
            {'id': 'ms1', 'label': '60% conversion', 'points': 20},
            {'id': 'ms2', 'label': '80% conversion', 'points': 30},
        ])

        summary = run(sample_organization, sample_program)

        assert summary['results'][0]['quantity'] == 66.67
        rows = submissions_for(standard)
        assert [(r.milestone_key, r.score_awarded) for r in rows] == [('ms1', 20)]
        assert rows[0].quantity == 1

    def test_tiered_syncs_highest_milestone_only(self, app, sample_organization, sample_program,
                                                 chapter_members, make_standard):
        standard = make_standard('efficient_membership_conversion', is_tiered=True, milestones=[
            {'id': 'ms1', 'label': 'Half', 'logic_threshold': 50, 'points': 10},
            {'id': 'ms2', 'label': 'Most', 'logic_threshold': 60, 'points': 20},
            {'id': 'ms3', 'label': 'All', 'logic_threshold': 100, 'points': 50},
        ])

        run(sample_organization, sample_program)

        rows = submissions_for(standard)
        assert len(rows) == 1
        assert rows[0].milestone_key == ''
        assert rows[0].score_awarded == 20
        assert rows[0].quantity == 66.67

    def test_target_percent_without_milestones(self, app, sample_organization, sample_program,
                                               chapter_members, make_standard):
        standard = make_standard('efficient_membership_conversion',
                                 logic_params={'target_percent': 60, 'points': 15})

        run(sample_organization, sample_program)

        rows = submissions_for(standard)
        assert [(r.quantity, r.score_awarded) for r in rows] == [(1, 15)]

    def test_no_members(self, app, sample_organization, sample_program, make_standard):
        standard = make_standard('efficient_membership_conversion')
        run(sample_organization, sample_program)
        assert submissions_for(standard) == []


class TestDuesPayment:

    def _pay(self, organization, date):
        db.session.add(FinanceTransaction(
            organization_id=organization.id,
            category='Membership',
            purpose='National Due',
            amount=Decimal('1200.00'),
            date=date,
        ))
        db.session.commit()

    def test_paid_before_deadline(self, app, sample_organization, sample_program, make_standard):
        standard = make_standard('efficient_dues_payment', logic_params={'deadline': '2026-03-31'},
                                 milestones=[{'id': 'ms1', 'label': 'Dues paid', 'points': 25}])
        self._pay(sample_organization, datetime(2026, 3, 1))

        run(sample_organization, sample_program)

        # the routine reports no milestones, so the whole standard is synced
        rows = submissions_for(standard)
        assert [(r.milestone_key, r.score_awarded) for r in rows] == [('', 25)]

    def test_paid_on_deadline_day(self, app, sample_organization, sample_program, make_standard):
        standard = make_standard('efficient_dues_payment', logic_params={'deadline': '2026-03-31', 'points': 25})
        self._pay(sample_organization, datetime(2026, 3, 31, 15, 30))

        run(sample_organization, sample_program)

        assert len(submissions_for(standard)) == 1

    def test_paid_late(self, app, sample_organization, sample_program, make_standard):
        standard = make_standard('efficient_dues_payment', logic_params={'deadline': '2026-02-28', 'points': 25})
        self._pay(sample_organization, datetime(2026, 3, 1))

        run(sample_organization, sample_program)

        assert submissions_for(standard) == []


class TestBoardMeetings:

    def test_enough_meetings(self, app, sample_organization, sample_program, make_standard, make_event):
        standard = make_standard('efficient_bod_meetings', milestones=[{'id': 'ms1', 'label': '8 meetings', 'points': 30}],
                                 logic_params={'min_meetings': 8})
        for _ in range(8):
            make_event('Meeting')
        make_event('Meeting', status='Upcoming')

        result = incentive_calculator.execute_logic(sample_organization.id, standard)

        assert result['quantity'] == 8
        assert result['score'] == 30
        assert result['writes'] == ['created']

    def test_too_few_meetings(self, app, sample_organization, sample_program, make_standard, make_event):
        standard = make_standard('efficient_bod_meetings', logic_params={'points': 30})
        for _ in range(7):
            make_event('Meeting')

        result = incentive_calculator.execute_logic(sample_organization.id, standard)

        assert result['writes'] == []

    def test_result_falling_to_zero_is_recorded(self, app, sample_organization, sample_program,
                                                make_standard, make_event):
        standard = make_standard('efficient_bod_meetings', logic_params={'min_meetings': 1, 'points': 30})
        make_event('Meeting')
        run(sample_organization, sample_program)
        assert submissions_for(standard)[0].score_awarded == 30

        standard.logic_params = {'min_meetings': 5, 'points': 30}
        db.session.commit()
        summary = run(sample_organization, sample_program)

        assert summary['results'][0]['writes'] == ['updated']
        [submission] = submissions_for(standard)
        assert submission.score_awarded == 0
        assert submission.quantity == 0
        progress = StarProgress.query.filter_by(organization_id=sample_organization.id).one()
        assert progress.categories['efficient']['current'] == 0


class TestMembershipGrowth:

    def test_growth_over_baseline(self, app, sample_organization, sample_program, chapter_members, make_standard):
        standard = make_standard('efficient_membership_growth',
                                 logic_params={'baseline_count': 2, 'target_percent': 50})

        result = incentive_calculator.execute_logic(sample_organization.id, standard)

        assert result['quantity'] == 1
        # no milestone or configured points: default growth score
        assert result['score'] == 20

    def test_below_target(self, app, sample_organization, sample_program, chapter_members, make_standard):
        standard = make_standard('efficient_membership_growth', logic_params={'baseline_count': 3})

        result = incentive_calculator.execute_logic(sample_organization.id, standard)

        assert result['writes'] == []

    def test_negative_baseline_is_a_configuration_error(self, app, sample_organization, sample_program,
                                                        chapter_members, make_standard):
        standard = make_standard('efficient_membership_growth', logic_params={'baseline_count': -5})

        with pytest.raises(ConfigurationError):
            incentive_calculator.execute_logic(sample_organization.id, standard)

        summary = incentive_calculator.calculate_all(sample_organization.id, sample_program.id)
        assert summary['errors'][0]['standard_id'] == standard.id


class TestEventAttendance:

    def test_points_per_check_in(self, app, sample_organization, sample_program, make_standard,
                                 make_member, make_event, check_in):
        standard = make_standard('network_event_attendance', category='network')
        event = make_event('Social')
        for _ in range(3):
            check_in(make_member(), event)

        result = incentive_calculator.execute_logic(sample_organization.id, standard)

        assert result['quantity'] == 3
        assert result['score'] == 15

    def test_point_cap(self, app, sample_organization, sample_program, make_standard,
                       make_member, make_event, check_in):
        standard = make_standard('network_event_attendance', category='network', point_cap=10)
        event = make_event('Social')
        for _ in range(3):
            check_in(make_member(), event)

        result = incentive_calculator.execute_logic(sample_organization.id, standard)

        assert result['score'] == 10


class TestEventMilestones:

    MILESTONES = [
        {'id': 'training-30', 'label': 'Training with 30 participants', 'points': 50,
         'activity_type': 'Training', 'min_participants': 30},
        {'id': 'international', 'label': 'International event', 'points': 40,
         'activity_type': 'International'},
    ]

    def test_matching_event_achieves_milestone(self, app, sample_organization, sample_program,
                                               make_standard, make_event):
        standard = make_standard('event_milestones', category='experience', milestones=self.MILESTONES)
        make_event('Training', attendee_count=35)
        make_event('Training', status='Cancelled', attendee_count=80)

        run(sample_organization, sample_program)

        rows = submissions_for(standard)
        assert [(r.milestone_key, r.score_awarded) for r in rows] == [('training-30', 50)]

    def test_too_small_event(self, app, sample_organization, sample_program, make_standard, make_event):
        standard = make_standard('event_milestones', category='experience', milestones=self.MILESTONES)
        make_event('Training', attendee_count=12)

        run(sample_organization, sample_program)

        assert submissions_for(standard) == []

    def test_milestone_no_longer_reached_drops_to_zero(self, app, sample_organization, sample_program,
                                                       make_standard, make_event):
        standard = make_standard('event_milestones', category='experience', milestones=self.MILESTONES)
        event = make_event('Training', attendee_count=35)
        run(sample_organization, sample_program)

        event.status = 'Cancelled'
        db.session.commit()
        summary = run(sample_organization, sample_program)

        assert summary['results'][0]['writes'] == ['updated']
        rows = submissions_for(standard)
        assert [(r.milestone_key, r.score_awarded) for r in rows] == [('training-30', 0)]

    def test_unknown_logic_with_activity_milestones_falls_back(self, app, sample_organization,
                                                               sample_program, make_standard, make_event):
        standard = make_standard('outreach_custom_events', category='outreach', milestones=self.MILESTONES)
        make_event('International', attendee_count=3)

        result = incentive_calculator.execute_logic(sample_organization.id, standard)

        assert result['writes'] == ['created']
        assert submissions_for(standard)[0].milestone_key == 'international'


class TestBatchRun:

    def test_unknown_logic_is_skipped(self, app, sample_organization, sample_program, make_standard):
        make_standard('impact_not_built_yet', category='impact')

        summary = run(sample_organization, sample_program)

        assert summary['skipped'] == 1
        assert summary['processed'] == 0
        assert summary['errors'] == []

    def test_manual_standards_are_ignored(self, app, sample_organization, sample_program, make_standard):
        make_standard('efficient_bod_meetings', verification_type='MANUAL_UPLOAD')
        make_standard(None, category='impact')

        assert run(sample_organization, sample_program)['standards'] == 0

    def test_hybrid_standards_run(self, app, sample_organization, sample_program, make_standard):
        make_standard('network_event_attendance', category='network', verification_type='HYBRID')
        assert run(sample_organization, sample_program)['standards'] == 1

    def test_rerun_is_idempotent(self, app, sample_organization, sample_program, chapter_members, make_standard):
        make_standard('efficient_membership_conversion', milestones=[
            {'id': 'ms1', 'label': '60% conversion', 'points': 20},
        ])
        make_standard('efficient_membership_growth', logic_params={'baseline_count': 2, 'target_percent': 50})

        run(sample_organization, sample_program)
        count = IncentiveSubmission.query.count()
        second = run(sample_organization, sample_program)

        assert IncentiveSubmission.query.count() == count
        assert all(w == 'unchanged' for r in second['results'] for w in r['writes'])

    def test_human_submission_is_never_overwritten(self, app, sample_organization, sample_program,
                                                   chapter_members, make_standard):
        standard = make_standard('efficient_membership_conversion', milestones=[
            {'id': 'ms1', 'label': '60% conversion', 'points': 20},
        ])
        manual = IncentiveSubmission(
            organization_id=sample_organization.id,
            standard_id=standard.id,
            milestone_key='ms1',
            quantity=1,
            score_awarded=5,
            status='PENDING',
            source='manual',
        )
        db.session.add(manual)
        db.session.commit()

        summary = run(sample_organization, sample_program)

        assert summary['results'][0]['writes'] == ['protected']
        db.session.refresh(manual)
        assert manual.score_awarded == 5
        assert manual.status == 'PENDING'

    def test_failing_standard_does_not_stop_the_rest(self, app, sample_organization, sample_program,
                                                     chapter_members, make_standard, make_event):
        broken = make_standard('efficient_bod_meetings', logic_params={'min_meetings': 1, 'points': 30})
        working = make_standard('efficient_membership_growth', logic_params={'baseline_count': 2, 'target_percent': 50})
        make_event('Meeting')

        failing = Mock(side_effect=RuntimeError('activity store unavailable'))
        with patch.dict(incentive_calculator._routines, {'efficient_bod_meetings': failing}):
            summary = run(sample_organization, sample_program)

        assert summary['errors'] == [{'standard_id': broken.id, 'error': 'activity store unavailable'}]
        assert summary['processed'] == 1
        assert len(submissions_for(working)) == 1
        assert submissions_for(broken) == []

    def test_star_progress_is_refreshed(self, app, sample_organization, sample_program,
                                        chapter_members, make_standard):
        make_standard('efficient_membership_growth', logic_params={'baseline_count': 2, 'target_percent': 50,
                                                                   'points': 120})

        run(sample_organization, sample_program)

        progress = StarProgress.query.filter_by(organization_id=sample_organization.id).one()
        assert progress.categories['efficient'] == {'current': 120, 'total': 100, 'stars': 1}
        assert progress.categories['network'] == {'current': 0, 'total': 250, 'stars': 0}
        assert progress.stars_unlocked == 1

    def test_unknown_organization(self, app, sample_program):
        with pytest.raises(NotFoundError):
            incentive_calculator.calculate_all(99999, sample_program.id)

    def test_unknown_program(self, app, sample_organization):
        with pytest.raises(NotFoundError):
            incentive_calculator.calculate_all(sample_organization.id, 99999)
