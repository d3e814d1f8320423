"""
Tests for the Points Service.

This test module covers:
- Tier calculation
- Ledger writes (balance, tier, transaction row)
- Input validation
- Member summary, history and leaderboard read models
"""
import pytest

from app.extensions import db
from app.models import Member, PointsTransaction
from app.services.points_service import (
    MEMBER_TIERS,
    calculate_tier,
    next_tier,
    points_service,
)
from app.utils.exceptions import MemberNotFoundError, ValidationError


class TestTiers:
    """Tests for tier thresholds."""

    @pytest.mark.parametrize('points,expected', [
        (0, 'Bronze'),
        (499, 'Bronze'),
        (500, 'Silver'),
        (999, 'Silver'),
        (1000, 'Gold'),
        (1999, 'Gold'),
        (2000, 'Platinum'),
        (50000, 'Platinum'),
    ])
    def test_calculate_tier(self, points, expected):
        assert calculate_tier(points) == expected

    def test_none_is_bronze(self):
        assert calculate_tier(None) == 'Bronze'

    def test_next_tier(self):
        assert next_tier(120) == {'tier': 'Silver', 'threshold': 500, 'points_needed': 380}
        assert next_tier(2000) is None

    def test_thresholds_are_ascending(self):
        values = list(MEMBER_TIERS.values())
        assert values == sorted(values)


class TestAwardPoints:
    """Tests for PointsService.award_points."""

    def test_award_updates_balance_and_ledger(self, app, sample_member):
        transaction_id = points_service.award_points(
            member_id=sample_member.id,
            category='event_attendance',
            amount=120,
            description='Chapter meeting',
        )

        member = db.session.get(Member, sample_member.id)
        transaction = db.session.get(PointsTransaction, transaction_id)

        assert member.points == 120
        assert member.tier == 'Bronze'
        assert transaction.amount == 120
        assert transaction.category == 'event_attendance'
        assert transaction.balance_after == 120
        assert transaction.description == 'Chapter meeting'

    def test_awards_accumulate_and_promote(self, app, sample_member):
        points_service.award_points(sample_member.id, 'award', 300)
        points_service.award_points(sample_member.id, 'award', 250)

        member = db.session.get(Member, sample_member.id)
        assert member.points == 550
        assert member.tier == 'Silver'
        assert PointsTransaction.query.filter_by(member_id=member.id).count() == 2

    def test_default_description(self, app, sample_member):
        transaction_id = points_service.award_points(sample_member.id, 'training_completion', 30)
        transaction = db.session.get(PointsTransaction, transaction_id)
        assert transaction.description == 'Earned 30 points from training_completion'

    def test_related_entity_is_stored_as_text(self, app, sample_member):
        transaction_id = points_service.award_points(
            sample_member.id, 'award', 10, related_entity_id=42, related_entity_type='award'
        )
        transaction = db.session.get(PointsTransaction, transaction_id)
        assert transaction.related_entity_id == '42'
        assert transaction.related_entity_type == 'award'

    def test_flush_only_write_follows_the_callers_transaction(self, app, sample_member):
        points_service.award_points(sample_member.id, 'award', 10, commit=False)
        db.session.rollback()

        assert PointsTransaction.query.count() == 0
        assert db.session.get(Member, sample_member.id).points == 0

    @pytest.mark.parametrize('amount', [0, -5, 2.5, True, '10', None])
    def test_rejects_non_positive_or_non_integer(self, app, sample_member, amount):
        with pytest.raises(ValidationError):
            points_service.award_points(sample_member.id, 'award', amount)

        assert PointsTransaction.query.count() == 0

    def test_unknown_member(self, app):
        with pytest.raises(MemberNotFoundError):
            points_service.award_points(99999, 'award', 10)


class TestReadModels:
    """Tests for summary, history and leaderboard."""

    def test_member_summary(self, app, sample_member):
        points_service.award_points(sample_member.id, 'award', 600)

        summary = points_service.get_member_summary(sample_member.id)

        assert summary['points'] == 600
        assert summary['tier'] == 'Silver'
        assert summary['next_tier'] == 'Gold'
        assert summary['points_to_next_tier'] == 400

    def test_history_is_newest_first(self, app, sample_member):
        points_service.award_points(sample_member.id, 'award', 10)
        points_service.award_points(sample_member.id, 'award', 20)
        points_service.award_points(sample_member.id, 'award', 30)

        history = points_service.get_member_points(sample_member.id, limit=2)

        assert history['total'] == 3
        assert history['points'] == 60
        assert [t['amount'] for t in history['transactions']] == [30, 20]

    def test_leaderboard_ranks_by_points(self, app, make_member):
        low = make_member(name='Low')
        high = make_member(name='High')
        points_service.award_points(low.id, 'award', 50)
        points_service.award_points(high.id, 'award', 900)

        board = points_service.get_leaderboard()

        assert [row['member_id'] for row in board[:2]] == [high.id, low.id]
        assert board[0]['rank'] == 1
        assert board[0]['tier'] == 'Silver'

    def test_leaderboard_skips_inactive_members(self, app, make_member):
        alumni = make_member(status='alumni')
        points_service.award_points(alumni.id, 'award', 5000)

        assert alumni.id not in [row['member_id'] for row in points_service.get_leaderboard()]

    def test_leaderboard_by_organization(self, app, sample_organization, make_member):
        from app.models import Organization

        other_chapter = Organization(name='JCI Penang', code='JCI-PG')
        db.session.add(other_chapter)
        db.session.commit()

        ours = make_member()
        theirs = make_member(organization_id=other_chapter.id)
        points_service.award_points(ours.id, 'award', 10)
        points_service.award_points(theirs.id, 'award', 20)

        board = points_service.get_leaderboard(organization_id=sample_organization.id)
        assert [row['member_id'] for row in board] == [ours.id]
