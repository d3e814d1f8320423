"""
Gamification Service

Award definitions, member progress and award granting.

Two sweeps run over every active definition for a member:
- check_and_award_achievements: grants the award record once the member is
  fully complete (all milestones, or the criteria target without milestones)
- check_and_update_achievement_progress: stores progress, pays newly
  crossed milestones and grants the award on full completion

Both are safe to run any number of times; payouts are guarded by the
synchronizer's natural keys.
"""

from datetime import datetime
from typing import List, Dict, Any, Optional, Mapping

from flask import current_app

from ..extensions import db
from ..models.gamification import (
    AwardDefinition,
    CriteriaType,
    MemberAward,
    MemberAwardProgress,
    Timeframe,
)
from ..models.organization import Member
from ..utils.exceptions import (
    AlreadyAwardedError,
    DuplicateError,
    MemberNotFoundError,
    NotFoundError,
    ValidationError,
)
from ..utils.numbers import is_number
from . import milestone_engine
from .award_sync import award_sync
from .condition_evaluator import validate_conditions
from .criteria_strategies import CriteriaEvaluator


def validate_award_definition(data: Mapping) -> List[str]:
    """Itemized problems with an award definition; empty list when valid."""
    if not isinstance(data, Mapping):
        return ['Award definition must be an object']

    errors = []
    if not data.get('code'):
        errors.append('Code is required')
    if not data.get('name'):
        errors.append('Name is required')

    criteria = data.get('criteria')
    if not isinstance(criteria, Mapping):
        errors.append('Criteria is required')
    else:
        criteria_type = criteria.get('type')
        if criteria_type not in CriteriaType.values():
            errors.append(f"Unknown criteria type '{criteria_type}'")

        value = criteria.get('value')
        if not is_number(value) or value < 0:
            errors.append('Criteria value must be a non-negative number')

        timeframe = criteria.get('timeframe')
        if timeframe is not None and timeframe not in Timeframe.values():
            errors.append(f"Unknown timeframe '{timeframe}'")

        if criteria_type == CriteriaType.ROLE_HELD.value and not criteria.get('role'):
            errors.append('Criteria role is required for role_held')
        if criteria_type == CriteriaType.CUSTOM.value:
            errors.extend(validate_conditions(criteria.get('conditions')))

    points_reward = data.get('points_reward', 0)
    if isinstance(points_reward, bool) or not isinstance(points_reward, int) or points_reward < 0:
        errors.append('Points reward must be a non-negative integer')

    errors.extend(milestone_engine.validate_milestones(data.get('milestones')))
    return errors


class GamificationService:
    """Service for award definitions and member achievement progress."""

    # Default award definitions
    DEFAULT_AWARDS = [
        {
            'code': 'first-event',
            'name': 'First Steps',
            'description': 'Attend your first chapter event',
            'icon': 'target',
            'category': 'Event',
            'tier': 'Bronze',
            'points_reward': 50,
            'criteria': {'type': 'event_count', 'value': 1, 'timeframe': 'lifetime'},
            'milestones': [
                {'level': 'Bronze', 'threshold': 1, 'point_value': 50},
            ],
        },
        {
            'code': 'event-enthusiast',
            'name': 'Event Enthusiast',
            'description': 'Attend multiple events',
            'icon': 'party',
            'category': 'Event',
            'tier': 'Gold',
            'points_reward': 0,  # Paid through milestones
            'criteria': {'type': 'event_count', 'value': 25, 'timeframe': 'lifetime'},
            'milestones': [
                {'level': 'Bronze', 'threshold': 5, 'point_value': 100},
                {'level': 'Silver', 'threshold': 10, 'point_value': 150},
                {'level': 'Gold', 'threshold': 25, 'point_value': 250},
            ],
        },
        {
            'code': 'project-leader',
            'name': 'Project Leader',
            'description': 'Lead multiple projects',
            'icon': 'rocket',
            'category': 'Project',
            'tier': 'Platinum',
            'points_reward': 0,
            'criteria': {'type': 'project_count', 'value': 10, 'timeframe': 'lifetime'},
            'milestones': [
                {'level': 'Bronze', 'threshold': 1, 'point_value': 200},
                {'level': 'Silver', 'threshold': 3, 'point_value': 300},
                {'level': 'Gold', 'threshold': 5, 'point_value': 400},
                {'level': 'Platinum', 'threshold': 10, 'point_value': 500},
            ],
        },
        {
            'code': 'rising-star',
            'name': 'Rising Star',
            'description': 'Reach 500 points',
            'icon': 'star',
            'category': 'Milestone',
            'tier': 'Silver',
            'points_reward': 0,
            'criteria': {'type': 'points_threshold', 'value': 500},
            'milestones': [
                {'level': 'Silver', 'threshold': 500, 'point_value': 0, 'reward': 'Rising Star Badge'},
            ],
        },
        {
            'code': 'shining-bright',
            'name': 'Shining Bright',
            'description': 'Reach 1000 points',
            'icon': 'sparkles',
            'category': 'Milestone',
            'tier': 'Gold',
            'points_reward': 0,
            'criteria': {'type': 'points_threshold', 'value': 1000},
            'milestones': [
                {'level': 'Gold', 'threshold': 1000, 'point_value': 0, 'reward': 'Shining Star Badge'},
            ],
        },
        {
            'code': 'recruiter',
            'name': 'Recruiter',
            'description': 'Recruit new members',
            'icon': 'people',
            'category': 'Recruitment',
            'tier': 'Gold',
            'points_reward': 0,
            'criteria': {'type': 'recruitment_count', 'value': 10, 'timeframe': 'lifetime'},
            'milestones': [
                {'level': 'Bronze', 'threshold': 1, 'point_value': 100},
                {'level': 'Silver', 'threshold': 5, 'point_value': 200},
                {'level': 'Gold', 'threshold': 10, 'point_value': 300},
            ],
        },
        {
            'code': 'perfect-attendance',
            'name': 'Perfect Attendance',
            'description': 'Attend consecutive events',
            'icon': 'fire',
            'category': 'Event',
            'tier': 'Silver',
            'points_reward': 0,
            'criteria': {'type': 'consecutive_attendance', 'value': 10},
            'milestones': [
                {'level': 'Bronze', 'threshold': 3, 'point_value': 75},
                {'level': 'Silver', 'threshold': 5, 'point_value': 150},
                {'level': 'Gold', 'threshold': 10, 'point_value': 300},
            ],
        },
    ]

    EDITABLE_FIELDS = (
        'name', 'description', 'icon', 'category', 'tier', 'rarity', 'criteria',
        'milestones', 'points_reward', 'active', 'display_order',
    )

    def __init__(self, criteria_evaluator: CriteriaEvaluator = None):
        self.criteria_evaluator = criteria_evaluator or CriteriaEvaluator()

    # ==================== Definitions ====================

    def seed_default_awards(self) -> Dict[str, Any]:
        """Create default award definitions. Existing codes are left alone."""
        created = []
        skipped = []
        for definition in self.DEFAULT_AWARDS:
            if AwardDefinition.query.filter_by(code=definition['code']).first():
                skipped.append(definition['code'])
                continue
            self.create_award(definition)
            created.append(definition['code'])

        return {'created': created, 'skipped': skipped}

    def list_awards(self, include_inactive: bool = False) -> List[AwardDefinition]:
        query = AwardDefinition.query
        if not include_inactive:
            query = query.filter_by(active=True)
        return query.order_by(AwardDefinition.display_order, AwardDefinition.id).all()

    def get_award(self, award_id: int) -> AwardDefinition:
        award = db.session.get(AwardDefinition, award_id)
        if not award:
            raise NotFoundError('Award', award_id)
        return award

    def get_award_by_code(self, code: str) -> Optional[AwardDefinition]:
        return AwardDefinition.query.filter_by(code=code).first()

    def create_award(self, data: Mapping) -> AwardDefinition:
        errors = validate_award_definition(data)
        if errors:
            raise ValidationError('Invalid award definition', errors=errors)
        if self.get_award_by_code(data['code']):
            raise DuplicateError('Award', f"code {data['code']}")

        award = AwardDefinition(code=data['code'])
        for field in self.EDITABLE_FIELDS:
            if field in data:
                setattr(award, field, data[field])
        db.session.add(award)
        db.session.commit()

        current_app.logger.info(f"Award definition created: {award.code}")
        return award

    def update_award(self, award_id: int, data: Mapping) -> AwardDefinition:
        award = self.get_award(award_id)

        merged = award.to_dict()
        merged.update({k: v for k, v in data.items() if k in self.EDITABLE_FIELDS})
        errors = validate_award_definition(merged)
        if errors:
            raise ValidationError('Invalid award definition', errors=errors)

        for field in self.EDITABLE_FIELDS:
            if field in data:
                setattr(award, field, data[field])
        db.session.commit()
        return award

    def delete_award(self, award_id: int) -> AwardDefinition:
        """Soft delete: the definition is deactivated, earned records stay."""
        award = self.get_award(award_id)
        award.active = False
        db.session.commit()
        current_app.logger.info(f"Award definition deactivated: {award.code}")
        return award

    # ==================== Member Awards ====================

    def get_member(self, member_id: int, member: Member = None) -> Member:
        if member is not None:
            return member
        member = db.session.get(Member, member_id)
        if not member:
            raise MemberNotFoundError(member_id)
        return member

    def get_member_awards(self, member_id: int) -> List[MemberAward]:
        return MemberAward.query.filter_by(member_id=member_id).order_by(MemberAward.earned_at.desc()).all()

    def has_award(self, member_id: int, award_id: int) -> bool:
        return MemberAward.query.filter_by(member_id=member_id, award_id=award_id).first() is not None

    def award_award(
        self,
        award_id: int,
        member_id: int,
        awarded_by: str = None,
        reason: str = None,
        metadata: Mapping = None,
    ) -> MemberAward:
        """
        Grant an award manually.

        Raises:
            AlreadyAwardedError: the member already holds it
        """
        award = self.get_award(award_id)
        self.get_member(member_id)

        if self.has_award(member_id, award_id):
            raise AlreadyAwardedError(award.code, member_id)

        record = award_sync.grant_award(
            member_id, award, awarded_by=awarded_by or 'admin', reason=reason, details=metadata
        )
        if record is None:
            raise AlreadyAwardedError(award.code, member_id)
        return record

    # ==================== Progress ====================

    def calculate_current_progress(self, award: AwardDefinition, member: Member) -> float:
        return self.criteria_evaluator.current_progress(award.criteria, member)

    def check_and_award_achievements(self, member_id: int, member: Member = None) -> List[MemberAward]:
        """Grant every award the member has fully completed and does not hold yet."""
        member = self.get_member(member_id, member)
        awarded = []

        for award in self.list_awards():
            if self.has_award(member.id, award.id):
                continue

            current = self.calculate_current_progress(award, member)
            if not milestone_engine.is_complete(award, current):
                continue

            record = award_sync.grant_award(member.id, award, reason='Criteria met')
            if record is not None:
                awarded.append(record)

        if awarded:
            current_app.logger.info(f"Member {member.id} earned {len(awarded)} award(s)")
        return awarded

    def check_and_update_achievement_progress(self, member_id: int, member: Member = None) -> Dict[str, Any]:
        """
        Store progress for every active award, pay newly crossed milestones
        and grant awards reached in full.
        """
        member = self.get_member(member_id, member)
        summary = {'member_id': member.id, 'updated': 0, 'milestones': [], 'awards': []}

        for award in self.list_awards():
            current = self.calculate_current_progress(award, member)

            stored = MemberAwardProgress.query.filter_by(member_id=member.id, award_id=award.id).first()
            previous_levels = stored.completed_milestones if stored else []

            levels = milestone_engine.completed_levels(award, current)
            newly = milestone_engine.newly_completed(award, current, previous_levels)
            percent = milestone_engine.progress_percent(award, current)

            award_sync.sync_progress(member.id, award, current, levels, percent)
            summary['updated'] += 1

            for payout in award_sync.grant_milestone_rewards(member.id, award, newly):
                summary['milestones'].append({'award': award.code, 'level': payout.level})

            if milestone_engine.is_complete(award, current) and not self.has_award(member.id, award.id):
                record = award_sync.grant_award(member.id, award, reason='All milestones completed')
                if record is not None:
                    summary['awards'].append(award.code)

        return summary

    def get_member_progress(self, member_id: int) -> Dict[str, Any]:
        """Live progress toward every active award."""
        member = self.get_member(member_id)
        earned_ids = {a.award_id for a in self.get_member_awards(member.id)}

        progress = []
        for award in self.list_awards():
            current = self.calculate_current_progress(award, member)
            upcoming = milestone_engine.next_milestone(award, current)
            progress.append({
                'award': award.to_dict(),
                'current_progress': current,
                'progress_percent': milestone_engine.progress_percent(award, current),
                'completed_milestones': milestone_engine.completed_levels(award, current),
                'next_milestone': upcoming,
                'earned': award.id in earned_ids,
            })

        return {
            'member_id': member.id,
            'points': member.points or 0,
            'tier': member.tier,
            'awards_earned': len(earned_ids),
            'progress': progress,
        }

    def sweep(self, organization_id: int = None) -> Dict[str, Any]:
        """Progress sweep over every active member; one failing member does not stop the rest."""
        query = Member.query.filter_by(status='active')
        if organization_id:
            query = query.filter_by(organization_id=organization_id)

        processed = 0
        failed = 0
        awards = 0
        for member in query.order_by(Member.id).all():
            try:
                result = self.check_and_update_achievement_progress(member.id, member)
                awards += len(result['awards'])
                processed += 1
            except Exception as e:
                db.session.rollback()
                failed += 1
                current_app.logger.error(f"Progress sweep failed for member {member.id}: {e}")

        current_app.logger.info(
            f"Progress sweep complete: {processed} members, {awards} awards, {failed} failed"
        )
        return {'processed': processed, 'failed': failed, 'awards_granted': awards, 'at': datetime.utcnow().isoformat()}


# Singleton instance
gamification_service = GamificationService()
