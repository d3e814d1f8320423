"""
Award / execution synchronizer.

Persists calculation outcomes exactly once per natural key:

- MemberAward            (member, award)
- MemberMilestoneReward  (member, award, level)
- MemberAwardProgress    (member, award)             upserted
- IncentiveSubmission    (organization, standard, milestone key)

Writers never hold locks across round trips. Each guarded insert is preceded
by an existence check; if a concurrent writer wins the race the unique
constraint rejects the second insert, which is rolled back and treated as
already done.

System-generated submissions (source=system) are overwritten by
recalculation. Manual submissions are never touched.
"""
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models.gamification import (
    AwardDefinition,
    MemberAward,
    MemberAwardProgress,
    MemberMilestoneReward,
)
from ..models.incentive import (
    IncentiveStandard,
    IncentiveSubmission,
    SubmissionSource,
    SubmissionStatus,
)
from ..models.organization import Member
from ..utils.numbers import round_half_up
from .notification_service import notification_service
from .points_service import points_service, CATEGORY_AWARD, CATEGORY_MILESTONE

# sync_submission outcomes
CREATED = 'created'
UPDATED = 'updated'
UNCHANGED = 'unchanged'
PROTECTED = 'protected'


def _insert_once(record, description: str) -> bool:
    """
    Add and flush a record guarded by a unique constraint. The caller
    commits, together with any points the record pays for.

    Returns False when the constraint rejected it (someone else wrote it).
    """
    db.session.add(record)
    try:
        db.session.flush()
        return True
    except IntegrityError:
        db.session.rollback()
        current_app.logger.info(f"{description} already recorded by a concurrent run, skipping")
        return False


def _commit_with_payout(label: str, member_id: int, amount: int, **ledger) -> None:
    """
    Pay `amount` points (if any) and commit in the same transaction as the
    flushed guard record, so a failed payout leaves no record behind.
    """
    try:
        if amount > 0:
            points_service.award_points(member_id=member_id, amount=amount, commit=False, **ledger)
        db.session.commit()
    except Exception:
        db.session.rollback()
        current_app.logger.error(f"{label} rolled back")
        raise


class AwardSynchronizer:
    """Idempotent writes of awards, milestone payouts, progress and submissions."""

    # ==================== Badges ====================

    def append_badge(self, member_id: int, badge: Dict[str, Any]) -> bool:
        """Add a badge to the member's visible list unless one with the same id is there."""
        member = db.session.get(Member, member_id)
        if not member:
            return False
        db.session.refresh(member)
        if member.has_badge(badge['id']):
            return False

        member.badges = list(member.badges or []) + [badge]
        db.session.commit()
        return True

    # ==================== Awards ====================

    def grant_award(
        self,
        member_id: int,
        definition: AwardDefinition,
        awarded_by: str = 'system',
        reason: str = None,
        details: Mapping = None,
    ) -> Optional[MemberAward]:
        """
        Write the award record for a member once.

        On a new record the flat points reward is paid through the ledger,
        the award is added to the member's badge list and the member is
        notified.

        Returns:
            The new MemberAward, or None when the member already had it
        """
        if MemberAward.query.filter_by(member_id=member_id, award_id=definition.id).first():
            return None

        record = MemberAward(
            member_id=member_id,
            award_id=definition.id,
            awarded_by=awarded_by,
            reason=reason,
            details=dict(details or {}),
        )
        label = f"Award {definition.code} for member {member_id}"
        if not _insert_once(record, label):
            return None

        _commit_with_payout(
            label,
            member_id,
            definition.points_reward or 0,
            category=CATEGORY_AWARD,
            description=f"Award earned: {definition.name}",
            related_entity_id=definition.id,
            related_entity_type='award',
        )

        self.append_badge(member_id, {
            'id': definition.code,
            'name': definition.name,
            'icon': definition.icon,
            'description': definition.description,
            'earned_date': record.earned_at.isoformat(),
        })

        notification_service.notify(
            member_id,
            title='Award earned',
            message=f"You earned the {definition.name} award!",
            notification_type='award',
        )

        current_app.logger.info(f"Award {definition.code} granted to member {member_id} by {awarded_by}")
        return record

    def grant_milestone_rewards(
        self,
        member_id: int,
        definition: AwardDefinition,
        milestones: Iterable[Mapping],
    ) -> List[MemberMilestoneReward]:
        """
        Pay each milestone's point value and apply its reward token, once
        per member x award x level.

        Returns:
            Payout records written by this call
        """
        granted = []
        for milestone in milestones:
            level = str(milestone.get('level', ''))
            if MemberMilestoneReward.query.filter_by(
                member_id=member_id, award_id=definition.id, level=level
            ).first():
                continue

            point_value = round_half_up(milestone.get('point_value') or 0)
            reward = milestone.get('reward')
            payout = MemberMilestoneReward(
                member_id=member_id,
                award_id=definition.id,
                level=level,
                threshold=milestone.get('threshold'),
                points_awarded=point_value,
                reward=reward,
            )
            label = f"Milestone {level} of {definition.code} for member {member_id}"
            if not _insert_once(payout, label):
                continue

            _commit_with_payout(
                label,
                member_id,
                point_value,
                category=CATEGORY_MILESTONE,
                description=f"{definition.name} - {level} milestone",
                related_entity_id=payout.id,
                related_entity_type='award_milestone',
            )

            if reward:
                self.append_badge(member_id, {
                    'id': reward,
                    'name': reward,
                    'earned_date': payout.awarded_at.isoformat(),
                })

            notification_service.notify(
                member_id,
                title='Milestone reached',
                message=f"{definition.name}: {level} milestone reached",
                notification_type='milestone',
            )
            granted.append(payout)

        return granted

    # ==================== Progress ====================

    def sync_progress(
        self,
        member_id: int,
        definition: AwardDefinition,
        current_progress: float,
        completed_levels: List[str],
        progress_percent: int,
    ) -> MemberAwardProgress:
        """Upsert the member x award progress row."""
        progress = MemberAwardProgress.query.filter_by(member_id=member_id, award_id=definition.id).first()
        if not progress:
            progress = MemberAwardProgress(member_id=member_id, award_id=definition.id)
            db.session.add(progress)
            try:
                db.session.flush()
            except IntegrityError:
                db.session.rollback()
                progress = MemberAwardProgress.query.filter_by(
                    member_id=member_id, award_id=definition.id
                ).first()

        progress.current_progress = current_progress
        progress.completed_milestones = list(completed_levels)
        progress.progress_percent = progress_percent
        progress.last_updated = datetime.utcnow()
        db.session.commit()
        return progress

    # ==================== Incentive Submissions ====================

    def find_submission(
        self, organization_id: int, standard: IncentiveStandard, milestone_id: str = None
    ) -> Optional[IncentiveSubmission]:
        return IncentiveSubmission.query.filter_by(
            organization_id=organization_id,
            standard_id=standard.id,
            milestone_key=str(milestone_id) if milestone_id else '',
        ).first()

    def sync_submission(
        self,
        organization_id: int,
        standard: IncentiveStandard,
        quantity: float,
        score: Any,
        milestone_id: str = None,
    ) -> str:
        """
        Reconcile a computed result with the stored submission.

        - absent: create an approved system submission
        - system-generated and approved: overwrite when the values changed
        - manual, or reviewed away from approved: leave untouched

        Returns:
            'created', 'updated', 'unchanged' or 'protected'
        """
        milestone_key = str(milestone_id) if milestone_id else ''
        quantity = float(quantity or 0)
        score = round_half_up(score or 0)

        existing = self.find_submission(organization_id, standard, milestone_key)

        if not existing:
            milestone_note = f" for milestone {milestone_key}" if milestone_key else ''
            submission = IncentiveSubmission(
                organization_id=organization_id,
                standard_id=standard.id,
                milestone_key=milestone_key,
                quantity=quantity,
                score_awarded=score,
                status=SubmissionStatus.APPROVED.value,
                source=SubmissionSource.SYSTEM.value,
                evidence_text=f"Auto-calculated{milestone_note} by system on {datetime.utcnow():%Y-%m-%d}",
                submitted_by='system',
            )
            if not _insert_once(submission, f"Submission for standard {standard.id} org {organization_id}"):
                return UNCHANGED
            db.session.commit()
            return CREATED

        if not existing.is_system_generated or existing.status != SubmissionStatus.APPROVED.value:
            return PROTECTED

        if existing.quantity == quantity and existing.score_awarded == score:
            return UNCHANGED

        existing.quantity = quantity
        existing.score_awarded = score
        db.session.commit()
        return UPDATED


# Singleton instance
award_sync = AwardSynchronizer()
