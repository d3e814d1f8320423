"""
Points Service for ChapterHub.

The points ledger primitive. Every points award in the system goes through
PointsService.award_points, which:
- writes one PointsTransaction row
- increments Member.points with a single UPDATE (no read-modify-write)
- recomputes Member.tier from the fixed thresholds

Tiers (minimum running total):
    Bronze 0 | Silver 500 | Gold 1000 | Platinum 2000
"""

from typing import Optional, List, Dict, Any
from flask import current_app, has_app_context

from ..extensions import db
from ..models.organization import Member
from ..models.points import PointsTransaction
from ..utils.exceptions import MemberNotFoundError, ValidationError


# ==================== Configuration ====================

MEMBER_TIERS = {
    'Bronze': 0,
    'Silver': 500,
    'Gold': 1000,
    'Platinum': 2000,
}

# Ledger categories written by the engine
CATEGORY_AWARD = 'award'
CATEGORY_MILESTONE = 'award_milestone'
CATEGORY_ADJUSTMENT = 'adjustment'


def _tier_thresholds() -> Dict[str, int]:
    if has_app_context():
        return current_app.config.get('TIER_THRESHOLDS') or MEMBER_TIERS
    return MEMBER_TIERS


def calculate_tier(points: int) -> str:
    """Highest tier whose threshold the running total has reached."""
    tiers = sorted(_tier_thresholds().items(), key=lambda item: item[1])
    current = tiers[0][0]
    for name, threshold in tiers:
        if (points or 0) >= threshold:
            current = name
    return current


def next_tier(points: int) -> Optional[Dict[str, Any]]:
    """The next tier above the running total, or None at the top tier."""
    for name, threshold in sorted(_tier_thresholds().items(), key=lambda item: item[1]):
        if (points or 0) < threshold:
            return {'tier': name, 'threshold': threshold, 'points_needed': threshold - (points or 0)}
    return None


class PointsService:
    """Ledger writes and member points read models."""

    # ==================== Ledger ====================

    def award_points(
        self,
        member_id: int,
        category: str,
        amount: int,
        description: str = None,
        related_entity_id: Any = None,
        related_entity_type: str = None,
        commit: bool = True,
    ) -> int:
        """
        Award points to a member.

        Args:
            member_id: Member receiving the points
            category: Ledger category (trigger name, 'award', 'award_milestone', ...)
            amount: Whole points, must be positive
            description: Human-readable description
            related_entity_id: Id of the record that caused the award
            related_entity_type: Kind of that record
            commit: False to flush only, leaving the caller's transaction open

        Returns:
            Id of the PointsTransaction written

        Raises:
            ValidationError: amount is not a positive integer
            MemberNotFoundError: member does not exist
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValidationError('Points amount must be a positive integer', field='amount')

        member = db.session.get(Member, member_id)
        if not member:
            raise MemberNotFoundError(member_id)

        try:
            Member.query.filter_by(id=member_id).update(
                {Member.points: Member.points + amount},
                synchronize_session=False,
            )
            db.session.refresh(member)

            new_tier = calculate_tier(member.points)
            previous_tier = member.tier
            member.tier = new_tier

            transaction = PointsTransaction(
                member_id=member_id,
                category=category,
                amount=amount,
                description=description or f'Earned {amount} points from {category}',
                related_entity_id=str(related_entity_id) if related_entity_id is not None else None,
                related_entity_type=related_entity_type,
                balance_after=member.points,
            )
            db.session.add(transaction)
            if commit:
                db.session.commit()
            else:
                db.session.flush()
        except Exception:
            db.session.rollback()
            raise

        current_app.logger.info(
            f"Points awarded: member {member_id} +{amount} pts from {category} "
            f"(total {member.points}, tier {new_tier})"
        )
        if new_tier != previous_tier:
            current_app.logger.info(f"Member {member_id} tier changed {previous_tier} -> {new_tier}")

        return transaction.id

    # ==================== Read Models ====================

    def get_member_points(self, member_id: int, limit: int = 50, offset: int = 0) -> Dict[str, Any]:
        """Points history for a member, newest first."""
        member = db.session.get(Member, member_id)
        if not member:
            raise MemberNotFoundError(member_id)

        query = PointsTransaction.query.filter_by(member_id=member_id)
        total = query.count()
        transactions = query.order_by(
            PointsTransaction.created_at.desc(), PointsTransaction.id.desc()
        ).offset(offset).limit(limit).all()

        return {
            'member_id': member_id,
            'points': member.points or 0,
            'total': total,
            'transactions': [t.to_dict() for t in transactions],
        }

    def get_member_summary(self, member_id: int) -> Dict[str, Any]:
        """Running total, tier and distance to the next tier."""
        member = db.session.get(Member, member_id)
        if not member:
            raise MemberNotFoundError(member_id)

        points = member.points or 0
        upcoming = next_tier(points)
        return {
            'member_id': member.id,
            'name': member.name,
            'points': points,
            'tier': member.tier or calculate_tier(points),
            'next_tier': upcoming['tier'] if upcoming else None,
            'points_to_next_tier': upcoming['points_needed'] if upcoming else 0,
            'badges': member.badges or [],
        }

    def get_leaderboard(self, organization_id: int = None, limit: int = 10) -> List[Dict[str, Any]]:
        """Members ranked by running total."""
        query = Member.query.filter(Member.status == 'active')
        if organization_id:
            query = query.filter(Member.organization_id == organization_id)

        members = query.order_by(Member.points.desc(), Member.id.asc()).limit(limit).all()
        return [
            {
                'rank': index + 1,
                'member_id': m.id,
                'name': m.name,
                'points': m.points or 0,
                'tier': m.tier,
                'badge_count': len(m.badges or []),
            }
            for index, m in enumerate(members)
        ]


# Singleton instance
points_service = PointsService()
