"""
Gamification Models

Award definitions (achievements and badges share one shape), the immutable
award records, per-member progress and milestone payouts.
"""
from datetime import datetime
from enum import Enum

from ..extensions import db


# ==================== Enums ====================

class CriteriaType(str, Enum):
    """How progress toward an award is measured."""
    POINTS_THRESHOLD = 'points_threshold'
    EVENT_COUNT = 'event_count'
    PROJECT_COUNT = 'project_count'
    CONSECUTIVE_ATTENDANCE = 'consecutive_attendance'
    ROLE_HELD = 'role_held'
    TRAINING_COMPLETED = 'training_completed'
    RECRUITMENT_COUNT = 'recruitment_count'
    CUSTOM = 'custom'

    @classmethod
    def values(cls):
        return [c.value for c in cls]


class Timeframe(str, Enum):
    """Window the criteria counts activity in."""
    LIFETIME = 'lifetime'
    MONTHLY = 'monthly'
    QUARTERLY = 'quarterly'
    YEARLY = 'yearly'

    @classmethod
    def values(cls):
        return [t.value for t in cls]


# Binary criteria: reached or not, no partial progress
BINARY_CRITERIA = {CriteriaType.ROLE_HELD.value, CriteriaType.CUSTOM.value}


# ==================== Models ====================

class AwardDefinition(db.Model):
    """
    Achievement/badge definition.

    criteria:   {"type": "event_count", "value": 25, "timeframe": "lifetime",
                 "conditions": [...]}   # conditions only for role_held/custom
    milestones: [{"level": "Bronze", "threshold": 5, "point_value": 100,
                  "reward": "Rising Star Badge"}]   # strictly increasing thresholds
    """
    __tablename__ = 'award_definitions'

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(100), unique=True, nullable=False)  # 'first-event'

    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(500))
    icon = db.Column(db.String(50), default='trophy')
    category = db.Column(db.String(50))  # Event, Project, Milestone, Recruitment
    tier = db.Column(db.String(20))  # Bronze, Silver, Gold, Platinum
    rarity = db.Column(db.String(20), default='common')

    criteria = db.Column(db.JSON, nullable=False, default=dict)
    milestones = db.Column(db.JSON, default=list)

    points_reward = db.Column(db.Integer, default=0)

    active = db.Column(db.Boolean, default=True)
    display_order = db.Column(db.Integer, default=0)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    member_awards = db.relationship('MemberAward', backref='award', lazy='dynamic')

    def __repr__(self):
        return f'<AwardDefinition {self.code}>'

    @property
    def criteria_type(self):
        return (self.criteria or {}).get('type')

    @property
    def criteria_value(self):
        return (self.criteria or {}).get('value', 0)

    def to_dict(self):
        return {
            'id': self.id,
            'code': self.code,
            'name': self.name,
            'description': self.description,
            'icon': self.icon,
            'category': self.category,
            'tier': self.tier,
            'rarity': self.rarity,
            'criteria': self.criteria or {},
            'milestones': self.milestones or [],
            'points_reward': self.points_reward or 0,
            'active': self.active,
            'display_order': self.display_order,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class MemberAward(db.Model):
    """Award earned by a member. Written once, never updated."""

    __tablename__ = 'member_awards'

    id = db.Column(db.Integer, primary_key=True)
    member_id = db.Column(db.Integer, db.ForeignKey('members.id'), nullable=False)
    award_id = db.Column(db.Integer, db.ForeignKey('award_definitions.id'), nullable=False)

    earned_at = db.Column(db.DateTime, default=datetime.utcnow)
    awarded_by = db.Column(db.String(255))  # 'system' or staff email
    reason = db.Column(db.String(500))
    details = db.Column(db.JSON, default=dict)

    __table_args__ = (
        db.UniqueConstraint('member_id', 'award_id', name='unique_member_award'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'member_id': self.member_id,
            'award_id': self.award_id,
            'award': self.award.to_dict() if self.award else None,
            'earned_at': self.earned_at.isoformat() if self.earned_at else None,
            'awarded_by': self.awarded_by,
            'reason': self.reason,
            'details': self.details or {},
        }


class MemberAwardProgress(db.Model):
    """Progress toward an award, one row per member x award."""

    __tablename__ = 'member_award_progress'

    id = db.Column(db.Integer, primary_key=True)
    member_id = db.Column(db.Integer, db.ForeignKey('members.id'), nullable=False)
    award_id = db.Column(db.Integer, db.ForeignKey('award_definitions.id'), nullable=False)

    current_progress = db.Column(db.Float, default=0)
    progress_percent = db.Column(db.Integer, default=0)
    completed_milestones = db.Column(db.JSON, default=list)  # level labels, ascending

    last_updated = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint('member_id', 'award_id', name='unique_member_award_progress'),
    )

    def to_dict(self):
        return {
            'member_id': self.member_id,
            'award_id': self.award_id,
            'current_progress': self.current_progress or 0,
            'progress_percent': self.progress_percent or 0,
            'completed_milestones': self.completed_milestones or [],
            'last_updated': self.last_updated.isoformat() if self.last_updated else None,
        }


class MemberMilestoneReward(db.Model):
    """Payout record for one milestone level; at most one per member x award x level."""

    __tablename__ = 'member_milestone_rewards'

    id = db.Column(db.Integer, primary_key=True)
    member_id = db.Column(db.Integer, db.ForeignKey('members.id'), nullable=False)
    award_id = db.Column(db.Integer, db.ForeignKey('award_definitions.id'), nullable=False)

    level = db.Column(db.String(50), nullable=False)
    threshold = db.Column(db.Float)
    points_awarded = db.Column(db.Integer, default=0)
    reward = db.Column(db.String(100))

    awarded_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint('member_id', 'award_id', 'level', name='unique_member_milestone_reward'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'member_id': self.member_id,
            'award_id': self.award_id,
            'level': self.level,
            'threshold': self.threshold,
            'points_awarded': self.points_awarded or 0,
            'reward': self.reward,
            'awarded_at': self.awarded_at.isoformat() if self.awarded_at else None,
        }
