"""
Points rule models.

A PointsRule awards `point_value x multiplier x weight` points (rounded
half up) when every condition in its chain matches the trigger payload.
Each time a rule fires a PointsRuleExecution is written with a frozen copy
of the calculation, so later edits to the rule never change history.
"""
from datetime import datetime
from enum import Enum

from ..extensions import db


# ==================== Enums ====================

class RuleTrigger(str, Enum):
    """Kinds of activity that can fire points rules."""
    EVENT_ATTENDANCE = 'event_attendance'
    TASK_COMPLETION = 'task_completion'
    PROJECT_COMPLETION = 'project_completion'
    TRAINING_COMPLETION = 'training_completion'
    RECRUITMENT = 'recruitment'
    CUSTOM = 'custom'

    @classmethod
    def values(cls):
        return [t.value for t in cls]


# ==================== Models ====================

class PointsRule(db.Model):
    """
    Configurable points-awarding rule.

    `conditions` is an ordered list of
    {"field": "member.role", "operator": "equals", "value": "BOARD",
     "logical_operator": "AND"}
    """
    __tablename__ = 'points_rules'

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(100), unique=True)  # Stable reference for seeded rules

    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.String(500))
    trigger = db.Column(db.String(50), nullable=False, index=True)  # RuleTrigger

    conditions = db.Column(db.JSON, nullable=False, default=list)

    point_value = db.Column(db.Integer, nullable=False, default=0)
    multiplier = db.Column(db.Float, nullable=False, default=1.0)
    weight = db.Column(db.Float, nullable=False, default=1.0)

    enabled = db.Column(db.Boolean, default=True)

    created_by = db.Column(db.String(255))
    updated_by = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    executions = db.relationship('PointsRuleExecution', backref='rule', lazy='dynamic')

    def __repr__(self):
        return f'<PointsRule {self.id}: {self.name}>'

    def to_dict(self):
        return {
            'id': self.id,
            'code': self.code,
            'name': self.name,
            'description': self.description,
            'trigger': self.trigger,
            'conditions': self.conditions or [],
            'point_value': self.point_value,
            'multiplier': self.multiplier,
            'weight': self.weight,
            'enabled': self.enabled,
            'created_by': self.created_by,
            'updated_by': self.updated_by,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }


class PointsRuleExecution(db.Model):
    """
    Immutable record of one rule firing for one member.

    `calculation` is the breakdown as computed at execution time.
    A non-null `trigger_key` makes the execution unique per
    (rule, member, trigger_key) so replaying a trigger awards nothing twice.
    """
    __tablename__ = 'points_rule_executions'

    id = db.Column(db.Integer, primary_key=True)
    rule_id = db.Column(db.Integer, db.ForeignKey('points_rules.id'), nullable=False)
    member_id = db.Column(db.Integer, db.ForeignKey('members.id'), nullable=False)

    trigger = db.Column(db.String(50), nullable=False)
    trigger_key = db.Column(db.String(200))  # e.g. 'event:42'
    trigger_data = db.Column(db.JSON, default=dict)

    points_awarded = db.Column(db.Integer, nullable=False, default=0)
    calculation = db.Column(db.JSON, default=dict)
    points_transaction_id = db.Column(db.Integer, db.ForeignKey('points_transactions.id'))

    executed_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint('rule_id', 'member_id', 'trigger_key', name='uq_rule_execution_trigger'),
        db.Index('ix_rule_executions_member', 'member_id'),
    )

    def __repr__(self):
        return f'<PointsRuleExecution rule={self.rule_id} member={self.member_id} pts={self.points_awarded}>'

    def to_dict(self):
        return {
            'id': self.id,
            'rule_id': self.rule_id,
            'member_id': self.member_id,
            'trigger': self.trigger,
            'trigger_key': self.trigger_key,
            'trigger_data': self.trigger_data or {},
            'points_awarded': self.points_awarded,
            'calculation': self.calculation or {},
            'points_transaction_id': self.points_transaction_id,
            'executed_at': self.executed_at.isoformat() if self.executed_at else None,
        }
