"""
Points ledger model.
"""
from datetime import datetime
from ..extensions import db


class PointsTransaction(db.Model):
    """
    One row per points award.

    Written only by PointsService.award_points, which also keeps
    Member.points and Member.tier in step with the ledger.

    Used for:
    - Rule executions (category = trigger, e.g. event_attendance)
    - Achievement completion bonuses
    - Milestone rewards
    - Admin adjustments
    """
    __tablename__ = 'points_transactions'

    id = db.Column(db.Integer, primary_key=True)
    member_id = db.Column(db.Integer, db.ForeignKey('members.id'), nullable=False)

    category = db.Column(db.String(50), nullable=False)
    amount = db.Column(db.Integer, nullable=False)
    description = db.Column(db.String(500))

    # What caused the award
    related_entity_id = db.Column(db.String(100))
    related_entity_type = db.Column(db.String(50))  # points_rule_execution, award, award_milestone

    balance_after = db.Column(db.Integer)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    member = db.relationship('Member', backref=db.backref('points_transactions', lazy='dynamic'))

    def __repr__(self):
        return f'<PointsTransaction {self.id}: {self.amount} pts for member {self.member_id}>'

    def to_dict(self):
        return {
            'id': self.id,
            'member_id': self.member_id,
            'category': self.category,
            'amount': self.amount,
            'description': self.description,
            'related_entity_id': self.related_entity_id,
            'related_entity_type': self.related_entity_type,
            'balance_after': self.balance_after,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }
