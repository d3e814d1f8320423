"""
In-app notification log.
"""
from datetime import datetime
from ..extensions import db


class Notification(db.Model):
    """Message shown to a member in the app (award earned, milestone reached)."""
    __tablename__ = 'notifications'

    id = db.Column(db.Integer, primary_key=True)
    member_id = db.Column(db.Integer, db.ForeignKey('members.id'), nullable=False)

    title = db.Column(db.String(200), nullable=False)
    message = db.Column(db.String(1000))
    notification_type = db.Column(db.String(50), default='info')  # info, award, milestone, incentive
    is_read = db.Column(db.Boolean, default=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'member_id': self.member_id,
            'title': self.title,
            'message': self.message,
            'notification_type': self.notification_type,
            'is_read': self.is_read,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
