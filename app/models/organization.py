"""
Organization and Member models.
"""
from datetime import datetime
from ..extensions import db


class Organization(db.Model):
    """
    Local organization (chapter).
    Members, activity and incentive submissions all belong to one.
    """
    __tablename__ = 'organizations'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    code = db.Column(db.String(50), unique=True, nullable=False)  # e.g. 'JCI-KL'

    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    members = db.relationship('Member', backref='organization', lazy='dynamic')

    def __repr__(self):
        return f'<Organization {self.code}>'

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'code': self.code,
            'is_active': self.is_active,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class Member(db.Model):
    """
    Chapter member.

    `points`, `tier` and `badges` are denormalized aggregates maintained by
    the points ledger and the award synchronizer; never edit them directly.
    """
    __tablename__ = 'members'

    ROLES = ('GUEST', 'PROBATION', 'MEMBER', 'BOARD', 'ADMIN')

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey('organizations.id'), nullable=False)

    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), default='PROBATION')  # GUEST, PROBATION, MEMBER, BOARD, ADMIN
    status = db.Column(db.String(20), default='active')  # active, inactive, alumni

    # Gamification aggregates
    points = db.Column(db.Integer, default=0, nullable=False)
    tier = db.Column(db.String(20), default='Bronze', nullable=False)
    badges = db.Column(db.JSON, default=list)
    # Example: [{"id": "first-event", "name": "First Steps", "icon": "target", "earned_date": "..."}]

    join_date = db.Column(db.Date)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint('organization_id', 'email', name='uq_member_org_email'),
    )

    def __repr__(self):
        return f'<Member {self.id}: {self.name}>'

    def has_badge(self, badge_id: str) -> bool:
        return any(b.get('id') == badge_id for b in (self.badges or []))

    def to_payload(self) -> dict:
        """Plain attribute tree used as condition-evaluation input."""
        return {
            'id': self.id,
            'organization_id': self.organization_id,
            'name': self.name,
            'email': self.email,
            'role': self.role,
            'status': self.status,
            'points': self.points or 0,
            'tier': self.tier,
            'badge_count': len(self.badges or []),
        }

    def to_dict(self):
        return {
            'id': self.id,
            'organization_id': self.organization_id,
            'name': self.name,
            'email': self.email,
            'role': self.role,
            'status': self.status,
            'points': self.points or 0,
            'tier': self.tier,
            'badges': self.badges or [],
            'join_date': self.join_date.isoformat() if self.join_date else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
