"""
Raw activity records.

Events, check-ins, projects and finance entries are read (never written) by
the achievement criteria strategies and the incentive calculation routines.
"""
from datetime import datetime
from ..extensions import db


class Event(db.Model):
    """Chapter event (meeting, training, social, project activity)."""
    __tablename__ = 'events'

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey('organizations.id'), nullable=False)

    title = db.Column(db.String(255), nullable=False)
    type = db.Column(db.String(50), nullable=False)  # Meeting, Training, Social, Project, International
    status = db.Column(db.String(20), default='Upcoming')  # Upcoming, Completed, Cancelled
    date = db.Column(db.DateTime, nullable=False)
    attendee_count = db.Column(db.Integer, default=0)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    registrations = db.relationship('EventRegistration', backref='event', lazy='dynamic')

    def __repr__(self):
        return f'<Event {self.id}: {self.title}>'

    def to_dict(self):
        return {
            'id': self.id,
            'organization_id': self.organization_id,
            'title': self.title,
            'type': self.type,
            'status': self.status,
            'date': self.date.isoformat() if self.date else None,
            'attendee_count': self.attendee_count or 0,
        }


class EventRegistration(db.Model):
    """Member registration for an event; `checked_in` means attended."""
    __tablename__ = 'event_registrations'

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey('organizations.id'), nullable=False)
    event_id = db.Column(db.Integer, db.ForeignKey('events.id'), nullable=False)
    member_id = db.Column(db.Integer, db.ForeignKey('members.id'), nullable=False)

    status = db.Column(db.String(20), default='registered')  # registered, checked_in, cancelled
    checked_in_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint('event_id', 'member_id', name='uq_registration_event_member'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'event_id': self.event_id,
            'member_id': self.member_id,
            'status': self.status,
            'checked_in_at': self.checked_in_at.isoformat() if self.checked_in_at else None,
        }


class Project(db.Model):
    """Community project led by a member."""
    __tablename__ = 'projects'

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey('organizations.id'), nullable=False)

    name = db.Column(db.String(255), nullable=False)
    status = db.Column(db.String(20), default='Planning')  # Planning, Active, Completed, Cancelled
    lead_id = db.Column(db.Integer, db.ForeignKey('members.id'))
    team = db.Column(db.JSON, default=list)  # member ids

    start_date = db.Column(db.Date)
    completed_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'organization_id': self.organization_id,
            'name': self.name,
            'status': self.status,
            'lead_id': self.lead_id,
            'team': self.team or [],
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
        }


class FinanceTransaction(db.Model):
    """Chapter finance ledger entry (dues, sponsorships, expenses)."""
    __tablename__ = 'finance_transactions'

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey('organizations.id'), nullable=False)
    member_id = db.Column(db.Integer, db.ForeignKey('members.id'))

    category = db.Column(db.String(50), nullable=False)  # Membership, Projects, Administrative
    purpose = db.Column(db.String(100))  # e.g. 'National Due'
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    date = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'organization_id': self.organization_id,
            'member_id': self.member_id,
            'category': self.category,
            'purpose': self.purpose,
            'amount': float(self.amount) if self.amount is not None else 0,
            'date': self.date.isoformat() if self.date else None,
        }
