"""
Incentive program models.

A program (one per year) groups standards into star categories. Each
standard is satisfied by submissions per organization; approved submission
scores roll up into StarProgress.
"""
from datetime import datetime
from enum import Enum

from ..extensions import db


# ==================== Enums ====================

class VerificationType(str, Enum):
    """How a standard is verified."""
    MANUAL_UPLOAD = 'MANUAL_UPLOAD'
    AUTO_SYSTEM = 'AUTO_SYSTEM'
    HYBRID = 'HYBRID'

    @classmethod
    def values(cls):
        return [v.value for v in cls]


class IncentiveLogicId(str, Enum):
    """Named calculation routines for automated standards."""
    MEMBERSHIP_CONVERSION = 'efficient_membership_conversion'
    DUES_PAYMENT = 'efficient_dues_payment'
    BOARD_MEETINGS = 'efficient_bod_meetings'
    MEMBERSHIP_GROWTH = 'efficient_membership_growth'
    EVENT_ATTENDANCE = 'network_event_attendance'
    EVENT_MILESTONES = 'event_milestones'


class SubmissionStatus(str, Enum):
    PENDING = 'PENDING'
    APPROVED = 'APPROVED'
    REJECTED = 'REJECTED'


class SubmissionSource(str, Enum):
    """Who produced a submission. Only system rows may be overwritten by recalculation."""
    SYSTEM = 'system'
    MANUAL = 'manual'


# ==================== Models ====================

class IncentiveProgram(db.Model):
    """
    Yearly incentive program.

    categories: {"efficient": {"label": "Efficient Star", "min_score": 100},
                 "network": {"label": "Network Star", "min_score": 250}}
    """
    __tablename__ = 'incentive_programs'

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(50), unique=True, nullable=False)  # '2026_MY'
    name = db.Column(db.String(255), nullable=False)
    year = db.Column(db.Integer, nullable=False)
    categories = db.Column(db.JSON, default=dict)
    is_active = db.Column(db.Boolean, default=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    standards = db.relationship('IncentiveStandard', backref='program', lazy='dynamic')

    def __repr__(self):
        return f'<IncentiveProgram {self.code}>'

    def to_dict(self):
        return {
            'id': self.id,
            'code': self.code,
            'name': self.name,
            'year': self.year,
            'categories': self.categories or {},
            'is_active': self.is_active,
        }


class IncentiveStandard(db.Model):
    """
    One scorable standard within a program.

    milestones: [{"id": "ms1", "label": "60% conversion", "points": 20,
                  "logic_threshold": 60, "activity_type": "Training",
                  "min_participants": 30, "deadline": "2026-03-31"}]
    """
    __tablename__ = 'incentive_standards'

    id = db.Column(db.Integer, primary_key=True)
    program_id = db.Column(db.Integer, db.ForeignKey('incentive_programs.id'), nullable=False)
    code = db.Column(db.String(100))

    category = db.Column(db.String(50), nullable=False)  # efficient, network, experience, outreach, impact
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    display_order = db.Column(db.Integer, default=0)

    verification_type = db.Column(db.String(20), default=VerificationType.MANUAL_UPLOAD.value)
    auto_logic_id = db.Column(db.String(100))
    logic_params = db.Column(db.JSON, default=dict)  # target_percent, min_meetings, baseline_count, deadline

    milestones = db.Column(db.JSON, default=list)
    point_cap = db.Column(db.Integer)
    is_tiered = db.Column(db.Boolean, default=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint('program_id', 'code', name='uq_standard_program_code'),
    )

    @property
    def is_automated(self) -> bool:
        return self.verification_type in (VerificationType.AUTO_SYSTEM.value, VerificationType.HYBRID.value)

    def to_dict(self):
        return {
            'id': self.id,
            'program_id': self.program_id,
            'code': self.code,
            'category': self.category,
            'title': self.title,
            'description': self.description,
            'display_order': self.display_order,
            'verification_type': self.verification_type,
            'auto_logic_id': self.auto_logic_id,
            'logic_params': self.logic_params or {},
            'milestones': self.milestones or [],
            'point_cap': self.point_cap,
            'is_tiered': bool(self.is_tiered),
        }


class IncentiveSubmission(db.Model):
    """
    Outcome of a standard for one organization (and optionally one milestone).

    `milestone_key` is '' for whole-standard submissions so the natural key
    (organization, standard, milestone_key) stays unique in every backend.
    """
    __tablename__ = 'incentive_submissions'

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey('organizations.id'), nullable=False)
    standard_id = db.Column(db.Integer, db.ForeignKey('incentive_standards.id'), nullable=False)
    milestone_key = db.Column(db.String(100), nullable=False, default='')

    quantity = db.Column(db.Float, default=0)
    score_awarded = db.Column(db.Integer, default=0)

    status = db.Column(db.String(20), default=SubmissionStatus.PENDING.value)
    source = db.Column(db.String(20), nullable=False, default=SubmissionSource.MANUAL.value)
    evidence_text = db.Column(db.Text)
    evidence_files = db.Column(db.JSON, default=list)

    submitted_by = db.Column(db.String(255))
    reviewed_by = db.Column(db.String(255))
    reviewed_at = db.Column(db.DateTime)
    rejection_reason = db.Column(db.String(500))

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    standard = db.relationship('IncentiveStandard', backref=db.backref('submissions', lazy='dynamic'))

    __table_args__ = (
        db.UniqueConstraint('organization_id', 'standard_id', 'milestone_key', name='uq_submission_natural_key'),
    )

    def __repr__(self):
        return f'<IncentiveSubmission {self.id}: org={self.organization_id} standard={self.standard_id}>'

    @property
    def is_system_generated(self) -> bool:
        return self.source == SubmissionSource.SYSTEM.value

    def to_dict(self):
        return {
            'id': self.id,
            'organization_id': self.organization_id,
            'standard_id': self.standard_id,
            'milestone_id': self.milestone_key or None,
            'quantity': self.quantity or 0,
            'score_awarded': self.score_awarded or 0,
            'status': self.status,
            'source': self.source,
            'evidence_text': self.evidence_text,
            'evidence_files': self.evidence_files or [],
            'submitted_by': self.submitted_by,
            'reviewed_by': self.reviewed_by,
            'reviewed_at': self.reviewed_at.isoformat() if self.reviewed_at else None,
            'rejection_reason': self.rejection_reason,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }


class StarProgress(db.Model):
    """
    Star totals for an organization within a program.

    categories: {"network": {"current": 260, "total": 250, "stars": 1}}
    """
    __tablename__ = 'star_progress'

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey('organizations.id'), nullable=False)
    program_id = db.Column(db.Integer, db.ForeignKey('incentive_programs.id'), nullable=False)
    year = db.Column(db.Integer, nullable=False)

    categories = db.Column(db.JSON, default=dict)
    total_points = db.Column(db.Integer, default=0)
    stars_unlocked = db.Column(db.Integer, default=0)

    last_updated = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint('organization_id', 'program_id', name='uq_star_progress_org_program'),
    )

    def to_dict(self):
        return {
            'organization_id': self.organization_id,
            'program_id': self.program_id,
            'year': self.year,
            'categories': self.categories or {},
            'total_points': self.total_points or 0,
            'stars_unlocked': self.stars_unlocked or 0,
            'last_updated': self.last_updated.isoformat() if self.last_updated else None,
        }
