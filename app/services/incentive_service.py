"""
Incentive Service for ChapterHub.

Incentive programs, their standards, human submissions and the star
progress roll-up.

Star progress is recomputed from scratch from all approved submissions
each time, so it converges no matter how often system submissions are
overwritten. A category earns its star once its approved score reaches the
category's min_score (250 unless the program says otherwise).
"""
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models.incentive import (
    IncentiveLogicId,
    IncentiveProgram,
    IncentiveStandard,
    IncentiveSubmission,
    StarProgress,
    SubmissionSource,
    SubmissionStatus,
    VerificationType,
)
from ..models.organization import Organization
from ..utils.exceptions import (
    DuplicateError,
    InvalidStatusTransitionError,
    NotFoundError,
    ValidationError,
)
from ..utils.numbers import is_number, round_half_up

DEFAULT_MIN_SCORE = 250


def _min_score_default() -> int:
    return current_app.config.get('DEFAULT_STAR_MIN_SCORE', DEFAULT_MIN_SCORE)


def validate_standard(data: Mapping) -> List[str]:
    """Itemized problems with a standard definition; empty list when valid."""
    errors = []
    if not data.get('title'):
        errors.append('Title is required')
    if not data.get('category'):
        errors.append('Category is required')

    verification_type = data.get('verification_type', VerificationType.MANUAL_UPLOAD.value)
    if verification_type not in VerificationType.values():
        errors.append(f"Unknown verification type '{verification_type}'")

    logic_id = data.get('auto_logic_id')
    if logic_id and logic_id not in [l.value for l in IncentiveLogicId]:
        errors.append(f"Unknown logic id '{logic_id}'")

    point_cap = data.get('point_cap')
    if point_cap is not None and (not is_number(point_cap) or point_cap < 0):
        errors.append('Point cap must be a non-negative number')

    milestones = data.get('milestones') or []
    if not isinstance(milestones, list):
        errors.append('Milestones must be a list')
        return errors

    seen = set()
    for index, milestone in enumerate(milestones):
        prefix = f'Milestone {index + 1}'
        if not isinstance(milestone, Mapping):
            errors.append(f'{prefix}: must be an object')
            continue
        milestone_id = milestone.get('id')
        if not milestone_id:
            errors.append(f'{prefix}: Id is required')
        elif milestone_id in seen:
            errors.append(f"{prefix}: Duplicate id '{milestone_id}'")
        else:
            seen.add(milestone_id)
        points = milestone.get('points', 0)
        if not is_number(points) or points < 0:
            errors.append(f'{prefix}: Points must be a non-negative number')

    return errors


class IncentiveService:
    """Programs, standards, submissions and star progress."""

    PROGRAM_FIELDS = ('name', 'year', 'categories', 'is_active')
    STANDARD_FIELDS = (
        'code', 'category', 'title', 'description', 'display_order', 'verification_type',
        'auto_logic_id', 'logic_params', 'milestones', 'point_cap', 'is_tiered',
    )

    # ==================== Programs ====================

    def list_programs(self, active_only: bool = False) -> List[IncentiveProgram]:
        query = IncentiveProgram.query
        if active_only:
            query = query.filter_by(is_active=True)
        return query.order_by(IncentiveProgram.year.desc(), IncentiveProgram.id).all()

    def get_program(self, program_id: int) -> IncentiveProgram:
        program = db.session.get(IncentiveProgram, program_id)
        if not program:
            raise NotFoundError('Incentive program', program_id)
        return program

    def create_program(self, data: Mapping) -> IncentiveProgram:
        errors = []
        if not data.get('code'):
            errors.append('Code is required')
        if not data.get('name'):
            errors.append('Name is required')
        if not isinstance(data.get('year'), int):
            errors.append('Year must be an integer')
        if errors:
            raise ValidationError('Invalid incentive program', errors=errors)
        if IncentiveProgram.query.filter_by(code=data['code']).first():
            raise DuplicateError('Incentive program', f"code {data['code']}")

        program = IncentiveProgram(code=data['code'])
        for field in self.PROGRAM_FIELDS:
            if field in data:
                setattr(program, field, data[field])
        db.session.add(program)
        db.session.commit()
        current_app.logger.info(f"Incentive program created: {program.code}")
        return program

    def update_program(self, program_id: int, data: Mapping) -> IncentiveProgram:
        program = self.get_program(program_id)
        for field in self.PROGRAM_FIELDS:
            if field in data:
                setattr(program, field, data[field])
        db.session.commit()
        return program

    # ==================== Standards ====================

    def list_standards(self, program_id: int) -> List[IncentiveStandard]:
        return IncentiveStandard.query.filter_by(program_id=program_id).order_by(
            IncentiveStandard.category, IncentiveStandard.display_order, IncentiveStandard.id
        ).all()

    def get_standard(self, standard_id: int) -> IncentiveStandard:
        standard = db.session.get(IncentiveStandard, standard_id)
        if not standard:
            raise NotFoundError('Incentive standard', standard_id)
        return standard

    def create_standard(self, program_id: int, data: Mapping) -> IncentiveStandard:
        program = self.get_program(program_id)
        errors = validate_standard(data)
        categories = program.categories or {}
        if categories and data.get('category') and data['category'] not in categories:
            errors.append(f"Category '{data['category']}' is not defined in program {program.code}")
        if errors:
            raise ValidationError('Invalid incentive standard', errors=errors)

        standard = IncentiveStandard(program_id=program.id)
        for field in self.STANDARD_FIELDS:
            if field in data:
                setattr(standard, field, data[field])
        db.session.add(standard)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise DuplicateError('Incentive standard', f"code {data.get('code')}")
        return standard

    def update_standard(self, standard_id: int, data: Mapping) -> IncentiveStandard:
        standard = self.get_standard(standard_id)
        merged = standard.to_dict()
        merged.update({k: v for k, v in data.items() if k in self.STANDARD_FIELDS})
        errors = validate_standard(merged)
        if errors:
            raise ValidationError('Invalid incentive standard', errors=errors)

        for field in self.STANDARD_FIELDS:
            if field in data:
                setattr(standard, field, data[field])
        db.session.commit()
        return standard

    # ==================== Submissions ====================

    def list_submissions(
        self,
        organization_id: int = None,
        program_id: int = None,
        status: str = None,
    ) -> List[IncentiveSubmission]:
        query = IncentiveSubmission.query
        if organization_id:
            query = query.filter(IncentiveSubmission.organization_id == organization_id)
        if program_id:
            query = query.join(IncentiveStandard).filter(IncentiveStandard.program_id == program_id)
        if status:
            query = query.filter(IncentiveSubmission.status == status)
        return query.order_by(IncentiveSubmission.created_at.desc(), IncentiveSubmission.id.desc()).all()

    def get_submission(self, submission_id: int) -> IncentiveSubmission:
        submission = db.session.get(IncentiveSubmission, submission_id)
        if not submission:
            raise NotFoundError('Incentive submission', submission_id)
        return submission

    def submit_claim(
        self,
        organization_id: int,
        standard_id: int,
        data: Mapping,
        submitted_by: str = None,
    ) -> IncentiveSubmission:
        """
        Record a human submission for review.

        Raises:
            DuplicateError: a submission already exists for this
                organization, standard and milestone
        """
        if not db.session.get(Organization, organization_id):
            raise NotFoundError('Organization', organization_id)
        standard = self.get_standard(standard_id)

        milestone_id = data.get('milestone_id') or ''
        milestone = None
        if milestone_id:
            milestone = next((m for m in standard.milestones or [] if m.get('id') == milestone_id), None)
            if milestone is None:
                raise ValidationError(f"Unknown milestone '{milestone_id}'", field='milestone_id')

        quantity = data.get('quantity', 1)
        if not is_number(quantity) or quantity < 0:
            raise ValidationError('Quantity must be a non-negative number', field='quantity')

        score = data.get('score_awarded')
        if score is None:
            score = (milestone or {}).get('points', 0)
        if not is_number(score) or score < 0:
            raise ValidationError('Score must be a non-negative number', field='score_awarded')

        if IncentiveSubmission.query.filter_by(
            organization_id=organization_id, standard_id=standard.id, milestone_key=milestone_id
        ).first():
            raise DuplicateError('Incentive submission', f'standard {standard.id} milestone {milestone_id or "-"}')

        submission = IncentiveSubmission(
            organization_id=organization_id,
            standard_id=standard.id,
            milestone_key=milestone_id,
            quantity=float(quantity),
            score_awarded=round_half_up(score),
            status=SubmissionStatus.PENDING.value,
            source=SubmissionSource.MANUAL.value,
            evidence_text=data.get('evidence_text'),
            evidence_files=list(data.get('evidence_files') or []),
            submitted_by=submitted_by,
        )
        db.session.add(submission)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise DuplicateError('Incentive submission', f'standard {standard.id} milestone {milestone_id or "-"}')

        current_app.logger.info(
            f"Incentive claim submitted: org {organization_id} standard {standard.id} by {submitted_by or 'unknown'}"
        )
        return submission

    def approve_submission(self, submission_id: int, reviewed_by: str = None, score: Any = None) -> IncentiveSubmission:
        submission = self.get_submission(submission_id)
        if submission.status != SubmissionStatus.PENDING.value:
            raise InvalidStatusTransitionError('submission', submission.status, SubmissionStatus.APPROVED.value)

        if score is not None:
            if not is_number(score) or score < 0:
                raise ValidationError('Score must be a non-negative number', field='score')
            submission.score_awarded = round_half_up(score)

        submission.status = SubmissionStatus.APPROVED.value
        submission.reviewed_by = reviewed_by
        submission.reviewed_at = datetime.utcnow()
        db.session.commit()

        self.recalculate_star_progress(submission.organization_id, submission.standard.program_id)
        return submission

    def reject_submission(self, submission_id: int, reviewed_by: str = None, reason: str = None) -> IncentiveSubmission:
        submission = self.get_submission(submission_id)
        if submission.status == SubmissionStatus.REJECTED.value:
            raise InvalidStatusTransitionError('submission', submission.status, SubmissionStatus.REJECTED.value)

        was_approved = submission.status == SubmissionStatus.APPROVED.value
        submission.status = SubmissionStatus.REJECTED.value
        submission.reviewed_by = reviewed_by
        submission.reviewed_at = datetime.utcnow()
        submission.rejection_reason = reason
        db.session.commit()

        if was_approved:
            self.recalculate_star_progress(submission.organization_id, submission.standard.program_id)
        return submission

    # ==================== Star Progress ====================

    def get_star_progress(self, organization_id: int, program_id: int) -> Optional[StarProgress]:
        return StarProgress.query.filter_by(organization_id=organization_id, program_id=program_id).first()

    def recalculate_star_progress(self, organization_id: int, program_id: int) -> StarProgress:
        """Rebuild category totals and stars from every approved submission."""
        program = self.get_program(program_id)
        default_min = _min_score_default()

        approved = IncentiveSubmission.query.join(IncentiveStandard).filter(
            IncentiveSubmission.organization_id == organization_id,
            IncentiveStandard.program_id == program.id,
            IncentiveSubmission.status == SubmissionStatus.APPROVED.value,
        ).all()

        totals: Dict[str, int] = {name: 0 for name in (program.categories or {})}
        for submission in approved:
            category = submission.standard.category
            totals[category] = totals.get(category, 0) + (submission.score_awarded or 0)

        categories = {}
        for name, current in totals.items():
            min_score = (program.categories or {}).get(name, {}).get('min_score') or default_min
            categories[name] = {
                'current': current,
                'total': min_score,
                'stars': 1 if current >= min_score else 0,
            }
        stars = sum(c['stars'] for c in categories.values())

        progress = self.get_star_progress(organization_id, program.id)
        previous_stars = progress.stars_unlocked if progress else 0
        if not progress:
            progress = StarProgress(organization_id=organization_id, program_id=program.id, year=program.year)
            db.session.add(progress)

        progress.categories = categories
        progress.total_points = sum(totals.values())
        progress.stars_unlocked = stars
        progress.last_updated = datetime.utcnow()
        try:
            db.session.commit()
        except IntegrityError:
            # Another writer created the row first; recompute onto it
            db.session.rollback()
            return self.recalculate_star_progress(organization_id, program_id)

        if stars > (previous_stars or 0):
            current_app.logger.info(
                f"Organization {organization_id} unlocked {stars - (previous_stars or 0)} star(s) in {program.code}"
            )
        return progress


# Singleton instance
incentive_service = IncentiveService()
