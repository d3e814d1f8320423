"""
Incentive Program Batch Runner.

Recalculates every automated standard (AUTO_SYSTEM or HYBRID with a logic
routine) of a program for one organization and reconciles the results with
stored submissions through the synchronizer.

Routines return {'quantity', 'score', 'milestones'?}:
- milestones on a tiered standard: only the highest-scoring one is synced
- milestones otherwise: each achieved milestone is synced on its own key,
  and a stored milestone no longer reached is synced back to zero
- no milestones: synced when quantity or score is positive, or when a
  submission already exists so a result that fell to zero is recorded

Each standard runs in its own error boundary. Rerunning is always safe.
"""
import re
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping

from flask import current_app

from ..extensions import db
from ..models.activity import Event, EventRegistration, FinanceTransaction
from ..models.incentive import IncentiveLogicId, IncentiveStandard
from ..models.organization import Member, Organization
from ..utils.exceptions import ConfigurationError, NotFoundError
from ..utils.numbers import to_number
from .award_sync import award_sync
from .incentive_service import incentive_service

FULL_MEMBER_ROLES = ('MEMBER', 'BOARD', 'ADMIN')

_LABEL_NUMBER = re.compile(r'\d+')


def milestone_threshold(milestone: Mapping) -> float:
    """logic_threshold, else the first number in the label, else 0."""
    threshold = milestone.get('logic_threshold')
    if threshold:
        return to_number(threshold)
    match = _LABEL_NUMBER.search(str(milestone.get('label', '')))
    return float(match.group()) if match else 0.0


def _milestone_points(milestone: Mapping) -> int:
    return int(milestone.get('points') or 0)


def _fallback_points(standard: IncentiveStandard, default: int = 0) -> int:
    milestones = standard.milestones or []
    if milestones and milestones[0].get('points'):
        return _milestone_points(milestones[0])
    return (standard.logic_params or {}).get('points') or default


def _parse_deadline(value):
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    deadline = datetime.fromisoformat(str(value))
    # A bare date covers the whole day
    if len(str(value)) == 10:
        deadline = deadline.replace(hour=23, minute=59, second=59)
    return deadline


class IncentiveCalculator:
    """Dispatches automated standards to their calculation routines."""

    def __init__(self):
        self._routines: Dict[str, Callable[[int, IncentiveStandard], Dict[str, Any]]] = {
            IncentiveLogicId.MEMBERSHIP_CONVERSION.value: self.calc_membership_conversion,
            IncentiveLogicId.DUES_PAYMENT.value: self.calc_dues_payment,
            IncentiveLogicId.BOARD_MEETINGS.value: self.calc_board_meetings,
            IncentiveLogicId.MEMBERSHIP_GROWTH.value: self.calc_membership_growth,
            IncentiveLogicId.EVENT_ATTENDANCE.value: self.calc_event_attendance,
            IncentiveLogicId.EVENT_MILESTONES.value: self.calc_event_milestones,
        }

    # ==================== Entry Point ====================

    def calculate_all(self, organization_id: int, program_id: int) -> Dict[str, Any]:
        """
        Recalculate all automated standards of a program for an organization.

        Returns:
            {standards, processed, skipped, errors, results}
        """
        if not db.session.get(Organization, organization_id):
            raise NotFoundError('Organization', organization_id)
        program = incentive_service.get_program(program_id)

        standards = [
            s for s in incentive_service.list_standards(program.id)
            if s.is_automated and s.auto_logic_id
        ]
        summary = {
            'standards': len(standards),
            'processed': 0,
            'skipped': 0,
            'errors': [],
            'results': [],
        }

        for standard in standards:
            try:
                outcome = self.execute_logic(organization_id, standard)
            except Exception as e:
                db.session.rollback()
                current_app.logger.error(
                    f"Incentive standard {standard.id} ({standard.auto_logic_id}) failed "
                    f"for organization {organization_id}: {e}"
                )
                summary['errors'].append({'standard_id': standard.id, 'error': str(e)})
                continue

            if outcome is None:
                summary['skipped'] += 1
                continue
            summary['processed'] += 1
            summary['results'].append(outcome)

        incentive_service.recalculate_star_progress(organization_id, program.id)

        current_app.logger.info(
            f"Incentive calculation for organization {organization_id} program {program.code}: "
            f"{summary['processed']} processed, {summary['skipped']} skipped, {len(summary['errors'])} failed"
        )
        return summary

    def execute_logic(self, organization_id: int, standard: IncentiveStandard):
        """
        Run one standard's routine and sync its result.

        Returns:
            {'standard_id', 'logic', 'quantity', 'score', 'writes'} or None
            when no routine applies
        """
        routine = self._routines.get(standard.auto_logic_id)
        if routine is None:
            if any(m.get('activity_type') for m in standard.milestones or []):
                routine = self.calc_event_milestones
            else:
                current_app.logger.warning(
                    f"Incentive logic '{standard.auto_logic_id}' is not implemented, "
                    f"standard {standard.id} skipped"
                )
                return None

        result = routine(organization_id, standard)
        quantity = result.get('quantity', 0)
        score = result.get('score', 0)
        milestones = result.get('milestones') or []
        writes = []

        if milestones:
            if standard.is_tiered:
                highest = max(milestones, key=_milestone_points)
                writes.append(award_sync.sync_submission(
                    organization_id, standard, quantity, _milestone_points(highest)
                ))
            else:
                for milestone in milestones:
                    writes.append(award_sync.sync_submission(
                        organization_id, standard, 1, _milestone_points(milestone), milestone.get('id')
                    ))
        elif quantity > 0 or score > 0 or award_sync.find_submission(organization_id, standard):
            writes.append(award_sync.sync_submission(organization_id, standard, quantity, score))

        # Milestones no longer reached drop back to zero
        if 'milestones' in result and not standard.is_tiered:
            reached = {m.get('id') for m in milestones}
            for milestone in standard.milestones or []:
                key = milestone.get('id')
                if key and key not in reached and award_sync.find_submission(organization_id, standard, key):
                    writes.append(award_sync.sync_submission(organization_id, standard, 0, 0, key))

        return {
            'standard_id': standard.id,
            'logic': standard.auto_logic_id,
            'quantity': quantity,
            'score': score,
            'writes': writes,
        }

    # ==================== Routines ====================

    def calc_membership_conversion(self, organization_id: int, standard: IncentiveStandard) -> Dict[str, Any]:
        """Share of people in the chapter who are full members."""
        members = Member.query.filter_by(organization_id=organization_id).all()
        if not members:
            return {'quantity': 0, 'score': 0}

        full_members = [m for m in members if m.role in FULL_MEMBER_ROLES]
        ratio = round(len(full_members) / len(members) * 100, 2)

        if standard.milestones:
            achieved = [m for m in standard.milestones if ratio >= milestone_threshold(m)]
            return {'quantity': ratio, 'score': 0, 'milestones': achieved}

        target = (standard.logic_params or {}).get('target_percent') or 60
        if ratio >= target:
            return {'quantity': 1, 'score': _fallback_points(standard)}
        return {'quantity': 0, 'score': 0}

    def calc_dues_payment(self, organization_id: int, standard: IncentiveStandard) -> Dict[str, Any]:
        """National dues paid (before the deadline when one is set)."""
        query = FinanceTransaction.query.filter_by(
            organization_id=organization_id,
            category='Membership',
            purpose='National Due',
        )
        deadline = _parse_deadline((standard.logic_params or {}).get('deadline'))
        if deadline:
            query = query.filter(FinanceTransaction.date <= deadline)

        if query.first() is None:
            return {'quantity': 0, 'score': 0}
        return {'quantity': 1, 'score': _fallback_points(standard)}

    def calc_board_meetings(self, organization_id: int, standard: IncentiveStandard) -> Dict[str, Any]:
        """Completed board meetings against the required minimum."""
        count = Event.query.filter_by(
            organization_id=organization_id, type='Meeting', status='Completed'
        ).count()
        required = (standard.logic_params or {}).get('min_meetings') or 8

        if count >= required:
            return {'quantity': count, 'score': _fallback_points(standard)}
        return {'quantity': 0, 'score': 0}

    def calc_membership_growth(self, organization_id: int, standard: IncentiveStandard) -> Dict[str, Any]:
        """Headcount growth over the baseline, in percent."""
        current_count = Member.query.filter_by(organization_id=organization_id).count()
        params = standard.logic_params or {}
        baseline = params.get('baseline_count') or 20
        target = params.get('target_percent') or 10
        if baseline < 0:
            raise ConfigurationError(f"Standard {standard.id} has a negative baseline_count")

        growth = (current_count - baseline) / baseline * 100
        if growth >= target:
            return {'quantity': current_count - baseline, 'score': _fallback_points(standard, default=20)}
        return {'quantity': 0, 'score': 0}

    def calc_event_attendance(self, organization_id: int, standard: IncentiveStandard) -> Dict[str, Any]:
        """Check-ins times points per check-in, capped by the standard's point cap."""
        count = EventRegistration.query.filter_by(
            organization_id=organization_id, status='checked_in'
        ).count()
        points = count * _fallback_points(standard, default=5)
        if standard.point_cap:
            points = min(points, standard.point_cap)
        return {'quantity': count, 'score': points}

    def calc_event_milestones(self, organization_id: int, standard: IncentiveStandard) -> Dict[str, Any]:
        """Milestones satisfied by at least one completed event of the right type and size."""
        milestones = standard.milestones or []
        if not milestones:
            return {'quantity': 0, 'score': 0}

        events = Event.query.filter_by(organization_id=organization_id, status='Completed').all()

        achieved: List[Mapping] = []
        for milestone in milestones:
            activity_type = milestone.get('activity_type')
            if not activity_type:
                continue
            min_participants = milestone.get('min_participants') or 0
            if any(e.type == activity_type and (e.attendee_count or 0) >= min_participants for e in events):
                achieved.append(milestone)

        return {'quantity': len(achieved), 'score': 0, 'milestones': achieved}


# Singleton instance
incentive_calculator = IncentiveCalculator()
