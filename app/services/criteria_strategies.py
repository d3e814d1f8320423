"""
Achievement criteria strategies.

Each criteria type turns a member's activity into one numeric progress
value, which the milestone engine then compares against thresholds.

    points_threshold        running points total
    event_count             checked-in event registrations
    training_completed      checked-in registrations for Training events
    project_count           completed projects the member led
    recruitment_count       recruitment ledger entries
    consecutive_attendance  completed chapter events attended in a row, newest first
    role_held               1 when the member holds criteria.role, else 0
    custom                  1 when criteria.conditions match the member, else 0

Timeframes other than lifetime count activity from the start of the current
calendar month, quarter or year (UTC).
"""
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Mapping, Optional

from ..models.activity import Event, EventRegistration, Project
from ..models.gamification import CriteriaType, Timeframe
from ..models.organization import Member
from ..models.points import PointsTransaction
from ..models.points_rule import RuleTrigger
from .condition_evaluator import matches

logger = logging.getLogger(__name__)

CHECKED_IN = 'checked_in'
COMPLETED = 'Completed'
TRAINING = 'Training'


def timeframe_start(timeframe: Optional[str], now: datetime = None) -> Optional[datetime]:
    """Start of the current calendar period, or None for lifetime."""
    if not timeframe or timeframe == Timeframe.LIFETIME.value:
        return None

    now = now or datetime.utcnow()
    if timeframe == Timeframe.MONTHLY.value:
        return datetime(now.year, now.month, 1)
    if timeframe == Timeframe.QUARTERLY.value:
        return datetime(now.year, 3 * ((now.month - 1) // 3) + 1, 1)
    if timeframe == Timeframe.YEARLY.value:
        return datetime(now.year, 1, 1)

    logger.warning(f"Unknown criteria timeframe '{timeframe}', counting lifetime activity")
    return None


class CriteriaEvaluator:
    """Computes current progress for an award definition's criteria."""

    def __init__(self, now: datetime = None):
        self.now = now
        self._strategies: Dict[str, Callable[[Member, Mapping, Optional[datetime]], float]] = {
            CriteriaType.POINTS_THRESHOLD.value: self._points_threshold,
            CriteriaType.EVENT_COUNT.value: self._event_count,
            CriteriaType.TRAINING_COMPLETED.value: self._training_completed,
            CriteriaType.PROJECT_COUNT.value: self._project_count,
            CriteriaType.RECRUITMENT_COUNT.value: self._recruitment_count,
            CriteriaType.CONSECUTIVE_ATTENDANCE.value: self._consecutive_attendance,
            CriteriaType.ROLE_HELD.value: self._role_held,
            CriteriaType.CUSTOM.value: self._custom,
        }

    def current_progress(self, criteria: Mapping, member: Member) -> float:
        """Progress value for the member under the given criteria."""
        criteria = criteria or {}
        strategy = self._strategies.get(criteria.get('type'))
        if strategy is None:
            logger.warning(f"Unknown criteria type '{criteria.get('type')}', progress is 0")
            return 0

        since = timeframe_start(criteria.get('timeframe'), self.now)
        return strategy(member, criteria, since)

    # ==================== Strategies ====================

    def _points_threshold(self, member, criteria, since):
        return member.points or 0

    def _attended(self, member, since):
        query = EventRegistration.query.join(Event, EventRegistration.event_id == Event.id).filter(
            EventRegistration.member_id == member.id,
            EventRegistration.status == CHECKED_IN,
        )
        if since:
            query = query.filter(Event.date >= since)
        return query

    def _event_count(self, member, criteria, since):
        return self._attended(member, since).count()

    def _training_completed(self, member, criteria, since):
        return self._attended(member, since).filter(Event.type == TRAINING).count()

    def _project_count(self, member, criteria, since):
        query = Project.query.filter(Project.lead_id == member.id, Project.status == COMPLETED)
        if since:
            query = query.filter(Project.completed_at >= since)
        return query.count()

    def _recruitment_count(self, member, criteria, since):
        query = PointsTransaction.query.filter(
            PointsTransaction.member_id == member.id,
            PointsTransaction.category == RuleTrigger.RECRUITMENT.value,
        )
        if since:
            query = query.filter(PointsTransaction.created_at >= since)
        return query.count()

    def _consecutive_attendance(self, member, criteria, since):
        events = Event.query.filter(
            Event.organization_id == member.organization_id,
            Event.status == COMPLETED,
        )
        if since:
            events = events.filter(Event.date >= since)
        events = events.order_by(Event.date.desc(), Event.id.desc()).all()

        attended = {
            r.event_id for r in EventRegistration.query.filter_by(member_id=member.id, status=CHECKED_IN)
        }

        streak = 0
        for event in events:
            if event.id not in attended:
                break
            streak += 1
        return streak

    def _role_held(self, member, criteria, since):
        roles = criteria.get('role')
        if isinstance(roles, str):
            roles = [roles]
        return 1 if member.role in (roles or []) else 0

    def _custom(self, member, criteria, since):
        payload: Dict[str, Any] = {'member': member.to_payload()}
        return 1 if matches(criteria.get('conditions') or [], payload) else 0
