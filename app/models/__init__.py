"""
Database models for ChapterHub.
Members, chapter activity, points rules, awards and incentive programs.
"""
from .organization import Organization, Member
from .activity import Event, EventRegistration, Project, FinanceTransaction
from .points import PointsTransaction
from .points_rule import RuleTrigger, PointsRule, PointsRuleExecution
from .gamification import (
    CriteriaType,
    Timeframe,
    BINARY_CRITERIA,
    AwardDefinition,
    MemberAward,
    MemberAwardProgress,
    MemberMilestoneReward,
)
from .incentive import (
    VerificationType,
    IncentiveLogicId,
    SubmissionStatus,
    SubmissionSource,
    IncentiveProgram,
    IncentiveStandard,
    IncentiveSubmission,
    StarProgress,
)
from .notification import Notification

__all__ = [
    'Organization',
    'Member',
    # Activity
    'Event',
    'EventRegistration',
    'Project',
    'FinanceTransaction',
    # Points
    'PointsTransaction',
    'RuleTrigger',
    'PointsRule',
    'PointsRuleExecution',
    # Gamification
    'CriteriaType',
    'Timeframe',
    'BINARY_CRITERIA',
    'AwardDefinition',
    'MemberAward',
    'MemberAwardProgress',
    'MemberMilestoneReward',
    # Incentive programs
    'VerificationType',
    'IncentiveLogicId',
    'SubmissionStatus',
    'SubmissionSource',
    'IncentiveProgram',
    'IncentiveStandard',
    'IncentiveSubmission',
    'StarProgress',
    'Notification',
]
