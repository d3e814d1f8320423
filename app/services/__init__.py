"""
Business logic services for ChapterHub.
"""
from .points_service import PointsService, points_service
from .points_rule_service import PointsRuleService, points_rule_service
from .gamification_service import GamificationService, gamification_service
from .incentive_service import IncentiveService, incentive_service
from .incentive_calculator import IncentiveCalculator, incentive_calculator

__all__ = [
    'PointsService',
    'points_service',
    'PointsRuleService',
    'points_rule_service',
    'GamificationService',
    'gamification_service',
    'IncentiveService',
    'incentive_service',
    'IncentiveCalculator',
    'incentive_calculator',
]
