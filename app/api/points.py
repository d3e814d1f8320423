"""
Points API endpoints for ChapterHub.

Handles:
- Member points summary (total, tier, next tier)
- Points history
- Leaderboard
"""
from flask import Blueprint, request, jsonify

from ..services.points_service import points_service

points_bp = Blueprint('points', __name__)


@points_bp.route('/members/<int:member_id>', methods=['GET'])
def member_summary(member_id):
    """Running total, tier and distance to the next tier."""
    return jsonify({'success': True, **points_service.get_member_summary(member_id)})


@points_bp.route('/members/<int:member_id>/history', methods=['GET'])
def member_history(member_id):
    """
    Points history, newest first.

    Query params:
        limit: Page size (default 50, max 200)
        offset: Rows to skip
    """
    limit = min(request.args.get('limit', 50, type=int), 200)
    offset = max(request.args.get('offset', 0, type=int), 0)
    return jsonify({'success': True, **points_service.get_member_points(member_id, limit=limit, offset=offset)})


@points_bp.route('/leaderboard', methods=['GET'])
def leaderboard():
    limit = min(request.args.get('limit', 10, type=int), 100)
    entries = points_service.get_leaderboard(
        organization_id=request.args.get('organization_id', type=int),
        limit=limit,
    )
    return jsonify({'success': True, 'leaderboard': entries})
