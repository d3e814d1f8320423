"""
Gamification API Endpoints

Award definitions, manual grants and member achievement progress.
"""
from flask import Blueprint, request, jsonify

from ..services.gamification_service import gamification_service
from ..utils.errors import bad_request, ErrorCode

gamification_bp = Blueprint('gamification', __name__)


def _actor():
    return request.headers.get('X-Staff-Email')


# Award Definition Endpoints
@gamification_bp.route('/awards', methods=['GET'])
def list_awards():
    """List award definitions."""
    include_inactive = request.args.get('include_inactive', 'false').lower() == 'true'
    awards = gamification_service.list_awards(include_inactive=include_inactive)

    return jsonify({
        'success': True,
        'awards': [a.to_dict() for a in awards],
    })


@gamification_bp.route('/awards', methods=['POST'])
def create_award():
    """Create a new award definition."""
    data = request.get_json(silent=True)
    if not data:
        return bad_request('No data provided', ErrorCode.MISSING_FIELD)

    award = gamification_service.create_award(data)
    return jsonify({
        'success': True,
        'award': award.to_dict(),
    }), 201


@gamification_bp.route('/awards/<int:award_id>', methods=['GET'])
def get_award(award_id):
    award = gamification_service.get_award(award_id)
    return jsonify({'success': True, 'award': award.to_dict()})


@gamification_bp.route('/awards/<int:award_id>', methods=['PUT'])
def update_award(award_id):
    data = request.get_json(silent=True)
    if not data:
        return bad_request('No data provided', ErrorCode.MISSING_FIELD)

    award = gamification_service.update_award(award_id, data)
    return jsonify({'success': True, 'award': award.to_dict()})


@gamification_bp.route('/awards/<int:award_id>', methods=['DELETE'])
def delete_award(award_id):
    """Deactivate an award definition (earned awards are kept)."""
    award = gamification_service.delete_award(award_id)
    return jsonify({'success': True, 'award': award.to_dict()})


@gamification_bp.route('/awards/<int:award_id>/grant', methods=['POST'])
def grant_award(award_id):
    """Manually grant an award to a member."""
    data = request.get_json(silent=True) or {}
    member_id = data.get('member_id')
    if not isinstance(member_id, int):
        return bad_request('member_id is required', ErrorCode.MISSING_FIELD)

    record = gamification_service.award_award(
        award_id,
        member_id,
        awarded_by=_actor(),
        reason=data.get('reason'),
        metadata=data.get('metadata'),
    )
    return jsonify({'success': True, 'member_award': record.to_dict()}), 201


@gamification_bp.route('/seed-defaults', methods=['POST'])
def seed_defaults():
    result = gamification_service.seed_default_awards()
    return jsonify({'success': True, **result})


# Member Endpoints
@gamification_bp.route('/members/<int:member_id>/awards', methods=['GET'])
def member_awards(member_id):
    gamification_service.get_member(member_id)
    awards = gamification_service.get_member_awards(member_id)
    return jsonify({
        'success': True,
        'awards': [a.to_dict() for a in awards],
    })


@gamification_bp.route('/members/<int:member_id>/progress', methods=['GET'])
def member_progress(member_id):
    return jsonify({'success': True, **gamification_service.get_member_progress(member_id)})


@gamification_bp.route('/members/<int:member_id>/check', methods=['POST'])
def check_achievements(member_id):
    """Grant every award the member has completed."""
    awarded = gamification_service.check_and_award_achievements(member_id)
    return jsonify({
        'success': True,
        'new_awards': [a.to_dict() for a in awarded],
    })


@gamification_bp.route('/members/<int:member_id>/progress/refresh', methods=['POST'])
def refresh_progress(member_id):
    """Recompute stored progress, paying any newly crossed milestones."""
    summary = gamification_service.check_and_update_achievement_progress(member_id)
    return jsonify({'success': True, **summary})
