"""
Incentive Program API Endpoints

Programs, standards, submissions (claims and review), batch recalculation
and star progress.
"""
from flask import Blueprint, request, jsonify

from ..services.incentive_calculator import incentive_calculator
from ..services.incentive_service import incentive_service
from ..utils.errors import bad_request, not_found, ErrorCode

incentives_bp = Blueprint('incentives', __name__)


def _actor():
    return request.headers.get('X-Staff-Email')


# ==============================================================================
# PROGRAMS & STANDARDS
# ==============================================================================

@incentives_bp.route('/programs', methods=['GET'])
def list_programs():
    active_only = request.args.get('active', 'false').lower() == 'true'
    programs = incentive_service.list_programs(active_only=active_only)
    return jsonify({'success': True, 'programs': [p.to_dict() for p in programs]})


@incentives_bp.route('/programs', methods=['POST'])
def create_program():
    data = request.get_json(silent=True)
    if not data:
        return bad_request('No data provided', ErrorCode.MISSING_FIELD)

    program = incentive_service.create_program(data)
    return jsonify({'success': True, 'program': program.to_dict()}), 201


@incentives_bp.route('/programs/<int:program_id>', methods=['GET'])
def get_program(program_id):
    program = incentive_service.get_program(program_id)
    return jsonify({
        'success': True,
        'program': program.to_dict(),
        'standards': [s.to_dict() for s in incentive_service.list_standards(program.id)],
    })


@incentives_bp.route('/programs/<int:program_id>', methods=['PUT'])
def update_program(program_id):
    data = request.get_json(silent=True)
    if not data:
        return bad_request('No data provided', ErrorCode.MISSING_FIELD)

    program = incentive_service.update_program(program_id, data)
    return jsonify({'success': True, 'program': program.to_dict()})


@incentives_bp.route('/programs/<int:program_id>/standards', methods=['GET'])
def list_standards(program_id):
    incentive_service.get_program(program_id)
    standards = incentive_service.list_standards(program_id)
    return jsonify({'success': True, 'standards': [s.to_dict() for s in standards]})


@incentives_bp.route('/programs/<int:program_id>/standards', methods=['POST'])
def create_standard(program_id):
    data = request.get_json(silent=True)
    if not data:
        return bad_request('No data provided', ErrorCode.MISSING_FIELD)

    standard = incentive_service.create_standard(program_id, data)
    return jsonify({'success': True, 'standard': standard.to_dict()}), 201


@incentives_bp.route('/standards/<int:standard_id>', methods=['GET'])
def get_standard(standard_id):
    standard = incentive_service.get_standard(standard_id)
    return jsonify({'success': True, 'standard': standard.to_dict()})


@incentives_bp.route('/standards/<int:standard_id>', methods=['PUT'])
def update_standard(standard_id):
    data = request.get_json(silent=True)
    if not data:
        return bad_request('No data provided', ErrorCode.MISSING_FIELD)

    standard = incentive_service.update_standard(standard_id, data)
    return jsonify({'success': True, 'standard': standard.to_dict()})


# ==============================================================================
# CALCULATION & STARS
# ==============================================================================

@incentives_bp.route('/organizations/<int:organization_id>/programs/<int:program_id>/calculate', methods=['POST'])
def calculate(organization_id, program_id):
    """Recalculate every automated standard for the organization."""
    summary = incentive_calculator.calculate_all(organization_id, program_id)
    return jsonify({'success': True, **summary})


@incentives_bp.route('/organizations/<int:organization_id>/programs/<int:program_id>/stars', methods=['GET'])
def star_progress(organization_id, program_id):
    progress = incentive_service.get_star_progress(organization_id, program_id)
    if not progress:
        return not_found('No star progress recorded yet')
    return jsonify({'success': True, 'star_progress': progress.to_dict()})


# ==============================================================================
# SUBMISSIONS
# ==============================================================================

@incentives_bp.route('/submissions', methods=['GET'])
def list_submissions():
    """
    List submissions.

    Query params:
        organization_id, program_id, status
    """
    submissions = incentive_service.list_submissions(
        organization_id=request.args.get('organization_id', type=int),
        program_id=request.args.get('program_id', type=int),
        status=request.args.get('status'),
    )
    return jsonify({'success': True, 'submissions': [s.to_dict() for s in submissions]})


@incentives_bp.route('/submissions', methods=['POST'])
def create_submission():
    """
    Submit a claim for review.

    Body:
        organization_id, standard_id (required)
        milestone_id, quantity, score_awarded, evidence_text, evidence_files
    """
    data = request.get_json(silent=True) or {}
    organization_id = data.get('organization_id')
    standard_id = data.get('standard_id')
    if not isinstance(organization_id, int) or not isinstance(standard_id, int):
        return bad_request('organization_id and standard_id are required', ErrorCode.MISSING_FIELD)

    submission = incentive_service.submit_claim(organization_id, standard_id, data, submitted_by=_actor())
    return jsonify({'success': True, 'submission': submission.to_dict()}), 201


@incentives_bp.route('/submissions/<int:submission_id>/approve', methods=['POST'])
def approve_submission(submission_id):
    data = request.get_json(silent=True) or {}
    submission = incentive_service.approve_submission(
        submission_id, reviewed_by=_actor(), score=data.get('score')
    )
    return jsonify({'success': True, 'submission': submission.to_dict()})


@incentives_bp.route('/submissions/<int:submission_id>/reject', methods=['POST'])
def reject_submission(submission_id):
    data = request.get_json(silent=True) or {}
    submission = incentive_service.reject_submission(
        submission_id, reviewed_by=_actor(), reason=data.get('reason')
    )
    return jsonify({'success': True, 'submission': submission.to_dict()})
