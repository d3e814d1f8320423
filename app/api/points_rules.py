"""
Points Rules API Endpoints

Admin management of points rules, dry runs and live execution.
Domain errors raised by the service are rendered by the app-level handler.
"""
from flask import Blueprint, request, jsonify

from ..services.points_rule_service import points_rule_service, validate_rule
from ..utils.errors import bad_request, ErrorCode

points_rules_bp = Blueprint('points_rules', __name__)


def _actor():
    """Staff member making the change (for audit fields)."""
    return request.headers.get('X-Staff-Email')


# ==============================================================================
# RULE MANAGEMENT
# ==============================================================================

@points_rules_bp.route('', methods=['GET'])
def list_rules():
    """
    List points rules.

    Query params:
        trigger: Only rules for this trigger
        enabled: true/false
    """
    enabled = request.args.get('enabled')
    if enabled is not None:
        enabled = enabled.lower() == 'true'
    rules = points_rule_service.list_rules(trigger=request.args.get('trigger'), enabled=enabled)

    return jsonify({
        'success': True,
        'rules': [r.to_dict() for r in rules],
        'total': len(rules),
    })


@points_rules_bp.route('', methods=['POST'])
def create_rule():
    data = request.get_json(silent=True)
    if not data:
        return bad_request('No data provided', ErrorCode.MISSING_FIELD)

    rule = points_rule_service.create_rule(data, created_by=_actor())
    return jsonify({'success': True, 'rule': rule.to_dict()}), 201


@points_rules_bp.route('/<int:rule_id>', methods=['GET'])
def get_rule(rule_id):
    rule = points_rule_service.get_rule(rule_id)
    return jsonify({'success': True, 'rule': rule.to_dict()})


@points_rules_bp.route('/<int:rule_id>', methods=['PUT'])
def update_rule(rule_id):
    data = request.get_json(silent=True)
    if not data:
        return bad_request('No data provided', ErrorCode.MISSING_FIELD)

    rule = points_rule_service.update_rule(rule_id, data, updated_by=_actor())
    return jsonify({'success': True, 'rule': rule.to_dict()})


@points_rules_bp.route('/<int:rule_id>', methods=['DELETE'])
def delete_rule(rule_id):
    """Delete a rule, or disable it when it already has executions."""
    result = points_rule_service.delete_rule(rule_id)
    return jsonify({'success': True, **result})


@points_rules_bp.route('/validate', methods=['POST'])
def validate():
    """Validate a rule definition without saving it."""
    data = request.get_json(silent=True) or {}
    errors = validate_rule(data)
    return jsonify({'valid': not errors, 'errors': errors})


@points_rules_bp.route('/seed-defaults', methods=['POST'])
def seed_defaults():
    result = points_rule_service.seed_default_rules()
    return jsonify({'success': True, **result})


# ==============================================================================
# DRY RUNS
# ==============================================================================

@points_rules_bp.route('/test', methods=['POST'])
def test_unsaved_rule():
    """
    Evaluate an unsaved rule against sample data.

    Body:
        rule: Full rule definition, validated like a create
        sample_data: Trigger payload
    """
    data = request.get_json(silent=True) or {}
    rule = data.get('rule')
    if not isinstance(rule, dict):
        return bad_request('rule is required', ErrorCode.MISSING_FIELD)

    result = points_rule_service.test_rule(rule, data.get('sample_data') or {})
    return jsonify({'success': True, 'result': result})


@points_rules_bp.route('/<int:rule_id>/test', methods=['POST'])
def test_saved_rule(rule_id):
    rule = points_rule_service.get_rule(rule_id)
    data = request.get_json(silent=True) or {}
    result = points_rule_service.test_rule(rule, data.get('sample_data') or {})
    return jsonify({'success': True, 'result': result})


# ==============================================================================
# EXECUTION & ANALYTICS
# ==============================================================================

@points_rules_bp.route('/execute', methods=['POST'])
def execute():
    """
    Fire a trigger for a member.

    Body:
        trigger: Trigger type (event_attendance, project_completion, ...)
        member_id: Member receiving the points
        trigger_data: Payload the rule conditions are evaluated against
        trigger_key: Optional idempotency key (e.g. "event:42")
    """
    data = request.get_json(silent=True) or {}
    trigger = data.get('trigger')
    member_id = data.get('member_id')
    if not trigger:
        return bad_request('trigger is required', ErrorCode.MISSING_FIELD)
    if not isinstance(member_id, int):
        return bad_request('member_id is required', ErrorCode.MISSING_FIELD)

    executions = points_rule_service.execute_rules(
        trigger,
        data.get('trigger_data') or {},
        member_id,
        trigger_key=data.get('trigger_key'),
        award_points=data.get('award_points', True),
    )
    return jsonify({
        'success': True,
        'executions': [e.to_dict() for e in executions],
        'points_awarded': sum(e.points_awarded for e in executions),
    })


@points_rules_bp.route('/<int:rule_id>/executions', methods=['GET'])
def list_executions(rule_id):
    points_rule_service.get_rule(rule_id)
    executions = points_rule_service.list_executions(
        rule_id=rule_id,
        member_id=request.args.get('member_id', type=int),
        limit=min(request.args.get('limit', 100, type=int), 500),
    )
    return jsonify({'success': True, 'executions': [e.to_dict() for e in executions]})


@points_rules_bp.route('/<int:rule_id>/analytics', methods=['GET'])
def rule_analytics(rule_id):
    return jsonify({'success': True, 'analytics': points_rule_service.get_rule_analytics(rule_id)})
