"""
Points Rule Service for ChapterHub.

Configurable points rules fire on member activity (event attendance,
project completion, training, recruitment, ...). A rule matches when its
condition chain is satisfied by the trigger payload and then awards

    rule_points = round_half_up(point_value x multiplier x weight)

For several matching rules the total is the exact sum of each rule's
rounded points. Arithmetic is done in Decimal so the same inputs always
produce the same breakdown.

Executions are stored with a frozen copy of the calculation. Editing a rule
changes future executions only.
"""
from collections import Counter
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models.organization import Member
from ..models.points_rule import PointsRule, PointsRuleExecution, RuleTrigger
from ..utils.exceptions import (
    DuplicateError,
    MemberNotFoundError,
    NotFoundError,
    ValidationError,
)
from ..utils.numbers import round_half_up, to_decimal, is_number
from .condition_evaluator import (
    combine_results,
    evaluate_conditions,
    matches,
    validate_conditions,
)
from .points_service import points_service


# ==================== Default Rules ====================

DEFAULT_RULES = [
    {
        'code': 'event-attendance-basic',
        'name': 'Event Attendance',
        'description': 'Points for attending chapter events',
        'trigger': RuleTrigger.EVENT_ATTENDANCE.value,
        'conditions': [
            {'field': 'event.type', 'operator': 'in', 'value': ['Meeting', 'Training', 'Social', 'Project']},
        ],
        'point_value': 10,
        'multiplier': 1.0,
        'weight': 1.0,
    },
    {
        'code': 'event-attendance-board',
        'name': 'Board Member Attendance Bonus',
        'description': 'Extra points for board members attending events',
        'trigger': RuleTrigger.EVENT_ATTENDANCE.value,
        'conditions': [
            {'field': 'member.role', 'operator': 'equals', 'value': 'BOARD'},
        ],
        'point_value': 5,
        'multiplier': 1.0,
        'weight': 1.5,
    },
    {
        'code': 'project-completion',
        'name': 'Project Completion',
        'description': 'Points for completing a project',
        'trigger': RuleTrigger.PROJECT_COMPLETION.value,
        'conditions': [
            {'field': 'project.status', 'operator': 'equals', 'value': 'Completed'},
        ],
        'point_value': 50,
        'multiplier': 1.0,
        'weight': 2.0,
    },
    {
        'code': 'training-completion',
        'name': 'Training Completion',
        'description': 'Points for completing an approved training',
        'trigger': RuleTrigger.TRAINING_COMPLETION.value,
        'conditions': [
            {'field': 'training.type', 'operator': 'in', 'value': ['JCI Official', 'Leadership', 'Local Skill']},
        ],
        'point_value': 25,
        'multiplier': 1.0,
        'weight': 1.2,
    },
    {
        'code': 'recruitment-success',
        'name': 'Successful Recruitment',
        'description': 'Points for recruiting an approved new member',
        'trigger': RuleTrigger.RECRUITMENT.value,
        'conditions': [
            {'field': 'recruitment.status', 'operator': 'equals', 'value': 'approved'},
        ],
        'point_value': 100,
        'multiplier': 1.0,
        'weight': 3.0,
    },
]


# ==================== Calculation ====================

def _rule_attr(rule: Any, key: str, default=None):
    if isinstance(rule, Mapping):
        return rule.get(key, default)
    return getattr(rule, key, default)


def calculate_rule_points(point_value: Any, multiplier: Any, weight: Any) -> int:
    """round_half_up(point_value x multiplier x weight), computed in Decimal."""
    return round_half_up(to_decimal(point_value) * to_decimal(multiplier) * to_decimal(weight))


def _average(values: List[Decimal]) -> float:
    if not values:
        return 1.0
    return float(sum(values) / Decimal(len(values)))


def calculate_points(rules: Iterable[Any], payload: Mapping) -> Dict[str, Any]:
    """
    Weighted points for every rule whose conditions match the payload.

    Returns:
        {base_points, multiplier, weight, final_points, applied_rules}
        `multiplier` and `weight` are averages over the applied rules
        (1 when nothing applied). `final_points` is exactly the sum of the
        applied rules' points.
    """
    applied = []
    multipliers = []
    weights = []
    base_points = 0

    for rule in rules:
        if not matches(_rule_attr(rule, 'conditions') or [], payload):
            continue

        point_value = _rule_attr(rule, 'point_value', 0) or 0
        multiplier = _rule_attr(rule, 'multiplier', 1)
        weight = _rule_attr(rule, 'weight', 1)
        rule_points = calculate_rule_points(point_value, multiplier, weight)

        base_points += int(point_value)
        multipliers.append(to_decimal(multiplier))
        weights.append(to_decimal(weight))
        applied.append({
            'rule_id': _rule_attr(rule, 'id'),
            'rule_name': _rule_attr(rule, 'name'),
            'point_value': int(point_value),
            'multiplier': float(multiplier),
            'weight': float(weight),
            'points': rule_points,
        })

    return {
        'base_points': base_points,
        'multiplier': _average(multipliers),
        'weight': _average(weights),
        'final_points': sum(r['points'] for r in applied),
        'applied_rules': applied,
    }


# ==================== Validation ====================

def validate_rule(data: Mapping) -> List[str]:
    """Itemized problems with a rule definition; empty list when valid."""
    if not isinstance(data, Mapping):
        return ['Rule must be an object']

    errors = []

    name = data.get('name')
    if not name or not str(name).strip():
        errors.append('Name is required')

    trigger = data.get('trigger')
    if not trigger:
        errors.append('Trigger is required')
    elif trigger not in RuleTrigger.values():
        errors.append(f"Unknown trigger '{trigger}'")

    point_value = data.get('point_value')
    if point_value is None:
        errors.append('Point value is required')
    elif isinstance(point_value, bool) or not isinstance(point_value, int) or point_value < 0:
        errors.append('Point value must be a non-negative integer')

    multiplier = data.get('multiplier', 1)
    if not is_number(multiplier) or multiplier <= 0:
        errors.append('Multiplier must be greater than 0')

    weight = data.get('weight', 1)
    if not is_number(weight) or weight <= 0:
        errors.append('Weight must be greater than 0')

    errors.extend(validate_conditions(data.get('conditions')))
    return errors


class PointsRuleService:
    """Points rule configuration, dry runs and live execution."""

    # ==================== CRUD ====================

    def list_rules(self, trigger: str = None, enabled: bool = None) -> List[PointsRule]:
        query = PointsRule.query
        if trigger:
            query = query.filter_by(trigger=trigger)
        if enabled is not None:
            query = query.filter_by(enabled=enabled)
        return query.order_by(PointsRule.trigger, PointsRule.id).all()

    def get_rule(self, rule_id: int) -> PointsRule:
        rule = db.session.get(PointsRule, rule_id)
        if not rule:
            raise NotFoundError('Points rule', rule_id)
        return rule

    def create_rule(self, data: Mapping, created_by: str = None) -> PointsRule:
        """
        Create a rule.

        Raises:
            ValidationError: with every problem found
            DuplicateError: code already used
        """
        errors = validate_rule(data)
        if errors:
            raise ValidationError('Invalid points rule', errors=errors)

        code = data.get('code')
        if code and PointsRule.query.filter_by(code=code).first():
            raise DuplicateError('Points rule', f'code {code}')

        rule = PointsRule(
            code=code,
            name=data['name'].strip(),
            description=data.get('description'),
            trigger=data['trigger'],
            conditions=list(data['conditions']),
            point_value=data['point_value'],
            multiplier=float(data.get('multiplier', 1)),
            weight=float(data.get('weight', 1)),
            enabled=bool(data.get('enabled', True)),
            created_by=created_by,
            updated_by=created_by,
        )
        db.session.add(rule)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise DuplicateError('Points rule', f'code {code}')

        current_app.logger.info(f"Points rule created: {rule.id} '{rule.name}' ({rule.trigger})")
        return rule

    def update_rule(self, rule_id: int, data: Mapping, updated_by: str = None) -> PointsRule:
        """
        Update a rule. Stored executions keep the values they were computed with.
        """
        rule = self.get_rule(rule_id)

        editable = ('name', 'description', 'trigger', 'conditions', 'point_value',
                    'multiplier', 'weight', 'enabled')
        merged = rule.to_dict()
        merged.update({k: v for k, v in data.items() if k in editable})

        errors = validate_rule(merged)
        if errors:
            raise ValidationError('Invalid points rule', errors=errors)

        rule.name = merged['name'].strip()
        rule.description = merged.get('description')
        rule.trigger = merged['trigger']
        rule.conditions = list(merged['conditions'])
        rule.point_value = merged['point_value']
        rule.multiplier = float(merged['multiplier'])
        rule.weight = float(merged['weight'])
        rule.enabled = bool(merged['enabled'])
        rule.updated_by = updated_by

        db.session.commit()
        current_app.logger.info(f"Points rule updated: {rule.id} by {updated_by or 'unknown'}")
        return rule

    def delete_rule(self, rule_id: int) -> Dict[str, Any]:
        """
        Delete a rule. Rules with executions are disabled instead so the
        history they produced stays intact.
        """
        rule = self.get_rule(rule_id)

        if rule.executions.count() > 0:
            rule.enabled = False
            db.session.commit()
            current_app.logger.info(f"Points rule {rule_id} has executions; disabled instead of deleted")
            return {'deleted': False, 'disabled': True, 'rule_id': rule_id}

        db.session.delete(rule)
        db.session.commit()
        current_app.logger.info(f"Points rule deleted: {rule_id}")
        return {'deleted': True, 'disabled': False, 'rule_id': rule_id}

    def seed_default_rules(self) -> Dict[str, Any]:
        """Create the default rule set. Existing codes are left alone."""
        created = []
        skipped = []
        for definition in DEFAULT_RULES:
            if PointsRule.query.filter_by(code=definition['code']).first():
                skipped.append(definition['code'])
                continue
            self.create_rule(definition, created_by='system')
            created.append(definition['code'])

        current_app.logger.info(f"Default points rules seeded: {len(created)} created, {len(skipped)} existing")
        return {'created': created, 'skipped': skipped}

    # ==================== Dry Run ====================

    def test_rule(self, rule: Any, sample_data: Mapping) -> Dict[str, Any]:
        """
        Evaluate a saved or unsaved rule against sample trigger data.
        Nothing is persisted.

        Returns:
            {passed, points_awarded, condition_results, calculation, errors}
        """
        conditions = _rule_attr(rule, 'conditions') or []
        empty_calculation = {
            'base_points': 0,
            'multiplier': 1.0,
            'weight': 1.0,
            'final_points': 0,
            'applied_rules': [],
        }
        result = {
            'rule_id': _rule_attr(rule, 'id'),
            'rule_name': _rule_attr(rule, 'name'),
            'test_data': sample_data,
            'passed': False,
            'points_awarded': 0,
            'condition_results': [],
            'calculation': empty_calculation,
            'errors': [],
        }

        # Unsaved rules are checked in full; saved ones were validated on write
        if isinstance(rule, Mapping):
            errors = validate_rule(rule)
        else:
            errors = validate_conditions(conditions)
        if errors:
            result['errors'] = errors
            return result

        condition_results = evaluate_conditions(conditions, sample_data)
        passed = combine_results(conditions, [r['passed'] for r in condition_results])

        result['condition_results'] = condition_results
        result['passed'] = passed
        if passed:
            calculation = calculate_points([rule], sample_data)
            result['calculation'] = calculation
            result['points_awarded'] = calculation['final_points']
        return result

    # ==================== Live Execution ====================

    def execute_rules(
        self,
        trigger: str,
        trigger_data: Mapping,
        member_id: int,
        trigger_key: str = None,
        award_points: bool = True,
    ) -> List[PointsRuleExecution]:
        """
        Evaluate every enabled rule for a trigger and persist one execution
        per matching rule.

        The member's attributes are available to conditions under `member`
        unless the trigger data already supplies that key. With a
        `trigger_key`, a rule already executed for the same member and key
        is skipped, so replaying a trigger is a no-op.

        Returns:
            Executions written by this call
        """
        if trigger not in RuleTrigger.values():
            current_app.logger.warning(f"Unknown points trigger '{trigger}', no rules executed")
            return []

        member = db.session.get(Member, member_id)
        if not member:
            raise MemberNotFoundError(member_id)

        payload = dict(trigger_data or {})
        payload.setdefault('member', member.to_payload())

        rules = PointsRule.query.filter_by(trigger=trigger, enabled=True).order_by(PointsRule.id).all()
        executions = []

        for rule in rules:
            if not matches(rule.conditions or [], payload):
                continue

            if trigger_key and PointsRuleExecution.query.filter_by(
                rule_id=rule.id, member_id=member_id, trigger_key=trigger_key
            ).first():
                current_app.logger.info(
                    f"Rule {rule.id} already executed for member {member_id} ({trigger_key}), skipping"
                )
                continue

            calculation = calculate_points([rule], payload)
            execution = PointsRuleExecution(
                rule_id=rule.id,
                member_id=member_id,
                trigger=trigger,
                trigger_key=trigger_key,
                trigger_data=dict(trigger_data or {}),
                points_awarded=calculation['final_points'],
                calculation=calculation,
            )
            db.session.add(execution)
            try:
                db.session.flush()
            except IntegrityError:
                db.session.rollback()
                current_app.logger.info(
                    f"Rule {rule.id} execution for member {member_id} ({trigger_key}) "
                    f"already recorded by a concurrent run"
                )
                continue

            # The execution guards replays, so it commits together with its ledger row
            try:
                if award_points and execution.points_awarded > 0:
                    execution.points_transaction_id = points_service.award_points(
                        member_id=member_id,
                        category=trigger,
                        amount=execution.points_awarded,
                        description=f"{rule.name}: {execution.points_awarded} pts",
                        related_entity_id=execution.id,
                        related_entity_type='points_rule_execution',
                        commit=False,
                    )
                db.session.commit()
            except Exception:
                db.session.rollback()
                current_app.logger.error(f"Rule {rule.id} execution for member {member_id} rolled back")
                raise

            current_app.logger.info(
                f"Rule executed: {rule.id} '{rule.name}' member {member_id} "
                f"+{execution.points_awarded} pts"
            )
            executions.append(execution)

        return executions

    def list_executions(self, rule_id: int = None, member_id: int = None, limit: int = 100) -> List[PointsRuleExecution]:
        query = PointsRuleExecution.query
        if rule_id:
            query = query.filter_by(rule_id=rule_id)
        if member_id:
            query = query.filter_by(member_id=member_id)
        return query.order_by(PointsRuleExecution.executed_at.desc(), PointsRuleExecution.id.desc()).limit(limit).all()

    # ==================== Analytics ====================

    def get_rule_analytics(self, rule_id: int) -> Dict[str, Any]:
        """Execution count, points totals and the most common triggers for a rule."""
        rule = self.get_rule(rule_id)
        executions = rule.executions.order_by(PointsRuleExecution.executed_at.desc()).all()

        count = len(executions)
        total = sum(e.points_awarded or 0 for e in executions)
        trigger_counts = Counter(e.trigger for e in executions)

        return {
            'rule_id': rule.id,
            'rule_name': rule.name,
            'execution_count': count,
            'total_points_awarded': total,
            'average_points_per_execution': round(total / count, 2) if count else 0,
            'last_executed': executions[0].executed_at.isoformat() if executions else None,
            'top_triggers': [
                {'trigger': trigger, 'count': n}
                for trigger, n in trigger_counts.most_common(5)
            ],
        }


# Singleton instance
points_rule_service = PointsRuleService()
