"""
Tests for the Points Rules API endpoints.

Tests cover:
- Rule CRUD and validation errors
- Dry runs for saved and unsaved rules
- Live execution and trigger_key replay
- Delete-or-disable, executions and analytics
"""
import json

import pytest


BOARD_RULE = {
    'name': 'Board Attendance',
    'trigger': 'event_attendance',
    'conditions': [{'field': 'member.role', 'operator': 'equals', 'value': 'BOARD'}],
    'point_value': 10,
    'multiplier': 1,
    'weight': 1.5,
}


@pytest.fixture
def saved_rule(client, staff_headers):
    response = client.post('/api/points-rules', data=json.dumps(BOARD_RULE), headers=staff_headers)
    assert response.status_code == 201
    return response.get_json()['rule']


# ==============================================================================
# Rule Management
# ==============================================================================

class TestRuleManagement:
    """Tests for /api/points-rules CRUD."""

    def test_create_records_actor(self, saved_rule):
        assert saved_rule['created_by'] == 'secretary@chapter.test'
        assert saved_rule['enabled'] is True
        assert saved_rule['weight'] == 1.5

    def test_create_invalid_lists_every_problem(self, client, staff_headers):
        response = client.post(
            '/api/points-rules',
            data=json.dumps({**BOARD_RULE, 'trigger': 'birthday', 'conditions': []}),
            headers=staff_headers,
        )
        assert response.status_code == 400
        error = response.get_json()['error']
        assert error['code'] == 'VALIDATION_ERROR'
        assert "Unknown trigger 'birthday'" in error['details']
        assert 'At least one condition is required' in error['details']

    def test_create_without_body(self, client, staff_headers):
        response = client.post('/api/points-rules', headers=staff_headers)
        assert response.status_code == 400
        assert response.get_json()['error']['code'] == 'MISSING_FIELD'

    def test_list_filters(self, client, staff_headers, saved_rule):
        client.post('/api/points-rules', data=json.dumps({**BOARD_RULE, 'trigger': 'recruitment'}), headers=staff_headers)

        response = client.get('/api/points-rules?trigger=event_attendance')
        data = response.get_json()
        assert data['total'] == 1
        assert data['rules'][0]['id'] == saved_rule['id']

        response = client.get('/api/points-rules?enabled=false')
        assert response.get_json()['total'] == 0

    def test_update(self, client, staff_headers, saved_rule):
        response = client.put(
            f"/api/points-rules/{saved_rule['id']}",
            data=json.dumps({'weight': 2.0}),
            headers=staff_headers,
        )
        assert response.status_code == 200
        assert response.get_json()['rule']['weight'] == 2.0

    def test_unknown_rule(self, client):
        response = client.get('/api/points-rules/9999')
        assert response.status_code == 404
        assert response.get_json()['error']['code'] == 'POINTS_RULE_NOT_FOUND'

    def test_validate_endpoint(self, client, staff_headers):
        response = client.post('/api/points-rules/validate', data=json.dumps(BOARD_RULE), headers=staff_headers)
        assert response.get_json() == {'valid': True, 'errors': []}

        response = client.post(
            '/api/points-rules/validate',
            data=json.dumps({**BOARD_RULE, 'weight': 0}),
            headers=staff_headers,
        )
        assert response.get_json() == {'valid': False, 'errors': ['Weight must be greater than 0']}

    def test_seed_defaults(self, client, staff_headers):
        first = client.post('/api/points-rules/seed-defaults', headers=staff_headers).get_json()
        second = client.post('/api/points-rules/seed-defaults', headers=staff_headers).get_json()

        assert len(first['created']) == 5
        assert second['created'] == []


# ==============================================================================
# Dry Runs
# ==============================================================================

class TestDryRuns:

    def test_unsaved_rule(self, client, staff_headers):
        response = client.post(
            '/api/points-rules/test',
            data=json.dumps({'rule': BOARD_RULE, 'sample_data': {'member': {'role': 'BOARD'}}}),
            headers=staff_headers,
        )
        result = response.get_json()['result']
        assert result['passed'] is True
        assert result['points_awarded'] == 15

    def test_unsaved_rule_with_bad_multiplier(self, client, staff_headers):
        response = client.post(
            '/api/points-rules/test',
            data=json.dumps({'rule': {**BOARD_RULE, 'multiplier': None}, 'sample_data': {'member': {'role': 'BOARD'}}}),
            headers=staff_headers,
        )
        assert response.status_code == 200
        result = response.get_json()['result']
        assert result['errors'] == ['Multiplier must be greater than 0']
        assert result['points_awarded'] == 0

    def test_unsaved_rule_required(self, client, staff_headers):
        response = client.post('/api/points-rules/test', data=json.dumps({}), headers=staff_headers)
        assert response.status_code == 400

    def test_saved_rule(self, client, staff_headers, saved_rule):
        response = client.post(
            f"/api/points-rules/{saved_rule['id']}/test",
            data=json.dumps({'sample_data': {'member': {'role': 'MEMBER'}}}),
            headers=staff_headers,
        )
        result = response.get_json()['result']
        assert result['passed'] is False
        assert result['condition_results'][0]['actual_value'] == 'MEMBER'


# ==============================================================================
# Execution
# ==============================================================================

class TestExecution:

    def test_execute_awards_points(self, client, staff_headers, saved_rule, make_member):
        member = make_member(role='BOARD')
        body = {'trigger': 'event_attendance', 'member_id': member.id, 'trigger_key': 'event:42',
                'trigger_data': {'event': {'id': 42, 'type': 'Meeting'}}}

        response = client.post('/api/points-rules/execute', data=json.dumps(body), headers=staff_headers)
        data = response.get_json()
        assert response.status_code == 200
        assert data['points_awarded'] == 15
        assert data['executions'][0]['trigger_data'] == {'event': {'id': 42, 'type': 'Meeting'}}

        replay = client.post('/api/points-rules/execute', data=json.dumps(body), headers=staff_headers).get_json()
        assert replay['executions'] == []
        assert replay['points_awarded'] == 0

        summary = client.get(f'/api/points/members/{member.id}').get_json()
        assert summary['points'] == 15

    def test_execute_requires_member(self, client, staff_headers):
        response = client.post(
            '/api/points-rules/execute',
            data=json.dumps({'trigger': 'event_attendance', 'member_id': 'abc'}),
            headers=staff_headers,
        )
        assert response.status_code == 400
        assert response.get_json()['error']['message'] == 'member_id is required'

    def test_execute_unknown_member(self, client, staff_headers, saved_rule):
        response = client.post(
            '/api/points-rules/execute',
            data=json.dumps({'trigger': 'event_attendance', 'member_id': 9999}),
            headers=staff_headers,
        )
        assert response.status_code == 404
        assert response.get_json()['error']['code'] == 'MEMBER_NOT_FOUND'

    def test_delete_rule_with_executions_disables(self, client, staff_headers, saved_rule, make_member):
        member = make_member(role='BOARD')
        client.post(
            '/api/points-rules/execute',
            data=json.dumps({'trigger': 'event_attendance', 'member_id': member.id}),
            headers=staff_headers,
        )

        response = client.delete(f"/api/points-rules/{saved_rule['id']}", headers=staff_headers)
        assert response.get_json()['disabled'] is True

        executions = client.get(f"/api/points-rules/{saved_rule['id']}/executions").get_json()['executions']
        assert len(executions) == 1

        analytics = client.get(f"/api/points-rules/{saved_rule['id']}/analytics").get_json()['analytics']
        assert analytics['execution_count'] == 1
        assert analytics['total_points_awarded'] == 15
