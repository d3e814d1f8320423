"""
Tests for the Points API endpoints and the health check.
"""
from app.services.points_service import points_service


class TestHealth:

    def test_health(self, client):
        response = client.get('/health')
        assert response.status_code == 200
        assert response.get_json() == {'status': 'healthy', 'service': 'chapterhub'}

    def test_unknown_route_uses_error_shape(self, client):
        response = client.get('/api/nothing-here')
        assert response.status_code == 404
        assert response.get_json() == {'error': {'message': 'Not found', 'code': 'NOT_FOUND'}}


class TestMemberPoints:

    def test_summary(self, client, sample_member):
        points_service.award_points(sample_member.id, 'event_attendance', 520)

        data = client.get(f'/api/points/members/{sample_member.id}').get_json()

        assert data['points'] == 520
        assert data['tier'] == 'Silver'
        assert data['next_tier'] == 'Gold'
        assert data['points_to_next_tier'] == 480

    def test_history_paging(self, client, sample_member):
        for amount in (10, 20, 30):
            points_service.award_points(sample_member.id, 'event_attendance', amount)

        data = client.get(f'/api/points/members/{sample_member.id}/history?limit=1&offset=1').get_json()

        assert data['total'] == 3
        assert [t['amount'] for t in data['transactions']] == [20]

    def test_unknown_member(self, client):
        response = client.get('/api/points/members/9999')
        assert response.status_code == 404


class TestLeaderboard:

    def test_leaderboard(self, client, sample_organization, make_member):
        first = make_member()
        second = make_member()
        points_service.award_points(first.id, 'award', 40)
        points_service.award_points(second.id, 'award', 90)

        entries = client.get(
            f'/api/points/leaderboard?organization_id={sample_organization.id}&limit=1'
        ).get_json()['leaderboard']

        assert len(entries) == 1
        assert entries[0]['member_id'] == second.id
