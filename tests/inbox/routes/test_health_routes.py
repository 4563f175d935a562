"""Tests for /health, /api/health and /api/health/<service>/reset."""


class TestLiveness:

    def test_health(self, client):
        resp = client.get('/health')
        assert resp.status_code == 200
        assert resp.get_json() == {'status': 'healthy'}


class TestApiHealth:

    def test_lists_classifier_breaker(self, client):
        resp = client.get('/api/health')
        assert resp.status_code == 200
        svc = resp.get_json()['services']['openai']
        assert svc['state'] == 'closed'
        assert svc['failure_threshold'] == 5
        assert 'total_success' in svc
        assert 'total_failure' in svc

    def test_reflects_open_breaker(self, client, mock_redis):
        mock_redis.set('inbox:cb:openai:state', 'open')
        svc = client.get('/api/health').get_json()['services']['openai']
        assert svc['state'] == 'open'


class TestResetCircuit:

    def test_reset_known_service(self, client, mock_redis):
        mock_redis.set('inbox:cb:openai:state', 'open')
        mock_redis.set('inbox:cb:openai:failures', 7)

        resp = client.post('/api/health/openai/reset')

        assert resp.status_code == 200
        assert resp.get_json() == {'ok': True, 'service': 'openai', 'state': 'closed'}
        assert mock_redis.get('inbox:cb:openai:failures') == '0'

    def test_reset_unknown_service_404(self, client):
        resp = client.post('/api/health/insightiq/reset')
        assert resp.status_code == 404
        assert resp.get_json()['ok'] is False
