"""
Tests for the health check endpoint and service.
"""

from unittest.mock import Mock, patch

from peduli_api.services.health import HealthCheckService

HEALTHY = {
    'status': 'healthy',
    'ping': True,
    'database': 'peduli_kucing_test',
    'transactions': False,
    'connection_pool_size': 10
}


class TestHealthCheckEndpoint:
    """Test cases for the /api/healthz endpoint."""

    def test_healthy(self, client, app):
        with patch.object(app.mongodb_service, 'health_check', return_value=dict(HEALTHY)):
            response = client.get('/api/healthz')

        assert response.status_code == 200
        data = response.get_json()
        assert data["status"] == "healthy"
        assert data["service"] == "peduli-kucing-api"
        assert data["dependencies"]["mongodb"]["status"] == "healthy"
        assert data["_links"]["self"]["href"] == "http://localhost:5000/api/healthz"

    def test_storage_down(self, client, app):
        unhealthy = {'status': 'unhealthy', 'error': 'No servers available', 'database': 'peduli_kucing_test'}
        with patch.object(app.mongodb_service, 'health_check', return_value=unhealthy):
            response = client.get('/api/healthz')

        assert response.status_code == 503
        data = response.get_json()
        assert data["status"] == "unhealthy"
        assert data["dependencies"]["mongodb"]["error"] == "No servers available"

    def test_no_auth_required(self, client, app):
        with patch.object(app.mongodb_service, 'health_check', return_value=dict(HEALTHY)):
            assert client.get('/api/healthz').status_code == 200


class TestHealthCheckService:
    """Test the health service directly."""

    def test_reports_version_and_timing(self):
        mongodb_service = Mock()
        mongodb_service.health_check.return_value = dict(HEALTHY)

        health = HealthCheckService(mongodb_service, service_version="2.1.0").get_health()

        assert health["version"] == "2.1.0"
        assert health["status"] == "healthy"
        assert "response_time_ms" in health["dependencies"]["mongodb"]
        assert health["response_time_ms"] >= 0

    def test_unhealthy_dependency(self):
        mongodb_service = Mock()
        mongodb_service.health_check.return_value = {'status': 'unhealthy', 'error': 'timeout'}

        assert HealthCheckService(mongodb_service).get_health()["status"] == "unhealthy"
