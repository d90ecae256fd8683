"""
Tests for health check endpoints
"""
import pytest
import time
import psutil
from unittest.mock import Mock, patch
from health_checks import (
    get_system_metrics,
    get_uptime,
    check_ai_services,
    check_integrations,
    check_database,
)


@pytest.mark.unit
class TestSystemMetrics:
    """Tests for system metrics collection"""

    def test_get_system_metrics_returns_dict(self):
        """Test that get_system_metrics returns a dictionary"""
        metrics = get_system_metrics()
        assert isinstance(metrics, dict)

    def test_system_metrics_has_cpu_and_memory(self):
        """Test that system metrics includes CPU and memory"""
        metrics = get_system_metrics()
        if metrics:
            assert isinstance(metrics['cpu_percent'], (int, float))
            assert 'memory_mb' in metrics
            assert 'memory_percent' in metrics
            assert metrics['threads'] >= 1

    @patch('health_checks.psutil.Process')
    def test_system_metrics_handles_errors(self, mock_process):
        """Test that get_system_metrics handles psutil errors gracefully"""
        mock_process.side_effect = psutil.AccessDenied()
        assert get_system_metrics() == {}


@pytest.mark.unit
class TestUptime:
    """Tests for uptime calculation"""

    def test_uptime_has_required_fields(self):
        """Test that uptime includes all required fields"""
        uptime = get_uptime()
        assert 'uptime_seconds' in uptime
        assert 'uptime_hours' in uptime
        assert 'started_at' in uptime

    def test_uptime_increases_over_time(self):
        """Test that uptime increases over time"""
        uptime1 = get_uptime()
        time.sleep(0.1)
        uptime2 = get_uptime()
        assert uptime2['uptime_seconds'] > uptime1['uptime_seconds']


@pytest.mark.unit
class TestServiceChecks:
    """Tests for configured-service checks"""

    def test_check_ai_services_with_all_keys(self):
        mock_app = Mock()
        mock_app.config = {'ANTHROPIC_API_KEY': 'test-key', 'OPENAI_API_KEY': 'test-key'}

        assert check_ai_services(mock_app) == {'openai': True, 'anthropic_claude': True}

    def test_check_ai_services_with_no_keys(self):
        mock_app = Mock()
        mock_app.config = {}

        assert check_ai_services(mock_app) == {'openai': False, 'anthropic_claude': False}

    def test_check_integrations(self):
        mock_app = Mock()
        mock_app.config = {
            'SMTP_HOST': 'smtp.test',
            'TWILIO_ACCOUNT_SID': 'AC123',
            'TWILIO_AUTH_TOKEN': 'token',
        }

        assert check_integrations(mock_app) == {'smtp': True, 'twilio': True, 'vapi': False}

    def test_twilio_needs_account_sid(self):
        mock_app = Mock()
        mock_app.config = {'TWILIO_ACCOUNT_SID': 'XX123', 'TWILIO_AUTH_TOKEN': 'token'}

        assert check_integrations(mock_app)['twilio'] is False

    @patch('database.connection.check_db_connection')
    def test_check_database_failure(self, mock_check):
        mock_check.side_effect = RuntimeError('Cannot connect to database: refused')

        assert check_database() == {'healthy': False, 'error': 'Cannot connect to database: refused'}


@pytest.mark.integration
class TestHealthCheckEndpoints:
    """Integration tests for health check endpoints"""

    def test_health_endpoint(self, client):
        response = client.get('/api/health')
        assert response.status_code == 200
        data = response.get_json()
        assert data['status'] == 'healthy'
        assert data['service'] == 'airdesk-backend'
        assert 'timestamp' in data

    def test_ping_endpoint_returns_pong(self, client):
        response = client.get('/api/ping')
        assert response.status_code == 200
        assert response.data == b'pong'

    def test_ready_endpoint(self, client):
        """Test that /ready reports the database and optional services"""
        response = client.get('/api/ready')
        assert response.status_code == 200
        data = response.get_json()
        assert data['status'] == 'ready'
        assert data['checks']['database'] == {'healthy': True}
        assert data['checks']['ai_services'] == {'openai': False, 'anthropic_claude': False}
        assert data['checks']['integrations']['smtp'] is False

    @patch('database.connection.check_db_connection', side_effect=RuntimeError('down'))
    def test_ready_endpoint_without_database(self, mock_check, client):
        response = client.get('/api/ready')
        assert response.status_code == 503
        assert response.get_json()['status'] == 'not_ready'

    def test_metrics_endpoint(self, client):
        response = client.get('/api/metrics')
        assert response.status_code == 200
        data = response.get_json()
        assert data['version'] == '1.0.0'
        assert 'uptime_seconds' in data['uptime']
        assert 'services' in data
        assert 'integrations' in data
