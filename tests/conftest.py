"""
Pytest configuration and shared fixtures
"""
import os
import sys
import pytest
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

OWNER_ID = 'user-owner-1'
OTHER_USER_ID = 'user-other-2'


@pytest.fixture
def app_config():
    """Fixture providing test configuration"""
    from config import TestingConfig
    return TestingConfig


@pytest.fixture
def test_env_vars():
    """Fixture providing test environment variables"""
    original_env = os.environ.copy()

    os.environ['FLASK_ENV'] = 'testing'
    os.environ['SECRET_KEY'] = 'test-secret-key-minimum-32-chars-long-for-security'

    yield

    # Restore original environment
    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture
def app(app_config):
    """Flask app on a fresh in-memory SQLite database"""
    from app_init import create_app

    flask_app = create_app(app_config)
    yield flask_app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db_session(app):
    """Session on the app's database; committed on exit"""
    from database.connection import get_db_session

    with get_db_session() as session:
        yield session


@pytest.fixture
def user_headers():
    return {'X-User-Id': OWNER_ID}


@pytest.fixture
def other_user_headers():
    return {'X-User-Id': OTHER_USER_ID}


@pytest.fixture
def firm_id(app):
    """A configured HVAC firm owned by OWNER_ID"""
    from database.connection import get_db_session
    from services.firm_repository import FirmRepository

    with get_db_session() as session:
        firm = FirmRepository(session).create(
            OWNER_ID,
            'ABC HVAC',
            agent_name='Jessica',
            notify_emails=['dispatch@abchvac.com'],
            cc_emails=['owner@abchvac.com'],
            default_next_available='tomorrow morning at 8:00 a.m.',
            service_fee_enabled=True,
            service_call_fee=89.0,
            twilio_number='+15550001111',
        )
        return firm.id


@pytest.fixture
def sample_intake():
    """Complete intake record for an urgent no-heat call"""
    from services.email_samples import SAMPLE_INTAKE
    return dict(SAMPLE_INTAKE)


@pytest.fixture
def sample_transcript():
    from services.email_samples import SAMPLE_TRANSCRIPT
    return SAMPLE_TRANSCRIPT


@pytest.fixture
def offline_ai():
    """AIService with no provider configured"""
    from ai_service import AIService
    return AIService({})


@pytest.fixture
def mock_ai():
    """AIService stand-in whose complete_json result each test sets"""
    from unittest.mock import Mock
    from ai_service import AIService

    ai = Mock(spec=AIService)
    ai.is_available.return_value = True
    return ai
