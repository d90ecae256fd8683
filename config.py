"""
Centralized Configuration for the AirDesk backend
Manages environment-specific settings, secrets, and service configurations.
"""
import os


class Config:
    """Base configuration with defaults"""

    # Flask Settings
    SECRET_KEY = os.environ.get('SECRET_KEY') or os.urandom(32).hex()
    MAX_CONTENT_LENGTH = 2 * 1024 * 1024  # transcripts and JSON bodies only

    # CORS Settings
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*').split(',')
    CORS_METHODS = ['GET', 'POST', 'PUT', 'PATCH', 'DELETE', 'OPTIONS']
    CORS_ALLOW_HEADERS = ['Content-Type', 'Authorization', 'X-Requested-With', 'X-User-Id', 'X-API-Key']

    # Database Settings
    DATABASE_URL = os.environ.get('DATABASE_URL', 'postgresql://localhost/airdesk')

    # Public base URL used for dashboard links and telephony webhooks
    APP_URL = os.environ.get('APP_URL', 'https://airdesk.app')

    # AI Service API Keys
    OPENAI_API_KEY = os.environ.get('OPENAI_API_KEY')
    ANTHROPIC_API_KEY = os.environ.get('ANTHROPIC_API_KEY')

    # AI Model Configuration
    AI_MODELS = {
        'openai': {
            'model': 'gpt-4o-mini',
            'max_tokens': 1200,
            'temperature': 0.3,
        },
        'claude': {
            'model': 'claude-sonnet-4-20250514',
            'max_tokens': 1200,
            'temperature': 0.3,
        },
    }

    # AI Retry Configuration
    AI_RETRY_ATTEMPTS = int(os.environ.get('AI_RETRY_ATTEMPTS', '3'))
    AI_RETRY_DELAY = int(os.environ.get('AI_RETRY_DELAY', '2'))  # seconds
    AI_TIMEOUT = int(os.environ.get('AI_TIMEOUT', '60'))  # seconds

    # Ticket email delivery (SMTP)
    SMTP_HOST = os.environ.get('SMTP_HOST', '')
    SMTP_PORT = int(os.environ.get('SMTP_PORT', '587'))
    SMTP_USER = os.environ.get('SMTP_USER', '')
    SMTP_PASSWORD = os.environ.get('SMTP_PASSWORD', '')
    FROM_EMAIL = os.environ.get('FROM_EMAIL', 'AirDesk <tickets@airdesk.app>')
    EMAIL_RETRY_ATTEMPTS = int(os.environ.get('EMAIL_RETRY_ATTEMPTS', '3'))
    EMAIL_RETRY_DELAY = float(os.environ.get('EMAIL_RETRY_DELAY', '1'))  # seconds, doubles per attempt

    # Telephony and voice platform
    TWILIO_ACCOUNT_SID = os.environ.get('TWILIO_ACCOUNT_SID', '')
    TWILIO_AUTH_TOKEN = os.environ.get('TWILIO_AUTH_TOKEN', '')
    VAPI_API_KEY = os.environ.get('VAPI_API_KEY', '')
    VAPI_BASE_URL = os.environ.get('VAPI_BASE_URL', 'https://api.vapi.ai')

    # Intake conversation
    INTAKE_MAX_AGENT_MESSAGES = 15
    # Shared key the voice platform sends as X-API-Key; unset disables the check
    INTAKE_API_KEY = os.environ.get('INTAKE_API_KEY', '')

    # Logging Configuration
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    LOG_DIR = os.environ.get('LOG_DIR', 'logs')
    LOG_FILE = os.environ.get('LOG_FILE', 'airdesk.log')


class DevelopmentConfig(Config):
    """Development-specific configuration"""
    DEBUG = True
    TESTING = False
    LOG_LEVEL = 'DEBUG'
    # Allow all CORS in development
    CORS_ORIGINS = ['*']


class ProductionConfig(Config):
    """Production-specific configuration"""
    DEBUG = False
    TESTING = False
    # Strict CORS in production
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', 'https://airdesk.app').split(',')
    PREFERRED_URL_SCHEME = 'https'


class TestingConfig(Config):
    """Testing-specific configuration"""
    DEBUG = True
    TESTING = True
    DATABASE_URL = 'sqlite://'
    EMAIL_RETRY_DELAY = 0
    LOG_FILE = 'airdesk-test.log'
    APP_URL = 'https://airdesk.test'
    # No outbound calls from the test suite
    OPENAI_API_KEY = None
    ANTHROPIC_API_KEY = None
    SMTP_HOST = ''
    TWILIO_ACCOUNT_SID = ''
    TWILIO_AUTH_TOKEN = ''
    VAPI_API_KEY = ''
    INTAKE_API_KEY = ''


# Configuration selector
config_by_name = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig,
}


def get_app_env():
    """Current environment name from FLASK_ENV"""
    return os.environ.get('FLASK_ENV', 'development')


def is_production():
    return get_app_env() == 'production'


def has_database():
    """Check if DATABASE_URL is configured"""
    return bool(os.environ.get('DATABASE_URL'))


def get_config():
    """Get configuration based on FLASK_ENV environment variable"""
    return config_by_name.get(get_app_env(), DevelopmentConfig)
