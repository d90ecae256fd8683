"""
Application Initialization Module
Builds the Flask app with config, logging, security, database and AI service
"""
from flask import Flask
from config import get_config, get_app_env, is_production, has_database
from logging_config import setup_logging
from ai_service import AIService
from security import setup_security
from health_checks import register_health_checks
import logging

logger = logging.getLogger(__name__)


def create_app(config_class=None):
    """
    Application factory

    Args:
        config_class: Config class to load; defaults to the one selected by FLASK_ENV

    Returns:
        Configured Flask application instance
    """
    app = Flask(__name__)

    app.config.from_object(config_class or get_config())

    setup_logging(app)

    logger.info("=" * 60)
    logger.info("Initializing AirDesk backend")
    logger.info("=" * 60)
    logger.info(f"Environment: {get_app_env()}")
    logger.info(f"Debug mode: {app.debug}")

    if is_production() and not has_database():
        logger.error("DATABASE_URL is not set in production, falling back to the configured default")
    elif not app.testing and not has_database():
        logger.info(f"DATABASE_URL not set, using {app.config['DATABASE_URL']}")

    # CORS, headers, error handlers
    setup_security(app, app.config)

    initialize_database(app)

    app.ai_service = initialize_ai_service(app)

    from app import register_blueprints
    register_blueprints(app)
    register_health_checks(app)

    logger.info("Application initialization complete")
    logger.info("=" * 60)

    return app


def initialize_database(app):
    """
    Bind the engine to DATABASE_URL. Tables are created directly in
    development and tests; production schemas come from Alembic.
    """
    from database.connection import init_engine, init_db

    init_engine(app.config['DATABASE_URL'])

    if app.testing or app.debug:
        try:
            init_db()
        except Exception as e:
            logger.error(f"Failed to create tables: {e}")
            if app.testing:
                raise


def initialize_ai_service(app):
    """
    Initialize centralized AI service manager

    Args:
        app: Flask application instance

    Returns:
        AIService instance
    """
    ai_service = AIService(app.config)

    available_services = []
    if ai_service.is_available('openai'):
        available_services.append('OpenAI')
    if ai_service.is_available('claude'):
        available_services.append('Claude')

    if available_services:
        logger.info(f"AI Services initialized: {', '.join(available_services)}")
    else:
        logger.warning("No AI services configured, extraction and summaries use fallbacks")

    return ai_service
