"""
AirDesk - Application Package

This package contains the modular backend structure:
- api/: HTTP route handlers (Flask Blueprints)
- utils/: Shared formatting helpers

The app factory lives in app_init.py at the project root.
Business logic lives in the top-level services package.
"""

import logging

logger = logging.getLogger(__name__)

# Import blueprints
from app.api.intake import intake_bp
from app.api.calls import calls_bp
from app.api.tickets import tickets_bp
from app.api.settings import settings_bp
from app.api.twilio_routes import twilio_bp
from app.api.email_preview import email_preview_bp


def register_blueprints(app):
    """
    Register all API blueprints with the Flask app.
    Called from app_init.create_app.
    """
    app.register_blueprint(intake_bp)
    app.register_blueprint(calls_bp)
    app.register_blueprint(tickets_bp)
    app.register_blueprint(settings_bp)
    app.register_blueprint(twilio_bp)
    app.register_blueprint(email_preview_bp)

    logger.info(f"Registered {len(app.blueprints)} blueprints")


__all__ = ['register_blueprints', 'intake_bp', 'calls_bp', 'tickets_bp', 'settings_bp',
           'twilio_bp', 'email_preview_bp']
