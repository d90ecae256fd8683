"""
Security Utilities & Middleware
Provides security hardening and request identity for the API
"""
import os
import secrets
from functools import wraps
from typing import Callable, Dict, Any
from flask import Flask, request, jsonify, Response, g, current_app
from flask_cors import CORS
import logging

logger = logging.getLogger(__name__)

# Set by the hosted auth gateway in front of this service
USER_ID_HEADER = 'X-User-Id'
QUIET_PATHS = ('/api/health', '/api/ping', '/api/ready')


class SecurityConfig:
    """Security configuration and validation"""

    @staticmethod
    def generate_secret_key() -> str:
        return secrets.token_hex(32)

    @staticmethod
    def validate_secret_key(secret_key: str) -> bool:
        """
        Validate that secret key is sufficiently secure

        Returns:
            True if key is secure, False otherwise
        """
        if not secret_key:
            return False

        # Minimum 32 characters for 128-bit security
        if len(secret_key) < 32:
            logger.warning("Secret key is too short (minimum 32 characters)")
            return False

        weak_keys = ['dev', 'test', 'secret', 'password', '12345']
        if any(weak in secret_key.lower() for weak in weak_keys):
            logger.warning("Secret key appears to be weak or default")
            return False

        return True

    @staticmethod
    def ensure_secret_key(config: Dict[str, Any]) -> str:
        """Return the configured secret key, or a generated one if it is missing or weak"""
        secret_key = config.get('SECRET_KEY')

        if not secret_key or not SecurityConfig.validate_secret_key(secret_key):
            if os.environ.get('FLASK_ENV') == 'production':
                logger.error("No secure SECRET_KEY in production! Generating one...")

            secret_key = SecurityConfig.generate_secret_key()
            logger.warning(f"Generated new secret key (length: {len(secret_key)})")

        return secret_key


def setup_security_headers(app: Flask):
    """Add security headers to all responses"""
    @app.after_request
    def add_security_headers(response: Response) -> Response:
        response.headers['X-Frame-Options'] = 'DENY'
        response.headers['X-Content-Type-Options'] = 'nosniff'

        if not app.debug:
            response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'

        # JSON API, except the email preview which renders inline styles
        if request.path.startswith('/api/preview-email'):
            response.headers['Content-Security-Policy'] = "default-src 'none'; style-src 'unsafe-inline'; img-src * data:"
        else:
            response.headers['Content-Security-Policy'] = "default-src 'none'; frame-ancestors 'none'"

        response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'
        return response

    logger.info("Security headers configured")


def setup_cors(app: Flask, config: Dict[str, Any]):
    """Configure CORS for the dashboard origin(s)"""
    cors_origins = config.get('CORS_ORIGINS', ['*'])
    cors_methods = config.get('CORS_METHODS', ['GET', 'POST', 'PUT', 'PATCH', 'DELETE', 'OPTIONS'])
    cors_headers = config.get('CORS_ALLOW_HEADERS', ['Content-Type', 'Authorization', USER_ID_HEADER])

    if not app.debug and '*' in cors_origins:
        logger.warning("Using wildcard CORS in production! Set CORS_ORIGINS environment variable.")

    CORS(
        app,
        origins=cors_origins,
        methods=cors_methods,
        allow_headers=cors_headers,
        supports_credentials=True,
        max_age=3600
    )

    logger.info(f"CORS configured: origins={cors_origins}")


def require_user(f: Callable) -> Callable:
    """
    Decorator for dashboard endpoints. The auth gateway passes the
    authenticated user id in X-User-Id; it is exposed as g.user_id.

    Usage:
        @bp.route('/api/tickets')
        @require_user
        def list_tickets():
            ...
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user_id = (request.headers.get(USER_ID_HEADER) or '').strip()

        if not user_id:
            logger.warning(f"Unauthenticated request to {request.path}")
            return jsonify({'success': False, 'error': 'Unauthorized'}), 401

        g.user_id = user_id
        return f(*args, **kwargs)

    return decorated_function


def require_api_key(f: Callable) -> Callable:
    """
    Decorator for machine-to-machine endpoints (voice platform turn calls).
    Enforced only when INTAKE_API_KEY is configured.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        expected_key = current_app.config.get('INTAKE_API_KEY')
        if not expected_key:
            return f(*args, **kwargs)

        api_key = request.headers.get('X-API-Key')
        if not api_key:
            logger.warning(f"Missing API key for {request.path}")
            return jsonify({'success': False, 'error': 'API key required'}), 401

        if not secrets.compare_digest(api_key, expected_key):
            logger.warning(f"Invalid API key for {request.path}")
            return jsonify({'success': False, 'error': 'Invalid API key'}), 403

        return f(*args, **kwargs)

    return decorated_function


def sanitize_error_response(error: Exception, include_details: bool = False) -> Dict[str, Any]:
    """
    Error body that never leaks internals outside debug mode
    """
    error_response = {
        'success': False,
        'error': 'Internal Server Error',
        'message': 'An error occurred while processing your request'
    }

    if include_details:
        error_response['details'] = str(error)
        error_response['type'] = type(error).__name__

    return error_response


def setup_error_handlers(app: Flask):
    """
    Register JSON error handlers that don't expose stack traces
    """
    include_details = app.debug

    def _error(status, error, message):
        return jsonify({'success': False, 'error': error, 'message': message}), status

    @app.errorhandler(400)
    def bad_request(error):
        return _error(400, 'Bad Request', 'The request could not be understood or was missing required parameters')

    @app.errorhandler(401)
    def unauthorized(error):
        return _error(401, 'Unauthorized', 'Authentication required')

    @app.errorhandler(403)
    def forbidden(error):
        return _error(403, 'Forbidden', 'You do not have permission to access this resource')

    @app.errorhandler(404)
    def not_found(error):
        return _error(404, 'Not Found', 'The requested resource was not found')

    @app.errorhandler(405)
    def method_not_allowed(error):
        return _error(405, 'Method Not Allowed', 'The method is not allowed for the requested URL')

    @app.errorhandler(409)
    def conflict(error):
        return _error(409, 'Conflict', 'The request conflicts with the current state of the resource')

    @app.errorhandler(413)
    def request_entity_too_large(error):
        return _error(413, 'Payload Too Large', 'The request is too large')

    @app.errorhandler(429)
    def rate_limit_exceeded(error):
        return _error(429, 'Rate Limit Exceeded', 'Too many requests. Please try again later')

    @app.errorhandler(500)
    def internal_server_error(error):
        logger.error(f"Internal server error: {error}", exc_info=True)
        return jsonify(sanitize_error_response(error, include_details)), 500

    @app.errorhandler(503)
    def service_unavailable(error):
        return _error(503, 'Service Unavailable', 'The service is temporarily unavailable. Please try again later')

    logger.info("Error handlers registered")


def setup_request_logging(app: Flask):
    """Request/response logging, skipping health probes"""
    @app.before_request
    def log_request():
        if request.path in QUIET_PATHS:
            return

        logger.info(
            f"Request: {request.method} {request.path} "
            f"from {request.remote_addr} "
            f"User-Agent: {request.user_agent.string[:100]}"
        )

    @app.after_request
    def log_response(response: Response) -> Response:
        if request.path in QUIET_PATHS:
            return response

        logger.info(
            f"Response: {request.method} {request.path} "
            f"status={response.status_code} "
            f"size={response.content_length}"
        )

        return response

    logger.info("Request logging configured")


def validate_environment_variables(required_vars: list, app: Flask):
    """
    Warn about missing environment variables

    Returns:
        True if all are set
    """
    missing_vars = []

    for var in required_vars:
        if not os.environ.get(var):
            missing_vars.append(var)
            logger.warning(f"Missing environment variable: {var}")

    if missing_vars and not app.debug:
        logger.error(f"Missing required environment variables in production: {missing_vars}")
        logger.error("Application may not function correctly!")

    return len(missing_vars) == 0


def setup_security(app: Flask, config: Dict[str, Any]):
    """
    Setup all security features for the application
    """
    logger.info("Configuring application security...")

    app.secret_key = SecurityConfig.ensure_secret_key(config)
    setup_cors(app, config)
    setup_security_headers(app)
    setup_error_handlers(app)
    setup_request_logging(app)

    if not app.debug and not app.testing:
        validate_environment_variables(
            ['SECRET_KEY', 'DATABASE_URL', 'OPENAI_API_KEY', 'SMTP_HOST'],
            app
        )

    logger.info("Security configuration complete")
