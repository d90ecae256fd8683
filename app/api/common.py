"""
Helpers shared by the API blueprints: JSON bodies, error bodies and the
firm that belongs to the authenticated user.
"""

import logging
from flask import current_app, g, jsonify, request

logger = logging.getLogger(__name__)


def json_body():
    """Request JSON as a dict; anything else becomes an empty dict."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def error_response(error, status_code, **extra):
    body = {'success': False, 'error': error}
    body.update(extra)
    return jsonify(body), status_code


def server_error(context, error):
    """Log an unexpected failure and return a sanitized 500."""
    from security import sanitize_error_response

    logger.error(f"Error {context}: {error}", exc_info=True)
    return jsonify(sanitize_error_response(error, include_details=current_app.debug)), 500


def current_firm(session):
    """The firm owned by g.user_id, or None when the user has not set one up."""
    from services.firm_repository import FirmRepository

    return FirmRepository(session).get_for_owner(g.user_id)


def date_range_args():
    """
    start/end query params as datetimes.

    Raises:
        ValueError: If a value cannot be parsed
    """
    from services.call_repository import parse_date_range

    return parse_date_range(request.args.get('start'), request.args.get('end'))


def bool_arg(name, default=False):
    value = request.args.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')
