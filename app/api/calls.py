"""
Calls & Dashboard Routes Blueprint

- /api/calls: Paginated call list, optional start/end range
- /api/calls/<call_id>: One call with its event history
- /api/dashboard/stats: Header counts for the dashboard
"""

import logging
from flask import Blueprint, request, jsonify

from app.api.common import current_firm, date_range_args, error_response, server_error
from security import require_user

logger = logging.getLogger(__name__)

# Create blueprint
calls_bp = Blueprint('calls_bp', __name__)

MAX_PAGE_SIZE = 200


@calls_bp.route('/api/calls', methods=['GET'])
@require_user
def list_calls():
    """Calls for the user's firm, newest first"""
    from database.connection import get_db_session
    from services.call_repository import CallRepository

    try:
        start, end = date_range_args()
        limit = min(int(request.args.get('limit', 50)), MAX_PAGE_SIZE)
        offset = max(int(request.args.get('offset', 0)), 0)
    except ValueError as e:
        return error_response(f"Invalid query parameter: {e}", 400)

    try:
        with get_db_session() as session:
            firm = current_firm(session)
            if not firm:
                return jsonify({'success': True, 'calls': [], 'count': 0})

            calls = CallRepository(session, firm.id).list_calls(start, end, limit=limit, offset=offset)
            return jsonify({'success': True, 'calls': calls, 'count': len(calls)})

    except Exception as e:
        return server_error('listing calls', e)


@calls_bp.route('/api/calls/<call_id>', methods=['GET'])
@require_user
def get_call(call_id):
    """Call detail with transcript, intake, summary and history"""
    from database.connection import get_db_session
    from services.call_repository import CallRepository
    from services.event_logger import EventLogger

    try:
        with get_db_session() as session:
            firm = current_firm(session)
            call = CallRepository(session, firm.id).get_call(call_id) if firm else None
            if not call:
                return error_response('Call not found', 404)

            history = EventLogger(session, firm.id).get_entity_history('call', call.id)
            return jsonify({'success': True, 'call': call.to_dict(), 'history': history})

    except Exception as e:
        return server_error(f"loading call {call_id}", e)


@calls_bp.route('/api/dashboard/stats', methods=['GET'])
@require_user
def dashboard_stats():
    """Calls, leads, urgent and emailed counts"""
    from database.connection import get_db_session
    from services.call_repository import CallRepository

    try:
        start, end = date_range_args()
    except ValueError as e:
        return error_response(f"Invalid date range: {e}", 400)

    try:
        with get_db_session() as session:
            firm = current_firm(session)
            if not firm:
                return error_response('Firm not found', 404)

            stats = CallRepository(session, firm.id).dashboard_stats(start, end)
            return jsonify({'success': True, 'stats': stats})

    except Exception as e:
        return server_error('loading dashboard stats', e)
