"""
Dispatch Board Routes Blueprint

- /api/tickets: Tickets grouped READY / DISPATCHED / COMPLETED
- /api/tickets/<ticket_id>/status: Move a ticket between columns
"""

import logging
from flask import Blueprint, g, jsonify

from app.api.common import (
    bool_arg, current_firm, date_range_args, error_response, json_body, server_error
)
from security import require_user

logger = logging.getLogger(__name__)

# Create blueprint
tickets_bp = Blueprint('tickets_bp', __name__)


@tickets_bp.route('/api/tickets', methods=['GET'])
@require_user
def get_board():
    """
    Board columns for the user's firm.

    Query: urgent_only, start, end
    """
    from database.connection import get_db_session
    from services.call_repository import CallRepository
    from services.dispatch_board import DispatchBoard

    try:
        start, end = date_range_args()
    except ValueError as e:
        return error_response(f"Invalid date range: {e}", 400)

    try:
        with get_db_session() as session:
            firm = current_firm(session)
            tickets = CallRepository(session, firm.id).list_tickets(start, end) if firm else []

            board = DispatchBoard(tickets, urgent_only=bool_arg('urgent_only'))
            return jsonify({'success': True, **board.to_dict()})

    except Exception as e:
        return server_error('loading dispatch board', e)


@tickets_bp.route('/api/tickets/<ticket_id>/status', methods=['PATCH'])
@require_user
def update_status(ticket_id):
    """
    Body: {"status": "READY" | "DISPATCHED" | "COMPLETED", "reopen"?: bool}

    Re-applying the current status succeeds without changes. Moving
    backward needs reopen=true, otherwise 409.
    """
    from database.connection import get_db_session
    from database.models import Call
    from services.call_repository import CallRepository
    from services.dispatch_board import DispatchBoard
    from services.event_logger import EventLogger
    from services.ticket_rules import TICKET_STATUSES, InvalidTicketTransition, TicketNotFound
    from validators import validate_required_fields

    data = json_body()
    is_valid, error = validate_required_fields(data, ['status'])
    if not is_valid:
        return error_response(error, 400)

    status = data['status']
    if status not in TICKET_STATUSES:
        return error_response(
            f"Invalid status. Must be {', '.join(TICKET_STATUSES[:-1])}, or {TICKET_STATUSES[-1]}", 400
        )
    reopen = data.get('reopen') is True

    try:
        with get_db_session() as session:
            call = session.query(Call).filter(Call.id == ticket_id).first()
            if not call or not call.ticket_status:
                return error_response('Ticket not found', 404)
            if call.firm is None or call.firm.owner_user_id != g.user_id:
                return error_response('Forbidden', 403)

            repo = CallRepository(session, call.firm_id)
            board = DispatchBoard([call.to_dict()])
            previous = board.get(ticket_id)['ticket_status']

            def persist(ticket_id, status):
                repo.update_ticket_status(ticket_id, status, reopen=reopen)

            try:
                changed = board.move(ticket_id, status, persist=persist, reopen=reopen)
            except InvalidTicketTransition as e:
                return error_response(str(e), 409, status=previous)
            except TicketNotFound:
                return error_response('Ticket not found', 404)

            if changed:
                EventLogger(session, call.firm_id, actor_type='user', actor_id=g.user_id) \
                    .log_status_change('ticket', ticket_id, previous, status)

            return jsonify({
                'success': True,
                'status': status,
                'changed': changed,
                'ticket': board.get(ticket_id),
            })

    except Exception as e:
        return server_error(f"updating ticket {ticket_id}", e)
