"""
Voice Intake Routes Blueprint

Called by the voice platform while a caller is on the line:
- /api/intake/calls: Start a call (firm by id or dialed number)
- /api/intake/calls/<call_id>/turn: One caller utterance in, one agent reply out
- /api/intake/calls/<call_id>/finalize: Transcript -> ticket -> email
"""

import logging
from flask import Blueprint, jsonify, current_app

from app.api.common import error_response, json_body, server_error
from security import require_api_key

logger = logging.getLogger(__name__)

# Create blueprint
intake_bp = Blueprint('intake_bp', __name__)

CALLER_LABEL = 'Caller'
AGENT_LABEL = 'AI Receptionist'
HISTORY_LINES = 10


def _load_call(session, call_id):
    """Call and its firm; intake requests are not user scoped."""
    from database.models import Call

    call = session.query(Call).filter(Call.id == call_id).first()
    if not call:
        return None, None
    return call, call.firm


def _append_transcript(call, *lines):
    lines = [line for line in lines if line]
    if not lines:
        return
    existing = call.transcript_text or ''
    joined = '\n'.join(lines)
    call.transcript_text = f"{existing}\n{joined}" if existing else joined


# ============================================================================
# START
# ============================================================================

@intake_bp.route('/api/intake/calls', methods=['POST'])
@require_api_key
def start_call():
    """
    Register a new inbound call.

    Body: {"firm_id" | "to_number", "from_number"?, "external_call_id"?}
    Re-posting the same external_call_id returns the existing call.
    """
    from validators import validate_start_call_request
    from database.connection import get_db_session
    from services.firm_repository import FirmRepository
    from services.call_repository import CallRepository
    from services.event_logger import EventLogger
    from services.intake_prompts import render_greeting
    from app.utils.helpers import normalize_phone_e164

    data = json_body()
    is_valid, error = validate_start_call_request(data)
    if not is_valid:
        return error_response(error, 400)

    try:
        with get_db_session() as session:
            firms = FirmRepository(session)
            if data.get('firm_id'):
                firm = firms.get(data['firm_id'])
            else:
                firm = firms.get_by_twilio_number(data['to_number'])
            if not firm:
                return error_response('Firm not found', 404)

            repo = CallRepository(session, firm.id)
            external_id = data.get('external_call_id')
            call = repo.get_by_external_id(external_id) if external_id else None
            created = call is None

            if created:
                from_number = data.get('from_number')
                call = repo.create_call(
                    from_number=normalize_phone_e164(from_number) if from_number else None,
                    external_call_id=external_id,
                )
                EventLogger(session, firm.id, actor_type='agent').log(
                    'call', call.id, 'CALL_STARTED',
                    metadata={'from_number': call.from_number},
                )

            greeting = render_greeting(firm.ai_greeting_custom, firm.firm_name, firm.agent_name)
            if created:
                _append_transcript(call, f"{AGENT_LABEL}: {greeting}")

            return jsonify({
                'success': True,
                'call_id': call.id,
                'created': created,
                'state': call.intake_state,
                'greeting': greeting,
            }), 201 if created else 200

    except Exception as e:
        return server_error('starting call', e)


# ============================================================================
# TURN
# ============================================================================

@intake_bp.route('/api/intake/calls/<call_id>/turn', methods=['POST'])
@require_api_key
def call_turn(call_id):
    """
    Advance the intake state machine by one caller utterance.

    Body: {"utterance": "..."}
    Returns: assistant_say, next_state, updates, done
    """
    from validators import validate_turn_request
    from database.connection import get_db_session
    from services.intake_state_machine import conversation_from_call, store_conversation
    from services.intake_extraction import make_turn_extractor

    data = json_body()
    is_valid, error = validate_turn_request(data)
    if not is_valid:
        return error_response(error, 400)
    utterance = (data.get('utterance') or '').strip()

    try:
        with get_db_session() as session:
            call, firm = _load_call(session, call_id)
            if not call:
                return error_response('Call not found', 404)
            if call.status != 'in_progress':
                return error_response('Call is no longer in progress', 409, status=call.status)

            history = (call.transcript_text or '').splitlines()[-HISTORY_LINES:]
            conversation = conversation_from_call(
                call, firm,
                max_agent_messages=current_app.config['INTAKE_MAX_AGENT_MESSAGES'],
                fallback_extractor=make_turn_extractor(current_app.ai_service, history),
            )
            result = conversation.process_turn(utterance)
            store_conversation(call, conversation)

            _append_transcript(
                call,
                f"{CALLER_LABEL}: {utterance}" if utterance else None,
                f"{AGENT_LABEL}: {result.assistant_say}" if result.assistant_say else None,
            )

            if result.updates:
                logger.debug(f"Call {call_id} turn updates: {sorted(result.updates)}")
            if result.done:
                logger.info(f"Call {call_id} intake finished after {conversation.agent_messages} agent messages")

            response = {'success': True, 'call_id': call.id}
            response.update(result.to_dict())
            return jsonify(response)

    except Exception as e:
        return server_error(f"processing turn for call {call_id}", e)


# ============================================================================
# FINALIZE
# ============================================================================

@intake_bp.route('/api/intake/calls/<call_id>/finalize', methods=['POST'])
@require_api_key
def finalize(call_id):
    """
    End-of-call processing. Extraction and summary failures fall back;
    an email failure is reported but the ticket still exists.

    Body: {"transcript"?, "recording_url"?}
    """
    from validators import validate_finalize_request
    from database.connection import get_db_session
    from services.call_pipeline import finalize_call
    from services.ticket_email import EmailSender

    data = json_body()
    is_valid, error = validate_finalize_request(data)
    if not is_valid:
        return error_response(error, 400)

    try:
        with get_db_session() as session:
            call, firm = _load_call(session, call_id)
            if not call:
                return error_response('Call not found', 404)

            result = finalize_call(
                session, firm, call,
                ai_service=current_app.ai_service,
                email_sender=EmailSender(current_app.config),
                transcript=data.get('transcript'),
                recording_url=data.get('recording_url'),
                app_url=current_app.config.get('APP_URL', ''),
            )

            return jsonify({'success': True, **result})

    except Exception as e:
        return server_error(f"finalizing call {call_id}", e)
