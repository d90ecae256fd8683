"""
Twilio Routes Blueprint

- /api/twilio/update-webhooks: Point the firm's number at this service
- /api/twilio/voice: Inbound call webhook, hands the call to the voice platform
- /api/twilio/status: Call status callback, records when a call ended
"""

import logging
from datetime import datetime
from functools import wraps
from flask import Blueprint, Response, g, jsonify, request, current_app
from twilio.request_validator import RequestValidator
from twilio.twiml.voice_response import VoiceResponse

from app.api.common import error_response, json_body, server_error
from security import require_user

logger = logging.getLogger(__name__)

# Create blueprint
twilio_bp = Blueprint('twilio_bp', __name__)

FINAL_CALL_STATUSES = frozenset({'completed', 'busy', 'failed', 'no-answer', 'canceled'})
NOT_CONFIGURED_MESSAGE = 'Sorry, this number is not set up to take calls yet. Goodbye.'


def twilio_signed(f):
    """
    Reject webhook requests without a valid X-Twilio-Signature.
    Enforced only when TWILIO_AUTH_TOKEN is configured.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_token = current_app.config.get('TWILIO_AUTH_TOKEN')
        if auth_token:
            signature = request.headers.get('X-Twilio-Signature', '')
            if not RequestValidator(auth_token).validate(request.url, request.form.to_dict(), signature):
                logger.warning(f"[Twilio] Invalid signature for {request.path}")
                return error_response('Invalid Twilio signature', 403)
        return f(*args, **kwargs)

    return decorated_function


def _twiml(response: VoiceResponse):
    return Response(str(response), mimetype='text/xml')


@twilio_bp.route('/api/twilio/update-webhooks', methods=['POST'])
@require_user
def update_webhooks():
    """
    Body: {"firmId": "..."} (firm_id also accepted)
    """
    from database.connection import get_db_session
    from services.firm_repository import FirmRepository
    from services.event_logger import EventLogger
    from services.twilio_webhooks import (
        TwilioConfigError, TwilioNumberNotFound, TwilioUpdateError,
        build_client, update_number_webhooks,
    )

    data = json_body()
    firm_id = data.get('firmId') or data.get('firm_id')
    if not firm_id:
        return error_response('Missing firmId', 400)

    try:
        with get_db_session() as session:
            firm = FirmRepository(session).get(firm_id)
            if not firm:
                return error_response('Firm not found', 404)
            if firm.owner_user_id != g.user_id:
                return error_response('Forbidden', 403)
            if not firm.twilio_number:
                return error_response(
                    'No Twilio number found', 400,
                    message='This firm does not have a Twilio number configured',
                )

            try:
                client = build_client(current_app.config.get('TWILIO_ACCOUNT_SID'),
                                      current_app.config.get('TWILIO_AUTH_TOKEN'))
                result = update_number_webhooks(client, firm.twilio_number,
                                                current_app.config.get('APP_URL'))
            except TwilioConfigError as e:
                return error_response(str(e), 500)
            except TwilioNumberNotFound as e:
                return error_response('Phone number not found in Twilio account', 404, message=str(e))
            except TwilioUpdateError as e:
                return error_response('Failed to update Twilio webhooks', 500, details=str(e))

            EventLogger(session, firm.id, actor_type='user', actor_id=g.user_id).log(
                'firm', firm.id, 'WEBHOOKS_UPDATED', metadata=result,
            )
            return jsonify({
                'success': True,
                'message': 'Twilio webhook URLs updated successfully',
                'phoneNumber': result['phone_number'],
                'voiceUrl': result['voice_url'],
                'statusUrl': result['status_url'],
            })

    except Exception as e:
        return server_error(f"updating Twilio webhooks for firm {firm_id}", e)


@twilio_bp.route('/api/twilio/voice', methods=['POST'])
@twilio_signed
def inbound_voice():
    """
    Register the call and redirect it to the voice platform.
    Unknown numbers get a short message and a hangup.
    """
    from database.connection import get_db_session
    from services.firm_repository import FirmRepository
    from services.call_repository import CallRepository
    from services.event_logger import EventLogger
    from services.twilio_webhooks import VAPI_INBOUND_URL
    from app.utils.helpers import normalize_phone_e164

    call_sid = request.form.get('CallSid')
    to_number = request.form.get('To')
    from_number = request.form.get('From')

    response = VoiceResponse()
    with get_db_session() as session:
        firm = FirmRepository(session).get_by_twilio_number(to_number)
        if not firm:
            logger.warning(f"[Twilio] Inbound call {call_sid} to unknown number {to_number}")
            response.say(NOT_CONFIGURED_MESSAGE)
            response.hangup()
            return _twiml(response)

        repo = CallRepository(session, firm.id)
        if call_sid and repo.get_by_external_id(call_sid) is None:
            call = repo.create_call(
                from_number=normalize_phone_e164(from_number) if from_number else None,
                external_call_id=call_sid,
            )
            EventLogger(session, firm.id, actor_type='system').log(
                'call', call.id, 'CALL_STARTED', metadata={'from_number': call.from_number},
            )

    response.redirect(VAPI_INBOUND_URL, method='POST')
    return _twiml(response)


@twilio_bp.route('/api/twilio/status', methods=['POST'])
@twilio_signed
def call_status():
    """Record the end time of a finished call"""
    from database.connection import get_db_session
    from database.models import Call

    call_sid = request.form.get('CallSid')
    status = (request.form.get('CallStatus') or '').lower()

    if call_sid and status in FINAL_CALL_STATUSES:
        with get_db_session() as session:
            call = session.query(Call).filter(Call.external_call_id == call_sid).first()
            if call and not call.ended_at:
                call.ended_at = datetime.utcnow()
                logger.info(f"[Twilio] Call {call.id} ended with status {status}")

    return '', 204
