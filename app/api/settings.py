"""
Firm Settings Routes Blueprint

- /api/settings: Read / update the user's firm (created on first save)
- /api/settings/voice-agent/sync: Push the assistant config to the voice platform
"""

import logging
from flask import Blueprint, g, jsonify, current_app

from app.api.common import current_firm, error_response, json_body, server_error
from security import require_user

logger = logging.getLogger(__name__)

# Create blueprint
settings_bp = Blueprint('settings_bp', __name__)

# Settings that change what the voice agent says
VOICE_AGENT_FIELDS = frozenset({
    'firm_name', 'agent_name', 'ai_greeting_custom', 'ai_knowledge_base',
    'default_next_available', 'service_fee_enabled', 'service_call_fee',
})


def _vapi_client():
    """VapiClient, or None when the voice platform is not configured."""
    from services.vapi_agent import VapiClient

    api_key = current_app.config.get('VAPI_API_KEY')
    if not api_key:
        return None
    return VapiClient(api_key, base_url=current_app.config.get('VAPI_BASE_URL', 'https://api.vapi.ai'))


def _sync_best_effort(session, firm):
    """Push voice agent changes; failures are reported, never raised."""
    from services.vapi_agent import VapiError, sync_voice_agent
    from services.event_logger import EventLogger

    client = _vapi_client()
    if client is None:
        return {'synced': False, 'error': 'Voice platform not configured'}

    try:
        result = sync_voice_agent(firm, client)
    except VapiError as e:
        logger.warning(f"Voice agent sync failed for firm {firm.id}: {e}")
        return {'synced': False, 'error': str(e)}

    EventLogger(session, firm.id, actor_type='user', actor_id=g.user_id).log(
        'firm', firm.id, 'VOICE_AGENT_SYNCED', metadata=result,
    )
    return {'synced': True, **result}


@settings_bp.route('/api/settings', methods=['GET'])
@require_user
def get_settings():
    from database.connection import get_db_session

    try:
        with get_db_session() as session:
            firm = current_firm(session)
            return jsonify({'success': True, 'firm': firm.to_dict() if firm else None})

    except Exception as e:
        return server_error('loading settings', e)


@settings_bp.route('/api/settings', methods=['PUT'])
@require_user
def update_settings():
    """
    Partial update. Unknown keys are ignored; notify/cc emails are
    normalized. firm_name is required when the firm does not exist yet.
    """
    from database.connection import get_db_session
    from services.firm_repository import FirmRepository
    from services.event_logger import EventLogger
    from validators import ValidationError, format_validation_error, validate_settings_update
    from app.utils.helpers import normalize_phone_e164

    try:
        changes = validate_settings_update(json_body())
    except ValidationError as e:
        return jsonify(format_validation_error(e.field, e.message)), 400

    if changes.get('twilio_number'):
        changes['twilio_number'] = normalize_phone_e164(changes['twilio_number'])

    try:
        with get_db_session() as session:
            repo = FirmRepository(session)
            firm = current_firm(session)

            if firm is None:
                if not changes.get('firm_name'):
                    return jsonify(format_validation_error('firm_name', 'firm_name is required')), 400
                firm = repo.create(g.user_id, **changes)
                diff = {field: {'old': None, 'new': value} for field, value in changes.items()}
            else:
                diff = repo.update_settings(firm, changes)

            voice_agent = None
            if diff:
                EventLogger(session, firm.id, actor_type='user', actor_id=g.user_id).log(
                    'firm', firm.id, 'SETTINGS_UPDATED', metadata={'fields': sorted(diff)},
                )
                if VOICE_AGENT_FIELDS & set(diff):
                    voice_agent = _sync_best_effort(session, firm)

            return jsonify({
                'success': True,
                'firm': firm.to_dict(),
                'changed': sorted(diff),
                'voice_agent': voice_agent,
            })

    except Exception as e:
        return server_error('updating settings', e)


@settings_bp.route('/api/settings/voice-agent/sync', methods=['POST'])
@require_user
def sync_voice_agent_route():
    """Explicit push of the assistant config"""
    from database.connection import get_db_session
    from services.vapi_agent import VapiError, sync_voice_agent
    from services.event_logger import EventLogger

    client = _vapi_client()
    if client is None:
        return error_response('Voice platform not configured', 503)

    try:
        with get_db_session() as session:
            firm = current_firm(session)
            if not firm:
                return error_response('Firm not found', 404)

            try:
                result = sync_voice_agent(firm, client)
            except VapiError as e:
                return error_response('Failed to sync voice agent', 502, details=str(e))

            EventLogger(session, firm.id, actor_type='user', actor_id=g.user_id).log(
                'firm', firm.id, 'VOICE_AGENT_SYNCED', metadata=result,
            )
            return jsonify({'success': True, **result})

    except Exception as e:
        return server_error('syncing voice agent', e)
