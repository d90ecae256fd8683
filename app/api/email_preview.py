"""
Ticket Email Preview Routes Blueprint

- /api/preview-email: Rendered sample ticket as JSON (subject, html, text)
- /api/preview-email/html: Rendered sample ticket for the browser
- /api/test-intake-email: Send the sample ticket to the firm's notify list or ?to=
"""

import logging
from flask import Blueprint, Response, jsonify, request, current_app

from app.api.common import error_response, server_error

logger = logging.getLogger(__name__)

# Create blueprint
email_preview_bp = Blueprint('email_preview_bp', __name__)

SAMPLE_CALL_ID = 'test-call-id-123'
SAMPLE_CALLER_PHONE = '+15551234567'
DEFAULT_SAMPLE_FEE = 99


def _render_sample(firm=None):
    from services.email_samples import SAMPLE_INTAKE, SAMPLE_SUMMARY, SAMPLE_TRANSCRIPT
    from services.ticket_email import render_ticket_email

    fee = firm.service_call_fee if firm and firm.service_call_fee is not None else DEFAULT_SAMPLE_FEE
    return render_ticket_email(
        SAMPLE_INTAKE,
        summary=SAMPLE_SUMMARY,
        transcript=SAMPLE_TRANSCRIPT,
        recording_url=None,
        caller_phone=SAMPLE_CALLER_PHONE,
        send_incomplete=bool(firm.send_incomplete_tickets) if firm else False,
        call_id=SAMPLE_CALL_ID,
        service_call_fee=fee,
        app_url=current_app.config.get('APP_URL', ''),
    )


def _optional_firm(session):
    """Firm for X-User-Id when present; these routes also work signed out."""
    from services.firm_repository import FirmRepository

    user_id = (request.headers.get('X-User-Id') or '').strip()
    if not user_id:
        return None
    return FirmRepository(session).get_for_owner(user_id)


@email_preview_bp.route('/api/preview-email', methods=['GET'])
def preview_email():
    try:
        email = _render_sample()
        return jsonify({
            'success': True,
            'ticket_number': email.ticket_number,
            'subject': email.subject,
            'priority': email.priority,
            'status': email.status,
            'html': email.html,
            'text': email.text,
        })
    except Exception as e:
        return server_error('rendering email preview', e)


@email_preview_bp.route('/api/preview-email/html', methods=['GET'])
def preview_email_html():
    try:
        return Response(_render_sample().html, mimetype='text/html')
    except Exception as e:
        return server_error('rendering email preview', e)


@email_preview_bp.route('/api/test-intake-email', methods=['POST'])
def send_test_email():
    """
    Send the sample ticket. Recipients: the firm's notify list when the
    caller is signed in and has one, otherwise the ?to= address.
    """
    from database.connection import get_db_session
    from services.firm_repository import FirmRepository
    from services.ticket_email import EmailDeliveryError, EmailSender
    from validators import validate_email

    try:
        with get_db_session() as session:
            firm = _optional_firm(session)
            recipients = FirmRepository(session).recipients(firm) if firm else None

            if not recipients:
                to_param = (request.args.get('to') or '').strip().lower()
                if not to_param:
                    return error_response(
                        'Missing notification emails. Configure in settings or use: '
                        '/api/test-intake-email?to=your@email.com', 400
                    )
                is_valid, error = validate_email(to_param)
                if not is_valid:
                    return error_response(error, 400)
                recipients = {'to': [to_param], 'cc': []}

            email = _render_sample(firm)
            email.to = recipients['to']
            email.cc = recipients['cc']

        logger.info(f"[Test Email] Sending sample ticket email to {email.to}")
        try:
            email_id = EmailSender(current_app.config).send(email)
        except EmailDeliveryError as e:
            return error_response(
                'Failed to send sample HVAC ticket email', 500,
                details=str(e), recipient=email.to,
            )

        return jsonify({
            'success': True,
            'message': 'Sample HVAC ticket email sent successfully',
            'recipient': email.to,
            'cc': email.cc,
            'emailId': email_id,
            'from': current_app.config.get('FROM_EMAIL'),
        })

    except Exception as e:
        return server_error('sending test email', e)
