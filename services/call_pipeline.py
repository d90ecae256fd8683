"""
Post-call processing: transcript -> intake -> summary -> READY ticket -> email.

Extraction and summary failures degrade to fallbacks; an email failure is
recorded on the call and never undoes the ticket.
"""

import logging
from datetime import datetime
from typing import Dict, Optional

from services.call_repository import CallRepository
from services.event_logger import EventLogger
from services.firm_repository import FirmRepository
from services.intake_extraction import extract_intake_from_transcript
from services.summarize import generate_summary
from services.ticket_email import EmailDeliveryError, EmailSender, render_ticket_email
from services.ticket_rules import generate_ticket_number

logger = logging.getLogger(__name__)


def finalize_call(session, firm, call, ai_service, email_sender: EmailSender,
                  transcript: Optional[str] = None, recording_url: Optional[str] = None,
                  app_url: str = '') -> Dict:
    """
    Turn a finished call into a ticket and email it to the firm.

    Returns:
        {'call': call dict, 'emailed': bool, 'email_error': str or None}
    """
    if call.status == 'emailed':
        logger.info(f"Call {call.id} already emailed, skipping finalize")
        return {'call': call.to_dict(), 'emailed': True, 'email_error': None}

    repo = CallRepository(session, firm.id)
    events = EventLogger(session, firm.id, actor_type='system')

    if transcript:
        call.transcript_text = transcript
    if recording_url:
        call.recording_url = recording_url
    call.ended_at = call.ended_at or datetime.utcnow()

    intake = extract_intake_from_transcript(ai_service, call.transcript_text, call.intake_json)
    summary = generate_summary(ai_service, call.transcript_text, intake)

    call.intake_json = intake
    call.summary_json = summary
    if intake.get('urgency') and intake['urgency'] != 'unknown':
        call.urgency = intake['urgency']
    call.status = 'processed'
    repo.open_ticket(call, ticket_number=generate_ticket_number())

    events.log('call', call.id, 'INTAKE_COMPLETED', metadata={'fields': sorted(intake)})
    events.log('ticket', call.id, 'TICKET_CREATED',
               metadata={'ticket_number': call.ticket_number, 'priority': call.priority})

    recipients = FirmRepository(session).recipients(firm)
    if not recipients:
        logger.warning(f"Firm {firm.id} has no notify emails, ticket {call.ticket_number} not emailed")
        session.flush()
        return {'call': call.to_dict(), 'emailed': False, 'email_error': 'No notify emails configured'}

    email = render_ticket_email(
        intake,
        summary=summary,
        transcript=call.transcript_text,
        recording_url=call.recording_url,
        caller_phone=call.from_number,
        send_incomplete=bool(firm.send_incomplete_tickets),
        call_id=call.id,
        service_call_fee=firm.service_call_fee,
        app_url=app_url,
        ticket_number=call.ticket_number,
    )
    email.to = recipients['to']
    email.cc = recipients['cc']

    try:
        call.email_id = email_sender.send(email)
        call.status = 'emailed'
        call.email_error = None
        events.log_email(call.id, call.ticket_number, email.to + email.cc)
    except EmailDeliveryError as e:
        call.status = 'email_failed'
        call.email_error = str(e)
        events.log_email(call.id, call.ticket_number, email.to + email.cc, error=str(e))

    session.flush()
    return {
        'call': call.to_dict(),
        'emailed': call.status == 'emailed',
        'email_error': call.email_error,
    }
