"""
Tests for post-call processing: extraction, summary, ticket and email
"""
import pytest
from unittest.mock import Mock

from services.call_pipeline import finalize_call
from services.call_repository import CallRepository
from services.event_logger import EventLogger
from services.firm_repository import FirmRepository
from services.ticket_email import EmailDeliveryError, EmailSender


@pytest.fixture
def firm(db_session, firm_id):
    return FirmRepository(db_session).get(firm_id)


@pytest.fixture
def call(db_session, firm):
    call = CallRepository(db_session, firm.id).create_call('+15551234567', external_call_id='CA1')
    call.intake_json = {'callerName': 'John Smith', 'issueCategory': 'No heat', 'urgency': 'ASAP'}
    return call


@pytest.fixture
def sender():
    sender = Mock(spec=EmailSender)
    sender.send.return_value = '<abc@airdesk.app>'
    return sender


@pytest.mark.integration
class TestFinalizeCall:
    """finalize_call"""

    def test_ticket_created_and_emailed(self, db_session, firm, call, sender, offline_ai, sample_transcript):
        result = finalize_call(db_session, firm, call, offline_ai, sender,
                               transcript=sample_transcript,
                               recording_url='https://recordings.example/1.mp3',
                               app_url='https://airdesk.test')

        assert result['emailed'] is True
        assert result['email_error'] is None
        ticket = result['call']
        assert ticket['status'] == 'emailed'
        assert ticket['ticket_status'] == 'READY'
        assert ticket['priority'] == 'URGENT'
        assert ticket['ticket_number'].startswith('HVAC-')
        assert ticket['email_id'] == '<abc@airdesk.app>'
        assert ticket['urgency'] == 'ASAP'
        assert ticket['ended_at'] is not None
        assert ticket['summary']['title'] == 'No heat - John Smith - Unknown'

        email = sender.send.call_args[0][0]
        assert email.to == ['dispatch@abchvac.com']
        assert email.cc == ['owner@abchvac.com']
        assert email.ticket_number == ticket['ticket_number']
        assert 'https://airdesk.test/calls/' in email.html

        events = EventLogger(db_session, firm.id).get_entity_history('call', call.id)
        assert {'INTAKE_COMPLETED', 'EMAIL_SENT'} <= {e['event_type'] for e in events}

    def test_llm_values_merged_under_live_values(self, db_session, firm, call, sender, mock_ai, sample_transcript):
        mock_ai.complete_json.side_effect = [
            {'callerName': 'Jon Smyth', 'city': 'Chicago', 'callerPhone': '5551234567'},
            {'title': 'No Heat - John Smith', 'summary_bullets': ['Caller: John Smith'], 'urgency_level': 'normal'},
        ]
        result = finalize_call(db_session, firm, call, mock_ai, sender, transcript=sample_transcript)

        intake = result['call']['intake']
        assert intake['callerName'] == 'John Smith'
        assert intake['city'] == 'Chicago'
        assert intake['callerPhone'] == '+15551234567'
        assert result['call']['summary']['urgency_level'] == 'high'

    def test_email_failure_keeps_ticket(self, db_session, firm, call, sender, offline_ai):
        sender.send.side_effect = EmailDeliveryError('connection refused')

        result = finalize_call(db_session, firm, call, offline_ai, sender, transcript='Caller: no heat')

        assert result['emailed'] is False
        assert result['email_error'] == 'connection refused'
        assert result['call']['status'] == 'email_failed'
        assert result['call']['ticket_status'] == 'READY'

    def test_no_recipients(self, db_session, firm, call, sender, offline_ai):
        firm.notify_emails = []

        result = finalize_call(db_session, firm, call, offline_ai, sender)

        assert result['emailed'] is False
        assert result['email_error'] == 'No notify emails configured'
        assert result['call']['ticket_status'] == 'READY'
        sender.send.assert_not_called()

    def test_already_emailed_is_noop(self, db_session, firm, call, sender, offline_ai):
        finalize_call(db_session, firm, call, offline_ai, sender)
        result = finalize_call(db_session, firm, call, offline_ai, sender)

        assert result['emailed'] is True
        assert sender.send.call_count == 1
