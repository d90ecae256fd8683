"""
Tests for the conversational intake state machine
"""
import pytest
from types import SimpleNamespace
from unittest.mock import Mock

from services.intake_prompts import CLOSING_SCRIPT, QUESTIONS, REDIRECT_SCRIPT, REPHRASES
from services.intake_state_machine import (
    IntakeContext,
    IntakeConversation,
    IntakeRecord,
    IntakeState,
    conversation_from_call,
    store_conversation,
)


def make_context(**overrides):
    values = dict(
        business_name='ABC HVAC',
        agent_name='Jessica',
        default_next_available='tomorrow morning at 8:00 a.m.',
        service_fee_enabled=True,
        service_call_fee=89.0,
    )
    values.update(overrides)
    return IntakeContext(**values)


def at_state(state, record=None, **context):
    return IntakeConversation(make_context(**context), state=state, record=IntakeRecord(record or {}))


@pytest.mark.unit
class TestIntakeRecord:
    """Tests for the monotonic intake record"""

    def test_real_value_is_never_overwritten(self):
        record = IntakeRecord({'callerName': 'John Smith'})
        applied = record.merge({'callerName': 'Bob'})
        assert applied == {}
        assert record.get('callerName') == 'John Smith'

    def test_empty_values_are_ignored(self):
        record = IntakeRecord({'city': 'Chicago'})
        record.merge({'city': '', 'state': None, 'addressLine1': '   '})
        assert record.to_dict() == {'city': 'Chicago'}

    def test_unknown_can_be_upgraded(self):
        record = IntakeRecord({'urgency': 'unknown'})
        applied = record.merge({'urgency': 'ASAP'})
        assert applied == {'urgency': 'ASAP'}
        assert record.is_known('urgency')

    def test_unknown_counts_as_present(self):
        record = IntakeRecord({'requestedWindow': 'unknown'})
        assert record.has('requestedWindow')
        assert not record.is_known('requestedWindow')

    def test_unrecognised_fields_are_dropped(self):
        record = IntakeRecord({'favoriteColor': 'blue', 'city': 'Chicago'})
        assert 'favoriteColor' not in record.to_dict()

    def test_boolean_flag_only_turns_on(self):
        record = IntakeRecord({'serviceFeeMentioned': True})
        record.merge({'serviceFeeMentioned': False})
        assert record.get('serviceFeeMentioned') is True

    def test_notes_are_appended(self):
        record = IntakeRecord({'notes': 'Gate code 1234'})
        record.merge({'notes': 'Dog in the yard'})
        assert record.get('notes') == 'Gate code 1234\nDog in the yard'

    def test_legacy_keys_are_translated(self):
        record = IntakeRecord.from_dict({'full_name': 'Ann Lee', 'callback_number': '+15550001234'})
        assert record.get('callerName') == 'Ann Lee'
        assert record.get('callerPhone') == '+15550001234'


@pytest.mark.unit
class TestHappyPath:
    """A caller who answers every question"""

    def test_full_conversation(self):
        conv = IntakeConversation(make_context())

        first = conv.process_turn('')
        assert first.assistant_say == "Thanks for calling ABC HVAC. This is Jessica. What can we help you with today?"
        assert first.next_state == IntakeState.ISSUE_CAPTURE

        result = conv.process_turn("My furnace isn't working and I have no heat.")
        assert result.next_state == IntakeState.URGENCY_CHECK
        assert result.updates['issueCategory'] == 'No heat'
        assert result.assistant_say.endswith(QUESTIONS['URGENCY_CHECK'])

        result = conv.process_turn('ASAP please.')
        assert result.next_state == IntakeState.CALLER_NAME
        assert result.assistant_say == QUESTIONS['CALLER_NAME']

        result = conv.process_turn('John Smith.')
        assert result.updates == {'callerName': 'John Smith'}
        assert result.next_state == IntakeState.CALLER_PHONE

        result = conv.process_turn('555-123-4567')
        assert result.updates == {'callerPhone': '+15551234567'}
        assert result.next_state == IntakeState.ADDRESS

        result = conv.process_turn('123 Main Street, Chicago, Illinois')
        assert result.next_state == IntakeState.SCHEDULING
        assert 'tomorrow morning at 8:00 a.m.' in result.assistant_say

        result = conv.process_turn('Next available works.')
        assert result.done is True
        assert result.next_state == IntakeState.CLOSE
        assert result.assistant_say == CLOSING_SCRIPT

        assert conv.record.to_dict() == {
            'issueCategory': 'No heat',
            'issueDescription': "My furnace isn't working and I have no heat",
            'urgency': 'ASAP',
            'callerName': 'John Smith',
            'callerPhone': '+15551234567',
            'addressLine1': '123 Main Street',
            'city': 'Chicago',
            'state': 'IL',
            'requestedWindow': 'tomorrow morning at 8:00 a.m.',
            'nextAvailableOffered': True,
        }

    def test_turn_result_serializes(self):
        conv = IntakeConversation(make_context())
        payload = conv.process_turn('').to_dict()
        assert payload == {
            'assistant_say': QUESTIONS['ISSUE_CAPTURE'].format(business_name='ABC HVAC', agent_name='Jessica'),
            'next_state': 'ISSUE_CAPTURE',
            'updates': {},
            'done': False,
        }

    def test_closed_conversation_repeats_closing(self):
        conv = at_state(IntakeState.CLOSE)
        result = conv.process_turn('Anything else?')
        assert result.done is True
        assert result.assistant_say == CLOSING_SCRIPT


@pytest.mark.unit
class TestSkipping:
    """States whose fields are already known are skipped silently"""

    def test_volunteered_details_skip_ahead(self):
        conv = at_state(IntakeState.ISSUE_CAPTURE)
        result = conv.process_turn(
            "Hi, my name is Sarah Jones, I have no heat and it's an emergency, I'm at 42 Oak Avenue, Springfield"
        )
        assert result.next_state == IntakeState.CALLER_PHONE
        assert conv.record.get('callerName') == 'Sarah Jones'
        assert conv.record.get('urgency') == 'ASAP'
        assert conv.record.get('addressLine1') == '42 Oak Avenue'
        assert conv.record.get('city') == 'Springfield'

    def test_no_heat_with_extreme_language_skips_urgency(self):
        conv = at_state(IntakeState.ISSUE_CAPTURE)
        result = conv.process_turn('No heat and my kids are freezing')
        assert result.updates['urgency'] == 'ASAP'
        assert result.next_state == IntakeState.CALLER_NAME

    def test_address_needs_both_street_and_city(self):
        conv = at_state(IntakeState.CALLER_PHONE, {
            'issueCategory': 'AC', 'urgency': 'can wait', 'callerName': 'Ann Lee',
            'addressLine1': '9 Elm Street',
        })
        result = conv.process_turn('+1 555 222 3333')
        assert result.next_state == IntakeState.ADDRESS
        assert result.assistant_say.endswith(REPHRASES['ADDRESS_CITY'])

    def test_all_known_closes(self):
        conv = at_state(IntakeState.URGENCY_CHECK, {
            'issueCategory': 'Leak', 'callerName': 'Ann Lee', 'callerPhone': '+15552223333',
            'addressLine1': '9 Elm Street', 'city': 'Dayton', 'requestedWindow': 'Friday',
        })
        result = conv.process_turn('It can wait')
        assert result.done is True


@pytest.mark.unit
class TestReask:
    """One rephrase, then "unknown" so the call never loops"""

    def test_optional_field_reask_then_unknown(self):
        conv = at_state(IntakeState.URGENCY_CHECK, {'issueCategory': 'AC'})

        first = conv.process_turn('hmm')
        assert first.assistant_say == REPHRASES['URGENCY_CHECK']
        assert first.next_state == IntakeState.URGENCY_CHECK

        second = conv.process_turn('hmm')
        assert conv.record.get('urgency') == 'unknown'
        assert second.next_state == IntakeState.CALLER_NAME

    def test_required_field_gets_one_clarification(self):
        conv = at_state(IntakeState.CALLER_NAME, {'issueCategory': 'AC', 'urgency': 'ASAP'})

        first = conv.process_turn("I don't know")
        assert first.assistant_say == REPHRASES['CALLER_NAME']
        assert 'callerName' not in conv.record

        second = conv.process_turn("I don't know")
        assert conv.record.get('callerName') == 'unknown'
        assert second.next_state == IntakeState.CALLER_PHONE

    def test_dont_know_on_optional_field_moves_on_immediately(self):
        conv = at_state(IntakeState.SCHEDULING, {
            'issueCategory': 'AC', 'urgency': 'ASAP', 'callerName': 'Ann Lee',
            'callerPhone': '+15552223333', 'addressLine1': '9 Elm Street', 'city': 'Dayton',
        })
        result = conv.process_turn('Not sure')
        assert conv.record.get('requestedWindow') == 'unknown'
        assert result.done is True

    def test_reask_counter_resets_on_advance(self):
        conv = at_state(IntakeState.URGENCY_CHECK, {'issueCategory': 'AC'})
        conv.process_turn('hmm')
        conv.process_turn('yes')
        assert conv.reask_count == 0
        assert conv.state == IntakeState.CALLER_NAME

    def test_filler_at_issue_capture_gets_rephrase(self):
        conv = IntakeConversation(make_context())
        conv.process_turn('')

        first = conv.process_turn('uh')
        assert first.assistant_say == REPHRASES['ISSUE_CAPTURE']
        assert first.next_state == IntakeState.ISSUE_CAPTURE
        assert 'issueCategory' not in conv.record

        second = conv.process_turn('um, okay')
        assert conv.record.get('issueCategory') == 'unknown'
        assert 'issueDescription' not in conv.record
        assert second.next_state == IntakeState.URGENCY_CHECK

    def test_filler_at_caller_name_gets_rephrase(self):
        conv = at_state(IntakeState.CALLER_NAME, {'issueCategory': 'AC', 'urgency': 'ASAP'})

        first = conv.process_turn('Blah')
        assert first.assistant_say == REPHRASES['CALLER_NAME']
        assert 'callerName' not in conv.record

        second = conv.process_turn('Maria Lopez')
        assert conv.record.get('callerName') == 'Maria Lopez'
        assert second.next_state == IntakeState.CALLER_PHONE

    def test_filler_is_not_sent_to_fallback(self):
        fallback = Mock(return_value={'callerName': 'Eh'})
        conv = IntakeConversation(make_context(), state=IntakeState.CALLER_NAME,
                                  record=IntakeRecord({'issueCategory': 'AC', 'urgency': 'ASAP'}),
                                  fallback_extractor=fallback)
        conv.process_turn('eh')
        fallback.assert_not_called()
        assert 'callerName' not in conv.record


@pytest.mark.unit
class TestCallerId:
    """Confirming the caller-ID number"""

    def test_confirm_question_uses_caller_id(self):
        conv = at_state(IntakeState.CALLER_NAME, {'issueCategory': 'AC', 'urgency': 'ASAP'},
                        caller_id='+15551234567')
        result = conv.process_turn('John Smith')
        assert result.assistant_say.endswith("I have (555) 123-4567 - is that correct?")

    def test_yes_takes_caller_id(self):
        conv = at_state(IntakeState.CALLER_PHONE, {'issueCategory': 'AC', 'urgency': 'ASAP', 'callerName': 'Jo'},
                        caller_id='(555) 123-4567')
        result = conv.process_turn('Yes, that is right')
        assert result.updates['callerPhone'] == '+15551234567'
        assert result.next_state == IntakeState.ADDRESS

    def test_no_asks_for_number(self):
        conv = at_state(IntakeState.CALLER_PHONE, {'issueCategory': 'AC', 'urgency': 'ASAP', 'callerName': 'Jo'},
                        caller_id='+15551234567')
        result = conv.process_turn('No')
        assert result.assistant_say == QUESTIONS['CALLER_PHONE']


@pytest.mark.unit
class TestPricingAndRedirects:
    """Pricing questions and off-topic requests"""

    def test_pricing_question_answers_then_repeats_question(self):
        conv = at_state(IntakeState.ADDRESS, {
            'issueCategory': 'AC', 'urgency': 'ASAP', 'callerName': 'Jo', 'callerPhone': '+15552223333',
        })
        result = conv.process_turn('How much is the service call?')
        assert result.assistant_say.startswith('Our service call fee is $89.')
        assert result.assistant_say.endswith(QUESTIONS['ADDRESS'])
        assert result.next_state == IntakeState.ADDRESS
        assert conv.record.get('serviceFeeMentioned') is True
        assert conv.reask_count == 0

    def test_pricing_at_the_end_enters_pricing_state(self):
        conv = at_state(IntakeState.SCHEDULING, {
            'issueCategory': 'AC', 'urgency': 'ASAP', 'callerName': 'Jo', 'callerPhone': '+15552223333',
            'addressLine1': '9 Elm Street', 'city': 'Dayton',
        })
        result = conv.process_turn('Tomorrow afternoon. And how much do you charge?')
        assert result.next_state == IntakeState.PRICING
        assert result.done is False
        assert 'Our service call fee is $89.' in result.assistant_say

        final = conv.process_turn('Okay, thanks')
        assert final.next_state == IntakeState.CLOSE
        assert final.done is True

    def test_pricing_without_fee_never_enters_pricing_state(self):
        conv = at_state(IntakeState.SCHEDULING, {
            'issueCategory': 'AC', 'urgency': 'ASAP', 'callerName': 'Jo', 'callerPhone': '+15552223333',
            'addressLine1': '9 Elm Street', 'city': 'Dayton',
        }, service_fee_enabled=False)
        result = conv.process_turn('Tomorrow afternoon. How much will it cost?')
        assert result.done is True
        assert '$' not in result.assistant_say

    def test_off_topic_is_redirected(self):
        conv = at_state(IntakeState.ISSUE_CAPTURE)
        result = conv.process_turn('Can you recommend a good doctor?')
        assert result.assistant_say == REDIRECT_SCRIPT
        assert result.next_state == IntakeState.ISSUE_CAPTURE
        assert conv.reask_count == 0


@pytest.mark.unit
class TestMessageCap:
    """At most 15 agent messages per call"""

    def test_closes_at_cap(self):
        conv = IntakeConversation(make_context(), state=IntakeState.URGENCY_CHECK, agent_messages=14)
        result = conv.process_turn('hmm')
        assert result.done is True
        assert result.assistant_say == CLOSING_SCRIPT
        assert conv.agent_messages == 15

    def test_counts_agent_messages(self):
        conv = IntakeConversation(make_context())
        conv.process_turn('')
        conv.process_turn('The AC is blowing warm air')
        assert conv.agent_messages == 2


@pytest.mark.unit
class TestFallbackExtractor:
    """LLM fallback used when rules find nothing"""

    def test_fallback_fills_stage_fields_only(self):
        fallback = Mock(return_value={'urgency': 'can wait', 'callerName': 'Invented Name'})
        conv = IntakeConversation(make_context(), state=IntakeState.URGENCY_CHECK,
                                  record=IntakeRecord({'issueCategory': 'AC'}),
                                  fallback_extractor=fallback)
        result = conv.process_turn('meh, the tech can pick a day that suits him')
        fallback.assert_called_once()
        assert conv.record.get('urgency') == 'can wait'
        assert 'callerName' not in conv.record
        assert result.next_state == IntakeState.CALLER_NAME

    def test_fallback_not_called_when_rules_succeed(self):
        fallback = Mock(return_value={})
        conv = IntakeConversation(make_context(), state=IntakeState.URGENCY_CHECK,
                                  record=IntakeRecord({'issueCategory': 'AC'}),
                                  fallback_extractor=fallback)
        conv.process_turn('ASAP')
        fallback.assert_not_called()


@pytest.mark.unit
class TestPersistence:
    """Round trip through a Call row"""

    def test_store_and_resume(self):
        firm = SimpleNamespace(firm_name='ABC HVAC', agent_name='Jessica', default_next_available=None,
                               service_fee_enabled=False, service_call_fee=None)
        call = SimpleNamespace(from_number=None, intake_state='START', intake_json={},
                               reask_count=0, agent_turns=0, urgency=None)

        conv = conversation_from_call(call, firm)
        conv.process_turn('')
        conv.process_turn('No cool, it is an emergency')
        store_conversation(call, conv)

        assert call.intake_state == 'CALLER_NAME'
        assert call.intake_json['issueCategory'] == 'No cool'
        assert call.urgency == 'ASAP'
        assert call.agent_turns == 2

        resumed = conversation_from_call(call, firm)
        assert resumed.state == IntakeState.CALLER_NAME
        assert resumed.process_turn('Maria Lopez').next_state == IntakeState.CALLER_PHONE
