"""
Conversational intake state machine.

One `IntakeConversation` drives a single phone call. The voice platform
posts each caller utterance; `process_turn` records what it can, decides
which stage comes next and returns the line the agent should say.

Stages run in a fixed order. A stage whose fields are already known is
skipped silently, each stage question is asked once and rephrased once,
and after that the missing field is recorded as "unknown" so a call can
never loop.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional

from app.utils.helpers import format_phone_display, normalize_phone_e164
from services import intake_extractors as extractors
from services.intake_prompts import (
    ACKNOWLEDGEMENTS,
    CLOSING_SCRIPT,
    PRICING_NOT_AVAILABLE,
    PRICING_SCRIPT,
    QUESTIONS,
    REDIRECT_SCRIPT,
    REPHRASES,
)

logger = logging.getLogger(__name__)

UNKNOWN = extractors.UNKNOWN
DEFAULT_MAX_AGENT_MESSAGES = 15


class IntakeState(str, Enum):
    START = 'START'
    ISSUE_CAPTURE = 'ISSUE_CAPTURE'
    URGENCY_CHECK = 'URGENCY_CHECK'
    CALLER_NAME = 'CALLER_NAME'
    CALLER_PHONE = 'CALLER_PHONE'
    ADDRESS = 'ADDRESS'
    SCHEDULING = 'SCHEDULING'
    PRICING = 'PRICING'
    CLOSE = 'CLOSE'


# PRICING is entered out of band, never by walking this list
STATE_ORDER = [
    IntakeState.START,
    IntakeState.ISSUE_CAPTURE,
    IntakeState.URGENCY_CHECK,
    IntakeState.CALLER_NAME,
    IntakeState.CALLER_PHONE,
    IntakeState.ADDRESS,
    IntakeState.SCHEDULING,
    IntakeState.CLOSE,
]

STATE_FIELDS = {
    IntakeState.ISSUE_CAPTURE: ('issueCategory',),
    IntakeState.URGENCY_CHECK: ('urgency',),
    IntakeState.CALLER_NAME: ('callerName',),
    IntakeState.CALLER_PHONE: ('callerPhone',),
    IntakeState.ADDRESS: ('addressLine1', 'city'),
    IntakeState.SCHEDULING: ('requestedWindow',),
}

REQUIRED_FIELDS = frozenset({'issueCategory', 'callerName', 'callerPhone'})

# Stages whose extractors accept almost any text as an answer
LENIENT_STATES = frozenset({IntakeState.ISSUE_CAPTURE, IntakeState.CALLER_NAME})

INTAKE_FIELDS = (
    'issueCategory', 'issueDescription', 'urgency', 'callerName', 'callerPhone',
    'addressLine1', 'city', 'state', 'requestedWindow', 'nextAvailableOffered',
    'serviceFeeMentioned', 'notes',
)

BOOLEAN_FIELDS = frozenset({'nextAvailableOffered', 'serviceFeeMentioned'})

# Older records stored snake_case keys
LEGACY_ALIASES = {
    'full_name': 'callerName',
    'callback_number': 'callerPhone',
    'reason_for_call': 'issueDescription',
    'urgency_level': 'urgency',
    'issue_category': 'issueCategory',
    'address_line1': 'addressLine1',
    'requested_window': 'requestedWindow',
}


def _is_empty(value):
    return value is None or (isinstance(value, str) and not value.strip())


class IntakeRecord:
    """
    Field values collected during a call.

    The record only grows: empty values are ignored, a real value is never
    replaced, and "unknown" may later be upgraded to a real value.
    """

    def __init__(self, values: Optional[Dict[str, Any]] = None):
        self._values: Dict[str, Any] = {}
        if values:
            self.merge(values)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'IntakeRecord':
        """Build a record from stored JSON, translating legacy key names."""
        record = cls()
        if not data:
            return record
        translated = {}
        for key, value in data.items():
            translated[LEGACY_ALIASES.get(key, key)] = value
        record.merge(translated)
        return record

    def get(self, name, default=None):
        return self._values.get(name, default)

    def has(self, name) -> bool:
        """True once a field holds anything, including "unknown"."""
        return name in self._values

    def is_known(self, name) -> bool:
        value = self._values.get(name)
        return value is not None and value != UNKNOWN

    def merge(self, updates: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge updates into the record.

        Returns:
            The subset of updates that actually changed the record
        """
        applied = {}
        for name, value in (updates or {}).items():
            if name not in INTAKE_FIELDS:
                logger.debug(f"Ignoring unknown intake field: {name}")
                continue

            if name in BOOLEAN_FIELDS:
                flag = bool(value)
                if self._values.get(name) is not True and (flag or name not in self._values):
                    self._values[name] = flag
                    applied[name] = flag
                continue

            if _is_empty(value):
                continue
            if isinstance(value, str):
                value = value.strip()

            if name == 'notes' and self.is_known('notes') and value != UNKNOWN:
                if value not in self._values['notes']:
                    self._values['notes'] = f"{self._values['notes']}\n{value}"
                    applied[name] = self._values['notes']
                continue

            current = self._values.get(name)
            if current is None or (current == UNKNOWN and value != UNKNOWN):
                self._values[name] = value
                applied[name] = value
        return applied

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._values)

    def __contains__(self, name):
        return self.has(name)

    def __repr__(self):
        return f"IntakeRecord({self._values!r})"


@dataclass
class IntakeContext:
    """Firm settings and call facts the scripts depend on."""
    business_name: str
    agent_name: Optional[str] = None
    default_next_available: Optional[str] = None
    service_fee_enabled: bool = False
    service_call_fee: Optional[float] = None
    caller_id: Optional[str] = None
    max_agent_messages: int = DEFAULT_MAX_AGENT_MESSAGES

    @classmethod
    def from_firm(cls, firm, caller_id=None, max_agent_messages=DEFAULT_MAX_AGENT_MESSAGES):
        return cls(
            business_name=firm.firm_name,
            agent_name=firm.agent_name,
            default_next_available=firm.default_next_available,
            service_fee_enabled=bool(firm.service_fee_enabled),
            service_call_fee=float(firm.service_call_fee) if firm.service_call_fee is not None else None,
            caller_id=caller_id,
            max_agent_messages=max_agent_messages,
        )


@dataclass
class TurnResult:
    assistant_say: str
    next_state: IntakeState
    updates: Dict[str, Any] = field(default_factory=dict)
    done: bool = False

    def to_dict(self):
        return {
            'assistant_say': self.assistant_say,
            'next_state': self.next_state.value,
            'updates': self.updates,
            'done': self.done,
        }


# (state, record dict, utterance) -> field updates
FallbackExtractor = Callable[[str, Dict[str, Any], str], Dict[str, Any]]


class IntakeConversation:
    """Turn-by-turn intake for one call."""

    def __init__(
        self,
        context: IntakeContext,
        state: IntakeState = IntakeState.START,
        record: Optional[IntakeRecord] = None,
        reask_count: int = 0,
        agent_messages: int = 0,
        fallback_extractor: Optional[FallbackExtractor] = None,
    ):
        self.context = context
        self.state = IntakeState(state)
        self.record = record or IntakeRecord()
        self.reask_count = reask_count
        self.agent_messages = agent_messages
        self.fallback_extractor = fallback_extractor

    @property
    def done(self):
        return self.state == IntakeState.CLOSE

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def process_turn(self, utterance: Optional[str]) -> TurnResult:
        """Consume one caller utterance and return the agent's reply."""
        utterance = (utterance or '').strip()

        if self.state == IntakeState.CLOSE:
            return TurnResult(CLOSING_SCRIPT, IntakeState.CLOSE, {}, True)

        if self.agent_messages >= self.context.max_agent_messages - 1:
            logger.info("Agent message limit reached, closing call")
            return self._close({})

        if self.state == IntakeState.START:
            if not utterance:
                self.state = IntakeState.ISSUE_CAPTURE
                return self._say(self._question(IntakeState.ISSUE_CAPTURE), {})
            # The platform already greeted the caller; this is the answer to it
            self.state = IntakeState.ISSUE_CAPTURE

        if self.state == IntakeState.PRICING:
            return self._close({})

        return self._answer_stage(utterance)

    def snapshot(self) -> Dict[str, Any]:
        """State needed to resume this conversation on the next request."""
        return {
            'state': self.state.value,
            'record': self.record.to_dict(),
            'reask_count': self.reask_count,
            'agent_messages': self.agent_messages,
        }

    # ------------------------------------------------------------------
    # Turn handling
    # ------------------------------------------------------------------

    def _answer_stage(self, utterance):
        state = self.state
        wants_price = extractors.asks_about_pricing(utterance)
        off_topic = extractors.is_off_topic(utterance)

        updates = self.record.merge(
            extractors.extract_opportunistic(utterance, self.record.get('issueCategory'))
        )

        if not self._stage_complete(state):
            if not ((wants_price or off_topic) and state in LENIENT_STATES):
                updates.update(self.record.merge(self._extract_for_state(state, utterance)))

        if not self._stage_complete(state) and self.fallback_extractor and not extractors.is_filler(utterance) \
                and not (wants_price or off_topic):
            suggested = self.fallback_extractor(state.value, self.record.to_dict(), utterance) or {}
            allowed = set(STATE_FIELDS[state]) | {'issueDescription', 'state'}
            updates.update(self.record.merge({k: v for k, v in suggested.items() if k in allowed}))

        prefix = ''
        if wants_price:
            updates.update(self.record.merge({'serviceFeeMentioned': True}))
            prefix = self._pricing_line()

        if self._stage_complete(state):
            return self._advance(updates, prefix, wants_price)

        if extractors.is_dont_know(utterance) and not self._stage_required(state):
            updates.update(self._fill_unknown(state))
            return self._advance(updates, prefix, wants_price)

        if wants_price or off_topic:
            # Questions do not use up the stage's single re-ask
            if off_topic and not wants_price:
                if state == IntakeState.ISSUE_CAPTURE:
                    return self._say(REDIRECT_SCRIPT, updates)
                return self._say(f"{REDIRECT_SCRIPT} {self._question(state)}", updates)
            return self._say(f"{prefix} {self._question(state)}", updates)

        if self.reask_count == 0:
            self.reask_count = 1
            return self._say(self._rephrase(state), updates)

        logger.info(f"No answer for {state.value} after re-ask, recording unknown")
        updates.update(self._fill_unknown(state))
        return self._advance(updates, prefix, wants_price)

    def _advance(self, updates, prefix='', wants_price=False):
        self.reask_count = 0
        next_state = self._next_open_state(self.state)

        if next_state == IntakeState.CLOSE:
            if wants_price and self.context.service_fee_enabled:
                self.state = IntakeState.PRICING
                return self._say(prefix, updates)
            if prefix:
                return self._close(updates, prefix)
            return self._close(updates)

        self.state = next_state
        question = self._question(next_state)
        if prefix:
            return self._say(f"{prefix} {question}", updates)
        return self._say(self._acknowledge(question), updates)

    def _close(self, updates, prefix=''):
        self.state = IntakeState.CLOSE
        self.reask_count = 0
        text = f"{prefix} {CLOSING_SCRIPT}" if prefix else CLOSING_SCRIPT
        self.agent_messages += 1
        return TurnResult(text, IntakeState.CLOSE, updates, True)

    def _say(self, text, updates):
        text = text.strip()
        if text:
            self.agent_messages += 1
        return TurnResult(text, self.state, updates, False)

    # ------------------------------------------------------------------
    # Stage helpers
    # ------------------------------------------------------------------

    def _stage_complete(self, state):
        fields = STATE_FIELDS.get(state, ())
        return all(self.record.has(name) for name in fields)

    def _stage_required(self, state):
        return any(name in REQUIRED_FIELDS for name in STATE_FIELDS.get(state, ()))

    def _fill_unknown(self, state):
        return self.record.merge({name: UNKNOWN for name in STATE_FIELDS.get(state, ())})

    def _next_open_state(self, state):
        index = STATE_ORDER.index(state)
        for candidate in STATE_ORDER[index + 1:]:
            if candidate == IntakeState.CLOSE or not self._stage_complete(candidate):
                return candidate
        return IntakeState.CLOSE

    def _extract_for_state(self, state, utterance):
        ctx = self.context
        if state == IntakeState.ISSUE_CAPTURE:
            return extractors.extract_issue(utterance)
        if state == IntakeState.URGENCY_CHECK:
            return extractors.answer_urgency_question(utterance)
        if state == IntakeState.CALLER_NAME:
            return extractors.extract_name(utterance, bare_answer=True)
        if state == IntakeState.CALLER_PHONE:
            found = extractors.extract_phone(utterance)
            confirming = ctx.caller_id and self.reask_count == 0
            if not found and confirming and extractors.is_affirmative(utterance):
                found = {'callerPhone': normalize_phone_e164(ctx.caller_id)}
            return found
        if state == IntakeState.ADDRESS:
            found = extractors.extract_address(utterance)
            if not found and self.record.has('addressLine1'):
                # Answer to "what city is that in?"
                found = extractors.extract_city(utterance)
            return found
        if state == IntakeState.SCHEDULING:
            return extractors.extract_requested_window(utterance, ctx.default_next_available)
        return {}

    # ------------------------------------------------------------------
    # Scripts
    # ------------------------------------------------------------------

    def _question(self, state):
        ctx = self.context
        if state == IntakeState.ISSUE_CAPTURE:
            return QUESTIONS['ISSUE_CAPTURE'].format(
                business_name=ctx.business_name,
                agent_name=ctx.agent_name or 'your assistant',
            )
        if state == IntakeState.CALLER_PHONE and ctx.caller_id:
            return QUESTIONS['CALLER_PHONE_CONFIRM'].format(
                caller_id=format_phone_display(ctx.caller_id)
            )
        if state == IntakeState.ADDRESS and self.record.has('addressLine1') and not self.record.has('city'):
            return REPHRASES['ADDRESS_CITY']
        if state == IntakeState.SCHEDULING:
            if ctx.default_next_available:
                return QUESTIONS['SCHEDULING'].format(default_next_available=ctx.default_next_available)
            return QUESTIONS['SCHEDULING_NO_DEFAULT']
        return QUESTIONS[state.value]

    def _rephrase(self, state):
        if state == IntakeState.ADDRESS and self.record.has('addressLine1'):
            return REPHRASES['ADDRESS_CITY']
        if state == IntakeState.CALLER_PHONE and self.context.caller_id:
            # Caller rejected the caller-ID number
            return QUESTIONS['CALLER_PHONE']
        return REPHRASES[state.value]

    def _pricing_line(self):
        ctx = self.context
        if ctx.service_fee_enabled and ctx.service_call_fee is not None:
            return PRICING_SCRIPT.format(fee=_format_fee(ctx.service_call_fee))
        return PRICING_NOT_AVAILABLE

    def _acknowledge(self, question):
        if any(question.startswith(ack) for ack in ACKNOWLEDGEMENTS):
            return question
        ack = ACKNOWLEDGEMENTS[self.agent_messages % len(ACKNOWLEDGEMENTS)]
        return f"{ack} {question}"


def _format_fee(fee):
    fee = float(fee)
    return f"{fee:.0f}" if fee.is_integer() else f"{fee:.2f}"


def conversation_from_call(call, firm, max_agent_messages=DEFAULT_MAX_AGENT_MESSAGES,
                           fallback_extractor=None):
    """Rehydrate the conversation stored on a Call row."""
    return IntakeConversation(
        context=IntakeContext.from_firm(firm, caller_id=call.from_number,
                                        max_agent_messages=max_agent_messages),
        state=IntakeState(call.intake_state or IntakeState.START.value),
        record=IntakeRecord.from_dict(call.intake_json),
        reask_count=call.reask_count or 0,
        agent_messages=call.agent_turns or 0,
        fallback_extractor=fallback_extractor,
    )


def store_conversation(call, conversation):
    """Write the conversation's progress back onto a Call row."""
    snapshot = conversation.snapshot()
    call.intake_state = snapshot['state']
    call.intake_json = snapshot['record']
    call.reask_count = snapshot['reask_count']
    call.agent_turns = snapshot['agent_messages']
    urgency = conversation.record.get('urgency')
    if urgency and urgency != UNKNOWN:
        call.urgency = urgency
