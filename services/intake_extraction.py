"""
LLM-backed intake extraction.

Two entry points:
    extract_intake_from_transcript: after the call, one JSON-mode completion
        over the whole transcript, merged under the values already collected
        live (live values win).
    make_turn_extractor: during the call, a fallback used by the state
        machine when the rule-based extractors could not read an answer.

Neither ever raises on AI failure; the caller always gets a usable record.
"""

import json
import logging
import re

from ai_service import AIServiceError
from services import intake_extractors as extractors
from services.intake_prompts import DEVELOPER_INSTRUCTIONS, STATE_FIELD_HINTS, SYSTEM_PROMPT
from services.intake_state_machine import INTAKE_FIELDS, IntakeRecord

logger = logging.getLogger(__name__)

EXTRACTION_SYSTEM = 'You are an HVAC service call data extraction assistant. Return only valid JSON.'

EXTRACTION_PROMPT = """You are extracting structured data from an HVAC service call transcript.

Transcript:
{transcript}

Extract the following information from the transcript and return it as JSON. If information is not available in the transcript, use null.

Return a JSON object with this exact structure. Use null for missing values:
{{
  "callerName": "Customer's full name (e.g., 'John Smith') or null",
  "callerPhone": "Phone number in any format (e.g., '2152059732', '215-205-9732', '(215) 205-9732') or null",
  "addressLine1": "Street address (e.g., '123 Pennsylvania Avenue') or null",
  "city": "City name or null",
  "state": "State abbreviation (e.g., 'PA', 'IL') or null",
  "issueCategory": "One of: 'No heat', 'No cool', 'Furnace', 'AC', 'Thermostat', 'Strange noise', 'Leak', 'Other' or null",
  "issueDescription": "Detailed description of the HVAC issue or null",
  "urgency": "One of: 'ASAP', 'can wait' or null",
  "requestedWindow": "Preferred appointment time/date (e.g., 'Tomorrow morning at 8:00 a.m.', 'ASAP', 'Next week') or null"
}}

Be accurate and only extract information that is clearly stated in the transcript."""

TRANSCRIPT_FIELDS = (
    'callerName', 'callerPhone', 'addressLine1', 'city', 'state',
    'issueCategory', 'issueDescription', 'urgency', 'requestedWindow',
)

_SPEAKER = re.compile(r'^\s*(user|caller|customer)\s*:\s*', re.IGNORECASE)


def _clean_extracted(extracted):
    """Keep known fields with real values and normalize the ones we can."""
    cleaned = {}
    for name in TRANSCRIPT_FIELDS:
        value = extracted.get(name)
        if value is None or (isinstance(value, str) and value.strip().lower() in ('', 'null', 'none')):
            continue
        cleaned[name] = value.strip() if isinstance(value, str) else value

    if cleaned.get('issueCategory') not in extractors.ISSUE_CATEGORIES:
        cleaned.pop('issueCategory', None)
    if cleaned.get('urgency') not in ('ASAP', 'can wait'):
        cleaned.pop('urgency', None)
    if 'callerPhone' in cleaned:
        cleaned.update(extractors.extract_phone(str(cleaned['callerPhone'])) or {})
    return cleaned


def caller_lines(transcript):
    """Lines spoken by the caller, speaker label removed."""
    lines = []
    for line in (transcript or '').splitlines():
        match = _SPEAKER.match(line)
        if match:
            lines.append(line[match.end():].strip())
    return lines


def regex_fallback(transcript, record):
    """
    Recover caller name, issue description and street address straight
    from the transcript text for whatever the record still lacks.
    """
    lines = caller_lines(transcript) or [l.strip() for l in (transcript or '').splitlines() if l.strip()]
    found = {}

    if not record.is_known('callerName'):
        for line in lines:
            match = extractors.NAME_INTRO.search(line)
            if match and re.search(r'\bname\b|\bthis is\b', line, re.IGNORECASE):
                name = extractors.extract_name(line).get('callerName')
                if name:
                    found['callerName'] = name
                    break

    if not record.is_known('issueDescription'):
        for line in lines:
            if extractors.categorize_issue(line) != 'Other':
                found['issueDescription'] = extractors.clean_utterance(line)
                break

    if not record.is_known('addressLine1'):
        for line in lines:
            address = extractors.extract_address(line) if extractors.STREET_ADDRESS.search(line) else {}
            if address:
                found.update(address)
                break

    if found:
        logger.info(f"[Extract Intake] Regex fallback recovered: {sorted(found)}")
    return found


def extract_intake_from_transcript(ai_service, transcript, existing=None):
    """
    Fill an intake record from the full call transcript.

    Args:
        ai_service: AIService instance (may have no provider configured)
        transcript: Full transcript text
        existing: Intake values collected live during the call

    Returns:
        Merged intake dict. On any failure, the existing values.
    """
    record = IntakeRecord.from_dict(existing)
    if not transcript or not transcript.strip():
        return record.to_dict()

    try:
        extracted = ai_service.complete_json(
            EXTRACTION_SYSTEM,
            EXTRACTION_PROMPT.format(transcript=transcript),
            temperature=0.1,
        )
        record.merge(_clean_extracted(extracted))
        logger.info(
            f"[Extract Intake] Successfully extracted data: "
            f"callerName={record.get('callerName')}, city={record.get('city')}"
        )
    except AIServiceError as e:
        logger.error(f"[Extract Intake] AI extraction failed: {e}")
        return IntakeRecord.from_dict(existing).to_dict()

    record.merge(regex_fallback(transcript, record))
    return record.to_dict()


def make_turn_extractor(ai_service, history=None):
    """
    Build the per-turn fallback for IntakeConversation.

    Returns None when no AI provider is configured so the state machine
    runs on its rule-based extractors alone.
    """
    if ai_service is None or not ai_service.is_available('any'):
        return None

    def extract(state, filled, utterance):
        payload = {
            'state': state,
            'expectedFields': STATE_FIELD_HINTS.get(state, []),
            'filled': filled,
            'conversationHistory': history or [],
            'userUtterance': utterance,
        }
        try:
            result = ai_service.complete_json(
                f"{SYSTEM_PROMPT}\n\n{DEVELOPER_INSTRUCTIONS}",
                json.dumps(payload),
                temperature=0.1,
            )
        except AIServiceError as e:
            logger.warning(f"Turn extraction failed for {state}: {e}")
            return {}

        updates = result.get('updates') or {}
        if not isinstance(updates, dict):
            return {}
        return _clean_extracted({k: v for k, v in updates.items() if k in INTAKE_FIELDS})

    return extract
