"""
Dispatch summary for a finished call.
"""

import json
import logging

from ai_service import AIServiceError
from app.utils.helpers import NOT_PROVIDED
from services.ticket_rules import URGENT_CATEGORIES

logger = logging.getLogger(__name__)

SUMMARY_SYSTEM = 'You are an HVAC service call summarization assistant. Return only valid JSON.'

SUMMARY_PROMPT = """You are summarizing an HVAC service call. Generate a structured summary in JSON format.

Transcript:
{transcript}

Intake Data:
{intake}

Return a JSON object with this exact structure:
{{
  "title": "Brief descriptive title (e.g., 'No Heat - John Doe - Chicago')",
  "summary_bullets": ["5-8 key points about the service request"],
  "key_facts": {{
    "location": "Service address (city, state) if available",
    "issue": "What is wrong with the system",
    "scheduling": "Requested appointment window if available"
  }},
  "action_items": ["Recommended next steps (e.g., 'Dispatch technician', 'Confirm appointment')"],
  "urgency_level": "normal" | "high" | "emergency_redirected",
  "follow_up_recommendation": "Brief recommendation for dispatch team"
}}

Focus on the service issue, service address, urgency, scheduling preference and any special notes.
Be concise and professional. Focus on actionable information for dispatch."""


def hvac_urgency_level(intake, emergency_redirected=False):
    """
    Urgency level from intake facts, which always overrides what the
    model said.
    """
    urgency = intake.get('urgency') or intake.get('urgency_level')
    is_high = urgency in ('ASAP', 'high')
    if intake.get('issueCategory') in URGENT_CATEGORIES:
        return 'high' if is_high else 'normal'
    if emergency_redirected or intake.get('emergency_redirected'):
        return 'emergency_redirected'
    return 'high' if is_high else 'normal'


def fallback_summary(intake):
    """Deterministic summary built from intake fields alone."""
    caller = intake.get('callerName') or 'Unknown'
    issue = intake.get('issueCategory') or intake.get('issueDescription') or 'Not specified'
    city = intake.get('city') or 'Unknown'

    location = None
    if intake.get('city'):
        location = f"{intake.get('addressLine1') or ''}, {intake['city']}"
        if intake.get('state'):
            location += f", {intake['state']}"
        location = location.strip(' ,')

    return {
        'title': f"{issue} - {caller} - {city}",
        'summary_bullets': [
            f"Caller: {caller}",
            f"Phone: {intake.get('callerPhone') or NOT_PROVIDED}",
            f"Issue: {issue}",
            f"Address: {intake.get('addressLine1') or NOT_PROVIDED}",
            f"Urgency: {intake.get('urgency') or 'Not specified'}",
        ],
        'key_facts': {
            'location': location,
            'issue': intake.get('issueDescription'),
            'scheduling': intake.get('requestedWindow'),
        },
        'action_items': ['Dispatch technician', 'Confirm appointment with caller'],
        'urgency_level': 'high' if intake.get('urgency') in ('ASAP', 'high') else 'normal',
        'follow_up_recommendation': 'Dispatch technician to service address',
    }


def generate_summary(ai_service, transcript, intake):
    """
    Summarize a call for the dispatch team.

    Falls back to `fallback_summary` when the model is unavailable or
    returns something unusable.
    """
    intake = intake or {}
    try:
        summary = ai_service.complete_json(
            SUMMARY_SYSTEM,
            SUMMARY_PROMPT.format(transcript=transcript or '', intake=json.dumps(intake, indent=2)),
            temperature=0.3,
        )
    except AIServiceError as e:
        logger.error(f"Summary generation failed, using fallback: {e}")
        return fallback_summary(intake)

    if not summary.get('title') or not isinstance(summary.get('summary_bullets'), list):
        logger.warning("Summary response missing title or bullets, using fallback")
        return fallback_summary(intake)

    summary.setdefault('key_facts', {})
    summary.setdefault('action_items', [])
    summary.setdefault('follow_up_recommendation', '')
    summary['urgency_level'] = hvac_urgency_level(intake)
    return summary
