"""
Voice agent configuration for the hosted voice platform (Vapi).

build_vapi_agent turns firm settings into the assistant config the
platform runs on each call; VapiClient pushes it over the REST API.
"""

import logging
from typing import Any, Dict, Optional

import requests

from services.intake_prompts import CLOSING_SCRIPT, DEFAULT_GREETING, render_greeting

logger = logging.getLogger(__name__)

MAX_ASSISTANT_NAME_LENGTH = 40

BASE_SYSTEM_PROMPT = """You are a professional HVAC phone receptionist for {business_name}.

Rules:
- One question at a time
- Short sentences (under 15 words when possible)
- Always acknowledge before asking
- Never promise an exact appointment time - always say "Our team will call/text shortly to confirm the appointment"
- Never promise a total price - only mention service call fee if asked, with disclaimer that final cost depends on the work needed
- If caller asks about medical/legal/anything unrelated to HVAC: politely redirect to HVAC service
- Wait for the caller to finish speaking completely before responding - NEVER interrupt
- When you have collected all necessary information (name, phone, address, issue, scheduling preference), say goodbye and end the call
- End the call by saying: "{closing}"
- After saying goodbye, the call will automatically end"""


class VapiError(Exception):
    """Raised when the voice platform rejects a request or cannot be reached"""
    pass


def clean_vapi_payload(obj: Dict[str, Any]) -> Dict[str, Any]:
    """
    Drop None values recursively. Nested dicts left empty are dropped too;
    lists are kept as-is. The platform validates every field on PATCH.
    """
    cleaned = {}
    for key, value in obj.items():
        if value is None:
            continue
        if isinstance(value, dict):
            nested = clean_vapi_payload(value)
            if nested:
                cleaned[key] = nested
        else:
            cleaned[key] = value
    return cleaned


def build_vapi_assistant_name(business_name: Optional[str], suffix: str) -> str:
    """'<business> <suffix>' within 40 characters, shortening the business part."""
    base = (business_name or 'AirDesk').strip()
    sfx = suffix.strip()
    raw = f"{base} {sfx}".strip()
    if len(raw) <= MAX_ASSISTANT_NAME_LENGTH:
        return raw

    suffix_with_space = f" {sfx}"
    max_base = max(0, MAX_ASSISTANT_NAME_LENGTH - len(suffix_with_space) - 3)
    truncated = base[:max_base].strip()
    return f"{truncated}...{suffix_with_space}"[:MAX_ASSISTANT_NAME_LENGTH]


def build_system_prompt(business_name, knowledge_base=None, default_next_available=None,
                        service_fee_enabled=False, service_call_fee=None):
    prompt = BASE_SYSTEM_PROMPT.format(business_name=business_name, closing=CLOSING_SCRIPT)

    extras = []
    if default_next_available:
        extras.append(f"- When asked about scheduling, offer: {default_next_available}")
    if service_fee_enabled and service_call_fee is not None:
        extras.append(f"- Service call fee (only if asked): ${float(service_call_fee):g}")
    if extras:
        prompt += "\n" + "\n".join(extras)

    if knowledge_base and knowledge_base.strip():
        prompt += f"\n\nBusiness Information:\n{knowledge_base.strip()}"
        logger.debug(f"Knowledge base applied: {knowledge_base[:100]}...")
    return prompt


def build_vapi_agent(firm) -> Dict[str, Any]:
    """Assistant config for a firm. None values are already removed."""
    greeting = render_greeting(firm.ai_greeting_custom or DEFAULT_GREETING,
                               firm.firm_name, firm.agent_name)

    config = {
        'name': build_vapi_assistant_name(firm.firm_name, 'Receptionist'),
        'model': {
            'provider': 'openai',
            'model': 'gpt-4o-mini',
            'temperature': 0.4,
            'maxTokens': 180,
            'messages': [{
                'role': 'system',
                'content': build_system_prompt(
                    firm.firm_name,
                    knowledge_base=firm.ai_knowledge_base,
                    default_next_available=firm.default_next_available,
                    service_fee_enabled=firm.service_fee_enabled,
                    service_call_fee=firm.service_call_fee,
                ),
            }],
        },
        'voice': {
            'provider': 'deepgram',
            'voiceId': 'asteria',
        },
        'transcriber': {
            'provider': 'deepgram',
            'model': 'nova-2',
        },
        'firstMessage': greeting,
        'stopSpeakingPlan': {
            'numWords': 5,
            'voiceSeconds': 0.5,
            'backoffSeconds': 2.0,
        },
        'metadata': {'firm_id': firm.id},
    }
    return clean_vapi_payload(config)


class VapiClient:
    """Thin REST client for assistant create/update."""

    def __init__(self, api_key: str, base_url: str = 'https://api.vapi.ai', timeout: int = 15):
        if not api_key:
            raise VapiError('VAPI_API_KEY not configured')
        self.api_key = api_key
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout

    def _headers(self):
        return {
            'Authorization': f"Bearer {self.api_key}",
            'Content-Type': 'application/json',
        }

    def _request(self, method, path, payload):
        url = f"{self.base_url}{path}"
        try:
            response = requests.request(method, url, headers=self._headers(),
                                        json=clean_vapi_payload(payload), timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            body = e.response.text[:500] if e.response is not None else ''
            logger.error(f"Vapi {method} {path} failed: {e} {body}")
            raise VapiError(f"Voice platform returned an error: {body or e}")
        except requests.exceptions.RequestException as e:
            logger.error(f"Vapi {method} {path} failed: {e}")
            raise VapiError(f"Voice platform unreachable: {e}")
        return response.json() if response.content else {}

    def create_assistant(self, config: Dict[str, Any]) -> Dict[str, Any]:
        return self._request('POST', '/assistant', config)

    def update_assistant(self, assistant_id: str, config: Dict[str, Any]) -> Dict[str, Any]:
        return self._request('PATCH', f"/assistant/{assistant_id}", config)


def sync_voice_agent(firm, client: VapiClient) -> Dict[str, Any]:
    """
    Push the firm's assistant config, creating the assistant on first sync.

    Returns:
        {'assistant_id': ..., 'created': bool}
    """
    config = build_vapi_agent(firm)
    if firm.vapi_assistant_id:
        client.update_assistant(firm.vapi_assistant_id, config)
        logger.info(f"Updated voice assistant {firm.vapi_assistant_id} for firm {firm.id}")
        return {'assistant_id': firm.vapi_assistant_id, 'created': False}

    created = client.create_assistant(config)
    assistant_id = created.get('id')
    if not assistant_id:
        raise VapiError('Voice platform did not return an assistant id')
    firm.vapi_assistant_id = assistant_id
    logger.info(f"Created voice assistant {assistant_id} for firm {firm.id}")
    return {'assistant_id': assistant_id, 'created': True}
