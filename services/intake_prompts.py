"""
Prompt and script table for the AI receptionist.

The scripted lines here are what the caller actually hears; the state
machine in services/intake_state_machine.py decides which one to use.
SYSTEM_PROMPT and DEVELOPER_INSTRUCTIONS are sent to the LLM when it is
asked to pull field values out of an utterance the rule-based extractors
could not handle.
"""

SYSTEM_PROMPT = """You are a professional HVAC phone receptionist for an HVAC company.

You are calm, concise, and helpful.

You never sound like a form or a chatbot.

You never rush, but you also never ramble.

Rules:

- One question per response
- Short sentences (under 15 words when possible)
- Always acknowledge the caller before asking the next question
- Never promise an exact appointment time - always say "Our team will call/text shortly to confirm the appointment"
- Never promise a total price - only mention service call fee if asked, with disclaimer that final cost depends on the work needed
- If caller asks about medical/legal/anything unrelated to HVAC: politely redirect to HVAC service
- Keep the entire conversation brief and focused

Your goal is to collect essential HVAC service request information so the team can dispatch a technician."""

DEVELOPER_INSTRUCTIONS = """You will be called during a phone conversation. Each call you receive:

state: the current stage name
filled: the fields collected so far (may be partial)
conversationHistory: the conversation transcript so far
userUtterance: what the caller just said

Extract field values from userUtterance for the current stage only when they are clearly stated.

Return strict JSON only:

{
  "updates": { "field": "value", ... }
}

Field value conventions:
- unknown values should be "unknown"
- phone numbers should be normalized to E.164 if possible; otherwise keep raw
- issueCategory must be one of: "No heat", "No cool", "Furnace", "AC", "Thermostat", "Strange noise", "Leak", "Other"
- urgency must be "ASAP" or "can wait"
- If caller mentions "no heat" or "no cool" + extreme language (tonight/asap/emergency/kids/elderly/freezing), set urgency to "ASAP"
- Never invent values. Return an empty "updates" object if nothing was stated."""

# Fields the caller can supply, and which stage collects them
STATE_FIELD_HINTS = {
    'ISSUE_CAPTURE': ['issueCategory', 'issueDescription'],
    'URGENCY_CHECK': ['urgency'],
    'CALLER_NAME': ['callerName'],
    'CALLER_PHONE': ['callerPhone'],
    'ADDRESS': ['addressLine1', 'city', 'state'],
    'SCHEDULING': ['requestedWindow'],
}

DEFAULT_GREETING = (
    "Thank you for calling {{business_name}}. This is {{agent_name}}. "
    "How can I help you with your HVAC needs today?"
)

# Canonical scripts, asked once per stage
QUESTIONS = {
    'ISSUE_CAPTURE': "Thanks for calling {business_name}. This is {agent_name}. What can we help you with today?",
    'URGENCY_CHECK': "Is this something that needs attention ASAP, or can it wait?",
    'CALLER_NAME': "Got it. What's your name?",
    'CALLER_PHONE': "Thanks. What's the best number to reach you at?",
    'CALLER_PHONE_CONFIRM': "I have {caller_id} - is that correct?",
    'ADDRESS': "Thanks. What's the service address?",
    'SCHEDULING': (
        "When would you like us to come out? We have {default_next_available} available, "
        "or you can let me know your preference."
    ),
    'SCHEDULING_NO_DEFAULT': "When would you like us to come out?",
}

# One rephrasing per stage, used for the single re-ask
REPHRASES = {
    'ISSUE_CAPTURE': "Sorry, could you tell me what's going on with your heating or cooling?",
    'URGENCY_CHECK': "Does this need someone out as soon as possible, or can it wait a bit?",
    'CALLER_NAME': "Sorry, could I get your first and last name?",
    'CALLER_PHONE': "Could you give me a phone number where our team can reach you?",
    'ADDRESS': "Could you give me the street address and city for the service?",
    'ADDRESS_CITY': "And what city is that in?",
    'SCHEDULING': "What day or time works best for you?",
}

ACKNOWLEDGEMENTS = ["Thanks.", "Got it.", "Understood.", "I see.", "Okay."]

PRICING_SCRIPT = (
    "Our service call fee is ${fee}. The final cost depends on what work is needed. "
    "Our technician will provide a quote after assessing the issue."
)

PRICING_NOT_AVAILABLE = "Our technician will provide a quote after assessing the issue."

REDIRECT_SCRIPT = (
    "I'm here to help with HVAC service. How can I assist you with your heating or cooling needs?"
)

CLOSING_SCRIPT = (
    "Thank you. Our team will call or text you shortly to confirm the appointment. Have a great day!"
)


def render_greeting(template, business_name, agent_name=None):
    """Substitute {{business_name}} / {{agent_name}} in a greeting template."""
    agent_text = agent_name or 'an AI assistant'
    return (template or DEFAULT_GREETING) \
        .replace('{{business_name}}', business_name) \
        .replace('{{agent_name}}', agent_text)
