"""
Rule-based field extraction from caller utterances.

Each extractor takes one utterance and returns a dict of intake fields it
could read from it (empty dict when nothing usable was said). Stage
extractors are lenient because the caller is answering a direct question;
`extract_opportunistic` only reports high-confidence values volunteered
while answering something else.
"""

import re
import logging

from app.utils.helpers import normalize_phone_e164

logger = logging.getLogger(__name__)

UNKNOWN = 'unknown'

ISSUE_CATEGORIES = [
    'No heat', 'No cool', 'Furnace', 'AC', 'Thermostat', 'Strange noise', 'Leak', 'Other'
]

# Checked in order; first match wins
ISSUE_PATTERNS = [
    ('No heat', [
        r"\bno heat\b", r"\bheat(?:ing)? (?:is )?(?:not|isn'?t|won'?t|doesn'?t|stopped)",
        r"\bfurnace (?:is )?(?:not|isn'?t|won'?t|doesn'?t|stopped)", r"\bnot heating\b",
        r"\bno hot air\b", r"\bheater (?:is )?(?:not|isn'?t|won'?t|doesn'?t) work",
    ]),
    ('No cool', [
        r"\bno (?:cool|cooling|ac|a/?c|air)\b", r"\b(?:ac|a/?c|air condition(?:er|ing)) (?:is )?(?:not|isn'?t|won'?t|doesn'?t|stopped)",
        r"\bnot cooling\b", r"\bcooling (?:is )?(?:not|isn'?t|won'?t|doesn'?t|stopped)", r"\bblowing (?:hot|warm) air\b",
    ]),
    ('Furnace', [r"\bfurnace\b", r"\bheater\b", r"\bboiler\b", r"\bheat pump\b"]),
    ('AC', [r"\bac\b", r"\ba/c\b", r"\bair condition(?:er|ing)\b", r"\bcooling\b"]),
    ('Thermostat', [r"\bthermostat\b"]),
    ('Strange noise', [r"\bnois(?:e|y)\b", r"\bsound\b", r"\brattl", r"\bbang", r"\bsqueal", r"\bbuzz"]),
    ('Leak', [r"\bleak", r"\bdripping\b", r"\bwater (?:on|under|around)\b"]),
]

EXTREME_LANGUAGE = [
    'tonight', 'asap', 'a.s.a.p', 'emergency', 'kids', 'children', 'baby', 'elderly',
    'freezing', 'frozen', 'right away', 'immediately', 'urgent', 'dangerous', 'sweltering',
]

ASAP_PHRASES = [
    r"\basap\b", r"\ba\.s\.a\.p\b", r"\bas soon as (?:possible|you can)\b", r"\bemergency\b",
    r"\burgent\b", r"\bright away\b", r"\bimmediately\b", r"\btoday\b", r"\btonight\b",
    r"\bneeds? attention\b", r"\bright now\b",
]

CAN_WAIT_PHRASES = [
    r"\bcan wait\b", r"\bno rush\b", r"\bnot urgent\b", r"\bnot an emergency\b", r"\bwhenever\b",
    r"\bnext week\b", r"\bno hurry\b", r"\bit can hold\b", r"\bisn'?t urgent\b",
]

DONT_KNOW_PHRASES = [
    r"\bi don'?t know\b", r"\bnot sure\b", r"\bno idea\b", r"\bi'?m unsure\b", r"\bdunno\b",
    r"\bcan'?t remember\b",
]

AFFIRMATIVE = re.compile(
    r"^\s*(?:yes|yeah|yep|yup|correct|that'?s (?:right|correct|it|fine)|right|sure|ok(?:ay)?|"
    r"uh[- ]?huh|that works|sounds good|perfect)\b",
    re.IGNORECASE,
)
NEGATIVE = re.compile(r"^\s*(?:no|nope|nah|that'?s (?:wrong|not right|not it)|not really)\b", re.IGNORECASE)

PRICING_QUESTION = re.compile(
    r"\bhow much\b|\bcost\b|\bprice\b|\bpricing\b|\bcharge\b|\bfee\b|\brates?\b", re.IGNORECASE
)

OFF_TOPIC = re.compile(
    r"\b(?:doctor|medical|medicine|prescription|hospital|lawyer|legal|lawsuit|attorney|"
    r"insurance claim|pizza|plumb(?:er|ing) only|electrician)\b",
    re.IGNORECASE,
)

NAME_INTRO = re.compile(
    r"(?:my name is|my name's|name is|this is|i am|i'm|it's|it is)\s+"
    r"([A-Za-z][A-Za-z'\-]*(?:\s+[A-Za-z][A-Za-z'\-]*){0,3})",
    re.IGNORECASE,
)

NOT_A_NAME = {
    'calling', 'having', 'looking', 'not', 'just', 'so', 'really', 'very', 'a', 'an', 'the',
    'about', 'with', 'here', 'trying', 'wondering', 'sure', 'cold', 'hot', 'freezing', 'fine',
    'good', 'okay', 'ok', 'yes', 'no', 'sorry', 'unsure',
}

NAME_STOP_WORDS = {'and', 'calling', 'from', 'at', 'with', 'my', 'i', 'the', 'please', 'thanks', 'thank'}

# Sounds and acknowledgements that are not an answer on their own
FILLER_WORDS = {
    'uh', 'uhh', 'um', 'umm', 'uhm', 'er', 'erm', 'eh', 'ah', 'ahh', 'oh', 'hmm', 'hm', 'mm',
    'mmm', 'mhm', 'huh', 'meh', 'ok', 'okay', 'so', 'well', 'like', 'yeah', 'yes', 'yep', 'no',
    'nope', 'blah', 'hello', 'hi', 'hey', 'what', 'sorry', 'wait', 'hold', 'on', 'one', 'sec',
    'second', 'right', 'sure', 'anyway',
}

PHONE_CANDIDATE = re.compile(r"(\+?\d[\d\s\-\.\(\)]{8,}\d)")

STREET_SUFFIXES = (
    r"Street|St|Avenue|Ave|Road|Rd|Drive|Dr|Lane|Ln|Boulevard|Blvd|Court|Ct|Way|Place|Pl|"
    r"Circle|Cir|Terrace|Ter|Parkway|Pkwy|Highway|Hwy|Trail|Trl"
)
STREET_ADDRESS = re.compile(
    rf"(\d+\s+(?:[A-Za-z0-9\.]+\s+){{0,4}}?(?:{STREET_SUFFIXES})\b\.?(?:\s+(?:Apt|Unit|Suite|#)\s*\w+)?)",
    re.IGNORECASE,
)

US_STATES = {
    'alabama': 'AL', 'alaska': 'AK', 'arizona': 'AZ', 'arkansas': 'AR', 'california': 'CA',
    'colorado': 'CO', 'connecticut': 'CT', 'delaware': 'DE', 'florida': 'FL', 'georgia': 'GA',
    'hawaii': 'HI', 'idaho': 'ID', 'illinois': 'IL', 'indiana': 'IN', 'iowa': 'IA',
    'kansas': 'KS', 'kentucky': 'KY', 'louisiana': 'LA', 'maine': 'ME', 'maryland': 'MD',
    'massachusetts': 'MA', 'michigan': 'MI', 'minnesota': 'MN', 'mississippi': 'MS',
    'missouri': 'MO', 'montana': 'MT', 'nebraska': 'NE', 'nevada': 'NV', 'new hampshire': 'NH',
    'new jersey': 'NJ', 'new mexico': 'NM', 'new york': 'NY', 'north carolina': 'NC',
    'north dakota': 'ND', 'ohio': 'OH', 'oklahoma': 'OK', 'oregon': 'OR', 'pennsylvania': 'PA',
    'rhode island': 'RI', 'south carolina': 'SC', 'south dakota': 'SD', 'tennessee': 'TN',
    'texas': 'TX', 'utah': 'UT', 'vermont': 'VT', 'virginia': 'VA', 'washington': 'WA',
    'west virginia': 'WV', 'wisconsin': 'WI', 'wyoming': 'WY',
}
STATE_ABBREVIATIONS = set(US_STATES.values())

NEXT_AVAILABLE = re.compile(
    r"\b(?:next available|first available|earliest|soonest|whatever you have|"
    r"that works|that's fine|sounds good|that one|the first one)\b",
    re.IGNORECASE,
)

TIME_WORDS = re.compile(
    r"\b(?:today|tonight|tomorrow|morning|afternoon|evening|noon|monday|tuesday|wednesday|"
    r"thursday|friday|saturday|sunday|weekend|next week|this week|asap|anytime|any time|"
    r"a\.?m\.?|p\.?m\.?|o'?clock|\d{1,2}(?::\d{2})?)\b",
    re.IGNORECASE,
)


def _matches_any(patterns, text):
    return any(re.search(p, text, re.IGNORECASE) for p in patterns)


def clean_utterance(utterance):
    """Collapse whitespace and strip filler punctuation."""
    return re.sub(r'\s+', ' ', (utterance or '')).strip().strip('.!?,;: ')


def is_dont_know(utterance):
    return _matches_any(DONT_KNOW_PHRASES, utterance or '')


def is_filler(utterance):
    """True when nothing but filler sounds, single letters or punctuation was said."""
    words = re.findall(r"[a-z']+", (utterance or '').lower())
    return all(len(word) == 1 or word in FILLER_WORDS for word in words)


def is_affirmative(utterance):
    return bool(AFFIRMATIVE.search(utterance or ''))


def is_negative(utterance):
    return bool(NEGATIVE.search(utterance or ''))


def asks_about_pricing(utterance):
    return bool(PRICING_QUESTION.search(utterance or ''))


def is_off_topic(utterance):
    return bool(OFF_TOPIC.search(utterance or ''))


def has_extreme_language(text):
    lowered = (text or '').lower()
    return any(word in lowered for word in EXTREME_LANGUAGE)


# =============================================================================
# ISSUE
# =============================================================================

def categorize_issue(text):
    """Map free text to one of ISSUE_CATEGORIES ('Other' when nothing matches)."""
    lowered = (text or '').lower()
    for category, patterns in ISSUE_PATTERNS:
        if _matches_any(patterns, lowered):
            return category
    return 'Other'


def extract_issue(utterance):
    text = clean_utterance(utterance)
    if not text or is_dont_know(text) or is_filler(text):
        return {}
    return {
        'issueCategory': categorize_issue(text),
        'issueDescription': text,
    }


# =============================================================================
# URGENCY
# =============================================================================

def extract_urgency(utterance, issue_category=None):
    """
    'ASAP' or 'can wait'. No heat / no cool with extreme language is ASAP
    even when the caller never says so directly.
    """
    text = utterance or ''
    if _matches_any(CAN_WAIT_PHRASES, text):
        return {'urgency': 'can wait'}
    if _matches_any(ASAP_PHRASES, text):
        return {'urgency': 'ASAP'}
    if issue_category in ('No heat', 'No cool') and has_extreme_language(text):
        return {'urgency': 'ASAP'}
    return {}


def answer_urgency_question(utterance):
    """
    Interpret a direct answer to "ASAP, or can it wait?".
    A bare "yes" means the first option.
    """
    found = extract_urgency(utterance)
    if found:
        return found
    if is_affirmative(utterance):
        return {'urgency': 'ASAP'}
    if is_negative(utterance):
        return {'urgency': 'can wait'}
    return {}


# =============================================================================
# NAME
# =============================================================================

def _clean_name(raw):
    words = []
    for word in raw.split():
        if word.lower() in NAME_STOP_WORDS:
            break
        words.append(word)
    if not words or words[0].lower() in NOT_A_NAME:
        return None
    return ' '.join(w[:1].upper() + w[1:] for w in words)


def extract_name(utterance, bare_answer=False):
    """
    Caller name from "my name is ..." style phrases. With bare_answer the
    whole utterance may be the name ("John Smith.").
    """
    text = clean_utterance(utterance)
    if not text or is_dont_know(text) or is_filler(text):
        return {}

    match = NAME_INTRO.search(text)
    if match:
        name = _clean_name(match.group(1))
        if name:
            return {'callerName': name}

    if bare_answer:
        words = text.split()
        if 1 <= len(words) <= 4 and all(re.fullmatch(r"[A-Za-z][A-Za-z'\-]*", w) for w in words):
            name = _clean_name(text)
            if name and not is_affirmative(text) and not is_negative(text):
                return {'callerName': name}
    return {}


# =============================================================================
# PHONE
# =============================================================================

def extract_phone(utterance):
    """Phone number digits in the utterance, normalized to E.164 when possible."""
    text = utterance or ''
    for candidate in PHONE_CANDIDATE.findall(text):
        digits = re.sub(r'\D', '', candidate)
        if 10 <= len(digits) <= 15:
            return {'callerPhone': normalize_phone_e164(candidate.strip())}
    return {}


# =============================================================================
# ADDRESS
# =============================================================================

def _split_state(part):
    """Return (city, state_abbr) from 'Chicago IL' / 'Chicago, Illinois' fragments."""
    tokens = part.strip()
    lowered = tokens.lower()
    for name, abbr in sorted(US_STATES.items(), key=lambda item: -len(item[0])):
        if lowered == name:
            return None, abbr
        if lowered.endswith(' ' + name):
            return tokens[: -len(name)].strip(), abbr
    words = tokens.split()
    if words and words[-1].upper().strip('.') in STATE_ABBREVIATIONS and len(words[-1].strip('.')) == 2:
        return ' '.join(words[:-1]).strip() or None, words[-1].upper().strip('.')
    return tokens or None, None


def extract_address(utterance):
    """
    addressLine1 / city / state from "123 Main Street, Chicago, Illinois".
    Returns whatever subset could be read.
    """
    text = clean_utterance(utterance)
    if not text or is_dont_know(text):
        return {}

    found = {}
    match = STREET_ADDRESS.search(text)
    if not match:
        # Bare "123 Oak" style answers to the address question
        match = re.search(r"(\d+\s+[A-Za-z][A-Za-z\s]{2,}?)(?:,|$| in )", text)
    if not match:
        return {}

    found['addressLine1'] = clean_utterance(match.group(1))
    remainder = text[match.end():].strip(' ,.')
    remainder = re.sub(r'^(?:in|at)\s+', '', remainder, flags=re.IGNORECASE)
    remainder = re.sub(r'\b\d{5}(?:-\d{4})?\b', '', remainder).strip(' ,.')

    if remainder:
        parts = [p.strip() for p in remainder.split(',') if p.strip()]
        city, state = None, None
        if len(parts) >= 2:
            city = parts[0]
            _, state = _split_state(parts[1])
        elif parts:
            city, state = _split_state(parts[0])
        if city:
            found['city'] = city
        if state:
            found['state'] = state
    return found


def extract_city(utterance):
    """Answer to "what city is that in?"."""
    text = clean_utterance(utterance)
    if not text or is_dont_know(text) or is_filler(text):
        return {}
    text = re.sub(r'^(?:it\'?s |it is |in |that\'?s )', '', text, flags=re.IGNORECASE)
    parts = [p.strip() for p in text.split(',') if p.strip()]
    if not parts:
        return {}
    city, state = _split_state(parts[0]) if len(parts) == 1 else (parts[0], _split_state(parts[1])[1])
    found = {}
    if city and len(city.split()) <= 4:
        found['city'] = city
    if state:
        found['state'] = state
    return found


# =============================================================================
# SCHEDULING
# =============================================================================

def extract_requested_window(utterance, default_next_available=None):
    """
    Preferred appointment time. Accepting the offered slot maps to the
    firm's default next-available text.
    """
    text = clean_utterance(utterance)
    if not text or is_dont_know(text):
        return {}

    if NEXT_AVAILABLE.search(text) or (default_next_available and is_affirmative(text)):
        return {
            'requestedWindow': default_next_available or 'Next available',
            'nextAvailableOffered': True,
        }
    if TIME_WORDS.search(text):
        return {'requestedWindow': text[:1].upper() + text[1:]}
    return {}


# =============================================================================
# VOLUNTEERED VALUES
# =============================================================================

def extract_opportunistic(utterance, known_issue_category=None):
    """
    High-confidence values the caller volunteered in any turn:
    a specific issue category, urgency, a spelled-out phone number,
    an introduced name, or a street address.
    """
    text = utterance or ''
    found = {}

    category = categorize_issue(text)
    if category != 'Other':
        found['issueCategory'] = category
        found['issueDescription'] = clean_utterance(text)

    found.update(extract_urgency(text, found.get('issueCategory') or known_issue_category))
    found.update(extract_phone(text))

    match = NAME_INTRO.search(text)
    if match and re.search(r"\bname\b", text, re.IGNORECASE):
        name = _clean_name(match.group(1))
        if name:
            found['callerName'] = name

    if STREET_ADDRESS.search(text):
        found.update(extract_address(text))

    if found:
        logger.debug(f"Volunteered fields: {sorted(found)}")
    return found
