"""
Input Validation & Sanitization Utilities
Provides validation for API requests: firm settings, intake turns and ticket updates
"""
import re
from typing import Dict, Any, List, Optional, Tuple
import logging

logger = logging.getLogger(__name__)

# Regex patterns
EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')
PHONE_PATTERN = re.compile(r'^\+?1?\d{9,15}$')
TIME_PATTERN = re.compile(r'^([01]\d|2[0-3]):[0-5]\d$')

MAX_UTTERANCE_LENGTH = 2000
MAX_TRANSCRIPT_LENGTH = 200000

# Settings that are plain strings, with their maximum length
SETTINGS_STRING_FIELDS = {
    'firm_name': 255,
    'timezone': 64,
    'agent_name': 100,
    'ai_greeting_custom': 1000,
    'ai_knowledge_base': 20000,
    'default_next_available': 255,
}
SETTINGS_BOOLEAN_FIELDS = ('service_fee_enabled', 'send_incomplete_tickets')


class ValidationError(Exception):
    """Custom exception for validation errors"""
    def __init__(self, message: str, field: Optional[str] = None):
        self.message = message
        self.field = field
        super().__init__(self.message)


def validate_required_fields(data: Dict[str, Any], required_fields: List[str]) -> Tuple[bool, Optional[str]]:
    """
    Validate that all required fields are present in the data

    Args:
        data: Dictionary of input data
        required_fields: List of required field names

    Returns:
        Tuple of (is_valid, error_message)
    """
    missing_fields = [field for field in required_fields if field not in data or data[field] is None or data[field] == '']

    if missing_fields:
        return False, f"Missing required fields: {', '.join(missing_fields)}"

    return True, None


def validate_email(email: str) -> Tuple[bool, Optional[str]]:
    """
    Validate email format

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not email or not isinstance(email, str):
        return False, "Email must be a non-empty string"

    if not EMAIL_PATTERN.match(email):
        return False, "Invalid email format"

    if len(email) > 254:  # RFC 5321
        return False, "Email address too long"

    return True, None


def validate_phone(phone: str) -> Tuple[bool, Optional[str]]:
    """
    Validate phone number format

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not phone or not isinstance(phone, str):
        return False, "Phone must be a non-empty string"

    # Remove common separators
    cleaned_phone = re.sub(r'[\s\-\(\)\.]', '', phone)

    if not PHONE_PATTERN.match(cleaned_phone):
        return False, "Invalid phone number format"

    return True, None


def validate_string_length(value: str, min_length: int = 0, max_length: int = 1000) -> Tuple[bool, Optional[str]]:
    """Validate string length is within acceptable range"""
    if not isinstance(value, str):
        return False, "Value must be a string"

    if len(value) < min_length:
        return False, f"Value too short (minimum {min_length} characters)"

    if len(value) > max_length:
        return False, f"Value too long (maximum {max_length} characters)"

    return True, None


def validate_number_range(value: float, min_value: Optional[float] = None, max_value: Optional[float] = None) -> Tuple[bool, Optional[str]]:
    """Validate number is within acceptable range"""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False, "Value must be a number"

    if min_value is not None and value < min_value:
        return False, f"Value too small (minimum {min_value})"

    if max_value is not None and value > max_value:
        return False, f"Value too large (maximum {max_value})"

    return True, None


def sanitize_string(value: str, max_length: int = 1000) -> str:
    """
    Sanitize string input: drop null bytes, trim, and cap the length
    """
    if not isinstance(value, str):
        return str(value)

    sanitized = value.replace('\x00', '').strip()

    if len(sanitized) > max_length:
        sanitized = sanitized[:max_length]

    return sanitized


def parse_email_list(value: Any, field: str) -> List[str]:
    """
    Normalize an email list from a JSON array or a comma/semicolon/newline
    separated string: trimmed, lowercased, de-duplicated in order.

    Raises:
        ValidationError: If any address is malformed
    """
    if value is None or value == '':
        return []

    if isinstance(value, str):
        candidates = re.split(r'[,;\n]', value)
    elif isinstance(value, list):
        candidates = value
    else:
        raise ValidationError(f"{field} must be a list of email addresses", field)

    emails = []
    for candidate in candidates:
        if not isinstance(candidate, str):
            raise ValidationError(f"{field} must contain only strings", field)
        email = candidate.strip().lower()
        if not email:
            continue
        is_valid, error = validate_email(email)
        if not is_valid:
            raise ValidationError(f"{error}: {email}", field)
        if email not in emails:
            emails.append(email)
    return emails


def validate_settings_update(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate a firm settings update and return the cleaned values.
    Unknown keys are ignored.

    Raises:
        ValidationError: On the first invalid field
    """
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")

    cleaned = {}

    for field, max_length in SETTINGS_STRING_FIELDS.items():
        if field not in data:
            continue
        value = data[field]
        if value is None:
            if field == 'firm_name':
                raise ValidationError("firm_name cannot be empty", field)
            cleaned[field] = None
            continue
        is_valid, error = validate_string_length(value, min_length=1 if field == 'firm_name' else 0,
                                                 max_length=max_length)
        if not is_valid:
            raise ValidationError(f"Invalid {field}: {error}", field)
        cleaned[field] = sanitize_string(value, max_length) or None

    for field in ('notify_emails', 'cc_emails'):
        if field in data:
            cleaned[field] = parse_email_list(data[field], field)

    for field in SETTINGS_BOOLEAN_FIELDS:
        if field in data:
            if not isinstance(data[field], bool):
                raise ValidationError(f"{field} must be a boolean", field)
            cleaned[field] = data[field]

    if 'service_call_fee' in data:
        fee = data['service_call_fee']
        if fee is not None and fee != '':
            if isinstance(fee, str):
                try:
                    fee = float(fee.strip().lstrip('$'))
                except ValueError:
                    raise ValidationError("service_call_fee must be a number", 'service_call_fee')
            is_valid, error = validate_number_range(fee, min_value=0, max_value=10000)
            if not is_valid:
                raise ValidationError(f"Invalid service_call_fee: {error}", 'service_call_fee')
            cleaned['service_call_fee'] = float(fee)
        else:
            cleaned['service_call_fee'] = None

    for field in ('business_hours_open', 'business_hours_close'):
        if field in data:
            value = data[field]
            if not isinstance(value, str) or not TIME_PATTERN.match(value):
                raise ValidationError(f"{field} must be HH:MM", field)
            cleaned[field] = value

    if 'twilio_number' in data and data['twilio_number']:
        is_valid, error = validate_phone(data['twilio_number'])
        if not is_valid:
            raise ValidationError(f"Invalid twilio_number: {error}", 'twilio_number')
        cleaned['twilio_number'] = data['twilio_number'].strip()

    return cleaned


def validate_turn_request(data: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """Validate an intake turn request: {"utterance": "..."}"""
    if not isinstance(data, dict):
        return False, "Request body must be a JSON object"

    utterance = data.get('utterance', '')
    if utterance is None:
        return True, None

    is_valid, error = validate_string_length(utterance, max_length=MAX_UTTERANCE_LENGTH)
    if not is_valid:
        return False, f"Invalid utterance: {error}"

    return True, None


def validate_start_call_request(data: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """A call needs either the firm id or the dialed Twilio number."""
    if not isinstance(data, dict):
        return False, "Request body must be a JSON object"

    if not data.get('firm_id') and not data.get('to_number'):
        return False, "Missing required fields: firm_id or to_number"

    if data.get('from_number'):
        is_valid, error = validate_phone(data['from_number'])
        if not is_valid:
            return False, f"Invalid from_number: {error}"

    return True, None


def validate_finalize_request(data: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    if not isinstance(data, dict):
        return False, "Request body must be a JSON object"

    transcript = data.get('transcript')
    if transcript is not None:
        is_valid, error = validate_string_length(transcript, max_length=MAX_TRANSCRIPT_LENGTH)
        if not is_valid:
            return False, f"Invalid transcript: {error}"

    return True, None


def format_validation_error(field: str, message: str) -> Dict[str, Any]:
    """
    Format validation error for consistent API responses
    """
    return {
        'success': False,
        'error': 'Validation Error',
        'field': field,
        'message': message
    }
