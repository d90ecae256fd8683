"""
Helper utility functions for phone numbers, addresses and display text.
"""

import re
from urllib.parse import quote

NOT_PROVIDED = 'Not provided'

_NON_DIGIT_PLUS = re.compile(r'[^\d+]')
_US_NUMBER = re.compile(r'^\+?1?(\d{10})$')


def normalize_phone_e164(phone):
    """
    Normalize a phone number to E.164 when it looks like a US number
    or already carries a country code. Anything else is returned unchanged.

    Args:
        phone: Raw phone number text

    Returns:
        E.164 string (e.g. '+12152059732') or the original text
    """
    if not phone:
        return phone

    cleaned = _NON_DIGIT_PLUS.sub('', phone)
    digits = cleaned.lstrip('+')

    if cleaned.startswith('+') and 8 <= len(digits) <= 15:
        return '+' + digits
    if len(digits) == 10:
        return '+1' + digits
    if len(digits) == 11 and digits.startswith('1'):
        return '+' + digits
    return phone


def format_phone_display(phone):
    """
    Format phone number for display: (XXX) XXX-XXXX for US numbers.
    International numbers are returned as given.
    """
    if not phone or phone == NOT_PROVIDED:
        return phone

    match = _US_NUMBER.match(_NON_DIGIT_PLUS.sub('', phone))
    if match:
        digits = match.group(1)
        return f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"
    return phone


def format_phone_for_tel(phone):
    """Format phone number for a tel: link (E.164). Empty string when unavailable."""
    if not phone or phone == NOT_PROVIDED:
        return ''

    cleaned = _NON_DIGIT_PLUS.sub('', phone)
    if not cleaned:
        return ''
    if cleaned.startswith('+'):
        return cleaned
    if re.fullmatch(r'1\d{10}', cleaned):
        return '+' + cleaned
    if re.fullmatch(r'\d{10}', cleaned):
        return '+1' + cleaned
    return '+' + cleaned


def maps_search_url(address):
    """Google Maps search link for an address, or '' when there is none."""
    if not address or address == NOT_PROVIDED:
        return ''
    return f"https://www.google.com/maps/search/?api=1&query={quote(address, safe='')}"


def capitalize_location(text):
    """Capitalize each word of a city or street name."""
    if not text:
        return text
    return ' '.join(word[:1].upper() + word[1:].lower() for word in text.split(' '))


def truncate(text, length, suffix='...'):
    """Cut text to `length` characters, appending suffix when cut."""
    if text is None:
        return ''
    return text if len(text) <= length else text[:length] + suffix
