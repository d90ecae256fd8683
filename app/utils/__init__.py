"""
Utilities Package

Shared helper functions used across the application.
"""

from app.utils.helpers import (
    NOT_PROVIDED,
    normalize_phone_e164,
    format_phone_display,
    format_phone_for_tel,
    maps_search_url,
    capitalize_location,
    truncate,
)

__all__ = [
    'NOT_PROVIDED',
    'normalize_phone_e164',
    'format_phone_display',
    'format_phone_for_tel',
    'maps_search_url',
    'capitalize_location',
    'truncate',
]
