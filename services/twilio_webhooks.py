"""
Twilio phone number webhook management.
"""

import logging
from typing import Dict, Optional

from twilio.base.exceptions import TwilioRestException
from twilio.rest import Client

logger = logging.getLogger(__name__)

# Hosted voice platform endpoint that answers inbound Twilio calls
VAPI_INBOUND_URL = 'https://api.vapi.ai/twilio/inbound_call'


class TwilioConfigError(Exception):
    """Raised when Twilio credentials or the app URL are missing or invalid"""
    pass


class TwilioNumberNotFound(Exception):
    """Raised when the firm's number is not in the Twilio account"""
    pass


class TwilioUpdateError(Exception):
    """Raised when Twilio rejects the webhook update"""
    pass


def normalize_app_url(url: Optional[str]) -> Optional[str]:
    """Base URL with scheme and without trailing slash."""
    if not url or not url.strip():
        return None
    url = url.strip().rstrip('/')
    if not url.startswith(('http://', 'https://')):
        url = f"https://{url}"
    return url


def webhook_urls(app_url: str) -> Dict[str, str]:
    base = normalize_app_url(app_url)
    if not base:
        raise TwilioConfigError('APP_URL not configured')
    return {
        'voice_url': f"{base}/api/twilio/voice",
        'status_url': f"{base}/api/twilio/status",
    }


def build_client(account_sid: Optional[str], auth_token: Optional[str]) -> Client:
    if not account_sid or not auth_token or not account_sid.startswith('AC'):
        raise TwilioConfigError('Twilio credentials not configured')
    return Client(account_sid, auth_token)


def update_number_webhooks(client: Client, phone_number: str, app_url: str) -> Dict[str, str]:
    """
    Point an incoming number at this service's voice and status webhooks.

    Raises:
        TwilioConfigError: APP_URL missing
        TwilioNumberNotFound: Number not in the account
        TwilioUpdateError: Twilio rejected the lookup or the update
    """
    urls = webhook_urls(app_url)
    logger.info(f"[Twilio] Updating webhooks for {phone_number}: {urls}")

    try:
        numbers = client.incoming_phone_numbers.list(phone_number=phone_number, limit=1)
    except TwilioRestException as e:
        logger.error(f"[Twilio] Number lookup failed: {e}")
        raise TwilioUpdateError(f"Failed to look up number: {e.msg}")

    if not numbers:
        raise TwilioNumberNotFound(f"Number {phone_number} not found in your Twilio account")

    try:
        client.incoming_phone_numbers(numbers[0].sid).update(
            voice_url=urls['voice_url'],
            voice_method='POST',
            status_callback=urls['status_url'],
            status_callback_method='POST',
        )
    except TwilioRestException as e:
        logger.error(f"[Twilio] Webhook update failed: {e}")
        raise TwilioUpdateError(f"Failed to update Twilio webhooks: {e.msg}")

    logger.info(f"[Twilio] Webhooks updated for {phone_number}")
    return {'phone_number': phone_number, **urls}
