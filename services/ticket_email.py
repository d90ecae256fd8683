"""
Ticket Email Service - Renders and delivers dispatch ticket emails.

This service handles:
- Building the ticket (number, priority, NEW/INCOMPLETE status)
- Rendering HTML and plain-text bodies
- Delivering over SMTP with retry and exponential backoff
"""

import html
import logging
import re
import smtplib
from dataclasses import dataclass, field
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import make_msgid
from typing import List

from ai_service import retry_on_failure
from app.utils.helpers import (
    NOT_PROVIDED,
    capitalize_location,
    format_phone_display,
    format_phone_for_tel,
    maps_search_url,
    truncate,
)
from services.ticket_rules import URGENT, classify_priority, generate_ticket_number

logger = logging.getLogger(__name__)

UNKNOWN = 'unknown'
SNIPPET_LINES = 12
SNIPPET_CHAR_LIMIT = 800
TRUNCATION_NOTE = '[Transcript truncated - view full transcript in dashboard]'
RULE = '━' * 40


class EmailDeliveryError(Exception):
    """Raised when a ticket email could not be delivered after all retries"""
    pass


@dataclass
class TicketEmail:
    ticket_number: str
    subject: str
    html: str
    text: str
    priority: str
    status: str
    to: List[str] = field(default_factory=list)
    cc: List[str] = field(default_factory=list)


def _value(intake, name):
    value = intake.get(name)
    if value is None or value == '' or value == UNKNOWN:
        return None
    return value


def extract_caller_info(intake, summary=None, caller_phone=None):
    """
    Name, phone, address and issue for the ticket, falling back to the
    summary bullets and the caller ID when the intake lacks them.
    """
    name = _value(intake, 'callerName') or ''
    phone = _value(intake, 'callerPhone') or ''
    issue = _value(intake, 'issueCategory') or _value(intake, 'issueDescription') or ''

    parts = [_value(intake, key) for key in ('addressLine1', 'city', 'state')]
    address = ', '.join(p for p in parts if p)

    bullets = (summary or {}).get('summary_bullets') or []
    if not name:
        for bullet in bullets:
            match = re.search(r'Caller(?:\s+is|\s*:)\s*([A-Z][a-zA-Z\s]+?)(?:\.|,|$)', bullet, re.IGNORECASE)
            if match and match.group(1).strip().lower() != UNKNOWN:
                name = match.group(1).strip()
                break
    if not phone:
        for bullet in bullets:
            match = re.search(r'(?:Phone|Number|Callback):\s*([+\d\s\-\(\)]+)', bullet, re.IGNORECASE)
            if match and match.group(1).strip():
                phone = match.group(1).strip()
                break
    if not phone and caller_phone:
        phone = caller_phone

    return {
        'name': name or NOT_PROVIDED,
        'phone': phone or NOT_PROVIDED,
        'address': address or NOT_PROVIDED,
        'issue': issue or NOT_PROVIDED,
    }


def determine_status(intake, send_incomplete=False):
    """NEW when name, phone and issue are present; otherwise INCOMPLETE if the firm asked for it."""
    has_name = bool(_value(intake, 'callerName'))
    has_phone = bool(_value(intake, 'callerPhone'))
    has_issue = bool(_value(intake, 'issueCategory') or _value(intake, 'issueDescription'))
    if has_name and has_phone and has_issue:
        return 'NEW'
    return 'INCOMPLETE' if send_incomplete else 'NEW'


def generate_action_items(priority, urgency):
    if priority == URGENT or urgency == 'ASAP':
        return [
            'Dispatch on-call technician immediately',
            'Confirm ETA with caller within 15 minutes',
            'Follow up if no response within 30 minutes',
        ]
    return [
        'Confirm appointment window with caller',
        'Assign technician to service address',
        'Send confirmation text/email when scheduled',
    ]


def transcript_snippet(transcript):
    """First lines of the transcript, and whether the full text was long enough to cut."""
    if not transcript:
        return '', False
    lines = transcript.split('\n')
    snippet = '\n'.join(lines[:SNIPPET_LINES])
    if len(lines) > SNIPPET_LINES:
        snippet += '\n...'
    return snippet, len(transcript) > SNIPPET_CHAR_LIMIT


def build_subject(issue, city, requested_time):
    return f"[NEW HVAC LEAD] {truncate(issue, 30)} – {city} – {requested_time}"


def render_ticket_email(intake, summary=None, transcript=None, recording_url=None,
                        caller_phone=None, send_incomplete=False, call_id=None,
                        service_call_fee=None, app_url='', ticket_number=None):
    """
    Render the ticket email for a processed call.

    Returns:
        TicketEmail without recipients
    """
    intake = intake or {}
    info = extract_caller_info(intake, summary, caller_phone)

    ticket_number = ticket_number or generate_ticket_number()
    priority = classify_priority(intake)
    status = determine_status(intake, send_incomplete)

    formatted_phone = format_phone_display(info['phone'])
    tel_link = format_phone_for_tel(info['phone'])
    maps_link = maps_search_url(info['address'])
    city = _value(intake, 'city')
    formatted_city = capitalize_location(city or '')
    formatted_state = (_value(intake, 'state') or '').upper()
    requested_time = _value(intake, 'requestedWindow') or 'ASAP'
    issue_category = _value(intake, 'issueCategory') or 'Not specified'
    issue_description = _value(intake, 'issueDescription') or info['issue']
    urgency = _value(intake, 'urgency') or 'Normal'
    caller_name = info['name'] if info['name'] != NOT_PROVIDED else 'Unknown'
    fee_mentioned = bool(intake.get('serviceFeeMentioned'))
    notes = _value(intake, 'notes')

    subject = build_subject(info['issue'], city or 'Unknown', requested_time)
    location = formatted_city + (f", {formatted_state}" if formatted_state else '')
    preheader = f"New HVAC lead: {issue_category} in {location} - requested {requested_time.lower()}."
    action_items = generate_action_items(priority, urgency)
    snippet, has_more = transcript_snippet(transcript)

    base_url = (app_url or '').rstrip('/')
    dashboard_url = f"{base_url}/calls/{call_id}" if call_id else f"{base_url}/calls"

    fee_text = 'Yes' if fee_mentioned else 'No'
    if fee_mentioned and service_call_fee:
        fee_text += f" (starts at ${float(service_call_fee):g})"

    e = html.escape
    priority_color = '#F97316' if priority == URGENT else '#1E40AF'

    address_html = (
        f'<a href="{e(maps_link)}" style="color: #1E40AF; font-weight: 700;">{e(info["address"])}</a>'
        if maps_link else f'<strong>{e(info["address"])}</strong>'
    )
    phone_html = (
        f'<a href="tel:{e(tel_link)}" style="color: #1E40AF;">{e(formatted_phone)}</a>'
        if tel_link else e(formatted_phone)
    )
    recording_html = (
        f'<a href="{e(recording_url)}" style="{_BUTTON_STYLE} background: #F97316;">Listen to Recording</a>'
        if recording_url else ''
    )
    call_button = (
        f'<a href="tel:{e(tel_link)}" style="{_BUTTON_STYLE} background: #1E40AF;">Call Customer</a>'
        if tel_link else f'<span style="{_BUTTON_STYLE} background: #94A3B8;">Call Customer</span>'
    )
    items_html = ''.join(f'<li>{e(item)}</li>' for item in action_items)
    notes_html = f'<tr><td>Notes</td><td>{e(notes)}</td></tr>' if notes else ''
    transcript_html = ''
    if snippet:
        transcript_html = (
            f'<h3>Call Transcript</h3><pre style="white-space: pre-wrap;">{e(snippet)}'
            f'{chr(10) * 2 + TRUNCATION_NOTE if has_more else ""}</pre>'
            f'<p><a href="{e(dashboard_url)}">View Full Transcript</a></p>'
        )

    html_body = f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="utf-8">
    <title>{e(subject)}</title>
</head>
<body style="font-family: Arial, sans-serif; color: #1F2937; margin: 0; padding: 0;">
    <div style="display: none; max-height: 0; overflow: hidden;">{e(preheader)}</div>
    <div style="max-width: 640px; margin: 0 auto; padding: 20px;">
        <div style="border-bottom: 1px solid #E2E8F0; padding-bottom: 12px;">
            <span style="font-size: 20px; font-weight: 700; color: #1E40AF;">AirDesk</span>
            <span style="float: right;">
                <span style="background: {priority_color}; color: #fff; padding: 4px 12px; border-radius: 4px;">{priority}</span>
                <span style="background: #F1F5F9; padding: 4px 12px; border-radius: 4px; border: 1px solid #E2E8F0;">{status}</span>
            </span>
        </div>
        <table style="width: 100%; background: #F1F5F9; padding: 24px;">
            <tr>
                <td><small>ISSUE</small><br><strong>{e(issue_category)}</strong><br>{e(truncate(issue_description, 60))}</td>
                <td><small>REQUESTED TIME</small><br><strong>{e(requested_time)}</strong></td>
            </tr>
            <tr>
                <td><small>ADDRESS</small><br>{address_html}</td>
                <td><small>CALLER</small><br><strong>{e(caller_name)}</strong><br>{phone_html}</td>
            </tr>
        </table>
        <p style="text-align: center; padding: 16px 0;">
            {call_button}
            <a href="{e(dashboard_url)}" style="{_BUTTON_STYLE} background: #fff; color: #1E40AF; border: 2px solid #1E40AF;">Open Ticket</a>
            {recording_html}
        </p>
        <table style="width: 100%;">
            <tr><td>Ticket ID</td><td>{e(ticket_number)}</td></tr>
            <tr><td>Urgency</td><td>{e(urgency)}</td></tr>
            <tr><td>Service Fee Mentioned</td><td>{e(fee_text)}</td></tr>
            {notes_html}
        </table>
        <h3>Action Items</h3>
        <ol>{items_html}</ol>
        {transcript_html}
        <p style="font-size: 12px; color: #64748B;">This ticket was generated automatically by AirDesk.<br>
        Important: Appointments are not confirmed until a team member follows up.</p>
    </div>
</body>
</html>"""

    text_lines = [
        subject,
        '',
        f"Priority: {priority} | Status: {status}",
        '',
        RULE,
        '',
        'DISPATCH SUMMARY',
        '',
        f"Issue: {issue_category}",
    ]
    if issue_description != issue_category:
        text_lines.append(f"Description: {issue_description}")
    text_lines.append(f"Requested Time: {requested_time}")
    text_lines.append(f"Address: {info['address']}")
    if maps_link:
        text_lines.append(f"Map: {maps_link}")
    text_lines.append(f"Caller: {caller_name}")
    text_lines.append(f"Phone: {formatted_phone}")
    if tel_link:
        text_lines.append(f"Call: tel:{tel_link}")
    text_lines += ['', RULE, '', 'ACTIONS', '']
    text_lines.append(f"Call Customer: tel:{tel_link}" if tel_link else 'Call Customer: Phone not available')
    text_lines.append(f"Open Ticket: {dashboard_url}")
    if recording_url:
        text_lines.append(f"Listen to Recording: {recording_url}")
    text_lines += ['', RULE, '', 'DETAILS', '', f"Ticket ID: {ticket_number}",
                   f"Urgency: {urgency}", f"Service Fee: {fee_text}"]
    if notes:
        text_lines.append(f"Notes: {notes}")
    text_lines += ['', RULE, '', 'ACTION ITEMS', '']
    text_lines += [f"{i}. {item}" for i, item in enumerate(action_items, 1)]
    if snippet:
        text_lines += ['', RULE, '', 'CALL TRANSCRIPT', '', snippet]
        if has_more:
            text_lines += ['', TRUNCATION_NOTE]
        text_lines += ['', f"View Full Transcript: {dashboard_url}"]
    text_lines += [
        '', RULE, '',
        'This ticket was generated automatically by AirDesk.',
        '',
        'Important: Appointments are not confirmed until a team member follows up.',
    ]

    return TicketEmail(
        ticket_number=ticket_number,
        subject=subject,
        html=html_body,
        text='\n'.join(text_lines),
        priority=priority,
        status=status,
    )


_BUTTON_STYLE = (
    'display: inline-block; padding: 12px 24px; color: #fff; text-decoration: none; '
    'font-weight: 600; border-radius: 6px; margin: 0 6px;'
)


class EmailSender:
    """SMTP delivery for ticket emails."""

    def __init__(self, config):
        self.smtp_host = config.get('SMTP_HOST', '')
        self.smtp_port = int(config.get('SMTP_PORT', 587))
        self.smtp_user = config.get('SMTP_USER', '')
        self.smtp_password = config.get('SMTP_PASSWORD', '')
        self.from_email = config.get('FROM_EMAIL', 'AirDesk <tickets@airdesk.app>')
        self.retry_attempts = int(config.get('EMAIL_RETRY_ATTEMPTS', 3))
        self.retry_delay = config.get('EMAIL_RETRY_DELAY', 1)
        self.email_enabled = bool(self.smtp_host)

    def _build_message(self, email: TicketEmail):
        msg = MIMEMultipart('alternative')
        msg['Subject'] = email.subject
        msg['From'] = self.from_email
        msg['To'] = ', '.join(email.to)
        if email.cc:
            msg['Cc'] = ', '.join(email.cc)
        msg['Message-ID'] = make_msgid(domain='airdesk.app')

        msg.attach(MIMEText(email.text, 'plain'))
        msg.attach(MIMEText(email.html, 'html'))
        return msg

    def _deliver(self, msg):
        with smtplib.SMTP(self.smtp_host, self.smtp_port) as server:
            server.starttls()
            if self.smtp_user:
                server.login(self.smtp_user, self.smtp_password)
            server.send_message(msg)

    def send(self, email: TicketEmail) -> str:
        """
        Deliver a ticket email, retrying with exponential backoff.

        Returns:
            The Message-ID of the delivered email

        Raises:
            EmailDeliveryError: If SMTP is not configured, there are no
                recipients, or every attempt failed (wraps the last error)
        """
        if not self.email_enabled:
            raise EmailDeliveryError('SMTP_HOST not configured')
        if not email.to:
            raise EmailDeliveryError('No recipients for ticket email')

        msg = self._build_message(email)
        logger.info(
            f"[Email] Sending ticket {email.ticket_number} to {email.to} "
            f"(cc={email.cc}, priority={email.priority}, status={email.status})"
        )

        deliver = retry_on_failure(
            max_attempts=self.retry_attempts,
            delay=self.retry_delay,
            backoff=2,
            retry_on=(smtplib.SMTPException, OSError),
        )(self._deliver)

        try:
            deliver(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"[Email] All {self.retry_attempts} attempts failed for {email.ticket_number}: {e}")
            raise EmailDeliveryError(str(e)) from e

        logger.info(f"[Email] Ticket {email.ticket_number} sent")
        return msg['Message-ID']
