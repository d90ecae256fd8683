"""
Ticket classification and lifecycle rules.
"""

import random
from datetime import datetime

URGENT = 'URGENT'
NORMAL = 'NORMAL'

READY = 'READY'
DISPATCHED = 'DISPATCHED'
COMPLETED = 'COMPLETED'

TICKET_STATUSES = (READY, DISPATCHED, COMPLETED)

URGENT_CATEGORIES = frozenset({'No heat', 'No cool'})
URGENT_LEVELS = frozenset({'asap', 'high'})


class TicketError(Exception):
    """Base exception for ticket operations"""
    pass


class TicketNotFound(TicketError):
    """Raised when a ticket does not exist for the firm"""
    pass


class InvalidTicketTransition(TicketError):
    """Raised when a status change is not allowed"""
    pass


def _field(intake, name):
    if intake is None:
        return None
    if hasattr(intake, 'get'):
        return intake.get(name)
    return getattr(intake, name, None)


def classify_priority(intake):
    """
    URGENT when the system is down (no heat / no cool) and the caller
    needs it now. Everything else is NORMAL.
    """
    category = _field(intake, 'issueCategory')
    urgency = (_field(intake, 'urgency') or '').strip().lower()
    if category in URGENT_CATEGORIES and urgency in URGENT_LEVELS:
        return URGENT
    return NORMAL


def display_status(status):
    """Stored status as shown on the board; anything unrecognised is READY."""
    return status if status in TICKET_STATUSES else READY


def check_transition(current, target, reopen=False):
    """
    Validate a status change.

    Returns:
        True when the status changes, False when it is already `target`

    Raises:
        InvalidTicketTransition: unknown target, or a backward move without reopen
    """
    if target not in TICKET_STATUSES:
        raise InvalidTicketTransition(
            f"Invalid status '{target}'. Must be one of: {', '.join(TICKET_STATUSES)}"
        )

    current = display_status(current)
    if current == target:
        return False

    if TICKET_STATUSES.index(target) < TICKET_STATUSES.index(current) and not reopen:
        raise InvalidTicketTransition(f"Cannot move ticket from {current} back to {target}")
    return True


def generate_ticket_number(now=None, rng=None):
    """Ticket number in the form HVAC-YYYY-MMDD-####."""
    now = now or datetime.utcnow()
    suffix = (rng or random).randint(0, 9999)
    return f"HVAC-{now:%Y}-{now:%m%d}-{suffix:04d}"
