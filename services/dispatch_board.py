"""
Dispatch board: tickets grouped into READY / DISPATCHED / COMPLETED columns.

Moves are optimistic: the card changes column immediately and goes back
where it was if persisting the change fails.
"""

import logging
from typing import Callable, Dict, List, Optional

from services.ticket_rules import TICKET_STATUSES, URGENT, check_transition, display_status

logger = logging.getLogger(__name__)


def _timestamp(ticket):
    return ticket.get('started_at') or ticket.get('created_at') or ''


def group_tickets(tickets: List[Dict], urgent_only: bool = False) -> Dict[str, List[Dict]]:
    """Column -> sorted tickets. Unknown stored statuses land in READY."""
    columns = {status: [] for status in TICKET_STATUSES}
    for ticket in tickets:
        if urgent_only and ticket.get('priority') != URGENT:
            continue
        columns[display_status(ticket.get('ticket_status'))].append(ticket)
    for status, items in columns.items():
        # Newest first, then a stable sort puts URGENT on top
        items.sort(key=_timestamp, reverse=True)
        items.sort(key=lambda t: t.get('priority') != URGENT)
    return columns


class DispatchBoard:
    """In-memory board state with optimistic moves."""

    def __init__(self, tickets: List[Dict], urgent_only: bool = False):
        self.urgent_only = urgent_only
        self._tickets = {t['id']: dict(t, ticket_status=display_status(t.get('ticket_status'))) for t in tickets}

    @property
    def columns(self) -> Dict[str, List[Dict]]:
        return group_tickets(list(self._tickets.values()), urgent_only=self.urgent_only)

    def counts(self) -> Dict[str, int]:
        return {status: len(items) for status, items in self.columns.items()}

    def get(self, ticket_id: str) -> Optional[Dict]:
        return self._tickets.get(ticket_id)

    def move(self, ticket_id: str, status: str, persist: Callable[[str, str], None],
             reopen: bool = False) -> bool:
        """
        Move a ticket to `status`, then persist.

        Returns:
            True if the status changed, False for a no-op

        Raises:
            KeyError: Ticket is not on the board
            InvalidTicketTransition: Move not allowed
            Exception: Whatever `persist` raised, after the move is rolled back
        """
        ticket = self._tickets[ticket_id]
        previous = ticket['ticket_status']
        if not check_transition(previous, status, reopen=reopen):
            return False

        ticket['ticket_status'] = status
        try:
            persist(ticket_id, status)
        except Exception:
            ticket['ticket_status'] = previous
            logger.warning(f"Rolled back ticket {ticket_id} to {previous} after failed update")
            raise
        return True

    def to_dict(self) -> Dict:
        return {
            'columns': self.columns,
            'counts': self.counts(),
            'urgent_only': self.urgent_only,
        }
