"""
Call Repository - Database operations for calls and the tickets derived from them.
"""

import logging
from datetime import datetime, time
from typing import Dict, List, Optional, Tuple

from dateutil import parser as date_parser
from sqlalchemy.orm import Session

from services.ticket_rules import (
    READY,
    TicketNotFound,
    URGENT_CATEGORIES,
    check_transition,
    classify_priority,
    display_status,
)

logger = logging.getLogger(__name__)


def parse_date_range(start: Optional[str], end: Optional[str]) -> Tuple[Optional[datetime], Optional[datetime]]:
    """
    Parse optional start/end query values. A date-only end covers the whole day.

    Raises:
        ValueError: If either value cannot be parsed
    """
    start_dt = date_parser.parse(start) if start else None
    end_dt = None
    if end:
        end_dt = date_parser.parse(end)
        if len(end.strip()) <= 10:
            end_dt = datetime.combine(end_dt.date(), time.max)
    if start_dt and end_dt and start_dt > end_dt:
        raise ValueError("start must be before end")
    return start_dt, end_dt


class CallRepository:
    """Repository for call and ticket database operations, scoped to one firm."""

    def __init__(self, session: Session, firm_id: str):
        self.session = session
        self.firm_id = firm_id

    def _query(self):
        from database.models import Call

        return self.session.query(Call).filter(Call.firm_id == self.firm_id)

    def _in_range(self, query, start=None, end=None):
        from database.models import Call

        if start:
            query = query.filter(Call.started_at >= start)
        if end:
            query = query.filter(Call.started_at <= end)
        return query

    # ------------------------------------------------------------------
    # Calls
    # ------------------------------------------------------------------

    def create_call(self, from_number: str = None, external_call_id: str = None):
        from database.models import Call

        call = Call(
            firm_id=self.firm_id,
            from_number=from_number,
            external_call_id=external_call_id,
            started_at=datetime.utcnow(),
            intake_state='START',
            intake_json={},
            agent_turns=0,
            reask_count=0,
            status='in_progress',
        )
        self.session.add(call)
        self.session.flush()
        logger.info(f"Started call {call.id} for firm {self.firm_id}")
        return call

    def get_call(self, call_id: str):
        from database.models import Call

        return self._query().filter(Call.id == call_id).first()

    def get_by_external_id(self, external_call_id: str):
        from database.models import Call

        return self._query().filter(Call.external_call_id == external_call_id).first()

    def list_calls(self, start=None, end=None, limit: int = 50, offset: int = 0) -> List[Dict]:
        """List calls, newest first."""
        from database.models import Call

        query = self._in_range(self._query(), start, end)
        calls = query.order_by(Call.started_at.desc()).offset(offset).limit(limit).all()
        return [call.to_dict() for call in calls]

    # ------------------------------------------------------------------
    # Tickets
    # ------------------------------------------------------------------

    def list_tickets(self, start=None, end=None) -> List[Dict]:
        """Calls that became tickets, with their board status normalized."""
        from database.models import Call

        query = self._in_range(self._query().filter(Call.ticket_status.isnot(None)), start, end)
        tickets = []
        for call in query.order_by(Call.started_at.desc()).all():
            ticket = call.to_dict()
            ticket['ticket_status'] = display_status(call.ticket_status)
            tickets.append(ticket)
        return tickets

    def open_ticket(self, call, ticket_number: str):
        """Mark a processed call as a READY ticket. Existing tickets keep their status."""
        call.priority = classify_priority(call.intake_json or {})
        if not call.ticket_status:
            call.ticket_status = READY
            call.ticket_number = ticket_number
        call.updated_at = datetime.utcnow()
        self.session.flush()
        return call

    def update_ticket_status(self, call_id: str, status: str, reopen: bool = False) -> Tuple[Dict, Optional[str]]:
        """
        Move a ticket to a new board status.

        Returns:
            (ticket dict, previous status) where previous status is None
            when the ticket was already in `status`

        Raises:
            TicketNotFound: No ticket with this id for the firm
            InvalidTicketTransition: Unknown status or backward move without reopen
        """
        call = self.get_call(call_id)
        if not call or not call.ticket_status:
            raise TicketNotFound(f"Ticket {call_id} not found")

        previous = display_status(call.ticket_status)
        if not check_transition(previous, status, reopen=reopen):
            return call.to_dict(), None

        call.ticket_status = status
        call.updated_at = datetime.utcnow()
        self.session.flush()
        logger.info(f"Ticket {call_id} moved {previous} -> {status}")
        return call.to_dict(), previous

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def dashboard_stats(self, start=None, end=None) -> Dict:
        """
        Counts for the dashboard header.

        leads: calls where a caller name was captured
        urgent_calls: urgency ASAP, or a no heat / no cool issue
        """
        calls = self._in_range(self._query(), start, end).all()

        leads = urgent = emailed = 0
        by_ticket_status = {status: 0 for status in ('READY', 'DISPATCHED', 'COMPLETED')}
        for call in calls:
            intake = call.intake_json or {}
            name = intake.get('callerName') or intake.get('full_name')
            if name and name != 'unknown':
                leads += 1
            if (intake.get('urgency') or call.urgency) == 'ASAP' or intake.get('issueCategory') in URGENT_CATEGORIES:
                urgent += 1
            if call.status == 'emailed':
                emailed += 1
            if call.ticket_status:
                by_ticket_status[display_status(call.ticket_status)] += 1

        return {
            'total_calls': len(calls),
            'leads': leads,
            'urgent_calls': urgent,
            'emailed_calls': emailed,
            'tickets': by_ticket_status,
        }
