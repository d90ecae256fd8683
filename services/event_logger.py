"""
Event Logger Service - Audit trail of call and ticket activity.

Every ticket status change, email delivery attempt, and finished intake
is written to the event_log table so the dashboard can show a call's
history.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

EVENT_TYPES = {
    'CALL_STARTED': 'Call was answered',
    'INTAKE_COMPLETED': 'Intake conversation finished',
    'TICKET_CREATED': 'Ticket was created',
    'STATUS_CHANGED': 'Status was changed',
    'EMAIL_SENT': 'Ticket email was sent',
    'EMAIL_FAILED': 'Ticket email could not be delivered',
    'SETTINGS_UPDATED': 'Firm settings were updated',
    'WEBHOOKS_UPDATED': 'Telephony webhooks were updated',
    'VOICE_AGENT_SYNCED': 'Voice agent configuration was pushed',
}

ENTITY_TYPES = ['call', 'ticket', 'firm']


class EventLogger:
    """Service for logging firm events to the database."""

    def __init__(self, session, firm_id: str, actor_type: str = 'system', actor_id: str = None):
        """
        Args:
            session: SQLAlchemy database session
            firm_id: The firm the events belong to
            actor_type: Type of actor (user, system, agent)
            actor_id: ID of the actor (user ID if user, None if system)
        """
        self.session = session
        self.firm_id = firm_id
        self.actor_type = actor_type
        self.actor_id = actor_id

    def log(self, entity_type: str, entity_id: str, event_type: str,
            description: str = None, metadata: Dict = None) -> Optional[Dict]:
        """
        Log an event. Failures are logged and never abort the caller's
        transaction; the insert runs in a savepoint.

        Returns:
            The created event log entry as a dict, or None on failure
        """
        from database.models import EventLog

        try:
            with self.session.begin_nested():
                event = EventLog(
                    firm_id=self.firm_id,
                    timestamp=datetime.utcnow(),
                    actor_type=self.actor_type,
                    actor_id=self.actor_id,
                    entity_type=entity_type,
                    entity_id=entity_id,
                    event_type=event_type,
                    description=description or EVENT_TYPES.get(event_type, event_type),
                    extra_data=metadata or {},
                )
                self.session.add(event)

            logger.debug(f"Event logged: {event_type} on {entity_type}:{entity_id}")
            return event.to_dict()

        except SQLAlchemyError as e:
            logger.error(f"Failed to log event: {e}")
            return None

    def log_status_change(self, entity_type: str, entity_id: str,
                          old_status: str, new_status: str) -> Optional[Dict]:
        return self.log(
            entity_type=entity_type,
            entity_id=entity_id,
            event_type='STATUS_CHANGED',
            description=f"{entity_type.capitalize()} status changed from '{old_status}' to '{new_status}'",
            metadata={'old_status': old_status, 'new_status': new_status},
        )

    def log_email(self, call_id: str, ticket_number: str, recipients: List[str],
                  error: str = None) -> Optional[Dict]:
        """Record a ticket email delivery, successful or not."""
        metadata = {'ticket_number': ticket_number, 'recipients': recipients}
        if error:
            metadata['error'] = error
        return self.log(
            entity_type='call',
            entity_id=call_id,
            event_type='EMAIL_FAILED' if error else 'EMAIL_SENT',
            metadata=metadata,
        )

    def get_entity_history(self, entity_type: str, entity_id: str,
                           limit: int = 50) -> List[Dict]:
        """Get the event history for a specific entity, newest first."""
        from database.models import EventLog

        events = self.session.query(EventLog).filter(
            EventLog.firm_id == self.firm_id,
            EventLog.entity_type == entity_type,
            EventLog.entity_id == entity_id
        ).order_by(EventLog.timestamp.desc()).limit(limit).all()

        return [e.to_dict() for e in events]
