"""
SQLAlchemy models for AirDesk.
Firms are the tenants; every call and event row belongs to one firm.
"""

import uuid
from datetime import datetime
from sqlalchemy import (
    Column, String, Text, Integer, Float, Boolean, DateTime,
    ForeignKey, JSON, Index
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from database.connection import Base

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), 'postgresql')


def generate_uuid():
    """Generate a new UUID."""
    return str(uuid.uuid4())


# =============================================================================
# FIRMS (tenants)
# =============================================================================

class Firm(Base):
    """An HVAC business using AirDesk. Owned by one authenticated user."""
    __tablename__ = 'firms'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    owner_user_id = Column(String(64), nullable=False)
    firm_name = Column(String(255), nullable=False)
    notify_emails = Column(JSONType, default=list)
    cc_emails = Column(JSONType, default=list)
    timezone = Column(String(64), default='America/New_York')
    business_hours_open = Column(String(5), default='09:00')
    business_hours_close = Column(String(5), default='17:00')

    # AI receptionist
    agent_name = Column(String(100))
    ai_greeting_custom = Column(Text)
    ai_knowledge_base = Column(Text)
    default_next_available = Column(String(255))
    service_fee_enabled = Column(Boolean, default=False)
    service_call_fee = Column(Float)
    send_incomplete_tickets = Column(Boolean, default=False)

    # Telephony
    twilio_number = Column(String(32))
    vapi_assistant_id = Column(String(64))

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    calls = relationship("Call", back_populates="firm")

    __table_args__ = (
        Index('ix_firms_owner', 'owner_user_id'),
        Index('ix_firms_twilio_number', 'twilio_number'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'owner_user_id': self.owner_user_id,
            'firm_name': self.firm_name,
            'notify_emails': self.notify_emails or [],
            'cc_emails': self.cc_emails or [],
            'timezone': self.timezone,
            'business_hours_open': self.business_hours_open,
            'business_hours_close': self.business_hours_close,
            'agent_name': self.agent_name,
            'ai_greeting_custom': self.ai_greeting_custom,
            'ai_knowledge_base': self.ai_knowledge_base,
            'default_next_available': self.default_next_available,
            'service_fee_enabled': bool(self.service_fee_enabled),
            'service_call_fee': self.service_call_fee,
            'send_incomplete_tickets': bool(self.send_incomplete_tickets),
            'twilio_number': self.twilio_number,
            'vapi_assistant_id': self.vapi_assistant_id,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None
        }


# =============================================================================
# CALLS & TICKETS
# =============================================================================

class Call(Base):
    """
    One inbound phone call. Carries the live intake state while the call is
    in progress and the dispatch ticket once it has been processed.
    """
    __tablename__ = 'calls'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    firm_id = Column(String(36), ForeignKey('firms.id'), nullable=False)
    external_call_id = Column(String(100))  # voice platform / Twilio call id
    from_number = Column(String(32))
    started_at = Column(DateTime, default=datetime.utcnow)
    ended_at = Column(DateTime)
    transcript_text = Column(Text)
    recording_url = Column(Text)

    # Live intake conversation
    intake_state = Column(String(32), default='START')
    intake_json = Column(JSONType, default=dict)
    agent_turns = Column(Integer, default=0)
    reask_count = Column(Integer, default=0)

    # Processed result
    summary_json = Column(JSONType)
    urgency = Column(String(32))
    priority = Column(String(16), default='NORMAL')  # URGENT, NORMAL
    status = Column(String(32), default='in_progress')  # in_progress, processed, emailed, email_failed
    ticket_status = Column(String(16))  # READY, DISPATCHED, COMPLETED
    ticket_number = Column(String(32))
    email_id = Column(String(255))
    email_error = Column(Text)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    firm = relationship("Firm", back_populates="calls")

    __table_args__ = (
        Index('ix_calls_firm', 'firm_id'),
        Index('ix_calls_started_at', 'started_at'),
        Index('ix_calls_ticket_status', 'ticket_status'),
        Index('ix_calls_external_id', 'external_call_id'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'firm_id': self.firm_id,
            'external_call_id': self.external_call_id,
            'from_number': self.from_number,
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'ended_at': self.ended_at.isoformat() if self.ended_at else None,
            'transcript_text': self.transcript_text,
            'recording_url': self.recording_url,
            'intake_state': self.intake_state,
            'intake': self.intake_json or {},
            'summary': self.summary_json,
            'urgency': self.urgency,
            'priority': self.priority,
            'status': self.status,
            'ticket_status': self.ticket_status,
            'ticket_number': self.ticket_number,
            'email_id': self.email_id,
            'email_error': self.email_error,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None
        }


# =============================================================================
# EVENT LOG
# =============================================================================

class EventLog(Base):
    """
    Audit trail of call and ticket activity.
    """
    __tablename__ = 'event_log'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    firm_id = Column(String(36), ForeignKey('firms.id'))
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False)
    actor_type = Column(String(50))  # user, system, agent
    actor_id = Column(String(64))
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(String(36), nullable=False)
    event_type = Column(String(100), nullable=False)
    description = Column(Text)
    extra_data = Column(JSONType, default=dict)

    __table_args__ = (
        Index('ix_event_log_firm', 'firm_id'),
        Index('ix_event_log_entity', 'entity_type', 'entity_id'),
        Index('ix_event_log_timestamp', 'timestamp'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'firm_id': self.firm_id,
            'timestamp': self.timestamp.isoformat() if self.timestamp else None,
            'actor_type': self.actor_type,
            'actor_id': self.actor_id,
            'entity_type': self.entity_type,
            'entity_id': self.entity_id,
            'event_type': self.event_type,
            'description': self.description,
            'metadata': self.extra_data or {}
        }
