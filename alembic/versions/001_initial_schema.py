"""Initial database schema

Revision ID: 001
Revises: 
Create Date: 2026-10-19

Creates the firms, calls and event_log tables.
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Firms (tenants)
    op.create_table('firms',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('owner_user_id', sa.String(64), nullable=False),
        sa.Column('firm_name', sa.String(255), nullable=False),
        sa.Column('notify_emails', postgresql.JSONB, default=[]),
        sa.Column('cc_emails', postgresql.JSONB, default=[]),
        sa.Column('timezone', sa.String(64), default='America/New_York'),
        sa.Column('business_hours_open', sa.String(5), default='09:00'),
        sa.Column('business_hours_close', sa.String(5), default='17:00'),
        sa.Column('agent_name', sa.String(100)),
        sa.Column('ai_greeting_custom', sa.Text()),
        sa.Column('ai_knowledge_base', sa.Text()),
        sa.Column('default_next_available', sa.String(255)),
        sa.Column('service_fee_enabled', sa.Boolean(), default=False),
        sa.Column('service_call_fee', sa.Float()),
        sa.Column('send_incomplete_tickets', sa.Boolean(), default=False),
        sa.Column('twilio_number', sa.String(32)),
        sa.Column('vapi_assistant_id', sa.String(64)),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now()),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_firms_owner', 'firms', ['owner_user_id'])
    op.create_index('ix_firms_twilio_number', 'firms', ['twilio_number'])

    # Calls and the tickets derived from them
    op.create_table('calls',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('firm_id', sa.String(36), nullable=False),
        sa.Column('external_call_id', sa.String(100)),
        sa.Column('from_number', sa.String(32)),
        sa.Column('started_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('ended_at', sa.DateTime()),
        sa.Column('transcript_text', sa.Text()),
        sa.Column('recording_url', sa.Text()),
        sa.Column('intake_state', sa.String(32), default='START'),
        sa.Column('intake_json', postgresql.JSONB, default={}),
        sa.Column('agent_turns', sa.Integer(), default=0),
        sa.Column('reask_count', sa.Integer(), default=0),
        sa.Column('summary_json', postgresql.JSONB),
        sa.Column('urgency', sa.String(32)),
        sa.Column('priority', sa.String(16), default='NORMAL'),
        sa.Column('status', sa.String(32), default='in_progress'),
        sa.Column('ticket_status', sa.String(16)),
        sa.Column('ticket_number', sa.String(32)),
        sa.Column('email_id', sa.String(255)),
        sa.Column('email_error', sa.Text()),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now()),
        sa.ForeignKeyConstraint(['firm_id'], ['firms.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_calls_firm', 'calls', ['firm_id'])
    op.create_index('ix_calls_started_at', 'calls', ['started_at'])
    op.create_index('ix_calls_ticket_status', 'calls', ['ticket_status'])
    op.create_index('ix_calls_external_id', 'calls', ['external_call_id'])

    # Audit trail
    op.create_table('event_log',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('firm_id', sa.String(36)),
        sa.Column('timestamp', sa.DateTime(), nullable=False, default=sa.func.now()),
        sa.Column('actor_type', sa.String(50)),
        sa.Column('actor_id', sa.String(64)),
        sa.Column('entity_type', sa.String(50), nullable=False),
        sa.Column('entity_id', sa.String(36), nullable=False),
        sa.Column('event_type', sa.String(100), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('extra_data', postgresql.JSONB, default={}),
        sa.ForeignKeyConstraint(['firm_id'], ['firms.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_event_log_firm', 'event_log', ['firm_id'])
    op.create_index('ix_event_log_entity', 'event_log', ['entity_type', 'entity_id'])
    op.create_index('ix_event_log_timestamp', 'event_log', ['timestamp'])


def downgrade() -> None:
    op.drop_table('event_log')
    op.drop_table('calls')
    op.drop_table('firms')
