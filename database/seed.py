"""
Database seeding for AirDesk local development.
Creates a demo firm if the database is empty.
"""

import logging
from database.connection import get_db_session, init_db
from database.models import Firm

logger = logging.getLogger(__name__)

DEMO_OWNER_USER_ID = "demo-owner"
DEMO_FIRM_NAME = "ABC HVAC"
DEMO_NOTIFY_EMAIL = "dispatch@abc-hvac.example"


def seed_demo_firm(session, owner_user_id=DEMO_OWNER_USER_ID):
    """Create the demo firm if the owner has none."""
    firm = session.query(Firm).filter_by(owner_user_id=owner_user_id).first()
    if firm:
        logger.info(f"Firm already exists: {firm.firm_name}")
        return firm

    firm = Firm(
        owner_user_id=owner_user_id,
        firm_name=DEMO_FIRM_NAME,
        notify_emails=[DEMO_NOTIFY_EMAIL],
        cc_emails=[],
        timezone='America/Chicago',
        agent_name='Jessica',
        default_next_available='Tomorrow morning at 8:00 a.m.',
        service_fee_enabled=True,
        service_call_fee=99,
        twilio_number='+15550001111',
    )
    session.add(firm)
    session.flush()
    logger.info(f"Created demo firm: {firm.firm_name}")
    return firm


def seed_database():
    """
    Create tables and seed the demo firm.
    Call this for a fresh development database.
    """
    try:
        init_db()
        with get_db_session() as session:
            seed_demo_firm(session)
        logger.info("Database seeding completed successfully")
        return True
    except Exception as e:
        logger.error(f"Database seeding failed: {e}")
        raise


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    seed_database()
