"""
Firm Repository - Database operations for firms (tenants) and their settings.
"""

import logging
from datetime import datetime
from typing import Dict, Optional

from sqlalchemy.orm import Session

from app.utils.helpers import normalize_phone_e164

logger = logging.getLogger(__name__)


class FirmRepository:
    """Repository for firm lookups and settings updates."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, firm_id: str):
        from database.models import Firm

        return self.session.query(Firm).filter(Firm.id == firm_id).first()

    def get_for_owner(self, owner_user_id: str):
        """The firm owned by an authenticated user, if any."""
        from database.models import Firm

        return self.session.query(Firm).filter(
            Firm.owner_user_id == owner_user_id
        ).order_by(Firm.created_at.asc()).first()

    def get_by_twilio_number(self, number: str):
        """Firm whose phone number was dialed. Matches on E.164."""
        from database.models import Firm

        if not number:
            return None
        e164 = normalize_phone_e164(number)
        return self.session.query(Firm).filter(
            Firm.twilio_number.in_({number, e164})
        ).first()

    def create(self, owner_user_id: str, firm_name: str, **fields):
        from database.models import Firm

        firm = Firm(owner_user_id=owner_user_id, firm_name=firm_name, **fields)
        self.session.add(firm)
        self.session.flush()
        logger.info(f"Created firm {firm.id} for owner {owner_user_id}")
        return firm

    def update_settings(self, firm, changes: Dict) -> Dict:
        """
        Apply already-validated settings changes.

        Returns:
            Mapping of field -> {'old': ..., 'new': ...} for fields that changed
        """
        diff = {}
        for field, value in changes.items():
            old = getattr(firm, field)
            if old != value:
                setattr(firm, field, value)
                diff[field] = {'old': old, 'new': value}

        if diff:
            firm.updated_at = datetime.utcnow()
            self.session.flush()
            logger.info(f"Updated settings for firm {firm.id}: {sorted(diff)}")
        return diff

    def recipients(self, firm) -> Optional[Dict]:
        """To/CC lists for ticket emails, or None when nobody is configured."""
        to = list(firm.notify_emails or [])
        if not to:
            return None
        cc = [email for email in (firm.cc_emails or []) if email not in to]
        return {'to': to, 'cc': cc}
