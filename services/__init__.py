"""
Services package for AirDesk.
Contains the intake conversation, ticket pipeline, integrations and
repository classes for database access.
"""

from services.call_repository import CallRepository
from services.event_logger import EventLogger
from services.firm_repository import FirmRepository

__all__ = [
    'CallRepository',
    'EventLogger',
    'FirmRepository',
]
