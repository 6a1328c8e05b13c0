# src/guestbot/schemas/__init__.py
"""
Pydantic schemas for API request/response models and stored records.

These schemas define the structure of API data for serialization and validation.
"""

from .calendar import CalendarEvent, CalendarSyncRequest, CalendarSyncResponse
from .guest import AskRequest, AskResponse, HistoryMessage, VerifyRequest, VerifyResponse
from .property import Booking, PropertyRecord

__all__ = [
    "AskRequest", "AskResponse", "HistoryMessage",
    "Booking", "PropertyRecord",
    "CalendarEvent", "CalendarSyncRequest", "CalendarSyncResponse",
    "VerifyRequest", "VerifyResponse",
]
