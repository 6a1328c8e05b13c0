"""Data access helpers for properties, bookings and synced calendars."""
from __future__ import annotations

from typing import Any

from guestbot.schemas.property import Booking, PropertyRecord
from guestbot.services.documents import DocumentStore

__all__ = ["PropertyRepository"]


def property_key(property_id: str) -> str:
    return f"property:{property_id}"


def bookings_key(property_id: str) -> str:
    return f"bookings:{property_id}"


def calendar_key(property_id: str) -> str:
    return f"calendar:{property_id}"


class PropertyRepository:
    """Thin wrapper around the document store for property entities."""

    def __init__(self, store: DocumentStore) -> None:
        """Initialize the repository with a document store."""
        self.store = store

    def get(self, property_id: str) -> PropertyRecord | None:
        """Return a property by identifier."""
        data = self.store.get_doc(property_key(property_id))
        if data is None:
            return None
        return PropertyRecord.model_validate({**data, "id": property_id})

    def save(self, record: PropertyRecord) -> None:
        """Persist ``record``, replacing any previous version."""
        self.store.set_doc(
            property_key(record.id),
            record.model_dump(mode="json", exclude={"id"}),
        )

    def list_bookings(self, property_id: str) -> list[Booking]:
        """Return every booking stored for a property."""
        data = self.store.get_doc(bookings_key(property_id))
        if not data:
            return []
        return [Booking.model_validate(item) for item in data.get("bookings", [])]

    def save_bookings(self, property_id: str, bookings: list[Booking]) -> None:
        """Replace the booking list of a property."""
        self.store.set_doc(
            bookings_key(property_id),
            {"bookings": [booking.model_dump(mode="json") for booking in bookings]},
        )

    def save_calendar(self, property_id: str, calendar: dict[str, Any]) -> None:
        """Persist the result of a calendar sync."""
        self.store.set_doc(calendar_key(property_id), calendar)

    def get_calendar(self, property_id: str) -> dict[str, Any] | None:
        """Return the last synced calendar for a property."""
        return self.store.get_doc(calendar_key(property_id))
