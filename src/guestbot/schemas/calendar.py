"""Calendar sync request and response schemas."""

from datetime import datetime

from pydantic import BaseModel, Field


class CalendarEvent(BaseModel):
    """One VEVENT from an owner's iCal feed."""

    uid: str | None = None
    summary: str | None = None
    start: datetime | None = None
    end: datetime | None = None


class CalendarSyncRequest(BaseModel):
    property_id: str = Field(..., min_length=1, max_length=128, alias="propertyId")
    ical_url: str | None = Field(
        None,
        max_length=2048,
        alias="icalUrl",
        description="Public iCal URL; defaults to the one saved on the property",
    )

    model_config = {"populate_by_name": True}


class CalendarSyncResponse(BaseModel):
    success: bool = True
    property_id: str = Field(..., alias="propertyId")
    event_count: int = Field(..., alias="eventCount")
    synced_at: datetime = Field(..., alias="syncedAt")

    model_config = {"populate_by_name": True}
