"""Owner calendar sync endpoint."""

from __future__ import annotations

from fastapi import APIRouter

from guestbot.api.v1.dependencies import CalendarServiceDep, OwnerIdDep
from guestbot.schemas.calendar import CalendarSyncRequest, CalendarSyncResponse

router = APIRouter(prefix="/calendar", tags=["calendar"])


@router.post("/sync", response_model=CalendarSyncResponse, response_model_by_alias=True)
async def sync_calendar(
    payload: CalendarSyncRequest,
    owner_id: OwnerIdDep,
    service: CalendarServiceDep,
) -> CalendarSyncResponse:
    """Download the property's iCal feed through the SSRF-safe fetcher."""
    # Sync budget is per owner account, not per address.
    result = await service.sync(payload.property_id, owner_id, payload.ical_url, owner_id)
    return CalendarSyncResponse(
        property_id=result.property_id,
        event_count=result.event_count,
        synced_at=result.synced_at,
    )
