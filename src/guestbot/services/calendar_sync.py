"""Owner calendar sync: fetch an iCal feed and persist its events.

The feed URL is owner-supplied, so the download goes through
``SafeFetcher`` and nothing else.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from guestbot.core.clock import Clock, system_clock, to_datetime
from guestbot.core.errors import (
    AccessDenied,
    InvalidInput,
    RateLimited,
    ResourceNotFound,
    UpstreamError,
)
from guestbot.repositories.property_repo import PropertyRepository
from guestbot.services.rate_limiter import TieredRateLimiter
from guestbot.services.safe_fetch import SafeFetcher
from guestbot.utils.ical import parse_events

logger = logging.getLogger(__name__)

SYNC_ENDPOINT = "syncIcal"
CALENDAR_HEADERS = {"Accept": "text/calendar, text/plain;q=0.9", "User-Agent": "GuestBot-Sync/1.0"}


@dataclass(frozen=True)
class SyncResult:
    property_id: str
    event_count: int
    synced_at: datetime


class CalendarSyncService:
    """Downloads and stores one property's booking calendar."""

    def __init__(
        self,
        limiter: TieredRateLimiter,
        properties: PropertyRepository,
        fetcher: SafeFetcher,
        clock: Clock = system_clock,
    ) -> None:
        self._limiter = limiter
        self._properties = properties
        self._fetcher = fetcher
        self._clock = clock

    async def sync(
        self,
        property_id: str,
        owner_id: str,
        url: str | None,
        identifier: str,
    ) -> SyncResult:
        """Fetch and persist the calendar for ``property_id``.

        Raises:
            ResourceNotFound: no such property.
            AccessDenied: ``owner_id`` does not own the property.
            RateLimited: the owner exceeded the sync budget.
            InvalidInput: no URL supplied and none saved on the property.
            SecurityBlocked: the URL or a redirect target is not public,
                or the download exceeded its time or size budget.
            UpstreamError: the feed server failed or answered non-2xx.
        """
        record = self._properties.get(property_id)
        if record is None:
            raise ResourceNotFound(f"property {property_id}")
        if record.owner_id != owner_id:
            logger.warning("Calendar sync denied: caller does not own property %s", property_id)
            raise AccessDenied(f"property {property_id}")

        if not self._limiter.allow(SYNC_ENDPOINT, identifier).allowed:
            raise RateLimited(SYNC_ENDPOINT)

        target = url or record.ical_url
        if not target:
            raise InvalidInput("no calendar url")

        result = await self._fetcher.fetch(target, headers=CALENDAR_HEADERS)
        if not 200 <= result.status_code < 300:
            raise UpstreamError(f"calendar server answered {result.status_code}")

        events = parse_events(result.text)
        synced_at = to_datetime(self._clock())
        self._properties.save_calendar(
            property_id,
            {
                "events": [event.model_dump(mode="json") for event in events],
                "lastSynced": synced_at.isoformat(),
                "eventCount": len(events),
            },
        )
        if target != record.ical_url:
            # Remember a URL only once it has been fetched successfully.
            self._properties.save(record.model_copy(update={"ical_url": target}))
        logger.info(
            "Synced %d calendar events for property %s after %d redirect(s)",
            len(events),
            property_id,
            result.redirects,
        )
        return SyncResult(property_id=property_id, event_count=len(events), synced_at=synced_at)
