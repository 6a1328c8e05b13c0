"""Guest verification against a property's bookings.

A guest proves they are staying at a property by the last four digits of
the phone number on an active booking. Four digits are trivially
enumerable, so every miss is counted by the brute-force guard, and a miss,
a caller lockout and a property lockout all produce the same response.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from guestbot.core.clock import Clock, system_clock, to_datetime
from guestbot.core.errors import RateLimited
from guestbot.core.tokens import create_token
from guestbot.repositories.property_repo import PropertyRepository
from guestbot.schemas.property import Booking
from guestbot.services.brute_force import GENERIC_NOT_FOUND_MESSAGE, BruteForceGuard
from guestbot.services.rate_limiter import TieredRateLimiter

logger = logging.getLogger(__name__)

VERIFY_ENDPOINT = "verifyGuest"


@dataclass(frozen=True)
class VerificationResult:
    verified: bool
    message: str | None = None
    guest_name: str | None = None
    property_name: str | None = None
    session_token: str | None = None


NOT_VERIFIED = VerificationResult(verified=False, message=GENERIC_NOT_FOUND_MESSAGE)


class GuestVerificationService:
    """Matches a guest to an active booking and issues a session token."""

    def __init__(
        self,
        limiter: TieredRateLimiter,
        guard: BruteForceGuard,
        properties: PropertyRepository,
        clock: Clock = system_clock,
    ) -> None:
        self._limiter = limiter
        self._guard = guard
        self._properties = properties
        self._clock = clock

    def verify(self, property_id: str, phone_last_four: str, caller_id: str) -> VerificationResult:
        """Verify a guest; raises ``RateLimited`` when over the endpoint budget."""
        if not self._limiter.allow(VERIFY_ENDPOINT, caller_id).allowed:
            raise RateLimited(VERIFY_ENDPOINT)

        if self._guard.is_locked(caller_id, property_id):
            # Deliberately indistinguishable from a plain miss.
            return NOT_VERIFIED

        booking = self._find_active_booking(property_id, phone_last_four)
        if booking is None:
            self._guard.record_failure(caller_id, property_id)
            return NOT_VERIFIED

        record = self._properties.get(property_id)
        token = create_token(
            f"guest:{property_id}",
            "guest",
            extra_claims={"pid": property_id},
        )
        logger.info("Guest verified for property %s", property_id)
        return VerificationResult(
            verified=True,
            guest_name=booking.guest_name,
            property_name=record.name if record is not None else None,
            session_token=token,
        )

    def _find_active_booking(self, property_id: str, phone_last_four: str) -> Booking | None:
        now = to_datetime(self._clock())
        for booking in self._properties.list_bookings(property_id):
            if booking.matches_phone(phone_last_four) and booking.is_active(now):
                return booking
        return None
