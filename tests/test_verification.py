# tests/test_verification.py
"""Tests for guest verification against bookings."""

from __future__ import annotations

import pytest

from guestbot.core.errors import RateLimited
from guestbot.core.tokens import decode_token
from guestbot.services.brute_force import GENERIC_NOT_FOUND_MESSAGE, BruteForceGuard
from guestbot.services.rate_limiter import build_rate_limiter
from guestbot.services.verification import NOT_VERIFIED, GuestVerificationService

PROPERTY_ID = "beach-house"
GUEST_DIGITS = "4567"


@pytest.fixture()
def service(store, clock, repository) -> GuestVerificationService:
    return GuestVerificationService(
        build_rate_limiter(store, clock),
        BruteForceGuard(store, clock),
        repository,
        clock,
    )


class TestVerify:
    def test_active_booking_verified(self, service) -> None:
        result = service.verify(PROPERTY_ID, GUEST_DIGITS, "1.2.3.4")
        assert result.verified is True
        assert result.guest_name == "Dana"
        assert result.property_name == "Beach House"

        claims = decode_token(result.session_token, "guest")
        assert claims["pid"] == PROPERTY_ID
        assert claims["sub"] == f"guest:{PROPERTY_ID}"

    def test_wrong_digits(self, service) -> None:
        result = service.verify(PROPERTY_ID, "0000", "1.2.3.4")
        assert result == NOT_VERIFIED
        assert result.message == GENERIC_NOT_FOUND_MESSAGE
        assert result.session_token is None

    def test_past_booking_not_verified(self, service) -> None:
        assert service.verify(PROPERTY_ID, "9999", "1.2.3.4") == NOT_VERIFIED

    def test_unknown_property_not_verified(self, service) -> None:
        assert service.verify("nowhere", GUEST_DIGITS, "1.2.3.4") == NOT_VERIFIED


class TestLockouts:
    def test_caller_lockout_looks_like_a_miss(self, service) -> None:
        misses = [service.verify(PROPERTY_ID, "0000", "1.2.3.4") for _ in range(5)]
        locked = service.verify(PROPERTY_ID, GUEST_DIGITS, "1.2.3.4")
        assert locked == misses[0] == NOT_VERIFIED

    def test_caller_lockout_spares_other_callers(self, service) -> None:
        for _ in range(5):
            service.verify(PROPERTY_ID, "0000", "1.2.3.4")
        assert service.verify(PROPERTY_ID, GUEST_DIGITS, "5.6.7.8").verified is True

    def test_property_lockout_looks_like_a_miss(self, service) -> None:
        for i in range(20):
            service.verify(PROPERTY_ID, "0000", f"10.0.{i}.1")
        locked = service.verify(PROPERTY_ID, GUEST_DIGITS, "198.51.100.7")
        assert locked == NOT_VERIFIED

    def test_lockout_expires(self, service, clock) -> None:
        for _ in range(5):
            service.verify(PROPERTY_ID, "0000", "1.2.3.4")
        clock.advance(30 * 60)
        assert service.verify(PROPERTY_ID, GUEST_DIGITS, "1.2.3.4").verified is True

    def test_locked_attempts_are_not_recorded_as_failures(self, service, store, mocker) -> None:
        for _ in range(5):
            service.verify(PROPERTY_ID, "0000", "1.2.3.4")
        spy = mocker.spy(BruteForceGuard, "record_failure")
        service.verify(PROPERTY_ID, "0000", "1.2.3.4")
        spy.assert_not_called()


def test_rate_limit_applies_before_lockout(service) -> None:
    for _ in range(10):
        service.verify(PROPERTY_ID, "0000", "1.2.3.4")
    with pytest.raises(RateLimited):
        service.verify(PROPERTY_ID, GUEST_DIGITS, "1.2.3.4")
