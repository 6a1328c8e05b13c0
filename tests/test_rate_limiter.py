# tests/test_rate_limiter.py
"""Tests for the fixed-window rate limiter and its counter stores."""

from __future__ import annotations

import pytest

from guestbot.core.errors import FailurePolicy
from guestbot.services.rate_limiter import (
    RATE_LIMITS,
    UNKNOWN_ENDPOINT_REMAINING,
    PersistentCounterStore,
    RateLimit,
    RateLimiter,
    TieredRateLimiter,
    VolatileCounterStore,
    build_rate_limiter,
)

ASK = "askGuestBot"


@pytest.fixture(params=["volatile", "persistent"])
def limiter(request, clock, store) -> RateLimiter:
    """Both tiers must behave identically."""
    if request.param == "volatile":
        return RateLimiter(VolatileCounterStore(clock))
    return RateLimiter(PersistentCounterStore(store, clock), hash_identifiers=True)


class TestFixedWindow:
    def test_first_twenty_allowed_with_decreasing_remaining(self, limiter) -> None:
        remaining = [limiter.allow(ASK, "1.2.3.4").remaining for _ in range(20)]
        assert remaining == list(range(19, -1, -1))

    def test_twenty_first_denied(self, limiter) -> None:
        for _ in range(20):
            assert limiter.allow(ASK, "1.2.3.4").allowed
        decision = limiter.allow(ASK, "1.2.3.4")
        assert decision.allowed is False
        assert decision.remaining == 0

    def test_other_identifier_unaffected(self, limiter) -> None:
        for _ in range(21):
            limiter.allow(ASK, "1.2.3.4")
        decision = limiter.allow(ASK, "5.6.7.8")
        assert decision.allowed is True
        assert decision.remaining == 19

    def test_endpoints_count_independently(self, limiter) -> None:
        for _ in range(3):
            limiter.allow("submitContact", "1.2.3.4")
        assert limiter.allow("submitContact", "1.2.3.4").allowed is False
        assert limiter.allow(ASK, "1.2.3.4").allowed is True

    def test_window_resets_after_expiry(self, limiter, clock) -> None:
        for _ in range(21):
            limiter.allow(ASK, "1.2.3.4")
        clock.advance(60.001)
        decision = limiter.allow(ASK, "1.2.3.4")
        assert decision.allowed is True
        assert decision.remaining == 19

    def test_window_boundary_is_inclusive(self, limiter, clock) -> None:
        for _ in range(20):
            limiter.allow(ASK, "1.2.3.4")
        clock.advance(60)
        assert limiter.allow(ASK, "1.2.3.4").allowed is False

    def test_unknown_endpoint_fails_open(self, limiter) -> None:
        decision = limiter.allow("noSuchEndpoint", "1.2.3.4")
        assert decision.allowed is True
        assert decision.remaining == UNKNOWN_ENDPOINT_REMAINING


def test_endpoint_table() -> None:
    assert RATE_LIMITS[ASK] == RateLimit(window_seconds=60, max_requests=20)
    assert RATE_LIMITS["verifyGuest"].max_requests == 10
    assert RATE_LIMITS["syncIcal"].max_requests == 5
    assert RATE_LIMITS["submitContact"].max_requests == 3


class TestVolatileStore:
    def test_idle_records_are_collected(self, clock) -> None:
        counters = VolatileCounterStore(clock)
        limit = RateLimit(window_seconds=60, max_requests=5)
        counters.hit("a", limit)
        counters.hit("b", limit)
        assert len(counters) == 2

        clock.advance(121)
        counters.hit("c", limit)
        assert len(counters) == 1

    def test_records_inside_two_windows_survive(self, clock) -> None:
        counters = VolatileCounterStore(clock)
        limit = RateLimit(window_seconds=60, max_requests=5)
        counters.hit("a", limit)
        clock.advance(119)
        counters.hit("b", limit)
        assert len(counters) == 2


class TestPersistentStore:
    def test_document_shape(self, clock, store) -> None:
        limiter = RateLimiter(PersistentCounterStore(store, clock))
        limiter.allow(ASK, "1.2.3.4")
        limiter.allow(ASK, "1.2.3.4")
        assert store.get_doc(f"{ASK}:1.2.3.4") == {
            "count": 2,
            "windowStart": clock(),
            "type": "rate_limit",
        }

    def test_hashed_keys_do_not_contain_identifier(self, clock, store) -> None:
        limiter = RateLimiter(PersistentCounterStore(store, clock), hash_identifiers=True)
        limiter.allow(ASK, "203.0.113.9")
        keys = store.keys()
        assert len(keys) == 1
        assert keys[0].startswith(f"ratelimit:{ASK}:")
        assert "203.0.113.9" not in keys[0]

    def test_denied_request_does_not_write(self, clock, store, mocker) -> None:
        limit = RateLimit(window_seconds=60, max_requests=1)
        counters = PersistentCounterStore(store, clock)
        counters.hit("k", limit)
        spy = mocker.spy(store, "run_transaction")
        before = store.get_doc("k")
        assert counters.hit("k", limit).allowed is False
        assert spy.call_count == 1
        assert store.get_doc("k") == before

    def test_store_error_fails_open_by_default(self, clock, failing_store) -> None:
        limiter = RateLimiter(PersistentCounterStore(failing_store, clock))
        decision = limiter.allow(ASK, "1.2.3.4")
        assert decision.allowed is True
        assert failing_store.calls == 1

    def test_store_error_fails_closed_when_configured(self, clock, failing_store) -> None:
        counters = PersistentCounterStore(failing_store, clock, failure_policy=FailurePolicy.CLOSED)
        decision = RateLimiter(counters).allow(ASK, "1.2.3.4")
        assert decision.allowed is False
        assert decision.remaining == 0


class TestTieredLimiter:
    def test_remaining_is_lower_of_both_tiers(self, clock, store) -> None:
        fast = RateLimiter(VolatileCounterStore(clock))
        slow = RateLimiter(PersistentCounterStore(store, clock))
        # The persistent tier already saw traffic from another instance.
        for _ in range(5):
            slow.allow(ASK, "1.2.3.4")
        decision = TieredRateLimiter(fast, slow).allow(ASK, "1.2.3.4")
        assert decision.allowed is True
        assert decision.remaining == 14

    def test_persistent_tier_is_authoritative(self, clock, store) -> None:
        slow = RateLimiter(PersistentCounterStore(store, clock))
        for _ in range(20):
            slow.allow(ASK, "1.2.3.4")
        tiered = TieredRateLimiter(RateLimiter(VolatileCounterStore(clock)), slow)
        assert tiered.allow(ASK, "1.2.3.4").allowed is False

    def test_fast_tier_denial_skips_store(self, clock, store, mocker) -> None:
        tiered = build_rate_limiter(store, clock)
        for _ in range(20):
            tiered.allow(ASK, "1.2.3.4")
        spy = mocker.spy(store, "run_transaction")
        assert tiered.allow(ASK, "1.2.3.4").allowed is False
        spy.assert_not_called()

    def test_degrades_to_volatile_tier_when_store_down(self, clock, failing_store) -> None:
        tiered = build_rate_limiter(failing_store, clock)
        results = [tiered.allow(ASK, "1.2.3.4").allowed for _ in range(21)]
        assert results == [True] * 20 + [False]
