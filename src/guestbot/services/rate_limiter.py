"""Fixed-window rate limiting.

Two counter stores share one algorithm:

- ``VolatileCounterStore`` keeps counters in process memory. It is fast and
  never fails, but each instance counts independently, so it only sheds
  trivial load and must never be the sole guard for a security check.
- ``PersistentCounterStore`` keeps counters in the shared document store
  inside a transaction. It is authoritative across instances. On storage
  errors it follows its ``FailurePolicy``, which is ``OPEN`` by default:
  availability of the product outranks strict enforcement here.

The window is fixed, not sliding: a burst straddling a window boundary can
admit up to ``2 * max_requests``. That is the price of O(1) state per key.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Final, Protocol

from guestbot.core.clock import Clock, system_clock
from guestbot.core.errors import FailurePolicy, StoreError
from guestbot.services.documents import DocumentStore, Transaction
from guestbot.utils.hash import document_key

logger = logging.getLogger(__name__)

UNKNOWN_ENDPOINT_REMAINING: Final[int] = 999
FAIL_OPEN_REMAINING: Final[int] = 1


@dataclass(frozen=True)
class RateLimit:
    """Window length and request budget for one endpoint."""

    window_seconds: float
    max_requests: int


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int


@dataclass
class CounterRecord:
    """Event count inside the window that started at ``window_start``."""

    count: int
    window_start: float


RATE_LIMITS: Final[Mapping[str, RateLimit]] = {
    "askGuestBot": RateLimit(window_seconds=60, max_requests=20),
    "verifyGuest": RateLimit(window_seconds=60, max_requests=10),
    "syncIcal": RateLimit(window_seconds=60, max_requests=5),
    "submitFeedback": RateLimit(window_seconds=60, max_requests=20),
    "submitContact": RateLimit(window_seconds=60, max_requests=3),
}


def _advance(record: CounterRecord | None, limit: RateLimit, now: float) -> tuple[
    CounterRecord | None, RateLimitDecision
]:
    """Apply one event to ``record``.

    Returns the record to store (``None`` when nothing changes) and the
    decision for the caller.
    """
    if record is None or now - record.window_start > limit.window_seconds:
        fresh = CounterRecord(count=1, window_start=now)
        return fresh, RateLimitDecision(allowed=True, remaining=limit.max_requests - 1)

    if record.count >= limit.max_requests:
        return None, RateLimitDecision(allowed=False, remaining=0)

    updated = CounterRecord(count=record.count + 1, window_start=record.window_start)
    return updated, RateLimitDecision(
        allowed=True,
        remaining=limit.max_requests - updated.count,
    )


class CounterStore(Protocol):
    """Increment-with-window counter."""

    def hit(self, key: str, limit: RateLimit) -> RateLimitDecision: ...


class VolatileCounterStore:
    """Process-local counters; best effort, single instance."""

    def __init__(self, clock: Clock = system_clock) -> None:
        self._clock = clock
        self._records: dict[str, tuple[CounterRecord, float]] = {}

    def hit(self, key: str, limit: RateLimit) -> RateLimitDecision:
        now = self._clock()
        self._collect_garbage(now)
        entry = self._records.get(key)
        record, decision = _advance(entry[0] if entry else None, limit, now)
        if record is not None:
            self._records[key] = (record, limit.window_seconds)
        return decision

    def _collect_garbage(self, now: float) -> None:
        # Records idle for two full windows can no longer influence a decision.
        expired = [
            key
            for key, (record, window_seconds) in self._records.items()
            if now - record.window_start > 2 * window_seconds
        ]
        for key in expired:
            del self._records[key]

    def __len__(self) -> int:
        return len(self._records)


class PersistentCounterStore:
    """Counters kept in the shared document store, updated transactionally."""

    def __init__(
        self,
        store: DocumentStore,
        clock: Clock = system_clock,
        failure_policy: FailurePolicy = FailurePolicy.OPEN,
    ) -> None:
        self._store = store
        self._clock = clock
        self.failure_policy = failure_policy

    def hit(self, key: str, limit: RateLimit) -> RateLimitDecision:
        def _apply(tx: Transaction) -> RateLimitDecision:
            now = self._clock()
            data = tx.get(key)
            current = (
                CounterRecord(
                    count=int(data.get("count", 0)),
                    window_start=float(data.get("windowStart", 0.0)),
                )
                if data is not None
                else None
            )
            record, decision = _advance(current, limit, now)
            if record is not None:
                tx.set(
                    key,
                    {
                        "count": record.count,
                        "windowStart": record.window_start,
                        "type": "rate_limit",
                    },
                )
            return decision

        try:
            return self._store.run_transaction(_apply)
        except StoreError:
            logger.error("Persistent rate limit check failed for %s", key, exc_info=True)
            if self.failure_policy is FailurePolicy.OPEN:
                return RateLimitDecision(allowed=True, remaining=FAIL_OPEN_REMAINING)
            return RateLimitDecision(allowed=False, remaining=0)


class RateLimiter:
    """Per-endpoint fixed-window limiter over a counter store."""

    def __init__(
        self,
        store: CounterStore,
        limits: Mapping[str, RateLimit] = RATE_LIMITS,
        *,
        hash_identifiers: bool = False,
    ) -> None:
        self._store = store
        self._limits = dict(limits)
        self._hash_identifiers = hash_identifiers

    def allow(self, endpoint: str, identifier: str) -> RateLimitDecision:
        """Count one request for ``identifier`` and decide whether it may proceed."""
        limit = self._limits.get(endpoint)
        if limit is None:
            return RateLimitDecision(allowed=True, remaining=UNKNOWN_ENDPOINT_REMAINING)

        if self._hash_identifiers:
            key = document_key(f"ratelimit:{endpoint}", identifier)
        else:
            key = f"{endpoint}:{identifier}"
        decision = self._store.hit(key, limit)
        if not decision.allowed:
            logger.warning("Rate limit exceeded for endpoint %s", endpoint)
        return decision


class TieredRateLimiter:
    """Volatile tier first to shed load, persistent tier as the authority."""

    def __init__(self, fast: RateLimiter, authoritative: RateLimiter) -> None:
        self._fast = fast
        self._authoritative = authoritative

    def allow(self, endpoint: str, identifier: str) -> RateLimitDecision:
        first = self._fast.allow(endpoint, identifier)
        if not first.allowed:
            return first
        second = self._authoritative.allow(endpoint, identifier)
        return RateLimitDecision(
            allowed=second.allowed,
            remaining=min(first.remaining, second.remaining),
        )


def build_rate_limiter(store: DocumentStore, clock: Clock = system_clock) -> TieredRateLimiter:
    """Return the dual-tier limiter used by the request handlers."""
    return TieredRateLimiter(
        fast=RateLimiter(VolatileCounterStore(clock)),
        authoritative=RateLimiter(
            PersistentCounterStore(store, clock),
            hash_identifiers=True,
        ),
    )
