"""Clock helpers shared by window and lockout math."""

from __future__ import annotations

import time
from collections.abc import Callable
from datetime import UTC, datetime

# Every stateful component takes one of these; returns epoch seconds.
Clock = Callable[[], float]

system_clock: Clock = time.time


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


def to_datetime(epoch_seconds: float) -> datetime:
    """Convert epoch seconds into a timezone-aware UTC datetime."""
    return datetime.fromtimestamp(epoch_seconds, UTC)
