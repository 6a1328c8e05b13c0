"""Gate deciding whether secret property fields may enter the prompt.

Secrets are only rendered when the question is about access or
connectivity, and even then at most five times per identifier per ten
minutes. The limiter is process-local: it is a throttle on how often the
model sees secrets, not an authority on who may learn them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Final

from guestbot.core.clock import Clock, system_clock
from guestbot.schemas.property import PropertyRecord
from guestbot.services.rate_limiter import RateLimit, RateLimiter, VolatileCounterStore

logger = logging.getLogger(__name__)

SENSITIVE_ENDPOINT: Final[str] = "sensitive"
SENSITIVE_RATE_LIMIT: Final[RateLimit] = RateLimit(window_seconds=10 * 60, max_requests=5)

SENSITIVE_KEYWORDS: Final[tuple[str, ...]] = (
    "wifi", "wi-fi", "wireless", "internet", "password", "passcode", "pass code",
    "network", "ssid", "door", "lock", "lockbox", "lock box", "key", "entry",
    "enter", "get in", "getting in", "access", "code", "gate", "garage", "open",
    "unlock", "check in", "check-in", "checkin", "arrive", "arrival", "connect",
    "connecting", "log in", "login", "sign in",
)

NOT_PROVIDED: Final[str] = "Not provided"
WITHHELD_LINE: Final[str] = (
    "- WiFi/access codes: Available (ask specifically about WiFi or door codes)"
)
RATE_LIMITED_LINE: Final[str] = "- Access codes: Rate limit reached. Please try again later."


@dataclass(frozen=True)
class PropertyInfo:
    text: str
    sensitive_included: bool
    location: str


def is_sensitive_question(question: str) -> bool:
    lower = question.lower()
    return any(keyword in lower for keyword in SENSITIVE_KEYWORDS)


def _secret_lines(record: PropertyRecord) -> list[str]:
    lines = []
    if record.wifi_name:
        lines.append(
            f"- WiFi: Network: {record.wifi_name}, Password: {record.wifi_password or 'Ask host'}"
        )
    else:
        lines.append(f"- WiFi: {NOT_PROVIDED}")

    lines.append(f"- Door Code: {record.door_code or NOT_PROVIDED}")

    if record.lockbox_code:
        lockbox = f"Code: {record.lockbox_code}"
        if record.lockbox_location:
            lockbox += f", Location: {record.lockbox_location}"
        lines.append(f"- Lockbox: {lockbox}")
    else:
        lines.append(f"- Lockbox: {NOT_PROVIDED}")

    lines.append(f"- Gate Code: {record.gate_code or NOT_PROVIDED}")
    lines.append(f"- Garage Code: {record.garage_code or NOT_PROVIDED}")
    return lines


class SensitiveDataGate:
    """Renders the property block of the prompt."""

    def __init__(self, limiter: RateLimiter | None = None, clock: Clock = system_clock) -> None:
        self._limiter = limiter or RateLimiter(
            VolatileCounterStore(clock),
            {SENSITIVE_ENDPOINT: SENSITIVE_RATE_LIMIT},
        )

    def build_info(self, record: PropertyRecord, question: str, identifier: str) -> PropertyInfo:
        """Render ``record`` for the prompt, including secrets only when warranted."""
        location = record.location
        lines = [
            f"- Name: {record.name or 'Vacation Rental'}",
            f"- Location: {location}",
            f"- Address: {record.address or NOT_PROVIDED}",
        ]

        sensitive_included = False
        if not is_sensitive_question(question):
            lines.append(WITHHELD_LINE)
        elif self._limiter.allow(SENSITIVE_ENDPOINT, identifier).allowed:
            sensitive_included = True
            lines.extend(_secret_lines(record))
        else:
            logger.warning("Sensitive lookup limit reached; secrets withheld from prompt")
            lines.append(RATE_LIMITED_LINE)

        lines.extend(
            [
                f"- Check-in: {record.check_in_time or 'Not specified'}",
                f"- Check-out: {record.check_out_time or 'Not specified'}",
                f"- House Rules: {record.house_rules or 'Standard vacation rental rules'}",
                f"- Additional Property Info: {record.custom_info or 'None'}",
                f"- Host's Local Recommendations: {record.local_tips or 'None provided'}",
            ]
        )
        return PropertyInfo(
            text="\n".join(lines),
            sensitive_included=sensitive_included,
            location=location,
        )
