"""Post-generation firewall for model output.

Runs on every model response before it reaches the guest:

1. empty output gets a generic apology
2. anything that looks like the system prompt replaces the whole answer
3. three or more "<secret field>: <value>" shapes replace the whole answer
4. overlong output is truncated, preferring a sentence boundary

The real reason is returned for internal logging only; the guest only
ever sees one of the canned messages below.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Final

MAX_OUTPUT_LENGTH: Final[int] = 2000
BULK_DISCLOSURE_THRESHOLD: Final[int] = 3
# A sentence boundary is only used if it keeps at least this share of the budget.
SENTENCE_BOUNDARY_FLOOR: Final[float] = 0.7
ELLIPSIS: Final[str] = "..."

EMPTY_RESPONSE_MESSAGE: Final[str] = (
    "I'm sorry, I couldn't generate a response. Please try again."
)
LEAK_REDIRECT_MESSAGE: Final[str] = (
    "I'm here to help with questions about your stay! "
    "What would you like to know about the property?"
)
BULK_DISCLOSURE_MESSAGE: Final[str] = (
    "For security, I can only share one or two access codes at a time. "
    "Please ask about a specific code (e.g., 'What's the WiFi password?' "
    "or 'What's the door code?')."
)

SYSTEM_LEAK_PATTERNS: Final[tuple[re.Pattern[str], ...]] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"you\s{1,20}are\s{1,20}guestbot,?\s{1,20}an?\s{1,20}ai\s{1,20}concierge",
        r"IMPORTANT\s{0,10}[-–—:]\s{0,10}MULTI[-\s]?LANGUAGE",
        r"PROPERTY\s{1,20}INFO\s{0,10}:",
        r"CONTEXT\s{0,10}:\s{0,10}(?:Focus on|Provide general)",
        r"LOCATION\s{1,20}AWARENESS\s{0,10}:",
        r"SECURITY\s{1,20}RULES?\s{0,10}:",
        r"ANTI[-\s]?JAILBREAK",
        r"system\s{0,10}instruction",
    )
)

ACCESS_CODE_PATTERNS: Final[tuple[re.Pattern[str], ...]] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"(?:door|entry)\s{0,10}code\s{0,10}[:=]\s{0,10}\S+",
        r"(?:lock\s{0,10}box|lockbox)\s{0,10}code\s{0,10}[:=]\s{0,10}\S+",
        r"gate\s{0,10}code\s{0,10}[:=]\s{0,10}\S+",
        r"garage\s{0,10}code\s{0,10}[:=]\s{0,10}\S+",
        r"(?:wifi|wi-fi)\s{0,10}password\s{0,10}[:=]\s{0,10}\S+",
        r"password\s{0,10}[:=]\s{0,10}\S+",
    )
)


@dataclass(frozen=True)
class OutputFilterResult:
    filtered: str
    was_filtered: bool
    reason: str | None = None


def count_code_disclosures(text: str) -> int:
    """Total matches across all code shapes; one phrase may match two shapes."""
    return sum(len(pattern.findall(text)) for pattern in ACCESS_CODE_PATTERNS)


def _truncate(text: str, limit: int) -> str:
    head = text[:limit]
    boundary = max(head.rfind(". "), head.rfind("! "), head.rfind("? "))
    if boundary > limit * SENTENCE_BOUNDARY_FLOOR:
        return head[: boundary + 1]
    # Keep the ellipsis inside the budget so a second pass is a no-op.
    return head[: limit - len(ELLIPSIS)] + ELLIPSIS


def filter_output(raw: object, max_length: int = MAX_OUTPUT_LENGTH) -> OutputFilterResult:
    """Screen one model response."""
    if not isinstance(raw, str) or not raw:
        return OutputFilterResult(EMPTY_RESPONSE_MESSAGE, True, "empty_response")

    if any(pattern.search(raw) for pattern in SYSTEM_LEAK_PATTERNS):
        return OutputFilterResult(LEAK_REDIRECT_MESSAGE, True, "system_prompt_leak")

    if count_code_disclosures(raw) >= BULK_DISCLOSURE_THRESHOLD:
        return OutputFilterResult(BULK_DISCLOSURE_MESSAGE, True, "bulk_code_disclosure")

    if len(raw) > max_length:
        return OutputFilterResult(_truncate(raw, max_length), True, "truncated")

    return OutputFilterResult(raw, False, None)
