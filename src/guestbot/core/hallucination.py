"""Reconcile secret and time values in model output against the property record.

The model is handed the real values, but it can still invent one. Any
mentioned value that disagrees with the record is removed from the text.
The real value is never written in its place.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Final

REDACTION_PLACEHOLDER: Final[str] = "[please ask me specifically for this information]"

_QUOTE: Final[str] = "[\"“”]?"
_VALUE_END: Final[str] = r"(?:\s|[.,!]|$)"


def _value_after(prefix: str) -> re.Pattern[str]:
    return re.compile(
        rf"{prefix}\s{{0,10}}(?:is|:)\s{{0,10}}{_QUOTE}(\S+?){_QUOTE}{_VALUE_END}",
        re.IGNORECASE,
    )


def _time_after(prefix: str) -> re.Pattern[str]:
    return re.compile(
        rf"{prefix}\s{{0,10}}(?:time\s{{0,10}})?(?:is|:)\s{{0,10}}"
        r"(\d{1,2}(?::\d{2})?\s{0,3}(?:am|pm)?)",
        re.IGNORECASE,
    )


# (field name, pattern) pairs; field names match PropertyRecord attributes.
EXTRACTION_PATTERNS: Final[tuple[tuple[str, re.Pattern[str]], ...]] = (
    ("wifi_password", _value_after(r"(?:wifi|wi-fi|wireless)\s{0,10}password")),
    ("wifi_password", _value_after(r"password")),
    (
        "wifi_name",
        re.compile(
            r"(?:network|wifi|wi-fi|ssid)\s{0,10}(?:name|is|:)\s{0,10}"
            "[\"“”]?([^\\s\"“”,]+)",
            re.IGNORECASE,
        ),
    ),
    ("door_code", _value_after(r"(?:door|entry)\s{0,10}code")),
    ("gate_code", _value_after(r"gate\s{0,10}code")),
    ("lockbox_code", _value_after(r"(?:lockbox|lock\s{0,10}box)\s{0,10}code")),
    ("garage_code", _value_after(r"garage\s{0,10}code")),
    ("check_in_time", _time_after(r"check[-\s]?in")),
    ("check_out_time", _time_after(r"check[-\s]?out")),
)

VALIDATED_FIELDS: Final[tuple[str, ...]] = (
    "wifi_password",
    "wifi_name",
    "door_code",
    "gate_code",
    "garage_code",
    "lockbox_code",
    "check_in_time",
    "check_out_time",
)


@dataclass(frozen=True)
class MentionedValue:
    type: str
    value: str


@dataclass(frozen=True)
class Hallucination:
    type: str
    mentioned: str
    actual: str


@dataclass(frozen=True)
class ValidationOutcome:
    validated: str
    hallucinations: tuple[Hallucination, ...] = ()


def normalize_value(value: object) -> str:
    """Lower-case, trim and strip wrapping quotes for comparison."""
    if not value:
        return ""
    return str(value).lower().strip().strip("\"'“”")


def extract_mentioned_values(text: str) -> list[MentionedValue]:
    """Find every ``(field, value)`` the text claims, each pair once."""
    found: list[MentionedValue] = []
    seen: set[tuple[str, str]] = set()
    for field_name, pattern in EXTRACTION_PATTERNS:
        for match in pattern.finditer(text):
            # An earlier redaction is not a claim.
            if text.startswith(REDACTION_PLACEHOLDER, match.start(1)):
                continue
            value = match.group(1)
            if not value.strip() or (field_name, value) in seen:
                continue
            seen.add((field_name, value))
            found.append(MentionedValue(type=field_name, value=value))
    return found


def _ground_truth(record: Any) -> dict[str, str | None]:
    if isinstance(record, Mapping):
        return {name: record.get(name) for name in VALIDATED_FIELDS}
    return {name: getattr(record, name, None) for name in VALIDATED_FIELDS}


def validate_response(text: str, record: Any) -> ValidationOutcome:
    """Redact mentioned values that contradict ``record``.

    A field the record leaves unset is never flagged: there is nothing to
    compare against.
    """
    truth = _ground_truth(record)
    hallucinations: list[Hallucination] = []
    for mention in extract_mentioned_values(text):
        actual = truth.get(mention.type)
        if actual and normalize_value(mention.value) != normalize_value(actual):
            hallucinations.append(
                Hallucination(type=mention.type, mentioned=mention.value, actual=actual)
            )

    if not hallucinations:
        return ValidationOutcome(validated=text)

    # One pass over all wrong values, longest first, so a short value cannot
    # match inside a placeholder inserted for a longer one.
    wrong = sorted({h.mentioned for h in hallucinations}, key=len, reverse=True)
    pattern = re.compile("|".join(re.escape(value) for value in wrong))
    validated = pattern.sub(REDACTION_PLACEHOLDER, text)
    return ValidationOutcome(validated=validated, hallucinations=tuple(hallucinations))
