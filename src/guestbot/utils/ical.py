"""Minimal iCalendar reader for booking feeds.

Only VEVENT blocks and the UID, SUMMARY, DTSTART and DTEND properties are
read. Times with a TZID parameter are read as UTC.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime

from guestbot.schemas.calendar import CalendarEvent

_FIELDS = {"UID": "uid", "SUMMARY": "summary", "DTSTART": "start", "DTEND": "end"}


def unfold_lines(text: str) -> list[str]:
    """Join RFC 5545 folded lines (continuations start with a space or tab)."""
    lines: list[str] = []
    for raw in text.replace("\r\n", "\n").replace("\r", "\n").split("\n"):
        if raw[:1] in (" ", "\t") and lines:
            lines[-1] += raw[1:]
        elif raw:
            lines.append(raw)
    return lines


def parse_ical_datetime(value: str) -> datetime | None:
    """Parse ``DATE`` and ``DATE-TIME`` values; return None when malformed."""
    value = value.strip()
    for fmt in ("%Y%m%dT%H%M%SZ", "%Y%m%dT%H%M%S", "%Y%m%d"):
        try:
            return datetime.strptime(value, fmt).replace(tzinfo=UTC)
        except ValueError:
            continue
    return None


_ESCAPES = {"\\": "\\", ",": ",", ";": ";", "n": "\n", "N": "\n"}
_ESCAPE_PATTERN = re.compile(r"\\([\\,;nN])")


def _unescape(value: str) -> str:
    return _ESCAPE_PATTERN.sub(lambda match: _ESCAPES[match.group(1)], value)


def parse_events(text: str) -> list[CalendarEvent]:
    """Return every VEVENT in ``text``; unknown properties are ignored."""
    events: list[CalendarEvent] = []
    current: dict[str, object] | None = None
    for line in unfold_lines(text):
        name_part, sep, value = line.partition(":")
        if not sep:
            continue
        name = name_part.split(";", 1)[0].upper()

        if name == "BEGIN" and value.strip().upper() == "VEVENT":
            current = {}
        elif name == "END" and value.strip().upper() == "VEVENT":
            if current is not None:
                events.append(CalendarEvent(**current))
            current = None
        elif current is not None and name in _FIELDS:
            field_name = _FIELDS[name]
            if field_name in ("start", "end"):
                current[field_name] = parse_ical_datetime(value)
            else:
                current[field_name] = _unescape(value)
    return events
