# tests/test_ical.py
"""Tests for the iCalendar reader."""

from __future__ import annotations

from datetime import UTC, datetime

from guestbot.utils.ical import parse_events, parse_ical_datetime, unfold_lines

FEED = (
    "BEGIN:VCALENDAR\r\n"
    "VERSION:2.0\r\n"
    "PRODID:-//Airbnb Inc//Hosting Calendar 0.8.8//EN\r\n"
    "BEGIN:VEVENT\r\n"
    "DTSTART;VALUE=DATE:20240601\r\n"
    "DTEND;VALUE=DATE:20240605\r\n"
    "UID:abc-123@airbnb.com\r\n"
    "SUMMARY:Reserved\\, Dana\r\n"
    "END:VEVENT\r\n"
    "BEGIN:VEVENT\r\n"
    "DTSTART:20240610T160000Z\r\n"
    "DTEND;TZID=America/Los_Angeles:20240612T110000\r\n"
    "UID:def-456@vrbo\r\n"
    " .com\r\n"
    "SUMMARY:Blocked\r\n"
    "END:VEVENT\r\n"
    "END:VCALENDAR\r\n"
)


def test_unfold_lines_joins_continuations() -> None:
    assert unfold_lines("UID:abc\r\n def\r\n\tghi\r\nEND:VEVENT") == ["UID:abcdefghi", "END:VEVENT"]


class TestParseDatetime:
    def test_utc_datetime(self) -> None:
        assert parse_ical_datetime("20240610T160000Z") == datetime(2024, 6, 10, 16, tzinfo=UTC)

    def test_floating_datetime_read_as_utc(self) -> None:
        assert parse_ical_datetime("20240612T110000") == datetime(2024, 6, 12, 11, tzinfo=UTC)

    def test_date_only(self) -> None:
        assert parse_ical_datetime("20240601") == datetime(2024, 6, 1, tzinfo=UTC)

    def test_malformed(self) -> None:
        assert parse_ical_datetime("next tuesday") is None


class TestParseEvents:
    def test_events_parsed(self) -> None:
        events = parse_events(FEED)
        assert len(events) == 2

        first, second = events
        assert first.uid == "abc-123@airbnb.com"
        assert first.summary == "Reserved, Dana"
        assert first.start == datetime(2024, 6, 1, tzinfo=UTC)
        assert first.end == datetime(2024, 6, 5, tzinfo=UTC)

        assert second.uid == "def-456@vrbo.com"
        assert second.end == datetime(2024, 6, 12, 11, tzinfo=UTC)

    def test_properties_outside_events_ignored(self) -> None:
        assert parse_events("BEGIN:VCALENDAR\nSUMMARY:not an event\nEND:VCALENDAR") == []

    def test_unterminated_event_dropped(self) -> None:
        assert parse_events("BEGIN:VEVENT\nUID:x\n") == []

    def test_garbage_yields_no_events(self) -> None:
        assert parse_events("<html>not a calendar</html>") == []

    def test_escaped_backslash_before_n_is_not_a_newline(self) -> None:
        feed = "BEGIN:VEVENT\nSUMMARY:Path C:\\\\new\\nline\\; ok\nEND:VEVENT\n"
        assert parse_events(feed)[0].summary == "Path C:\\new\nline; ok"
