"""Unit tests for familycal_lite.lite_parser (engine end to end)."""

import logging
from collections.abc import Callable
from datetime import datetime
from types import SimpleNamespace

import pytest

from familycal_lite.lite_parser import LiteICSParser, build_calendar_feed, parse_ics

pytestmark = pytest.mark.unit


class TestLiteICSParser:
    """Tests for the full text-in, occurrences-out pipeline."""

    def test_parse_when_mixed_feed_then_statistics_and_selection(
        self,
        make_calendar: Callable[..., str],
        simple_settings: SimpleNamespace,
        fixed_now: datetime,
    ) -> None:
        text = make_calendar(
            "UID:1\nSUMMARY:Dentist\nDTSTART:20240105T150000Z\nDTEND:20240105T160000Z",
            "UID:2\nSUMMARY:Cancelled party\nDTSTART:20240106T150000Z\nSTATUS:CANCELLED",
            "UID:3\nSUMMARY:Swim\nDTSTART:20240101T090000Z\nRRULE:FREQ=WEEKLY;BYDAY=MO,WE;COUNT=4",
            "UID:3\nRECURRENCE-ID:20240103T090000Z\nSUMMARY:Swim\nDTSTART:20240103T090000Z\n"
            "STATUS:CANCELLED",
            "UID:4\nSUMMARY:Last year\nDTSTART:20221201T090000Z",
            header="X-WR-CALNAME:Family\nX-WR-TIMEZONE:Europe/Berlin",
        )

        result = LiteICSParser(simple_settings).parse(text, now=fixed_now)

        assert result.success
        assert result.calendar_name == "Family"
        assert result.timezone == "Europe/Berlin"
        assert result.prodid == "-//familycal//tests//EN"
        assert result.ics_version == "2.0"
        assert result.total_components == 5
        assert result.exception_count == 1
        assert result.event_count == 3
        assert result.recurring_event_count == 1
        assert result.deleted_event_count == 1
        # 4 swims (one slot cancelled, count not consumed) + dentist + last year
        assert result.occurrence_count == 6
        assert [(o.start, o.title) for o in result.events] == [
            ("2024-01-01T09:00:00Z", "Swim"),
            ("2024-01-05T15:00:00Z", "Dentist"),
            ("2024-01-08T09:00:00Z", "Swim"),
            ("2024-01-10T09:00:00Z", "Swim"),
            ("2024-01-15T09:00:00Z", "Swim"),
        ]

    def test_parse_when_cancelled_recurring_base_then_no_occurrences(
        self, make_calendar: Callable[..., str], fixed_now: datetime
    ) -> None:
        text = make_calendar(
            "UID:r\nSUMMARY:Gone\nDTSTART:20240101T090000Z\nRRULE:FREQ=DAILY;COUNT=10\n"
            "STATUS:CANCELLED"
        )
        assert parse_ics(text, now=fixed_now) == []

    def test_parse_when_rrule_without_freq_then_event_skipped_with_warning(
        self, make_calendar: Callable[..., str], fixed_now: datetime
    ) -> None:
        text = make_calendar(
            "UID:bad\nSUMMARY:Broken\nDTSTART:20240101T090000Z\nRRULE:COUNT=3",
            "UID:ok\nSUMMARY:Fine\nDTSTART:20240102T090000Z",
        )
        result = LiteICSParser().parse(text, now=fixed_now)
        assert [o.title for o in result.events] == ["Fine"]
        assert any("bad" in warning for warning in result.warnings)

    @pytest.mark.parametrize("text", ["", "   \r\n", "not a calendar at all"])
    def test_parse_when_empty_or_garbage_then_empty_result(
        self, text: str, fixed_now: datetime
    ) -> None:
        result = LiteICSParser().parse(text, now=fixed_now)
        assert result.success
        assert result.events == []

    def test_parse_when_settings_cap_results_then_applied(
        self, make_calendar: Callable[..., str], fixed_now: datetime
    ) -> None:
        text = make_calendar("UID:d\nSUMMARY:Daily\nDTSTART:20240101T090000Z\nRRULE:FREQ=DAILY")
        result = LiteICSParser({"max_results": 5, "max_occurrences_per_rule": 8}).parse(
            text, now=fixed_now
        )
        assert result.occurrence_count == 8
        assert len(result.events) == 5

    def test_parse_when_sequence_threshold_disabled_then_high_sequence_kept(
        self, make_calendar: Callable[..., str], fixed_now: datetime
    ) -> None:
        text = make_calendar("UID:s\nSUMMARY:Edited a lot\nDTSTART:20240101T090000Z\nSEQUENCE:500")
        assert parse_ics(text, now=fixed_now) == []
        assert len(parse_ics(text, settings={"sequence_threshold": None}, now=fixed_now)) == 1

    def test_parse_when_folded_lines_then_text_joined(self, fixed_now: datetime) -> None:
        text = (
            "BEGIN:VCALENDAR\r\nBEGIN:VEVENT\r\nUID:f\r\nDTSTART:20240101T090000Z\r\n"
            "SUMMARY:Very long title that was fol\r\n ded by the producer\r\n"
            "END:VEVENT\r\nEND:VCALENDAR\r\n"
        )
        occurrences = parse_ics(text, now=fixed_now)
        assert occurrences[0].title == "Very long title that was folded by the producer"

    def test_parse_when_bare_cr_line_endings_then_events_found(self, fixed_now: datetime) -> None:
        text = (
            "BEGIN:VCALENDAR\rBEGIN:VEVENT\rUID:cr\rDTSTART:20240102T090000Z\r"
            "SUMMARY:Old Mac export\rEND:VEVENT\rEND:VCALENDAR\r"
        )
        occurrences = parse_ics(text, now=fixed_now)
        assert [o.title for o in occurrences] == ["Old Mac export"]

    def test_parse_when_interval_runs_past_year_9999_then_no_error(
        self, make_calendar: Callable[..., str], fixed_now: datetime
    ) -> None:
        """Test that hostile recurrence and duration values degrade instead of raising."""
        text = make_calendar(
            "UID:big\nSUMMARY:Huge step\nDTSTART:20240101T090000Z\n"
            "RRULE:FREQ=DAILY;INTERVAL=999999999",
            "UID:long\nSUMMARY:Long stay\nDTSTART:20240102T090000Z\nDURATION:P999999999W",
        )

        result = LiteICSParser().parse(text, now=fixed_now)

        assert result.success
        assert [(o.title, o.end) for o in result.events] == [
            ("Huge step", None),
            ("Long stay", None),
        ]

    def test_parse_when_same_parser_reused_then_unknown_zone_warned_each_time(
        self,
        make_calendar: Callable[..., str],
        fixed_now: datetime,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Test that the unknown-zone warning set does not leak between parses."""
        text = make_calendar(
            "UID:m\nSUMMARY:Rover check\nDTSTART;TZID=Mars/Olympus:20240102T090000\n"
            "DTEND;TZID=Mars/Olympus:20240102T100000"
        )
        parser = LiteICSParser()

        with caplog.at_level(logging.WARNING, logger="familycal_lite.lite_datetime_utils"):
            parser.parse(text, now=fixed_now)
            parser.parse(text, now=fixed_now)

        warnings = [r for r in caplog.records if "Mars/Olympus" in r.getMessage()]
        assert len(warnings) == 2

    def test_parse_when_vevent_without_wrapper_then_parsed(self, fixed_now: datetime) -> None:
        text = "BEGIN:VEVENT\nUID:w\nSUMMARY:Bare\nDTSTART;VALUE=DATE:20240102\nEND:VEVENT\n"
        assert build_calendar_feed(text, now=fixed_now) == [
            {"start": "2024-01-02", "title": "Bare"}
        ]

    def test_parse_when_test_time_env_then_used_as_now(
        self, make_calendar: Callable[..., str], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test that FAMILYCAL_TEST_TIME drives the selection cutoff."""
        monkeypatch.setenv("FAMILYCAL_TEST_TIME", "2024-01-03T12:00:00Z")
        text = make_calendar(
            "UID:a\nSUMMARY:Monday\nDTSTART:20240101T090000Z",
            "UID:b\nSUMMARY:Tuesday\nDTSTART:20240102T090000Z",
            "UID:w\nSUMMARY:Wednesday\nDTSTART:20240103T080000Z",
            "UID:c\nSUMMARY:Thursday\nDTSTART:20240104T090000Z",
        )
        assert [item["title"] for item in build_calendar_feed(text)] == ["Wednesday", "Thursday"]


class TestBuildCalendarFeed:
    def test_build_calendar_feed_when_called_then_plain_dicts(
        self, make_calendar: Callable[..., str], fixed_now: datetime
    ) -> None:
        text = make_calendar(
            "UID:1\nSUMMARY:Trip\nLOCATION:Zoo\\nMain Gate\nDTSTART;VALUE=DATE:20240310\n"
            "DTEND;VALUE=DATE:20240312"
        )
        assert build_calendar_feed(text, now=fixed_now) == [
            {"start": "2024-03-10", "end": "2024-03-11", "title": "Trip", "address": "Zoo, Main Gate"}
        ]
