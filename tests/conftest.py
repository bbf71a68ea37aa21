from collections.abc import Callable, Generator
from datetime import UTC, datetime
from types import SimpleNamespace
from typing import Any

import pytest

from familycal_lite.lite_event_parser import (
    LiteEventRecord,
    group_event_records,
    unfold_ics_lines,
)

FAMILYCAL_ENV_VARS = (
    "FAMILYCAL_WEB_HOST",
    "FAMILYCAL_WEB_PORT",
    "FAMILYCAL_LOG_LEVEL",
    "FAMILYCAL_DEBUG",
    "FAMILYCAL_REQUEST_TIMEOUT",
    "FAMILYCAL_MAX_RESULTS",
    "FAMILYCAL_HORIZON_DAYS",
    "FAMILYCAL_MAX_OCCURRENCES",
    "FAMILYCAL_SEQUENCE_THRESHOLD",
    "FAMILYCAL_DEFAULT_TIMEZONE",
    "FAMILYCAL_FLOATING_TIMEZONE",
    "FAMILYCAL_REJECT_UNRESOLVED_ZONES",
    "FAMILYCAL_TEST_TIME",
)


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: pytest.MonkeyPatch) -> Generator[None, Any, None]:
    """Clear FAMILYCAL_* variables so the host environment cannot leak into tests."""
    for name in FAMILYCAL_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def simple_settings() -> SimpleNamespace:
    """Lightweight settings object mirroring the ConfigManager keys.

    Fields:
      - request_timeout: HTTP read timeout in seconds
      - max_results: selector cap
      - horizon_days / max_occurrences_per_rule: expansion bounds
      - sequence_threshold: high-SEQUENCE deletion cutoff
    """
    return SimpleNamespace(
        request_timeout=5,
        max_results=25,
        horizon_days=730,
        max_occurrences_per_rule=100,
        sequence_threshold=100,
        default_timezone="UTC",
    )


@pytest.fixture
def fixed_now() -> datetime:
    """Reference time used by most engine tests: New Year's Eve 2023, noon UTC."""
    return datetime(2023, 12, 31, 12, 0, tzinfo=UTC)


def wrap_calendar(*events: str, header: str = "") -> str:
    """Wrap VEVENT bodies (property lines only) in a CRLF VCALENDAR document."""
    lines = ["BEGIN:VCALENDAR", "VERSION:2.0", "PRODID:-//familycal//tests//EN"]
    if header:
        lines.extend(header.strip().splitlines())
    for body in events:
        lines.append("BEGIN:VEVENT")
        lines.extend(line.strip() for line in body.strip().splitlines())
        lines.append("END:VEVENT")
    lines.append("END:VCALENDAR")
    return "\r\n".join(lines) + "\r\n"


@pytest.fixture
def make_calendar() -> Callable[..., str]:
    return wrap_calendar


@pytest.fixture
def make_record() -> Callable[[str], LiteEventRecord]:
    """Build a single LiteEventRecord from VEVENT property lines."""

    def _make(body: str) -> LiteEventRecord:
        grouped = group_event_records(unfold_ics_lines(wrap_calendar(body)))
        records = grouped.base_events + [
            record for records in grouped.exceptions.values() for record in records
        ]
        assert len(records) == 1
        return records[0]

    return _make
