"""Timezone resolution and time provider utilities for familycal_lite."""

from __future__ import annotations

import datetime
import logging
import os
import re
import zoneinfo
from dataclasses import dataclass
from typing import ClassVar, Literal

logger = logging.getLogger(__name__)

TEST_TIME_ENV_VAR = "FAMILYCAL_TEST_TIME"

ZoneStatus = Literal["utc", "fixed", "named", "floating", "unresolved"]

# [GMT|UTC]+HHMM / -HH:MM style offsets, e.g. GMT+0200, UTC-05:00, +0530
_FIXED_OFFSET_RE = re.compile(r"^(?:GMT|UTC)?([+-])(\d{2}):?(\d{2})$", re.IGNORECASE)

_UTC_NAMES = frozenset({"UTC", "Z", "GMT", "ETC/UTC", "ETC/GMT", "ZULU", "UNIVERSAL"})


@dataclass(frozen=True)
class ZoneResolution:
    """Outcome of resolving a TZID parameter.

    ``tzinfo`` is always usable: for unresolved and floating zones it is UTC,
    meaning local wall-clock time is passed through without adjustment.
    Callers that care about the difference check ``resolved``.
    """

    status: ZoneStatus
    tzinfo: datetime.tzinfo
    zone: str | None = None

    @property
    def resolved(self) -> bool:
        """True when the local time can be converted to a real UTC instant."""
        return self.status in ("utc", "fixed", "named")


class ZoneResolver:
    """Resolve TZID strings to tzinfo objects.

    Fixed offsets are handled directly. Named zones are delegated to the
    host's zoneinfo database, with common Windows zone names (as emitted by
    Outlook/Exchange feeds) mapped to IANA identifiers first.
    """

    # Common Windows timezones used in ICS files from Outlook/Exchange
    WINDOWS_TZ_MAP: ClassVar[dict[str, str]] = {
        "Pacific Standard Time": "America/Los_Angeles",
        "Mountain Standard Time": "America/Denver",
        "Central Standard Time": "America/Chicago",
        "Eastern Standard Time": "America/New_York",
        "Alaskan Standard Time": "America/Anchorage",
        "Hawaiian Standard Time": "Pacific/Honolulu",
        "Arizona Standard Time": "America/Phoenix",
        "Atlantic Standard Time": "America/Halifax",
        "GMT Standard Time": "Europe/London",
        "Greenwich Standard Time": "Atlantic/Reykjavik",
        "W. Europe Standard Time": "Europe/Berlin",
        "Central Europe Standard Time": "Europe/Budapest",
        "Central European Standard Time": "Europe/Warsaw",
        "Romance Standard Time": "Europe/Paris",
        "E. Europe Standard Time": "Europe/Chisinau",
        "FLE Standard Time": "Europe/Kiev",
        "China Standard Time": "Asia/Shanghai",
        "Tokyo Standard Time": "Asia/Tokyo",
        "India Standard Time": "Asia/Kolkata",
        "AUS Eastern Standard Time": "Australia/Sydney",
        "New Zealand Standard Time": "Pacific/Auckland",
    }

    def __init__(self, floating_timezone: str | None = None) -> None:
        """Initialize resolver.

        Args:
            floating_timezone: Zone applied to local times that carry no TZID.
                When None, floating times are passed through unchanged.
        """
        self._floating = self._named_zone(floating_timezone) if floating_timezone else None
        if floating_timezone and self._floating is None:
            logger.warning(
                "Unknown floating timezone %r; floating times will not be converted",
                floating_timezone,
            )

    def resolve(self, zone: str | None) -> ZoneResolution:
        """Resolve a TZID parameter value.

        Args:
            zone: TZID value (e.g. "Europe/Berlin", "GMT+0200", "Eastern Standard Time")

        Returns:
            ZoneResolution describing how local times in this zone map to UTC
        """
        if not zone or not zone.strip():
            if self._floating is not None:
                return ZoneResolution("named", self._floating, None)
            return ZoneResolution("floating", datetime.timezone.utc, None)

        zone = zone.strip().strip('"')

        if zone.upper() in _UTC_NAMES:
            return ZoneResolution("utc", datetime.timezone.utc, zone)

        match = _FIXED_OFFSET_RE.match(zone)
        if match:
            sign = 1 if match.group(1) == "+" else -1
            offset_minutes = sign * (int(match.group(2)) * 60 + int(match.group(3)))
            if abs(offset_minutes) < 24 * 60:
                tz = datetime.timezone(datetime.timedelta(minutes=offset_minutes))
                return ZoneResolution("fixed", tz, zone)

        tz = self._named_zone(zone)
        if tz is not None:
            return ZoneResolution("named", tz, zone)

        return ZoneResolution("unresolved", datetime.timezone.utc, zone)

    def _named_zone(self, zone: str) -> zoneinfo.ZoneInfo | None:
        iana = self.WINDOWS_TZ_MAP.get(zone, zone)
        try:
            return zoneinfo.ZoneInfo(iana)
        except (zoneinfo.ZoneInfoNotFoundError, ValueError, OSError):
            return None


class TimeProvider:
    """Provides current time with test time override support."""

    def now_utc(self) -> datetime.datetime:
        """Return current UTC time with tzinfo.

        Can be overridden for testing via FAMILYCAL_TEST_TIME environment variable.
        Format: ISO 8601 datetime string (e.g., "2025-10-27T08:20:00-07:00")

        Returns:
            Current time in UTC with timezone info
        """
        test_time = os.environ.get(TEST_TIME_ENV_VAR)
        if test_time:
            try:
                from dateutil import parser as date_parser

                dt = date_parser.isoparse(test_time)
                if dt.tzinfo is not None:
                    return dt.astimezone(datetime.timezone.utc)
                # Assume naive datetime is already UTC
                return dt.replace(tzinfo=datetime.timezone.utc)

            except (ValueError, OverflowError) as e:
                logger.warning("Failed to parse %s=%r: %s", TEST_TIME_ENV_VAR, test_time, e)
                # Fall through to real time

        return datetime.datetime.now(datetime.timezone.utc)


# Singleton instance for global use
_time_provider = TimeProvider()


def now_utc() -> datetime.datetime:
    """Get current UTC time (convenience function).

    Returns:
        Current time in UTC
    """
    return _time_provider.now_utc()


def get_timezone(name: str | None, fallback: str = "UTC") -> datetime.tzinfo:
    """Return a tzinfo for ``name``, falling back to ``fallback`` when unknown."""
    for candidate in (name, fallback):
        if not candidate:
            continue
        if candidate.upper() == "UTC":
            return datetime.timezone.utc
        try:
            return zoneinfo.ZoneInfo(candidate)
        except (zoneinfo.ZoneInfoNotFoundError, ValueError, OSError):
            logger.warning("Unknown timezone %r", candidate)
    return datetime.timezone.utc
