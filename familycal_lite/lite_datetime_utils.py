"""DateTime normalization utilities for ICS calendar processing - familycal_lite.

Converts the compact RFC 5545 DATE / DATE-TIME encodings plus their TZID
context into one canonical string form:

- ``YYYY-MM-DD`` for date-only values
- ``YYYY-MM-DDTHH:MM:SSZ`` for instants
"""

import logging
import re
from datetime import UTC, date, datetime, timedelta, tzinfo
from typing import Any, Optional

from .timezone_utils import ZoneResolution, ZoneResolver

logger = logging.getLogger(__name__)

UTC_DATETIME_RE = re.compile(r"^\d{8}T\d{6}Z$")
LOCAL_DATETIME_RE = re.compile(r"^\d{8}T\d{6}$")
DATE_ONLY_RE = re.compile(r"^\d{8}$")

CANONICAL_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
CANONICAL_INSTANT_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z$")

DURATION_RE = re.compile(
    r"^(?P<sign>[+-])?P(?:(?P<weeks>\d+)W)?(?:(?P<days>\d+)D)?"
    r"(?:T(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+)S)?)?$"
)

CANONICAL_DATE_FORMAT = "%Y-%m-%d"
CANONICAL_INSTANT_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def format_instant(dt: datetime) -> str:
    """Format an aware datetime as a canonical UTC instant string."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    # isoformat keeps four-digit years below 1000; glibc strftime does not
    return dt.astimezone(UTC).replace(tzinfo=None, microsecond=0).isoformat() + "Z"


def format_date(value: date) -> str:
    """Format a date (or the date part of a datetime) canonically."""
    if isinstance(value, datetime):
        value = value.date()
    return value.isoformat()


def is_date_only(value: str) -> bool:
    """Check whether a canonical string denotes an all-day date."""
    return bool(CANONICAL_DATE_RE.match(value))


def parse_ics_duration(value: Optional[str]) -> Optional[timedelta]:
    """Parse an RFC 5545 DURATION value such as ``PT1H30M``, ``P1D`` or ``-P1W``.

    Returns:
        timedelta, or None when the value is absent, malformed or out of range
    """
    if not value:
        return None
    match = DURATION_RE.match(value.strip().upper())
    if not match or not any(match.group(name) for name in ("weeks", "days", "hours", "minutes", "seconds")):
        return None

    parts = {name: int(match.group(name) or 0) for name in ("weeks", "days", "hours", "minutes", "seconds")}
    try:
        duration = timedelta(**parts)
    except OverflowError:
        logger.debug("DURATION %r is out of range", value)
        return None
    return -duration if match.group("sign") == "-" else duration


def parse_canonical(value: str) -> datetime:
    """Parse a canonical date/instant string to an aware UTC datetime.

    Date-only strings map to midnight UTC of that day.

    Raises:
        ValueError: If the value is not in canonical form
    """
    if CANONICAL_INSTANT_RE.match(value):
        return datetime.strptime(value, CANONICAL_INSTANT_FORMAT).replace(tzinfo=UTC)
    if CANONICAL_DATE_RE.match(value):
        return datetime.strptime(value, CANONICAL_DATE_FORMAT).replace(tzinfo=UTC)
    raise ValueError(f"Not a canonical date/time string: {value!r}")


class LiteDateTimeNormalizer:
    """Normalize ICS DATE / DATE-TIME values to canonical UTC strings.

    Local date-times are converted through a ZoneResolver. When the zone
    cannot be resolved the local wall-clock time is emitted unchanged, unless
    ``reject_unresolved_zones`` is set, in which case the value is treated as
    absent.
    """

    def __init__(
        self,
        resolver: Optional[ZoneResolver] = None,
        reject_unresolved_zones: bool = False,
    ) -> None:
        self.resolver = resolver or ZoneResolver()
        self.reject_unresolved_zones = reject_unresolved_zones
        self._warned_zones: set[str] = set()

    @classmethod
    def from_settings(cls, settings: Any) -> "LiteDateTimeNormalizer":
        """Build a normalizer from a settings object or dict."""
        from .config_manager import get_config_value

        return cls(
            resolver=ZoneResolver(get_config_value(settings, "floating_timezone")),
            reject_unresolved_zones=bool(
                get_config_value(settings, "reject_unresolved_zones", False)
            ),
        )

    def reset_zone_warnings(self) -> None:
        """Forget which unknown zones were reported; called once per parse."""
        self._warned_zones.clear()

    def normalize(self, value: Optional[str], zone: Optional[str] = None, is_end: bool = False) -> str:
        """Convert an ICS date/time value into canonical form.

        Args:
            value: Raw property value, e.g. "20240101T090000Z" or "20240310"
            zone: TZID parameter captured for the property, if any
            is_end: True for DTEND values; date-only ends are exclusive in
                RFC 5545 so one day is subtracted to make them inclusive

        Returns:
            Canonical string, or "" when the value is absent or unrecognized
        """
        if not value:
            return ""

        value = value.strip()

        if UTC_DATETIME_RE.match(value) or LOCAL_DATETIME_RE.match(value):
            instant = self.localize(value, zone)
            if instant is None:
                return ""
            try:
                return format_instant(instant)
            except OverflowError:
                logger.debug("Date/time %r is out of range in UTC", value)
                return ""

        if DATE_ONLY_RE.match(value):
            try:
                day = datetime.strptime(value, "%Y%m%d").date()
            except ValueError:
                logger.debug("Invalid calendar date %r", value)
                return ""
            if is_end:
                try:
                    day -= timedelta(days=1)
                except OverflowError:
                    logger.debug("Exclusive end date %r has no previous day", value)
                    return ""
            return format_date(day)

        # Already canonical (e.g. pre-normalized fixtures) passes through
        if CANONICAL_INSTANT_RE.match(value) or CANONICAL_DATE_RE.match(value):
            return value

        logger.debug("Unrecognized date/time encoding %r", value)
        return ""

    def localize(self, value: Optional[str], zone: Optional[str] = None) -> Optional[datetime]:
        """Parse an ICS date/time value into an aware datetime in its own zone.

        UTC values are returned in UTC, local values carry the resolved zone
        (so wall-clock arithmetic follows DST) and date-only values map to
        midnight UTC.

        Returns:
            Aware datetime, or None when the value is absent or unusable
        """
        if not value:
            return None

        value = value.strip()
        try:
            if UTC_DATETIME_RE.match(value):
                return datetime.strptime(value, "%Y%m%dT%H%M%SZ").replace(tzinfo=UTC)

            if LOCAL_DATETIME_RE.match(value):
                naive = datetime.strptime(value, "%Y%m%dT%H%M%S")
                tz = self.zone_for(zone)
                if tz is None:
                    return None
                return naive.replace(tzinfo=tz)

            if DATE_ONLY_RE.match(value):
                return datetime.strptime(value, "%Y%m%d").replace(tzinfo=UTC)

            if CANONICAL_INSTANT_RE.match(value) or CANONICAL_DATE_RE.match(value):
                return parse_canonical(value)
        except ValueError:
            logger.debug("Invalid date/time value %r", value)
            return None

        return None

    def zone_for(self, zone: Optional[str]) -> Optional[tzinfo]:
        """Return the tzinfo governing local times in ``zone``.

        Returns None only when the zone is unresolved and strict mode rejects it.
        """
        resolution = self.resolver.resolve(zone)
        if resolution.status == "unresolved":
            self._report_unresolved(resolution)
            if self.reject_unresolved_zones:
                return None
        return resolution.tzinfo

    def _report_unresolved(self, resolution: ZoneResolution) -> None:
        zone = resolution.zone or ""
        if zone in self._warned_zones:
            return
        self._warned_zones.add(zone)
        if self.reject_unresolved_zones:
            logger.warning("Unrecognized timezone %r; rejecting local times in this zone", zone)
        else:
            logger.warning(
                "Unrecognized timezone %r; local times are used without UTC adjustment", zone
            )
