"""RRULE expansion logic for familycal_lite ICS parser.

Supports FREQ=DAILY/WEEKLY/MONTHLY/YEARLY with INTERVAL, COUNT, UNTIL and
(for WEEKLY) BYDAY. Other rule parts are ignored rather than rejected.
Generation is always bounded by the COUNT cap and a forward horizon.
"""

import logging
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, Optional

from dateutil.rrule import DAILY, MO, MONTHLY, WEEKLY, YEARLY, rrule

from .lite_datetime_utils import (
    LiteDateTimeNormalizer,
    format_date,
    format_instant,
    is_date_only,
    parse_canonical,
)
from .lite_deletion import LiteDeletionClassifier
from .lite_event_parser import LiteEventRecord
from .lite_models import LiteOccurrence
from .lite_occurrence import LiteOccurrenceBuilder
from .timezone_utils import now_utc

logger = logging.getLogger(__name__)

RRULE_FREQUENCIES: dict[str, int] = {
    "DAILY": DAILY,
    "WEEKLY": WEEKLY,
    "MONTHLY": MONTHLY,
    "YEARLY": YEARLY,
}
SUPPORTED_FREQUENCIES = frozenset(RRULE_FREQUENCIES)

# Monday-based weekday numbers, matching datetime.weekday()
WEEKDAY_CODES: dict[str, int] = {"MO": 0, "TU": 1, "WE": 2, "TH": 3, "FR": 4, "SA": 5, "SU": 6}

DEFAULT_MAX_OCCURRENCES = 100
DEFAULT_HORIZON_DAYS = 730


class LiteRRuleExpansionError(Exception):
    """Base exception for RRULE expansion errors."""


class LiteRRuleParseError(LiteRRuleExpansionError):
    """Error parsing RRULE string."""


@dataclass
class RRuleExpanderConfig:
    """Configuration for RRULE expansion.

    Consolidates all RRULE-related settings with explicit defaults.
    """

    # Cap applied when the rule has no COUNT
    max_occurrences_per_rule: int = DEFAULT_MAX_OCCURRENCES
    # Nothing is generated past now + horizon_days
    horizon_days: int = DEFAULT_HORIZON_DAYS

    @classmethod
    def from_settings(cls, settings: Any) -> "RRuleExpanderConfig":
        """Extract RRULE configuration from settings object.

        Args:
            settings: Configuration object or dict with RRULE settings

        Returns:
            RRuleExpanderConfig with values from settings or defaults
        """
        from .config_manager import get_config_value

        return cls(
            max_occurrences_per_rule=int(
                get_config_value(settings, "max_occurrences_per_rule", DEFAULT_MAX_OCCURRENCES)
            ),
            horizon_days=int(get_config_value(settings, "horizon_days", DEFAULT_HORIZON_DAYS)),
        )


@dataclass(frozen=True)
class LiteRRuleSpec:
    """Parsed recurrence rule."""

    freq: str
    until: Optional[str] = None
    count: Optional[int] = None
    interval: int = 1
    byday: tuple[str, ...] = ()

    @property
    def is_supported(self) -> bool:
        return self.freq in SUPPORTED_FREQUENCIES

    @property
    def weekdays(self) -> frozenset[int]:
        """Weekday numbers from BYDAY codes that apply to WEEKLY rules.

        Ordinal forms such as "1MO" belong to monthly rules and are ignored.
        """
        return frozenset(WEEKDAY_CODES[code] for code in self.byday if code in WEEKDAY_CODES)


def _positive_int(raw: str, name: str) -> Optional[int]:
    try:
        value = int(raw)
    except ValueError:
        logger.debug("Ignoring non-numeric RRULE %s=%r", name, raw)
        return None
    return value if value > 0 else None


def parse_rrule_string(rrule_string: Optional[str]) -> LiteRRuleSpec:
    """Parse RRULE string into a LiteRRuleSpec.

    Args:
        rrule_string: RRULE value (e.g. "FREQ=WEEKLY;INTERVAL=1;BYDAY=MO")

    Returns:
        Parsed rule. Non-positive or non-numeric COUNT/INTERVAL fall back to
        their defaults.

    Raises:
        LiteRRuleParseError: If the string is empty or has no FREQ
    """
    if not rrule_string or not rrule_string.strip():
        raise LiteRRuleParseError("Empty RRULE string")

    params: dict[str, str] = {}
    for part in rrule_string.split(";"):
        if "=" not in part:
            continue
        key, value = part.split("=", 1)
        key = key.strip().upper()
        value = value.strip()
        if key and value:
            params[key] = value

    freq = params.get("FREQ", "").upper()
    if not freq:
        raise LiteRRuleParseError(f"RRULE missing required FREQ parameter: {rrule_string}")

    byday = tuple(
        code.strip().upper() for code in params.get("BYDAY", "").split(",") if code.strip()
    )

    return LiteRRuleSpec(
        freq=freq,
        until=params.get("UNTIL"),
        count=_positive_int(params["COUNT"], "COUNT") if "COUNT" in params else None,
        interval=_positive_int(params.get("INTERVAL", "1"), "INTERVAL") or 1,
        byday=byday,
    )


def build_exception_index(
    exceptions: Sequence[LiteEventRecord],
    normalizer: LiteDateTimeNormalizer,
    default_zone: Optional[str] = None,
) -> dict[str, LiteEventRecord]:
    """Index modified instances by the canonical start they replace.

    The RECURRENCE-ID is resolved in its own TZID, falling back to the base
    event's DTSTART zone. A later instance for the same slot wins.
    """
    index: dict[str, LiteEventRecord] = {}
    for exception in exceptions:
        zone = exception.zone("RECURRENCE-ID") or default_zone
        key = normalizer.normalize(exception.recurrence_id, zone)
        if key:
            index[key] = exception
        else:
            logger.debug(
                "Ignoring exception with unusable RECURRENCE-ID %r", exception.recurrence_id
            )
    return index


def _shifted(value: datetime, delta: timedelta) -> Optional[datetime]:
    """Return ``value + delta``, or None past the representable range."""
    try:
        return value + delta
    except OverflowError:
        return None


class LiteRRuleExpander:
    """Expand a recurring base event into concrete occurrences."""

    def __init__(
        self,
        config: Optional[RRuleExpanderConfig] = None,
        normalizer: Optional[LiteDateTimeNormalizer] = None,
        classifier: Optional[LiteDeletionClassifier] = None,
    ) -> None:
        self.config = config or RRuleExpanderConfig()
        self.normalizer = normalizer or LiteDateTimeNormalizer()
        self.classifier = classifier or LiteDeletionClassifier()
        self.builder = LiteOccurrenceBuilder(self.normalizer)

        logger.debug(
            "LiteRRuleExpander initialized: max_occurrences=%d, horizon_days=%d",
            self.config.max_occurrences_per_rule,
            self.config.horizon_days,
        )

    @classmethod
    def from_settings(cls, settings: Any) -> "LiteRRuleExpander":
        return cls(
            config=RRuleExpanderConfig.from_settings(settings),
            normalizer=LiteDateTimeNormalizer.from_settings(settings),
            classifier=LiteDeletionClassifier.from_settings(settings),
        )

    def expand(
        self,
        record: LiteEventRecord,
        exceptions: Sequence[LiteEventRecord] = (),
        now: Optional[datetime] = None,
    ) -> list[LiteOccurrence]:
        """Expand a base event carrying an RRULE.

        Args:
            record: Base event with RRULE
            exceptions: Modified instances sharing the base event's UID
            now: Reference time for the generation horizon (defaults to now_utc())

        Returns:
            Occurrences in generation order, possibly empty

        Raises:
            LiteRRuleParseError: If the RRULE has no FREQ
        """
        spec = parse_rrule_string(record.rrule)

        start_zone = record.zone("DTSTART")
        start, end = self.builder.event_bounds(record)
        if not start:
            logger.debug("Recurring event %s has no usable DTSTART", record.uid or "<no-uid>")
            return []

        all_day = is_date_only(start)
        # The cursor keeps the DTSTART zone so wall-clock time survives DST changes
        if all_day:
            first: Optional[datetime] = parse_canonical(start)
        else:
            first = self.normalizer.localize(record.get("DTSTART"), start_zone)
        if first is None:
            return []

        duration = parse_canonical(end) - parse_canonical(start) if end else timedelta(0)

        reference = now or now_utc()
        horizon = reference + timedelta(days=self.config.horizon_days)
        until = self._resolve_until(spec.until, start_zone)
        max_occurrences = spec.count or self.config.max_occurrences_per_rule

        excluded_days, excluded_minutes = self._collect_exdates(record, start_zone)
        exception_index = build_exception_index(exceptions, self.normalizer, start_zone)
        text = self.builder.text_fields(record)
        weekdays = spec.weekdays if spec.freq == "WEEKLY" else frozenset()

        occurrences: list[LiteOccurrence] = []
        for cursor in self._iter_positions(first, spec, weekdays, horizon):
            if len(occurrences) >= max_occurrences:
                break
            if until is not None and cursor > until:
                break

            if all_day:
                slot_start = format_date(cursor)
                last_day = _shifted(cursor, max(duration, timedelta(0))) if end else None
                slot_end = format_date(last_day) if last_day is not None else ""
                if slot_start in excluded_days:
                    logger.debug("EXDATE removes %s from %s", slot_start, record.uid)
                    continue
            else:
                try:
                    instant = cursor.astimezone(UTC)
                except OverflowError:
                    break
                slot_start = format_instant(instant)
                slot_stop = _shifted(instant, duration) if duration > timedelta(0) else None
                slot_end = format_instant(slot_stop) if slot_stop is not None else ""
                if instant.replace(second=0, microsecond=0) in excluded_minutes:
                    logger.debug("EXDATE removes %s from %s", slot_start, record.uid)
                    continue

            exception = exception_index.get(slot_start)
            if exception is not None:
                occurrence = self._override(exception, slot_start)
                if occurrence is not None:
                    occurrences.append(occurrence)
                continue

            occurrences.append(LiteOccurrence(start=slot_start, end=slot_end, **text))

        logger.debug(
            "Expanded %s (%s): %d occurrences", record.uid or "<no-uid>", spec.freq, len(occurrences)
        )
        return occurrences

    def _override(self, exception: LiteEventRecord, slot_start: str) -> Optional[LiteOccurrence]:
        """Return the modified instance for a slot, or None if it was cancelled."""
        if self.classifier.is_deleted(exception):
            logger.debug("Modified instance at %s is cancelled; slot suppressed", slot_start)
            return None
        occurrence = self.builder.from_record(exception)
        if occurrence is not None:
            logger.debug("RECURRENCE-ID override at %s -> %s", slot_start, occurrence.start)
        return occurrence

    def _iter_positions(
        self,
        first: datetime,
        spec: LiteRRuleSpec,
        weekdays: frozenset[int],
        horizon: datetime,
    ) -> Iterator[datetime]:
        """Yield candidate cursor positions in ascending order up to the horizon.

        Positions come from dateutil's rrule built without COUNT or UNTIL;
        the caller applies both because excluded slots must not use up the
        count. Stepping is wall-clock in the cursor's zone, weeks start on
        Monday, and a 31st or Feb 29 missing from a period skips that period.
        """
        if first > horizon:
            return

        if not spec.is_supported:
            # Unsupported frequencies produce at most the first position
            logger.debug("Unsupported RRULE frequency %r; stopping after first position", spec.freq)
            yield first
            return

        positions = iter(
            rrule(
                RRULE_FREQUENCIES[spec.freq],
                dtstart=first,
                interval=spec.interval,
                byweekday=sorted(weekdays) or None,
                wkst=MO,
                cache=False,
            )
        )
        while True:
            try:
                cursor = next(positions)
            except StopIteration:
                return
            except (OverflowError, ValueError) as exc:
                logger.debug(
                    "Stopping %s expansion at the last representable date: %s", spec.freq, exc
                )
                return
            if cursor > horizon:
                return
            yield cursor

    def _resolve_until(self, until: Optional[str], start_zone: Optional[str]) -> Optional[datetime]:
        """Resolve UNTIL to an aware datetime; local values use the DTSTART zone."""
        if not until:
            return None
        resolved = self.normalizer.localize(until, start_zone)
        if resolved is None:
            logger.debug("Ignoring unparseable RRULE UNTIL=%r", until)
        return resolved

    def _collect_exdates(
        self, record: LiteEventRecord, start_zone: Optional[str]
    ) -> tuple[set[str], set[datetime]]:
        """Return excluded calendar days and excluded UTC minutes."""
        days: set[str] = set()
        minutes: set[datetime] = set()

        for value, tzid in record.properties.get_all_with_zones("EXDATE"):
            for part in value.split(","):
                normalized = self.normalizer.normalize(part.strip(), tzid or start_zone)
                if not normalized:
                    continue
                days.add(normalized[:10])
                minutes.add(parse_canonical(normalized).replace(second=0, microsecond=0))

        return days, minutes
