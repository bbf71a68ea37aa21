"""Line unfolding and VEVENT property grouping - familycal_lite.

Turns raw ICS text into per-event property stores without interpreting the
values. Base events and modified instances (RECURRENCE-ID) are separated
here so the recurrence expander can look exceptions up by UID.
"""

import logging
import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import ClassVar, Optional

logger = logging.getLogger(__name__)

_TZID_RE = re.compile(r"TZID=([^:;]+)", re.IGNORECASE)
_LINE_BREAK_RE = re.compile(r"\r\n|\r|\n")

# Calendar-level properties kept for the parse result
CALENDAR_PROPERTY_KEYS = frozenset({"X-WR-CALNAME", "X-WR-TIMEZONE", "PRODID", "VERSION", "METHOD"})


def unfold_ics_lines(ics_content: str) -> list[str]:
    """Reassemble folded ICS lines into logical property lines.

    A physical line starting with a space or tab continues the previous
    logical line: exactly one leading whitespace character is removed and the
    rest is appended with no separator. CRLF, LF and bare CR line endings
    are all accepted.

    Args:
        ics_content: Raw ICS text

    Returns:
        Logical lines in document order
    """
    unfolded: list[str] = []
    current = ""

    for line in _LINE_BREAK_RE.split(ics_content):
        if line.startswith((" ", "\t")):
            current += line[1:]
            continue
        if current:
            unfolded.append(current)
        current = line.strip()

    if current:
        unfolded.append(current)

    return unfolded


class PropertyStore:
    """Key/value store for one VEVENT's properties.

    Keys are parameter-stripped property names. EXDATE, RDATE and EXRULE may
    repeat and keep every value in document order. Every other key is
    single-valued and the last occurrence wins; duplicates are not reported,
    which keeps permissive real-world feeds parseable.

    The TZID parameter of a property, when present, is kept as its zone
    context. Multi-valued keys remember the zone of each entry.
    """

    MULTI_VALUED_KEYS: ClassVar[frozenset[str]] = frozenset({"EXDATE", "RDATE", "EXRULE"})

    def __init__(self) -> None:
        self._values: dict[str, str] = {}
        self._multi: dict[str, list[tuple[str, Optional[str]]]] = {}
        self.timezones: dict[str, str] = {}

    def add(self, key: str, value: str, tzid: Optional[str] = None) -> None:
        """Record a property value.

        Args:
            key: Parameter-stripped property name
            value: Raw property value
            tzid: TZID parameter value, if the property carried one
        """
        if key in self.MULTI_VALUED_KEYS:
            self._multi.setdefault(key, []).append((value, tzid))
        else:
            self._values[key] = value
        if tzid:
            self.timezones[key] = tzid
        elif key not in self.MULTI_VALUED_KEYS:
            # The zone follows the value that won
            self.timezones.pop(key, None)

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Return a single-valued property (or the last multi-valued entry)."""
        if key in self._values:
            return self._values[key]
        entries = self._multi.get(key)
        if entries:
            return entries[-1][0]
        return default

    def get_all(self, key: str) -> list[str]:
        """Return every value recorded for ``key`` in document order."""
        if key in self._multi:
            return [value for value, _ in self._multi[key]]
        if key in self._values:
            return [self._values[key]]
        return []

    def get_all_with_zones(self, key: str) -> list[tuple[str, Optional[str]]]:
        """Return (value, tzid) pairs for ``key`` in document order."""
        if key in self._multi:
            return list(self._multi[key])
        if key in self._values:
            return [(self._values[key], self.timezones.get(key))]
        return []

    def zone(self, key: str) -> Optional[str]:
        """Return the zone context recorded for ``key``."""
        return self.timezones.get(key)

    def keys(self) -> list[str]:
        return [*self._values, *self._multi]

    def __contains__(self, key: object) -> bool:
        return key in self._values or key in self._multi

    def __len__(self) -> int:
        return len(self._values) + len(self._multi)

    def __repr__(self) -> str:
        return f"PropertyStore(keys={self.keys()!r})"


@dataclass
class LiteEventRecord:
    """Raw properties of one VEVENT plus its identity."""

    properties: PropertyStore = field(default_factory=PropertyStore)

    @property
    def uid(self) -> Optional[str]:
        return self.properties.get("UID") or None

    @property
    def recurrence_id(self) -> Optional[str]:
        return self.properties.get("RECURRENCE-ID") or None

    @property
    def is_exception(self) -> bool:
        """True for modified instances of a recurring event."""
        return self.recurrence_id is not None

    @property
    def rrule(self) -> Optional[str]:
        return self.properties.get("RRULE") or None

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.properties.get(key, default)

    def zone(self, key: str) -> Optional[str]:
        return self.properties.zone(key)


@dataclass
class GroupedEvents:
    """Output of the grouping pass."""

    base_events: list[LiteEventRecord] = field(default_factory=list)
    exceptions: dict[str, list[LiteEventRecord]] = field(default_factory=dict)
    calendar_properties: dict[str, str] = field(default_factory=dict)
    dropped_exceptions: int = 0
    skipped_lines: int = 0

    @property
    def exception_count(self) -> int:
        return sum(len(records) for records in self.exceptions.values())

    def exceptions_for(self, uid: Optional[str]) -> list[LiteEventRecord]:
        """Return modified instances recorded for a base event UID."""
        if not uid:
            return []
        return self.exceptions.get(uid, [])


def split_property_line(line: str) -> Optional[tuple[str, str, Optional[str]]]:
    """Split a content line into (base key, value, tzid).

    Returns None for malformed lines with no usable colon.
    """
    colon_idx = line.find(":")
    if colon_idx <= 0:
        return None

    key = line[:colon_idx].strip()
    value = line[colon_idx + 1:].strip()
    base_key = key.split(";", 1)[0].strip().upper()
    if not base_key:
        return None

    tzid = None
    if ";" in key:
        match = _TZID_RE.search(key)
        if match:
            tzid = match.group(1).strip().strip('"') or None

    return base_key, value, tzid


def _iter_event_blocks(lines: Iterable[str], grouped: GroupedEvents) -> Iterator[LiteEventRecord]:
    """Yield one LiteEventRecord per VEVENT block."""
    current: Optional[LiteEventRecord] = None
    nested_depth = 0

    for line in lines:
        upper = line.upper()

        if upper.startswith("BEGIN:VEVENT"):
            current = LiteEventRecord()
            nested_depth = 0
            continue

        if upper.startswith("END:VEVENT"):
            if current is not None:
                yield current
            current = None
            nested_depth = 0
            continue

        if current is None:
            parsed = split_property_line(line)
            if parsed and parsed[0] in CALENDAR_PROPERTY_KEYS:
                grouped.calendar_properties[parsed[0]] = parsed[1]
            continue

        # Components nested inside the event (VALARM, ...) are not event properties
        if upper.startswith("BEGIN:"):
            nested_depth += 1
            continue
        if upper.startswith("END:"):
            nested_depth = max(nested_depth - 1, 0)
            continue
        if nested_depth:
            continue

        parsed = split_property_line(line)
        if parsed is None:
            grouped.skipped_lines += 1
            logger.debug("Skipping malformed ICS line: %r", line[:80])
            continue

        key, value, tzid = parsed
        current.properties.add(key, value, tzid)


def group_event_records(lines: Iterable[str]) -> GroupedEvents:
    """Partition unfolded lines into base events and exception instances.

    Args:
        lines: Logical lines from unfold_ics_lines()

    Returns:
        GroupedEvents with base events in document order and exceptions
        indexed by UID
    """
    grouped = GroupedEvents()

    for record in _iter_event_blocks(lines, grouped):
        if record.is_exception:
            uid = record.uid
            if not uid:
                grouped.dropped_exceptions += 1
                logger.debug("Dropping RECURRENCE-ID instance without UID")
                continue
            grouped.exceptions.setdefault(uid, []).append(record)
        else:
            grouped.base_events.append(record)

    logger.debug(
        "Grouped %d base events and %d exception instances",
        len(grouped.base_events),
        grouped.exception_count,
    )
    return grouped
