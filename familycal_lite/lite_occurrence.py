"""Build LiteOccurrence objects from raw event records - familycal_lite."""

import logging
from datetime import timedelta
from typing import Any, Optional

from .lite_datetime_utils import (
    LiteDateTimeNormalizer,
    format_date,
    format_instant,
    is_date_only,
    parse_canonical,
    parse_ics_duration,
)
from .lite_event_parser import LiteEventRecord
from .lite_models import LiteOccurrence
from .lite_text import clean_address, clean_string

logger = logging.getLogger(__name__)


class LiteOccurrenceBuilder:
    """Turn a record's DTSTART/DTEND/SUMMARY/... into an occurrence."""

    def __init__(self, normalizer: Optional[LiteDateTimeNormalizer] = None) -> None:
        self.normalizer = normalizer or LiteDateTimeNormalizer()

    def event_bounds(self, record: LiteEventRecord) -> tuple[str, str]:
        """Return canonical (start, end) strings for a record.

        A date-only DTEND is exclusive in RFC 5545 and comes back one day
        earlier. Without DTEND, a DURATION property is applied to the start.
        Either value may be "" when absent.
        """
        start = self.normalizer.normalize(record.get("DTSTART"), record.zone("DTSTART"))

        end = ""
        if record.get("DTEND"):
            end = self.normalizer.normalize(record.get("DTEND"), record.zone("DTEND"), is_end=True)
        elif start and record.get("DURATION"):
            end = self._end_from_duration(start, record.get("DURATION"))

        return start, end

    def _end_from_duration(self, start: str, raw_duration: Optional[str]) -> str:
        duration = parse_ics_duration(raw_duration)
        if duration is None or duration <= timedelta(0):
            return ""
        begin = parse_canonical(start)
        try:
            if is_date_only(start):
                # Inclusive last day of the span
                return format_date(max(begin + duration - timedelta(days=1), begin))
            return format_instant(begin + duration)
        except OverflowError:
            logger.debug("DURATION %r runs past the representable range", raw_duration)
            return ""

    def text_fields(self, record: LiteEventRecord) -> dict[str, Any]:
        """Return sanitized title/description/address for a record."""
        return {
            "title": clean_string(record.get("SUMMARY")),
            "description": clean_string(record.get("DESCRIPTION")),
            "address": clean_address(record.get("LOCATION")),
        }

    def from_record(self, record: LiteEventRecord) -> Optional[LiteOccurrence]:
        """Build an occurrence from a record, or None when it has no start."""
        start, end = self.event_bounds(record)
        if not start:
            logger.debug("Discarding event %s without usable DTSTART", record.uid or "<no-uid>")
            return None
        return LiteOccurrence(start=start, end=end, **self.text_fields(record))
