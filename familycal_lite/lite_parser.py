"""ICS feed engine - familycal_lite.

Runs the full pipeline over one calendar text: unfold, group, classify
deletions, expand recurrences, then select the upcoming window.
"""

import logging
from datetime import datetime
from typing import Any, Optional

from .event_filter import ResultSelector
from .lite_datetime_utils import LiteDateTimeNormalizer
from .lite_deletion import LiteDeletionClassifier
from .lite_event_parser import GroupedEvents, group_event_records, unfold_ics_lines
from .lite_models import LiteICSParseResult, LiteOccurrence
from .lite_occurrence import LiteOccurrenceBuilder
from .lite_rrule_expander import (
    LiteRRuleExpander,
    LiteRRuleExpansionError,
    RRuleExpanderConfig,
)
from .timezone_utils import now_utc

logger = logging.getLogger(__name__)


class LiteICSParser:
    """Turn raw RFC 5545 text into concrete occurrences.

    The parser holds configuration only; every call to parse() builds its own
    working structures and resets the unknown-zone warning set, so one
    instance can serve concurrent requests.
    """

    def __init__(self, settings: Any = None) -> None:
        """Initialize ICS parser.

        Args:
            settings: dict or attribute object; see ConfigManager for keys
        """
        self.settings = settings
        self.normalizer = LiteDateTimeNormalizer.from_settings(settings)
        self.classifier = LiteDeletionClassifier.from_settings(settings)
        self.builder = LiteOccurrenceBuilder(self.normalizer)
        self.rrule_expander = LiteRRuleExpander(
            config=RRuleExpanderConfig.from_settings(settings),
            normalizer=self.normalizer,
            classifier=self.classifier,
        )
        self.selector = ResultSelector.from_settings(settings)

        logger.debug("Lite ICS parser initialized")

    def expand_all(
        self, ics_content: str, now: Optional[datetime] = None
    ) -> tuple[list[LiteOccurrence], LiteICSParseResult]:
        """Produce every occurrence in the feed, unfiltered and unsorted.

        Returns:
            (occurrences in document/generation order, result carrying the
            statistics; its ``events`` is left empty)
        """
        result = LiteICSParseResult(success=True)
        if not ics_content or not ics_content.strip():
            logger.warning("Empty ICS content provided")
            result.warnings.append("Empty ICS content")
            return [], result

        self.normalizer.reset_zone_warnings()
        reference = now or now_utc()
        grouped = group_event_records(unfold_ics_lines(ics_content))
        self._apply_calendar_properties(grouped, result)

        result.total_components = len(grouped.base_events) + grouped.exception_count
        result.exception_count = grouped.exception_count
        if grouped.skipped_lines:
            result.warnings.append(f"Skipped {grouped.skipped_lines} malformed lines")
        if grouped.dropped_exceptions:
            result.warnings.append(
                f"Dropped {grouped.dropped_exceptions} modified instances without UID"
            )

        occurrences: list[LiteOccurrence] = []
        for record in grouped.base_events:
            if self.classifier.is_deleted(record):
                result.deleted_event_count += 1
                continue

            result.event_count += 1

            if record.rrule:
                result.recurring_event_count += 1
                try:
                    expanded = self.rrule_expander.expand(
                        record, grouped.exceptions_for(record.uid), now=reference
                    )
                except LiteRRuleExpansionError as exc:
                    logger.warning("Skipping event %s: %s", record.uid or "<no-uid>", exc)
                    result.warnings.append(f"Skipped event {record.uid or '<no-uid>'}: {exc}")
                    continue
                occurrences.extend(expanded)
                continue

            occurrence = self.builder.from_record(record)
            if occurrence is not None:
                occurrences.append(occurrence)

        result.occurrence_count = len(occurrences)
        logger.debug(
            "Parsed %d components: %d events (%d recurring, %d deleted) -> %d occurrences",
            result.total_components,
            result.event_count,
            result.recurring_event_count,
            result.deleted_event_count,
            result.occurrence_count,
        )
        return occurrences, result

    def parse(self, ics_content: str, now: Optional[datetime] = None) -> LiteICSParseResult:
        """Parse a feed and select the upcoming occurrences.

        Args:
            ics_content: Raw ICS text (VCALENDAR wrapper optional)
            now: Reference time for the horizon and "yesterday" cutoff

        Returns:
            Parse result whose ``events`` holds the selected occurrences
        """
        reference = now or now_utc()
        occurrences, result = self.expand_all(ics_content, reference)
        result.events = self.selector.select(occurrences, reference)
        return result

    @staticmethod
    def _apply_calendar_properties(grouped: GroupedEvents, result: LiteICSParseResult) -> None:
        props = grouped.calendar_properties
        result.calendar_name = props.get("X-WR-CALNAME") or None
        result.timezone = props.get("X-WR-TIMEZONE") or None
        result.prodid = props.get("PRODID") or None
        result.ics_version = props.get("VERSION") or None


def parse_ics(
    ics_content: str, settings: Any = None, now: Optional[datetime] = None
) -> list[LiteOccurrence]:
    """Return every occurrence the feed produces, before selection."""
    occurrences, _ = LiteICSParser(settings).expand_all(ics_content, now)
    return occurrences


def build_calendar_feed(
    ics_content: str, settings: Any = None, now: Optional[datetime] = None
) -> list[dict[str, str]]:
    """Run the engine end to end and serialize the selected occurrences."""
    return LiteICSParser(settings).parse(ics_content, now).to_body()
