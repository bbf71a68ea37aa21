"""Occurrence filtering and windowing for familycal_lite."""

from __future__ import annotations

import datetime
import logging
from collections.abc import Iterable
from typing import Any

from .lite_datetime_utils import parse_canonical
from .lite_models import LiteOccurrence
from .timezone_utils import get_timezone, now_utc

logger = logging.getLogger(__name__)

DEFAULT_MAX_RESULTS = 25


def end_of_previous_day(now: datetime.datetime, tz: datetime.tzinfo) -> datetime.datetime:
    """Return the last instant of the calendar day before ``now`` in ``tz``."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=datetime.timezone.utc)
    local_now = now.astimezone(tz)
    yesterday = local_now.date() - datetime.timedelta(days=1)
    return datetime.datetime.combine(yesterday, datetime.time.max, tzinfo=tz)


class ResultSelector:
    """Select the upcoming occurrences to present.

    Keeps occurrences that end after the end of yesterday, orders them by
    start and truncates the list.
    """

    def __init__(self, max_results: int = DEFAULT_MAX_RESULTS, timezone: str | None = None):
        """Initialize selector.

        Args:
            max_results: Maximum number of occurrences returned
            timezone: Zone whose calendar day defines "yesterday" (default UTC)
        """
        self.max_results = max_results
        self.tz = get_timezone(timezone)

    @classmethod
    def from_settings(cls, settings: Any) -> ResultSelector:
        from .config_manager import get_config_value

        return cls(
            max_results=int(get_config_value(settings, "max_results", DEFAULT_MAX_RESULTS)),
            timezone=get_config_value(settings, "default_timezone"),
        )

    def cutoff(self, now: datetime.datetime) -> datetime.datetime:
        return end_of_previous_day(now, self.tz)

    def select(
        self,
        occurrences: Iterable[LiteOccurrence],
        now: datetime.datetime | None = None,
    ) -> list[LiteOccurrence]:
        """Filter, sort and truncate occurrences.

        Args:
            occurrences: Full occurrence list
            now: Reference time (defaults to now_utc())

        Returns:
            At most ``max_results`` occurrences, ascending by start
        """
        cutoff = self.cutoff(now or now_utc())

        upcoming = []
        for occurrence in occurrences:
            effective_end = parse_canonical(occurrence.end or occurrence.start)
            if effective_end > cutoff:
                upcoming.append(occurrence)

        # sorted() is stable, so same-start occurrences keep document order
        upcoming = sorted(upcoming, key=lambda occ: parse_canonical(occ.start))

        logger.debug(
            "Selected %d of %d upcoming occurrences (cutoff %s)",
            min(len(upcoming), self.max_results),
            len(upcoming),
            cutoff.isoformat(),
        )
        return upcoming[: self.max_results]
