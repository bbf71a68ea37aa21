"""Deleted/cancelled event detection - familycal_lite.

Deletion is decided by an ordered list of predicates so individual
heuristics (notably the high SEQUENCE check) can be disabled or replaced
without touching the parser loop.
"""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, Optional

from .lite_event_parser import LiteEventRecord

logger = logging.getLogger(__name__)

DEFAULT_SEQUENCE_THRESHOLD = 100

VENDOR_DELETION_MARKERS = ("X-APPLE-DELETED-DATE", "X-APPLE-DELETED", "X-GOOGLE-DELETED")


@dataclass(frozen=True)
class DeletionPredicate:
    """A named deletion heuristic."""

    name: str
    check: Callable[[LiteEventRecord], bool]

    def __call__(self, record: LiteEventRecord) -> bool:
        return self.check(record)


def _upper(record: LiteEventRecord, key: str) -> str:
    return (record.get(key) or "").strip().upper()


def is_status_cancelled(record: LiteEventRecord) -> bool:
    return _upper(record, "STATUS") == "CANCELLED"


def is_method_cancel(record: LiteEventRecord) -> bool:
    return _upper(record, "METHOD") == "CANCEL"


def has_vendor_deletion_marker(record: LiteEventRecord) -> bool:
    if any(record.get(marker) for marker in VENDOR_DELETION_MARKERS):
        return True
    return _upper(record, "STATUS") == "DELETED"


def is_missing_start_and_title(record: LiteEventRecord) -> bool:
    return not record.get("DTSTART") and not record.get("SUMMARY")


def make_sequence_predicate(threshold: int = DEFAULT_SEQUENCE_THRESHOLD) -> DeletionPredicate:
    """Build the high-SEQUENCE heuristic.

    Some providers bump SEQUENCE far past normal edit counts when an event is
    removed. This is fragile: a long-lived event edited many times looks the
    same.
    """

    def _check(record: LiteEventRecord) -> bool:
        raw = (record.get("SEQUENCE") or "").strip()
        try:
            return int(raw) > threshold
        except ValueError:
            return False

    return DeletionPredicate("high-sequence", _check)


STATUS_CANCELLED = DeletionPredicate("status-cancelled", is_status_cancelled)
METHOD_CANCEL = DeletionPredicate("method-cancel", is_method_cancel)
VENDOR_MARKER = DeletionPredicate("vendor-marker", has_vendor_deletion_marker)
MISSING_START_AND_TITLE = DeletionPredicate("missing-start-and-title", is_missing_start_and_title)


def build_default_predicates(
    sequence_threshold: Optional[int] = DEFAULT_SEQUENCE_THRESHOLD,
) -> tuple[DeletionPredicate, ...]:
    """Return the default predicate chain.

    Args:
        sequence_threshold: SEQUENCE values above this mark the event deleted;
            None disables the heuristic
    """
    predicates = [STATUS_CANCELLED, METHOD_CANCEL]
    if sequence_threshold is not None:
        predicates.append(make_sequence_predicate(sequence_threshold))
    predicates.extend([VENDOR_MARKER, MISSING_START_AND_TITLE])
    return tuple(predicates)


DEFAULT_DELETION_PREDICATES = build_default_predicates()


class LiteDeletionClassifier:
    """Classify events as deleted using an ordered predicate chain.

    TRANSP:TRANSPARENT (free time) is intentionally not a deletion signal.
    """

    def __init__(self, predicates: Optional[Sequence[DeletionPredicate]] = None) -> None:
        self.predicates: tuple[DeletionPredicate, ...] = tuple(
            DEFAULT_DELETION_PREDICATES if predicates is None else predicates
        )

    @classmethod
    def from_settings(cls, settings: Any) -> "LiteDeletionClassifier":
        """Build a classifier honoring the configured SEQUENCE threshold."""
        from .config_manager import get_config_value

        threshold = get_config_value(settings, "sequence_threshold", DEFAULT_SEQUENCE_THRESHOLD)
        return cls(build_default_predicates(threshold))

    def classify(self, record: LiteEventRecord) -> Optional[str]:
        """Return the name of the first matching predicate, or None."""
        for predicate in self.predicates:
            if predicate(record):
                return predicate.name
        return None

    def is_deleted(self, record: LiteEventRecord) -> bool:
        reason = self.classify(record)
        if reason:
            logger.debug("Event %s classified deleted (%s)", record.uid or "<no-uid>", reason)
        return reason is not None
