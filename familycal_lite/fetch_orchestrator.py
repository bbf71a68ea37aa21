"""Fetch-then-parse orchestration for one calendar request - familycal_lite."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

import httpx

from .config_manager import DEFAULT_REQUEST_TIMEOUT, get_config_value
from .lite_fetcher import LiteICSFetcher, LiteICSFetchError
from .lite_models import LiteICSAuth, LiteICSParseResult, LiteICSSource, LiteOccurrence
from .lite_parser import LiteICSParser

logger = logging.getLogger(__name__)

MISSING_URL_MESSAGE = "No URL provided"
FETCH_ERROR_PREFIX = "Error fetching data: "


class FeedOutcomeKind(str, Enum):
    """How a calendar request ended."""

    OK = "ok"
    MISSING_URL = "missing_url"
    FETCH_FAILED = "fetch_failed"


_HTTP_STATUS = {
    FeedOutcomeKind.OK: 200,
    FeedOutcomeKind.MISSING_URL: 400,
    FeedOutcomeKind.FETCH_FAILED: 502,
}


@dataclass
class CalendarFeedOutcome:
    """Tagged result of a calendar request.

    Only ``ok`` outcomes carry events; the others carry a reason. Text is
    produced by to_body() at the serialization edge.
    """

    kind: FeedOutcomeKind
    events: list[LiteOccurrence] = field(default_factory=list)
    reason: str | None = None
    parse_result: LiteICSParseResult | None = None

    @classmethod
    def ok(cls, parse_result: LiteICSParseResult) -> CalendarFeedOutcome:
        return cls(FeedOutcomeKind.OK, events=list(parse_result.events), parse_result=parse_result)

    @classmethod
    def missing_url(cls) -> CalendarFeedOutcome:
        return cls(FeedOutcomeKind.MISSING_URL)

    @classmethod
    def fetch_failed(cls, reason: str) -> CalendarFeedOutcome:
        return cls(FeedOutcomeKind.FETCH_FAILED, reason=reason)

    @property
    def is_ok(self) -> bool:
        return self.kind is FeedOutcomeKind.OK

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS[self.kind]

    def to_body(self) -> list[dict[str, str]] | str:
        """Serialize: an occurrence list for ``ok``, otherwise a message."""
        if self.kind is FeedOutcomeKind.MISSING_URL:
            return MISSING_URL_MESSAGE
        if self.kind is FeedOutcomeKind.FETCH_FAILED:
            return f"{FETCH_ERROR_PREFIX}{self.reason or 'unknown error'}"
        return [occurrence.to_dict() for occurrence in self.events]


class CalendarFeedOrchestrator:
    """Validate the request, fetch the feed once, then run the engine.

    Fetch failures short-circuit; the engine never sees a failed response.
    """

    def __init__(
        self,
        settings: Any = None,
        parser: LiteICSParser | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize orchestrator.

        Args:
            settings: Configuration dict or attribute object
            parser: Engine instance (built from settings when omitted)
            client: Optional shared httpx client, left open after each request
        """
        self.settings = settings
        self.parser = parser or LiteICSParser(settings)
        self.client = client
        self.request_timeout = int(
            get_config_value(settings, "request_timeout", DEFAULT_REQUEST_TIMEOUT)
        )
        self.auth = LiteICSAuth.from_settings(settings)

    def build_source(self, url: str) -> LiteICSSource:
        """Describe the request; credentials only go to configured auth hosts."""
        auth = self.auth if self.auth.applies_to(url) else LiteICSAuth()
        return LiteICSSource(url=url, auth=auth, timeout=self.request_timeout)

    async def run(self, url: str | None, now: datetime | None = None) -> CalendarFeedOutcome:
        """Serve one calendar request.

        Args:
            url: Calendar feed URL from the request; None or blank is rejected
            now: Reference time for the engine (defaults to current time)

        Returns:
            CalendarFeedOutcome tagged ok / missing_url / fetch_failed
        """
        if url is None or not url.strip():
            logger.info("Calendar request without url parameter")
            return CalendarFeedOutcome.missing_url()

        source = self.build_source(url.strip())

        try:
            async with LiteICSFetcher(self.settings, client=self.client) as fetcher:
                response = await fetcher.fetch_ics(source)
        except LiteICSFetchError as exc:
            logger.exception("Fetching %s failed", source.url)
            return CalendarFeedOutcome.fetch_failed(str(exc))

        if not response.success:
            logger.warning(
                "Fetching %s failed: %s (status %s)",
                source.url,
                response.error_message,
                response.status_code,
            )
            return CalendarFeedOutcome.fetch_failed(response.error_message or "unknown error")

        result = self.parser.parse(response.content or "", now=now)
        logger.info(
            "Served %d of %d occurrences from %s",
            len(result.events),
            result.occurrence_count,
            source.url,
        )
        return CalendarFeedOutcome.ok(result)
