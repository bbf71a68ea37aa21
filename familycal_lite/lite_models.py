"""Data models for ICS calendar processing - familycal_lite version."""

import base64
import logging
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .lite_datetime_utils import CANONICAL_DATE_RE, CANONICAL_INSTANT_RE, is_date_only
from .timezone_utils import now_utc as _now_utc

logger = logging.getLogger(__name__)


class LiteAuthType(str, Enum):
    """How a private calendar feed is authenticated."""

    NONE = "none"
    BASIC = "basic"
    BEARER = "bearer"


class LiteICSAuth(BaseModel):
    """Credentials sent with feed requests to the listed hosts only.

    The calendar URL comes from the caller, so credentials are never attached
    to a host outside ``hosts``.
    """

    type: LiteAuthType = LiteAuthType.NONE
    username: Optional[str] = None
    password: Optional[str] = None
    bearer_token: Optional[str] = None
    hosts: tuple[str, ...] = ()

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_settings(cls, settings: Any) -> "LiteICSAuth":
        from .config_manager import get_config_value

        hosts = get_config_value(settings, "auth_hosts", ()) or ()
        auth = cls(
            type=get_config_value(settings, "auth_type", LiteAuthType.NONE),
            username=get_config_value(settings, "auth_username"),
            password=get_config_value(settings, "auth_password"),
            bearer_token=get_config_value(settings, "bearer_token"),
            hosts=tuple(host.lower() for host in hosts),
        )
        if auth.type != LiteAuthType.NONE:
            if not auth.get_headers():
                logger.warning("Feed auth %s configured without credentials", auth.type.value)
            elif not auth.hosts:
                logger.warning("Feed auth configured but no auth hosts; credentials never sent")
        return auth

    def applies_to(self, url: str) -> bool:
        """True when ``url`` points at one of the configured auth hosts."""
        host = (urlparse(url).hostname or "").lower()
        return bool(host) and host in self.hosts

    def get_headers(self) -> dict[str, str]:
        """Authorization header for the configured scheme, empty when incomplete."""
        if self.type == LiteAuthType.BASIC and self.username and self.password:
            credentials = f"{self.username}:{self.password}".encode()
            return {"Authorization": f"Basic {base64.b64encode(credentials).decode()}"}
        if self.type == LiteAuthType.BEARER and self.bearer_token:
            return {"Authorization": f"Bearer {self.bearer_token}"}
        return {}


class LiteICSSource(BaseModel):
    """One feed request: URL, credentials, timeout and extra headers."""

    url: str = Field(..., description="ICS calendar URL")
    auth: LiteICSAuth = Field(
        default_factory=LiteICSAuth, description="Credentials for this request"
    )
    timeout: int = Field(default=30, description="HTTP timeout in seconds")
    custom_headers: dict[str, str] = Field(default_factory=dict, description="Custom HTTP headers")

    model_config = ConfigDict(use_enum_values=True)


class LiteICSResponse(BaseModel):
    """Response from ICS fetch operation."""

    success: bool
    content: Optional[str] = None
    status_code: Optional[int] = None
    headers: dict[str, str] = Field(default_factory=dict)
    error_message: Optional[str] = None
    fetch_time: datetime = Field(default_factory=_now_utc)

    @property
    def content_length(self) -> Optional[int]:
        """Get content length of buffered content."""
        if self.content is None:
            return None
        return len(self.content.encode("utf-8"))


class LiteOccurrence(BaseModel):
    """A concrete event occurrence ready for rendering.

    ``start`` and ``end`` are canonical strings: ``YYYY-MM-DD`` for all-day
    occurrences or ``YYYY-MM-DDTHH:MM:SSZ`` for timed ones. Optional fields
    are never empty strings: empty input is stored as None and omitted when
    serialized.
    """

    start: str = Field(..., min_length=1, description="Occurrence start")
    end: Optional[str] = Field(default=None, description="Occurrence end (inclusive for all-day)")
    title: Optional[str] = Field(default=None, description="Cleaned SUMMARY")
    description: Optional[str] = Field(default=None, description="Cleaned DESCRIPTION")
    address: Optional[str] = Field(default=None, description="Cleaned LOCATION")

    model_config = ConfigDict(frozen=True)

    @field_validator("end", "title", "description", "address", mode="before")
    @classmethod
    def _empty_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value:
            return None
        return value

    @field_validator("start", "end")
    @classmethod
    def _canonical_boundary(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not (
            CANONICAL_INSTANT_RE.match(value) or CANONICAL_DATE_RE.match(value)
        ):
            raise ValueError(f"Expected YYYY-MM-DD or YYYY-MM-DDTHH:MM:SSZ, got {value!r}")
        return value

    @property
    def is_all_day(self) -> bool:
        """True when the occurrence uses date-only boundaries."""
        return is_date_only(self.start)

    def to_dict(self) -> dict[str, str]:
        """Serialize to the output contract, omitting absent fields."""
        return self.model_dump(exclude_none=True)


class LiteICSParseResult(BaseModel):
    """Result of ICS parsing operation."""

    success: bool
    events: list[LiteOccurrence] = Field(default_factory=list, description="Selected occurrences")
    calendar_name: Optional[str] = None
    timezone: Optional[str] = None

    # Parse statistics
    total_components: int = 0
    event_count: int = 0
    recurring_event_count: int = 0
    exception_count: int = 0
    deleted_event_count: int = 0
    occurrence_count: int = 0

    # Error information
    error_message: Optional[str] = None
    warnings: list[str] = Field(default_factory=list)

    # Parsing metadata
    parse_time: datetime = Field(default_factory=_now_utc)
    ics_version: Optional[str] = None
    prodid: Optional[str] = None

    def to_body(self) -> list[dict[str, str]]:
        """Serialize selected occurrences for a response body."""
        return [occurrence.to_dict() for occurrence in self.events]
