"""HTTP client for downloading ICS calendar files - familycal_lite."""

import logging
from typing import Any, NoReturn, Optional
from urllib.parse import urlparse

import httpx

from .config_manager import DEFAULT_REQUEST_TIMEOUT, get_config_value
from .lite_models import LiteICSResponse, LiteICSSource

logger = logging.getLogger(__name__)

# Some calendar hosts (Office365 in particular) reject obviously automated clients
DEFAULT_BROWSER_HEADERS: dict[str, str] = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Accept": "text/calendar, text/plain, application/octet-stream, */*",
    "Accept-Language": "en-US,en;q=0.9",
    "Accept-Encoding": "gzip, deflate",
    "Cache-Control": "no-cache",
}


class LiteICSFetchError(Exception):
    """Base exception for ICS fetch errors."""


class LiteICSAuthError(LiteICSFetchError):
    """Authentication error during ICS fetch."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class LiteICSNetworkError(LiteICSFetchError):
    """Network error during ICS fetch."""


class LiteICSTimeoutError(LiteICSFetchError):
    """Timeout error during ICS fetch."""


def _raise_client_not_initialized() -> NoReturn:
    raise LiteICSFetchError("HTTP client not initialized")


def validate_source_url(url: str) -> Optional[str]:
    """Check that a URL is an absolute HTTP(S) URL.

    Returns:
        None when the URL is usable, otherwise a short reason
    """
    try:
        parsed = urlparse(url)
    except ValueError as e:
        return f"Malformed URL: {e}"

    if parsed.scheme not in ("http", "https"):
        return f"Invalid URL scheme: {parsed.scheme or '<none>'}"
    if not parsed.hostname:
        return "URL missing hostname"
    return None


class LiteICSFetcher:
    """Async HTTP client for downloading ICS calendar files.

    One GET per call; there is no retry. Pass ``client`` to reuse an existing
    ``httpx.AsyncClient`` (the fetcher will then leave it open on exit).
    """

    def __init__(self, settings: Any = None, client: Optional[httpx.AsyncClient] = None) -> None:
        self.settings = settings
        self.client: Optional[httpx.AsyncClient] = client
        self._owns_client = client is None

        logger.debug("Lite ICS fetcher initialized (external client: %s)", not self._owns_client)

    async def __aenter__(self) -> "LiteICSFetcher":
        await self._ensure_client()
        return self

    async def __aexit__(self, _exc_type: Any, _exc_val: Any, _exc_tb: Any) -> None:
        await self._close_client()

    async def _close_client(self) -> None:
        """Close HTTP client if this fetcher created it."""
        if self.client is not None and self._owns_client:
            if not self.client.is_closed:
                await self.client.aclose()
                logger.debug("Closed HTTP client")
            self.client = None

    async def _ensure_client(self) -> None:
        if self.client is None or (self._owns_client and self.client.is_closed):
            request_timeout = float(
                get_config_value(self.settings, "request_timeout", DEFAULT_REQUEST_TIMEOUT)
            )
            timeout = httpx.Timeout(connect=10.0, read=request_timeout, write=10.0, pool=30.0)
            self.client = httpx.AsyncClient(
                timeout=timeout,
                follow_redirects=True,
                headers=DEFAULT_BROWSER_HEADERS,
            )
            self._owns_client = True

    async def fetch_ics(self, source: LiteICSSource) -> LiteICSResponse:
        """Download ICS content from a source.

        Args:
            source: URL plus optional auth and custom headers

        Returns:
            LiteICSResponse. Non-2xx statuses give ``success=False`` with the
            HTTP reason phrase as ``error_message``; an invalid URL gives
            ``success=False`` without any request being made.

        Raises:
            LiteICSAuthError: HTTP 401/403
            LiteICSTimeoutError: The request timed out
            LiteICSNetworkError: DNS, connection or TLS failures
            LiteICSFetchError: Any other transport failure
        """
        problem = validate_source_url(source.url)
        if problem is not None:
            logger.warning("Refusing to fetch %r: %s", source.url, problem)
            return LiteICSResponse(success=False, error_message=problem)

        await self._ensure_client()
        if self.client is None:
            _raise_client_not_initialized()

        headers = {**DEFAULT_BROWSER_HEADERS, **source.auth.get_headers(), **source.custom_headers}

        try:
            logger.debug("Fetching ICS from %s", source.url)
            response = await self.client.get(source.url, headers=headers, timeout=source.timeout)
        except httpx.TimeoutException as e:
            logger.exception("Timeout fetching ICS from %s", source.url)
            raise LiteICSTimeoutError(f"Request timeout after {source.timeout}s") from e
        except httpx.NetworkError as e:
            logger.exception("Network error fetching ICS from %s", source.url)
            raise LiteICSNetworkError(f"Network error: {e}") from e
        except httpx.HTTPError as e:
            logger.exception("Unexpected error fetching ICS from %s", source.url)
            raise LiteICSFetchError(f"Unexpected error: {e}") from e

        return self._create_response(response)

    def _create_response(self, http_response: httpx.Response) -> LiteICSResponse:
        headers = dict(http_response.headers)
        status = http_response.status_code
        reason = http_response.reason_phrase or f"HTTP {status}"

        if status in (401, 403):
            logger.warning("Calendar host refused access (%d %s)", status, reason)
            raise LiteICSAuthError(reason, status)

        if not http_response.is_success:
            logger.warning("Calendar host returned %d %s", status, reason)
            return LiteICSResponse(
                success=False,
                status_code=status,
                error_message=reason,
                headers=headers,
            )

        content = http_response.text
        content_type = headers.get("content-type", "").lower()
        if content_type and not any(ct in content_type for ct in ("text/calendar", "text/plain")):
            logger.warning("Unexpected content type: %s", content_type)
        if content and "BEGIN:VCALENDAR" not in content and "BEGIN:VEVENT" not in content:
            logger.warning("Content does not appear to be valid ICS format")

        logger.debug("Fetched ICS content (%d bytes)", len(content))
        return LiteICSResponse(success=True, content=content, status_code=status, headers=headers)
