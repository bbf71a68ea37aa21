"""familycal_lite.server: aiohttp HTTP surface for the calendar feed engine.

Routes:
- GET /api/calendar?url=<feed url>  fetch, expand and select occurrences
- GET /api/health                   liveness and logging levels
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx
from aiohttp import web

from . import __version__
from .config_manager import (
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_WEB_HOST,
    DEFAULT_WEB_PORT,
    get_config_value,
)
from .fetch_orchestrator import CalendarFeedOrchestrator
from .lite_fetcher import DEFAULT_BROWSER_HEADERS
from .lite_logging import configure_lite_logging, get_logging_status
from .timezone_utils import now_utc

logger = logging.getLogger(__name__)

ORCHESTRATOR_KEY = web.AppKey("orchestrator", CalendarFeedOrchestrator)
HTTP_CLIENT_KEY = web.AppKey("http_client", httpx.AsyncClient)


def _build_http_client(config: Any) -> httpx.AsyncClient:
    request_timeout = float(get_config_value(config, "request_timeout", DEFAULT_REQUEST_TIMEOUT))
    return httpx.AsyncClient(
        timeout=httpx.Timeout(connect=10.0, read=request_timeout, write=10.0, pool=30.0),
        follow_redirects=True,
        headers=DEFAULT_BROWSER_HEADERS,
    )


async def calendar_handler(request: web.Request) -> web.Response:
    """Serve the upcoming occurrences of the feed named by ``?url=``."""
    orchestrator = request.app[ORCHESTRATOR_KEY]
    outcome = await orchestrator.run(request.query.get("url"))

    body = outcome.to_body()
    if isinstance(body, str):
        return web.Response(text=body, status=outcome.http_status)
    return web.json_response(body, status=outcome.http_status)


async def health_handler(_request: web.Request) -> web.Response:
    """Health check endpoint for monitoring."""
    return web.json_response(
        {
            "status": "ok",
            "version": __version__,
            "server_time_iso": now_utc().isoformat(),
            "logging": get_logging_status(),
        }
    )


def create_app(config: Any = None, client: httpx.AsyncClient | None = None) -> web.Application:
    """Create the aiohttp application.

    Args:
        config: dict or attribute object (see ConfigManager for keys)
        client: Optional httpx client to use for every fetch. When omitted a
            client is opened on startup and closed on cleanup.
    """
    app = web.Application()

    async def _http_client_ctx(app: web.Application) -> AsyncIterator[None]:
        owned = client is None
        http_client = client if client is not None else _build_http_client(config)
        app[HTTP_CLIENT_KEY] = http_client
        app[ORCHESTRATOR_KEY] = CalendarFeedOrchestrator(config, client=http_client)
        logger.debug("HTTP client ready (owned: %s)", owned)
        yield
        if owned:
            await http_client.aclose()
            logger.debug("HTTP client closed")

    app.cleanup_ctx.append(_http_client_ctx)
    app.router.add_get("/api/calendar", calendar_handler)
    app.router.add_get("/api/health", health_handler)
    return app


def start_server(config: Any = None) -> None:
    """Run the HTTP server until interrupted.

    Args:
        config: dict or attribute object with keys:
            - server_bind: host to bind (str, default 127.0.0.1)
            - server_port: port (int, default 8080)
            - debug: enable debug logging for familycal_lite (bool)
            - request_timeout, max_results, horizon_days, ... (engine settings)
    """
    configure_lite_logging(debug_mode=bool(get_config_value(config, "debug", False)))

    host = get_config_value(config, "server_bind", DEFAULT_WEB_HOST)
    port = int(get_config_value(config, "server_port", DEFAULT_WEB_PORT))

    logger.info("Starting familycal_lite %s on %s:%d", __version__, host, port)
    web.run_app(create_app(config), host=host, port=port, print=None)
    logger.info("Server shutdown complete")
