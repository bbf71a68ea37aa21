"""
Central logging configuration for familycal_lite.

Console output goes through colorlog; third-party loggers that are chatty at
DEBUG (aiohttp, httpx, asyncio) are held at WARNING so parser diagnostics
stay readable.
"""

import logging
import os
import sys
from typing import Optional

from colorlog import ColoredFormatter

DEBUG_ENV_VAR = "FAMILYCAL_DEBUG"
LOG_LEVEL_ENV_VAR = "FAMILYCAL_LOG_LEVEL"

# HH:MM:SS  LEVEL   logger.name: message
# Only the level is colorized.
CONSOLE_FORMAT = "%(asctime)s %(log_color)s%(levelname)-7s%(reset)s %(name)s: %(message)s"
LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "bold_red",
}

_VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

NOISY_LOGGERS: dict[str, int] = {
    "aiohttp.access": logging.WARNING,
    "aiohttp.server": logging.WARNING,
    "aiohttp.web": logging.INFO,
    "aiohttp.web_log": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "asyncio": logging.WARNING,
}


def _env_debug() -> bool:
    return os.getenv(DEBUG_ENV_VAR, "").strip().lower() in ("1", "true", "yes", "on")


def init_logging(level_name: Optional[str] = None) -> None:
    """Initialize root logging to stream colorized records to stderr.

    A handler is only installed when the root logger has none, so calling
    this twice (or under pytest's caplog) does not duplicate output.
    FAMILYCAL_DEBUG forces DEBUG regardless of ``level_name``.
    """
    if _env_debug():
        level_name = "DEBUG"

    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler(stream=sys.stderr)
        handler.setFormatter(
            ColoredFormatter(CONSOLE_FORMAT, datefmt="%H:%M:%S", log_colors=LOG_COLORS)
        )
        root.addHandler(handler)

    level = logging.INFO
    if isinstance(level_name, str) and level_name.upper() in _VALID_LEVELS:
        level = getattr(logging, level_name.upper())
    root.setLevel(level)
    logging.getLogger(__name__).debug(
        "Logging initialized at level %s", logging.getLevelName(level)
    )


def configure_lite_logging(debug_mode: bool = False, force_debug: Optional[bool] = None) -> None:
    """
    Configure logger levels for familycal_lite.

    Args:
        debug_mode: Whether to enable debug logging for familycal_lite modules
        force_debug: Override debug mode setting (None to use env var detection)

    Environment Variables:
        FAMILYCAL_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        FAMILYCAL_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_log_level = os.getenv(LOG_LEVEL_ENV_VAR, "").strip().upper()

    if force_debug is not None:
        final_debug = force_debug
    elif _env_debug():
        final_debug = True
    else:
        final_debug = debug_mode

    root_level = logging.DEBUG if final_debug else logging.INFO
    if env_log_level in _VALID_LEVELS:
        root_level = getattr(logging, env_log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)

    for logger_name, level in NOISY_LOGGERS.items():
        logging.getLogger(logger_name).setLevel(level)

    logging.getLogger("familycal_lite").setLevel(logging.DEBUG if final_debug else logging.INFO)

    if final_debug:
        root_logger.info(
            "Debug logging enabled for familycal_lite; third-party debug logs suppressed"
        )


def get_logging_status() -> dict[str, str]:
    """Map key logger names to their current level names."""
    status = {"root": logging.getLevelName(logging.getLogger().level)}
    for logger_name in ("familycal_lite", "aiohttp.access", "httpx", "asyncio"):
        status[logger_name] = logging.getLevelName(logging.getLogger(logger_name).level)
    return status
