"""Configuration management for familycal_lite."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Callable

logger = logging.getLogger(__name__)

ENV_PREFIX = "FAMILYCAL_"

DEFAULT_WEB_HOST = "127.0.0.1"
DEFAULT_WEB_PORT = 8080
DEFAULT_REQUEST_TIMEOUT = 30

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off", ""})


def parse_bool(raw: str) -> bool:
    """Interpret a yes/no style environment value.

    Raises:
        ValueError: If the value is not a recognized boolean spelling
    """
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"Not a boolean: {raw!r}")


def parse_sequence_threshold(raw: str) -> int | None:
    """Parse FAMILYCAL_SEQUENCE_THRESHOLD; ``off``/``none`` disables the check."""
    value = raw.strip().lower()
    if value in ("off", "none", "disabled"):
        return None
    return int(value)


AUTH_TYPES = ("none", "basic", "bearer")


def parse_auth_type(raw: str) -> str:
    value = raw.strip().lower()
    if value not in AUTH_TYPES:
        raise ValueError(f"Unknown auth type: {raw!r}")
    return value


def parse_host_list(raw: str) -> tuple[str, ...]:
    """Split a comma-separated host list, lowercased, blanks dropped."""
    return tuple(host.strip().lower() for host in raw.split(",") if host.strip())


def _non_empty(raw: str) -> str:
    return raw.strip()


# env var suffix -> (config key, converter)
_ENV_KEYS: dict[str, tuple[str, Callable[[str], Any]]] = {
    "WEB_HOST": ("server_bind", _non_empty),
    "WEB_PORT": ("server_port", int),
    "LOG_LEVEL": ("log_level", lambda raw: raw.strip().upper()),
    "DEBUG": ("debug", parse_bool),
    "REQUEST_TIMEOUT": ("request_timeout", int),
    "MAX_RESULTS": ("max_results", int),
    "HORIZON_DAYS": ("horizon_days", int),
    "MAX_OCCURRENCES": ("max_occurrences_per_rule", int),
    "SEQUENCE_THRESHOLD": ("sequence_threshold", parse_sequence_threshold),
    "DEFAULT_TIMEZONE": ("default_timezone", _non_empty),
    "FLOATING_TIMEZONE": ("floating_timezone", _non_empty),
    "REJECT_UNRESOLVED_ZONES": ("reject_unresolved_zones", parse_bool),
    "AUTH_TYPE": ("auth_type", parse_auth_type),
    "AUTH_USERNAME": ("auth_username", _non_empty),
    "AUTH_PASSWORD": ("auth_password", str),
    "BEARER_TOKEN": ("bearer_token", _non_empty),
    "AUTH_HOSTS": ("auth_hosts", parse_host_list),
}

_SKIP_WHEN_BLANK = frozenset(
    {"server_bind", "default_timezone", "floating_timezone", "auth_username", "bearer_token"}
)


class ConfigManager:
    """Manages application configuration from environment variables and .env files."""

    def __init__(self, env_file_path: Path | None = None):
        """Initialize configuration manager.

        Args:
            env_file_path: Optional path to .env file (defaults to .env in current directory)
        """
        self.env_file_path = env_file_path or Path.cwd() / ".env"

    def load_env_file(self) -> list[str]:
        """Load .env file and set environment variables.

        Only sets variables that are not already in the environment so a
        user's shell always wins over file defaults.

        Returns:
            List of environment variable keys that were loaded from .env file
        """
        if not self.env_file_path.exists():
            logger.debug("No .env file found at %s", self.env_file_path)
            return []

        set_keys = []

        try:
            content = self.env_file_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            logger.warning(
                "Failed to read .env file for defaults (continuing): %s",
                self.env_file_path,
                exc_info=True,
            )
            return []

        for raw_line in content.splitlines():
            line = raw_line.strip()

            # Skip empty lines and comments
            if not line or line.startswith("#"):
                continue

            if line.startswith("export "):
                line = line[len("export ") :]

            if "=" not in line:
                continue

            key, val = line.split("=", 1)
            key = key.strip()
            val = val.strip().strip('"').strip("'")

            if key and key not in os.environ:
                os.environ[key] = val
                set_keys.append(key)

        if set_keys:
            logger.debug("Loaded .env defaults for keys: %s", ", ".join(set_keys))

        return set_keys

    def build_config_from_env(self) -> dict[str, Any]:
        """Build configuration dictionary from FAMILYCAL_* environment variables.

        Recognizes:
        - FAMILYCAL_WEB_HOST -> 'server_bind'
        - FAMILYCAL_WEB_PORT -> 'server_port' (int)
        - FAMILYCAL_LOG_LEVEL -> 'log_level'
        - FAMILYCAL_DEBUG -> 'debug' (bool)
        - FAMILYCAL_REQUEST_TIMEOUT -> 'request_timeout' (int seconds)
        - FAMILYCAL_MAX_RESULTS -> 'max_results' (int)
        - FAMILYCAL_HORIZON_DAYS -> 'horizon_days' (int)
        - FAMILYCAL_MAX_OCCURRENCES -> 'max_occurrences_per_rule' (int)
        - FAMILYCAL_SEQUENCE_THRESHOLD -> 'sequence_threshold' (int, or None for 'off')
        - FAMILYCAL_DEFAULT_TIMEZONE -> 'default_timezone'
        - FAMILYCAL_FLOATING_TIMEZONE -> 'floating_timezone'
        - FAMILYCAL_REJECT_UNRESOLVED_ZONES -> 'reject_unresolved_zones' (bool)
        - FAMILYCAL_AUTH_TYPE -> 'auth_type' (none, basic or bearer)
        - FAMILYCAL_AUTH_USERNAME, FAMILYCAL_AUTH_PASSWORD -> basic credentials
        - FAMILYCAL_BEARER_TOKEN -> 'bearer_token'
        - FAMILYCAL_AUTH_HOSTS -> 'auth_hosts' (comma-separated; credentials go only there)

        Invalid values are logged and ignored so the defaults apply.

        Returns:
            Configuration dictionary compatible with start_server
        """
        cfg: dict[str, Any] = {}

        for suffix, (key, convert) in _ENV_KEYS.items():
            env_name = ENV_PREFIX + suffix
            raw = os.environ.get(env_name)
            if raw is None:
                continue
            try:
                value = convert(raw)
            except ValueError:
                logger.warning("Invalid %s=%r; ignoring", env_name, raw)
                continue
            if value == "" and key in _SKIP_WHEN_BLANK:
                continue
            cfg[key] = value

        return cfg

    def load_full_config(self) -> dict[str, Any]:
        """Load .env file and build configuration from environment.

        This is the main entry point for loading configuration.
        """
        self.load_env_file()
        return self.build_config_from_env()


def get_config_value(config: Any, key: str, default: Any = None) -> Any:
    """Get configuration value supporting both dict and attribute-style objects.

    Args:
        config: Configuration object (dict, object with attributes, or None)
        key: Configuration key to retrieve
        default: Default value if key not found

    Returns:
        Configuration value or default
    """
    if isinstance(config, dict):
        return config.get(key, default)
    return getattr(config, key, default)
