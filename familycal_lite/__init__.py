"""familycal_lite - turn an ICS calendar feed into a short list of upcoming occurrences.

Imports stay light here; the engine lives in ``lite_parser`` and the HTTP
surface in ``server``.
"""

__version__ = "0.1.0"

from typing import Any, Optional


def run_server(args: Optional[Any] = None) -> None:
    """Load configuration, apply command line overrides and start the server.

    Args:
        args: Optional argparse namespace carrying ``port`` and ``host``
    """
    import logging
    import os

    from .config_manager import ConfigManager
    from .lite_logging import init_logging

    init_logging(os.environ.get("FAMILYCAL_LOG_LEVEL"))
    logger = logging.getLogger(__name__)

    cfg = ConfigManager().load_full_config()

    if args is not None:
        port = getattr(args, "port", None)
        if port is not None:
            cfg["server_port"] = int(port)
            logger.debug("Applied command line port override: %d", cfg["server_port"])
        host = getattr(args, "host", None)
        if host:
            cfg["server_bind"] = host

    if isinstance(cfg.get("log_level"), str):
        logging.getLogger().setLevel(getattr(logging, cfg["log_level"], logging.INFO))

    from .server import start_server

    start_server(cfg)
