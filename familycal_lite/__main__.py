"""Command-line entry for familycal_lite.

Without ``--ics-file``/``--url`` the HTTP server is started. With either of
them the selected occurrences are printed as JSON and the process exits.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

from . import run_server


def _create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="familycal_lite",
        description="familycal_lite - upcoming occurrences from an ICS calendar feed",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m familycal_lite                         # Start server on default port (8080)
  python -m familycal_lite --port 3000             # Start server on port 3000
  python -m familycal_lite --ics-file family.ics   # Print upcoming occurrences of a file
  python -m familycal_lite --url https://example.com/cal.ics
        """,
    )

    parser.add_argument(
        "--port",
        type=int,
        metavar="PORT",
        help="Port number for the web server (default: 8080, or FAMILYCAL_WEB_PORT)",
    )
    parser.add_argument(
        "--host",
        metavar="HOST",
        help="Interface to bind (default: 127.0.0.1, or FAMILYCAL_WEB_HOST)",
    )

    one_shot = parser.add_mutually_exclusive_group()
    one_shot.add_argument(
        "--ics-file",
        type=Path,
        metavar="PATH",
        help="Parse a local ICS file and print the selected occurrences as JSON",
    )
    one_shot.add_argument(
        "--url",
        metavar="URL",
        help="Fetch an ICS feed once and print the selected occurrences as JSON",
    )

    return parser


def _load_config() -> dict[str, Any]:
    from .config_manager import ConfigManager
    from .lite_logging import init_logging

    cfg = ConfigManager().load_full_config()
    init_logging(cfg.get("log_level", "WARNING"))
    return cfg


def _print_ics_file(path: Path) -> int:
    from .lite_parser import build_calendar_feed

    cfg = _load_config()
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        print(f"Cannot read {path}: {exc}", file=sys.stderr)
        return 1

    json.dump(build_calendar_feed(content, cfg), sys.stdout, indent=2)
    sys.stdout.write("\n")
    return 0


def _print_url(url: str) -> int:
    from .fetch_orchestrator import CalendarFeedOrchestrator

    cfg = _load_config()
    outcome = asyncio.run(CalendarFeedOrchestrator(cfg).run(url))
    body = outcome.to_body()
    if isinstance(body, str):
        print(body, file=sys.stderr)
        return 1

    json.dump(body, sys.stdout, indent=2)
    sys.stdout.write("\n")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Run the familycal_lite CLI and return the process exit code."""
    args = _create_parser().parse_args(argv)

    if args.ics_file is not None:
        return _print_ics_file(args.ics_file)
    if args.url is not None:
        return _print_url(args.url)

    run_server(args)
    return 0


if __name__ == "__main__":
    sys.exit(main())
