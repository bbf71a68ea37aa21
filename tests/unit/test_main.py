"""Unit tests for the familycal_lite command line."""

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from familycal_lite import __main__ as cli

pytestmark = pytest.mark.unit


@pytest.fixture
def isolated_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run from an empty directory so no stray .env file is loaded."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("FAMILYCAL_TEST_TIME", "2024-01-03T12:00:00Z")
    return tmp_path


class TestArgumentParser:
    def test_parser_when_ics_file_and_url_then_rejected(self) -> None:
        with pytest.raises(SystemExit):
            cli._create_parser().parse_args(["--ics-file", "a.ics", "--url", "https://x/c.ics"])

    def test_parser_when_port_then_int(self) -> None:
        args = cli._create_parser().parse_args(["--port", "3000", "--host", "0.0.0.0"])
        assert args.port == 3000
        assert args.host == "0.0.0.0"
        assert args.ics_file is None


class TestMain:
    """Tests for the one-shot modes and server dispatch."""

    def test_main_when_ics_file_then_json_printed(
        self,
        isolated_cwd: Path,
        make_calendar: Callable[..., str],
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        feed = isolated_cwd / "family.ics"
        feed.write_text(
            make_calendar(
                "UID:1\nSUMMARY:Football\nDTSTART:20240106T100000Z\nDTEND:20240106T113000Z",
                "UID:2\nSUMMARY:Past\nDTSTART:20231220T100000Z",
            ),
            encoding="utf-8",
        )

        assert cli.main(["--ics-file", str(feed)]) == 0

        assert json.loads(capsys.readouterr().out) == [
            {"start": "2024-01-06T10:00:00Z", "end": "2024-01-06T11:30:00Z", "title": "Football"}
        ]

    def test_main_when_ics_file_missing_then_exit_code_1(
        self, isolated_cwd: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert cli.main(["--ics-file", str(isolated_cwd / "nope.ics")]) == 1
        assert "Cannot read" in capsys.readouterr().err

    def test_main_when_url_invalid_then_error_on_stderr(
        self, isolated_cwd: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert cli.main(["--url", "ftp://example.com/cal.ics"]) == 1
        assert capsys.readouterr().err.startswith("Error fetching data: ")

    def test_main_when_no_one_shot_option_then_server_started(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        seen: list[Any] = []
        monkeypatch.setattr(cli, "run_server", seen.append)

        assert cli.main(["--port", "9001"]) == 0

        assert len(seen) == 1
        assert seen[0].port == 9001


class TestRunServer:
    def test_run_server_when_overrides_then_applied_to_config(
        self, isolated_cwd: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        from argparse import Namespace

        from familycal_lite import run_server, server

        captured: list[dict[str, Any]] = []
        monkeypatch.setattr(server, "start_server", captured.append)
        monkeypatch.setenv("FAMILYCAL_WEB_PORT", "8000")

        run_server(Namespace(port=9100, host="0.0.0.0"))

        assert captured[0]["server_port"] == 9100
        assert captured[0]["server_bind"] == "0.0.0.0"
