"""Tests for gap9ctl.cli module."""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from gap9ctl.cli import create_parser, forwarded_options, main, overrides_from_args
from gap9ctl.shared.exceptions import ConfigError, PathNotFoundError, ServiceNotReadyError


@pytest.fixture(autouse=True)
def restore_logging() -> Iterator[None]:
    """main() installs handlers bound to the captured streams; drop them afterwards."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def orchestrator() -> MagicMock:
    m = MagicMock()
    m.start = AsyncMock(return_value=0)
    m.stop = AsyncMock(return_value=0)
    m.status = AsyncMock(return_value=0)
    m.start_tmux = AsyncMock(return_value=0)
    m.workspace.start = AsyncMock(return_value=0)
    m.host.run_foreground = AsyncMock(return_value=0)
    m.host.ensure_setup = AsyncMock()
    m.devmgr.ensure_daemon = AsyncMock()
    m.devmgr.attach = AsyncMock()
    m.devmgr.detach = AsyncMock(return_value=False)
    m.devmgr.stop_daemon = AsyncMock()
    return m


@pytest.fixture
def from_settings(orchestrator: MagicMock) -> Iterator[MagicMock]:
    with patch("gap9ctl.cli.SessionOrchestrator.from_settings", return_value=orchestrator) as factory:
        yield factory


class TestCreateParser:
    def test_options_before_and_after_command(self) -> None:
        parser = create_parser()

        before = parser.parse_args(["-d", "/src", "start"])
        after = parser.parse_args(["start", "-d", "/src"])

        assert before.command == after.command == "start"
        assert before.work_dir == after.work_dir == "/src"

    def test_short_h_is_host(self) -> None:
        args = create_parser().parse_args(["-h", "10.0.0.2", "attach-usbip"])
        assert args.usbip_host == "10.0.0.2"

    def test_no_command(self) -> None:
        assert create_parser().parse_args([]).command is None

    def test_unknown_flag_raises_config_error(self) -> None:
        with pytest.raises(ConfigError):
            create_parser().parse_args(["--bogus", "start"])

    def test_unknown_command_raises_config_error(self) -> None:
        with pytest.raises(ConfigError):
            create_parser().parse_args(["launch"])

    def test_two_commands_raise_config_error(self) -> None:
        with pytest.raises(ConfigError):
            create_parser().parse_args(["start", "stop"])

    def test_missing_option_value(self) -> None:
        with pytest.raises(ConfigError):
            create_parser().parse_args(["start", "--image"])


class TestOptionForwarding:
    def test_only_given_options(self) -> None:
        args = create_parser().parse_args(["-v", "abcd", "--shell", "/bin/bash", "start-tmux"])
        overrides = overrides_from_args(args)

        assert overrides == {"usbip_vendor": "abcd", "shell": "/bin/bash"}
        assert forwarded_options(overrides) == ["--vendor", "abcd", "--shell", "/bin/bash"]


class TestMain:
    def test_help_exits_nonzero(self, capsys: pytest.CaptureFixture[str], from_settings: MagicMock) -> None:
        assert main(["help"]) == 1
        assert "start-usbip-host" in capsys.readouterr().out
        from_settings.assert_not_called()

    def test_dash_dash_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["--help"]) == 1
        assert "usage: gap9ctl" in capsys.readouterr().out

    def test_unknown_option(self, capsys: pytest.CaptureFixture[str], from_settings: MagicMock) -> None:
        assert main(["--bogus"]) == 1
        captured = capsys.readouterr()
        assert "[ERROR  ]" in captured.err
        from_settings.assert_not_called()

    def test_invalid_vendor(self, from_settings: MagicMock) -> None:
        assert main(["-v", "zz", "stop"]) == 1
        from_settings.assert_not_called()

    def test_stop(self, orchestrator: MagicMock, from_settings: MagicMock) -> None:
        assert main(["stop"]) == 0
        orchestrator.stop.assert_awaited_once()

    def test_cli_values_reach_settings(self, from_settings: MagicMock, tmp_path: Path) -> None:
        assert main(["status", "-d", str(tmp_path), "-p", "00AA"]) == 0

        settings = from_settings.call_args.args[0]
        assert settings.work_dir == str(tmp_path)
        assert settings.usbip_product == "00aa"

    def test_default_command_is_start_tmux(self, orchestrator: MagicMock, from_settings: MagicMock) -> None:
        assert main(["-i", "local/gap9"]) == 0

        command = orchestrator.start_tmux.await_args.args[0]
        assert command[1:] == ["--image", "local/gap9"]

    @pytest.mark.parametrize(
        ("verb", "attr"),
        [
            ("start-usbip-daemon", "ensure_daemon"),
            ("attach-usbip", "attach"),
            ("detach-usbip", "detach"),
            ("stop-usbip-daemon", "stop_daemon"),
        ],
    )
    def test_device_verbs(self, orchestrator: MagicMock, from_settings: MagicMock, verb: str, attr: str) -> None:
        assert main([verb]) == 0
        getattr(orchestrator.devmgr, attr).assert_awaited_once()

    def test_host_verbs(self, orchestrator: MagicMock, from_settings: MagicMock) -> None:
        assert main(["setup-usbip-host"]) == 0
        orchestrator.host.ensure_setup.assert_awaited_once()

        orchestrator.host.run_foreground.return_value = 130
        assert main(["start-usbip-host"]) == 130

    def test_workspace_exit_code_propagates(self, orchestrator: MagicMock, from_settings: MagicMock) -> None:
        orchestrator.workspace.start.return_value = 3
        assert main(["start-gap9"]) == 3

    def test_missing_prerequisite(
        self, orchestrator: MagicMock, from_settings: MagicMock, capsys: pytest.CaptureFixture[str]
    ) -> None:
        orchestrator.start.side_effect = ServiceNotReadyError("run 'gap9ctl start-usbip-host' first")

        assert main(["start"]) == 1
        assert "start-usbip-host" in capsys.readouterr().err

    def test_missing_work_dir(self, orchestrator: MagicMock, from_settings: MagicMock) -> None:
        orchestrator.workspace.start.side_effect = PathNotFoundError("WORK_DIR not found: /nope")
        assert main(["start-gap9", "-d", "/nope"]) == 1


class TestInvocationPrefix:
    def test_module_invocation_reruns_through_interpreter(
        self, orchestrator: MagicMock, from_settings: MagicMock, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        monkeypatch.setattr("sys.argv", [str(tmp_path / "gap9ctl" / "__main__.py"), "start-tmux"])

        assert main(["start-tmux", "-d", "/src"]) == 0

        command = orchestrator.start_tmux.await_args.args[0]
        assert command == [sys.executable, "-m", "gap9ctl", "--work-dir", "/src"]

    def test_console_script_is_reused(
        self, orchestrator: MagicMock, from_settings: MagicMock, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr("sys.argv", ["/usr/local/bin/gap9ctl"])

        assert main(["start-tmux"]) == 0

        assert orchestrator.start_tmux.await_args.args[0] == ["/usr/local/bin/gap9ctl"]


def test_unknown_log_level_falls_back(
    orchestrator: MagicMock,
    from_settings: MagicMock,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    monkeypatch.setenv("GAP9_LOG_LEVEL", "verbose")

    assert main(["stop"]) == 0
    assert "unknown log level 'verbose', using INFO" in capsys.readouterr().err
    orchestrator.stop.assert_awaited_once()
