"""Shared pytest fixtures for the gap9ctl test suite."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from gap9ctl.config import Settings
from gap9ctl.shared.models import CommandResult

_ENV_VARS = (
    "GAP9_IMAGE",
    "GAP9_WORK_DIR",
    "GAP9_CACHE_DIR",
    "GAP9_SSH_KEY",
    "GAP9_USBIP_HOST",
    "GAP9_USBIP_VENDOR",
    "GAP9_USBIP_PRODUCT",
    "GAP9_PLATFORM",
    "GAP9_SHELL",
    "GAP9_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's own GAP9_* variables out of the tests."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def work_dir(tmp_path: Path) -> Path:
    path = tmp_path / "work"
    path.mkdir()
    return path


@pytest.fixture()
def settings(tmp_path: Path, work_dir: Path) -> Settings:
    """Return a Settings instance rooted in a temporary directory."""
    return Settings(
        work_dir=str(work_dir),
        cache_dir=str(tmp_path / "cache"),
        ssh_key=str(tmp_path / "id_ed25519"),
        pyusbip_dir=str(tmp_path / ".pyusbip"),
        readiness_attempts=20,
        readiness_interval_seconds=1.0,
    )


def _result(*args: str, stdout: str = "", stderr: str = "", returncode: int = 0) -> CommandResult:
    return CommandResult(args=args, returncode=returncode, stdout=stdout, stderr=stderr)


@pytest.fixture()
def mock_runner() -> MagicMock:
    """CommandRunner stand-in: every command succeeds with empty output."""
    runner = MagicMock()
    runner.run = AsyncMock(side_effect=lambda *args, **kwargs: _result(*args))
    runner.run_foreground = AsyncMock(return_value=0)
    return runner


@pytest.fixture()
def mock_sleep() -> AsyncMock:
    return AsyncMock()
