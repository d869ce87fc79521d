"""Host-side USB/IP server (pyusbip) setup and launch."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from gap9ctl.config import Settings
from gap9ctl.shared.exceptions import CommandError, HostSetupError
from gap9ctl.shared.log import success
from gap9ctl.shared.process import CommandRunner

logger = logging.getLogger(__name__)

# Matched against full command lines with ``pgrep -f``
_SERVER_PATTERN = r"python.*pyusbip\.py"
_SERVER_SCRIPT = "pyusbip.py"
# clone and pip install can be slow on first run
_SETUP_TIMEOUT_SECONDS = 600.0


class UsbipHostService:
    """Manages a local checkout of pyusbip and its isolated virtualenv."""

    def __init__(self, settings: Settings, runner: CommandRunner, *, python_bin: str | None = None) -> None:
        self._settings = settings
        self._runner = runner
        self._python_bin = python_bin or sys.executable or "python3"

    @property
    def checkout_dir(self) -> Path:
        return Path(self._settings.pyusbip_dir)

    @property
    def venv_dir(self) -> Path:
        return self.checkout_dir / ".venv"

    @property
    def venv_python(self) -> Path:
        return self.venv_dir / "bin" / "python"

    async def ensure_setup(self) -> None:
        """Clone pyusbip and create its virtualenv, skipping steps already done.

        Raises:
            HostSetupError: If cloning, venv creation or dependency install fails.
        """
        logger.info("Setting up host-side USB/IP server...")

        if not self.checkout_dir.is_dir():
            logger.info("Cloning pyusbip into %s...", self.checkout_dir)
            await self._step("git clone", "git", "clone", self._settings.pyusbip_repo, str(self.checkout_dir))
        else:
            logger.info("pyusbip directory %s already exists, skipping clone", self.checkout_dir)

        if not self.venv_dir.is_dir():
            logger.info("Creating Python virtual environment...")
            await self._step("venv creation", self._python_bin, "-m", "venv", str(self.venv_dir))

            logger.info("Installing pyusbip dependencies...")
            pip = (str(self.venv_python), "-m", "pip", "install")
            await self._step("pip upgrade", *pip, "--upgrade", "pip")
            if self._settings.requirements:
                await self._step("dependency install", *pip, *self._settings.requirements)
        else:
            logger.info("Virtual environment already exists, skipping setup")

        success(logger, "Host-side USB/IP setup complete")

    async def run_foreground(self) -> int:
        """Set up if needed, then run the server attached to the terminal.

        Returns when the server exits (normally on Ctrl+C) with its exit code.
        """
        await self.ensure_setup()
        logger.info("Starting host-side USB/IP server (pyusbip)...")
        logger.info("This process will run in the foreground. Press Ctrl+C to stop.")
        return await self._runner.run_foreground(str(self.venv_python.resolve()), _SERVER_SCRIPT, cwd=self.checkout_dir)

    async def is_running(self) -> bool:
        """Return True when a pyusbip server process is visible on this host."""
        try:
            result = await self._runner.run("pgrep", "-f", _SERVER_PATTERN)
        except CommandError as exc:
            logger.debug("pgrep unavailable: %s", exc)
            return False
        return result.ok

    async def _step(self, what: str, *args: str) -> None:
        try:
            result = await self._runner.run(*args, timeout=_SETUP_TIMEOUT_SECONDS)
        except CommandError as exc:
            raise HostSetupError(f"{what} failed: {exc}") from exc
        if not result.ok:
            detail = result.stderr or result.stdout or f"exit code {result.returncode}"
            raise HostSetupError(f"{what} failed: {detail}")
