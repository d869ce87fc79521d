"""Named tmux session running the host server, device attach and workspace side by side."""

from __future__ import annotations

import logging
import shlex
from collections.abc import Sequence

from gap9ctl.shared.exceptions import CommandError, TmuxError
from gap9ctl.shared.log import success
from gap9ctl.shared.process import CommandRunner, require_tool

logger = logging.getLogger(__name__)

_INSTALL_HINTS = (
    "On macOS: brew install tmux",
    "On Linux: sudo apt-get install tmux",
)

# Pane layout after one horizontal and one vertical split:
#   0: left (workspace)  1: top right (host server)  2: bottom right (daemon + attach)
_WORKSPACE_PANE = 0
_HOST_PANE = 1
_DEVICE_PANE = 2


class TmuxSession:
    """Handle on one tmux session identified by name."""

    def __init__(self, name: str, runner: CommandRunner, *, width: int = 200, height: int = 50) -> None:
        self.name = name
        self._runner = runner
        self._width = width
        self._height = height

    def _pane(self, index: int) -> str:
        return f"{self.name}:0.{index}"

    async def _tmux(self, *args: str) -> None:
        result = await self._runner.run("tmux", *args)
        if not result.ok:
            raise TmuxError(f"tmux {args[0]} failed: {result.stderr or result.returncode}")

    async def exists(self) -> bool:
        try:
            result = await self._runner.run("tmux", "has-session", "-t", self.name)
        except CommandError:
            return False
        return result.ok

    async def kill(self) -> bool:
        """Kill the session. Returns False when it was not running; never raises."""
        logger.info("Stopping tmux session: %s", self.name)
        try:
            result = await self._runner.run("tmux", "kill-session", "-t", self.name)
        except CommandError as exc:
            logger.debug("tmux unavailable: %s", exc)
            result = None
        if result is None or not result.ok:
            logger.info("tmux session %s not running", self.name)
            return False
        return True

    async def start(self, command: Sequence[str]) -> int:
        """(Re)create the session and attach to it.

        Args:
            command: gap9ctl invocation prefix (program plus global options);
                each pane appends its own verb to it.

        Returns:
            Exit code of ``tmux attach-session``.

        Raises:
            ToolNotFoundError: If tmux is not installed.
        """
        require_tool("tmux", *_INSTALL_HINTS)

        # Kill any existing session with the same name
        if await self.exists():
            await self.kill()

        logger.info("Creating tmux session: %s", self.name)
        await self._tmux("new-session", "-d", "-s", self.name, "-x", str(self._width), "-y", str(self._height))
        await self._tmux("split-window", "-t", f"{self.name}:0", "-h")
        await self._tmux("split-window", "-t", f"{self.name}:0", "-v")

        prefix = shlex.join(command)
        stop_alias = f"alias stop={shlex.quote(prefix + ' stop')}"
        panes = (
            (_HOST_PANE, ["start-usbip-host"]),
            (_DEVICE_PANE, ["start-usbip-daemon", "attach-usbip"]),
            (_WORKSPACE_PANE, ["start-gap9"]),
        )
        for pane, verbs in panes:
            await self._tmux("send-keys", "-t", self._pane(pane), stop_alias, "Enter")
            for verb in verbs:
                await self._tmux("send-keys", "-t", self._pane(pane), f"{prefix} {verb}", "Enter")

        await self._tmux("select-pane", "-t", self._pane(_WORKSPACE_PANE))

        success(logger, "tmux session created: %s", self.name)
        logger.info("Attaching to session...")
        logger.info("To detach: Ctrl+B then D")
        logger.info("To kill session: tmux kill-session -t %s", self.name)
        return await self._runner.run_foreground("tmux", "attach-session", "-t", self.name)
