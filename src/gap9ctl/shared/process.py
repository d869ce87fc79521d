"""Async subprocess execution for external tools (git, pgrep, docker, tmux)."""

from __future__ import annotations

import asyncio
import logging
import shutil
from pathlib import Path

from gap9ctl.shared.exceptions import CommandError, ToolNotFoundError
from gap9ctl.shared.models import CommandResult

logger = logging.getLogger(__name__)


class CommandRunner:
    """Runs external commands through ``asyncio`` subprocess calls.

    ``run`` captures output and is bounded by a timeout. ``run_foreground``
    inherits the controlling terminal and waits without a timeout, for
    interactive programs (container shells, the USB/IP server, tmux attach).
    """

    def __init__(self, *, timeout: float = 60.0) -> None:
        self._timeout = timeout

    async def run(self, *args: str, cwd: str | Path | None = None, timeout: float | None = None) -> CommandResult:
        """Run a command and capture its output.

        Args:
            args: Program followed by its arguments.
            cwd: Working directory for the child process.
            timeout: Override of the runner's default timeout, in seconds.

        Returns:
            The finished command's exit code, stdout and stderr.

        Raises:
            CommandError: If the binary is missing or the command times out.
        """
        limit = self._timeout if timeout is None else timeout
        logger.debug("running %s", " ".join(args))
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                cwd=str(cwd) if cwd is not None else None,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            raise CommandError(f"binary not found: {args[0]}") from exc

        try:
            stdout_b, stderr_b = await asyncio.wait_for(proc.communicate(), timeout=limit)
        except asyncio.TimeoutError as exc:
            proc.kill()
            raise CommandError(f"command timed out after {limit}s: {' '.join(args)}") from exc

        return CommandResult(
            args=tuple(args),
            returncode=proc.returncode or 0,
            stdout=stdout_b.decode(errors="replace").strip(),
            stderr=stderr_b.decode(errors="replace").strip(),
        )

    async def run_foreground(self, *args: str, cwd: str | Path | None = None) -> int:
        """Run a command attached to the current terminal and return its exit code.

        Raises:
            CommandError: If the binary is missing.
        """
        logger.debug("running in foreground %s", " ".join(args))
        try:
            proc = await asyncio.create_subprocess_exec(*args, cwd=str(cwd) if cwd is not None else None)
        except FileNotFoundError as exc:
            raise CommandError(f"binary not found: {args[0]}") from exc
        return await proc.wait()


def require_tool(name: str, *hints: str) -> str:
    """Return the absolute path of ``name`` on ``PATH``.

    Raises:
        ToolNotFoundError: If the binary is not installed. ``hints`` are
            appended to the message as install instructions.
    """
    path = shutil.which(name)
    if path is None:
        message = f"{name} is not installed. Please install {name} first."
        if hints:
            message = "\n".join([message, *hints])
        raise ToolNotFoundError(message)
    return path
