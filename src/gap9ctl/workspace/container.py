"""Interactive GAP9 SDK workspace container."""

from __future__ import annotations

import logging
from pathlib import Path

from gap9ctl.config import Settings
from gap9ctl.shared.exceptions import PathNotFoundError
from gap9ctl.shared.process import CommandRunner

logger = logging.getLogger(__name__)

_CONTAINER_WORK_DIR = "/app/work"
_CONTAINER_SSH_KEY = "/root/.ssh/id_ed25519"
_CONTAINER_CCACHE = "/ccache"


class WorkspaceController:
    """Starts the development container with the USB bus, sources and caches mounted.

    The container needs an interactive TTY, which the Docker SDK cannot hand
    over to the calling terminal, so it is run through the ``docker`` CLI.
    """

    def __init__(self, settings: Settings, runner: CommandRunner, *, docker_bin: str = "docker") -> None:
        self._settings = settings
        self._runner = runner
        self._docker_bin = docker_bin

    @property
    def work_dir(self) -> Path:
        return Path(self._settings.work_dir).expanduser().resolve()

    @property
    def cache_dir(self) -> Path:
        return Path(self._settings.cache_dir).expanduser().resolve()

    @property
    def history_path(self) -> Path:
        return self.cache_dir / self._settings.history_file

    def build_run_args(self) -> list[str]:
        """Return the full ``docker run`` argv for the workspace container."""
        shell = self._settings.shell
        args = [
            self._docker_bin,
            "run",
            "-it",
            "--rm",
            "--privileged",
            "-v",
            "/dev/bus/usb:/dev/bus/usb",
            "-v",
            f"{self._settings.ssh_key}:{_CONTAINER_SSH_KEY}:ro",
            "-v",
            f"{self.work_dir}/:{_CONTAINER_WORK_DIR}/",
            "-v",
            f"{self.history_path}:/root/{self._settings.history_file}",
            "-v",
            f"{self.cache_dir / 'ccache'}:{_CONTAINER_CCACHE}",
            "-e",
            f"CCACHE_DIR={_CONTAINER_CCACHE}",
        ]
        if self._settings.platform != "auto":
            args += ["--platform", self._settings.platform]
        args += [self._settings.image, shell, "-c", f"cd {_CONTAINER_WORK_DIR} && {shell}"]
        return args

    def validate(self) -> None:
        """Raise PathNotFoundError unless the work directory exists."""
        if not self.work_dir.is_dir():
            raise PathNotFoundError(
                f"WORK_DIR not found: {self._settings.work_dir} (use -d/--work-dir to set the SDK path)"
            )

    async def start(self) -> int:
        """Run the workspace container in the foreground.

        Returns:
            The container's exit code, unchanged.

        Raises:
            PathNotFoundError: If the work directory does not exist. Checked
                before anything is created on disk or in Docker.
            CommandError: If the docker CLI is missing.
        """
        logger.info("Starting GAP9 container...")
        self.validate()

        (self.cache_dir / "ccache").mkdir(parents=True, exist_ok=True)
        self.history_path.touch(exist_ok=True)

        logger.info("Press Ctrl+D or type 'exit' to exit container")
        code = await self._runner.run_foreground(*self.build_run_args())
        logger.info("GAP9 container exited with code %d", code)
        return code
