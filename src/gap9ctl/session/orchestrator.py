"""Composes the host server, device manager, workspace and tmux session into commands."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from gap9ctl.config import Settings
from gap9ctl.session.tmux import TmuxSession
from gap9ctl.shared.enums import DeviceState
from gap9ctl.shared.log import success
from gap9ctl.shared.process import CommandRunner
from gap9ctl.usbip.devmgr import DeviceManagerController
from gap9ctl.usbip.host import UsbipHostService
from gap9ctl.workspace.container import WorkspaceController

logger = logging.getLogger(__name__)


class SessionOrchestrator:
    """Owns every named resource of one GAP9 dev session.

    The daemon container and the tmux session are singletons by name; this
    object is the only place those names are chosen.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        host: UsbipHostService,
        devmgr: DeviceManagerController,
        workspace: WorkspaceController,
        tmux: TmuxSession,
    ) -> None:
        self.settings = settings
        self.host = host
        self.devmgr = devmgr
        self.workspace = workspace
        self.tmux = tmux

    @classmethod
    def from_settings(cls, settings: Settings, *, runner: CommandRunner | None = None) -> SessionOrchestrator:
        """Wire real controllers from settings."""
        runner = runner or CommandRunner(timeout=settings.command_timeout_seconds)
        host = UsbipHostService(settings, runner)
        return cls(
            settings,
            host=host,
            devmgr=DeviceManagerController(settings, host),
            workspace=WorkspaceController(settings, runner),
            tmux=TmuxSession(settings.tmux_session, runner),
        )

    async def start(self) -> int:
        """Daemon, then attach, then workspace; the first failure propagates."""
        logger.info("Starting GAP9 orchestration (usbip daemon + GAP9 container)...")
        self.workspace.validate()
        await self.devmgr.ensure_daemon()
        await self.devmgr.attach()
        return await self.workspace.start()

    async def stop(self) -> int:
        """Tear everything down. Each step is best-effort; always returns 0."""
        logger.info("Stopping all containers...")
        try:
            await self.devmgr.stop_daemon()
        except Exception as exc:
            logger.warning("stopping %s failed: %s", self.devmgr.name, exc)
        try:
            await self.tmux.kill()
        except Exception as exc:
            logger.warning("stopping tmux session %s failed: %s", self.tmux.name, exc)
        success(logger, "All containers stopped")
        return 0

    async def start_tmux(self, command: Sequence[str]) -> int:
        return await self.tmux.start(command)

    async def status(self) -> int:
        """Log daemon, device and tmux session state."""
        try:
            daemon = await self.devmgr.find_daemon()
        except Exception as exc:
            logger.warning("could not query %s: %s", self.devmgr.name, exc)
            daemon = None
        logger.info("%s container: %s", self.devmgr.name, "running" if daemon is not None else "not running")

        state = await self.devmgr.state()
        logger.info("USB device %s: %s", self.settings.usb_id, state.value)

        host_up = await self.host.is_running()
        logger.info("pyusbip server: %s", "running" if host_up else "not running")

        session_up = await self.tmux.exists()
        logger.info("tmux session %s: %s", self.tmux.name, "running" if session_up else "not running")
        if daemon is not None and state is DeviceState.ATTACHED:
            success(logger, "GAP9 device ready for use")
        return 0
