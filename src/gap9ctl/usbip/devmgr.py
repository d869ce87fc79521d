"""usbip device manager container lifecycle and device attach/detach via Docker SDK."""

from __future__ import annotations

import asyncio
import logging
import shlex
from functools import partial
from typing import Any, cast

from docker.errors import ContainerError as DockerContainerError
from docker.errors import DockerException, NotFound

import docker
from gap9ctl.config import Settings
from gap9ctl.shared.enums import DeviceState
from gap9ctl.shared.exceptions import ContainerError, DeviceNotFoundError, ServiceNotReadyError, UsbipError
from gap9ctl.shared.log import success
from gap9ctl.shared.models import ExportedDevice, ImportedDevice
from gap9ctl.shared.readiness import Sleep, TimedOut, wait_until
from gap9ctl.usbip.host import UsbipHostService
from gap9ctl.usbip.parser import find_exported, find_imported, parse_exportable, parse_imported

logger = logging.getLogger(__name__)

# Keeps the daemon resident inside the host mount namespace
_IDLE_COMMAND = ["/bin/sh", "-lc", 'nsenter -t1 -m sh -lc "tail -f /dev/null"']


def in_host_namespace(*args: str) -> list[str]:
    """Wrap a command so it runs in PID 1's mount namespace through a login shell."""
    return ["nsenter", "-t1", "-m", "sh", "-lc", shlex.join(args)]


class DeviceManagerController:
    """Controls the privileged ``usbip-devmgr`` container and the device attached through it.

    The container is looked up by name on every call rather than cached, so
    restarting gap9ctl between commands is harmless. Attach always detaches
    first, so at most one instance of the device is attached at a time.
    """

    def __init__(
        self,
        settings: Settings,
        host_service: UsbipHostService,
        *,
        docker_client: Any | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._settings = settings
        self._host = host_service
        self._docker = docker_client
        self._sleep = sleep

    @property
    def name(self) -> str:
        return self._settings.devmgr_name

    def _client(self) -> Any:
        if self._docker is None:
            self._docker = cast(Any, docker).from_env()
        return self._docker

    def _environment(self) -> dict[str, str]:
        return {
            "USBIP_HOST": self._settings.usbip_host,
            "USBIP_VENDOR": self._settings.usbip_vendor,
            "USBIP_PRODUCT": self._settings.usbip_product,
        }

    async def _call(self, func: Any, *args: Any, **kwargs: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, *args, **kwargs))

    # ── daemon ─────────────────────────────────────────────────

    async def find_daemon(self) -> Any | None:
        """Return the running daemon container, or None.

        Raises:
            ContainerError: If the Docker daemon cannot be queried.
        """
        try:
            running = await self._call(self._client().containers.list, filters={"name": self.name})
        except DockerException as exc:
            raise ContainerError(f"failed to query containers: {exc}") from exc
        # the name filter is a substring match
        return next((c for c in running if c.name == self.name), None)

    async def ensure_daemon(self) -> None:
        """Wait for the host USB/IP server, then start the daemon unless it is already running.

        Raises:
            ServiceNotReadyError: If the host server is not visible after the readiness poll.
            ContainerError: If the container cannot be started.
        """
        logger.info("Waiting for pyusbip server to be ready...")
        result = await wait_until(
            self._host.is_running,
            max_attempts=self._settings.readiness_attempts,
            interval=self._settings.readiness_interval_seconds,
            sleep=self._sleep,
            what="pyusbip",
        )
        if isinstance(result, TimedOut):
            raise ServiceNotReadyError(
                f"pyusbip server did not start after {result.attempts} attempts; "
                "run 'gap9ctl start-usbip-host' in a separate terminal first"
            )
        success(logger, "pyusbip server is ready")

        if await self.find_daemon() is not None:
            logger.info("%s container already running", self.name)
            return

        logger.info("Starting %s container...", self.name)
        try:
            await self._call(
                self._client().containers.run,
                self._settings.usbip_image,
                _IDLE_COMMAND,
                name=self.name,
                detach=True,
                remove=True,
                privileged=True,
                pid_mode="host",
                environment=self._environment(),
            )
        except DockerException as exc:
            raise ContainerError(f"failed to start {self.name}: {exc}") from exc
        success(logger, "%s container started", self.name)

    async def stop_daemon(self) -> None:
        """Detach the device and stop the daemon. Never raises."""
        logger.info("Stopping %s container...", self.name)
        await self.detach()

        try:
            container = await self.find_daemon()
            if container is None:
                logger.info("%s container not running", self.name)
                return
            await self._call(container.stop)
        except NotFound:
            logger.info("%s container not running", self.name)
            return
        except (ContainerError, DockerException) as exc:
            logger.warning("failed to stop %s: %s", self.name, exc)
            return
        success(logger, "%s container stopped", self.name)

    # ── device ─────────────────────────────────────────────────

    async def attach(self) -> ExportedDevice:
        """Detach any previous attachment, then attach the configured device.

        Returns:
            The remote device that was attached.

        Raises:
            ContainerError: If the daemon is not running.
            UsbipError: If listing or attaching fails.
            DeviceNotFoundError: If the remote host exports no matching device.
        """
        await self.detach()

        logger.info("Attaching USB device to %s...", self.name)
        container = await self.find_daemon()
        if container is None:
            raise ContainerError(f"{self.name} container is not running; run 'gap9ctl start-usbip-daemon' first")

        host = self._settings.usbip_host
        code, output = await self._exec(container, "usbip", "list", "-r", host)
        if code != 0:
            raise UsbipError(f"usbip list failed for host {host}: {output or f'exit code {code}'}")

        device = find_exported(parse_exportable(output), self._settings.usbip_vendor, self._settings.usbip_product)
        if device is None:
            raise DeviceNotFoundError(f"no device {self._settings.usb_id} exported by {host}")

        code, output = await self._exec(container, "usbip", "attach", "-r", host, "-b", device.busid)
        if code != 0:
            raise UsbipError(f"usbip attach of {device.busid} failed: {output or f'exit code {code}'}")

        success(logger, "USB device %s (bus %s) attached successfully", device.usb_id, device.busid)
        return device

    async def detach(self) -> bool:
        """Detach the configured device if it is attached.

        Not attached and failed to detach are both reported as a warning and
        return False. Never raises.
        """
        logger.info("Detaching USB device...")
        try:
            imported = await self._imported_device()
            if imported is None:
                logger.warning("Failed to detach USB device (it may not have been attached)")
                return False
            await self._run_ephemeral("usbip", "detach", "-p", str(imported.port))
        except (UsbipError, DockerException) as exc:
            logger.debug("detach failed: %s", exc)
            logger.warning("Failed to detach USB device (it may not have been attached)")
            return False

        success(logger, "USB device detached from port %d", imported.port)
        return True

    async def state(self) -> DeviceState:
        """Report whether the configured device is currently attached."""
        try:
            imported = await self._imported_device()
        except (UsbipError, DockerException) as exc:
            logger.warning("could not read usbip ports: %s", exc)
            return DeviceState.DETACHED
        return DeviceState.ATTACHED if imported is not None else DeviceState.DETACHED

    async def _imported_device(self) -> ImportedDevice | None:
        output = await self._run_ephemeral("usbip", "port")
        return find_imported(parse_imported(output), self._settings.usbip_vendor, self._settings.usbip_product)

    async def _exec(self, container: Any, *args: str) -> tuple[int, str]:
        try:
            result = await self._call(container.exec_run, in_host_namespace(*args), environment=self._environment())
        except DockerException as exc:
            raise UsbipError(f"exec in {self.name} failed: {exc}") from exc
        output = result.output.decode(errors="replace").strip() if result.output else ""
        return result.exit_code or 0, output

    async def _run_ephemeral(self, *args: str) -> str:
        """Run a usbip command in a throwaway privileged container and return its stdout.

        Works whether or not the daemon container is running.
        """
        try:
            output = await self._call(
                self._client().containers.run,
                self._settings.usbip_image,
                in_host_namespace(*args),
                remove=True,
                privileged=True,
                pid_mode="host",
                environment=self._environment(),
            )
        except DockerContainerError as exc:
            stderr = exc.stderr.decode(errors="replace").strip() if exc.stderr else ""
            raise UsbipError(f"{' '.join(args)} exited with {exc.exit_status}: {stderr}") from exc
        return output.decode(errors="replace") if isinstance(output, bytes) else str(output)
