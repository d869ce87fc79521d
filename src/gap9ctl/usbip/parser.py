"""Parsing of ``usbip list -r`` and ``usbip port`` text output.

``usbip list -r HOST``::

    Exportable USB devices
    ======================
     - host.docker.internal
            1-1: Greenwave Systems : unknown product (15ba:002b)
               : /sys/devices/pci0000:00/0000:00:14.0/usb1/1-1
               : (Defined at Interface level) (00/00/00)

``usbip port``::

    Imported USB devices
    ====================
    Port 00: <Port in Use> at High Speed(480Mbps)
           Greenwave Systems : unknown product (15ba:002b)
           3-1 -> usbip://host.docker.internal:3240/1-1
               -> remote bus/dev 001/002
"""

from __future__ import annotations

import logging
import re

from gap9ctl.shared.models import ExportedDevice, ImportedDevice

logger = logging.getLogger(__name__)

_USB_ID = r"\((?P<vendor>[0-9a-fA-F]{4}):(?P<product>[0-9a-fA-F]{4})\)\s*$"
_EXPORTED_RE = re.compile(r"^\s*(?P<busid>[\w.-]+):\s*(?P<desc>.*?)\s*" + _USB_ID)
_PORT_RE = re.compile(r"^\s*Port\s+(?P<port>\d+):")
_IMPORTED_ID_RE = re.compile(_USB_ID)
_REMOTE_RE = re.compile(r"->\s*usbip://(?P<host>[^/\s]+)/(?P<busid>\S+)")


def parse_exportable(text: str) -> list[ExportedDevice]:
    """Parse the device rows of ``usbip list -r`` output.

    Detail lines (sysfs path, interface classes) start with ``:`` and are
    skipped, as are headers and the ``- HOST`` line.
    """
    devices: list[ExportedDevice] = []
    for line in text.splitlines():
        match = _EXPORTED_RE.match(line)
        if match is None:
            continue
        devices.append(
            ExportedDevice(
                busid=match.group("busid"),
                vendor=match.group("vendor").lower(),
                product=match.group("product").lower(),
                description=match.group("desc"),
            )
        )
    logger.debug("parsed %d exportable device(s)", len(devices))
    return devices


def parse_imported(text: str) -> list[ImportedDevice]:
    """Parse ``usbip port`` output into one record per occupied port.

    A ``Port NN:`` header opens a block; the first ``(vvvv:pppp)`` line after
    it supplies the device IDs and an optional ``-> usbip://HOST/BUSID`` line
    supplies the remote endpoint. Headers without a device line yield nothing.
    """
    devices: list[ImportedDevice] = []
    port: int | None = None
    ids: tuple[str, str] | None = None
    remote: tuple[str, str] | None = None

    def flush() -> None:
        if port is not None and ids is not None:
            devices.append(
                ImportedDevice(
                    port=port,
                    vendor=ids[0],
                    product=ids[1],
                    remote_host=remote[0] if remote else None,
                    remote_busid=remote[1] if remote else None,
                )
            )

    for line in text.splitlines():
        header = _PORT_RE.match(line)
        if header is not None:
            flush()
            port, ids, remote = int(header.group("port")), None, None
            continue
        if port is None:
            continue
        if ids is None:
            found = _IMPORTED_ID_RE.search(line)
            if found is not None:
                ids = (found.group("vendor").lower(), found.group("product").lower())
                continue
        if remote is None:
            endpoint = _REMOTE_RE.search(line)
            if endpoint is not None:
                remote = (_strip_port(endpoint.group("host")), endpoint.group("busid"))
    flush()

    logger.debug("parsed %d imported device(s)", len(devices))
    return devices


def find_exported(devices: list[ExportedDevice], vendor: str, product: str) -> ExportedDevice | None:
    """Return the first exported device matching ``vendor:product``."""
    wanted = f"{vendor}:{product}".lower()
    return next((dev for dev in devices if dev.usb_id == wanted), None)


def find_imported(devices: list[ImportedDevice], vendor: str, product: str) -> ImportedDevice | None:
    """Return the first imported device matching ``vendor:product``."""
    wanted = f"{vendor}:{product}".lower()
    return next((dev for dev in devices if dev.usb_id == wanted), None)


def _strip_port(hostport: str) -> str:
    host, sep, port = hostport.rpartition(":")
    if sep and port.isdigit():
        return host.strip("[]")
    return hostport
