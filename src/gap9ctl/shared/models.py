"""Frozen Pydantic records shared by all modules."""

from __future__ import annotations

from pydantic import BaseModel


class CommandResult(BaseModel):
    """Captured outcome of one finished subprocess."""

    model_config = {"frozen": True}

    args: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class ExportedDevice(BaseModel):
    """A device offered by a remote USB/IP host (``usbip list -r``)."""

    model_config = {"frozen": True}

    busid: str
    vendor: str
    product: str
    description: str = ""

    @property
    def usb_id(self) -> str:
        return f"{self.vendor}:{self.product}"


class ImportedDevice(BaseModel):
    """A device attached to a local virtual host controller port (``usbip port``)."""

    model_config = {"frozen": True}

    port: int
    vendor: str
    product: str
    remote_busid: str | None = None
    remote_host: str | None = None

    @property
    def usb_id(self) -> str:
        return f"{self.vendor}:{self.product}"
