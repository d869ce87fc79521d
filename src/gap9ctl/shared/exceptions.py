"""Hierarchical exception types for gap9ctl."""

from __future__ import annotations


class Gap9Error(Exception):
    """Base exception for all gap9ctl errors."""


# ── Setup / validation ─────────────────────────────────────────


class ConfigError(Gap9Error):
    """Bad command-line flags or invalid configuration values."""


class PathNotFoundError(Gap9Error):
    """A required host path does not exist."""


class ToolNotFoundError(Gap9Error):
    """A required external binary is not installed."""


# ── Processes ──────────────────────────────────────────────────


class CommandError(Gap9Error):
    """An external command could not be run to completion."""


class HostSetupError(Gap9Error):
    """Preparing the host-side USB/IP server failed."""


class ServiceNotReadyError(Gap9Error):
    """The host-side USB/IP server never became visible."""


# ── Containers / devices ───────────────────────────────────────


class ContainerError(Gap9Error):
    """Docker container lifecycle error."""


class UsbipError(Gap9Error):
    """A usbip command inside the device manager failed."""


class DeviceNotFoundError(UsbipError):
    """No exported device matches the configured vendor:product."""


class TmuxError(CommandError):
    """A tmux subcommand exited with an error."""
