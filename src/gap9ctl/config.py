"""Centralised configuration via Pydantic Settings."""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings

from gap9ctl.shared.exceptions import ConfigError

logger = logging.getLogger(__name__)

_USB_ID_RE = re.compile(r"^[0-9a-f]{4}$")


class Settings(BaseSettings):
    """Session configuration: defaults, overridden by ``GAP9_*`` env vars, overridden by CLI flags."""

    model_config = {"env_prefix": "GAP9_", "frozen": True, "validate_default": True}

    # Workspace container
    image: str = "ghcr.io/pulp-platform/deeploy-gap9"
    work_dir: str = "."
    cache_dir: str = ".cache"
    ssh_key: str = "~/.ssh/id_ed25519"
    # "auto" lets docker pick the platform
    platform: str = "auto"
    shell: str = "/bin/zsh"
    history_file: str = ".zsh_history"

    # USB/IP device
    usbip_host: str = "host.docker.internal"
    usbip_vendor: str = "15ba"
    usbip_product: str = "002b"

    # Device manager container
    usbip_image: str = "jonathanberi/devmgr"
    devmgr_name: str = "usbip-devmgr"

    # Host-side USB/IP server (pyusbip)
    pyusbip_repo: str = "https://github.com/tumayt/pyusbip"
    pyusbip_dir: str = ".pyusbip"
    # Comma-separated pip requirements installed into the pyusbip venv
    pyusbip_requirements: str = "libusb1"

    # tmux
    tmux_session: str = "gap9-dev"

    # Readiness / timeouts
    readiness_attempts: int = 20
    readiness_interval_seconds: float = 1.0
    command_timeout_seconds: float = 60.0

    @field_validator("ssh_key")
    @classmethod
    def _expand_ssh_key(cls, value: str) -> str:
        return os.path.expanduser(value)

    @field_validator("usbip_vendor", "usbip_product")
    @classmethod
    def _check_usb_id(cls, value: str) -> str:
        normalized = value.strip().lower()
        if not _USB_ID_RE.match(normalized):
            raise ValueError(f"expected four hex digits, got {value!r}")
        return normalized

    @field_validator("readiness_attempts")
    @classmethod
    def _check_attempts(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be >= 1")
        return value

    @property
    def usb_id(self) -> str:
        return f"{self.usbip_vendor}:{self.usbip_product}"

    @property
    def requirements(self) -> list[str]:
        return [req.strip() for req in self.pyusbip_requirements.split(",") if req.strip()]


def get_settings(overrides: Mapping[str, Any] | None = None) -> Settings:
    """Build settings with ``overrides`` (CLI values) taking precedence over the environment.

    Raises:
        ConfigError: If any resolved value fails validation.
    """
    values = {key: value for key, value in (overrides or {}).items() if value is not None}
    try:
        return Settings(**values)
    except ValidationError as exc:
        problems = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors())
        raise ConfigError(f"invalid configuration: {problems}") from exc


def log_settings(settings: Settings) -> None:
    """Print the resolved configuration, one field per line."""
    logger.info("Configuration:")
    logger.info("  GAP9 Docker Image: %s", settings.image)
    logger.info("  Working Directory: %s", settings.work_dir)
    logger.info("  Cache Directory: %s", settings.cache_dir)
    logger.info("  SSH Private Key: %s", settings.ssh_key)
    logger.info("  USB/IP Host: %s", settings.usbip_host)
    logger.info("  USB Vendor ID: %s", settings.usbip_vendor)
    logger.info("  USB Product ID: %s", settings.usbip_product)
    logger.info("  Docker Platform: %s", settings.platform)
    logger.info("  Docker Shell: %s", settings.shell)
