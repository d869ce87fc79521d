"""Domain enumerations used across all modules."""

from __future__ import annotations

from enum import Enum, unique


@unique
class DeviceState(str, Enum):
    """Attachment state of the passthrough USB device."""

    DETACHED = "detached"
    ATTACHED = "attached"


@unique
class ReadinessStatus(str, Enum):
    """Outcome of a bounded readiness poll."""

    READY = "ready"
    TIMED_OUT = "timed_out"
