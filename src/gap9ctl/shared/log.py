"""Severity-tagged status lines for the operator."""

from __future__ import annotations

import logging
import os
import sys
from typing import Any, TextIO

SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

_TAGS = {
    logging.DEBUG: ("DEBUG  ", "\033[0;90m"),
    logging.INFO: ("INFO   ", "\033[0;36m"),
    SUCCESS: ("SUCCESS", "\033[0;32m"),
    logging.WARNING: ("WARN   ", "\033[0;33m"),
    logging.ERROR: ("ERROR  ", "\033[0;31m"),
    logging.CRITICAL: ("ERROR  ", "\033[0;31m"),
}
_RESET = "\033[0m"
_MARKER = "_gap9ctl_handler"


class TaggedFormatter(logging.Formatter):
    """Render records as ``[TAG    ] message``, colouring the tag on a TTY."""

    def __init__(self, *, color: bool = False) -> None:
        super().__init__()
        self._color = color

    def format(self, record: logging.LogRecord) -> str:
        tag, color = _TAGS.get(record.levelno, (record.levelname[:7].ljust(7), ""))
        prefix = f"{color}[{tag}]{_RESET}" if self._color and color else f"[{tag}]"
        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return f"{prefix} {message}"


class _MaxLevelFilter(logging.Filter):
    def __init__(self, max_level: int) -> None:
        super().__init__()
        self._max_level = max_level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno < self._max_level


def _handler(stream: TextIO) -> logging.StreamHandler[TextIO]:
    handler = logging.StreamHandler(stream)
    setattr(handler, _MARKER, True)
    handler.setFormatter(TaggedFormatter(color=stream.isatty()))
    return handler


def resolve_level(level: int | str) -> int | None:
    """Map a level name or number to its numeric value, or None if unknown."""
    if isinstance(level, int):
        return level
    name = level.strip().upper()
    if name.isdigit():
        return int(name)
    value = logging.getLevelName(name)
    return value if isinstance(value, int) else None


def configure_logging(
    level: int | str | None = None,
    *,
    stdout: TextIO | None = None,
    stderr: TextIO | None = None,
) -> None:
    """Send INFO/SUCCESS lines to stdout and WARN/ERROR lines to stderr.

    ``GAP9_LOG_LEVEL`` overrides the level when ``level`` is not given.
    """
    requested = os.environ.get("GAP9_LOG_LEVEL", "INFO") if level is None else level
    resolved = resolve_level(requested)

    out = _handler(stdout or sys.stdout)
    out.addFilter(_MaxLevelFilter(logging.WARNING))
    err = _handler(stderr or sys.stderr)
    err.setLevel(logging.WARNING)

    root = logging.getLogger()
    for existing in list(root.handlers):
        if getattr(existing, _MARKER, False):
            root.removeHandler(existing)
    root.addHandler(out)
    root.addHandler(err)
    root.setLevel(logging.INFO if resolved is None else resolved)
    # Docker SDK connection chatter is not operator-facing.
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("docker").setLevel(logging.WARNING)
    if resolved is None:
        logging.getLogger(__name__).warning("unknown log level %r, using INFO", requested)


def success(logger: logging.Logger, msg: str, *args: Any) -> None:
    """Log ``msg`` at the SUCCESS level."""
    logger.log(SUCCESS, msg, *args)
