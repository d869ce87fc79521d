"""
Command-line interface for gap9ctl.

Usage:
    gap9ctl [options] <command>

Options may appear before or after the command. With no command,
``start-tmux`` is run.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Awaitable, Callable
from typing import NoReturn

from gap9ctl.config import Settings, get_settings, log_settings
from gap9ctl.session.orchestrator import SessionOrchestrator
from gap9ctl.shared.exceptions import ConfigError, Gap9Error
from gap9ctl.shared.log import configure_logging

logger = logging.getLogger(__name__)

COMMANDS: dict[str, str] = {
    "start": "Start usbip daemon and GAP9 container",
    "start-tmux": "Start everything in a tmux session with split panes",
    "stop": "Stop containers",
    "start-usbip-host": "Setup and run host-side USB/IP server (in separate terminal)",
    "start-gap9": "Start only the GAP9 container",
    "start-usbip-daemon": "Start only the usbip device manager container",
    "attach-usbip": "Attach USB device to usbip daemon",
    "detach-usbip": "Detach USB device from usbip daemon",
    "stop-usbip-daemon": "Stop the usbip device manager container",
    "setup-usbip-host": "One-time setup for host-side USB/IP server",
    "status": "Show daemon, device and tmux session state",
    "help": "Display this help message",
}

# (flags, settings field, metavar)
_OPTIONS: tuple[tuple[tuple[str, ...], str, str], ...] = (
    (("-i", "--image"), "image", "NAME"),
    (("-d", "--work-dir"), "work_dir", "PATH"),
    (("-c", "--cache-dir"), "cache_dir", "PATH"),
    (("-k", "--ssh-key"), "ssh_key", "PATH"),
    (("-h", "--host"), "usbip_host", "ADDR"),
    (("-v", "--vendor"), "usbip_vendor", "ID"),
    (("-p", "--product"), "usbip_product", "ID"),
    (("--platform",), "platform", "PLATFORM"),
    (("--shell",), "shell", "SHELL"),
)


class _ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that raises ConfigError instead of exiting."""

    def error(self, message: str) -> NoReturn:
        raise ConfigError(message)


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    defaults = Settings.model_fields
    commands = "\n".join(f"  {name:<22} {text}" for name, text in COMMANDS.items())
    parser = _ArgumentParser(
        prog="gap9ctl",
        description="GAP9 Docker orchestration with USB/IP device passthrough",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        add_help=False,
        epilog=f"""
Commands:
{commands}

Examples:
  # Start everything in tmux (recommended)
  gap9ctl start-tmux

  # Start containers with USB device passthrough (manual terminals)
  gap9ctl start-usbip-host    # In terminal 1
  gap9ctl start               # In terminal 2

  # Custom working directory
  gap9ctl -d /path/to/workdir start

  # Stop everything
  gap9ctl stop
""",
    )
    parser.add_argument("command", nargs="?", choices=list(COMMANDS), metavar="command")
    for flags, field, metavar in _OPTIONS:
        parser.add_argument(
            *flags,
            dest=field,
            metavar=metavar,
            default=None,
            help=f"(default: {defaults[field].default})",
        )
    parser.add_argument("--help", action="store_true", dest="show_help", help="Display this help message")
    return parser


def overrides_from_args(args: argparse.Namespace) -> dict[str, str]:
    """Return only the settings given on the command line."""
    return {field: getattr(args, field) for _, field, _ in _OPTIONS if getattr(args, field) is not None}


def forwarded_options(overrides: dict[str, str]) -> list[str]:
    """Rebuild the command-line options so tmux panes see the same configuration."""
    options: list[str] = []
    for flags, field, _ in _OPTIONS:
        if field in overrides:
            options += [flags[-1], overrides[field]]
    return options


def invocation_prefix() -> list[str]:
    """Return the argv prefix that re-runs this program from a tmux pane."""
    program = sys.argv[0] if sys.argv else ""
    # python -m gap9ctl sets argv[0] to the non-executable __main__.py
    if not program or program.endswith("__main__.py"):
        return [sys.executable, "-m", "gap9ctl"]
    return [program]


async def _dispatch(command: str, orchestrator: SessionOrchestrator, self_command: list[str]) -> int:
    devmgr = orchestrator.devmgr

    async def _unit(awaitable: Awaitable[object]) -> int:
        await awaitable
        return 0

    handlers: dict[str, Callable[[], Awaitable[int]]] = {
        "start": orchestrator.start,
        "start-tmux": lambda: orchestrator.start_tmux(self_command),
        "stop": orchestrator.stop,
        "status": orchestrator.status,
        "start-gap9": orchestrator.workspace.start,
        "start-usbip-host": orchestrator.host.run_foreground,
        "setup-usbip-host": lambda: _unit(orchestrator.host.ensure_setup()),
        "start-usbip-daemon": lambda: _unit(devmgr.ensure_daemon()),
        "attach-usbip": lambda: _unit(devmgr.attach()),
        "detach-usbip": lambda: _unit(devmgr.detach()),
        "stop-usbip-daemon": lambda: _unit(devmgr.stop_daemon()),
    }
    return await handlers[command]()


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    configure_logging()
    parser = create_parser()
    argv = sys.argv[1:] if argv is None else argv

    try:
        args = parser.parse_args(argv)
        if args.show_help or args.command == "help":
            parser.print_help()
            return 1
        overrides = overrides_from_args(args)
        settings = get_settings(overrides)
    except ConfigError as exc:
        logger.error("%s", exc)
        parser.print_help()
        return 1

    log_settings(settings)
    command = args.command or "start-tmux"
    self_command = [*invocation_prefix(), *forwarded_options(overrides)]
    orchestrator = SessionOrchestrator.from_settings(settings)

    try:
        return asyncio.run(_dispatch(command, orchestrator, self_command))
    except Gap9Error as exc:
        logger.error("%s", exc)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
