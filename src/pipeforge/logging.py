"""Logging configuration for pipeforge."""

import logging
from collections.abc import Callable
from enum import IntEnum
from typing import TextIO

from rich.console import Console
from rich.logging import RichHandler

from .models import SessionEvent


class LogLevel(IntEnum):
    """Log level enumeration."""

    QUIET = logging.WARNING
    NORMAL = logging.INFO
    VERBOSE = logging.DEBUG


def configure_logging(
    verbosity: int = 0,
    quiet: bool = False,
    no_color: bool = False,
    stream: TextIO | None = None,
    debug: bool = False,
) -> Console:
    """Configure logging based on CLI options.

    Args:
        verbosity: Number of -v flags (0=normal, 1=verbose, 2+=debug)
        quiet: Suppress non-error output (takes precedence over debug/verbosity)
        no_color: Disable colored output
        stream: Output stream for logs (defaults to the current sys.stderr)
        debug: Enable debug logging (equivalent to -vv, ignored if quiet is set)

    Returns:
        Configured Rich console for output

    Note:
        Flag precedence: quiet > debug > verbosity
    """
    if quiet:
        level = LogLevel.QUIET
    elif debug or verbosity >= 1:
        level = LogLevel.VERBOSE
    else:
        level = LogLevel.NORMAL

    console = Console(
        file=stream,
        stderr=stream is None,
        force_terminal=not no_color,
        no_color=no_color,
    )

    handler = RichHandler(
        console=console,
        show_time=debug or verbosity >= 2,
        show_path=debug or verbosity >= 2,
    )

    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[handler],
        force=True,
    )

    return console


def session_event_sink(name: str = "pipeforge.events") -> Callable[[SessionEvent], None]:
    """Build a session event sink that forwards every event to a logger at DEBUG."""
    event_logger = logging.getLogger(name)

    def sink(event: SessionEvent) -> None:
        event_logger.debug(f"[{event.stage}] {event.kind.value}: {event.message}")

    return sink
