"""User-facing console feedback for CLI operations.

Everything here prints to stderr. Stdout is reserved for the text
reporters so that piping `cvp report` output stays clean.

Usage::

    from coverplane.core.progress import status

    status("Merged 4 partials")
    status("Coverage threshold not met", style="error")
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

from rich.console import Console

if TYPE_CHECKING:
    from structlog.stdlib import BoundLogger

_console = Console(stderr=True)

_STYLES = {
    "success": "[green]✓[/green] ",
    "error": "[red]✗[/red] ",
    "warning": "[yellow]![/yellow] ",
    "info": "  ",
    "none": "",
}

_suppress_lock = threading.Lock()
_suppress_depth = 0


def is_console_suppressed() -> bool:
    """Check if console logging is currently suppressed (in any thread)."""
    return _suppress_depth > 0


@contextmanager
def suppress_console_logs() -> Iterator[None]:
    """Suppress structlog console output for the duration of the block.

    Applies to every thread, so log lines from concurrent work cannot land
    in the middle of report text on the terminal. Blocks may nest. Logs
    are still written to file handlers.
    """
    global _suppress_depth
    with _suppress_lock:
        _suppress_depth += 1
    try:
        yield
    finally:
        with _suppress_lock:
            _suppress_depth -= 1


def _get_logger() -> BoundLogger:
    from coverplane.core.logging import get_logger

    return get_logger("progress")


def get_console() -> Console:
    """Get the shared Rich console instance."""
    return _console


def status(message: str, *, style: str = "info", indent: int = 0) -> None:
    """Print a styled status message to stderr."""
    prefix = _STYLES.get(style, "")
    padding = " " * indent
    _console.print(f"{padding}{prefix}{message}", highlight=False)

    _get_logger().debug("status", message=message, style=style)


def pluralize(count: int, singular: str, plural: str | None = None) -> str:
    """Return "1 file" or "3 files"."""
    if plural is None:
        plural = singular + "s"
    word = singular if count == 1 else plural
    return f"{count} {word}"
