"""CLI utilities for Gesture Recorder.

This module provides the themed Rich console, table builders and logging
setup shared by the commands.
"""

import os
import sys
from contextlib import contextmanager
from datetime import datetime
from typing import List

from loguru import logger
from rich.console import Console
from rich.table import Table
from rich.theme import Theme

from gesture_recorder.core.controller import Feedback
from gesture_recorder.core.upload_queue import PendingUpload

# Create themed console for consistent output
_theme = Theme(
    {
        "info": "cyan",
        "success": "green",
        "warning": "yellow",
        "error": "bold red",
        "debug": "dim white",
    }
)

console = Console(theme=_theme)


def configure_logging(verbose: bool) -> None:
    """Route loguru to stderr: DEBUG with ``--verbose``, WARNING otherwise."""
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "WARNING")


def make_device_table(devices: List[dict]) -> Table:
    """Build a Rich Table from the device list returned by ``list_devices()``.

    Args:
        devices: List of dicts with keys: id, name, channels, rate, is_default
    """
    table = Table(show_header=True, header_style="bold", show_lines=False, expand=False)
    table.add_column("ID", style="cyan", width=4, justify="right")
    table.add_column("Name", min_width=30)
    table.add_column("Ch", justify="right", style="dim", width=4)
    table.add_column("Rate", justify="right", style="dim", width=12)
    table.add_column("", width=9)

    for d in devices:
        default_mark = "[bold green]DEFAULT[/bold green]" if d.get("is_default") else ""
        table.add_row(
            str(d["id"]),
            d["name"],
            str(d.get("channels", "")),
            f"{d.get('rate', '')} Hz",
            default_mark,
        )
    return table


def make_recordings_table(recordings: List[dict]) -> Table:
    """Build a Rich Table from ``StorageManager.list_recordings()``."""
    table = Table(show_header=True, header_style="bold", show_lines=False, expand=False)
    table.add_column("Name", min_width=30)
    table.add_column("Size", justify="right", style="dim", width=10)
    table.add_column("Modified", style="dim", width=19)

    for r in recordings:
        modified = datetime.fromtimestamp(r["modified"]).strftime("%Y-%m-%d %H:%M:%S")
        table.add_row(r["name"], f"{r['size'] / 1024:.1f} KB", modified)
    return table


def make_pending_table(pending: List[PendingUpload]) -> Table:
    """Build a Rich Table of queued uploads."""
    table = Table(show_header=True, header_style="bold", show_lines=False, expand=False)
    table.add_column("File", min_width=30)
    table.add_column("Attempts", justify="right", width=8)
    table.add_column("Next attempt", style="dim", width=19)
    table.add_column("Last error", style="dim")

    for entry in pending:
        next_attempt = entry.next_attempt_at.strftime("%Y-%m-%d %H:%M:%S") if entry.next_attempt_at else "now"
        table.add_row(entry.path.name, str(entry.attempts), next_attempt, entry.last_error or "")
    return table


def render_feedback(feedback: Feedback) -> None:
    """Terminal stand-in for haptic feedback: one bell on start, two on stop."""
    if feedback == Feedback.STARTED:
        console.bell()
        console.print("[success]● Recording[/success]")
    else:
        console.bell()
        console.bell()
        console.print("[info]■ Recording stopped[/info]")


@contextmanager
def suppress_stderr():
    """Context manager to suppress stderr output from libraries like ALSA, JACK.

    Used to hide debug/warning messages from audio subsystems that pollute
    terminal output.
    """
    # Save original stderr file descriptor
    original_stderr_fd = os.dup(2)
    try:
        # Open /dev/null and redirect stderr to it
        null_fd = os.open(os.devnull, os.O_WRONLY)
        os.dup2(null_fd, 2)
        os.close(null_fd)
        yield
    finally:
        # Restore original stderr
        os.dup2(original_stderr_fd, 2)
        os.close(original_stderr_fd)


__all__ = [
    "console",
    "configure_logging",
    "suppress_stderr",
    "make_device_table",
    "make_recordings_table",
    "make_pending_table",
    "render_feedback",
]
