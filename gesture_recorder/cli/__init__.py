"""Command-line interface for Gesture Recorder."""

from .commands import app

__all__ = ["app"]
