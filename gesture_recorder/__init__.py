"""Gesture Recorder - long-press a hardware key to record, upload on Wi-Fi.

This package toggles audio recording with a long press on a single key
(volume-up by default), even while another application has focus, and queues
finished recordings for upload once an unmetered network is available.
"""

from .cli.commands import app

__version__ = "1.0.0"

__all__ = ["app", "__version__"]
