"""Error types shared by the capture layer and the recording controller.

Every :class:`CaptureError` is recoverable at the controller boundary: the
controller reports it on its error channel and stays ready for the next
long press.
"""

from pathlib import Path
from typing import Optional


class DeviceError(Exception):
    """Raised by an audio capture implementation when the device fails."""


class CaptureError(Exception):
    """Base class for recording session failures."""


class AlreadyActiveError(CaptureError):
    """A session was asked to start while it is not idle."""


class NotActiveError(CaptureError):
    """A session was asked to stop while it is not recording."""


class DeviceUnavailableError(CaptureError):
    """The microphone could not be acquired (busy, revoked, hardware fault)."""


class FinalizeFailedError(CaptureError):
    """Closing the capture device failed; the target file is unusable."""

    def __init__(self, reason: str, path: Optional[Path] = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.path = path
