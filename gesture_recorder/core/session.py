"""Lifecycle of a single recording.

A :class:`RecordingSession` goes ``IDLE -> ACTIVE -> FINALIZED`` exactly once.
``FINALIZED`` is terminal: every recording gets a fresh session, so no start
time or device handle carries over from the previous one.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Union

from loguru import logger

from .capture import AudioCapture
from .errors import AlreadyActiveError, DeviceError, DeviceUnavailableError, NotActiveError


class SessionState(str, Enum):
    IDLE = "IDLE"
    ACTIVE = "ACTIVE"
    FINALIZED = "FINALIZED"


@dataclass(frozen=True)
class Completed:
    path: Path
    duration_sec: float


@dataclass(frozen=True)
class Aborted:
    """Finalize failed; ``path`` must not be uploaded."""

    path: Path
    reason: str


RecordingOutcome = Union[Completed, Aborted]


class RecordingSession:
    """One recording attempt backed by an :class:`AudioCapture`.

    Args:
        capture: Device capability used to record.
        clock: Returns the current time; used for ``started_at``.
    """

    def __init__(
        self,
        capture: AudioCapture,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._capture = capture
        self._clock = clock
        self._state = SessionState.IDLE
        self._target_path: Optional[Path] = None
        self._started_at: Optional[datetime] = None
        self._outcome: Optional[RecordingOutcome] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def target_path(self) -> Optional[Path]:
        return self._target_path

    @property
    def started_at(self) -> Optional[datetime]:
        return self._started_at

    @property
    def outcome(self) -> Optional[RecordingOutcome]:
        return self._outcome

    @property
    def active(self) -> bool:
        return self._state == SessionState.ACTIVE

    def start(self, target_path: Path) -> None:
        """Begin capturing into *target_path*.

        Raises:
            AlreadyActiveError: The session is recording or already finalized.
            DeviceUnavailableError: The microphone could not be opened. The
                session stays ``IDLE``.
        """
        if self._state != SessionState.IDLE:
            raise AlreadyActiveError(f"Session is {self._state.value}, cannot start")

        target_path = Path(target_path)
        try:
            self._capture.begin(target_path)
        except DeviceError as error:
            raise DeviceUnavailableError(str(error)) from error

        self._target_path = target_path
        self._started_at = self._clock()
        self._state = SessionState.ACTIVE

    def stop(self) -> RecordingOutcome:
        """Finalize the capture and return the outcome.

        A device failure while finalizing does not raise: the session ends as
        :class:`Aborted` and the caller is expected to discard the file.

        Raises:
            NotActiveError: The session is not recording. State is unchanged.
        """
        if self._state != SessionState.ACTIVE or self._target_path is None:
            raise NotActiveError(f"Session is {self._state.value}, cannot stop")

        try:
            duration_sec = self._capture.end()
        except DeviceError as error:
            logger.warning(f"Finalizing {self._target_path} failed: {error}")
            self._outcome = Aborted(path=self._target_path, reason=str(error))
        else:
            self._outcome = Completed(path=self._target_path, duration_sec=duration_sec)

        self._state = SessionState.FINALIZED
        return self._outcome
