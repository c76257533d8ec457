"""Gesture-driven recording controller.

:class:`RecordingController` is the single place that correlates long-press
signals with recording sessions. Each qualifying press toggles recording:

- idle + long press   -> a new :class:`RecordingSession` starts,
  effects ``[Feedback.STARTED]``
- active + long press -> the session stops, effects
  ``[Feedback.STOPPED, UploadRequested(path)]`` when the file is usable,
  ``[Feedback.STOPPED]`` when finalizing failed

Failures never escape :meth:`RecordingController.handle_key_event`; they are
logged and passed to the optional ``on_error`` callback, and the controller
stays ready for the next gesture. Nothing is retried.

The controller is not thread-safe. Feed it from a single thread (see
:class:`~gesture_recorder.core.dispatcher.KeyEventDispatcher`).
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Union

from loguru import logger

from .capture import AudioCapture
from .config import DATETIME_FORMAT, FILE_EXTENSION, FILENAME_PREFIX, RECORDINGS_DIR
from .errors import CaptureError, FinalizeFailedError
from .gesture import GestureClassifier, KeyTransition
from .log import RecordingLogger
from .session import Aborted, Completed, RecordingOutcome, RecordingSession

ErrorCallback = Callable[[CaptureError], None]


class Feedback(str, Enum):
    STARTED = "started"
    STOPPED = "stopped"


@dataclass(frozen=True)
class UploadRequested:
    """A finished recording ready to be handed to the upload queue."""

    path: Path
    produced_at: datetime


Effect = Union[Feedback, UploadRequested]


class TimestampPathFactory:
    """Builds collision-free recording paths from the current time.

    Names look like ``recording_20261019_143022_123456.flac``. When the clock
    has not advanced since the previous call, the timestamp is bumped by one
    microsecond so names stay strictly increasing.
    """

    def __init__(
        self,
        output_dir: Union[str, Path] = RECORDINGS_DIR,
        extension: str = FILE_EXTENSION,
        prefix: str = FILENAME_PREFIX,
        datetime_format: str = DATETIME_FORMAT,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._output_dir = Path(output_dir)
        self._extension = extension.lstrip('.')
        self._prefix = prefix
        self._datetime_format = datetime_format
        self._clock = clock
        self._last: Optional[datetime] = None

    def __call__(self) -> Path:
        now = self._clock()
        if self._last is not None and now <= self._last:
            now = self._last + timedelta(microseconds=1)
        self._last = now
        return self._output_dir / f"{self._prefix}{now.strftime(self._datetime_format)}.{self._extension}"


class RecordingController:
    """Toggles recording sessions on long presses.

    Args:
        capture: Audio capability shared by every session.
        path_factory: Returns the target path for the next recording.
        classifier: Long-press classifier; a default one is created when omitted.
        on_error: Receives every :class:`CaptureError` the controller absorbs.
        recording_logger: Optional JSONL activity log.
        clock: Time source for sessions and upload requests.
    """

    def __init__(
        self,
        capture: AudioCapture,
        path_factory: Callable[[], Path],
        classifier: Optional[GestureClassifier] = None,
        on_error: Optional[ErrorCallback] = None,
        recording_logger: Optional[RecordingLogger] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._capture = capture
        self._path_factory = path_factory
        self._classifier = classifier or GestureClassifier()
        self._on_error = on_error
        self._recording_logger = recording_logger
        self._clock = clock
        self._session: Optional[RecordingSession] = None

    @property
    def classifier(self) -> GestureClassifier:
        return self._classifier

    @property
    def session(self) -> Optional[RecordingSession]:
        """The active session, if any."""
        return self._session

    @property
    def is_recording(self) -> bool:
        return self._session is not None and self._session.active

    def handle_key_event(self, transition: KeyTransition) -> List[Effect]:
        """Process one key transition and return the resulting effects."""
        if self._classifier.on_event(transition) is None:
            return []
        if self.is_recording:
            return self._stop()
        return self._start()

    def release(self) -> List[Effect]:
        """Stop an active recording, e.g. on shutdown."""
        self._classifier.reset()
        if not self.is_recording:
            return []
        logger.info("Stopping active recording on release")
        return self._stop()

    def _start(self) -> List[Effect]:
        # a finalized leftover is never reused
        self._session = None
        session = RecordingSession(self._capture, clock=self._clock)
        try:
            target_path = self._path_factory()
            session.start(target_path)
        except CaptureError as error:
            logger.warning(f"Recording not started: {error}")
            self._emit_error(error)
            return []

        self._session = session
        logger.info(f"Recording started: {target_path}")
        if self._recording_logger is not None:
            self._recording_logger.write_session_start(
                file_path=str(target_path),
                started_at=session.started_at,
            )
        return [Feedback.STARTED]

    def _stop(self) -> List[Effect]:
        session = self._session
        self._session = None
        try:
            outcome = session.stop()
        except CaptureError as error:
            logger.warning(f"Recording not stopped: {error}")
            self._emit_error(error)
            return []

        self._log_outcome(outcome)
        if isinstance(outcome, Completed):
            logger.info(f"Recording completed: {outcome.path} ({outcome.duration_sec:.1f}s)")
            return [Feedback.STOPPED, UploadRequested(path=outcome.path, produced_at=self._clock())]

        logger.warning(f"Recording aborted: {outcome.path} ({outcome.reason})")
        self._emit_error(FinalizeFailedError(outcome.reason, outcome.path))
        return [Feedback.STOPPED]

    def _log_outcome(self, outcome: RecordingOutcome) -> None:
        if self._recording_logger is None:
            return
        if isinstance(outcome, Aborted):
            self._recording_logger.write_session_end(
                file_path=str(outcome.path), outcome="aborted", reason=outcome.reason,
            )
        else:
            self._recording_logger.write_session_end(
                file_path=str(outcome.path), outcome="completed", duration_sec=outcome.duration_sec,
            )

    def _emit_error(self, error: CaptureError) -> None:
        if self._on_error:
            self._on_error(error)
