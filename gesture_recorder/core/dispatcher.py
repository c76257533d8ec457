"""Serialised delivery of key events to the recording controller.

The controller keeps press and session state that is mutated across a
DOWN/UP pair, so it must see events one at a time and in order. Listener
threads call :meth:`KeyEventDispatcher.submit`; a single worker thread drains
the queue, runs the controller and applies the effects it returns.
"""

import threading
from queue import Full, Queue
from typing import Callable, List, Optional

from loguru import logger

from .controller import Effect, Feedback, RecordingController, UploadRequested
from .errors import CaptureError, FinalizeFailedError
from .gesture import KeyTransition
from .storage import StorageManager
from .upload_queue import UploadQueue

FeedbackCallback = Callable[[Feedback], None]


class CaptureErrorHandler:
    """Error channel for :class:`RecordingController`.

    Logs every absorbed error and deletes the file of a recording whose
    finalize failed so it can never reach the upload queue.
    """

    def __init__(self, storage: StorageManager, on_error: Optional[Callable[[CaptureError], None]] = None) -> None:
        self._storage = storage
        self._on_error = on_error

    def __call__(self, error: CaptureError) -> None:
        logger.warning(f"{type(error).__name__}: {error}")
        if isinstance(error, FinalizeFailedError) and error.path is not None:
            self._storage.delete_recording(error.path)
        if self._on_error:
            self._on_error(error)


class KeyEventDispatcher:
    """Single-writer queue in front of a :class:`RecordingController`.

    Args:
        controller: The controller shared by every key source.
        upload_queue: Receives :class:`UploadRequested` effects.
        on_feedback: Renders ``STARTED``/``STOPPED`` feedback.
        queue_maxsize: Events beyond this backlog are dropped.
    """

    def __init__(
        self,
        controller: RecordingController,
        upload_queue: UploadQueue,
        on_feedback: Optional[FeedbackCallback] = None,
        queue_maxsize: int = 256,
    ) -> None:
        self._controller = controller
        self._upload_queue = upload_queue
        self._on_feedback = on_feedback
        self._events: "Queue[Optional[KeyTransition]]" = Queue(maxsize=queue_maxsize)
        self._thread: Optional[threading.Thread] = None
        self.dropped_events = 0

    def submit(self, transition: KeyTransition) -> None:
        """Enqueue a transition; safe to call from any thread."""
        try:
            self._events.put_nowait(transition)
        except Full:
            self.dropped_events += 1
            logger.warning(f"Key event backlog full, dropped {transition.edge.value}")

    def dispatch(self, transition: KeyTransition) -> List[Effect]:
        """Run one transition through the controller and apply its effects."""
        effects = self._controller.handle_key_event(transition)
        self.apply(effects)
        return effects

    def apply(self, effects: List[Effect]) -> None:
        for effect in effects:
            if isinstance(effect, UploadRequested):
                self._upload_queue.request(effect)
            elif self._on_feedback:
                self._on_feedback(effect)

    def start(self) -> None:
        """Start the worker thread."""
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name="key-dispatcher", daemon=True)
        self._thread.start()

    def stop(self, wait_log_interval: float = 5.0) -> None:
        """Drain pending events, stop the worker and finish any active recording.

        Blocks until the worker has exited; the controller is only released
        once no other thread can be inside it.
        """
        if self._thread is not None:
            self._events.put(None)
            self._thread.join(timeout=wait_log_interval)
            while self._thread.is_alive():
                logger.info("Waiting for the current recording to be saved...")
                self._thread.join(timeout=wait_log_interval)
            self._thread = None
        self.apply(self._controller.release())

    def _run(self) -> None:
        while True:
            transition = self._events.get()
            if transition is None:
                break
            try:
                self.dispatch(transition)
            except Exception as error:
                logger.exception(f"Key event handling failed: {error}")
