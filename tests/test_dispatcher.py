"""KeyEventDispatcher and CaptureErrorHandler tests."""

from pathlib import Path

from gesture_recorder.core.controller import Feedback, RecordingController, TimestampPathFactory
from gesture_recorder.core.dispatcher import CaptureErrorHandler, KeyEventDispatcher
from gesture_recorder.core.errors import DeviceUnavailableError, FinalizeFailedError
from gesture_recorder.core.storage import StorageManager
from gesture_recorder.core.upload_queue import UploadQueue

from conftest import press


class WritingCapture:
    """Capture double that creates the target file like a real device."""

    def __init__(self, fail_end=False):
        self.fail_end = fail_end
        self._path = None

    def begin(self, target_path: Path) -> None:
        self._path = Path(target_path)
        self._path.write_bytes(b"partial")

    def end(self) -> float:
        from gesture_recorder.core.errors import DeviceError

        if self.fail_end:
            raise DeviceError("encoder crashed")
        return 2.0


def build(temp_audio_dir, capture, clock):
    storage = StorageManager(temp_audio_dir)
    errors = []
    controller = RecordingController(
        capture=capture,
        path_factory=TimestampPathFactory(temp_audio_dir, clock=clock),
        on_error=CaptureErrorHandler(storage, on_error=errors.append),
        clock=clock,
    )
    upload_queue = UploadQueue(uploader=None, precondition=lambda: True)
    feedback = []
    dispatcher = KeyEventDispatcher(controller, upload_queue, on_feedback=feedback.append)
    return dispatcher, upload_queue, feedback, errors


def test_completed_recording_is_queued_for_upload(temp_audio_dir, clock):
    dispatcher, upload_queue, feedback, errors = build(temp_audio_dir, WritingCapture(), clock)
    for transition in press(0, 1200) + press(3000, 4200):
        dispatcher.dispatch(transition)

    assert feedback == [Feedback.STARTED, Feedback.STOPPED]
    assert errors == []
    pending = upload_queue.pending
    assert len(pending) == 1
    assert pending[0].path.exists()


def test_aborted_recording_is_deleted_and_not_queued(temp_audio_dir, clock):
    dispatcher, upload_queue, feedback, errors = build(temp_audio_dir, WritingCapture(fail_end=True), clock)
    for transition in press(0, 1200) + press(3000, 4200):
        dispatcher.dispatch(transition)

    assert feedback == [Feedback.STARTED, Feedback.STOPPED]
    assert upload_queue.pending == []
    assert isinstance(errors[0], FinalizeFailedError)
    assert not errors[0].path.exists()
    assert list(temp_audio_dir.glob("*.flac")) == []


def test_worker_thread_processes_events_in_order(temp_audio_dir, clock):
    dispatcher, upload_queue, feedback, errors = build(temp_audio_dir, WritingCapture(), clock)
    dispatcher.start()
    for transition in press(0, 1200) + press(1500, 1600) + press(3000, 4200):
        dispatcher.submit(transition)
    dispatcher.stop()

    assert feedback == [Feedback.STARTED, Feedback.STOPPED]
    assert len(upload_queue.pending) == 1


def test_stop_finishes_active_recording(temp_audio_dir, clock):
    dispatcher, upload_queue, feedback, errors = build(temp_audio_dir, WritingCapture(), clock)
    dispatcher.start()
    for transition in press(0, 1200):
        dispatcher.submit(transition)
    dispatcher.stop()

    assert feedback == [Feedback.STARTED, Feedback.STOPPED]
    assert len(upload_queue.pending) == 1


def test_full_backlog_drops_events(temp_audio_dir, clock):
    dispatcher, upload_queue, feedback, errors = build(temp_audio_dir, WritingCapture(), clock)
    dispatcher = KeyEventDispatcher(dispatcher._controller, upload_queue, queue_maxsize=1)
    for transition in press(0, 1200):
        dispatcher.submit(transition)
    assert dispatcher.dropped_events == 1


def test_error_handler_only_deletes_on_finalize_failure(temp_audio_dir):
    storage = StorageManager(temp_audio_dir)
    recording = temp_audio_dir / "keep.flac"
    recording.write_bytes(b"data")
    handler = CaptureErrorHandler(storage)

    handler(DeviceUnavailableError("busy"))
    assert recording.exists()

    handler(FinalizeFailedError("disk full", recording))
    assert not recording.exists()


class SlowCapture(WritingCapture):
    """Capture whose encode step outlasts the stop wait interval."""

    def __init__(self, delay_sec):
        super().__init__()
        self.delay_sec = delay_sec
        self.end_threads = []

    def end(self) -> float:
        import threading
        import time

        self.end_threads.append(threading.current_thread().name)
        time.sleep(self.delay_sec)
        return super().end()


def test_stop_waits_for_slow_finalize(temp_audio_dir, clock):
    capture = SlowCapture(delay_sec=0.5)
    dispatcher, upload_queue, feedback, errors = build(temp_audio_dir, capture, clock)
    dispatcher.start()
    worker = dispatcher._thread
    for transition in press(0, 1200) + press(3000, 4200):
        dispatcher.submit(transition)
    dispatcher.stop(wait_log_interval=0.05)

    assert not worker.is_alive()
    assert feedback == [Feedback.STARTED, Feedback.STOPPED]
    assert len(upload_queue.pending) == 1
    # finalize ran once, on the worker; release() found nothing left to stop
    assert capture.end_threads == ["key-dispatcher"]
