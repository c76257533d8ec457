"""RecordingController tests, including the end-to-end gesture scenarios."""

import json
from datetime import datetime
from pathlib import Path

from gesture_recorder.core.controller import (
    Feedback,
    RecordingController,
    TimestampPathFactory,
    UploadRequested,
)
from gesture_recorder.core.errors import DeviceUnavailableError, FinalizeFailedError, NotActiveError
from gesture_recorder.core.gesture import GestureClassifier, KeyEdge, KeyTransition
from gesture_recorder.core.log import RecordingLogger
from gesture_recorder.core.session import SessionState

from conftest import press


class SequentialPaths:
    def __init__(self):
        self.count = 0

    def __call__(self):
        self.count += 1
        return Path(f"rec{self.count}")


def make_controller(capture, clock, errors=None, **kwargs):
    return RecordingController(
        capture=capture,
        path_factory=SequentialPaths(),
        on_error=errors.append if errors is not None else None,
        clock=clock,
        **kwargs,
    )


def run(controller, transitions):
    effects = []
    for transition in transitions:
        effects.extend(controller.handle_key_event(transition))
    return effects


def test_scenario_long_press_start_then_stop_requests_upload(fake_capture, clock):
    controller = make_controller(fake_capture, clock)

    assert run(controller, press(0, 1200)) == [Feedback.STARTED]
    assert controller.is_recording
    assert fake_capture.begun == [Path("rec1")]

    effects = run(controller, press(5000, 6500))
    assert effects == [
        Feedback.STOPPED,
        UploadRequested(path=Path("rec1"), produced_at=clock.now),
    ]
    assert not controller.is_recording
    assert controller.session is None


def test_scenario_short_press_changes_nothing(fake_capture, clock):
    controller = make_controller(fake_capture, clock)
    assert run(controller, press(0, 300)) == []
    assert not controller.is_recording
    assert fake_capture.begun == []


def test_scenario_failed_start_then_retry(fake_capture, clock):
    errors = []
    controller = make_controller(fake_capture, clock, errors)

    fake_capture.begin_error = "microphone busy"
    assert run(controller, press(0, 1200)) == []
    assert not controller.is_recording
    assert len(errors) == 1
    assert isinstance(errors[0], DeviceUnavailableError)

    fake_capture.begin_error = None
    assert run(controller, press(2000, 3200)) == [Feedback.STARTED]
    assert controller.is_recording


def test_scenario_aborted_finalize_stops_without_upload(fake_capture, clock):
    errors = []
    controller = make_controller(fake_capture, clock, errors)
    run(controller, press(0, 1200))

    fake_capture.end_error = "disk full"
    effects = run(controller, press(5000, 6500))
    assert effects == [Feedback.STOPPED]
    assert not any(isinstance(e, UploadRequested) for e in effects)
    assert len(errors) == 1
    assert isinstance(errors[0], FinalizeFailedError)
    assert errors[0].path == Path("rec1")
    assert errors[0].reason == "disk full"


def test_consecutive_gestures_alternate_sessions(fake_capture, clock):
    controller = make_controller(fake_capture, clock)
    events = press(0, 1100) + press(2000, 3100) + press(4000, 5100) + press(6000, 7100)
    effects = run(controller, events)
    feedback = [e for e in effects if isinstance(e, Feedback)]
    assert feedback == [Feedback.STARTED, Feedback.STOPPED, Feedback.STARTED, Feedback.STOPPED]
    assert fake_capture.begun == [Path("rec1"), Path("rec2")]
    assert [e.path for e in effects if isinstance(e, UploadRequested)] == [Path("rec1"), Path("rec2")]


def test_never_two_sessions_active(fake_capture, clock):
    controller = make_controller(fake_capture, clock)
    # auto-repeat DOWNs and stray UPs around the gestures
    events = [
        KeyTransition(KeyEdge.UP, 0),
        KeyTransition(KeyEdge.DOWN, 10),
        KeyTransition(KeyEdge.DOWN, 600),
        KeyTransition(KeyEdge.DOWN, 1200),
        KeyTransition(KeyEdge.UP, 1300),
        KeyTransition(KeyEdge.UP, 1400),
    ]
    run(controller, events)
    assert fake_capture.begun == [Path("rec1")]
    assert controller.is_recording


def test_stop_error_leaves_controller_ready(fake_capture, clock):
    errors = []
    controller = make_controller(fake_capture, clock, errors)
    run(controller, press(0, 1200))
    # simulate a session that lost its ACTIVE state behind the controller's back
    controller.session._state = SessionState.FINALIZED
    fake_capture.active = False

    assert run(controller, press(2000, 3200)) == []
    assert isinstance(errors[0], NotActiveError)
    assert not controller.is_recording
    assert run(controller, press(4000, 5200)) == [Feedback.STARTED]


def test_release_stops_active_recording(fake_capture, clock):
    controller = make_controller(fake_capture, clock)
    assert controller.release() == []

    run(controller, press(0, 1200))
    effects = controller.release()
    assert effects[0] == Feedback.STOPPED
    assert isinstance(effects[1], UploadRequested)
    assert not controller.is_recording


def test_custom_classifier_threshold(fake_capture, clock):
    controller = make_controller(fake_capture, clock, classifier=GestureClassifier(threshold_ms=200))
    assert run(controller, press(0, 250)) == [Feedback.STARTED]


def test_controller_writes_activity_log(fake_capture, clock, tmp_path):
    log_path = tmp_path / "recordings.jsonl"
    controller = make_controller(fake_capture, clock, recording_logger=RecordingLogger(log_path))
    run(controller, press(0, 1200) + press(2000, 3200))

    lines = [json.loads(line) for line in log_path.read_text().splitlines()]
    assert [(l["type"], l["event"]) for l in lines] == [("session", "start"), ("session", "end")]
    assert lines[0]["file_path"] == "rec1"
    assert lines[1]["outcome"] == "completed"
    assert lines[1]["duration_sec"] == 1.5


def test_timestamp_path_factory_is_strictly_increasing(tmp_path):
    fixed = datetime(2026, 10, 19, 14, 30, 22, 123456)
    factory = TimestampPathFactory(tmp_path, extension="flac", clock=lambda: fixed)

    first = factory()
    second = factory()
    assert first == tmp_path / "recording_20261019_143022_123456.flac"
    assert second == tmp_path / "recording_20261019_143022_123457.flac"
    assert first != second
