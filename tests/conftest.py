"""Shared test fixtures for Gesture Recorder tests."""

from datetime import datetime, timedelta
from pathlib import Path

import pytest

from gesture_recorder.core.errors import DeviceError
from gesture_recorder.core.gesture import KeyEdge, KeyTransition


class FakeCapture:
    """AudioCapture double that records calls and can be told to fail."""

    def __init__(self, duration_sec: float = 1.5) -> None:
        self.duration_sec = duration_sec
        self.begin_error = None
        self.end_error = None
        self.begun = []
        self.ended = 0
        self.active = False

    def begin(self, target_path: Path) -> None:
        if self.begin_error is not None:
            raise DeviceError(self.begin_error)
        if self.active:
            raise DeviceError("already capturing")
        self.active = True
        self.begun.append(Path(target_path))

    def end(self) -> float:
        if not self.active:
            raise DeviceError("not capturing")
        self.active = False
        self.ended += 1
        if self.end_error is not None:
            raise DeviceError(self.end_error)
        return self.duration_sec


class FakeUploader:
    """Uploader double; set ``fail`` to make uploads raise."""

    def __init__(self) -> None:
        self.fail = False
        self.calls = []

    def upload_file(self, local_path: str, recorded_at: datetime) -> str:
        self.calls.append(local_path)
        if self.fail:
            raise ConnectionError("network unreachable")
        return f"notes/{Path(local_path).name}"


class FakeClock:
    """Manually advanced datetime source."""

    def __init__(self, start: datetime = datetime(2026, 10, 19, 14, 30, 0)) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


def press(down_ms: int, up_ms: int):
    """DOWN/UP pair for one press."""
    return [KeyTransition(KeyEdge.DOWN, down_ms), KeyTransition(KeyEdge.UP, up_ms)]


@pytest.fixture
def fake_capture():
    return FakeCapture()


@pytest.fixture
def fake_uploader():
    return FakeUploader()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def temp_audio_dir(tmp_path):
    """Provide temporary recordings directory for tests."""
    audio_dir = tmp_path / "recordings"
    audio_dir.mkdir(parents=True, exist_ok=True)
    return audio_dir
