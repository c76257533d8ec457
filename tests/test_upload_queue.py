"""UploadQueue tests: append semantics, precondition, backoff, persistence."""

import json
from datetime import timedelta

from gesture_recorder.core.controller import UploadRequested
from gesture_recorder.core.log import RecordingLogger
from gesture_recorder.core.upload_queue import UploadQueue


def make_recording(directory, name="recording_1.flac"):
    path = directory / name
    path.write_bytes(b"fLaC")
    return path


def make_queue(uploader, clock, network=None, **kwargs):
    network = network if network is not None else {"ok": True}
    return UploadQueue(
        uploader=uploader,
        precondition=lambda: network["ok"],
        clock=clock,
        **kwargs,
    )


def test_request_appends_and_deduplicates(fake_uploader, clock, temp_audio_dir):
    queue = make_queue(fake_uploader, clock)
    first = make_recording(temp_audio_dir, "a.flac")
    second = make_recording(temp_audio_dir, "b.flac")

    assert queue.request(UploadRequested(first, clock.now)) is True
    assert queue.request(UploadRequested(second, clock.now)) is True
    assert queue.request(UploadRequested(first, clock.now)) is False
    assert [entry.path for entry in queue.pending] == [first, second]


def test_process_waits_for_network_precondition(fake_uploader, clock, temp_audio_dir):
    network = {"ok": False}
    queue = make_queue(fake_uploader, clock, network)
    queue.request(UploadRequested(make_recording(temp_audio_dir), clock.now))

    assert queue.process_due() == 0
    assert fake_uploader.calls == []

    network["ok"] = True
    assert queue.process_due() == 1
    assert queue.pending == []


def test_force_ignores_precondition(fake_uploader, clock, temp_audio_dir):
    queue = make_queue(fake_uploader, clock, {"ok": False})
    queue.request(UploadRequested(make_recording(temp_audio_dir), clock.now))
    assert queue.process_due(force=True) == 1


def test_failed_upload_backs_off_exponentially(fake_uploader, clock, temp_audio_dir):
    queue = make_queue(fake_uploader, clock, backoff_initial_sec=10, backoff_max_sec=35)
    queue.request(UploadRequested(make_recording(temp_audio_dir), clock.now))
    fake_uploader.fail = True

    assert queue.process_due() == 0
    entry = queue.pending[0]
    assert entry.attempts == 1
    assert entry.next_attempt_at == clock.now + timedelta(seconds=10)
    assert "network unreachable" in entry.last_error

    # not due yet
    clock.advance(5)
    queue.process_due()
    assert len(fake_uploader.calls) == 1

    clock.advance(5)
    queue.process_due()
    assert queue.pending[0].attempts == 2
    assert queue.pending[0].next_attempt_at == clock.now + timedelta(seconds=20)

    assert queue.backoff_delay(3) == 35
    assert queue.backoff_delay(10) == 35

    fake_uploader.fail = False
    clock.advance(20)
    assert queue.process_due() == 1
    assert queue.pending == []


def test_missing_file_is_dropped(fake_uploader, clock, temp_audio_dir):
    queue = make_queue(fake_uploader, clock)
    queue.request(UploadRequested(temp_audio_dir / "gone.flac", clock.now))
    assert queue.process_due() == 0
    assert queue.pending == []
    assert fake_uploader.calls == []


def test_without_uploader_requests_stay_queued(clock, temp_audio_dir):
    queue = make_queue(None, clock)
    queue.request(UploadRequested(make_recording(temp_audio_dir), clock.now))
    assert queue.process_due(force=True) == 0
    assert len(queue.pending) == 1


def test_pending_uploads_survive_restart(fake_uploader, clock, temp_audio_dir):
    queue_path = temp_audio_dir / "pending_uploads.json"
    recording = make_recording(temp_audio_dir)
    queue = make_queue(fake_uploader, clock, queue_path=queue_path)
    queue.request(UploadRequested(recording, clock.now))

    data = json.loads(queue_path.read_text(encoding="utf-8"))
    assert data[0]["path"] == str(recording)

    restored = make_queue(fake_uploader, clock, queue_path=queue_path)
    assert [entry.path for entry in restored.pending] == [recording]
    assert restored.pending[0].produced_at == clock.now

    restored.process_due()
    assert json.loads(queue_path.read_text(encoding="utf-8")) == []


def test_unreadable_queue_file_is_ignored(fake_uploader, clock, temp_audio_dir):
    queue_path = temp_audio_dir / "pending_uploads.json"
    queue_path.write_text("{not json", encoding="utf-8")
    queue = make_queue(fake_uploader, clock, queue_path=queue_path)
    assert queue.pending == []


def test_upload_attempts_are_logged(fake_uploader, clock, temp_audio_dir):
    log_path = temp_audio_dir / "recordings.jsonl"
    queue = make_queue(fake_uploader, clock, recording_logger=RecordingLogger(log_path))
    queue.request(UploadRequested(make_recording(temp_audio_dir), clock.now))

    fake_uploader.fail = True
    queue.process_due()
    fake_uploader.fail = False
    queue.process_due(force=True)

    records = [json.loads(line) for line in log_path.read_text().splitlines()]
    assert [r["type"] for r in records] == ["upload", "upload"]
    assert records[0]["uploaded"] is False
    assert records[0]["attempt"] == 1
    assert records[1]["uploaded"] is True
    assert records[1]["attempt"] == 2
    assert records[1]["object_key"] == "notes/recording_1.flac"


def test_worker_thread_uploads_new_requests(fake_uploader, temp_audio_dir):
    import threading

    done = threading.Event()

    class SignallingUploader(type(fake_uploader)):
        def upload_file(self, local_path, recorded_at):
            key = super().upload_file(local_path, recorded_at)
            done.set()
            return key

    from datetime import datetime

    queue = UploadQueue(uploader=SignallingUploader(), precondition=lambda: True, poll_interval_sec=60)
    queue.start()
    try:
        queue.request(UploadRequested(make_recording(temp_audio_dir), datetime.now()))
        assert done.wait(5)
    finally:
        queue.stop()
    assert queue.pending == []
