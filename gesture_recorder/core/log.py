"""Local JSONL activity log for Gesture Recorder.

Appends structured JSON Lines entries to a log file next to the recordings so
every gesture-triggered session and every upload attempt can be traced later.

Record types
------------
``session`` (event=``"start"``)
    Written when a long press starts a recording.

``session`` (event=``"end"``)
    Written when a recording is finalized, with ``outcome`` ``"completed"``
    (plus duration) or ``"aborted"`` (plus reason).

``upload``
    Written once per upload attempt with the object key on success or the
    error on failure.

Example log lines::

    {"type":"session","event":"start","file_path":"recordings/recording_20261019_143022_123456.flac","started_at":"2026-10-19T14:30:22"}
    {"type":"session","event":"end","file_path":"recordings/recording_20261019_143022_123456.flac","outcome":"completed","duration_sec":42.5,"reason":null,"ended_at":"2026-10-19T14:31:05"}
    {"type":"upload","file_path":"recordings/recording_20261019_143022_123456.flac","attempt":1,"uploaded":true,"object_key":"notes/2026/10/19/recording_20261019_143022_123456.flac","error":null,"at":"2026-10-19T14:40:00"}
"""

import json
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional


class RecordingLogger:
    """Appends JSONL log entries for recording sessions and uploads.

    Thread-safe: the key dispatcher and the upload worker write from different
    threads. A single :class:`threading.Lock` serialises file writes.

    Args:
        log_path: Path to the ``.jsonl`` log file. Parent directories are
            created automatically.
    """

    def __init__(self, log_path: Path) -> None:
        log_path = Path(log_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        self._log_path = log_path
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._log_path

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def write_session_start(
        self,
        file_path: str,
        started_at: Optional[datetime] = None,
    ) -> None:
        """Append a session-start record.

        Args:
            file_path: Target file of the new recording.
            started_at: Session start time. Defaults to ``datetime.now()``.
        """
        self._append({
            "type": "session",
            "event": "start",
            "file_path": file_path,
            "started_at": _iso(started_at),
        })

    def write_session_end(
        self,
        file_path: str,
        outcome: str,
        duration_sec: Optional[float] = None,
        reason: Optional[str] = None,
        ended_at: Optional[datetime] = None,
    ) -> None:
        """Append a session-end record.

        Args:
            file_path: Recording file the session wrote to.
            outcome: ``"completed"`` or ``"aborted"``.
            duration_sec: Recorded duration for completed sessions.
            reason: Failure reason for aborted sessions.
            ended_at: Finalize time. Defaults to ``datetime.now()``.
        """
        self._append({
            "type": "session",
            "event": "end",
            "file_path": file_path,
            "outcome": outcome,
            "duration_sec": round(duration_sec, 3) if duration_sec is not None else None,
            "reason": reason,
            "ended_at": _iso(ended_at),
        })

    def write_upload(
        self,
        file_path: str,
        attempt: int,
        uploaded: bool,
        object_key: Optional[str] = None,
        error: Optional[str] = None,
        at: Optional[datetime] = None,
    ) -> None:
        """Append an upload-attempt record."""
        self._append({
            "type": "upload",
            "file_path": file_path,
            "attempt": attempt,
            "uploaded": uploaded,
            "object_key": object_key,
            "error": error,
            "at": _iso(at),
        })

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _append(self, record: dict) -> None:
        """Serialise *record* as JSON and append it to the log file."""
        line = json.dumps(record, ensure_ascii=False) + "\n"
        with self._lock:
            with self._log_path.open("a", encoding="utf-8") as fh:
                fh.write(line)


def _iso(dt: Optional[datetime]) -> str:
    """Return a compact ISO 8601 string for *dt*, defaulting to now."""
    if dt is None:
        dt = datetime.now()
    return dt.replace(microsecond=0).isoformat()
