"""Deferred upload of finished recordings.

:class:`UploadQueue` receives :class:`~gesture_recorder.core.controller.UploadRequested`
events and transfers the files once the network precondition holds:

- new requests are appended; a path that is already pending is not queued twice
- nothing is attempted while the precondition is false (e.g. metered network)
- a failed upload is retried with exponential backoff
  (``initial * 2 ** (attempts - 1)``, capped at ``backoff_max_sec``)
- pending entries are persisted as JSON so they survive a restart

``process_due()`` does one synchronous pass; ``start()`` runs passes in a
daemon thread until ``stop()``.
"""

import json
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, List, Optional, Protocol

from loguru import logger

from .config import BACKOFF_INITIAL_SEC, BACKOFF_MAX_SEC, POLL_INTERVAL_SEC
from .controller import UploadRequested
from .log import RecordingLogger


class Uploader(Protocol):
    def upload_file(self, local_path: str, recorded_at: datetime) -> str: ...


@dataclass
class PendingUpload:
    path: Path
    produced_at: datetime
    attempts: int = 0
    next_attempt_at: Optional[datetime] = None
    last_error: Optional[str] = None

    def is_due(self, now: datetime) -> bool:
        return self.next_attempt_at is None or self.next_attempt_at <= now

    def to_dict(self) -> dict:
        return {
            "path": str(self.path),
            "produced_at": self.produced_at.isoformat(),
            "attempts": self.attempts,
            "next_attempt_at": self.next_attempt_at.isoformat() if self.next_attempt_at else None,
            "last_error": self.last_error,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PendingUpload":
        next_attempt_at = data.get("next_attempt_at")
        return cls(
            path=Path(data["path"]),
            produced_at=datetime.fromisoformat(data["produced_at"]),
            attempts=int(data.get("attempts", 0)),
            next_attempt_at=datetime.fromisoformat(next_attempt_at) if next_attempt_at else None,
            last_error=data.get("last_error"),
        )


class UploadQueue:
    """Queue of recordings waiting for upload.

    Args:
        uploader: Performs the transfer. ``None`` keeps requests queued
            without attempting them (no storage configured yet).
        precondition: Returns ``True`` when uploads may run.
        queue_path: JSON file used to persist pending entries.
        backoff_initial_sec: Delay after the first failure.
        backoff_max_sec: Upper bound for the retry delay.
        poll_interval_sec: How often the worker thread re-checks the queue.
        recording_logger: Optional JSONL activity log.
        clock: Time source.
    """

    def __init__(
        self,
        uploader: Optional[Uploader],
        precondition: Callable[[], bool],
        queue_path: Optional[Path] = None,
        backoff_initial_sec: float = BACKOFF_INITIAL_SEC,
        backoff_max_sec: float = BACKOFF_MAX_SEC,
        poll_interval_sec: float = POLL_INTERVAL_SEC,
        recording_logger: Optional[RecordingLogger] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._uploader = uploader
        self._precondition = precondition
        self._queue_path = Path(queue_path) if queue_path is not None else None
        self._backoff_initial_sec = backoff_initial_sec
        self._backoff_max_sec = backoff_max_sec
        self._poll_interval_sec = poll_interval_sec
        self._recording_logger = recording_logger
        self._clock = clock

        self._lock = threading.Lock()
        self._process_lock = threading.Lock()
        self._wake = threading.Event()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._pending: List[PendingUpload] = self._load()

    @property
    def pending(self) -> List[PendingUpload]:
        with self._lock:
            return list(self._pending)

    def request(self, event: UploadRequested) -> bool:
        """Append a finished recording. Returns ``False`` for a duplicate path."""
        path = Path(event.path)
        with self._lock:
            if any(entry.path == path for entry in self._pending):
                logger.debug(f"Upload already pending: {path}")
                return False
            self._pending.append(PendingUpload(path=path, produced_at=event.produced_at))
            self._save()
        logger.info(f"Upload queued: {path}")
        self._wake.set()
        return True

    def backoff_delay(self, attempts: int) -> float:
        """Retry delay in seconds after *attempts* failed attempts."""
        if attempts <= 0:
            return 0.0
        return min(self._backoff_max_sec, self._backoff_initial_sec * 2 ** (attempts - 1))

    def process_due(self, force: bool = False) -> int:
        """Upload every due entry once. Returns the number of successful uploads.

        Args:
            force: Ignore the network precondition and pending backoff delays.
        """
        if self._uploader is None:
            logger.debug("No uploader configured, keeping uploads queued")
            return 0

        with self._process_lock:
            if not force and not self._precondition():
                logger.debug("Upload precondition not met, waiting")
                return 0

            now = self._clock()
            with self._lock:
                due = [entry for entry in self._pending if force or entry.is_due(now)]

            uploaded = 0
            for entry in due:
                if self._stop_event.is_set() and not force:
                    break
                if self._upload(entry):
                    uploaded += 1
            return uploaded

    def _upload(self, entry: PendingUpload) -> bool:
        if not entry.path.exists():
            logger.warning(f"Dropping upload, file is gone: {entry.path}")
            self._remove(entry)
            return False

        attempt = entry.attempts + 1
        try:
            object_key = self._uploader.upload_file(str(entry.path), entry.produced_at)
        except Exception as error:
            delay = self.backoff_delay(attempt)
            logger.warning(f"Upload failed for {entry.path} (attempt {attempt}, retry in {delay:.0f}s): {error}")
            with self._lock:
                entry.attempts = attempt
                entry.last_error = str(error)
                entry.next_attempt_at = self._clock() + timedelta(seconds=delay)
                self._save()
            if self._recording_logger is not None:
                self._recording_logger.write_upload(
                    file_path=str(entry.path), attempt=attempt, uploaded=False, error=str(error),
                )
            return False

        logger.info(f"Uploaded {entry.path} as {object_key}")
        self._remove(entry)
        if self._recording_logger is not None:
            self._recording_logger.write_upload(
                file_path=str(entry.path), attempt=attempt, uploaded=True, object_key=object_key,
            )
        return True

    def _remove(self, entry: PendingUpload) -> None:
        with self._lock:
            if entry in self._pending:
                self._pending.remove(entry)
                self._save()

    # ------------------------------------------------------------------
    # Worker thread
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the background worker."""
        if self._thread is not None:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="upload-queue", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 30.0) -> None:
        """Stop the background worker, waiting for an upload in progress."""
        if self._thread is None:
            return
        self._stop_event.set()
        self._wake.set()
        self._thread.join(timeout=timeout)
        self._thread = None

    def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.process_due()
            except Exception as error:
                logger.error(f"Upload pass failed: {error}")
            self._wake.wait(self._poll_interval_sec)
            self._wake.clear()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load(self) -> List[PendingUpload]:
        if self._queue_path is None or not self._queue_path.exists():
            return []
        try:
            data = json.loads(self._queue_path.read_text(encoding="utf-8"))
            return [PendingUpload.from_dict(item) for item in data]
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.error(f"Ignoring unreadable upload queue {self._queue_path}: {e}")
            return []

    def _save(self) -> None:
        """Write pending entries; caller holds ``self._lock``."""
        if self._queue_path is None:
            return
        self._queue_path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps([entry.to_dict() for entry in self._pending], ensure_ascii=False, indent=2)
        self._queue_path.write_text(payload, encoding="utf-8")
