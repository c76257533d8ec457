"""Core business logic for Gesture Recorder."""

from .capture import AudioCapture, MicrophoneCapture
from .config import AppConfig
from .controller import Feedback, RecordingController, TimestampPathFactory, UploadRequested
from .dispatcher import CaptureErrorHandler, KeyEventDispatcher
from .errors import (
    AlreadyActiveError,
    CaptureError,
    DeviceError,
    DeviceUnavailableError,
    FinalizeFailedError,
    NotActiveError,
)
from .gesture import GestureClassifier, KeyEdge, KeyTransition, LongPressDetected
from .log import RecordingLogger
from .network import NetworkPrecondition
from .s3_upload import S3Uploader, build_object_key
from .session import Aborted, Completed, RecordingSession, SessionState
from .storage import StorageManager
from .upload_queue import PendingUpload, UploadQueue

__all__ = [
    "AppConfig",
    "AudioCapture",
    "MicrophoneCapture",
    "GestureClassifier",
    "KeyEdge",
    "KeyTransition",
    "LongPressDetected",
    "RecordingSession",
    "SessionState",
    "Completed",
    "Aborted",
    "RecordingController",
    "TimestampPathFactory",
    "Feedback",
    "UploadRequested",
    "KeyEventDispatcher",
    "CaptureErrorHandler",
    "CaptureError",
    "AlreadyActiveError",
    "NotActiveError",
    "DeviceUnavailableError",
    "FinalizeFailedError",
    "DeviceError",
    "RecordingLogger",
    "NetworkPrecondition",
    "S3Uploader",
    "build_object_key",
    "StorageManager",
    "UploadQueue",
    "PendingUpload",
]
