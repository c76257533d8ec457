"""Microphone capture for Gesture Recorder.

Main public classes
-------------------
:class:`AudioCapture`
    The capability a :class:`~gesture_recorder.core.session.RecordingSession`
    needs: ``begin(path)`` opens the device, ``end()`` closes it and returns
    the recorded duration in seconds. Both raise :class:`DeviceError`.

:class:`MicrophoneCapture`
    PyAudio implementation. Audio arrives in a callback thread and is buffered
    in memory; ``end()`` encodes the buffer with soundfile into whatever
    container the target path's extension names (flac, wav, ogg, ...).

PyAudio is imported lazily so the rest of the package works on machines
without PortAudio.
"""

import threading
from pathlib import Path
from typing import List, Optional, Protocol

import numpy as np
import soundfile as sf
from loguru import logger

from .config import CHANNEL, CHUNK, RATE
from .errors import DeviceError


class AudioCapture(Protocol):
    def begin(self, target_path: Path) -> None: ...

    def end(self) -> float: ...


def list_devices() -> List[dict]:
    """List input devices.

    Returns:
        List of dicts with keys: id, name, channels, rate, is_default
    """
    import pyaudio

    audio = pyaudio.PyAudio()
    try:
        try:
            default_device_id = int(audio.get_default_input_device_info()['index'])
        except OSError:
            default_device_id = -1

        devices = []
        for i in range(audio.get_device_count()):
            device_info = audio.get_device_info_by_index(i)
            if device_info.get('maxInputChannels', 0) <= 0:
                continue
            devices.append({
                'id': i,
                'name': device_info.get('name', 'Unknown'),
                'channels': int(device_info.get('maxInputChannels', 0)),
                'rate': int(device_info.get('defaultSampleRate', 0)),
                'is_default': i == default_device_id,
            })
        return devices
    finally:
        audio.terminate()


class MicrophoneCapture:
    """Records one file at a time from a PyAudio input device."""

    def __init__(
        self,
        rate: int = RATE,
        chunk: int = CHUNK,
        channels: int = CHANNEL,
        device_id: Optional[int] = None,
    ) -> None:
        """Initialize the capture.

        Args:
            rate: Requested sample rate in Hz; replaced by the device's native
                rate when the device reports one
            chunk: Frames per PyAudio buffer
            channels: Number of input channels
            device_id: PyAudio device index, ``None`` for the system default
        """
        self._rate = rate
        self._chunk = chunk
        self._channels = channels
        self._device_id = device_id

        self._audio_interface = None
        self._audio_stream = None
        self._target_path: Optional[Path] = None
        self._frames: List[bytes] = []
        self._lock = threading.Lock()
        self._continue_flag = 0

    @property
    def active(self) -> bool:
        return self._audio_stream is not None

    def begin(self, target_path: Path) -> None:
        """Open the input stream; frames are buffered until :meth:`end`."""
        if self._audio_stream is not None:
            raise DeviceError(f'Capture already running for {self._target_path}')

        try:
            import pyaudio
        except ImportError as error:
            raise DeviceError(f'PyAudio is not available: {error}') from error

        try:
            self._audio_interface = pyaudio.PyAudio()
            if self._device_id is None:
                device_info = self._audio_interface.get_default_input_device_info()
            else:
                device_info = self._audio_interface.get_device_info_by_index(self._device_id)
            rate = int(device_info.get('defaultSampleRate', self._rate))
            self._continue_flag = pyaudio.paContinue

            with self._lock:
                self._frames = []
            self._audio_stream = self._audio_interface.open(
                format=pyaudio.paInt16,
                channels=self._channels,
                rate=rate,
                input=True,
                input_device_index=self._device_id,
                frames_per_buffer=self._chunk,
                stream_callback=self._fill_buffer,
            )
        except (OSError, ValueError) as error:
            self._release()
            raise DeviceError(f'Cannot open input device: {error}') from error

        self._rate = rate
        self._target_path = Path(target_path)
        logger.info(f'Capture started: {self._target_path} '
                    f'({device_info.get("name", "Unknown")}, {self._rate} Hz)')

    def end(self) -> float:
        """Close the stream, write the file and return its duration in seconds."""
        if self._audio_stream is None or self._target_path is None:
            raise DeviceError('Capture is not running')

        target_path = self._target_path
        try:
            self._audio_stream.stop_stream()
        except OSError as error:
            logger.warning(f'Error stopping input stream: {error}')
        finally:
            self._release()

        with self._lock:
            frames = self._frames
            self._frames = []

        if not frames:
            raise DeviceError('No audio was captured')

        try:
            audio_data = np.frombuffer(b''.join(frames), dtype=np.int16)
            if self._channels > 1:
                audio_data = audio_data.reshape(-1, self._channels)
            # soundfile expects floats in -1.0..1.0
            audio_data = audio_data.astype(np.float32) / 32768.0
            target_path.parent.mkdir(parents=True, exist_ok=True)
            subtype = 'VORBIS' if target_path.suffix.lower() == '.ogg' else 'PCM_16'
            sf.write(str(target_path), audio_data, self._rate, subtype=subtype)
        except (OSError, RuntimeError, ValueError, TypeError) as error:
            raise DeviceError(f'Encoding {target_path} failed: {error}') from error

        duration_sec = len(audio_data) / float(self._rate)
        logger.info(f'Saved: {target_path} ({duration_sec:.1f}s)')
        return duration_sec

    def _fill_buffer(
        self,
        in_data: bytes,
        frame_count: int,
        time_info: object,
        status_flags: object,
    ) -> tuple:
        """PyAudio callback: append captured data to the buffer."""
        with self._lock:
            self._frames.append(in_data)
        return None, self._continue_flag

    def _release(self) -> None:
        if self._audio_stream is not None:
            try:
                self._audio_stream.close()
            except OSError as error:
                logger.debug(f'Error closing input stream: {error}')
        if self._audio_interface is not None:
            self._audio_interface.terminate()
        self._audio_stream = None
        self._audio_interface = None
        self._target_path = None
