"""Configuration management for Gesture Recorder.

This module provides configuration constants and the :class:`AppConfig` class
which merges defaults with values from an optional YAML file
(``.gesture-recorder.yml`` in the working directory).

Gesture constants
-----------------
- ``LONG_PRESS_THRESHOLD_MS`` – minimum hold time that counts as a long press
- ``TRIGGER_KEY``             – pynput key name that toggles recording

Recording constants
-------------------
- ``RATE``            – sample rate in Hz (default 44 100)
- ``CHUNK``           – PyAudio buffer size in frames
- ``CHANNEL``         – number of input channels (default 1 / mono)
- ``FILE_EXTENSION``  – audio container written by soundfile (default ``'flac'``)
- ``RECORDINGS_DIR``  – default output directory (``'recordings/'``)
- ``FILENAME_PREFIX`` / ``DATETIME_FORMAT`` – recording file names look like
  ``recording_20261019_143022_123456.flac``

Upload constants
----------------
Uploads wait for an unmetered network and back off exponentially, starting at
``BACKOFF_INITIAL_SEC`` and capped at ``BACKOFF_MAX_SEC``.

Configuration file
------------------
.. code-block:: yaml

    gesture:
      key: media_volume_up
      long_press_threshold_ms: 1000
    recording:
      rate: 44100
      file_extension: flac
      output_dir: recordings/
    upload:
      require_unmetered: true
      backoff_initial_sec: 10
    s3:
      bucket: notes
      endpoint_url: https://s3.example.com
      access_key: ...
      secret_key: ...
    log:
      file: recordings.jsonl
"""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml

# Gesture parameters
LONG_PRESS_THRESHOLD_MS = 1000
TRIGGER_KEY = 'media_volume_up'

# Audio recording parameters
RATE = 44100
CHUNK = 1024
CHANNEL = 1
FILE_EXTENSION = 'flac'  # anything soundfile can write: 'flac', 'wav', 'ogg'
RECORDINGS_DIR = 'recordings/'
FILENAME_PREFIX = 'recording_'
DATETIME_FORMAT = '%Y%m%d_%H%M%S_%f'

# Upload scheduling
BACKOFF_INITIAL_SEC = 10.0
BACKOFF_MAX_SEC = 5 * 60 * 60.0
POLL_INTERVAL_SEC = 30.0
QUEUE_FILE = 'pending_uploads.json'

CONFIG_FILE = '.gesture-recorder.yml'

# Local activity log
LOG_FILE = 'recordings.jsonl'

_SECTIONS = ('gesture', 'recording', 'upload')


class AppConfig:
    """Application configuration management."""

    def __init__(self) -> None:
        """Initialize configuration with defaults."""
        self._config: Dict[str, Any] = {
            # gesture
            'key': TRIGGER_KEY,
            'long_press_threshold_ms': LONG_PRESS_THRESHOLD_MS,
            # recording
            'rate': RATE,
            'chunk': CHUNK,
            'channels': CHANNEL,
            'device_id': None,
            'file_extension': FILE_EXTENSION,
            'output_dir': RECORDINGS_DIR,
            'filename_prefix': FILENAME_PREFIX,
            'datetime_format': DATETIME_FORMAT,
            # upload
            'require_unmetered': True,
            'assume_unmetered': False,
            'backoff_initial_sec': BACKOFF_INITIAL_SEC,
            'backoff_max_sec': BACKOFF_MAX_SEC,
            'poll_interval_sec': POLL_INTERVAL_SEC,
            'queue_file': QUEUE_FILE,
        }
        self._load_yaml_config()

    def _load_yaml_config(self) -> None:
        """Load optional YAML configuration from project root."""
        config_path = Path.cwd() / CONFIG_FILE
        if not config_path.exists():
            return

        content = yaml.safe_load(config_path.read_text(encoding='utf-8'))
        if not content:
            return

        if not isinstance(content, dict):
            raise ValueError(f"Configuration in {CONFIG_FILE} must be a mapping")

        for section in _SECTIONS:
            section_config = content.get(section)
            if isinstance(section_config, dict):
                for key in self._config.keys():
                    if key in section_config:
                        self._config[key] = section_config[key]

        for key, value in content.items():
            if key in _SECTIONS:
                continue
            self._config[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value.

        Args:
            key: Configuration key
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        return self._config.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Set configuration value."""
        self._config[key] = value

    def get_output_dir(self) -> Path:
        """Get the recordings directory, creating it if needed."""
        output_dir = self._config.get('output_dir') or RECORDINGS_DIR
        path = Path(output_dir)
        path.mkdir(parents=True, exist_ok=True)
        return path

    def get_s3_config(self) -> Optional[Dict[str, Any]]:
        """Get S3 configuration mapping, if present."""
        s3_config = self._config.get('s3')
        if isinstance(s3_config, dict):
            return s3_config
        return None

    def get_log_path(self, output_dir: Optional[Path] = None) -> Path:
        """Return the activity log file path.

        The file name comes from the ``log.file`` key when present, otherwise
        :data:`LOG_FILE`. It lives inside *output_dir* (defaults to
        :meth:`get_output_dir`).
        """
        log_config = self._config.get('log')
        log_file = LOG_FILE
        if isinstance(log_config, dict):
            log_file = log_config.get('file', LOG_FILE)
        base = Path(output_dir) if output_dir is not None else self.get_output_dir()
        return base / log_file

    def get_queue_path(self, output_dir: Optional[Path] = None) -> Path:
        """Return the file that persists pending uploads."""
        base = Path(output_dir) if output_dir is not None else self.get_output_dir()
        return base / str(self._config.get('queue_file') or QUEUE_FILE)
