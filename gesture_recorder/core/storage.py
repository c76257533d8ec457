"""Recording file management for Gesture Recorder.

Lists and deletes the files written by gesture-triggered sessions. Aborted
recordings are removed through :meth:`StorageManager.delete_recording`.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from loguru import logger

from .config import FILE_EXTENSION, RECORDINGS_DIR


class StorageManager:
    """Manages the recordings directory."""

    def __init__(self, storage_dir: Union[str, Path] = RECORDINGS_DIR, extension: str = FILE_EXTENSION) -> None:
        """Initialize storage manager.

        Args:
            storage_dir: Directory holding recordings
            extension: File extension of recordings (without dot)
        """
        self.storage_dir = Path(storage_dir)
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        self.extension = extension.lstrip('.')

    def list_recordings(self) -> List[Dict[str, Any]]:
        """List stored recordings, newest first.

        Returns:
            List of recording metadata dictionaries
        """
        recordings = []
        try:
            for audio_file in self.storage_dir.glob(f"*.{self.extension}"):
                recordings.append(self._metadata(audio_file))
        except OSError as e:
            logger.error(f"Error listing recordings: {e}")

        recordings.sort(key=lambda r: r["modified"], reverse=True)
        return recordings

    def get_recording_metadata(self, filename: Union[str, Path]) -> Optional[Dict[str, Any]]:
        """Get metadata for a specific recording.

        Args:
            filename: File name inside the storage directory, or a full path

        Returns:
            Recording metadata dictionary or None if not found
        """
        try:
            file_path = self._resolve(filename)
            if file_path.exists():
                return self._metadata(file_path)
        except OSError as e:
            logger.error(f"Error getting recording metadata: {e}")

        return None

    def delete_recording(self, filename: Union[str, Path]) -> bool:
        """Delete a recording file.

        Args:
            filename: File name inside the storage directory, or a full path

        Returns:
            True if a file was deleted, False otherwise
        """
        try:
            file_path = self._resolve(filename)
            if file_path.exists():
                file_path.unlink()
                logger.info(f"Deleted recording: {file_path}")
                return True
        except OSError as e:
            logger.error(f"Error deleting recording: {e}")

        return False

    def _resolve(self, filename: Union[str, Path]) -> Path:
        path = Path(filename)
        if path.is_absolute() or path.parent != Path('.'):
            return path
        return self.storage_dir / path

    @staticmethod
    def _metadata(file_path: Path) -> Dict[str, Any]:
        stat = file_path.stat()
        return {
            "name": file_path.name,
            "path": str(file_path),
            "size": stat.st_size,
            "modified": stat.st_mtime,
        }
