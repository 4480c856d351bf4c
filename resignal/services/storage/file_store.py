"""
Recording file storage.

``LocalFileStore`` hands out unique paths under ``settings.recordings_dir``
and removes files when a recording is cancelled.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from pathlib import Path

from resignal.core.config import get_settings
from resignal.core.exceptions import FileOperationError

logger = logging.getLogger(__name__)


class FileStore(ABC):
    """Interface for allocating and removing recording files."""

    @abstractmethod
    def create(self) -> Path:
        """Return a fresh, unused path for a new recording.

        Raises:
            FileOperationError: If the storage location cannot be prepared.
        """

    @abstractmethod
    def delete(self, path: Path) -> None:
        """Remove ``path``. A missing file is not an error.

        Raises:
            FileOperationError: If the file exists but cannot be removed.
        """

    @abstractmethod
    def exists(self, path: Path) -> bool:
        """Return whether ``path`` is an existing file."""


class LocalFileStore(FileStore):
    """File store rooted at a local directory.

    Args:
        recordings_dir: Directory for recordings (falls back to settings).
        suffix: File extension of allocated paths.
        settings: Optional Settings instance (defaults to get_settings()).
    """

    def __init__(
        self,
        recordings_dir: str | Path | None = None,
        suffix: str = ".wav",
        settings=None,
    ) -> None:
        self._settings = settings or get_settings()
        self._root = Path(recordings_dir or self._settings.recordings_dir)
        self._suffix = suffix

    @property
    def root(self) -> Path:
        return self._root

    def create(self) -> Path:
        try:
            self._root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise FileOperationError(f"Cannot create recordings directory: {exc}") from exc
        return self._root / f"recording_{uuid.uuid4()}{self._suffix}"

    def delete(self, path: Path) -> None:
        try:
            Path(path).unlink(missing_ok=True)
        except OSError as exc:
            raise FileOperationError(f"Cannot delete {path}: {exc}") from exc
        logger.debug("Deleted %s", path)

    def exists(self, path: Path) -> bool:
        return Path(path).is_file()
