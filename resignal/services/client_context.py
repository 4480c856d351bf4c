"""
Client identity headers attached to every request to the transcription service.

The pipeline treats these values as opaque; ``LocalClientContext`` is the
default provider and persists a generated client id on disk so it survives
restarts.
"""

import logging
import platform
import threading
import uuid
from abc import ABC, abstractmethod
from pathlib import Path

from resignal.core.config import get_settings

logger = logging.getLogger(__name__)


class ClientContext(ABC):
    """Interface for anything that can identify this client to the service."""

    @abstractmethod
    def headers(self) -> dict[str, str]:
        """Return the identity headers for one outbound request."""


class LocalClientContext(ClientContext):
    """Client context backed by settings and a persisted client id file.

    Args:
        client_id_path: File holding the client id (created on first use).
        app_version: Version string sent as ``x-client-version``.
        client_platform: Platform string sent as ``x-client-platform``.
        device_model: Device string; defaults to ``platform.machine()``.
        settings: Optional Settings instance (defaults to get_settings()).
    """

    def __init__(
        self,
        client_id_path: str | Path | None = None,
        app_version: str | None = None,
        client_platform: str | None = None,
        device_model: str | None = None,
        settings=None,
    ) -> None:
        self._settings = settings or get_settings()
        self._client_id_path = Path(client_id_path or self._settings.client_id_path)
        self._app_version = app_version or self._settings.app_version
        self._platform = client_platform or self._settings.client_platform
        self._device_model = (
            device_model or self._settings.device_model or platform.machine() or "unknown"
        )
        self._client_id: str | None = None
        self._lock = threading.Lock()

    @property
    def client_id(self) -> str:
        """Persistent client identifier, generated once and stored on disk."""
        with self._lock:
            if self._client_id is None:
                self._client_id = self._load_or_create_client_id()
            return self._client_id

    def headers(self) -> dict[str, str]:
        return {
            "x-client-id": self.client_id,
            "x-client-version": self._app_version,
            "x-client-platform": self._platform,
            "x-device-model": self._device_model,
        }

    def _load_or_create_client_id(self) -> str:
        if self._client_id_path.is_file():
            existing = self._client_id_path.read_text(encoding="utf-8").strip()
            if existing:
                return existing

        new_id = str(uuid.uuid4())
        try:
            self._client_id_path.parent.mkdir(parents=True, exist_ok=True)
            self._client_id_path.write_text(new_id, encoding="utf-8")
        except OSError:
            # The id still identifies this process; it just won't survive a restart
            logger.warning("Could not persist client id to %s", self._client_id_path)
        return new_id
