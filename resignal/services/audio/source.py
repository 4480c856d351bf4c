"""Audio capture sources used by the recording controller.

A source writes one recording to disk and reports its current signal power.
``PCMStreamSource`` takes 16-bit PCM pushed by any producer (a microphone
callback, a websocket handler, a test) and writes it to a WAV file.
"""

import logging
import threading
import wave
from abc import ABC, abstractmethod
from pathlib import Path

from resignal.core.config import get_settings
from resignal.services.audio.processor import MIN_POWER_DB, AudioProcessor

logger = logging.getLogger(__name__)


class BaseAudioSource(ABC):
    """Abstract base class for audio capture backends.

    Concrete implementations must implement every method below. Power is
    reported in dBFS (``-160`` to ``0``).
    """

    @abstractmethod
    def begin(self, path: Path) -> None:
        """Start writing a new recording to ``path``.

        Raises:
            OSError: If the destination cannot be opened.
        """

    @abstractmethod
    def pause(self) -> None:
        """Stop accepting audio until ``resume``."""

    @abstractmethod
    def resume(self) -> None:
        """Accept audio again after ``pause``."""

    @abstractmethod
    def finish(self) -> Path:
        """Flush and close the recording, returning its path."""

    @abstractmethod
    def discard(self) -> None:
        """Close the recording without guaranteeing a usable file."""

    @abstractmethod
    def average_power(self) -> float:
        """Average power of the most recent audio, in dBFS."""


class PCMStreamSource(BaseAudioSource):
    """WAV-writing source fed with raw 16-bit PCM via ``feed``.

    ``feed`` may be called from a producer thread; all state is guarded by a
    lock.
    """

    def __init__(
        self,
        sample_rate: int | None = None,
        sample_width: int | None = None,
        channels: int | None = None,
        settings=None,
    ) -> None:
        self._settings = settings or get_settings()
        self._processor = AudioProcessor(
            sample_rate or self._settings.sample_rate,
            sample_width or self._settings.sample_width,
            channels or self._settings.channels,
        )
        self._lock = threading.Lock()
        self._writer: wave.Wave_write | None = None
        self._path: Path | None = None
        self._paused = False
        self._power = MIN_POWER_DB
        self._pending = b""  # Bytes short of a whole frame
        self.bytes_written = 0

    @property
    def active(self) -> bool:
        return self._writer is not None

    @property
    def paused(self) -> bool:
        return self._paused

    def begin(self, path: Path) -> None:
        with self._lock:
            if self._writer is not None:
                raise RuntimeError("Source is already writing a recording")
            self._writer = self._processor.open_wav(path)
            self._path = Path(path)
            self._paused = False
            self._power = MIN_POWER_DB
            self._pending = b""
            self.bytes_written = 0
        logger.debug("Audio source writing to %s", path)

    def feed(self, pcm_data: bytes) -> int:
        """Append PCM audio to the open recording.

        Frames pushed while paused or before ``begin`` are dropped.

        Returns:
            Number of bytes written.
        """
        with self._lock:
            if self._writer is None or self._paused:
                return 0
            data = self._pending + pcm_data
            usable = len(data) - len(data) % self._processor.frame_size
            self._pending = data[usable:]
            if not usable:
                return 0
            frames = data[:usable]
            self._writer.writeframes(frames)
            self.bytes_written += usable
            self._power = self._processor.power_db(self._processor.pcm_to_ndarray(frames))
            return usable

    def pause(self) -> None:
        with self._lock:
            self._paused = True
            self._power = MIN_POWER_DB

    def resume(self) -> None:
        with self._lock:
            self._paused = False

    def finish(self) -> Path:
        with self._lock:
            if self._writer is None or self._path is None:
                raise RuntimeError("Source has no open recording")
            path = self._path
            self._close()
        logger.debug("Audio source finished %s (%d bytes)", path, self.bytes_written)
        return path

    def discard(self) -> None:
        with self._lock:
            if self._writer is not None:
                try:
                    self._writer.close()
                except (OSError, wave.Error) as exc:
                    logger.warning("Failed to close discarded recording: %s", exc)
                self._writer = None
            self._path = None
            self._paused = False
            self._power = MIN_POWER_DB

    def average_power(self) -> float:
        with self._lock:
            if self._writer is None or self._paused:
                return MIN_POWER_DB
            return self._power

    def _close(self) -> None:
        writer, self._writer = self._writer, None
        self._path = None
        self._paused = False
        self._power = MIN_POWER_DB
        self._pending = b""
        if writer is not None:
            writer.close()
