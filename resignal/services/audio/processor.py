"""Audio processing utilities for PCM data.

Converts raw PCM bytes to numpy arrays, measures signal power for level
meters and opens WAV writers matching the configured format.
"""

import wave
from pathlib import Path

import numpy as np

# Floor of the power scale; silence and empty buffers report this value.
MIN_POWER_DB = -160.0


class AudioProcessor:
    """Handles PCM audio data conversion and analysis.

    Provides utilities for converting raw PCM bytes to numpy arrays,
    opening WAV files in the matching format, and measuring RMS power.
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        sample_width: int = 2,
        channels: int = 1,
    ) -> None:
        """Initialize the audio processor.

        Args:
            sample_rate: Audio sample rate in Hz (default: 16 kHz).
            sample_width: Bytes per sample (2 = 16-bit signed PCM).
            channels: Number of audio channels (1 = mono).
        """
        self.sample_rate = sample_rate
        self.sample_width = sample_width
        self.channels = channels

    @property
    def frame_size(self) -> int:
        return self.sample_width * self.channels

    def pcm_to_ndarray(self, pcm_data: bytes) -> np.ndarray:
        """Convert raw PCM bytes (16-bit signed) to float32 numpy array.

        Args:
            pcm_data: Raw PCM bytes (16-bit).

        Returns:
            Float32 numpy array normalized to [-1.0, 1.0].

        Raises:
            ValueError: If data length is not aligned to sample frame size.
        """
        if len(pcm_data) % self.frame_size != 0:
            raise ValueError(
                f"PCM data length ({len(pcm_data)}) is not aligned to frame size ({self.frame_size})"
            )
        # Convert 16-bit signed integers to float32 in [-1.0, 1.0] range
        return np.frombuffer(pcm_data, dtype=np.int16).astype(np.float32) / 32768.0

    def open_wav(self, file_path: str | Path) -> wave.Wave_write:
        """Open a WAV writer with this processor's format.

        The caller owns the returned writer and must close it.
        """
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        wf = wave.open(str(path), "wb")
        wf.setnchannels(self.channels)
        wf.setsampwidth(self.sample_width)
        wf.setframerate(self.sample_rate)
        return wf

    def power_db(self, audio: np.ndarray) -> float:
        """RMS power of ``audio`` in dBFS, clamped to ``[MIN_POWER_DB, 0]``.

        Args:
            audio: Float32 numpy array of audio samples.

        Returns:
            Power in decibels relative to full scale.
        """
        if len(audio) == 0:
            return MIN_POWER_DB
        rms = float(np.sqrt(np.mean(np.square(audio, dtype=np.float64))))
        if rms <= 0.0:
            return MIN_POWER_DB
        return float(np.clip(20.0 * np.log10(rms), MIN_POWER_DB, 0.0))
