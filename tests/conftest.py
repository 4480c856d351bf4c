"""Shared pytest fixtures for the Resignal test suite.

Provides isolated settings, a controllable clock, PCM audio samples and
audio files of arbitrary size used across unit and integration tests.
"""

import math
import struct

import pytest

from resignal.core.config import Settings
from resignal.services.client_context import ClientContext

# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path):
    """Settings isolated from the environment, with fast timings.

    Returns:
        Settings: Paths under ``tmp_path``; retry backoff disabled and a
        short poll interval so tests never sleep for long.
    """
    return Settings(
        _env_file=None,
        api_base_url="http://test/api",
        client_id_path=str(tmp_path / "client_id"),
        recordings_dir=str(tmp_path / "recordings"),
        upload_retry_initial_delay=0.0,
        poll_interval=0.01,
        poll_max_wait=5.0,
        tick_interval=0.01,
    )


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


# ---------------------------------------------------------------------------
# Client identity
# ---------------------------------------------------------------------------


class StaticClientContext(ClientContext):
    """Fixed identity headers."""

    def headers(self) -> dict[str, str]:
        return {
            "x-client-id": "test-client",
            "x-client-version": "9.9.9",
            "x-client-platform": "pytest",
            "x-device-model": "ci",
        }


@pytest.fixture
def client_context():
    return StaticClientContext()


# ---------------------------------------------------------------------------
# Audio Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_pcm_bytes():
    """Generate 1 second of 440Hz sine-wave PCM audio (16kHz, 16-bit, mono).

    Returns:
        bytes: Raw PCM audio data.
    """
    sample_rate = 16000
    frequency = 440.0
    amplitude = 16000  # ~50% of max int16

    samples = []
    for i in range(sample_rate):
        value = int(amplitude * math.sin(2 * math.pi * frequency * i / sample_rate))
        samples.append(struct.pack("<h", value))
    return b"".join(samples)


@pytest.fixture
def silent_pcm_bytes():
    """Generate 1 second of silence as PCM audio (16kHz, 16-bit, mono)."""
    return b"\x00\x00" * 16000


@pytest.fixture
def make_audio_file(tmp_path):
    """Factory writing a deterministic file of ``size`` bytes.

    Returns:
        Callable[[int, str], Path]: ``make_audio_file(size, name)``.
    """

    def _make(size: int, name: str = "recording.m4a"):
        pattern = bytes(range(256))
        data = (pattern * (size // len(pattern) + 1))[:size]
        path = tmp_path / name
        path.write_bytes(data)
        return path

    return _make
