"""
Audio module - Recording lifecycle, capture sources and PCM utilities.
"""

from resignal.services.audio.controller import RecordingController
from resignal.services.audio.processor import MIN_POWER_DB, AudioProcessor
from resignal.services.audio.source import BaseAudioSource, PCMStreamSource

__all__ = [
    "MIN_POWER_DB",
    "AudioProcessor",
    "BaseAudioSource",
    "PCMStreamSource",
    "RecordingController",
]
