"""
Microphone permission providers.

The recording controller only asks whether capture is allowed; how the answer
is obtained (an OS prompt, a config flag, a test double) is up to the provider.
"""

import logging
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


class RecordingPermission(ABC):
    """Interface for microphone permission checks."""

    @abstractmethod
    async def request(self) -> bool:
        """Ask for permission, returning whether it was granted."""

    @abstractmethod
    def has(self) -> bool:
        """Return whether permission is currently granted."""


class StaticPermission(RecordingPermission):
    """Permission fixed at construction time.

    Useful on platforms without a permission prompt and in tests.
    """

    def __init__(self, granted: bool = True) -> None:
        self._granted = granted

    async def request(self) -> bool:
        logger.debug("Microphone permission %s", "granted" if self._granted else "denied")
        return self._granted

    def has(self) -> bool:
        return self._granted
