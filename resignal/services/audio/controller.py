"""Local recording lifecycle: permission, start/pause/resume/stop/cancel.

The controller owns a single ``RecordingSession`` and drives an injected
``BaseAudioSource``. While recording, a background tick task samples the
elapsed duration and input level for UI meters.

Usage::

    controller = RecordingController(source=PCMStreamSource())
    await controller.request_permission()
    path = await controller.start()
    ...
    path = await controller.stop()
"""

import asyncio
import logging
import time
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path

from resignal.core.config import get_settings
from resignal.core.exceptions import (
    AlreadyRecordingError,
    FileOperationError,
    NotRecordingError,
    PermissionDeniedError,
    RecordingFailedError,
    ResignalError,
)
from resignal.core.models import LevelSample, RecordingSession, RecordingState
from resignal.services.audio.processor import MIN_POWER_DB
from resignal.services.audio.source import BaseAudioSource, PCMStreamSource
from resignal.services.permissions import RecordingPermission, StaticPermission
from resignal.services.storage.file_store import FileStore, LocalFileStore

logger = logging.getLogger(__name__)


class RecordingController:
    """State machine around one audio capture at a time.

    Args:
        source: Capture backend (defaults to ``PCMStreamSource``).
        permission: Microphone permission provider.
        file_store: Allocates and removes recording files.
        tick_interval: Seconds between duration/level samples.
        clock: Monotonic clock used for duration accounting.
        on_tick: Optional callback receiving each ``LevelSample``.
        settings: Optional Settings instance (defaults to get_settings()).
    """

    def __init__(
        self,
        source: BaseAudioSource | None = None,
        permission: RecordingPermission | None = None,
        file_store: FileStore | None = None,
        tick_interval: float | None = None,
        clock: Callable[[], float] = time.monotonic,
        on_tick: Callable[[LevelSample], None] | None = None,
        settings=None,
    ) -> None:
        self._settings = settings or get_settings()
        self._source = source or PCMStreamSource(settings=self._settings)
        self._permission = permission or StaticPermission()
        self._file_store = file_store or LocalFileStore(settings=self._settings)
        self._tick_interval = tick_interval or self._settings.tick_interval
        self._clock = clock
        self.on_tick = on_tick

        self._session = RecordingSession()
        self._tick_task: asyncio.Task | None = None
        self._last_sample: LevelSample | None = None

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> RecordingState:
        return self._session.state

    @property
    def file_path(self) -> Path | None:
        """Path of the recording in progress, if any."""
        return self._session.file_path

    @property
    def start_time(self) -> datetime | None:
        return self._session.start_time

    @property
    def last_sample(self) -> LevelSample | None:
        """Most recent tick sample, or None before the first tick."""
        return self._last_sample

    # ------------------------------------------------------------------
    # Permission
    # ------------------------------------------------------------------

    async def request_permission(self) -> bool:
        granted = await self._permission.request()
        logger.info("Microphone permission %s", "granted" if granted else "denied")
        return granted

    def has_permission(self) -> bool:
        return self._permission.has()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> Path:
        """Begin a new recording and return the file it is written to.

        Raises:
            AlreadyRecordingError: If the controller is not idle.
            PermissionDeniedError: If microphone permission is not granted.
            FileOperationError: If no recording file can be allocated.
            RecordingFailedError: If the audio source fails to start.
        """
        if self._session.state != RecordingState.idle:
            raise AlreadyRecordingError()
        if not self.has_permission():
            raise PermissionDeniedError()

        path = self._file_store.create()
        try:
            self._source.begin(path)
        except OSError as exc:
            logger.error("Audio source failed to start: %s", exc)
            raise RecordingFailedError(f"Failed to start recording: {exc}") from exc

        self._session = RecordingSession(
            state=RecordingState.recording,
            start_time=datetime.now(UTC),
            segment_start=self._clock(),
            file_path=path,
        )
        self._last_sample = None
        self._start_ticker()
        logger.info("Recording started: %s", path)
        return path

    def pause(self) -> None:
        """Suspend capture; elapsed time stops accumulating.

        Raises:
            NotRecordingError: If not currently recording.
        """
        if self._session.state != RecordingState.recording:
            raise NotRecordingError()
        self._stop_ticker()
        self._close_segment()
        self._source.pause()
        self._session.state = RecordingState.paused
        logger.info("Recording paused at %.1fs", self._session.accumulated_duration)

    def resume(self) -> None:
        """Continue a paused recording.

        Raises:
            NotRecordingError: If the recording is not paused.
        """
        if self._session.state != RecordingState.paused:
            raise NotRecordingError("Recording is not paused.")
        self._source.resume()
        self._session.segment_start = self._clock()
        self._session.state = RecordingState.recording
        self._start_ticker()
        logger.info("Recording resumed")

    async def stop(self) -> Path:
        """Finish the recording and return the completed file.

        Raises:
            NotRecordingError: If not currently recording.
            FileOperationError: If the finished file is missing.
        """
        if self._session.state != RecordingState.recording:
            raise NotRecordingError()
        self._stop_ticker()
        self._close_segment()
        self._session.state = RecordingState.processing

        path = self._session.file_path
        duration = self._session.accumulated_duration
        try:
            self._source.finish()
        except OSError as exc:
            self._reset()
            raise FileOperationError(f"Failed to finalize recording: {exc}") from exc

        if path is None or not self._file_store.exists(path):
            self._reset()
            raise FileOperationError(f"Recording file is missing: {path}")

        self._reset()
        logger.info("Recording stopped: %s (%.1fs)", path, duration)
        return path

    def cancel(self) -> None:
        """Abandon the recording from any state and delete its file.

        File deletion is best effort; a failure is logged and ignored.
        """
        self._stop_ticker()
        path = self._session.file_path
        if self._session.state != RecordingState.idle:
            self._source.discard()
        if path is not None:
            try:
                self._file_store.delete(path)
            except ResignalError as exc:
                logger.warning("Could not delete cancelled recording %s: %s", path, exc.detail)
        self._reset()
        logger.info("Recording cancelled")

    # ------------------------------------------------------------------
    # Metering
    # ------------------------------------------------------------------

    def duration(self) -> float:
        """Elapsed recording time in seconds, excluding paused spans."""
        session = self._session
        running = 0.0
        if session.state == RecordingState.recording and session.segment_start is not None:
            running = self._clock() - session.segment_start
        return session.accumulated_duration + running

    def current_level(self) -> float:
        """Input level normalised to ``[0, 1]``; 0.0 unless recording."""
        if self._session.state != RecordingState.recording:
            return 0.0
        power = self._source.average_power()
        return min(max((power - MIN_POWER_DB) / -MIN_POWER_DB, 0.0), 1.0)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _close_segment(self) -> None:
        session = self._session
        if session.segment_start is not None:
            session.accumulated_duration += self._clock() - session.segment_start
            session.segment_start = None

    def _reset(self) -> None:
        self._session = RecordingSession()

    def _start_ticker(self) -> None:
        self._stop_ticker()
        self._tick_task = asyncio.get_running_loop().create_task(self._tick())

    def _stop_ticker(self) -> None:
        task, self._tick_task = self._tick_task, None
        if task is not None and not task.done():
            task.cancel()

    async def _tick(self) -> None:
        while self._session.state == RecordingState.recording:
            await asyncio.sleep(self._tick_interval)
            if self._session.state != RecordingState.recording:
                break
            sample = LevelSample(duration=self.duration(), level=self.current_level())
            self._last_sample = sample
            if self.on_tick is not None:
                self.on_tick(sample)
