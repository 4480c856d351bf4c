"""Chunked upload + remote transcription pipeline.

Sequences chunk planning, the ordered chunk upload and job polling for one
recording, and publishes every state transition through a
``StateBroadcaster``. One instance runs at most one upload at a time.

Usage::

    pipeline = TranscriptionPipeline()
    async with pipeline.observe_state() as states:
        transcript = await pipeline.run("recording.m4a", interview_id="abc")
"""

import asyncio
import logging
from pathlib import Path

from resignal.core.cancellation import CancellationToken
from resignal.core.config import get_settings
from resignal.core.exceptions import (
    ChunkingFailedError,
    PipelineBusyError,
    ResignalError,
    UploadCancelledError,
)
from resignal.core.models import (
    Completed,
    Failed,
    Idle,
    PipelineState,
    Preparing,
    Processing,
    Uploading,
    UploadJob,
    describe_state,
)
from resignal.services.broadcast import StateBroadcaster, Subscription
from resignal.services.upload.api_client import TranscriptionAPIClient
from resignal.services.upload.chunker import plan_file
from resignal.services.upload.coordinator import UploadCoordinator
from resignal.services.upload.poller import JobPoller

logger = logging.getLogger(__name__)


class TranscriptionPipeline:
    """Turns a finished recording into a transcript.

    Args:
        client: API client shared by the coordinator and poller.
        coordinator: Chunk uploader (built from ``client`` if omitted).
        poller: Job finalizer/poller (built from ``client`` if omitted).
        broadcaster: State fan-out (a fresh one if omitted).
        max_chunk_bytes: Chunk size ceiling (falls back to settings).
        settings: Optional Settings instance (defaults to get_settings()).
    """

    def __init__(
        self,
        client: TranscriptionAPIClient | None = None,
        coordinator: UploadCoordinator | None = None,
        poller: JobPoller | None = None,
        broadcaster: StateBroadcaster | None = None,
        max_chunk_bytes: int | None = None,
        settings=None,
    ) -> None:
        self._settings = settings or get_settings()
        self._owns_client = client is None
        self._client = client or TranscriptionAPIClient(settings=self._settings)
        self._coordinator = coordinator or UploadCoordinator(self._client, settings=self._settings)
        self._poller = poller or JobPoller(self._client, settings=self._settings)
        self._broadcaster = broadcaster or StateBroadcaster(self._settings.broadcast_buffer_size)
        self._max_chunk_bytes = max_chunk_bytes or self._settings.max_chunk_bytes

        self._state: PipelineState = Idle()
        self._token: CancellationToken | None = None
        self._running = False

    @property
    def state(self) -> PipelineState:
        """The most recently published state."""
        return self._state

    @property
    def is_running(self) -> bool:
        return self._running

    def observe_state(self, maxsize: int | None = None) -> Subscription:
        """Subscribe to states published from now on."""
        return self._broadcaster.subscribe(maxsize)

    def cancel(self, reason: str | None = None) -> None:
        """Request cooperative cancellation of the active run.

        The run stops before its next chunk, attempt or poll and ends in
        ``Failed(cancelled=True)``.
        """
        if self._token is None:
            logger.debug("cancel() called with no active run")
            return
        logger.info("Cancellation requested%s", f": {reason}" if reason else "")
        self._token.cancel(reason)

    async def run(self, file_path: str | Path, interview_id: str | None = None) -> str:
        """Upload ``file_path`` and return the transcript.

        Raises:
            PipelineBusyError: If another run is in flight on this instance.
            ResignalError: Any pipeline failure, after ``Failed`` is published.
        """
        if self._running:
            raise PipelineBusyError()

        self._running = True
        token = CancellationToken()
        self._token = token
        try:
            return await self._run(Path(file_path), interview_id, token)
        finally:
            self._token = None
            self._running = False

    async def aclose(self) -> None:
        """End all subscriptions and close the HTTP client if we created it."""
        self._broadcaster.close()
        if self._owns_client:
            await self._client.aclose()

    async def _run(self, path: Path, interview_id: str | None, token: CancellationToken) -> str:
        try:
            self._set_state(Preparing())
            plan = plan_file(path, self._max_chunk_bytes)
            if plan.file_size == 0:
                raise ChunkingFailedError(f"Recording is empty: {path}")
            token.raise_if_cancelled()

            job = UploadJob(plan=plan, interview_id=interview_id)
            await self._coordinator.upload(job, path, token, on_progress=self._on_progress)
            token.raise_if_cancelled()

            self._set_state(Processing())
            transcript = await self._poller.finalize_and_await(job, token)

            self._set_state(Completed(transcript=transcript))
            return transcript

        except UploadCancelledError as exc:
            logger.info("Upload of %s cancelled", path.name)
            self._set_state(Failed(message=exc.detail, cancelled=True))
            raise
        except asyncio.CancelledError:
            logger.info("Upload task for %s was cancelled", path.name)
            self._set_state(Failed(message=UploadCancelledError().detail, cancelled=True))
            raise
        except ResignalError as exc:
            logger.error("Upload of %s failed: %s", path.name, exc.detail)
            self._set_state(
                Failed(message=exc.detail, chunk_index=getattr(exc, "chunk_index", None))
            )
            raise
        except Exception as exc:
            logger.exception("Unexpected failure while uploading %s", path.name)
            self._set_state(Failed(message=str(exc) or exc.__class__.__name__))
            raise

    def _on_progress(self, progress: float) -> None:
        self._set_state(Uploading(progress=progress))

    def _set_state(self, state: PipelineState) -> None:
        self._state = state
        logger.info("Pipeline state: %s", describe_state(state))
        self._broadcaster.publish(state)
