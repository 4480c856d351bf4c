"""
Sequential chunk uploader with per-chunk retry and backoff.

Chunks go up strictly in index order, one at a time, so the service can
concatenate them without reordering. Transient failures (network errors,
5xx) are retried with exponential backoff; a chunk that exhausts its budget
fails the whole run.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path

from tenacity import (
    AsyncRetrying,
    RetryError,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from resignal.core.cancellation import CancellationToken
from resignal.core.config import get_settings
from resignal.core.exceptions import UploadFailedError, is_transient
from resignal.core.models import ChunkDescriptor, JobReference, UploadJob
from resignal.services.upload.api_client import TranscriptionAPIClient
from resignal.services.upload.chunker import read_chunk

logger = logging.getLogger(__name__)


class UploadCoordinator:
    """Uploads every chunk of an ``UploadJob`` and reports progress.

    Args:
        client: API client used for ``POST /chunks``.
        max_attempts: Attempts per chunk, including the first.
        initial_delay: Backoff multiplier in seconds (delays 1x, 2x, 4x ...).
        max_delay: Upper bound for a single backoff delay.
        settings: Optional Settings instance (defaults to get_settings()).
        sleep: Awaitable sleep used between attempts.
    """

    def __init__(
        self,
        client: TranscriptionAPIClient,
        max_attempts: int | None = None,
        initial_delay: float | None = None,
        max_delay: float | None = None,
        settings=None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._settings = settings or get_settings()
        self._client = client
        self._max_attempts = max_attempts or self._settings.upload_max_attempts
        self._initial_delay = (
            initial_delay if initial_delay is not None else self._settings.upload_retry_initial_delay
        )
        self._max_delay = max_delay if max_delay is not None else self._settings.upload_retry_max_delay
        self._sleep = sleep

    async def upload(
        self,
        job: UploadJob,
        source: str | Path,
        token: CancellationToken,
        on_progress: Callable[[float], None] | None = None,
    ) -> int:
        """Upload all chunks of ``job`` read from ``source``.

        Returns:
            The number of chunks committed (equal to ``job.total_chunks``).

        Raises:
            UploadCancelledError: If ``token`` is cancelled before a chunk or attempt.
            UploadFailedError: If a chunk exhausts its retry budget.
            UnauthorizedError, FileTooLargeError, APIError: Non-retryable responses.
        """
        source = Path(source)
        total = job.total_chunks
        for chunk in job.plan.chunks:
            token.raise_if_cancelled()

            data = read_chunk(source, chunk)
            reference = await self._upload_with_retry(job, chunk, data, token, source)
            if reference.job_id:
                job.job_id = reference.job_id

            job.completed_count += 1
            logger.info(
                "Chunk %d/%d accepted (%d bytes, %d attempt(s))",
                chunk.index + 1,
                total,
                chunk.byte_length,
                job.attempt_counts.get(chunk.index, 1),
            )
            if on_progress is not None:
                on_progress(job.progress)

        return job.completed_count

    async def _upload_with_retry(
        self,
        job: UploadJob,
        chunk: ChunkDescriptor,
        data: bytes,
        token: CancellationToken,
        source: Path,
    ) -> JobReference:
        """Upload one chunk, retrying transient failures."""
        filename = f"{source.stem}_chunk_{chunk.index}{source.suffix or '.m4a'}"
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential(multiplier=self._initial_delay, max=self._max_delay),
            retry=retry_if_exception(is_transient),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            sleep=self._sleep,
        )

        reference = JobReference()
        try:
            async for attempt in retrying:
                with attempt:
                    token.raise_if_cancelled()
                    job.attempt_counts[chunk.index] = attempt.retry_state.attempt_number
                    reference = await self._client.upload_chunk(
                        data,
                        chunk_index=chunk.index,
                        total_chunks=job.total_chunks,
                        interview_id=job.interview_id,
                        filename=filename,
                    )
        except RetryError as exc:
            underlying = exc.last_attempt.exception()
            logger.error(
                "Chunk %d failed after %d attempt(s): %s",
                chunk.index,
                job.attempt_counts.get(chunk.index, 0),
                underlying,
            )
            raise UploadFailedError(chunk.index, underlying) from underlying
        return reference
