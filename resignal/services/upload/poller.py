"""
Finalize a remote transcription job and poll it until it finishes.

The finalize call is made once and never retried. Polling tolerates a few
consecutive transient errors and unreadable status replies (treated as
"still processing") and always sleeps between requests.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

from resignal.core.cancellation import CancellationToken
from resignal.core.config import get_settings
from resignal.core.exceptions import (
    APIError,
    CompletionFailedError,
    InvalidResponseError,
    PollingTimeoutError,
    ServerError,
    is_transient,
)
from resignal.core.models import JobStatus, UploadJob
from resignal.services.upload.api_client import TranscriptionAPIClient

logger = logging.getLogger(__name__)


class JobPoller:
    """Drives a job from "all chunks accepted" to a transcript.

    Args:
        client: API client for ``POST /complete`` and ``GET /status``.
        poll_interval: Seconds between status requests.
        max_wait: Seconds before giving up with ``PollingTimeoutError``.
        max_transient_errors: Consecutive transient poll failures tolerated.
        settings: Optional Settings instance (defaults to get_settings()).
        sleep: Awaitable sleep between polls.
        clock: Monotonic clock used for the ``max_wait`` deadline.
    """

    def __init__(
        self,
        client: TranscriptionAPIClient,
        poll_interval: float | None = None,
        max_wait: float | None = None,
        max_transient_errors: int | None = None,
        settings=None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._settings = settings or get_settings()
        self._client = client
        self._poll_interval = (
            poll_interval if poll_interval is not None else self._settings.poll_interval
        )
        self._max_wait = max_wait if max_wait is not None else self._settings.poll_max_wait
        self._max_transient_errors = (
            max_transient_errors
            if max_transient_errors is not None
            else self._settings.poll_max_transient_errors
        )
        self._sleep = sleep
        self._clock = clock

    async def finalize_and_await(
        self,
        job: UploadJob,
        token: CancellationToken,
        poll_interval: float | None = None,
        max_wait: float | None = None,
    ) -> str:
        """Finalize ``job`` (when it has an interview id) and wait for the transcript.

        Raises:
            CompletionFailedError: If the finalize call fails.
            InvalidResponseError: If no job id is known or the response is unusable.
            ServerError: If the service reports the job as failed.
            UploadCancelledError: If ``token`` is cancelled between polls.
            PollingTimeoutError: If ``max_wait`` elapses first.
        """
        if job.interview_id:
            await self._finalize(job)

        job_id = job.job_id or job.interview_id
        if not job_id:
            raise InvalidResponseError("No job id available to poll for the transcript.")

        return await self._poll(
            job_id,
            token,
            poll_interval if poll_interval is not None else self._poll_interval,
            max_wait if max_wait is not None else self._max_wait,
        )

    async def _finalize(self, job: UploadJob) -> None:
        try:
            reference = await self._client.complete(job.interview_id)
        except APIError as exc:
            logger.error("Finalize failed for interview %s: %s", job.interview_id, exc)
            raise CompletionFailedError(exc.detail) from exc
        if reference.job_id:
            job.job_id = reference.job_id
        logger.info("Finalized interview %s (job %s)", job.interview_id, job.job_id)

    async def _poll(
        self,
        job_id: str,
        token: CancellationToken,
        poll_interval: float,
        max_wait: float,
    ) -> str:
        started = self._clock()
        consecutive_errors = 0
        polls = 0

        while True:
            token.raise_if_cancelled()
            elapsed = self._clock() - started
            if elapsed > max_wait:
                logger.error("Job %s not finished after %.1fs", job_id, elapsed)
                raise PollingTimeoutError(elapsed)

            polls += 1
            try:
                status = await self._client.get_status(job_id)
                if status.status == JobStatus.completed and status.transcript is None:
                    raise InvalidResponseError("Completed job returned no transcript.")
            except APIError as exc:
                # Unreadable replies count as still processing, like transient errors
                if not (is_transient(exc) or isinstance(exc, InvalidResponseError)):
                    raise
                consecutive_errors += 1
                if consecutive_errors > self._max_transient_errors:
                    logger.error(
                        "Giving up on job %s after %d consecutive poll errors",
                        job_id,
                        consecutive_errors,
                    )
                    raise
                logger.warning(
                    "Poll %d for job %s failed (%s); treating as still processing",
                    polls,
                    job_id,
                    exc,
                )
            else:
                consecutive_errors = 0
                if status.status == JobStatus.completed:
                    logger.info("Job %s completed after %d poll(s)", job_id, polls)
                    return status.transcript
                if status.status == JobStatus.failed:
                    raise ServerError(0, status.message or "Transcription failed on server.")
                logger.debug("Job %s is %s (poll %d)", job_id, status.status, polls)

            await self._sleep(poll_interval)
