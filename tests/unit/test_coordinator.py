"""Unit tests for the chunked upload coordinator.

The API client is an ``AsyncMock`` and the backoff sleep is injected, so
retry behaviour is checked without real waiting.
"""

from unittest.mock import AsyncMock

import pytest

from resignal.core.cancellation import CancellationToken
from resignal.core.exceptions import (
    FileTooLargeError,
    NetworkError,
    ServerError,
    UnauthorizedError,
    UploadCancelledError,
    UploadFailedError,
)
from resignal.core.models import JobReference, UploadJob
from resignal.services.upload.api_client import TranscriptionAPIClient
from resignal.services.upload.chunker import plan_file
from resignal.services.upload.coordinator import UploadCoordinator

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_client():
    client = AsyncMock(spec=TranscriptionAPIClient)
    client.upload_chunk.return_value = JobReference()
    return client


@pytest.fixture
def sleep():
    return AsyncMock()


@pytest.fixture
def coordinator(mock_client, sleep, settings):
    return UploadCoordinator(
        mock_client, max_attempts=3, initial_delay=1.0, settings=settings, sleep=sleep
    )


@pytest.fixture
def three_chunk_job(make_audio_file):
    """A 10-byte file split into 4 + 4 + 2 bytes."""
    path = make_audio_file(10, "talk.m4a")
    return UploadJob(plan=plan_file(path, 4), interview_id="iv-1"), path


def _chunk_indexes(mock_client):
    return [c.kwargs["chunk_index"] for c in mock_client.upload_chunk.await_args_list]


# ---------------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------------


class TestUploadOrder:
    """Chunks go up one at a time in index order."""

    async def test_uploads_all_chunks_in_order(self, coordinator, mock_client, three_chunk_job):
        job, path = three_chunk_job
        committed = await coordinator.upload(job, path, CancellationToken())

        assert committed == 3
        assert _chunk_indexes(mock_client) == [0, 1, 2]
        payloads = [c.args[0] for c in mock_client.upload_chunk.await_args_list]
        assert b"".join(payloads) == path.read_bytes()
        first = mock_client.upload_chunk.await_args_list[0].kwargs
        assert first["total_chunks"] == 3
        assert first["interview_id"] == "iv-1"
        assert first["filename"] == "talk_chunk_0.m4a"

    async def test_progress_reported_after_each_chunk(self, coordinator, three_chunk_job):
        job, path = three_chunk_job
        progress = []
        await coordinator.upload(job, path, CancellationToken(), on_progress=progress.append)
        assert progress == [pytest.approx(1 / 3), pytest.approx(2 / 3), 1.0]

    async def test_job_id_from_response_is_kept(self, coordinator, mock_client, three_chunk_job):
        job, path = three_chunk_job
        mock_client.upload_chunk.return_value = JobReference(job_id="job-42")
        await coordinator.upload(job, path, CancellationToken())
        assert job.job_id == "job-42"


# ---------------------------------------------------------------------------
# Retry
# ---------------------------------------------------------------------------


class TestRetry:
    """Transient failures are retried with exponential backoff."""

    async def test_transient_failure_then_success(
        self, coordinator, mock_client, sleep, three_chunk_job
    ):
        job, path = three_chunk_job
        mock_client.upload_chunk.side_effect = [
            NetworkError("reset"),
            ServerError(503, "busy"),
            JobReference(),
            JobReference(),
            JobReference(),
        ]
        assert await coordinator.upload(job, path, CancellationToken()) == 3
        assert _chunk_indexes(mock_client) == [0, 0, 0, 1, 2]
        assert job.attempt_counts == {0: 3, 1: 1, 2: 1}
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    async def test_exhausted_budget_fails_run(self, coordinator, mock_client, sleep, three_chunk_job):
        """Exactly three attempts on the first chunk, none on later chunks."""
        job, path = three_chunk_job
        mock_client.upload_chunk.side_effect = ServerError(500, "down")

        with pytest.raises(UploadFailedError) as exc_info:
            await coordinator.upload(job, path, CancellationToken())

        assert exc_info.value.chunk_index == 0
        assert isinstance(exc_info.value.underlying, ServerError)
        assert _chunk_indexes(mock_client) == [0, 0, 0]
        assert sleep.await_count == 2
        assert job.completed_count == 0

    async def test_failure_on_middle_chunk(self, coordinator, mock_client, three_chunk_job):
        job, path = three_chunk_job
        mock_client.upload_chunk.side_effect = [JobReference()] + [NetworkError("down")] * 3

        with pytest.raises(UploadFailedError) as exc_info:
            await coordinator.upload(job, path, CancellationToken())

        assert exc_info.value.chunk_index == 1
        assert _chunk_indexes(mock_client) == [0, 1, 1, 1]
        assert job.completed_count == 1

    @pytest.mark.parametrize("error", [UnauthorizedError(), FileTooLargeError()])
    async def test_non_retryable_errors_short_circuit(
        self, coordinator, mock_client, sleep, three_chunk_job, error
    ):
        job, path = three_chunk_job
        mock_client.upload_chunk.side_effect = error

        with pytest.raises(type(error)):
            await coordinator.upload(job, path, CancellationToken())

        assert mock_client.upload_chunk.await_count == 1
        sleep.assert_not_awaited()

    async def test_backoff_is_capped(self, mock_client, sleep, settings, three_chunk_job):
        job, path = three_chunk_job
        coordinator = UploadCoordinator(
            mock_client, max_attempts=4, initial_delay=1.0, max_delay=1.5, settings=settings, sleep=sleep
        )
        mock_client.upload_chunk.side_effect = NetworkError("down")
        with pytest.raises(UploadFailedError):
            await coordinator.upload(job, path, CancellationToken())
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 1.5, 1.5]


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------


class TestCancellation:
    """The token is honoured before every chunk and every attempt."""

    async def test_cancel_before_start(self, coordinator, mock_client, three_chunk_job):
        job, path = three_chunk_job
        token = CancellationToken()
        token.cancel()
        with pytest.raises(UploadCancelledError):
            await coordinator.upload(job, path, token)
        mock_client.upload_chunk.assert_not_awaited()

    async def test_cancel_after_first_chunk(self, coordinator, mock_client, three_chunk_job):
        job, path = three_chunk_job
        token = CancellationToken()

        async def upload_then_cancel(*args, **kwargs):
            token.cancel("user")
            return JobReference()

        mock_client.upload_chunk.side_effect = upload_then_cancel
        with pytest.raises(UploadCancelledError):
            await coordinator.upload(job, path, token)

        assert mock_client.upload_chunk.await_count == 1
        assert job.completed_count == 1

    async def test_cancel_between_retries(self, coordinator, mock_client, sleep, three_chunk_job):
        job, path = three_chunk_job
        token = CancellationToken()
        mock_client.upload_chunk.side_effect = NetworkError("down")
        sleep.side_effect = lambda seconds: token.cancel()

        with pytest.raises(UploadCancelledError):
            await coordinator.upload(job, path, token)

        assert mock_client.upload_chunk.await_count == 1
