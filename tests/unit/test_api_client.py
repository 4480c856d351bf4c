"""Tests for the transcription service HTTP client.

Uses ``httpx.MockTransport`` so requests never leave the process; each test
inspects the outgoing request and feeds back a canned response.
"""

import json

import httpx
import pytest

from resignal.core.exceptions import (
    APIError,
    FileTooLargeError,
    InvalidResponseError,
    NetworkError,
    ServerError,
    UnauthorizedError,
    is_transient,
)
from resignal.core.models import JobStatus
from resignal.services.upload.api_client import TranscriptionAPIClient, mime_type_for


def _client(handler, settings, client_context):
    return TranscriptionAPIClient(
        client_context=client_context,
        transport=httpx.MockTransport(handler),
        settings=settings,
    )


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class TestUploadChunk:
    """Verify the multipart request for ``POST /chunks``."""

    async def test_sends_multipart_with_metadata(self, settings, client_context):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["request"] = request
            captured["body"] = request.content
            return httpx.Response(200, json={"job_id": "job-1"})

        async with _client(handler, settings, client_context) as client:
            ref = await client.upload_chunk(
                b"AUDIO", chunk_index=1, total_chunks=3, interview_id="iv-9", filename="a_chunk_1.m4a"
            )

        request = captured["request"]
        body = captured["body"]
        assert ref.job_id == "job-1"
        assert request.method == "POST"
        assert request.url.path == "/api/chunks"
        assert request.headers["content-type"].startswith("multipart/form-data")
        assert b'name="audio"; filename="a_chunk_1.m4a"' in body
        assert b"Content-Type: audio/m4a" in body
        assert b"AUDIO" in body
        assert b'name="chunk_index"\r\n\r\n1' in body
        assert b'name="total_chunks"\r\n\r\n3' in body
        assert b'name="interview_id"\r\n\r\niv-9' in body

    async def test_identity_headers_on_every_request(self, settings, client_context):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.headers)
            return httpx.Response(200, json={"status": "pending"})

        async with _client(handler, settings, client_context) as client:
            await client.upload_chunk(b"x", chunk_index=0, total_chunks=1)
            await client.complete("iv-1")
            await client.get_status("job-1")

        assert len(seen) == 3
        for headers in seen:
            assert headers["x-client-id"] == "test-client"
            assert headers["x-client-version"] == "9.9.9"
            assert headers["x-client-platform"] == "pytest"
            assert headers["x-device-model"] == "ci"

    async def test_empty_body_means_no_job_id(self, settings, client_context):
        async with _client(lambda r: httpx.Response(200), settings, client_context) as client:
            ref = await client.upload_chunk(b"x", chunk_index=0, total_chunks=1)
        assert ref.job_id is None


class TestCompleteAndStatus:
    async def test_complete_posts_interview_id(self, settings, client_context):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["path"] = request.url.path
            captured["json"] = json.loads(request.content)
            return httpx.Response(200, json={"jobId": "job-2"})

        async with _client(handler, settings, client_context) as client:
            ref = await client.complete("iv-1")

        assert captured["path"] == "/api/complete"
        assert captured["json"] == {"interview_id": "iv-1"}
        assert ref.job_id == "job-2"

    async def test_get_status_parses_completed(self, settings, client_context):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/status"
            assert request.url.params["job_id"] == "job-1"
            return httpx.Response(200, json={"status": "completed", "transcript": "hi"})

        async with _client(handler, settings, client_context) as client:
            status = await client.get_status("job-1")

        assert status.status == JobStatus.completed
        assert status.transcript == "hi"

    async def test_get_status_rejects_malformed_body(self, settings, client_context):
        async with _client(
            lambda r: httpx.Response(200, text="not json"), settings, client_context
        ) as client:
            with pytest.raises(InvalidResponseError):
                await client.get_status("job-1")


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


class TestErrorMapping:
    """Non-2xx responses and transport failures map onto APIError subclasses."""

    @pytest.mark.parametrize(
        "status,exc_type,transient",
        [
            (401, UnauthorizedError, False),
            (413, FileTooLargeError, False),
            (400, APIError, False),
            (500, ServerError, True),
            (503, ServerError, True),
        ],
    )
    async def test_status_codes(self, settings, client_context, status, exc_type, transient):
        async with _client(
            lambda r: httpx.Response(status, json={"error": "nope"}), settings, client_context
        ) as client:
            with pytest.raises(exc_type) as exc_info:
                await client.upload_chunk(b"x", chunk_index=0, total_chunks=1)
        assert exc_info.value.status_code == status
        assert is_transient(exc_info.value) is transient

    @pytest.mark.parametrize("key", ["error", "message", "detail"])
    async def test_error_message_keys(self, settings, client_context, key):
        async with _client(
            lambda r: httpx.Response(502, json={key: "upstream down"}), settings, client_context
        ) as client:
            with pytest.raises(ServerError) as exc_info:
                await client.get_status("job-1")
        assert exc_info.value.message == "upstream down"

    async def test_connect_error_is_network_error(self, settings, client_context):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with _client(handler, settings, client_context) as client:
            with pytest.raises(NetworkError) as exc_info:
                await client.complete("iv-1")
        assert is_transient(exc_info.value)

    async def test_timeout_is_network_error(self, settings, client_context):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        async with _client(handler, settings, client_context) as client:
            with pytest.raises(NetworkError, match="timed out"):
                await client.get_status("job-1")


@pytest.mark.parametrize(
    "filename,expected",
    [
        ("a.m4a", "audio/m4a"),
        ("a.MP4", "audio/mp4"),
        ("a.mp3", "audio/mpeg"),
        ("a.wav", "audio/wav"),
        ("a.webm", "audio/webm"),
        ("a.unknown", "audio/m4a"),
        ("noext", "audio/m4a"),
    ],
)
def test_mime_type_for(filename, expected):
    assert mime_type_for(filename) == expected
