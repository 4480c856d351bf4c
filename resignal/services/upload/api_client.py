"""
Async HTTP client for the remote transcription service.

Uses ``httpx.AsyncClient`` and translates transport failures and error
responses into the ``APIError`` family so the coordinator and poller can
decide what is worth retrying.
"""

import logging
from pathlib import Path

import httpx
from pydantic import ValidationError

from resignal.core.config import get_settings
from resignal.core.exceptions import (
    APIError,
    FileTooLargeError,
    InvalidResponseError,
    NetworkError,
    ServerError,
    UnauthorizedError,
)
from resignal.core.models import JobReference, JobStatusResponse
from resignal.services.client_context import ClientContext, LocalClientContext

logger = logging.getLogger(__name__)

_MIME_TYPES = {
    "m4a": "audio/m4a",
    "mp4": "audio/mp4",
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "webm": "audio/webm",
}


def mime_type_for(filename: str) -> str:
    """Guess the upload content type from a file name's extension."""
    ext = Path(filename).suffix.lstrip(".").lower()
    return _MIME_TYPES.get(ext, "audio/m4a")


def _error_message(resp: httpx.Response) -> str:
    """Extract a human-readable message from an error response body."""
    try:
        body = resp.json()
    except ValueError:
        return resp.text or resp.reason_phrase
    if isinstance(body, dict):
        for key in ("error", "message", "detail"):
            if body.get(key):
                return str(body[key])
    return resp.text or resp.reason_phrase


def _raise_for_status(resp: httpx.Response) -> None:
    """Map a non-2xx response onto the matching ``APIError`` subclass."""
    code = resp.status_code
    if 200 <= code < 300:
        return
    if code == 401:
        raise UnauthorizedError()
    if code == 413:
        raise FileTooLargeError()
    message = _error_message(resp)
    if code >= 500:
        raise ServerError(code, message)
    raise APIError(message, status_code=code)


class TranscriptionAPIClient:
    """Thin async wrapper around httpx for the chunk/complete/status endpoints.

    Every request carries the identity headers of the injected
    ``ClientContext``. Methods return parsed pydantic models or raise an
    ``APIError`` subclass.
    """

    def __init__(
        self,
        base_url: str | None = None,
        client_context: ClientContext | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        settings=None,
    ) -> None:
        """Initialize the HTTP client.

        Args:
            base_url: Service root URL (falls back to settings).
            client_context: Source of identity headers.
            timeout: Per-request timeout in seconds (falls back to settings).
            transport: Optional httpx transport, e.g. for tests.
            settings: Optional Settings instance (defaults to get_settings()).
        """
        self._settings = settings or get_settings()
        self._base_url = (base_url or self._settings.api_base_url).rstrip("/")
        self._context = client_context or LocalClientContext(settings=self._settings)
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=timeout if timeout is not None else self._settings.request_timeout,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "TranscriptionAPIClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Execute a request and normalise failures.

        Raises:
            NetworkError: On connection errors and timeouts.
            APIError: On any non-2xx response (see ``_raise_for_status``).
        """
        headers = {**self._context.headers(), **kwargs.pop("headers", {})}
        try:
            resp = await self._client.request(method, path, headers=headers, **kwargs)
        except httpx.TimeoutException as exc:
            raise NetworkError(f"Request timed out: {exc}") from exc
        except httpx.TransportError as exc:
            raise NetworkError(str(exc) or exc.__class__.__name__) from exc
        _raise_for_status(resp)
        return resp

    @staticmethod
    def _parse_reference(resp: httpx.Response) -> JobReference:
        if not resp.content:
            return JobReference()
        try:
            body = resp.json()
        except ValueError:
            return JobReference()
        if not isinstance(body, dict):
            return JobReference()
        return JobReference.model_validate(body)

    # -- chunks --

    async def upload_chunk(
        self,
        data: bytes,
        *,
        chunk_index: int,
        total_chunks: int,
        interview_id: str | None = None,
        filename: str = "recording.m4a",
    ) -> JobReference:
        """POST one chunk as multipart form data."""
        form = {"chunk_index": str(chunk_index), "total_chunks": str(total_chunks)}
        if interview_id:
            form["interview_id"] = interview_id
        files = {"audio": (filename, data, mime_type_for(filename))}
        resp = await self._request("POST", "/chunks", data=form, files=files)
        return self._parse_reference(resp)

    # -- job --

    async def complete(self, interview_id: str) -> JobReference:
        """Mark chunk upload finished for ``interview_id`` (idempotent server-side)."""
        resp = await self._request("POST", "/complete", json={"interview_id": interview_id})
        return self._parse_reference(resp)

    async def get_status(self, job_id: str) -> JobStatusResponse:
        """Fetch the current status of a transcription job."""
        resp = await self._request("GET", "/status", params={"job_id": job_id})
        try:
            return JobStatusResponse.model_validate(resp.json())
        except (ValueError, ValidationError) as exc:
            raise InvalidResponseError(f"Malformed status response: {exc}") from exc
