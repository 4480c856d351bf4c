"""Integration test fixtures for Resignal.

Provides an in-process FastAPI fake of the transcription service and an API
client wired to it through ``httpx.ASGITransport``, so the whole pipeline
runs over real HTTP request/response handling without a network.
"""

import httpx
import pytest
from fastapi import FastAPI, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from resignal.services.upload.api_client import TranscriptionAPIClient


class CompleteRequest(BaseModel):
    interview_id: str


class FakeTranscriptionService:
    """Records received chunks and answers status polls from a script.

    Args:
        polls_until_done: ``GET /status`` calls before the job completes.
        transcript: Text returned once completed.
        chunk_failures: Map of chunk index to a list of HTTP status codes
            returned on successive attempts before accepting the chunk.
    """

    job_id = "job-1"

    def __init__(
        self,
        polls_until_done: int = 2,
        transcript: str = "hello world",
        chunk_failures: dict[int, list[int]] | None = None,
    ) -> None:
        self.polls_until_done = polls_until_done
        self.transcript = transcript
        self.chunk_failures = {k: list(v) for k, v in (chunk_failures or {}).items()}
        self.chunks: dict[int, bytes] = {}
        self.chunk_attempts: list[int] = []
        self.completed: list[str] = []
        self.status_calls = 0
        self.client_ids: set[str] = set()

    def assembled(self) -> bytes:
        return b"".join(self.chunks[i] for i in sorted(self.chunks))

    def build_app(self) -> FastAPI:
        app = FastAPI()

        @app.middleware("http")
        async def record_identity(request: Request, call_next):
            self.client_ids.add(request.headers.get("x-client-id", ""))
            return await call_next(request)

        @app.post("/api/chunks")
        async def upload_chunk(
            audio: UploadFile = File(...),
            chunk_index: int = Form(...),
            total_chunks: int = Form(...),
            interview_id: str | None = Form(None),
        ):
            self.chunk_attempts.append(chunk_index)
            pending = self.chunk_failures.get(chunk_index)
            if pending:
                code = pending.pop(0)
                return JSONResponse(status_code=code, content={"error": f"rejected chunk {chunk_index}"})
            self.chunks[chunk_index] = await audio.read()
            return {"job_id": self.job_id, "received": chunk_index, "total": total_chunks}

        @app.post("/api/complete")
        async def complete(body: CompleteRequest):
            self.completed.append(body.interview_id)
            return {"job_id": self.job_id}

        @app.get("/api/status")
        async def status(job_id: str):
            self.status_calls += 1
            if job_id != self.job_id:
                return JSONResponse(status_code=404, content={"detail": "unknown job"})
            if self.status_calls < self.polls_until_done:
                return {"status": "processing"}
            return {"status": "completed", "transcript": self.transcript}

        return app


@pytest.fixture
def service():
    return FakeTranscriptionService()


@pytest.fixture
async def api_client(service, settings):
    """API client whose requests are served in-process by ``service``."""
    transport = httpx.ASGITransport(app=service.build_app())
    client = TranscriptionAPIClient(base_url="http://test/api", transport=transport, settings=settings)
    yield client
    await client.aclose()
