"""
Data models shared by the recording controller and the upload pipeline.

Pydantic v2 models describe everything that crosses a boundary (remote
responses, broadcast states, chunk plans); plain dataclasses hold the
mutable per-run bookkeeping owned by a single component.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from pathlib import Path
from typing import Annotated, Literal, assert_never

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Recording
# ---------------------------------------------------------------------------


class RecordingState(StrEnum):
    """Lifecycle of local audio capture."""

    idle = "idle"
    recording = "recording"
    paused = "paused"
    processing = "processing"


@dataclass
class RecordingSession:
    """Mutable state of one capture, owned by ``RecordingController``."""

    state: RecordingState = RecordingState.idle
    start_time: datetime | None = None
    accumulated_duration: float = 0.0
    segment_start: float | None = None  # Clock reading of the running segment
    file_path: Path | None = None


@dataclass(frozen=True)
class LevelSample:
    """One periodic reading taken while recording."""

    duration: float
    level: float


# ---------------------------------------------------------------------------
# Chunking
# ---------------------------------------------------------------------------


class ChunkDescriptor(BaseModel):
    """A contiguous byte range of the recording, uploaded as one unit."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(ge=0)
    byte_offset: int = Field(ge=0)
    byte_length: int = Field(ge=0)

    @property
    def end(self) -> int:
        """Offset one past the last byte of this chunk."""
        return self.byte_offset + self.byte_length


class ChunkPlan(BaseModel):
    """Ordered, immutable split of a file into size-bounded chunks."""

    model_config = ConfigDict(frozen=True)

    file_size: int = Field(ge=0)
    max_chunk_bytes: int = Field(ge=1)
    chunks: tuple[ChunkDescriptor, ...]

    @property
    def total_chunks(self) -> int:
        return len(self.chunks)


@dataclass
class UploadJob:
    """Bookkeeping for one upload run; never shared between runs."""

    plan: ChunkPlan
    interview_id: str | None = None
    job_id: str | None = None
    completed_count: int = 0
    attempt_counts: dict[int, int] = field(default_factory=dict)

    @property
    def total_chunks(self) -> int:
        return self.plan.total_chunks

    @property
    def progress(self) -> float:
        """Fraction of chunks committed, 0.0 to 1.0."""
        if self.total_chunks == 0:
            return 0.0
        return self.completed_count / self.total_chunks


# ---------------------------------------------------------------------------
# Remote job
# ---------------------------------------------------------------------------


class JobStatus(StrEnum):
    """Status values reported by ``GET /status``."""

    pending = "pending"
    processing = "processing"
    completed = "completed"
    failed = "failed"


class JobReference(BaseModel):
    """Body of ``POST /chunks`` and ``POST /complete`` responses."""

    job_id: str | None = Field(
        default=None, validation_alias=AliasChoices("job_id", "jobId")
    )


class JobStatusResponse(BaseModel):
    """Body of ``GET /status``."""

    status: JobStatus
    transcript: str | None = None
    message: str | None = Field(
        default=None, validation_alias=AliasChoices("message", "error")
    )


# ---------------------------------------------------------------------------
# Pipeline state (discriminated union)
# ---------------------------------------------------------------------------


class Idle(BaseModel):
    """No upload in progress."""

    model_config = ConfigDict(frozen=True)
    kind: Literal["idle"] = "idle"


class Preparing(BaseModel):
    """Planning the chunk split."""

    model_config = ConfigDict(frozen=True)
    kind: Literal["preparing"] = "preparing"


class Uploading(BaseModel):
    """Uploading chunks; ``progress`` is committed chunks over total."""

    model_config = ConfigDict(frozen=True)
    kind: Literal["uploading"] = "uploading"
    progress: float = Field(ge=0.0, le=1.0)


class Processing(BaseModel):
    """All chunks accepted; waiting on the remote transcription."""

    model_config = ConfigDict(frozen=True)
    kind: Literal["processing"] = "processing"


class Completed(BaseModel):
    """The service returned the final transcript."""

    model_config = ConfigDict(frozen=True)
    kind: Literal["completed"] = "completed"
    transcript: str


class Failed(BaseModel):
    """The run ended without a transcript.

    Cancellation is reported here too, flagged with ``cancelled=True``.
    """

    model_config = ConfigDict(frozen=True)
    kind: Literal["failed"] = "failed"
    message: str
    cancelled: bool = False
    chunk_index: int | None = None


PipelineState = Annotated[
    Idle | Preparing | Uploading | Processing | Completed | Failed,
    Field(discriminator="kind"),
]


def is_terminal(state: PipelineState) -> bool:
    """True for states that end a run (``Completed`` or ``Failed``)."""
    return isinstance(state, Completed | Failed)


def describe_state(state: PipelineState) -> str:
    """Human-readable one-line rendering of a pipeline state."""
    match state:
        case Idle():
            return "idle"
        case Preparing():
            return "preparing"
        case Uploading(progress=progress):
            return f"uploading ({progress:.0%})"
        case Processing():
            return "processing"
        case Completed(transcript=transcript):
            return f"completed ({len(transcript)} chars)"
        case Failed(cancelled=True):
            return "cancelled"
        case Failed(message=message, chunk_index=None):
            return f"failed: {message}"
        case Failed(message=message, chunk_index=index):
            return f"failed at chunk {index}: {message}"
        case _:
            assert_never(state)
