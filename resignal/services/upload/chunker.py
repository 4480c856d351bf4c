"""Size-based chunk planning for recorded audio files.

Chunks are raw byte ranges. They are not aligned to audio container frames;
the transcription service reassembles them in index order.
"""

import logging
import math
from pathlib import Path

from resignal.core.exceptions import ChunkingFailedError
from resignal.core.models import ChunkDescriptor, ChunkPlan

logger = logging.getLogger(__name__)


def plan(file_size: int, max_chunk_bytes: int) -> ChunkPlan:
    """Split ``file_size`` bytes into ordered ranges of at most ``max_chunk_bytes``.

    Every chunk except the last is exactly ``max_chunk_bytes`` long. A
    zero-byte file yields a single zero-length chunk; callers reject empty
    recordings before uploading.

    Raises:
        ValueError: If ``file_size`` is negative or ``max_chunk_bytes`` < 1.
    """
    if max_chunk_bytes < 1:
        raise ValueError(f"max_chunk_bytes must be >= 1, got {max_chunk_bytes}")
    if file_size < 0:
        raise ValueError(f"file_size must be >= 0, got {file_size}")

    if file_size == 0:
        chunks = (ChunkDescriptor(index=0, byte_offset=0, byte_length=0),)
        return ChunkPlan(file_size=0, max_chunk_bytes=max_chunk_bytes, chunks=chunks)

    count = math.ceil(file_size / max_chunk_bytes)
    chunks = tuple(
        ChunkDescriptor(
            index=index,
            byte_offset=index * max_chunk_bytes,
            byte_length=min(max_chunk_bytes, file_size - index * max_chunk_bytes),
        )
        for index in range(count)
    )
    return ChunkPlan(file_size=file_size, max_chunk_bytes=max_chunk_bytes, chunks=chunks)


def plan_file(path: str | Path, max_chunk_bytes: int) -> ChunkPlan:
    """Plan chunks for the file at ``path``.

    Raises:
        ChunkingFailedError: If the file does not exist or cannot be sized.
    """
    source = Path(path)
    if not source.is_file():
        raise ChunkingFailedError(f"Audio file not found at path: {source}")
    try:
        size = source.stat().st_size
    except OSError as exc:
        raise ChunkingFailedError(f"Unable to determine audio file size: {exc}") from exc

    result = plan(size, max_chunk_bytes)
    logger.debug(
        "Planned %d chunk(s) for %s (%d bytes, max %d per chunk)",
        result.total_chunks,
        source.name,
        size,
        max_chunk_bytes,
    )
    return result


def read_chunk(path: str | Path, chunk: ChunkDescriptor) -> bytes:
    """Read the bytes of one chunk from ``path``.

    Raises:
        ChunkingFailedError: If the file cannot be read or is shorter than planned.
    """
    try:
        with open(path, "rb") as fh:
            fh.seek(chunk.byte_offset)
            data = fh.read(chunk.byte_length)
    except OSError as exc:
        raise ChunkingFailedError(f"Failed to read data for chunk {chunk.index}: {exc}") from exc

    if len(data) != chunk.byte_length:
        raise ChunkingFailedError(
            f"Failed to read data for chunk {chunk.index}: "
            f"expected {chunk.byte_length} bytes, got {len(data)}"
        )
    return data
