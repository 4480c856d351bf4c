"""
Resignal command line.

Inspect how a recording would be chunked, or upload it to the configured
transcription service and print the transcript.

Usage:
    python -m resignal plan recording.m4a --max-chunk-bytes 1048576
    python -m resignal upload recording.m4a --interview-id abc123
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from resignal.core.config import configure_logging, get_settings
from resignal.core.exceptions import ResignalError
from resignal.core.models import describe_state
from resignal.services.pipeline import TranscriptionPipeline
from resignal.services.upload.chunker import plan_file

logger = logging.getLogger(__name__)


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be >= 1, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="resignal",
        description="Chunked upload of recordings to a remote transcription service",
    )
    parser.add_argument("--log-level", help="Logging level (default: settings.log_level)")
    sub = parser.add_subparsers(dest="command", required=True)

    plan_cmd = sub.add_parser("plan", help="Print the chunk plan for a file")
    plan_cmd.add_argument("file", type=Path, help="Audio file to inspect")
    plan_cmd.add_argument(
        "--max-chunk-bytes",
        type=_positive_int,
        default=None,
        help="Largest chunk in bytes (default: settings.max_chunk_bytes)",
    )

    upload_cmd = sub.add_parser("upload", help="Upload a file and print its transcript")
    upload_cmd.add_argument("file", type=Path, help="Audio file to upload")
    upload_cmd.add_argument("--interview-id", default=None, help="Interview identifier")

    return parser


def print_plan(file: Path, max_chunk_bytes: int | None) -> None:
    chunk_plan = plan_file(file, max_chunk_bytes or get_settings().max_chunk_bytes)
    print(f"{file}: {chunk_plan.file_size} bytes in {chunk_plan.total_chunks} chunk(s)")
    for chunk in chunk_plan.chunks:
        print(f"  #{chunk.index:<4} offset={chunk.byte_offset:<12} length={chunk.byte_length}")


async def upload(file: Path, interview_id: str | None) -> str:
    """Run the pipeline for ``file``, echoing every state transition."""
    pipeline = TranscriptionPipeline()
    subscription = pipeline.observe_state()

    async def echo_states() -> None:
        async for state in subscription:
            print(f"[{describe_state(state)}]", file=sys.stderr)

    printer = asyncio.create_task(echo_states())
    try:
        return await pipeline.run(file, interview_id=interview_id)
    finally:
        subscription.close()
        await printer
        await pipeline.aclose()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        if args.command == "plan":
            print_plan(args.file, args.max_chunk_bytes)
        elif args.command == "upload":
            print(asyncio.run(upload(args.file, args.interview_id)))
    except ResignalError as exc:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {exc.detail}", file=sys.stderr)
        return 1
    return 0
