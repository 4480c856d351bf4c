"""
Upload module - Chunk planning, chunked upload and job polling.
"""

from resignal.services.upload.api_client import TranscriptionAPIClient, mime_type_for
from resignal.services.upload.chunker import plan, plan_file, read_chunk
from resignal.services.upload.coordinator import UploadCoordinator
from resignal.services.upload.poller import JobPoller

__all__ = [
    "JobPoller",
    "TranscriptionAPIClient",
    "UploadCoordinator",
    "mime_type_for",
    "plan",
    "plan_file",
    "read_chunk",
]
