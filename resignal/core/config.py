"""
Application configuration via pydantic-settings.

Loads values from .env file with sensible defaults for local development.
Use ``get_settings()`` to obtain the cached singleton instance.
"""

import logging
import sys
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Resignal capture settings loaded from environment / .env file.

    All settings can be overridden via environment variables or a `.env` file.
    Field names map directly to env var names (case-insensitive).

    Attributes:
        api_base_url: Root URL of the remote transcription service.
        max_chunk_bytes: Largest byte range sent in one ``POST /chunks``.
        upload_max_attempts: Attempts per chunk before the run fails.
        poll_interval: Seconds between ``GET /status`` requests.
        poll_max_wait: Seconds to wait for a terminal job status.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Silently ignore unrecognized env vars
    )

    # --- Transcription service ---
    api_base_url: str = "http://localhost:8000/api"
    request_timeout: float = 120.0  # Per-request bound for httpx calls

    # --- Chunked upload ---
    # 20 MiB keeps a safe margin under the service's 25 MB payload ceiling
    max_chunk_bytes: int = 20 * 1024 * 1024
    upload_max_attempts: int = 3
    upload_retry_initial_delay: float = 1.0  # Backoff: 1s, 2s, 4s, ...
    upload_retry_max_delay: float = 16.0

    # --- Job polling ---
    poll_interval: float = 3.0
    poll_max_wait: float = 300.0
    poll_max_transient_errors: int = 3  # Consecutive failed polls tolerated

    # --- Client identity ---
    client_id_path: str = "data/client_id"
    app_version: str = "1.0.0"
    client_platform: str = "python"
    device_model: str = ""  # Empty = platform.machine()

    # --- Recording ---
    recordings_dir: str = "data/recordings"
    tick_interval: float = 0.1  # Duration / level sampling while recording
    sample_rate: int = 16000
    sample_width: int = 2  # 16-bit PCM
    channels: int = 1

    # --- State broadcast ---
    broadcast_buffer_size: int = 64  # Per-subscriber queue, oldest dropped

    # --- Application ---
    log_level: str = "INFO"  # Python logging level


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings singleton.

    Uses ``functools.lru_cache`` so the .env file is read only once.
    Subsequent calls return the same ``Settings`` instance.

    Returns:
        Settings: The application-wide configuration object.
    """
    return Settings()


def configure_logging(level: str | None = None) -> None:
    """Configure root logging for command-line use.

    Args:
        level: Logging level name; falls back to ``settings.log_level``.
    """
    level_name = (level or get_settings().log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )
