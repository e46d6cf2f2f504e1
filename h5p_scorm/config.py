"""Application configuration.

Values come from the environment (and an optional ``.env`` file). Paths
default to locations under the system temp directory so the service runs
on read-only deployments where only ``/tmp`` is writable.
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()

BASE_TMP_DIR = Path(tempfile.gettempdir()) / "h5p_scorm"
DEFAULT_WORKING_DIR = BASE_TMP_DIR / "working_directory"
DEFAULT_STATISTICS_FILE = BASE_TMP_DIR / "logs" / "statistics.csv"

MB = 1024 * 1024


def parse_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the conversion service."""

    working_dir: Path = DEFAULT_WORKING_DIR
    use_statistics: bool = False
    statistics_file: Path = DEFAULT_STATISTICS_FILE
    max_upload_size: int = 50 * MB
    max_extracted_size: int = 500 * MB
    max_archive_entries: int = 10_000
    environment: str = "development"
    log_level: str = "INFO"
    cors_origins: List[str] = field(
        default_factory=lambda: ["http://localhost:3000", "http://localhost:8080"]
    )
    host: str = "0.0.0.0"
    port: int = 8080


def read_settings() -> Settings:
    """Build settings from the current environment."""
    cors = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:8080")
    return Settings(
        working_dir=Path(os.getenv("WORKING_DIR", str(DEFAULT_WORKING_DIR))),
        use_statistics=parse_bool(os.getenv("USE_STATISTICS")),
        statistics_file=Path(
            os.getenv("STATISTICS_FILE", str(DEFAULT_STATISTICS_FILE))
        ).resolve(),
        max_upload_size=_int_env("MAX_UPLOAD_SIZE_MB", 50) * MB,
        max_extracted_size=_int_env("MAX_EXTRACTED_SIZE_MB", 500) * MB,
        max_archive_entries=_int_env("MAX_ARCHIVE_ENTRIES", 10_000),
        environment=os.getenv("ENVIRONMENT", "development"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        cors_origins=[o.strip() for o in cors.split(",") if o.strip()],
        host=os.getenv("HOST", "0.0.0.0"),
        port=_int_env("PORT", 8080),
    )


@lru_cache
def get_settings() -> Settings:
    """Return the cached process-wide settings."""
    return read_settings()
