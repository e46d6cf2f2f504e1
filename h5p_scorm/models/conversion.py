"""
Pydantic Models for the Conversion Pipeline

Package options, the produced artifact and the statistics row. These are
built once per request and never mutated afterwards.
"""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from email.utils import format_datetime
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from .h5p import H5PMetadata
from ..utils.validation import (
    DEFAULT_MASTERY_SCORE,
    sanitize_title,
    validate_mastery_score,
)

SCORM_VERSION = "1.2"
PACKAGE_VERSION = "1.0.0"
DEFAULT_LANGUAGE = "en-EN"
DEFAULT_IDENTIFIER = "00"
STARTING_PAGE = "index.html"


@dataclass
class ConversionRequest:
    """One uploaded archive waiting to be converted.

    ``upload`` is anything with an async ``read(size)`` (FastAPI's
    ``UploadFile`` in production).
    """
    upload: Any
    filename: Optional[str]
    mastery_score: Any = None


class PackageOptions(BaseModel):
    """SCORM packaging configuration derived from metadata and request"""
    model_config = ConfigDict(frozen=True)

    version: str = Field(SCORM_VERSION, description="SCORM version")
    organization: str
    title: str
    language: str = DEFAULT_LANGUAGE
    identifier: str = DEFAULT_IDENTIFIER
    mastery_score: int = DEFAULT_MASTERY_SCORE
    starting_page: str = STARTING_PAGE
    package_version: str = PACKAGE_VERSION
    package_date: str = Field(..., description="ISO date (YYYY-MM-DD)")

    @classmethod
    def build(
        cls,
        metadata: H5PMetadata,
        mastery_score: Any = DEFAULT_MASTERY_SCORE,
        today: Optional[date] = None,
    ) -> "PackageOptions":
        """Assemble options, validating the mastery score range."""
        today = today or datetime.now(timezone.utc).date()
        return cls(
            organization=metadata.organization,
            title=metadata.display_title,
            mastery_score=validate_mastery_score(mastery_score),
            package_date=today.isoformat(),
        )

    @property
    def output_filename(self) -> str:
        return (
            f"{sanitize_title(self.title)}_v{self.package_version}"
            f"_{self.package_date}.zip"
        )


class OutputArtifact(BaseModel):
    """Finished SCORM zip on disk"""
    model_config = ConfigDict(frozen=True)

    path: Path
    filename: str
    size: int = Field(..., ge=0, description="Archive size in bytes")


class StatisticsRecord(BaseModel):
    """One row of the statistics log"""
    model_config = ConfigDict(frozen=True)

    timestamp: str
    content_type: str
    content_type_version: str
    file_size: int = Field(..., ge=0)

    @classmethod
    def create(
        cls,
        metadata: H5PMetadata,
        file_size: int,
        now: Optional[datetime] = None,
    ) -> "StatisticsRecord":
        now = now or datetime.now(timezone.utc)
        content_type = metadata.content_type
        return cls(
            timestamp=format_datetime(now.astimezone(timezone.utc), usegmt=True),
            content_type=content_type.machine_name,
            content_type_version=content_type.version,
            file_size=file_size,
        )

    def as_row(self) -> list:
        return [
            self.timestamp,
            self.content_type,
            self.content_type_version,
            self.file_size,
        ]


class HealthCheckResponse(BaseModel):
    """Health check response model"""
    status: str = Field(..., description="Service status")
    version: str = Field(..., description="Application version")
    environment: str = Field(..., description="Environment name")
    timestamp: datetime = Field(..., description="Check timestamp")
    uptime: float = Field(..., ge=0, description="Uptime in seconds")
