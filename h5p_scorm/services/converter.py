"""
Conversion Pipeline

Runs one H5P upload through the stages in order:
validate -> workspace -> stage upload -> extract -> metadata -> assemble
-> statistics, then hands the finished artifact to the caller together
with ownership of the workspace.

Blocking filesystem stages run in worker threads so concurrent requests
keep making progress on the event loop.
"""

import asyncio
import inspect
import logging
import threading
from contextlib import ExitStack
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, AsyncIterator, Optional

import aiofiles

from ..config import Settings
from ..exceptions import ConversionError, WorkspaceError, ValidationError
from ..models.conversion import (
    ConversionRequest,
    OutputArtifact,
    PackageOptions,
    StatisticsRecord,
)
from ..models.h5p import H5PMetadata
from ..utils.validation import (
    parse_mastery_score,
    require_upload,
    sanitize_upload_name,
)
from .extractor import ArchiveExtractor
from .metadata import load_metadata
from .scorm_package import SCORMPackageAssembler
from .statistics import StatisticsRecorder
from .workspace import Workspace, WorkspaceManager

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


@dataclass
class ConversionResult:
    """Finished conversion; owns its workspace until ``close`` is called"""
    artifact: OutputArtifact
    metadata: H5PMetadata
    upload_size: int
    workspace: Workspace
    _cleanup: ExitStack = field(repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _closed: bool = field(default=False, repr=False)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Remove the artifact and every workspace directory, once."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._cleanup.close()

    async def stream(self, chunk_size: int = CHUNK_SIZE) -> AsyncIterator[bytes]:
        """Yield the artifact's bytes, closing the result however it ends."""
        try:
            async with aiofiles.open(self.artifact.path, "rb") as f:
                while True:
                    chunk = await f.read(chunk_size)
                    if not chunk:
                        break
                    yield chunk
        finally:
            # close() stays synchronous: awaits re-raise once the stream is cancelled
            self.close()


class ConversionService:
    """Orchestrates a single H5P to SCORM conversion"""

    def __init__(
        self,
        settings: Settings,
        workspaces: Optional[WorkspaceManager] = None,
        extractor: Optional[ArchiveExtractor] = None,
        assembler: Optional[SCORMPackageAssembler] = None,
        statistics: Optional[StatisticsRecorder] = None,
    ):
        self.settings = settings
        self.workspaces = workspaces or WorkspaceManager(settings.working_dir)
        self.extractor = extractor or ArchiveExtractor(
            max_entries=settings.max_archive_entries,
            max_extracted_size=settings.max_extracted_size,
        )
        self.assembler = assembler or SCORMPackageAssembler()
        self.statistics = statistics or StatisticsRecorder(
            settings.statistics_file, enabled=settings.use_statistics
        )

    async def convert(self, request: ConversionRequest) -> ConversionResult:
        """
        Convert the uploaded archive into a SCORM package

        Validation happens before any file I/O. Every later failure, and
        cancellation, releases the workspace before the error propagates.

        Raises:
            ValidationError: missing upload, bad mastery score, upload too large
            WorkspaceError: directories could not be allocated or written
            ExtractionError: the upload is not a usable archive
            AssemblyError: packaging failed
        """
        filename = require_upload(request.upload, request.filename)
        mastery_score = parse_mastery_score(request.mastery_score)
        token = self.workspaces.new_token(filename)

        with ExitStack() as stack:
            workspace = stack.enter_context(self.workspaces.scoped(token))
            logger.info("Starting conversion of %s (workspace %s)", filename, token)
            try:
                archive_path = workspace.upload_dir / f"{sanitize_upload_name(filename)}.h5p"
                upload_size = await self._stage_upload(request.upload, archive_path)

                logger.info("Extracting %s", filename)
                await asyncio.to_thread(
                    self.extractor.extract, archive_path, workspace.extraction_dir
                )

                metadata = await asyncio.to_thread(load_metadata, workspace.extraction_dir)
                options = PackageOptions.build(metadata, mastery_score)

                artifact = await asyncio.to_thread(
                    self.assembler.assemble,
                    workspace.extraction_dir,
                    options,
                    workspace.assembly_dir,
                    workspace.output_dir,
                )
            except ConversionError as e:
                logger.error(
                    "Conversion of %s failed (%s): %s",
                    filename, type(e).__name__, e,
                )
                raise

            logger.info("Converted: %s (%d bytes)", filename, upload_size)

            if self.statistics.enabled:
                await asyncio.to_thread(
                    self.statistics.record_safely,
                    StatisticsRecord.create(metadata, upload_size),
                )

            return ConversionResult(
                artifact=artifact,
                metadata=metadata,
                upload_size=upload_size,
                workspace=workspace,
                _cleanup=stack.pop_all(),
            )

    async def _stage_upload(self, upload: Any, target: Path) -> int:
        """Copy the upload to ``target`` in chunks, enforcing the size limit."""
        size = 0
        limit = self.settings.max_upload_size
        try:
            async with aiofiles.open(target, "wb") as out:
                while True:
                    chunk = upload.read(CHUNK_SIZE)
                    if inspect.isawaitable(chunk):
                        chunk = await chunk
                    if not chunk:
                        break
                    size += len(chunk)
                    if size > limit:
                        raise ValidationError(
                            f"The uploaded file exceeds the maximum size of "
                            f"{limit} bytes."
                        )
                    await out.write(chunk)
        except OSError as e:
            raise WorkspaceError(f"Cannot stage upload at {target}: {e}") from e
        return size
