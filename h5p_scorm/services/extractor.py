"""
Archive Extractor

Unpacks an uploaded H5P archive (a plain zip) into a request's extraction
directory, keeping relative paths exactly as stored.
"""

import logging
import zipfile
from pathlib import Path, PurePosixPath
from typing import List, Optional

from ..exceptions import ExtractionError

logger = logging.getLogger(__name__)


class ArchiveExtractor:
    """Zip extraction with size, entry-count and path-traversal guards"""

    def __init__(
        self,
        max_entries: Optional[int] = None,
        max_extracted_size: Optional[int] = None,
    ):
        self.max_entries = max_entries
        self.max_extracted_size = max_extracted_size

    def extract(self, archive_path: Path, dest_dir: Path) -> None:
        """
        Extract ``archive_path`` into ``dest_dir`` and delete the archive.

        Raises:
            ExtractionError: archive missing, not a zip, empty, unsafe,
                over the configured limits, or not writable to ``dest_dir``
        """
        archive_path = Path(archive_path)
        dest_dir = Path(dest_dir)

        if not archive_path.is_file():
            raise ExtractionError(f"Archive not found: {archive_path}")
        if not zipfile.is_zipfile(archive_path):
            raise ExtractionError(f"Not a zip archive: {archive_path.name}")

        try:
            with zipfile.ZipFile(archive_path) as archive:
                members = archive.infolist()
                self._check_members(members, dest_dir)
                dest_dir.mkdir(parents=True, exist_ok=True)
                archive.extractall(dest_dir)
        except ExtractionError:
            raise
        except (zipfile.BadZipFile, zipfile.LargeZipFile, NotImplementedError) as e:
            raise ExtractionError(f"Corrupt archive {archive_path.name}: {e}") from e
        except (OSError, EOFError, RuntimeError) as e:
            raise ExtractionError(
                f"Failed to extract {archive_path.name} into {dest_dir}: {e}"
            ) from e

        self._verify_tree(dest_dir)
        logger.info("Extracted %d entries from %s", len(members), archive_path.name)

        try:
            archive_path.unlink()
        except OSError as e:
            logger.warning("Could not delete uploaded archive %s: %s", archive_path, e)

    def _check_members(self, members: List[zipfile.ZipInfo], dest_dir: Path) -> None:
        files = [m for m in members if not m.is_dir()]
        if not files:
            raise ExtractionError("Archive contains no files")

        if self.max_entries is not None and len(members) > self.max_entries:
            raise ExtractionError(
                f"Archive has {len(members)} entries, limit is {self.max_entries}"
            )

        total = sum(m.file_size for m in files)
        if self.max_extracted_size is not None and total > self.max_extracted_size:
            raise ExtractionError(
                f"Archive expands to {total} bytes, limit is {self.max_extracted_size}"
            )

        root = dest_dir.resolve()
        for member in members:
            name = member.filename.replace("\\", "/")
            parts = PurePosixPath(name).parts
            if name.startswith("/") or ".." in parts or (parts and ":" in parts[0]):
                raise ExtractionError(f"Unsafe path in archive: {member.filename}")
            target = (root / name).resolve()
            if target != root and root not in target.parents:
                raise ExtractionError(f"Unsafe path in archive: {member.filename}")

    @staticmethod
    def _verify_tree(dest_dir: Path) -> None:
        try:
            has_content = dest_dir.is_dir() and any(dest_dir.iterdir())
        except OSError as e:
            raise ExtractionError(f"Extracted content unreadable: {e}") from e
        if not has_content:
            raise ExtractionError("Extraction produced no content")
