"""
Statistics Recorder

Appends one CSV row per successful conversion. The log is shared by every
request in the process, so each append is a single write made while
holding a module-level lock; the file is never read back or rewritten.
"""

import csv
import io
import logging
import threading
from pathlib import Path
from typing import Union

from ..exceptions import StatisticsError
from ..models.conversion import StatisticsRecord

logger = logging.getLogger(__name__)

STATISTICS_HEADER = ["Time", "Content Type", "Content Type Version", "Size (in bytes)"]

_write_lock = threading.Lock()


class StatisticsRecorder:
    """Append-only CSV log of conversions"""

    def __init__(self, path: Union[str, Path], enabled: bool = True):
        self.path = Path(path)
        self.enabled = enabled

    def record(self, record: StatisticsRecord) -> None:
        """
        Append ``record``, writing the header first for a new file.

        Raises:
            StatisticsError: the log could not be written
        """
        if not self.enabled:
            return

        try:
            with _write_lock:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                needs_header = not self.path.exists() or self.path.stat().st_size == 0
                payload = self._format(record, needs_header)
                with open(self.path, "a", encoding="utf-8", newline="") as f:
                    f.write(payload)
        except OSError as e:
            raise StatisticsError(f"Cannot write statistics to {self.path}: {e}") from e

        logger.debug("Recorded statistics row for %s", record.content_type)

    def record_safely(self, record: StatisticsRecord) -> bool:
        """Best-effort ``record``: failures are logged, never raised."""
        try:
            self.record(record)
            return True
        except StatisticsError as e:
            logger.error("Statistics not recorded: %s", e)
            return False

    @staticmethod
    def _format(record: StatisticsRecord, with_header: bool) -> str:
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        if with_header:
            writer.writerow(STATISTICS_HEADER)
        writer.writerow(record.as_row())
        return buffer.getvalue()
