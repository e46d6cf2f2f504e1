"""Tests for the append-only statistics log"""

import csv
import threading
from datetime import datetime, timezone
from pathlib import Path

import pytest

from h5p_scorm.exceptions import StatisticsError
from h5p_scorm.models.conversion import StatisticsRecord
from h5p_scorm.models.h5p import H5PMetadata
from h5p_scorm.services.statistics import STATISTICS_HEADER, StatisticsRecorder


def read_rows(path: Path):
    with open(path, newline="", encoding="utf-8") as f:
        return list(csv.reader(f))


@pytest.fixture
def record(sample_metadata) -> StatisticsRecord:
    return StatisticsRecord.create(
        H5PMetadata.model_validate(sample_metadata),
        2048,
        now=datetime(2026, 10, 19, 10, 0, 0, tzinfo=timezone.utc),
    )


class TestStatisticsRecord:
    def test_create(self, record: StatisticsRecord):
        assert record.timestamp == "Mon, 19 Oct 2026 10:00:00 GMT"
        assert record.content_type == "H5P.MultiChoice"
        assert record.content_type_version == "1.16"
        assert record.file_size == 2048

    def test_unknown_content_type(self):
        record = StatisticsRecord.create(H5PMetadata(), 1)
        assert record.content_type == "unknown"
        assert record.content_type_version == "unknown"
        assert record.timestamp.endswith("GMT")


class TestStatisticsRecorder:
    def test_first_write_adds_header(self, tmp_path: Path, record: StatisticsRecord):
        path = tmp_path / "logs" / "statistics.csv"
        recorder = StatisticsRecorder(path)

        recorder.record(record)
        recorder.record(record)

        rows = read_rows(path)
        assert rows[0] == STATISTICS_HEADER
        assert rows[0] == ["Time", "Content Type", "Content Type Version", "Size (in bytes)"]
        assert len(rows) == 3
        assert rows[1] == ["Mon, 19 Oct 2026 10:00:00 GMT", "H5P.MultiChoice", "1.16", "2048"]

    def test_header_line_is_plain_csv(self, tmp_path: Path, record: StatisticsRecord):
        path = tmp_path / "statistics.csv"

        StatisticsRecorder(path).record(record)

        first_line = path.read_text(encoding="utf-8").splitlines()[0]
        assert first_line == "Time,Content Type,Content Type Version,Size (in bytes)"

    def test_existing_log_is_appended(self, tmp_path: Path, record: StatisticsRecord):
        path = tmp_path / "statistics.csv"
        path.write_text("Time,Content Type,Content Type Version,Size (in bytes)\nold,row,1.0,1\n")

        StatisticsRecorder(path).record(record)

        rows = read_rows(path)
        assert len(rows) == 3
        assert rows[1] == ["old", "row", "1.0", "1"]

    def test_empty_file_gets_header(self, tmp_path: Path, record: StatisticsRecord):
        path = tmp_path / "statistics.csv"
        path.touch()

        StatisticsRecorder(path).record(record)

        assert read_rows(path)[0] == STATISTICS_HEADER

    def test_disabled_recorder_writes_nothing(self, tmp_path: Path, record: StatisticsRecord):
        path = tmp_path / "statistics.csv"
        StatisticsRecorder(path, enabled=False).record(record)
        assert not path.exists()

    def test_write_failure(self, tmp_path: Path, record: StatisticsRecord):
        recorder = StatisticsRecorder(tmp_path)  # a directory, cannot be opened for append

        with pytest.raises(StatisticsError):
            recorder.record(record)
        assert recorder.record_safely(record) is False

    def test_concurrent_appends(self, tmp_path: Path, record: StatisticsRecord):
        path = tmp_path / "statistics.csv"
        recorder = StatisticsRecorder(path)

        threads = [
            threading.Thread(target=recorder.record, args=(record,))
            for _ in range(20)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        rows = read_rows(path)
        assert rows.count(STATISTICS_HEADER) == 1
        assert len(rows) == 21
        assert all(len(row) == 4 for row in rows)
