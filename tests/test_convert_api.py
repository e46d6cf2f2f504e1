"""
Conversion endpoint tests
"""

import csv
import io
import queue
import re
import threading
import zipfile

import pytest
from fastapi.testclient import TestClient

from h5p_scorm.main import create_app

FILENAME_PATTERN = re.compile(
    r"attachment; filename=([A-Za-z0-9]+_v1\.0\.0_\d{4}-\d{2}-\d{2}\.zip)$"
)


def post_h5p(client: TestClient, data: bytes, filename: str = "course.h5p", mastery_score=None, path="/api/v1/convert"):
    form = {} if mastery_score is None else {"h5p_mastery_score": mastery_score}
    return client.post(
        path,
        files={"h5p_file": (filename, data, "application/octet-stream")},
        data=form,
    )


def manifest_from(response) -> str:
    with zipfile.ZipFile(io.BytesIO(response.content)) as zf:
        return zf.read("imsmanifest.xml").decode("utf-8")


class TestConvertEndpoint:
    """Test H5P to SCORM conversion endpoints"""

    def test_convert_success(self, test_client: TestClient, sample_h5p_bytes: bytes, workspace_residue):
        response = post_h5p(test_client, sample_h5p_bytes, mastery_score="80")

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/zip"
        match = FILENAME_PATTERN.match(response.headers["content-disposition"])
        assert match is not None
        assert match.group(1).startswith("PhotosynthesisQuiz_v1.0.0_")
        assert "<adlcp:masteryscore>80</adlcp:masteryscore>" in manifest_from(response)
        assert workspace_residue() == []

    def test_convert_zip_content(self, test_client: TestClient, sample_h5p_bytes: bytes):
        response = post_h5p(test_client, sample_h5p_bytes)
        assert response.status_code == 200

        with zipfile.ZipFile(io.BytesIO(response.content)) as zf:
            names = zf.namelist()
            assert "imsmanifest.xml" in names
            assert "index.html" in names
            assert "workspace/h5p.json" in names
            assert "workspace/content/content.json" in names
            manifest = zf.read("imsmanifest.xml").decode("utf-8")

        assert "<schemaversion>1.2</schemaversion>" in manifest
        assert "<adlcp:masteryscore>100</adlcp:masteryscore>" in manifest
        assert 'href="index.html"' in manifest
        assert "Photosynthesis Quiz" in manifest
        assert "Ada Lovelace" in manifest

    def test_convert_at_root_path(self, test_client: TestClient, sample_h5p_bytes: bytes):
        response = post_h5p(test_client, sample_h5p_bytes, path="/convert")
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/zip"

    def test_blank_mastery_score_defaults(self, test_client: TestClient, sample_h5p_bytes: bytes):
        response = post_h5p(test_client, sample_h5p_bytes, mastery_score="")
        assert response.status_code == 200
        assert "<adlcp:masteryscore>100</adlcp:masteryscore>" in manifest_from(response)

    def test_filename_strips_symbols(self, test_client: TestClient, h5p_archive, sample_metadata):
        sample_metadata["title"] = "Cells & Organelles: Part #2 (Review)!"
        response = post_h5p(test_client, h5p_archive(metadata=sample_metadata))

        assert response.status_code == 200
        filename = FILENAME_PATTERN.match(response.headers["content-disposition"]).group(1)
        assert filename.startswith("CellsOrganellesPart2Review_v1.0.0_")

    def test_missing_title_falls_back(self, test_client: TestClient, h5p_archive, sample_metadata):
        del sample_metadata["title"]
        sample_metadata["authors"] = []
        response = post_h5p(test_client, h5p_archive(metadata=sample_metadata))

        assert response.status_code == 200
        assert "filename=H5PContent_v1.0.0_" in response.headers["content-disposition"]
        manifest = manifest_from(response)
        assert "H5P Content" in manifest
        assert "H5P Author" in manifest

    def test_repeat_conversion_is_equivalent(self, test_client: TestClient, sample_h5p_bytes: bytes):
        first = post_h5p(test_client, sample_h5p_bytes)
        second = post_h5p(test_client, sample_h5p_bytes)

        assert first.status_code == second.status_code == 200
        with zipfile.ZipFile(io.BytesIO(first.content)) as a, zipfile.ZipFile(io.BytesIO(second.content)) as b:
            assert a.namelist() == b.namelist()
            assert a.read("imsmanifest.xml") == b.read("imsmanifest.xml")
            for name in a.namelist():
                assert a.read(name) == b.read(name)

    def test_concurrent_uploads_with_same_filename(self, test_client: TestClient, h5p_archive, sample_metadata, workspace_residue):
        results = queue.Queue()
        titles = [f"Module {i}" for i in range(5)]

        def convert(title):
            data = h5p_archive(
                metadata={**sample_metadata, "title": title},
                extra_files={"marker.txt": title.encode()},
            )
            response = post_h5p(test_client, data, filename="shared-name.h5p")
            results.put((title, response))

        threads = [threading.Thread(target=convert, args=(t,)) for t in titles]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert results.qsize() == len(titles)
        while not results.empty():
            title, response = results.get()
            assert response.status_code == 200
            assert f"filename={title.replace(' ', '')}_v1.0.0_" in response.headers["content-disposition"]
            with zipfile.ZipFile(io.BytesIO(response.content)) as zf:
                assert zf.read("workspace/marker.txt").decode() == title
        assert workspace_residue() == []

    def test_get_output_formats(self, test_client: TestClient):
        response = test_client.get("/api/v1/convert/formats")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        scorm_format = next((f for f in data["formats"] if f["id"] == "scorm_1_2"), None)
        assert scorm_format is not None
        assert scorm_format["supported"] is True


class TestStatistics:
    def test_statistics_rows_per_conversion(self, statistics_settings, sample_h5p_bytes: bytes):
        app = create_app(statistics_settings)
        with TestClient(app) as client:
            for _ in range(3):
                assert post_h5p(client, sample_h5p_bytes).status_code == 200

        with open(statistics_settings.statistics_file, newline="") as f:
            rows = list(csv.reader(f))

        assert rows[0] == ["Time", "Content Type", "Content Type Version", "Size (in bytes)"]
        assert len(rows) == 4
        assert all(row[3] == str(len(sample_h5p_bytes)) for row in rows[1:])

    def test_statistics_disabled_by_default(self, test_client: TestClient, settings, sample_h5p_bytes: bytes):
        assert post_h5p(test_client, sample_h5p_bytes).status_code == 200
        assert not settings.statistics_file.exists()

    def test_failed_conversion_not_recorded(self, statistics_settings):
        app = create_app(statistics_settings)
        with TestClient(app) as client:
            assert post_h5p(client, b"not a zip").status_code == 500
        assert not statistics_settings.statistics_file.exists()


class TestLifecycle:
    def test_working_directory_created_and_removed(self, settings):
        app = create_app(settings)
        with TestClient(app):
            assert (settings.working_dir / "workspace").is_dir()
        assert not settings.working_dir.exists()

    @pytest.mark.slow
    def test_many_sequential_conversions_leave_nothing_behind(self, test_client: TestClient, sample_h5p_bytes: bytes, workspace_residue):
        for _ in range(10):
            assert post_h5p(test_client, sample_h5p_bytes).status_code == 200
        assert workspace_residue() == []
