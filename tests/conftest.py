"""
Pytest configuration and fixtures for backend testing
"""

import io
import json
import os
import zipfile
from pathlib import Path
from typing import Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ.setdefault("USE_STATISTICS", "false")

from h5p_scorm.config import Settings
from h5p_scorm.main import create_app
from h5p_scorm.services.converter import ConversionService
from h5p_scorm.services.workspace import AREAS


SAMPLE_METADATA = {
    "title": "Photosynthesis Quiz",
    "language": "en",
    "mainLibrary": "H5P.MultiChoice",
    "embedTypes": ["div"],
    "license": "U",
    "authors": [{"name": "Ada Lovelace", "role": "Author"}],
    "preloadedDependencies": [
        {"machineName": "H5P.MultiChoice", "majorVersion": 1, "minorVersion": 16},
        {"machineName": "FontAwesome", "majorVersion": 4, "minorVersion": 5},
        {"machineName": "H5P.JoubelUI", "majorVersion": 1, "minorVersion": 3},
    ],
}

SAMPLE_CONTENT = {
    "question": "<p>What do plants need for photosynthesis?</p>",
    "answers": [
        {"text": "Sunlight", "correct": True},
        {"text": "Moonlight", "correct": False},
    ],
}


def build_h5p_archive(
    metadata: Optional[Dict] = SAMPLE_METADATA,
    content: Optional[Dict] = SAMPLE_CONTENT,
    extra_files: Optional[Dict[str, bytes]] = None,
) -> bytes:
    """Build an H5P archive in memory"""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        if metadata is not None:
            zf.writestr("h5p.json", json.dumps(metadata))
        if content is not None:
            zf.writestr("content/content.json", json.dumps(content))
        zf.writestr("content/images/leaf.png", b"\x89PNG\r\n\x1a\nleaf")
        zf.writestr(
            "H5P.MultiChoice-1.16/library.json",
            json.dumps({"machineName": "H5P.MultiChoice"}),
        )
        for name, data in (extra_files or {}).items():
            zf.writestr(name, data)
    return buffer.getvalue()


@pytest.fixture
def h5p_archive():
    """Factory building H5P archives; see ``build_h5p_archive``"""
    return build_h5p_archive


@pytest.fixture
def sample_metadata() -> Dict:
    return json.loads(json.dumps(SAMPLE_METADATA))


@pytest.fixture
def sample_h5p_bytes() -> bytes:
    return build_h5p_archive()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated under the test's temporary directory"""
    return Settings(
        working_dir=tmp_path / "working_directory",
        statistics_file=tmp_path / "logs" / "statistics.csv",
        use_statistics=False,
        environment="test",
    )


@pytest.fixture
def statistics_settings(settings: Settings) -> Settings:
    return Settings(
        working_dir=settings.working_dir,
        statistics_file=settings.statistics_file,
        use_statistics=True,
        environment="test",
    )


@pytest.fixture
def conversion_service(settings: Settings) -> ConversionService:
    return ConversionService(settings)


@pytest.fixture
def app(settings: Settings):
    return create_app(settings)


@pytest.fixture
def test_client(app):
    """Create a test client for FastAPI application"""
    with TestClient(app) as client:
        yield client


@pytest.fixture
def workspace_residue(settings: Settings):
    """Return every file or directory left inside the workspace areas"""
    def _residue() -> List[Path]:
        leftovers = []
        for area in AREAS:
            area_dir = settings.working_dir / area
            if area_dir.exists():
                leftovers.extend(area_dir.iterdir())
        return leftovers
    return _residue


def pytest_collection_modifyitems(config, items):
    """Add markers to tests based on their location"""
    for item in items:
        if "api" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)

