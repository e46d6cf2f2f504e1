"""
Metadata Reader

Reads ``h5p.json`` from an extracted package. Strict reads raise
``MetadataError``; the pipeline uses ``load_metadata`` which degrades to
whatever could be parsed so a conversion never aborts on bad metadata.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict

from pydantic import ValidationError as PydanticValidationError

from ..exceptions import MetadataError
from ..models.h5p import Author, H5PMetadata, LibraryDependency
from ..utils.validation import validate_metadata_document

logger = logging.getLogger(__name__)

METADATA_FILENAME = "h5p.json"


def read_metadata(extraction_dir: Path) -> H5PMetadata:
    """
    Parse and validate ``h5p.json`` in ``extraction_dir``.

    Raises:
        MetadataError: file missing or not JSON, schema violations, or
            ``title``/``mainLibrary`` absent. ``exc.metadata`` holds the
            partial result.
    """
    metadata_path = Path(extraction_dir) / METADATA_FILENAME
    try:
        with open(metadata_path, "r", encoding="utf-8-sig") as f:
            document = json.load(f)
    except FileNotFoundError as e:
        raise MetadataError(f"{METADATA_FILENAME} not found", H5PMetadata()) from e
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MetadataError(
            f"{METADATA_FILENAME} unreadable: {e}", H5PMetadata()
        ) from e

    if not isinstance(document, dict):
        raise MetadataError(
            f"{METADATA_FILENAME} must contain a JSON object", H5PMetadata()
        )

    errors = validate_metadata_document(document)
    if errors:
        raise MetadataError(
            f"{METADATA_FILENAME} invalid: {'; '.join(errors)}",
            _lenient_metadata(document),
        )

    try:
        return H5PMetadata.model_validate(document)
    except PydanticValidationError as e:
        raise MetadataError(
            f"{METADATA_FILENAME} invalid: {e}", _lenient_metadata(document)
        ) from e


def load_metadata(extraction_dir: Path) -> H5PMetadata:
    """Non-fatal variant of ``read_metadata`` used by the pipeline."""
    try:
        return read_metadata(extraction_dir)
    except MetadataError as e:
        logger.warning("Falling back to default metadata: %s", e)
        return e.metadata if e.metadata is not None else H5PMetadata()


def _lenient_metadata(document: Dict[str, Any]) -> H5PMetadata:
    """Keep every well-formed field of a document that failed validation."""
    fields: Dict[str, Any] = {}

    title = document.get("title")
    if isinstance(title, str) and title.strip():
        fields["title"] = title
    language = document.get("language")
    if isinstance(language, str):
        fields["language"] = language
    main_library = document.get("mainLibrary")
    if isinstance(main_library, str) and main_library:
        fields["main_library"] = main_library

    authors = []
    for entry in _as_list(document.get("authors")):
        if isinstance(entry, dict) and isinstance(entry.get("name"), str):
            authors.append(Author(name=entry["name"]))
    fields["authors"] = authors

    dependencies = []
    for entry in _as_list(document.get("preloadedDependencies")):
        if not isinstance(entry, dict):
            continue
        try:
            dependencies.append(LibraryDependency.model_validate(entry))
        except PydanticValidationError:
            logger.debug("Skipping malformed dependency %r", entry)
    fields["preloaded_dependencies"] = dependencies

    return H5PMetadata(**fields)


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []
