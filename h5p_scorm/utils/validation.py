"""
Request and metadata validation utilities

Server-side checks that run before any file I/O (mastery score, upload
presence) plus the JSON schema ``h5p.json`` documents are checked against.
"""

import re
from typing import Any, Dict, List, Optional

from jsonschema import Draft7Validator

from ..exceptions import InvalidConfigurationError, ValidationError

DEFAULT_MASTERY_SCORE = 100
MIN_MASTERY_SCORE = 0
MAX_MASTERY_SCORE = 100

FALLBACK_FILENAME_STEM = "H5PContent"
MAX_TOKEN_STEM_LENGTH = 40

H5P_METADATA_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "properties": {
        "title": {"type": "string", "minLength": 1},
        "language": {"type": "string"},
        "mainLibrary": {"type": "string", "minLength": 1},
        "authors": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "role": {"type": "string"},
                },
            },
        },
        "preloadedDependencies": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "machineName": {"type": "string"},
                    "majorVersion": {"type": ["integer", "string"]},
                    "minorVersion": {"type": ["integer", "string"]},
                },
                "required": ["machineName"],
            },
        },
    },
    "required": ["title", "mainLibrary"],
}

_metadata_validator = Draft7Validator(H5P_METADATA_SCHEMA)


def validate_metadata_document(document: Any) -> List[str]:
    """Validate a parsed ``h5p.json`` against the schema.

    Returns a list of readable error strings, empty when the document is
    valid.
    """
    errors = []
    for error in sorted(_metadata_validator.iter_errors(document), key=str):
        field_path = ".".join(str(x) for x in error.absolute_path) or "h5p.json"
        errors.append(f"{field_path}: {error.message}")
    return errors


def parse_mastery_score(raw: Any) -> int:
    """
    Parse the ``h5p_mastery_score`` form field.

    A missing or blank value means the default of 100. Anything that is not
    an integer in 0..100 raises ``ValidationError``.
    """
    if raw is None:
        return DEFAULT_MASTERY_SCORE
    if isinstance(raw, bool):
        raise ValidationError("Mastery score must be an integer between 0 and 100.")
    if isinstance(raw, str):
        raw = raw.strip()
        if not raw:
            return DEFAULT_MASTERY_SCORE
        if not re.fullmatch(r"[+-]?\d+", raw):
            raise ValidationError(
                "Mastery score must be an integer between 0 and 100."
            )
        raw = int(raw)
    if not isinstance(raw, int):
        raise ValidationError("Mastery score must be an integer between 0 and 100.")
    if not MIN_MASTERY_SCORE <= raw <= MAX_MASTERY_SCORE:
        raise ValidationError(
            f"Mastery score must be between {MIN_MASTERY_SCORE} and "
            f"{MAX_MASTERY_SCORE}, got {raw}."
        )
    return raw


def validate_mastery_score(value: Any) -> int:
    """Range check used when package options are built."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidConfigurationError(
            f"Mastery score must be an integer, got {type(value).__name__}"
        )
    if not MIN_MASTERY_SCORE <= value <= MAX_MASTERY_SCORE:
        raise InvalidConfigurationError(
            f"Mastery score {value} outside "
            f"{MIN_MASTERY_SCORE}..{MAX_MASTERY_SCORE}"
        )
    return value


def sanitize_title(title: Optional[str]) -> str:
    """
    Reduce a title to a filesystem-safe token.

    Every character that is not an ASCII letter, digit or whitespace is
    stripped, then all whitespace is removed, leaving only ``[A-Za-z0-9]``.
    An empty result falls back to ``H5PContent``.
    """
    cleaned = re.sub(r"[^A-Za-z0-9\s]", "", title or "")
    cleaned = re.sub(r"\s", "", cleaned)
    return cleaned or FALLBACK_FILENAME_STEM


def sanitize_upload_name(filename: Optional[str]) -> str:
    """Stem of an uploaded filename, safe to embed in a directory name."""
    stem = (filename or "").rsplit("/", 1)[-1].rsplit("\\", 1)[-1]
    if stem.lower().endswith(".h5p"):
        stem = stem[:-4]
    stem = re.sub(r"[^A-Za-z0-9_-]", "", stem).lstrip("_-")[:MAX_TOKEN_STEM_LENGTH]
    return stem or "upload"


def require_upload(upload: Any, filename: Optional[str]) -> str:
    """Ensure a file was actually uploaded and return its display name."""
    if upload is None or not filename:
        raise ValidationError("You must upload a H5P file.")
    return filename
