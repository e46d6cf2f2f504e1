"""
Conversion error taxonomy

Each error carries the HTTP status the API answers with and a generic
message that is safe to show to the caller. Internal detail (paths,
underlying exceptions) stays in ``str(exc)`` and the server logs.
"""

from typing import Optional


class ConversionError(Exception):
    """Base class for every failure raised by the conversion pipeline"""

    status_code: int = 500
    public_message: str = "Internal Server Error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.public_message)


class ValidationError(ConversionError):
    """Request rejected before the conversion starts"""

    status_code = 400
    public_message = "Invalid conversion request."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message)
        # Messages here only ever describe the caller's own input
        if message:
            self.public_message = message


class InvalidConfigurationError(ValidationError):
    """Package options outside their permitted range"""

    public_message = "Invalid package configuration."


class ExtractionError(ConversionError):
    """The uploaded archive could not be unpacked"""

    public_message = "The uploaded file is not a valid H5P package."


class MetadataError(ConversionError):
    """h5p.json is missing, unreadable or incomplete.

    Never fatal: ``metadata`` holds whatever could still be parsed so the
    pipeline can continue with fallback values.
    """

    public_message = "Could not read H5P metadata."

    def __init__(self, message: Optional[str] = None, metadata=None):
        super().__init__(message)
        self.metadata = metadata


class AssemblyError(ConversionError):
    """Building the SCORM package failed"""

    public_message = "Error during SCORM packaging. Please try again."


class WorkspaceError(ConversionError):
    """Working directories could not be allocated or removed"""

    public_message = "Internal Server Error"


class StatisticsError(ConversionError):
    """Appending to the statistics log failed"""

    public_message = "Could not record statistics."
