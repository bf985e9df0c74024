"""
Exception hierarchy for the estimation pipeline.

Validation and parse errors abort processing of a file and carry a
human-readable message. Location errors are recovered inside the ETA engine
and never reach the caller.
"""


class EstimatorError(Exception):
    """Base class for all print_estimate errors."""


# --- Pre-parse validation ---------------------------------------------------

class ValidationError(EstimatorError):
    """File rejected before decoding (size, missing file)."""


class UnsupportedFormat(ValidationError):
    """File extension is neither .stl nor .3mf."""


# --- Malformed content ------------------------------------------------------

class ModelParseError(EstimatorError):
    """File content could not be decoded."""


class ParseError(ModelParseError):
    """Malformed STL text or non-ZIP 3MF container."""

    def __init__(self, message: str, line: int = None):
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message)
        self.line = line


class MalformedXml(ModelParseError):
    """3MF model document is not well-formed XML."""


class TruncatedFileError(ModelParseError):
    """Binary STL is shorter than its triangle count requires."""

    def __init__(self, expected: int, actual: int):
        super().__init__(
            f"binary STL truncated: expected {expected} bytes, got {actual}"
        )
        self.expected = expected
        self.actual = actual


# --- Structurally valid, but no usable geometry -----------------------------

class EmptyGeometryError(EstimatorError):
    """Container decoded but yielded nothing to measure."""


class MissingModelEntry(EmptyGeometryError):
    """3MF archive has no 3D/3dmodel.model entry."""


class EmptyMesh(EmptyGeometryError):
    """3MF model document contains zero usable triangles."""


class EmptyGeometry(EmptyGeometryError):
    """Mesh has zero triangles; bounding box is undefined."""


# --- Geolocation (always recovered locally) ---------------------------------

class LocationUnavailable(EstimatorError):
    """Location denied, unavailable, timed out or out of range."""
