"""
Format dispatch: validate an upload and route it to the STL or 3MF decoder.

Validation (extension, size bounds) happens before any decoding, so an
oversized or misnamed file never reaches a parser.
"""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from print_estimate import config as cfg
from print_estimate.errors import UnsupportedFormat, ValidationError
from print_estimate.geometry.mesh_stats import ModelStats, compute_model_stats
from print_estimate.geometry.types import MeshBuffer
from print_estimate.io.stl_loader import decode_stl
from print_estimate.io.threemf_loader import decode_3mf

logger = logging.getLogger(__name__)

FORMAT_3MF = "3MF"


@dataclass(frozen=True)
class FormatLimits:
    """Size bounds for one accepted extension."""
    extension: str
    label: str
    min_bytes: int
    max_bytes: int


STL_LIMITS = FormatLimits(cfg.STL_EXTENSION, "STL", cfg.STL_MIN_BYTES, cfg.STL_MAX_BYTES)
THREEMF_LIMITS = FormatLimits(cfg.THREEMF_EXTENSION, "3MF", cfg.THREEMF_MIN_BYTES, cfg.THREEMF_MAX_BYTES)


@dataclass
class ModelMetadata:
    """Decoder metadata reported alongside the statistics."""
    format: str
    file_size: int
    parse_time_ms: float
    filename: str = ""
    skipped_triangles: int = 0

    def to_dict(self) -> dict:
        return {
            'format': self.format,
            'file_size': self.file_size,
            'parse_time_ms': self.parse_time_ms,
            'filename': self.filename,
            'skipped_triangles': self.skipped_triangles,
        }


@dataclass
class ParsedModel:
    """Decoded mesh with its statistics and metadata."""
    mesh: MeshBuffer
    stats: ModelStats
    metadata: ModelMetadata

    def to_dict(self) -> dict:
        return {
            'stats': self.stats.to_dict(),
            'metadata': self.metadata.to_dict(),
        }


def _megabytes(n_bytes: int) -> str:
    return f"{n_bytes // (1024 * 1024)}MB"


def limits_for(filename: str) -> FormatLimits:
    """Select size limits by (case-insensitive) extension.

    Raises:
        UnsupportedFormat: for anything other than .stl or .3mf
    """
    name = filename.lower()
    for limits in (STL_LIMITS, THREEMF_LIMITS):
        if name.endswith(limits.extension):
            return limits
    raise UnsupportedFormat(
        f"Unsupported file format: {filename!r}. Please use .stl or .3mf files."
    )


def validate_model_file(filename: str, size: int) -> FormatLimits:
    """Check extension and size bounds without looking at the content.

    Returns:
        Limits of the matched format

    Raises:
        UnsupportedFormat: unknown extension
        ValidationError: size outside the format's bounds
    """
    limits = limits_for(filename)
    if size > limits.max_bytes:
        raise ValidationError(
            f"File size exceeds {_megabytes(limits.max_bytes)} limit "
            f"for {limits.label} files ({size} bytes)"
        )
    if size < limits.min_bytes:
        raise ValidationError(
            f"File too small to be a valid {limits.label} file "
            f"({size} bytes, minimum {limits.min_bytes})"
        )
    return limits


def parse_model_bytes(
    filename: str,
    data: bytes,
    densities=None,
) -> ParsedModel:
    """Validate, decode and measure an uploaded model.

    Args:
        filename: Original filename (extension selects the decoder)
        data: Raw file content
        densities: Optional density table override for the weight estimates

    Returns:
        ParsedModel with stats and metadata (format tag, size, parse time)

    Raises:
        ValidationError / UnsupportedFormat: before decoding
        ModelParseError subclasses: malformed content
        EmptyGeometryError subclasses: no usable geometry
    """
    limits = validate_model_file(filename, len(data))

    start = time.perf_counter()
    skipped = 0
    if limits is STL_LIMITS:
        mesh, stl_format = decode_stl(data)
        format_tag = stl_format.tag
    else:
        result = decode_3mf(data)
        mesh, skipped = result.mesh, result.skipped_triangles
        format_tag = FORMAT_3MF

    stats = compute_model_stats(mesh, densities)
    parse_time_ms = round((time.perf_counter() - start) * 1000.0, 2)

    logger.info(
        "Parsed %s as %s in %.2f ms",
        filename, format_tag, parse_time_ms,
        extra={'triangles': stats.triangle_count, 'volume_cm3': stats.volume},
    )

    return ParsedModel(
        mesh=mesh,
        stats=stats,
        metadata=ModelMetadata(
            format=format_tag,
            file_size=len(data),
            parse_time_ms=parse_time_ms,
            filename=filename,
            skipped_triangles=skipped,
        ),
    )


def load_model_file(path: Union[str, Path], densities=None) -> ParsedModel:
    """Read a model from disk and dispatch it.

    The size check runs on the on-disk size before the file is read.

    Raises:
        ValidationError: missing file or size violation
    """
    path = Path(path)
    if not path.is_file():
        raise ValidationError(f"File not found: {str(path)!r}")

    validate_model_file(path.name, path.stat().st_size)
    return parse_model_bytes(path.name, path.read_bytes(), densities)


def is_supported_file(filename: str) -> bool:
    """True for .stl / .3mf names."""
    try:
        limits_for(filename)
    except UnsupportedFormat:
        return False
    return True
