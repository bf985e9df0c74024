"""
STL decoding from an in-memory buffer.

Supports:
- Binary STL (80-byte header, uint32 count, 50-byte records)
- ASCII STL (``solid`` / ``facet normal`` / ``vertex`` text)

The format is sniffed from content, not from the extension. The output is a
MeshBuffer with the facet normal replicated on each of its three vertices.
"""

import logging
import math
import struct
from enum import Enum
from typing import List, Optional, Tuple

import numpy as np
from stl import mesh as stl_mesh

from print_estimate import config as cfg
from print_estimate.errors import ParseError, TruncatedFileError
from print_estimate.geometry.types import MeshBuffer

logger = logging.getLogger(__name__)

# numpy-stl record layout: normals (3 f4), vectors (3x3 f4), attr (u2).
STL_RECORD_DTYPE = stl_mesh.Mesh.dtype


class STLFormat(Enum):
    """STL encoding."""
    BINARY = "binary"
    ASCII = "ascii"

    @property
    def tag(self) -> str:
        """Format tag reported in model metadata."""
        return f"STL_{self.name}"


def detect_stl_format(data: bytes) -> Tuple[STLFormat, Optional[str]]:
    """Detect STL encoding (binary vs ASCII).

    A file is ASCII only when it starts with ``solid`` AND its first ~1000
    bytes contain both ``facet normal`` and ``vertex``; binary exporters
    often write "solid" into the 80-byte header.

    Args:
        data: Raw file content

    Returns:
        Tuple of (format, solid name or None)
    """
    head = data[:5].decode('ascii', errors='ignore')
    if head.lower() == 'solid':
        sample = data[:cfg.ASCII_SNIFF_BYTES].decode('ascii', errors='ignore')
        if 'facet normal' in sample and 'vertex' in sample:
            first_line = sample.splitlines()[0] if sample else ''
            solid_name = first_line[5:].strip() or None
            return STLFormat.ASCII, solid_name

    header = data[:cfg.STL_HEADER_BYTES].split(b'\x00')[0]
    text = header.decode('ascii', errors='ignore').strip()
    solid_name = None
    if text.lower().startswith('solid'):
        solid_name = text[5:].strip() or None
    return STLFormat.BINARY, solid_name


def _parse_floats(tokens: List[str], line_no: int, what: str) -> Tuple[float, float, float]:
    if len(tokens) < 3:
        raise ParseError(f"{what} needs 3 coordinates, got {len(tokens)}", line=line_no)
    try:
        values = float(tokens[0]), float(tokens[1]), float(tokens[2])
    except ValueError as exc:
        raise ParseError(f"invalid {what} coordinate ({exc})", line=line_no) from exc
    if what == "vertex" and not all(math.isfinite(v) for v in values):
        raise ParseError("non-finite vertex coordinate", line=line_no)
    return values


def parse_ascii_stl(data: bytes) -> MeshBuffer:
    """Parse ASCII STL text.

    Each ``facet normal`` line sets the current normal; every following
    ``vertex`` line appends a position and a copy of that normal.

    Raises:
        ParseError: on a malformed or non-finite numeric token, or an
            incomplete facet.
    """
    text = data.decode('ascii', errors='replace')

    positions: List[Tuple[float, float, float]] = []
    normals: List[Tuple[float, float, float]] = []
    current_normal = (0.0, 0.0, 0.0)

    for line_no, raw_line in enumerate(text.splitlines(), start=1):
        tokens = raw_line.split()
        if not tokens:
            continue
        keyword = tokens[0].lower()
        if keyword == 'facet' and len(tokens) > 1 and tokens[1].lower() == 'normal':
            current_normal = _parse_floats(tokens[2:], line_no, "normal")
        elif keyword == 'vertex':
            positions.append(_parse_floats(tokens[1:], line_no, "vertex"))
            normals.append(current_normal)

    if len(positions) % 3 != 0:
        raise ParseError(
            f"vertex count {len(positions)} is not a multiple of 3 (incomplete facet)"
        )

    return MeshBuffer(
        vertices=np.array(positions, dtype=np.float64).reshape(-1, 3, 3),
        normals=np.array(normals, dtype=np.float64).reshape(-1, 3, 3),
    )


def parse_binary_stl(data: bytes) -> MeshBuffer:
    """Parse binary STL.

    Raises:
        TruncatedFileError: if the buffer is shorter than 84 + 50 * count bytes.
        ParseError: if a vertex coordinate is NaN or infinite.
    """
    prefix = cfg.STL_HEADER_BYTES + cfg.STL_COUNT_BYTES
    if len(data) < prefix:
        raise TruncatedFileError(expected=prefix, actual=len(data))

    (count,) = struct.unpack_from('<I', data, cfg.STL_HEADER_BYTES)
    expected = prefix + count * cfg.STL_RECORD_BYTES
    if len(data) < expected:
        raise TruncatedFileError(expected=expected, actual=len(data))
    if len(data) > expected:
        logger.debug("Binary STL has %d trailing bytes after %d records",
                     len(data) - expected, count)

    records = np.frombuffer(data, dtype=STL_RECORD_DTYPE, count=count, offset=prefix)
    finite = np.isfinite(records['vectors']).all(axis=(1, 2))
    if not finite.all():
        bad = np.flatnonzero(~finite)
        raise ParseError(
            f"triangle {bad[0]} has a non-finite vertex coordinate "
            f"({len(bad)} of {count} triangles affected)"
        )
    return MeshBuffer.from_face_normals(
        vertices=records['vectors'].astype(np.float64),
        face_normals=records['normals'].astype(np.float64),
    )


def decode_stl(data: bytes) -> Tuple[MeshBuffer, STLFormat]:
    """Detect the encoding and decode an STL buffer.

    Returns:
        (mesh, format)

    Raises:
        ParseError: malformed content or non-finite vertices
        TruncatedFileError: short binary content
    """
    stl_format, solid_name = detect_stl_format(data)
    if solid_name:
        logger.debug("Solid name: %s", solid_name)

    if stl_format is STLFormat.ASCII:
        mesh = parse_ascii_stl(data)
    else:
        mesh = parse_binary_stl(data)

    logger.info("Decoded %s STL: %d triangles", stl_format.value, mesh.triangle_count)
    return mesh, stl_format
