"""
3MF decoding from an in-memory buffer.

3MF is a ZIP archive whose model part (``3D/3dmodel.model``) is an XML
document of indexed meshes. Every ``<mesh>`` element is read, its triangles
are expanded into a triangle soup and given flat face normals.

Build items, component references and transforms are not applied: geometry
is measured as it is stored in the mesh resources.
"""

import io
import logging
import math
import zipfile
import zlib
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

import numpy as np
from numpy.typing import NDArray

from print_estimate import config as cfg
from print_estimate.errors import EmptyMesh, MalformedXml, MissingModelEntry, ParseError
from print_estimate.geometry.types import MeshBuffer

logger = logging.getLogger(__name__)


@dataclass
class ThreeMFDecodeResult:
    """Decoded 3MF geometry plus diagnostics."""
    mesh: MeshBuffer
    entry_name: str
    mesh_count: int
    skipped_triangles: int = 0


def _local_name(tag: str) -> str:
    """Tag without its ``{namespace}`` prefix."""
    return tag.rsplit('}', 1)[-1]


def _children(elem: ET.Element, name: str) -> Iterator[ET.Element]:
    for child in elem:
        if _local_name(child.tag) == name:
            yield child


def _first_child(elem: ET.Element, name: str) -> Optional[ET.Element]:
    return next(_children(elem, name), None)


def read_model_entry(data: bytes) -> Tuple[str, str]:
    """Open the archive and return (entry name, model XML text).

    Raises:
        ParseError: if the buffer is not a ZIP archive, the entry cannot be
            extracted (corrupt or unsupported compression) or is not UTF-8
        MissingModelEntry: if neither model entry path exists
    """
    try:
        archive = zipfile.ZipFile(io.BytesIO(data))
    except zipfile.BadZipFile as exc:
        raise ParseError(f"3MF container is not a valid ZIP archive: {exc}") from exc

    with archive:
        names = set(archive.namelist())
        entry = next((e for e in cfg.THREEMF_MODEL_ENTRIES if e in names), None)
        if entry is None:
            raise MissingModelEntry(
                "No 3D model file found in 3MF archive "
                f"(looked for {', '.join(cfg.THREEMF_MODEL_ENTRIES)})"
            )
        try:
            raw = archive.read(entry)
        except (zipfile.BadZipFile, zlib.error, EOFError, NotImplementedError) as exc:
            raise ParseError(f"Cannot extract {entry} from 3MF archive: {exc}") from exc

    try:
        return entry, raw.decode('utf-8')
    except UnicodeDecodeError as exc:
        raise ParseError(f"{entry} is not valid UTF-8: {exc}") from exc


def _vertex_array(mesh_elem: ET.Element) -> NDArray[np.float64]:
    vertices_elem = _first_child(mesh_elem, 'vertices')
    if vertices_elem is None:
        return np.empty((0, 3), dtype=np.float64)

    coords = []
    for index, vertex in enumerate(_children(vertices_elem, 'vertex')):
        try:
            coords.append(tuple(float(vertex.get(axis, '0')) for axis in ('x', 'y', 'z')))
        except ValueError as exc:
            raise ParseError(f"vertex {index} has a non-numeric coordinate: {exc}") from exc
        if not all(math.isfinite(c) for c in coords[-1]):
            raise ParseError(f"vertex {index} has a non-finite coordinate: {coords[-1]}")
    return np.array(coords, dtype=np.float64).reshape(-1, 3)


def _triangle_indices(mesh_elem: ET.Element, n_vertices: int) -> Tuple[List[Tuple[int, int, int]], int]:
    """Resolve (v1, v2, v3) for each triangle; returns (valid, skipped count)."""
    triangles_elem = _first_child(mesh_elem, 'triangles')
    if triangles_elem is None:
        return [], 0

    valid: List[Tuple[int, int, int]] = []
    skipped = 0
    for triangle in _children(triangles_elem, 'triangle'):
        try:
            idx = tuple(int(triangle.get(key)) for key in ('v1', 'v2', 'v3'))
        except (TypeError, ValueError):
            skipped += 1
            continue
        if all(0 <= i < n_vertices for i in idx):
            valid.append(idx)
        else:
            skipped += 1
    return valid, skipped


def face_normals(triangles: NDArray[np.float64]) -> NDArray[np.float64]:
    """Unit normal of cross(v2 - v1, v3 - v1) per triangle; zero when degenerate."""
    cross = np.cross(triangles[:, 1] - triangles[:, 0], triangles[:, 2] - triangles[:, 0])
    lengths = np.linalg.norm(cross, axis=1, keepdims=True)
    safe = np.where(lengths < 1e-12, 1.0, lengths)
    return np.where(lengths < 1e-12, 0.0, cross / safe)


def parse_model_xml(xml_text: str) -> Tuple[MeshBuffer, int, int]:
    """Expand every ``<mesh>`` of a 3MF model document.

    Returns:
        (mesh, number of <mesh> elements, skipped triangle count)

    Raises:
        MalformedXml: on XML syntax errors
        EmptyMesh: if no valid triangle remains
    """
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as exc:
        raise MalformedXml(f"Invalid XML content in 3MF file: {exc}") from exc

    soups: List[NDArray[np.float64]] = []
    skipped_total = 0
    mesh_count = 0

    for mesh_elem in root.iter():
        if _local_name(mesh_elem.tag) != 'mesh':
            continue
        mesh_count += 1
        vertices = _vertex_array(mesh_elem)
        indices, skipped = _triangle_indices(mesh_elem, len(vertices))
        skipped_total += skipped
        if indices:
            soups.append(vertices[np.array(indices, dtype=np.int64)])

    if skipped_total:
        logger.warning("Skipped %d triangles with invalid vertex indices", skipped_total)

    if not soups:
        raise EmptyMesh(f"No valid triangles found in 3MF file ({mesh_count} mesh elements)")

    triangles = np.concatenate(soups)
    return MeshBuffer.from_face_normals(triangles, face_normals(triangles)), mesh_count, skipped_total


def decode_3mf(data: bytes) -> ThreeMFDecodeResult:
    """Decode a 3MF archive into a MeshBuffer.

    Raises:
        ParseError: not a ZIP archive, corrupt entry, bad encoding or
            non-finite coordinates
        MissingModelEntry: no model part
        MalformedXml: XML syntax error
        EmptyMesh: zero usable triangles
    """
    entry, xml_text = read_model_entry(data)
    mesh, mesh_count, skipped = parse_model_xml(xml_text)

    logger.info("Decoded 3MF %s: %d mesh elements, %d triangles",
                entry, mesh_count, mesh.triangle_count)
    return ThreeMFDecodeResult(
        mesh=mesh,
        entry_name=entry,
        mesh_count=mesh_count,
        skipped_triangles=skipped,
    )
