"""
Pytest configuration and fixtures for the print estimator.

Provides:
- Cube geometry (triangle soup and indexed form)
- Binary/ASCII STL files written with numpy-stl or by hand
- 3MF archives built in memory with zipfile
- Deterministic random source and reference time for ETA tests
"""

import io
import struct
import zipfile
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pytest
from stl import mesh as stl_mesh

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent

CORE_NAMESPACE = "http://schemas.microsoft.com/3dmanufacturing/core/2015/02"

# Brisbane and a few reference cities (lat, lon)
BRISBANE = (-27.4698, 153.0251)
GOLD_COAST = (-28.0167, 153.4000)
SYDNEY = (-33.8688, 151.2093)
LONDON = (51.5074, -0.1278)


# ============================================================================
# Geometry helpers
# ============================================================================

CUBE_FACES = [
    # bottom
    [0, 1, 2], [0, 2, 3],
    # top
    [4, 6, 5], [4, 7, 6],
    # front
    [0, 5, 1], [0, 4, 5],
    # back
    [2, 7, 3], [2, 6, 7],
    # left
    [0, 3, 7], [0, 7, 4],
    # right
    [1, 5, 6], [1, 6, 2],
]


def cube_vertices(size: float = 10.0, offset: Sequence[float] = (0.0, 0.0, 0.0)) -> np.ndarray:
    """8 corners of an axis-aligned cube centred on ``offset``."""
    hs = size / 2
    corners = np.array([
        [-hs, -hs, -hs], [+hs, -hs, -hs], [+hs, +hs, -hs], [-hs, +hs, -hs],  # bottom
        [-hs, -hs, +hs], [+hs, -hs, +hs], [+hs, +hs, +hs], [-hs, +hs, +hs],  # top
    ])
    return corners + np.asarray(offset, dtype=np.float64)


def cube_triangles(size: float = 10.0, offset: Sequence[float] = (0.0, 0.0, 0.0)) -> np.ndarray:
    """(12, 3, 3) closed cube triangle soup."""
    vertices = cube_vertices(size, offset)
    return np.array([[vertices[a], vertices[b], vertices[c]] for a, b, c in CUBE_FACES])


def _unit_normal(tri: np.ndarray) -> np.ndarray:
    normal = np.cross(tri[1] - tri[0], tri[2] - tri[0])
    norm = np.linalg.norm(normal)
    if not np.isfinite(norm) or norm <= 1e-10:
        return np.array([0.0, 0.0, 1.0])
    return normal / norm


# ============================================================================
# STL writers
# ============================================================================

def write_binary_stl(path: Path, triangles: np.ndarray) -> Path:
    """Write a binary STL with numpy-stl."""
    m = stl_mesh.Mesh(np.zeros(len(triangles), dtype=stl_mesh.Mesh.dtype))
    for i, tri in enumerate(triangles):
        m.vectors[i] = tri
    m.save(str(path))
    return path


def binary_stl_bytes(triangles: np.ndarray, header: bytes = b"", count: Optional[int] = None) -> bytes:
    """Binary STL buffer; ``count`` overrides the declared triangle count."""
    records = np.zeros(len(triangles), dtype=stl_mesh.Mesh.dtype)
    for i, tri in enumerate(triangles):
        records['vectors'][i] = tri
        records['normals'][i] = _unit_normal(np.asarray(tri, dtype=np.float64))
    declared = len(triangles) if count is None else count
    return header.ljust(80, b"\x00")[:80] + struct.pack("<I", declared) + records.tobytes()


def ascii_stl_text(triangles: np.ndarray, name: str = "cube") -> str:
    """ASCII STL text, one facet per triangle."""
    lines = [f"solid {name}"]
    for tri in triangles:
        normal = _unit_normal(np.asarray(tri, dtype=np.float64))
        lines.append(f"  facet normal {normal[0]} {normal[1]} {normal[2]}")
        lines.append("    outer loop")
        for v in tri:
            lines.append(f"      vertex {v[0]} {v[1]} {v[2]}")
        lines.append("    endloop")
        lines.append("  endfacet")
    lines.append(f"endsolid {name}")
    return "\n".join(lines) + "\n"


# ============================================================================
# 3MF builders
# ============================================================================

def model_xml(
    objects: List[Tuple[Sequence[Sequence[float]], Sequence[Sequence]]],
    namespace: Optional[str] = CORE_NAMESPACE,
) -> str:
    """3MF model document with one <object><mesh> per (vertices, triangles).

    Triangle entries are (v1, v2, v3); a None index omits the attribute.
    """
    ns = f' xmlns="{namespace}"' if namespace else ""
    parts = [f'<?xml version="1.0" encoding="UTF-8"?>\n<model unit="millimeter"{ns}>', "<resources>"]
    for obj_id, (vertices, triangles) in enumerate(objects, start=1):
        parts.append(f'<object id="{obj_id}" type="model"><mesh><vertices>')
        for x, y, z in vertices:
            parts.append(f'<vertex x="{x}" y="{y}" z="{z}"/>')
        parts.append("</vertices><triangles>")
        for tri in triangles:
            attrs = " ".join(
                f'{key}="{value}"' for key, value in zip(("v1", "v2", "v3"), tri) if value is not None
            )
            parts.append(f"<triangle {attrs}/>")
        parts.append("</triangles></mesh></object>")
    parts.append("</resources>")
    parts.append('<build><item objectid="1"/></build>')
    parts.append("</model>")
    return "\n".join(parts)


def cube_model_xml(size: float = 10.0, namespace: Optional[str] = CORE_NAMESPACE) -> str:
    return model_xml([(cube_vertices(size).tolist(), CUBE_FACES)], namespace)


def build_3mf(
    xml_text: Optional[str] = None,
    entry: str = "3D/3dmodel.model",
    raw: Optional[bytes] = None,
    padding: int = 1200,
) -> bytes:
    """In-memory 3MF archive (stored, padded past the 1 KB minimum)."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_STORED) as archive:
        archive.writestr("[Content_Types].xml", '<?xml version="1.0"?><Types/>')
        if raw is not None:
            archive.writestr(entry, raw)
        elif xml_text is not None:
            archive.writestr(entry, xml_text.encode("utf-8"))
        if padding:
            archive.writestr("Metadata/notes.txt", "x" * padding)
    return buffer.getvalue()


class FixedRandom:
    """Random source returning a constant, for deterministic queue delays."""

    def __init__(self, value: float = 0.5):
        self.value = value

    def random(self) -> float:
        return self.value


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def cube() -> np.ndarray:
    """10 mm cube triangle soup centred on the origin."""
    return cube_triangles(10.0)


@pytest.fixture
def cube_stl_path(tmp_path: Path) -> Path:
    """Binary STL cube written with numpy-stl."""
    return write_binary_stl(tmp_path / "cube.stl", cube_triangles(10.0))


@pytest.fixture
def ascii_stl_path(tmp_path: Path) -> Path:
    """ASCII STL cube."""
    path = tmp_path / "ascii_cube.stl"
    path.write_text(ascii_stl_text(cube_triangles(10.0)), encoding="ascii")
    return path


@pytest.fixture
def cube_3mf_bytes() -> bytes:
    return build_3mf(cube_model_xml(10.0))


@pytest.fixture
def cube_3mf_path(tmp_path: Path, cube_3mf_bytes: bytes) -> Path:
    path = tmp_path / "cube.3mf"
    path.write_bytes(cube_3mf_bytes)
    return path


@pytest.fixture
def models_dir(tmp_path: Path) -> Path:
    """Folder with two valid models, one broken model and an unrelated file."""
    folder = tmp_path / "models"
    folder.mkdir()
    write_binary_stl(folder / "small.stl", cube_triangles(10.0))
    (folder / "big.3mf").write_bytes(build_3mf(cube_model_xml(60.0)))
    (folder / "broken.STL").write_bytes(binary_stl_bytes(cube_triangles(10.0), count=50))
    (folder / "readme.txt").write_text("not a model", encoding="utf-8")
    return folder


@pytest.fixture
def fixed_random() -> FixedRandom:
    return FixedRandom(0.5)


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2026, 3, 2, 9, 30)
