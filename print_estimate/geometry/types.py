"""
Geometry value types shared by the decoders and the statistics engine.

A MeshBuffer is a triangle soup: every triangle owns its three vertex
positions and one normal per vertex occurrence (face normals duplicated),
matching what both the STL and 3MF decoders produce.
"""

from dataclasses import dataclass, field
from typing import Iterator, Optional, Tuple

import numpy as np
from numpy.typing import NDArray

Vector3 = Tuple[float, float, float]


@dataclass(frozen=True)
class Triangle:
    """Three vertex positions (mm) and an optional face normal."""
    v1: Vector3
    v2: Vector3
    v3: Vector3
    normal: Optional[Vector3] = None

    @property
    def vertices(self) -> Tuple[Vector3, Vector3, Vector3]:
        return (self.v1, self.v2, self.v3)


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned bounding box.

    Attributes:
        min_point: Minimum corner (x_min, y_min, z_min), mm
        max_point: Maximum corner (x_max, y_max, z_max), mm
    """
    min_point: NDArray[np.float64]
    max_point: NDArray[np.float64]

    @property
    def dimensions(self) -> NDArray[np.float64]:
        """Box extents (width, height, depth)."""
        return self.max_point - self.min_point

    @property
    def width(self) -> float:
        """X-axis extent."""
        return float(self.dimensions[0])

    @property
    def height(self) -> float:
        """Y-axis extent."""
        return float(self.dimensions[1])

    @property
    def depth(self) -> float:
        """Z-axis extent."""
        return float(self.dimensions[2])

    @property
    def center(self) -> NDArray[np.float64]:
        return (self.min_point + self.max_point) / 2

    @property
    def max_dimension(self) -> float:
        return float(np.max(self.dimensions))

    def contains_point(self, point: NDArray[np.float64]) -> bool:
        """Check if point is inside the box (boundary included)."""
        return bool(
            np.all(point >= self.min_point) and
            np.all(point <= self.max_point)
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            'min': self.min_point.tolist(),
            'max': self.max_point.tolist(),
        }


@dataclass
class MeshBuffer:
    """Ordered triangle soup handed from a decoder to the statistics step.

    Attributes:
        vertices: (N, 3, 3) float64: three positions per triangle, mm
        normals:  (N, 3, 3) float64: one normal per vertex occurrence
    """
    vertices: NDArray[np.float64]
    normals: NDArray[np.float64] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        self.vertices = np.asarray(self.vertices, dtype=np.float64).reshape(-1, 3, 3)
        if self.normals is None:
            self.normals = np.zeros_like(self.vertices)
        else:
            self.normals = np.asarray(self.normals, dtype=np.float64).reshape(-1, 3, 3)
        if self.normals.shape != self.vertices.shape:
            raise ValueError(
                f"normals shape {self.normals.shape} does not match "
                f"vertices shape {self.vertices.shape}"
            )

    @classmethod
    def from_face_normals(
        cls,
        vertices: NDArray[np.float64],
        face_normals: NDArray[np.float64],
    ) -> 'MeshBuffer':
        """Build a buffer replicating one normal per face across its vertices."""
        vertices = np.asarray(vertices, dtype=np.float64).reshape(-1, 3, 3)
        face_normals = np.asarray(face_normals, dtype=np.float64).reshape(-1, 3)
        normals = np.repeat(face_normals[:, np.newaxis, :], 3, axis=1)
        return cls(vertices=vertices, normals=normals)

    @classmethod
    def from_triangles(cls, triangles) -> 'MeshBuffer':
        """Build a buffer from an iterable of Triangle values."""
        triangles = list(triangles)
        vertices = np.array([t.vertices for t in triangles], dtype=np.float64).reshape(-1, 3, 3)
        face_normals = np.array(
            [t.normal if t.normal is not None else (0.0, 0.0, 0.0) for t in triangles],
            dtype=np.float64,
        ).reshape(-1, 3)
        return cls.from_face_normals(vertices, face_normals)

    @property
    def triangle_count(self) -> int:
        return int(self.vertices.shape[0])

    @property
    def face_normals(self) -> NDArray[np.float64]:
        """(N, 3) normal of the first vertex occurrence of each triangle."""
        return self.normals[:, 0, :]

    def __len__(self) -> int:
        return self.triangle_count

    def __iter__(self) -> Iterator[Triangle]:
        for tri, nrm in zip(self.vertices, self.normals):
            yield Triangle(
                v1=tuple(float(c) for c in tri[0]),
                v2=tuple(float(c) for c in tri[1]),
                v3=tuple(float(c) for c in tri[2]),
                normal=tuple(float(c) for c in nrm[0]),
            )

    def translated(self, offset) -> 'MeshBuffer':
        """Return a copy shifted by ``offset`` (mm)."""
        offset = np.asarray(offset, dtype=np.float64).reshape(1, 1, 3)
        return MeshBuffer(vertices=self.vertices + offset, normals=self.normals.copy())
