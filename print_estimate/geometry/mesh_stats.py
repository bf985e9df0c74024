"""
Mesh statistics for quoting.

Provides:
- Bounding box and dimensions (mm)
- Enclosed volume by signed-tetrahedron summation (cm^3)
- Surface area (cm^2)
- Weight estimates for every material in the density table (g)

All functions take a MeshBuffer (triangle soup, millimetres).
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Tuple

import numpy as np
from numpy.typing import NDArray

from print_estimate import config as cfg
from print_estimate.errors import EmptyGeometry
from print_estimate.geometry.types import BoundingBox, MeshBuffer

logger = logging.getLogger(__name__)

_WEIGHT_UNITS = {
    'g': 1.0,
    'kg': 1.0 / 1000.0,
    'oz': 0.035274,
    'lb': 0.00220462,
}


@dataclass
class ModelStats:
    """Geometric statistics of a decoded model.

    Attributes:
        volume: Enclosed volume in cm^3 (clamped to >= MIN_VOLUME_CM3)
        dimensions: (width, height, depth) in mm
        triangle_count: Number of triangles in the buffer
        surface_area: Total surface area in cm^2
        bounding_box: Axis-aligned bounding box in mm
        estimated_weight: Material name -> grams, one entry per density row
    """
    volume: float
    dimensions: Tuple[float, float, float]
    triangle_count: int
    surface_area: float
    bounding_box: BoundingBox
    estimated_weight: Dict[str, float] = field(default_factory=dict)

    @property
    def width(self) -> float:
        return self.dimensions[0]

    @property
    def height(self) -> float:
        return self.dimensions[1]

    @property
    def depth(self) -> float:
        return self.dimensions[2]

    def summary(self) -> str:
        """Generate human-readable summary."""
        w, h, d = self.dimensions
        return "\n".join([
            f"Volume: {self.volume:.2f} cm³",
            f"Dimensions: {w:.1f} × {h:.1f} × {d:.1f} mm",
            f"Triangles: {self.triangle_count:,}",
            f"Surface Area: {self.surface_area:.2f} cm²",
        ])

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        w, h, d = self.dimensions
        return {
            'volume_cm3': self.volume,
            'dimensions_mm': {'width': w, 'height': h, 'depth': d},
            'triangle_count': self.triangle_count,
            'surface_area_cm2': self.surface_area,
            'bounding_box': self.bounding_box.to_dict(),
            'estimated_weight_g': dict(self.estimated_weight),
        }


def calculate_bounding_box(mesh: MeshBuffer) -> BoundingBox:
    """Componentwise min/max over all vertex occurrences.

    Raises:
        EmptyGeometry: if the mesh has no triangles.
    """
    if mesh.triangle_count == 0:
        raise EmptyGeometry("cannot compute a bounding box for a mesh with 0 triangles")

    points = mesh.vertices.reshape(-1, 3)
    return BoundingBox(
        min_point=np.min(points, axis=0),
        max_point=np.max(points, axis=0),
    )


def calculate_signed_volumes(mesh: MeshBuffer) -> NDArray[np.float64]:
    """Signed volume (mm^3) of the tetrahedron each triangle forms with the origin.

    V_i = (-x3*y2*z1 + x2*y3*z1 + x3*y1*z2 - x1*y3*z2 - x2*y1*z3 + x1*y2*z3) / 6
    """
    p1 = mesh.vertices[:, 0, :]
    p2 = mesh.vertices[:, 1, :]
    p3 = mesh.vertices[:, 2, :]
    x1, y1, z1 = p1[:, 0], p1[:, 1], p1[:, 2]
    x2, y2, z2 = p2[:, 0], p2[:, 1], p2[:, 2]
    x3, y3, z3 = p3[:, 0], p3[:, 1], p3[:, 2]

    return (
        -x3 * y2 * z1 + x2 * y3 * z1 + x3 * y1 * z2
        - x1 * y3 * z2 - x2 * y1 * z3 + x1 * y2 * z3
    ) / 6.0


def calculate_volume(mesh: MeshBuffer) -> float:
    """Enclosed volume in cm^3, independent of winding order, not clamped.

    For a closed mesh the divergence-theorem sum does not depend on the
    reference point, so the result is translation-invariant.
    """
    if mesh.triangle_count == 0:
        return 0.0
    total_mm3 = float(np.sum(calculate_signed_volumes(mesh)))
    return abs(total_mm3) / cfg.MM3_PER_CM3


def calculate_face_areas(mesh: MeshBuffer) -> NDArray[np.float64]:
    """Area of each triangle in mm^2 (0.5 * |e1 x e2|)."""
    if mesh.triangle_count == 0:
        return np.array([], dtype=np.float64)

    e1 = mesh.vertices[:, 1, :] - mesh.vertices[:, 0, :]
    e2 = mesh.vertices[:, 2, :] - mesh.vertices[:, 0, :]
    return 0.5 * np.linalg.norm(np.cross(e1, e2), axis=1)


def calculate_surface_area(mesh: MeshBuffer) -> float:
    """Total surface area in cm^2."""
    return float(np.sum(calculate_face_areas(mesh))) / cfg.MM2_PER_CM2


def calculate_weight(volume_cm3: float, density: float = None) -> float:
    """Weight in grams for a volume (cm^3) and density (g/cm^3, PLA by default)."""
    if density is None:
        density = cfg.MATERIAL_DENSITIES[cfg.DEFAULT_DENSITY_MATERIAL]
    return volume_cm3 * density


def calculate_all_material_weights(
    volume_cm3: float,
    densities: Optional[Mapping[str, float]] = None,
) -> Dict[str, float]:
    """Weight (g, 2 decimals) of the volume in every material of the table."""
    densities = cfg.MATERIAL_DENSITIES if densities is None else densities
    return {
        name: round(calculate_weight(volume_cm3, density), 2)
        for name, density in densities.items()
    }


def get_density(material_name: str, densities: Optional[Mapping[str, float]] = None) -> float:
    """Density for a material name; unknown names fall back to PLA."""
    densities = cfg.MATERIAL_DENSITIES if densities is None else densities
    if material_name in densities:
        return densities[material_name]
    logger.debug("Unknown material %r, using %s density",
                 material_name, cfg.DEFAULT_DENSITY_MATERIAL)
    return densities.get(cfg.DEFAULT_DENSITY_MATERIAL,
                         cfg.MATERIAL_DENSITIES[cfg.DEFAULT_DENSITY_MATERIAL])


def get_weight_for_material(
    volume_cm3: float,
    material_name: str,
    densities: Optional[Mapping[str, float]] = None,
) -> float:
    """Weight in grams, rounded to 2 decimals."""
    return round(calculate_weight(volume_cm3, get_density(material_name, densities)), 2)


def convert_weight(weight_g: float, unit: str) -> float:
    """Convert grams to 'g', 'kg', 'oz' or 'lb'.

    Raises:
        ValueError: for an unknown unit.
    """
    try:
        return weight_g * _WEIGHT_UNITS[unit]
    except KeyError:
        raise ValueError(f"unknown weight unit {unit!r}; "
                         f"expected one of {sorted(_WEIGHT_UNITS)}") from None


def compute_model_stats(
    mesh: MeshBuffer,
    densities: Optional[Mapping[str, float]] = None,
) -> ModelStats:
    """Compute ModelStats for a millimetre mesh.

    Args:
        mesh: Decoded triangle soup
        densities: Optional density table override (g/cm^3)

    Returns:
        ModelStats with volume clamped to at least MIN_VOLUME_CM3

    Raises:
        EmptyGeometry: if the mesh has zero triangles
    """
    bbox = calculate_bounding_box(mesh)
    dims = bbox.dimensions

    raw_volume = calculate_volume(mesh)
    volume = max(raw_volume, cfg.MIN_VOLUME_CM3)
    surface_area = calculate_surface_area(mesh)

    stats = ModelStats(
        volume=volume,
        dimensions=(float(dims[0]), float(dims[1]), float(dims[2])),
        triangle_count=mesh.triangle_count,
        surface_area=surface_area,
        bounding_box=bbox,
        estimated_weight=calculate_all_material_weights(volume, densities),
    )

    if raw_volume < cfg.MIN_VOLUME_CM3:
        logger.warning("Volume %.4f cm³ below minimum, clamped to %.2f cm³ "
                       "(open or degenerate mesh?)", raw_volume, cfg.MIN_VOLUME_CM3)

    logger.debug(
        "Model statistics calculated",
        extra={
            'triangles': stats.triangle_count,
            'volume_cm3': volume,
            'surface_area_cm2': surface_area,
        }
    )
    return stats
