"""Geometry value types and mesh statistics."""

from print_estimate.geometry.mesh_stats import (
    ModelStats,
    calculate_all_material_weights,
    calculate_bounding_box,
    calculate_surface_area,
    calculate_volume,
    compute_model_stats,
    get_weight_for_material,
)
from print_estimate.geometry.types import BoundingBox, MeshBuffer, Triangle

__all__ = [
    "BoundingBox",
    "MeshBuffer",
    "ModelStats",
    "Triangle",
    "calculate_all_material_weights",
    "calculate_bounding_box",
    "calculate_surface_area",
    "calculate_volume",
    "compute_model_stats",
    "get_weight_for_material",
]
