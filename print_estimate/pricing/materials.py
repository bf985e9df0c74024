"""Material catalogue: name, price per kg and the exotic flag."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from print_estimate.project_config import PricingConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MaterialType:
    """A printable material.

    Attributes:
        name: Unique identifier (also the density-table key)
        price_per_kg: Filament price, AUD/kg (> 0)
        is_exotic: Exotic materials use the higher batch hourly rate
    """
    name: str
    price_per_kg: float
    is_exotic: bool = False

    def __post_init__(self) -> None:
        if self.price_per_kg <= 0:
            raise ValueError(f"price_per_kg must be > 0 for {self.name!r}, got {self.price_per_kg}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MaterialType':
        return cls(
            name=str(data["name"]),
            price_per_kg=float(data["price_per_kg"]),
            is_exotic=bool(data.get("is_exotic", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "price_per_kg": self.price_per_kg, "is_exotic": self.is_exotic}


def load_materials(pricing: Optional[PricingConfig] = None) -> List[MaterialType]:
    """Material list from the pricing configuration (defaults when None)."""
    pricing = pricing or PricingConfig()
    return [MaterialType.from_dict(entry) for entry in pricing.materials]


MATERIALS: List[MaterialType] = load_materials()


def get_material(name: str, materials: Optional[Iterable[MaterialType]] = None) -> MaterialType:
    """Look a material up by name (case-insensitive).

    Raises:
        KeyError: if no material has that name
    """
    materials = MATERIALS if materials is None else list(materials)
    for material in materials:
        if material.name.lower() == name.lower():
            return material
    known = ", ".join(m.name for m in materials)
    raise KeyError(f"Unknown material {name!r}; available: {known}")
