"""Hourly post-processing services quoted on top of the print price."""

import logging
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OptionalService:
    """A post-processing service billed per hour."""
    name: str
    price_per_hour: float
    hours: float = 0.0

    @property
    def cost(self) -> float:
        return max(0.0, self.hours) * self.price_per_hour

    def with_hours(self, hours: float) -> 'OptionalService':
        """Copy with the requested hours; negative values are clamped to zero."""
        return replace(self, hours=max(0.0, float(hours)))

    def to_dict(self) -> Dict:
        return {
            'name': self.name,
            'price_per_hour': self.price_per_hour,
            'hours': self.hours,
            'cost': round(self.cost, 2),
        }


AVAILABLE_SERVICES: List[OptionalService] = [
    OptionalService("Modelling", 70.0),
    OptionalService("Support Removal", 60.0),
    OptionalService("Painting", 60.0),
    OptionalService("Cleaning", 60.0),
]


def get_service(name: str) -> OptionalService:
    """Look a service up by name (case-insensitive).

    Raises:
        KeyError: if no service has that name
    """
    for service in AVAILABLE_SERVICES:
        if service.name.lower() == name.lower():
            return service
    known = ", ".join(s.name for s in AVAILABLE_SERVICES)
    raise KeyError(f"Unknown service {name!r}; available: {known}")


def select_services(hours_by_name: Dict[str, float]) -> List[OptionalService]:
    """Build the selected service list from ``{name: hours}``.

    Services with zero (or negative) hours are dropped.
    """
    selected = []
    for name, hours in hours_by_name.items():
        service = get_service(name).with_hours(hours)
        if service.hours > 0:
            selected.append(service)
    return selected


def calculate_optional_services_cost(services: Iterable[OptionalService]) -> float:
    """Sum of hours * rate across services, rounded to cents."""
    total = sum(service.cost for service in services)
    return round(total, 2)
