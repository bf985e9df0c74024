"""Delivery ETA engine."""

from print_estimate.eta.calculator import (
    ETACalculation,
    UserLocation,
    calculate_distance,
    calculate_eta,
    calculate_queue_delay,
    calculate_shipping_time,
    locate,
)
from print_estimate.eta.location import (
    DeniedLocationSource,
    LocationSource,
    StaticLocationSource,
    acquire_location,
    calculate_eta_with_location,
)

__all__ = [
    "ETACalculation",
    "UserLocation",
    "calculate_distance",
    "calculate_eta",
    "calculate_queue_delay",
    "calculate_shipping_time",
    "locate",
    "DeniedLocationSource",
    "LocationSource",
    "StaticLocationSource",
    "acquire_location",
    "calculate_eta_with_location",
]
