"""
Delivery ETA: print time + prep + queue delay + shipping.

Shipping time is derived from the great-circle distance between the customer
and the print centre when a location is known, otherwise a flat default is
used. The queue delay is drawn from an injected random source so that results
are reproducible under test.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

import numpy as np

from print_estimate import config as cfg
from print_estimate.project_config import ETAConfig

logger = logging.getLogger(__name__)

HOURS_PER_DAY = 24.0


@dataclass
class UserLocation:
    """Customer coordinates and their distance to the print centre (km)."""
    latitude: float
    longitude: float
    distance_km: float

    def to_dict(self) -> Dict[str, float]:
        return {
            'latitude': self.latitude,
            'longitude': self.longitude,
            'distance_km': round(self.distance_km, 1),
        }


@dataclass
class ETACalculation:
    """Delivery estimate broken down into its components (days)."""
    print_time_hours: float
    print_time_days: float
    shipping_days: float
    prep_days: float
    queue_delay_days: float
    total_days: float
    display_days: int
    estimated_date: datetime
    user_location: Optional[UserLocation] = None
    location_error: Optional[str] = None

    @property
    def is_geolocation_used(self) -> bool:
        return self.user_location is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'print_time_hours': self.print_time_hours,
            'print_time_days': round(self.print_time_days, 3),
            'shipping_days': round(self.shipping_days, 2),
            'prep_days': self.prep_days,
            'queue_delay_days': round(self.queue_delay_days, 2),
            'total_days': round(self.total_days, 2),
            'display_days': self.display_days,
            'estimated_date': self.estimated_date.isoformat(),
            'user_location': self.user_location.to_dict() if self.user_location else None,
            'location_error': self.location_error,
            'is_geolocation_used': self.is_geolocation_used,
        }


def calculate_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle (haversine) distance in km."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return cfg.EARTH_RADIUS_KM * c


def locate(latitude: float, longitude: float, eta: Optional[ETAConfig] = None) -> UserLocation:
    """UserLocation with its distance to the configured origin."""
    eta = eta or ETAConfig()
    distance = calculate_distance(latitude, longitude, eta.origin_latitude, eta.origin_longitude)
    return UserLocation(latitude=latitude, longitude=longitude, distance_km=distance)


def calculate_shipping_time(distance_km: float, eta: Optional[ETAConfig] = None) -> float:
    """Shipping days at the courier speed, never below half a day."""
    eta = eta or ETAConfig()
    return max(eta.min_shipping_days, distance_km / eta.shipping_speed_km_per_day)


def calculate_queue_delay(rng=None, eta: Optional[ETAConfig] = None) -> float:
    """Uniform delay in [min, max) days.

    Args:
        rng: Any object with a ``random()`` method returning a float in [0, 1)
            (numpy Generator, ``random.Random``); a fresh numpy Generator when None
    """
    eta = eta or ETAConfig()
    rng = rng if rng is not None else np.random.default_rng()
    span = eta.max_queue_delay_days - eta.min_queue_delay_days
    return eta.min_queue_delay_days + float(rng.random()) * span


def calculate_eta(
    print_time_hours: float,
    user_location: Optional[UserLocation] = None,
    rng=None,
    now: Optional[datetime] = None,
    location_error: Optional[str] = None,
    eta: Optional[ETAConfig] = None,
) -> ETACalculation:
    """Combine print, prep, queue and shipping time into a delivery estimate.

    Args:
        print_time_hours: CostBreakdown.print_time_hours
        user_location: Customer location; default shipping time when None
        rng: Random source for the queue delay
        now: Reference time (defaults to the current time)
        location_error: Reason the location is missing, carried into the result
        eta: ETA configuration override

    Returns:
        ETACalculation; ``total_days`` is the fractional sum and
        ``estimated_date`` is ``now`` plus the whole-day ``display_days``
    """
    eta = eta or ETAConfig()
    now = now or datetime.now()

    if user_location is not None:
        shipping_days = calculate_shipping_time(user_location.distance_km, eta)
    else:
        shipping_days = eta.default_shipping_days

    print_time_days = print_time_hours / HOURS_PER_DAY
    queue_delay_days = calculate_queue_delay(rng, eta)
    total_days = print_time_days + eta.prep_days + queue_delay_days + shipping_days
    display_days = math.ceil(total_days)

    logger.debug(
        "ETA %.2f days (print %.2f, prep %.1f, queue %.2f, shipping %.2f)",
        total_days, print_time_days, eta.prep_days, queue_delay_days, shipping_days,
        extra={'geolocation': user_location is not None},
    )

    return ETACalculation(
        print_time_hours=print_time_hours,
        print_time_days=print_time_days,
        shipping_days=shipping_days,
        prep_days=eta.prep_days,
        queue_delay_days=queue_delay_days,
        total_days=total_days,
        display_days=display_days,
        estimated_date=now + timedelta(days=display_days),
        user_location=user_location,
        location_error=location_error,
    )
