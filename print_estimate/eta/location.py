"""
Location acquisition for the ETA engine.

A LocationSource is an asynchronous capability with a permission pre-flight
and a single coordinate read. ``calculate_eta_with_location`` asks the source
once, bounded by a timeout; any failure is turned into ``location_error`` text
and the estimate falls back to the default shipping time.
"""

import asyncio
import logging
import math
from datetime import datetime
from typing import Optional, Tuple

from print_estimate.errors import LocationUnavailable
from print_estimate.eta.calculator import ETACalculation, UserLocation, calculate_eta, locate
from print_estimate.project_config import ETAConfig

logger = logging.getLogger(__name__)

DENIED_MESSAGE = "Location access denied by user"
UNAVAILABLE_MESSAGE = "Location information unavailable"
TIMEOUT_MESSAGE = "Location request timed out"
TOO_FAR_MESSAGE = "Location appears to be too far from the print centre"


class LocationSource:
    """Base class for coordinate providers.

    Subclasses implement ``read``; ``check_permission`` grants access by
    default.
    """

    async def check_permission(self) -> bool:
        return True

    async def read(self) -> Tuple[float, float]:
        """Return (latitude, longitude) in degrees."""
        raise NotImplementedError


class StaticLocationSource(LocationSource):
    """Fixed coordinates, e.g. from the command line."""

    def __init__(self, latitude: float, longitude: float):
        self.latitude = latitude
        self.longitude = longitude

    async def read(self) -> Tuple[float, float]:
        return self.latitude, self.longitude


class DeniedLocationSource(LocationSource):
    """A source whose permission check always fails."""

    async def check_permission(self) -> bool:
        return False

    async def read(self) -> Tuple[float, float]:
        raise LocationUnavailable(DENIED_MESSAGE)


async def _query(source: LocationSource) -> Tuple[float, float]:
    if not await source.check_permission():
        raise LocationUnavailable(DENIED_MESSAGE)
    latitude, longitude = await source.read()
    latitude, longitude = float(latitude), float(longitude)
    if not (math.isfinite(latitude) and math.isfinite(longitude)):
        raise ValueError(f"non-finite coordinates ({latitude}, {longitude})")
    return latitude, longitude


async def acquire_location(
    source: LocationSource,
    timeout: Optional[float] = None,
    eta: Optional[ETAConfig] = None,
) -> UserLocation:
    """Query the source once and validate the result.

    The permission pre-flight and the read share one timeout.

    Raises:
        LocationUnavailable: permission denied, read failure, timeout, or a
            location farther than the configured maximum distance
    """
    eta = eta or ETAConfig()
    timeout = eta.geolocation_timeout_s if timeout is None else timeout

    try:
        latitude, longitude = await asyncio.wait_for(_query(source), timeout)
    except asyncio.TimeoutError as exc:
        raise LocationUnavailable(TIMEOUT_MESSAGE) from exc
    except LocationUnavailable:
        raise
    except Exception as exc:
        raise LocationUnavailable(f"{UNAVAILABLE_MESSAGE}: {exc}") from exc

    location = locate(latitude, longitude, eta)
    if location.distance_km > eta.max_reasonable_distance_km:
        raise LocationUnavailable(
            f"{TOO_FAR_MESSAGE} ({location.distance_km:.0f} km)"
        )
    return location


async def calculate_eta_with_location(
    print_time_hours: float,
    source: Optional[LocationSource] = None,
    rng=None,
    now: Optional[datetime] = None,
    eta: Optional[ETAConfig] = None,
    timeout: Optional[float] = None,
) -> ETACalculation:
    """ETA using the customer's location when the source provides one.

    Never raises LocationUnavailable: the reason is recorded in
    ``location_error`` and the default shipping time is used instead.
    """
    user_location = None
    location_error = None

    if source is not None:
        try:
            user_location = await acquire_location(source, timeout, eta)
        except LocationUnavailable as exc:
            location_error = str(exc)
            logger.warning("Geolocation failed: %s", location_error)

    return calculate_eta(
        print_time_hours,
        user_location=user_location,
        rng=rng,
        now=now,
        location_error=location_error,
        eta=eta,
    )
