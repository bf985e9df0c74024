"""
Unit tests for print_estimate.eta (calculator and location acquisition).

Tests:
- Haversine distance and shipping time
- Queue delay bounds with injected random sources
- ETA composition, rounding for display and delivery date
- Async location acquisition: denial, timeout, failures, distance bound
"""

import asyncio
from datetime import timedelta

import numpy as np
import pytest

from print_estimate.errors import LocationUnavailable
from print_estimate.eta.calculator import (
    UserLocation,
    calculate_distance,
    calculate_eta,
    calculate_queue_delay,
    calculate_shipping_time,
    locate,
)
from print_estimate.eta.location import (
    DENIED_MESSAGE,
    TIMEOUT_MESSAGE,
    UNAVAILABLE_MESSAGE,
    DeniedLocationSource,
    LocationSource,
    StaticLocationSource,
    acquire_location,
    calculate_eta_with_location,
)
from print_estimate.project_config import ETAConfig
from tests.conftest import BRISBANE, GOLD_COAST, LONDON, SYDNEY, FixedRandom


class SlowSource(LocationSource):
    async def read(self):
        await asyncio.sleep(5)
        return SYDNEY


class BrokenSource(LocationSource):
    async def read(self):
        raise OSError("GPS offline")


class CrashingSource(LocationSource):
    async def read(self):
        raise RuntimeError("gps driver crashed")


class CrashingPermissionSource(StaticLocationSource):
    async def check_permission(self):
        raise RuntimeError("permission service down")


class HangingPermissionSource(StaticLocationSource):
    async def check_permission(self):
        await asyncio.sleep(3600)
        return True


class NaNSource(LocationSource):
    async def read(self):
        return float("nan"), 151.2


class CountingSource(StaticLocationSource):
    def __init__(self, latitude, longitude):
        super().__init__(latitude, longitude)
        self.permission_checks = 0
        self.reads = 0

    async def check_permission(self):
        self.permission_checks += 1
        return True

    async def read(self):
        self.reads += 1
        return await super().read()


class TestDistance:
    """Tests for calculate_distance / locate."""

    def test_same_point(self):
        assert calculate_distance(*BRISBANE, *BRISBANE) == pytest.approx(0.0)

    def test_brisbane_sydney(self):
        assert 700 < calculate_distance(*BRISBANE, *SYDNEY) < 760

    def test_symmetric(self):
        assert calculate_distance(*SYDNEY, *BRISBANE) == pytest.approx(
            calculate_distance(*BRISBANE, *SYDNEY)
        )

    def test_locate_uses_origin(self):
        location = locate(*GOLD_COAST)
        assert 60 < location.distance_km < 80
        assert location.latitude == GOLD_COAST[0]


class TestShippingTime:
    """Tests for calculate_shipping_time."""

    def test_floor(self):
        assert calculate_shipping_time(0.0) == 0.5
        assert calculate_shipping_time(10.0) == 0.5

    def test_speed(self):
        assert calculate_shipping_time(100.0) == pytest.approx(2.0)
        assert calculate_shipping_time(730.0) == pytest.approx(14.6)


class TestQueueDelay:
    """Tests for calculate_queue_delay."""

    def test_bounds_with_fixed_values(self):
        assert calculate_queue_delay(FixedRandom(0.0)) == pytest.approx(0.5)
        assert calculate_queue_delay(FixedRandom(0.5)) == pytest.approx(1.0)
        assert calculate_queue_delay(FixedRandom(0.999999)) < 1.5

    def test_numpy_generator_in_range(self):
        rng = np.random.default_rng(1234)
        delays = [calculate_queue_delay(rng) for _ in range(500)]
        assert min(delays) >= 0.5
        assert max(delays) < 1.5

    def test_default_source(self):
        assert 0.5 <= calculate_queue_delay() < 1.5


class TestCalculateETA:
    """Tests for calculate_eta."""

    def test_without_location(self, fixed_random, fixed_now):
        eta = calculate_eta(24.0, rng=fixed_random, now=fixed_now)
        assert eta.print_time_days == pytest.approx(1.0)
        assert eta.prep_days == 1.0
        assert eta.queue_delay_days == pytest.approx(1.0)
        assert eta.shipping_days == 2.0
        assert eta.total_days == pytest.approx(5.0)
        assert eta.display_days == 5
        assert eta.estimated_date == fixed_now + timedelta(days=5)
        assert not eta.is_geolocation_used

    def test_total_is_fractional(self, fixed_random, fixed_now):
        eta = calculate_eta(12.0, rng=fixed_random, now=fixed_now)
        assert eta.total_days == pytest.approx(4.5)
        assert eta.display_days == 5
        assert eta.estimated_date == fixed_now + timedelta(days=5)

    def test_with_location(self, fixed_random, fixed_now):
        location = UserLocation(latitude=0.0, longitude=0.0, distance_km=100.0)
        eta = calculate_eta(0.0, user_location=location, rng=fixed_random, now=fixed_now)
        assert eta.shipping_days == pytest.approx(2.0)
        assert eta.is_geolocation_used

    def test_location_error_carried(self, fixed_random, fixed_now):
        eta = calculate_eta(1.0, rng=fixed_random, now=fixed_now, location_error="denied")
        assert eta.location_error == "denied"
        assert eta.shipping_days == 2.0

    def test_total_is_sum_of_parts(self, fixed_now):
        eta = calculate_eta(37.0, rng=np.random.default_rng(7), now=fixed_now)
        parts = eta.print_time_days + eta.prep_days + eta.queue_delay_days + eta.shipping_days
        assert eta.total_days == pytest.approx(parts)
        assert eta.display_days >= eta.total_days

    def test_monotonic_in_print_time(self, fixed_now):
        totals = [calculate_eta(h, rng=FixedRandom(0.3), now=fixed_now).total_days
                  for h in (0.5, 2, 10, 48, 200)]
        assert all(b > a for a, b in zip(totals, totals[1:]))

    def test_monotonic_in_distance_above_floor(self, fixed_now):
        totals = []
        for distance in (30, 100, 500, 2000):
            location = UserLocation(0.0, 0.0, float(distance))
            totals.append(calculate_eta(5.0, location, FixedRandom(0.3), fixed_now).total_days)
        assert all(b > a for a, b in zip(totals, totals[1:]))

    def test_custom_config(self, fixed_random, fixed_now):
        config = ETAConfig(prep_days=3.0, default_shipping_days=4.0)
        eta = calculate_eta(0.0, rng=fixed_random, now=fixed_now, eta=config)
        assert eta.total_days == pytest.approx(3.0 + 1.0 + 4.0)

    def test_to_dict(self, fixed_random, fixed_now):
        data = calculate_eta(24.0, rng=fixed_random, now=fixed_now).to_dict()
        assert data["display_days"] == 5
        assert data["estimated_date"] == (fixed_now + timedelta(days=5)).isoformat()
        assert data["user_location"] is None
        assert data["is_geolocation_used"] is False


class TestAcquireLocation:
    """Tests for acquire_location."""

    def test_static_source(self):
        location = asyncio.run(acquire_location(StaticLocationSource(*SYDNEY)))
        assert location.latitude == SYDNEY[0]
        assert 700 < location.distance_km < 760

    def test_denied(self):
        with pytest.raises(LocationUnavailable, match=DENIED_MESSAGE):
            asyncio.run(acquire_location(DeniedLocationSource()))

    def test_timeout(self):
        with pytest.raises(LocationUnavailable, match=TIMEOUT_MESSAGE):
            asyncio.run(acquire_location(SlowSource(), timeout=0.01))

    def test_read_failure(self):
        with pytest.raises(LocationUnavailable, match="GPS offline"):
            asyncio.run(acquire_location(BrokenSource()))

    def test_unexpected_read_error(self):
        with pytest.raises(LocationUnavailable, match="gps driver crashed"):
            asyncio.run(acquire_location(CrashingSource()))

    def test_unexpected_permission_error(self):
        with pytest.raises(LocationUnavailable, match="permission service down"):
            asyncio.run(acquire_location(CrashingPermissionSource(*SYDNEY)))

    def test_permission_check_bounded_by_timeout(self):
        async def run():
            return await asyncio.wait_for(
                acquire_location(HangingPermissionSource(*SYDNEY), timeout=0.05), 5
            )

        with pytest.raises(LocationUnavailable, match=TIMEOUT_MESSAGE):
            asyncio.run(run())

    def test_non_finite_coordinates(self):
        with pytest.raises(LocationUnavailable, match="non-finite"):
            asyncio.run(acquire_location(NaNSource()))

    def test_too_far(self):
        with pytest.raises(LocationUnavailable, match="too far"):
            asyncio.run(acquire_location(StaticLocationSource(*LONDON)))

    def test_single_permission_check_and_read(self):
        source = CountingSource(*SYDNEY)
        asyncio.run(acquire_location(source))
        assert source.permission_checks == 1
        assert source.reads == 1


class TestCalculateETAWithLocation:
    """Tests for calculate_eta_with_location."""

    def test_uses_location(self, fixed_random, fixed_now):
        eta = asyncio.run(calculate_eta_with_location(
            10.0, StaticLocationSource(*SYDNEY), rng=fixed_random, now=fixed_now,
        ))
        assert eta.is_geolocation_used
        assert eta.location_error is None
        assert eta.shipping_days == pytest.approx(eta.user_location.distance_km / 50)

    def test_denied_falls_back(self, fixed_random, fixed_now):
        eta = asyncio.run(calculate_eta_with_location(
            10.0, DeniedLocationSource(), rng=fixed_random, now=fixed_now,
        ))
        assert not eta.is_geolocation_used
        assert eta.location_error == DENIED_MESSAGE
        assert eta.shipping_days == 2.0

    def test_timeout_falls_back(self, fixed_random, fixed_now):
        eta = asyncio.run(calculate_eta_with_location(
            10.0, SlowSource(), rng=fixed_random, now=fixed_now, timeout=0.01,
        ))
        assert eta.location_error == TIMEOUT_MESSAGE
        assert eta.shipping_days == 2.0

    def test_crashing_source_falls_back(self, fixed_random, fixed_now):
        eta = asyncio.run(calculate_eta_with_location(
            1.0, CrashingSource(), rng=fixed_random, now=fixed_now,
        ))
        assert eta.location_error.startswith(UNAVAILABLE_MESSAGE)
        assert "gps driver crashed" in eta.location_error
        assert eta.shipping_days == 2.0

    def test_too_far_falls_back(self, fixed_random, fixed_now):
        eta = asyncio.run(calculate_eta_with_location(
            10.0, StaticLocationSource(*LONDON), rng=fixed_random, now=fixed_now,
        ))
        assert "too far" in eta.location_error
        assert eta.user_location is None

    def test_no_source(self, fixed_random, fixed_now):
        eta = asyncio.run(calculate_eta_with_location(10.0, None, rng=fixed_random, now=fixed_now))
        assert eta.location_error is None
        assert not eta.is_geolocation_used
