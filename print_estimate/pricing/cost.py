"""
Print cost calculation.

Pipeline:
  1. Print time from volume, infill and print speed (filament-length model).
  2. Material weight and cost from density, infill and the support factor.
  3. Printing cost: hourly rate (batch) or duration tiers (single job).
  4. Support surcharge, total, price floor.

Every step is a pure function of its inputs. Money is rounded to cents only
in the returned CostBreakdown; PricingDetails keeps full precision.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional, Tuple

from print_estimate import config as cfg
from print_estimate.geometry.mesh_stats import get_density
from print_estimate.pricing.materials import MaterialType
from print_estimate.project_config import PricingConfig, PrintConfig

logger = logging.getLogger(__name__)


@dataclass
class PricingDetails:
    """Inputs and intermediate values used to price a job.

    Attributes:
        material_weight: Filament weight in kg (full precision)
        material_price: Price per kg of the selected material
        print_time: Print time in hours (full precision)
        minimum_applied: True when the subtotal was raised to the floor
        subtotal: Material + printing + support before the floor
        hourly_rate: Batch hourly rate (batch mode only)
        tier: Tier label (tiered mode only)
        layer_height: Layer height in mm the job was quoted for
    """
    material_weight: float
    material_price: float
    print_time: float
    minimum_applied: bool
    subtotal: float
    hourly_rate: Optional[float] = None
    tier: Optional[str] = None
    layer_height: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            'material_weight_kg': self.material_weight,
            'material_price_per_kg': self.material_price,
            'print_time_hours': self.print_time,
            'hourly_rate': self.hourly_rate,
            'tier': self.tier,
            'layer_height_mm': self.layer_height,
            'minimum_applied': self.minimum_applied,
            'subtotal': self.subtotal,
        }


@dataclass
class CostBreakdown:
    """Itemized quote. Monetary fields are rounded to cents."""
    material_cost: float
    printing_cost: float
    total_cost: float
    print_time_hours: float
    weight_grams: float
    breakdown: PricingDetails
    support_cost: Optional[float] = None

    @property
    def minimum_applied(self) -> bool:
        return self.breakdown.minimum_applied

    def summary(self, currency: str = cfg.CURRENCY) -> str:
        """Generate human-readable summary."""
        lines = [
            f"Material:     {self.material_cost:>10.2f} {currency}  ({self.weight_grams:.1f} g)",
            f"Printing:     {self.printing_cost:>10.2f} {currency}  ({self.print_time_hours:.2f} h"
            + (f", {self.breakdown.tier})" if self.breakdown.tier
               else f" @ {self.breakdown.hourly_rate:g}/h)"),
        ]
        if self.support_cost is not None:
            lines.append(f"Support:      {self.support_cost:>10.2f} {currency}")
        lines.append(f"Total:        {self.total_cost:>10.2f} {currency}"
                     + ("  (minimum price applied)" if self.minimum_applied else ""))
        return "\n".join(lines)

    def to_dict(self) -> dict:
        return {
            'material_cost': self.material_cost,
            'printing_cost': self.printing_cost,
            'support_cost': self.support_cost,
            'total_cost': self.total_cost,
            'print_time_hours': self.print_time_hours,
            'weight_grams': self.weight_grams,
            'breakdown': self.breakdown.to_dict(),
        }


def infill_factor(infill_percentage: float, printing: Optional[PrintConfig] = None) -> float:
    """Fraction of solid volume extruded; never below the shell minimum (10%)."""
    printing = printing or PrintConfig()
    return max(printing.min_infill_factor, infill_percentage / 100.0)


def calculate_print_time(
    volume_cm3: float,
    has_support: bool = False,
    infill_percentage: float = cfg.DEFAULT_INFILL,
    layer_height: Optional[float] = None,
    print_speed: Optional[float] = None,
    printing: Optional[PrintConfig] = None,
) -> float:
    """Estimate print time in hours.

    effective volume = volume_mm3 * infill factor
    filament length  = effective volume / filament cross-section
    hours            = length / (speed * 3600) * overhead [* support]

    ``layer_height`` is accepted for interface compatibility; the
    filament-length model does not depend on it.

    Raises:
        ValueError: for a negative volume or a non-positive print speed
    """
    printing = printing or PrintConfig()
    speed = printing.print_speed if print_speed is None else print_speed
    if volume_cm3 < 0:
        raise ValueError(f"volume must be >= 0, got {volume_cm3}")
    if speed <= 0:
        raise ValueError(f"print speed must be > 0 mm/s, got {speed}")

    effective_volume = volume_cm3 * cfg.MM3_PER_CM3 * infill_factor(infill_percentage, printing)
    filament_length = effective_volume / printing.filament_cross_section

    hours = filament_length / (speed * 3600.0)
    hours *= printing.non_printing_overhead
    if has_support:
        hours *= printing.support_time_multiplier

    return max(hours, printing.min_print_time_hours)


def calculate_material_weight(
    volume_cm3: float,
    material_name: str,
    has_support: bool = False,
    infill_percentage: float = cfg.DEFAULT_INFILL,
    densities=None,
    printing: Optional[PrintConfig] = None,
) -> float:
    """Filament weight in grams (density * volume * infill, plus support material)."""
    printing = printing or PrintConfig()
    weight = volume_cm3 * get_density(material_name, densities) * infill_factor(infill_percentage, printing)
    if has_support:
        weight *= printing.support_material_multiplier
    return weight


def calculate_batch_pricing(
    print_time_hours: float,
    is_exotic: bool,
    pricing: Optional[PricingConfig] = None,
) -> Tuple[float, float]:
    """Hourly-rate pricing.

    Returns:
        (cost, hourly rate)
    """
    pricing = pricing or PricingConfig()
    rate = pricing.batch_hourly_exotic if is_exotic else pricing.batch_hourly_standard
    return print_time_hours * rate, rate


def _tier_label(index: int, lower: float, upper: float) -> str:
    span = f"{lower:g}+h" if math.isinf(upper) else f"{lower:g}-{upper:g}h"
    return f"Tier {index + 1} ({span})"


def calculate_tiered_pricing(
    print_time_hours: float,
    pricing: Optional[PricingConfig] = None,
) -> Tuple[float, str]:
    """Duration-band pricing for single (non-batch) jobs.

    Finite band (lower, upper]:  min + (max - min) * hours / upper
    Open band (last_upper, inf): max * hours / reference_hours, never below max,
    i.e. a constant per-hour rate past the last finite band.

    A band does not start where the previous one ends: with the default tiers
    the price steps up by 20 at 1 h, 30 at 3 h and 60 at 6 h.

    Returns:
        (cost, tier label)
    """
    pricing = pricing or PricingConfig()
    bands = pricing.tier_bands()

    lower = 0.0
    for index, (upper, min_price, max_price) in enumerate(bands):
        if math.isinf(upper):
            reference = pricing.open_tier_reference_hours
            cost = max(max_price, max_price * print_time_hours / reference)
            return cost, _tier_label(index, lower, upper)
        if print_time_hours <= upper:
            cost = min_price + (max_price - min_price) * (print_time_hours / upper)
            return cost, _tier_label(index, lower, upper)
        lower = upper

    # Every band is finite and the job is longer than the last one.
    upper, _, max_price = bands[-1]
    return max_price * print_time_hours / upper, _tier_label(len(bands) - 1, lower, math.inf)


def calculate_cost(
    volume_cm3: float,
    material: MaterialType,
    is_batch: bool = False,
    has_support: bool = False,
    infill_percentage: float = cfg.DEFAULT_INFILL,
    layer_height: Optional[float] = None,
    print_speed: Optional[float] = None,
    pricing: Optional[PricingConfig] = None,
    printing: Optional[PrintConfig] = None,
) -> CostBreakdown:
    """Price a print job.

    Args:
        volume_cm3: Model volume (ModelStats.volume)
        material: Selected material
        is_batch: Hourly batch pricing instead of duration tiers
        has_support: Adds support time/material and the support surcharge
        infill_percentage: Infill density, % (floored at 10% effective)
        layer_height: Layer height, mm (config default when None); stored in
            the breakdown, not used by the time model
        print_speed: Print speed, mm/s (config default when None)
        pricing: Pricing configuration override
        printing: Print-time model override

    Returns:
        CostBreakdown with total_cost >= minimum_cost
    """
    pricing = pricing or PricingConfig()
    printing = printing or PrintConfig()
    layer_height = printing.layer_height if layer_height is None else layer_height

    print_time = calculate_print_time(
        volume_cm3, has_support, infill_percentage, layer_height, print_speed, printing
    )

    weight_g = calculate_material_weight(
        volume_cm3, material.name, has_support, infill_percentage, pricing.densities, printing
    )
    weight_kg = weight_g / 1000.0
    material_cost = weight_kg * material.price_per_kg

    hourly_rate = None
    tier = None
    if is_batch:
        printing_cost, hourly_rate = calculate_batch_pricing(print_time, material.is_exotic, pricing)
    else:
        printing_cost, tier = calculate_tiered_pricing(print_time, pricing)

    support_cost = None
    if has_support:
        support_cost = (printing_cost + material_cost) * pricing.support_surcharge_rate

    subtotal = material_cost + printing_cost + (support_cost or 0.0)
    minimum_applied = subtotal < pricing.minimum_cost
    total = max(subtotal, pricing.minimum_cost)

    logger.debug(
        "Priced %s job: %.2f h, %.1f g, subtotal %.2f",
        "batch" if is_batch else "tiered", print_time, weight_g, subtotal,
        extra={'material': material.name, 'minimum_applied': minimum_applied},
    )

    return CostBreakdown(
        material_cost=round(material_cost, 2),
        printing_cost=round(printing_cost, 2),
        support_cost=None if support_cost is None else round(support_cost, 2),
        total_cost=round(total, 2),
        print_time_hours=round(print_time, 2),
        weight_grams=round(weight_g, 1),
        breakdown=PricingDetails(
            material_weight=weight_kg,
            material_price=material.price_per_kg,
            print_time=print_time,
            hourly_rate=hourly_rate,
            tier=tier,
            layer_height=layer_height,
            minimum_applied=minimum_applied,
            subtotal=subtotal,
        ),
    )
