"""Pricing engine: materials, print cost and optional services."""

from print_estimate.pricing.cost import (
    CostBreakdown,
    PricingDetails,
    calculate_batch_pricing,
    calculate_cost,
    calculate_material_weight,
    calculate_print_time,
    calculate_tiered_pricing,
)
from print_estimate.pricing.materials import MATERIALS, MaterialType, get_material, load_materials
from print_estimate.pricing.services import (
    AVAILABLE_SERVICES,
    OptionalService,
    calculate_optional_services_cost,
    get_service,
    select_services,
)

__all__ = [
    'CostBreakdown',
    'PricingDetails',
    'calculate_batch_pricing',
    'calculate_cost',
    'calculate_material_weight',
    'calculate_print_time',
    'calculate_tiered_pricing',
    'MATERIALS',
    'MaterialType',
    'get_material',
    'load_materials',
    'AVAILABLE_SERVICES',
    'OptionalService',
    'calculate_optional_services_cost',
    'get_service',
    'select_services',
]
