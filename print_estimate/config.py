"""
Global constants for the estimation pipeline.

Values here are the built-in defaults. Project files (.printquote.json)
override them through print_estimate.project_config without mutating this
module.
"""

import math

# ---------------------------------------------------------------------------
# Upload limits
# ---------------------------------------------------------------------------

STL_EXTENSION = ".stl"
THREEMF_EXTENSION = ".3mf"

STL_MAX_BYTES = 100 * 1024 * 1024
STL_MIN_BYTES = 84            # 80-byte header + uint32 triangle count
THREEMF_MAX_BYTES = 200 * 1024 * 1024
THREEMF_MIN_BYTES = 1024      # smallest plausible ZIP with a model entry

# ---------------------------------------------------------------------------
# STL layout
# ---------------------------------------------------------------------------

STL_HEADER_BYTES = 80
STL_COUNT_BYTES = 4
STL_RECORD_BYTES = 50         # normal + 3 vertices (float32) + uint16 attr
ASCII_SNIFF_BYTES = 1000

# ---------------------------------------------------------------------------
# 3MF layout
# ---------------------------------------------------------------------------

THREEMF_MODEL_ENTRIES = ("3D/3dmodel.model", "3dmodel.model")

# ---------------------------------------------------------------------------
# Mesh statistics
# ---------------------------------------------------------------------------

MM3_PER_CM3 = 1000.0
MM2_PER_CM2 = 100.0
MIN_VOLUME_CM3 = 0.01

# g/cm^3
MATERIAL_DENSITIES = {
    "PLA": 1.25,
    "ABS": 1.04,
    "PETG": 1.27,
    "TPU": 1.20,
    "ASA": 1.07,
    "WOOD_FILL": 1.28,
    "METAL_FILL": 4.0,
    "CARBON_FIBER": 1.15,
}
DEFAULT_DENSITY_MATERIAL = "PLA"

# ---------------------------------------------------------------------------
# Print-time model
# ---------------------------------------------------------------------------

DEFAULT_LAYER_HEIGHT = 0.2    # mm
DEFAULT_PRINT_SPEED = 60.0    # mm/s
DEFAULT_INFILL = 20.0         # %
MIN_INFILL_FACTOR = 0.1       # shells are always printed
FILAMENT_DIAMETER = 1.75      # mm
FILAMENT_CROSS_SECTION = math.pi * (FILAMENT_DIAMETER / 2) ** 2
NON_PRINTING_OVERHEAD = 1.2
SUPPORT_TIME_MULTIPLIER = 1.3
SUPPORT_MATERIAL_MULTIPLIER = 1.15
MIN_PRINT_TIME_HOURS = 10.0 / 60.0

# ---------------------------------------------------------------------------
# Pricing (AUD)
# ---------------------------------------------------------------------------

BATCH_HOURLY_STANDARD = 7.0
BATCH_HOURLY_EXOTIC = 10.0

# (upper bound in hours, min price, max price); last band is open-ended.
PRICING_TIERS = (
    (1.0, 10.0, 15.0),
    (3.0, 30.0, 45.0),
    (6.0, 60.0, 90.0),
    (math.inf, 100.0, 150.0),
)
# Hours at which the open band charges its max price; it scales linearly above.
OPEN_TIER_REFERENCE_HOURS = 6.0

SUPPORT_SURCHARGE_RATE = 0.15
MINIMUM_COST = 30.0
CURRENCY = "AUD"

# ---------------------------------------------------------------------------
# Delivery ETA
# ---------------------------------------------------------------------------

ORIGIN_LATITUDE = -27.4698    # Brisbane print centre
ORIGIN_LONGITUDE = 153.0251
EARTH_RADIUS_KM = 6371.0
SHIPPING_SPEED_KM_PER_DAY = 50.0
MIN_SHIPPING_DAYS = 0.5
DEFAULT_SHIPPING_DAYS = 2.0
PREP_DAYS = 1.0
MIN_QUEUE_DELAY_DAYS = 0.5
MAX_QUEUE_DELAY_DAYS = 1.5
GEOLOCATION_TIMEOUT_S = 10.0
MAX_REASONABLE_DISTANCE_KM = 5000.0
