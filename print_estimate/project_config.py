"""
JSON-based project configuration for print_estimate.

Allows overriding the built-in constants (print_estimate.config) through:
1. An explicit config file path (CLI ``--config``)
2. .printquote.json next to the model file
3. .printquote.json in the current directory
4. ~/.printquote.json

Example .printquote.json:
{
    "quote": {"material": "PETG", "infill_percentage": 30},
    "pricing": {
        "minimum_cost": 35.0,
        "materials": [{"name": "PLA", "price_per_kg": 28.0, "is_exotic": false}]
    },
    "print": {"print_speed": 80.0},
    "eta": {"prep_days": 2.0},
    "output": {"output_dir": "quotes", "write_reports": true}
}
"""

import json
import logging
import math
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from print_estimate import config as cfg

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".printquote.json"


def _default_materials() -> List[Dict[str, Any]]:
    return [
        {"name": "PLA", "price_per_kg": 25.0, "is_exotic": False},
        {"name": "ABS", "price_per_kg": 30.0, "is_exotic": False},
        {"name": "PETG", "price_per_kg": 35.0, "is_exotic": False},
        {"name": "TPU", "price_per_kg": 45.0, "is_exotic": True},
    ]


def _default_tiers() -> List[List[Optional[float]]]:
    # JSON has no Infinity: the open-ended band uses null as its bound.
    return [
        [None if math.isinf(upper) else upper, low, high]
        for upper, low, high in cfg.PRICING_TIERS
    ]


@dataclass
class QuoteConfig:
    """Default quote options used when the CLI does not override them."""
    material: str = "PLA"
    is_batch: bool = False
    has_support: bool = False
    infill_percentage: float = cfg.DEFAULT_INFILL


@dataclass
class PricingConfig:
    """Material list, hourly rates, tiers and the price floor (AUD)."""
    materials: List[Dict[str, Any]] = field(default_factory=_default_materials)
    densities: Dict[str, float] = field(default_factory=lambda: dict(cfg.MATERIAL_DENSITIES))
    batch_hourly_standard: float = cfg.BATCH_HOURLY_STANDARD
    batch_hourly_exotic: float = cfg.BATCH_HOURLY_EXOTIC
    tiers: List[List[Optional[float]]] = field(default_factory=_default_tiers)
    open_tier_reference_hours: float = cfg.OPEN_TIER_REFERENCE_HOURS
    support_surcharge_rate: float = cfg.SUPPORT_SURCHARGE_RATE
    minimum_cost: float = cfg.MINIMUM_COST
    currency: str = cfg.CURRENCY

    def tier_bands(self) -> List[Tuple[float, float, float]]:
        """Tiers as (upper hours, min price, max price), null bound -> inf."""
        return [
            (math.inf if upper is None else float(upper), float(low), float(high))
            for upper, low, high in self.tiers
        ]


@dataclass
class PrintConfig:
    """Print-time model parameters."""
    layer_height: float = cfg.DEFAULT_LAYER_HEIGHT
    print_speed: float = cfg.DEFAULT_PRINT_SPEED
    filament_diameter: float = cfg.FILAMENT_DIAMETER
    min_infill_factor: float = cfg.MIN_INFILL_FACTOR
    non_printing_overhead: float = cfg.NON_PRINTING_OVERHEAD
    support_time_multiplier: float = cfg.SUPPORT_TIME_MULTIPLIER
    support_material_multiplier: float = cfg.SUPPORT_MATERIAL_MULTIPLIER
    min_print_time_hours: float = cfg.MIN_PRINT_TIME_HOURS

    @property
    def filament_cross_section(self) -> float:
        """Filament cross-section area in mm^2."""
        return math.pi * (self.filament_diameter / 2) ** 2


@dataclass
class ETAConfig:
    """Delivery estimate parameters."""
    origin_latitude: float = cfg.ORIGIN_LATITUDE
    origin_longitude: float = cfg.ORIGIN_LONGITUDE
    shipping_speed_km_per_day: float = cfg.SHIPPING_SPEED_KM_PER_DAY
    min_shipping_days: float = cfg.MIN_SHIPPING_DAYS
    default_shipping_days: float = cfg.DEFAULT_SHIPPING_DAYS
    prep_days: float = cfg.PREP_DAYS
    min_queue_delay_days: float = cfg.MIN_QUEUE_DELAY_DAYS
    max_queue_delay_days: float = cfg.MAX_QUEUE_DELAY_DAYS
    geolocation_timeout_s: float = cfg.GEOLOCATION_TIMEOUT_S
    max_reasonable_distance_km: float = cfg.MAX_REASONABLE_DISTANCE_KM


@dataclass
class OutputConfig:
    """Report output configuration (batch mode)."""
    write_reports: bool = False
    prefix: str = ""
    suffix: str = ".quote"
    output_dir: str = ""


_SECTIONS = ("quote", "pricing", "print", "eta", "output")


@dataclass
class ProjectConfig:
    """Complete project configuration."""
    quote: QuoteConfig = field(default_factory=QuoteConfig)
    pricing: PricingConfig = field(default_factory=PricingConfig)
    print: PrintConfig = field(default_factory=PrintConfig)
    eta: ETAConfig = field(default_factory=ETAConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return asdict(self)

    def to_json(self, indent: int = 2) -> str:
        """Convert configuration to JSON string."""
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    def save(self, path: Union[str, Path]) -> None:
        """Save configuration to a JSON file."""
        path = Path(path)
        path.write_text(self.to_json(), encoding='utf-8')
        logger.info("Configuration saved to %s", path)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ProjectConfig':
        """Create configuration from a (possibly partial) dictionary.

        Unknown sections and keys are ignored with a debug message.
        """
        config = cls()
        for section_name, values in data.items():
            if section_name not in _SECTIONS or not isinstance(values, dict):
                logger.debug("Ignoring config section %r", section_name)
                continue
            section = getattr(config, section_name)
            for key, value in values.items():
                if hasattr(section, key) and not key.startswith('_'):
                    setattr(section, key, value)
                else:
                    logger.debug("Ignoring config key %s.%s", section_name, key)
        return config

    @classmethod
    def from_json(cls, json_str: str) -> 'ProjectConfig':
        """Create configuration from JSON string."""
        return cls.from_dict(json.loads(json_str))

    @classmethod
    def load(cls, path: Union[str, Path]) -> 'ProjectConfig':
        """Load configuration from a JSON file.

        Raises:
            FileNotFoundError: If file doesn't exist
            json.JSONDecodeError: If file is not valid JSON
        """
        path = Path(path)
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        logger.info("Configuration loaded from %s", path)
        return cls.from_dict(data)


def find_config_file(
    model_path: Optional[Union[str, Path]] = None,
    explicit_config: Optional[Union[str, Path]] = None,
) -> Optional[Path]:
    """Find a configuration file using the search hierarchy.

    Search order:
    1. Explicit config path (if provided and it exists)
    2. .printquote.json in the model file's directory
    3. .printquote.json in the current working directory
    4. ~/.printquote.json

    Returns:
        Path to config file if found, None otherwise
    """
    if explicit_config:
        explicit = Path(explicit_config)
        if explicit.exists():
            return explicit
        logger.warning("Explicit config not found: %s", explicit)

    candidates = []
    if model_path:
        candidates.append(Path(model_path).parent / CONFIG_FILENAME)
    candidates.append(Path.cwd() / CONFIG_FILENAME)
    candidates.append(Path.home() / CONFIG_FILENAME)

    for candidate in candidates:
        if candidate.exists():
            return candidate
    return None


def load_config(
    model_path: Optional[Union[str, Path]] = None,
    explicit_config: Optional[Union[str, Path]] = None,
) -> ProjectConfig:
    """Load configuration, falling back to defaults on a missing or bad file."""
    config_path = find_config_file(model_path, explicit_config)

    if config_path:
        try:
            return ProjectConfig.load(config_path)
        except (json.JSONDecodeError, OSError) as e:
            logger.error("Failed to load config %s: %s", config_path, e)

    return ProjectConfig()


def merge_configs(base: ProjectConfig, override: ProjectConfig) -> ProjectConfig:
    """Merge two configurations; non-default values of ``override`` win."""
    merged = ProjectConfig.from_dict(base.to_dict())
    defaults = ProjectConfig()

    for section_name in _SECTIONS:
        override_section = getattr(override, section_name)
        default_section = getattr(defaults, section_name)
        merged_section = getattr(merged, section_name)
        for f in fields(override_section):
            value = getattr(override_section, f.name)
            if value != getattr(default_section, f.name):
                setattr(merged_section, f.name, value)

    return merged


def create_sample_config(path: Union[str, Path] = CONFIG_FILENAME) -> None:
    """Write a documented sample configuration file."""
    sample = ProjectConfig().to_dict()
    sample["_comment"] = "3D print quote estimator configuration"
    sample["_version"] = "1.0"
    sample["pricing"]["_comment"] = ("tiers are [max_hours, min_price, max_price]; "
                                     "max_hours null marks the open-ended band")
    sample["eta"]["_comment"] = "distances in km, durations in days"

    path = Path(path)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(sample, f, indent=2, ensure_ascii=False)

    logger.info("Sample configuration created: %s", path)
