"""
End-to-end estimation: model file -> statistics -> price -> delivery ETA.

Steps:
  1. Validate and decode the model (STL or 3MF), compute statistics.
  2. Price the job for the selected material and options.
  3. Add optional post-processing services.
  4. Estimate delivery from the print time and, if available, a location.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from print_estimate.eta.calculator import ETACalculation, calculate_eta
from print_estimate.eta.location import LocationSource, calculate_eta_with_location
from print_estimate.io.dispatcher import ParsedModel, load_model_file, parse_model_bytes
from print_estimate.logging_config import log_timing
from print_estimate.pricing.cost import CostBreakdown, calculate_cost
from print_estimate.pricing.materials import get_material, load_materials
from print_estimate.pricing.services import OptionalService, calculate_optional_services_cost
from print_estimate.project_config import ProjectConfig

logger = logging.getLogger(__name__)


@dataclass
class EstimateResult:
    """Everything quoted for one model."""
    parsed: ParsedModel
    cost: CostBreakdown
    eta: ETACalculation
    material: str
    services: List[OptionalService] = field(default_factory=list)
    services_total: float = 0.0

    @property
    def grand_total(self) -> float:
        return round(self.cost.total_cost + self.services_total, 2)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'model': self.parsed.to_dict(),
            'material': self.material,
            'cost': self.cost.to_dict(),
            'services': [s.to_dict() for s in self.services],
            'services_total': self.services_total,
            'grand_total': self.grand_total,
            'eta': self.eta.to_dict(),
        }


@dataclass
class _Quote:
    material: str
    cost: CostBreakdown
    services: List[OptionalService]
    services_total: float


def _price(
    parsed: ParsedModel,
    config: ProjectConfig,
    material: Optional[str],
    is_batch: Optional[bool],
    has_support: Optional[bool],
    infill_percentage: Optional[float],
    layer_height: Optional[float],
    print_speed: Optional[float],
    services: Optional[List[OptionalService]],
) -> _Quote:
    quote = config.quote
    material_type = get_material(
        material or quote.material, load_materials(config.pricing)
    )

    cost = calculate_cost(
        parsed.stats.volume,
        material_type,
        is_batch=quote.is_batch if is_batch is None else is_batch,
        has_support=quote.has_support if has_support is None else has_support,
        infill_percentage=quote.infill_percentage if infill_percentage is None else infill_percentage,
        layer_height=layer_height,
        print_speed=print_speed,
        pricing=config.pricing,
        printing=config.print,
    )

    services = list(services or [])
    return _Quote(material_type.name, cost, services, calculate_optional_services_cost(services))


def _result(parsed: ParsedModel, quote: _Quote, eta: ETACalculation) -> EstimateResult:
    return EstimateResult(
        parsed=parsed,
        cost=quote.cost,
        eta=eta,
        material=quote.material,
        services=quote.services,
        services_total=quote.services_total,
    )


def estimate_parsed(
    parsed: ParsedModel,
    material: Optional[str] = None,
    is_batch: Optional[bool] = None,
    has_support: Optional[bool] = None,
    infill_percentage: Optional[float] = None,
    layer_height: Optional[float] = None,
    print_speed: Optional[float] = None,
    services: Optional[List[OptionalService]] = None,
    location: Optional[LocationSource] = None,
    config: Optional[ProjectConfig] = None,
    rng=None,
    now: Optional[datetime] = None,
) -> EstimateResult:
    """Price and schedule an already decoded model.

    Options left as None come from ``config.quote`` / ``config.print``.
    With a ``location`` source the lookup runs on a private event loop, so
    this function is for synchronous callers only; coroutines use
    :func:`estimate_parsed_async`.

    Raises:
        KeyError: unknown material name
        RuntimeError: a location is given while an event loop is running
            in this thread
    """
    config = config or ProjectConfig()
    if location is not None and _loop_running():
        raise RuntimeError(
            "estimate_parsed() cannot look up a location inside a running "
            "event loop; await estimate_parsed_async() instead"
        )

    quote = _price(parsed, config, material, is_batch, has_support,
                   infill_percentage, layer_height, print_speed, services)

    if location is None:
        eta = calculate_eta(quote.cost.print_time_hours, rng=rng, now=now, eta=config.eta)
    else:
        eta = asyncio.run(calculate_eta_with_location(
            quote.cost.print_time_hours, location, rng=rng, now=now, eta=config.eta,
        ))
    return _result(parsed, quote, eta)


async def estimate_parsed_async(
    parsed: ParsedModel,
    material: Optional[str] = None,
    is_batch: Optional[bool] = None,
    has_support: Optional[bool] = None,
    infill_percentage: Optional[float] = None,
    layer_height: Optional[float] = None,
    print_speed: Optional[float] = None,
    services: Optional[List[OptionalService]] = None,
    location: Optional[LocationSource] = None,
    config: Optional[ProjectConfig] = None,
    rng=None,
    now: Optional[datetime] = None,
) -> EstimateResult:
    """Coroutine form of :func:`estimate_parsed` for callers already in an event loop."""
    config = config or ProjectConfig()
    quote = _price(parsed, config, material, is_batch, has_support,
                   infill_percentage, layer_height, print_speed, services)
    eta = await calculate_eta_with_location(
        quote.cost.print_time_hours, location, rng=rng, now=now, eta=config.eta,
    )
    return _result(parsed, quote, eta)


def _loop_running() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


def estimate_bytes(filename: str, data: bytes, config: Optional[ProjectConfig] = None,
                   **options: Any) -> EstimateResult:
    """Estimate an in-memory upload; ``options`` as for :func:`estimate_parsed`."""
    config = config or ProjectConfig()
    parsed = parse_model_bytes(filename, data, config.pricing.densities)
    return estimate_parsed(parsed, config=config, **options)


async def estimate_bytes_async(filename: str, data: bytes, config: Optional[ProjectConfig] = None,
                               **options: Any) -> EstimateResult:
    """Coroutine form of :func:`estimate_bytes`; decoding runs in the calling thread."""
    config = config or ProjectConfig()
    parsed = parse_model_bytes(filename, data, config.pricing.densities)
    return await estimate_parsed_async(parsed, config=config, **options)


def run_pipeline(
    model_path: Union[str, Path],
    config: Optional[ProjectConfig] = None,
    **options: Any,
) -> EstimateResult:
    """Full pipeline for a model on disk.

    Args:
        model_path: Path to an .stl or .3mf file
        config: Project configuration (defaults when None)
        **options: Quote options forwarded to :func:`estimate_parsed`

    Returns:
        EstimateResult

    Raises:
        EstimatorError subclasses: validation, parse or empty-geometry errors
        KeyError: unknown material name
    """
    config = config or ProjectConfig()
    model_path = Path(model_path)

    with log_timing(logger, "Loading model", logging.INFO, file=model_path.name) as info:
        parsed = load_model_file(model_path, config.pricing.densities)
        info['format'] = parsed.metadata.format
        info['triangles'] = parsed.stats.triangle_count

    with log_timing(logger, "Estimating", file=model_path.name):
        result = estimate_parsed(parsed, config=config, **options)

    logger.info(
        "Estimate for %s: %.2f %s, %d days",
        model_path.name, result.grand_total, config.pricing.currency, result.eta.display_days,
    )
    return result
