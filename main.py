"""
Entry point: price and schedule a 3D print from an STL or 3MF file.

Usage:
    python main.py <model_file> [--material NAME] [--support] [--batch]

Examples:
    python main.py bracket.stl --material PETG --infill 30
    python main.py gear.3mf --lat -33.8688 --lon 151.2093   # Sydney
    python main.py gear.3mf --service Painting=1.5 --json
    python main.py bracket.stl --config quote.printquote.json
"""

import argparse
import json
import logging
import sys
from typing import Dict, List, Optional

import numpy as np

from print_estimate.errors import EstimatorError
from print_estimate.eta.location import StaticLocationSource
from print_estimate.formatting import (
    format_cost,
    format_delivery_date,
    format_duration,
    format_file_size,
    format_model_stats,
    format_print_time,
    get_delivery_urgency,
)
from print_estimate.logging_config import configure_default_logging
from print_estimate.pipeline import EstimateResult, run_pipeline
from print_estimate.pricing.services import select_services
from print_estimate.project_config import load_config

logger = logging.getLogger("print_estimate.cli")


def format_report(result: EstimateResult, currency: str) -> str:
    """Console report for one estimate."""
    meta = result.parsed.metadata
    cost = result.cost
    eta = result.eta

    lines = [
        f"Model:        {meta.filename} ({meta.format}, {format_file_size(meta.file_size)}, "
        f"parsed in {meta.parse_time_ms:.2f} ms)",
        format_model_stats(result.parsed.stats),
        "",
        f"Material:     {result.material}",
        f"Print time:   {format_print_time(cost.print_time_hours)}",
        cost.summary(currency),
    ]
    for service in result.services:
        lines.append(f"  + {service.name} {service.hours:g}h: {format_cost(service.cost, currency)}")
    if result.services:
        lines.append(f"Grand total:  {format_cost(result.grand_total, currency)}")

    urgency = get_delivery_urgency(eta.total_days)
    lines += [
        "",
        f"Delivery:     {format_delivery_date(eta.estimated_date)} "
        f"({format_duration(eta.total_days)}, {urgency.description})",
    ]
    if eta.user_location is not None:
        lines.append(f"Distance:     {eta.user_location.distance_km:.0f} km")
    elif eta.location_error:
        lines.append(f"Location:     {eta.location_error} (default shipping time used)")
    return "\n".join(lines)


def _parse_services(values: Optional[List[str]]) -> Dict[str, float]:
    hours: Dict[str, float] = {}
    for value in values or []:
        name, sep, amount = value.partition("=")
        if not sep:
            raise argparse.ArgumentTypeError(f"expected NAME=HOURS, got {value!r}")
        hours[name.strip()] = float(amount)
    return hours


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Estimate 3D print cost and delivery date from an STL or 3MF file.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("model_file", help="Path to the .stl or .3mf file.")
    parser.add_argument("--material", "-m", default=None,
                        help="Material name (PLA, ABS, PETG, TPU; default from config).")
    parser.add_argument("--batch", action="store_true", default=None, dest="is_batch",
                        help="Use hourly batch pricing instead of duration tiers.")
    parser.add_argument("--support", action="store_true", default=None, dest="has_support",
                        help="Model needs support material (+time, +material, +15%%).")
    parser.add_argument("--infill", type=float, default=None, dest="infill_percentage",
                        help="Infill percentage (default: 20).")
    parser.add_argument("--layer-height", type=float, default=None, dest="layer_height",
                        help="Layer height in mm (default: 0.2).")
    parser.add_argument("--speed", type=float, default=None, dest="print_speed",
                        help="Print speed in mm/s (default: 60).")
    parser.add_argument("--lat", type=float, default=None, help="Delivery latitude.")
    parser.add_argument("--lon", type=float, default=None, help="Delivery longitude.")
    parser.add_argument("--service", action="append", metavar="NAME=HOURS",
                        help="Optional service, e.g. 'Painting=1.5' (repeatable).")
    parser.add_argument("--config", "-c", default=None, help="Path to a .printquote.json file.")
    parser.add_argument("--seed", type=int, default=None, help="Seed for the queue-delay draw.")
    parser.add_argument("--json", action="store_true", help="Print the estimate as JSON.")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging.")

    args = parser.parse_args(argv)
    if (args.lat is None) != (args.lon is None):
        parser.error("--lat and --lon must be given together")
    try:
        args.service_hours = _parse_services(args.service)
    except (argparse.ArgumentTypeError, ValueError) as exc:
        parser.error(f"--service: {exc}")
    return args


def main(argv: Optional[List[str]] = None) -> None:
    args = _parse_args(argv)
    configure_default_logging(args.verbose)

    config = load_config(model_path=args.model_file, explicit_config=args.config)

    location = None
    if args.lat is not None:
        location = StaticLocationSource(args.lat, args.lon)

    try:
        result = run_pipeline(
            args.model_file,
            config=config,
            material=args.material,
            is_batch=args.is_batch,
            has_support=args.has_support,
            infill_percentage=args.infill_percentage,
            layer_height=args.layer_height,
            print_speed=args.print_speed,
            services=select_services(args.service_hours),
            location=location,
            rng=np.random.default_rng(args.seed),
        )
    except EstimatorError as exc:
        logger.critical("Estimate failed: %s", exc)
        sys.exit(1)
    except KeyError as exc:
        logger.critical("Configuration error: %s", exc.args[0] if exc.args else exc)
        sys.exit(1)
    except Exception as exc:
        logger.critical("Unexpected error: %s", exc, exc_info=True)
        sys.exit(2)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print(format_report(result, config.pricing.currency))


if __name__ == "__main__":
    main()
