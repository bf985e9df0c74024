"""
print_estimate: cost and delivery estimates for 3D prints from STL/3MF files.

The command-line entry point is main.py; batch runs use print_estimate.batch.
"""

from print_estimate.logging_config import (
    setup_logging,
    get_logger,
    configure_default_logging,
    log_timing,
    timed,
    LogContext,
)
from print_estimate.pipeline import (
    EstimateResult,
    estimate_bytes,
    estimate_bytes_async,
    estimate_parsed_async,
    run_pipeline,
)

__version__ = "0.1.0"

__all__ = [
    "setup_logging",
    "get_logger",
    "configure_default_logging",
    "log_timing",
    "timed",
    "LogContext",
    "EstimateResult",
    "estimate_bytes",
    "estimate_bytes_async",
    "estimate_parsed_async",
    "run_pipeline",
]
