"""
Batch estimation over a folder of models.

Provides:
- Discovery of .stl/.3mf files (optionally recursive)
- Per-file estimates with success/failure tracking
- Thread-pool execution for independent files
- Optional JSON quote reports

Usage:
    from print_estimate.batch import batch_estimate

    results = batch_estimate("./models", material="PETG", parallel=True)
    print(results.summary())
"""

import json
import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from print_estimate import config as cfg
from print_estimate.errors import EstimatorError
from print_estimate.logging_config import LogContext, configure_default_logging
from print_estimate.pipeline import EstimateResult, run_pipeline
from print_estimate.project_config import ProjectConfig, load_config

logger = logging.getLogger(__name__)

MODEL_EXTENSIONS = (cfg.STL_EXTENSION, cfg.THREEMF_EXTENSION)


@dataclass
class FileEstimate:
    """Result of estimating a single file."""
    input_path: Path
    estimate: Optional[EstimateResult] = None
    report_path: Optional[Path] = None
    error: Optional[str] = None
    duration_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return self.estimate is not None

    @property
    def status(self) -> str:
        return "OK" if self.success else "FAILED"


@dataclass
class BatchResult:
    """Result of a batch run."""
    results: List[FileEstimate] = field(default_factory=list)
    total_duration_seconds: float = 0.0
    currency: str = cfg.CURRENCY

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def successful(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def success_rate(self) -> float:
        """Success rate as percentage."""
        if self.total == 0:
            return 0.0
        return 100.0 * self.successful / self.total

    @property
    def total_cost(self) -> float:
        """Sum of grand totals over successful files."""
        return round(sum(r.estimate.grand_total for r in self.results if r.success), 2)

    def summary(self) -> str:
        """Generate human-readable summary."""
        lines = [
            "Batch Estimate Summary",
            "=" * 40,
            f"Total files:     {self.total}",
            f"Successful:      {self.successful}",
            f"Failed:          {self.failed}",
            f"Success rate:    {self.success_rate:.1f}%",
            f"Quoted total:    {self.total_cost:.2f} {self.currency}",
            f"Total time:      {self.total_duration_seconds:.1f}s",
            "",
        ]

        if self.successful:
            lines.append("Quotes:")
            for r in sorted(self.results, key=lambda r: r.input_path.name):
                if r.success:
                    lines.append(
                        f"  - {r.input_path.name}: {r.estimate.grand_total:.2f} {self.currency}, "
                        f"{r.estimate.eta.display_days} days"
                    )

        if self.failed:
            lines.append("Failed files:")
            for r in self.results:
                if not r.success:
                    lines.append(f"  - {r.input_path.name}: {r.error}")

        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'total': self.total,
            'successful': self.successful,
            'failed': self.failed,
            'success_rate': self.success_rate,
            'total_cost': self.total_cost,
            'total_duration_seconds': self.total_duration_seconds,
            'results': [
                {
                    'input': str(r.input_path),
                    'report': str(r.report_path) if r.report_path else None,
                    'success': r.success,
                    'error': r.error,
                    'duration': r.duration_seconds,
                    'grand_total': r.estimate.grand_total if r.success else None,
                }
                for r in self.results
            ],
        }


def find_model_files(
    input_dir: Union[str, Path],
    recursive: bool = False,
) -> List[Path]:
    """Find .stl and .3mf files (any extension case) in a directory.

    Raises:
        FileNotFoundError: if the directory does not exist
        NotADirectoryError: if the path is not a directory
    """
    input_dir = Path(input_dir)

    if not input_dir.exists():
        raise FileNotFoundError(f"Input directory not found: {input_dir}")
    if not input_dir.is_dir():
        raise NotADirectoryError(f"Not a directory: {input_dir}")

    candidates = input_dir.rglob("*") if recursive else input_dir.glob("*")
    files = sorted(
        p for p in candidates
        if p.is_file() and p.suffix.lower() in MODEL_EXTENSIONS
    )

    logger.info("Found %d model files in %s", len(files), input_dir)
    return files


def report_path_for(input_path: Path, output_dir: Path, prefix: str = "", suffix: str = ".quote") -> Path:
    return output_dir / f"{prefix}{input_path.stem}{suffix}.json"


def estimate_single_file(
    input_path: Path,
    config: Optional[ProjectConfig] = None,
    output_dir: Optional[Path] = None,
    **options: Any,
) -> FileEstimate:
    """Estimate one file; any failure is recorded in the result, never raised.

    When ``config.output.write_reports`` is set, the estimate is written as
    JSON into ``output_dir``.
    """
    config = config or ProjectConfig()
    start_time = time.perf_counter()
    result = FileEstimate(input_path=input_path)

    with LogContext(file=input_path.name):
        try:
            result.estimate = run_pipeline(input_path, config=config, **options)

            if config.output.write_reports:
                target_dir = output_dir or input_path.parent
                target_dir.mkdir(parents=True, exist_ok=True)
                report = report_path_for(input_path, target_dir, config.output.prefix, config.output.suffix)
                report.write_text(json.dumps(result.estimate.to_dict(), indent=2), encoding='utf-8')
                result.report_path = report
                logger.debug("Report written to %s", report)

        except (EstimatorError, KeyError) as e:
            result.estimate = None
            result.error = str(e)
            logger.error("Failed to estimate %s: %s", input_path.name, e)

        except Exception as e:
            result.estimate = None
            result.error = f"{type(e).__name__}: {e}"
            logger.error("Unexpected error estimating %s: %s", input_path.name, e, exc_info=True)

    result.duration_seconds = time.perf_counter() - start_time
    return result


def batch_estimate(
    input_dir: Union[str, Path],
    output_dir: Optional[Union[str, Path]] = None,
    recursive: bool = False,
    config: Optional[ProjectConfig] = None,
    config_path: Optional[Union[str, Path]] = None,
    parallel: bool = False,
    max_workers: Optional[int] = None,
    progress_callback: Optional[Callable[[int, int, FileEstimate], None]] = None,
    **options: Any,
) -> BatchResult:
    """Estimate every model in a folder.

    Args:
        input_dir: Directory containing .stl/.3mf files
        output_dir: Report directory (default: ``config.output.output_dir`` or input)
        recursive: Search subdirectories
        config: Project configuration
        config_path: Path to a .printquote.json file (when config is None)
        parallel: Run files in a thread pool
        max_workers: Maximum parallel workers (None = executor default)
        progress_callback: Called after each file: (current, total, result)
        **options: Quote options forwarded to the pipeline (material, has_support, ...)

    Returns:
        BatchResult with per-file estimates
    """
    start_time = time.perf_counter()
    input_dir = Path(input_dir)

    if config is None:
        config = load_config(input_dir / "batch", explicit_config=config_path)

    if output_dir is None and config.output.output_dir:
        output_dir = input_dir / config.output.output_dir
    output_dir = Path(output_dir) if output_dir else None

    model_files = find_model_files(input_dir, recursive)
    if not model_files:
        logger.warning("No model files found in %s", input_dir)
        return BatchResult(total_duration_seconds=time.perf_counter() - start_time,
                           currency=config.pricing.currency)

    logger.info("Starting batch estimate: %d files, parallel=%s", len(model_files), parallel)

    results: List[FileEstimate] = []

    def _record(i: int, result: FileEstimate) -> None:
        results.append(result)
        if progress_callback:
            progress_callback(i, len(model_files), result)
        logger.info(
            "[%d/%d] %s: %s (%.2fs)",
            i, len(model_files), result.input_path.name, result.status, result.duration_seconds,
        )

    if parallel:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = [
                executor.submit(estimate_single_file, path, config, output_dir, **options)
                for path in model_files
            ]
            for i, future in enumerate(as_completed(futures), 1):
                _record(i, future.result())
    else:
        for i, path in enumerate(model_files, 1):
            _record(i, estimate_single_file(path, config, output_dir, **options))

    batch_result = BatchResult(
        results=results,
        total_duration_seconds=time.perf_counter() - start_time,
        currency=config.pricing.currency,
    )

    logger.info(
        "Batch estimate complete: %d/%d successful (%.1f%%) in %.1fs",
        batch_result.successful, batch_result.total,
        batch_result.success_rate, batch_result.total_duration_seconds,
    )
    return batch_result


def batch_estimate_cli(argv: Optional[List[str]] = None) -> int:
    """CLI entry point for batch estimation."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Estimate print cost and delivery for every model in a folder"
    )
    parser.add_argument("input_dir", help="Directory containing .stl/.3mf files")
    parser.add_argument("-o", "--output", dest="output_dir",
                        help="Directory for JSON quote reports (enables reports)")
    parser.add_argument("-r", "--recursive", action="store_true", help="Search subdirectories")
    parser.add_argument("-c", "--config", dest="config_path", help="Path to .printquote.json")
    parser.add_argument("-m", "--material", help="Material name (default from config: PLA)")
    parser.add_argument("--batch", action="store_true", default=None, dest="is_batch",
                        help="Use hourly batch pricing")
    parser.add_argument("--support", action="store_true", default=None, dest="has_support",
                        help="Model needs support material")
    parser.add_argument("--parallel", action="store_true", help="Use parallel processing")
    parser.add_argument("-j", "--jobs", type=int, dest="max_workers", help="Maximum parallel jobs")
    parser.add_argument("--json", action="store_true", help="Print the batch result as JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    args = parser.parse_args(argv)
    configure_default_logging(args.verbose)

    config = load_config(Path(args.input_dir) / "batch", explicit_config=args.config_path)
    if args.output_dir:
        config.output.write_reports = True

    try:
        result = batch_estimate(
            input_dir=args.input_dir,
            output_dir=args.output_dir,
            recursive=args.recursive,
            config=config,
            parallel=args.parallel,
            max_workers=args.max_workers,
            material=args.material,
            is_batch=args.is_batch,
            has_support=args.has_support,
        )
    except (FileNotFoundError, NotADirectoryError) as e:
        logger.error("Batch estimate failed: %s", e)
        return 1

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print("\n" + result.summary())

    return 0 if result.failed == 0 else 1


if __name__ == "__main__":
    import sys
    sys.exit(batch_estimate_cli())
