"""
Structured logging configuration for the print_estimate package.

Provides:
- JSON formatter for machine-readable log output (one object per line)
- Console formatter that renders quote fields with their units
- Timing helpers (context manager and decorator)
- LogContext for tagging every record of one quote with shared fields

Usage:
    from print_estimate.logging_config import setup_logging, get_logger

    setup_logging(level=logging.INFO, json_file="quotes.log.json")

    logger = get_logger(__name__)
    logger.info("Model parsed", extra={"format": "STL_BINARY", "triangles": 12})
"""

import json
import logging
import sys
import threading
import time
from contextlib import contextmanager
from datetime import datetime
from functools import wraps
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, TypeVar, Union

import numpy as np

F = TypeVar('F', bound=Callable[..., Any])

PACKAGE_LOGGER = "print_estimate"

# LogRecord attributes that are not user-supplied extras.
_RESERVED_KEYS = frozenset({
    'name', 'msg', 'args', 'created', 'filename', 'funcName',
    'levelname', 'levelno', 'lineno', 'module', 'msecs',
    'pathname', 'process', 'processName', 'relativeCreated',
    'stack_info', 'exc_info', 'exc_text', 'thread', 'threadName',
    'taskName', 'message', 'asctime',
})

# Console suffixes for well-known extra fields.
_FIELD_UNITS = {
    'volume_cm3': 'cm3',
    'surface_area_cm2': 'cm2',
    'weight_g': 'g',
    'distance_km': 'km',
    'print_time_hours': 'h',
    'elapsed_seconds': 's',
    'parse_time_ms': 'ms',
}


def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    return {k: v for k, v in record.__dict__.items() if k not in _RESERVED_KEYS}


def _json_value(value: Any) -> Any:
    """Plain JSON value for an extra field (numpy scalars and arrays included)."""
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, np.ndarray):
        return value.tolist() if value.size <= 16 else f"<array shape={value.shape}>"
    if isinstance(value, Path):
        return str(value)
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return str(value)
    return value


class JSONFormatter(logging.Formatter):
    """One JSON object per record.

    Keys: timestamp, level, logger, message, then every ``extra={}`` field.
    Warnings and debug records also carry their source location.
    """

    def __init__(self, include_extra: bool = True):
        super().__init__()
        self.include_extra = include_extra

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.levelno >= logging.WARNING or record.levelno <= logging.DEBUG:
            entry["location"] = {
                "file": record.filename,
                "line": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        if self.include_extra:
            entry.update({k: _json_value(v) for k, v in _extra_fields(record).items()})

        return json.dumps(entry, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """Single-line console output: ``[TIME] LEVEL module: message [k=v, ...]``.

    The ``print_estimate.`` prefix is dropped from logger names and known
    quote fields are shown with their unit (``volume_cm3=12.5cm3``).
    """

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def __init__(self, use_colors: bool = True, show_extra: bool = True):
        super().__init__()
        self.use_colors = use_colors
        self.show_extra = show_extra

    @staticmethod
    def _short_name(name: str) -> str:
        prefix = PACKAGE_LOGGER + "."
        return name[len(prefix):] if name.startswith(prefix) else name

    @staticmethod
    def _format_field(key: str, value: Any) -> str:
        value = _json_value(value)
        if isinstance(value, float):
            text = f"{value:.4g}"
        elif isinstance(value, list) and len(value) > 3:
            text = f"[{len(value)} items]"
        else:
            text = str(value)
        return f"{key}={text}{_FIELD_UNITS.get(key, '')}"

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")

        level = f"{record.levelname:8}"
        color = self.COLORS.get(record.levelname) if self.use_colors else None
        if color:
            level = f"{color}{level}{self.RESET}"

        line = f"[{stamp}] {level} {self._short_name(record.name)}: {record.getMessage()}"

        if self.show_extra:
            fields = [self._format_field(k, v) for k, v in _extra_fields(record).items()]
            if fields:
                line += " [" + ", ".join(fields) + "]"

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(
    level: int = logging.INFO,
    json_file: Optional[Union[str, Path]] = None,
    console: bool = True,
    use_colors: bool = True,
    root_logger: bool = False,
) -> logging.Logger:
    """Replace the handlers of the print_estimate logger.

    Args:
        level: Minimum log level (default INFO)
        json_file: Optional path for a JSON-lines log file
        console: Log to stderr (default True)
        use_colors: ANSI colors on the console
        root_logger: Configure the root logger instead of print_estimate

    Returns:
        The configured logger
    """
    logger = logging.getLogger("" if root_logger else PACKAGE_LOGGER)
    logger.setLevel(level)
    logger.handlers.clear()

    handlers: List[logging.Handler] = []
    if console:
        stream = logging.StreamHandler(sys.stderr)
        stream.setFormatter(ConsoleFormatter(use_colors=use_colors))
        handlers.append(stream)
    if json_file:
        json_handler = logging.FileHandler(Path(json_file), encoding='utf-8')
        json_handler.setFormatter(JSONFormatter())
        handlers.append(json_handler)

    for handler in handlers:
        handler.setLevel(level)
        logger.addHandler(handler)

    if not root_logger:
        logger.propagate = False
    return logger


def get_logger(name: str) -> logging.Logger:
    """Module logger (pass ``__name__``)."""
    return logging.getLogger(name)


@contextmanager
def log_timing(
    logger: logging.Logger,
    operation: str,
    level: int = logging.DEBUG,
    **fields: Any
) -> Iterator[Dict[str, Any]]:
    """Log the start, completion (or failure) and duration of an operation.

    Example:
        with log_timing(logger, "Loading model", logging.INFO, file=name) as info:
            parsed = load_model_file(path)
            info["triangles"] = parsed.stats.triangle_count

    Yields:
        dict the caller may fill with fields for the completion record;
        ``elapsed_seconds`` is added on exit.
    """
    info: Dict[str, Any] = {}
    start = time.perf_counter()
    logger.log(level, "Starting: %s", operation,
               extra={"event": "start", "operation": operation, **fields})

    try:
        yield info
    except Exception as exc:
        elapsed = time.perf_counter() - start
        logger.error("Failed: %s (%.3fs) - %s", operation, elapsed, exc, extra={
            "event": "error", "operation": operation,
            "elapsed_seconds": elapsed, "error": str(exc), **fields,
        })
        raise

    info['elapsed_seconds'] = time.perf_counter() - start
    logger.log(level, "Completed: %s (%.3fs)", operation, info['elapsed_seconds'],
               extra={"event": "complete", "operation": operation, **fields, **info})


def timed(
    logger: Optional[logging.Logger] = None,
    level: int = logging.DEBUG,
    operation: Optional[str] = None,
) -> Callable[[F], F]:
    """Decorator form of :func:`log_timing`.

    Defaults to the decorated function's module logger and name.
    """
    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            with log_timing(logger or logging.getLogger(func.__module__),
                            operation or func.__name__, level):
                return func(*args, **kwargs)

        return wrapper  # type: ignore
    return decorator


class _ThreadFieldsFilter(logging.Filter):
    """Sets fields on records emitted by one thread; others pass unchanged."""

    def __init__(self, fields: Dict[str, Any]):
        super().__init__()
        self.fields = fields
        self.thread_id = threading.get_ident()

    def filter(self, record: logging.LogRecord) -> bool:
        if record.thread == self.thread_id:
            for key, value in self.fields.items():
                setattr(record, key, value)
        return True


class LogContext:
    """Tag every print_estimate record emitted inside a scope.

    Filters attach to the package logger and its handlers, so records from
    child loggers (print_estimate.io.*, print_estimate.pricing.*) are tagged
    too. Only records from the entering thread receive the fields, so batch
    workers running side by side keep their own ``file`` tag.

    Example:
        with LogContext(file="bracket.stl", material="PETG"):
            run_pipeline(...)
    """

    _local = threading.local()

    def __init__(self, **fields: Any):
        self.fields = fields
        self._previous: Optional['LogContext'] = None
        self._filter: Optional[_ThreadFieldsFilter] = None
        self._targets: List[Union[logging.Logger, logging.Handler]] = []

    def __enter__(self) -> 'LogContext':
        self._previous = LogContext.current()
        LogContext._local.context = self

        package_logger = logging.getLogger(PACKAGE_LOGGER)
        self._filter = _ThreadFieldsFilter(self.fields)
        self._targets = [package_logger, *package_logger.handlers]
        for target in self._targets:
            target.addFilter(self._filter)
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        for target in self._targets:
            target.removeFilter(self._filter)
        self._targets = []
        LogContext._local.context = self._previous

    @classmethod
    def current(cls) -> Optional['LogContext']:
        """Innermost active context of the calling thread."""
        return getattr(cls._local, 'context', None)


def configure_default_logging(verbose: bool = False) -> logging.Logger:
    """Console logging at DEBUG (verbose) or WARNING level."""
    level = logging.DEBUG if verbose else logging.WARNING
    return setup_logging(level=level, console=True, use_colors=sys.stderr.isatty())
