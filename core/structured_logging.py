"""
Structured logging infrastructure for the bike registry search.

Provides JSON logging with:
- Multiple log levels (DEBUG, INFO, WARNING, ERROR, CRITICAL)
- Rotating file handlers (daily rotation, 30-day retention)
- Separate error log file
- Performance tracking (latency metrics)
- Request context tracking (request_id, criteria, result counts)

Usage:
    from core.structured_logging import get_logger, log_search

    logger = get_logger(__name__)
    logger.info("Search started", extra={"event": "search_start", "serial": "WTU 45"})

    # Or use convenience functions:
    log_search(request_id="abc", criteria=criteria.to_dict(), results_found=3)
"""

import json
import logging
import sys
import time
import traceback
import uuid
from datetime import datetime, timezone
from functools import wraps
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Callable, Dict, Optional


# =============================================================================
# JSON Formatter
# =============================================================================

class JSONFormatter(logging.Formatter):
    """
    Formats log records as JSON for structured logging.

    Output format:
    {
        "timestamp": "2024-12-08T10:30:00.123456Z",
        "level": "INFO",
        "logger": "bikesearch.core.interpreter",
        "message": "Search params interpreted",
        "event": "criteria_interpreted",
        "request_id": "abc123",
        ...
    }
    """

    # Fields copied from record attributes (passed via extra={...})
    EXTRA_FIELDS = [
        # Request
        "event", "request_id", "client_ip",
        # Criteria
        "serial", "raw_serial", "query", "manufacturer", "colors",
        "stolenness", "location", "distance", "bounding_box", "criteria",
        # Reference resolution
        "reference_kind",
        # Results
        "results_found", "exact_count", "containing_count", "near_count",
        "candidates_scanned", "predicates",
        # Geocoding
        "geocode_target", "geocoder", "failure_reason",
        # Errors
        "error_type", "stack_trace",
        # Performance timing
        "elapsed_ms", "function", "total_latency_ms",
        "interpretation_ms", "search_latency_ms", "geocode_latency_ms",
        # Loading
        "rows_loaded", "rows_skipped", "source_path",
    ]

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(_record_fields(record, self.EXTRA_FIELDS))

        if record.exc_info and record.exc_info[0] is not None:
            payload["error_type"] = record.exc_info[0].__name__
            payload["stack_trace"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


def _record_fields(record: logging.LogRecord, names) -> Dict[str, Any]:
    """Collect the non-None extra attributes named in ``names``."""
    found = {}
    for name in names:
        value = getattr(record, name, None)
        if value is not None:
            found[name] = value
    return found


class ConsoleFormatter(logging.Formatter):
    """
    Human-readable formatter for console output.

    Output format:
    2024-12-08 10:30:00 | INFO | bikesearch.core.search | Search completed | request_id=abc123
    """

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    # Shown after the message, in this order
    CONTEXT_FIELDS = ("request_id", "event", "results_found", "elapsed_ms")

    def format(self, record: logging.LogRecord) -> str:
        level = record.levelname
        color = self.LEVEL_COLORS.get(level, "")
        parts = [
            datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            f"{color}{level:8}{self.RESET}",
            record.name,
            record.getMessage(),
        ]

        context = _record_fields(record, self.CONTEXT_FIELDS)
        if context:
            parts.append(", ".join(f"{k}={v}" for k, v in context.items()))

        line = " | ".join(parts)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


# =============================================================================
# Logger Setup
# =============================================================================

ROOT_LOGGER_NAME = "bikesearch"
LOG_RETENTION_DAYS = 30

_loggers: Dict[str, logging.Logger] = {}
_initialized = False


def setup_logging(
    log_dir: str = "logs",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    enable_console: bool = True,
    enable_file: bool = True,
    enable_error_log: bool = True,
) -> None:
    """
    Initialize the logging system.

    Creates:
    - logs/bikesearch.log (all logs as JSON, rotating daily, 30-day retention)
    - logs/errors.log (ERROR and above, rotating daily, 30-day retention)
    - Console output (if enabled)

    Args:
        log_dir: Directory for log files
        console_level: Minimum level for console output
        file_level: Minimum level for file output
        enable_console: Whether to output to console
        enable_file: Whether to write bikesearch.log
        enable_error_log: Whether to write errors.log (ERROR and above)
    """
    global _initialized
    if _initialized:
        return

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(logging.DEBUG)  # Capture all, handlers filter
    root_logger.handlers = []

    if enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(console_level)
        console_handler.setFormatter(ConsoleFormatter())
        root_logger.addHandler(console_handler)

    log_files = []
    if enable_file:
        log_files.append(("bikesearch.log", file_level))
    if enable_error_log:
        log_files.append(("errors.log", logging.ERROR))

    if log_files:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        for filename, level in log_files:
            root_logger.addHandler(_daily_json_handler(log_path / filename, level))

    _initialized = True


def _daily_json_handler(path: Path, level: int) -> logging.Handler:
    handler = TimedRotatingFileHandler(
        filename=str(path),
        when="midnight",
        backupCount=LOG_RETENTION_DAYS,
        encoding="utf-8",
    )
    handler.suffix = "%Y-%m-%d"
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter())
    return handler


def reset_logging() -> None:
    """Remove handlers installed by setup_logging (used by tests)."""
    global _initialized
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root_logger.handlers):
        handler.close()
        root_logger.removeHandler(handler)
    _initialized = False


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: Module name (usually __name__)

    Returns:
        Logger under the bikesearch namespace

    Example:
        logger = get_logger(__name__)
        logger.info("Search started", extra={"query": "blue surly"})
    """
    # Not auto-initialized; the embedding application calls setup_logging()
    if name.startswith(f"{ROOT_LOGGER_NAME}."):
        logger_name = name
    else:
        logger_name = f"{ROOT_LOGGER_NAME}.{name}"

    if logger_name not in _loggers:
        _loggers[logger_name] = logging.getLogger(logger_name)

    return _loggers[logger_name]


# =============================================================================
# Context Manager for Request Tracking
# =============================================================================

class LogContext:
    """
    Tracks one search request so its log lines share a request_id.

    Usage:
        with LogContext(request_id="abc123") as ctx:
            criteria = interpreter.interpret(params, client_ip=ip)
            ctx.log_criteria(criteria.to_dict())
            result = search.serial_search(criteria, request_id=ctx.request_id)
            ctx.log_response(results_found=result.total_count)

    Exceptions raised inside the block are logged and re-raised.
    """

    def __init__(self, request_id: Optional[str] = None):
        self.request_id = request_id or uuid.uuid4().hex[:8]
        self.logger = get_logger("request")
        self._started: Optional[float] = None

    def __enter__(self) -> "LogContext":
        self._started = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_val is not None:
            self.logger.error(
                f"Request failed: {exc_val}",
                extra={
                    "event": "error",
                    "request_id": self.request_id,
                    "error_type": exc_type.__name__,
                    "total_latency_ms": round(self.elapsed_ms(), 2),
                },
                exc_info=(exc_type, exc_val, exc_tb),
            )
        return False

    def elapsed_ms(self) -> float:
        if self._started is None:
            return 0.0
        return (time.perf_counter() - self._started) * 1000

    def _info(self, message: str, event: str, **fields) -> None:
        self.logger.info(message, extra={"event": event, "request_id": self.request_id, **fields})

    def log_criteria(self, criteria: dict, **extra) -> None:
        self._info("Search criteria interpreted", "criteria_interpreted", criteria=criteria, **extra)

    def log_response(self, **extra) -> None:
        self._info(
            "Search completed",
            "search_completed",
            total_latency_ms=round(self.elapsed_ms(), 2),
            **extra,
        )


# =============================================================================
# Convenience Functions
# =============================================================================

def log_interpretation(
    criteria: dict,
    interpretation_ms: float,
    request_id: Optional[str] = None,
    **extra
) -> None:
    """
    Log the result of interpreting raw search params.

    Args:
        criteria: SearchCriteria.to_dict()
        interpretation_ms: Time spent interpreting (includes geocoding)
        request_id: Request identifier
        **extra: Additional fields to log
    """
    logger = get_logger("interpretation")
    logger.debug(
        f"Interpreted params: stolenness={criteria.get('stolenness')}",
        extra={
            "event": "criteria_interpreted",
            "request_id": request_id,
            "criteria": criteria,
            "stolenness": criteria.get("stolenness"),
            "interpretation_ms": round(interpretation_ms, 2),
            **extra
        }
    )


def log_search(
    criteria: dict,
    results_found: int,
    search_latency_ms: Optional[float] = None,
    request_id: Optional[str] = None,
    **extra
) -> None:
    """
    Log a completed search.

    Args:
        criteria: SearchCriteria.to_dict()
        results_found: Number of records returned
        search_latency_ms: Time spent filtering
        request_id: Request identifier
        **extra: Additional fields (exact_count, near_count, ...)
    """
    logger = get_logger("search")
    logger.info(
        f"Search: {results_found} results",
        extra={
            "event": "search_results",
            "request_id": request_id,
            "criteria": criteria,
            "results_found": results_found,
            "search_latency_ms": round(search_latency_ms, 2) if search_latency_ms else None,
            **extra
        }
    )


def log_geocode_failure(
    target: str,
    reason: str,
    geocoder: Optional[str] = None,
    **extra
) -> None:
    """
    Log a geocoding soft failure.

    Args:
        target: Address or IP that failed to geocode
        reason: Short reason ("no_results", "timeout", "nan_bounding_box", ...)
        geocoder: Geocoder class name
        **extra: Additional fields to log
    """
    logger = get_logger("geocoding")
    logger.warning(
        f"Geocoding failed for {target!r}: {reason}",
        extra={
            "event": "geocode_failed",
            "geocode_target": target,
            "failure_reason": reason,
            "geocoder": geocoder,
            **extra
        }
    )


def log_error(
    error: Exception,
    context: Optional[str] = None,
    request_id: Optional[str] = None,
    **extra
) -> None:
    """
    Log an error with stack trace.

    Args:
        error: The exception
        context: What was happening when the error occurred
        request_id: Request identifier
        **extra: Additional fields to log
    """
    logger = get_logger("errors")
    message = f"{context}: {error}" if context else str(error)
    logger.error(
        message,
        extra={
            "event": "error",
            "request_id": request_id,
            "error_type": type(error).__name__,
            "stack_trace": traceback.format_exc(),
            **extra
        },
    )


# =============================================================================
# Performance Timing Decorator
# =============================================================================

def timed(event_name: str, logger_name: str = "performance"):
    """
    Decorator to time function execution and log it.

    Usage:
        @timed("search")
        def search(self, criteria): ...

    Args:
        event_name: Name of the event for logging
        logger_name: Logger to use
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            logger = get_logger(logger_name)
            timer = Timer()
            try:
                with timer:
                    result = func(*args, **kwargs)
            except Exception as e:
                logger.error(
                    f"{event_name} failed after {timer.elapsed_ms:.2f}ms",
                    extra={
                        "event": f"{event_name}_error",
                        "elapsed_ms": round(timer.elapsed_ms, 2),
                        "function": func.__name__,
                        "error_type": type(e).__name__,
                    },
                    exc_info=True,
                )
                raise

            logger.debug(
                f"{event_name} completed",
                extra={
                    "event": f"{event_name}_timing",
                    "elapsed_ms": round(timer.elapsed_ms, 2),
                    "function": func.__name__,
                },
            )
            return result
        return wrapper
    return decorator


class Timer:
    """
    Context manager for timing code blocks.

    Usage:
        with Timer() as t:
            # ... do work ...
        print(f"Took {t.elapsed_ms}ms")
    """

    def __init__(self):
        self.start_time = None
        self.end_time = None
        self.elapsed_ms = 0.0

    def __enter__(self) -> "Timer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, *args) -> None:
        self.end_time = time.perf_counter()
        self.elapsed_ms = (self.end_time - self.start_time) * 1000
